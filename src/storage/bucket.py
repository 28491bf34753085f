"""AudioBucket — object store for synthesized answers.

Audio payloads are written under ``audio_dir`` and served by the web server
at ``<PUBLIC_BASE_URL>/audio/<character>/<file>``.  Object paths are
generated, never user supplied, but are still sanitized and confined to the
bucket root.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
import uuid
from typing import TYPE_CHECKING

import httpx

from src.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

MAX_OBJECT_SIZE = 25 * 1024 * 1024  # 25 MB per audio object
AUDIO_PREFIX = "audio"

_SAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9._\-]")


class AudioBucket:
    """Filesystem-backed object store with public URLs.

    Singleton accessed via ``AudioBucket.get()``.  Pass an explicit *root*
    and *base_url* for test isolation.
    """

    _instance: AudioBucket | None = None

    def __init__(self, root: Path | None = None, base_url: str | None = None) -> None:
        self._root = (root or settings.audio_dir).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._base_url = (base_url or settings.get_public_base_url()).rstrip("/")

    @classmethod
    def get(cls) -> AudioBucket:
        """Return the shared AudioBucket instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Clear the singleton (for tests)."""
        cls._instance = None

    @property
    def root(self) -> Path:
        return self._root

    # -- Paths -----------------------------------------------------------------

    @staticmethod
    def sanitize(name: str) -> str:
        """Replace unsafe characters and strip leading dots.

        Raises ``ValueError`` if nothing is left.
        """
        sanitized = _SAFE_NAME_RE.sub("_", name).lstrip(".")[:200]
        if not sanitized:
            msg = f"Object name is empty after sanitization: {name!r}"
            raise ValueError(msg)
        return sanitized

    def object_key(self, character_id: str, session_id: str) -> str:
        """Generate ``audio/<character>/<session>_<millis>_<suffix>.mp3``."""
        millis = int(time.time() * 1000)
        filename = f"{self.sanitize(session_id)}_{millis}_{uuid.uuid4().hex[:8]}.mp3"
        return f"{AUDIO_PREFIX}/{self.sanitize(character_id.lower())}/{filename}"

    def path_for(self, key: str) -> Path:
        """Resolve an object key to a file inside the bucket root."""
        parts = [self.sanitize(p) for p in key.split("/") if p]
        if not parts:
            msg = f"Object key resolves to empty: {key!r}"
            raise ValueError(msg)
        target = self._root.joinpath(*parts).resolve()
        if not target.is_relative_to(self._root):
            msg = f"Path traversal detected: {key!r}"
            raise ValueError(msg)
        return target

    def public_url(self, key: str) -> str:
        return f"{self._base_url}/{key.lstrip('/')}"

    def key_for_url(self, url: str) -> str | None:
        """Object key for a URL served by this bucket, or None."""
        prefix = f"{self._base_url}/"
        if not url.startswith(prefix):
            return None
        return url[len(prefix) :].split("?", 1)[0]

    # -- Objects ---------------------------------------------------------------

    def _write(self, key: str, data: bytes) -> None:
        target = self.path_for(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def upload(self, character_id: str, session_id: str, data: bytes) -> str:
        """Store *data* and return its publicly retrievable URL."""
        if not data:
            msg = "Refusing to store an empty audio object"
            raise ValueError(msg)
        if len(data) > MAX_OBJECT_SIZE:
            msg = f"Audio object too large: {len(data)} bytes (max {MAX_OBJECT_SIZE})"
            raise ValueError(msg)

        key = self.object_key(character_id, session_id)
        await asyncio.to_thread(self._write, key, data)
        logger.debug("Stored audio object %s (%d bytes)", key, len(data))
        return self.public_url(key)

    def exists(self, key: str) -> bool:
        try:
            return self.path_for(key).is_file()
        except ValueError:
            return False

    async def is_retrievable(self, url: str, timeout: float | None = None) -> bool:
        """Check that a stored audio address still resolves.

        Objects in this bucket are checked on disk; foreign URLs get an HTTP
        HEAD request. Any failure counts as not retrievable.
        """
        key = self.key_for_url(url)
        if key is not None:
            return self.exists(key)

        try:
            async with httpx.AsyncClient(
                timeout=timeout or settings.audio_timeout_seconds,
                follow_redirects=True,
            ) as client:
                resp = await client.head(url)
            return resp.is_success
        except httpx.HTTPError as exc:
            logger.warning("Audio URL check failed for %s: %s", url, exc)
            return False
