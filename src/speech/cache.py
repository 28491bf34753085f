"""AudioCache — in-process memo of synthesized speech."""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import NamedTuple

from src.config import settings
from src.matching.similarity import normalize_text

logger = logging.getLogger(__name__)


class AudioKey(NamedTuple):
    """Identity of one synthesis request."""

    text: str
    voice: str
    speed: float

    @classmethod
    def build(cls, text: str, voice: str, speed: float) -> AudioKey:
        """Key with normalized text, so punctuation and case do not split entries."""
        return cls(normalize_text(text), voice, round(float(speed), 3))


class AudioCache:
    """Least-recently-used map of :class:`AudioKey` to audio bytes.

    The backing ``OrderedDict`` may be injected so tests (or a caller that
    wants to share entries) control its lifetime.  Holds at most
    *max_entries* artifacts; the least recently read or written is evicted
    first.
    """

    def __init__(
        self,
        max_entries: int | None = None,
        store: OrderedDict[AudioKey, bytes] | None = None,
    ) -> None:
        self.max_entries = max_entries or settings.audio_cache_max_entries
        if self.max_entries < 1:
            msg = "max_entries must be at least 1"
            raise ValueError(msg)
        self._store: OrderedDict[AudioKey, bytes] = store if store is not None else OrderedDict()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def get(self, key: AudioKey) -> bytes | None:
        audio = self._store.get(key)
        if audio is not None:
            self._store.move_to_end(key)
        return audio

    def put(self, key: AudioKey, audio: bytes) -> None:
        self._store[key] = audio
        self._store.move_to_end(key)
        while len(self._store) > self.max_entries:
            evicted, _ = self._store.popitem(last=False)
            logger.debug("Evicted cached audio for %r", evicted.text[:40])

    def clear(self) -> int:
        """Drop every entry. Returns the number removed."""
        count = len(self._store)
        self._store.clear()
        return count
