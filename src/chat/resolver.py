"""ResponseResolver — decides where a character's answer comes from.

Resolution order for one question:

1. exact match on the normalized question among recent records
2. fuzzy match (token-set similarity at or above the threshold), first hit in
   recency order
3. model generation with the persona prompt and conversation history
4. canned keyword response, then the generic "not sure I understand" reply

Answers from (3) and (4) are synthesized to speech on a bounded wait and
persisted to the conversation store in the background, unless an equivalent
record turns up when the write is about to happen.  Nothing in here raises
to the user for collaborator failures: the worst case is the fixed apology.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from src.chat.fallback import APOLOGY, static_response
from src.config import settings
from src.conversations.store import ConversationStore
from src.llm.client import generate_character_reply
from src.matching.similarity import normalize_text, similarity
from src.speech.client import SpeechClient
from src.speech.voices import voice_for

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from src.characters.models import Character
    from src.chat.session import Message
    from src.conversations.models import ConversationRecord

    ReplyGenerator = Callable[[Character, str, Iterable[Message]], Awaitable[str | None]]

logger = logging.getLogger(__name__)

Provenance = Literal["cache", "generated", "fallback"]


@dataclass
class Resolution:
    """The answer to one question.

    Attributes:
        text: What the character says. Never empty.
        provenance: ``"cache"``, ``"generated"`` or ``"fallback"``.
        audio_url: Stored, retrievable address of the spoken answer.
        audio: Freshly synthesized audio when no usable address exists.
        record_id: The cached record that answered, for cache hits.
    """

    text: str
    provenance: Provenance
    audio_url: str | None = None
    audio: bytes | None = None
    record_id: str | None = None

    @property
    def cached(self) -> bool:
        return self.provenance == "cache"


class ResponseResolver:
    """Answers questions for any character, sharing one answer cache.

    Singleton accessed via ``ResponseResolver.get()``.  Every collaborator can
    be injected for tests.
    """

    _instance: ResponseResolver | None = None

    def __init__(
        self,
        store: ConversationStore | None = None,
        speech: SpeechClient | None = None,
        generate: ReplyGenerator | None = None,
        threshold: float | None = None,
        recent_window: int | None = None,
    ) -> None:
        self.store = store or ConversationStore.get()
        self.speech = speech or SpeechClient.get()
        self._generate = generate or generate_character_reply
        self.threshold = settings.similarity_threshold if threshold is None else threshold
        self.recent_window = recent_window or settings.recent_window
        # Records this process wrote, per character; the store may lag behind.
        self._local: dict[str, deque[ConversationRecord]] = {}
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def get(cls) -> ResponseResolver:
        """Return the shared ResponseResolver instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    # -- Public API ------------------------------------------------------------

    async def resolve(
        self,
        character: Character,
        question: str,
        history: Iterable[Message] = (),
        session_id: str = "",
    ) -> Resolution:
        """Produce *character*'s answer to *question*.

        Raises ``ValueError`` for an empty question; callers guard against
        that before asking.
        """
        if not question or not question.strip():
            msg = "Question must not be empty"
            raise ValueError(msg)

        slug = character.slug
        key = normalize_text(question)
        candidates = await self._candidates(slug)

        record = self._exact_match(candidates, key)
        if record is None:
            record = await self.store.find_exact(slug, key)
        if record is not None:
            logger.info("Exact cache hit for %s: %s", character.name, record.id)
            return await self._serve_cached(character, record, session_id)

        record = self._fuzzy_match(candidates, question)
        if record is not None:
            logger.info("Similar cache hit for %s: %s", character.name, record.id)
            return await self._serve_cached(character, record, session_id)

        text, provenance = await self._compose(character, question, history)
        audio = await self.speech.try_synthesize(text, voice_for(character))
        self._track(self._persist(character, session_id, question, text, audio))
        return Resolution(text=text, provenance=provenance, audio=audio)

    async def wait_pending(self) -> None:
        """Wait for queued background writes to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -- Lookup ----------------------------------------------------------------

    async def _candidates(self, slug: str) -> list[ConversationRecord]:
        """Recent store records merged with locally written ones, newest first."""
        records = await self.store.list_recent(slug, self.recent_window)
        seen = {r.id for r in records}
        local = [r for r in self._local.get(slug, ()) if r.id not in seen]
        if local:
            records = sorted(records + local, key=lambda r: r.created_at, reverse=True)
        return records[: self.recent_window]

    @staticmethod
    def _exact_match(
        candidates: list[ConversationRecord], key: str
    ) -> ConversationRecord | None:
        for record in candidates:
            if normalize_text(record.question_text) == key:
                return record
        return None

    def _fuzzy_match(
        self, candidates: list[ConversationRecord], question: str
    ) -> ConversationRecord | None:
        for record in candidates:
            if similarity(question, record.question_text) >= self.threshold:
                return record
        return None

    async def _serve_cached(
        self, character: Character, record: ConversationRecord, session_id: str
    ) -> Resolution:
        resolution = Resolution(
            text=record.response_text, provenance="cache", record_id=record.id
        )
        if record.audio_url and await self._retrievable(record.audio_url):
            resolution.audio_url = record.audio_url
            return resolution

        # Stored audio is missing or gone: regenerate without blocking the answer.
        resolution.audio = await self.speech.try_synthesize(
            record.response_text, voice_for(character)
        )
        if resolution.audio and not record.audio_url:
            self._track(self._attach(record, session_id, resolution.audio))
        return resolution

    async def _retrievable(self, url: str) -> bool:
        try:
            return await self.store.bucket.is_retrievable(
                url, timeout=settings.audio_timeout_seconds
            )
        except Exception:
            logger.exception("Could not check audio address %s", url)
            return False

    # -- Generation ------------------------------------------------------------

    async def _compose(
        self, character: Character, question: str, history: Iterable[Message]
    ) -> tuple[str, Provenance]:
        try:
            text = await self._generate(character, question, history)
        except Exception:
            logger.exception("Reply generation failed for %s", character.name)
            text = None
        if text:
            return text, "generated"

        try:
            return static_response(character, question), "fallback"
        except Exception:
            logger.exception("Canned response lookup failed for %s", character.name)
            return APOLOGY, "fallback"

    # -- Background writes -----------------------------------------------------

    def _track(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _remember(self, record: ConversationRecord) -> None:
        bucket = self._local.setdefault(
            record.character_id, deque(maxlen=self.recent_window)
        )
        bucket.appendleft(record)

    async def _has_equivalent(self, slug: str, key: str) -> bool:
        if self._exact_match(list(self._local.get(slug, ())), key) is not None:
            return True
        return await self.store.find_exact(slug, key) is not None

    async def _persist(
        self,
        character: Character,
        session_id: str,
        question: str,
        text: str,
        audio: bytes | None,
    ) -> None:
        slug = character.slug
        try:
            if await self._has_equivalent(slug, normalize_text(question)):
                logger.debug("Skipping save; %s already has this question", character.name)
                return
            record = await self.store.persist(slug, session_id, question, text, audio)
        except Exception:
            logger.exception("Saving answer for %s failed", character.name)
            return
        self._remember(record)

    async def _attach(
        self, record: ConversationRecord, session_id: str, audio: bytes
    ) -> None:
        try:
            url = await self.store.bucket.upload(
                record.character_id, session_id or record.session_id, audio
            )
            if await self.store.attach_audio(record.character_id, record.id, url):
                record.audio_url = url
        except Exception:
            logger.exception("Attaching audio to %s failed", record.id)
