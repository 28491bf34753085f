"""ConversationStore — the shared answer cache, persisted via libsql."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.conversations.models import ConversationRecord, make_record_id, utc_now
from src.db import connection
from src.matching.similarity import normalize_text
from src.storage.bucket import AudioBucket

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS conversations (
        id            TEXT PRIMARY KEY,
        character_id  TEXT NOT NULL,
        session_id    TEXT NOT NULL,
        question_text TEXT NOT NULL,
        response_text TEXT NOT NULL,
        audio_url     TEXT,
        created_at    TEXT NOT NULL,
        question_key  TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_conversations_character_created
        ON conversations (character_id, created_at)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_conversations_question_key
        ON conversations (character_id, question_key)
    """,
]

_COLUMNS = (
    "id, character_id, session_id, question_text, response_text, audio_url, created_at"
)


class ConversationStore:
    """Persists question/answer exchanges per character.

    Read operations treat backend failures as a cache miss: they log and
    return ``None`` or ``[]``.  :meth:`persist` raises so the caller decides
    whether a failed write matters.

    Singleton accessed via ``ConversationStore.get()``.  Pass an explicit
    *db_path* and *bucket* for test isolation.
    """

    _instance: ConversationStore | None = None

    def __init__(self, db_path: Path | None = None, bucket: AudioBucket | None = None) -> None:
        self._db_path = db_path
        self._bucket = bucket
        self._initialised = False

    @classmethod
    def get(cls) -> ConversationStore:
        """Return the shared ConversationStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    @property
    def bucket(self) -> AudioBucket:
        if self._bucket is None:
            self._bucket = AudioBucket.get()
        return self._bucket

    # -- Internal helpers ------------------------------------------------------

    async def _ensure_schema(self, db) -> None:  # noqa: ANN001
        if not self._initialised:
            await db.executescript(_SCHEMA)
            self._initialised = True

    # -- Reads -----------------------------------------------------------------

    async def find_exact(
        self, character_id: str, normalized_question: str
    ) -> ConversationRecord | None:
        """Newest record whose normalized question equals *normalized_question*."""
        if not normalized_question:
            return None
        try:
            async with connection(self._db_path) as db:
                await self._ensure_schema(db)
                cursor = await db.execute(
                    f"""
                    SELECT {_COLUMNS} FROM conversations
                    WHERE character_id = ? AND question_key = ?
                    ORDER BY created_at DESC, rowid DESC
                    LIMIT 1
                    """,
                    (character_id.lower(), normalized_question),
                )
                row = await cursor.fetchone()
        except Exception:
            logger.exception("Exact lookup failed for %s", character_id)
            return None
        return ConversationRecord.from_row(row) if row else None

    async def list_recent(self, character_id: str, limit: int = 50) -> list[ConversationRecord]:
        """The latest *limit* records for a character, newest first."""
        try:
            async with connection(self._db_path) as db:
                await self._ensure_schema(db)
                cursor = await db.execute(
                    f"""
                    SELECT {_COLUMNS} FROM conversations
                    WHERE character_id = ?
                    ORDER BY created_at DESC, rowid DESC
                    LIMIT ?
                    """,
                    (character_id.lower(), limit),
                )
                rows = await cursor.fetchall()
        except Exception:
            logger.exception("Listing recent conversations failed for %s", character_id)
            return []
        return [ConversationRecord.from_row(row) for row in rows]

    async def get_by_id(self, character_id: str, record_id: str) -> ConversationRecord | None:
        """Fetch one record, or None if it does not exist (or the read failed)."""
        try:
            async with connection(self._db_path) as db:
                await self._ensure_schema(db)
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM conversations WHERE character_id = ? AND id = ?",
                    (character_id.lower(), record_id),
                )
                row = await cursor.fetchone()
        except Exception:
            logger.exception("Fetching conversation %s failed", record_id)
            return None
        return ConversationRecord.from_row(row) if row else None

    # -- Writes ----------------------------------------------------------------

    async def persist(
        self,
        character_id: str,
        session_id: str,
        question: str,
        response: str,
        audio: bytes | None = None,
    ) -> ConversationRecord:
        """Write one exchange; the audio payload is uploaded first when given.

        A failed upload is logged and the record is written without an audio
        address. Database failures propagate.
        """
        character_id = character_id.lower()
        audio_url: str | None = None
        if audio:
            try:
                audio_url = await self.bucket.upload(character_id, session_id, audio)
            except Exception:
                logger.exception("Audio upload failed; saving %s answer without audio", character_id)

        record = ConversationRecord(
            id=make_record_id(),
            character_id=character_id,
            session_id=session_id,
            question_text=question,
            response_text=response,
            audio_url=audio_url,
            created_at=utc_now(),
        )
        async with connection(self._db_path) as db:
            await self._ensure_schema(db)
            await db.execute(
                f"""
                INSERT INTO conversations ({_COLUMNS}, question_key)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (*record.to_row(), normalize_text(question)),
            )
            await db.commit()
        logger.info("Saved %s answer %s (audio=%s)", character_id, record.id, bool(audio_url))
        return record

    async def attach_audio(self, character_id: str, record_id: str, audio_url: str) -> bool:
        """Set the audio address of a record that has none yet.

        Returns True if the record was updated. An existing address is never
        replaced.
        """
        async with connection(self._db_path) as db:
            await self._ensure_schema(db)
            cursor = await db.execute(
                """
                UPDATE conversations SET audio_url = ?
                WHERE character_id = ? AND id = ? AND audio_url IS NULL
                """,
                (audio_url, character_id.lower(), record_id),
            )
            await db.commit()
            updated = cursor.rowcount > 0
        if updated:
            logger.debug("Attached audio to %s/%s", character_id, record_id)
        return updated
