"""ShareStore — standalone copies of single exchanges behind share links."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.conversations.models import ShareRecord, make_record_id, utc_now
from src.db import connection
from src.errors import ShareNotFoundError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS shares (
    id            TEXT PRIMARY KEY,
    character_id  TEXT NOT NULL,
    question_text TEXT NOT NULL,
    response_text TEXT NOT NULL,
    audio_url     TEXT,
    created_at    TEXT NOT NULL
)
"""

_COLUMNS = "id, character_id, question_text, response_text, audio_url, created_at"


def share_path(character_id: str, share_id: str) -> str:
    """Route that renders a share: ``/share/<character>/<id>``."""
    return f"/share/{character_id.lower()}/{share_id}"


class ShareStore:
    """Creates and resolves share records.

    Every call to :meth:`create_share` writes a new record, even for content
    that was shared before.  Records are never updated or deleted.
    """

    _instance: ShareStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> ShareStore:
        """Return the shared ShareStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def _ensure_table(self, db) -> None:  # noqa: ANN001
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True

    async def create_share(
        self,
        character_id: str,
        question: str,
        response: str,
        audio_url: str | None = None,
    ) -> str:
        """Store a copy of one exchange and return its opaque share id."""
        if not question.strip() or not response.strip():
            msg = "A share needs both a question and a response"
            raise ValueError(msg)

        record = ShareRecord(
            id=make_record_id(),
            character_id=character_id.lower(),
            question_text=question,
            response_text=response,
            audio_url=audio_url or None,
            created_at=utc_now(),
        )
        async with connection(self._db_path) as db:
            await self._ensure_table(db)
            await db.execute(
                f"INSERT INTO shares ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                record.to_row(),
            )
            await db.commit()
        logger.info("Created share %s for %s", record.id, record.character_id)
        return record.id

    async def find(self, share_id: str) -> ShareRecord | None:
        async with connection(self._db_path) as db:
            await self._ensure_table(db)
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM shares WHERE id = ?", (share_id,)
            )
            row = await cursor.fetchone()
        return ShareRecord.from_row(row) if row else None

    async def resolve_share(self, share_id: str) -> ShareRecord:
        """Like :meth:`find` but raises ``ShareNotFoundError`` when missing."""
        record = await self.find(share_id)
        if record is None:
            raise ShareNotFoundError(share_id)
        return record
