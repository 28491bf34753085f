"""SessionStore — one row per browser session with one character."""

from __future__ import annotations

import logging
from dataclasses import fields, replace
from typing import TYPE_CHECKING, Any

from src.conversations.models import SessionRecord
from src.db import connection

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS sessions (
    id            TEXT PRIMARY KEY,
    character_id  TEXT NOT NULL,
    start_time    TEXT NOT NULL,
    end_time      TEXT,
    device_info   TEXT NOT NULL DEFAULT '',
    message_count INTEGER
)
"""

_COLUMNS = "id, character_id, start_time, end_time, device_info, message_count"
_FIELD_NAMES = frozenset(f.name for f in fields(SessionRecord)) - {"id"}


class SessionStore:
    """Persists session records with merge-on-save semantics.

    Singleton accessed via ``SessionStore.get()``.  Pass an explicit *db_path*
    for test isolation.
    """

    _instance: SessionStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> SessionStore:
        """Return the shared SessionStore instance."""
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

    async def _write(self, record: SessionRecord) -> None:
        async with connection(self._db_path) as db:
            await self._ensure_table(db)
            await db.execute(
                f"INSERT OR REPLACE INTO sessions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                record.to_row(),
            )
            await db.commit()

    async def start(self, record: SessionRecord) -> SessionRecord:
        """Create the record for a newly opened session."""
        await self._write(record)
        logger.info("Session %s started with %s", record.id, record.character_id)
        return record

    async def find(self, session_id: str) -> SessionRecord | None:
        async with connection(self._db_path) as db:
            await self._ensure_table(db)
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM sessions WHERE id = ?", (session_id,)
            )
            row = await cursor.fetchone()
        return SessionRecord.from_row(row) if row else None

    async def save(self, session_id: str, *, merge: bool = True, **values: Any) -> SessionRecord:
        """Write *values* to a session.

        With ``merge=True`` only the supplied fields overwrite the stored
        record.  Without an existing record (or with ``merge=False``) a new
        record is built from *values*, which must then include
        ``character_id``.
        """
        unknown = set(values) - _FIELD_NAMES
        if unknown:
            msg = f"Unknown session fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        existing = await self.find(session_id) if merge else None
        if existing is not None:
            record = replace(existing, **values)
        else:
            if "character_id" not in values:
                msg = f"Session {session_id} does not exist and no character_id was given"
                raise ValueError(msg)
            record = SessionRecord(id=session_id, **values)

        await self._write(record)
        logger.debug("Session %s saved (%s)", session_id, ", ".join(sorted(values)))
        return record
