"""Conversation, share and session records."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from datetime import UTC, datetime


def make_record_id() -> str:
    """Generate a new store-assigned record ID."""
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class ConversationRecord:
    """One question/answer exchange cached for a character.

    Attributes:
        id: Store-assigned identifier (UUID hex).
        character_id: Character slug, e.g. ``"abraham"``.
        session_id: Browser session that first asked the question.
        question_text: The question as asked.
        response_text: The character's answer.
        audio_url: Public address of the synthesized answer, if any.
            Attached at most once and never removed.
        created_at: ISO 8601 timestamp assigned by the store.
    """

    id: str
    character_id: str
    session_id: str
    question_text: str
    response_text: str
    audio_url: str | None = None
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = utc_now()

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``conversations`` column order."""
        return (
            self.id,
            self.character_id,
            self.session_id,
            self.question_text,
            self.response_text,
            self.audio_url,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> ConversationRecord:
        return cls(
            id=row[0],
            character_id=row[1],
            session_id=row[2],
            question_text=row[3],
            response_text=row[4],
            audio_url=row[5],
            created_at=row[6],
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ShareRecord:
    """A standalone copy of one exchange, addressable by its own ID."""

    id: str
    character_id: str
    question_text: str
    response_text: str
    audio_url: str | None = None
    created_at: str = ""

    def to_row(self) -> tuple:
        return (
            self.id,
            self.character_id,
            self.question_text,
            self.response_text,
            self.audio_url,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> ShareRecord:
        return cls(
            id=row[0],
            character_id=row[1],
            question_text=row[2],
            response_text=row[3],
            audio_url=row[4],
            created_at=row[5],
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SessionRecord:
    """Groups the exchanges of one browser session with one character.

    Attributes:
        id: Client-generated UUID, stable for the whole session.
        character_id: Character slug selected for the session.
        start_time: ISO 8601 timestamp of character selection.
        end_time: ISO 8601 timestamp when the session ended, if it has.
        device_info: Free-form client description (user agent).
        message_count: Number of messages exchanged, set at session end.
    """

    id: str
    character_id: str
    start_time: str = ""
    end_time: str | None = None
    device_info: str = ""
    message_count: int | None = None

    def __post_init__(self) -> None:
        if not self.start_time:
            self.start_time = utc_now()

    def to_row(self) -> tuple:
        return (
            self.id,
            self.character_id,
            self.start_time,
            self.end_time,
            self.device_info,
            self.message_count,
        )

    @classmethod
    def from_row(cls, row: tuple) -> SessionRecord:
        return cls(
            id=row[0],
            character_id=row[1],
            start_time=row[2],
            end_time=row[3],
            device_info=row[4] or "",
            message_count=row[5],
        )
