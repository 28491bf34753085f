"""Tests for SessionStore — session start/end with merge semantics."""

from pathlib import Path

import pytest

from src.conversations.models import SessionRecord
from src.conversations.sessions import SessionStore

pytestmark = pytest.mark.usefixtures("_no_turso")


@pytest.fixture
async def sessions(tmp_path: Path) -> SessionStore:
    return SessionStore(db_path=tmp_path / "test.db")


async def test_start_and_find(sessions: SessionStore) -> None:
    record = SessionRecord(id="s1", character_id="abraham", device_info="Firefox")
    await sessions.start(record)

    found = await sessions.find("s1")
    assert found == record
    assert found.start_time
    assert found.end_time is None
    assert found.message_count is None


async def test_find_missing(sessions: SessionStore) -> None:
    assert await sessions.find("nope") is None


async def test_save_merges_supplied_fields_only(sessions: SessionStore) -> None:
    await sessions.start(SessionRecord(id="s1", character_id="abraham", device_info="Firefox"))

    updated = await sessions.save("s1", end_time="2026-01-01T00:00:00+00:00", message_count=7)

    assert updated.device_info == "Firefox"
    assert updated.character_id == "abraham"
    assert updated.end_time == "2026-01-01T00:00:00+00:00"
    assert updated.message_count == 7
    assert await sessions.find("s1") == updated


async def test_save_without_merge_replaces(sessions: SessionStore) -> None:
    await sessions.start(SessionRecord(id="s1", character_id="abraham", device_info="Firefox"))

    replaced = await sessions.save("s1", merge=False, character_id="moses")

    assert replaced.character_id == "moses"
    assert replaced.device_info == ""


async def test_save_creates_when_absent(sessions: SessionStore) -> None:
    created = await sessions.save("s2", character_id="david", message_count=1)
    assert (await sessions.find("s2")).character_id == "david"
    assert created.message_count == 1


async def test_save_absent_without_character_raises(sessions: SessionStore) -> None:
    with pytest.raises(ValueError, match="does not exist"):
        await sessions.save("ghost", message_count=3)


async def test_save_unknown_field_raises(sessions: SessionStore) -> None:
    with pytest.raises(ValueError, match="Unknown session fields"):
        await sessions.save("s1", colour="red")
