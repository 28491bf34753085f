"""Shared test fixtures."""

import pytest

from src.characters.catalog import CharacterCatalog
from src.conversations.store import ConversationStore
from src.storage.bucket import AudioBucket


@pytest.fixture(autouse=True)
def _offline(monkeypatch: pytest.MonkeyPatch) -> None:
    """Never reach the real model or speech providers from tests."""
    monkeypatch.setattr("src.config.settings.anthropic_api_key", "")
    monkeypatch.setattr("src.config.settings.openai_api_key", "")


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("src.config.settings.turso_database_url", "")


@pytest.fixture
def bucket(tmp_path):
    """Create an AudioBucket rooted in a temporary directory."""
    AudioBucket._reset()
    b = AudioBucket(root=tmp_path / "bucket", base_url="http://testserver")
    AudioBucket._instance = b
    yield b
    AudioBucket._reset()


@pytest.fixture
def store(tmp_path, bucket, _no_turso) -> ConversationStore:
    """Create a ConversationStore backed by a temp database."""
    return ConversationStore(db_path=tmp_path / "test.db", bucket=bucket)


@pytest.fixture
def catalog() -> CharacterCatalog:
    return CharacterCatalog()


@pytest.fixture
def abraham(catalog: CharacterCatalog):
    return catalog.require("abraham")
