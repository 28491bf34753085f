"""CharacterCatalog — loads persona data shipped with the package."""

from __future__ import annotations

import logging
from pathlib import Path

from src.characters.models import Character
from src.errors import CharacterNotFoundError

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"


class CharacterCatalog:
    """Read-only registry of characters keyed by slug.

    Singleton accessed via ``CharacterCatalog.get()``.  Pass an explicit
    *data_dir* for test isolation.
    """

    _instance: CharacterCatalog | None = None

    def __init__(self, data_dir: Path | None = None) -> None:
        self._data_dir = data_dir or DATA_DIR
        self._characters: dict[str, Character] = {}
        self._load()

    @classmethod
    def get(cls) -> CharacterCatalog:
        """Return the shared CharacterCatalog instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    def _load(self) -> None:
        for path in sorted(self._data_dir.glob("*.json")):
            character = Character.model_validate_json(path.read_text(encoding="utf-8"))
            if character.slug in self._characters:
                msg = f"Duplicate character {character.name!r} in {path.name}"
                raise ValueError(msg)
            self._characters[character.slug] = character
        logger.info("Loaded %d characters from %s", len(self._characters), self._data_dir)

    def find(self, character_id: str) -> Character | None:
        """Look up a character by slug (case-insensitive), or None."""
        return self._characters.get(character_id.strip().lower())

    def require(self, character_id: str) -> Character:
        """Like :meth:`find` but raises ``CharacterNotFoundError``."""
        character = self.find(character_id)
        if character is None:
            raise CharacterNotFoundError(character_id)
        return character

    def all(self) -> list[Character]:
        """Every character, ordered by id."""
        return sorted(self._characters.values(), key=lambda c: c.id)
