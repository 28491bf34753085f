"""Character → synthesis voice mapping."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.characters.models import Character

DEFAULT_VOICE = "onyx"

VOICE_MAP: dict[str, str] = {
    "Abraham": "onyx",
    "Moses": "echo",
    "David": "nova",
    "Daniel": "onyx",
    "Esther": "shimmer",
    "Mary": "shimmer",
    "Paul": "echo",
}


def voice_for(character: Character | None) -> str:
    """Return the voice used for every line *character* speaks."""
    if character is None:
        return DEFAULT_VOICE
    return VOICE_MAP.get(character.name, DEFAULT_VOICE)
