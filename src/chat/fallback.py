"""Deterministic canned replies used when no model reply is available."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.characters.models import Character

APOLOGY = "I'm sorry, I'm having trouble responding right now. Please try again later."


def not_understood(character: Character | None) -> str:
    """Generic reply for a question no category covers."""
    name = character.name if character else "this biblical character"
    return (
        f"I am {name}, and I'm not sure I understand that question. "
        "Perhaps ask me about my journey, my family, or my experiences in the scriptures?"
    )


def static_response(character: Character | None, question: str) -> str:
    """Return the first canned response whose keywords appear in *question*.

    Categories are scanned in the character's declared order; categories
    without a response are skipped.
    """
    if character is None or not character.categories:
        return not_understood(character)

    for category in character.categories:
        if not category.response:
            continue
        if category.matches(question):
            return category.response

    return not_understood(character)
