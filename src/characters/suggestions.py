"""Follow-up question suggestions driven by the keyword table."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.characters.models import Character


def suggestions_for(character: Character | None, question: str) -> list[str]:
    """Pick the next set of suggested questions after *question*.

    The first category whose keywords match and that has a suggestion list
    wins; otherwise the ``default`` list, then the character's opening
    suggestions.
    """
    if character is None:
        return []

    fallback = character.suggestions_map.get("default") or character.default_suggestions
    if not character.categories or not character.suggestions_map:
        return list(character.default_suggestions)

    for category in character.categories:
        if category.matches(question) and category.tag in character.suggestions_map:
            return list(character.suggestions_map[category.tag])

    return list(fallback)
