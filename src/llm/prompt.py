"""Persona instructions and message history for character replies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from src.characters.models import Character
    from src.chat.session import Message

_PERSONA_FIELDS: list[tuple[str, str]] = [
    ("age", "Age/Era"),
    ("tone", "Tone"),
    ("speaking_style", "Speaking style"),
    ("personality_traits", "Personality"),
    ("background", "Background"),
    ("historical_period", "Historical period"),
    ("knowledge_limitations", "Knowledge limitations"),
    ("relationship_to_god", "Relationship to God"),
    ("speech_patterns", "Speech patterns"),
]


def _format_background(character: Character) -> str:
    params = character.voice_params
    if params is None:
        return ""
    lines = ["Your background and characteristics:"]
    for attr, label in _PERSONA_FIELDS:
        value = getattr(params, attr)
        if value:
            lines.append(f"- {label}: {value}")
    return "\n".join(lines) if len(lines) > 1 else ""


def build_persona_prompt(character: Character) -> str:
    """Assemble the system prompt that keeps the model in character."""
    name = character.name
    sections = [
        f"You are {name}, a figure from biblical times. Respond to questions as this "
        "character would, based on their historical context, personality, and experiences."
    ]

    background = _format_background(character)
    if background:
        sections.append(background)

    sections.append(
        "Instructions:\n"
        f"1. Stay completely in character as {name} throughout the conversation.\n"
        "2. Draw on the personality traits and speaking style described above.\n"
        "3. Only reference knowledge that would have been available during your lifetime.\n"
        "4. Use personal pronouns (I, me, my) when referring to yourself and your experiences.\n"
        "5. Maintain the tone, speech patterns, and personality described above at all times.\n"
        "6. Keep your responses concise but meaningful, about 1-3 paragraphs.\n"
        "7. Never break character or acknowledge that you are an AI.\n"
        "8. Respond in English with the cadence of a native speaker from the land of "
        "Israel/Palestine speaking fluent English."
    )
    return "\n\n".join(sections)


def build_messages(history: Iterable[Message], question: str) -> list[dict[str, Any]]:
    """Format prior turns plus the new question for the Messages API.

    The API requires alternating roles starting with ``user``, so leading
    assistant turns (the greeting) are dropped and consecutive turns from the
    same speaker are merged.
    """
    turns: list[dict[str, Any]] = []
    for message in history:
        if not message.content.strip():
            continue
        role = "user" if message.role == "user" else "assistant"
        if not turns and role == "assistant":
            continue
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"] += "\n\n" + message.content
        else:
            turns.append({"role": role, "content": message.content})

    if turns and turns[-1]["role"] == "user":
        turns[-1]["content"] += "\n\n" + question
    else:
        turns.append({"role": "user", "content": question})
    return turns
