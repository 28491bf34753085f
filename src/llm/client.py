"""Async Claude API client for character replies."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import anthropic

from src.config import settings
from src.llm.models import ModelManager
from src.llm.prompt import build_messages, build_persona_prompt

if TYPE_CHECKING:
    from collections.abc import Iterable

    from src.characters.models import Character
    from src.chat.session import Message

logger = logging.getLogger(__name__)

_client: anthropic.AsyncAnthropic | None = None


def _get_client() -> anthropic.AsyncAnthropic:
    """Lazily initialize the Anthropic client."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
    return _client


async def complete_text(
    messages: list[dict[str, Any]],
    *,
    system: str | list[dict[str, Any]] | None = None,
    model: str | None = None,
    max_tokens: int = 4096,
) -> str:
    """Single-shot Claude call — no tools, no streaming.

    Raises ``ValueError`` when the response carries no text block.
    """
    client = _get_client()
    kwargs: dict[str, Any] = {
        "model": model or ModelManager.get().get_chat_model(),
        "max_tokens": max_tokens,
        "messages": messages,
    }
    if system is not None:
        kwargs["system"] = system
    response = await client.messages.create(**kwargs)
    for block in response.content:
        text = getattr(block, "text", None)
        if isinstance(text, str) and text:
            return text
    msg = "Model response contained no text"
    raise ValueError(msg)


async def generate_character_reply(
    character: Character,
    question: str,
    history: Iterable[Message] = (),
) -> str | None:
    """Ask the model to answer *question* in *character*'s voice.

    Returns None when no model is configured or the call fails for any
    reason; the caller then falls back to canned responses.
    """
    if not settings.model_configured():
        logger.debug("Model not configured; skipping generation for %s", character.name)
        return None

    try:
        text = await complete_text(
            build_messages(history, question),
            system=build_persona_prompt(character),
            max_tokens=settings.max_response_tokens,
        )
    except Exception:
        logger.exception("Model call failed for %s", character.name)
        return None

    text = text.strip()
    if not text:
        logger.warning("Model returned an empty reply for %s", character.name)
        return None
    return text
