"""Tests for generate_character_reply()."""

from unittest.mock import AsyncMock, patch

from src.chat.session import Message
from src.llm.client import generate_character_reply


async def test_returns_none_when_model_not_configured(abraham) -> None:
    with patch("src.llm.client.complete_text", new_callable=AsyncMock) as mock_complete:
        result = await generate_character_reply(abraham, "Who are you?")

    assert result is None
    mock_complete.assert_not_awaited()


async def test_passes_persona_history_and_question(abraham, monkeypatch) -> None:
    monkeypatch.setattr("src.config.settings.anthropic_api_key", "sk-ant-test")
    history = [
        Message("assistant", abraham.greeting),
        Message("user", "Where are you from?"),
        Message("assistant", "From Ur."),
    ]

    with patch(
        "src.llm.client.complete_text", new_callable=AsyncMock, return_value="  I left Ur.  "
    ) as mock_complete:
        result = await generate_character_reply(abraham, "Why did you leave?", history)

    assert result == "I left Ur."
    args, kwargs = mock_complete.call_args
    assert args[0] == [
        {"role": "user", "content": "Where are you from?"},
        {"role": "assistant", "content": "From Ur."},
        {"role": "user", "content": "Why did you leave?"},
    ]
    assert "You are Abraham" in kwargs["system"]
    assert kwargs["max_tokens"] == 1000


async def test_api_error_returns_none(abraham, monkeypatch) -> None:
    monkeypatch.setattr("src.config.settings.anthropic_api_key", "sk-ant-test")
    with patch(
        "src.llm.client.complete_text",
        new_callable=AsyncMock,
        side_effect=RuntimeError("overloaded"),
    ):
        assert await generate_character_reply(abraham, "Hello?") is None


async def test_blank_reply_returns_none(abraham, monkeypatch) -> None:
    monkeypatch.setattr("src.config.settings.anthropic_api_key", "sk-ant-test")
    with patch("src.llm.client.complete_text", new_callable=AsyncMock, return_value="   "):
        assert await generate_character_reply(abraham, "Hello?") is None
