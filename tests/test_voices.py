"""Tests for character voice selection."""

import pytest

from src.characters.models import Character
from src.speech.voices import DEFAULT_VOICE, voice_for


@pytest.mark.parametrize(
    ("name", "voice"),
    [
        ("Abraham", "onyx"),
        ("Moses", "echo"),
        ("David", "nova"),
        ("Daniel", "onyx"),
        ("Esther", "shimmer"),
        ("Mary", "shimmer"),
        ("Paul", "echo"),
    ],
)
def test_voice_map(name: str, voice: str) -> None:
    assert voice_for(Character(id=1, name=name, greeting="Hi")) == voice


def test_unknown_character_gets_default() -> None:
    assert voice_for(Character(id=1, name="Ruth", greeting="Hi")) == DEFAULT_VOICE == "onyx"


def test_none_gets_default() -> None:
    assert voice_for(None) == "onyx"
