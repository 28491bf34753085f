"""Data models for character personas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class VoiceParams(BaseModel):
    """Persona attributes that shape generated replies."""

    age: str = ""
    tone: str = ""
    speaking_style: str = ""
    personality_traits: str = ""
    background: str = ""
    historical_period: str = ""
    knowledge_limitations: str = ""
    relationship_to_god: str = ""
    speech_patterns: str = ""


class KeywordCategory(BaseModel):
    """One row of the canned-response table.

    Categories without a ``response`` still participate in suggestion
    updates but are skipped by the keyword fallback.
    """

    tag: str
    keywords: list[str] = Field(default_factory=list)
    response: str | None = None

    def matches(self, question: str) -> bool:
        """True if any keyword is a case-insensitive substring of *question*."""
        lowered = question.lower()
        return any(keyword.lower() in lowered for keyword in self.keywords)


class Character(BaseModel):
    """A biblical figure the user can talk to."""

    id: int
    name: str
    color: str = "#8B4513"
    greeting: str
    default_suggestions: list[str] = Field(default_factory=list)
    voice_params: VoiceParams | None = None
    # Declared order is significant: the first matching category wins.
    categories: list[KeywordCategory] = Field(default_factory=list)
    suggestions_map: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def slug(self) -> str:
        """URL/storage key: the lowercased name."""
        return self.name.lower()

    def summary(self) -> dict:
        return {
            "id": self.slug,
            "name": self.name,
            "color": self.color,
            "greeting": self.greeting,
            "suggestions": list(self.default_suggestions),
        }
