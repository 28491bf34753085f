"""In-memory conversation history with sliding window."""

import logging
from dataclasses import dataclass, field

from src.config import settings

logger = logging.getLogger(__name__)


@dataclass
class Message:
    """A single conversation turn."""

    role: str  # "user" or "assistant"
    content: str


@dataclass
class History:
    """Conversation history for one open conversation view."""

    messages: list[Message] = field(default_factory=list)
    window_size: int = field(default_factory=lambda: settings.conversation_window_size)

    def add(self, role: str, content: str) -> None:
        """Append a message and trim to the sliding window."""
        self.messages.append(Message(role=role, content=content))
        if len(self.messages) > self.window_size:
            self.messages = self.messages[-self.window_size :]
