"""Domain exceptions shared across the conversation pipeline."""


class LogosError(Exception):
    """Base class for errors raised by this application."""


class CharacterNotFoundError(LogosError):
    """No character with the requested id exists in the catalog."""

    def __init__(self, character_id: str) -> None:
        super().__init__(f"Unknown character: {character_id!r}")
        self.character_id = character_id


class SpeechUnavailableError(LogosError):
    """Speech synthesis is not configured or the provider call failed."""


class TranscriptionError(LogosError):
    """Voice input could not be turned into text."""


class ShareNotFoundError(LogosError):
    """A share link points at a record that does not exist."""

    def __init__(self, share_id: str) -> None:
        super().__init__(f"Share not found: {share_id!r}")
        self.share_id = share_id
