"""SpeechClient — OpenAI text-to-speech and transcription.

Synthesis is memoized in an :class:`~src.speech.cache.AudioCache`, so the
same line in the same voice and speed is only generated once per process.
Callers that must not block on audio use :meth:`SpeechClient.try_synthesize`,
which bounds the wait and turns every failure into ``None``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.config import settings
from src.errors import SpeechUnavailableError, TranscriptionError
from src.speech.cache import AudioCache, AudioKey
from src.speech.voices import DEFAULT_VOICE, voice_for

if TYPE_CHECKING:
    from openai import AsyncOpenAI

    from src.characters.models import Character

logger = logging.getLogger(__name__)

MAX_TTS_INPUT = 4096  # characters accepted by the speech endpoint


class SpeechClient:
    """Async wrapper over the OpenAI audio endpoints.

    Singleton accessed via ``SpeechClient.get()``.  Pass an explicit *cache*
    and *client* for test isolation.
    """

    _instance: SpeechClient | None = None

    def __init__(
        self,
        cache: AudioCache | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.cache = cache if cache is not None else AudioCache()
        self._client = client

    @classmethod
    def get(cls) -> SpeechClient:
        """Return the shared SpeechClient instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    @property
    def configured(self) -> bool:
        return self._client is not None or settings.speech_configured()

    def _get_client(self) -> AsyncOpenAI:
        """Lazily initialise the AsyncOpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=settings.openai_api_key)
        return self._client

    # -- Synthesis -------------------------------------------------------------

    async def synthesize(
        self,
        text: str,
        voice: str = DEFAULT_VOICE,
        speed: float | None = None,
    ) -> bytes:
        """Return MP3 audio of *text* spoken in *voice*.

        Raises ``SpeechUnavailableError`` when speech is not configured or
        the provider call fails.
        """
        if not text.strip():
            msg = "Cannot synthesize empty text"
            raise ValueError(msg)
        speed = settings.tts_speed if speed is None else speed
        key = AudioKey.build(text, voice, speed)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Audio cache hit (%s, %.2f)", voice, speed)
            return cached

        if not self.configured:
            msg = "Speech synthesis is not configured"
            raise SpeechUnavailableError(msg)

        try:
            response = await self._get_client().audio.speech.create(
                model=settings.tts_model,
                voice=voice,
                input=text[:MAX_TTS_INPUT],
                speed=speed,
            )
            audio = response.content
        except Exception as exc:
            msg = f"Speech synthesis failed: {exc}"
            raise SpeechUnavailableError(msg) from exc

        if not audio:
            msg = "Speech synthesis returned no audio"
            raise SpeechUnavailableError(msg)

        self.cache.put(key, audio)
        logger.info("Synthesized %d bytes of audio (%s)", len(audio), voice)
        return audio

    async def try_synthesize(
        self,
        text: str,
        voice: str = DEFAULT_VOICE,
        speed: float | None = None,
        timeout: float | None = None,
    ) -> bytes | None:
        """Best-effort :meth:`synthesize` with a bounded wait.

        Returns None on timeout or any failure.
        """
        timeout = settings.audio_timeout_seconds if timeout is None else timeout
        try:
            return await asyncio.wait_for(self.synthesize(text, voice, speed), timeout)
        except TimeoutError:
            logger.warning("Speech synthesis timed out after %.1fs", timeout)
        except Exception as exc:
            logger.warning("Continuing without audio: %s", exc)
        return None

    async def prepare_greeting(self, character: Character) -> bytes | None:
        """Audio for the character's greeting, or None when unavailable."""
        return await self.try_synthesize(character.greeting, voice_for(character))

    # -- Transcription ---------------------------------------------------------

    async def transcribe(self, audio: bytes, filename: str = "recording.webm") -> str:
        """Turn recorded speech into text.

        Raises ``TranscriptionError`` when nothing usable comes back.
        """
        if not audio:
            msg = "No audio was recorded"
            raise TranscriptionError(msg)
        if not self.configured:
            msg = "Voice input is not configured"
            raise TranscriptionError(msg)

        try:
            result = await self._get_client().audio.transcriptions.create(
                model=settings.stt_model,
                file=(filename, audio),
                language=settings.stt_language,
            )
        except Exception as exc:
            logger.exception("Transcription request failed")
            msg = "Transcription failed"
            raise TranscriptionError(msg) from exc

        text = (getattr(result, "text", "") or "").strip()
        if not text:
            msg = "No speech detected"
            raise TranscriptionError(msg)
        return text
