"""ConversationView — one open conversation between a user and a character."""

from __future__ import annotations

import logging
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from src.characters.suggestions import suggestions_for
from src.chat.fallback import APOLOGY
from src.chat.playback import AudioArtifact, ClientSink, PlaybackCoordinator
from src.chat.resolver import Resolution, ResponseResolver
from src.chat.session import History
from src.config import settings
from src.conversations.models import SessionRecord, utc_now
from src.conversations.sessions import SessionStore
from src.speech.client import SpeechClient

if TYPE_CHECKING:
    from collections.abc import Callable

    from src.characters.models import Character
    from src.chat.playback import AudioSink

logger = logging.getLogger(__name__)


@dataclass
class Turn:
    """What the character said, as handed to the client."""

    text: str
    provenance: str
    question: str = ""
    audio_url: str | None = None
    audio: bytes | None = None
    record_id: str | None = None
    suggestions: list[str] = field(default_factory=list)
    artifact: AudioArtifact | None = None


class ConversationView:
    """Greeting, history, answers and playback for one session.

    Answers that arrive after :meth:`close` are dropped instead of touching
    the torn-down view.
    """

    def __init__(
        self,
        character: Character,
        session_id: str | None = None,
        *,
        device_info: str = "",
        resolver: ResponseResolver | None = None,
        sessions: SessionStore | None = None,
        speech: SpeechClient | None = None,
        sink: AudioSink | None = None,
    ) -> None:
        self.character = character
        self.session_id = session_id or str(uuid.uuid4())
        self.device_info = device_info
        self.history = History()
        self.sink = sink or ClientSink()
        self.playback = PlaybackCoordinator(self.sink)
        # Recently offered audio, oldest first, so the client can ask for a replay.
        self._artifacts: OrderedDict[str, AudioArtifact] = OrderedDict()
        self.suggestions = list(character.default_suggestions)
        self.opened = False
        self.closed = False
        self.message_count = 0
        self._resolver = resolver or ResponseResolver.get()
        self._sessions = sessions or SessionStore.get()
        self._speech = speech or SpeechClient.get()

    async def open(self) -> Turn:
        """Start the session and return the greeting, with audio when available."""
        self.opened = True
        try:
            await self._sessions.start(
                SessionRecord(
                    id=self.session_id,
                    character_id=self.character.slug,
                    device_info=self.device_info,
                )
            )
        except Exception:
            logger.exception("Could not record start of session %s", self.session_id)

        greeting = self.character.greeting
        self.history.add("assistant", greeting)
        self.message_count += 1

        audio = await self._speech.prepare_greeting(self.character)
        artifact = AudioArtifact(audio=audio, label="greeting") if audio else None
        if artifact is not None and not self.closed:
            self._keep(artifact)
            await self.playback.offer(artifact)
        return Turn(
            text=greeting,
            provenance="greeting",
            audio=audio,
            suggestions=list(self.suggestions),
            artifact=artifact,
        )

    async def ask(self, question: str) -> Turn | None:
        """Answer *question*; returns None if the view closed meanwhile."""
        question = question.strip()
        if not question:
            msg = "Question must not be empty"
            raise ValueError(msg)
        if self.closed:
            return None

        prior = list(self.history.messages)
        self.history.add("user", question)
        self.message_count += 1

        try:
            resolution = await self._resolver.resolve(
                self.character, question, prior, self.session_id
            )
        except Exception:
            logger.exception("Resolving a question for %s failed", self.character.name)
            resolution = Resolution(text=APOLOGY, provenance="fallback")

        if self.closed:
            logger.debug("Discarding answer for closed session %s", self.session_id)
            return None

        self.history.add("assistant", resolution.text)
        self.message_count += 1
        self.suggestions = suggestions_for(self.character, question)

        artifact = AudioArtifact(
            audio=resolution.audio, url=resolution.audio_url, label=question[:60]
        )
        if artifact.playable:
            self._keep(artifact)
            await self.playback.offer(artifact)
        else:
            artifact = None

        return Turn(
            text=resolution.text,
            provenance=resolution.provenance,
            question=question,
            audio_url=resolution.audio_url,
            audio=resolution.audio,
            record_id=resolution.record_id,
            suggestions=list(self.suggestions),
            artifact=artifact,
        )

    async def control_playback(self, action: str, audio_id: str | None = None) -> None:
        """Apply a playback event reported by the client.

        ``replay`` plays *audio_id* again, or the latest audio when no id is
        given. ``blocked`` means the client refused to autoplay the current
        audio; from then on the sink rejects autoplay until the user acts,
        and the refused audio waits for ``interacted``.

        Raises ``ValueError`` for an unknown action or audio id.
        """
        playback = self.playback
        if action == "replay":
            await playback.replay(self._artifact(audio_id))
        elif action == "interacted":
            await playback.user_interacted()
        elif action == "blocked":
            if isinstance(self.sink, ClientSink):
                self.sink.block_autoplay()
            await playback.autoplay_blocked()
        elif action == "pause":
            await playback.pause()
        elif action == "resume":
            await playback.resume()
        elif action == "finished":
            await playback.finished()
        elif action == "stop":
            await playback.stop()
        elif action == "mute":
            await playback.set_enabled(False)
        elif action == "unmute":
            await playback.set_enabled(True)
        else:
            msg = f"Unknown playback action: {action!r}"
            raise ValueError(msg)

    def _keep(self, artifact: AudioArtifact) -> None:
        self._artifacts[artifact.id] = artifact
        while len(self._artifacts) > self.history.window_size:
            self._artifacts.popitem(last=False)

    def _artifact(self, audio_id: str | None) -> AudioArtifact:
        if audio_id is None:
            if not self._artifacts:
                msg = "No audio to replay"
                raise ValueError(msg)
            return next(reversed(self._artifacts.values()))
        artifact = self._artifacts.get(audio_id)
        if artifact is None:
            msg = f"Unknown audio: {audio_id}"
            raise ValueError(msg)
        return artifact

    async def close(self) -> None:
        """Stop playback and record the end of the session."""
        if self.closed:
            return
        self.closed = True
        await self.playback.close()
        if not self.opened:
            return
        try:
            await self._sessions.save(
                self.session_id, end_time=utc_now(), message_count=self.message_count
            )
        except Exception:
            logger.exception("Could not record end of session %s", self.session_id)


class ViewRegistry:
    """Open conversation views keyed by session id.

    Browsers that leave without closing their session are not noticed, so
    the registry bounds itself: views unused for ``idle_seconds`` are closed
    when the next one opens, and past ``max_views`` the least recently used
    view is closed to make room.  Every eviction goes through
    :meth:`ConversationView.close`, so the session end is still recorded.
    """

    def __init__(
        self,
        max_views: int | None = None,
        idle_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_views = max_views or settings.max_open_views
        self.idle_seconds = idle_seconds or settings.view_idle_seconds
        self._clock = clock
        # session id -> (view, last use); least recently used first
        self._views: OrderedDict[str, tuple[ConversationView, float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._views)

    async def add(self, view: ConversationView) -> None:
        await self.sweep()
        while len(self._views) >= self.max_views:
            oldest = next(iter(self._views))
            logger.info("Too many open sessions; closing %s", oldest)
            await self.close(oldest)
        self._views[view.session_id] = (view, self._clock())

    def find(self, session_id: str) -> ConversationView | None:
        """Look up an open view and mark it as just used."""
        entry = self._views.get(session_id)
        if entry is None:
            return None
        self._views[session_id] = (entry[0], self._clock())
        self._views.move_to_end(session_id)
        return entry[0]

    async def sweep(self) -> int:
        """Close views idle for longer than ``idle_seconds``. Returns how many."""
        cutoff = self._clock() - self.idle_seconds
        stale = [sid for sid, (_, seen) in self._views.items() if seen < cutoff]
        for session_id in stale:
            logger.info("Closing idle session %s", session_id)
            await self.close(session_id)
        return len(stale)

    async def close(self, session_id: str) -> bool:
        entry = self._views.pop(session_id, None)
        if entry is None:
            return False
        await entry[0].close()
        return True

    async def close_all(self) -> None:
        for session_id in list(self._views):
            await self.close(session_id)
