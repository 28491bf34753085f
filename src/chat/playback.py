"""PlaybackCoordinator — at most one spoken answer plays per conversation view.

States are ``idle``, ``playing`` and ``paused``.  A new artifact always
preempts the current one.  Each artifact is acquired from an
:class:`AudioSink` as a handle, and the handle is released on every way out
of ``playing``/``paused``: stop, preemption, natural end, sink error and
:meth:`PlaybackCoordinator.close`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, runtime_checkable

from src.conversations.models import make_record_id
from src.errors import LogosError

logger = logging.getLogger(__name__)

State = Literal["idle", "playing", "paused"]


class AutoplayBlockedError(LogosError):
    """The platform refused to start audio without a user gesture."""


@dataclass
class AudioArtifact:
    """One playable answer: raw bytes, a stored address, or both."""

    audio: bytes | None = None
    url: str | None = None
    label: str = ""
    id: str = field(default_factory=make_record_id)
    played: bool = False

    @property
    def playable(self) -> bool:
        return bool(self.audio or self.url)


@runtime_checkable
class AudioSink(Protocol):
    """Where artifacts actually play (a browser element, a test double)."""

    async def acquire(self, artifact: AudioArtifact) -> Any:
        """Prepare *artifact* and return a handle owning its resources."""
        ...

    async def play(self, handle: Any, *, user_initiated: bool) -> None:
        """Start playback. May raise ``AutoplayBlockedError``."""
        ...

    async def pause(self, handle: Any) -> None: ...

    async def resume(self, handle: Any) -> None: ...

    async def release(self, handle: Any) -> None:
        """Stop playback and free everything the handle holds."""
        ...


class ClientSink:
    """Sink for a remote client that plays audio itself.

    Keeps the commands it was given so the web layer can tell the client
    what to do; acquiring a handle holds no local resources.  Once the client
    reports a refused autoplay, plays without a user gesture are rejected.
    """

    def __init__(self) -> None:
        self.commands: list[tuple[str, str]] = []
        self.active: set[str] = set()
        self.autoplay_allowed = True

    def block_autoplay(self) -> None:
        self.autoplay_allowed = False

    async def acquire(self, artifact: AudioArtifact) -> AudioArtifact:
        self.active.add(artifact.id)
        return artifact

    async def play(self, handle: AudioArtifact, *, user_initiated: bool) -> None:
        if not user_initiated and not self.autoplay_allowed:
            msg = "Client refuses to start audio without a user gesture"
            raise AutoplayBlockedError(msg)
        self.commands.append(("play", handle.id))

    async def pause(self, handle: AudioArtifact) -> None:
        self.commands.append(("pause", handle.id))

    async def resume(self, handle: AudioArtifact) -> None:
        self.commands.append(("resume", handle.id))

    async def release(self, handle: AudioArtifact) -> None:
        self.active.discard(handle.id)
        self.commands.append(("stop", handle.id))


class PlaybackCoordinator:
    """Playback state machine for one conversation view."""

    def __init__(self, sink: AudioSink) -> None:
        self._sink = sink
        self.state: State = "idle"
        self.current: AudioArtifact | None = None
        self.pending: AudioArtifact | None = None
        self.enabled = True
        self.closed = False
        self._handle: Any = None
        self._user_interacted = False

    # -- Transitions -----------------------------------------------------------

    async def offer(self, artifact: AudioArtifact) -> bool:
        """A new answer arrived: preempt whatever plays and try autoplay once.

        Returns True if the artifact is now playing.  A blocked autoplay
        leaves the artifact pending until :meth:`user_interacted`.
        """
        if self.closed or not artifact.playable:
            return False
        await self._release()
        self.pending = None
        if not self.enabled:
            return False
        return await self._start(artifact, user_initiated=self._user_interacted)

    async def replay(self, artifact: AudioArtifact) -> bool:
        """Explicit user request to hear *artifact* again."""
        if self.closed or not artifact.playable:
            return False
        self._user_interacted = True
        await self._release()
        self.pending = None
        return await self._start(artifact, user_initiated=True)

    async def user_interacted(self) -> bool:
        """Record a user gesture; plays the artifact held back by a blocked autoplay."""
        self._user_interacted = True
        if self.closed or self.pending is None or not self.enabled:
            return False
        artifact, self.pending = self.pending, None
        await self._release()
        return await self._start(artifact, user_initiated=True)

    async def autoplay_blocked(self) -> bool:
        """The sink reports, after the fact, that the current autoplay never started.

        The current artifact is tried once more the way autoplay would try it,
        so a sink that now refuses holds it as pending.  Returns True if the
        artifact is pending.
        """
        artifact = self.current
        if self.closed or artifact is None or self.state != "playing":
            return False
        await self._release()
        await self._start(artifact, user_initiated=self._user_interacted)
        return self.pending is artifact

    async def pause(self) -> None:
        if self.state != "playing":
            return
        try:
            await self._sink.pause(self._handle)
        except Exception:
            logger.exception("Pausing playback failed")
            await self._release()
            return
        self.state = "paused"

    async def resume(self) -> None:
        if self.state != "paused":
            return
        try:
            await self._sink.resume(self._handle)
        except Exception:
            logger.exception("Resuming playback failed")
            await self._release()
            return
        self.state = "playing"

    async def stop(self) -> None:
        await self._release()

    async def finished(self) -> None:
        """The sink reports the current artifact played to the end."""
        if self.state == "idle" or self.current is None:
            return
        self.current.played = True
        await self._release()

    async def set_enabled(self, enabled: bool) -> None:
        """Mute (False) stops playback and suppresses autoplay."""
        self.enabled = enabled
        if not enabled:
            self.pending = None
            await self._release()

    async def close(self) -> None:
        """Tear down: release everything, ignore further artifacts."""
        self.closed = True
        self.pending = None
        await self._release()

    # -- Internal helpers ------------------------------------------------------

    async def _start(self, artifact: AudioArtifact, *, user_initiated: bool) -> bool:
        try:
            self._handle = await self._sink.acquire(artifact)
        except Exception:
            logger.exception("Could not prepare audio %s", artifact.id)
            return False
        self.current = artifact
        try:
            await self._sink.play(self._handle, user_initiated=user_initiated)
        except AutoplayBlockedError:
            logger.info("Autoplay blocked; holding %s until the user interacts", artifact.id)
            await self._release()
            self.pending = artifact
            return False
        except Exception:
            logger.exception("Playback of %s failed", artifact.id)
            await self._release()
            return False
        self.state = "playing"
        return True

    async def _release(self) -> None:
        handle, self._handle = self._handle, None
        self.state = "idle"
        self.current = None
        if handle is None:
            return
        try:
            await self._sink.release(handle)
        except Exception:
            logger.exception("Releasing audio handle failed")
