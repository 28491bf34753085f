"""Tests for PlaybackCoordinator — one artifact at a time, guaranteed release."""

import pytest

from src.chat.playback import (
    AudioArtifact,
    AudioSink,
    AutoplayBlockedError,
    ClientSink,
    PlaybackCoordinator,
)


class FakeSink:
    """Records sink calls; can block autoplay or fail on demand."""

    def __init__(self, block_autoplay: bool = False, fail_play: bool = False) -> None:
        self.block_autoplay = block_autoplay
        self.fail_play = fail_play
        self.calls: list[tuple[str, str]] = []
        self.held: set[str] = set()

    async def acquire(self, artifact):
        self.held.add(artifact.id)
        self.calls.append(("acquire", artifact.id))
        return artifact

    async def play(self, handle, *, user_initiated):
        self.calls.append(("play", handle.id))
        if self.fail_play:
            raise RuntimeError("decoder error")
        if self.block_autoplay and not user_initiated:
            raise AutoplayBlockedError("needs a gesture")

    async def pause(self, handle):
        self.calls.append(("pause", handle.id))

    async def resume(self, handle):
        self.calls.append(("resume", handle.id))

    async def release(self, handle):
        self.held.discard(handle.id)
        self.calls.append(("release", handle.id))


def _artifact(label: str = "a") -> AudioArtifact:
    return AudioArtifact(audio=b"mp3", label=label)


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def playback(sink: FakeSink) -> PlaybackCoordinator:
    return PlaybackCoordinator(sink)


def test_sinks_satisfy_protocol() -> None:
    assert isinstance(FakeSink(), AudioSink)
    assert isinstance(ClientSink(), AudioSink)


async def test_offer_plays(playback: PlaybackCoordinator, sink: FakeSink) -> None:
    art = _artifact()
    assert await playback.offer(art) is True
    assert playback.state == "playing"
    assert playback.current is art
    assert sink.held == {art.id}


async def test_new_artifact_preempts(playback: PlaybackCoordinator, sink: FakeSink) -> None:
    first, second = _artifact("1"), _artifact("2")
    await playback.offer(first)
    await playback.offer(second)

    assert playback.current is second
    assert sink.held == {second.id}
    assert sink.calls.index(("release", first.id)) < sink.calls.index(("play", second.id))


async def test_unplayable_artifact_ignored(playback: PlaybackCoordinator) -> None:
    assert await playback.offer(AudioArtifact()) is False
    assert playback.state == "idle"


async def test_pause_and_resume(playback: PlaybackCoordinator, sink: FakeSink) -> None:
    art = _artifact()
    await playback.offer(art)

    await playback.pause()
    assert playback.state == "paused"
    await playback.resume()
    assert playback.state == "playing"
    assert ("pause", art.id) in sink.calls
    assert ("resume", art.id) in sink.calls


async def test_pause_when_idle_is_noop(playback: PlaybackCoordinator, sink: FakeSink) -> None:
    await playback.pause()
    await playback.resume()
    assert playback.state == "idle"
    assert sink.calls == []


async def test_stop_releases(playback: PlaybackCoordinator, sink: FakeSink) -> None:
    await playback.offer(_artifact())
    await playback.pause()
    await playback.stop()
    assert playback.state == "idle"
    assert sink.held == set()


async def test_finished_marks_played(playback: PlaybackCoordinator, sink: FakeSink) -> None:
    art = _artifact()
    await playback.offer(art)
    await playback.finished()

    assert art.played is True
    assert playback.state == "idle"
    assert sink.held == set()


async def test_replay_ignores_played_mark(playback: PlaybackCoordinator, sink: FakeSink) -> None:
    art = _artifact()
    await playback.offer(art)
    await playback.finished()

    assert await playback.replay(art) is True
    assert playback.state == "playing"
    assert playback.current is art


async def test_blocked_autoplay_is_not_retried() -> None:
    sink = FakeSink(block_autoplay=True)
    playback = PlaybackCoordinator(sink)
    art = _artifact()

    assert await playback.offer(art) is False
    assert playback.state == "idle"
    assert playback.pending is art
    assert sink.held == set()
    assert sink.calls.count(("play", art.id)) == 1


async def test_user_interaction_plays_pending_and_unlocks_autoplay() -> None:
    sink = FakeSink(block_autoplay=True)
    playback = PlaybackCoordinator(sink)
    art = _artifact()
    await playback.offer(art)

    assert await playback.user_interacted() is True
    assert playback.state == "playing"
    assert playback.current is art
    assert playback.pending is None

    later = _artifact("later")
    assert await playback.offer(later) is True
    assert playback.current is later


async def test_new_artifact_replaces_pending() -> None:
    sink = FakeSink(block_autoplay=True)
    playback = PlaybackCoordinator(sink)
    first, second = _artifact("1"), _artifact("2")
    await playback.offer(first)
    await playback.offer(second)

    assert playback.pending is second
    assert sink.calls.count(("play", first.id)) == 1


async def test_play_error_releases_handle() -> None:
    sink = FakeSink(fail_play=True)
    playback = PlaybackCoordinator(sink)

    assert await playback.offer(_artifact()) is False
    assert playback.state == "idle"
    assert sink.held == set()


async def test_muting_stops_and_suppresses_autoplay(
    playback: PlaybackCoordinator, sink: FakeSink
) -> None:
    await playback.offer(_artifact())
    await playback.set_enabled(False)
    assert playback.state == "idle"
    assert sink.held == set()

    assert await playback.offer(_artifact("muted")) is False
    assert playback.state == "idle"

    await playback.set_enabled(True)
    assert await playback.offer(_artifact("again")) is True


async def test_close_releases_and_ignores_later_artifacts(
    playback: PlaybackCoordinator, sink: FakeSink
) -> None:
    await playback.offer(_artifact())
    await playback.close()

    assert sink.held == set()
    assert await playback.offer(_artifact("late")) is False
    assert await playback.replay(_artifact("late")) is False
    assert playback.state == "idle"


async def test_client_sink_records_commands() -> None:
    sink = ClientSink()
    playback = PlaybackCoordinator(sink)
    art = AudioArtifact(url="http://testserver/audio/a.mp3")

    await playback.offer(art)
    await playback.stop()

    assert sink.commands == [("play", art.id), ("stop", art.id)]
    assert sink.active == set()


async def test_late_blocked_report_holds_current_as_pending(
    playback: PlaybackCoordinator, sink: FakeSink
) -> None:
    art = _artifact()
    await playback.offer(art)
    sink.block_autoplay = True

    assert await playback.autoplay_blocked() is True
    assert playback.state == "idle"
    assert playback.pending is art
    assert sink.held == set()

    assert await playback.user_interacted() is True
    assert playback.current is art


async def test_blocked_report_when_idle_is_ignored(playback: PlaybackCoordinator) -> None:
    assert await playback.autoplay_blocked() is False
    assert playback.pending is None


async def test_client_sink_rejects_autoplay_once_blocked() -> None:
    sink = ClientSink()
    playback = PlaybackCoordinator(sink)
    first = AudioArtifact(url="http://testserver/audio/a.mp3")
    await playback.offer(first)

    sink.block_autoplay()
    assert await playback.autoplay_blocked() is True
    assert sink.commands[:2] == [("play", first.id), ("stop", first.id)]
    assert ("play", first.id) not in sink.commands[1:]
    assert sink.active == set()

    second = AudioArtifact(url="http://testserver/audio/b.mp3")
    assert await playback.offer(second) is False
    assert playback.pending is second

    assert await playback.user_interacted() is True
    assert sink.commands[-1] == ("play", second.id)
    assert sink.active == {second.id}
