"""Tests for the in-process synthesized audio cache."""

from collections import OrderedDict

import pytest

from src.speech.cache import AudioCache, AudioKey


def test_key_normalizes_text() -> None:
    assert AudioKey.build("Who are YOU?", "onyx", 1.3) == AudioKey.build("who are you", "onyx", 1.3)


def test_key_distinguishes_voice_and_speed() -> None:
    base = AudioKey.build("hello", "onyx", 1.3)
    assert base != AudioKey.build("hello", "echo", 1.3)
    assert base != AudioKey.build("hello", "onyx", 1.0)


def test_put_and_get() -> None:
    cache = AudioCache(max_entries=4)
    key = AudioKey.build("hello", "onyx", 1.3)
    cache.put(key, b"mp3")
    assert cache.get(key) == b"mp3"
    assert key in cache
    assert len(cache) == 1


def test_miss_returns_none() -> None:
    assert AudioCache(max_entries=4).get(AudioKey.build("x", "onyx", 1.0)) is None


def test_evicts_least_recently_used() -> None:
    cache = AudioCache(max_entries=2)
    a, b, c = (AudioKey.build(t, "onyx", 1.3) for t in ("a", "b", "c"))
    cache.put(a, b"a")
    cache.put(b, b"b")
    cache.get(a)  # a is now most recent
    cache.put(c, b"c")

    assert a in cache
    assert b not in cache
    assert c in cache


def test_injected_store_is_used() -> None:
    store: OrderedDict = OrderedDict()
    cache = AudioCache(max_entries=3, store=store)
    key = AudioKey.build("hello", "onyx", 1.3)
    cache.put(key, b"mp3")
    assert store[key] == b"mp3"


def test_default_bound_from_settings(monkeypatch) -> None:
    monkeypatch.setattr("src.config.settings.audio_cache_max_entries", 7)
    assert AudioCache().max_entries == 7


def test_invalid_bound() -> None:
    with pytest.raises(ValueError):
        AudioCache(max_entries=-1)


def test_clear() -> None:
    cache = AudioCache(max_entries=3)
    cache.put(AudioKey.build("a", "onyx", 1.0), b"a")
    assert cache.clear() == 1
    assert len(cache) == 0
