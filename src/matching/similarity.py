"""Bag-of-words question similarity used to decide cache hits."""

from __future__ import annotations

import re

DEFAULT_THRESHOLD = 0.7

_PUNCTUATION_RE = re.compile(r"[.,?!;:'\"()\-_]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str | None) -> str:
    """Lowercase, strip punctuation and collapse whitespace.

    ``"  Who are YOU?! "`` becomes ``"who are you"``.
    """
    if not text:
        return ""
    lowered = text.lower().strip()
    stripped = _PUNCTUATION_RE.sub("", lowered)
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def _tokens(normalized: str) -> set[str]:
    return {word for word in normalized.split(" ") if word}


def similarity(a: str | None, b: str | None) -> float:
    """Jaccard similarity of the two questions' word sets, in ``[0, 1]``.

    Word order is ignored, so two questions with the same words in a
    different order score 1.0. Exact normalized equality is checked first.
    """
    norm_a = normalize_text(a)
    norm_b = normalize_text(b)
    if not norm_a or not norm_b:
        return 0.0
    if norm_a == norm_b:
        return 1.0

    words_a = _tokens(norm_a)
    words_b = _tokens(norm_b)
    if not words_a or not words_b:
        return 0.0

    return len(words_a & words_b) / len(words_a | words_b)


def are_similar(
    new_question: str | None,
    cached_question: str | None,
    threshold: float = DEFAULT_THRESHOLD,
) -> bool:
    """True if the two questions are close enough to share an answer."""
    if not new_question or not cached_question:
        return False
    return similarity(new_question, cached_question) >= threshold
