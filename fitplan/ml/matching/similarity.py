"""Character-bigram similarity used by the fuzzy matching fallback."""

from __future__ import annotations

from typing import Any, Iterable


def bigrams(text: Any) -> list[str]:
    """Adjacent character pairs of the lower-cased text, in order."""
    if not isinstance(text, str):
        return []
    lowered = text.lower()
    return [lowered[i:i + 2] for i in range(len(lowered) - 1)]


def dice(a: Iterable[str], b: Iterable[str]) -> float:
    """Dice coefficient over bigram sets: 2*|A & B| / (|A| + |B|).

    Duplicate bigrams count once. Returns 0.0 when either side is empty.
    """
    set_a = set(a or ())
    set_b = set(b or ())
    if not set_a or not set_b:
        return 0.0
    return 2 * len(set_a & set_b) / (len(set_a) + len(set_b))


def overlap_ratio(a: Iterable[str], b: Iterable[str]) -> float:
    """|A & B| / max(|A|, |B|) so neither a short nor a long side dominates."""
    set_a = set(a)
    set_b = set(b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / max(len(set_a), len(set_b))
