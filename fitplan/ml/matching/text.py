"""Text normalization for exercise and muscle names.

Turns raw names into comparable token sequences with a heuristic stemmer
(suffix stripping, not a dictionary), a fixed irregular/synonym lookup,
stop-word removal and descriptor isolation. Occasional over- or
under-stemming is accepted; both sides of every comparison go through the
same pipeline.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Iterable

STOP_WORDS = frozenset(
    {
        "a",
        "an",
        "and",
        "at",
        "by",
        "for",
        "from",
        "in",
        "into",
        "of",
        "on",
        "or",
        "the",
        "to",
        "with",
        "your",
        "using",
    }
)

# Applied before suffix stripping; values are stemmed like any other token.
IRREGULAR_FORMS = {
    "pressup": "pushup",
    "pressups": "pushup",
    "glutes": "glute",
    "flies": "fly",
    "flyes": "fly",
    "calves": "calf",
    "pullovers": "pullover",
    "abs": "abdominal",
    "quads": "quadricep",
    "lats": "lat",
    "delts": "delt",
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_INTRA_WORD_JOINER = re.compile(r"(?<=[a-z0-9])[-'’](?=[a-z0-9])")
_COMBINING_MARKS = re.compile("[\\u0300-\\u036f]")


def strip_diacritics(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return _COMBINING_MARKS.sub("", unicodedata.normalize("NFKD", value))


def _strip_suffix(base: str) -> str:
    if base.endswith("ing") and len(base) > 4:
        base = base[:-3]
    elif base.endswith("ers") and len(base) > 4:
        base = base[:-3]
    elif base.endswith("es") and len(base) > 3:
        base = base[:-2]
    elif base.endswith("s") and len(base) > 3 and not base.endswith("ss"):
        base = base[:-1]

    # Silent trailing "e" so "bridge" meets "bridges" (-> "bridg")
    if base.endswith("e") and len(base) > 4:
        base = base[:-1]
    return base


def normalize_token(raw: Any) -> str:
    """Normalize a single raw word; returns "" for stop words and junk."""
    if not raw or not isinstance(raw, str):
        return ""

    base = _NON_ALNUM.sub("", strip_diacritics(raw).lower())
    if not base or base in STOP_WORDS:
        return ""

    base = _strip_suffix(IRREGULAR_FORMS.get(base, base))
    if base in STOP_WORDS:
        return ""
    return base


# Orientation, stance and presentation-variant words, in normalized form.
ORIENTATION_TOKENS = frozenset(normalize_token(word) for word in ("front", "back", "side"))
DESCRIPTOR_TOKENS = ORIENTATION_TOKENS | frozenset(
    normalize_token(word)
    for word in ("standing", "kneeling", "single", "alternating", "view", "left", "right")
)


def tokenize(text: Any, *, omit_descriptors: bool = False) -> list[str]:
    """Split ``text`` into normalized tokens.

    Hyphens and apostrophes inside a word join it ("Push-Up" -> "pushup").
    With ``omit_descriptors`` the orientation/variant words are dropped; the
    caller must look at the full token list to learn which orientation was
    requested.
    """
    if not isinstance(text, str):
        return []

    lowered = _INTRA_WORD_JOINER.sub("", strip_diacritics(text).lower())
    tokens = [token for token in map(normalize_token, _NON_ALNUM.split(lowered)) if token]

    if omit_descriptors:
        return [token for token in tokens if token not in DESCRIPTOR_TOKENS]
    return tokens


def normalize_key(value: Any) -> str:
    """Collapse a raw name into its exact-lookup key."""
    if not isinstance(value, str):
        return ""
    return _NON_ALNUM.sub("", strip_diacritics(value).lower())


def tokens_to_key(tokens: Iterable[str]) -> str:
    return normalize_key(" ".join(tokens))


def descriptors_of(tokens: Iterable[str]) -> frozenset[str]:
    return frozenset(token for token in tokens if token in DESCRIPTOR_TOKENS)


def orientations_of(tokens: Iterable[str]) -> frozenset[str]:
    return frozenset(token for token in tokens if token in ORIENTATION_TOKENS)


def alias_keys(core_tokens: Iterable[str]) -> list[str]:
    """Keys for every (n-1)-length subsequence of ``core_tokens``.

    Dropping exactly one token at each position lets "barbell curl" be found
    through "curl" or "barbell". Single-token names have no alias keys.
    """
    tokens = list(core_tokens)
    if len(tokens) < 2:
        return []

    keys: list[str] = []
    for position in range(len(tokens)):
        key = tokens_to_key(tokens[:position] + tokens[position + 1:])
        if key and key not in keys:
            keys.append(key)
    return keys


_PARENTHETICAL = re.compile(r"\(([^)]*)\)")
VIEW_TOKEN = normalize_token("view")


def identity_tokens(text: Any) -> list[str]:
    """Tokens naming the movement itself.

    Presentation qualifiers are dropped: a parenthetical made only of
    descriptor words ("(Side View)") and an orientation followed by "view".
    Stance and variant words ("Front Squat", "Single-Leg Deadlift") stay.
    """
    if not isinstance(text, str):
        return []

    def _presentation_only(match: re.Match) -> str:
        inner = tokenize(match.group(1))
        if all(token in DESCRIPTOR_TOKENS for token in inner):
            return " "
        return match.group(0)

    kept: list[str] = []
    for token in tokenize(_PARENTHETICAL.sub(_presentation_only, text)):
        if token == VIEW_TOKEN:
            if kept and kept[-1] in ORIENTATION_TOKENS:
                kept.pop()
            continue
        kept.append(token)
    return kept


def identity_key(text: Any) -> str:
    """Canonical exercise identity: "Push-Up (Side View)" -> "pushup"."""
    return tokens_to_key(identity_tokens(text))


def humanize_slug(slug: str) -> str:
    """'rear-delts' -> 'Rear Delts'."""
    words = re.split(r"[-_\s]+", slug.strip())
    return " ".join(word.capitalize() for word in words if word)
