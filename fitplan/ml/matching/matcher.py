"""Name matcher over a prebuilt search index.

Resolution order, short-circuiting on the first hit:

1. exact normalized name (then muscle-qualified/alias names)
2. core key (descriptors stripped) in the core-key index
3. the same key in the alias-key index
4. the query's own alias keys probed against both indexes
5. fuzzy scoring of every entry, accepted above a fixed threshold

Several candidates under one key are ordered by orientation preference,
descriptor count and name length. Matching is a pure function of the query
and the index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, Iterable, TypeVar

from fitplan.library.models import IndexedName, SearchIndex
from fitplan.ml.matching.constants import (
    FuzzyWeights,
    MatchStrategy,
    OrientationBonus,
    StrategyScores,
    TieBreak,
)
from fitplan.ml.matching.similarity import bigrams, dice, overlap_ratio
from fitplan.ml.matching.text import (
    alias_keys,
    normalize_key,
    orientations_of,
    tokenize,
    tokens_to_key,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=IndexedName)


@dataclass(frozen=True)
class MatchQuery:
    """Normalized view of a free-text query."""

    requested_name: str
    normalized_name: str
    tokens: tuple[str, ...]
    core_tokens: tuple[str, ...]
    core_key: str
    bigrams: tuple[str, ...]
    orientations: frozenset[str]

    @classmethod
    def from_name(cls, name: str) -> MatchQuery:
        tokens = tokenize(name)
        core_tokens = tokenize(name, omit_descriptors=True)
        normalized = normalize_key(name)
        return cls(
            requested_name=name if isinstance(name, str) else "",
            normalized_name=normalized,
            tokens=tuple(tokens),
            core_tokens=tuple(core_tokens),
            core_key=tokens_to_key(core_tokens),
            bigrams=tuple(bigrams(normalized)),
            orientations=orientations_of(tokens),
        )

    @property
    def is_empty(self) -> bool:
        return not self.normalized_name and not self.tokens


@dataclass(frozen=True)
class MatchResult(Generic[E]):
    """Outcome of one match attempt.

    Attributes:
        matched: Whether an entry was accepted
        entry: The accepted entry, None when unmatched
        strategy: One of MatchStrategy.ALL
        score: Confidence in [0, 1]
        query: The normalized query, for diagnostics
        suggestion: Best-scoring entry when unmatched
        suggestion_score: Score of ``suggestion``
    """

    matched: bool
    entry: E | None
    strategy: str
    score: float
    query: MatchQuery
    suggestion: E | None = None
    suggestion_score: float = 0.0


def orientation_bonus(entry: IndexedName, query: MatchQuery) -> float:
    descriptors = entry.descriptors
    if "side" in query.orientations:
        return OrientationBonus.SIDE_MATCH if "side" in descriptors else 0.0

    bonus = 0.0
    if "back" in query.orientations:
        if "back" in descriptors:
            bonus += OrientationBonus.FRONT_BACK_MATCH
        if "front" in descriptors:
            bonus -= OrientationBonus.OPPOSITE_PENALTY
    elif "front" in query.orientations:
        if "front" in descriptors:
            bonus += OrientationBonus.FRONT_BACK_MATCH
        if "back" in descriptors:
            bonus -= OrientationBonus.OPPOSITE_PENALTY
    elif "front" in descriptors:
        bonus += OrientationBonus.DEFAULT_FRONT
    return bonus


def tie_break_score(entry: IndexedName, query: MatchQuery) -> float:
    score = 0.0
    if query.orientations:
        entry_orientations = orientations_of(entry.descriptors)
        if entry_orientations & query.orientations:
            score += TieBreak.PREFERRED_ORIENTATION
        if entry_orientations - query.orientations:
            score -= TieBreak.CONFLICTING_ORIENTATION
    score -= TieBreak.PER_DESCRIPTOR * len(entry.descriptors)
    score -= TieBreak.PER_NAME_CHARACTER * len(entry.name)
    return score


def score_entry(entry: IndexedName, query: MatchQuery) -> float:
    """Raw fuzzy score of ``entry`` for ``query`` (may exceed 1)."""
    token_score = overlap_ratio(query.tokens, entry.tokens)
    core_score = overlap_ratio(query.core_tokens, entry.core_tokens)
    dice_score = dice(query.bigrams, entry.bigrams)

    name_bonus = 0.0
    if query.normalized_name and entry.normalized:
        if query.normalized_name in entry.normalized:
            name_bonus = FuzzyWeights.NAME_CONTAINS_QUERY_BONUS
        elif entry.normalized in query.normalized_name:
            name_bonus = FuzzyWeights.QUERY_CONTAINS_NAME_BONUS

    return (
        FuzzyWeights.TOKEN_OVERLAP * token_score
        + FuzzyWeights.CORE_OVERLAP * core_score
        + FuzzyWeights.DICE * dice_score
        + name_bonus
        + orientation_bonus(entry, query)
    )


def _clamp(score: float) -> float:
    return max(0.0, min(FuzzyWeights.MAX_SCORE, score))


class Matcher(Generic[E]):
    """Resolve free-text names to entries of one search index.

    Example:
        >>> matcher = Matcher(index.exercises)
        >>> result = matcher.match("Glute Bridges")
        >>> result.strategy, result.entry.name
        ('core-key', 'Glute Bridge')
    """

    def __init__(self, index: SearchIndex[E], threshold: float = FuzzyWeights.ACCEPTANCE_THRESHOLD):
        self._index = index
        self.threshold = threshold

    def match(self, name: str) -> MatchResult[E]:
        query = MatchQuery.from_name(name)
        if query.is_empty:
            return MatchResult(False, None, MatchStrategy.NONE, 0.0, query)

        exact = self._index.exact.get(query.normalized_name)
        if exact is not None:
            return MatchResult(True, exact, MatchStrategy.EXACT, StrategyScores.EXACT, query)

        qualified = self._index.qualified.get(query.normalized_name)
        if qualified is not None:
            return MatchResult(True, qualified, MatchStrategy.ALIAS, StrategyScores.QUALIFIED, query)

        if query.core_key:
            candidates = self._index.core_key.get(query.core_key)
            if candidates:
                return self._matched(candidates, query, MatchStrategy.CORE_KEY, StrategyScores.CORE_KEY)

            candidates = self._index.alias_key.get(query.core_key)
            if candidates:
                return self._matched(candidates, query, MatchStrategy.ALIAS, StrategyScores.ALIAS)

            candidates = self._probe_query_aliases(query)
            if candidates:
                return self._matched(candidates, query, MatchStrategy.ALIAS, StrategyScores.ALIAS)

        return self._match_scored(query)

    def _probe_query_aliases(self, query: MatchQuery) -> list[E]:
        found: list[E] = []
        for key in alias_keys(query.core_tokens):
            for candidate in (*self._index.core_key.get(key, ()), *self._index.alias_key.get(key, ())):
                if candidate not in found:
                    found.append(candidate)
        return found

    def _matched(self, candidates: Iterable[E], query: MatchQuery, strategy: str, score: float) -> MatchResult[E]:
        best = self.pick(candidates, query)
        return MatchResult(True, best, strategy, score, query)

    @staticmethod
    def pick(candidates: Iterable[E], query: MatchQuery) -> E:
        """Highest tie-break score; earlier candidates win exact ties."""
        best: E | None = None
        best_score = float("-inf")
        for candidate in candidates:
            score = tie_break_score(candidate, query)
            if score > best_score:
                best, best_score = candidate, score
        if best is None:
            raise ValueError("pick() requires at least one candidate")
        return best

    def _match_scored(self, query: MatchQuery) -> MatchResult[E]:
        best: E | None = None
        best_score = 0.0
        for entry in self._index.entries:
            score = score_entry(entry, query)
            if score > best_score:
                best, best_score = entry, score

        if best is not None and best_score >= self.threshold:
            return MatchResult(True, best, MatchStrategy.SCORED, _clamp(best_score), query)

        logger.debug(
            "No match for %r (best candidate %r scored %.3f)",
            query.requested_name,
            best.name if best else None,
            best_score,
        )
        return MatchResult(
            False,
            None,
            MatchStrategy.NONE,
            _clamp(best_score),
            query,
            suggestion=best,
            suggestion_score=_clamp(best_score),
        )
