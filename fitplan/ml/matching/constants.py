"""Constants for exercise and muscle name matching.

The weights and thresholds here are heuristics tuned against the bundled
exercise library, not derived from a formal model. They are pinned by unit
tests (tests/test_matcher.py) so any change shows up as a changed
accept/reject outcome for a known query/entry pair.

Constants are organized by functional area:
- Strategy scores: fixed scores reported for index hits
- Fuzzy weights: term weights of the fallback scoring formula
- Orientation: bonuses and penalties for front/back/side preferences
- Tie-breaks: ordering of several candidates sharing one index key
"""

from __future__ import annotations


# =============================================================================
# Match Strategies
# =============================================================================

class MatchStrategy:
    """Names reported in ``MatchResult.strategy``."""

    EXACT = "exact"
    CORE_KEY = "core-key"
    ALIAS = "alias"
    SCORED = "scored"
    NONE = "none"

    ALL = (EXACT, CORE_KEY, ALIAS, SCORED, NONE)


class StrategyScores:
    """Scores reported for hits that never run the fuzzy formula."""

    EXACT = 1.0
    CORE_KEY = 0.95  # Same words once stemmed and stripped of descriptors
    ALIAS = 0.85  # One word dropped on either side
    QUALIFIED = 1.0  # Whole secondary name: muscle-qualified exercise name or manifest alias


# =============================================================================
# Fuzzy Scoring
# =============================================================================

class FuzzyWeights:
    """Term weights of the fallback score.

    score = TOKEN_OVERLAP * tokenOverlap
          + CORE_OVERLAP * coreOverlap
          + DICE * dice(queryBigrams, entryBigrams)
          + partial-name bonus + orientation bonus
    """

    TOKEN_OVERLAP = 0.35
    CORE_OVERLAP = 0.35
    DICE = 0.2

    # One normalized name contains the other
    NAME_CONTAINS_QUERY_BONUS = 0.2
    QUERY_CONTAINS_NAME_BONUS = 0.15

    # Single fixed acceptance threshold for scored matches
    ACCEPTANCE_THRESHOLD = 0.3

    MAX_SCORE = 1.0


class OrientationBonus:
    """Fuzzy-score adjustments for a requested (or absent) orientation."""

    SIDE_MATCH = 0.2
    FRONT_BACK_MATCH = 0.18
    OPPOSITE_PENALTY = 0.05  # back requested but entry is front, or vice versa
    DEFAULT_FRONT = 0.08  # no orientation requested: prefer front views


class TieBreak:
    """Ordering of several entries registered under the same key."""

    PREFERRED_ORIENTATION = 1.0
    CONFLICTING_ORIENTATION = 0.5
    PER_DESCRIPTOR = 0.1
    PER_NAME_CHARACTER = 0.001

