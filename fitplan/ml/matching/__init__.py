"""Exercise and muscle name matching.

Main exports:
    - tokenize / normalize_token / normalize_key / identity_key: Text normalization
    - bigrams / dice: Character-bigram similarity
    - Matcher: Exact -> core-key -> alias -> scored resolution over an index
    - MatchResult / MatchQuery: Match outcome and normalized query
    - MatchStrategy / FuzzyWeights: Strategy names and scoring constants
"""
from .constants import FuzzyWeights, MatchStrategy, StrategyScores
from .matcher import Matcher, MatchQuery, MatchResult, score_entry
from .similarity import bigrams, dice
from .text import identity_key, normalize_key, normalize_token, tokenize

__all__ = [
    "FuzzyWeights",
    "MatchStrategy",
    "StrategyScores",
    "Matcher",
    "MatchQuery",
    "MatchResult",
    "score_entry",
    "bigrams",
    "dice",
    "identity_key",
    "normalize_key",
    "normalize_token",
    "tokenize",
]
