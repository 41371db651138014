"""Matcher library — fuzzy matching of street and place names.

Public API:
    - best_match: Pick the best candidate name for a target name
    - MatchResult: Best candidate with score and method
    - MatchMethod: exact / keyword / fuzzy
    - extract_keywords / keyword_score: Keyword overlap scoring
    - levenshtein_distance / levenshtein_similarity: Edit distance
    - dice_coefficient: Bigram overlap
    - street_key / apply_street_alias / street_tokens / street_name_score:
      Street-name scoring for geometry lookups
"""

from ph_locator.lib.matcher.similarity import (
    dice_coefficient,
    levenshtein_distance,
    levenshtein_similarity,
)
from ph_locator.lib.matcher.street import (
    CONTAINMENT_SCORE,
    STOP_WORDS,
    STREET_ALIASES,
    MatchMethod,
    MatchResult,
    apply_street_alias,
    best_match,
    extract_keywords,
    keyword_score,
    street_key,
    street_name_score,
    street_tokens,
)

__all__ = [
    "CONTAINMENT_SCORE",
    "STOP_WORDS",
    "STREET_ALIASES",
    "MatchMethod",
    "MatchResult",
    "apply_street_alias",
    "best_match",
    "dice_coefficient",
    "extract_keywords",
    "keyword_score",
    "levenshtein_distance",
    "levenshtein_similarity",
    "street_key",
    "street_name_score",
    "street_tokens",
]
