"""Street and feature name matching for incomplete or misspelled names.

Scores a target name against candidate names using, in priority order:
an exact match on the canonical form, keyword overlap (tolerant of
misspelled keywords), and bigram/edit-distance similarity.
"""

import re
from dataclasses import dataclass
from enum import StrEnum

from ph_locator.lib.geocoder.address import canonical_loose, normalize
from ph_locator.lib.matcher.similarity import (
    dice_coefficient,
    levenshtein_distance,
    levenshtein_similarity,
)

# Words that carry no identifying value in a street or place name
STOP_WORDS: frozenset[str] = frozenset(
    {
        # directionals
        "NORTH", "SOUTH", "EAST", "WEST",
        # road types
        "ST", "STREET", "AVE", "AVENUE", "RD", "ROAD", "BLVD", "BOULEVARD",
        "LN", "LANE", "DR", "DRIVE", "EXT", "EXTENSION", "HIGHWAY", "HWY",
        # generic subdivision and building words
        "OLD", "NEW", "INTERIOR", "EXTERIOR", "PHASE", "SUBD", "SUBDIVISION",
        "COMPLEX", "SPORTS", "CENTER", "MALL", "BUILDING", "BARANGAY",
        # connectives
        "THE", "OF", "AND", "OR", "TO", "FROM",
    }
)

# Keywords at least this similar count as the same word
KEYWORD_SIMILARITY = 0.75

_NON_WORD = re.compile(r"[^\w\s]")


class MatchMethod(StrEnum):
    """How a match was established."""

    EXACT = "exact"
    KEYWORD = "keyword"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class MatchResult:
    """The best-scoring candidate of a match invocation."""

    candidate: str
    score: float
    method: MatchMethod


def extract_keywords(text: str) -> list[str]:
    """Upper-cased identifying tokens of a name, stop words and short tokens dropped."""
    cleaned = _NON_WORD.sub(" ", normalize(text).upper())
    return [word for word in cleaned.split() if len(word) > 2 and word not in STOP_WORDS]


def keyword_score(target_keywords: list[str], candidate: str) -> float:
    """Fraction of target keywords found in ``candidate``, weighted by similarity.

    A keyword found verbatim contributes 1.0; otherwise the first candidate
    keyword more than ``KEYWORD_SIMILARITY`` similar contributes its similarity.
    """
    if not target_keywords:
        return 0.0
    candidate_keywords = extract_keywords(candidate)
    if not candidate_keywords:
        return 0.0

    total = 0.0
    for keyword in target_keywords:
        if keyword in candidate_keywords:
            total += 1.0
            continue
        for other in candidate_keywords:
            similarity = levenshtein_similarity(keyword, other)
            if similarity > KEYWORD_SIMILARITY:
                total += similarity
                break
    return total / len(target_keywords)


def best_match(
    target: str,
    candidates: list[str],
    threshold: float = 0.6,
    *,
    max_edit_distance: int = 3,
    min_dice: float = 0.45,
    min_score: float | None = None,
) -> MatchResult | None:
    """Find the candidate that best matches ``target``.

    An exact canonical match wins immediately. Otherwise a candidate
    qualifies when it is a substring match (either direction), is within
    ``max_edit_distance`` edits, has a Dice coefficient of at least
    ``min_dice``, or reaches ``threshold`` on keyword or edit similarity.
    Qualifying candidates are ranked by
    ``substring + 0.7 * edit_similarity + 0.8 * dice + keyword``; the first
    candidate wins ties.

    With ``min_score``, qualifying candidates whose reported score falls
    below it are dropped before ranking, so a weak candidate cannot outrank
    an acceptable one.

    Args:
        target: The name being looked for.
        candidates: Names to choose from, in preference order.
        threshold: Minimum keyword or edit similarity to qualify.
        max_edit_distance: Edit distance at or below which a candidate qualifies.
        min_dice: Dice coefficient at or above which a candidate qualifies.
        min_score: Optional floor on the reported score.

    Returns:
        The best MatchResult, or None when nothing qualifies.
    """
    target_canonical = canonical_loose(target)
    if not target_canonical:
        return None
    target_keywords = extract_keywords(target)

    best: MatchResult | None = None
    best_rank = float("-inf")

    for candidate in candidates:
        canonical = canonical_loose(candidate)
        if not canonical:
            continue
        if canonical == target_canonical:
            return MatchResult(candidate=candidate, score=1.0, method=MatchMethod.EXACT)

        distance = levenshtein_distance(target_canonical, canonical)
        edit_similarity = levenshtein_similarity(target_canonical, canonical)
        dice = dice_coefficient(target_canonical, canonical)
        keywords = keyword_score(target_keywords, candidate)
        substring = target_canonical in canonical or canonical in target_canonical

        qualifies = (
            substring
            or distance <= max_edit_distance
            or dice >= min_dice
            or keywords >= threshold
            or edit_similarity >= threshold
        )
        if not qualifies:
            continue

        score = min(max(keywords, edit_similarity, dice), 1.0)
        if min_score is not None and score < min_score:
            continue

        rank = (1.0 if substring else 0.0) + 0.7 * edit_similarity + 0.8 * dice + keywords
        if rank <= best_rank:
            continue

        best_rank = rank
        method = MatchMethod.KEYWORD if keywords > 0 and keywords >= score else MatchMethod.FUZZY
        best = MatchResult(
            candidate=candidate,
            score=round(max(score, 0.0), 3),
            method=method,
        )

    return best


# Score for a street name contained in (or containing) the target
CONTAINMENT_SCORE = 0.92

# Local aliases: (street keyword, city keyword, barangay pattern, mapped street name)
STREET_ALIASES: tuple[tuple[str, str, re.Pattern[str], str], ...] = (
    # Aznar Road in Sambag II, Cebu City is mapped as Aznar Street
    ("AZNAR", "CEBU", re.compile(r"\bSAMBAG\s*(?:II|2)\b"), "AZNAR STREET"),
)


def street_key(text: str | None) -> str:
    """Upper-case street name with road types spelled out and punctuation removed."""
    cleaned = _NON_WORD.sub(" ", normalize(text).upper())
    return " ".join(cleaned.split())


def apply_street_alias(street: str, city: str = "", barangay: str = "") -> str:
    """Street key of ``street``, replaced by its local alias when one applies."""
    key = street_key(street)
    city_key = street_key(city)
    barangay_key = street_key(barangay)
    for keyword, city_keyword, barangay_pattern, alias in STREET_ALIASES:
        if keyword in key and city_keyword in city_key and barangay_pattern.search(barangay_key):
            return alias
    return key


def street_tokens(key: str, limit: int = 3) -> list[str]:
    """Leading tokens of a street key usable as server-side name filters."""
    return [token for token in key.split() if len(token) >= 2][:limit]


def street_name_score(target_key: str, name: str) -> float:
    """Score a mapped street name against a street key.

    1.0 for an identical key, ``CONTAINMENT_SCORE`` when one contains the
    other, otherwise the normalized edit similarity.
    """
    key = street_key(name)
    if not key or not target_key:
        return 0.0
    if key == target_key:
        return 1.0
    if key in target_key or target_key in key:
        return CONTAINMENT_SCORE
    return levenshtein_similarity(key, target_key)
