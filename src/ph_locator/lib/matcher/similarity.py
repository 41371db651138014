"""String similarity primitives: edit distance and bigram overlap."""

from collections import Counter

from rapidfuzz.distance import Levenshtein


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance (insert, delete, substitute), each operation costing 1."""
    return Levenshtein.distance(a, b)


def levenshtein_similarity(a: str, b: str) -> float:
    """Edit distance normalized by the longer string, mapped to [0, 1].

    Two empty strings are identical (1.0).
    """
    return Levenshtein.normalized_similarity(a, b)


def _bigrams(text: str) -> Counter[str]:
    compact = "".join(text.split())
    return Counter(compact[i : i + 2] for i in range(len(compact) - 1))


def dice_coefficient(a: str, b: str) -> float:
    """Sørensen–Dice coefficient over character bigrams (whitespace ignored).

    Strings too short to form a bigram score 1.0 when identical, else 0.0.
    """
    bigrams_a = _bigrams(a)
    bigrams_b = _bigrams(b)
    total = sum(bigrams_a.values()) + sum(bigrams_b.values())
    if total == 0:
        return 1.0 if "".join(a.split()) == "".join(b.split()) else 0.0
    overlap = sum((bigrams_a & bigrams_b).values())
    return 2.0 * overlap / total
