"""Candidate query generation from hierarchical address hints."""

from collections.abc import Iterable

from ph_locator.lib.geocoder.address import (
    is_low_quality_label,
    normalize,
    normalize_city_hint,
)
from ph_locator.lib.geocoder.base import AddressHints, LocationQuery

COUNTRY_NAME = "Philippines"

# Partial-street tokens shorter than this are too ambiguous to search on
_MIN_PARTIAL_LENGTH = 3


def join_parts(*parts: str, country: str = COUNTRY_NAME) -> str:
    """Comma-join the non-empty parts and append the country."""
    kept = [p for p in parts if p]
    if country:
        kept.append(country)
    return ", ".join(kept)


def leading_tokens(text: str, count: int) -> str:
    """Return the first ``count`` whitespace-separated tokens of ``text``."""
    return " ".join(text.split()[:count])


def dedupe(values: Iterable[str]) -> list[str]:
    """Drop empty and case-insensitive duplicate strings, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        key = value.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(value.strip())
    return result


def _partial_streets(street: str) -> list[str]:
    """Leading one- and two-token prefixes of a street, longest first."""
    tokens = street.split()
    partials: list[str] = []
    for count in (2, 1):
        if len(tokens) <= count:
            continue
        prefix = leading_tokens(street, count)
        if len(prefix.replace(" ", "")) < _MIN_PARTIAL_LENGTH or is_low_quality_label(prefix):
            continue
        partials.append(prefix)
    return partials


def generate_candidates(hints: AddressHints) -> list[str]:
    """Turn address hints into geocoding queries, most specific first.

    Order: street + barangay/city/province; street + city/province; leading
    street tokens + barangay/city/province (for abbreviated or partial street
    names); vicinity + barangay/city/province; barangay/city/province.
    Low-quality streets and vicinities are skipped. The final
    barangay/city/province entry is always present.

    Args:
        hints: Hierarchical address hints.

    Returns:
        De-duplicated candidate strings.
    """
    street = normalize(hints.street)
    vicinity = normalize(hints.vicinity)
    barangay = normalize(hints.barangay)
    city = normalize(normalize_city_hint(hints.city, hints.province))
    province = normalize(hints.province)

    candidates: list[str] = []

    if street and not is_low_quality_label(street):
        candidates.append(join_parts(street, barangay, city, province))
        candidates.append(join_parts(street, city, province))
        for partial in _partial_streets(street):
            candidates.append(join_parts(partial, barangay, city, province))

    if vicinity and not is_low_quality_label(vicinity):
        candidates.append(join_parts(vicinity, barangay, city, province))

    candidates.append(join_parts(barangay, city, province))

    return dedupe(candidates)


def feature_name_targets(query: LocationQuery) -> list[str]:
    """Names to look for among road and POI features, most specific first.

    Args:
        query: The resolution request.

    Returns:
        Street, leading street tokens, vicinity and the raw query text,
        low-quality entries removed and de-duplicated.
    """
    street = normalize(query.hints.street)
    names: list[str] = []
    if street and not is_low_quality_label(street):
        names.append(street)
        names.extend(_partial_streets(street)[:1])
    names.append(normalize(query.hints.vicinity))
    names.append(normalize(query.raw_text))
    return dedupe(name for name in names if not is_low_quality_label(name))
