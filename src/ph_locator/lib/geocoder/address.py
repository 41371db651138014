"""Philippine address text normalization.

Canonicalizes free-text address fragments: strips parenthetical notes and
diacritics, expands common Philippine locality abbreviations (POB, STO, STA)
and road-type abbreviations, and flags generic labels that are useless as
geocoding input.
"""

import re
import unicodedata

# Locality abbreviations common in Philippine tax-zone and barangay listings
LOCALITY_ABBREVIATIONS: dict[str, str] = {
    "POB": "Poblacion",
    "STO": "Santo",
    "STA": "Santa",
    "BRGY": "Barangay",
}

# Road-type abbreviations, expanded to their full word
ROAD_TYPE_ABBREVIATIONS: dict[str, str] = {
    "ST": "Street",
    "RD": "Road",
    "AVE": "Avenue",
    "BLVD": "Boulevard",
    "DR": "Drive",
    "LN": "Lane",
    "EXT": "Extension",
}

# Labels that describe "everything else" rather than a place
GENERIC_LABELS: frozenset[str] = frozenset(
    {
        "OTHERS",
        "VARIOUS",
        "VARIOUS STREETS",
        "INTERIOR",
        "INTERIOR LOT",
        "INTERIOR LOTS",
        "BUILDING",
        "BUILDINGS",
        "COMMERCIAL BUILDING",
        "RESIDENTIAL BUILDING",
        "CONDOMINIUM",
        "SUBDIVISION",
        "SUBDIVISIONS",
        "NA",
        "NONE",
    }
)

_PARENTHETICAL = re.compile(r"\(.*?\)")
_DISALLOWED_CHARS = re.compile(r"[^\w\s,.\-]|_")
_WHITESPACE = re.compile(r"\s+")

# Abbreviation patterns with an optional trailing period, matched on word boundaries.
# "St.Jude" is left alone: a period is only consumed when no word follows it.
_ABBREVIATION_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(rf"\b{re.escape(abbrev)}(?:\.(?!\w)|\b(?!\.))", re.IGNORECASE), full)
    for abbrev, full in {**LOCALITY_ABBREVIATIONS, **ROAD_TYPE_ABBREVIATIONS}.items()
]

# Cebu's tax-zone listings split the city into pseudo-cities unknown to OSM
_CEBU_PSEUDO_CITIES = ("CEBU SOUTH", "CEBU NORTH")


def strip_diacritics(text: str) -> str:
    """Remove combining marks, e.g. ``Ñ`` → ``N`` and ``é`` → ``e``."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text: str | None) -> str:
    """Canonicalize a free-text address fragment for display and querying.

    Idempotent: ``normalize(normalize(x)) == normalize(x)``.

    Args:
        text: Raw text (may be None).

    Returns:
        Normalized text, or an empty string.
    """
    if not text:
        return ""

    result = _PARENTHETICAL.sub("", str(text))
    result = strip_diacritics(result)
    result = _DISALLOWED_CHARS.sub("", result)

    for pattern, replacement in _ABBREVIATION_PATTERNS:
        result = pattern.sub(replacement, result)

    return _WHITESPACE.sub(" ", result).strip()


def canonical_loose(text: str | None) -> str:
    """Lower-cased, period-free form of :func:`normalize` for similarity scoring.

    Never use the result for display.
    """
    result = normalize(text).lower().replace(".", "")
    return _WHITESPACE.sub(" ", result).strip()


def matches_hint(attribute: str | None, hint: str | None) -> bool:
    """Return True when an address attribute and a hint contain one another.

    Loose substring match in either direction, so a hint of "Lapu-Lapu City"
    matches an attribute of "Lapu-Lapu". An empty hint matches anything; an
    empty attribute matches only an empty hint.
    """
    h = canonical_loose(hint)
    if not h:
        return True
    a = canonical_loose(attribute)
    if not a:
        return False
    return h in a or a in h


def is_low_quality_label(text: str | None) -> bool:
    """Return True for generic labels ("ALL OTHER STREETS", "OTHERS", ...) or empty text."""
    value = normalize(text).upper().replace(".", "").strip(" ,-")
    if not value:
        return True
    if "ALL OTHER" in value:
        return True
    return value in GENERIC_LABELS


def normalize_city_hint(city: str | None, province: str | None = None) -> str:
    """Map listing-only city names to the municipality OSM knows.

    Args:
        city: City hint as written in the source listing.
        province: Province hint.

    Returns:
        The city name to send to boundary and address providers.
    """
    c = (city or "").strip().upper()
    p = (province or "").strip().upper()
    if "CEBU" in p and any(pseudo in c for pseudo in _CEBU_PSEUDO_CITIES):
        return "Cebu City"
    return city or ""
