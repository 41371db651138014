"""Abstract geocoder interface, shared value types, and resolution errors."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ph_locator.lib.geocoder.point_lookup import BoundingBox
    from ph_locator.lib.matcher import MatchResult


class ResolutionConfidence(StrEnum):
    """How a resolved point was obtained, from most to least trustworthy."""

    EXACT = "exact"
    CENTROID = "centroid"
    NEAR_ANCHOR = "near_anchor"
    UNCONSTRAINED = "unconstrained"


def _validate_lat_lon(lat: float, lon: float) -> None:
    if not (-90 <= lat <= 90):
        msg = f"latitude must be between -90 and 90, got {lat}"
        raise ValueError(msg)
    if not (-180 <= lon <= 180):
        msg = f"longitude must be between -180 and 180, got {lon}"
        raise ValueError(msg)


@dataclass(frozen=True)
class Anchor:
    """A previously resolved coarse centre used to bias and bound lookups."""

    lat: float
    lon: float

    def __post_init__(self) -> None:
        _validate_lat_lon(self.lat, self.lon)


@dataclass(frozen=True)
class AddressHints:
    """Hierarchical address hints, most specific first."""

    street: str = ""
    vicinity: str = ""
    barangay: str = ""
    city: str = ""
    province: str = ""

    @property
    def is_empty(self) -> bool:
        return not any(
            part.strip() for part in (self.street, self.vicinity, self.barangay, self.city, self.province)
        )


@dataclass(frozen=True)
class LocationQuery:
    """A single resolution request. Immutable for the lifetime of the request."""

    raw_text: str
    hints: AddressHints = field(default_factory=AddressHints)
    anchor: Anchor | None = None


@dataclass(frozen=True)
class AdministrativeBoundary:
    """A barangay outline.

    ``ring`` holds closed ``(lat, lon)`` pairs; ``centroid`` is the
    arithmetic mean of its distinct vertices.
    """

    key: str
    ring: tuple[tuple[float, float], ...]
    centroid: Anchor

    def as_lists(self) -> list[list[float]]:
        return [[lat, lon] for lat, lon in self.ring]


@dataclass
class GeocodingResult:
    """A single candidate point returned by an address-search provider."""

    latitude: float
    longitude: float
    confidence_score: float | None = None
    raw_response: dict | None = None
    matched_address: str | None = None
    address: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _validate_lat_lon(self.latitude, self.longitude)
        if self.confidence_score is not None and not (0 <= self.confidence_score <= 1):
            msg = f"confidence_score must be between 0 and 1, got {self.confidence_score}"
            raise ValueError(msg)


@dataclass(frozen=True)
class LocationResult:
    """The outcome of a successful resolution."""

    lat: float
    lon: float
    label: str
    source: str
    confidence: ResolutionConfidence
    boundary: AdministrativeBoundary | None = None
    match: "MatchResult | None" = None

    def __post_init__(self) -> None:
        _validate_lat_lon(self.lat, self.lon)


@dataclass(frozen=True)
class StreetGeometry:
    """Polyline of the named road that best matches a street name.

    ``coordinates`` are ``(lat, lon)`` vertices in way order.
    """

    name: str
    osm_id: int
    score: float
    distance_m: float
    coordinates: tuple[tuple[float, float], ...]

    def as_lon_lat(self) -> list[list[float]]:
        """Vertices as GeoJSON ``[lon, lat]`` pairs."""
        return [[lon, lat] for lat, lon in self.coordinates]


class GeocodingProviderError(Exception):
    """Raised when a geocoding provider experiences a transport or service error.

    Distinguishes provider failures (timeout, HTTP error, connection error)
    from a successful response with no match (which returns an empty result).

    Args:
        provider_name: Name of the failing provider.
        message: Human-readable error description.
        status_code: Optional HTTP status code from the provider.
    """

    def __init__(self, provider_name: str, message: str, status_code: int | None = None) -> None:
        self.provider_name = provider_name
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider_name}: {message}")


class ProviderTimeoutError(GeocodingProviderError):
    """Raised when a provider call exceeds its time budget."""

    def __init__(self, provider_name: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(provider_name, f"Request timed out after {timeout:g}s")


class PolygonUnavailableError(Exception):
    """Raised when no usable barangay polygon can be obtained."""


class NoMatchError(Exception):
    """Raised when every resolution step has been exhausted."""

    def __init__(self, query: str) -> None:
        self.query = query
        super().__init__(f"No location found for {query!r}")


class InvalidLocationQueryError(ValueError):
    """Raised when a request is rejected before any provider call."""


class BaseGeocoder(ABC):
    """Abstract address-search provider. All providers must implement this."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique name identifying this geocoder provider."""

    @property
    def requires_api_key(self) -> bool:
        """Whether this provider requires an API key to function."""
        return False

    @property
    def is_configured(self) -> bool:
        """Whether this provider has all required configuration (e.g., API keys)."""
        return True

    @property
    def rate_limit_delay(self) -> float:
        """Minimum delay in seconds between requests (for rate-limited providers)."""
        return 0.0

    @property
    def timeout(self) -> float:
        """Upper bound in seconds for a single call to this provider."""
        return 10.0

    @abstractmethod
    async def search(
        self,
        address: str,
        *,
        viewbox: "BoundingBox | None" = None,
        limit: int = 5,
    ) -> list[GeocodingResult]:
        """Search for candidate points matching an address.

        Args:
            address: Normalized address string.
            viewbox: Optional bounding box to restrict results to.
            limit: Maximum number of results.

        Returns:
            Candidate results, best first. Empty when nothing matched.

        Raises:
            GeocodingProviderError: On transport or service errors.
        """

    async def reverse_street(self, lat: float, lon: float) -> str | None:
        """Return the name of the road at a point, if the provider supports it."""
        return None
