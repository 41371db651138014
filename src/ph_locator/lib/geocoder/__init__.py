"""Geocoder library — Philippine address normalization, providers, and caching.

Public API:
    - normalize / canonical_loose: Address text normalization
    - matches_hint: Either-direction hint match against an address attribute
    - is_low_quality_label: Detect generic labels ("ALL OTHER STREETS", ...)
    - normalize_city_hint: Map listing-only city names to real municipalities
    - generate_candidates / feature_name_targets: Query and feature-name generation
    - Anchor / AddressHints / LocationQuery: Request value types
    - AdministrativeBoundary / LocationResult / ResolutionConfidence: Result value types
    - StreetGeometry: Matched street polyline
    - BaseGeocoder: Abstract provider interface
    - GeocodingResult: Provider result dataclass
    - NominatimGeocoder: OpenStreetMap Nominatim provider
    - GoogleMapsGeocoder: Google Maps provider
    - OverpassClient / FeatureHit: OpenStreetMap feature queries
    - TtlCache / CacheRegistry / make_cache_key: In-memory result caches
    - BoundingBox / PH_BOUNDS / haversine_meters: Geo helpers
    - get_geocoder: Provider factory/registry
    - get_configured_providers: Get providers that are enabled and configured
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ph_locator.lib.geocoder.address import (
    canonical_loose,
    is_low_quality_label,
    matches_hint,
    normalize,
    normalize_city_hint,
)
from ph_locator.lib.geocoder.base import (
    AddressHints,
    AdministrativeBoundary,
    Anchor,
    BaseGeocoder,
    GeocodingProviderError,
    GeocodingResult,
    InvalidLocationQueryError,
    LocationQuery,
    LocationResult,
    NoMatchError,
    PolygonUnavailableError,
    ProviderTimeoutError,
    ResolutionConfidence,
    StreetGeometry,
)
from ph_locator.lib.geocoder.cache import CacheRegistry, TtlCache, format_anchor, make_cache_key
from ph_locator.lib.geocoder.candidates import feature_name_targets, generate_candidates
from ph_locator.lib.geocoder.google_maps import GoogleMapsGeocoder
from ph_locator.lib.geocoder.nominatim import BoundaryFeature, NominatimGeocoder
from ph_locator.lib.geocoder.overpass import FeatureHit, OverpassClient
from ph_locator.lib.geocoder.point_lookup import (
    PH_BOUNDS,
    PH_CENTER,
    BoundingBox,
    haversine_meters,
    is_within_philippines,
)

if TYPE_CHECKING:
    from ph_locator.core.config import Settings

# Provider registry: all known address-search providers
_PROVIDERS: dict[str, type[BaseGeocoder]] = {
    "google": GoogleMapsGeocoder,
    "nominatim": NominatimGeocoder,
}

# Commercial provider first when it has a credential
FALLBACK_ORDER = ("google", "nominatim")


def get_geocoder(provider: str = "nominatim", **kwargs: Any) -> BaseGeocoder:
    """Get a geocoder instance by provider name.

    Args:
        provider: Provider name (e.g., "nominatim").
        **kwargs: Additional arguments forwarded to the provider constructor
            (e.g., ``timeout=2.0``).

    Returns:
        An instance of the requested geocoder provider.

    Raises:
        ValueError: If the provider is not registered.
    """
    cls = _PROVIDERS.get(provider)
    if cls is None:
        msg = f"Unknown geocoder provider: {provider!r}. Available: {list(_PROVIDERS.keys())}"
        raise ValueError(msg)
    return cls(**kwargs)


def get_configured_providers(settings: Settings) -> list[BaseGeocoder]:
    """Get address-search providers that are enabled and properly configured.

    Google is enabled only when an API key is present; Nominatim is always
    enabled.

    Args:
        settings: Application settings.

    Returns:
        List of configured BaseGeocoder instances, in fallback order.
    """
    provider_configs: dict[str, dict[str, Any]] = {
        "google": {
            "enabled": settings.google_enabled,
            "kwargs": {
                "api_key": settings.geocoder_google_api_key or "",
                "timeout": settings.geocoder_google_timeout,
                "region": settings.geocoder_country_code,
            },
        },
        "nominatim": {
            "enabled": True,
            "kwargs": {
                "timeout": settings.geocoder_nominatim_timeout,
                "email": settings.geocoder_nominatim_email,
                "user_agent": settings.geocoder_user_agent,
                "base_url": settings.geocoder_nominatim_base_url,
                "country_code": settings.geocoder_country_code,
            },
        },
    }

    providers: list[BaseGeocoder] = []
    for name in FALLBACK_ORDER:
        config = provider_configs[name]
        if not config["enabled"]:
            continue
        try:
            geocoder = get_geocoder(name, **config["kwargs"])
        except (ValueError, TypeError):
            continue
        if geocoder.is_configured:
            providers.append(geocoder)

    return providers


__all__ = [
    "PH_BOUNDS",
    "PH_CENTER",
    "AddressHints",
    "AdministrativeBoundary",
    "Anchor",
    "BaseGeocoder",
    "BoundaryFeature",
    "BoundingBox",
    "CacheRegistry",
    "FeatureHit",
    "GeocodingProviderError",
    "GeocodingResult",
    "GoogleMapsGeocoder",
    "InvalidLocationQueryError",
    "LocationQuery",
    "LocationResult",
    "NoMatchError",
    "NominatimGeocoder",
    "OverpassClient",
    "PolygonUnavailableError",
    "ProviderTimeoutError",
    "ResolutionConfidence",
    "StreetGeometry",
    "TtlCache",
    "canonical_loose",
    "feature_name_targets",
    "format_anchor",
    "generate_candidates",
    "get_configured_providers",
    "get_geocoder",
    "haversine_meters",
    "is_low_quality_label",
    "is_within_philippines",
    "make_cache_key",
    "matches_hint",
    "normalize",
    "normalize_city_hint",
]
