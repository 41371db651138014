"""Shared test fixtures for settings, caches, and barangay outlines."""

import pytest

from ph_locator.core.config import Settings
from ph_locator.lib.boundary import boundary_from_geojson
from ph_locator.lib.geocoder import AdministrativeBoundary, CacheRegistry


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# A small square barangay in Cebu City, GeoJSON (lon, lat) order
SAMBAG_GEOJSON = {
    "type": "Polygon",
    "coordinates": [
        [
            [123.890, 10.300],
            [123.900, 10.300],
            [123.900, 10.310],
            [123.890, 10.310],
            [123.890, 10.300],
        ]
    ],
}


@pytest.fixture
def settings() -> Settings:
    """Test application settings with the commercial provider disabled."""
    return Settings(
        _env_file=None,
        geocoder_google_api_key=None,
        geocoder_nominatim_base_url="http://nominatim.test",
        overpass_endpoints="http://overpass-a.test/api/interpreter,http://overpass-b.test/api/interpreter",
        log_level="DEBUG",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def caches(clock: FakeClock) -> CacheRegistry:
    """Fresh caches per test, driven by a fake clock."""
    return CacheRegistry.create(
        geocode_ttl=14 * 24 * 3600,
        polygon_ttl=30 * 24 * 3600,
        poi_ttl=12 * 3600,
        dataset_page_ttl=30 * 60,
        clock=clock,
    )


@pytest.fixture
def sambag_boundary() -> AdministrativeBoundary:
    """Sambag II outline: the square 10.300-10.310 N, 123.890-123.900 E."""
    boundary = boundary_from_geojson("sambag ii|cebu city|cebu|", SAMBAG_GEOJSON)
    assert boundary is not None
    return boundary
