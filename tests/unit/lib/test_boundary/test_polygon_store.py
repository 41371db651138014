"""Unit tests for PolygonStore boundary acquisition and caching."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ph_locator.lib.boundary.store import PolygonStore, prefer_matching
from ph_locator.lib.geocoder.base import Anchor, GeocodingProviderError, PolygonUnavailableError
from ph_locator.lib.geocoder.cache import CacheRegistry
from ph_locator.lib.geocoder.nominatim import BoundaryFeature, NominatimGeocoder


def _square(lon: float, lat: float, size: float) -> dict:
    return {
        "type": "Polygon",
        "coordinates": [[[lon, lat], [lon + size, lat], [lon + size, lat + size], [lon, lat + size], [lon, lat]]],
    }


CEBU_SAMBAG = BoundaryFeature(
    display_name="Sambag II, Cebu City, Cebu",
    geojson=_square(123.89, 10.30, 0.01),
    address={"suburb": "Sambag II", "city": "Cebu City", "state": "Cebu"},
)
OTHER_SAMBAG = BoundaryFeature(
    display_name="Sambag II, Talisay, Cebu",
    geojson=_square(123.80, 10.20, 0.01),
    address={"suburb": "Sambag II", "town": "Talisay", "state": "Cebu"},
)


def _provider(*, return_value: list[BoundaryFeature] | None = None, side_effect=None) -> MagicMock:
    provider = MagicMock(spec=NominatimGeocoder)
    provider.timeout = 5.0
    provider.search_boundaries = AsyncMock(return_value=return_value or [], side_effect=side_effect)
    return provider


class TestPreferMatching:
    """Tests for hint-based result ordering."""

    def test_matching_city_first(self) -> None:
        ordered = prefer_matching([OTHER_SAMBAG, CEBU_SAMBAG], "Cebu City", "Cebu")
        assert ordered == [CEBU_SAMBAG, OTHER_SAMBAG]

    def test_no_match_keeps_order(self) -> None:
        ordered = prefer_matching([OTHER_SAMBAG, CEBU_SAMBAG], "Mandaue City", "Cebu")
        assert ordered == [OTHER_SAMBAG, CEBU_SAMBAG]

    def test_empty_hints_match_everything(self) -> None:
        assert prefer_matching([OTHER_SAMBAG, CEBU_SAMBAG], "", "") == [OTHER_SAMBAG, CEBU_SAMBAG]

    def test_hint_containing_attribute_matches(self) -> None:
        mandaue = BoundaryFeature("Pusok, Mandaue", _square(123.94, 10.32, 0.01), {"city": "Mandaue"})
        lapu_lapu = BoundaryFeature("Pusok, Lapu-Lapu", _square(123.96, 10.31, 0.01), {"city": "Lapu-Lapu"})

        assert prefer_matching([mandaue, lapu_lapu], "Lapu-Lapu City", "") == [lapu_lapu, mandaue]

    def test_missing_attribute_does_not_match(self) -> None:
        bare = BoundaryFeature("Pusok", _square(123.94, 10.32, 0.01), {})
        lapu_lapu = BoundaryFeature("Pusok, Lapu-Lapu", _square(123.96, 10.31, 0.01), {"city": "Lapu-Lapu"})

        assert prefer_matching([bare, lapu_lapu], "Lapu-Lapu City", "") == [lapu_lapu, bare]


class TestPolygonStore:
    """Tests for PolygonStore.get_boundary()."""

    async def test_prefers_result_matching_hints(self, caches: CacheRegistry) -> None:
        provider = _provider(return_value=[OTHER_SAMBAG, CEBU_SAMBAG])
        store = PolygonStore(provider, caches.polygon)

        boundary = await store.get_boundary("Sambag II", "Cebu City", "Cebu")

        assert boundary is not None
        assert boundary.centroid.lat == pytest.approx(10.305)
        assert boundary.centroid.lon == pytest.approx(123.895)
        query = provider.search_boundaries.await_args.args[0]
        assert query == "Sambag II, Cebu City, Cebu, Philippines"

    async def test_cached_on_success(self, caches: CacheRegistry) -> None:
        provider = _provider(return_value=[CEBU_SAMBAG])
        store = PolygonStore(provider, caches.polygon)

        first = await store.get_boundary("Sambag II", "Cebu City", "Cebu")
        second = await store.get_boundary("SAMBAG II", "cebu city", "CEBU")

        assert first == second
        assert provider.search_boundaries.await_count == 1

    async def test_empty_result_not_cached(self, caches: CacheRegistry) -> None:
        provider = _provider(return_value=[])
        store = PolygonStore(provider, caches.polygon)

        assert await store.get_boundary("Sambag II", "Cebu City", "Cebu") is None
        assert await store.get_boundary("Sambag II", "Cebu City", "Cebu") is None
        assert provider.search_boundaries.await_count == 2
        assert len(caches.polygon) == 0

    async def test_anchor_bounds_search(self, caches: CacheRegistry) -> None:
        provider = _provider(return_value=[CEBU_SAMBAG])
        store = PolygonStore(provider, caches.polygon, search_km=10.0)

        await store.get_boundary("Sambag II", "Cebu City", "Cebu", Anchor(lat=10.3, lon=123.9))

        viewbox = provider.search_boundaries.await_args.kwargs["viewbox"]
        assert viewbox is not None
        assert viewbox.contains(10.3, 123.9)
        assert viewbox.top - 10.3 == pytest.approx(10 / 111)

    async def test_cebu_pseudo_city_normalized(self, caches: CacheRegistry) -> None:
        provider = _provider(return_value=[CEBU_SAMBAG])
        store = PolygonStore(provider, caches.polygon)

        await store.get_boundary("Sambag II", "CEBU SOUTH", "CEBU")

        assert provider.search_boundaries.await_args.args[0] == "Sambag II, Cebu City, CEBU, Philippines"

    async def test_provider_error_yields_none(self, caches: CacheRegistry) -> None:
        provider = _provider(side_effect=GeocodingProviderError("nominatim", "HTTP 503", status_code=503))
        store = PolygonStore(provider, caches.polygon)

        assert await store.get_boundary("Sambag II", "Cebu City", "Cebu") is None

    async def test_fetch_raises_polygon_unavailable(self, caches: CacheRegistry) -> None:
        provider = _provider(side_effect=GeocodingProviderError("nominatim", "HTTP 503", status_code=503))
        store = PolygonStore(provider, caches.polygon)

        with pytest.raises(PolygonUnavailableError):
            await store.fetch_boundary("Sambag II", "Cebu City", "Cebu")

    async def test_timeout_yields_none(self, caches: CacheRegistry) -> None:
        async def _hang(*args: object, **kwargs: object) -> list[BoundaryFeature]:
            await asyncio.sleep(10)
            return []

        provider = _provider(side_effect=_hang)
        provider.timeout = 0.01
        store = PolygonStore(provider, caches.polygon)

        assert await store.get_boundary("Sambag II", "Cebu City", "Cebu") is None

    async def test_no_barangay_skips_provider(self, caches: CacheRegistry) -> None:
        provider = _provider(return_value=[CEBU_SAMBAG])
        store = PolygonStore(provider, caches.polygon)

        assert await store.get_boundary("", "Cebu City", "Cebu") is None
        provider.search_boundaries.assert_not_awaited()

    async def test_unusable_geometry_falls_through(self, caches: CacheRegistry) -> None:
        point_only = BoundaryFeature(
            display_name="Sambag II",
            geojson={"type": "Point", "coordinates": [123.895, 10.305]},
            address={"city": "Cebu City", "state": "Cebu"},
        )
        provider = _provider(return_value=[point_only, OTHER_SAMBAG])
        store = PolygonStore(provider, caches.polygon)

        boundary = await store.get_boundary("Sambag II", "Cebu City", "Cebu")

        assert boundary is not None
        assert boundary.centroid.lat == pytest.approx(10.205)
