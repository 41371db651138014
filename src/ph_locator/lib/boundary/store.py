"""Barangay boundary acquisition with caching."""

import asyncio
from collections.abc import Sequence
from typing import Any

from loguru import logger

from ph_locator.lib.boundary.geometry import DEFAULT_MAX_VERTICES, boundary_from_geojson
from ph_locator.lib.geocoder.address import matches_hint, normalize, normalize_city_hint
from ph_locator.lib.geocoder.base import (
    AdministrativeBoundary,
    Anchor,
    GeocodingProviderError,
    PolygonUnavailableError,
)
from ph_locator.lib.geocoder.cache import TtlCache, format_anchor, make_cache_key
from ph_locator.lib.geocoder.candidates import join_parts
from ph_locator.lib.geocoder.nominatim import BoundaryFeature, NominatimGeocoder
from ph_locator.lib.geocoder.point_lookup import BoundingBox

# Address attributes that name the municipality or the province of a result
CITY_LIKE_KEYS = ("city", "town", "municipality", "county")
STATE_LIKE_KEYS = ("state", "region")

BOUNDARY_RESULT_LIMIT = 3


def _attribute_matches(address: dict[str, Any], keys: Sequence[str], hint: str) -> bool:
    return any(matches_hint(str(address.get(k) or ""), hint) for k in keys)


def prefer_matching(features: list[BoundaryFeature], city: str, province: str) -> list[BoundaryFeature]:
    """Order features so those whose address matches the city/province hints come first.

    Relative order is otherwise preserved.
    """
    matching = [
        f
        for f in features
        if _attribute_matches(f.address, CITY_LIKE_KEYS, city)
        and _attribute_matches(f.address, STATE_LIKE_KEYS, province)
    ]
    return matching + [f for f in features if f not in matching]


class PolygonStore:
    """Fetches, simplifies, and caches barangay outlines.

    Args:
        provider: Boundary search provider.
        cache: Polygon cache; only successful lookups are stored.
        max_vertices: Vertex cap for stored rings.
        search_km: Half-width of the search box around an anchor.
    """

    def __init__(
        self,
        provider: NominatimGeocoder,
        cache: TtlCache,
        *,
        max_vertices: int = DEFAULT_MAX_VERTICES,
        search_km: float = 10.0,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._max_vertices = max_vertices
        self._search_km = search_km

    async def get_boundary(
        self,
        barangay: str,
        city: str = "",
        province: str = "",
        anchor: Anchor | None = None,
    ) -> AdministrativeBoundary | None:
        """Return the barangay outline, or None when it cannot be obtained.

        Provider failures are logged and reported as None so callers can
        fall through to steps that need no polygon.
        """
        try:
            return await self.fetch_boundary(barangay, city, province, anchor)
        except PolygonUnavailableError as e:
            logger.debug(f"Boundary unavailable: {e}")
            return None

    async def fetch_boundary(
        self,
        barangay: str,
        city: str = "",
        province: str = "",
        anchor: Anchor | None = None,
    ) -> AdministrativeBoundary:
        """Return the barangay outline.

        Args:
            barangay: Barangay name.
            city: City or municipality hint.
            province: Province hint.
            anchor: Optional centre; bounds the search to a box around it.

        Returns:
            The simplified outline.

        Raises:
            PolygonUnavailableError: When no barangay is given, the provider
                fails, or no result carries a usable ring.
        """
        barangay = normalize(barangay)
        if not barangay:
            msg = "no barangay given"
            raise PolygonUnavailableError(msg)

        city = normalize(normalize_city_hint(city, province))
        province = normalize(province)
        key = make_cache_key(
            barangay,
            city,
            province,
            format_anchor(anchor.lat, anchor.lon) if anchor else None,
        )

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Polygon cache hit: {key}")
            return cached

        viewbox = BoundingBox.around(anchor.lat, anchor.lon, self._search_km) if anchor else None
        query = join_parts(barangay, city, province)

        try:
            async with asyncio.timeout(self._provider.timeout):
                features = await self._provider.search_boundaries(
                    query, viewbox=viewbox, limit=BOUNDARY_RESULT_LIMIT
                )
        except TimeoutError as e:
            logger.warning(f"Boundary search timed out after {self._provider.timeout:g}s")
            msg = f"boundary search timed out for {key}"
            raise PolygonUnavailableError(msg) from e
        except GeocodingProviderError as e:
            logger.warning(f"Boundary search failed: {e}")
            msg = f"boundary search failed for {key}"
            raise PolygonUnavailableError(msg) from e

        for feature in prefer_matching(features, city, province):
            boundary = boundary_from_geojson(key, feature.geojson, self._max_vertices)
            if boundary is not None:
                self._cache.set(key, boundary)
                logger.debug(f"Polygon resolved for {key} with {len(boundary.ring)} vertices")
                return boundary

        msg = f"no usable ring for {key}"
        raise PolygonUnavailableError(msg)
