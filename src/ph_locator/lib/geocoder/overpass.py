"""OpenStreetMap Overpass feature queries.

Fetches named roads and amenities inside a barangay ring or around a point
via the Overpass API (https://wiki.openstreetmap.org/wiki/Overpass_API).
Public instances are overloaded often, so several interpreter endpoints are
tried in order until one answers.
"""

import re
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from ph_locator.lib.geocoder.base import (
    AdministrativeBoundary,
    GeocodingProviderError,
    ProviderTimeoutError,
)

DEFAULT_ENDPOINTS = (
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://overpass.openstreetmap.ru/api/interpreter",
)
DEFAULT_TIMEOUT = 18.0
DEFAULT_USER_AGENT = "ph-locator/1.0"

# Tags that carry a usable feature name, primary first
NAME_TAGS = ("name", "official_name", "short_name", "alt_name")

_NAME_SEPARATORS = re.compile(r"[;|]")

# Characters with meaning in an Overpass regex or string literal
_QL_UNSAFE = re.compile(r"[^\w ]")


@dataclass(frozen=True)
class FeatureHit:
    """A named road or point of interest."""

    name: str
    lat: float
    lon: float
    osm_id: int
    osm_type: str = "way"
    kind: str = ""
    names: tuple[str, ...] = ()
    geometry: tuple[tuple[float, float], ...] = field(default=(), compare=False)


def feature_names(tags: dict[str, Any]) -> list[str]:
    """All distinct names of an element, primary name first.

    Multi-valued tags (``alt_name=A;B``) are split on ``;`` and ``|``.
    """
    names: list[str] = []
    seen: set[str] = set()
    for tag in NAME_TAGS:
        for value in _NAME_SEPARATORS.split(str(tags.get(tag) or "")):
            value = value.strip()
            if value and value.lower() not in seen:
                seen.add(value.lower())
                names.append(value)
    return names


def _lat_lon(lat: Any, lon: Any) -> tuple[float, float]:
    lat_f, lon_f = float(lat), float(lon)
    if not (-90 <= lat_f <= 90 and -180 <= lon_f <= 180):
        msg = f"coordinates out of range: {lat_f}, {lon_f}"
        raise ValueError(msg)
    return lat_f, lon_f


def poly_filter(boundary: AdministrativeBoundary) -> str:
    """Space-separated ``lat lon`` list for an Overpass ``poly:`` filter."""
    return " ".join(f"{lat:.6f} {lon:.6f}" for lat, lon in boundary.ring)


def build_polygon_query(boundary: AdministrativeBoundary, timeout: int = 18) -> str:
    """Overpass QL for named highways and amenities inside a ring."""
    poly = poly_filter(boundary)
    return (
        f"[out:json][timeout:{timeout}];"
        "("
        f'way["highway"]["name"](poly:"{poly}");'
        f'node["amenity"]["name"](poly:"{poly}");'
        ");"
        "out center tags;"
    )


def build_around_query(lat: float, lon: float, radius_m: int, timeout: int = 18) -> str:
    """Overpass QL for named highways and amenities within a radius of a point."""
    around = f"around:{int(radius_m)},{lat:.6f},{lon:.6f}"
    return (
        f"[out:json][timeout:{timeout}];"
        "("
        f'way({around})["highway"]["name"];'
        f'node({around})["amenity"]["name"];'
        ");"
        "out center tags;"
    )


def build_ways_query(lat: float, lon: float, radius_m: int, timeout: int = 18) -> str:
    """Overpass QL for named highways near a point, with their vertices."""
    return (
        f"[out:json][timeout:{timeout}];"
        f'way(around:{int(radius_m)},{lat:.6f},{lon:.6f})["highway"]["name"];'
        "out tags geom;"
    )


def build_named_ways_query(
    lat: float,
    lon: float,
    radius_m: int,
    tokens: list[str],
    timeout: int = 18,
) -> str:
    """Overpass QL for highways near a point whose names contain every token.

    Each name tag is filtered separately; named ways within 400 m are always
    included so a misspelled token still leaves nearby candidates.
    """
    around = f"around:{int(radius_m)},{lat:.6f},{lon:.6f}"
    close = f"around:{min(400, int(radius_m))},{lat:.6f},{lon:.6f}"
    statements = []
    for tag in NAME_TAGS:
        filters = "".join(f'["{tag}"~"{_QL_UNSAFE.sub("", token)}",i]' for token in tokens)
        statements.append(f'way({around})["highway"]["{tag}"]{filters};')
    statements.append(f'way({close})["highway"]["name"];')
    return f"[out:json][timeout:{timeout}];(" + "".join(statements) + ");out tags geom;"


class OverpassClient:
    """Client for Overpass interpreter endpoints."""

    def __init__(
        self,
        endpoints: list[str] | tuple[str, ...] = DEFAULT_ENDPOINTS,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._endpoints = list(endpoints) or list(DEFAULT_ENDPOINTS)
        self._timeout = timeout
        self._user_agent = user_agent

    @property
    def provider_name(self) -> str:
        return "overpass"

    @property
    def timeout(self) -> float:
        return self._timeout

    async def features_in_boundary(self, boundary: AdministrativeBoundary) -> list[FeatureHit]:
        """Named roads and amenities inside a barangay ring.

        Raises:
            GeocodingProviderError: When every endpoint fails.
        """
        data = await self.query(build_polygon_query(boundary, self._ql_timeout))
        return self._parse_response(data)

    async def features_around(self, lat: float, lon: float, radius_m: int) -> list[FeatureHit]:
        """Named roads and amenities within ``radius_m`` meters of a point.

        Raises:
            GeocodingProviderError: When every endpoint fails.
        """
        data = await self.query(build_around_query(lat, lon, radius_m, self._ql_timeout))
        return self._parse_response(data)

    async def ways_around(self, lat: float, lon: float, radius_m: int) -> list[FeatureHit]:
        """Named roads within ``radius_m`` meters of a point, with geometry.

        Raises:
            GeocodingProviderError: When every endpoint fails.
        """
        data = await self.query(build_ways_query(lat, lon, radius_m, self._ql_timeout))
        return self._parse_response(data)

    async def named_ways_around(self, lat: float, lon: float, radius_m: int, tokens: list[str]) -> list[FeatureHit]:
        """Roads near a point whose names contain ``tokens``, with geometry.

        Falls back to every named road in the radius when ``tokens`` is empty.

        Raises:
            GeocodingProviderError: When every endpoint fails.
        """
        if not tokens:
            return await self.ways_around(lat, lon, radius_m)
        data = await self.query(build_named_ways_query(lat, lon, radius_m, tokens, self._ql_timeout))
        return self._parse_response(data)

    @property
    def _ql_timeout(self) -> int:
        return max(1, int(self._timeout))

    async def query(self, ql: str) -> dict[str, Any]:
        """Run an Overpass QL query against each endpoint until one succeeds.

        Args:
            ql: Overpass QL source.

        Returns:
            The decoded JSON document.

        Raises:
            ProviderTimeoutError: When the last endpoint tried timed out.
            GeocodingProviderError: When every endpoint fails.
        """
        headers = {"User-Agent": self._user_agent}
        last_error: GeocodingProviderError | None = None

        for endpoint in self._endpoints:
            try:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(endpoint, data={"data": ql}, headers=headers)
                    response.raise_for_status()

                data = response.json()
                if not isinstance(data, dict):
                    msg = "response is not a JSON object"
                    raise ValueError(msg)
                return data

            except httpx.TimeoutException:
                logger.warning(f"Overpass timeout at {endpoint}")
                last_error = ProviderTimeoutError("overpass", self._timeout)
            except httpx.HTTPStatusError as e:
                logger.warning(f"Overpass HTTP error {e.response.status_code} at {endpoint}")
                last_error = GeocodingProviderError(
                    "overpass",
                    f"Provider returned HTTP {e.response.status_code}",
                    status_code=e.response.status_code,
                )
            except httpx.ConnectError:
                logger.warning(f"Overpass connection error at {endpoint}")
                last_error = GeocodingProviderError("overpass", "Connection to feature provider failed")
            except ValueError as e:
                logger.warning(f"Overpass returned an unreadable response at {endpoint}: {e}")
                last_error = GeocodingProviderError("overpass", f"Failed to parse response: {e}")
            except Exception as e:
                logger.exception(f"Overpass unexpected error at {endpoint}")
                last_error = GeocodingProviderError("overpass", f"Unexpected error: {e}")

        raise last_error or GeocodingProviderError("overpass", "No endpoints configured")

    @staticmethod
    def _parse_response(data: dict[str, Any]) -> list[FeatureHit]:
        """Convert Overpass elements into named features.

        Elements without a name or a usable position are skipped.
        """
        elements = data.get("elements")
        if not isinstance(elements, list):
            return []

        hits: list[FeatureHit] = []
        for element in elements:
            try:
                hit = OverpassClient._parse_element(element)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unusable Overpass element: {e}")
                continue
            if hit is not None:
                hits.append(hit)
        return hits

    @staticmethod
    def _parse_element(element: dict[str, Any]) -> FeatureHit | None:
        """Ways use their ``center`` (``out center``) or the first vertex of
        their ``geometry`` (``out geom``); nodes use their own position.

        Raises:
            ValueError: If a coordinate is not a number or lies outside WGS84 ranges.
        """
        tags = element.get("tags") or {}
        names = feature_names(tags)
        if not names:
            return None

        geometry = tuple(
            _lat_lon(p["lat"], p["lon"]) for p in element.get("geometry") or [] if "lat" in p and "lon" in p
        )
        point = element.get("center") or element
        if "lat" in point and "lon" in point:
            lat, lon = _lat_lon(point["lat"], point["lon"])
        elif geometry:
            lat, lon = geometry[0]
        else:
            return None

        return FeatureHit(
            name=names[0],
            lat=lat,
            lon=lon,
            osm_id=int(element.get("id", 0)),
            osm_type=str(element.get("type", "way")),
            kind=str(tags.get("highway") or tags.get("amenity") or ""),
            names=tuple(names),
            geometry=geometry,
        )
