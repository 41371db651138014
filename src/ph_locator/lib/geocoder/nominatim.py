"""OpenStreetMap Nominatim provider.

Uses the Nominatim API (https://nominatim.org/release-docs/develop/api/Search/)
for address search, barangay boundary polygons (``polygon_geojson=1``), and
reverse lookups. Free but rate-limited to 1 req/sec.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from ph_locator.lib.geocoder.base import (
    BaseGeocoder,
    GeocodingProviderError,
    GeocodingResult,
    ProviderTimeoutError,
)
from ph_locator.lib.geocoder.point_lookup import BoundingBox

DEFAULT_BASE_URL = "https://nominatim.openstreetmap.org"
DEFAULT_TIMEOUT = 9.0
DEFAULT_USER_AGENT = "ph-locator/1.0"

# Address keys Nominatim uses for the road at a reverse-geocoded point
_ROAD_KEYS = ("road", "pedestrian", "footway", "path")


@dataclass
class BoundaryFeature:
    """An administrative area returned with its outline."""

    display_name: str
    geojson: dict[str, Any]
    address: dict[str, Any] = field(default_factory=dict)


class NominatimGeocoder(BaseGeocoder):
    """OpenStreetMap Nominatim provider."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        email: str = "",
        user_agent: str = DEFAULT_USER_AGENT,
        base_url: str = DEFAULT_BASE_URL,
        country_code: str = "ph",
    ) -> None:
        self._timeout = timeout
        self._email = email
        self._user_agent = user_agent
        self._base_url = base_url.rstrip("/")
        self._country_code = country_code

    @property
    def provider_name(self) -> str:
        return "nominatim"

    @property
    def rate_limit_delay(self) -> float:
        return 1.0 if self._base_url == DEFAULT_BASE_URL else 0.0

    @property
    def timeout(self) -> float:
        return self._timeout

    async def search(
        self,
        address: str,
        *,
        viewbox: BoundingBox | None = None,
        limit: int = 5,
    ) -> list[GeocodingResult]:
        """Search for an address.

        Args:
            address: Normalized address string.
            viewbox: Optional box; results are bounded to it when given.
            limit: Maximum number of results.

        Returns:
            Candidate results in Nominatim's ranking order.

        Raises:
            GeocodingProviderError: On transport or service errors.
        """
        params = self._search_params(address, viewbox=viewbox, limit=limit)
        data = await self._get_json("/search", params)
        return self._parse_response(data)

    async def search_boundaries(
        self,
        query: str,
        *,
        viewbox: BoundingBox | None = None,
        limit: int = 3,
    ) -> list[BoundaryFeature]:
        """Search for administrative areas and return their outlines.

        Args:
            query: Area name, e.g. "Sambag II, Cebu City, Cebu, Philippines".
            viewbox: Optional box; results are bounded to it when given.
            limit: Maximum number of results.

        Returns:
            Areas that came with a GeoJSON geometry, in ranking order.

        Raises:
            GeocodingProviderError: On transport or service errors.
        """
        params = self._search_params(query, viewbox=viewbox, limit=limit)
        params["polygon_geojson"] = 1
        data = await self._get_json("/search", params)
        return self._parse_boundaries(data)

    async def reverse_street(self, lat: float, lon: float) -> str | None:
        """Return the road name at a point.

        Raises:
            GeocodingProviderError: On transport or service errors.
        """
        params: dict[str, str | int | float] = {
            "format": "jsonv2",
            "lat": lat,
            "lon": lon,
            "zoom": 18,
            "addressdetails": 1,
        }
        data = await self._get_json("/reverse", params)
        address = data.get("address") if isinstance(data, dict) else None
        if not isinstance(address, dict):
            return None
        for key in _ROAD_KEYS:
            name = str(address.get(key) or "").strip()
            if name:
                return name
        return None

    def _search_params(
        self,
        query: str,
        *,
        viewbox: BoundingBox | None,
        limit: int,
    ) -> dict[str, str | int]:
        params: dict[str, str | int] = {
            "q": query,
            "format": "jsonv2",
            "addressdetails": 1,
            "limit": limit,
            "countrycodes": self._country_code,
        }
        if viewbox is not None:
            params["viewbox"] = viewbox.to_viewbox()
            params["bounded"] = 1
        if self._email:
            params["email"] = self._email
        return params

    async def _get_json(self, path: str, params: dict) -> Any:
        headers = {"User-Agent": self._user_agent, "Accept-Language": "en"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(f"{self._base_url}{path}", params=params, headers=headers)
                response.raise_for_status()

            return response.json()

        except httpx.TimeoutException as e:
            logger.warning("Nominatim timeout for query (redacted)")
            raise ProviderTimeoutError("nominatim", self._timeout) from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Nominatim HTTP error {e.response.status_code}")
            raise GeocodingProviderError(
                "nominatim",
                f"Provider returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.ConnectError as e:
            logger.warning("Nominatim connection error")
            raise GeocodingProviderError("nominatim", "Connection to geocoding provider failed") from e
        except GeocodingProviderError:
            raise
        except Exception as e:
            logger.exception("Nominatim unexpected error")
            raise GeocodingProviderError("nominatim", f"Unexpected error: {e}") from e

    def _parse_response(self, data: list[dict]) -> list[GeocodingResult]:
        """Parse a Nominatim search response into results.

        Places without usable coordinates are skipped with a warning.

        Args:
            data: Raw JSON response (list of places) from Nominatim.

        Returns:
            Parsed results; empty when nothing matched.
        """
        if not isinstance(data, list) or not data:
            return []

        results: list[GeocodingResult] = []
        for place in data:
            try:
                importance = float(place.get("importance") or 0.0)
                address = place.get("address")
                results.append(
                    GeocodingResult(
                        latitude=float(place["lat"]),
                        longitude=float(place["lon"]),
                        confidence_score=min(max(importance, 0.0), 1.0),
                        raw_response=place,
                        matched_address=place.get("display_name"),
                        address=address if isinstance(address, dict) else {},
                    )
                )
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unusable Nominatim place: {e}")
        return results

    @staticmethod
    def _parse_boundaries(data: list[dict]) -> list[BoundaryFeature]:
        if not isinstance(data, list):
            return []
        features: list[BoundaryFeature] = []
        for place in data:
            geojson = place.get("geojson") if isinstance(place, dict) else None
            if not isinstance(geojson, dict):
                continue
            address = place.get("address")
            features.append(
                BoundaryFeature(
                    display_name=str(place.get("display_name") or ""),
                    geojson=geojson,
                    address=address if isinstance(address, dict) else {},
                )
            )
        return features
