"""Google Maps Geocoding API provider.

Uses the Google Maps Geocoding API
(https://developers.google.com/maps/documentation/geocoding/)
for address search and reverse road lookups. Requires an API key; the
provider is only enabled when one is configured.
"""

import httpx
from loguru import logger

from ph_locator.lib.geocoder.base import (
    BaseGeocoder,
    GeocodingProviderError,
    GeocodingResult,
    ProviderTimeoutError,
)
from ph_locator.lib.geocoder.point_lookup import BoundingBox

GOOGLE_API_URL = "https://maps.googleapis.com/maps/api/geocode/json"
DEFAULT_TIMEOUT = 8.0

# Google location_type → confidence
_LOCATION_TYPE_CONFIDENCE: dict[str, float] = {
    "ROOFTOP": 1.0,
    "RANGE_INTERPOLATED": 0.85,
    "GEOMETRIC_CENTER": 0.6,
    "APPROXIMATE": 0.5,
}

# Google address component type → Nominatim-style address key
_COMPONENT_KEYS: dict[str, str] = {
    "route": "road",
    "neighborhood": "suburb",
    "sublocality": "suburb",
    "sublocality_level_1": "suburb",
    "locality": "city",
    "administrative_area_level_2": "county",
    "administrative_area_level_1": "state",
    "country": "country",
}


class GoogleMapsGeocoder(BaseGeocoder):
    """Google Maps geocoder provider."""

    def __init__(
        self,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        region: str = "ph",
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._region = region

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def requires_api_key(self) -> bool:
        return True

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

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
        """Geocode an address using the Google Maps API.

        Args:
            address: Full normalized address string.
            viewbox: Optional box used to bias (not restrict) results.
            limit: Maximum number of results.

        Returns:
            Candidate results; empty when nothing matched.

        Raises:
            GeocodingProviderError: On transport, service, or API-specific errors.
        """
        params = {
            "address": address,
            "key": self._api_key,
            "region": self._region,
            "components": f"country:{self._region.upper()}",
        }
        if viewbox is not None:
            params["bounds"] = f"{viewbox.bottom},{viewbox.left}|{viewbox.top},{viewbox.right}"

        data = await self._get_json(params)
        return self._parse_response(data)[:limit]

    async def reverse_street(self, lat: float, lon: float) -> str | None:
        """Return the route name at a point.

        Raises:
            GeocodingProviderError: On transport, service, or API-specific errors.
        """
        params = {
            "latlng": f"{lat},{lon}",
            "result_type": "route",
            "key": self._api_key,
        }
        data = await self._get_json(params)
        if not self._check_status(data):
            return None
        results = data.get("results") or []
        route = results[0] if isinstance(results, list) and results else None
        if not isinstance(route, dict):
            return None
        for component in route.get("address_components") or []:
            if isinstance(component, dict) and "route" in (component.get("types") or []):
                name = str(component.get("long_name") or "").strip()
                if name:
                    return name
        return str(route.get("formatted_address") or "").strip() or None

    async def _get_json(self, params: dict) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(GOOGLE_API_URL, params=params)
                response.raise_for_status()

            return response.json()

        except httpx.TimeoutException as e:
            logger.warning("Google Maps geocoder timeout for address (redacted)")
            raise ProviderTimeoutError("google", self._timeout) from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Google Maps geocoder HTTP error {e.response.status_code}")
            raise GeocodingProviderError(
                "google",
                f"Provider returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.ConnectError as e:
            logger.warning("Google Maps geocoder connection error")
            raise GeocodingProviderError("google", "Connection to geocoding provider failed") from e
        except GeocodingProviderError:
            raise
        except Exception as e:
            logger.exception("Google Maps geocoder unexpected error")
            raise GeocodingProviderError("google", f"Unexpected error: {e}") from e

    @staticmethod
    def _check_status(data: dict) -> bool:
        """Return False for ZERO_RESULTS, True for OK; raise on API errors."""
        if not isinstance(data, dict):
            raise GeocodingProviderError("google", "Unexpected response shape")
        api_status = data.get("status", "UNKNOWN")

        if api_status == "ZERO_RESULTS":
            return False

        if api_status in ("REQUEST_DENIED", "OVER_QUERY_LIMIT", "INVALID_REQUEST"):
            msg = data.get("error_message", api_status)
            raise GeocodingProviderError("google", f"API error: {msg}")

        if api_status != "OK":
            raise GeocodingProviderError("google", f"Unexpected API status: {api_status}")

        return True

    def _parse_response(self, data: dict) -> list[GeocodingResult]:
        """Parse Google Maps API response into results.

        Results without usable coordinates are skipped with a warning.

        Args:
            data: Raw JSON response from Google Maps API.

        Returns:
            Parsed results; empty when nothing matched.

        Raises:
            GeocodingProviderError: On API-specific error statuses.
        """
        if not self._check_status(data):
            return []

        results: list[GeocodingResult] = []
        for item in data.get("results") or []:
            try:
                geometry = item["geometry"]
                location = geometry["location"]
                location_type = geometry.get("location_type", "APPROXIMATE")
                results.append(
                    GeocodingResult(
                        latitude=float(location["lat"]),
                        longitude=float(location["lng"]),
                        confidence_score=_LOCATION_TYPE_CONFIDENCE.get(location_type, 0.5),
                        raw_response=item,
                        matched_address=item.get("formatted_address"),
                        address=self._address_attributes(item),
                    )
                )
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unusable Google Maps result: {e}")
        return results

    @staticmethod
    def _address_attributes(item: dict) -> dict[str, str]:
        """Flatten address components into Nominatim-style keys."""
        attributes: dict[str, str] = {}
        for component in item.get("address_components", []):
            for component_type in component.get("types") or []:
                key = _COMPONENT_KEYS.get(component_type)
                if key and key not in attributes:
                    attributes[key] = str(component.get("long_name") or "")
        return attributes
