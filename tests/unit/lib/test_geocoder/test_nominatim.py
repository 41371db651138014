"""Unit tests for Nominatim geocoder provider."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from ph_locator.lib.geocoder.base import GeocodingProviderError, ProviderTimeoutError
from ph_locator.lib.geocoder.nominatim import NominatimGeocoder
from ph_locator.lib.geocoder.point_lookup import BoundingBox


def _json_response(payload: object) -> MagicMock:
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = payload
    mock_response.raise_for_status = MagicMock()
    return mock_response


class TestNominatimResponseParsing:
    """Tests for Nominatim API response parsing."""

    def setup_method(self) -> None:
        self.geocoder = NominatimGeocoder()

    def test_successful_match(self) -> None:
        data = [
            {
                "lat": "10.3050",
                "lon": "123.8950",
                "display_name": "A. H. Mendoza Street, Sambag II, Cebu City, Cebu",
                "importance": 0.42,
                "address": {"road": "A. H. Mendoza Street", "suburb": "Sambag II", "city": "Cebu City"},
            }
        ]
        results = self.geocoder._parse_response(data)
        assert len(results) == 1
        assert results[0].latitude == 10.305
        assert results[0].longitude == 123.895
        assert results[0].confidence_score == 0.42
        assert results[0].matched_address == "A. H. Mendoza Street, Sambag II, Cebu City, Cebu"
        assert results[0].address["suburb"] == "Sambag II"

    def test_no_results(self) -> None:
        assert self.geocoder._parse_response([]) == []

    def test_importance_clamped(self) -> None:
        results = self.geocoder._parse_response([{"lat": "10.0", "lon": "123.0", "importance": 1.7}])
        assert results[0].confidence_score == 1.0

    def test_missing_lat_skipped(self) -> None:
        assert self.geocoder._parse_response([{"lon": "123.0", "importance": 0.5}]) == []

    def test_malformed_coords_skipped(self) -> None:
        assert self.geocoder._parse_response([{"lat": "not-a-number", "lon": "123.0"}]) == []

    def test_out_of_range_place_skipped_others_kept(self) -> None:
        data = [
            {"lat": "91.0", "lon": "123.9", "display_name": "Broken"},
            {"lat": "10.3", "lon": "123.9", "importance": "high", "display_name": "Bad importance"},
            "not-a-place",
            {"lat": "10.2966", "lon": "123.9019", "display_name": "Colon Street"},
        ]
        results = self.geocoder._parse_response(data)
        assert [r.matched_address for r in results] == ["Colon Street"]

    def test_boundary_address_must_be_a_mapping(self) -> None:
        data = [{"display_name": "Sambag II", "geojson": {"type": "Polygon"}, "address": "Cebu City"}]
        assert self.geocoder._parse_boundaries(data)[0].address == {}

    def test_boundaries_without_geometry_skipped(self) -> None:
        data = [
            {"display_name": "Sambag II", "lat": "10.3", "lon": "123.9"},
            {
                "display_name": "Sambag II, Cebu City",
                "geojson": {"type": "Polygon", "coordinates": []},
                "address": {"city": "Cebu City"},
            },
        ]
        features = self.geocoder._parse_boundaries(data)
        assert len(features) == 1
        assert features[0].display_name == "Sambag II, Cebu City"
        assert features[0].address == {"city": "Cebu City"}


class TestNominatimRequests:
    """Tests for request parameters."""

    async def test_search_params_with_viewbox(self) -> None:
        geocoder = NominatimGeocoder(email="ops@example.com")
        viewbox = BoundingBox(left=123.8, top=10.4, right=124.0, bottom=10.2)

        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_json_response([])) as mock_get:
            await geocoder.search("Colon Street, Cebu City, Philippines", viewbox=viewbox)

        params = mock_get.await_args.kwargs["params"]
        assert params["q"] == "Colon Street, Cebu City, Philippines"
        assert params["format"] == "jsonv2"
        assert params["addressdetails"] == 1
        assert params["countrycodes"] == "ph"
        assert params["viewbox"] == "123.8,10.4,124.0,10.2"
        assert params["bounded"] == 1
        assert params["email"] == "ops@example.com"
        assert "polygon_geojson" not in params
        headers = mock_get.await_args.kwargs["headers"]
        assert headers["Accept-Language"] == "en"

    async def test_search_without_viewbox_is_unbounded(self) -> None:
        geocoder = NominatimGeocoder()
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_json_response([])) as mock_get:
            await geocoder.search("Cebu City, Philippines")

        params = mock_get.await_args.kwargs["params"]
        assert "viewbox" not in params
        assert "bounded" not in params

    async def test_search_boundaries_requests_polygons(self) -> None:
        geocoder = NominatimGeocoder()
        payload = [{"display_name": "Sambag II", "geojson": {"type": "Polygon", "coordinates": []}}]
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_json_response(payload)) as mock_get:
            features = await geocoder.search_boundaries("Sambag II, Cebu City, Cebu, Philippines")

        params = mock_get.await_args.kwargs["params"]
        assert params["polygon_geojson"] == 1
        assert params["limit"] == 3
        assert len(features) == 1

    async def test_reverse_street_prefers_road(self) -> None:
        geocoder = NominatimGeocoder()
        payload = {"address": {"footway": "Footpath", "road": "Colon Street", "city": "Cebu City"}}
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_json_response(payload)) as mock_get:
            name = await geocoder.reverse_street(10.2966, 123.9019)

        assert name == "Colon Street"
        assert mock_get.await_args.args[0].endswith("/reverse")

    async def test_reverse_street_falls_back_to_path(self) -> None:
        geocoder = NominatimGeocoder()
        payload = {"address": {"path": "Sidewalk Path"}}
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_json_response(payload)):
            assert await geocoder.reverse_street(10.2966, 123.9019) == "Sidewalk Path"

    async def test_reverse_street_no_road(self) -> None:
        geocoder = NominatimGeocoder()
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_json_response({"error": "x"})):
            assert await geocoder.reverse_street(10.2966, 123.9019) is None


class TestNominatimGeocoderErrors:
    """Tests for NominatimGeocoder error differentiation."""

    async def test_timeout_raises_provider_timeout(self) -> None:
        geocoder = NominatimGeocoder(timeout=0.1)
        with (
            patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get,
            pytest.raises(ProviderTimeoutError, match="nominatim"),
        ):
            mock_get.side_effect = httpx.TimeoutException("Connection timed out")
            await geocoder.search("Colon Street, Cebu City, Philippines")

    async def test_http_error_raises_provider_error(self) -> None:
        geocoder = NominatimGeocoder()
        mock_response = httpx.Response(status_code=429, request=httpx.Request("GET", "http://test"))
        with (
            patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get,
            pytest.raises(GeocodingProviderError) as exc_info,
        ):
            mock_get.side_effect = httpx.HTTPStatusError(
                "Rate limited", request=mock_response.request, response=mock_response
            )
            await geocoder.search("Colon Street, Cebu City, Philippines")
        assert exc_info.value.status_code == 429

    async def test_connection_error_raises_provider_error(self) -> None:
        geocoder = NominatimGeocoder()
        with (
            patch("httpx.AsyncClient.get", new_callable=AsyncMock) as mock_get,
            pytest.raises(GeocodingProviderError, match="nominatim"),
        ):
            mock_get.side_effect = httpx.ConnectError("Connection refused")
            await geocoder.search_boundaries("Sambag II, Cebu City, Philippines")

    async def test_successful_match_returns_result(self) -> None:
        geocoder = NominatimGeocoder()
        payload = [{"lat": "10.2966", "lon": "123.9019", "display_name": "Colon Street", "importance": 0.5}]
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_json_response(payload)):
            results = await geocoder.search("Colon Street, Cebu City, Philippines")

        assert len(results) == 1
        assert results[0].latitude == 10.2966

    async def test_empty_results_returns_empty_list(self) -> None:
        geocoder = NominatimGeocoder()
        with patch("httpx.AsyncClient.get", new_callable=AsyncMock, return_value=_json_response([])):
            results = await geocoder.search("Nonexistent Road, Philippines")

        assert results == []


class TestNominatimProperties:
    """Tests for NominatimGeocoder base properties."""

    def test_provider_name(self) -> None:
        assert NominatimGeocoder().provider_name == "nominatim"

    def test_rate_limit_delay_public_instance(self) -> None:
        assert NominatimGeocoder().rate_limit_delay == 1.0

    def test_rate_limit_delay_self_hosted(self) -> None:
        assert NominatimGeocoder(base_url="http://nominatim.internal").rate_limit_delay == 0.0

    def test_requires_api_key(self) -> None:
        assert NominatimGeocoder().requires_api_key is False

    def test_is_configured(self) -> None:
        assert NominatimGeocoder().is_configured is True

    def test_timeout(self) -> None:
        assert NominatimGeocoder(timeout=9.0).timeout == 9.0
