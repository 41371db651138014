"""Unit tests for the location resolution CLI commands."""

import json
import sys
from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from loguru import logger
from typer.testing import CliRunner

from ph_locator.cli.app import app
from ph_locator.lib.geocoder import (
    Anchor,
    InvalidLocationQueryError,
    LocationResult,
    NoMatchError,
    ResolutionConfidence,
    StreetGeometry,
)
from ph_locator.services.location_service import NearestStreet

runner = CliRunner()

CENTROID = LocationResult(
    lat=10.305,
    lon=123.895,
    label="Sambag II, Cebu City, Cebu (centroid)",
    source="polygon",
    confidence=ResolutionConfidence.CENTROID,
)


@pytest.fixture(autouse=True)
def _restore_sinks() -> Iterator[None]:
    yield
    logger.remove()
    logger.add(sys.__stderr__, level="INFO")


def _service(**methods: AsyncMock) -> MagicMock:
    service = MagicMock()
    for name, mock in methods.items():
        setattr(service, name, mock)
    return service


class TestResolveCommand:
    """Tests for `ph-locator resolve`."""

    def test_resolve_text_output(self) -> None:
        service = _service(resolve=AsyncMock(return_value=CENTROID))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(
                app,
                ["resolve", "Interior Lot", "--barangay", "Sambag II", "--city", "Cebu City", "--province", "Cebu"],
            )

        assert result.exit_code == 0, result.output
        assert "10.305000, 123.895000" in result.output
        assert "Sambag II, Cebu City, Cebu (centroid)" in result.output
        assert "centroid" in result.output
        query, hints, anchor = service.resolve.await_args.args
        assert query == "Interior Lot"
        assert hints.barangay == "Sambag II"
        assert hints.province == "Cebu"
        assert anchor is None

    def test_resolve_json_output(self) -> None:
        service = _service(resolve=AsyncMock(return_value=CENTROID))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(app, ["resolve", "Sambag II", "--json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["lat"] == 10.305
        assert payload["confidence"] == "centroid"
        assert payload["boundary"] is None
        assert payload["match"] is None

    def test_resolve_passes_anchor(self) -> None:
        service = _service(resolve=AsyncMock(return_value=CENTROID))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(app, ["resolve", "Colon St", "--anchor-lat", "10.3", "--anchor-lon", "123.9"])

        assert result.exit_code == 0, result.output
        assert service.resolve.await_args.args[2] == Anchor(lat=10.3, lon=123.9)

    def test_half_anchor_rejected(self) -> None:
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings") as mock_factory:
            result = runner.invoke(app, ["resolve", "Colon St", "--anchor-lat", "10.3"])

        assert result.exit_code == 2
        assert "must be given together" in result.output
        mock_factory.assert_not_called()

    def test_no_match_exit_code(self) -> None:
        service = _service(resolve=AsyncMock(side_effect=NoMatchError("Nowhere Road")))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(app, ["resolve", "Nowhere Road"])

        assert result.exit_code == 1
        assert "No location found" in result.output

    def test_blank_query_exit_code(self) -> None:
        service = _service(resolve=AsyncMock(side_effect=InvalidLocationQueryError("query text is required")))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(app, ["resolve", "  "])

        assert result.exit_code == 2
        assert "query text is required" in result.output


class TestCenterCommand:
    """Tests for `ph-locator center`."""

    def test_center(self) -> None:
        fallback = LocationResult(
            lat=12.8797,
            lon=121.774,
            label="Philippines",
            source="fallback",
            confidence=ResolutionConfidence.UNCONSTRAINED,
        )
        service = _service(resolve_center=AsyncMock(return_value=fallback))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(app, ["center", "--city", "Atlantis", "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["source"] == "fallback"
        service.resolve_center.assert_awaited_once_with("", "Atlantis", "")


class TestNearestStreetCommand:
    """Tests for `ph-locator nearest-street`."""

    def test_found(self) -> None:
        street = NearestStreet(name="Colon Street", source="overpass", distance_m=12.5)
        service = _service(nearest_street=AsyncMock(return_value=street))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(app, ["nearest-street", "--lat", "10.2966", "--lon", "123.9019"])

        assert result.exit_code == 0, result.output
        assert "Colon Street (12.5 m) [overpass]" in result.output
        service.nearest_street.assert_awaited_once_with(10.2966, 123.9019, 220)

    def test_json(self) -> None:
        street = NearestStreet(name="Colon Street", source="nominatim")
        service = _service(nearest_street=AsyncMock(return_value=street))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(
                app, ["nearest-street", "--lat", "10.2966", "--lon", "123.9019", "--radius", "500", "--json"]
            )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"name": "Colon Street", "source": "nominatim", "distance_m": None}
        assert service.nearest_street.await_args.args[2] == 500

    def test_nothing_nearby(self) -> None:
        service = _service(nearest_street=AsyncMock(return_value=None))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(app, ["nearest-street", "--lat", "10.3", "--lon", "123.9"])

        assert result.exit_code == 1
        assert "No named street nearby" in result.output

    def test_invalid_coordinates(self) -> None:
        service = _service(nearest_street=AsyncMock(side_effect=InvalidLocationQueryError("latitude must be between")))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(app, ["nearest-street", "--lat", "95", "--lon", "123.9"])

        assert result.exit_code == 2
        assert "latitude" in result.output


class TestStreetGeometryCommand:
    """Tests for `ph-locator street-geometry`."""

    def test_matched(self) -> None:
        found = StreetGeometry(
            name="Aznar Street",
            osm_id=11,
            score=1.15,
            distance_m=0.0,
            coordinates=((10.305, 123.895), (10.306, 123.895)),
        )
        service = _service(street_geometry=AsyncMock(return_value=found))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(
                app,
                [
                    "street-geometry",
                    "Aznar Rd",
                    "--lat",
                    "10.305",
                    "--lon",
                    "123.895",
                    "--city",
                    "Cebu City",
                    "--barangay",
                    "Sambag II",
                ],
            )

        assert result.exit_code == 0, result.output
        body = json.loads(result.stdout)
        assert body["matched"] is True
        assert body["features"][0]["geometry"] == {
            "type": "LineString",
            "coordinates": [[123.895, 10.305], [123.895, 10.306]],
        }
        service.street_geometry.assert_awaited_once_with(
            "Aznar Rd", 10.305, 123.895, city="Cebu City", barangay="Sambag II"
        )

    def test_unmatched(self) -> None:
        service = _service(street_geometry=AsyncMock(return_value=None))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(app, ["street-geometry", "Nowhere Road", "--lat", "10.3", "--lon", "123.9"])

        assert result.exit_code == 1
        assert "No matching street nearby" in result.output

    def test_invalid_request(self) -> None:
        service = _service(street_geometry=AsyncMock(side_effect=InvalidLocationQueryError("street name is required")))
        with patch("ph_locator.cli.resolve_cmd.LocationService.from_settings", return_value=service):
            result = runner.invoke(app, ["street-geometry", " ", "--lat", "10.3", "--lon", "123.9"])

        assert result.exit_code == 2
        assert "street name is required" in result.output
