"""Unit tests for barangay ring geometry."""

import pytest

from ph_locator.lib.boundary.geometry import (
    boundary_from_geojson,
    distinct_vertices,
    downsample_ring,
    point_in_boundary,
    ring_area,
    ring_centroid,
    select_outer_ring,
)
from ph_locator.lib.geocoder.base import AdministrativeBoundary, Anchor

UNIT_SQUARE = [(0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0), (0.0, 0.0)]


def _square(lon: float, lat: float, size: float) -> list[list[float]]:
    return [[lon, lat], [lon + size, lat], [lon + size, lat + size], [lon, lat + size], [lon, lat]]


class TestPointInBoundary:
    """Tests for ray-casting containment."""

    def test_centre_inside(self) -> None:
        assert point_in_boundary(0.5, 0.5, UNIT_SQUARE) is True

    def test_outside(self) -> None:
        assert point_in_boundary(1.5, 0.5, UNIT_SQUARE) is False
        assert point_in_boundary(0.5, -0.1, UNIT_SQUARE) is False

    def test_accepts_boundary(self, sambag_boundary: AdministrativeBoundary) -> None:
        assert point_in_boundary(10.305, 123.895, sambag_boundary) is True
        assert point_in_boundary(10.320, 123.895, sambag_boundary) is False

    def test_absent_or_degenerate(self) -> None:
        assert point_in_boundary(0.5, 0.5, None) is False
        assert point_in_boundary(0.5, 0.5, [(0.0, 0.0), (1.0, 1.0)]) is False

    def test_concave_ring(self) -> None:
        # C shape open to the east
        ring = [(0, 0), (0, 3), (3, 3), (3, 2), (1, 2), (1, 1), (3, 1), (3, 0), (0, 0)]
        ring = [(float(lat), float(lon)) for lon, lat in ring]
        assert point_in_boundary(0.5, 2.0, ring) is True
        assert point_in_boundary(1.5, 2.0, ring) is False


class TestSelectOuterRing:
    """Tests for outer ring selection."""

    def test_polygon(self) -> None:
        ring = select_outer_ring({"type": "Polygon", "coordinates": [_square(123.0, 10.0, 0.01)]})
        assert ring is not None
        assert len(ring) == 5

    def test_multipolygon_keeps_larger_ring(self) -> None:
        geojson = {
            "type": "MultiPolygon",
            "coordinates": [
                [_square(123.0, 10.0, 0.001)],
                [_square(124.0, 11.0, 0.01)],
            ],
        }
        ring = select_outer_ring(geojson)
        assert ring is not None
        assert ring_area(ring) == pytest.approx(0.0001)
        assert ring[0] == (124.0, 11.0)

    def test_point_is_not_areal(self) -> None:
        assert select_outer_ring({"type": "Point", "coordinates": [123.0, 10.0]}) is None

    def test_missing_or_malformed(self) -> None:
        assert select_outer_ring(None) is None
        assert select_outer_ring({}) is None
        assert select_outer_ring({"type": "Polygon"}) is None


class TestDownsampleRing:
    """Tests for vertex capping."""

    def test_small_ring_kept_and_swapped_to_lat_lon(self) -> None:
        ring = downsample_ring(_square(123.0, 10.0, 0.01), max_vertices=240)
        assert ring[0] == (10.0, 123.0)
        assert ring[1] == (10.0, 123.01)
        assert len(ring) == 5

    def test_capped_and_closed(self) -> None:
        dense = [[123.0 + i * 0.0001, 10.0 + (i % 7) * 0.0001] for i in range(1000)]
        ring = downsample_ring(dense, max_vertices=240)
        assert len(ring) <= 240
        assert ring[0] == ring[-1]

    def test_empty(self) -> None:
        assert downsample_ring([], max_vertices=240) == []


class TestCentroid:
    """Tests for the vertex-mean centroid."""

    def test_closing_vertex_excluded(self) -> None:
        assert ring_centroid(UNIT_SQUARE) == Anchor(lat=0.5, lon=0.5)

    def test_too_few_vertices(self) -> None:
        assert ring_centroid([(0.0, 0.0), (1.0, 1.0), (0.0, 0.0)]) is None

    def test_distinct_vertices(self) -> None:
        assert distinct_vertices(UNIT_SQUARE) == UNIT_SQUARE[:-1]


class TestBoundaryFromGeojson:
    """Tests for boundary construction."""

    def test_builds_boundary(self, sambag_boundary: AdministrativeBoundary) -> None:
        assert sambag_boundary.ring[0] == sambag_boundary.ring[-1]
        assert sambag_boundary.centroid.lat == pytest.approx(10.305)
        assert sambag_boundary.centroid.lon == pytest.approx(123.895)
        assert point_in_boundary(sambag_boundary.centroid.lat, sambag_boundary.centroid.lon, sambag_boundary)

    def test_degenerate_geometry_is_absent(self) -> None:
        line = {"type": "LineString", "coordinates": [[123.0, 10.0], [123.1, 10.1]]}
        assert boundary_from_geojson("k", line) is None

    def test_swapped_axes_are_absent(self) -> None:
        swapped = {
            "type": "Polygon",
            "coordinates": [[[10.30, 123.89], [10.31, 123.89], [10.31, 123.90], [10.30, 123.90], [10.30, 123.89]]],
        }
        assert boundary_from_geojson("k", swapped) is None
