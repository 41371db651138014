"""Boundary library — barangay outlines and containment tests.

Public API:
    - PolygonStore: Fetch, simplify, and cache barangay outlines
    - select_outer_ring: Largest outer ring of a Polygon/MultiPolygon
    - downsample_ring: Cap the vertex count of a ring
    - ring_centroid: Vertex-mean centroid of a ring
    - point_in_boundary: Ray-casting containment test
    - boundary_from_geojson: Build an AdministrativeBoundary from GeoJSON
"""

from ph_locator.lib.boundary.geometry import (
    DEFAULT_MAX_VERTICES,
    boundary_from_geojson,
    distinct_vertices,
    downsample_ring,
    point_in_boundary,
    ring_area,
    ring_centroid,
    select_outer_ring,
)
from ph_locator.lib.boundary.store import PolygonStore, prefer_matching

__all__ = [
    "DEFAULT_MAX_VERTICES",
    "PolygonStore",
    "boundary_from_geojson",
    "distinct_vertices",
    "downsample_ring",
    "point_in_boundary",
    "prefer_matching",
    "ring_area",
    "ring_centroid",
    "select_outer_ring",
]
