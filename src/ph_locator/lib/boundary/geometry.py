"""Barangay ring extraction, simplification, and containment tests.

GeoJSON coordinates are ``(lon, lat)``; rings produced here are
``(lat, lon)`` to match how callers address points.
"""

import math
from collections.abc import Sequence
from typing import Any

from loguru import logger
from shapely.errors import GeometryTypeError
from shapely.geometry import MultiPolygon, Polygon, shape

from ph_locator.lib.geocoder.base import AdministrativeBoundary, Anchor

DEFAULT_MAX_VERTICES = 240

LatLon = tuple[float, float]


def ring_area(ring: Sequence[Sequence[float]]) -> float:
    """Absolute shoelace area of a ring in squared coordinate units."""
    if len(ring) < 3:
        return 0.0
    return Polygon([(p[0], p[1]) for p in ring]).area


def select_outer_ring(geojson: dict[str, Any] | None) -> list[tuple[float, float]] | None:
    """Return the largest-area outer ring of a Polygon or MultiPolygon.

    Smaller parts of a MultiPolygon (enclaves, islets) are discarded.

    Args:
        geojson: GeoJSON geometry mapping.

    Returns:
        The outer ring as closed ``(lon, lat)`` pairs, or None for
        missing, malformed, or non-areal geometry.
    """
    if not geojson:
        return None
    try:
        geom = shape(geojson)
    except (GeometryTypeError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning(f"Unparseable boundary geometry: {e}")
        return None

    if isinstance(geom, Polygon):
        polygons = [geom]
    elif isinstance(geom, MultiPolygon):
        polygons = list(geom.geoms)
    else:
        logger.debug(f"Skipping unsupported boundary geometry type: {geom.geom_type}")
        return None

    rings = [list(p.exterior.coords) for p in polygons if not p.is_empty]
    if not rings:
        return None

    best = max(rings, key=ring_area)
    return [(float(x), float(y)) for x, y, *_ in best]


def downsample_ring(ring: Sequence[Sequence[float]], max_vertices: int = DEFAULT_MAX_VERTICES) -> list[LatLon]:
    """Keep every n-th vertex so the closed ring has at most ``max_vertices`` points.

    Args:
        ring: ``(lon, lat)`` vertices.
        max_vertices: Upper bound on the returned ring length, closing point included.

    Returns:
        Closed ring of ``(lat, lon)`` pairs (empty if ``ring`` is empty).
    """
    if not ring:
        return []

    step = max(1, math.ceil(len(ring) / max(1, max_vertices - 1)))
    sampled = [(float(p[1]), float(p[0])) for p in ring[::step]]
    if sampled[0] != sampled[-1]:
        sampled.append(sampled[0])
    return sampled


def distinct_vertices(ring: Sequence[LatLon]) -> list[LatLon]:
    """Ring vertices without the closing duplicate."""
    if len(ring) > 1 and ring[0] == ring[-1]:
        return list(ring[:-1])
    return list(ring)


def ring_centroid(ring: Sequence[LatLon]) -> Anchor | None:
    """Arithmetic mean of the ring's distinct vertices.

    This is not the area-weighted centroid; for the roughly convex shapes of
    most barangays it lands close enough, but concave outlines can put it
    outside the ring.
    """
    vertices = distinct_vertices(ring)
    if len(vertices) < 3:
        return None
    lat = sum(p[0] for p in vertices) / len(vertices)
    lon = sum(p[1] for p in vertices) / len(vertices)
    return Anchor(lat=lat, lon=lon)


def point_in_boundary(lat: float, lon: float, boundary: AdministrativeBoundary | Sequence[LatLon] | None) -> bool:
    """Ray-casting containment test against a ``(lat, lon)`` ring.

    Membership of points lying exactly on an edge is implementation-defined.
    """
    if boundary is None:
        return False
    ring = boundary.ring if isinstance(boundary, AdministrativeBoundary) else boundary
    if len(ring) < 3:
        return False

    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        yi, xi = ring[i]
        yj, xj = ring[j]
        if (yi > lat) != (yj > lat) and lon < (xj - xi) * (lat - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def boundary_from_geojson(
    key: str,
    geojson: dict[str, Any] | None,
    max_vertices: int = DEFAULT_MAX_VERTICES,
) -> AdministrativeBoundary | None:
    """Build a simplified boundary from a GeoJSON geometry.

    Returns:
        The boundary, or None when the geometry yields fewer than three
        distinct vertices or lies outside WGS84 ranges.
    """
    outer = select_outer_ring(geojson)
    if not outer:
        return None
    ring = downsample_ring(outer, max_vertices)
    if not all(-90 <= lat <= 90 and -180 <= lon <= 180 for lat, lon in ring):
        logger.warning(f"Boundary {key} has out-of-range coordinates")
        return None
    centroid = ring_centroid(ring)
    if centroid is None:
        return None
    return AdministrativeBoundary(key=key, ring=tuple(ring), centroid=centroid)
