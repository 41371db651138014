"""Search boxes, the Philippine service area, and great-circle distance."""

import math
from dataclasses import dataclass

_EARTH_RADIUS_M = 6_371_000
_KM_PER_DEGREE = 111.0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned search box in WGS84 degrees."""

    left: float
    top: float
    right: float
    bottom: float

    @classmethod
    def around(cls, lat: float, lon: float, half_width_km: float) -> "BoundingBox":
        """Build a box extending ``half_width_km`` in every direction from a point."""
        d_lat = half_width_km / _KM_PER_DEGREE
        d_lon = half_width_km / (_KM_PER_DEGREE * math.cos(math.radians(lat)))
        return cls(left=lon - d_lon, top=lat + d_lat, right=lon + d_lon, bottom=lat - d_lat)

    def to_viewbox(self) -> str:
        """Format as a Nominatim ``viewbox`` parameter (``x1,y1,x2,y2``)."""
        return f"{self.left},{self.top},{self.right},{self.bottom}"

    def contains(self, lat: float, lon: float) -> bool:
        return self.bottom <= lat <= self.top and self.left <= lon <= self.right


# Philippine archipelago with a small buffer (WGS84)
PH_BOUNDS = BoundingBox(left=116.0, top=21.3, right=127.0, bottom=4.2)

# Geographic centre used when nothing more specific resolves
PH_CENTER = (12.8797, 121.774)


def is_within_philippines(lat: float, lon: float) -> bool:
    """Return True if coordinates fall within the Philippine service area."""
    return PH_BOUNDS.contains(lat, lon)


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in meters."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    s1 = math.sin(d_lat / 2)
    s2 = math.sin(d_lon / 2)
    c = s1 * s1 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * s2 * s2
    return 2 * _EARTH_RADIUS_M * math.atan2(math.sqrt(c), math.sqrt(1 - c))
