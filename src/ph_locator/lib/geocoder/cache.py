"""Short-lived in-memory caches for geocoding, polygon, POI, and dataset results.

Entries expire lazily: an expired entry is discarded the next time it is
read. There is no background sweep and no invalidation across caches, so a
stale polygon and a fresh geocode result may coexist.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from ph_locator.lib.geocoder.address import canonical_loose

V = TypeVar("V")

# Anchor coordinates are rounded to this many decimals (~1 m) in cache keys
ANCHOR_KEY_PRECISION = 5


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """A cached value with its creation time and lifetime (both in seconds)."""

    key: str
    value: V
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return (now - self.created_at) >= self.ttl


class TtlCache(Generic[V]):
    """Thread-safe TTL map with expire-on-read semantics.

    Args:
        name: Cache name used in logs and stats.
        ttl_seconds: Lifetime of each entry.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[V]] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, key: str) -> V | None:
        """Return the cached value, or None on a miss or an expired entry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: V) -> None:
        """Store a value, replacing any previous entry for the key."""
        with self._lock:
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                created_at=self._clock(),
                ttl=self._ttl_seconds,
            )

    def invalidate(self, key: str | None = None) -> None:
        """Drop one entry, or every entry when no key is given."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def format_anchor(lat: float | None, lon: float | None) -> str:
    """Render anchor coordinates for a cache key; empty when absent."""
    if lat is None or lon is None:
        return ""
    return f"{lat:.{ANCHOR_KEY_PRECISION}f},{lon:.{ANCHOR_KEY_PRECISION}f}"


def make_cache_key(*parts: object) -> str:
    """Build a lower-cased, normalized ``|``-joined key from every input that affects a result."""
    rendered: list[str] = []
    for part in parts:
        if part is None:
            rendered.append("")
        elif isinstance(part, str):
            rendered.append(canonical_loose(part))
        else:
            rendered.append(str(part).lower())
    return "|".join(rendered)


@dataclass
class CacheRegistry:
    """The four independent caches owned by the resolution facade."""

    geocode: TtlCache
    polygon: TtlCache
    poi: TtlCache
    dataset_pages: TtlCache

    @classmethod
    def create(
        cls,
        *,
        geocode_ttl: float,
        polygon_ttl: float,
        poi_ttl: float,
        dataset_page_ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> "CacheRegistry":
        return cls(
            geocode=TtlCache("geocode", geocode_ttl, clock=clock),
            polygon=TtlCache("polygon", polygon_ttl, clock=clock),
            poi=TtlCache("poi", poi_ttl, clock=clock),
            dataset_pages=TtlCache("dataset_pages", dataset_page_ttl, clock=clock),
        )

    def stats(self) -> dict[str, int]:
        """Number of live-or-unswept entries per cache."""
        return {c.name: len(c) for c in (self.geocode, self.polygon, self.poi, self.dataset_pages)}
