"""Location service — the single entry point for resolving Philippine addresses.

Owns the caches, providers, polygon store, and resolver. Validates input,
serves repeated requests from the geocode cache, and collapses identical
concurrent requests into one shared resolution.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from ph_locator.core.config import Settings, get_settings
from ph_locator.lib.boundary import PolygonStore
from ph_locator.lib.geocoder import (
    PH_CENTER,
    AddressHints,
    Anchor,
    BaseGeocoder,
    CacheRegistry,
    FeatureHit,
    GeocodingProviderError,
    InvalidLocationQueryError,
    LocationQuery,
    LocationResult,
    NominatimGeocoder,
    OverpassClient,
    ResolutionConfidence,
    StreetGeometry,
    format_anchor,
    get_configured_providers,
    haversine_meters,
    is_within_philippines,
    make_cache_key,
    normalize,
    normalize_city_hint,
)
from ph_locator.lib.geocoder.candidates import join_parts
from ph_locator.lib.matcher import apply_street_alias, street_name_score, street_tokens
from ph_locator.services.resolver_service import Resolver

NEAREST_STREET_DEFAULT_RADIUS_M = 220
NEAREST_STREET_MIN_RADIUS_M = 80
NEAREST_STREET_MAX_RADIUS_M = 800

STREET_GEOMETRY_RADIUS_M = 1500
STREET_GEOMETRY_WIDE_RADIUS_M = 2500
STREET_GEOMETRY_THRESHOLD = 0.4

# Closer ways score up to this much higher
STREET_DISTANCE_BONUS = 0.15


@dataclass(frozen=True)
class NearestStreet:
    """The closest named road to a point."""

    name: str
    source: str
    distance_m: float | None = None


def clamp_radius(radius_m: int | float) -> int:
    """Clamp a nearest-street search radius to the supported range."""
    return int(min(max(radius_m, NEAREST_STREET_MIN_RADIUS_M), NEAREST_STREET_MAX_RADIUS_M))


def vertex_distance(lat: float, lon: float, way: FeatureHit) -> float:
    """Distance in meters from a point to the nearest vertex of a way."""
    points = way.geometry or ((way.lat, way.lon),)
    return min(haversine_meters(lat, lon, p_lat, p_lon) for p_lat, p_lon in points)


def nearest_way(lat: float, lon: float, ways: list[FeatureHit]) -> tuple[FeatureHit, float] | None:
    """Way with the vertex closest to a point, and that distance in meters."""
    best: tuple[FeatureHit, float] | None = None
    for way in ways:
        distance = vertex_distance(lat, lon, way)
        if best is None or distance < best[1]:
            best = (way, distance)
    return best


def best_street_way(
    target_key: str,
    lat: float,
    lon: float,
    ways: list[FeatureHit],
    radius_m: int,
) -> StreetGeometry | None:
    """Score every name of every way against a street key and keep the best.

    The name score gains up to ``STREET_DISTANCE_BONUS`` for ways whose
    nearest vertex is close to the point, so totals can exceed 1.0. Ways
    without geometry are ignored; the first way wins ties.
    """
    best: StreetGeometry | None = None
    for way in ways:
        if not way.geometry:
            continue
        distance = vertex_distance(lat, lon, way)
        bonus = max(0.0, 1 - distance / radius_m) * STREET_DISTANCE_BONUS
        for name in way.names or (way.name,):
            score = street_name_score(target_key, name) + bonus
            if best is None or score > best.score:
                best = StreetGeometry(
                    name=name,
                    osm_id=way.osm_id,
                    score=score,
                    distance_m=round(distance, 1),
                    coordinates=way.geometry,
                )
    return best


class LocationService:
    """Resolution facade.

    Args:
        resolver: Fallback chain.
        caches: Cache instances; the geocode and poi caches are used here.
        providers: Address-search providers in fallback order.
        overpass: Named-feature query client, used for street lookups.
        street_radius_m: First search radius for street geometry.
        street_wide_radius_m: Search radius when nothing is found within the first.
        street_threshold: Minimum street geometry score to accept.
    """

    def __init__(
        self,
        resolver: Resolver,
        caches: CacheRegistry,
        providers: list[BaseGeocoder],
        overpass: OverpassClient,
        *,
        street_radius_m: int = STREET_GEOMETRY_RADIUS_M,
        street_wide_radius_m: int = STREET_GEOMETRY_WIDE_RADIUS_M,
        street_threshold: float = STREET_GEOMETRY_THRESHOLD,
    ) -> None:
        self._resolver = resolver
        self._caches = caches
        self._providers = providers
        self._overpass = overpass
        self._street_radius_m = street_radius_m
        self._street_wide_radius_m = max(street_wide_radius_m, street_radius_m)
        self._street_threshold = street_threshold
        self._in_flight: dict[str, asyncio.Task[LocationResult]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> "LocationService":
        """Wire up caches, providers, polygon store, and resolver from settings."""
        settings = settings or get_settings()
        caches = CacheRegistry.create(
            geocode_ttl=settings.cache_geocode_ttl,
            polygon_ttl=settings.cache_polygon_ttl,
            poi_ttl=settings.cache_poi_ttl,
            dataset_page_ttl=settings.cache_dataset_page_ttl,
            clock=clock,
        )
        providers = get_configured_providers(settings)
        boundary_provider = next(p for p in providers if isinstance(p, NominatimGeocoder))
        overpass = OverpassClient(
            settings.overpass_endpoint_list,
            timeout=settings.overpass_timeout,
            user_agent=settings.geocoder_user_agent,
        )
        polygon_store = PolygonStore(
            boundary_provider,
            caches.polygon,
            max_vertices=settings.boundary_max_vertices,
            search_km=settings.boundary_search_km,
        )
        resolver = Resolver(
            providers,
            polygon_store,
            overpass,
            caches.poi,
            match_threshold=settings.match_threshold,
            max_edit_distance=settings.match_max_edit_distance,
            min_dice=settings.match_min_dice,
            anchor_radius_m=settings.anchor_search_radius_m,
            search_km=settings.boundary_search_km,
        )
        logger.debug(f"Location service ready with providers: {[p.provider_name for p in providers]}")
        return cls(
            resolver,
            caches,
            providers,
            overpass,
            street_radius_m=settings.street_geometry_radius_m,
            street_wide_radius_m=settings.street_geometry_wide_radius_m,
            street_threshold=settings.street_geometry_threshold,
        )

    @property
    def caches(self) -> CacheRegistry:
        return self._caches

    async def resolve(
        self,
        query: str,
        hints: AddressHints | None = None,
        anchor: Anchor | None = None,
    ) -> LocationResult:
        """Resolve a free-text Philippine address to a point.

        Args:
            query: Free-text address or place name.
            hints: Optional street/vicinity/barangay/city/province hints.
            anchor: Optional coarse centre to bias and bound lookups.

        Returns:
            The resolved location.

        Raises:
            InvalidLocationQueryError: If the query is empty after normalization.
            NoMatchError: If every resolution step is exhausted.
        """
        if not normalize(query):
            msg = "query text is required"
            raise InvalidLocationQueryError(msg)

        hints = hints or AddressHints()
        location_query = LocationQuery(raw_text=query, hints=hints, anchor=anchor)
        key = make_cache_key(
            query,
            hints.street,
            hints.vicinity,
            hints.barangay,
            normalize_city_hint(hints.city, hints.province),
            hints.province,
            format_anchor(anchor.lat, anchor.lon) if anchor else None,
        )

        cached = self._caches.geocode.get(key)
        if cached is not None:
            logger.debug(f"Geocode cache hit: {key}")
            return cached

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._resolve_and_store(key, location_query))
            self._in_flight[key] = task
            task.add_done_callback(lambda done, k=key: self._forget(k, done))
        else:
            logger.debug(f"Joining in-flight resolution: {key}")

        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark the failure retrieved; every waiter may have been cancelled
        if not task.cancelled():
            task.exception()

    async def _resolve_and_store(self, key: str, query: LocationQuery) -> LocationResult:
        result = await self._resolver.resolve(query)
        self._caches.geocode.set(key, result)
        return result

    async def resolve_center(self, barangay: str = "", city: str = "", province: str = "") -> LocationResult:
        """Coarse centre for an area, for use as an anchor.

        Tries "barangay, city", then "city", then "province". Falls back to
        the centre of the Philippines when nothing resolves.

        Args:
            barangay: Barangay name.
            city: City or municipality.
            province: Province.

        Returns:
            The area centre; confidence is always unconstrained.
        """
        barangay = normalize(barangay)
        city_hint = normalize(normalize_city_hint(city, province))
        province = normalize(province)

        key = make_cache_key("center", barangay, city_hint, province)
        cached = self._caches.geocode.get(key)
        if cached is not None:
            return cached

        attempts = []
        if barangay:
            attempts.append(join_parts(barangay, city_hint))
        if city_hint:
            attempts.append(join_parts(city_hint))
        if province:
            attempts.append(join_parts(province))

        for address in attempts:
            for provider in self._providers:
                try:
                    results = await self._resolver.call_provider(provider, address, None)
                except GeocodingProviderError as e:
                    logger.warning(f"Centre lookup via {provider.provider_name} failed: {e.message}")
                    continue
                results = [r for r in results if is_within_philippines(r.latitude, r.longitude)]
                if not results:
                    continue
                best = results[0]
                result = LocationResult(
                    lat=best.latitude,
                    lon=best.longitude,
                    label=best.matched_address or address,
                    source=provider.provider_name,
                    confidence=ResolutionConfidence.UNCONSTRAINED,
                )
                self._caches.geocode.set(key, result)
                return result

        logger.info("Centre lookup fell back to the Philippines centre")
        lat, lon = PH_CENTER
        return LocationResult(
            lat=lat,
            lon=lon,
            label="Philippines",
            source="fallback",
            confidence=ResolutionConfidence.UNCONSTRAINED,
        )

    async def nearest_street(
        self,
        lat: float,
        lon: float,
        radius_m: int = NEAREST_STREET_DEFAULT_RADIUS_M,
    ) -> NearestStreet | None:
        """Name of the road nearest to a point.

        Reverse geocoders are asked first, in provider order; OpenStreetMap
        ways within the radius are the last resort.

        Args:
            lat: Latitude.
            lon: Longitude.
            radius_m: Search radius for the way lookup, clamped to 80-800 m.

        Returns:
            The nearest street, or None when nothing named is nearby.

        Raises:
            InvalidLocationQueryError: If the coordinates are not valid WGS84.
        """
        try:
            Anchor(lat=lat, lon=lon)
        except ValueError as e:
            raise InvalidLocationQueryError(str(e)) from e

        radius = clamp_radius(radius_m)
        key = make_cache_key("street", format_anchor(lat, lon), radius)
        cached = self._caches.poi.get(key)
        if cached is not None:
            return cached

        street = await self._reverse_street(lat, lon) or await self._nearest_way(lat, lon, radius)
        if street is not None:
            self._caches.poi.set(key, street)
        return street

    async def _reverse_street(self, lat: float, lon: float) -> NearestStreet | None:
        for provider in self._providers:
            try:
                async with asyncio.timeout(provider.timeout):
                    name = await provider.reverse_street(lat, lon)
            except TimeoutError:
                logger.warning(f"Reverse lookup via {provider.provider_name} timed out")
                continue
            except GeocodingProviderError as e:
                logger.warning(f"Reverse lookup via {provider.provider_name} failed: {e.message}")
                continue
            if name:
                return NearestStreet(name=name, source=provider.provider_name)
        return None

    async def _nearest_way(self, lat: float, lon: float, radius: int) -> NearestStreet | None:
        try:
            async with asyncio.timeout(self._overpass.timeout):
                ways = await self._overpass.ways_around(lat, lon, radius)
        except TimeoutError:
            logger.warning("Nearby way lookup timed out")
            return None
        except GeocodingProviderError as e:
            logger.warning(f"Nearby way lookup failed: {e.message}")
            return None

        found = nearest_way(lat, lon, ways)
        if found is None:
            return None
        way, distance = found
        return NearestStreet(name=way.name, source="overpass", distance_m=round(distance, 1))

    async def street_geometry(
        self,
        street: str,
        lat: float,
        lon: float,
        *,
        city: str = "",
        barangay: str = "",
    ) -> StreetGeometry | None:
        """Polyline of the mapped road that best matches a street name near a point.

        Roads whose names contain the street's leading words are fetched
        first, together with every named road close by. When that yields
        nothing, all named roads in the radius are fetched, and then all
        named roads in the wider radius. Names are scored by
        :func:`street_name_score` plus a bonus for proximity.

        Args:
            street: Street name, abbreviations allowed ("Aznar Rd.").
            lat: Latitude near the street.
            lon: Longitude near the street.
            city: City hint, used for local street aliases.
            barangay: Barangay hint, used for local street aliases.

        Returns:
            The best road, or None when nothing scores above the threshold
            or the feature provider is unavailable.

        Raises:
            InvalidLocationQueryError: If the street is blank or the
                coordinates are not valid WGS84.
        """
        try:
            Anchor(lat=lat, lon=lon)
        except ValueError as e:
            raise InvalidLocationQueryError(str(e)) from e
        target = apply_street_alias(street, city, barangay)
        if not target:
            msg = "street name is required"
            raise InvalidLocationQueryError(msg)

        key = make_cache_key("street-geometry", target, format_anchor(lat, lon))
        cached = self._caches.poi.get(key)
        if cached is not None:
            return cached

        radius = self._street_radius_m
        ways = await self._ways_with_geometry(
            self._overpass.named_ways_around(lat, lon, radius, street_tokens(target))
        )
        if not ways:
            ways = await self._ways_with_geometry(self._overpass.ways_around(lat, lon, radius))
        if not ways and self._street_wide_radius_m > radius:
            radius = self._street_wide_radius_m
            ways = await self._ways_with_geometry(self._overpass.ways_around(lat, lon, radius))

        found = best_street_way(target, lat, lon, ways, radius)
        if found is None or found.score < self._street_threshold:
            logger.debug(f"No street geometry for {target} among {len(ways)} ways")
            return None
        self._caches.poi.set(key, found)
        return found

    async def _ways_with_geometry(self, lookup: Awaitable[list[FeatureHit]]) -> list[FeatureHit]:
        try:
            async with asyncio.timeout(self._overpass.timeout):
                ways = await lookup
        except TimeoutError:
            logger.warning("Street geometry lookup timed out")
            return []
        except GeocodingProviderError as e:
            logger.warning(f"Street geometry lookup failed: {e.message}")
            return []
        return [way for way in ways if way.geometry]
