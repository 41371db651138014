"""Resolver service — the ordered fallback chain behind every location lookup.

Strategies run sequentially, one provider call at a time, and each returns a
StepOutcome. The first SUCCESS wins:

1. polygon feature search: named roads/POIs inside the barangay ring
2. commercial search: a keyed provider's point, locked to the barangay ring
3. polygon centroid: the barangay ring's vertex mean
4. anchor feature search: named roads/POIs near the anchor (no ring known)
5. address search: every provider over the candidate queries
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from ph_locator.lib.boundary import PolygonStore, point_in_boundary
from ph_locator.lib.geocoder import (
    AdministrativeBoundary,
    BaseGeocoder,
    BoundingBox,
    FeatureHit,
    GeocodingProviderError,
    GeocodingResult,
    LocationQuery,
    LocationResult,
    NoMatchError,
    OverpassClient,
    ResolutionConfidence,
    TtlCache,
    feature_name_targets,
    format_anchor,
    generate_candidates,
    is_within_philippines,
    make_cache_key,
    matches_hint,
    normalize,
    normalize_city_hint,
)
from ph_locator.lib.geocoder.candidates import dedupe, join_parts
from ph_locator.lib.matcher import MatchMethod, MatchResult, best_match

# Address attributes that name the barangay of an address-search result
BARANGAY_LIKE_KEYS = ("suburb", "village", "quarter", "neighbourhood", "city_district", "hamlet")
CITY_LIKE_KEYS = ("city", "town", "municipality", "county")
STATE_LIKE_KEYS = ("state", "region", "province")


class StepStatus(StrEnum):
    """Result of a single fallback step."""

    SUCCESS = "success"
    SKIP = "skip"
    FAIL = "fail"


@dataclass(frozen=True)
class StepOutcome:
    """Tagged outcome of a fallback step."""

    status: StepStatus
    result: LocationResult | None = None
    reason: str = ""

    @classmethod
    def success(cls, result: LocationResult) -> "StepOutcome":
        return cls(StepStatus.SUCCESS, result=result)

    @classmethod
    def skip(cls, reason: str = "") -> "StepOutcome":
        return cls(StepStatus.SKIP, reason=reason)

    @classmethod
    def fail(cls, reason: str) -> "StepOutcome":
        return cls(StepStatus.FAIL, reason=reason)


@dataclass
class ResolutionContext:
    """Per-request state shared by the fallback steps."""

    query: LocationQuery
    barangay: str
    city: str
    province: str
    boundary: AdministrativeBoundary | None = None

    @property
    def area_label(self) -> str:
        return ", ".join(p for p in (self.barangay, self.city, self.province) if p)


def confidence_percent(match: MatchResult) -> int:
    return round(match.score * 100)


class Resolver:
    """Resolves a LocationQuery to a point through the fallback chain.

    Args:
        providers: Address-search providers in fallback order.
        polygon_store: Barangay outline source.
        overpass: Named-feature query client.
        poi_cache: Cache for feature query results.
        match_threshold: Minimum fuzzy-match score to accept a feature.
        max_edit_distance: Edit distance at or below which a name qualifies.
        min_dice: Dice coefficient at or above which a name qualifies.
        anchor_radius_m: Radius for the anchor feature search.
        search_km: Half-width of the address-search box around the anchor.
    """

    def __init__(
        self,
        providers: list[BaseGeocoder],
        polygon_store: PolygonStore,
        overpass: OverpassClient,
        poi_cache: TtlCache,
        *,
        match_threshold: float = 0.6,
        max_edit_distance: int = 3,
        min_dice: float = 0.45,
        anchor_radius_m: int = 3000,
        search_km: float = 10.0,
    ) -> None:
        self._providers = providers
        self._polygon_store = polygon_store
        self._overpass = overpass
        self._poi_cache = poi_cache
        self._match_threshold = match_threshold
        self._max_edit_distance = max_edit_distance
        self._min_dice = min_dice
        self._anchor_radius_m = anchor_radius_m
        self._search_km = search_km
        self._last_call: dict[str, float] = {}
        self._steps: list[tuple[str, Callable[[ResolutionContext], Awaitable[StepOutcome]]]] = [
            ("polygon_feature_search", self._polygon_feature_search),
            ("commercial_search", self._commercial_search),
            ("polygon_centroid", self._polygon_centroid),
            ("anchor_feature_search", self._anchor_feature_search),
            ("address_search", self._address_search),
        ]

    @property
    def providers(self) -> list[BaseGeocoder]:
        return list(self._providers)

    async def resolve(self, query: LocationQuery) -> LocationResult:
        """Run the fallback chain for a query.

        Args:
            query: The resolution request.

        Returns:
            The first accepted result.

        Raises:
            NoMatchError: When every step is exhausted.
        """
        hints = query.hints
        context = ResolutionContext(
            query=query,
            barangay=normalize(hints.barangay),
            city=normalize(normalize_city_hint(hints.city, hints.province)),
            province=normalize(hints.province),
        )
        if context.barangay:
            context.boundary = await self._polygon_store.get_boundary(
                context.barangay, context.city, context.province, query.anchor
            )

        for name, step in self._steps:
            outcome = await step(context)
            if outcome.status is StepStatus.SUCCESS and outcome.result is not None:
                result = outcome.result
                logger.bind(
                    json_output=True,
                    step=name,
                    source=result.source,
                    confidence=str(result.confidence),
                    lat=result.lat,
                    lon=result.lon,
                    bounded=result.boundary is not None,
                ).info(f"Resolved via {name} ({result.confidence})")
                return result
            logger.debug(f"Step {name}: {outcome.status} {outcome.reason}".rstrip())

        raise NoMatchError(query.raw_text)

    async def _polygon_feature_search(self, context: ResolutionContext) -> StepOutcome:
        boundary = context.boundary
        if not context.barangay or boundary is None:
            return StepOutcome.skip("no barangay polygon")
        targets = feature_name_targets(context.query)
        if not targets:
            return StepOutcome.skip("no feature names to match")

        key = f"polygon|{boundary.key}"
        features = await self._cached_features(key, lambda: self._overpass.features_in_boundary(boundary))
        if features is None:
            return StepOutcome.fail("feature query failed")

        inside = [f for f in features if point_in_boundary(f.lat, f.lon, boundary)]
        found = self._match_features(targets, inside)
        if found is None:
            return StepOutcome.fail(f"no match among {len(inside)} features")

        feature, match = found
        return StepOutcome.success(
            LocationResult(
                lat=feature.lat,
                lon=feature.lon,
                label=f"{match.candidate} ({context.barangay}) [OSM: {confidence_percent(match)}%]",
                source="overpass",
                confidence=ResolutionConfidence.EXACT,
                boundary=boundary,
                match=match,
            )
        )

    async def _commercial_search(self, context: ResolutionContext) -> StepOutcome:
        if context.boundary is None:
            return StepOutcome.skip("no barangay polygon")
        commercial = [p for p in self._providers if p.requires_api_key]
        if not commercial:
            return StepOutcome.skip("no commercial provider configured")
        return await self._search_providers(context, commercial)

    async def _polygon_centroid(self, context: ResolutionContext) -> StepOutcome:
        boundary = context.boundary
        if boundary is None:
            return StepOutcome.skip("no barangay polygon")
        return StepOutcome.success(
            LocationResult(
                lat=boundary.centroid.lat,
                lon=boundary.centroid.lon,
                label=f"{context.area_label} (centroid)",
                source="polygon",
                confidence=ResolutionConfidence.CENTROID,
                boundary=boundary,
            )
        )

    async def _anchor_feature_search(self, context: ResolutionContext) -> StepOutcome:
        anchor = context.query.anchor
        if context.boundary is not None or anchor is None:
            return StepOutcome.skip("polygon known or no anchor")
        targets = feature_name_targets(context.query)
        if not targets:
            return StepOutcome.skip("no feature names to match")

        radius = self._anchor_radius_m
        key = make_cache_key("around", format_anchor(anchor.lat, anchor.lon), radius)
        features = await self._cached_features(
            key, lambda: self._overpass.features_around(anchor.lat, anchor.lon, radius)
        )
        if features is None:
            return StepOutcome.fail("feature query failed")

        found = self._match_features(targets, features)
        if found is None:
            return StepOutcome.fail(f"no match among {len(features)} features")

        feature, match = found
        return StepOutcome.success(
            LocationResult(
                lat=feature.lat,
                lon=feature.lon,
                label=f"{match.candidate} (near anchor) [OSM: {confidence_percent(match)}%]",
                source="overpass",
                confidence=ResolutionConfidence.NEAR_ANCHOR,
                match=match,
            )
        )

    async def _address_search(self, context: ResolutionContext) -> StepOutcome:
        if not self._providers:
            return StepOutcome.skip("no address-search providers")
        return await self._search_providers(context, self._providers)

    async def _search_providers(self, context: ResolutionContext, providers: list[BaseGeocoder]) -> StepOutcome:
        """Try each provider over the address queries; first usable result wins."""
        anchor = context.query.anchor
        viewbox = BoundingBox.around(anchor.lat, anchor.lon, self._search_km) if anchor else None
        queries = self.address_queries(context)

        for provider in providers:
            for address in queries:
                try:
                    results = await self.call_provider(provider, address, viewbox)
                except GeocodingProviderError as e:
                    logger.warning(f"Address search via {provider.provider_name} failed: {e.message}")
                    break

                results = [r for r in results if is_within_philippines(r.latitude, r.longitude)]
                if not results:
                    continue

                chosen = self.prefer_hinted(results, context)
                return StepOutcome.success(self._lock_to_boundary(chosen, provider.provider_name, address, context))

        return StepOutcome.fail("no provider returned a usable point")

    async def call_provider(
        self, provider: BaseGeocoder, address: str, viewbox: BoundingBox | None
    ) -> list[GeocodingResult]:
        """Single rate-limited, time-bounded provider call.

        Raises:
            GeocodingProviderError: On provider failure or timeout.
        """
        name = provider.provider_name
        delay = provider.rate_limit_delay
        if delay > 0 and name in self._last_call:
            wait = delay - (time.monotonic() - self._last_call[name])
            if wait > 0:
                await asyncio.sleep(wait)

        try:
            async with asyncio.timeout(provider.timeout):
                return await provider.search(address, viewbox=viewbox)
        except TimeoutError as e:
            raise GeocodingProviderError(name, f"Request timed out after {provider.timeout:g}s") from e
        finally:
            self._last_call[name] = time.monotonic()

    def address_queries(self, context: ResolutionContext) -> list[str]:
        """Address strings to send to providers, most specific first.

        The query text itself is tried ahead of the bare barangay/city/province
        fallback.
        """
        raw = normalize(context.query.raw_text)
        if context.query.hints.is_empty:
            return [join_parts(raw)] if raw else []
        candidates = generate_candidates(context.query.hints)
        with_raw = join_parts(raw, context.city, context.province) if raw else ""
        return dedupe([*candidates[:-1], with_raw, candidates[-1]])

    @staticmethod
    def prefer_hinted(results: list[GeocodingResult], context: ResolutionContext) -> GeocodingResult:
        """Pick the result whose address attributes match the most hints; the first wins ties."""

        def hint_score(result: GeocodingResult) -> int:
            address = result.address or {}
            score = 0
            for hint, keys in (
                (context.barangay, BARANGAY_LIKE_KEYS),
                (context.city, CITY_LIKE_KEYS),
                (context.province, STATE_LIKE_KEYS),
            ):
                if hint and any(matches_hint(str(address.get(k) or ""), hint) for k in keys):
                    score += 1
            return score

        return max(results, key=hint_score)

    @staticmethod
    def _lock_to_boundary(
        result: GeocodingResult,
        source: str,
        address: str,
        context: ResolutionContext,
    ) -> LocationResult:
        """Apply the containment lock: outside a known ring means the ring's centroid."""
        label = result.matched_address or address
        boundary = context.boundary
        if boundary is None:
            return LocationResult(
                lat=result.latitude,
                lon=result.longitude,
                label=label,
                source=source,
                confidence=ResolutionConfidence.UNCONSTRAINED,
            )
        if point_in_boundary(result.latitude, result.longitude, boundary):
            return LocationResult(
                lat=result.latitude,
                lon=result.longitude,
                label=label,
                source=source,
                confidence=ResolutionConfidence.EXACT,
                boundary=boundary,
            )
        logger.info(f"{source} result fell outside {context.barangay}; using centroid")
        return LocationResult(
            lat=boundary.centroid.lat,
            lon=boundary.centroid.lon,
            label=f"{label} (adjusted to {context.barangay} centroid)",
            source=source,
            confidence=ResolutionConfidence.CENTROID,
            boundary=boundary,
        )

    async def _cached_features(
        self,
        key: str,
        fetch: Callable[[], Awaitable[list[FeatureHit]]],
    ) -> list[FeatureHit] | None:
        """Return cached features or fetch them; None when the query failed."""
        cached = self._poi_cache.get(key)
        if cached is not None:
            logger.debug(f"Feature cache hit: {key}")
            return cached
        try:
            async with asyncio.timeout(self._overpass.timeout):
                features = await fetch()
        except TimeoutError:
            logger.warning(f"Feature query timed out after {self._overpass.timeout:g}s")
            return None
        except GeocodingProviderError as e:
            logger.warning(f"Feature query failed: {e.message}")
            return None
        self._poi_cache.set(key, features)
        return features

    def _match_features(
        self,
        targets: list[str],
        features: list[FeatureHit],
    ) -> tuple[FeatureHit, MatchResult] | None:
        """Best feature for any target name, accepted only at or above the threshold.

        Earlier targets win ties; an exact match ends the search.
        """
        owners: dict[str, FeatureHit] = {}
        for feature in features:
            for name in feature.names or (feature.name,):
                owners.setdefault(name, feature)
        names = list(owners)
        if not names:
            return None

        best: tuple[FeatureHit, MatchResult] | None = None
        for target in targets:
            match = best_match(
                target,
                names,
                self._match_threshold,
                max_edit_distance=self._max_edit_distance,
                min_dice=self._min_dice,
                min_score=self._match_threshold,
            )
            if match is None:
                continue
            if best is None or match.score > best[1].score:
                best = (owners[match.candidate], match)
            if match.method is MatchMethod.EXACT:
                break
        return best
