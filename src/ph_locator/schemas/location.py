"""Pydantic v2 schemas for location resolution."""

from typing import Any, Literal, Self

from pydantic import BaseModel, Field, model_validator

from ph_locator.lib.geocoder import AddressHints, Anchor, LocationResult, ResolutionConfidence, StreetGeometry


class LocationRequest(BaseModel):
    """Request to resolve an address to a point."""

    query: str = Field(..., description="Free-text address or place name")
    street: str = ""
    vicinity: str = ""
    barangay: str = ""
    city: str = ""
    province: str = ""
    anchor_lat: float | None = Field(default=None, ge=-90, le=90)
    anchor_lon: float | None = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def validate_anchor_pair(self) -> Self:
        if (self.anchor_lat is None) != (self.anchor_lon is None):
            msg = "anchor_lat and anchor_lon must be given together"
            raise ValueError(msg)
        return self

    def to_hints(self) -> AddressHints:
        return AddressHints(
            street=self.street,
            vicinity=self.vicinity,
            barangay=self.barangay,
            city=self.city,
            province=self.province,
        )

    def to_anchor(self) -> Anchor | None:
        if self.anchor_lat is None or self.anchor_lon is None:
            return None
        return Anchor(lat=self.anchor_lat, lon=self.anchor_lon)


class MatchDetail(BaseModel):
    """Fuzzy-match detail for feature-based results."""

    candidate: str
    score: float = Field(..., ge=0, le=1)
    method: str


class LocationResponse(BaseModel):
    """Response schema for a resolved location."""

    lat: float
    lon: float
    label: str
    source: str
    confidence: ResolutionConfidence
    boundary: list[list[float]] | None = Field(
        default=None,
        description="Barangay ring as closed [lat, lon] pairs",
    )
    match: MatchDetail | None = None

    @classmethod
    def from_result(cls, result: LocationResult) -> "LocationResponse":
        match = None
        if result.match is not None:
            match = MatchDetail(
                candidate=result.match.candidate,
                score=result.match.score,
                method=str(result.match.method),
            )
        return cls(
            lat=result.lat,
            lon=result.lon,
            label=result.label,
            source=result.source,
            confidence=result.confidence,
            boundary=result.boundary.as_lists() if result.boundary else None,
            match=match,
        )


class NearestStreetResponse(BaseModel):
    """Response schema for a nearest-street lookup."""

    name: str
    source: str
    distance_m: float | None = None


class StreetGeometryFeature(BaseModel):
    """GeoJSON Feature for a matched street polyline."""

    type: Literal["Feature"] = "Feature"
    geometry: dict[str, Any]
    properties: dict[str, Any]


class StreetGeometryFeatureCollection(BaseModel):
    """GeoJSON FeatureCollection holding the matched street, if any."""

    type: Literal["FeatureCollection"] = "FeatureCollection"
    matched: bool = False
    best_score: float | None = None
    features: list[StreetGeometryFeature] = Field(default_factory=list)

    @classmethod
    def from_result(cls, street: StreetGeometry | None) -> "StreetGeometryFeatureCollection":
        if street is None:
            return cls()
        feature = StreetGeometryFeature(
            geometry={"type": "LineString", "coordinates": street.as_lon_lat()},
            properties={
                "osm_id": street.osm_id,
                "name": street.name,
                "score": round(street.score, 3),
                "distance_m": street.distance_m,
            },
        )
        return cls(matched=True, best_score=round(street.score, 3), features=[feature])
