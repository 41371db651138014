"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Geocoding: general
    geocoder_country_code: str = Field(
        default="ph",
        description="ISO country code used to restrict address searches",
    )
    geocoder_user_agent: str = Field(
        default="ph-locator/1.0",
        description="User-Agent sent to OpenStreetMap services (required by their usage policy)",
    )

    # Geocoding: Nominatim (OpenStreetMap)
    geocoder_nominatim_base_url: str = Field(
        default="https://nominatim.openstreetmap.org",
        description="Nominatim base URL (self-hostable)",
    )
    geocoder_nominatim_email: str = Field(
        default="",
        description="Email for Nominatim usage policy compliance",
    )
    geocoder_nominatim_timeout: float = Field(
        default=9.0,
        description="Nominatim request timeout in seconds",
        gt=0,
    )

    # Geocoding: Google Maps (optional, enabled by the presence of a key)
    geocoder_google_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GEOCODER_GOOGLE_API_KEY", "GOOGLE_MAPS_API_KEY"),
        description="Google Maps Geocoding API key",
    )
    geocoder_google_timeout: float = Field(
        default=8.0,
        description="Google Maps request timeout in seconds",
        gt=0,
    )

    # Feature queries: Overpass
    overpass_endpoints: str = Field(
        default=(
            "https://overpass-api.de/api/interpreter,"
            "https://overpass.kumi.systems/api/interpreter,"
            "https://overpass.openstreetmap.ru/api/interpreter"
        ),
        description="Comma-separated Overpass interpreter endpoints, tried in order",
    )
    overpass_timeout: float = Field(
        default=18.0,
        description="Overpass request timeout in seconds (covers all endpoints)",
        gt=0,
    )

    @property
    def overpass_endpoint_list(self) -> list[str]:
        """Parse the Overpass endpoint string into a list of URLs."""
        if not self.overpass_endpoints.strip():
            return []
        return [u.strip() for u in self.overpass_endpoints.split(",") if u.strip()]

    # Boundaries
    boundary_max_vertices: int = Field(
        default=240,
        description="Maximum number of vertices kept when downsampling a barangay ring",
        ge=3,
    )
    boundary_search_km: float = Field(
        default=10.0,
        description="Half-width in km of the search box around an anchor",
        gt=0,
    )

    # Matching
    anchor_search_radius_m: int = Field(
        default=3000,
        description="Radius in meters for named-feature search around an anchor",
        gt=0,
    )
    match_threshold: float = Field(
        default=0.6,
        description="Minimum similarity for a fuzzy street/feature match",
        ge=0,
        le=1,
    )
    match_max_edit_distance: int = Field(
        default=3,
        description="Edit distance at or below which a candidate qualifies",
        ge=0,
    )
    match_min_dice: float = Field(
        default=0.45,
        description="Bigram Dice coefficient at or above which a candidate qualifies",
        ge=0,
        le=1,
    )

    # Street geometry
    street_geometry_radius_m: int = Field(
        default=1500,
        description="Radius in meters for the street geometry search",
        gt=0,
    )
    street_geometry_wide_radius_m: int = Field(
        default=2500,
        description="Radius in meters for the street geometry search when nothing is found nearer",
        gt=0,
    )
    street_geometry_threshold: float = Field(
        default=0.4,
        description="Minimum score, distance bonus included, to accept a street geometry match",
        ge=0,
    )

    # Caches (seconds)
    cache_geocode_ttl: int = Field(default=14 * 24 * 3600, description="Geocode result TTL", gt=0)
    cache_polygon_ttl: int = Field(default=30 * 24 * 3600, description="Barangay polygon TTL", gt=0)
    cache_poi_ttl: int = Field(default=12 * 3600, description="POI/feature query result TTL", gt=0)
    cache_dataset_page_ttl: int = Field(default=30 * 60, description="Paged dataset rows TTL", gt=0)

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )
    log_json: bool = Field(
        default=False,
        description="Serialize every stderr log record as JSON",
    )

    @field_validator("geocoder_country_code")
    @classmethod
    def validate_country_code(cls, v: str) -> str:
        v = v.strip().lower()
        if len(v) != 2 or not v.isalpha():
            msg = "geocoder_country_code must be a two-letter ISO code"
            raise ValueError(msg)
        return v

    @property
    def google_enabled(self) -> bool:
        """Whether the commercial provider is configured."""
        return bool(self.geocoder_google_api_key and self.geocoder_google_api_key.strip())


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
