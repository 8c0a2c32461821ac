from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Redis (optional report cache owned by the API host)
    redis_url: str = "redis://localhost:6379/0"
    report_cache_enabled: bool = False
    report_cache_ttl_seconds: int = 6 * 3600

    # API Keys
    zillow_api_key: str = ""
    realtor_api_key: str = ""
    rentcast_api_key: str = ""
    hud_api_key: str = ""
    crime_api_key: str = ""

    # Crime incident feed (CrimeReports-style JSON)
    crime_api_url: str = "https://www.crimereports.com/api/crimes"
    crime_radius_miles: float = 1.0
    crime_lookback_days: int = 365

    # Aggregation
    enabled_sources: list[str] = ["zillow", "realtor", "rentcast"]
    # Most trusted first; unlisted sources rank after these
    source_priority: list[str] = ["rentcast", "realtor", "zillow"]
    source_timeout_seconds: float = 9.0
    zillow_max_pages: int = 3
    dedup_threshold: float = 0.85

    # Comparable selection
    lookback_months: int = 12
    radius_steps_miles: list[float] = [0.5, 1.0, 3.0, 5.0]
    min_comparables: int = 3
    max_comparables: int = 6
    outlier_z_threshold: float = 2.5
    sqft_tolerance: float = 0.25

    # Composite distance score weights
    weight_geo: float = 0.40
    weight_recency: float = 0.20
    weight_sqft: float = 0.25
    weight_bed_bath: float = 0.15
    weight_year_built: float = 0.0

    # App
    debug: bool = False
    log_level: str = "INFO"


settings = Settings()
