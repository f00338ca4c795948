"""Application configuration pulled from environment variables via pydantic."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the routewind service."""
    model_config = SettingsConfigDict(env_prefix="ROUTEWIND_", extra="ignore")

    forecast_source: str = "open_meteo"  # options: open_meteo
    elevation_source: str = "open_meteo"  # options: open_meteo, none
    open_meteo_forecast_url: str = "https://api.open-meteo.com/v1/forecast"
    open_meteo_elevation_url: str = "https://api.open-meteo.com/v1/elevation"
    open_meteo_api_key: str | None = None
    request_timeout_seconds: float = 10.0
    request_retries: int = 5
    retry_backoff_factor: float = 0.2

    forecast_days: int = 2
    forecast_max_hours: int = 24
    wind_key_precision: int = 4  # ~11 m
    elevation_key_precision: int = 5  # ~1 m
    fetch_concurrency: int = 6

    route_sample_count: int = 10
    arrow_cols: int = 6
    arrow_rows: int = 4

    climb_penalty_k: float = 80.0
    grade_clamp: float = 0.2
    overlap_offset_meters: float = 5.0

    api_key: str | None = None
    session_ttl_seconds: int = 3600
    max_sessions: int | None = 1000
    log_level: str = "INFO"

    @field_validator("open_meteo_forecast_url", "open_meteo_elevation_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4)}")
