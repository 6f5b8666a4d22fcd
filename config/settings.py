"""Configuration management using pydantic-settings."""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

DEFAULT_UPDATE_HOURS = 168


def _interval_hours(hours: int) -> int:
    """
    Normalize a refresh interval in hours.

    Zero or negative values fall back to one week rather than disabling
    the refresh, matching how the service has always been deployed.
    """
    if hours > 0:
        return hours
    return DEFAULT_UPDATE_HOURS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # HTTP listener
    listen_host: str = "0.0.0.0"
    listen_port: int = 3280

    # MaxMind GeoLite2 databases (GeoLite2-City.mmdb, GeoLite2-ASN.mmdb)
    db_path: Path = Path("/data")

    # Logging
    log_level: str = "info"
    log_format: str = "console"  # console | json

    # GeoNames upstream (neighbours and languages)
    geonames_username: Optional[str] = None
    geonames_base_url: str = "http://api.geonames.org"
    upstream_timeout_seconds: float = 8.0
    # GeoNames free accounts tolerate roughly one request per second
    upstream_request_delay_seconds: float = 1.1

    # Refresh schedule
    neighbours_update_hours: int = DEFAULT_UPDATE_HOURS
    languages_update_hours: int = DEFAULT_UPDATE_HOURS

    # Lookup response cache
    cache_ttl_minutes: int = 5
    cache_sweep_interval_seconds: float = 60.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def neighbours_interval_seconds(self) -> float:
        return _interval_hours(self.neighbours_update_hours) * 3600.0

    @property
    def languages_interval_seconds(self) -> float:
        return _interval_hours(self.languages_update_hours) * 3600.0

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_minutes * 60.0


settings = Settings()
