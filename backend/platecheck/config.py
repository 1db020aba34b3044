"""
Configuration management for PlateCheck backend.
Uses pydantic-settings for environment variable handling.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    # API Configuration
    api_title: str = "PlateCheck API"
    api_version: str = "1.0.0"
    debug: bool = False

    # CheckCarDetails provider (specs/history and valuation share one key)
    checkcard_api_key: str | None = None
    checkcard_api_base_url: str = "https://api.checkcardetails.co.uk"
    api_environment: str = "test"  # "test" or "production"
    specs_timeout: float = 10.0  # seconds per spec/history datapoint
    valuation_timeout: float = 5.0

    # Lookup behaviour
    default_mileage: int = 50000  # used when neither caller nor MOT history supply one
    cache_ttl_days: int = 30
    cache_read_through: bool = True  # False = cache is write-only, every lookup goes upstream

    # SQLite cache store
    database_path: str = str(Path(__file__).parent.parent / "data" / "platecheck.db")

    # Redis Configuration (per-plate build lock)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str | None = None
    plate_lock_timeout: float = 60.0  # lock auto-expires if a worker dies mid-lookup
    plate_lock_wait: float = 30.0

    @property
    def test_mode(self) -> bool:
        return self.api_environment.lower() != "production"


# Global settings instance
settings = Settings()
