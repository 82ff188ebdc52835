"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_LOOKSMAPPING_URL = "https://walzr.com/looksmapping/places_sf.geojson.gz"


class ConfigError(RuntimeError):
    """Raised when a configuration value cannot be parsed."""


@dataclass(frozen=True)
class Settings:
    google_places_api_key: str = ""
    sqlite_path: str = "./tresty-cache.db"
    looksmapping_url: str = DEFAULT_LOOKSMAPPING_URL
    port: int = 3001
    host: str = "0.0.0.0"
    cors_origin: str = "http://localhost:3000"
    dataset_refresh_hours: float = 24.0
    rate_limit_per_second: int = 10


def _get_number(name: str, default: str, cast):
    raw = os.getenv(name) or default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be numeric, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    google_places_api_key = os.getenv("GOOGLE_PLACES_API_KEY", "").strip()
    sqlite_path = os.getenv("SQLITE_PATH") or "./tresty-cache.db"
    looksmapping_url = os.getenv("LOOKSMAPPING_URL") or DEFAULT_LOOKSMAPPING_URL
    port = _get_number("PORT", "3001", int)
    host = os.getenv("HOST") or "0.0.0.0"
    cors_origin = os.getenv("CORS_ORIGIN") or "http://localhost:3000"
    dataset_refresh_hours = _get_number("DATASET_REFRESH_HOURS", "24", float)
    rate_limit_per_second = _get_number("RATE_LIMIT_PER_SECOND", "10", int)

    if not google_places_api_key:
        logger.warning("GOOGLE_PLACES_API_KEY is not configured; photos and ratings will be unavailable.")

    return Settings(
        google_places_api_key=google_places_api_key,
        sqlite_path=sqlite_path,
        looksmapping_url=looksmapping_url,
        port=port,
        host=host,
        cors_origin=cors_origin,
        dataset_refresh_hours=dataset_refresh_hours,
        rate_limit_per_second=rate_limit_per_second,
    )
