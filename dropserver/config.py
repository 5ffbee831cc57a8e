# dropserver/config.py
import os

from pydantic import BaseModel, ConfigDict

from dropserver.errors import ConfigError

REQUIRED_ENV = ("DATABASE_URL", "REDIS_URL")


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: str
    redis_url: str

    # --- SUBMISSION GATE ---
    plugin_marker: str = "DropLogger-Plugin"
    max_quantity: int = 100

    # --- RATE LIMIT (fixed window) ---
    max_requests_per_window: int = 100
    rate_limit_window_seconds: int = 60

    # --- AGGREGATION ---
    stats_refresh_interval_seconds: int = 3600

    # --- CONNECTIONS ---
    db_pool_size: int = 5
    db_max_overflow: int = 45
    db_timeout_seconds: float = 8
    redis_timeout_seconds: float = 8

    log_level: str = "INFO"


def load_settings(environ=None) -> Settings:
    """Build Settings from environment variables. Fails if a store URL is missing."""
    env = os.environ if environ is None else environ
    missing = [name for name in REQUIRED_ENV if not env.get(name)]
    if missing:
        raise ConfigError(f"{', '.join(missing)} must be set")

    return Settings(
        database_url=env["DATABASE_URL"],
        redis_url=env["REDIS_URL"],
        plugin_marker=env.get("PLUGIN_MARKER", "DropLogger-Plugin"),
        max_quantity=int(env.get("MAX_QUANTITY", "100")),
        max_requests_per_window=int(env.get("MAX_REQUESTS_PER_WINDOW", "100")),
        rate_limit_window_seconds=int(env.get("RATE_LIMIT_WINDOW_SECONDS", "60")),
        stats_refresh_interval_seconds=int(env.get("STATS_REFRESH_INTERVAL_SECONDS", "3600")),
        db_pool_size=int(env.get("DB_POOL_SIZE", "5")),
        db_max_overflow=int(env.get("DB_MAX_OVERFLOW", "45")),
        db_timeout_seconds=float(env.get("DB_TIMEOUT_SECONDS", "8")),
        redis_timeout_seconds=float(env.get("REDIS_TIMEOUT_SECONDS", "8")),
        log_level=env.get("LOG_LEVEL", "INFO"),
    )
