import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class Settings(BaseModel):
    # Logging
    log_level: str = Field(default="INFO", alias="SITMON_LOG_LEVEL")

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./sitmon.db", alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Analysis Configuration
    analysis_config_path: str | None = Field(
        default=None, alias="ANALYSIS_CONFIG_PATH"
    )
    analysis_interval_minutes: int = Field(default=15, alias="ANALYSIS_INTERVAL")
    monitor_interval_minutes: int = Field(default=5, alias="MONITOR_INTERVAL")
    fetch_timeout_seconds: float = Field(default=20.0, alias="FETCH_TIMEOUT")
    cache_ttl_seconds: int | None = Field(default=None, alias="CACHE_TTL")

    # Data sources
    batch_path: str | None = Field(default=None, alias="BATCH_PATH")
    rss_config_path: str = Field(
        default="sitmon/datasource/feeds.json", alias="RSS_CONFIG_PATH"
    )
    rss_request_timeout: int = Field(default=30, alias="RSS_REQUEST_TIMEOUT")
    rss_max_retries: int = Field(default=3, alias="RSS_MAX_RETRIES")
    coingecko_enabled: bool = Field(default=True, alias="COINGECKO_ENABLED")
    coingecko_history_days: int = Field(default=7, alias="COINGECKO_HISTORY_DAYS")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_env(cls, env_file: str | None = None) -> "Settings":
        """Build settings from the process environment and an optional .env file."""
        load_dotenv(env_file)
        return cls.model_validate(dict(os.environ))
