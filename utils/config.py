"""
Configuration management for the Fleet Level Analytics application.

Uses Pydantic Settings for type-safe configuration loading from environment variables
and .env files. Provides validation, defaults, and centralized access to all settings.

Example:
    >>> from utils.config import settings
    >>>
    >>> # Alert thresholds for a request
    >>> thresholds = settings.thresholds()
    >>> thresholds.critical_alert_threshold
    10.0
    >>>
    >>> # Check if caching is enabled
    >>> if settings.enable_caching:
    >>>     cache_ttl = settings.cache_ttl_seconds
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalyticsThresholds(BaseModel):
    """Validated alert thresholds, built once per request and passed by value."""

    model_config = ConfigDict(frozen=True)

    low_alert_threshold: float = Field(default=20.0, ge=0.0, le=100.0)
    critical_alert_threshold: float = Field(default=10.0, ge=0.0, le=100.0)
    lookback_hours: int = Field(default=168, ge=1, le=24 * 366)

    @model_validator(mode="after")
    def check_ordering(self) -> "AnalyticsThresholds":
        if self.critical_alert_threshold > self.low_alert_threshold:
            raise ValueError(
                "critical_alert_threshold must not exceed low_alert_threshold"
            )
        return self


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_assignment=True,
        extra="ignore",
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///data/fleet.db",
        description="Database connection URL for the reading store"
    )
    database_echo: bool = Field(
        default=False,
        description="Enable SQLAlchemy query logging"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Application log level"
    )
    log_file: Path = Field(
        default=Path("data/logs/analytics.log"),
        description="Path to log file"
    )
    log_max_bytes: int = Field(
        default=10485760,  # 10MB
        ge=1024,
        le=104857600,  # 100MB
        description="Maximum log file size in bytes"
    )
    log_backup_count: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Number of backup log files to keep"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Cache Configuration
    enable_caching: bool = Field(
        default=True,
        description="Enable memoization of aggregated KPI and summary responses"
    )
    cache_ttl_seconds: int = Field(
        default=300,
        ge=1,
        le=86400,
        description="Default cache TTL in seconds"
    )
    cache_backend: str = Field(
        default="memory",
        pattern="^(memory|redis)$",
        description="Primary cache backend"
    )
    cache_max_entries: int = Field(
        default=1000,
        ge=10,
        le=100000,
        description="Maximum entries held by the in-memory cache"
    )

    # Redis Configuration
    redis_host: str = Field(
        default="localhost",
        description="Redis server hostname"
    )
    redis_port: int = Field(
        default=6379,
        ge=1,
        le=65535,
        description="Redis server port"
    )
    redis_db: int = Field(
        default=0,
        ge=0,
        le=15,
        description="Redis database number"
    )
    redis_password: Optional[str] = Field(
        default=None,
        description="Redis authentication password"
    )

    # Alert Thresholds (percent of capacity)
    low_alert_threshold: float = Field(
        default=20.0,
        ge=0.0,
        le=100.0,
        description="Level at or below which an entity counts as low"
    )
    critical_alert_threshold: float = Field(
        default=10.0,
        ge=0.0,
        le=100.0,
        description="Level at or below which an entity counts as critical"
    )

    # Trend Analysis
    trend_lookback_hours: int = Field(
        default=24,
        ge=1,
        le=24 * 366,
        description="Default lookback window for trend classification"
    )
    trend_increase_threshold: float = Field(
        default=5.0,
        description="Change rate (percent) above which a trend is increasing"
    )
    trend_decrease_threshold: float = Field(
        default=-5.0,
        description="Change rate (percent) below which a trend is decreasing"
    )

    # Depletion Prediction
    prediction_lookback_hours: int = Field(
        default=168,
        ge=1,
        le=24 * 366,
        description="Lookback window for consumption rate estimation"
    )
    prediction_min_samples: int = Field(
        default=10,
        ge=2,
        description="Minimum readings required before forecasting"
    )
    prediction_high_confidence_samples: int = Field(
        default=48,
        ge=2,
        description="Readings above which a forecast is high confidence"
    )
    tank_critical_days: float = Field(
        default=1.0,
        gt=0.0,
        description="Tank horizon (days) below which refilling is urgent"
    )
    tank_plan_ahead_days: float = Field(
        default=3.0,
        gt=0.0,
        description="Tank horizon (days) below which a refill should be planned"
    )
    generator_critical_hours: float = Field(
        default=24.0,
        gt=0.0,
        description="Generator horizon (hours) below which refuelling is urgent"
    )
    generator_plan_ahead_hours: float = Field(
        default=72.0,
        gt=0.0,
        description="Generator horizon (hours) below which refuelling should be planned"
    )

    # Aggregation
    calendar: str = Field(
        default="persian",
        pattern="^(persian|gregorian)$",
        description="Calendar used for weekly/monthly period labels"
    )
    reporting_timezone: str = Field(
        default="Asia/Tehran",
        description="Timezone applied to aware timestamps before bucketing"
    )

    # Reading Store
    max_fetch_workers: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Maximum concurrent reading fetches per request"
    )

    def thresholds(self, lookback_hours: Optional[int] = None) -> AnalyticsThresholds:
        """Build the validated threshold struct for one request."""
        return AnalyticsThresholds(
            low_alert_threshold=self.low_alert_threshold,
            critical_alert_threshold=self.critical_alert_threshold,
            lookback_hours=lookback_hours or self.prediction_lookback_hours,
        )

    def get_redis_url(self) -> str:
        """Get Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    def get_database_path(self) -> Optional[Path]:
        """Get database file path if using SQLite."""
        if self.database_url.startswith("sqlite") and ":memory:" not in self.database_url:
            # Extract path from sqlite:///path/to/db
            return Path(self.database_url.replace("sqlite:///", ""))
        return None

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug_mode or self.log_level == "DEBUG"


def load_settings() -> Settings:
    """Load and validate application settings."""
    settings = Settings()
    # Fail early on inconsistent thresholds rather than on the first request
    settings.thresholds()
    return settings


# Global settings instance
settings = load_settings()
