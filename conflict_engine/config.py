"""
Configuration management for the scheduling-conflict engine.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.

Severity thresholds, revenue rates and client priority tiers are product
policy. They live here so deployments can tune them without code changes;
every component also accepts them as explicit constructor arguments.
"""

import re
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    Dict and list settings are read as JSON (e.g. REVENUE_RATES='{"consultation": 150}').
    """

    # Python & Application
    python_env: Literal["development", "production"] = Field(
        default="development",
        description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # Database (Resolution Store backend)
    database_url: str = Field(
        default="sqlite:///./data/conflict_engine.db",
        description="Database connection URL for persisted conflict resolutions"
    )

    # Severity policy
    overlap_error_ratio: float = Field(
        default=0.5,
        description="Overlap share of the shorter event at which an overlap becomes an error"
    )
    critical_priorities: list[str] = Field(
        default_factory=lambda: ["urgent"],
        description="Event priorities that make any overlap critical"
    )

    # Ranking policy
    revenue_rates: dict[str, float] = Field(
        default_factory=lambda: {
            "landscaping": 75.0,
            "snow_removal": 50.0,
            "creative_development": 100.0,
            "consultation": 150.0,
        },
        description="Hourly revenue rate per service type"
    )
    default_revenue_rate: float = Field(
        default=75.0,
        description="Hourly rate used when the service type is unknown"
    )
    client_priorities: dict[str, int] = Field(
        default_factory=dict,
        description="Priority score (1-10) per client name"
    )
    default_client_priority: int = Field(
        default=5,
        description="Priority score for clients missing from the table"
    )
    high_value_client_threshold: int = Field(
        default=8,
        description="Client priority at which a conflict is flagged as high-value"
    )
    revenue_insight_threshold: float = Field(
        default=200.0,
        description="Revenue estimate above which a conflict insight mentions revenue"
    )

    # Business rules
    work_hours_start: str = Field(
        default="08:00",
        description="Start of the working day (HH:MM)"
    )
    work_hours_end: str = Field(
        default="18:00",
        description="End of the working day (HH:MM)"
    )
    work_days: list[int] = Field(
        default_factory=lambda: [1, 2, 3, 4, 5],
        description="Working days as ISO weekday numbers (1=Monday ... 7=Sunday)"
    )
    buffer_time_minutes: int = Field(
        default=30,
        description="Minimum gap between back-to-back events (0 disables the buffer rule)"
    )
    priority_clients: list[str] = Field(
        default_factory=list,
        description="Client names whose daily appointment count is capped"
    )
    max_priority_client_events_per_day: int = Field(
        default=3,
        description="Existing same-day events at which a priority client proposal is flagged"
    )

    # Time mapping
    resize_snap_minutes: int = Field(
        default=15,
        description="Granularity the moving edge snaps to during a resize"
    )
    min_event_duration_minutes: int = Field(
        default=15,
        description="Shortest duration a resize may produce"
    )

    # Resolutions
    resolution_ttl_hours: Optional[int] = Field(
        default=None,
        description="Default expiry for new resolutions (None = never expire)"
    )
    history_limit: int = Field(
        default=100,
        description="Default number of records returned by the resolution history"
    )

    # Action execution
    action_max_attempts: int = Field(
        default=3,
        description="Attempts for a retryable event repository failure"
    )
    action_retry_max_wait_seconds: float = Field(
        default=10.0,
        description="Upper bound of the exponential wait between attempts"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("work_hours_start", "work_hours_end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        if not _HHMM.match(v):
            raise ValueError(f"Expected HH:MM, got {v!r}")
        return v

    @field_validator("overlap_error_ratio")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError("overlap_error_ratio must be in (0, 1]")
        return v

    @field_validator("work_days")
    @classmethod
    def validate_work_days(cls, v: list[int]) -> list[int]:
        bad = [d for d in v if d < 1 or d > 7]
        if bad:
            raise ValueError(f"Invalid ISO weekday numbers: {bad}")
        return v

    @field_validator("buffer_time_minutes")
    @classmethod
    def validate_buffer(cls, v: int) -> int:
        if v < 0:
            raise ValueError("buffer_time_minutes cannot be negative")
        return v

    @field_validator(
        "resize_snap_minutes",
        "min_event_duration_minutes",
        "max_priority_client_events_per_day",
        "action_max_attempts",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.python_env == "production"

    @property
    def uses_postgresql(self) -> bool:
        """Check if PostgreSQL is the configured database."""
        return "postgresql" in self.database_url.lower()

    def validate_production_config(self) -> None:
        """
        Validate configuration for production environment.

        Raises:
            ValueError: If required production settings are missing or invalid
        """
        if not self.is_production:
            return

        errors = []

        if not self.uses_postgresql:
            errors.append(
                "Production requires PostgreSQL. "
                "Set DATABASE_URL to a PostgreSQL connection string."
            )

        if self.work_hours_start >= self.work_hours_end:
            errors.append("WORK_HOURS_START must be earlier than WORK_HOURS_END.")

        if errors:
            raise ValueError("Production configuration errors:\n- " + "\n- ".join(errors))


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance loaded from environment

    Example:
        >>> from conflict_engine.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.overlap_error_ratio)
    """
    return Settings()
