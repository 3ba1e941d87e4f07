# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for programwatch.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from programwatch.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.monitoring.attendance_gap_hours
    48
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_PASSWORD = "programwatch_password"


class DatabaseSettings(BaseSettings):
    """Database configuration for the program data store.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        auto_create_tables: Create missing tables from the ORM metadata
            when the worker starts.
    """

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    user: str = "programwatch"
    password: SecretStr = SecretStr(DEFAULT_DB_PASSWORD)
    host: str = "localhost"
    port: int = 5432
    database: str = "programwatch"
    pool_size: int = 10
    max_overflow: int = 20
    auto_create_tables: bool = False

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class MonitoringSettings(BaseSettings):
    """Detector thresholds and per-tenant scan limits.

    Attributes:
        attendance_gap_hours: Cohort-level attendance silence before alerting.
        completion_lag_ratio: Fraction of the program average a survey may
            trail by before it is flagged.
        completion_critical_ratio: Fraction above which the lag is critical.
        status_window_minutes: Look-back window for new draft surveys.
        attendance_stale_days: Days without attendance before an enrollment
            is reported as gapped by the consistency scanner.
        tenant_scan_timeout_seconds: Upper bound for one tenant's scan.
        consistency_urgent_threshold: Finding count above which the
            consistency summary notification is URGENT.
        consistency_high_threshold: Finding count above which it is HIGH.
    """

    model_config = SettingsConfigDict(
        env_prefix="MONITORING_",
        extra="ignore",
    )

    attendance_gap_hours: int = Field(default=48, gt=0)
    completion_lag_ratio: float = Field(default=0.20, gt=0, lt=1)
    completion_critical_ratio: float = Field(default=0.40, gt=0, lt=1)
    status_window_minutes: int = Field(default=60, gt=0)
    attendance_stale_days: int = Field(default=7, gt=0)
    tenant_scan_timeout_seconds: float = Field(default=300.0, gt=0)
    consistency_urgent_threshold: int = 10
    consistency_high_threshold: int = 5

    @model_validator(mode="after")
    def validate_ratios(self) -> Self:
        """Ensure the critical ratio is not below the lag ratio."""
        if self.completion_critical_ratio < self.completion_lag_ratio:
            raise ValueError(
                "completion_critical_ratio must be >= completion_lag_ratio"
            )
        return self


class SchedulerSettings(BaseSettings):
    """Periodic detector schedule (cron expressions, minute hour day month weekday).

    Attributes:
        enabled: Whether the scheduler registers default jobs on start.
        attendance_cron: Attendance-gap detector schedule (every 6 hours).
        completion_cron: Completion-lag detector schedule (daily at 02:00).
        status_cron: Survey status monitor schedule (hourly).
        consistency_cron: Data-consistency scanner schedule (daily at 03:00).
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        extra="ignore",
    )

    enabled: bool = True
    attendance_cron: str = "0 */6 * * *"
    completion_cron: str = "0 2 * * *"
    status_cron: str = "0 * * * *"
    consistency_cron: str = "0 3 * * *"
    timezone: str = "UTC"


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        monitoring: Detector thresholds.
        scheduler: Detector schedules.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            if self.database.password.get_secret_value() == DEFAULT_DB_PASSWORD:
                raise ValueError(
                    "DB_PASSWORD must be changed from default in production"
                )
            if self.debug:
                raise ValueError("DEBUG must be False in production")
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
