"""
Configuration for GrowLab Analytics
===================================
Runtime settings for the analytics engine, the recommendation cache and the
background processor. Every value can be overridden with a ``GROWLAB_*``
environment variable. Sets up the logging configuration as well.
"""

from __future__ import annotations

import os
from contextlib import suppress
from dataclasses import dataclass, field

from app.domain.exceptions import ConfigurationError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be a number.") from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("GROWLAB_ENV", "development"))
    database_path: str = field(default_factory=lambda: os.getenv("GROWLAB_DATABASE_PATH", "database/growlab.db"))

    DEBUG: bool = field(default_factory=lambda: _env_bool("GROWLAB_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("GROWLAB_LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("GROWLAB_LOG_FILE", "logs/growlab.log"))

    # Recommendation cache
    recommendation_cache_enabled: bool = field(
        default_factory=lambda: _env_bool("GROWLAB_RECOMMENDATION_CACHE_ENABLED", True)
    )
    recommendation_cache_ttl_seconds: int = field(
        default_factory=lambda: _env_int("GROWLAB_RECOMMENDATION_CACHE_TTL", 3600)
    )
    recommendation_cache_maxsize: int = field(
        default_factory=lambda: _env_int("GROWLAB_RECOMMENDATION_CACHE_MAXSIZE", 512)
    )
    recommendation_confidence_threshold: float = field(
        default_factory=lambda: _env_float("GROWLAB_RECOMMENDATION_CONFIDENCE_THRESHOLD", 0.7)
    )
    recommendation_history_rows: int = field(
        default_factory=lambda: _env_int("GROWLAB_RECOMMENDATION_HISTORY_ROWS", 30)
    )

    # Analytics engine
    analytics_window_days: int = field(default_factory=lambda: _env_int("GROWLAB_ANALYTICS_WINDOW_DAYS", 30))
    analytics_freshness_hours: float = field(
        default_factory=lambda: _env_float("GROWLAB_ANALYTICS_FRESHNESS_HOURS", 24.0)
    )

    # Background processor
    scheduler_enabled: bool = field(default_factory=lambda: _env_bool("GROWLAB_SCHEDULER_ENABLED", True))
    scheduler_max_workers: int = field(default_factory=lambda: _env_int("GROWLAB_SCHEDULER_MAX_WORKERS", 2))
    scheduler_freshness_hours: float = field(
        default_factory=lambda: _env_float("GROWLAB_SCHEDULER_FRESHNESS_HOURS", 6.0)
    )
    analytics_batch_size: int = field(default_factory=lambda: _env_int("GROWLAB_ANALYTICS_BATCH_SIZE", 5))
    analytics_batch_pause_seconds: float = field(
        default_factory=lambda: _env_float("GROWLAB_ANALYTICS_BATCH_PAUSE_SECONDS", 1.0)
    )
    analytics_processing_interval_seconds: int = field(
        default_factory=lambda: _env_int("GROWLAB_ANALYTICS_PROCESSING_INTERVAL", 6 * 3600)
    )
    analytics_cleanup_time: str = field(default_factory=lambda: os.getenv("GROWLAB_ANALYTICS_CLEANUP_TIME", "02:00"))
    analytics_retention_days: int = field(default_factory=lambda: _env_int("GROWLAB_ANALYTICS_RETENTION_DAYS", 90))
    health_check_interval_seconds: int = field(
        default_factory=lambda: _env_int("GROWLAB_HEALTH_CHECK_INTERVAL", 3600)
    )
    stale_analytics_hours: float = field(default_factory=lambda: _env_float("GROWLAB_STALE_ANALYTICS_HOURS", 24.0))

    def __post_init__(self) -> None:
        if self.analytics_batch_size < 1:
            raise ConfigurationError("GROWLAB_ANALYTICS_BATCH_SIZE must be at least 1.")
        if not 0.0 <= self.recommendation_confidence_threshold <= 1.0:
            raise ConfigurationError("GROWLAB_RECOMMENDATION_CONFIDENCE_THRESHOLD must be between 0 and 1.")
        hour, _, minute = self.analytics_cleanup_time.partition(":")
        if not (hour.isdigit() and minute.isdigit() and int(hour) < 24 and int(minute) < 60):
            raise ConfigurationError("GROWLAB_ANALYTICS_CLEANUP_TIME must be HH:MM.")


def setup_logging(debug: bool = False, log_file: str = "logs/growlab.log") -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else logging.INFO

    # Root logger
    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid adding duplicate handlers when called more than once
    has_console = any(getattr(h, "name", "") == "growlab_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "growlab_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "growlab_console"
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file and log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "growlab_file"
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"growlab_console", "growlab_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info(f"Logging initialized at level: {logging.getLevelName(log_level)}")


def load_config() -> AppConfig:
    """Build the runtime configuration from the current environment."""
    return AppConfig()
