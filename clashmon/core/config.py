"""
Configuration management for the Clash monitor.

Loads configuration from environment variables and provides type-safe access.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from clashmon.core.exceptions import ConfigValidationError

DEFAULT_API_URL = "http://127.0.0.1:9090"
DEFAULT_DELAY_TEST_URL = "http://www.gstatic.com/generate_204"

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
# Levels accepted by the daemon's /logs endpoint
STREAM_LOG_LEVELS = ['debug', 'info', 'warning', 'error', 'silent']


def validate_url(url: str, name: str) -> None:
    """
    Validate control API URL format.

    Args:
        url: URL string
        name: Name of the setting for error messages

    Raises:
        ConfigValidationError: If URL format is invalid
    """
    if not url:
        raise ConfigValidationError(f"{name} is required")

    if not (url.startswith("http://") or url.startswith("https://")):
        raise ConfigValidationError(
            f"Invalid {name}: {url}. Expected http:// or https:// URL"
        )


def validate_positive(value: float, name: str) -> None:
    """
    Validate that value is positive.

    Args:
        value: Numeric value
        name: Parameter name for error messages

    Raises:
        ConfigValidationError: If value is not positive
    """
    if value <= 0:
        raise ConfigValidationError(f"{name} must be positive, got {value}")


def validate_choice(value: str, name: str, choices: List[str]) -> None:
    """
    Validate that value is one of the allowed choices.

    Raises:
        ConfigValidationError: If value is not allowed
    """
    if value not in choices:
        raise ConfigValidationError(
            f"{name} must be one of {', '.join(choices)}, got {value}"
        )


@dataclass
class ApiConfig:
    """Control API configuration."""
    base_url: str = DEFAULT_API_URL
    secret: Optional[str] = None
    delay_test_url: str = DEFAULT_DELAY_TEST_URL
    delay_timeout_ms: int = 5000


@dataclass
class DashboardConfig:
    """Dashboard configuration."""
    tick_rate: float = 0.25  # seconds between Tick events
    poll_interval: float = 2.0  # seconds between /proxies polls
    channel_capacity: int = 100
    traffic_capacity: int = 300
    log_capacity: int = 50
    log_level_filter: str = "info"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[Path] = None


class Config:
    """
    Central configuration manager.

    Loads configuration from environment variables with sensible defaults.
    Values passed in ``overrides`` (usually CLI flags) win over the
    environment.
    """

    def __init__(self, env_file: Optional[Path] = None, overrides: Optional[Dict[str, str]] = None):
        """
        Initialize configuration.

        Args:
            env_file: Optional path to .env file. If None, looks for .env in project root.
            overrides: Optional mapping of environment variable names to values
        """
        if env_file is None:
            env_file = Path(__file__).parent.parent.parent / ".env"

        load_dotenv(env_file)

        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

        def getenv(key: str, default: Optional[str] = None) -> Optional[str]:
            if key in overrides:
                return str(overrides[key])
            return os.getenv(key, default)

        try:
            self.api = ApiConfig(
                base_url=getenv("CLASH_API_URL", DEFAULT_API_URL).rstrip("/"),
                secret=getenv("CLASH_API_SECRET") or None,
                delay_test_url=getenv("CLASH_DELAY_TEST_URL", DEFAULT_DELAY_TEST_URL),
                delay_timeout_ms=int(getenv("CLASH_DELAY_TIMEOUT_MS", "5000"))
            )

            self.dashboard = DashboardConfig(
                tick_rate=float(getenv("DASHBOARD_TICK_RATE", "0.25")),
                poll_interval=float(getenv("DASHBOARD_POLL_INTERVAL", "2.0")),
                channel_capacity=int(getenv("DASHBOARD_CHANNEL_CAPACITY", "100")),
                log_level_filter=getenv("DASHBOARD_LOG_LEVEL", "info").lower()
            )

            log_file = getenv("LOG_FILE")
            self.logging = LoggingConfig(
                level=getenv("LOG_LEVEL", "INFO").upper(),
                file=Path(log_file).expanduser() if log_file else None
            )
        except ValueError as e:
            raise ConfigValidationError(f"Configuration validation failed:\n  - {e}") from e

        # Validate all configuration
        self._validate()

    def _validate(self) -> None:
        """
        Validate all configuration values.

        Raises:
            ConfigValidationError: If any validation fails
        """
        errors = []

        try:
            validate_url(self.api.base_url, "CLASH_API_URL")
        except ConfigValidationError as e:
            errors.append(str(e))

        try:
            validate_url(self.api.delay_test_url, "CLASH_DELAY_TEST_URL")
        except ConfigValidationError as e:
            errors.append(str(e))

        checks = [
            (self.api.delay_timeout_ms, "CLASH_DELAY_TIMEOUT_MS"),
            (self.dashboard.tick_rate, "DASHBOARD_TICK_RATE"),
            (self.dashboard.poll_interval, "DASHBOARD_POLL_INTERVAL"),
            (self.dashboard.channel_capacity, "DASHBOARD_CHANNEL_CAPACITY"),
        ]
        for value, name in checks:
            try:
                validate_positive(value, name)
            except ConfigValidationError as e:
                errors.append(str(e))

        try:
            validate_choice(self.dashboard.log_level_filter, "DASHBOARD_LOG_LEVEL", STREAM_LOG_LEVELS)
        except ConfigValidationError as e:
            errors.append(str(e))

        try:
            validate_choice(self.logging.level, "LOG_LEVEL", LOG_LEVELS)
        except ConfigValidationError as e:
            errors.append(str(e))

        # If any errors, raise with all messages
        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ConfigValidationError(error_msg)

    def print_summary(self) -> None:
        """Print configuration summary (hiding sensitive data)."""
        print("=" * 50)
        print("Configuration Summary")
        print("=" * 50)
        print(f"API URL: {self.api.base_url}")
        print(f"API Secret: {'set' if self.api.secret else 'not set'}")
        print(f"Tick Rate: {self.dashboard.tick_rate}s")
        print(f"Poll Interval: {self.dashboard.poll_interval}s")
        print(f"Log Level: {self.logging.level}")
        print("=" * 50)
