"""
Logging system for the Clash monitor.

Provides structured logging with different levels and context.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "clashmon"

CONSOLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ClashMonitorLogger:
    """
    Thin wrapper around a stdlib logger in the ``clashmon`` hierarchy.

    Features:
    - Structured log format with timestamps
    - Optional ``key=value`` context appended to every message
    - Handlers live on the ``clashmon`` root logger (see setup_logging)
    """

    def __init__(self, name: str = ROOT_LOGGER_NAME, log_level: Optional[str] = None):
        """
        Initialize the logger.

        Args:
            name: Logger name. Names outside the ``clashmon`` hierarchy
                are nested under it so they share its handlers.
            log_level: Optional minimum level for this logger only
        """
        if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
            name = f"{ROOT_LOGGER_NAME}.{name}"
        self.logger = logging.getLogger(name)
        if log_level:
            self.logger.setLevel(getattr(logging, log_level.upper()))

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs) -> None:
        """Log error message."""
        self.logger.error(self._format_message(message, **kwargs))

    def critical(self, message: str, **kwargs) -> None:
        """Log critical message."""
        self.logger.critical(self._format_message(message, **kwargs))

    def _format_message(self, message: str, **kwargs) -> str:
        """Format message with optional context."""
        if kwargs:
            context = " | ".join(f"{k}={v}" for k, v in kwargs.items())
            return f"{message} | {context}"
        return message


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True
) -> logging.Logger:
    """
    Configure handlers on the ``clashmon`` root logger.

    Replaces any handlers installed by a previous call, so it is safe to
    call again when switching between console and dashboard output.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        console: Attach a stderr handler. Disabled while the dashboard
            owns the screen.

    Returns:
        The configured root logger
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, log_level.upper()))

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(file_handler)

    if not root.handlers:
        root.addHandler(logging.NullHandler())

    return root


def get_logger(name: str = ROOT_LOGGER_NAME, log_level: Optional[str] = None) -> ClashMonitorLogger:
    """
    Get a logger instance.

    Note: Returns a new wrapper each time; the underlying stdlib logger
    is shared per name.

    Args:
        name: Logger name
        log_level: Optional minimum level

    Returns:
        ClashMonitorLogger instance
    """
    return ClashMonitorLogger(name, log_level)
