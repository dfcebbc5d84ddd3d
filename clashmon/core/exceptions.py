"""
Clash monitor exceptions.
"""

from typing import Optional


class ClashMonitorError(Exception):
    """Base exception for the Clash monitor."""
    pass


class ClashApiError(ClashMonitorError):
    """Exception raised when the control API returns an error response."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ClashConnectionError(ClashApiError):
    """Exception raised when the control API cannot be reached."""
    pass


class TerminalError(ClashMonitorError):
    """Exception raised when terminal mode setup or restore fails."""
    pass


class ConfigValidationError(ClashMonitorError):
    """Raised when configuration validation fails."""
    pass
