"""
Clash control API layer.

Provides:
- Async HTTP client for the external controller
- Typed response models
"""

from clashmon.api.client import ClashClient
from clashmon.api.models import ClashConfig, DelayHistory, ProxyItem, Traffic, Version

__all__ = [
    "ClashClient",
    "ClashConfig",
    "DelayHistory",
    "ProxyItem",
    "Traffic",
    "Version",
]
