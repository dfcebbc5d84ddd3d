"""
Typed views over Clash control API responses.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

SELECTOR = "Selector"
URL_TEST = "URLTest"


@dataclass
class Traffic:
    """One traffic sample in bytes per second."""
    up: int
    down: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Traffic":
        """
        Build from a ``{"up": int, "down": int}`` object.

        Raises:
            ValueError: If a field is missing, negative or not an integer
        """
        try:
            up = data["up"]
            down = data["down"]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid traffic sample: {data!r}") from e

        for value in (up, down):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"Invalid traffic sample: {data!r}")
        return cls(up=up, down=down)


@dataclass
class DelayHistory:
    """One latency probe result."""
    time: str
    delay: int


@dataclass
class ProxyItem:
    """A proxy node or proxy group."""
    name: str
    type: str
    all: Optional[List[str]] = None  # members, groups only
    now: Optional[str] = None  # selected member, groups only
    history: List[DelayHistory] = field(default_factory=list)  # latest last

    @property
    def is_group(self) -> bool:
        """Selector and URLTest groups are shown in the roster."""
        return self.type in (SELECTOR, URL_TEST)

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "ProxyItem":
        history = [
            DelayHistory(time=str(h.get("time", "")), delay=int(h.get("delay", 0)))
            for h in data.get("history") or []
        ]
        return cls(
            name=data.get("name", name),
            type=data.get("type", ""),
            all=data.get("all"),
            now=data.get("now"),
            history=history
        )


@dataclass
class ClashConfig:
    """Running daemon configuration (subset)."""
    mode: str
    port: Optional[int] = None
    mixed_port: Optional[int] = None
    log_level: Optional[str] = None
    tun_enabled: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClashConfig":
        tun = data.get("tun") or {}
        return cls(
            mode=data.get("mode", ""),
            port=data.get("port"),
            mixed_port=data.get("mixed-port"),
            log_level=data.get("log-level"),
            tun_enabled=bool(tun.get("enable", False))
        )


@dataclass
class Version:
    """Daemon core version."""
    version: str
