"""
Dashboard events.

Every adapter produces exactly one kind of event; the dispatch loop
consumes them in arrival order.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple, Union

# (group_name, selected_node, delay_label)
ProxyRow = Tuple[str, str, str]

ESCAPE = "esc"
QUIT_KEYS = ("q", ESCAPE)


class KeyKind(Enum):
    """Key transition reported by the terminal."""
    PRESS = "press"
    RELEASE = "release"
    REPEAT = "repeat"


@dataclass(frozen=True)
class KeyEvent:
    """A single decoded key."""
    code: str  # one character, or a named key ("esc", "enter", "up", ...)
    kind: KeyKind = KeyKind.PRESS


@dataclass(frozen=True)
class InputEvent:
    """Raw terminal input."""
    key: KeyEvent


@dataclass(frozen=True)
class TickEvent:
    """Periodic redraw trigger."""
    pass


@dataclass(frozen=True)
class TrafficEvent:
    """One throughput sample in bytes per second."""
    up: int
    down: int


@dataclass(frozen=True)
class LogEvent:
    """One daemon log message."""
    line: str


@dataclass(frozen=True)
class RosterEvent:
    """A complete, already ordered proxy roster."""
    rows: List[ProxyRow]


Event = Union[InputEvent, TickEvent, TrafficEvent, LogEvent, RosterEvent]


def is_quit_key(key: KeyEvent) -> bool:
    """Quit on "q" or Escape, press transitions only."""
    return key.kind == KeyKind.PRESS and key.code in QUIT_KEYS
