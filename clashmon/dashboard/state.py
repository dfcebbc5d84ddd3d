"""
Dashboard state.

Bounded rolling windows for traffic and logs, plus the latest proxy
roster. Pure data: mutated only by the dispatch loop through apply().
"""

from typing import List, MutableSequence, TypeVar

from clashmon.dashboard.events import (
    Event,
    InputEvent,
    LogEvent,
    ProxyRow,
    RosterEvent,
    TickEvent,
    TrafficEvent,
    is_quit_key,
)

TRAFFIC_CAPACITY = 300
LOG_CAPACITY = 50

T = TypeVar("T")


def push_bounded(seq: MutableSequence[T], value: T, cap: int) -> None:
    """Append value, dropping from the front until len(seq) <= cap."""
    seq.append(value)
    while len(seq) > cap:
        del seq[0]


class Snapshot:
    """Everything one frame needs."""

    def __init__(self, traffic_capacity: int = TRAFFIC_CAPACITY, log_capacity: int = LOG_CAPACITY):
        self.traffic_capacity = traffic_capacity
        self.log_capacity = log_capacity

        # Histories start zero-filled so the sparklines span the full width
        self.upload_history: List[int] = [0] * traffic_capacity
        self.download_history: List[int] = [0] * traffic_capacity
        self.log_lines: List[str] = []
        self.proxy_rows: List[ProxyRow] = []
        self.should_quit: bool = False

    def apply(self, event: Event) -> None:
        """
        Apply one event.

        Raises:
            TypeError: If the event is not one of the known kinds
        """
        if isinstance(event, TrafficEvent):
            push_bounded(self.upload_history, event.up, self.traffic_capacity)
            push_bounded(self.download_history, event.down, self.traffic_capacity)
        elif isinstance(event, LogEvent):
            push_bounded(self.log_lines, event.line, self.log_capacity)
        elif isinstance(event, RosterEvent):
            self.proxy_rows = list(event.rows)
        elif isinstance(event, InputEvent):
            if is_quit_key(event.key):
                self.should_quit = True
        elif isinstance(event, TickEvent):
            pass
        else:
            raise TypeError(f"Unknown dashboard event: {event!r}")

    @property
    def current_upload(self) -> int:
        return self.upload_history[-1] if self.upload_history else 0

    @property
    def current_download(self) -> int:
        return self.download_history[-1] if self.download_history else 0
