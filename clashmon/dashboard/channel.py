"""
Bounded multi-producer / single-consumer event channel.

Adapters hold a Sender and nothing else. A send reports False once the
receiving side is gone, which is the adapters' only shutdown signal. The
receiver sees None once the channel is closed or every sender has been
released and the buffer is drained.
"""

import asyncio
from typing import Optional

from clashmon.dashboard.events import Event

DEFAULT_CAPACITY = 100

# Wakes a receiver blocked on an empty buffer after the last sender closes
_WAKEUP = object()


class Sender:
    """Send-only handle on an EventChannel."""

    def __init__(self, channel: "EventChannel"):
        self._channel = channel
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed or self._channel.closed

    async def send(self, event: Event) -> bool:
        """
        Send one event, waiting for buffer space if needed.

        Returns:
            False if the receiving side is closed (before or while
            waiting), True otherwise
        """
        if self.closed:
            return False

        queue = self._channel._queue
        if not queue.full():
            queue.put_nowait(event)
            return True

        put = asyncio.ensure_future(queue.put(event))
        closed = asyncio.ensure_future(self._channel._closed_event.wait())
        try:
            await asyncio.wait({put, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closed.cancel()
            if not put.done():
                put.cancel()
        return put.done() and not put.cancelled() and not self._channel.closed

    def close(self) -> None:
        """Release this sender. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._channel._release_sender()


class EventChannel:
    """
    The dashboard's single event bus.

    Example:
        >>> channel = EventChannel(capacity=100)
        >>> sender = channel.sender()
        >>> await sender.send(TickEvent())
        >>> await channel.recv()
        TickEvent()
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._senders = 0
        self._had_senders = False
        self._closed = False
        self._closed_event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    def sender(self) -> Sender:
        """Create a new sender. Raises RuntimeError once closed."""
        if self._closed:
            raise RuntimeError("Channel is closed")
        self._senders += 1
        self._had_senders = True
        return Sender(self)

    def _release_sender(self) -> None:
        self._senders -= 1
        if self._senders == 0 and not self._closed:
            try:
                self._queue.put_nowait(_WAKEUP)
            except asyncio.QueueFull:
                # A full buffer means the receiver is not blocked on get()
                pass

    def _disconnected(self) -> bool:
        return self._had_senders and self._senders == 0

    async def recv(self) -> Optional[Event]:
        """
        Wait for the next event.

        Returns:
            The next event, or None once the channel is closed or all
            senders are gone and the buffer is empty
        """
        while not self._closed:
            if self._queue.empty() and self._disconnected():
                return None
            item = await self._queue.get()
            if item is _WAKEUP:
                continue
            return item
        return None

    def close(self) -> None:
        """
        Close the receiving side.

        Buffered events are dropped and blocked senders are woken; their
        send() calls return False.
        """
        if self._closed:
            return
        self._closed = True
        self._closed_event.set()
        while not self._queue.empty():
            self._queue.get_nowait()
