"""
Dashboard source adapters.

Four independent producers, each turning one data source into events:
- input_adapter: terminal keys raced against a redraw tick
- traffic_adapter: /traffic stream
- log_adapter: /logs stream
- roster_adapter: /proxies polled on a fixed interval

An adapter holds only a Sender. It stops quietly when its source ends or
fails, or when a send reports the channel closed; it never raises into
the dispatch loop.
"""

import asyncio
from contextlib import aclosing
from typing import AsyncIterator, Optional

from clashmon.api.models import Traffic
from clashmon.core.logger import get_logger
from clashmon.dashboard.channel import Sender
from clashmon.dashboard.events import (
    InputEvent,
    KeyEvent,
    LogEvent,
    RosterEvent,
    TickEvent,
    TrafficEvent,
)
from clashmon.dashboard.roster import build_roster

logger = get_logger(__name__)

DEFAULT_TICK_RATE = 0.25
DEFAULT_POLL_INTERVAL = 2.0


async def input_adapter(
    sender: Sender,
    keys: AsyncIterator[KeyEvent],
    tick_rate: float = DEFAULT_TICK_RATE
) -> None:
    """
    Forward key events, emitting a TickEvent whenever no key arrives
    within ``tick_rate`` seconds.

    A pending key read survives tick firings, so no key is lost to the
    race.

    Args:
        sender: Channel sender
        keys: Async iterator of decoded keys; exhaustion ends the adapter
        tick_rate: Seconds between ticks while idle
    """
    key_iter = keys.__aiter__()

    async def next_key() -> KeyEvent:
        return await key_iter.__anext__()

    pending: Optional[asyncio.Task] = None
    try:
        while not sender.closed:
            if pending is None:
                pending = asyncio.create_task(next_key())

            done, _ = await asyncio.wait({pending}, timeout=tick_rate)
            if not done:
                if not await sender.send(TickEvent()):
                    return
                continue

            task, pending = pending, None
            try:
                key = task.result()
            except StopAsyncIteration:
                logger.debug("Key source closed")
                return
            except Exception as e:
                logger.debug(f"Key source failed: {e}")
                return

            if not await sender.send(InputEvent(key)):
                return
    finally:
        if pending is not None:
            pending.cancel()
        sender.close()


async def traffic_adapter(sender: Sender, client) -> None:
    """
    Forward every well-formed /traffic sample as a TrafficEvent.

    Args:
        sender: Channel sender
        client: ClashClient (anything with ``stream_traffic()``)
    """
    try:
        async with aclosing(client.stream_traffic()) as stream:
            async for obj in stream:
                try:
                    sample = Traffic.from_dict(obj)
                except ValueError:
                    continue
                if not await sender.send(TrafficEvent(up=sample.up, down=sample.down)):
                    return
        logger.info("Traffic stream closed by server")
    except Exception as e:
        logger.warning(f"Traffic stream stopped: {e}")
    finally:
        sender.close()


async def log_adapter(sender: Sender, client, level: str = "info") -> None:
    """
    Forward the ``payload`` of every /logs record as a LogEvent.

    Args:
        sender: Channel sender
        client: ClashClient (anything with ``stream_logs(level)``)
        level: Minimum daemon log level to subscribe to
    """
    try:
        async with aclosing(client.stream_logs(level)) as stream:
            async for record in stream:
                payload = record.get("payload") if isinstance(record, dict) else None
                if not isinstance(payload, str):
                    continue
                if not await sender.send(LogEvent(line=payload)):
                    return
        logger.info("Log stream closed by server")
    except Exception as e:
        logger.warning(f"Log stream stopped: {e}")
    finally:
        sender.close()


async def roster_adapter(
    sender: Sender,
    client,
    interval: float = DEFAULT_POLL_INTERVAL
) -> None:
    """
    Poll /proxies every ``interval`` seconds and forward the roster.

    A failed poll is logged and skipped; the previous roster stays on
    screen until the next successful one.

    Args:
        sender: Channel sender
        client: ClashClient (anything with ``get_proxies()``)
        interval: Seconds between polls
    """
    polls_count = 0
    try:
        while not sender.closed:
            polls_count += 1
            try:
                proxies = await client.get_proxies()
            except Exception as e:
                logger.debug(f"Proxy poll #{polls_count} failed: {e}")
            else:
                if not await sender.send(RosterEvent(rows=build_roster(proxies))):
                    return

            await asyncio.sleep(interval)
    finally:
        sender.close()
