"""
Unit tests for dashboard source adapters.

Each adapter runs against an EventChannel and a fake source; the tests
read what arrives on the receiving side.
"""

import asyncio
from unittest.mock import Mock

import pytest

from clashmon.core.exceptions import ClashConnectionError
from clashmon.dashboard.adapters import (
    input_adapter,
    log_adapter,
    roster_adapter,
    traffic_adapter,
)
from clashmon.dashboard.channel import EventChannel
from clashmon.dashboard.events import (
    InputEvent,
    KeyEvent,
    LogEvent,
    RosterEvent,
    TickEvent,
    TrafficEvent,
)
from tests.conftest import FakeClashClient, ndjson


async def drain(channel):
    """Receive until the channel reports end of stream."""
    events = []
    while True:
        event = await asyncio.wait_for(channel.recv(), timeout=2)
        if event is None:
            return events
        events.append(event)


async def keys_from(*codes, delay=0.0):
    for code in codes:
        if delay:
            await asyncio.sleep(delay)
        yield KeyEvent(code)


async def silent_keys():
    await asyncio.Event().wait()
    yield KeyEvent("never")


class TestInputAdapter:
    """Unit tests for input_adapter"""

    @pytest.mark.asyncio
    async def test_ticks_while_idle(self):
        """Test ticks are emitted when no key arrives"""
        channel = EventChannel()
        task = asyncio.create_task(input_adapter(channel.sender(), silent_keys(), tick_rate=0.01))

        first = await asyncio.wait_for(channel.recv(), timeout=1)
        second = await asyncio.wait_for(channel.recv(), timeout=1)
        channel.close()
        await asyncio.wait_for(task, timeout=1)

        assert first == TickEvent()
        assert second == TickEvent()

    @pytest.mark.asyncio
    async def test_forwards_keys(self):
        """Test keys are forwarded in order and source end closes the sender"""
        channel = EventChannel()
        task = asyncio.create_task(input_adapter(channel.sender(), keys_from("a", "q"), tick_rate=1.0))

        events = await drain(channel)
        await task

        assert events == [InputEvent(KeyEvent("a")), InputEvent(KeyEvent("q"))]

    @pytest.mark.asyncio
    async def test_key_survives_tick(self):
        """Test a key arriving after several ticks is not lost"""
        channel = EventChannel()
        task = asyncio.create_task(
            input_adapter(channel.sender(), keys_from("x", delay=0.05), tick_rate=0.01)
        )

        events = await drain(channel)
        await task

        assert TickEvent() in events
        assert events[-1] == InputEvent(KeyEvent("x"))

    @pytest.mark.asyncio
    async def test_stops_on_closed_channel(self):
        """Test the adapter exits once sends fail"""
        channel = EventChannel()
        sender = channel.sender()
        channel.close()

        await asyncio.wait_for(input_adapter(sender, silent_keys(), tick_rate=0.01), timeout=1)

        assert sender.closed


class TestTrafficAdapter:
    """Unit tests for traffic_adapter"""

    @pytest.mark.asyncio
    async def test_forwards_samples(self, fake_client):
        channel = EventChannel()

        await traffic_adapter(channel.sender(), fake_client)

        assert await drain(channel) == [TrafficEvent(100, 50), TrafficEvent(200, 75)]

    @pytest.mark.asyncio
    async def test_skips_malformed_samples(self):
        """Test garbled lines and invalid samples are dropped"""
        client = FakeClashClient(traffic_chunks=[
            b'{"up":1,"down":2}\nnot json\n',
            ndjson({"up": -1, "down": 0}, {"up": "3", "down": 4}, {"down": 5}),
            b'{"up":6,"down":7}\n{"up":',
        ])
        channel = EventChannel()

        await traffic_adapter(channel.sender(), client)

        assert await drain(channel) == [TrafficEvent(1, 2), TrafficEvent(6, 7)]

    @pytest.mark.asyncio
    async def test_stream_error_ends_quietly(self):
        """Test a failing stream closes the sender without raising"""
        client = FakeClashClient(stream_error=ClashConnectionError("refused"))
        channel = EventChannel()

        await traffic_adapter(channel.sender(), client)

        assert await drain(channel) == []

    @pytest.mark.asyncio
    async def test_stops_on_closed_channel(self, fake_client):
        channel = EventChannel()
        sender = channel.sender()
        channel.close()

        await asyncio.wait_for(traffic_adapter(sender, fake_client), timeout=1)

        assert sender.closed


class TestLogAdapter:
    """Unit tests for log_adapter"""

    @pytest.mark.asyncio
    async def test_forwards_payloads(self, fake_client):
        """Test only the payload of each record is forwarded"""
        channel = EventChannel()

        await log_adapter(channel.sender(), fake_client, level="warning")

        assert await drain(channel) == [
            LogEvent("[TCP] 127.0.0.1 --> example.com:443"),
            LogEvent("dial timeout"),
        ]
        assert fake_client.log_levels == ["warning"]

    @pytest.mark.asyncio
    async def test_skips_records_without_payload(self):
        client = FakeClashClient(log_chunks=[ndjson(
            {"type": "info"},
            {"type": "info", "payload": 42},
            ["not", "a", "record"],
            {"type": "info", "payload": "kept"},
        )])
        channel = EventChannel()

        await log_adapter(channel.sender(), client)

        assert await drain(channel) == [LogEvent("kept")]


    @pytest.mark.asyncio
    async def test_stream_error_ends_quietly(self):
        """Test a failing log stream closes the sender without raising"""
        client = FakeClashClient(stream_error=ClashConnectionError("refused"))
        channel = EventChannel()

        await log_adapter(channel.sender(), client)

        assert await drain(channel) == []


class TestRosterAdapter:
    """Unit tests for roster_adapter"""

    @pytest.mark.asyncio
    async def test_polls_roster(self, fake_client):
        """Test each poll sends the ordered roster"""
        channel = EventChannel()
        task = asyncio.create_task(roster_adapter(channel.sender(), fake_client, interval=0.01))

        first = await asyncio.wait_for(channel.recv(), timeout=1)
        second = await asyncio.wait_for(channel.recv(), timeout=1)
        channel.close()
        await asyncio.wait_for(task, timeout=1)

        assert isinstance(first, RosterEvent)
        assert first.rows[0] == ("GLOBAL", "Proxy", "0")
        assert second == first
        assert fake_client.proxy_calls >= 2

    @pytest.mark.asyncio
    async def test_stops_when_send_fails(self, fake_client):
        """Test a send refused by a closed channel ends the adapter at once"""
        channel = EventChannel(capacity=1)
        filler = channel.sender()
        await filler.send(TickEvent())
        task = asyncio.create_task(roster_adapter(channel.sender(), fake_client, interval=10))

        await asyncio.sleep(0.01)
        assert not task.done()
        channel.close()
        await asyncio.wait_for(task, timeout=1)

        assert fake_client.proxy_calls == 1

    @pytest.mark.asyncio
    async def test_failed_poll_skipped(self, proxy_items):
        """Test a failed poll is swallowed and the next one retried"""
        calls = []

        async def get_proxies():
            calls.append(1)
            if len(calls) == 1:
                raise ClashConnectionError("refused")
            return proxy_items

        client = Mock()
        client.get_proxies = get_proxies
        channel = EventChannel()
        task = asyncio.create_task(roster_adapter(channel.sender(), client, interval=0.01))

        event = await asyncio.wait_for(channel.recv(), timeout=1)
        channel.close()
        await asyncio.wait_for(task, timeout=1)

        assert isinstance(event, RosterEvent)
        assert len(calls) >= 2
