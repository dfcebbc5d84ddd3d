"""
Pytest configuration and fixtures.
"""

import json
from typing import AsyncIterator, Dict, List, Optional

import pytest

from clashmon.api.models import ProxyItem
from clashmon.data.streams import iter_json_lines


async def byte_chunks(chunks: List[bytes]) -> AsyncIterator[bytes]:
    """Async iterable over pre-split byte chunks."""
    for chunk in chunks:
        yield chunk


class FakeClashClient:
    """
    In-memory stand-in for ClashClient.

    Streams are served from raw byte chunks so the same line framing and
    JSON decoding as the real client applies.
    """

    def __init__(
        self,
        traffic_chunks: Optional[List[bytes]] = None,
        log_chunks: Optional[List[bytes]] = None,
        proxies: Optional[Dict[str, ProxyItem]] = None,
        stream_error: Optional[Exception] = None,
        proxies_error: Optional[Exception] = None
    ):
        self.traffic_chunks = traffic_chunks or []
        self.log_chunks = log_chunks or []
        self.proxies = proxies or {}
        self.stream_error = stream_error
        self.proxies_error = proxies_error
        self.proxy_calls = 0
        self.log_levels: List[str] = []

    async def _stream(self, chunks: List[bytes]):
        if self.stream_error is not None:
            raise self.stream_error
        async for obj in iter_json_lines(byte_chunks(chunks)):
            yield obj

    def stream_traffic(self):
        return self._stream(self.traffic_chunks)

    def stream_logs(self, level: str = "info"):
        self.log_levels.append(level)
        return self._stream(self.log_chunks)

    async def get_proxies(self) -> Dict[str, ProxyItem]:
        self.proxy_calls += 1
        if self.proxies_error is not None:
            raise self.proxies_error
        return self.proxies


def ndjson(*objects) -> bytes:
    """Encode objects as newline-delimited JSON."""
    return b"".join(json.dumps(obj).encode() + b"\n" for obj in objects)


@pytest.fixture
def proxies_payload() -> Dict:
    """Raw /proxies response body."""
    return {
        "proxies": {
            "Proxy": {
                "name": "Proxy",
                "type": "Selector",
                "all": ["HK-01", "JP-01"],
                "now": "HK-01",
                "history": [
                    {"time": "2024-01-01T00:00:00Z", "delay": 320},
                    {"time": "2024-01-01T00:01:00Z", "delay": 120},
                ],
            },
            "GLOBAL": {
                "name": "GLOBAL",
                "type": "Selector",
                "all": ["DIRECT", "Proxy"],
                "now": "Proxy",
                "history": [],
            },
            "Auto": {
                "name": "Auto",
                "type": "URLTest",
                "all": ["HK-01", "JP-01"],
                "now": "JP-01",
                "history": [{"time": "2024-01-01T00:00:00Z", "delay": 80}],
            },
            "HK-01": {
                "name": "HK-01",
                "type": "Shadowsocks",
                "history": [{"time": "2024-01-01T00:00:00Z", "delay": 120}],
            },
            "DIRECT": {"name": "DIRECT", "type": "Direct", "history": []},
        }
    }


@pytest.fixture
def proxy_items(proxies_payload) -> Dict[str, ProxyItem]:
    """Parsed /proxies response."""
    return {
        name: ProxyItem.from_dict(name, item)
        for name, item in proxies_payload["proxies"].items()
    }


@pytest.fixture
def fake_client(proxy_items) -> FakeClashClient:
    """Fake client with two traffic samples, two log records and a roster."""
    return FakeClashClient(
        traffic_chunks=[ndjson({"up": 100, "down": 50}, {"up": 200, "down": 75})],
        log_chunks=[ndjson(
            {"type": "info", "payload": "[TCP] 127.0.0.1 --> example.com:443"},
            {"type": "warning", "payload": "dial timeout"},
        )],
        proxies=proxy_items
    )
