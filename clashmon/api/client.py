"""
Clash control API client.

Async aiohttp client for the daemon's external controller:
- Request/response queries (proxies, configs, version, connections)
- Proxy selection and delay tests
- Streaming endpoints (traffic, logs) decoded line by line
"""

import json
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import quote

import aiohttp

from clashmon.api.models import ClashConfig, ProxyItem, Traffic, Version
from clashmon.core.config import DEFAULT_API_URL, DEFAULT_DELAY_TEST_URL
from clashmon.core.exceptions import ClashApiError, ClashConnectionError
from clashmon.core.logger import get_logger
from clashmon.data.streams import iter_json_lines

logger = get_logger(__name__)

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=10)
# Streams stay open for the whole dashboard session
STREAM_TIMEOUT = aiohttp.ClientTimeout(total=None, sock_connect=10)


class ClashClient:
    """
    Async client for the Clash external controller API.

    Handles:
    - Proxy group and node queries
    - Proxy selection and latency probes
    - Running configuration (read and patch)
    - Traffic and log streams

    Example:
        >>> async with ClashClient() as client:
        ...     proxies = await client.get_proxies()
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        secret: Optional[str] = None,
        delay_test_url: str = DEFAULT_DELAY_TEST_URL,
        delay_timeout_ms: int = 5000
    ):
        """
        Initialize API client.

        Args:
            base_url: External controller URL
            secret: Optional bearer secret configured on the daemon
            delay_test_url: URL the daemon probes during delay tests
            delay_timeout_ms: Delay test timeout passed to the daemon
        """
        self.base_url = base_url.rstrip("/")
        self.secret = secret
        self.delay_test_url = delay_test_url
        self.delay_timeout_ms = delay_timeout_ms
        self.session: Optional[aiohttp.ClientSession] = None

        logger.debug(f"ClashClient initialized: base_url={self.base_url}")

    @classmethod
    def from_config(cls, config) -> "ClashClient":
        """Create a client from ``Config.api``."""
        return cls(
            base_url=config.api.base_url,
            secret=config.api.secret,
            delay_test_url=config.api.delay_test_url,
            delay_timeout_ms=config.api.delay_timeout_ms
        )

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session exists."""
        if self.session is None or self.session.closed:
            headers = {}
            if self.secret:
                headers["Authorization"] = f"Bearer {self.secret}"
            self.session = aiohttp.ClientSession(headers=headers)
        return self.session

    async def close(self) -> None:
        """Close HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        payload: Optional[Dict] = None
    ) -> Any:
        """
        Make HTTP request.

        Args:
            method: HTTP method
            endpoint: API endpoint (already quoted)
            params: Query parameters
            payload: Optional JSON body

        Returns:
            Decoded JSON response, or None for empty bodies

        Raises:
            ClashApiError: On a non-2xx response
            ClashConnectionError: If the API cannot be reached
        """
        session = await self._ensure_session()
        url = f"{self.base_url}{endpoint}"

        try:
            async with session.request(
                method, url, params=params, json=payload, timeout=REQUEST_TIMEOUT
            ) as response:
                if response.status >= 300:
                    text = await response.text()
                    logger.debug(f"API error: {response.status} - {text}")
                    raise ClashApiError(
                        f"{method} {endpoint} failed: HTTP {response.status}",
                        status=response.status
                    )
                if response.status == 204:
                    return None
                body = await response.text()
                if not body.strip():
                    return None
                try:
                    return json.loads(body)
                except json.JSONDecodeError as e:
                    raise ClashApiError(f"{method} {endpoint} returned invalid JSON: {e}") from e

        except aiohttp.ClientError as e:
            raise ClashConnectionError(f"Cannot reach Clash API at {self.base_url}: {e}") from e

    async def _stream(self, endpoint: str, params: Optional[Dict] = None) -> AsyncIterator[Dict]:
        """
        Open a streaming endpoint and yield one JSON object per line.

        Undecodable lines are skipped. The generator ends when the server
        closes the stream.

        Raises:
            ClashApiError: On a non-2xx response
            ClashConnectionError: If the connection cannot be opened or drops
        """
        session = await self._ensure_session()
        url = f"{self.base_url}{endpoint}"

        try:
            async with session.get(url, params=params, timeout=STREAM_TIMEOUT) as response:
                if response.status >= 300:
                    raise ClashApiError(
                        f"GET {endpoint} failed: HTTP {response.status}",
                        status=response.status
                    )
                async for obj in iter_json_lines(response.content.iter_any()):
                    yield obj

        except aiohttp.ClientError as e:
            raise ClashConnectionError(f"Stream {endpoint} failed: {e}") from e

    async def get_proxies(self) -> Dict[str, ProxyItem]:
        """
        Get all proxy groups and nodes.

        Returns:
            Mapping of proxy name to ProxyItem
        """
        data = await self._request("GET", "/proxies") or {}
        proxies = data.get("proxies") or {}
        return {name: ProxyItem.from_dict(name, item) for name, item in proxies.items()}

    async def select_proxy(self, group_name: str, proxy_name: str) -> None:
        """
        Switch the selected node of a selector group.

        Args:
            group_name: Selector group
            proxy_name: Member to select
        """
        await self._request(
            "PUT", f"/proxies/{quote(group_name, safe='')}", payload={"name": proxy_name}
        )
        logger.info("Proxy selected", group=group_name, proxy=proxy_name)

    async def get_config(self) -> ClashConfig:
        """Get the running configuration."""
        data = await self._request("GET", "/configs") or {}
        return ClashConfig.from_dict(data)

    async def update_config(self, payload: Dict[str, Any]) -> None:
        """
        Patch the running configuration (e.g. ``{"mode": "rule"}``).

        Args:
            payload: Partial configuration
        """
        await self._request("PATCH", "/configs", payload=payload)
        logger.info("Configuration updated", **payload)

    async def delay_test(self, proxy_name: str) -> int:
        """
        Ask the daemon to probe a node's latency.

        Args:
            proxy_name: Node name

        Returns:
            Delay in milliseconds
        """
        params = {"timeout": str(self.delay_timeout_ms), "url": self.delay_test_url}
        data = await self._request(
            "GET", f"/proxies/{quote(proxy_name, safe='')}/delay", params=params
        ) or {}
        return int(data.get("delay", 0))

    async def get_traffic(self) -> Traffic:
        """
        Get a single traffic snapshot (first complete line of /traffic).

        Raises:
            ClashApiError: If the stream ends before a valid sample arrives
        """
        stream = self._stream("/traffic")
        try:
            async for obj in stream:
                try:
                    return Traffic.from_dict(obj)
                except ValueError:
                    continue
        finally:
            await stream.aclose()
        raise ClashApiError("No traffic data received")

    async def get_version(self) -> Version:
        """Get daemon core version."""
        data = await self._request("GET", "/version") or {}
        return Version(version=str(data.get("version", "")))

    async def get_connection_count(self) -> int:
        """Get number of active connections."""
        data = await self._request("GET", "/connections") or {}
        return len(data.get("connections") or [])

    def stream_traffic(self) -> AsyncIterator[Dict]:
        """Stream raw ``{"up", "down"}`` objects from /traffic."""
        return self._stream("/traffic")

    def stream_logs(self, level: str = "info") -> AsyncIterator[Dict]:
        """Stream raw ``{"type", "payload"}`` records from /logs."""
        return self._stream("/logs", params={"level": level})
