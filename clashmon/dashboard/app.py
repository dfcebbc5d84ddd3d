"""
Live Clash dashboard.

Wires the four source adapters to one bounded channel and runs the single
dispatch loop that applies events to the Snapshot and redraws the frame.
"""

import asyncio
from enum import Enum
from typing import Callable, List, Optional

from clashmon.api.client import ClashClient
from clashmon.core.config import Config, DashboardConfig
from clashmon.core.logger import get_logger, setup_logging
from clashmon.dashboard.adapters import (
    input_adapter,
    log_adapter,
    roster_adapter,
    traffic_adapter,
)
from clashmon.dashboard.channel import EventChannel
from clashmon.dashboard.render import render_frame
from clashmon.dashboard.state import Snapshot
from clashmon.dashboard.terminal import KeyReader, TerminalSession

logger = get_logger(__name__)


class LoopState(Enum):
    """Dispatch loop states."""
    RUNNING = "running"
    QUITTING = "quitting"  # terminal


class Dashboard:
    """
    Terminal dashboard for a running Clash daemon.

    Panels:
    - Real-time daemon logs
    - Proxy group roster with cached delays
    - Upload and download sparklines

    The dispatch loop is the only writer of the Snapshot. Adapters are
    abandoned on exit: the channel is closed (their sends start failing)
    and their tasks are cancelled.
    """

    def __init__(
        self,
        client,
        config: Optional[DashboardConfig] = None,
        terminal_factory: Callable = TerminalSession,
        key_source_factory: Callable = KeyReader
    ):
        """
        Initialize dashboard.

        Args:
            client: ClashClient (or any object with the same streaming and
                get_proxies methods)
            config: Dashboard settings (defaults if None)
            terminal_factory: Returns a context manager with ``draw()``
            key_source_factory: Returns an async iterator of KeyEvents
        """
        self.client = client
        self.config = config or DashboardConfig()
        self.terminal_factory = terminal_factory
        self.key_source_factory = key_source_factory

        self.snapshot = Snapshot(
            traffic_capacity=self.config.traffic_capacity,
            log_capacity=self.config.log_capacity
        )
        self.state = LoopState.RUNNING
        self.events_processed = 0
        self._tasks: List[asyncio.Task] = []

    async def run(self) -> None:
        """
        Run until the user quits or every source is gone.

        The terminal is restored before this returns or raises.
        """
        with self.terminal_factory() as terminal:
            await self._run_loop(terminal)
        logger.info(f"Dashboard stopped after {self.events_processed} events")

    async def _run_loop(self, terminal) -> None:
        channel = EventChannel(self.config.channel_capacity)
        keys = self.key_source_factory()

        self._tasks = [
            asyncio.create_task(
                input_adapter(channel.sender(), keys, self.config.tick_rate),
                name="dashboard-input"
            ),
            asyncio.create_task(
                traffic_adapter(channel.sender(), self.client),
                name="dashboard-traffic"
            ),
            asyncio.create_task(
                log_adapter(channel.sender(), self.client, self.config.log_level_filter),
                name="dashboard-logs"
            ),
            asyncio.create_task(
                roster_adapter(channel.sender(), self.client, self.config.poll_interval),
                name="dashboard-roster"
            ),
        ]
        logger.info("Dashboard started")

        try:
            while self.state is LoopState.RUNNING:
                terminal.draw(render_frame(self.snapshot))

                event = await channel.recv()
                if event is None:
                    logger.info("All dashboard sources closed")
                    break

                self.snapshot.apply(event)
                self.events_processed += 1

                if self.snapshot.should_quit:
                    break
        finally:
            self.state = LoopState.QUITTING
            channel.close()
            close = getattr(keys, "close", None)
            if close is not None:
                close()
            for task in self._tasks:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)


async def run_dashboard(config: Config, client: Optional[ClashClient] = None) -> None:
    """
    Run the dashboard against the configured control API.

    Console logging is switched off while the dashboard owns the screen;
    records still go to the log file when one is configured.

    Raises:
        TerminalError: If the terminal cannot be set up or restored
    """
    setup_logging(config.logging.level, config.logging.file, console=False)
    try:
        async with (client or ClashClient.from_config(config)) as api:
            await Dashboard(api, config.dashboard).run()
    finally:
        setup_logging(config.logging.level, config.logging.file, console=True)
