"""
Tick-driven implementation of the WorkScheduler interface.

On every tick the scheduler yields a snapshot of every registered monitor.
The configured per-monitor interval is not consulted: each tick checks all
monitors.
"""

import asyncio
import logging
from typing import List

from endpoint_monitor.contracts import Ticker, WorkScheduler
from endpoint_monitor.domain import Monitor
from endpoint_monitor.store.monitor_store import InMemoryMonitorStore

# Module logger
logger = logging.getLogger(__name__)

# Default time between two ticks in seconds
DEFAULT_TICK_INTERVAL = 60.0


class IntervalTicker(Ticker):
    """
    A Ticker firing every 'interval' seconds of wall-clock time.

    The first tick fires one interval after the first call to tick().
    """

    def __init__(self, interval: float = DEFAULT_TICK_INTERVAL) -> None:
        """
        Args:
            interval: Seconds between two ticks.

        Raises:
            ValueError: If the interval is not positive.
        """
        if interval <= 0:
            raise ValueError("interval must be positive.")

        self._interval: float = interval
        self._stopped: asyncio.Event = asyncio.Event()

    @property
    def interval(self) -> float:
        return self._interval

    async def tick(self) -> bool:
        if self._stopped.is_set():
            return False
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            return True
        return False

    def stop(self) -> None:
        self._stopped.set()


class TickScheduler(WorkScheduler):
    """
    Yields every registered monitor once per tick.
    """

    def __init__(self, store: InMemoryMonitorStore, ticker: Ticker) -> None:
        """
        Initializes a new TickScheduler instance.

        Args:
            store: The monitor record store to read monitors from.
            ticker: The source of ticks.
        """
        self._store: InMemoryMonitorStore = store
        self._ticker: Ticker = ticker
        self._is_running: bool = False

    async def start(self) -> None:
        """
        Prepares the scheduler to start yielding work.

        Returns:
            None
        """
        logger.info("Starting tick scheduler...")
        self._is_running = True

    async def stop(self) -> None:
        """
        Stops the scheduler. A tick in progress is not interrupted.

        Returns:
            None
        """
        logger.info("Closing tick scheduler...")
        self._is_running = False
        self._ticker.stop()

    async def __anext__(self) -> List[Monitor]:
        """
        Waits for the next tick and returns every registered monitor.

        Returns:
            List[Monitor]: The monitors to check in this tick.

        Raises:
            StopAsyncIteration: When the scheduler has been stopped.
        """
        if self._is_running and await self._ticker.tick() and self._is_running:
            monitors = await self._store.all()
            logger.debug(f"Tick fired with {len(monitors)} monitors.")
            return monitors

        raise StopAsyncIteration
