"""
Fire-and-forget delivery of activity events.

The monitoring core never waits for, retries or verifies the delivery of an
activity event. ActivityEmitter hands each event to the sink in a background
task, keeps a reference to it until it completes and logs delivery failures.
"""

import asyncio
import logging
from typing import Set

from endpoint_monitor.contracts import ActivitySink
from endpoint_monitor.domain import ActivityEvent

# Module logger
logger = logging.getLogger(__name__)


class ActivityEmitter:
    """
    Dispatches activity events to a sink without blocking the caller.
    """

    def __init__(self, sink: ActivitySink) -> None:
        """
        Args:
            sink: The destination of every emitted event.
        """
        self._sink: ActivitySink = sink
        self._pending: Set[asyncio.Task] = set()

    def emit(self, event: ActivityEvent) -> None:
        """
        Schedules the delivery of an event and returns immediately.

        Must be called from within a running event loop.

        Args:
            event: The event to deliver.

        Returns:
            None
        """
        task = asyncio.create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: ActivityEvent) -> None:
        try:
            await self._sink.record(event)
        except Exception as e:
            logger.exception(f"Failed to deliver activity event {event.kind.value}: {e}")

    @property
    def pending(self) -> int:
        """Number of deliveries still in flight."""
        return len(self._pending)

    async def drain(self) -> None:
        """
        Waits for every in-flight delivery, then flushes the sink.

        Returns:
            None
        """
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

        try:
            await self._sink.flush()
        except Exception as e:
            logger.exception(f"Failed to flush activity sink: {e}")
