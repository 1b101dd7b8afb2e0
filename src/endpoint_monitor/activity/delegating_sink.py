"""
Delegating activity sink implementation.

This module provides a composite implementation of the ActivitySink interface
that delegates each event to multiple child sinks concurrently. It ensures
that failures in one sink don't affect the others.
"""

import asyncio
import logging
from typing import List

from endpoint_monitor.contracts import ActivitySink
from endpoint_monitor.domain import ActivityEvent

# Module logger
logger = logging.getLogger(__name__)


class DelegatingActivitySink(ActivitySink):
    """
    A concrete implementation of ActivitySink that follows the Composite pattern.

    This class holds a list of other ActivitySink instances and delegates the
    'record' and 'flush' calls to each of them concurrently. If one sink fails,
    the others are still executed.
    """

    def __init__(self, sinks: List[ActivitySink]) -> None:
        """
        Initializes the delegator with a list of sinks to delegate to.

        Args:
            sinks: A list of objects that adhere to the ActivitySink interface.
        """
        self._sinks: List[ActivitySink] = sinks

    async def _record_with_one(self, sink: ActivitySink, event: ActivityEvent) -> None:
        """
        Safely runs a single sink. Exceptions are logged, never propagated.

        Args:
            sink: The individual sink to run.
            event: The event to record.

        Returns:
            None
        """
        try:
            await sink.record(event)
        except Exception as e:
            logger.exception(
                f"Sink '{type(sink).__name__}' failed for event {event.kind.value} with error: {e}",
            )

    async def _flush_one(self, sink: ActivitySink) -> None:
        try:
            await sink.flush()
        except Exception as e:
            logger.exception(f"Sink '{type(sink).__name__}' failed to flush with error: {e}")

    async def record(self, event: ActivityEvent) -> None:
        """
        Records a single event by delegating to all child sinks.

        Args:
            event: The event to be recorded by all child sinks.

        Returns:
            None
        """
        if not self._sinks:
            return

        await asyncio.gather(*(self._record_with_one(sink, event) for sink in self._sinks))

    async def flush(self) -> None:
        """
        Flushes every child sink.

        Returns:
            None
        """
        if not self._sinks:
            return

        await asyncio.gather(*(self._flush_one(sink) for sink in self._sinks))
