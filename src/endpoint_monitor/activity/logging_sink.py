"""
Activity sink writing events to the application log.
"""

import logging

from endpoint_monitor.contracts import ActivitySink
from endpoint_monitor.domain import ActivityEvent, ActivityKind

# Module logger
logger = logging.getLogger(__name__)


class LoggingActivitySink(ActivitySink):
    """Logs every activity event. Monitor going down is logged as a warning."""

    async def record(self, event: ActivityEvent) -> None:
        level = logging.WARNING if event.kind is ActivityKind.MONITOR_DOWN else logging.INFO
        logger.log(level, f"[{event.kind.value}] {event.message}", extra={"activity": event.metadata})

    async def flush(self) -> None:
        # Nothing is buffered
        pass
