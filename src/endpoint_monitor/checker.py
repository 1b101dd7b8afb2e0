"""
Single-monitor liveness check.

MonitorChecker is the one code path used by both the scheduled ticks and the
manual 'check now' operation: probe the monitor URL with HEAD, derive up/down,
record the outcome and emit an activity event when the status changed.
"""

import logging
from datetime import datetime
from typing import Callable

from endpoint_monitor.activity.emitter import ActivityEmitter
from endpoint_monitor.contracts import Probe
from endpoint_monitor.domain import (
    ActivityEvent,
    ActivityKind,
    CheckOutcome,
    HttpMethod,
    MonitorStatus,
    ProbeRequest,
    ProbeResult,
    Transition,
)
from endpoint_monitor.store.monitor_store import InMemoryMonitorStore, utcnow

# Module logger
logger = logging.getLogger(__name__)

# Timeout of a liveness check in seconds
DEFAULT_MONITOR_TIMEOUT = 5.0


def derive_status(result: ProbeResult) -> MonitorStatus:
    """A monitor is up iff the request completed with a 2xx status."""
    return MonitorStatus.UP if result.ok else MonitorStatus.DOWN


def transition_event(transition: Transition, timestamp: datetime) -> ActivityEvent:
    """Builds the MONITOR_UP/MONITOR_DOWN event describing a status change."""
    monitor = transition.monitor
    is_up = monitor.status is MonitorStatus.UP
    return ActivityEvent(
        kind=ActivityKind.MONITOR_UP if is_up else ActivityKind.MONITOR_DOWN,
        message=f'Monitor "{monitor.name}" is {"UP" if is_up else "DOWN"} ({monitor.url})',
        metadata={
            "monitor_id": monitor.id,
            "url": monitor.url,
            "response_time_ms": monitor.response_time_ms,
        },
        timestamp=timestamp,
        owner_id=monitor.owner_id,
        project_id=monitor.project_id,
    )


class MonitorChecker:
    """
    Performs the check of a single monitor.
    """

    def __init__(
        self,
        store: InMemoryMonitorStore,
        probe: Probe,
        emitter: ActivityEmitter,
        timeout: float = DEFAULT_MONITOR_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initializes a new MonitorChecker.

        Args:
            store: The monitor record store.
            probe: Performs the HEAD request.
            emitter: Receives transition events.
            timeout: Timeout of the HEAD request in seconds.
            clock: Source of event timestamps.

        Raises:
            ValueError: If the timeout is not positive.
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive.")

        self._store: InMemoryMonitorStore = store
        self._probe: Probe = probe
        self._emitter: ActivityEmitter = emitter
        self._timeout: float = timeout
        self._clock: Callable[[], datetime] = clock

    async def check(self, monitor_id: str) -> CheckOutcome:
        """
        Checks a monitor and records the outcome.

        A transport failure marks the monitor down; it is not raised. An
        activity event is emitted only when the new status differs from the
        status held immediately before the update.

        Args:
            monitor_id: The monitor to check.

        Returns:
            CheckOutcome: The derived status and the response time.

        Raises:
            MonitorNotFoundError: If the monitor does not exist or was deleted
                while the check was in flight.
        """
        monitor = await self._store.get(monitor_id)
        result = await self._probe.probe(
            ProbeRequest(
                url=monitor.url,
                method=HttpMethod.HEAD,
                headers={},
                body=None,
                timeout=self._timeout,
                read_body=False,
            )
        )
        outcome = CheckOutcome(status=derive_status(result), response_time_ms=result.response_time_ms)
        if result.failed:
            logger.info(f"Monitor {monitor_id} check failed: {result.error}")

        transition = await self._store.apply_outcome(monitor_id, outcome)
        if transition.changed:
            logger.info(
                f"Monitor {monitor_id} changed from {transition.previous.value} "
                f"to {outcome.status.value}"
            )
            self._emitter.emit(transition_event(transition, self._clock()))

        return outcome
