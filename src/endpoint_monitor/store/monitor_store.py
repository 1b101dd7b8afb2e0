"""
In-process store of monitor records.

This module owns monitor configuration, current status and the bounded check
history. Every write to a monitor goes through that monitor's own lock, so the
compare-update-append sequence of a check can never interleave with another
write to the same record. Reads return immutable snapshots and take no lock.

When a MonitorRepository is given, every write reaches it while the lock is
held and before the in-process record changes, so a failed write leaves the
record as it was and the error reaches the caller.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from endpoint_monitor.contracts import MonitorRepository
from endpoint_monitor.domain import (
    DEFAULT_INTERVAL_MINUTES,
    MAX_HISTORY,
    CheckOutcome,
    HistorySample,
    Monitor,
    MonitorStatus,
    Transition,
)
from endpoint_monitor.errors import MonitorNotFoundError, ValidationError
from endpoint_monitor.validation import (
    parse_optional_id,
    validate_interval,
    validate_name,
    validate_url,
)

# Module logger
logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def append_sample(monitor: Monitor, sample: HistorySample, max_history: int = MAX_HISTORY) -> Monitor:
    """
    Appends a sample to a monitor's history, then drops the oldest entries
    until the history fits within max_history.

    Args:
        monitor: The monitor snapshot to extend.
        sample: The sample to append.
        max_history: The maximum history length.

    Returns:
        Monitor: A new snapshot with the extended history.
    """
    history = monitor.history + (sample,)
    excess = len(history) - max_history
    if excess > 0:
        history = history[excess:]
    return monitor._replace(history=history)


class InMemoryMonitorStore:
    """
    Holds monitor records and serializes writes per monitor id.

    Snapshots are immutable NamedTuples replaced wholesale on every write, so
    concurrent readers always observe a consistent record. Records live in
    memory and are optionally written through to a repository.
    """

    def __init__(
        self,
        max_history: int = MAX_HISTORY,
        clock: Callable[[], datetime] = utcnow,
        repository: Optional[MonitorRepository] = None,
    ) -> None:
        """
        Initializes an empty store.

        Args:
            max_history: Maximum number of history samples kept per monitor.
            clock: Source of timestamps for registrations and samples.
            repository: Durable copy of the records, or None to keep them in memory only.

        Raises:
            ValueError: If max_history is not a positive integer.
        """
        if not isinstance(max_history, int) or max_history < 1:
            raise ValueError("max_history must be a positive integer.")

        self._max_history: int = max_history
        self._clock: Callable[[], datetime] = clock
        self._repository: Optional[MonitorRepository] = repository
        self._monitors: Dict[str, Monitor] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def load(self) -> int:
        """
        Loads the monitors kept by the repository, typically once at startup.

        Stored histories longer than max_history are cut to their most recent
        samples.

        Returns:
            int: The number of monitors loaded, 0 without a repository.
        """
        if self._repository is None:
            return 0
        monitors = await self._repository.load_all()
        for monitor in monitors:
            excess = len(monitor.history) - self._max_history
            if excess > 0:
                monitor = monitor._replace(history=monitor.history[excess:])
            self._locks.setdefault(monitor.id, asyncio.Lock())
            self._monitors[monitor.id] = monitor
        logger.info(f"Loaded {len(monitors)} monitors from the repository")
        return len(monitors)

    async def create(
        self,
        owner_id: str,
        name: str,
        url: str,
        interval_minutes: Optional[int] = None,
        project_id: Optional[str] = None,
    ) -> Monitor:
        """
        Registers a new monitor in the PENDING state.

        Args:
            owner_id: The owning user.
            name: Display name.
            url: The URL to observe.
            interval_minutes: Configured interval, DEFAULT_INTERVAL_MINUTES if None.
            project_id: Optional project association.

        Returns:
            Monitor: The registered monitor.

        Raises:
            ValidationError: If any field is malformed.
        """
        if not owner_id:
            raise ValidationError("owner_id must be provided.")
        monitor = Monitor(
            id=str(uuid4()),
            owner_id=str(owner_id),
            name=validate_name(name),
            url=validate_url(url),
            interval_minutes=validate_interval(
                DEFAULT_INTERVAL_MINUTES if interval_minutes is None else interval_minutes
            ),
            status=MonitorStatus.PENDING,
            response_time_ms=None,
            last_checked=None,
            history=(),
            project_id=parse_optional_id(project_id, "project_id"),
            created_at=self._clock(),
        )
        if self._repository is not None:
            await self._repository.add(monitor)
        self._locks[monitor.id] = asyncio.Lock()
        self._monitors[monitor.id] = monitor
        logger.info(f"Registered monitor {monitor.id} ({monitor.url})")
        return monitor

    async def find(self, monitor_id: str) -> Optional[Monitor]:
        return self._monitors.get(monitor_id)

    async def get(self, monitor_id: str, owner_id: Optional[str] = None) -> Monitor:
        """
        Returns a monitor snapshot.

        Args:
            monitor_id: The monitor to look up.
            owner_id: When given, the monitor must belong to this user.

        Raises:
            MonitorNotFoundError: If there is no such monitor for the owner.
        """
        monitor = self._monitors.get(monitor_id)
        if monitor is None or (owner_id is not None and monitor.owner_id != owner_id):
            raise MonitorNotFoundError(monitor_id)
        return monitor

    async def all(self) -> List[Monitor]:
        """Returns every registered monitor, in registration order."""
        return list(self._monitors.values())

    async def list_for_owner(self, owner_id: str) -> List[Monitor]:
        """Returns the monitors of a user, most recently registered first."""
        owned = [m for m in self._monitors.values() if m.owner_id == owner_id]
        return list(reversed(owned))

    async def update(
        self,
        monitor_id: str,
        owner_id: str,
        name: Optional[str] = None,
        url: Optional[str] = None,
        interval_minutes: Optional[int] = None,
    ) -> Monitor:
        """
        Applies an owner edit. Fields left as None are unchanged.

        Raises:
            MonitorNotFoundError: If there is no such monitor for the owner.
            ValidationError: If a new value is malformed.
        """
        changes = {}
        if name is not None:
            changes["name"] = validate_name(name)
        if url is not None:
            changes["url"] = validate_url(url)
        if interval_minutes is not None:
            changes["interval_minutes"] = validate_interval(interval_minutes)

        async with self._lock_for(monitor_id):
            monitor = await self.get(monitor_id, owner_id)
            updated = monitor._replace(**changes)
            await self._write_through(updated)
            self._monitors[monitor_id] = updated
        logger.info(f"Updated monitor {monitor_id}: {sorted(changes)}")
        return updated

    async def delete(self, monitor_id: str, owner_id: str) -> None:
        """
        Deletes a monitor together with its history.

        Raises:
            MonitorNotFoundError: If there is no such monitor for the owner.
        """
        async with self._lock_for(monitor_id):
            await self.get(monitor_id, owner_id)
            if self._repository is not None:
                await self._repository.delete(monitor_id)
            del self._monitors[monitor_id]
            del self._locks[monitor_id]
        logger.info(f"Deleted monitor {monitor_id}")

    async def apply_outcome(self, monitor_id: str, outcome: CheckOutcome) -> Transition:
        """
        Records a check outcome on a monitor.

        Under the monitor's lock: the previous status is captured, then the
        status, response time and last-checked time are updated and the sample
        is appended to the bounded history. Each call appends one sample, even
        for an identical outcome.

        Args:
            monitor_id: The monitor that was checked.
            outcome: The outcome of the check.

        Returns:
            Transition: The previous status and the updated snapshot.

        Raises:
            MonitorNotFoundError: If the monitor was deleted meanwhile.
            Exception: Whatever the repository raises; the record is then unchanged.
        """
        async with self._lock_for(monitor_id):
            monitor = await self.get(monitor_id)
            previous = monitor.status
            checked_at = self._clock()
            updated = append_sample(
                monitor._replace(
                    status=outcome.status,
                    response_time_ms=outcome.response_time_ms,
                    last_checked=checked_at,
                ),
                HistorySample(
                    timestamp=checked_at,
                    status=outcome.status,
                    response_time_ms=outcome.response_time_ms,
                ),
                self._max_history,
            )
            await self._write_through(updated)
            self._monitors[monitor_id] = updated

        return Transition(previous=previous, monitor=updated)

    async def _write_through(self, monitor: Monitor) -> None:
        if self._repository is not None:
            await self._repository.save(monitor)

    def _lock_for(self, monitor_id: str) -> asyncio.Lock:
        lock = self._locks.get(monitor_id)
        if lock is None:
            raise MonitorNotFoundError(monitor_id)
        return lock
