"""
Core interfaces for the endpoint monitoring system.

This module defines the abstract base classes that form the foundation of the
monitoring system's architecture. These interfaces establish a clear contract
for implementations and enable a modular, pluggable design: the probe, the
tick source, the activity sink and the repositories can each be
swapped without touching the scheduling and evaluation logic.
"""

import abc
from typing import AsyncIterator, List, Optional

from .domain import ActivityEvent, ApiTest, ApiTestResult, Monitor, ProbeRequest, ProbeResult


class Ticker(abc.ABC):
    """
    Abstract source of scheduler ticks.

    Production code waits on the wall clock; tests inject a virtual ticker
    that fires on demand.
    """

    @abc.abstractmethod
    async def tick(self) -> bool:
        """
        Waits for the next tick.

        Returns:
            bool: True when a tick fired, False once the ticker has been stopped.
        """
        pass

    @abc.abstractmethod
    def stop(self) -> None:
        """
        Stops the ticker. Any pending and future tick() call returns False.

        Returns:
            None
        """
        pass


class WorkScheduler(abc.ABC):
    """
    Abstract interface for a work scheduler.

    Its responsibility is to provide an asynchronous stream of monitor batches
    that need to be checked, one batch per tick.
    """

    @abc.abstractmethod
    async def start(self) -> None:
        """
        Prepares the scheduler to start yielding work.

        This method should be called before using the scheduler in an async for loop.

        Returns:
            None
        """
        pass

    @abc.abstractmethod
    async def stop(self) -> None:
        """
        Gracefully stops the scheduler.

        The async iteration ends at the next tick boundary.

        Returns:
            None
        """
        pass

    def __aiter__(self) -> AsyncIterator[List[Monitor]]:
        """
        Allows the scheduler to be used in an 'async for' loop.

        Returns:
            AsyncIterator[List[Monitor]]: The scheduler instance itself.
        """
        return self

    @abc.abstractmethod
    async def __anext__(self) -> List[Monitor]:
        """
        Waits for and returns the next batch of work.

        Returns:
            List[Monitor]: Snapshots of the monitors to check in this tick.

        Raises:
            StopAsyncIteration: When the scheduler has been stopped.
        """
        raise StopAsyncIteration


class Probe(abc.ABC):
    """
    Abstract interface for a component that performs one HTTP exchange.

    Its responsibility is to encapsulate the network I/O for a single request
    and return a structured result.
    """

    @abc.abstractmethod
    async def probe(self, request: ProbeRequest) -> ProbeResult:
        """
        Performs exactly one HTTP request.

        Args:
            request: What to send and how long to wait for it.

        Returns:
            ProbeResult: The observed status, timing and body.

        Raises:
            Nothing: implementations must report transport errors in the
                ProbeResult instead of raising them.
        """
        pass


class ActivitySink(abc.ABC):
    """
    Abstract interface for the durable destination of activity events.

    Several sinks can be combined, see DelegatingActivitySink.
    """

    @abc.abstractmethod
    async def record(self, event: ActivityEvent) -> None:
        """
        Records or buffers a single activity event.

        Args:
            event: The event to record.

        Returns:
            None
        """
        pass

    @abc.abstractmethod
    async def flush(self) -> None:
        """
        Forces the persistence of any buffered events.

        For sinks that do not buffer data, this method can be a no-op.

        Returns:
            None
        """
        pass


class MonitorRepository(abc.ABC):
    """
    Durable copy of the monitor records.

    The monitor store keeps the live records and their locks in process and
    writes every change through to a repository, so records survive restarts.
    """

    @abc.abstractmethod
    async def load_all(self) -> List[Monitor]:
        """Returns every stored monitor, oldest registration first."""
        pass

    @abc.abstractmethod
    async def add(self, monitor: Monitor) -> None:
        """Stores a newly registered monitor."""
        pass

    @abc.abstractmethod
    async def save(self, monitor: Monitor) -> None:
        """Replaces the stored record, history included, with this snapshot."""
        pass

    @abc.abstractmethod
    async def delete(self, monitor_id: str) -> bool:
        """Deletes a monitor and its history. Returns whether it existed."""
        pass


class ApiTestRepository(abc.ABC):
    """Storage of API test definitions."""

    @abc.abstractmethod
    async def get(self, test_id: str) -> Optional[ApiTest]:
        """Returns the test with the given id, or None."""
        pass

    @abc.abstractmethod
    async def add(self, test: ApiTest) -> None:
        """Stores a new test."""
        pass

    @abc.abstractmethod
    async def update(self, test: ApiTest) -> None:
        """Replaces a stored test with the same id."""
        pass

    @abc.abstractmethod
    async def delete(self, test_id: str) -> bool:
        """Deletes a test. Returns whether it existed."""
        pass

    @abc.abstractmethod
    async def list(self, owner_id: str, project_id: Optional[str] = None) -> List[ApiTest]:
        """Returns the owner's tests, most recently updated first."""
        pass


class ApiTestResultRepository(abc.ABC):
    """Append-only storage of API test results."""

    @abc.abstractmethod
    async def save(self, result: ApiTestResult) -> None:
        """Stores a new result."""
        pass

    @abc.abstractmethod
    async def list_for_test(self, test_id: str, limit: int = 50) -> List[ApiTestResult]:
        """Returns the latest results of a test, newest first."""
        pass

    @abc.abstractmethod
    async def delete_for_test(self, test_id: str) -> int:
        """Deletes every result of a test. Returns how many were deleted."""
        pass
