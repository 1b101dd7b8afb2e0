"""
Entry points of the monitoring core used by the outer layers.

MonitorService covers monitor registration, edits, manual checks and the
lifecycle of the recurring check loop. ApiTestService covers API test
definitions, their runs and their result history.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Set
from uuid import uuid4

from endpoint_monitor.activity.emitter import ActivityEmitter
from endpoint_monitor.assertion.evaluator import parse_assertions
from endpoint_monitor.checker import MonitorChecker
from endpoint_monitor.contracts import ApiTestRepository, ApiTestResultRepository, Ticker
from endpoint_monitor.domain import ApiTest, ApiTestResult, CheckOutcome, Monitor, ProbeResult
from endpoint_monitor.errors import ApiTestNotFoundError, ValidationError
from endpoint_monitor.runner import ApiTestRunner
from endpoint_monitor.scheduler.tick_scheduler import (
    DEFAULT_TICK_INTERVAL,
    IntervalTicker,
    TickScheduler,
)
from endpoint_monitor.store.monitor_store import InMemoryMonitorStore, utcnow
from endpoint_monitor.validation import (
    parse_headers,
    parse_method,
    parse_optional_id,
    validate_name,
    validate_url,
)
from endpoint_monitor.worker import MonitoringWorker

# Module logger
logger = logging.getLogger(__name__)

# Maximum number of results returned by a history query
DEFAULT_RESULTS_LIMIT = 50


class MonitorService:
    """
    Monitor registration, manual checks and the recurring check loop.

    The loop is started at most once: a second start() while running is a
    no-op. stop() ends it after the tick in progress.
    """

    def __init__(
        self,
        store: InMemoryMonitorStore,
        checker: MonitorChecker,
        emitter: ActivityEmitter,
        worker_id: str,
        num_workers: int,
        queue_size: int,
        ticker_factory: Callable[[float], Ticker] = IntervalTicker,
    ) -> None:
        """
        Args:
            store: The monitor record store.
            checker: The single-monitor check path shared by ticks and manual checks.
            emitter: The activity emitter, drained on stop.
            worker_id: A unique identifier for this worker instance.
            num_workers: Maximum number of checks in flight during a tick.
            queue_size: Size of the tick work queue.
            ticker_factory: Builds the tick source from an interval in seconds.
        """
        self._store: InMemoryMonitorStore = store
        self._checker: MonitorChecker = checker
        self._emitter: ActivityEmitter = emitter
        self._worker_id: str = worker_id
        self._num_workers: int = num_workers
        self._queue_size: int = queue_size
        self._ticker_factory: Callable[[float], Ticker] = ticker_factory
        self._worker: Optional[MonitoringWorker] = None
        self._background_checks: Set[asyncio.Task] = set()

    @property
    def worker(self) -> Optional[MonitoringWorker]:
        return self._worker

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_running

    async def create(
        self,
        owner_id: str,
        name: str,
        url: str,
        interval_minutes: Optional[int] = None,
        project_id: Optional[str] = None,
        check_immediately: bool = False,
    ) -> Monitor:
        """
        Registers a monitor. The returned monitor is always PENDING.

        Args:
            owner_id: The owning user.
            name: Display name.
            url: The URL to observe.
            interval_minutes: Configured interval in minutes.
            project_id: Optional project association.
            check_immediately: Schedule a first check in the background.

        Returns:
            Monitor: The registered monitor.

        Raises:
            ValidationError: If the definition is malformed.
        """
        monitor = await self._store.create(
            owner_id=owner_id,
            name=name,
            url=url,
            interval_minutes=interval_minutes,
            project_id=project_id,
        )
        if check_immediately:
            task = asyncio.create_task(self._first_check(monitor.id))
            self._background_checks.add(task)
            task.add_done_callback(self._background_checks.discard)
        return monitor

    async def _first_check(self, monitor_id: str) -> None:
        try:
            await self._checker.check(monitor_id)
        except Exception as e:
            logger.exception(f"Initial check failed for monitor {monitor_id}: {e}")

    async def get(self, monitor_id: str, owner_id: str) -> Monitor:
        return await self._store.get(monitor_id, owner_id)

    async def list_monitors(self, owner_id: str) -> List[Monitor]:
        return await self._store.list_for_owner(owner_id)

    async def load_monitors(self) -> int:
        """Restores the stored monitors before the loop starts. Returns how many were loaded."""
        return await self._store.load()

    async def update(
        self,
        monitor_id: str,
        owner_id: str,
        name: Optional[str] = None,
        url: Optional[str] = None,
        interval_minutes: Optional[int] = None,
    ) -> Monitor:
        return await self._store.update(
            monitor_id, owner_id, name=name, url=url, interval_minutes=interval_minutes
        )

    async def delete(self, monitor_id: str, owner_id: str) -> None:
        await self._store.delete(monitor_id, owner_id)

    async def check_now(self, monitor_id: str, owner_id: Optional[str] = None) -> CheckOutcome:
        """
        Checks a monitor right away, outside the tick loop.

        Raises:
            MonitorNotFoundError: If there is no such monitor for the owner.
        """
        await self._store.get(monitor_id, owner_id)
        return await self._checker.check(monitor_id)

    async def start(self, tick_interval: float = DEFAULT_TICK_INTERVAL) -> None:
        """
        Starts the recurring check loop. Idempotent while the loop runs.

        Args:
            tick_interval: Seconds between two ticks.

        Returns:
            None
        """
        if self.is_running:
            logger.warning("Monitoring loop already running, ignoring start request.")
            return

        logger.info(f"Starting monitoring loop (tick interval: {tick_interval}s)...")
        scheduler = TickScheduler(self._store, self._ticker_factory(tick_interval))
        self._worker = MonitoringWorker(
            worker_id=self._worker_id,
            scheduler=scheduler,
            checker=self._checker,
            num_workers=self._num_workers,
            queue_size=self._queue_size,
        )
        await self._worker.start()

    async def wait_closed(self) -> None:
        """Waits until the loop ends."""
        if self._worker is not None:
            await self._worker.join()

    async def stop(self) -> None:
        """
        Stops the loop after the tick in progress and drains pending events.

        Returns:
            None
        """
        if self._worker is not None:
            await self._worker.stop()
            self._worker = None

        if self._background_checks:
            await asyncio.gather(*list(self._background_checks), return_exceptions=True)
        await self._emitter.drain()
        logger.info("Monitoring loop stopped.")


class ApiTestService:
    """
    API test definitions, runs and result history.
    """

    def __init__(
        self,
        tests: ApiTestRepository,
        results: ApiTestResultRepository,
        runner: ApiTestRunner,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._tests: ApiTestRepository = tests
        self._results: ApiTestResultRepository = results
        self._runner: ApiTestRunner = runner
        self._clock: Callable[[], datetime] = clock

    async def create_test(self, owner_id: str, definition: Mapping[str, Any]) -> ApiTest:
        """
        Validates and stores a new test definition.

        Args:
            owner_id: The owning user.
            definition: A mapping with 'name', 'method', 'url' and optional
                'headers', 'body', 'assertions' and 'project_id'.

        Returns:
            ApiTest: The stored test.

        Raises:
            ValidationError: If the definition is malformed.
        """
        if not owner_id:
            raise ValidationError("owner_id must be provided.")
        if not isinstance(definition, Mapping):
            raise ValidationError("The test definition must be a mapping.")

        now = self._clock()
        test = ApiTest(
            id=str(uuid4()),
            owner_id=str(owner_id),
            name=validate_name(definition.get("name")),
            method=parse_method(definition.get("method")),
            url=validate_url(definition.get("url")),
            headers=parse_headers(definition.get("headers")),
            body=_parse_body(definition.get("body")),
            assertions=parse_assertions(definition.get("assertions")),
            project_id=parse_optional_id(definition.get("project_id"), "project_id"),
            created_at=now,
            updated_at=now,
        )
        await self._tests.add(test)
        logger.info(f"Created API test {test.id} ({test.method.value} {test.url})")
        return test

    async def get_test(self, test_id: str, owner_id: str) -> ApiTest:
        test = await self._tests.get(test_id)
        if test is None or test.owner_id != owner_id:
            raise ApiTestNotFoundError(test_id)
        return test

    async def list_tests(self, owner_id: str, project_id: Optional[str] = None) -> List[ApiTest]:
        return await self._tests.list(owner_id, project_id)

    async def update_test(
        self, test_id: str, owner_id: str, changes: Mapping[str, Any]
    ) -> ApiTest:
        """
        Applies an owner edit. Only the keys present in 'changes' are modified.

        Raises:
            ApiTestNotFoundError: If there is no such test for the owner.
            ValidationError: If a new value is malformed.
        """
        test = await self.get_test(test_id, owner_id)
        parsers = {
            "name": validate_name,
            "method": parse_method,
            "url": validate_url,
            "headers": parse_headers,
            "body": _parse_body,
            "assertions": parse_assertions,
            "project_id": lambda value: parse_optional_id(value, "project_id"),
        }
        unknown = set(changes) - set(parsers)
        if unknown:
            raise ValidationError(f"Unknown API test fields: {', '.join(sorted(unknown))}")

        updates = {key: parsers[key](value) for key, value in changes.items()}
        updated = test._replace(updated_at=self._clock(), **updates)
        await self._tests.update(updated)
        logger.info(f"Updated API test {test_id}: {sorted(updates)}")
        return updated

    async def delete_test(self, test_id: str, owner_id: str) -> None:
        """
        Deletes a test together with all of its results.

        Raises:
            ApiTestNotFoundError: If there is no such test for the owner.
        """
        await self.get_test(test_id, owner_id)
        await self._tests.delete(test_id)
        deleted = await self._results.delete_for_test(test_id)
        logger.info(f"Deleted API test {test_id} and {deleted} results")

    async def run_test(self, test_id: str, owner_id: str) -> ApiTestResult:
        await self.get_test(test_id, owner_id)
        return await self._runner.run_saved_test(test_id)

    async def run_ad_hoc_test(self, definition: Mapping[str, Any]) -> ProbeResult:
        return await self._runner.run_ad_hoc_test(definition)

    async def list_results(
        self, test_id: str, owner_id: str, limit: int = DEFAULT_RESULTS_LIMIT
    ) -> List[ApiTestResult]:
        """Returns the latest results of a test, newest first."""
        await self.get_test(test_id, owner_id)
        return await self._results.list_for_test(test_id, limit)


def _parse_body(body: Any) -> Optional[str]:
    if body is None:
        return None
    if not isinstance(body, str):
        raise ValidationError("body must be a string.")
    return body
