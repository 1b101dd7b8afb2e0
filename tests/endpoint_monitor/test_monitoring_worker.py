import asyncio
import logging
from typing import AsyncGenerator, Awaitable, Callable, List
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from endpoint_monitor.checker import MonitorChecker
from endpoint_monitor.contracts import MonitorRepository
from endpoint_monitor.domain import CheckOutcome, Monitor, MonitorStatus
from endpoint_monitor.scheduler.tick_scheduler import TickScheduler
from endpoint_monitor.store.monitor_store import InMemoryMonitorStore
from endpoint_monitor.worker import MonitoringWorker

from conftest import ManualTicker, ScriptedProbe, probe_result

# A type alias for clarity in the factory fixture.
WorkerFactory = Callable[..., Awaitable[MonitoringWorker]]


class NullEmitter:
    def emit(self, event) -> None:
        pass


@pytest_asyncio.fixture
async def store() -> InMemoryMonitorStore:
    return InMemoryMonitorStore()


async def _register(store: InMemoryMonitorStore, count: int) -> List[Monitor]:
    return [
        await store.create(owner_id="user-1", name=f"m{i}", url=f"https://m{i}.example.com")
        for i in range(count)
    ]


@pytest_asyncio.fixture
async def worker_factory(
    store: InMemoryMonitorStore,
    manual_ticker: ManualTicker,
    scripted_probe: ScriptedProbe,
) -> AsyncGenerator[WorkerFactory, None]:
    """
    Provides a factory to create managed MonitoringWorker instances.
    This ensures each test gets a fresh worker that is properly shut down.
    """
    created_workers: List[MonitoringWorker] = []

    async def _factory(num_workers: int = 1, checker=None) -> MonitoringWorker:
        """Creates, tracks, and returns a new worker instance."""
        worker_instance = MonitoringWorker(
            worker_id="test-worker",
            scheduler=TickScheduler(store, manual_ticker),
            checker=checker or MonitorChecker(store, scripted_probe, NullEmitter()),
            num_workers=num_workers,
            queue_size=10,
            queue_size_monitoring_interval=2,
        )
        created_workers.append(worker_instance)
        return worker_instance

    yield _factory

    # TEARDOWN: stops every worker created by the factory.
    await asyncio.gather(*(worker.stop() for worker in created_workers))


@pytest.mark.asyncio
async def test_tick_should_check_every_monitor(
    worker_factory: WorkerFactory,
    store: InMemoryMonitorStore,
    manual_ticker: ManualTicker,
    scripted_probe: ScriptedProbe,
    wait_until,
) -> None:
    """
    Tests that one tick results in exactly one check of each monitor.
    """
    # --- ARRANGE ---
    monitors = await _register(store, 5)
    worker = await worker_factory(num_workers=2)
    await worker.start()

    # --- ACT ---
    manual_ticker.fire()
    await wait_until(lambda: worker.ticks_completed == 1)

    # --- ASSERT ---
    assert sorted(r.url for r in scripted_probe.requests) == sorted(m.url for m in monitors)
    for monitor in monitors:
        stored = await store.get(monitor.id)
        assert stored.status is MonitorStatus.UP
        assert len(stored.history) == 1


@pytest.mark.asyncio
async def test_tick_should_bound_checks_in_flight(
    worker_factory: WorkerFactory,
    store: InMemoryMonitorStore,
    scripted_probe: ScriptedProbe,
) -> None:
    """
    Tests that no more than num_workers checks are in flight at once.
    """
    # --- ARRANGE ---
    monitors = await _register(store, 12)
    scripted_probe.delay = 0.01
    worker = await worker_factory(num_workers=3)

    # --- ACT ---
    await worker.run_tick(monitors)

    # --- ASSERT ---
    assert len(scripted_probe.requests) == 12
    assert scripted_probe.max_in_flight == 3


@pytest.mark.asyncio
async def test_failing_check_should_not_block_other_monitors(
    worker_factory: WorkerFactory,
    store: InMemoryMonitorStore,
    scripted_probe: ScriptedProbe,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """
    Tests that a check raising an exception is logged and the remaining
    monitors of the tick are still checked.
    """
    # --- ARRANGE ---
    monitors = await _register(store, 4)
    real_checker = MonitorChecker(store, scripted_probe, NullEmitter())
    checker = AsyncMock(spec=MonitorChecker)

    async def check(monitor_id: str) -> CheckOutcome:
        if monitor_id == monitors[1].id:
            raise RuntimeError("boom")
        return await real_checker.check(monitor_id)

    checker.check.side_effect = check
    worker = await worker_factory(num_workers=1, checker=checker)

    # --- ACT ---
    with caplog.at_level(logging.ERROR):
        await worker.run_tick(monitors)

    # --- ASSERT ---
    assert checker.check.await_count == 4
    assert (await store.get(monitors[1].id)).status is MonitorStatus.PENDING
    for monitor in (monitors[0], monitors[2], monitors[3]):
        assert (await store.get(monitor.id)).status is MonitorStatus.UP
    assert f"Check failed for monitor {monitors[1].id}" in caplog.text


@pytest.mark.asyncio
async def test_persistence_failure_should_be_isolated_to_its_monitor(
    worker_factory: WorkerFactory,
    scripted_probe: ScriptedProbe,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """
    Tests that a monitor whose record cannot be written is logged and left
    unchanged while the other monitors of the tick are still recorded.
    """
    # --- ARRANGE ---
    repository = AsyncMock(spec=MonitorRepository)
    store = InMemoryMonitorStore(repository=repository)
    monitors = await _register(store, 3)

    async def save(monitor: Monitor) -> None:
        if monitor.id == monitors[0].id:
            raise ConnectionError("database unavailable")

    repository.save.side_effect = save
    worker = await worker_factory(
        num_workers=2, checker=MonitorChecker(store, scripted_probe, NullEmitter())
    )

    # --- ACT ---
    with caplog.at_level(logging.ERROR):
        await worker.run_tick(monitors)

    # --- ASSERT ---
    assert repository.save.await_count == 3
    assert (await store.get(monitors[0].id)).status is MonitorStatus.PENDING
    for monitor in monitors[1:]:
        assert (await store.get(monitor.id)).status is MonitorStatus.UP
    assert f"Check failed for monitor {monitors[0].id}" in caplog.text
    assert worker.ticks_completed == 1


@pytest.mark.asyncio
async def test_one_monitor_down_should_not_affect_others(
    worker_factory: WorkerFactory,
    store: InMemoryMonitorStore,
    scripted_probe: ScriptedProbe,
) -> None:
    # --- ARRANGE ---
    monitors = await _register(store, 3)
    scripted_probe.for_url(
        monitors[0].url, probe_result(status_code=0, response_time_ms=5000, error="timeout")
    )
    worker = await worker_factory(num_workers=3)

    # --- ACT ---
    await worker.run_tick(monitors)

    # --- ASSERT ---
    statuses = [(await store.get(m.id)).status for m in monitors]
    assert statuses == [MonitorStatus.DOWN, MonitorStatus.UP, MonitorStatus.UP]


@pytest.mark.asyncio
async def test_deleted_monitor_should_be_skipped(
    worker_factory: WorkerFactory,
    store: InMemoryMonitorStore,
    scripted_probe: ScriptedProbe,
) -> None:
    # --- ARRANGE ---
    monitors = await _register(store, 2)
    await store.delete(monitors[0].id, "user-1")
    worker = await worker_factory()

    # --- ACT ---
    await worker.run_tick(monitors)

    # --- ASSERT ---
    assert [r.url for r in scripted_probe.requests] == [monitors[1].url]
    assert worker.ticks_completed == 1


@pytest.mark.asyncio
async def test_each_tick_should_check_each_monitor_again(
    worker_factory: WorkerFactory,
    store: InMemoryMonitorStore,
    manual_ticker: ManualTicker,
    scripted_probe: ScriptedProbe,
    wait_until,
) -> None:
    # --- ARRANGE ---
    monitors = await _register(store, 2)
    worker = await worker_factory(num_workers=2)
    await worker.start()

    # --- ACT ---
    manual_ticker.fire(3)
    await wait_until(lambda: worker.ticks_completed == 3)

    # --- ASSERT ---
    assert len(scripted_probe.requests) == 6
    assert len((await store.get(monitors[0].id)).history) == 3


@pytest.mark.asyncio
async def test_ticks_without_monitors_should_be_skipped(
    worker_factory: WorkerFactory,
    manual_ticker: ManualTicker,
    scripted_probe: ScriptedProbe,
) -> None:
    # --- ARRANGE ---
    worker = await worker_factory()
    await worker.start()

    # --- ACT ---
    manual_ticker.fire(2)
    await worker.stop()

    # --- ASSERT ---
    assert worker.ticks_completed == 0
    assert scripted_probe.requests == []


@pytest.mark.asyncio
async def test_stop_should_end_producer_and_cancel_executors(
    worker_factory: WorkerFactory,
    store: InMemoryMonitorStore,
    manual_ticker: ManualTicker,
    wait_until,
) -> None:
    """
    Tests the graceful shutdown sequence of the worker.
    """
    # --- ARRANGE ---
    await _register(store, 1)
    worker = await worker_factory(num_workers=2)
    await worker.start()
    manual_ticker.fire()
    await wait_until(lambda: worker.ticks_completed == 1)
    executors = list(worker._worker_tasks)

    # --- ACT ---
    await worker.stop()

    # --- ASSERT ---
    assert manual_ticker.stopped is True
    assert worker.is_running is False
    assert all(task.done() for task in executors)
    assert worker._worker_tasks == []


@pytest.mark.asyncio
async def test_stop_should_let_tick_in_progress_complete(
    worker_factory: WorkerFactory,
    store: InMemoryMonitorStore,
    manual_ticker: ManualTicker,
    scripted_probe: ScriptedProbe,
    wait_until,
) -> None:
    # --- ARRANGE ---
    await _register(store, 4)
    scripted_probe.delay = 0.02
    worker = await worker_factory(num_workers=2)
    await worker.start()
    manual_ticker.fire()
    await wait_until(lambda: scripted_probe.in_flight > 0)

    # --- ACT ---
    await worker.stop()

    # --- ASSERT ---
    assert len(scripted_probe.requests) == 4
    assert worker.ticks_completed == 1


@pytest.mark.parametrize("num_workers, queue_size", [(0, 10), (1, 0)])
def test_worker_should_reject_invalid_pool_sizes(num_workers: int, queue_size: int) -> None:
    with pytest.raises(ValueError):
        MonitoringWorker(
            worker_id="test-worker",
            scheduler=AsyncMock(),
            checker=AsyncMock(),
            num_workers=num_workers,
            queue_size=queue_size,
        )
