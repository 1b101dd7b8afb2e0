"""
Core worker implementation for the endpoint monitoring system.

This module provides the MonitoringWorker class, which orchestrates the
recurring checks by coordinating the scheduler and the monitor checker.
It implements a producer-consumer pattern with a bounded queue and a fixed
pool of executor tasks, which bounds the number of simultaneous outbound
requests regardless of how many monitors are registered.
"""

import asyncio
import logging
from asyncio import Queue, Task
from typing import List, Optional

from .checker import MonitorChecker
from .contracts import WorkScheduler
from .domain import Monitor


class MonitoringWorker:
    """
    Coordinates the monitoring workflow using a producer-consumer pattern.

    The producer waits for the scheduler's ticks and enqueues every monitor of
    the tick. Executor tasks consume the queue and check the monitors. A tick
    completes once every one of its monitors has been checked.
    """

    def __init__(
        self,
        worker_id: str,
        scheduler: WorkScheduler,
        checker: MonitorChecker,
        num_workers: int,
        queue_size: int,
        queue_size_monitoring_interval: int = 20,
    ) -> None:
        """
        Initializes a new MonitoringWorker instance.

        Args:
            worker_id: A unique identifier for this worker instance.
            scheduler: Component that provides the monitors of each tick.
            checker: Component that checks a single monitor.
            num_workers: Number of concurrent executor tasks, i.e. the
                maximum number of checks in flight.
            queue_size: Maximum size of the work queue before backpressure is applied.

        Raises:
            ValueError: If num_workers or queue_size is not positive.
        """
        if num_workers < 1:
            raise ValueError("num_workers must be a positive integer.")
        if queue_size < 1:
            raise ValueError("queue_size must be a positive integer.")

        self._worker_id: str = worker_id
        self._scheduler: WorkScheduler = scheduler
        self._checker: MonitorChecker = checker
        self._num_workers: int = num_workers
        self._logger: logging.Logger = logging.getLogger(__name__)
        # The queue provides backpressure. The producer will pause if the queue is full.
        self._queue: Queue[Monitor] = Queue(maxsize=queue_size)
        self._queue_size_monitoring_interval: int = queue_size_monitoring_interval
        self._worker_tasks: List[Task] = []
        self._monitor_task: Optional[Task] = None
        self._producer_task: Optional[Task] = None
        self._ticks_completed: int = 0

    @property
    def ticks_completed(self) -> int:
        return self._ticks_completed

    @property
    def is_running(self) -> bool:
        return self._producer_task is not None and not self._producer_task.done()

    async def _executor(self, worker_num: int) -> None:
        """
        Consumer task that checks monitors taken from the queue.

        A failing check is logged and never stops the executor, so one
        monitor cannot prevent the others of the tick from being checked.

        Args:
            worker_num: The identifier number of this executor task.

        Returns:
            None
        """
        worker_logger: logging.Logger = logging.getLogger(f"executor-{worker_num}")

        while True:
            try:
                # 1. Wait for an item from the queue
                monitor: Monitor = await self._queue.get()

                # 2. Process the item
                try:
                    await self._checker.check(monitor.id)
                except Exception as e:
                    worker_logger.exception(
                        f"Check failed for monitor {monitor.id} with error: {e}"
                    )

                # 3. Notify the queue that the item is done
                self._queue.task_done()

            except asyncio.CancelledError:
                worker_logger.info("Stopping.")
                break

    async def _monitor_queue(self) -> None:
        """
        A task that monitors the queue size and logs it periodically.

        Returns:
            None
        """
        monitor_logger: logging.Logger = logging.getLogger(f"{self._worker_id}-QueueMonitor")

        while True:
            try:
                await asyncio.sleep(self._queue_size_monitoring_interval)
                qsize = self._queue.qsize()
                ninety_percent_capacity = self._queue.maxsize * 0.9
                if qsize > ninety_percent_capacity:
                    monitor_logger.warning(
                        f"Queue size ({qsize}) is above 90% of capacity ({self._queue.maxsize})"
                    )
                else:
                    monitor_logger.debug(f"Current queue size: {qsize}")
            except asyncio.CancelledError:
                monitor_logger.info("Shutting down.")
                break

    def _ensure_executors(self) -> None:
        if self._worker_tasks:
            return
        self._worker_tasks = [
            asyncio.create_task(self._executor(i + 1)) for i in range(self._num_workers)
        ]
        self._monitor_task = asyncio.create_task(self._monitor_queue())

    async def run_tick(self, batch: List[Monitor]) -> None:
        """
        Checks every monitor of a batch and waits until all have resolved.

        Args:
            batch: The monitors to check.

        Returns:
            None
        """
        self._ensure_executors()
        self._logger.debug(f"Producer adding {len(batch)} monitors to the queue.")
        for monitor in batch:
            await self._queue.put(monitor)

        await self._queue.join()
        self._ticks_completed += 1
        self._logger.info(f"Checked {len(batch)} monitors.")

    async def _produce(self) -> None:
        try:
            async for batch in self._scheduler:
                if not batch:
                    continue
                await self.run_tick(batch)
        except Exception as e:
            self._logger.error(f"Producer loop failed: {e}")
            raise

    async def start(self) -> None:
        """
        Starts the executor tasks and the producer loop in the background.

        Returns:
            None
        """
        self._logger.info(f"Starting monitoring worker with {self._num_workers} workers.")

        # 1. Start all the consumer workers in the background
        self._ensure_executors()

        # 2. Start the producer loop
        await self._scheduler.start()
        self._producer_task = asyncio.create_task(self._produce())

    async def join(self) -> None:
        """
        Waits until the producer loop ends.

        Returns:
            None
        """
        if self._producer_task is not None:
            await self._producer_task

    async def stop(self) -> None:
        """
        Gracefully stops all worker tasks.

        This method implements a clean shutdown sequence:
        1. Stop the scheduler so no further tick is produced
        2. Wait for the tick in progress to complete
        3. Cancel all background executor tasks
        4. Wait for all tasks to acknowledge cancellation

        Returns:
            None
        """
        self._logger.info("Initiating graceful shutdown...")

        # 1. Scheduler is notified to not produce ticks anymore
        self._logger.info("Stopping scheduler...")
        await self._scheduler.stop()

        # 2. The producer ends once the current tick is done
        if self._producer_task is not None:
            await asyncio.gather(self._producer_task, return_exceptions=True)
        self._logger.info(f"Waiting for {self._queue.qsize()} pending checks to complete...")
        await self._queue.join()

        # 3. Aggregate all background tasks and cancel them
        all_background_tasks = list(self._worker_tasks)
        if self._monitor_task is not None:
            all_background_tasks.append(self._monitor_task)
        self._logger.info(f"Cancelling {len(all_background_tasks)} background tasks...")
        for task in all_background_tasks:
            task.cancel()

        # 4. Wait for all tasks to acknowledge their cancellation and exit.
        await asyncio.gather(*all_background_tasks, return_exceptions=True)
        self._worker_tasks = []
        self._monitor_task = None

        self._logger.info("Worker shutdown complete")
