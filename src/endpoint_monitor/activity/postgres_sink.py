"""
Database persistence of activity events.

This module provides an ActivitySink that buffers events and writes them to
the 'activity_log' table in efficient batches. Metadata is handed to asyncpg as a
dict and encoded by the jsonb codec of the pool.
"""

import asyncio
import logging
from typing import List

from asyncpg import Pool, exceptions

from endpoint_monitor.contracts import ActivitySink
from endpoint_monitor.domain import ActivityEvent

# Module logger
logger = logging.getLogger(__name__)


class PostgresActivitySink(ActivitySink):
    """
    Persists activity events to the 'activity_log' table in batches.

    Events are buffered in memory and written when the buffer is full or when
    flush() is called, typically on a timer or during shutdown.
    """

    def __init__(self, worker_id: str, pool: Pool, max_buffer_size: int = 50) -> None:
        """
        Initializes the sink.

        Args:
            worker_id: A unique identifier for the worker using this sink.
            pool: The asyncpg connection pool.
            max_buffer_size: The maximum number of events to buffer in memory
                before a flush is automatically triggered.
        """
        self._worker_id: str = worker_id
        self._pool: Pool = pool
        self._max_buffer_size: int = max_buffer_size

        # The buffer stores tuples ready for insertion.
        self._buffer: List[tuple] = []
        self._lock = asyncio.Lock()
        self._insert_sql = """
            INSERT INTO activity_log (
                action, message, metadata, owner_id, project_id, worker_id, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7);
        """

    def _transform_event(self, event: ActivityEvent) -> tuple:
        """
        Transforms an ActivityEvent into a tuple matching the 'activity_log' table schema.
        """
        return (
            event.kind.value,
            event.message,
            dict(event.metadata),
            event.owner_id,
            event.project_id,
            self._worker_id,
            event.timestamp,
        )

    async def record(self, event: ActivityEvent) -> None:
        """
        Transforms and adds an event to the internal buffer. If the buffer
        reaches the maximum size, it triggers a flush to the database.
        """
        record_to_insert = self._transform_event(event)

        async with self._lock:
            self._buffer.append(record_to_insert)
            should_flush = len(self._buffer) >= self._max_buffer_size

        if should_flush:
            logger.info(
                f"Activity buffer limit of {self._max_buffer_size} reached. Flushing automatically."
            )
            await self.flush()

    async def flush(self) -> None:
        """
        Persists all currently buffered events to the database in a single batch.
        This method is safe to call even if the buffer is empty.
        """
        async with self._lock:
            if not self._buffer:
                return

            records_to_insert = list(self._buffer)
            self._buffer.clear()

        logger.info(f"Flushing {len(records_to_insert)} activity events to the database.")

        try:
            async with self._pool.acquire(timeout=10.0) as conn:
                async with conn.transaction():
                    await conn.executemany(self._insert_sql, records_to_insert)

            logger.debug(f"Successfully flushed {len(records_to_insert)} activity events.")
        except asyncio.TimeoutError:
            logger.error(
                f"Timeout during DB flush. {len(records_to_insert)} activity events may be lost."
            )
        except exceptions.PostgresError as e:
            logger.error(
                f"Database error during batch flush of activity events: {e}. "
                f"{len(records_to_insert)} activity events may be lost."
            )
        except Exception as e:
            logger.error(
                f"An unexpected error occurred during activity flush: {e}. "
                f"{len(records_to_insert)} activity events may be lost."
            )
