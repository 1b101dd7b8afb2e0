"""
PostgreSQL repositories of monitors, API tests and results using asyncpg.

jsonb columns are exchanged as Python values: the pool created by
initiate_db_pool registers a jsonb codec on every connection.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from asyncpg import Pool, Record

from endpoint_monitor.contracts import (
    ApiTestRepository,
    ApiTestResultRepository,
    MonitorRepository,
)
from endpoint_monitor.domain import (
    ApiTest,
    ApiTestResult,
    Assertion,
    AssertionKind,
    AssertionOutcome,
    HistorySample,
    HttpMethod,
    Monitor,
    MonitorStatus,
)

# Module logger
logger = logging.getLogger(__name__)

SELECT_MONITORS_QUERY = "SELECT * FROM monitors ORDER BY created_at"

INSERT_MONITOR_QUERY = """
    INSERT INTO monitors (id, owner_id, project_id, name, url, interval_minutes, status,
                          response_time_ms, last_checked, history, created_at)
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11);
"""

UPDATE_MONITOR_QUERY = """
    UPDATE monitors
    SET name = $2, url = $3, interval_minutes = $4, status = $5, response_time_ms = $6,
        last_checked = $7, history = $8
    WHERE id = $1;
"""

DELETE_MONITOR_QUERY = "DELETE FROM monitors WHERE id = $1"

INSERT_TEST_QUERY = """
    INSERT INTO api_tests (id, owner_id, project_id, name, method, url, headers, body,
                           assertions, created_at, updated_at)
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11);
"""

UPDATE_TEST_QUERY = """
    UPDATE api_tests
    SET project_id = $2, name = $3, method = $4, url = $5, headers = $6, body = $7,
        assertions = $8, updated_at = $9
    WHERE id = $1;
"""

SELECT_TEST_QUERY = "SELECT * FROM api_tests WHERE id = $1"

LIST_TESTS_QUERY = """
    SELECT * FROM api_tests
    WHERE owner_id = $1 AND ($2::text IS NULL OR project_id = $2)
    ORDER BY updated_at DESC
"""

DELETE_TEST_QUERY = "DELETE FROM api_tests WHERE id = $1"

INSERT_RESULT_QUERY = """
    INSERT INTO api_test_results (id, test_id, owner_id, project_id, status_code,
                                  response_time_ms, success, error, response_body,
                                  assertion_results, created_at)
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11);
"""

LIST_RESULTS_QUERY = """
    SELECT * FROM api_test_results
    WHERE test_id = $1
    ORDER BY created_at DESC
    LIMIT $2
"""

DELETE_RESULTS_QUERY = "DELETE FROM api_test_results WHERE test_id = $1"


def _affected_rows(status: str) -> int:
    """Extracts the row count from a command status such as 'DELETE 3'."""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


def history_to_json(history: tuple) -> List[Dict[str, Any]]:
    """Renders history samples as jsonb items, timestamps in ISO 8601."""
    return [
        {
            "timestamp": sample.timestamp.isoformat(),
            "status": sample.status.value,
            "response_time_ms": sample.response_time_ms,
        }
        for sample in history
    ]


def map_monitor(record: Record) -> Monitor:
    """
    Converts a database record to a Monitor domain object.

    Args:
        record: A row of the 'monitors' table.

    Returns:
        Monitor: The monitor with its history, oldest sample first.
    """
    history = tuple(
        HistorySample(
            timestamp=datetime.fromisoformat(item["timestamp"]),
            status=MonitorStatus(item["status"]),
            response_time_ms=item["response_time_ms"],
        )
        for item in record["history"] or []
    )
    return Monitor(
        id=record["id"],
        owner_id=record["owner_id"],
        name=record["name"],
        url=record["url"],
        interval_minutes=record["interval_minutes"],
        status=MonitorStatus(record["status"]),
        response_time_ms=record["response_time_ms"],
        last_checked=record["last_checked"],
        history=history,
        project_id=record["project_id"],
        created_at=record["created_at"],
    )


def map_api_test(record: Record) -> ApiTest:
    """
    Converts a database record to an ApiTest domain object.

    Args:
        record: A row of the 'api_tests' table.

    Returns:
        ApiTest: The test definition.
    """
    assertions = tuple(
        Assertion(kind=AssertionKind(item["kind"]), expected=item.get("expected"), target=item.get("target"))
        for item in record["assertions"] or []
    )
    return ApiTest(
        id=record["id"],
        owner_id=record["owner_id"],
        name=record["name"],
        method=HttpMethod(record["method"].upper()),
        url=record["url"],
        headers=record["headers"] or {},
        body=record["body"],
        assertions=assertions,
        project_id=record["project_id"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


def map_api_test_result(record: Record) -> ApiTestResult:
    """
    Converts a database record to an ApiTestResult domain object.

    Args:
        record: A row of the 'api_test_results' table.

    Returns:
        ApiTestResult: The run result.
    """
    outcomes = tuple(
        AssertionOutcome(
            kind=AssertionKind(item["kind"]),
            target=item.get("target"),
            expected=item.get("expected"),
            actual=item.get("actual"),
            passed=bool(item["passed"]),
            resolved=bool(item.get("resolved", True)),
        )
        for item in record["assertion_results"] or []
    )
    return ApiTestResult(
        id=record["id"],
        test_id=record["test_id"],
        owner_id=record["owner_id"],
        project_id=record["project_id"],
        status_code=record["status_code"],
        response_time_ms=record["response_time_ms"],
        success=record["success"],
        error=record["error"],
        response_body=record["response_body"],
        assertion_results=outcomes,
        timestamp=record["created_at"],
    )


def _assertions_json(test: ApiTest) -> List[Dict[str, Any]]:
    return [{"kind": a.kind.value, "target": a.target, "expected": a.expected} for a in test.assertions]


class PostgresMonitorRepository(MonitorRepository):
    """Stores monitor records, bounded history included, in the 'monitors' table."""

    def __init__(self, pool: Pool) -> None:
        self._pool: Pool = pool

    async def load_all(self) -> List[Monitor]:
        async with self._pool.acquire() as conn:
            records = await conn.fetch(SELECT_MONITORS_QUERY)
        return [map_monitor(record) for record in records]

    async def add(self, monitor: Monitor) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                INSERT_MONITOR_QUERY,
                monitor.id,
                monitor.owner_id,
                monitor.project_id,
                monitor.name,
                monitor.url,
                monitor.interval_minutes,
                monitor.status.value,
                monitor.response_time_ms,
                monitor.last_checked,
                history_to_json(monitor.history),
                monitor.created_at,
            )

    async def save(self, monitor: Monitor) -> None:
        async with self._pool.acquire() as conn:
            status = await conn.execute(
                UPDATE_MONITOR_QUERY,
                monitor.id,
                monitor.name,
                monitor.url,
                monitor.interval_minutes,
                monitor.status.value,
                monitor.response_time_ms,
                monitor.last_checked,
                history_to_json(monitor.history),
            )
        if _affected_rows(status) == 0:
            raise KeyError(monitor.id)

    async def delete(self, monitor_id: str) -> bool:
        async with self._pool.acquire() as conn:
            status = await conn.execute(DELETE_MONITOR_QUERY, monitor_id)
        return _affected_rows(status) > 0


class PostgresApiTestRepository(ApiTestRepository):
    """Stores test definitions in the 'api_tests' table."""

    def __init__(self, pool: Pool) -> None:
        self._pool: Pool = pool

    async def get(self, test_id: str) -> Optional[ApiTest]:
        async with self._pool.acquire() as conn:
            record = await conn.fetchrow(SELECT_TEST_QUERY, test_id)
        return map_api_test(record) if record else None

    async def add(self, test: ApiTest) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                INSERT_TEST_QUERY,
                test.id,
                test.owner_id,
                test.project_id,
                test.name,
                test.method.value,
                test.url,
                dict(test.headers),
                test.body,
                _assertions_json(test),
                test.created_at,
                test.updated_at,
            )

    async def update(self, test: ApiTest) -> None:
        async with self._pool.acquire() as conn:
            status = await conn.execute(
                UPDATE_TEST_QUERY,
                test.id,
                test.project_id,
                test.name,
                test.method.value,
                test.url,
                dict(test.headers),
                test.body,
                _assertions_json(test),
                test.updated_at,
            )
        if _affected_rows(status) == 0:
            raise KeyError(test.id)

    async def delete(self, test_id: str) -> bool:
        async with self._pool.acquire() as conn:
            status = await conn.execute(DELETE_TEST_QUERY, test_id)
        return _affected_rows(status) > 0

    async def list(self, owner_id: str, project_id: Optional[str] = None) -> List[ApiTest]:
        async with self._pool.acquire() as conn:
            records = await conn.fetch(LIST_TESTS_QUERY, owner_id, project_id)
        return [map_api_test(record) for record in records]


class PostgresApiTestResultRepository(ApiTestResultRepository):
    """Stores run results in the 'api_test_results' table."""

    def __init__(self, pool: Pool) -> None:
        self._pool: Pool = pool

    async def save(self, result: ApiTestResult) -> None:
        outcomes = [outcome._asdict() for outcome in result.assertion_results]
        for outcome in outcomes:
            outcome["kind"] = outcome["kind"].value

        async with self._pool.acquire() as conn:
            await conn.execute(
                INSERT_RESULT_QUERY,
                result.id,
                result.test_id,
                result.owner_id,
                result.project_id,
                result.status_code,
                result.response_time_ms,
                result.success,
                result.error,
                result.response_body,
                outcomes,
                result.timestamp,
            )
        logger.debug(f"Saved result {result.id} of API test {result.test_id}")

    async def list_for_test(self, test_id: str, limit: int = 50) -> List[ApiTestResult]:
        async with self._pool.acquire() as conn:
            records = await conn.fetch(LIST_RESULTS_QUERY, test_id, limit)
        return [map_api_test_result(record) for record in records]

    async def delete_for_test(self, test_id: str) -> int:
        async with self._pool.acquire() as conn:
            status = await conn.execute(DELETE_RESULTS_QUERY, test_id)
        return _affected_rows(status)
