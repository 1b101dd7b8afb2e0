"""
In-process implementations of the API test repositories.

Used when no database is configured, and in tests.
"""

from typing import Dict, List, Optional

from endpoint_monitor.contracts import ApiTestRepository, ApiTestResultRepository
from endpoint_monitor.domain import ApiTest, ApiTestResult


class InMemoryApiTestRepository(ApiTestRepository):
    """Keeps test definitions in a dictionary keyed by id."""

    def __init__(self) -> None:
        self._tests: Dict[str, ApiTest] = {}

    async def get(self, test_id: str) -> Optional[ApiTest]:
        return self._tests.get(test_id)

    async def add(self, test: ApiTest) -> None:
        if test.id in self._tests:
            raise ValueError(f"Duplicate API test id: {test.id}")
        self._tests[test.id] = test

    async def update(self, test: ApiTest) -> None:
        if test.id not in self._tests:
            raise KeyError(test.id)
        self._tests[test.id] = test

    async def delete(self, test_id: str) -> bool:
        return self._tests.pop(test_id, None) is not None

    async def list(self, owner_id: str, project_id: Optional[str] = None) -> List[ApiTest]:
        tests = [
            test
            for test in self._tests.values()
            if test.owner_id == owner_id and (project_id is None or test.project_id == project_id)
        ]
        return sorted(tests, key=lambda test: test.updated_at, reverse=True)


class InMemoryApiTestResultRepository(ApiTestResultRepository):
    """Keeps results per test, in insertion order. Nothing is ever evicted."""

    def __init__(self) -> None:
        self._results: Dict[str, List[ApiTestResult]] = {}

    async def save(self, result: ApiTestResult) -> None:
        self._results.setdefault(result.test_id, []).append(result)

    async def list_for_test(self, test_id: str, limit: int = 50) -> List[ApiTestResult]:
        results = self._results.get(test_id, [])
        return list(reversed(results))[:limit]

    async def delete_for_test(self, test_id: str) -> int:
        return len(self._results.pop(test_id, []))
