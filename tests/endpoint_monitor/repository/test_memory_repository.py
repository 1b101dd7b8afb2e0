"""
Unit tests for the in-memory API test repositories.
"""

from datetime import datetime, timedelta, timezone

import pytest

from endpoint_monitor.domain import ApiTest, ApiTestResult, HttpMethod
from endpoint_monitor.repository.memory import (
    InMemoryApiTestRepository,
    InMemoryApiTestResultRepository,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _test(test_id: str, owner_id: str = "user-1", project_id=None, minutes: int = 0) -> ApiTest:
    return ApiTest(
        id=test_id,
        owner_id=owner_id,
        name=test_id,
        method=HttpMethod.GET,
        url="https://example.com",
        headers={},
        body=None,
        assertions=(),
        project_id=project_id,
        created_at=T0,
        updated_at=T0 + timedelta(minutes=minutes),
    )


def _result(result_id: str, test_id: str = "test-1") -> ApiTestResult:
    return ApiTestResult(
        id=result_id,
        test_id=test_id,
        owner_id="user-1",
        project_id=None,
        status_code=200,
        response_time_ms=10,
        success=True,
        error=None,
        response_body=None,
        assertion_results=(),
        timestamp=T0,
    )


@pytest.mark.asyncio
async def test_test_repository_should_store_update_and_delete() -> None:
    # Arrange
    repository = InMemoryApiTestRepository()
    test = _test("test-1")

    # Act
    await repository.add(test)
    await repository.update(test._replace(name="renamed"))
    renamed = await repository.get("test-1")
    deleted = await repository.delete("test-1")
    deleted_again = await repository.delete("test-1")

    # Assert
    assert renamed.name == "renamed"
    assert (deleted, deleted_again) == (True, False)
    assert await repository.get("test-1") is None


@pytest.mark.asyncio
async def test_test_repository_should_reject_duplicates_and_unknown_updates() -> None:
    # Arrange
    repository = InMemoryApiTestRepository()
    await repository.add(_test("test-1"))

    # Act & Assert
    with pytest.raises(ValueError):
        await repository.add(_test("test-1"))
    with pytest.raises(KeyError):
        await repository.update(_test("test-2"))


@pytest.mark.asyncio
async def test_test_repository_should_list_most_recently_updated_first() -> None:
    # Arrange
    repository = InMemoryApiTestRepository()
    await repository.add(_test("old", minutes=1))
    await repository.add(_test("new", project_id="proj-1", minutes=5))
    await repository.add(_test("foreign", owner_id="user-2"))

    # Act
    everything = await repository.list("user-1")
    project = await repository.list("user-1", "proj-1")

    # Assert
    assert [t.id for t in everything] == ["new", "old"]
    assert [t.id for t in project] == ["new"]


@pytest.mark.asyncio
async def test_result_repository_should_list_newest_first_with_limit() -> None:
    # Arrange
    repository = InMemoryApiTestResultRepository()
    for i in range(5):
        await repository.save(_result(f"r{i}"))
    await repository.save(_result("other", test_id="test-2"))

    # Act
    latest = await repository.list_for_test("test-1", limit=3)

    # Assert
    assert [r.id for r in latest] == ["r4", "r3", "r2"]


@pytest.mark.asyncio
async def test_result_repository_should_delete_results_of_one_test() -> None:
    # Arrange
    repository = InMemoryApiTestResultRepository()
    await repository.save(_result("r1"))
    await repository.save(_result("r2"))
    await repository.save(_result("other", test_id="test-2"))

    # Act
    deleted = await repository.delete_for_test("test-1")

    # Assert
    assert deleted == 2
    assert await repository.list_for_test("test-1") == []
    assert len(await repository.list_for_test("test-2")) == 1
