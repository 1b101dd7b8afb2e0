"""
Execution of saved and ad-hoc API tests.

A saved test run performs exactly one probe, evaluates the test's assertions,
persists exactly one ApiTestResult and emits exactly one API_TEST_RUN event.
An ad-hoc run only reports the raw probe outcome.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Mapping
from uuid import uuid4

from endpoint_monitor.activity.emitter import ActivityEmitter
from endpoint_monitor.assertion.evaluator import evaluate_assertions, is_successful
from endpoint_monitor.contracts import ApiTestRepository, ApiTestResultRepository, Probe
from endpoint_monitor.domain import (
    ActivityEvent,
    ActivityKind,
    ApiTest,
    ApiTestResult,
    ProbeRequest,
    ProbeResult,
)
from endpoint_monitor.errors import ApiTestNotFoundError, ValidationError
from endpoint_monitor.store.monitor_store import utcnow
from endpoint_monitor.validation import parse_headers, parse_method, validate_url

# Module logger
logger = logging.getLogger(__name__)

# Timeout of a test request in seconds
DEFAULT_TEST_TIMEOUT = 10.0


def parse_ad_hoc_request(definition: Mapping[str, Any], timeout: float) -> ProbeRequest:
    """
    Builds a ProbeRequest from an ad-hoc definition.

    Args:
        definition: A mapping with 'url', 'method' and optional 'headers' and 'body'.
        timeout: Request timeout in seconds.

    Returns:
        ProbeRequest: The request to perform.

    Raises:
        ValidationError: If the definition is malformed.
    """
    if not isinstance(definition, Mapping):
        raise ValidationError("The request definition must be a mapping.")
    return ProbeRequest(
        url=validate_url(definition.get("url")),
        method=parse_method(definition.get("method", "GET")),
        headers=parse_headers(definition.get("headers")),
        body=definition.get("body"),
        timeout=timeout,
    )


def run_message(test: ApiTest, success: bool, result: ProbeResult) -> str:
    message = f'API Test "{test.name}" {"PASSED" if success else "FAILED"}'
    if result.failed:
        message += " (Network Error)"
    return message


class ApiTestRunner:
    """
    Runs API tests through a probe.

    Runs of the same test are independent of each other: each one works on
    the snapshot of the definition read when it starts and never modifies it.
    """

    def __init__(
        self,
        tests: ApiTestRepository,
        results: ApiTestResultRepository,
        probe: Probe,
        emitter: ActivityEmitter,
        timeout: float = DEFAULT_TEST_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Args:
            tests: Where saved test definitions are read from.
            results: Where run results are persisted.
            probe: Performs the HTTP requests.
            emitter: Receives one API_TEST_RUN event per saved test run.
            timeout: Request timeout in seconds.
            clock: Source of result timestamps.

        Raises:
            ValueError: If the timeout is not positive.
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive.")

        self._tests: ApiTestRepository = tests
        self._results: ApiTestResultRepository = results
        self._probe: Probe = probe
        self._emitter: ActivityEmitter = emitter
        self._timeout: float = timeout
        self._clock: Callable[[], datetime] = clock

    async def run_saved_test(self, test_id: str) -> ApiTestResult:
        """
        Runs a saved test and records the result.

        Args:
            test_id: The test to run.

        Returns:
            ApiTestResult: The persisted result.

        Raises:
            ApiTestNotFoundError: If the test does not exist.
        """
        test = await self._tests.get(test_id)
        if test is None:
            raise ApiTestNotFoundError(test_id)

        logger.info(f"Running API test {test.id} ({test.method.value} {test.url})")
        probe_result = await self._probe.probe(
            ProbeRequest(
                url=test.url,
                method=test.method,
                headers=test.headers,
                body=test.body,
                timeout=self._timeout,
            )
        )
        outcomes = evaluate_assertions(test.assertions, probe_result)
        success = is_successful(test.assertions, outcomes, probe_result)

        result = ApiTestResult(
            id=str(uuid4()),
            test_id=test.id,
            owner_id=test.owner_id,
            project_id=test.project_id,
            status_code=probe_result.status_code,
            response_time_ms=probe_result.response_time_ms,
            success=success,
            error=probe_result.error,
            response_body=probe_result.body,
            assertion_results=outcomes,
            timestamp=self._clock(),
        )
        await self._results.save(result)

        self._emitter.emit(
            ActivityEvent(
                kind=ActivityKind.API_TEST_RUN,
                message=run_message(test, success, probe_result),
                metadata=self._event_metadata(result),
                timestamp=result.timestamp,
                owner_id=test.owner_id,
                project_id=test.project_id,
            )
        )
        logger.info(f"API test {test.id} {'passed' if success else 'failed'} (result {result.id})")
        return result

    async def run_ad_hoc_test(self, definition: Mapping[str, Any]) -> ProbeResult:
        """
        Performs an unsaved request and returns the raw probe outcome.

        Nothing is persisted, no assertion is evaluated and no event is emitted.

        Args:
            definition: A mapping with 'url', 'method' and optional 'headers' and 'body'.

        Returns:
            ProbeResult: The raw outcome.

        Raises:
            ValidationError: If the definition is malformed.
        """
        request = parse_ad_hoc_request(definition, self._timeout)
        logger.debug(f"Running ad-hoc request {request.method.value} {request.url}")
        return await self._probe.probe(request)

    @staticmethod
    def _event_metadata(result: ApiTestResult) -> Dict[str, Any]:
        return {
            "test_id": result.test_id,
            "result_id": result.id,
            "status": result.status_code,
            "response_time_ms": result.response_time_ms,
            "error": result.error,
        }
