"""
Domain models for the endpoint monitoring system.

This module defines the core data structures used throughout the application:
monitors and their bounded check history, API test definitions with their
assertions, probe outcomes, test results and activity events. All records are
immutable; the stores replace them wholesale when they change.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Tuple

# Maximum number of samples kept in a monitor's history
MAX_HISTORY = 50

# Check interval assigned to monitors registered without one
DEFAULT_INTERVAL_MINUTES = 5


class HttpMethod(str, Enum):
    """
    Defines supported HTTP methods as a type-safe enumeration.

    Inheriting from 'str' allows enum members to behave like strings,
    making them compatible with libraries expecting string values.
    """

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


# Methods an ApiTest may be defined with. HEAD is reserved for liveness checks.
API_TEST_METHODS = (
    HttpMethod.GET,
    HttpMethod.POST,
    HttpMethod.PUT,
    HttpMethod.DELETE,
    HttpMethod.PATCH,
)


class MonitorStatus(str, Enum):
    """Liveness state of a monitor. PENDING only until the first check completes."""

    PENDING = "pending"
    UP = "up"
    DOWN = "down"


class AssertionKind(str, Enum):
    """The closed set of declarative checks an ApiTest can carry."""

    STATUS = "status"
    CONTAINS = "contains"
    JSON_PATH = "json_path"
    TIME = "time"


class ActivityKind(str, Enum):
    """Category tags of the events handed to the activity sink."""

    MONITOR_UP = "MONITOR_UP"
    MONITOR_DOWN = "MONITOR_DOWN"
    API_TEST_RUN = "API_TEST_RUN"


class HistorySample(NamedTuple):
    """A single check outcome as kept in a monitor's history."""

    timestamp: datetime
    status: MonitorStatus
    response_time_ms: int


class Monitor(NamedTuple):
    """
    A configured URL under recurring liveness observation.

    Attributes:
        id: Unique identifier of the monitor.
        owner_id: Identifier of the user owning the monitor.
        name: Display name.
        url: The URL checked with a HEAD request.
        interval_minutes: Configured check interval. Every tick checks every
            monitor, so this value is informational only.
        status: Current liveness status.
        response_time_ms: Response time of the last check, if any.
        last_checked: Time of the last completed check, if any.
        history: The most recent samples, oldest first, at most MAX_HISTORY.
        project_id: Optional project the monitor belongs to.
        created_at: Registration time.
    """

    id: str
    owner_id: str
    name: str
    url: str
    interval_minutes: int
    status: MonitorStatus
    response_time_ms: Optional[int]
    last_checked: Optional[datetime]
    history: Tuple[HistorySample, ...]
    project_id: Optional[str]
    created_at: datetime


class CheckOutcome(NamedTuple):
    """The result of a single monitor check, as returned by 'check now'."""

    status: MonitorStatus
    response_time_ms: int


class Transition(NamedTuple):
    """
    The effect of applying a check outcome to a monitor record.

    Attributes:
        previous: The status held immediately before the outcome was applied.
        monitor: The monitor snapshot after the update.
    """

    previous: MonitorStatus
    monitor: Monitor

    @property
    def changed(self) -> bool:
        return self.previous != self.monitor.status


class ProbeRequest(NamedTuple):
    """
    A single outbound HTTP request to perform.

    Attributes:
        url: The target URL.
        method: The HTTP method.
        headers: Request headers. Never mutated by the probe.
        body: Optional request body. Strings are sent as-is; other values are
            serialized as JSON.
        timeout: Request timeout in seconds.
        read_body: Whether the response body should be read and returned.
    """

    url: str
    method: HttpMethod
    headers: Dict[str, str]
    body: Any
    timeout: float
    read_body: bool = True


class ProbeResult(NamedTuple):
    """
    The outcome of a single probe, failures included.

    Attributes:
        status_code: The HTTP status received, 0 if the request never completed.
        response_time_ms: Elapsed time from dispatch to completion or failure.
        body: Parsed JSON value for JSON responses, raw text otherwise, None
            when the body was not read or the request failed.
        error: Description of the transport failure, None on completion.
    """

    status_code: int
    response_time_ms: int
    body: Any
    error: Optional[str]

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300


class Assertion(NamedTuple):
    """
    A declarative check against an HTTP response.

    Attributes:
        kind: Which check to run.
        expected: The expected value; numeric for STATUS and TIME.
        target: Dot-separated path, used by JSON_PATH only.
    """

    kind: AssertionKind
    expected: Any
    target: Optional[str] = None


class AssertionOutcome(NamedTuple):
    """
    The evaluated result of one assertion.

    Attributes:
        actual: The observed value. None is ambiguous on its own: a json_path
            that resolved to null and one that did not resolve both report it.
        resolved: False when no actual value was observed, either because a
            json_path did not resolve or because the request never completed.
    """

    kind: AssertionKind
    target: Optional[str]
    expected: Any
    actual: Any
    passed: bool
    resolved: bool = True


class ApiTest(NamedTuple):
    """
    A saved HTTP test definition.

    Attributes:
        id: Unique identifier of the test.
        owner_id: Identifier of the user owning the test.
        name: Display name.
        method: HTTP method of the request.
        url: Target URL.
        headers: Request headers.
        body: Opaque request body, typically a JSON string.
        assertions: Ordered checks evaluated against the response.
        project_id: Optional project the test belongs to.
        created_at: Creation time.
        updated_at: Time of the last edit.
    """

    id: str
    owner_id: str
    name: str
    method: HttpMethod
    url: str
    headers: Dict[str, str]
    body: Optional[str]
    assertions: Tuple[Assertion, ...]
    project_id: Optional[str]
    created_at: datetime
    updated_at: datetime


class ApiTestResult(NamedTuple):
    """
    The append-only record of a single ApiTest run.

    Attributes:
        id: Unique identifier of the result.
        test_id: The test that was run.
        owner_id: Owner of the test at run time.
        project_id: Project of the test at run time.
        status_code: Observed HTTP status, 0 if the request never completed.
        response_time_ms: Observed response time.
        success: Overall verdict of the run.
        error: Transport failure description, if any.
        response_body: Parsed or raw response body.
        assertion_results: One outcome per assertion of the test.
        timestamp: Time the run completed.
    """

    id: str
    test_id: str
    owner_id: str
    project_id: Optional[str]
    status_code: int
    response_time_ms: int
    success: bool
    error: Optional[str]
    response_body: Any
    assertion_results: Tuple[AssertionOutcome, ...]
    timestamp: datetime


class ActivityEvent(NamedTuple):
    """An event handed over to the activity sink."""

    kind: ActivityKind
    message: str
    metadata: Dict[str, Any]
    timestamp: datetime
    owner_id: Optional[str] = None
    project_id: Optional[str] = None
