"""
Exceptions raised by the endpoint monitoring core.

Transport failures are never raised: the probe reports them as data. These
exceptions cover malformed definitions and lookups of unknown records.
"""


class MonitorError(Exception):
    """Base class of all errors raised by the monitoring core."""


class ValidationError(MonitorError, ValueError):
    """A monitor, test or request definition is malformed."""


class MonitorNotFoundError(MonitorError, LookupError):
    """No monitor exists with the given id for the given owner."""

    def __init__(self, monitor_id: str) -> None:
        super().__init__(f"Monitor not found: {monitor_id}")
        self.monitor_id = monitor_id


class ApiTestNotFoundError(MonitorError, LookupError):
    """No API test exists with the given id for the given owner."""

    def __init__(self, test_id: str) -> None:
        super().__init__(f"API test not found: {test_id}")
        self.test_id = test_id
