"""
Shared fixtures of the endpoint monitor test suite.

Provides a virtual ticker and clock so the scheduler can be driven
deterministically, and a scripted probe standing in for the network.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional, Union

import pytest

from endpoint_monitor.contracts import Probe, Ticker
from endpoint_monitor.domain import ProbeRequest, ProbeResult

ProbeScript = Union[ProbeResult, Callable[[ProbeRequest], ProbeResult]]


class ManualTicker(Ticker):
    """A Ticker that only fires when the test says so."""

    def __init__(self) -> None:
        self._signals: "asyncio.Queue[bool]" = asyncio.Queue()
        self.stopped = False

    async def tick(self) -> bool:
        return await self._signals.get()

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            self._signals.put_nowait(True)

    def stop(self) -> None:
        self.stopped = True
        self._signals.put_nowait(False)


class SteppingClock:
    """A clock advancing one second on every reading."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


class ScriptedProbe(Probe):
    """
    A Probe returning scripted results and recording every request.

    Results are served per URL when registered with 'for_url', otherwise from
    the default result. An optional delay simulates network latency.
    """

    def __init__(self, default: ProbeScript, delay: float = 0.0) -> None:
        self.default = default
        self.delay = delay
        self.by_url = {}
        self.requests: List[ProbeRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def for_url(self, url: str, *results: ProbeScript) -> None:
        self.by_url[url] = list(results)

    async def probe(self, request: ProbeRequest) -> ProbeResult:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            scripted = self.by_url.get(request.url)
            result = scripted.pop(0) if scripted else self.default
            return result(request) if callable(result) else result
        finally:
            self.in_flight -= 1


def probe_result(
    status_code: int = 200,
    response_time_ms: int = 120,
    body=None,
    error: Optional[str] = None,
) -> ProbeResult:
    return ProbeResult(
        status_code=status_code, response_time_ms=response_time_ms, body=body, error=error
    )


@pytest.fixture
def manual_ticker() -> ManualTicker:
    """Provides a ticker fired by the test."""
    return ManualTicker()


@pytest.fixture
def clock() -> SteppingClock:
    """Provides a deterministic clock."""
    return SteppingClock()


@pytest.fixture
def scripted_probe() -> ScriptedProbe:
    """Provides a probe answering 200 OK to every request."""
    return ScriptedProbe(default=probe_result())


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    """Provides a helper polling a condition until it holds or a timeout expires."""

    async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait_until

