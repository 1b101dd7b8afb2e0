"""
Unit tests for the AiohttpProbe class.

This module contains tests for the AiohttpProbe class, ensuring that it
correctly performs HTTP requests, decodes bodies, measures response times
and reports every transport failure as data.

The tests follow the Arrange-Act-Assert (AAA) pattern and use proper mocking
of all external dependencies to ensure true unit testing.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
import pytest_asyncio

from endpoint_monitor.domain import HttpMethod, ProbeRequest
from endpoint_monitor.probe.aiohttp_probe import AiohttpProbe, _decode_body, _has_header

TIME_PATH = "endpoint_monitor.probe.aiohttp_probe.time"


def _timer(*readings: float) -> MagicMock:
    """Builds a replacement of the time module returning the given readings."""
    fake_time = MagicMock()
    fake_time.time.side_effect = list(readings)
    return fake_time


@pytest_asyncio.fixture
async def mock_session() -> AsyncMock:
    """
    Creates a mock aiohttp.ClientSession for testing.

    Returns:
        A mock ClientSession answering 200 with a JSON body.
    """
    session = AsyncMock(spec=aiohttp.ClientSession)

    response = AsyncMock()
    session.request.return_value.__aenter__.return_value = response

    response.status = 200
    response.content_type = "application/json"
    response.text.return_value = '{"data": {"id": 42}}'

    return session


@pytest_asyncio.fixture
async def probe(mock_session: AsyncMock) -> AiohttpProbe:
    return AiohttpProbe(session=mock_session)


def _request(method: HttpMethod = HttpMethod.GET, **overrides) -> ProbeRequest:
    values = dict(
        url="https://api.example.com/items",
        method=method,
        headers={"Authorization": "Bearer token"},
        body=None,
        timeout=10.0,
    )
    values.update(overrides)
    return ProbeRequest(**values)


@pytest.mark.asyncio
async def test_probe_should_return_parsed_json_body_and_timing(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    """
    Tests that a JSON response is parsed and the response time is measured in ms.
    """
    # Arrange
    request = _request()

    # Act
    with patch(TIME_PATH, _timer(1000.0, 1000.25)):
        result = await probe.probe(request)

    # Assert
    assert mock_session.request.call_count == 1
    call_args = mock_session.request.call_args[0]
    call_kwargs = mock_session.request.call_args[1]
    assert call_args == ("GET", "https://api.example.com/items")
    assert call_kwargs["headers"] == {"Authorization": "Bearer token"}
    assert call_kwargs["data"] is None
    assert call_kwargs["timeout"].total == 10.0
    assert result.status_code == 200
    assert result.response_time_ms == 250
    assert result.body == {"data": {"id": 42}}
    assert result.error is None
    assert result.ok is True


@pytest.mark.asyncio
async def test_probe_should_keep_raw_text_for_non_json_responses(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    # Arrange
    response = mock_session.request.return_value.__aenter__.return_value
    response.content_type = "text/html"
    response.text.return_value = "<h1>hello</h1>"

    # Act
    result = await probe.probe(_request())

    # Assert
    assert result.body == "<h1>hello</h1>"


@pytest.mark.asyncio
async def test_probe_should_keep_raw_text_when_json_body_is_malformed(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    # Arrange
    response = mock_session.request.return_value.__aenter__.return_value
    response.text.return_value = "{not json"

    # Act
    result = await probe.probe(_request())

    # Assert
    assert result.status_code == 200
    assert result.body == "{not json"
    assert result.error is None


@pytest.mark.asyncio
async def test_probe_should_not_read_body_when_not_requested(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    """
    Tests that liveness checks (HEAD, read_body=False) never read the body.
    """
    # Arrange
    response = mock_session.request.return_value.__aenter__.return_value
    request = _request(HttpMethod.HEAD, headers={}, timeout=5.0, read_body=False)

    # Act
    result = await probe.probe(request)

    # Assert
    response.text.assert_not_awaited()
    assert mock_session.request.call_args[0][0] == "HEAD"
    assert result.status_code == 200
    assert result.body is None


@pytest.mark.asyncio
@pytest.mark.parametrize("method", [HttpMethod.GET, HttpMethod.HEAD])
async def test_probe_should_not_send_body_for_get_and_head(
    probe: AiohttpProbe, mock_session: AsyncMock, method: HttpMethod
) -> None:
    # Arrange
    request = _request(method, headers={}, body='{"ignored": true}')

    # Act
    await probe.probe(request)

    # Assert
    call_kwargs = mock_session.request.call_args[1]
    assert call_kwargs["data"] is None
    assert call_kwargs["headers"] == {}


@pytest.mark.asyncio
async def test_probe_should_default_content_type_to_json_when_sending_body(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    # Arrange
    headers = {"X-Trace": "1"}
    request = _request(HttpMethod.POST, headers=headers, body='{"name": "x"}')

    # Act
    await probe.probe(request)

    # Assert
    call_kwargs = mock_session.request.call_args[1]
    assert call_kwargs["data"] == '{"name": "x"}'
    assert call_kwargs["headers"] == {"X-Trace": "1", "Content-Type": "application/json"}
    # The caller's headers are left untouched
    assert headers == {"X-Trace": "1"}


@pytest.mark.asyncio
async def test_probe_should_keep_explicit_content_type_whatever_its_case(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    # Arrange
    request = _request(HttpMethod.PUT, headers={"content-type": "text/plain"}, body="plain")

    # Act
    await probe.probe(request)

    # Assert
    assert mock_session.request.call_args[1]["headers"] == {"content-type": "text/plain"}


@pytest.mark.asyncio
async def test_probe_should_serialize_structured_body_as_json(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    # Arrange
    request = _request(HttpMethod.PATCH, headers={}, body={"enabled": True})

    # Act
    await probe.probe(request)

    # Assert
    assert mock_session.request.call_args[1]["data"] == '{"enabled": true}'


@pytest.mark.asyncio
async def test_probe_should_report_timeout_as_data(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    """
    Tests that an endpoint never answering within the timeout yields status 0,
    a response time close to the timeout and an error description.
    """
    # Arrange
    mock_session.request.return_value.__aenter__.side_effect = asyncio.TimeoutError()

    # Act
    with patch(TIME_PATH, _timer(1000.0, 1010.0)):
        result = await probe.probe(_request())

    # Assert
    assert result.status_code == 0
    assert result.response_time_ms == 10000
    assert result.body is None
    assert result.error == "Request timed out after 10s"
    assert result.failed is True


@pytest.mark.asyncio
async def test_probe_should_report_connection_errors_as_data(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    # Arrange
    mock_session.request.return_value.__aenter__.side_effect = aiohttp.ClientConnectionError(
        "Connection refused"
    )

    # Act
    result = await probe.probe(_request())

    # Assert
    assert result.status_code == 0
    assert result.error == "Connection refused"


@pytest.mark.asyncio
async def test_probe_should_report_unexpected_errors_as_data(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    # Arrange
    mock_session.request.side_effect = RuntimeError()

    # Act
    result = await probe.probe(_request())

    # Assert
    assert result.status_code == 0
    assert result.error == "RuntimeError"


@pytest.mark.asyncio
async def test_probe_should_report_status_zero_when_body_cannot_be_read(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    # Arrange
    response = mock_session.request.return_value.__aenter__.return_value
    response.text.side_effect = aiohttp.ClientPayloadError("Response payload is not completed")

    # Act
    result = await probe.probe(_request())

    # Assert
    assert result.status_code == 0
    assert result.body is None
    assert result.error == "Response payload is not completed"


@pytest.mark.asyncio
async def test_undecodable_body_should_keep_response_status(
    probe: AiohttpProbe, mock_session: AsyncMock
) -> None:
    """
    Tests that a completed response whose body is not valid UTF-8 keeps its
    status code and yields a text body with replacement characters.
    """
    # Arrange
    raw = b"\xff\xfe\x00binary"

    async def text(encoding=None, errors="strict"):
        return raw.decode("utf-8", errors)

    response = mock_session.request.return_value.__aenter__.return_value
    response.content_type = "application/octet-stream"
    response.text.side_effect = text

    # Act
    result = await probe.probe(_request())

    # Assert
    response.text.assert_awaited_once_with(errors="replace")
    assert result.status_code == 200
    assert result.error is None
    assert result.body == "\ufffd\ufffd\x00binary"
    assert result.ok is True


def test_has_header_should_ignore_case() -> None:
    assert _has_header({"CONTENT-TYPE": "x"}, "Content-Type") is True
    assert _has_header({"Accept": "x"}, "Content-Type") is False


def test_decode_body_should_parse_json_content_types_only() -> None:
    assert _decode_body("application/json", "[1, 2]") == [1, 2]
    assert _decode_body("application/problem+json", '{"a": 1}') == '{"a": 1}'
    assert _decode_body(None, "[1, 2]") == "[1, 2]"
