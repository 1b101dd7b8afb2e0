"""
HTTP probe implementation using the aiohttp library.

This module provides an implementation of the Probe interface that uses the
aiohttp library to perform a single HTTP request. It handles timing, request
body encoding, JSON response decoding and turns every transport failure into
data instead of an exception.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from endpoint_monitor.contracts import Probe
from endpoint_monitor.domain import HttpMethod, ProbeRequest, ProbeResult

# Module logger
logger = logging.getLogger(__name__)

# Methods that never carry a request body
BODYLESS_METHODS = (HttpMethod.GET, HttpMethod.HEAD)

JSON_CONTENT_TYPE = "application/json"


def _has_header(headers: Dict[str, str], name: str) -> bool:
    """
    Checks whether a header is present, ignoring case.

    Args:
        headers: The header mapping to inspect.
        name: The header name to look for.

    Returns:
        bool: True if the header is set, False otherwise.
    """
    wanted = name.lower()
    return any(key.lower() == wanted for key in headers)


def _encode_body(body: Any) -> Optional[str]:
    """Returns the request payload, or None when there is nothing to send."""
    if body is None or body == "":
        return None
    if isinstance(body, (str, bytes)):
        return body
    return json.dumps(body)


def _decode_body(content_type: Optional[str], text: str) -> Any:
    """
    Decodes a response body according to its content type.

    JSON bodies are parsed into Python values. A body announced as JSON that
    fails to parse is kept as raw text.

    Args:
        content_type: The response content type, without parameters.
        text: The raw response text.

    Returns:
        Any: The parsed JSON value or the raw text.
    """
    if content_type and JSON_CONTENT_TYPE in content_type.lower():
        try:
            return json.loads(text)
        except ValueError:
            logger.debug("Response announced as JSON could not be parsed, keeping raw text.")
    return text


def _describe(error: Exception) -> str:
    description = str(error)
    return description if description else type(error).__name__


class AiohttpProbe(Probe):
    """
    A concrete implementation of Probe using the aiohttp library.

    This class handles the entire lifecycle of a single HTTP exchange. It uses
    a shared aiohttp ClientSession and never lets an exception escape: any
    failure yields a result with status 0 and an error description.
    """

    def __init__(self, session: aiohttp.ClientSession) -> None:
        """
        Initializes the probe with a shared aiohttp ClientSession.

        Args:
            session: An active aiohttp.ClientSession to be used for requests.
        """
        self._session: aiohttp.ClientSession = session

    async def probe(self, request: ProbeRequest) -> ProbeResult:
        """
        Performs the HTTP request described by the given ProbeRequest.

        GET and HEAD requests are sent without a body even if one is
        configured. When a body is sent and no Content-Type header is set,
        'application/json' is assumed. The response time covers dispatch up to
        the complete reception of the body (or the failure).

        Args:
            request: The request to perform.

        Returns:
            ProbeResult: The status code, response time, decoded body and error.
        """
        logger.debug(f"Starting probe: {request.method.value} {request.url}")
        headers: Dict[str, str] = dict(request.headers)
        data: Optional[str] = None
        if request.method not in BODYLESS_METHODS:
            data = _encode_body(request.body)
            if data is not None and not _has_header(headers, "Content-Type"):
                headers["Content-Type"] = JSON_CONTENT_TYPE

        error: Optional[str] = None
        status_code: int = 0
        body: Any = None
        start_time: float = time.time()

        try:
            async with self._session.request(
                request.method.value,
                request.url,
                headers=headers,
                data=data,
                timeout=aiohttp.ClientTimeout(total=request.timeout),
            ) as response:
                received_status: int = response.status
                if request.read_body:
                    # Undecodable bytes become U+FFFD; the response still completed
                    text: str = await response.text(errors="replace")
                    body = _decode_body(response.content_type, text)
                status_code = received_status

        except asyncio.TimeoutError:
            error = f"Request timed out after {request.timeout:g}s"
            body = None
            logger.warning(f"Probe timed out: {request.method.value} {request.url}")
        except aiohttp.ClientError as e:
            error = _describe(e)
            body = None
            logger.warning(f"Probe failed: {request.method.value} {request.url}: {error}")
        except Exception as e:
            error = _describe(e)
            body = None
            logger.exception(f"Unexpected error probing {request.url}")

        end_time: float = time.time()
        response_time_ms = int(round((end_time - start_time) * 1000))
        if error is None:
            logger.debug(
                f"Probed {request.url} in {response_time_ms}ms with status {status_code}"
            )

        return ProbeResult(
            status_code=status_code,
            response_time_ms=response_time_ms,
            body=body,
            error=error,
        )
