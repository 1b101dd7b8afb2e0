"""
Validation helpers for user-supplied monitor, test and request definitions.

Every helper raises ValidationError synchronously so malformed configuration
is reported to the caller instead of being silently dropped.
"""

from typing import Any, Dict, Iterable, Optional, Tuple

from yarl import URL

from endpoint_monitor.domain import API_TEST_METHODS, HttpMethod
from endpoint_monitor.errors import ValidationError

ALLOWED_SCHEMES = ("http", "https")


def validate_url(url: Any) -> str:
    """
    Checks that a value is an absolute http(s) URL with a host.

    Args:
        url: The value to check.

    Returns:
        str: The URL, stripped of surrounding whitespace.

    Raises:
        ValidationError: If the value is not a usable URL.
    """
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("url must be a non-empty string.")
    url = url.strip()
    try:
        parsed = URL(url)
    except (TypeError, ValueError) as err:
        raise ValidationError(f"Invalid url: {url}") from err
    if parsed.scheme not in ALLOWED_SCHEMES or not parsed.host:
        raise ValidationError(f"Invalid url: {url}. Only absolute http(s) URLs are supported.")
    return url


def validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name must be a non-empty string.")
    return name.strip()


def validate_interval(interval_minutes: Any) -> int:
    # bool is an int subclass
    if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int):
        raise ValidationError("interval_minutes must be an integer.")
    if interval_minutes < 1:
        raise ValidationError("interval_minutes must be a positive integer.")
    return interval_minutes


def parse_method(method: Any, allowed: Iterable[HttpMethod] = API_TEST_METHODS) -> HttpMethod:
    """
    Converts a method name to an HttpMethod.

    Args:
        method: The method name, case insensitive, or an HttpMethod.
        allowed: The methods accepted in this context.

    Returns:
        HttpMethod: The parsed method.

    Raises:
        ValidationError: If the method is unknown or not allowed.
    """
    allowed = tuple(allowed)
    try:
        parsed = HttpMethod(method.upper()) if isinstance(method, str) else HttpMethod(method)
    except ValueError as err:
        raise ValidationError(f"Unsupported HTTP method: {method}") from err
    if parsed not in allowed:
        raise ValidationError(
            f"Unsupported HTTP method: {parsed.value}. "
            f"Allowed values are: {', '.join(m.value for m in allowed)}"
        )
    return parsed


def parse_headers(headers: Any) -> Dict[str, str]:
    if headers is None:
        return {}
    if not isinstance(headers, dict):
        raise ValidationError("headers must be a mapping of names to values.")
    parsed: Dict[str, str] = {}
    for name, value in headers.items():
        if not isinstance(name, str) or not name:
            raise ValidationError(f"Invalid header name: {name!r}")
        parsed[name] = str(value)
    return parsed


def parse_optional_id(value: Any, field: str) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, (str, int)):
        raise ValidationError(f"{field} must be a string.")
    return str(value)


def split_path(path: Any) -> Tuple[str, ...]:
    """Splits a dot-separated json path, rejecting empty segments."""
    if not isinstance(path, str) or not path.strip():
        raise ValidationError("json_path assertions require a non-empty target path.")
    segments = tuple(path.strip().split("."))
    if any(not segment for segment in segments):
        raise ValidationError(f"Invalid json path: {path}")
    return segments
