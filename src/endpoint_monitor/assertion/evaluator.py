"""
Assertion parsing and evaluation for API tests.

Assertions are parsed into a closed set of kinds up front, so an unknown kind
is rejected when a test is defined rather than ignored when it runs. Each kind
maps to exactly one evaluation function. A mismatch is a normal outcome with
passed=False, never an exception.
"""

import json
import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Sequence, Tuple

from endpoint_monitor.domain import Assertion, AssertionKind, AssertionOutcome, ProbeResult
from endpoint_monitor.errors import ValidationError
from endpoint_monitor.validation import split_path

# Module logger
logger = logging.getLogger(__name__)

# Longest body excerpt reported as the actual value of a 'contains' assertion
CONTAINS_EXCERPT_LENGTH = 200

_MISSING = object()


def _to_number(value: Any, kind: AssertionKind) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"'{kind.value}' assertions require a numeric expected value.")
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(str(value).strip())
        except ValueError as err:
            raise ValidationError(
                f"'{kind.value}' assertions require a numeric expected value, got {value!r}."
            ) from err
    return int(number) if float(number).is_integer() else float(number)


def parse_assertion(raw: Mapping[str, Any]) -> Assertion:
    """
    Builds an Assertion from a raw mapping.

    The mapping holds 'kind' (or 'type'), 'expected' (or 'value') and, for
    json_path assertions, 'target'.

    Args:
        raw: The raw assertion definition.

    Returns:
        Assertion: The validated assertion.

    Raises:
        ValidationError: If the kind is unknown or the values do not fit it.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("Each assertion must be a mapping.")

    raw_kind = raw.get("kind", raw.get("type"))
    try:
        kind = AssertionKind(raw_kind)
    except ValueError as err:
        raise ValidationError(
            f"Unknown assertion kind: {raw_kind!r}. "
            f"Allowed values are: {', '.join(k.value for k in AssertionKind)}"
        ) from err

    expected = raw.get("expected", raw.get("value", _MISSING))
    if expected is _MISSING:
        raise ValidationError(f"'{kind.value}' assertions require an expected value.")

    if kind in (AssertionKind.STATUS, AssertionKind.TIME):
        return Assertion(kind=kind, expected=_to_number(expected, kind))
    if kind is AssertionKind.CONTAINS:
        if expected is None:
            raise ValidationError("'contains' assertions require an expected value.")
        return Assertion(kind=kind, expected=str(expected))

    target = raw.get("target")
    split_path(target)
    return Assertion(kind=kind, expected=expected, target=target.strip())


def parse_assertions(raw: Iterable[Mapping[str, Any]]) -> Tuple[Assertion, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (str, bytes, Mapping)):
        raise ValidationError("assertions must be a list.")
    return tuple(parse_assertion(item) for item in raw)


def stringify(value: Any) -> str:
    """
    Renders a value the way it is compared by json_path assertions.

    JSON literals keep their JSON spelling (true, false, null) and integral
    floats lose their fractional part, so 42, 42.0 and "42" compare equal.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def body_text(body: Any) -> str:
    """Returns the textual form of a response body, serializing structured bodies."""
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    return json.dumps(body, separators=(",", ":"))


def resolve_path(body: Any, path: str) -> Tuple[bool, Any]:
    """
    Walks a structured body along a dot-separated path.

    Args:
        body: The decoded response body.
        path: The path, e.g. 'data.id'. Numeric segments index lists.

    Returns:
        Tuple[bool, Any]: Whether the path resolved, and the value found.
    """
    current = body
    for key in path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return False, None
    return True, current


def _evaluate_status(assertion: Assertion, result: ProbeResult) -> AssertionOutcome:
    actual = result.status_code
    return AssertionOutcome(
        kind=assertion.kind,
        target=assertion.target,
        expected=assertion.expected,
        actual=actual,
        passed=actual == assertion.expected,
    )


def _evaluate_time(assertion: Assertion, result: ProbeResult) -> AssertionOutcome:
    actual = result.response_time_ms
    return AssertionOutcome(
        kind=assertion.kind,
        target=assertion.target,
        expected=assertion.expected,
        actual=actual,
        passed=actual <= assertion.expected,
    )


def _evaluate_contains(assertion: Assertion, result: ProbeResult) -> AssertionOutcome:
    text = body_text(result.body)
    return AssertionOutcome(
        kind=assertion.kind,
        target=assertion.target,
        expected=assertion.expected,
        actual=text[:CONTAINS_EXCERPT_LENGTH],
        passed=str(assertion.expected) in text,
    )


def _evaluate_json_path(assertion: Assertion, result: ProbeResult) -> AssertionOutcome:
    resolved, actual = resolve_path(result.body, assertion.target)
    return AssertionOutcome(
        kind=assertion.kind,
        target=assertion.target,
        expected=assertion.expected,
        actual=actual,
        passed=resolved and stringify(actual) == stringify(assertion.expected),
        resolved=resolved,
    )


_EVALUATORS: Dict[AssertionKind, Callable[[Assertion, ProbeResult], AssertionOutcome]] = {
    AssertionKind.STATUS: _evaluate_status,
    AssertionKind.TIME: _evaluate_time,
    AssertionKind.CONTAINS: _evaluate_contains,
    AssertionKind.JSON_PATH: _evaluate_json_path,
}


def evaluate_assertions(
    assertions: Sequence[Assertion], result: ProbeResult
) -> Tuple[AssertionOutcome, ...]:
    """
    Evaluates every assertion against a probe result.

    When the request never completed there is no response to check: every
    assertion is reported as failed with no actual value.

    Args:
        assertions: The assertions of the test, in order.
        result: The probe outcome.

    Returns:
        Tuple[AssertionOutcome, ...]: One outcome per assertion, in order.
    """
    if result.failed:
        logger.debug(f"Skipping {len(assertions)} assertions, request failed: {result.error}")
        return tuple(
            AssertionOutcome(
                kind=assertion.kind,
                target=assertion.target,
                expected=assertion.expected,
                actual=None,
                passed=False,
                resolved=False,
            )
            for assertion in assertions
        )
    return tuple(_EVALUATORS[assertion.kind](assertion, result) for assertion in assertions)


def is_successful(
    assertions: Sequence[Assertion],
    outcomes: Sequence[AssertionOutcome],
    result: ProbeResult,
) -> bool:
    """
    Computes the overall verdict of a run.

    Without assertions a run succeeds iff the status is 2xx. With assertions,
    every single one must pass, whatever the status.
    """
    if not assertions:
        return result.ok
    return all(outcome.passed for outcome in outcomes)
