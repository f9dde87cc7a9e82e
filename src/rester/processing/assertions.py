"""
Assertion Parsing and Evaluation

Assertion grammar:

    status == 200           status != 500
    status in 200..299      status == 2xx
    header Content-Type exists
    header Content-Type == application/json
    header Location ~ ^/users/\\d+$
    body.user.name == "Ada"
    body.items contains apple
    body.total >= 10
    elapsed < 500

Every assertion is evaluated independently; a failing or broken assertion
never prevents the others from being evaluated.
"""

import re
from typing import Any, Iterable, List, Optional, Tuple

from ..core.exceptions import MissingPathError, ParseError
from ..core.logging import get_logger
from ..core.models import HTTPResponse
from ..variables.store import to_variable_string
from .models import Assertion, AssertionOperator, AssertionResult
from .paths import PathSource, compile_path

logger = get_logger(__name__)

_STATUS_CLASS_RE = re.compile(r"^([1-5])xx$", re.IGNORECASE)
_RANGE_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*\.\.\s*(-?\d+(?:\.\d+)?)\s*$")

# Longest operators first so "<=" is not read as "<"
_OPERATOR_TOKENS: Tuple[Tuple[str, AssertionOperator], ...] = (
    ("==", AssertionOperator.EQUALS),
    ("!=", AssertionOperator.NOT_EQUALS),
    ("<=", AssertionOperator.LESS_EQUAL),
    (">=", AssertionOperator.GREATER_EQUAL),
    ("<", AssertionOperator.LESS),
    (">", AssertionOperator.GREATER),
    ("~", AssertionOperator.MATCHES),
)

_WORD_OPERATORS = {
    "contains": AssertionOperator.CONTAINS,
    "in": AssertionOperator.IN_RANGE,
    "matches": AssertionOperator.MATCHES,
}

_NUMERIC_OPERATORS = {
    AssertionOperator.LESS,
    AssertionOperator.LESS_EQUAL,
    AssertionOperator.GREATER,
    AssertionOperator.GREATER_EQUAL,
}


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _has_placeholder(value: Optional[str]) -> bool:
    return value is not None and "${" in value


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _split_operator(rest: str, expression: str) -> Tuple[AssertionOperator, Optional[str]]:
    if rest.lower() == "exists":
        return AssertionOperator.EXISTS, None

    for token, operator in _OPERATOR_TOKENS:
        if rest.startswith(token):
            return operator, rest[len(token):].strip()

    word, _, remainder = rest.partition(" ")
    operator = _WORD_OPERATORS.get(word.lower())
    if operator is None:
        raise ParseError(f"Unsupported assertion operator in {expression!r}")
    return operator, remainder.strip()


def parse_assertion(expression: str) -> Assertion:
    """
    Parse an assertion expression.

    Args:
        expression: Assertion text

    Returns:
        Parsed Assertion

    Raises:
        ParseError: If the expression uses unsupported syntax
    """
    text = expression.strip()
    if not text:
        raise ParseError("Empty assertion")

    subject_text, _, rest = text.partition(" ")
    if subject_text.lower() in ("header", "headers"):
        name, _, rest = rest.strip().partition(" ")
        if not name:
            raise ParseError(f"Missing header name in assertion {expression!r}")
        subject_text = f"header.{name}"
    subject = compile_path(subject_text)

    rest = rest.strip()
    if not rest:
        raise ParseError(f"Missing operator in assertion {expression!r}")
    operator, expected = _split_operator(rest, expression)

    if operator != AssertionOperator.EXISTS:
        if expected is None or expected == "":
            raise ParseError(f"Missing expected value in assertion {expression!r}")
        expected = _unquote(expected)

    _validate(subject.source, operator, expected, expression)
    return Assertion(
        expression=text, subject=subject, operator=operator, expected=expected
    )


def _validate(
    source: PathSource,
    operator: AssertionOperator,
    expected: Optional[str],
    expression: str,
) -> None:
    if source in (PathSource.STATUS, PathSource.ELAPSED):
        if operator in (
            AssertionOperator.CONTAINS,
            AssertionOperator.MATCHES,
            AssertionOperator.EXISTS,
        ):
            raise ParseError(
                f"Operator '{operator.value}' not supported for {source.value} in {expression!r}"
            )
    elif operator == AssertionOperator.IN_RANGE:
        raise ParseError(f"Range assertions only apply to status/elapsed: {expression!r}")

    if _has_placeholder(expected):
        return

    if operator == AssertionOperator.IN_RANGE and not _RANGE_RE.match(expected or ""):
        raise ParseError(f"Expected a range like 200..299 in {expression!r}")
    if operator == AssertionOperator.MATCHES:
        try:
            re.compile(expected or "")
        except re.error as e:
            raise ParseError(f"Invalid regular expression in {expression!r}: {e}")
    if operator in _NUMERIC_OPERATORS and _to_number(expected) is None:
        raise ParseError(f"Expected a number in {expression!r}")
    if source == PathSource.STATUS and operator in (
        AssertionOperator.EQUALS,
        AssertionOperator.NOT_EQUALS,
    ):
        if _to_number(expected) is None and not _STATUS_CLASS_RE.match(expected or ""):
            raise ParseError(f"Expected a status code or class (2xx) in {expression!r}")


def _status_class_range(expected: str) -> Optional[Tuple[float, float]]:
    match = _STATUS_CLASS_RE.match(expected.strip())
    if match is None:
        return None
    base = int(match.group(1)) * 100
    return float(base), float(base + 99)


def _values_equal(actual: Any, expected: str) -> bool:
    actual_number = _to_number(actual) if not isinstance(actual, str) else None
    expected_number = _to_number(expected)
    if actual_number is not None and expected_number is not None:
        return actual_number == expected_number
    return to_variable_string(actual) == expected


def _compare(assertion: Assertion, actual: Any) -> Tuple[bool, str]:
    operator = assertion.operator
    expected = assertion.expected or ""

    if operator in (AssertionOperator.EQUALS, AssertionOperator.NOT_EQUALS):
        status_range = (
            _status_class_range(expected)
            if assertion.subject.source == PathSource.STATUS
            else None
        )
        if status_range is not None:
            equal = status_range[0] <= float(actual) <= status_range[1]
        else:
            equal = _values_equal(actual, expected)
        if operator == AssertionOperator.EQUALS:
            return equal, "" if equal else "values differ"
        return not equal, "" if not equal else "values are equal"

    if operator == AssertionOperator.IN_RANGE:
        match = _RANGE_RE.match(expected)
        number = _to_number(actual)
        if match is None:
            return False, f"invalid range: {expected}"
        if number is None:
            return False, "value is not numeric"
        low, high = float(match.group(1)), float(match.group(2))
        inside = low <= number <= high
        return inside, "" if inside else "value outside range"

    if operator == AssertionOperator.CONTAINS:
        if isinstance(actual, list):
            found = any(to_variable_string(item) == expected for item in actual)
        elif isinstance(actual, dict):
            found = expected in actual
        else:
            found = expected in to_variable_string(actual)
        return found, "" if found else "value not contained"

    if operator == AssertionOperator.MATCHES:
        try:
            matched = re.search(expected, to_variable_string(actual)) is not None
        except re.error as e:
            return False, f"invalid regular expression: {e}"
        return matched, "" if matched else "pattern did not match"

    number = _to_number(actual)
    limit = _to_number(expected)
    if number is None or limit is None:
        return False, "value is not numeric"
    checks = {
        AssertionOperator.LESS: number < limit,
        AssertionOperator.LESS_EQUAL: number <= limit,
        AssertionOperator.GREATER: number > limit,
        AssertionOperator.GREATER_EQUAL: number >= limit,
    }
    passed = checks[operator]
    return passed, "" if passed else "comparison failed"


def evaluate_assertion(response: HTTPResponse, assertion: Assertion) -> AssertionResult:
    """
    Evaluate a single assertion against a response.

    Args:
        response: Response to check
        assertion: Assertion (expected value already interpolated)

    Returns:
        AssertionResult; never raises for missing paths
    """
    try:
        actual = assertion.subject.evaluate(response)
    except MissingPathError as e:
        if assertion.operator == AssertionOperator.EXISTS:
            return AssertionResult(
                expression=assertion.expression, passed=False, message=e.message
            )
        return AssertionResult(
            expression=assertion.expression,
            passed=False,
            expected=assertion.expected,
            message=e.message,
        )

    actual_text = to_variable_string(actual)
    if assertion.operator == AssertionOperator.EXISTS:
        return AssertionResult(
            expression=assertion.expression, passed=True, actual=actual_text
        )

    passed, message = _compare(assertion, actual)
    return AssertionResult(
        expression=assertion.expression,
        passed=passed,
        actual=actual_text,
        expected=assertion.expected,
        message=message,
    )


def evaluate_assertions(
    response: HTTPResponse, assertions: Iterable[Assertion]
) -> List[AssertionResult]:
    """
    Evaluate every assertion in declaration order.

    Args:
        response: Response to check
        assertions: Assertions to evaluate

    Returns:
        One AssertionResult per assertion
    """
    results = [evaluate_assertion(response, assertion) for assertion in assertions]
    failed = [result for result in results if not result.passed]
    if failed:
        logger.debug(f"{len(failed)} of {len(results)} assertion(s) failed")
    return results
