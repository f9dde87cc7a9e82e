"""
Value Extraction

Extraction rules capture response values into run-scope variables so later
requests in the same run can reference them. A missing path never aborts
the run; it is recorded and the target variable is left unset.
"""

import re
from typing import Iterable, List

from ..core.exceptions import MissingPathError, ParseError
from ..core.logging import get_logger
from ..core.models import HTTPResponse
from ..variables.store import to_variable_string
from .models import ExtractionResult, ExtractionRule
from .paths import compile_path

logger = get_logger(__name__)

VARIABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]*(\.[A-Za-z0-9_\-]+)*$")


def make_extraction_rule(name: str, path: str) -> ExtractionRule:
    """
    Build an extraction rule from a variable name and a path expression.

    A leading ``run.`` on the name is accepted and dropped, since extracted
    values always land in the run scope.

    Raises:
        ParseError: If the name or the path is invalid
    """
    target = name.strip()
    if target.startswith("run."):
        target = target[len("run."):]
    if not VARIABLE_NAME_RE.match(target):
        raise ParseError(f"Invalid extraction variable name: {name!r}")
    for reserved in ("global.", "environment.", "response."):
        if target.startswith(reserved):
            raise ParseError(
                f"Extraction can only write to the run scope: {name!r}"
            )
    return ExtractionRule(name=target, path=compile_path(path))


def parse_extraction(expression: str) -> ExtractionRule:
    """
    Parse a ``name = path`` extraction expression.

    Raises:
        ParseError: If the expression is malformed
    """
    name, sep, path = expression.partition("=")
    if not sep or not name.strip() or not path.strip():
        raise ParseError(
            f"Invalid extraction {expression!r}; expected 'name = path'"
        )
    return make_extraction_rule(name, path)


def extract_values(
    response: HTTPResponse, rules: Iterable[ExtractionRule]
) -> List[ExtractionResult]:
    """
    Apply extraction rules to a response.

    Args:
        response: Response to read
        rules: Extraction rules in declaration order

    Returns:
        One ExtractionResult per rule; failures carry the MissingPathError text
    """
    results: List[ExtractionResult] = []
    for rule in rules:
        try:
            value = rule.path.evaluate(response)
        except MissingPathError as e:
            logger.warning(
                f"Extraction failed for '{rule.name}' from '{rule.path}': {e.message}"
            )
            results.append(
                ExtractionResult(name=rule.name, path=rule.path.expression, error=e.message)
            )
            continue

        captured = to_variable_string(value)
        logger.debug(f"Extracted '{rule.name}' from '{rule.path}'")
        results.append(
            ExtractionResult(name=rule.name, path=rule.path.expression, value=captured)
        )
    return results
