"""
Response Processor

Evaluates assertions and extraction rules against a response and commits the
captured values into the run scope of a variable store.
"""

from typing import Iterable, List

from ..core.logging import get_logger
from ..core.models import HTTPResponse
from ..variables.store import Scope, VariableStore
from .assertions import evaluate_assertions
from .extraction import extract_values
from .models import (
    Assertion,
    AssertionResult,
    ExtractionResult,
    ExtractionRule,
    ProcessingResult,
)

logger = get_logger(__name__)


class ResponseProcessor:
    """Assertion evaluation and value extraction for one response at a time."""

    def evaluate(
        self, response: HTTPResponse, assertions: Iterable[Assertion]
    ) -> List[AssertionResult]:
        return evaluate_assertions(response, assertions)

    def extract(
        self, response: HTTPResponse, rules: Iterable[ExtractionRule]
    ) -> List[ExtractionResult]:
        return extract_values(response, rules)

    def process(
        self,
        response: HTTPResponse,
        assertions: Iterable[Assertion],
        rules: Iterable[ExtractionRule],
    ) -> ProcessingResult:
        """
        Evaluate assertions, then run extraction regardless of their outcome.

        Args:
            response: Response to process
            assertions: Interpolated assertions
            rules: Extraction rules

        Returns:
            ProcessingResult with both result lists
        """
        assertion_results = self.evaluate(response, assertions)
        extraction_results = self.extract(response, rules)
        return ProcessingResult(
            assertions=assertion_results, extractions=extraction_results
        )

    def commit(self, store: VariableStore, result: ProcessingResult) -> List[str]:
        """
        Write captured values into the run scope.

        Args:
            store: Variable store owned by the current run
            result: Processing result holding the captured values

        Returns:
            Names of the variables written
        """
        written = []
        for name, value in result.captured.items():
            store.set(Scope.RUN, name, value)
            written.append(name)
        if written:
            logger.debug(f"Committed run variables: {', '.join(written)}")
        return written
