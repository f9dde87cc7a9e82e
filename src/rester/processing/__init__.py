"""
Rester Response Processing

Path expressions, assertions and value extraction over HTTP responses.
"""

from .assertions import evaluate_assertion, evaluate_assertions, parse_assertion
from .extraction import extract_values, make_extraction_rule, parse_extraction
from .models import (
    Assertion,
    AssertionOperator,
    AssertionResult,
    ExtractionResult,
    ExtractionRule,
    ProcessingResult,
)
from .paths import PathSource, ResponsePath, compile_path
from .processor import ResponseProcessor

__all__ = [
    # Paths
    "PathSource",
    "ResponsePath",
    "compile_path",
    # Assertions
    "Assertion",
    "AssertionOperator",
    "AssertionResult",
    "parse_assertion",
    "evaluate_assertion",
    "evaluate_assertions",
    # Extraction
    "ExtractionRule",
    "ExtractionResult",
    "make_extraction_rule",
    "parse_extraction",
    "extract_values",
    # Processor
    "ProcessingResult",
    "ResponseProcessor",
]
