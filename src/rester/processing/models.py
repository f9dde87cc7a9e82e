"""
Response Processing Models

Assertions, extraction rules and their per-request results.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .paths import ResponsePath


class AssertionOperator(str, Enum):
    """Comparison applied by an assertion."""

    EQUALS = "=="
    NOT_EQUALS = "!="
    IN_RANGE = "in"
    CONTAINS = "contains"
    MATCHES = "~"
    EXISTS = "exists"
    LESS = "<"
    LESS_EQUAL = "<="
    GREATER = ">"
    GREATER_EQUAL = ">="


class Assertion(BaseModel):
    """Predicate over a response."""

    expression: str = Field(description="Assertion as declared")
    subject: ResponsePath = Field(description="Path the assertion reads")
    operator: AssertionOperator = Field(description="Comparison operator")
    expected: Optional[str] = Field(
        default=None, description="Expected value (may hold placeholders)"
    )

    model_config = ConfigDict(frozen=True)


class ExtractionRule(BaseModel):
    """Capture of a response value into a run variable."""

    name: str = Field(description="Target variable name in the run scope")
    path: ResponsePath = Field(description="Where to read the value from")

    model_config = ConfigDict(frozen=True)

    @property
    def expression(self) -> str:
        return f"{self.name} = {self.path.expression}"


class AssertionResult(BaseModel):
    """Outcome of one assertion."""

    expression: str = Field(description="Assertion as declared")
    passed: bool = Field(description="Whether the predicate held")
    actual: Optional[str] = Field(default=None, description="Observed value")
    expected: Optional[str] = Field(default=None, description="Expected value")
    message: str = Field(default="", description="Failure explanation")


class ExtractionResult(BaseModel):
    """Outcome of one extraction rule."""

    name: str = Field(description="Target variable name")
    path: str = Field(description="Path expression")
    value: Optional[str] = Field(default=None, description="Captured value")
    error: Optional[str] = Field(default=None, description="MissingPathError message")

    @property
    def ok(self) -> bool:
        return self.error is None


class ProcessingResult(BaseModel):
    """Combined assertion and extraction results for one response."""

    assertions: List[AssertionResult] = Field(default_factory=list)
    extractions: List[ExtractionResult] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.assertions)

    @property
    def failed_assertions(self) -> List[AssertionResult]:
        return [result for result in self.assertions if not result.passed]

    @property
    def captured(self) -> Dict[str, str]:
        return {
            result.name: result.value
            for result in self.extractions
            if result.ok and result.value is not None
        }
