"""
Run Result Models

Per-request outcomes and the aggregated result of one run, handed to a
reporter once the run has finished.
"""

from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.exceptions import ConfigurationError
from ..core.models import ConcreteRequest, HTTPResponse
from ..execution.engine import AttemptRecord
from ..processing.models import AssertionResult, ExtractionResult


class ExecutionMode(str, Enum):
    """Run scheduling modes."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class ConcurrencyPolicy(BaseModel):
    """
    How a batch of templates is scheduled.

    Parallel mode is only accepted when the caller declares the batch
    independent: no request reads a variable written by a sibling.
    """

    mode: ExecutionMode = Field(default=ExecutionMode.SEQUENTIAL)
    max_workers: int = Field(default=16, description="Parallel worker cap")
    independent: bool = Field(
        default=False, description="Caller asserts no cross-request variable flow"
    )
    halt_on_failure: bool = Field(
        default=False, description="Skip remaining requests after the first failure"
    )

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Invalid max_workers: {v}. Must be at least 1")
        return v

    def check(self) -> None:
        """
        Raises:
            ConfigurationError: If parallel mode is requested without the
                independence declaration
        """
        if self.mode == ExecutionMode.PARALLEL and not self.independent:
            raise ConfigurationError(
                "Parallel mode requires the batch to be declared independent",
                {"mode": self.mode.value},
            )

    def workers_for(self, batch_size: int) -> int:
        return max(1, min(batch_size, self.max_workers))


class OutcomeStatus(str, Enum):
    """Final status of one request in a run."""

    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"
    SKIPPED = "skipped"


class RequestError(BaseModel):
    """Structured error attached to an errored or skipped outcome."""

    kind: str = Field(description="Error category")
    message: str = Field(description="Human readable message")
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, kind: str, error: Exception) -> "RequestError":
        details = dict(getattr(error, "details", {}) or {})
        names = getattr(error, "names", None)
        if names:
            details["names"] = list(names)
        cause = getattr(error, "cause", None)
        if cause is not None:
            details["cause"] = type(cause).__name__
            details["cause_message"] = str(cause)
        message = getattr(error, "message", None) or str(error)
        return cls(kind=kind, message=message, details=details)


class RequestOutcome(BaseModel):
    """Everything recorded about one request template during a run."""

    request_id: str = Field(description="Template id")
    method: str = Field(description="HTTP method")
    url: str = Field(description="URL template")
    status: OutcomeStatus = Field(description="Final status")
    request: Optional[ConcreteRequest] = Field(default=None)
    response: Optional[HTTPResponse] = Field(default=None)
    error: Optional[RequestError] = Field(default=None)
    assertions: List[AssertionResult] = Field(default_factory=list)
    extractions: List[ExtractionResult] = Field(default_factory=list)
    attempts: List[AttemptRecord] = Field(default_factory=list)
    elapsed_ms: float = Field(default=0.0, description="Wall time including retries")
    completion_index: Optional[int] = Field(
        default=None, description="Order in which the request finished"
    )

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.PASSED

    @property
    def failed_assertions(self) -> List[AssertionResult]:
        return [result for result in self.assertions if not result.passed]


class RunResult(BaseModel):
    """Ordered outcomes of one run."""

    name: Optional[str] = Field(default=None, description="Run or document name")
    mode: ExecutionMode = Field(default=ExecutionMode.SEQUENTIAL)
    outcomes: List[RequestOutcome] = Field(default_factory=list)
    variables: Dict[str, str] = Field(
        default_factory=dict, description="Final run-scope variables"
    )
    cancelled: bool = Field(default=False)
    halted: bool = Field(default=False)
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    finished_at: Optional[datetime] = Field(default=None)

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def passed(self) -> int:
        return self.count(OutcomeStatus.PASSED)

    @property
    def failed(self) -> int:
        return self.count(OutcomeStatus.FAILED)

    @property
    def errored(self) -> int:
        return self.count(OutcomeStatus.ERRORED)

    @property
    def skipped(self) -> int:
        return self.count(OutcomeStatus.SKIPPED)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def success(self) -> bool:
        return all(outcome.status == OutcomeStatus.PASSED for outcome in self.outcomes)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def exit_code(self) -> int:
        """0 when every request passed, 1 otherwise."""
        return 0 if self.success else 1

    def outcome(self, request_id: str) -> Optional[RequestOutcome]:
        for outcome in self.outcomes:
            if outcome.request_id == request_id:
                return outcome
        return None
