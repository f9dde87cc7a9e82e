"""
Rester Run Coordinator

Batch scheduling and run results.
"""

from .coordinator import RunCoordinator
from .models import (
    ConcurrencyPolicy,
    ExecutionMode,
    OutcomeStatus,
    RequestError,
    RequestOutcome,
    RunResult,
)

__all__ = [
    "RunCoordinator",
    "ConcurrencyPolicy",
    "ExecutionMode",
    "OutcomeStatus",
    "RequestError",
    "RequestOutcome",
    "RunResult",
]
