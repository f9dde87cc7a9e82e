"""
Rester Execution Engine

Request dispatch with per-attempt timeouts and retry/backoff policy.
"""

from .engine import AttemptRecord, ExecutionEngine, ExecutionRecord, ExecutionState
from .policy import BackoffStrategy, ExecutionPolicy, PolicyOverride
from .transport import AiohttpTransport, Transport

__all__ = [
    # Policy
    "BackoffStrategy",
    "ExecutionPolicy",
    "PolicyOverride",
    # Transport
    "Transport",
    "AiohttpTransport",
    # Engine
    "AttemptRecord",
    "ExecutionEngine",
    "ExecutionRecord",
    "ExecutionState",
]
