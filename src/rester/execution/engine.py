"""
Execution Engine

Drives the lifecycle of one concrete request:

    PENDING -> DISPATCHED -> {SUCCEEDED, FAILED, RETRYING} -> TERMINAL

Retries are handled entirely here and only surface to the caller once the
policy is exhausted. 4xx responses are successful transport outcomes; the
assertion layer decides whether they pass.
"""

import asyncio
import logging
import random
import time
import uuid
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.exceptions import (
    AttemptTimeoutError,
    ExecutionError,
    ServerError,
    TransportError,
)
from ..core.logging import get_logger, log_structured
from ..core.models import ConcreteRequest, HTTPResponse
from .policy import ExecutionPolicy
from .transport import Transport

logger = get_logger(__name__)


class ExecutionState(str, Enum):
    """Request lifecycle states."""

    PENDING = "pending"
    DISPATCHED = "dispatched"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RETRYING = "retrying"
    TERMINAL = "terminal"


class AttemptRecord(BaseModel):
    """One dispatch attempt."""

    number: int = Field(description="1-based attempt number")
    status_code: Optional[int] = Field(default=None, description="Response status")
    error: Optional[str] = Field(default=None, description="Failure description")
    duration_ms: float = Field(default=0.0, description="Attempt duration")
    delay_after: float = Field(default=0.0, description="Backoff slept afterwards (s)")


class ExecutionRecord(BaseModel):
    """Everything the engine observed while executing one request."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, description="Unique record ID")
    request_id: str = Field(description="Originating template id")
    response: Optional[HTTPResponse] = Field(default=None, description="Final response")
    attempts: List[AttemptRecord] = Field(default_factory=list)
    states: List[ExecutionState] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    finished_at: Optional[datetime] = Field(default=None)

    @property
    def state(self) -> Optional[ExecutionState]:
        return self.states[-1] if self.states else None

    def transition(self, state: ExecutionState) -> None:
        self.states.append(state)
        if state == ExecutionState.TERMINAL:
            self.finished_at = datetime.now(UTC)


Sleeper = Callable[[float], Awaitable[None]]


class ExecutionEngine:
    """
    Dispatches concrete requests through a transport under a retry policy.

    Args:
        transport: Transport capability used for every attempt
        sleep: Awaitable used for backoff delays (injectable for tests)
        rng: Random source for backoff jitter
    """

    def __init__(
        self,
        transport: Transport,
        sleep: Optional[Sleeper] = None,
        rng: Optional[random.Random] = None,
    ):
        self.transport = transport
        self._sleep: Sleeper = sleep or asyncio.sleep
        self._rng = rng or random.Random()

    async def execute(
        self,
        request: ConcreteRequest,
        policy: ExecutionPolicy,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ExecutionRecord:
        """
        Execute a request, retrying transport-level failures per policy.

        Args:
            request: Fully interpolated request
            policy: Retry/timeout policy
            cancel_event: When set, no further attempts are dispatched and any
                pending backoff is cut short

        Returns:
            ExecutionRecord holding the response and attempt history

        Raises:
            ExecutionError: If attempts are exhausted, the failure is not
                retryable or the run was cancelled; the last observed cause
                is attached
        """
        record = ExecutionRecord(request_id=request.request_id)
        record.transition(ExecutionState.PENDING)

        last_error: Optional[TransportError] = None
        last_response: Optional[HTTPResponse] = None
        cancelled = False

        for number in range(1, policy.max_attempts + 1):
            record.transition(ExecutionState.DISPATCHED)
            started = time.perf_counter()
            try:
                response = await asyncio.wait_for(
                    self.transport.send(
                        request.method,
                        request.url,
                        request.header_items(),
                        request.body_bytes(),
                        policy.timeout_seconds,
                    ),
                    timeout=policy.timeout_seconds,
                )
                if response.status_code >= 500 and policy.retry_on_server_error:
                    raise ServerError(
                        f"Server responded with {response.status_code}", response
                    )
            except asyncio.TimeoutError:
                error: TransportError = AttemptTimeoutError(
                    f"Attempt timed out after {policy.timeout_seconds}s",
                    {"url": request.url},
                )
            except TransportError as e:
                error = e
            except Exception as e:
                logger.exception(
                    f"{request.request_id}: transport raised {type(e).__name__}"
                )
                error = TransportError(
                    f"Unexpected transport failure: {e}",
                    {"url": request.url, "type": type(e).__name__},
                    retryable=False,
                )
            else:
                record.attempts.append(
                    AttemptRecord(
                        number=number,
                        status_code=response.status_code,
                        duration_ms=(time.perf_counter() - started) * 1000,
                    )
                )
                record.response = response
                record.transition(ExecutionState.SUCCEEDED)
                record.transition(ExecutionState.TERMINAL)
                log_structured(
                    logger,
                    logging.DEBUG,
                    f"{request.request_id}: {request.method} {request.url} -> {response.status_code}",
                    attempt=number,
                    duration_ms=round(response.duration_ms, 2),
                )
                return record

            attempt = AttemptRecord(
                number=number,
                error=str(error),
                duration_ms=(time.perf_counter() - started) * 1000,
            )
            if isinstance(error, ServerError):
                last_response = error.response
                attempt.status_code = error.response.status_code
            record.attempts.append(attempt)
            last_error = error

            if not error.retryable or number >= policy.max_attempts:
                break
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break

            delay = policy.delay_for(number, self._rng)
            attempt.delay_after = delay
            record.transition(ExecutionState.RETRYING)
            logger.warning(
                f"{request.request_id}: attempt {number}/{policy.max_attempts} failed "
                f"({error.message}); retrying in {delay:.2f}s"
            )
            await self._backoff(delay, cancel_event)
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break

        record.transition(ExecutionState.FAILED)
        record.transition(ExecutionState.TERMINAL)
        attempts_made = len(record.attempts)
        outcome = "cancelled" if cancelled else "failed"
        logger.error(
            f"{request.request_id}: {outcome} after {attempts_made} attempt(s): {last_error}"
        )
        details: Dict[str, Any] = {"request_id": request.request_id, "url": request.url}
        if cancelled:
            details["cancelled"] = True
        raise ExecutionError(
            f"Request {outcome} after {attempts_made} attempt(s): "
            f"{last_error.message if last_error else 'unknown error'}",
            cause=last_error,
            attempts=record.attempts,
            last_response=last_response,
            details=details,
        )

    async def _backoff(
        self, delay: float, cancel_event: Optional[asyncio.Event]
    ) -> None:
        """Sleep for the backoff delay, returning early once cancel_event is set."""
        if cancel_event is None:
            await self._sleep(delay)
            return

        sleeper = asyncio.ensure_future(self._sleep(delay))
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sleeper, waiter, return_exceptions=True)
