"""
Run Coordinator

Orders (or parallelizes) the execution of a batch of request templates and
aggregates the per-request outcomes into a RunResult.

Sequential mode takes each request's variable snapshot only after every
earlier request's extractions have been committed, so values captured by
request i are visible to request i+1. Parallel mode takes a single snapshot
at run start and serializes run-scope writes through one lock.
"""

import asyncio
import logging
import time
from datetime import datetime, UTC
from itertools import count
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from ..core.config import ExecutionConfig
from ..core.exceptions import (
    AssertionFailure,
    ExecutionError,
    UnresolvedVariableError,
)
from ..core.logging import get_logger, log_structured
from ..definitions.models import RequestTemplate
from ..execution.engine import ExecutionEngine
from ..execution.policy import ExecutionPolicy
from ..interpolation.render import render_assertions, render_request
from ..processing.models import ProcessingResult
from ..processing.processor import ResponseProcessor
from ..variables.store import Scope, VariableSnapshot, VariableStore
from .models import (
    ConcurrencyPolicy,
    ExecutionMode,
    OutcomeStatus,
    RequestError,
    RequestOutcome,
    RunResult,
)

logger = get_logger(__name__)


class RunCoordinator:
    """
    Executes batches of request templates.

    Args:
        engine: Execution engine used to dispatch concrete requests
        processor: Response processor for assertions and extraction
        policy: Default execution policy (per-template overrides apply on top)
        config: Execution configuration used when no policy is given
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        processor: Optional[ResponseProcessor] = None,
        policy: Optional[ExecutionPolicy] = None,
        config: Optional[ExecutionConfig] = None,
    ):
        self.engine = engine
        self.processor = processor or ResponseProcessor()
        if policy is None:
            policy = ExecutionPolicy.from_config(config or ExecutionConfig())
        self.policy = policy

    async def run(
        self,
        templates: Sequence[RequestTemplate],
        initial_scopes: Optional[Mapping[Any, Mapping[str, Any]]] = None,
        concurrency: Optional[ConcurrencyPolicy] = None,
        cancel_event: Optional[asyncio.Event] = None,
        name: Optional[str] = None,
    ) -> RunResult:
        """
        Run a batch of templates.

        Args:
            templates: Templates in declared order
            initial_scopes: Seed values per scope (global, environment, ...)
            concurrency: Scheduling policy; sequential by default
            cancel_event: Set externally to stop dispatching new requests
            name: Optional run name carried into the result

        Returns:
            RunResult with one outcome per template, in declared order

        Raises:
            ConfigurationError: If the concurrency policy is invalid
        """
        concurrency = concurrency or ConcurrencyPolicy()
        concurrency.check()
        cancel_event = cancel_event or asyncio.Event()

        store = VariableStore(initial_scopes)
        store.seal()

        result = RunResult(name=name, mode=concurrency.mode)
        logger.info(
            f"Starting run of {len(templates)} request(s) in {concurrency.mode.value} mode"
        )

        if concurrency.mode == ExecutionMode.PARALLEL:
            outcomes = await self._run_parallel(
                templates, store, concurrency, cancel_event, result
            )
        else:
            outcomes = await self._run_sequential(
                templates, store, concurrency, cancel_event, result
            )

        result.outcomes = outcomes
        result.cancelled = cancel_event.is_set()
        result.variables = dict(store.scope_items(Scope.RUN))
        result.finished_at = datetime.now(UTC)

        log_structured(
            logger,
            logging.INFO,
            "Run finished",
            passed=result.passed,
            failed=result.failed,
            errored=result.errored,
            skipped=result.skipped,
            cancelled=result.cancelled,
        )
        return result

    async def _run_sequential(
        self,
        templates: Sequence[RequestTemplate],
        store: VariableStore,
        concurrency: ConcurrencyPolicy,
        cancel_event: asyncio.Event,
        result: RunResult,
    ) -> List[RequestOutcome]:
        outcomes: List[RequestOutcome] = []
        completed = count()

        for template in templates:
            if cancel_event.is_set():
                outcomes.append(self._skipped(template, "cancelled", "Run cancelled"))
                continue
            if result.halted:
                outcomes.append(
                    self._skipped(template, "halted", "Run halted after a failure")
                )
                continue

            outcome, processing = await self._execute(
                template, store.snapshot(), cancel_event
            )
            outcome.completion_index = next(completed)
            if processing is not None:
                self.processor.commit(store, processing)
            if outcome.response is not None:
                self._record_response(store, outcome)
            outcomes.append(outcome)
            self._log_outcome(outcome)

            if concurrency.halt_on_failure and not outcome.succeeded:
                result.halted = True
                logger.warning(
                    f"Halting run after '{outcome.request_id}' ended {outcome.status.value}"
                )
        return outcomes

    async def _run_parallel(
        self,
        templates: Sequence[RequestTemplate],
        store: VariableStore,
        concurrency: ConcurrencyPolicy,
        cancel_event: asyncio.Event,
        result: RunResult,
    ) -> List[RequestOutcome]:
        snapshot = store.snapshot()
        semaphore = asyncio.Semaphore(concurrency.workers_for(len(templates)))
        commit_lock = asyncio.Lock()
        completed = count()

        async def run_one(template: RequestTemplate) -> RequestOutcome:
            async with semaphore:
                if cancel_event.is_set():
                    return self._skipped(template, "cancelled", "Run cancelled")
                if result.halted:
                    return self._skipped(
                        template, "halted", "Run halted after a failure"
                    )

                outcome, processing = await self._execute(
                    template, snapshot, cancel_event
                )
                async with commit_lock:
                    outcome.completion_index = next(completed)
                    if processing is not None:
                        self.processor.commit(store, processing)
                self._log_outcome(outcome)

                if concurrency.halt_on_failure and not outcome.succeeded:
                    result.halted = True
                return outcome

        # gather keeps declared order regardless of completion order
        return list(await asyncio.gather(*(run_one(t) for t in templates)))

    async def _execute(
        self,
        template: RequestTemplate,
        snapshot: VariableSnapshot,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Tuple[RequestOutcome, Optional[ProcessingResult]]:
        """
        Render, dispatch and process one template.

        Per-request errors become structured outcomes; nothing raised here
        aborts the batch. Setting cancel_event stops retries of the request
        in flight.
        """
        outcome = RequestOutcome(
            request_id=template.id,
            method=template.method,
            url=template.url,
            status=OutcomeStatus.ERRORED,
        )
        started = time.perf_counter()

        try:
            request = render_request(template, snapshot)
            assertions = render_assertions(template.assertions, snapshot)
        except UnresolvedVariableError as e:
            outcome.error = RequestError.from_exception("unresolved_variable", e)
            outcome.elapsed_ms = (time.perf_counter() - started) * 1000
            return outcome, None

        outcome.request = request
        policy = self.policy.merged(template.retry, template.timeout)

        try:
            record = await self.engine.execute(request, policy, cancel_event)
        except ExecutionError as e:
            outcome.error = RequestError.from_exception("execution", e)
            outcome.attempts = list(e.attempts)
            outcome.response = e.last_response
            outcome.elapsed_ms = (time.perf_counter() - started) * 1000
            return outcome, None

        outcome.attempts = record.attempts
        outcome.response = record.response
        processing = self.processor.process(
            record.response, assertions, template.extractions
        )
        outcome.assertions = processing.assertions
        outcome.extractions = processing.extractions
        if processing.passed:
            outcome.status = OutcomeStatus.PASSED
        else:
            outcome.status = OutcomeStatus.FAILED
            failed = processing.failed_assertions
            outcome.error = RequestError.from_exception(
                "assertion",
                AssertionFailure(
                    f"{len(failed)} of {len(processing.assertions)} assertion(s) failed",
                    {"failed": [result.expression for result in failed]},
                ),
            )
        outcome.elapsed_ms = (time.perf_counter() - started) * 1000
        return outcome, processing

    def _record_response(self, store: VariableStore, outcome: RequestOutcome) -> None:
        store.clear(Scope.RESPONSE)
        store.update(
            Scope.RESPONSE,
            {
                "status": outcome.response.status_code,
                "elapsed_ms": round(outcome.response.duration_ms),
                "request_id": outcome.request_id,
            },
        )

    def _skipped(
        self, template: RequestTemplate, kind: str, message: str
    ) -> RequestOutcome:
        logger.info(f"Skipping '{template.id}': {message}")
        return RequestOutcome(
            request_id=template.id,
            method=template.method,
            url=template.url,
            status=OutcomeStatus.SKIPPED,
            error=RequestError(kind=kind, message=message),
        )

    def _log_outcome(self, outcome: RequestOutcome) -> None:
        level = logging.INFO if outcome.succeeded else logging.WARNING
        log_structured(
            logger,
            level,
            f"{outcome.request_id}: {outcome.status.value}",
            attempts=len(outcome.attempts),
            elapsed_ms=round(outcome.elapsed_ms, 2),
        )
