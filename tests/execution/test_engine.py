"""
Tests for the execution engine retry/timeout lifecycle.
"""

import asyncio

import pytest

from rester.core.exceptions import ExecutionError, TransportError
from rester.core.models import ConcreteRequest, KeyValuePair
from rester.execution.engine import ExecutionEngine, ExecutionState
from rester.execution.policy import ExecutionPolicy


def make_request(**overrides) -> ConcreteRequest:
    fields = {
        "request_id": "req",
        "method": "POST",
        "url": "http://api.test/items",
        "headers": (KeyValuePair(name="X-A", value="1"),),
        "body": '{"a": 1}',
    }
    fields.update(overrides)
    return ConcreteRequest(**fields)


class TestExecute:
    """Tests for ExecutionEngine.execute."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, scripted_transport, make_response, recording_sleep):
        transport = scripted_transport([make_response(status=201)])
        engine = ExecutionEngine(transport, sleep=recording_sleep)

        record = await engine.execute(make_request(), ExecutionPolicy(timeout_seconds=4))

        assert record.response.status_code == 201
        assert len(record.attempts) == 1
        assert record.states == [
            ExecutionState.PENDING,
            ExecutionState.DISPATCHED,
            ExecutionState.SUCCEEDED,
            ExecutionState.TERMINAL,
        ]
        assert record.finished_at is not None
        sent = transport.calls[0]
        assert (sent.method, sent.url, sent.body, sent.timeout) == (
            "POST",
            "http://api.test/items",
            b'{"a": 1}',
            4,
        )
        assert sent.headers == [("X-A", "1")]
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_retry_exhaustion(self, scripted_transport, recording_sleep):
        refused = TransportError("Connection refused")
        transport = scripted_transport([refused])
        engine = ExecutionEngine(transport, sleep=recording_sleep)
        policy = ExecutionPolicy(max_attempts=3, jitter=0)

        with pytest.raises(ExecutionError) as exc_info:
            await engine.execute(make_request(), policy)

        assert len(transport.calls) == 3
        error = exc_info.value
        assert error.cause is refused
        assert len(error.attempts) == 3
        assert recording_sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(
        self, scripted_transport, make_response, recording_sleep
    ):
        transport = scripted_transport(
            [TransportError("reset"), make_response(status=200)]
        )
        engine = ExecutionEngine(transport, sleep=recording_sleep)

        record = await engine.execute(make_request(), ExecutionPolicy(max_attempts=3))

        assert record.response.status_code == 200
        assert [a.error is None for a in record.attempts] == [False, True]
        assert record.states == [
            ExecutionState.PENDING,
            ExecutionState.DISPATCHED,
            ExecutionState.RETRYING,
            ExecutionState.DISPATCHED,
            ExecutionState.SUCCEEDED,
            ExecutionState.TERMINAL,
        ]

    @pytest.mark.asyncio
    async def test_non_retryable_error_stops_immediately(self, scripted_transport, recording_sleep):
        transport = scripted_transport([TransportError("bad url", retryable=False)])
        engine = ExecutionEngine(transport, sleep=recording_sleep)

        with pytest.raises(ExecutionError):
            await engine.execute(make_request(), ExecutionPolicy(max_attempts=5))

        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(
        self, scripted_transport, make_response, recording_sleep
    ):
        transport = scripted_transport([make_response(status=404)])
        engine = ExecutionEngine(transport, sleep=recording_sleep)

        record = await engine.execute(
            make_request(), ExecutionPolicy(max_attempts=3, retry_on_server_error=True)
        )

        assert record.response.status_code == 404
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_server_errors_returned_unless_configured(
        self, scripted_transport, make_response, recording_sleep
    ):
        transport = scripted_transport([make_response(status=503)])
        engine = ExecutionEngine(transport, sleep=recording_sleep)

        record = await engine.execute(make_request(), ExecutionPolicy(max_attempts=3))

        assert record.response.status_code == 503
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_server_errors_retried_when_configured(
        self, scripted_transport, make_response, recording_sleep
    ):
        transport = scripted_transport([make_response(status=503)])
        engine = ExecutionEngine(transport, sleep=recording_sleep)
        policy = ExecutionPolicy(max_attempts=2, retry_on_server_error=True)

        with pytest.raises(ExecutionError) as exc_info:
            await engine.execute(make_request(), policy)

        assert len(transport.calls) == 2
        assert exc_info.value.last_response.status_code == 503
        assert [a.status_code for a in exc_info.value.attempts] == [503, 503]

    @pytest.mark.asyncio
    async def test_attempt_timeout(self, scripted_transport, recording_sleep):
        class SlowTransport(scripted_transport):
            async def send(self, method, url, headers, body, timeout):
                self.calls.append(url)
                await asyncio.sleep(5)

        transport = SlowTransport()
        engine = ExecutionEngine(transport, sleep=recording_sleep)
        policy = ExecutionPolicy(max_attempts=2, timeout_seconds=0.05)

        with pytest.raises(ExecutionError) as exc_info:
            await engine.execute(make_request(), policy)

        assert len(transport.calls) == 2
        assert "timed out" in str(exc_info.value.cause)

    @pytest.mark.asyncio
    async def test_unexpected_transport_exception_becomes_execution_error(
        self, scripted_transport, recording_sleep
    ):
        transport = scripted_transport([ValueError("Invalid IPv6 URL")])
        engine = ExecutionEngine(transport, sleep=recording_sleep)

        with pytest.raises(ExecutionError) as exc_info:
            await engine.execute(make_request(), ExecutionPolicy(max_attempts=3))

        assert len(transport.calls) == 1
        cause = exc_info.value.cause
        assert isinstance(cause, TransportError)
        assert not cause.retryable
        assert cause.details["type"] == "ValueError"
        assert "Invalid IPv6 URL" in str(exc_info.value)
        assert recording_sleep.delays == []


class TestCancellation:
    """Tests for stopping retries once a run is cancelled."""

    @pytest.mark.asyncio
    async def test_no_retry_after_cancel(self, scripted_transport, recording_sleep):
        cancel_event = asyncio.Event()
        refused = TransportError("Connection refused")

        def handler(sent):
            cancel_event.set()
            return refused

        transport = scripted_transport(handler=handler)
        engine = ExecutionEngine(transport, sleep=recording_sleep)

        with pytest.raises(ExecutionError) as exc_info:
            await engine.execute(
                make_request(), ExecutionPolicy(max_attempts=5), cancel_event
            )

        error = exc_info.value
        assert len(transport.calls) == 1
        assert error.cause is refused
        assert error.details["cancelled"] is True
        assert str(error).startswith("Request cancelled after 1 attempt(s)")
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_cancel_cuts_backoff_short(self, scripted_transport):
        cancel_event = asyncio.Event()
        delays = []

        async def sleep_until_cancelled(delay):
            delays.append(delay)
            cancel_event.set()
            await asyncio.sleep(30)

        transport = scripted_transport([TransportError("Connection refused")])
        engine = ExecutionEngine(transport, sleep=sleep_until_cancelled)
        policy = ExecutionPolicy(max_attempts=5, jitter=0)

        with pytest.raises(ExecutionError) as exc_info:
            await asyncio.wait_for(
                engine.execute(make_request(), policy, cancel_event), timeout=5
            )

        assert len(transport.calls) == 1
        assert delays == [0.5]
        assert exc_info.value.details["cancelled"] is True

    @pytest.mark.asyncio
    async def test_unset_event_leaves_retries_alone(self, scripted_transport, recording_sleep):
        transport = scripted_transport([TransportError("Connection refused")])
        engine = ExecutionEngine(transport, sleep=recording_sleep)
        policy = ExecutionPolicy(max_attempts=3, jitter=0)

        with pytest.raises(ExecutionError) as exc_info:
            await engine.execute(make_request(), policy, asyncio.Event())

        assert len(transport.calls) == 3
        assert recording_sleep.delays == [0.5, 1.0]
        assert "cancelled" not in exc_info.value.details
