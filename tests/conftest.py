"""
Pytest configuration and shared fixtures for Rester tests.
"""

import json
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Generator, List, Optional, Sequence, Tuple

import pytest

from rester.core.models import HTTPResponse
from rester.execution.transport import Transport


@dataclass
class SentRequest:
    """One call recorded by the scripted transport."""

    method: str
    url: str
    headers: List[Tuple[str, str]]
    body: Optional[bytes]
    timeout: float

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None


def build_response(
    status: int = 200,
    json_body: Any = None,
    body: bytes = b"",
    headers: Sequence[Tuple[str, str]] = (),
    duration_ms: float = 12.5,
) -> HTTPResponse:
    if json_body is not None:
        body = json.dumps(json_body).encode("utf-8")
        headers = tuple(headers) + (("Content-Type", "application/json"),)
    return HTTPResponse(
        status_code=status,
        headers=tuple(headers),
        body=body,
        duration_ms=duration_ms,
    )


class ScriptedTransport(Transport):
    """
    In-memory transport.

    Either a handler computes the outcome of each call, or a script of
    responses/exceptions is consumed in order (the last entry repeats).
    """

    def __init__(
        self,
        script: Optional[Sequence[Any]] = None,
        handler: Optional[Callable[[SentRequest], Any]] = None,
    ):
        self.calls: List[SentRequest] = []
        self.closed = False
        self._script = list(script or [])
        self._handler = handler

    async def send(self, method, url, headers, body, timeout) -> HTTPResponse:
        sent = SentRequest(method, url, list(headers), body, timeout)
        self.calls.append(sent)
        if self._handler is not None:
            outcome = self._handler(sent)
        elif len(self._script) > 1:
            outcome = self._script.pop(0)
        else:
            outcome = self._script[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def make_response() -> Callable[..., HTTPResponse]:
    """Factory for HTTPResponse objects."""
    return build_response


@pytest.fixture
def scripted_transport() -> Callable[..., ScriptedTransport]:
    """Factory for scripted in-memory transports."""
    return ScriptedTransport


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Sleep replacement that records backoff delays."""
    return RecordingSleep()
