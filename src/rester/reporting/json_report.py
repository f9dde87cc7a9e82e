"""
JSON Reporter

Machine readable run result. Bodies are written as text when they decode
as UTF-8 and as base64 otherwise.
"""

import base64
import json
from pathlib import Path
from typing import IO, Any, Dict, Sequence, Union

import click

from ..core.models import ConcreteRequest, HTTPResponse
from ..runner.models import RequestOutcome, RunResult
from .base import Reporter


def _encode_body(body: bytes) -> Dict[str, Any]:
    try:
        return {"body": body.decode("utf-8"), "body_encoding": "text"}
    except UnicodeDecodeError:
        return {
            "body": base64.b64encode(body).decode("ascii"),
            "body_encoding": "base64",
        }


def request_to_dict(request: ConcreteRequest) -> Dict[str, Any]:
    return {
        "method": request.method,
        "url": request.url,
        "headers": [[h.name, h.value] for h in request.headers],
        "body": request.body,
    }


def response_to_dict(response: HTTPResponse) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "status_code": response.status_code,
        "headers": [list(pair) for pair in response.headers],
        "duration_ms": round(response.duration_ms, 3),
        "timestamp": response.timestamp.isoformat(),
    }
    data.update(_encode_body(response.body))
    return data


def outcome_to_dict(outcome: RequestOutcome) -> Dict[str, Any]:
    return {
        "request_id": outcome.request_id,
        "status": outcome.status.value,
        "method": outcome.method,
        "url": outcome.url,
        "elapsed_ms": round(outcome.elapsed_ms, 3),
        "completion_index": outcome.completion_index,
        "request": request_to_dict(outcome.request) if outcome.request else None,
        "response": response_to_dict(outcome.response) if outcome.response else None,
        "error": outcome.error.model_dump() if outcome.error else None,
        "attempts": [attempt.model_dump() for attempt in outcome.attempts],
        "assertions": [result.model_dump() for result in outcome.assertions],
        "extractions": [result.model_dump() for result in outcome.extractions],
    }


def result_to_dict(result: RunResult) -> Dict[str, Any]:
    """Convert a run result to a JSON-serializable dictionary."""
    return {
        "name": result.name,
        "mode": result.mode.value,
        "started_at": result.started_at.isoformat(),
        "finished_at": result.finished_at.isoformat() if result.finished_at else None,
        "duration_seconds": round(result.duration_seconds, 3),
        "cancelled": result.cancelled,
        "halted": result.halted,
        "summary": {
            "total": result.total,
            "passed": result.passed,
            "failed": result.failed,
            "errored": result.errored,
            "skipped": result.skipped,
            "success": result.success,
        },
        "variables": dict(result.variables),
        "outcomes": [outcome_to_dict(outcome) for outcome in result.outcomes],
    }


class JsonReporter(Reporter):
    """
    Write the run result as JSON.

    Args:
        output: File path or text stream; stdout when None
        indent: JSON indentation
    """

    def __init__(self, output: Union[str, Path, IO[str], None] = None, indent: int = 2):
        self.output = output
        self.indent = indent

    def render(self, result: RunResult) -> str:
        return json.dumps(result_to_dict(result), indent=self.indent, default=str)

    def _write(self, text: str) -> None:
        if isinstance(self.output, (str, Path)):
            Path(self.output).write_text(text + "\n", encoding="utf-8")
        else:
            click.echo(text, file=self.output)

    def report(self, result: RunResult) -> None:
        self._write(self.render(result))

    def report_all(self, results: Sequence[RunResult]) -> None:
        if len(results) == 1:
            self.report(results[0])
            return
        text = json.dumps(
            [result_to_dict(result) for result in results],
            indent=self.indent,
            default=str,
        )
        self._write(text)
