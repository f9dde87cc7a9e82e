"""
Console Reporter

Human readable run summary written with click.
"""

from typing import IO, Dict, Optional

import click

from ..runner.models import OutcomeStatus, RequestOutcome, RunResult
from .base import Reporter

_MARKS: Dict[OutcomeStatus, str] = {
    OutcomeStatus.PASSED: "✓",
    OutcomeStatus.FAILED: "✗",
    OutcomeStatus.ERRORED: "✗",
    OutcomeStatus.SKIPPED: "-",
}

_COLORS: Dict[OutcomeStatus, str] = {
    OutcomeStatus.PASSED: "green",
    OutcomeStatus.FAILED: "red",
    OutcomeStatus.ERRORED: "red",
    OutcomeStatus.SKIPPED: "yellow",
}


class ConsoleReporter(Reporter):
    """
    Print one line per request plus diagnostics and a summary.

    Args:
        verbosity: 0 prints failures only in detail, 1 adds assertion and
            extraction results for every request, 2 adds response bodies
        stream: Output stream (stdout when None)
        color: Force colors on or off (auto-detected when None)
    """

    def __init__(
        self,
        verbosity: int = 0,
        stream: Optional[IO[str]] = None,
        color: Optional[bool] = None,
    ):
        self.verbosity = verbosity
        self.stream = stream
        self.color = color

    def _echo(self, message: str = "") -> None:
        click.echo(message, file=self.stream, color=self.color)

    def report(self, result: RunResult) -> None:
        title = f"Run: {result.name}" if result.name else "Run"
        self._echo(f"\n{title} ({result.mode.value}, {result.total} request(s))\n")

        for outcome in result.outcomes:
            self._report_outcome(outcome)

        self._echo()
        self._report_summary(result)

    def _report_outcome(self, outcome: RequestOutcome) -> None:
        mark = click.style(_MARKS[outcome.status], fg=_COLORS[outcome.status])
        line = f"{mark} {outcome.request_id}  {outcome.method} "
        line += outcome.request.url if outcome.request else outcome.url
        if outcome.response is not None:
            line += f"  -> {outcome.response.status_code}"
        if outcome.status != OutcomeStatus.SKIPPED:
            line += f"  ({outcome.elapsed_ms:.0f} ms"
            if len(outcome.attempts) > 1:
                line += f", {len(outcome.attempts)} attempts"
            line += ")"
        self._echo(line)

        detailed = self.verbosity > 0 or not outcome.succeeded
        if outcome.error is not None:
            if outcome.status == OutcomeStatus.ERRORED:
                self._echo(f"    Error ({outcome.error.kind}): {outcome.error.message}")
                cause = outcome.error.details.get("cause_message")
                if cause:
                    self._echo(f"    Cause: {cause}")
            else:
                self._echo(f"    {outcome.error.message}")

        if detailed:
            for assertion in outcome.assertions:
                if assertion.passed and self.verbosity == 0:
                    continue
                state = "pass" if assertion.passed else "FAIL"
                text = f"    [{state}] {assertion.expression}"
                if not assertion.passed and assertion.message:
                    text += f": {assertion.message}"
                self._echo(text)
            for extraction in outcome.extractions:
                if extraction.ok and self.verbosity == 0:
                    continue
                if extraction.ok:
                    self._echo(f"    {extraction.name} <- {extraction.path}")
                else:
                    self._echo(
                        f"    {extraction.name} <- {extraction.path}: {extraction.error}"
                    )

        if self.verbosity > 1 and outcome.response is not None:
            self._echo("    Body:")
            for body_line in outcome.response.text().splitlines() or [""]:
                self._echo(f"      {body_line}")

    def _report_summary(self, result: RunResult) -> None:
        parts = [
            click.style(f"{result.passed} passed", fg="green"),
            click.style(f"{result.failed} failed", fg="red" if result.failed else None),
            click.style(
                f"{result.errored} errored", fg="red" if result.errored else None
            ),
            click.style(
                f"{result.skipped} skipped", fg="yellow" if result.skipped else None
            ),
        ]
        summary = ", ".join(parts) + f" in {result.duration_seconds:.2f}s"
        if result.cancelled:
            summary += " (cancelled)"
        elif result.halted:
            summary += " (halted)"
        self._echo(summary)
