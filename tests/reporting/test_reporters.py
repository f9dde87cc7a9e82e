"""
Tests for console and JSON reporters.
"""

import base64
import io
import json
from datetime import datetime, timedelta, UTC

from rester.core.models import ConcreteRequest, HTTPResponse, KeyValuePair
from rester.processing.models import AssertionResult, ExtractionResult
from rester.reporting.console import ConsoleReporter
from rester.reporting.json_report import JsonReporter, result_to_dict
from rester.runner.models import (
    OutcomeStatus,
    RequestError,
    RequestOutcome,
    RunResult,
)


def sample_result() -> RunResult:
    started = datetime(2024, 1, 1, tzinfo=UTC)
    passed = RequestOutcome(
        request_id="login",
        method="POST",
        url="${base_url}/login",
        status=OutcomeStatus.PASSED,
        request=ConcreteRequest(
            request_id="login",
            method="POST",
            url="http://api.test/login",
            headers=(KeyValuePair(name="Content-Type", value="application/json"),),
            body='{"user": "ada"}',
        ),
        response=HTTPResponse(
            status_code=200, body=b'{"access_token": "abc"}', duration_ms=5.0
        ),
        assertions=[AssertionResult(expression="status == 200", passed=True)],
        extractions=[
            ExtractionResult(name="token", path="body.access_token", value="abc")
        ],
        elapsed_ms=6.0,
        completion_index=0,
    )
    failed = RequestOutcome(
        request_id="avatar",
        method="GET",
        url="http://api.test/avatar",
        status=OutcomeStatus.FAILED,
        response=HTTPResponse(status_code=404, body=b"\xff\xd8\xff", duration_ms=3.0),
        assertions=[
            AssertionResult(
                expression="status == 200",
                passed=False,
                actual="404",
                expected="200",
                message="expected 200, got 404",
            )
        ],
        error=RequestError(kind="assertion", message="1 of 1 assertion(s) failed"),
        elapsed_ms=3.5,
        completion_index=1,
    )
    errored = RequestOutcome(
        request_id="profile",
        method="GET",
        url="http://api.test/me?t=${run.missing}",
        status=OutcomeStatus.ERRORED,
        error=RequestError(
            kind="execution",
            message="Request failed after 3 attempt(s)",
            details={"cause": "TransportError", "cause_message": "Connection refused"},
        ),
        completion_index=2,
    )
    skipped = RequestOutcome(
        request_id="logout",
        method="POST",
        url="http://api.test/logout",
        status=OutcomeStatus.SKIPPED,
        error=RequestError(kind="halted", message="Run halted after a failure"),
    )
    return RunResult(
        name="auth.yaml",
        outcomes=[passed, failed, errored, skipped],
        variables={"token": "abc"},
        halted=True,
        started_at=started,
        finished_at=started + timedelta(seconds=1.5),
    )


class TestConsoleReporter:
    """Tests for ConsoleReporter."""

    def render(self, verbosity: int = 0) -> str:
        stream = io.StringIO()
        ConsoleReporter(verbosity=verbosity, stream=stream, color=False).report(
            sample_result()
        )
        return stream.getvalue()

    def test_lines_per_outcome(self):
        output = self.render()

        assert "Run: auth.yaml (sequential, 4 request(s))" in output
        assert "✓ login  POST http://api.test/login  -> 200" in output
        assert "✗ avatar  GET http://api.test/avatar  -> 404" in output
        assert "- logout  POST http://api.test/logout" in output

    def test_failure_diagnostics(self):
        output = self.render()

        assert "[FAIL] status == 200: expected 200, got 404" in output
        assert "Error (execution): Request failed after 3 attempt(s)" in output
        assert "Cause: Connection refused" in output
        assert "Run halted after a failure" in output
        assert "[pass]" not in output

    def test_summary_line(self):
        output = self.render()

        assert "1 passed, 1 failed, 1 errored, 1 skipped in 1.50s (halted)" in output

    def test_verbose_lists_passing_checks_and_bodies(self):
        output = self.render(verbosity=2)

        assert "[pass] status == 200" in output
        assert "token <- body.access_token" in output
        assert '{"access_token": "abc"}' in output

    def test_no_color_codes_when_disabled(self):
        assert "\x1b[" not in self.render()


class TestJsonReporter:
    """Tests for JsonReporter."""

    def test_structure(self):
        data = result_to_dict(sample_result())

        assert data["name"] == "auth.yaml"
        assert data["mode"] == "sequential"
        assert data["halted"] is True
        assert data["duration_seconds"] == 1.5
        assert data["summary"] == {
            "total": 4,
            "passed": 1,
            "failed": 1,
            "errored": 1,
            "skipped": 1,
            "success": False,
        }
        assert data["variables"] == {"token": "abc"}
        assert [o["request_id"] for o in data["outcomes"]] == [
            "login",
            "avatar",
            "profile",
            "logout",
        ]

    def test_outcome_details(self):
        login, avatar, profile, logout = result_to_dict(sample_result())["outcomes"]

        assert login["request"]["url"] == "http://api.test/login"
        assert login["request"]["headers"] == [["Content-Type", "application/json"]]
        assert login["response"]["body"] == '{"access_token": "abc"}'
        assert login["response"]["body_encoding"] == "text"
        assert login["extractions"][0]["value"] == "abc"
        assert profile["request"] is None
        assert profile["error"]["details"]["cause"] == "TransportError"
        assert logout["error"]["kind"] == "halted"
        assert avatar["assertions"][0]["passed"] is False

    def test_binary_body_is_base64(self):
        avatar = result_to_dict(sample_result())["outcomes"][1]

        assert avatar["response"]["body_encoding"] == "base64"
        assert base64.b64decode(avatar["response"]["body"]) == b"\xff\xd8\xff"

    def test_report_to_stream(self):
        stream = io.StringIO()
        JsonReporter(stream).report(sample_result())

        data = json.loads(stream.getvalue())
        assert data["summary"]["total"] == 4

    def test_report_to_file(self, temp_dir):
        path = temp_dir / "report.json"
        JsonReporter(path).report(sample_result())

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["outcomes"][0]["status"] == "passed"

    def test_report_all_writes_list_for_repeats(self):
        stream = io.StringIO()
        JsonReporter(stream).report_all([sample_result(), sample_result()])

        data = json.loads(stream.getvalue())
        assert isinstance(data, list)
        assert len(data) == 2

    def test_report_all_single_result_is_object(self):
        stream = io.StringIO()
        JsonReporter(stream).report_all([sample_result()])

        assert isinstance(json.loads(stream.getvalue()), dict)
