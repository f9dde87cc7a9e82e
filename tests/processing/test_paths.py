"""
Tests for response path expressions.
"""

import pytest

from rester.core.exceptions import MissingPathError, ParseError
from rester.core.models import HTTPResponse
from rester.processing.paths import PathSource, compile_path


class TestCompile:
    """Tests for compile_path."""

    @pytest.mark.parametrize(
        "expression,source,segments",
        [
            ("status", PathSource.STATUS, ()),
            ("elapsed", PathSource.ELAPSED, ()),
            ("body", PathSource.BODY, ()),
            ("body.user.name", PathSource.BODY, ("user", "name")),
            ("body.items[0].id", PathSource.BODY, ("items", 0, "id")),
            ("body[2]", PathSource.BODY, (2,)),
        ],
    )
    def test_supported_paths(self, expression, source, segments):
        path = compile_path(expression)

        assert path.source == source
        assert path.segments == segments

    @pytest.mark.parametrize("expression", ["header.ETag", "headers.ETag"])
    def test_header_paths(self, expression):
        path = compile_path(expression)

        assert path.source == PathSource.HEADER
        assert path.header_name == "ETag"

    @pytest.mark.parametrize(
        "expression", ["", "cookies.a", "body.", "body[x]", "body.a b", "header."]
    )
    def test_unsupported_paths(self, expression):
        with pytest.raises(ParseError):
            compile_path(expression)


class TestEvaluate:
    """Tests for ResponsePath.evaluate."""

    def test_body_values(self, make_response):
        response = make_response(
            json_body={"items": [{"id": 1}, {"id": 2}], "user": {"name": "Ada"}}
        )

        assert compile_path("body.items[1].id").evaluate(response) == 2
        assert compile_path("body.user").evaluate(response) == {"name": "Ada"}

    def test_status_and_elapsed(self, make_response):
        response = make_response(status=404, duration_ms=87.5)

        assert compile_path("status").evaluate(response) == 404
        assert compile_path("elapsed").evaluate(response) == 87.5

    def test_whole_body_is_text(self):
        response = HTTPResponse(status_code=200, body=b"plain")

        assert compile_path("body").evaluate(response) == "plain"

    @pytest.mark.parametrize(
        "expression", ["body.missing", "body.items[5]", "body.items.id", "body[0]"]
    )
    def test_missing_paths(self, make_response, expression):
        response = make_response(json_body={"items": [1]})

        with pytest.raises(MissingPathError):
            compile_path(expression).evaluate(response)

    def test_non_json_body(self):
        response = HTTPResponse(status_code=200, body=b"<html></html>")

        with pytest.raises(MissingPathError, match="not valid JSON"):
            compile_path("body.a").evaluate(response)

    def test_empty_body(self):
        with pytest.raises(MissingPathError):
            compile_path("body").evaluate(HTTPResponse(status_code=204))

    def test_missing_header(self):
        with pytest.raises(MissingPathError, match="Header not present"):
            compile_path("header.ETag").evaluate(HTTPResponse(status_code=200))
