"""
Response Path Expressions

Minimal dotted/indexed path syntax into a response:

    status
    elapsed
    header.Content-Type        (alias: headers.Content-Type)
    body
    body.items[0].id
    body[2].name
"""

import re
from enum import Enum
from typing import Any, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import MissingPathError, ParseError
from ..core.models import HTTPResponse

_SEGMENT_RE = re.compile(r"\.([^.\[\]\s]+)|\[(\d+)\]")

PathSegment = Union[str, int]


class PathSource(str, Enum):
    """Part of the response a path reads from."""

    STATUS = "status"
    ELAPSED = "elapsed"
    HEADER = "header"
    BODY = "body"


class ResponsePath(BaseModel):
    """Compiled path expression."""

    expression: str = Field(description="Original path text")
    source: PathSource = Field(description="Response part")
    header_name: str = Field(default="", description="Header name for header paths")
    segments: Tuple[PathSegment, ...] = Field(
        default_factory=tuple, description="Body keys and list indices"
    )

    model_config = ConfigDict(frozen=True)

    def evaluate(self, response: HTTPResponse) -> Any:
        """
        Read the value addressed by this path.

        Args:
            response: Response to read from

        Returns:
            Raw value (int for status, float for elapsed, str for headers and
            whole bodies, decoded JSON values for body paths)

        Raises:
            MissingPathError: If the path does not exist in the response
        """
        if self.source == PathSource.STATUS:
            return response.status_code
        if self.source == PathSource.ELAPSED:
            return response.duration_ms
        if self.source == PathSource.HEADER:
            value = response.header(self.header_name)
            if value is None:
                raise MissingPathError(
                    f"Header not present: {self.header_name}",
                    {"path": self.expression},
                )
            return value

        if not self.segments:
            if not response.body:
                raise MissingPathError("Response body is empty", {"path": self.expression})
            return response.text()

        try:
            current = response.json_body()
        except ValueError as e:
            raise MissingPathError(
                f"Response body is not valid JSON: {e}", {"path": self.expression}
            )

        walked = "body"
        for segment in self.segments:
            if isinstance(segment, int):
                walked += f"[{segment}]"
                if not isinstance(current, list):
                    raise MissingPathError(
                        f"Cannot index non-list at {walked}", {"path": self.expression}
                    )
                if segment >= len(current):
                    raise MissingPathError(
                        f"Index out of range at {walked}", {"path": self.expression}
                    )
                current = current[segment]
            else:
                walked += f".{segment}"
                if not isinstance(current, dict) or segment not in current:
                    raise MissingPathError(
                        f"Key not found at {walked}", {"path": self.expression}
                    )
                current = current[segment]
        return current

    def __str__(self) -> str:
        return self.expression


def compile_path(expression: str) -> ResponsePath:
    """
    Compile a path expression.

    Args:
        expression: Path text

    Returns:
        Compiled ResponsePath

    Raises:
        ParseError: If the path syntax is not supported
    """
    expr = expression.strip()
    lowered = expr.lower()

    if lowered == "status":
        return ResponsePath(expression=expr, source=PathSource.STATUS)
    if lowered == "elapsed":
        return ResponsePath(expression=expr, source=PathSource.ELAPSED)

    for prefix in ("header.", "headers."):
        if lowered.startswith(prefix):
            name = expr[len(prefix):]
            if not name or any(ch.isspace() for ch in name):
                raise ParseError(f"Invalid header path: {expression!r}")
            return ResponsePath(
                expression=expr, source=PathSource.HEADER, header_name=name
            )

    if lowered == "body" or lowered.startswith("body.") or lowered.startswith("body["):
        rest = expr[len("body"):]
        segments = []
        position = 0
        while position < len(rest):
            match = _SEGMENT_RE.match(rest, position)
            if match is None:
                raise ParseError(
                    f"Unsupported path syntax at offset {position + 4}: {expression!r}"
                )
            key, index = match.groups()
            segments.append(int(index) if index is not None else key)
            position = match.end()
        return ResponsePath(
            expression=expr, source=PathSource.BODY, segments=tuple(segments)
        )

    raise ParseError(
        f"Unsupported path expression: {expression!r}",
        {"expected": "status, elapsed, header.<name> or body[.<key>|[<index>]]..."},
    )
