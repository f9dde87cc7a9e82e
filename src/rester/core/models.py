"""
Rester Core Data Models

Defines the HTTP-level data structures shared by the execution engine,
the response processor and the reporters.
"""

import json
from datetime import datetime, UTC
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


VALID_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")


class KeyValuePair(BaseModel):
    """Ordered name/value pair used for headers and query parameters."""

    name: str = Field(description="Entry name")
    value: str = Field(description="Entry value (may hold placeholders)")

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.name}: {self.value}"


class ConcreteRequest(BaseModel):
    """Fully interpolated request, ready for dispatch."""

    request_id: str = Field(description="Identifier of the originating template")
    method: str = Field(description="HTTP method")
    url: str = Field(description="Final request URL")
    headers: Tuple[KeyValuePair, ...] = Field(
        default_factory=tuple, description="Ordered request headers"
    )
    body: Optional[str] = Field(default=None, description="Request body")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Render timestamp"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        if v.upper() not in VALID_METHODS:
            raise ValueError(f"Invalid HTTP method: {v}")
        return v.upper()

    def header_items(self) -> List[Tuple[str, str]]:
        """Headers as (name, value) tuples in declaration order."""
        return [(h.name, h.value) for h in self.headers]

    def body_bytes(self) -> Optional[bytes]:
        """Body encoded for the wire."""
        return self.body.encode("utf-8") if self.body is not None else None


class HTTPResponse(BaseModel):
    """HTTP response captured from one dispatch attempt."""

    status_code: int = Field(description="HTTP status code")
    headers: Tuple[Tuple[str, str], ...] = Field(
        default_factory=tuple, description="Ordered headers; names may repeat"
    )
    body: bytes = Field(default=b"", description="Response body")
    duration_ms: float = Field(default=0.0, description="Response time in milliseconds")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Response timestamp"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("status_code")
    @classmethod
    def validate_status_code(cls, v: int) -> int:
        if not (100 <= v <= 599):
            raise ValueError(f"Invalid HTTP status code: {v}")
        return v

    def header(self, name: str) -> Optional[str]:
        """First value of a header, matched case-insensitively."""
        values = self.header_values(name)
        return values[0] if values else None

    def header_values(self, name: str) -> List[str]:
        """All values of a header in arrival order."""
        wanted = name.lower()
        return [value for key, value in self.headers if key.lower() == wanted]

    def has_header(self, name: str) -> bool:
        return bool(self.header_values(name))

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json_body(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            ValueError: If the body is empty or not valid JSON
        """
        if not self.body:
            raise ValueError("Response body is empty")
        return json.loads(self.body.decode("utf-8"))


ConcreteRequest.model_rebuild()
HTTPResponse.model_rebuild()
