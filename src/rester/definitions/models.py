"""
Request Template Models

A request template is the parsed, immutable, possibly placeholder-holding
description of one HTTP request.
"""

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.models import VALID_METHODS, KeyValuePair
from ..execution.policy import PolicyOverride
from ..processing.models import Assertion, ExtractionRule


class RequestTemplate(BaseModel):
    """Parsed request definition."""

    id: str = Field(description="Unique request identifier")
    method: str = Field(description="HTTP method")
    url: str = Field(description="URL template")
    headers: Tuple[KeyValuePair, ...] = Field(
        default_factory=tuple, description="Ordered header templates"
    )
    params: Tuple[KeyValuePair, ...] = Field(
        default_factory=tuple, description="Ordered query parameter templates"
    )
    body: Optional[str] = Field(default=None, description="Body template")
    assertions: Tuple[Assertion, ...] = Field(
        default_factory=tuple, description="Assertions in declaration order"
    )
    extractions: Tuple[ExtractionRule, ...] = Field(
        default_factory=tuple, description="Extraction rules in declaration order"
    )
    retry: Optional[PolicyOverride] = Field(
        default=None, description="Retry policy overrides"
    )
    timeout: Optional[float] = Field(
        default=None, description="Per-attempt timeout override in seconds"
    )
    description: str = Field(default="", description="Free-form description")
    source: Optional[str] = Field(
        default=None, description="Document the template was parsed from"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        if v.upper() not in VALID_METHODS:
            raise ValueError(f"Invalid HTTP method: {v}")
        return v.upper()

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Request id cannot be empty")
        return v.strip()

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for entry in self.headers:
            if entry.name.lower() == wanted:
                return entry.value
        return None


RequestTemplate.model_rebuild()
