"""
Rester Interpolation Engine

Placeholder scanning, substitution and per-attempt request rendering.
"""

from .engine import (
    Literal,
    Placeholder,
    find_placeholders,
    has_placeholders,
    interpolate,
    scan,
    substitute,
    validate,
)
from .render import render_assertions, render_request

__all__ = [
    "Literal",
    "Placeholder",
    "scan",
    "find_placeholders",
    "has_placeholders",
    "validate",
    "substitute",
    "interpolate",
    "render_request",
    "render_assertions",
]
