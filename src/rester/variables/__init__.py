"""
Rester Variable Store

Layered, scope-prioritised variable storage shared by a single run.
"""

from .store import (
    RESOLUTION_ORDER,
    Scope,
    VariableSnapshot,
    VariableStore,
    to_variable_string,
)

__all__ = [
    "RESOLUTION_ORDER",
    "Scope",
    "VariableSnapshot",
    "VariableStore",
    "to_variable_string",
]
