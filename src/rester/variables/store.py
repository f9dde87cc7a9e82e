"""
Layered Variable Store

Variables live in an ordered list of named scopes queried top-down
(run > response > environment > global). Writes to a higher-priority scope
shadow lower-priority entries without deleting them.
"""

import json
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from ..core.exceptions import ScopeError, UnresolvedVariableError
from ..core.logging import get_logger

logger = get_logger(__name__)


class Scope(str, Enum):
    """Variable scopes."""

    GLOBAL = "global"
    ENVIRONMENT = "environment"
    RESPONSE = "response"
    RUN = "run"


# Most specific first
RESOLUTION_ORDER: Tuple[Scope, ...] = (
    Scope.RUN,
    Scope.RESPONSE,
    Scope.ENVIRONMENT,
    Scope.GLOBAL,
)

READ_ONLY_DURING_RUN = frozenset({Scope.GLOBAL, Scope.ENVIRONMENT})

_MISSING = object()

ScopeKey = Union[Scope, str]


def to_variable_string(value: Any) -> str:
    """
    Convert a value into its variable string form.

    Strings are kept verbatim, booleans and null use JSON spelling and
    everything else is JSON encoded.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return json.dumps(value)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _coerce_scope(scope: ScopeKey) -> Scope:
    try:
        return scope if isinstance(scope, Scope) else Scope(str(scope).lower())
    except ValueError:
        raise ScopeError(f"Unknown scope: {scope}")


def _split_qualified(key: str) -> Tuple[Optional[Scope], str]:
    """Split `run.token` into (Scope.RUN, "token"); unqualified keys get None."""
    head, sep, rest = key.partition(".")
    if sep and rest:
        try:
            return Scope(head), rest
        except ValueError:
            pass
    return None, key


def _lookup(layers: Mapping[Scope, Mapping[str, str]], key: str) -> Any:
    scope, name = _split_qualified(key)
    if scope is not None:
        return layers[scope].get(name, _MISSING)
    for candidate in RESOLUTION_ORDER:
        value = layers[candidate].get(key, _MISSING)
        if value is not _MISSING:
            return value
    return _MISSING


class VariableSnapshot(Mapping[str, str]):
    """
    Immutable view of the store used for one request's interpolation pass.

    Iterating a snapshot yields the effective (shadow-resolved) variables.
    """

    def __init__(self, layers: Mapping[Scope, Mapping[str, str]]):
        self._layers: Mapping[Scope, Mapping[str, str]] = MappingProxyType(
            {scope: MappingProxyType(dict(layers[scope])) for scope in RESOLUTION_ORDER}
        )

    def resolve(self, key: str) -> str:
        value = _lookup(self._layers, key)
        if value is _MISSING:
            raise UnresolvedVariableError([key])
        return value

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = _lookup(self._layers, key)
        return default if value is _MISSING else value

    def contains(self, key: str) -> bool:
        return _lookup(self._layers, key) is not _MISSING

    def as_dict(self, scope: Optional[ScopeKey] = None) -> Dict[str, str]:
        """Copy of one scope, or of the effective merged view when scope is None."""
        if scope is not None:
            return dict(self._layers[_coerce_scope(scope)])
        merged: Dict[str, str] = {}
        for candidate in reversed(RESOLUTION_ORDER):
            merged.update(self._layers[candidate])
        return merged

    def __getitem__(self, key: str) -> str:
        value = _lookup(self._layers, key)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def __iter__(self) -> Iterator[str]:
        return iter(self.as_dict())

    def __len__(self) -> int:
        return len(self.as_dict())

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.contains(key)


class VariableStore:
    """
    Ordered set of named scopes mapping string keys to string values.

    The store is created at run start, sealed so the global and environment
    scopes become read-only, mutated by the response processor after each
    request, and discarded at run end.
    """

    def __init__(self, initial: Optional[Mapping[ScopeKey, Mapping[str, Any]]] = None):
        self._layers: Dict[Scope, Dict[str, str]] = {scope: {} for scope in RESOLUTION_ORDER}
        self._sealed = False
        for scope, values in (initial or {}).items():
            self.update(scope, values)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        """Make the global and environment scopes read-only."""
        self._sealed = True
        logger.debug("Variable store sealed")

    def set(self, scope: ScopeKey, key: str, value: Any) -> None:
        """
        Write a value into a scope.

        Args:
            scope: Target scope
            key: Variable name
            value: Value (stored in its string form)

        Raises:
            ScopeError: If the scope is read-only or the key is empty
        """
        target = _coerce_scope(scope)
        if self._sealed and target in READ_ONLY_DURING_RUN:
            raise ScopeError(
                f"Scope '{target.value}' is read-only during a run", {"key": key}
            )
        if not key:
            raise ScopeError("Variable name cannot be empty")
        self._layers[target][key] = to_variable_string(value)
        logger.debug(f"Set variable {target.value}.{key}")

    def update(self, scope: ScopeKey, values: Mapping[str, Any]) -> None:
        for key, value in values.items():
            self.set(scope, str(key), value)

    def clear(self, scope: ScopeKey) -> None:
        target = _coerce_scope(scope)
        if self._sealed and target in READ_ONLY_DURING_RUN:
            raise ScopeError(f"Scope '{target.value}' is read-only during a run")
        self._layers[target].clear()

    def resolve(self, key: str) -> str:
        """
        Resolve a variable, walking scopes from most to least specific.

        Raises:
            UnresolvedVariableError: If no scope defines the key
        """
        value = _lookup(self._layers, key)
        if value is _MISSING:
            raise UnresolvedVariableError([key])
        return value

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = _lookup(self._layers, key)
        return default if value is _MISSING else value

    def contains(self, key: str) -> bool:
        return _lookup(self._layers, key) is not _MISSING

    def scope_items(self, scope: ScopeKey) -> List[Tuple[str, str]]:
        return list(self._layers[_coerce_scope(scope)].items())

    def snapshot(self) -> VariableSnapshot:
        return VariableSnapshot(self._layers)
