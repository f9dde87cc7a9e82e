"""
Rester Exception Hierarchy

Defines the exception hierarchy used by every engine component. Per-request
errors are converted into structured outcome records by the run coordinator;
parse and configuration errors are fatal to a whole run.
"""

from typing import Any, Dict, List, Optional, Sequence


class ResterException(Exception):
    """Base exception for all Rester errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(ResterException):
    """Configuration-related errors (invalid settings, unknown environment)."""

    pass


class ParseError(ResterException):
    """Malformed request definition document."""

    pass


class TemplateSyntaxError(ParseError):
    """Malformed placeholder syntax inside a template string."""

    pass


class VariableError(ResterException):
    """Variable store errors."""

    pass


class UnresolvedVariableError(VariableError):
    """One or more placeholders could not be resolved against the store."""

    def __init__(self, names: Sequence[str], details: Optional[Dict[str, Any]] = None):
        self.names: List[str] = list(dict.fromkeys(names))
        joined = ", ".join(self.names)
        super().__init__(f"Unresolved variable(s): {joined}", details)


class ScopeError(VariableError):
    """Write attempted against a read-only scope."""

    pass


class TransportError(ResterException):
    """Transport-level failure (connection refused, timeout, protocol error)."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message, details)
        self.retryable = retryable


class AttemptTimeoutError(TransportError):
    """A single dispatch attempt exceeded its timeout."""

    pass


class ServerError(TransportError):
    """A 5xx response treated as a transport failure by policy."""

    def __init__(self, message: str, response: Any, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, retryable=True)
        self.response = response


class ExecutionError(ResterException):
    """Request execution failed after the policy gave up."""

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        attempts: Optional[List[Any]] = None,
        last_response: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.cause = cause
        self.attempts = attempts or []
        self.last_response = last_response


class MissingPathError(ResterException):
    """A path expression did not match anything in the response."""

    pass


class AssertionFailure(ResterException):
    """An assertion evaluated to false."""

    pass


class CollectionError(ResterException):
    """Request collection persistence errors."""

    pass
