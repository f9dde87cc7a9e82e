"""
Placeholder Interpolation

Placeholders use ``${name}`` or ``${name:-default}``; names may be
scope-qualified dotted paths such as ``${run.token}``.
Defaults may not contain braces.

Substitution is a single left-to-right pass. Substituted values are never
re-scanned, so captured response data can not expand into further template
syntax.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple, Union

from ..core.exceptions import TemplateSyntaxError, UnresolvedVariableError

OPEN = "${"
CLOSE = "}"
DEFAULT_SEPARATOR = ":-"

NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]*(\.[A-Za-z0-9_\-]+)*$")


@dataclass(frozen=True)
class Literal:
    """Verbatim text between placeholders."""

    text: str


@dataclass(frozen=True)
class Placeholder:
    """A parsed ``${...}`` occurrence."""

    name: str
    default: Optional[str]
    start: int
    end: int

    @property
    def raw(self) -> str:
        if self.default is None:
            return f"{OPEN}{self.name}{CLOSE}"
        return f"{OPEN}{self.name}{DEFAULT_SEPARATOR}{self.default}{CLOSE}"


Token = Union[Literal, Placeholder]


def scan(template: str) -> Iterator[Token]:
    """
    Tokenize a template string.

    Args:
        template: Text possibly holding placeholders

    Yields:
        Literal and Placeholder tokens in order

    Raises:
        TemplateSyntaxError: On an unclosed, empty, nested or invalid placeholder
    """
    position = 0
    length = len(template)
    while position < length:
        start = template.find(OPEN, position)
        if start == -1:
            yield Literal(template[position:])
            return
        if start > position:
            yield Literal(template[position:start])

        end = template.find(CLOSE, start + len(OPEN))
        if end == -1:
            raise TemplateSyntaxError(
                f"Unclosed placeholder at offset {start}", {"template": template}
            )
        inner = template[start + len(OPEN):end]
        if OPEN in inner:
            raise TemplateSyntaxError(
                f"Nested placeholder at offset {start}", {"template": template}
            )

        name, separator, default = inner.partition(DEFAULT_SEPARATOR)
        # A default cannot contain braces; the first "}" always closes
        if separator and "{" in default:
            raise TemplateSyntaxError(
                f"Brace in placeholder default at offset {start}",
                {"template": template},
            )
        name = name.strip()
        if not name:
            raise TemplateSyntaxError(
                f"Empty placeholder name at offset {start}", {"template": template}
            )
        if not NAME_RE.match(name):
            raise TemplateSyntaxError(
                f"Invalid placeholder name {name!r} at offset {start}",
                {"template": template},
            )
        yield Placeholder(
            name=name,
            default=default if separator else None,
            start=start,
            end=end + len(CLOSE),
        )
        position = end + len(CLOSE)


def find_placeholders(template: str) -> List[Placeholder]:
    return [token for token in scan(template) if isinstance(token, Placeholder)]


def has_placeholders(template: str) -> bool:
    return bool(find_placeholders(template))


def validate(template: str) -> None:
    """
    Check placeholder syntax without resolving anything.

    Raises:
        TemplateSyntaxError: If the template is malformed
    """
    for _ in scan(template):
        pass


def substitute(template: str, variables: Any) -> Tuple[str, List[str]]:
    """
    Substitute placeholders, collecting missing names instead of raising.

    Args:
        template: Template string
        variables: Snapshot or mapping offering ``get(name)``

    Returns:
        Tuple of (rendered text, names that could not be resolved)
    """
    parts: List[str] = []
    missing: List[str] = []
    for token in scan(template):
        if isinstance(token, Literal):
            parts.append(token.text)
            continue
        value = variables.get(token.name)
        if value is None:
            if token.default is not None:
                parts.append(token.default)
                continue
            missing.append(token.name)
            parts.append(token.raw)
            continue
        parts.append(str(value))
    return "".join(parts), missing


def interpolate(template: str, variables: Any) -> str:
    """
    Resolve every placeholder in a template string.

    Args:
        template: Template string
        variables: Snapshot or mapping offering ``get(name)``

    Returns:
        Concrete string

    Raises:
        UnresolvedVariableError: If any placeholder without default is missing
        TemplateSyntaxError: If the template is malformed
    """
    rendered, missing = substitute(template, variables)
    if missing:
        raise UnresolvedVariableError(missing, {"template": template})
    return rendered
