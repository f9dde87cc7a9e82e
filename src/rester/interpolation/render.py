"""
Request Rendering

Turns a request template into a concrete request for one execution attempt.
URL, query parameters, headers, body and assertion expectations are each
interpolated independently, and nothing is returned unless every field
resolved.
"""

from typing import Any, Iterable, List, Tuple
from urllib.parse import urlencode, urlsplit, urlunsplit

from ..core.exceptions import UnresolvedVariableError
from ..core.models import ConcreteRequest, KeyValuePair
from ..definitions.models import RequestTemplate
from ..processing.models import Assertion
from .engine import substitute


def _append_query(url: str, params: List[Tuple[str, str]]) -> str:
    if not params:
        return url
    encoded = urlencode(params)
    try:
        parts = urlsplit(url)
    except ValueError:
        # Left for the transport to reject
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}{encoded}"
    query = f"{parts.query}&{encoded}" if parts.query else encoded
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def render_request(template: RequestTemplate, variables: Any) -> ConcreteRequest:
    """
    Render a concrete request from a template.

    Args:
        template: Parsed request template
        variables: Snapshot taken for this execution attempt

    Returns:
        ConcreteRequest with no unresolved placeholders

    Raises:
        UnresolvedVariableError: Listing every missing name across all fields
    """
    missing: List[str] = []

    def render(text: str) -> str:
        rendered, absent = substitute(text, variables)
        missing.extend(absent)
        return rendered

    url = render(template.url)
    params = [(render(p.name), render(p.value)) for p in template.params]
    headers = tuple(
        KeyValuePair(name=render(h.name), value=render(h.value))
        for h in template.headers
    )
    body = render(template.body) if template.body is not None else None

    if missing:
        raise UnresolvedVariableError(missing, {"request_id": template.id})

    return ConcreteRequest(
        request_id=template.id,
        method=template.method,
        url=_append_query(url, params),
        headers=headers,
        body=body,
    )


def render_assertions(
    assertions: Iterable[Assertion], variables: Any
) -> List[Assertion]:
    """
    Resolve placeholders inside assertion expectations.

    Raises:
        UnresolvedVariableError: Listing every missing name
    """
    missing: List[str] = []
    rendered: List[Assertion] = []
    for assertion in assertions:
        if assertion.expected is None:
            rendered.append(assertion)
            continue
        expected, absent = substitute(assertion.expected, variables)
        missing.extend(absent)
        rendered.append(assertion.model_copy(update={"expected": expected}))
    if missing:
        raise UnresolvedVariableError(missing)
    return rendered
