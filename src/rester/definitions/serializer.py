"""
Template Serialization

Writes request templates back to the definition document format so they
can be persisted and parsed again.
"""

from typing import Any, Dict, Iterable, List, Optional

from .models import RequestTemplate


def to_document(template: RequestTemplate) -> Dict[str, Any]:
    """
    Convert a template to a definition mapping.

    The result parses back to an equal template. Placeholders are kept
    verbatim; bodies are always written as strings.
    """
    document: Dict[str, Any] = {
        "id": template.id,
        "method": template.method,
        "url": template.url,
    }
    if template.description:
        document["description"] = template.description
    if template.headers:
        document["headers"] = [
            {"name": h.name, "value": h.value} for h in template.headers
        ]
    if template.params:
        document["params"] = [
            {"name": p.name, "value": p.value} for p in template.params
        ]
    if template.body is not None:
        document["body"] = template.body
    if template.assertions:
        document["assert"] = [a.expression for a in template.assertions]
    if template.extractions:
        document["extract"] = [e.expression for e in template.extractions]
    if template.retry is not None:
        document["retry"] = template.retry.model_dump(mode="json", exclude_none=True)
    if template.timeout is not None:
        document["timeout"] = template.timeout
    return document


def to_collection_document(
    templates: Iterable[RequestTemplate], name: Optional[str] = None
) -> Dict[str, Any]:
    """Wrap serialized templates in a top-level ``requests`` document."""
    requests: List[Dict[str, Any]] = [to_document(t) for t in templates]
    document: Dict[str, Any] = {}
    if name:
        document["name"] = name
    document["requests"] = requests
    return document
