"""
Request Definition Parser

Turns a declarative request document into request templates. Parsing is
pure: it never touches the network or a variable store, and placeholders
are preserved verbatim for per-execution resolution.

Document shapes::

    name: auth flow               # optional
    requests:
      - id: login
        method: POST
        url: ${base_url}/login
        headers:
          - "Content-Type: application/json"
        body: {"user": "${user}", "password": "${password}"}
        assert:
          - status == 200
          - body.access_token exists
        extract:
          - token = body.access_token
        retry: {max_attempts: 3, backoff: exponential}
        timeout: 5

A bare list of requests, or a single request mapping, is accepted too.
"""

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import ParseError, TemplateSyntaxError
from ..core.logging import get_logger
from ..core.models import VALID_METHODS, KeyValuePair
from ..execution.policy import PolicyOverride
from ..interpolation.engine import validate as validate_template
from ..processing.assertions import parse_assertion
from ..processing.extraction import make_extraction_rule, parse_extraction
from ..processing.models import Assertion, ExtractionRule
from ..variables.store import to_variable_string
from .models import RequestTemplate

logger = get_logger(__name__)

DOCUMENT_FIELDS = frozenset({"name", "requests"})
REQUEST_FIELDS = frozenset(
    {
        "id",
        "description",
        "method",
        "url",
        "headers",
        "params",
        "body",
        "assert",
        "extract",
        "retry",
        "timeout",
    }
)


class DefinitionParser:
    """
    Strict parser for request definition documents.

    Args:
        source: Optional document origin (file path) recorded on templates
            and in error details
    """

    def __init__(self, source: Optional[str] = None):
        self.source = source

    def parse(self, document: Any) -> List[RequestTemplate]:
        """
        Parse a decoded document.

        Args:
            document: Mapping with ``requests``, list of requests, or a single
                request mapping

        Returns:
            Request templates in declaration order

        Raises:
            ParseError: On the first structural or syntax problem found
        """
        entries = self._request_entries(document)
        templates: List[RequestTemplate] = []
        seen: Dict[str, int] = {}

        for index, entry in enumerate(entries):
            template = self._parse_request(entry, index)
            if template.id in seen:
                raise self._error(
                    f"Duplicate request id: {template.id}",
                    request=template.id,
                    first_index=seen[template.id],
                )
            seen[template.id] = index
            templates.append(template)

        logger.debug(
            f"Parsed {len(templates)} request template(s)"
            + (f" from {self.source}" if self.source else "")
        )
        return templates

    def parse_text(self, text: str) -> List[RequestTemplate]:
        """
        Parse YAML (or JSON) text.

        Raises:
            ParseError: If the text is not valid YAML or the document is invalid
        """
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise self._error(f"Invalid YAML/JSON document: {e}")
        if document is None:
            raise self._error("Empty definition document")
        return self.parse(document)

    def _error(self, message: str, **details: Any) -> ParseError:
        if self.source:
            details["source"] = self.source
        return ParseError(message, details)

    def _request_entries(self, document: Any) -> Sequence[Any]:
        if isinstance(document, list):
            return document
        if not isinstance(document, Mapping):
            raise self._error(
                f"Definition document must be a mapping or a list, got {type(document).__name__}"
            )
        if "requests" in document:
            unknown = set(document) - DOCUMENT_FIELDS
            if unknown:
                raise self._error(
                    f"Unknown document field(s): {', '.join(sorted(map(str, unknown)))}"
                )
            requests = document["requests"]
            if requests is None:
                return []
            if not isinstance(requests, list):
                raise self._error("'requests' must be a list")
            return requests
        return [document]

    def _parse_request(self, entry: Any, index: int) -> RequestTemplate:
        if not isinstance(entry, Mapping):
            raise self._error(
                f"Request #{index + 1} must be a mapping", request=index + 1
            )

        request_id = str(entry.get("id") or f"request-{index + 1}")
        unknown = set(entry) - REQUEST_FIELDS
        if unknown:
            raise self._error(
                f"Unknown field(s) in request '{request_id}': "
                f"{', '.join(sorted(map(str, unknown)))}",
                request=request_id,
            )

        for required in ("method", "url"):
            if entry.get(required) in (None, ""):
                raise self._error(
                    f"Request '{request_id}' is missing required field '{required}'",
                    request=request_id,
                )

        method = entry["method"]
        if not isinstance(method, str) or method.upper() not in VALID_METHODS:
            raise self._error(
                f"Invalid HTTP method in request '{request_id}': {method!r}",
                request=request_id,
            )

        url = entry["url"]
        if not isinstance(url, str):
            raise self._error(
                f"'url' must be a string in request '{request_id}'", request=request_id
            )
        self._check_template(url, request_id, "url")

        headers = self._parse_pairs(entry.get("headers"), request_id, "headers")
        params = self._parse_pairs(entry.get("params"), request_id, "params")
        body, headers = self._parse_body(entry.get("body"), headers, request_id)
        assertions = self._parse_assertions(entry.get("assert"), request_id)
        extractions = self._parse_extractions(entry.get("extract"), request_id)
        retry = self._parse_retry(entry.get("retry"), request_id)
        timeout = self._parse_timeout(entry.get("timeout"), request_id)

        description = entry.get("description") or ""
        if not isinstance(description, str):
            raise self._error(
                f"'description' must be a string in request '{request_id}'",
                request=request_id,
            )

        try:
            return RequestTemplate(
                id=request_id,
                method=method,
                url=url,
                headers=headers,
                params=params,
                body=body,
                assertions=assertions,
                extractions=extractions,
                retry=retry,
                timeout=timeout,
                description=description,
                source=self.source,
            )
        except PydanticValidationError as e:
            raise self._error(
                f"Invalid request '{request_id}': {e}", request=request_id
            )

    def _check_template(self, text: str, request_id: str, field: str) -> None:
        try:
            validate_template(text)
        except TemplateSyntaxError as e:
            raise TemplateSyntaxError(
                f"{e.message} in {field} of request '{request_id}'",
                {**e.details, "request": request_id, "field": field,
                 **({"source": self.source} if self.source else {})},
            )

    def _scalar(self, value: Any, request_id: str, field: str) -> str:
        if value is None or isinstance(value, (dict, list)):
            raise self._error(
                f"Expected a scalar value in {field} of request '{request_id}'",
                request=request_id,
                field=field,
            )
        return to_variable_string(value)

    def _parse_pairs(
        self, raw: Any, request_id: str, field: str
    ) -> Tuple[KeyValuePair, ...]:
        if raw is None:
            return ()

        items: List[Tuple[Any, Any]] = []
        if isinstance(raw, Mapping):
            items = list(raw.items())
        elif isinstance(raw, list):
            for item in raw:
                if isinstance(item, str):
                    name, sep, value = item.partition(":")
                    if not sep:
                        raise self._error(
                            f"Invalid {field} entry {item!r} in request '{request_id}'; "
                            "expected 'Name: value'",
                            request=request_id,
                            field=field,
                        )
                    items.append((name.strip(), value.strip()))
                elif isinstance(item, Mapping) and set(item) == {"name", "value"}:
                    items.append((item["name"], item["value"]))
                elif isinstance(item, Mapping) and len(item) == 1:
                    items.append(next(iter(item.items())))
                else:
                    raise self._error(
                        f"Invalid {field} entry in request '{request_id}': {item!r}",
                        request=request_id,
                        field=field,
                    )
        else:
            raise self._error(
                f"'{field}' must be a list or a mapping in request '{request_id}'",
                request=request_id,
            )

        pairs = []
        for name, value in items:
            name_text = self._scalar(name, request_id, field).strip()
            value_text = self._scalar(value, request_id, field)
            if not name_text:
                raise self._error(
                    f"Empty name in {field} of request '{request_id}'",
                    request=request_id,
                    field=field,
                )
            self._check_template(name_text, request_id, field)
            self._check_template(value_text, request_id, field)
            pairs.append(KeyValuePair(name=name_text, value=value_text))
        return tuple(pairs)

    def _parse_body(
        self, raw: Any, headers: Tuple[KeyValuePair, ...], request_id: str
    ) -> Tuple[Optional[str], Tuple[KeyValuePair, ...]]:
        if raw is None:
            return None, headers
        if isinstance(raw, (dict, list)):
            body = json.dumps(raw, ensure_ascii=False)
            if not any(h.name.lower() == "content-type" for h in headers):
                headers = headers + (
                    KeyValuePair(name="Content-Type", value="application/json"),
                )
        else:
            body = to_variable_string(raw)
        self._check_template(body, request_id, "body")
        return body, headers

    def _parse_assertions(self, raw: Any, request_id: str) -> Tuple[Assertion, ...]:
        if raw is None:
            return ()
        if isinstance(raw, str):
            raw = [raw]
        if not isinstance(raw, list):
            raise self._error(
                f"'assert' must be a list in request '{request_id}'", request=request_id
            )

        assertions = []
        for item in raw:
            if not isinstance(item, str):
                raise self._error(
                    f"Assertions must be strings in request '{request_id}': {item!r}",
                    request=request_id,
                )
            try:
                assertion = parse_assertion(item)
            except ParseError as e:
                raise self._error(
                    f"{e.message} in request '{request_id}'", request=request_id
                )
            if assertion.expected is not None:
                self._check_template(assertion.expected, request_id, "assert")
            assertions.append(assertion)
        return tuple(assertions)

    def _parse_extractions(
        self, raw: Any, request_id: str
    ) -> Tuple[ExtractionRule, ...]:
        if raw is None:
            return ()

        rules: List[ExtractionRule] = []
        try:
            if isinstance(raw, Mapping):
                for name, path in raw.items():
                    rules.append(make_extraction_rule(str(name), str(path)))
            elif isinstance(raw, list):
                for item in raw:
                    if isinstance(item, str):
                        rules.append(parse_extraction(item))
                    elif isinstance(item, Mapping) and len(item) == 1:
                        name, path = next(iter(item.items()))
                        rules.append(make_extraction_rule(str(name), str(path)))
                    else:
                        raise ParseError(f"Invalid extraction entry: {item!r}")
            else:
                raise ParseError("'extract' must be a list or a mapping")
        except ParseError as e:
            raise self._error(
                f"{e.message} in request '{request_id}'", request=request_id
            )
        return tuple(rules)

    def _parse_retry(self, raw: Any, request_id: str) -> Optional[PolicyOverride]:
        if raw is None:
            return None
        if isinstance(raw, int) and not isinstance(raw, bool):
            raw = {"max_attempts": raw}
        if not isinstance(raw, Mapping):
            raise self._error(
                f"'retry' must be a mapping or an attempt count in request '{request_id}'",
                request=request_id,
            )
        try:
            return PolicyOverride(**raw)
        except PydanticValidationError as e:
            raise self._error(
                f"Invalid retry policy in request '{request_id}': {e}",
                request=request_id,
            )
        except TypeError as e:
            raise self._error(
                f"Invalid retry policy in request '{request_id}': {e}",
                request=request_id,
            )

    def _parse_timeout(self, raw: Any, request_id: str) -> Optional[float]:
        if raw is None:
            return None
        if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw <= 0:
            raise self._error(
                f"'timeout' must be a positive number of seconds in request '{request_id}'",
                request=request_id,
            )
        return float(raw)


def parse(document: Any, source: Optional[str] = None) -> List[RequestTemplate]:
    """Parse a decoded definition document."""
    return DefinitionParser(source).parse(document)


def parse_text(text: str, source: Optional[str] = None) -> List[RequestTemplate]:
    """Parse YAML or JSON definition text."""
    return DefinitionParser(source).parse_text(text)
