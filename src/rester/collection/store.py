"""
Request Collection

Persists a named, ordered set of request templates as a JSON definition
document (``requests.json`` by default) that the definition parser can read
back. Adding a request whose id already exists replaces it in place.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..core.exceptions import CollectionError, ParseError
from ..core.logging import get_logger
from ..definitions.models import RequestTemplate
from ..definitions.parser import parse
from ..definitions.serializer import to_collection_document

logger = get_logger(__name__)

DEFAULT_COLLECTION_FILE = "requests.json"


class RequestCollection:
    """
    Ordered request templates keyed by id.

    Args:
        path: Location of the collection file
        name: Optional collection name stored in the document
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_COLLECTION_FILE, name: Optional[str] = None):
        self.path = Path(path)
        self.name = name
        self._requests: Dict[str, RequestTemplate] = {}

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._requests

    def add(self, template: RequestTemplate) -> bool:
        """
        Add or replace a request.

        Returns:
            True if an existing request with the same id was replaced
        """
        replaced = template.id in self._requests
        self._requests[template.id] = template
        logger.debug(
            f"{'Replaced' if replaced else 'Added'} request '{template.id}' in collection"
        )
        return replaced

    def remove(self, request_id: str) -> RequestTemplate:
        """
        Remove a request by id.

        Raises:
            CollectionError: If no request has that id
        """
        try:
            return self._requests.pop(request_id)
        except KeyError:
            raise CollectionError(
                f"Request not found in collection: {request_id}",
                {"path": str(self.path)},
            )

    def get(self, request_id: str) -> Optional[RequestTemplate]:
        return self._requests.get(request_id)

    def list(self) -> List[RequestTemplate]:
        return list(self._requests.values())

    def to_document(self) -> Dict[str, Any]:
        return to_collection_document(self._requests.values(), self.name)

    def save(self) -> Path:
        """
        Write the collection to disk.

        Raises:
            CollectionError: If the file can not be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self.to_document(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise CollectionError(f"Failed to write collection to {self.path}: {e}")
        logger.info(f"Saved {len(self)} request(s) to {self.path}")
        return self.path

    @classmethod
    def load(cls, path: Union[str, Path] = DEFAULT_COLLECTION_FILE) -> "RequestCollection":
        """
        Load a collection; a missing file yields an empty collection.

        Raises:
            CollectionError: If the file exists but can not be read or parsed
        """
        collection = cls(path)
        if not collection.path.exists():
            logger.debug(f"No collection at {collection.path}; starting empty")
            return collection

        try:
            with open(collection.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise CollectionError(f"Invalid JSON in {collection.path}: {e}")
        except OSError as e:
            raise CollectionError(f"Failed to read collection {collection.path}: {e}")

        if isinstance(document, dict):
            collection.name = document.get("name")
        try:
            templates = parse(document, source=str(collection.path))
        except ParseError as e:
            raise CollectionError(
                f"Invalid collection {collection.path}: {e.message}", e.details
            )
        for template in templates:
            collection.add(template)
        return collection
