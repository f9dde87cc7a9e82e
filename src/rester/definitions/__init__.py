"""
Rester Definition Parser

Request template models, document parsing, loading and serialization.
"""

from .loader import definition_files, load_definitions
from .models import RequestTemplate
from .parser import DefinitionParser, parse, parse_text
from .serializer import to_collection_document, to_document

__all__ = [
    "RequestTemplate",
    "DefinitionParser",
    "parse",
    "parse_text",
    "definition_files",
    "load_definitions",
    "to_document",
    "to_collection_document",
]
