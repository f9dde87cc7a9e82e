"""
Definition Loading

Reads request definitions from a file or a directory of files.
"""

from pathlib import Path
from typing import Dict, List, Union

from ..core.exceptions import ParseError
from ..core.logging import get_logger
from .models import RequestTemplate
from .parser import parse_text

logger = get_logger(__name__)

DEFINITION_SUFFIXES = (".yaml", ".yml", ".json")


def definition_files(path: Union[str, Path]) -> List[Path]:
    """
    List definition files under a path.

    Raises:
        ParseError: If the path does not exist or holds no definitions
    """
    target = Path(path)
    if target.is_file():
        return [target]
    if not target.is_dir():
        raise ParseError(f"Definition path not found: {target}", {"path": str(target)})

    files = sorted(
        p for p in target.iterdir() if p.is_file() and p.suffix.lower() in DEFINITION_SUFFIXES
    )
    if not files:
        raise ParseError(
            f"No definition files found in {target}", {"path": str(target)}
        )
    return files


def load_definitions(path: Union[str, Path]) -> List[RequestTemplate]:
    """
    Load and parse request templates from a file or directory.

    Files in a directory are loaded in name order; request ids must be unique
    across all of them.

    Raises:
        ParseError: If any file fails to read or parse, or ids collide
    """
    templates: List[RequestTemplate] = []
    origins: Dict[str, str] = {}

    for file_path in definition_files(path):
        try:
            text = file_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ParseError(
                f"Failed to read definition file: {file_path}",
                {"path": str(file_path), "error": str(e)},
            )

        for template in parse_text(text, source=str(file_path)):
            if template.id in origins:
                raise ParseError(
                    f"Duplicate request id: {template.id}",
                    {"source": str(file_path), "first_source": origins[template.id]},
                )
            origins[template.id] = str(file_path)
            templates.append(template)

        logger.info(f"Loaded definitions from {file_path}")

    return templates
