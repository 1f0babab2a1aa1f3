"""
flowcode: Flow Document Loader
==============================
Loads a flow document from a path, a JSON string or an already-parsed dict
and checks the top-level shape before the IR is built.

Validation here is shallow: it guarantees `nodes` and `edges`
are lists of objects.  Everything about graph validity (references,
anchors, arity, required inputs) belongs to the analyzer so that it can be
reported rather than raised.
"""

from __future__ import annotations

import json
from logging import getLogger
from pathlib import Path
from typing import Any, Dict, List, Union

from .errors import DocumentError

logger = getLogger(__name__)

Source = Union[str, Path, Dict[str, Any]]


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise DocumentError(message)


def validate_document(data: Any) -> Dict[str, Any]:
    """
    Check the top-level shape of a parsed flow document.

    Raises:
        DocumentError: When the root is not an object or when `nodes` or
            `edges` are present but not lists of objects.
    """
    _require(isinstance(data, dict), "flow document must be a JSON object at the top level")

    for key in ("nodes", "edges"):
        value = data.get(key, [])
        _require(isinstance(value, list), f"'{key}' must be a list")
        for i, item in enumerate(value):
            _require(isinstance(item, dict), f"{key}[{i}]: each entry must be a JSON object")

    if "nodes" not in data:
        logger.warning("flow document has no 'nodes' key; treating it as empty")
    return data


def _looks_like_json(text: str) -> bool:
    return text.lstrip().startswith(("{", "["))


def load_document(source: Source) -> Dict[str, Any]:
    """
    Load and validate a flow document.

    Args:
        source: A dict, a JSON string, or a path to a JSON file.

    Returns:
        The parsed document dict.

    Raises:
        DocumentError: If the file is missing or unreadable, the JSON is
            invalid, or the shape is wrong.
    """
    if isinstance(source, dict):
        return validate_document(source)

    if isinstance(source, str) and _looks_like_json(source):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as exc:
            raise DocumentError(f"invalid JSON: {exc}") from exc
        return validate_document(data)

    path = Path(source)
    if not path.exists():
        raise DocumentError(f"file not found: {path}")
    try:
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise DocumentError(f"{path}: invalid JSON: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise DocumentError(f"{path}: not UTF-8 text: {exc.reason}") from exc
    except OSError as exc:
        raise DocumentError(f"{path}: cannot read file: {exc.strerror or exc}") from exc
    logger.debug("loaded flow document from %s", path)
    return validate_document(data)


def document_name(data: Dict[str, Any], fallback: str = "flow") -> str:
    for key in ("name", "graph_name", "title"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return fallback


__all__: List[str] = ["DocumentError", "document_name", "load_document", "validate_document"]
