"""Load schema files (JSON or YAML) and resolve ``$ref`` references.

References may point into the same document (``#/definitions/item``), at
another file relative to the referring one (``item.json``), or both
(``common.yaml#/definitions/tag``). Sibling keys next to ``$ref`` override
the referenced content. Resolution stops at :data:`MAX_REF_DEPTH` nested
references, which also catches cycles.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from fmctl.domain.result import ErrorKind, Result, failure, propagate, success
from fmctl.domain.schema import SchemaNode

logger = logging.getLogger(__name__)

MAX_REF_DEPTH = 100

_YAML_SUFFIXES = frozenset({".yaml", ".yml"})


@dataclass(frozen=True)
class LoadedSchema:
    node: SchemaNode
    path: Path
    raw: dict[str, Any]


class _SchemaLoadError(Exception):
    """Raised internally while resolving references."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


def load_schema(path: Path) -> Result[LoadedSchema]:
    """Read *path*, resolve its references, and build the node tree."""
    try:
        document = _read_document(path)
        resolved = _resolve(document, document, path, depth=0)
    except _SchemaLoadError as exc:
        return failure(exc.kind, str(exc), path=str(path))

    if not isinstance(resolved, dict):
        return failure(
            ErrorKind.CONFIGURATION_ERROR,
            f"Schema {path} must be a mapping, got {type(resolved).__name__}",
            path=str(path),
        )
    node = SchemaNode.from_mapping(resolved)
    if not node.ok:
        return propagate(node)
    logger.debug("Loaded schema %s", path)
    return success(LoadedSchema(node=node.unwrap(), path=path, raw=resolved))


def parse_schema_text(text: str, *, yaml: bool = False) -> Any:
    """Parse schema text as JSON, or YAML when *yaml* is set.

    Raises ``json.JSONDecodeError`` or ``YAMLError``.
    """
    if yaml:
        return YAML(typ="safe", pure=True).load(text)
    return json.loads(text)


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _read_document(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise _SchemaLoadError(ErrorKind.FILE_NOT_FOUND, f"Schema file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise _SchemaLoadError(ErrorKind.READ_FAILED, f"Cannot read schema {path}: {exc}") from exc

    try:
        return parse_schema_text(text, yaml=path.suffix.lower() in _YAML_SUFFIXES)
    except (json.JSONDecodeError, YAMLError) as exc:
        raise _SchemaLoadError(ErrorKind.PARSE_ERROR, f"Invalid schema {path}: {exc}") from exc


def _resolve(value: Any, document: Any, origin: Path, *, depth: int) -> Any:
    if isinstance(value, list):
        return [_resolve(item, document, origin, depth=depth) for item in value]
    if not isinstance(value, dict):
        return value

    ref = value.get("$ref")
    if not isinstance(ref, str):
        return {key: _resolve(item, document, origin, depth=depth) for key, item in value.items()}

    if depth >= MAX_REF_DEPTH:
        raise _SchemaLoadError(
            ErrorKind.CONFIGURATION_ERROR,
            f"$ref depth limit ({MAX_REF_DEPTH}) exceeded at {ref!r} in {origin}",
        )

    target, target_document, target_origin = _follow(ref, document, origin)
    resolved = _resolve(target, target_document, target_origin, depth=depth + 1)
    siblings = {
        k: _resolve(v, document, origin, depth=depth) for k, v in value.items() if k != "$ref"
    }
    if not siblings:
        return resolved
    if not isinstance(resolved, dict):
        raise _SchemaLoadError(
            ErrorKind.CONFIGURATION_ERROR,
            f"$ref {ref!r} in {origin} must point at a mapping when combined with other keys",
        )
    return {**resolved, **siblings}


def _follow(ref: str, document: Any, origin: Path) -> tuple[Any, Any, Path]:
    file_part, _, pointer = ref.partition("#")
    if file_part:
        target_path = (origin.parent / file_part).resolve()
        document = _read_document(target_path)
        origin = target_path
    return _pointer(document, pointer, ref, origin), document, origin


def _pointer(document: Any, pointer: str, ref: str, origin: Path) -> Any:
    current = document
    for raw_token in [t for t in pointer.split("/") if t]:
        token = raw_token.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict) and token in current:
            current = current[token]
        elif isinstance(current, list) and token.isdigit() and int(token) < len(current):
            current = current[int(token)]
        else:
            raise _SchemaLoadError(
                ErrorKind.CONFIGURATION_ERROR,
                f"Cannot resolve $ref {ref!r} from {origin}",
            )
    return current
