"""Frontmatter data model and the extraction/parsing utilities.

- :class:`FrontmatterData`: immutable key/value snapshot of one document's
  (or one aggregate's) frontmatter. Built only through
  :meth:`FrontmatterData.create`, which rejects non-mapping input.
- :class:`MarkdownDocument`: a source file split into frontmatter and body.
- :func:`extract`: format detection and splitting (YAML ``---``, JSON ``{``,
  TOML ``+++``) followed by parsing into :class:`FrontmatterData`.

Pure parsing lives here so the dependency direction stays clean:
infrastructure -> domain, never the reverse.
"""

from __future__ import annotations

import copy
import json
import tomllib
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, replace
from datetime import date, datetime, time
from enum import StrEnum
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from fmctl.domain.paths import IndexStep, PropertyStep, Step, WildcardStep, parse_path
from fmctl.domain.result import ErrorKind, Result, failure, propagate, success

_SCALAR_TYPES = (str, int, float, bool, date, datetime, time)

# ---------------------------------------------------------------------------
# YAML parser
# ---------------------------------------------------------------------------


def _new_yaml() -> YAML:
    """Create a fresh safe YAML loader.

    A new instance per call keeps ruamel.yaml's stateful loader from leaking
    state between documents. The safe loader yields plain ``dict``/``list``
    values with native bools, numbers, and dates.
    """
    return YAML(typ="safe", pure=True)


class FrontmatterFormat(StrEnum):
    """Supported frontmatter syntaxes, in detection order."""

    YAML = "yaml"
    JSON = "json"
    TOML = "toml"


_YAML_FENCE = "---"
_TOML_FENCE = "+++"


# ---------------------------------------------------------------------------
# Path traversal over plain containers
# ---------------------------------------------------------------------------


_MISSING = object()


def resolve_steps(root: Any, steps: list[Step]) -> Any:
    """Follow strict *steps* through nested dicts/lists.

    Returns the module-level ``_MISSING`` sentinel when any step fails.
    Wildcards are not meaningful for single-value lookup and also miss.
    """
    current = root
    for step in steps:
        match step:
            case PropertyStep(name=name):
                if not isinstance(current, dict) or name not in current:
                    return _MISSING
                current = current[name]
            case IndexStep(index=index):
                if not isinstance(current, list) or index >= len(current):
                    return _MISSING
                current = current[index]
            case WildcardStep():
                return _MISSING
    return current


def assign_steps(root: dict[str, Any], steps: list[Step], value: Any) -> bool:
    """Set *value* at *steps* inside *root*, creating mappings on demand.

    Index steps may only address existing list positions. Returns False when
    the path cannot be materialized (e.g. it runs through a scalar).
    """
    current: Any = root
    for position, step in enumerate(steps):
        last = position == len(steps) - 1
        match step:
            case PropertyStep(name=name):
                if not isinstance(current, dict):
                    return False
                if last:
                    current[name] = value
                    return True
                if current.get(name) is None:
                    # Only mappings can be created; lists must already exist.
                    if not isinstance(steps[position + 1], PropertyStep):
                        return False
                    current[name] = {}
                current = current[name]
            case IndexStep(index=index):
                if not isinstance(current, list) or index >= len(current):
                    return False
                if last:
                    current[index] = value
                    return True
                current = current[index]
            case WildcardStep():
                return False
    return False


# ---------------------------------------------------------------------------
# FrontmatterData
# ---------------------------------------------------------------------------


class _UnsupportedValueError(Exception):
    """Raised internally while normalizing a raw value tree."""


def _normalize(value: Any, where: str) -> Any:
    """Deep-copy *value* into plain JSON-like containers."""
    if value is None or isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, Mapping):
        return {
            str(k): _normalize(v, f"{where}.{k}" if where else str(k)) for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_normalize(v, f"{where}[{i}]") for i, v in enumerate(value)]
    msg = f"Unsupported value type {type(value).__name__} at {where or '<root>'}"
    raise _UnsupportedValueError(msg)


def strict_key(value: Any) -> Any:
    """Hashable equality key that keeps booleans apart from numbers.

    Python treats ``True == 1``; frontmatter values do not. Ints and floats
    still compare numerically, and containers compare element by element.
    """
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, (int, float)):
        return ("number", value)
    if isinstance(value, Mapping):
        return ("map", frozenset((str(k), strict_key(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return ("list", tuple(strict_key(v) for v in value))
    return (type(value).__name__, value)


class FrontmatterData:
    """Immutable frontmatter snapshot.

    Stores a private deep copy of its mapping; every accessor that returns a
    container returns a copy, and every "modifying" operation returns a new
    instance.
    """

    __slots__ = ("_data",)

    def __init__(self, data: dict[str, Any]) -> None:
        # Callers outside this module go through create()/empty().
        self._data = data

    @classmethod
    def create(cls, raw: object) -> Result[FrontmatterData]:
        """Validate and copy *raw* into a new instance.

        Rejects ``None``, lists, and scalars at the top level, and any value
        type outside str/number/bool/null/date/mapping/list.
        """
        if raw is None:
            return failure(ErrorKind.INVALID_FORMAT, "Frontmatter must be a mapping, got null")
        if isinstance(raw, (list, tuple)):
            return failure(ErrorKind.INVALID_FORMAT, "Frontmatter must be a mapping, got an array")
        if not isinstance(raw, Mapping):
            return failure(
                ErrorKind.INVALID_FORMAT,
                f"Frontmatter must be a mapping, got {type(raw).__name__}",
            )
        try:
            data = _normalize(raw, "")
        except _UnsupportedValueError as exc:
            return failure(ErrorKind.INVALID_FORMAT, str(exc))
        return success(cls(data))

    @classmethod
    def empty(cls) -> FrontmatterData:
        """An instance with no fields (distinct from "no frontmatter")."""
        return cls({})

    # --- Read access ---

    def get(self, path: str) -> Result[Any]:
        """Look up a strict path such as ``options.input[0]``."""
        parsed = parse_path(path)
        if not parsed.ok:
            return propagate(parsed)
        value = resolve_steps(self._data, parsed.unwrap())
        if value is _MISSING:
            return failure(ErrorKind.MISSING_REQUIRED, f"Field '{path}' not found", path=path)
        return success(copy.deepcopy(value))

    def has(self, path: str) -> bool:
        """Whether *path* parses and resolves to a present key (even if null)."""
        parsed = parse_path(path)
        return parsed.ok and resolve_steps(self._data, parsed.unwrap()) is not _MISSING

    def keys(self) -> list[str]:
        return list(self._data)

    def is_empty(self) -> bool:
        return not self._data

    def to_dict(self) -> dict[str, Any]:
        """Deep copy of the underlying mapping."""
        return copy.deepcopy(self._data)

    # --- Derivation ---

    def filter(self, predicate: Callable[[str, Any], bool]) -> Result[FrontmatterData]:
        """Keep top-level fields for which ``predicate(key, value)`` holds.

        Filtering everything away is an ``EmptyInput`` failure: an empty
        result is not the same thing as absent frontmatter.
        """
        kept = {k: copy.deepcopy(v) for k, v in self._data.items() if predicate(k, v)}
        if not kept:
            return failure(ErrorKind.EMPTY_INPUT, "Filtering removed every frontmatter field")
        return success(FrontmatterData(kept))

    def with_field(self, path: str, value: Any) -> Result[FrontmatterData]:
        """Return a copy with *value* set at *path* (mappings created on demand)."""
        parsed = parse_path(path)
        if not parsed.ok:
            return propagate(parsed)
        try:
            normalized = _normalize(value, path)
        except _UnsupportedValueError as exc:
            return failure(ErrorKind.INVALID_FORMAT, str(exc))
        data = self.to_dict()
        if not assign_steps(data, parsed.unwrap(), normalized):
            return failure(
                ErrorKind.INVALID_FORMAT,
                f"Cannot set '{path}': path runs through a non-container value",
                path=path,
            )
        return success(FrontmatterData(data))

    # --- Dunder ---

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FrontmatterData):
            return NotImplemented
        return self._data == other._data

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"FrontmatterData({self._data!r})"


# ---------------------------------------------------------------------------
# MarkdownDocument
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MarkdownDocument:
    """One source file split into frontmatter and body.

    ``frontmatter`` is ``None`` when the file has no frontmatter block.
    """

    path: Path
    content: str
    body: str
    frontmatter: FrontmatterData | None = None
    format: FrontmatterFormat | None = None

    @property
    def has_frontmatter(self) -> bool:
        return self.frontmatter is not None

    def with_field(self, path: str, value: Any) -> Result[MarkdownDocument]:
        """Return a new document whose frontmatter has *value* at *path*."""
        base = self.frontmatter or FrontmatterData.empty()
        updated = base.with_field(path, value)
        if not updated.ok:
            return propagate(updated)
        return success(replace(self, frontmatter=updated.unwrap()))


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Extraction:
    """Output of :func:`extract`."""

    frontmatter: FrontmatterData | None
    body: str
    format: FrontmatterFormat | None = None
    raw: str | None = None


def detect_format(content: str) -> FrontmatterFormat | None:
    """Detect the frontmatter syntax from the first line of *content*."""
    if not content:
        return None
    first_line = content.split("\n", 1)[0].strip()
    if first_line == _YAML_FENCE:
        return FrontmatterFormat.YAML
    if first_line.startswith("{"):
        return FrontmatterFormat.JSON
    if first_line == _TOML_FENCE:
        return FrontmatterFormat.TOML
    return None


def extract(markdown: str) -> Result[Extraction]:
    """Split *markdown* into parsed frontmatter and body.

    Handles both ``\\n`` and ``\\r\\n`` line endings and a leading BOM.
    Content without a recognized opening yields ``frontmatter=None`` and the
    whole text as body; that is a success, not an error.
    """
    if not markdown or not markdown.strip():
        return failure(ErrorKind.EMPTY_INPUT, "Markdown content cannot be empty")

    normalized = markdown.replace("\r\n", "\n").lstrip("\ufeff")
    fmt = detect_format(normalized)
    if fmt is None:
        return success(Extraction(frontmatter=None, body=normalized))

    if fmt is FrontmatterFormat.JSON:
        split = _split_json(normalized)
    else:
        fence = _YAML_FENCE if fmt is FrontmatterFormat.YAML else _TOML_FENCE
        split = _split_fenced(normalized, fence, fmt)
    if not split.ok:
        return propagate(split)
    raw, body = split.unwrap()

    parsed = parse_frontmatter(raw, fmt)
    if not parsed.ok:
        return propagate(parsed)
    data = FrontmatterData.create(parsed.unwrap())
    if not data.ok:
        return propagate(data)
    return success(Extraction(frontmatter=data.unwrap(), body=body, format=fmt, raw=raw))


def parse_frontmatter(raw: str, fmt: FrontmatterFormat) -> Result[dict[str, Any]]:
    """Parse a raw frontmatter block into a plain mapping."""
    label = fmt.value.upper()
    if not raw.strip():
        return failure(ErrorKind.EMPTY_INPUT, f"{label} frontmatter is empty")
    try:
        if fmt is FrontmatterFormat.YAML:
            loaded = _new_yaml().load(raw)
        elif fmt is FrontmatterFormat.JSON:
            loaded = json.loads(raw)
        else:
            loaded = tomllib.loads(raw)
    except (YAMLError, json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        return failure(
            ErrorKind.PARSE_ERROR,
            f"Invalid {label} frontmatter: {exc}",
            input=raw[:100],
        )

    if loaded is None or loaded == {}:
        return failure(ErrorKind.EMPTY_INPUT, f"{label} frontmatter is empty")
    if not isinstance(loaded, dict):
        return failure(
            ErrorKind.INVALID_FORMAT,
            f"{label} frontmatter must be a mapping, got {type(loaded).__name__}",
            input=raw[:100],
        )
    return success(loaded)


def read_document(path: Path, content: str) -> Result[MarkdownDocument]:
    """Build a :class:`MarkdownDocument` from a file's text."""
    extraction = extract(content)
    if not extraction.ok:
        return propagate(extraction)
    ex = extraction.unwrap()
    return success(
        MarkdownDocument(
            path=path,
            content=content,
            body=ex.body,
            frontmatter=ex.frontmatter,
            format=ex.format,
        )
    )


def _split_fenced(content: str, fence: str, fmt: FrontmatterFormat) -> Result[tuple[str, str]]:
    label = fmt.value.upper()
    lines = content.split("\n")
    end_idx: int | None = None
    for i, line in enumerate(lines[1:], start=1):
        if line.rstrip() == fence:
            end_idx = i
            break

    if end_idx is None:
        return failure(
            ErrorKind.INVALID_FORMAT,
            f"{label} frontmatter is not closed with {fence}",
            input=content[:100],
        )

    block = "\n".join(lines[1:end_idx])
    if not block.strip():
        return failure(ErrorKind.EMPTY_INPUT, f"{label} frontmatter is empty")
    body = "\n".join(lines[end_idx + 1 :])
    return success((block, body))


def _split_json(content: str) -> Result[tuple[str, str]]:
    """Find the end of the leading JSON object by brace counting."""
    depth = 0
    in_string = False
    escaped = False
    end: int | None = None
    for i, char in enumerate(content):
        if escaped:
            escaped = False
            continue
        if in_string:
            if char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                end = i + 1
                break

    if end is None:
        return failure(
            ErrorKind.INVALID_FORMAT,
            "JSON frontmatter is not properly closed",
            input=content[:100],
        )

    body = content[end:]
    # Drop the rest of the closing line so the body starts like a fenced one.
    newline = body.find("\n")
    if newline != -1 and not body[:newline].strip():
        body = body[newline + 1 :]
    elif not body.strip():
        body = ""
    return success((content[:end], body))
