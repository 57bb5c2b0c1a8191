"""Field-path expressions — ``a.b[0].c`` and ``commands[].name``.

Two entry points share one grammar and one step type:

- :func:`parse_path` is strict. Every bracket must hold a non-negative
  integer index. Used for programmatic lookups (``FrontmatterData.get``,
  derivation targets, template placeholders).
- :func:`parse_source_path` also accepts an empty bracket ``[]`` and emits a
  :class:`WildcardStep` meaning "every element". Used for ``x-derived-from``
  source paths only.

Grammar::

    path       := segment ('.' segment)* '.'?
    segment    := identifier ('[' digits? ']')*
    identifier := [A-Za-z_$][A-Za-z0-9_$]*
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from fmctl.domain.result import ErrorKind, Result, failure, success

_SEGMENT_RE = re.compile(r"^([A-Za-z_$][A-Za-z0-9_$]*)((?:\[[^\[\]]*\])*)$")
_BRACKET_RE = re.compile(r"\[([^\[\]]*)\]")


@dataclass(frozen=True)
class PropertyStep:
    """Access a mapping key."""

    name: str


@dataclass(frozen=True)
class IndexStep:
    """Access a list element by position."""

    index: int


@dataclass(frozen=True)
class WildcardStep:
    """Fan out over every element of a list."""


type Step = PropertyStep | IndexStep | WildcardStep


def parse_path(text: str) -> Result[list[Step]]:
    """Parse a strict path; ``[]`` is rejected."""
    return _parse(text, allow_wildcard=False)


def parse_source_path(text: str) -> Result[list[Step]]:
    """Parse a derivation source path; ``[]`` becomes a :class:`WildcardStep`."""
    return _parse(text, allow_wildcard=True)


def format_path(steps: list[Step]) -> str:
    """Render steps back into path text."""
    out: list[str] = []
    for step in steps:
        match step:
            case PropertyStep(name=name):
                out.append(f".{name}" if out else name)
            case IndexStep(index=index):
                out.append(f"[{index}]")
            case WildcardStep():
                out.append("[]")
    return "".join(out)


def _parse(text: str, *, allow_wildcard: bool) -> Result[list[Step]]:
    if not text or not text.strip():
        return failure(ErrorKind.EMPTY_INPUT, "Path expression cannot be empty")

    path = text.strip()
    if path.startswith("."):
        return failure(ErrorKind.PARSE_ERROR, f"Path cannot start with a dot: {path!r}", path=path)

    segments = path.split(".")
    # A single trailing dot leaves one empty segment at the end; tolerate it.
    if segments[-1] == "":
        segments.pop()

    steps: list[Step] = []
    for position, segment in enumerate(segments):
        if segment == "":
            return failure(
                ErrorKind.PARSE_ERROR,
                f"Consecutive dots at segment {position} in {path!r}",
                path=path,
                position=position,
            )
        match = _SEGMENT_RE.match(segment)
        if match is None:
            return failure(
                ErrorKind.PARSE_ERROR,
                f"Invalid path segment {segment!r} in {path!r}",
                path=path,
                position=position,
            )
        steps.append(PropertyStep(match.group(1)))
        for inner in _BRACKET_RE.findall(match.group(2)):
            if inner == "":
                if not allow_wildcard:
                    return failure(
                        ErrorKind.PARSE_ERROR,
                        f"Empty brackets are not allowed here: {path!r}",
                        path=path,
                        position=position,
                    )
                steps.append(WildcardStep())
            elif inner.isascii() and inner.isdigit():
                steps.append(IndexStep(int(inner)))
            else:
                return failure(
                    ErrorKind.PARSE_ERROR,
                    f"Array index must be a non-negative integer, got [{inner}] in {path!r}",
                    path=path,
                    position=position,
                )
    return success(steps)
