"""Template rendering for aggregated frontmatter.

Two template families:

- **Structural** (``.json``, ``.yaml``/``.yml``): the template is parsed as
  data and every string is scanned for ``{path}`` / ``{{path}}``
  placeholders resolved against the aggregate. A string that is exactly one
  placeholder takes the native value (lists stay lists); embedded
  placeholders are stringified. Unknown placeholders are left verbatim.
  The string ``"{@items}"`` expands to the rendered item list.
- **Markdown** (anything else): a Jinja2 template rendered with the
  aggregate's top-level fields plus ``items``. Undefined names fail the
  render, and a ``to_json`` filter dumps any value as compact JSON.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import StrEnum
from io import StringIO
from pathlib import Path
from typing import Any

from jinja2 import (
    BaseLoader,
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
)
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from fmctl.domain.frontmatter import FrontmatterData
from fmctl.domain.result import ErrorKind, Result, failure, propagate, success

_PATH = r"[A-Za-z_$][A-Za-z0-9_$]*(?:\[\d+\])*(?:\.[A-Za-z_$][A-Za-z0-9_$]*(?:\[\d+\])*)*"
_PLACEHOLDER_RE = re.compile(r"\{\{\s*(" + _PATH + r")\s*\}\}|\{(" + _PATH + r")\}")
_ITEMS_MARKER = "{@items}"


class TemplateFormat(StrEnum):
    JSON = "json"
    YAML = "yaml"
    MARKDOWN = "markdown"

    @classmethod
    def from_suffix(cls, path: Path) -> TemplateFormat:
        suffix = path.suffix.lower()
        if suffix == ".json":
            return cls.JSON
        if suffix in (".yaml", ".yml"):
            return cls.YAML
        return cls.MARKDOWN


@dataclass(frozen=True)
class TemplateDescriptor:
    """Where a template lives and how to interpret it."""

    path: Path
    format: TemplateFormat

    @classmethod
    def for_path(cls, path: Path, declared: str | None = None) -> Result[TemplateDescriptor]:
        """Resolve the format from *declared* (``x-template-format``) or the suffix."""
        if declared is None:
            return success(cls(path=path, format=TemplateFormat.from_suffix(path)))
        try:
            fmt = TemplateFormat(declared.lower())
        except ValueError:
            return failure(
                ErrorKind.CONFIGURATION_ERROR,
                f"Unknown template format {declared!r} (expected json, yaml or markdown)",
            )
        return success(cls(path=path, format=fmt))


def _new_yaml() -> YAML:
    y = YAML(typ="safe", pure=True)
    y.default_flow_style = False
    y.allow_unicode = True
    return y


def build_template_environment(
    template_dir: Path,
    *,
    workspace_root: Path | None = None,
) -> Environment:
    """Build a Jinja2 environment with workspace overrides before *template_dir*.

    Overrides are loaded from ``.fmctl/templates/`` inside the workspace.
    """
    loaders: list[BaseLoader] = []
    if workspace_root is not None:
        loaders.append(FileSystemLoader(str(workspace_root / ".fmctl" / "templates")))
    loaders.append(FileSystemLoader(str(template_dir)))
    env = Environment(
        loader=ChoiceLoader(loaders),
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.filters["to_json"] = _to_json
    return env


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _json_default(value: Any) -> Any:
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def _to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=_json_default)


def serialize(
    value: Any,
    fmt: TemplateFormat,
    *,
    indent: int = 2,
    ensure_ascii: bool = False,
) -> str:
    """Dump *value* as JSON or YAML text ending in a newline."""
    if fmt is TemplateFormat.YAML:
        buf = StringIO()
        _new_yaml().dump(value, buf)
        return buf.getvalue()
    return json.dumps(value, indent=indent, ensure_ascii=ensure_ascii, default=_json_default) + "\n"


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=_json_default)
    return str(value)


# ---------------------------------------------------------------------------
# Placeholder substitution
# ---------------------------------------------------------------------------


def substitute(template: Any, data: FrontmatterData, *, items: list[Any] | None = None) -> Any:
    """Resolve placeholders throughout a parsed structural template."""
    if isinstance(template, dict):
        return {key: substitute(value, data, items=items) for key, value in template.items()}
    if isinstance(template, list):
        out: list[Any] = []
        for element in template:
            # A bare marker inside a list splices the items in place.
            if element == _ITEMS_MARKER and items is not None:
                out.extend(items)
            else:
                out.append(substitute(element, data, items=items))
        return out
    if isinstance(template, str):
        return _substitute_string(template, data, items)
    return template


def _substitute_string(text: str, data: FrontmatterData, items: list[Any] | None) -> Any:
    if text == _ITEMS_MARKER:
        return list(items) if items is not None else text

    whole = _PLACEHOLDER_RE.fullmatch(text.strip())
    if whole is not None:
        lookup = data.get(whole.group(1) or whole.group(2))
        return lookup.value if lookup.ok else text

    def replace(match: re.Match[str]) -> str:
        lookup = data.get(match.group(1) or match.group(2))
        return _stringify(lookup.value) if lookup.ok else match.group(0)

    return _PLACEHOLDER_RE.sub(replace, text)


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Render aggregated data through a template descriptor."""

    def __init__(
        self,
        *,
        indent: int = 2,
        ensure_ascii: bool = False,
        workspace_root: Path | None = None,
    ) -> None:
        self.indent = indent
        self.ensure_ascii = ensure_ascii
        self.workspace_root = workspace_root

    def render(
        self,
        descriptor: TemplateDescriptor,
        data: FrontmatterData,
        *,
        items: list[dict[str, Any]] | None = None,
        items_descriptor: TemplateDescriptor | None = None,
    ) -> Result[str]:
        """Render *data*; with *items_descriptor*, each item is rendered first.

        The rendered items fill ``{@items}`` (structural) or ``items``
        (Jinja2).
        """
        rendered_items: list[Any] | None = items
        if items is not None and items_descriptor is not None:
            rendered = self._render_items(items_descriptor, items)
            if not rendered.ok:
                return propagate(rendered)
            rendered_items = rendered.unwrap()

        if descriptor.format is TemplateFormat.MARKDOWN:
            return self._render_markdown(descriptor, data.to_dict(), rendered_items)
        loaded = self._load_structural(descriptor)
        if not loaded.ok:
            return propagate(loaded)
        value = substitute(loaded.unwrap(), data, items=rendered_items)
        return self._serialize(value, descriptor.format)

    def render_data(self, data: FrontmatterData, fmt: TemplateFormat) -> Result[str]:
        """Serialize *data* as-is when no template is configured."""
        if fmt is TemplateFormat.MARKDOWN:
            return failure(ErrorKind.RENDER_FAILED, "Markdown output requires a template")
        return self._serialize(data.to_dict(), fmt)

    # --- internals ---

    def _render_items(
        self,
        descriptor: TemplateDescriptor,
        items: list[dict[str, Any]],
    ) -> Result[list[Any]]:
        if descriptor.format is TemplateFormat.MARKDOWN:
            out: list[Any] = []
            for item in items:
                text = self._render_markdown(descriptor, item, None)
                if not text.ok:
                    return propagate(text)
                out.append(text.unwrap())
            return success(out)

        loaded = self._load_structural(descriptor)
        if not loaded.ok:
            return propagate(loaded)
        template = loaded.unwrap()
        out = []
        for item in items:
            item_data = FrontmatterData.create(item)
            if not item_data.ok:
                return failure(ErrorKind.RENDER_FAILED, f"Invalid item: {item_data.error}")
            out.append(substitute(template, item_data.unwrap()))
        return success(out)

    def _load_structural(self, descriptor: TemplateDescriptor) -> Result[Any]:
        text = self._read(descriptor.path)
        if not text.ok:
            return propagate(text)
        try:
            if descriptor.format is TemplateFormat.YAML:
                return success(_new_yaml().load(text.unwrap()))
            return success(json.loads(text.unwrap()))
        except (json.JSONDecodeError, YAMLError) as exc:
            return failure(
                ErrorKind.PARSE_ERROR,
                f"Invalid {descriptor.format} template {descriptor.path}: {exc}",
                path=str(descriptor.path),
            )

    def _render_markdown(
        self,
        descriptor: TemplateDescriptor,
        context: dict[str, Any],
        items: list[Any] | None,
    ) -> Result[str]:
        env = build_template_environment(descriptor.path.parent, workspace_root=self.workspace_root)
        variables = dict(context)
        if items is not None:
            variables["items"] = items
        else:
            variables.setdefault("items", [])
        try:
            template = env.get_template(descriptor.path.name)
            return success(template.render(variables))
        except TemplateError as exc:
            return failure(
                ErrorKind.RENDER_FAILED,
                f"Template {descriptor.path} failed: {exc}",
                path=str(descriptor.path),
            )

    def _serialize(self, value: Any, fmt: TemplateFormat) -> Result[str]:
        try:
            text = serialize(value, fmt, indent=self.indent, ensure_ascii=self.ensure_ascii)
        except (TypeError, ValueError, YAMLError) as exc:
            return failure(ErrorKind.RENDER_FAILED, f"Cannot serialize output as {fmt}: {exc}")
        return success(text)

    @staticmethod
    def _read(path: Path) -> Result[str]:
        try:
            return success(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return failure(ErrorKind.FILE_NOT_FOUND, f"Template not found: {path}", path=str(path))
        except (OSError, UnicodeDecodeError) as exc:
            return failure(
                ErrorKind.READ_FAILED,
                f"Cannot read template {path}: {exc}",
                path=str(path),
            )
