"""Operation-specific Rich renderers for ServiceResult.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from fmctl.output.console import create_console, get_output, style_for_format

if TYPE_CHECKING:
    from rich.console import Console

    from fmctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()
    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)
    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} — {msg}"
    if "output" in result.data:
        return str(result.data["output"])
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text("OK", style="fm.ok"), Text(f"  {result.op}", style="fm.op"))


def _field(console: Console, key: str, value: Any) -> None:
    k = Text(f"  {key}: ", style="fm.key")
    if key in ("path", "output", "schema"):
        v = Text(str(value), style="fm.path")
    elif key.endswith("_count"):
        v = Text(str(value), style="fm.count")
    elif isinstance(value, (dict, list)):
        v = Text(json.dumps(value, separators=(",", ":"), default=str))
    else:
        v = Text(str(value))
    console.print(Text.assemble(k, v))


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print the telemetry span tree (verbose only)."""
    if not result.meta:
        return
    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(console: Console, span_data: dict[str, Any], indent: int = 4) -> None:
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)
    style = "bold red" if duration > 1000 else "yellow" if duration > 100 else "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {name}"
    annotations = span_data.get("annotations") or {}
    if annotations:
        line += "  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")"
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _file_table(files: list[dict[str, Any]], *, verbose: bool = False) -> Table:
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Status", no_wrap=True)
    table.add_column("Path", style="fm.path")
    table.add_column("Issues")
    for entry in files:
        if not entry.get("valid") or verbose:
            status = "[fm.ok]ok[/fm.ok]" if entry.get("valid") else "[fm.error]fail[/fm.error]"
            issues = [*entry.get("errors", []), *entry.get("warnings", [])]
            table.add_row(status, Text(str(entry.get("path", ""))), Text("\n".join(issues)))
    return table


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = f" [{err.code}]" if err else ""
    console.print(
        Text("ERROR", style="fm.error"),
        Text(f"  {result.op}", style="fm.op"),
        Text(f"{code} — {msg}"),
    )

    files = result.data.get("files")
    if isinstance(files, list) and files:
        console.print(_file_table(files, verbose=verbose))
    for failure in result.data.get("failures", []):
        console.print(Text("  excluded", style="fm.warning"), Text(str(failure)))

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(Text(f"    {k}: {v}"))


# ── Operation renderers ───────────────────────────────────────────────


def _render_transform(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key in ("output", "schema", "document_count", "item_count", "failure_count"):
        if key in result.data:
            _field(console, key, result.data[key])
    if verbose:
        for failure in result.data.get("failures", []):
            console.print(
                Text(f"    {failure.get('path')}: {failure.get('kind')}: {failure.get('message')}")
            )
        _render_meta(console, result)


def _render_extract(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    d = result.data
    _field(console, "path", d.get("path"))
    fmt = d.get("format")
    console.print(
        Text.assemble(
            Text("  format: ", style="fm.key"),
            Text(str(fmt or "none"), style=style_for_format(fmt)),
        )
    )

    frontmatter = d.get("frontmatter")
    if frontmatter:
        table = Table(show_header=True, pad_edge=False, expand=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for key, value in frontmatter.items():
            shown = value if isinstance(value, str) else json.dumps(value, default=str)
            table.add_row(key, Text(str(shown)))
        console.print(table)

    _field(console, "body_length", d.get("body_length", 0))
    if verbose:
        if d.get("body_preview"):
            console.print(Text(d["body_preview"], style="dim"))
        _render_meta(console, result)


def _render_validate(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    console.print(
        Text("OK", style="fm.ok"),
        Text(f"  {d.get('valid_count', 0)} files valid", style="fm.op"),
    )
    _field(console, "schema", d.get("schema"))
    _field(console, "rule_count", d.get("rule_count", 0))
    if verbose:
        console.print(_file_table(d.get("files", []), verbose=True))
        _render_meta(console, result)


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "transform": _render_transform,
    "extract": _render_extract,
    "validate": _render_validate,
}
