"""Command: transform Markdown frontmatter through a schema."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import click

from fmctl.commands._base import FmCommand

if TYPE_CHECKING:
    from fmctl.commands._context import AppContext


def _parse_base(base_json: str | None, assignments: tuple[str, ...]) -> dict[str, Any]:
    """Build base properties from ``--base`` JSON and ``--set`` overrides."""
    from fmctl.domain.frontmatter import FrontmatterData

    raw: Any = {}
    if base_json:
        try:
            raw = json.loads(base_json)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--base") from exc
        if not isinstance(raw, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--base")

    data = FrontmatterData.create(raw)
    if not data.ok:
        msg = data.error.message if data.error else "invalid"
        raise click.BadParameter(msg, param_hint="--base")
    current = data.unwrap()

    for assignment in assignments:
        key, sep, text = assignment.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {assignment!r}", param_hint="--set")
        try:
            value: Any = json.loads(text)
        except json.JSONDecodeError:
            value = text
        updated = current.with_field(key.strip(), value)
        if not updated.ok:
            msg = updated.error.message if updated.error else "invalid"
            raise click.BadParameter(msg, param_hint="--set")
        current = updated.unwrap()
    return current.to_dict()


@click.command(
    cls=FmCommand,
    examples="""\
  fmctl transform schema.json docs/
  fmctl transform schema.json "docs/**/*.md" -o registry.json
  fmctl transform schema.yaml docs/ --base '{"version": "1.0"}'
  fmctl transform schema.json docs/ --set meta.owner=platform -o out.yaml
  fmctl --json transform schema.json docs/ -o registry.json""",
)
@click.argument("schema")
@click.argument("input_pattern", metavar="INPUT")
@click.option("-o", "--output", default=None, help="Write output to this file (default: stdout).")
@click.option("--base", "base_json", default=None, help="Base properties as a JSON object.")
@click.option(
    "--set",
    "assignments",
    multiple=True,
    metavar="KEY=VALUE",
    help="Set a base property (dot-path key; JSON or plain-string value).",
)
@click.pass_obj
def transform(
    app: AppContext,
    schema: str,
    input_pattern: str,
    output: str | None,
    base_json: str | None,
    assignments: tuple[str, ...],
) -> None:
    """Aggregate frontmatter from INPUT through SCHEMA and render it.

    INPUT is a file, a directory (searched recursively), or a glob pattern.
    """
    from fmctl.services.transform import TransformService

    base = _parse_base(base_json, assignments)
    result = TransformService(app.workspace).transform(
        schema,
        input_pattern,
        output=output,
        base=base or None,
    )
    if result.ok and "rendered" in result.data and not app.settings.json_output:
        app.emit_text(result, result.data["rendered"])
        return
    app.emit(result)
