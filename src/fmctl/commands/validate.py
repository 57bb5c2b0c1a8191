"""Command: validate documents against a schema without aggregating."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from fmctl.commands._base import FmCommand

if TYPE_CHECKING:
    from fmctl.commands._context import AppContext


@click.command(
    cls=FmCommand,
    examples="""\
  fmctl validate schema.json docs/
  fmctl -v validate schema.json "docs/*.md"
  fmctl --json validate schema.yaml docs/""",
)
@click.argument("schema")
@click.argument("input_pattern", metavar="INPUT")
@click.pass_obj
def validate(app: AppContext, schema: str, input_pattern: str) -> None:
    """Check each file in INPUT against the per-document rules of SCHEMA.

    Exits 1 when any file fails.
    """
    from fmctl.services.validate import ValidateService

    app.emit(ValidateService(app.workspace).validate(schema, input_pattern))
