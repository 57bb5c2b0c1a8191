"""Command: show one document's parsed frontmatter."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from fmctl.commands._base import FmCommand

if TYPE_CHECKING:
    from fmctl.commands._context import AppContext


@click.command(
    cls=FmCommand,
    examples="""\
  fmctl extract docs/intro.md
  fmctl --json extract docs/intro.md
  fmctl -v extract docs/intro.md""",
)
@click.argument("path")
@click.pass_obj
def extract(app: AppContext, path: str) -> None:
    """Parse the frontmatter of a single Markdown file."""
    from fmctl.services.extract import ExtractService

    app.emit(ExtractService(app.workspace).extract(path))
