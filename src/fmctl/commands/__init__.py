"""Subcommand modules for fmctl.

Commands import their services inside the callback, so ``fmctl --help``
never loads the pipeline.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all standalone commands on the root CLI group."""
    from fmctl.commands.extract import extract
    from fmctl.commands.transform import transform
    from fmctl.commands.validate import validate

    cli.add_command(transform)
    cli.add_command(extract)
    cli.add_command(validate)
