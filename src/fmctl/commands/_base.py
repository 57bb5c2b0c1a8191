"""Click command classes shared by every fmctl command.

Each command may carry an ``examples`` block. It is kept out of ``--help``
(which only points at it) and printed by an eager ``--examples`` flag.
"""

from __future__ import annotations

import inspect
from typing import Any

import click


class _ExamplesMixin:
    examples: str | None = None

    def _init_examples(self, examples: str | None) -> None:
        self.examples = inspect.cleandoc(examples) if examples else None
        if self.examples:
            self.params.append(  # type: ignore[attr-defined]
                click.Option(
                    ["--examples"],
                    is_flag=True,
                    expose_value=False,
                    is_eager=True,
                    callback=self._print_examples,
                    help="Show usage examples and exit.",
                )
            )

    def _print_examples(self, ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value or ctx.resilient_parsing:
            return
        formatter = ctx.make_formatter()
        with formatter.section(f"Examples for '{ctx.command_path}'"):
            formatter.write_text("\b\n" + (self.examples or ""))
        click.echo(formatter.getvalue().rstrip("\n"))
        ctx.exit(0)

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        super().format_epilog(ctx, formatter)  # type: ignore[misc]
        if self.examples:
            formatter.write_paragraph()
            formatter.write_text("Run with --examples to see usage examples.")


class FmCommand(_ExamplesMixin, click.Command):
    """Command accepting an ``examples=`` keyword."""

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._init_examples(examples)


class FmGroup(_ExamplesMixin, click.Group):
    """Group accepting ``examples=``; its subcommands default to :class:`FmCommand`."""

    command_class = FmCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._init_examples(examples)
