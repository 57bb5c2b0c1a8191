"""Root CLI group for fmctl with global flags and command registration."""

from __future__ import annotations

import click

from fmctl import __version__
from fmctl.commands import register_commands
from fmctl.commands._base import FmGroup
from fmctl.commands._context import AppContext
from fmctl.config.logging import bind_command
from fmctl.config.settings import FmSettings


@click.group(
    cls=FmGroup,
    invoke_without_command=True,
    examples="""\
  fmctl transform schema.json docs/ -o registry.json
  fmctl validate schema.json docs/
  fmctl extract docs/intro.md
  fmctl -c ci/fmctl.toml --json transform schema.json docs/""",
)
@click.version_option(version=__version__, prog_name="fmctl")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug info.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
) -> None:
    """fmctl — Markdown frontmatter extraction, aggregation, and rendering."""
    # Unset flags defer to env vars and fmctl.toml.
    flags = {
        "json_output": json_output,
        "quiet": quiet,
        "verbose": verbose,
        "log_json": log_json,
    }
    settings = FmSettings.from_cli(
        config_path=config_path,
        **{name: True for name, value in flags.items() if value},
    )
    ctx.obj = AppContext(settings)
    bind_command(ctx.invoked_subcommand)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
