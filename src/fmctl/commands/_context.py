"""AppContext — shared Click context for all commands.

Created once by the root CLI group and passed to subcommands via
``@click.pass_obj``. Owns lazy workspace construction and result emission
(stdout/stderr routing and exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from fmctl.config.logging import configure_logging
from fmctl.output.formatters import OutputSettings, format_result
from fmctl.services.telemetry import enable_telemetry

if TYPE_CHECKING:
    from fmctl.config.settings import FmSettings
    from fmctl.infrastructure.workspace import Workspace
    from fmctl.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy."""

    def __init__(self, settings: FmSettings) -> None:
        self.settings = settings
        self._workspace: Workspace | None = None

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)
        if settings.verbose:
            enable_telemetry()

    @property
    def workspace(self) -> Workspace:
        """The workspace (created on first access)."""
        if self._workspace is None:
            from fmctl.infrastructure.workspace import Workspace

            self._workspace = Workspace.from_settings(self.settings)
        return self._workspace

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: stdout; warnings go to stderr outside JSON mode.
        * Failure: stderr, exit code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            if not settings.json_output:
                self._echo_warnings(result)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)

    def emit_text(self, result: ServiceResult, text: str) -> None:
        """Write rendered document text verbatim to stdout.

        Used when a transform has no output file; the status report would
        otherwise pollute piped output.
        """
        click.echo(text, nl=not text.endswith("\n"))
        if not self.settings.quiet:
            self._echo_warnings(result)

    @staticmethod
    def _echo_warnings(result: ServiceResult) -> None:
        for warning in result.warnings:
            click.echo(f"WARNING: {warning}", err=True)
