"""Allow ``python -m fmctl``."""

from fmctl.cli import cli

cli()
