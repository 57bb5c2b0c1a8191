"""Rich Console factory and theme for fmctl output.

Consoles render to a StringIO buffer, preserving the
``format_result() -> str`` contract. In non-TTY environments (tests,
pipes) Rich disables color codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

FM_THEME = Theme(
    {
        "fm.ok": "bold green",
        "fm.error": "bold red",
        "fm.warning": "bold yellow",
        "fm.op": "bold cyan",
        "fm.key": "dim",
        "fm.path": "dim",
        "fm.count": "magenta",
        "fm.format.yaml": "green",
        "fm.format.json": "blue",
        "fm.format.toml": "yellow",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=FM_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_format(fmt: str | None) -> str:
    """Rich style for a frontmatter format name."""
    return f"fm.format.{fmt}" if fmt in ("yaml", "json", "toml") else ""
