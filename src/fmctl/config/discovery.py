"""Locating and reading fmctl configuration.

Settings live in a dedicated ``fmctl.toml`` or in the ``[tool.fmctl]`` table
of a ``pyproject.toml``. Discovery walks up from the starting directory the
way git looks for ``.git/``; within one directory ``fmctl.toml`` is preferred.
``FMCTL_CONFIG`` names a file directly and skips the walk.
"""

from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any

import click

CONFIG_FILENAME = "fmctl.toml"
PYPROJECT_FILENAME = "pyproject.toml"
CONFIG_ENV_VAR = "FMCTL_CONFIG"

_TOOL_TABLE = re.compile(r"^\s*\[tool\.fmctl[\].]", re.MULTILINE)


class ConfigError(click.ClickException):
    """A config file was found but could not be read."""


def find_config(start: Path | None = None) -> Path | None:
    """Return the config file in effect for *start* (default: cwd), or None.

    A ``pyproject.toml`` only counts when it declares a ``[tool.fmctl]``
    table. An ``FMCTL_CONFIG`` that names a missing file yields None rather
    than a fallback to walk-up.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        return p if p.is_file() else None

    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        dedicated = directory / CONFIG_FILENAME
        if dedicated.is_file():
            return dedicated
        pyproject = directory / PYPROJECT_FILENAME
        if pyproject.is_file() and _TOOL_TABLE.search(_read_text(pyproject)):
            return pyproject
    return None


def read_config_table(path: Path) -> dict[str, Any]:
    """Parse *path* and return the settings table it holds.

    For ``pyproject.toml`` that is ``[tool.fmctl]`` (empty when absent);
    any other file is the table itself.
    """
    try:
        data = tomllib.loads(_read_text(path))
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise ConfigError(msg) from exc

    if path.name != PYPROJECT_FILENAME:
        return data
    tool = data.get("tool", {})
    table = tool.get("fmctl", {}) if isinstance(tool, dict) else {}
    if not isinstance(table, dict):
        msg = f"[tool.fmctl] in {path} must be a table"
        raise ConfigError(msg)
    return table


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read config file {path}: {exc.strerror or exc}"
        raise ConfigError(msg) from exc
