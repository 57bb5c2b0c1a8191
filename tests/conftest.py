"""Shared pytest fixtures and test helpers for fmctl tests."""

from __future__ import annotations

import json
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from fmctl.config.settings import FmSettings
from fmctl.domain.result import ErrorKind, Result, failure, success
from fmctl.infrastructure.workspace import Workspace
from fmctl.services.telemetry import disable_telemetry


@pytest.fixture(autouse=True)
def _reset_telemetry() -> Generator[None]:
    """Keep telemetry off between tests; ``-v`` invocations switch it on."""
    yield
    disable_telemetry()


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """Temporary workspace with an empty ``docs/`` directory."""
    (tmp_path / "docs").mkdir()
    return tmp_path


@pytest.fixture
def workspace(workspace_root: Path) -> Workspace:
    """Workspace rooted at the temporary directory."""
    settings = FmSettings.from_cli(workspace_root=workspace_root)
    return Workspace.from_settings(settings)


@pytest.fixture
def _isolated_workspace(workspace_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to the temp workspace so the CLI resolves paths there.

    Use via ``@pytest.mark.usefixtures("_isolated_workspace")`` on command
    test classes.
    """
    monkeypatch.chdir(workspace_root)
    monkeypatch.delenv("FMCTL_CONFIG", raising=False)


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def write_md(directory: Path, name: str, frontmatter: str, body: str = "Body.\n") -> Path:
    """Write a Markdown file with a YAML frontmatter block."""
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"---\n{frontmatter.strip()}\n---\n{body}", encoding="utf-8")
    return path


def write_json(path: Path, payload: Any) -> Path:
    """Write *payload* as JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


REGISTRY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "version": {"type": "string", "default": "1.0.0"},
        "tools": {
            "type": "object",
            "properties": {
                "availableConfigs": {
                    "type": "array",
                    "x-derived-from": "tools.commands[].c1",
                    "x-derived-unique": True,
                },
                "commands": {
                    "type": "array",
                    "x-frontmatter-part": True,
                    "items": {
                        "type": "object",
                        "required": ["c1"],
                        "properties": {
                            "c1": {"type": "string"},
                            "title": {"type": "string"},
                        },
                    },
                },
            },
        },
    },
}


class SpyReader:
    """In-memory :class:`~fmctl.infrastructure.filesystem.FileReader`.

    Records every ``read`` and ``size`` call so tests can assert that bounds
    checks reject input before any content is touched.
    """

    def __init__(self, files: dict[str, str], sizes: dict[str, int] | None = None) -> None:
        self.files = files
        self.sizes = sizes or {}
        self.reads: list[str] = []
        self.size_calls: list[str] = []

    def read(self, path: str) -> Result[str]:
        self.reads.append(str(path))
        if str(path) not in self.files:
            return failure(ErrorKind.FILE_NOT_FOUND, f"File not found: {path}", path=str(path))
        return success(self.files[str(path)])

    def size(self, path: str) -> Result[int]:
        self.size_calls.append(str(path))
        key = str(path)
        if key in self.sizes:
            return success(self.sizes[key])
        if key not in self.files:
            return failure(ErrorKind.FILE_NOT_FOUND, f"File not found: {path}", path=key)
        return success(len(self.files[key].encode("utf-8")))


class StaticLister:
    """In-memory :class:`~fmctl.infrastructure.filesystem.FileLister`."""

    def __init__(self, paths: list[str]) -> None:
        self.paths = list(paths)

    def list(self, pattern: str) -> Result[list[str]]:
        if not pattern:
            return failure(ErrorKind.EMPTY_INPUT, "Input pattern cannot be empty")
        return success(list(self.paths))


def md(frontmatter: str, body: str = "Body.\n") -> str:
    """Build Markdown text with a YAML frontmatter block."""
    return f"---\n{frontmatter.strip()}\n---\n{body}"
