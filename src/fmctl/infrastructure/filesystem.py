"""File reading, listing, and output writing.

The pipeline depends only on the :class:`FileReader` and :class:`FileLister`
protocols; the local implementations here are what the CLI wires in. Tests
substitute in-memory spies.
"""

from __future__ import annotations

import glob
from pathlib import Path
from typing import Protocol

from fmctl.domain.result import ErrorKind, Result, failure, success

# Directories skipped when a directory input is expanded.
_SKIP_DIRS = frozenset({".git", ".hg", ".svn", ".obsidian", "node_modules", "__pycache__"})

_GLOB_CHARS = frozenset("*?[")


class FileReader(Protocol):
    def read(self, path: str) -> Result[str]: ...

    def size(self, path: str) -> Result[int]: ...


class FileLister(Protocol):
    def list(self, pattern: str) -> Result[list[str]]: ...


# ---------------------------------------------------------------------------
# Local implementations
# ---------------------------------------------------------------------------


class LocalFileReader:
    """UTF-8 reads from the local filesystem."""

    def read(self, path: str) -> Result[str]:
        target = Path(path)
        try:
            return success(target.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return failure(ErrorKind.FILE_NOT_FOUND, f"File not found: {path}", path=path)
        except (OSError, UnicodeDecodeError) as exc:
            return failure(ErrorKind.READ_FAILED, f"Cannot read {path}: {exc}", path=path)

    def size(self, path: str) -> Result[int]:
        try:
            return success(Path(path).stat().st_size)
        except FileNotFoundError:
            return failure(ErrorKind.FILE_NOT_FOUND, f"File not found: {path}", path=path)
        except OSError as exc:
            return failure(ErrorKind.READ_FAILED, f"Cannot stat {path}: {exc}", path=path)


class GlobFileLister:
    """Resolve an input pattern to a sorted list of files.

    - A directory expands recursively to files with one of *extensions*.
    - A pattern containing ``*``, ``?`` or ``[`` is globbed (``**`` recurses).
    - Anything else must name an existing file.

    Relative inputs resolve against *root*.
    """

    def __init__(
        self,
        root: Path,
        extensions: tuple[str, ...] | list[str] = (".md", ".markdown"),
    ) -> None:
        self.root = root
        self.extensions = tuple(ext.lower() for ext in extensions)

    def list(self, pattern: str) -> Result[list[str]]:
        if not pattern or not pattern.strip():
            return failure(ErrorKind.EMPTY_INPUT, "Input pattern cannot be empty")

        candidate = Path(pattern).expanduser()
        if not candidate.is_absolute():
            candidate = self.root / candidate

        if any(char in _GLOB_CHARS for char in pattern):
            matches = glob.glob(str(candidate), recursive=True)
            files = [Path(m) for m in matches if Path(m).is_file() and not self._skipped(Path(m))]
            return success(sorted(str(f) for f in files))

        if candidate.is_dir():
            return success(sorted(str(f) for f in self._walk(candidate)))
        if candidate.is_file():
            return success([str(candidate)])
        return failure(ErrorKind.FILE_NOT_FOUND, f"Input not found: {pattern}", path=pattern)

    def _walk(self, directory: Path) -> list[Path]:
        results: list[Path] = []
        for path in directory.rglob("*"):
            if not path.is_file():
                continue
            if self._skipped(path.relative_to(directory)):
                continue
            if path.suffix.lower() in self.extensions:
                results.append(path)
        return results

    @staticmethod
    def _skipped(path: Path) -> bool:
        return any(part in _SKIP_DIRS for part in path.parts)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def write_output(path: Path, text: str) -> None:
    """Write rendered output, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
