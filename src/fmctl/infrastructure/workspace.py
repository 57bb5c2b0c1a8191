"""Workspace — the single dependency injected into every service.

Bundles the resolved root directory, the active settings, and the file
collaborators the pipeline reads through. Relative paths given on the
command line resolve against :attr:`Workspace.root`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from fmctl.infrastructure.filesystem import FileLister, FileReader, GlobFileLister, LocalFileReader

if TYPE_CHECKING:
    from fmctl.config.settings import FmSettings


@dataclass
class Workspace:
    root: Path
    settings: FmSettings
    reader: FileReader
    lister: FileLister

    @classmethod
    def from_settings(cls, settings: FmSettings) -> Workspace:
        """Build a workspace backed by the local filesystem."""
        root = settings.workspace_root.resolve()
        return cls(
            root=root,
            settings=settings,
            reader=LocalFileReader(),
            lister=GlobFileLister(root, settings.pipeline.extensions),
        )

    def resolve(self, path: str | Path) -> Path:
        """Resolve *path* against the workspace root (absolute paths pass through)."""
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            return candidate
        return self.root / candidate
