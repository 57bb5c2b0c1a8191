"""BaseService — foundation for all fmctl services.

Every service receives a :class:`Workspace` at construction time. The
workspace provides settings, path resolution, and the file collaborators.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from fmctl.domain.result import Result
from fmctl.infrastructure.schema_loader import LoadedSchema, load_schema

if TYPE_CHECKING:
    from fmctl.infrastructure.workspace import Workspace

logger = logging.getLogger(__name__)


class BaseService:
    """Base for service-layer classes.

    Usage::

        class ExtractService(BaseService):
            def extract(self, path: str) -> ServiceResult:
                text = self._workspace.reader.read(...)
                ...
    """

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    def _load_schema(self, schema_path: str | Path) -> Result[LoadedSchema]:
        path = self._workspace.resolve(schema_path)
        logger.debug("Loading schema from %s", path)
        return load_schema(path)
