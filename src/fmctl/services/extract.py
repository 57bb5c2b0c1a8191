"""ExtractService — inspect one document's frontmatter."""

from __future__ import annotations

from pathlib import Path

from fmctl.domain.frontmatter import read_document
from fmctl.services.base import BaseService
from fmctl.services.result import ServiceResult, failed
from fmctl.services.telemetry import traced

_PREVIEW_CHARS = 200


class ExtractService(BaseService):
    """Read a single Markdown file and report its frontmatter and body."""

    @traced
    def extract(self, path: str | Path) -> ServiceResult:
        op = "extract"
        target = self._workspace.resolve(path)
        text = self._workspace.reader.read(str(target))
        if not text.ok:
            return failed(op, text.error)

        parsed = read_document(target, text.unwrap())
        if not parsed.ok:
            return failed(op, parsed.error, data={"path": str(target)})
        document = parsed.unwrap()

        warnings: list[str] = []
        if document.frontmatter is None:
            warnings.append(f"No frontmatter found in {target}")

        body = document.body.strip()
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "path": str(target),
                "format": str(document.format) if document.format else None,
                "frontmatter": document.frontmatter.to_dict() if document.frontmatter else None,
                "body_length": len(document.body),
                "body_preview": body[:_PREVIEW_CHARS],
            },
            warnings=warnings,
        )
