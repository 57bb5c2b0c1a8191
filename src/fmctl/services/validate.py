"""ValidateService — per-file validation against a schema, no aggregation.

Uses the same listing, bounds check, and per-document stage as the
transformation pipeline, so a file that validates here is one that
``transform`` would include.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fmctl.domain.result import DomainError, ErrorKind
from fmctl.domain.schema import find_frontmatter_part_path, validation_rules_for
from fmctl.services.base import BaseService
from fmctl.services.pipeline import TransformationPipeline
from fmctl.services.result import ServiceResult, failed
from fmctl.services.telemetry import traced


class ValidateService(BaseService):
    """Report which input files satisfy a schema's per-document rules."""

    @traced
    def validate(self, schema_path: str | Path, input_pattern: str) -> ServiceResult:
        op = "validate"
        loaded = self._load_schema(schema_path)
        if not loaded.ok:
            return failed(op, loaded.error)
        schema = loaded.unwrap()

        pipeline = TransformationPipeline(
            self._workspace.reader,
            self._workspace.lister,
            bounds=self._workspace.settings.bounds.to_bounds(),
        )
        listed = pipeline.list_within_bounds(input_pattern)
        if not listed.ok:
            return failed(op, listed.error)

        rules = validation_rules_for(schema.node)
        part = find_frontmatter_part_path(schema.node)
        part_path = part.value if part.ok else None
        files: list[dict[str, Any]] = []
        warnings: list[str] = []
        for path in listed.unwrap():
            outcome = pipeline.process_document(path, rules, part_path=part_path)
            if outcome.ok:
                doc_warnings = outcome.unwrap().warnings
                files.append({"path": path, "valid": True, "errors": [], "warnings": doc_warnings})
                warnings.extend(f"{path}: {w}" for w in doc_warnings)
                continue
            error = outcome.error
            assert error is not None
            errors = error.detail.get("errors") or [error.message]
            files.append(
                {
                    "path": path,
                    "valid": False,
                    "kind": str(error.kind),
                    "errors": list(errors),
                    "warnings": [],
                }
            )

        invalid = sum(1 for f in files if not f["valid"])
        data = {
            "schema": str(schema.path),
            "rule_count": len(rules),
            "files": files,
            "valid_count": len(files) - invalid,
            "invalid_count": invalid,
        }
        if invalid:
            error = DomainError(
                ErrorKind.VALIDATION_FAILED,
                f"{invalid} of {len(files)} files failed validation",
            )
            return failed(op, error, warnings=warnings, data=data)
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)
