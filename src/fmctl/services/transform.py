"""TransformService — schema + inputs in, rendered output out.

Loads the schema, runs the :class:`TransformationPipeline`, renders the
aggregate through the schema's templates (``x-template`` and, for dual
rendering, ``x-template-items``), and writes the result. Template paths
resolve relative to the schema file.

Without ``x-template`` the aggregate is serialized directly: YAML when the
output path ends in ``.yaml``/``.yml``, JSON otherwise.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from fmctl.domain.result import DomainError, ErrorKind, Result, propagate
from fmctl.domain.schema import SchemaNode
from fmctl.infrastructure.filesystem import write_output
from fmctl.infrastructure.templates import TemplateDescriptor, TemplateFormat, TemplateRenderer
from fmctl.services.base import BaseService
from fmctl.services.pipeline import PipelineOptions, PipelineOutput, TransformationPipeline
from fmctl.services.result import ServiceResult, failed
from fmctl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)


class TransformService(BaseService):
    """Run a full transformation for one schema and input set."""

    @traced
    def transform(
        self,
        schema_path: str | Path,
        input_pattern: str,
        *,
        output: str | Path | None = None,
        base: Mapping[str, Any] | None = None,
    ) -> ServiceResult:
        """Transform *input_pattern* through the schema at *schema_path*.

        When *output* is None the rendered text is returned in
        ``data["rendered"]`` instead of being written.
        """
        op = "transform"
        loaded = self._load_schema(schema_path)
        if not loaded.ok:
            return failed(op, loaded.error)
        schema = loaded.unwrap()

        settings = self._workspace.settings
        pipeline = TransformationPipeline(
            self._workspace.reader,
            self._workspace.lister,
            bounds=settings.bounds.to_bounds(),
            options=PipelineOptions(
                fail_fast=settings.pipeline.fail_fast,
                validate=settings.pipeline.validate_documents,
            ),
        )
        run = pipeline.run(input_pattern, schema.node, base=base)
        if not run.ok:
            return failed(op, run.error, data=_failure_detail(run.error))
        result = run.unwrap()

        output_path = self._workspace.resolve(output) if output is not None else None
        with trace_span("render"):
            rendered = self._render(schema.node, schema.path.parent, result, output_path)
        if not rendered.ok:
            return failed(op, rendered.error, warnings=_warnings(result))
        text = rendered.unwrap()

        data: dict[str, Any] = {
            "schema": str(schema.path),
            "document_count": len(result.documents),
            "item_count": len(result.items),
            "failure_count": len(result.failures),
            "failures": [
                {"path": f.path, "kind": str(f.kind), "message": f.message} for f in result.failures
            ],
        }
        if output_path is None:
            data["rendered"] = text
        else:
            try:
                write_output(output_path, text)
            except OSError as exc:
                error = DomainError(ErrorKind.WRITE_FAILED, f"Cannot write {output_path}: {exc}")
                return failed(op, error, warnings=_warnings(result))
            data["output"] = str(output_path)
            logger.info("Wrote %s", output_path)

        return ServiceResult(ok=True, op=op, data=data, warnings=_warnings(result))

    def _render(
        self,
        schema: SchemaNode,
        schema_dir: Path,
        result: PipelineOutput,
        output_path: Path | None,
    ) -> Result[str]:
        output = self._workspace.settings.output
        renderer = TemplateRenderer(
            indent=output.indent,
            ensure_ascii=output.ensure_ascii,
            workspace_root=self._workspace.root,
        )

        if schema.template is None:
            fmt = TemplateFormat.JSON
            if output_path is not None:
                suffix_format = TemplateFormat.from_suffix(output_path)
                if suffix_format is TemplateFormat.YAML:
                    fmt = suffix_format
            return renderer.render_data(result.data, fmt)

        descriptor = TemplateDescriptor.for_path(
            schema_dir / schema.template, schema.template_format
        )
        if not descriptor.ok:
            return propagate(descriptor)

        items_descriptor: TemplateDescriptor | None = None
        if schema.template_items is not None:
            resolved = TemplateDescriptor.for_path(schema_dir / schema.template_items)
            if not resolved.ok:
                return propagate(resolved)
            items_descriptor = resolved.unwrap()
            if not result.items:
                logger.debug("x-template-items set but the schema has no frontmatter-part items")

        return renderer.render(
            descriptor.unwrap(),
            result.data,
            items=result.items,
            items_descriptor=items_descriptor,
        )


def _warnings(result: PipelineOutput) -> list[str]:
    return [*result.warnings, *(f"Excluded {doc}" for doc in result.failures)]


def _failure_detail(error: DomainError | None) -> dict[str, Any]:
    if error is None or "failures" not in error.detail:
        return {}
    return {"failures": error.detail["failures"]}
