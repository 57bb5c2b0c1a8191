"""TransformationPipeline — list, bound, extract, validate, aggregate.

Stages, in order:

1. Resolve validation rules (explicit, or derived from the schema).
2. List input files and check processing bounds from file sizes alone.
   No content is read before the bounds pass.
3. Read, extract, and validate each document. A failing document is
   excluded and recorded as a :class:`DocumentFailure`; with ``fail_fast``
   the first failure aborts the run instead.
4. Frontmatter-part items: each document contributes the records it holds
   at the part path (one per mapping in a list, or a single mapping). When
   no document holds any, whole frontmatters are used and a warning says so.
5. Derivation rules are converted and bounds-checked, then the
   :class:`~fmctl.domain.aggregation.Aggregator` runs against the schema
   defaults deep-merged with the caller's base properties.

Pipeline-level failures (bounds, no valid documents, schema
misconfiguration) are returned as a failed :class:`Result`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from fmctl.domain.aggregation import Aggregator, deep_merge, extract_part_records
from fmctl.domain.bounds import (
    ProcessingBounds,
    check_derived_bounds,
    check_file_bounds,
    check_file_count,
    memory_units,
)
from fmctl.domain.frontmatter import FrontmatterData, MarkdownDocument, read_document
from fmctl.domain.result import ErrorKind, Result, failure, propagate, success
from fmctl.domain.schema import (
    SchemaNode,
    collect_defaults,
    convert_derivation_rules,
    find_frontmatter_part_path,
    get_derived_rules,
    validation_rules_for,
)
from fmctl.domain.validation import ValidationRules, validate_against_rules
from fmctl.infrastructure.filesystem import FileLister, FileReader
from fmctl.services.telemetry import trace_span

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineOptions:
    fail_fast: bool = False
    validate: bool = True


@dataclass(frozen=True)
class DocumentFailure:
    """Why one input file was left out of aggregation."""

    path: str
    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.kind}: {self.message}"


@dataclass(frozen=True)
class ProcessedDocument:
    """A document that passed extraction and validation.

    ``records`` are the frontmatter-part records it holds, empty when the
    schema has no part or the document holds nothing at the path.
    """

    path: str
    document: MarkdownDocument
    records: list[FrontmatterData] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PipelineOutput:
    """Successful pipeline result.

    ``items`` holds the records placed at the frontmatter-part path (empty
    when the schema has none).
    """

    data: FrontmatterData
    items: list[dict[str, Any]] = field(default_factory=list)
    documents: list[MarkdownDocument] = field(default_factory=list)
    failures: list[DocumentFailure] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class TransformationPipeline:
    """Run one schema-driven transformation over a set of input files."""

    def __init__(
        self,
        reader: FileReader,
        lister: FileLister,
        *,
        bounds: ProcessingBounds | None = None,
        options: PipelineOptions | None = None,
        aggregator: Aggregator | None = None,
    ) -> None:
        self.reader = reader
        self.lister = lister
        self.bounds = bounds or ProcessingBounds()
        self.options = options or PipelineOptions()
        self.aggregator = aggregator or Aggregator()

    def run(
        self,
        pattern: str,
        schema: SchemaNode,
        *,
        base: Mapping[str, Any] | None = None,
        rules: ValidationRules | None = None,
    ) -> Result[PipelineOutput]:
        part = find_frontmatter_part_path(schema)
        if not part.ok and part.kind is not ErrorKind.FRONTMATTER_PART_NOT_FOUND:
            return propagate(part)
        part_path = part.value if part.ok else None

        if rules is None:
            rules = validation_rules_for(schema) if self.options.validate else ValidationRules()

        with trace_span("list") as span:
            listed = self.list_within_bounds(pattern)
            if span is not None and listed.ok:
                span.annotate("files", len(listed.unwrap()))
        if not listed.ok:
            return propagate(listed)

        warnings: list[str] = []
        with trace_span("extract") as span:
            processed = self._process_documents(listed.unwrap(), rules, part_path, warnings)
            if span is not None and processed.ok:
                span.annotate("documents", len(processed.unwrap()[0]))
        if not processed.ok:
            return propagate(processed)
        accepted, failures = processed.unwrap()
        documents = [p.document for p in accepted]

        if not documents:
            return failure(
                ErrorKind.AGGREGATION_FAILED,
                "No valid documents found to process",
                failures=[str(f) for f in failures],
            )

        if part_path is not None:
            records = self._collect_items(accepted, part_path, warnings)
        else:
            records = [doc.frontmatter or FrontmatterData.empty() for doc in documents]

        conversion = convert_derivation_rules(get_derived_rules(schema))
        warnings.extend(f"Derivation rule skipped: {error}" for error in conversion.errors)
        derived_ok = check_derived_bounds(len(conversion.successful_rules), self.bounds)
        if not derived_ok.ok:
            return propagate(derived_ok)

        base_properties = deep_merge(collect_defaults(schema), base or {})
        with trace_span("aggregate"):
            aggregated = self.aggregator.aggregate(
                records,
                schema,
                base=base_properties or None,
                rules=conversion.successful_rules,
            )
        if not aggregated.ok:
            return propagate(aggregated)

        logger.info(
            "Aggregated %d of %d documents (%d excluded)",
            len(documents),
            len(documents) + len(failures),
            len(failures),
        )
        return success(
            PipelineOutput(
                data=aggregated.unwrap(),
                items=[r.to_dict() for r in records] if part_path is not None else [],
                documents=documents,
                failures=failures,
                warnings=warnings,
            )
        )

    # --- Stage 2: listing and bounds ---

    def list_within_bounds(self, pattern: str) -> Result[list[str]]:
        """List *pattern* and enforce file and memory bounds without reading."""
        listed = self.lister.list(pattern)
        if not listed.ok:
            return listed
        paths = listed.unwrap()

        by_count = check_file_count(len(paths), self.bounds)
        if not by_count.ok:
            return propagate(by_count)

        total_bytes = 0
        for path in paths:
            size = self.reader.size(path)
            # Unreadable files are reported by the per-document stage.
            if size.ok:
                total_bytes += size.unwrap()
        bounded = check_file_bounds(len(paths), memory_units(total_bytes), self.bounds)
        if not bounded.ok:
            return propagate(bounded)
        return success(paths)

    # --- Stage 3: per-document processing ---

    def _process_documents(
        self,
        paths: list[str],
        rules: ValidationRules,
        part_path: str | None,
        warnings: list[str],
    ) -> Result[tuple[list[ProcessedDocument], list[DocumentFailure]]]:
        processed: list[ProcessedDocument] = []
        failures: list[DocumentFailure] = []
        for path in paths:
            outcome = self.process_document(path, rules, part_path=part_path)
            if outcome.ok:
                result = outcome.unwrap()
                processed.append(result)
                warnings.extend(f"{path}: {w}" for w in result.warnings)
                continue

            error = outcome.error
            assert error is not None
            doc_failure = DocumentFailure(path=path, kind=error.kind, message=error.message)
            logger.debug("Excluded %s", doc_failure)
            if self.options.fail_fast:
                return failure(error.kind, f"{path}: {error.message}", path=path)
            failures.append(doc_failure)
        return success((processed, failures))

    def process_document(
        self,
        path: str,
        rules: ValidationRules,
        *,
        part_path: str | None = None,
    ) -> Result[ProcessedDocument]:
        """Read, extract, and validate one file.

        With *part_path*, the records the document holds there are what
        *rules* check, each error prefixed with the record's position. A
        document holding none is checked as a whole.
        """
        text = self.reader.read(path)
        if not text.ok:
            return propagate(text)
        parsed = read_document(Path(path), text.unwrap())
        if not parsed.ok:
            return propagate(parsed)
        document = parsed.unwrap()
        if document.frontmatter is None:
            return failure(ErrorKind.MISSING_REQUIRED, "Document has no frontmatter", path=path)

        records = extract_part_records(document.frontmatter, part_path) if part_path else []
        errors: list[str] = []
        warnings: list[str] = []
        for index, record in enumerate(records or [document.frontmatter]):
            report = validate_against_rules(record, rules)
            prefix = f"{part_path}[{index}]: " if records else ""
            errors.extend(prefix + e for e in report.errors)
            warnings.extend(prefix + w for w in report.warnings)
        if errors:
            return failure(ErrorKind.VALIDATION_FAILED, "; ".join(errors), path=path, errors=errors)
        return success(
            ProcessedDocument(path=path, document=document, records=records, warnings=warnings)
        )

    # --- Stage 4: frontmatter-part items ---

    def _collect_items(
        self,
        processed: list[ProcessedDocument],
        part_path: str,
        warnings: list[str],
    ) -> list[FrontmatterData]:
        extracted = [record for p in processed for record in p.records]
        if not extracted:
            warnings.append(
                f"No document holds records at '{part_path}'; "
                "each document's frontmatter is used as one item"
            )
            return [p.document.frontmatter or FrontmatterData.empty() for p in processed]

        for p in processed:
            if not p.records:
                warnings.append(f"{p.path}: no records at '{part_path}'; not an item")
        return extracted
