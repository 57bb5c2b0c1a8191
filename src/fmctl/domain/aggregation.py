"""Aggregation of many documents' frontmatter into one structure.

The :class:`Aggregator` runs a fixed, linear sequence:

1. No frontmatter-part in the schema: shallow union, last document wins.
2. Part path, no documents: containers down to the path, ``[]`` at the leaf.
3. Part path with documents: one element per document at the path.
4. Derivation rules evaluated over the assembled structure.
5. Deep merge onto the base properties (the aggregate is the overlay).

INVARIANT: Merging replaces arrays wholesale. Only mappings recurse; lists
are never concatenated, so the overlay's list is exactly what comes out.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from fmctl.domain.frontmatter import FrontmatterData, assign_steps, strict_key
from fmctl.domain.paths import IndexStep, PropertyStep, Step, WildcardStep, parse_path
from fmctl.domain.result import ErrorKind, Result, failure, propagate, success
from fmctl.domain.schema import (
    DerivationRule,
    SchemaNode,
    convert_derivation_rules,
    find_frontmatter_part_path,
    get_derived_rules,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


def merge_directly(documents: Sequence[FrontmatterData]) -> dict[str, Any]:
    """Shallow union of top-level fields; later documents win."""
    merged: dict[str, Any] = {}
    for doc in documents:
        merged.update(doc.to_dict())
    return merged


def place_at_path(root: dict[str, Any], steps: Sequence[Step], value: Any) -> bool:
    """Set *value* at *steps*, creating intermediate mappings."""
    return assign_steps(root, list(steps), value)


def evaluate_source_path(data: Any, steps: Sequence[Step]) -> list[Any]:
    """Collect every value reachable through *steps*.

    Wildcards fan out over list elements. Missing branches and ``None``
    leaves contribute nothing; list-valued leaves are flattened one level.
    """
    current: list[Any] = [data]
    for step in steps:
        following: list[Any] = []
        for value in current:
            match step:
                case PropertyStep(name=name):
                    if isinstance(value, dict) and name in value:
                        following.append(value[name])
                case IndexStep(index=index):
                    if isinstance(value, list) and index < len(value):
                        following.append(value[index])
                case WildcardStep():
                    if isinstance(value, list):
                        following.extend(value)
        current = following

    out: list[Any] = []
    for value in current:
        if isinstance(value, list):
            out.extend(v for v in value if v is not None)
        elif value is not None:
            out.append(value)
    return out


def dedupe(values: Sequence[Any]) -> list[Any]:
    """Drop repeats, keeping first occurrences in order.

    Comparison goes through :func:`strict_key`: deep for mappings and lists,
    and ``true`` is never a repeat of ``1``.
    """
    seen: set[Any] = set()
    out: list[Any] = []
    for value in values:
        key = strict_key(value)
        if key not in seen:
            seen.add(key)
            out.append(value)
    return out


def extract_part_records(data: FrontmatterData, part_path: str) -> list[FrontmatterData]:
    """Records one document holds at the frontmatter-part path.

    A list yields one record per mapping element; other elements are
    skipped. A mapping yields itself. Nothing at the path, or a scalar
    there, yields no records.
    """
    found = data.get(part_path)
    if not found.ok:
        return []
    value = found.unwrap()
    candidates = value if isinstance(value, list) else [value]
    return [FrontmatterData.create(v).unwrap() for v in candidates if isinstance(v, dict)]


def apply_derivations(
    data: dict[str, Any],
    rules: Sequence[DerivationRule],
) -> Result[dict[str, Any]]:
    """Evaluate *rules* in order and place each result at its target."""
    out = copy.deepcopy(data)
    for rule in rules:
        values = evaluate_source_path(out, rule.source_steps)
        if rule.unique:
            values = dedupe(values)
        if not place_at_path(out, rule.target_steps, copy.deepcopy(values)):
            return failure(
                ErrorKind.AGGREGATION_FAILED,
                f"Cannot place derived field '{rule.target_field}': "
                "path runs through a non-mapping value",
                target=rule.target_field,
            )
        logger.debug(
            "Derived %s from %s (%d values)", rule.target_field, rule.source_path, len(values)
        )
    return success(out)


def deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge *overlay* onto *base*; neither input is modified.

    Mappings merge key by key. Any other overlay value, lists included,
    replaces the base value.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in overlay.items():
        existing = merged.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class Aggregator:
    """Combine per-document frontmatter according to a schema."""

    def aggregate(
        self,
        documents: Sequence[FrontmatterData],
        schema: SchemaNode,
        *,
        base: Mapping[str, Any] | FrontmatterData | None = None,
        rules: Sequence[DerivationRule] | None = None,
    ) -> Result[FrontmatterData]:
        """Run the aggregation sequence.

        *rules* overrides the schema's derivation rules (callers that have
        already converted and bounds-checked them pass them through).
        """
        part = find_frontmatter_part_path(schema)
        if not part.ok and part.kind is not ErrorKind.FRONTMATTER_PART_NOT_FOUND:
            return propagate(part)

        if not part.ok:
            logger.debug("No frontmatter-part; merging %d documents directly", len(documents))
            aggregated = merge_directly(documents)
        else:
            assembled = self._assemble(documents, part.unwrap())
            if not assembled.ok:
                return propagate(assembled)
            if rules is None:
                rules = convert_derivation_rules(get_derived_rules(schema)).successful_rules
            derived = apply_derivations(assembled.unwrap(), rules)
            if not derived.ok:
                return propagate(derived)
            aggregated = derived.unwrap()

        return self._merge_base(aggregated, base)

    def _assemble(
        self,
        documents: Sequence[FrontmatterData],
        part_path: str,
    ) -> Result[dict[str, Any]]:
        parsed = parse_path(part_path)
        if not parsed.ok:
            return failure(
                ErrorKind.CONFIGURATION_ERROR,
                f"Frontmatter-part path '{part_path}' is not addressable: {parsed.error}",
            )
        records = [doc.to_dict() for doc in documents]
        structure: dict[str, Any] = {}
        place_at_path(structure, parsed.unwrap(), records)
        logger.debug("Placed %d records at %s", len(records), part_path)
        return success(structure)

    def _merge_base(
        self,
        aggregated: dict[str, Any],
        base: Mapping[str, Any] | FrontmatterData | None,
    ) -> Result[FrontmatterData]:
        if base is None:
            result = FrontmatterData.create(aggregated)
            if not result.ok:
                return failure(
                    ErrorKind.AGGREGATION_FAILED, f"Aggregated data is invalid: {result.error}"
                )
            return result

        base_dict = base.to_dict() if isinstance(base, FrontmatterData) else dict(base)
        result = FrontmatterData.create(deep_merge(base_dict, aggregated))
        if not result.ok:
            return failure(ErrorKind.MERGE_FAILED, f"Merged data is invalid: {result.error}")
        return result
