"""Schema nodes and the derivation engine.

A schema is a JSON-Schema-shaped tree whose ``x-`` extension keywords drive
aggregation:

- ``x-frontmatter-part: true`` marks the array that collects one element per
  document. Exactly one is honoured (the first found depth-first); placing it
  on the root is a configuration error.
- ``x-derived-from: "<source path>"`` on a property makes that property's
  path a derivation target. ``x-derived-unique`` dedups the values.
- ``x-template`` / ``x-template-items`` / ``x-template-format`` name the
  templates the renderer uses.

INVARIANT: Nothing here hard-codes a property name. Every location comes
from the schema tree itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from fmctl.domain.paths import IndexStep, Step, WildcardStep, parse_path, parse_source_path
from fmctl.domain.result import ErrorKind, Result, failure, propagate, success
from fmctl.domain.validation import ValidationRule, ValidationRules

logger = logging.getLogger(__name__)

_RULE_TYPES = frozenset({"string", "number", "integer", "boolean", "array", "object", "null"})
_RULE_FORMATS = frozenset({"email", "url", "uri", "date", "date-time"})
_PART_NOT_FOUND = "No x-frontmatter-part property in schema"


# ---------------------------------------------------------------------------
# SchemaNode
# ---------------------------------------------------------------------------


class SchemaNode(BaseModel):
    """One node of a schema tree.

    Extension keywords are exposed as explicit optional attributes; unknown
    keywords (``title``, ``description``, ``$schema`` ...) are kept as extras.
    """

    model_config = {"frozen": True, "populate_by_name": True, "extra": "allow"}

    type: str | list[str] | None = None
    properties: dict[str, SchemaNode] | None = None
    items: SchemaNode | None = None
    required: list[str] = Field(default_factory=list)
    default: Any = None
    enum: list[Any] | None = None
    pattern: str | None = None
    minimum: float | None = None
    maximum: float | None = None
    min_length: int | None = Field(default=None, alias="minLength")
    max_length: int | None = Field(default=None, alias="maxLength")
    format: str | None = None
    additional_properties: bool | SchemaNode | None = Field(
        default=None, alias="additionalProperties"
    )

    is_frontmatter_part: bool = Field(default=False, alias="x-frontmatter-part")
    derived_from: str | None = Field(default=None, alias="x-derived-from")
    derived_unique: bool = Field(default=False, alias="x-derived-unique")
    template: str | None = Field(default=None, alias="x-template")
    template_items: str | None = Field(default=None, alias="x-template-items")
    template_format: str | None = Field(default=None, alias="x-template-format")

    @classmethod
    def from_mapping(cls, raw: object) -> Result[SchemaNode]:
        """Build a node tree from an already-parsed mapping."""
        if not isinstance(raw, dict):
            return failure(
                ErrorKind.CONFIGURATION_ERROR,
                f"Schema must be a mapping, got {type(raw).__name__}",
            )
        try:
            return success(cls.model_validate(raw))
        except ValidationError as exc:
            return failure(ErrorKind.CONFIGURATION_ERROR, f"Invalid schema: {exc}")

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set

    def child(self, name: str) -> SchemaNode | None:
        return (self.properties or {}).get(name)


# ---------------------------------------------------------------------------
# Frontmatter-part lookup
# ---------------------------------------------------------------------------


def find_frontmatter_part_path(schema: SchemaNode) -> Result[str]:
    """Dot-path of the first property marked ``x-frontmatter-part``.

    ``FrontmatterPartNotFound`` is a signal, not a fault: the aggregator
    falls back to merging documents directly.
    """
    if schema.is_frontmatter_part:
        return failure(
            ErrorKind.CONFIGURATION_ERROR,
            "x-frontmatter-part cannot be set on the schema root",
        )
    found = _find_part(schema, "")
    if found is None:
        return failure(ErrorKind.FRONTMATTER_PART_NOT_FOUND, _PART_NOT_FOUND)
    return success(found[0])


def find_frontmatter_part_node(schema: SchemaNode) -> Result[SchemaNode]:
    if schema.is_frontmatter_part:
        return failure(
            ErrorKind.CONFIGURATION_ERROR,
            "x-frontmatter-part cannot be set on the schema root",
        )
    found = _find_part(schema, "")
    if found is None:
        return failure(ErrorKind.FRONTMATTER_PART_NOT_FOUND, _PART_NOT_FOUND)
    return success(found[1])


def item_schema(schema: SchemaNode) -> SchemaNode | None:
    """The ``items`` node of the frontmatter-part array, if declared."""
    node = find_frontmatter_part_node(schema)
    if not node.ok:
        return None
    return node.unwrap().items


def _find_part(node: SchemaNode, prefix: str) -> tuple[str, SchemaNode] | None:
    for name, prop in (node.properties or {}).items():
        path = f"{prefix}.{name}" if prefix else name
        if prop.is_frontmatter_part:
            return path, prop
        nested = _find_part(prop, path)
        if nested is not None:
            return nested
    return None


# ---------------------------------------------------------------------------
# Derivation rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DerivationSpec:
    """A derivation as declared in the schema, not yet validated."""

    source_path: str
    target_field: str
    unique: bool = False


@dataclass(frozen=True)
class DerivationRule:
    """A validated derivation with pre-parsed paths."""

    source_path: str
    target_field: str
    unique: bool
    source_steps: tuple[Step, ...]
    target_steps: tuple[Step, ...]

    @classmethod
    def create(
        cls,
        source_path: str,
        target_field: str,
        unique: bool = False,
    ) -> Result[DerivationRule]:
        if not source_path or not source_path.strip():
            return failure(
                ErrorKind.INVALID_FORMAT,
                f"Derivation for '{target_field}' has an empty source path",
            )
        if not target_field or not target_field.strip():
            return failure(
                ErrorKind.INVALID_FORMAT,
                f"Derivation from '{source_path}' has an empty target field",
            )
        source = parse_source_path(source_path)
        if not source.ok:
            return propagate(source)
        target = parse_path(target_field)
        if not target.ok:
            return propagate(target)
        target_steps = target.unwrap()
        if any(isinstance(step, (IndexStep, WildcardStep)) for step in target_steps):
            return failure(
                ErrorKind.INVALID_FORMAT,
                f"Derivation target '{target_field}' must be a plain dot-path",
            )
        return success(
            cls(
                source_path=source_path.strip(),
                target_field=target_field.strip(),
                unique=unique,
                source_steps=tuple(source.unwrap()),
                target_steps=tuple(target_steps),
            )
        )


@dataclass(frozen=True)
class RuleConversion:
    """Batch conversion outcome: good rules plus per-rule errors."""

    successful_rules: list[DerivationRule] = field(default_factory=list)
    failed_rule_count: int = 0
    errors: list[str] = field(default_factory=list)


def get_derived_rules(schema: SchemaNode) -> list[DerivationSpec]:
    """Collect every ``x-derived-from`` declaration, depth-first.

    The target is the declaring property's own dot-path.
    """
    specs: list[DerivationSpec] = []

    def walk(node: SchemaNode, path: str) -> None:
        if node.derived_from is not None and path:
            specs.append(DerivationSpec(node.derived_from, path, node.derived_unique))
        for name, prop in (node.properties or {}).items():
            walk(prop, f"{path}.{name}" if path else name)

    walk(schema, "")
    return specs


def convert_derivation_rules(specs: list[DerivationSpec]) -> RuleConversion:
    """Validate *specs* one by one; a bad rule never sinks the batch."""
    rules: list[DerivationRule] = []
    errors: list[str] = []
    for spec in specs:
        result = DerivationRule.create(spec.source_path, spec.target_field, spec.unique)
        if result.ok:
            rules.append(result.unwrap())
        else:
            errors.append(str(result.error))
            logger.debug(
                "Rejected derivation rule %s -> %s: %s",
                spec.source_path,
                spec.target_field,
                result.error,
            )
    return RuleConversion(successful_rules=rules, failed_rule_count=len(errors), errors=errors)


# ---------------------------------------------------------------------------
# Validation rules and defaults derived from the schema
# ---------------------------------------------------------------------------


def validation_rules_for(schema: SchemaNode) -> ValidationRules:
    """Per-record rules from the frontmatter-part item schema.

    Without a frontmatter-part the root schema describes each document. A
    part with no ``items`` schema yields no rules: the root then describes
    the aggregate, not the records that feed it.
    """
    target: SchemaNode | None = schema
    if find_frontmatter_part_path(schema).ok:
        target = item_schema(schema)
    if target is None:
        return ValidationRules()
    rules: list[ValidationRule] = []
    _collect_rules(target, "", rules)
    # Built from typed schema fields, so create() cannot reject these.
    return ValidationRules(rules=rules)


def _collect_rules(node: SchemaNode, prefix: str, rules: list[ValidationRule]) -> None:
    # Names that are not path expressions stay literal keys; see lookup_field.
    for name in node.required:
        path = f"{prefix}.{name}" if prefix else name
        rules.append(ValidationRule(field=path, type="required"))

    for name, prop in (node.properties or {}).items():
        path = f"{prefix}.{name}" if prefix else name
        if isinstance(prop.type, str) and prop.type in _RULE_TYPES:
            rules.append(
                ValidationRule(field=path, type="type", params={"expected_type": prop.type})
            )
        if prop.enum is not None:
            rules.append(
                ValidationRule(field=path, type="enum", params={"values": list(prop.enum)})
            )
        if prop.pattern is not None:
            rules.append(
                ValidationRule(field=path, type="pattern", params={"pattern": prop.pattern})
            )
        if prop.minimum is not None or prop.maximum is not None:
            rules.append(
                ValidationRule(
                    field=path,
                    type="range",
                    params={"min": prop.minimum, "max": prop.maximum},
                )
            )
        if prop.min_length is not None or prop.max_length is not None:
            rules.append(
                ValidationRule(
                    field=path,
                    type="length",
                    params={"min_length": prop.min_length, "max_length": prop.max_length},
                )
            )
        if prop.format in _RULE_FORMATS:
            rules.append(ValidationRule(field=path, type="format", params={"format": prop.format}))
        if prop.properties:
            if parse_path(path).ok:
                _collect_rules(prop, path, rules)
            else:
                logger.debug("Skipping rules nested under literal key %r", path)


def collect_defaults(schema: SchemaNode) -> dict[str, Any]:
    """Nested mapping of ``default`` values (base properties).

    Frontmatter-part and derived properties are filled by aggregation and
    are skipped.
    """
    out: dict[str, Any] = {}
    for name, prop in (schema.properties or {}).items():
        if prop.is_frontmatter_part or prop.derived_from is not None:
            continue
        if prop.has_default:
            out[name] = prop.default
        elif prop.properties:
            nested = collect_defaults(prop)
            if nested:
                out[name] = nested
    return out
