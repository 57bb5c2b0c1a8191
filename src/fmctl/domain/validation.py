"""Declarative frontmatter validation.

All checks are pure functions over a :class:`FrontmatterData` snapshot and
return a :class:`ValidationReport`; they never raise and never mutate input.

Rule model (mirrors the ``validation`` section a schema can produce):

- ``type``: one of ``required``, ``type``, ``format``, ``range``,
  ``length``, ``enum``, ``pattern``.
- ``severity``: ``error`` failures flip ``is_valid``; ``warning`` failures
  are recorded in ``warnings`` only.
- A rule that references an absent field is skipped, except ``required``.
- ``enum`` compares with :func:`~fmctl.domain.frontmatter.strict_key`, so
  ``true`` does not satisfy an allowed ``1``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field

from fmctl.domain.frontmatter import FrontmatterData, strict_key
from fmctl.domain.paths import parse_path
from fmctl.domain.result import ErrorKind, Result, failure, success

RuleType = Literal["required", "type", "format", "range", "length", "enum", "pattern"]
Severity = Literal["error", "warning"]
ValueType = Literal["string", "number", "integer", "boolean", "array", "object", "null"]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldResult:
    """Outcome of one check against one field."""

    field: str
    valid: bool
    reason: str | None = None


@dataclass(frozen=True)
class ValidationReport:
    """Result of a validation pass. Always returned, never raised."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    field_results: list[FieldResult] = field(default_factory=list)

    def merged(self, other: ValidationReport) -> ValidationReport:
        """Combine two reports; valid only if both are."""
        return ValidationReport(
            is_valid=self.is_valid and other.is_valid,
            errors=[*self.errors, *other.errors],
            warnings=[*self.warnings, *other.warnings],
            field_results=[*self.field_results, *other.field_results],
        )


# ---------------------------------------------------------------------------
# Rule models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TypeRule:
    """Expected type for one field (``validate_field_types``)."""

    field: str
    expected_type: ValueType


class ValidationRule(BaseModel):
    """A single declarative rule."""

    model_config = {"frozen": True}

    field: str
    type: RuleType
    severity: Severity = "error"
    params: dict[str, Any] = Field(default_factory=dict)
    message: str | None = None


_REQUIRED_PARAMS: dict[str, tuple[str, ...]] = {
    "type": ("expected_type",),
    "format": ("format",),
    "enum": ("values",),
    "pattern": ("pattern",),
}


class ValidationRules(BaseModel):
    """An ordered, well-formed rule set."""

    model_config = {"frozen": True}

    rules: list[ValidationRule] = Field(default_factory=list)

    @classmethod
    def create(cls, rules: list[ValidationRule]) -> Result[ValidationRules]:
        """Check rule-specific parameters before accepting *rules*."""
        for rule in rules:
            if not rule.field.strip():
                return failure(ErrorKind.INVALID_FORMAT, "Validation rule must name a field")
            for param in _REQUIRED_PARAMS.get(rule.type, ()):
                if param not in rule.params:
                    return failure(
                        ErrorKind.INVALID_FORMAT,
                        f"{rule.type} rule for '{rule.field}' requires the '{param}' parameter",
                        field=rule.field,
                    )
            if rule.type == "pattern":
                try:
                    re.compile(str(rule.params["pattern"]))
                except re.error as exc:
                    return failure(
                        ErrorKind.INVALID_FORMAT,
                        f"Invalid pattern for '{rule.field}': {exc}",
                        field=rule.field,
                    )
        return success(cls(rules=list(rules)))

    def is_empty(self) -> bool:
        return not self.rules

    def __len__(self) -> int:
        return len(self.rules)


# ---------------------------------------------------------------------------
# Type helpers
# ---------------------------------------------------------------------------


def value_type(value: Any) -> str:
    """Name the JSON-ish type of *value* (``bool`` is never a number)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, (date, datetime)):
        return "date"
    if isinstance(value, time):
        return "time"
    return type(value).__name__


def is_type_compatible(value: Any, expected: str) -> bool:
    """Whether *value* satisfies *expected*.

    Unquoted YAML/TOML dates parse natively but count as strings, matching
    ``{"type": "string", "format": "date"}`` schemas.
    """
    actual = value_type(value)
    if expected == actual:
        return True
    if expected == "integer":
        return actual == "number" and (isinstance(value, int) or float(value).is_integer())
    if expected == "string":
        return actual in ("date", "time")
    return False


# ---------------------------------------------------------------------------
# Public validators
# ---------------------------------------------------------------------------


def lookup_field(data: FrontmatterData, name: str) -> Result[Any]:
    """Resolve a rule's field name against *data*.

    Path expressions go through :meth:`FrontmatterData.get`. Any other name,
    such as ``last-modified``, is a literal key: at the top level, or under
    the path before its last dot when that part is a path expression.
    """
    if parse_path(name).ok:
        return data.get(name)

    head, _, tail = name.rpartition(".")
    if head and parse_path(head).ok:
        parent = data.get(head)
        container = parent.value if parent.ok else None
    else:
        tail = name
        container = data.to_dict()
    if isinstance(container, dict) and tail in container:
        return success(container[tail])
    return failure(ErrorKind.MISSING_REQUIRED, f"Field '{name}' not found", path=name)


def validate_required_fields(data: FrontmatterData, fields: list[str]) -> ValidationReport:
    """Every name in *fields* must be present and non-empty."""
    results: list[FieldResult] = []
    for name in fields:
        reason = _required_failure(data, name)
        results.append(FieldResult(field=name, valid=reason is None, reason=reason))
    return _report(results)


def validate_field_types(data: FrontmatterData, rules: list[TypeRule]) -> ValidationReport:
    """Check each present field's type; absent fields pass."""
    results: list[FieldResult] = []
    for rule in rules:
        lookup = lookup_field(data, rule.field)
        if not lookup.ok:
            results.append(FieldResult(field=rule.field, valid=True))
            continue
        results.append(_check_type(rule.field, lookup.value, rule.expected_type))
    return _report(results)


def validate_against_rules(data: FrontmatterData, rules: ValidationRules) -> ValidationReport:
    """Dispatch each rule by type and split failures by severity."""
    results: list[FieldResult] = []
    errors: list[str] = []
    warnings: list[str] = []

    for rule in rules.rules:
        result = _apply_rule(data, rule)
        results.append(result)
        if result.valid:
            continue
        message = rule.message or result.reason or f"Field '{rule.field}' failed {rule.type} check"
        if rule.severity == "error":
            errors.append(message)
        else:
            warnings.append(message)

    return ValidationReport(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        field_results=results,
    )


# ---------------------------------------------------------------------------
# Rule implementations
# ---------------------------------------------------------------------------


def _report(results: list[FieldResult]) -> ValidationReport:
    errors = [r.reason for r in results if not r.valid and r.reason]
    return ValidationReport(is_valid=not errors, errors=errors, field_results=results)


def _required_failure(data: FrontmatterData, name: str) -> str | None:
    lookup = lookup_field(data, name)
    if not lookup.ok:
        return f"Required field '{name}' is missing"
    if lookup.value is None or lookup.value == "":
        return f"Required field '{name}' is empty"
    return None


def _apply_rule(data: FrontmatterData, rule: ValidationRule) -> FieldResult:
    name = rule.field
    if rule.type == "required":
        reason = _required_failure(data, name)
        return FieldResult(field=name, valid=reason is None, reason=reason)

    lookup = lookup_field(data, name)
    if not lookup.ok:
        return FieldResult(field=name, valid=True)
    value = lookup.value
    params = rule.params

    match rule.type:
        case "type":
            return _check_type(name, value, str(params["expected_type"]))
        case "format":
            return _check_format(name, value, str(params["format"]))
        case "range":
            return _check_range(name, value, params.get("min"), params.get("max"))
        case "length":
            return _check_length(name, value, params.get("min_length"), params.get("max_length"))
        case "enum":
            allowed = list(params["values"])
            ok = strict_key(value) in {strict_key(v) for v in allowed}
            reason = None if ok else f"Field '{name}' must be one of {allowed}, got {value!r}"
            return FieldResult(field=name, valid=ok, reason=reason)
        case "pattern":
            return _check_pattern(name, value, str(params["pattern"]))
    return FieldResult(field=name, valid=False, reason=f"Unknown validation rule type: {rule.type}")


def _check_type(name: str, value: Any, expected: str) -> FieldResult:
    if is_type_compatible(value, expected):
        return FieldResult(field=name, valid=True)
    actual = value_type(value)
    return FieldResult(
        field=name,
        valid=False,
        reason=f"Field '{name}' expected type '{expected}' but got '{actual}'",
    )


def _check_format(name: str, value: Any, fmt: str) -> FieldResult:
    if fmt == "date" and isinstance(value, date):
        return FieldResult(field=name, valid=True)
    if fmt == "date-time" and isinstance(value, datetime):
        return FieldResult(field=name, valid=True)
    if not isinstance(value, str):
        return FieldResult(
            field=name,
            valid=False,
            reason=f"Format validation for '{name}' requires a string value",
        )

    ok = True
    match fmt:
        case "email":
            ok = bool(_EMAIL_RE.match(value))
        case "url" | "uri":
            parsed = urlparse(value)
            ok = bool(parsed.scheme and parsed.netloc)
        case "date":
            ok = _parses(date.fromisoformat, value)
        case "date-time":
            ok = _parses(datetime.fromisoformat, value)
    reason = None if ok else f"Field '{name}' must be a valid {fmt}"
    return FieldResult(field=name, valid=ok, reason=reason)


def _parses(parser: Any, value: str) -> bool:
    try:
        parser(value)
    except ValueError:
        return False
    return True


def _check_range(name: str, value: Any, low: Any, high: Any) -> FieldResult:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return FieldResult(
            field=name,
            valid=False,
            reason=f"Range validation for '{name}' requires a numeric value",
        )
    if low is not None and value < low:
        return FieldResult(field=name, valid=False, reason=f"Field '{name}' must be at least {low}")
    if high is not None and value > high:
        return FieldResult(field=name, valid=False, reason=f"Field '{name}' must be at most {high}")
    return FieldResult(field=name, valid=True)


def _check_length(name: str, value: Any, low: Any, high: Any) -> FieldResult:
    if not isinstance(value, str):
        return FieldResult(
            field=name,
            valid=False,
            reason=f"Length validation for '{name}' requires a string value",
        )
    length = len(value)
    if low is not None and length < low:
        return FieldResult(
            field=name,
            valid=False,
            reason=f"Field '{name}' must be at least {low} characters long",
        )
    if high is not None and length > high:
        return FieldResult(
            field=name,
            valid=False,
            reason=f"Field '{name}' must be at most {high} characters long",
        )
    return FieldResult(field=name, valid=True)


def _check_pattern(name: str, value: Any, pattern: str) -> FieldResult:
    if not isinstance(value, str):
        return FieldResult(
            field=name,
            valid=False,
            reason=f"Pattern validation for '{name}' requires a string value",
        )
    try:
        ok = re.search(pattern, value) is not None
    except re.error as exc:
        return FieldResult(field=name, valid=False, reason=f"Invalid pattern for '{name}': {exc}")
    reason = None if ok else f"Field '{name}' does not match pattern {pattern!r}"
    return FieldResult(field=name, valid=ok, reason=reason)
