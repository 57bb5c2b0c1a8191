"""Tests for declarative frontmatter validation."""

from __future__ import annotations

from datetime import date

import pytest

from fmctl.domain.frontmatter import FrontmatterData
from fmctl.domain.result import ErrorKind
from fmctl.domain.validation import (
    TypeRule,
    ValidationReport,
    ValidationRule,
    ValidationRules,
    is_type_compatible,
    validate_against_rules,
    validate_field_types,
    validate_required_fields,
    value_type,
)


def _data(**fields: object) -> FrontmatterData:
    return FrontmatterData.create(fields).unwrap()


def _rules(*rules: ValidationRule) -> ValidationRules:
    return ValidationRules.create(list(rules)).unwrap()


class TestRequiredFields:
    def test_missing_field_reported(self) -> None:
        report = validate_required_fields(_data(title="T"), ["title", "author"])
        assert not report.is_valid
        assert report.errors == ["Required field 'author' is missing"]

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_values_fail(self, value: object) -> None:
        report = validate_required_fields(_data(title=value), ["title"])
        assert report.errors == ["Required field 'title' is empty"]

    def test_zero_and_false_are_present(self) -> None:
        report = validate_required_fields(_data(n=0, flag=False), ["n", "flag"])
        assert report.is_valid

    def test_nested_path(self) -> None:
        report = validate_required_fields(_data(meta={"owner": "x"}), ["meta.owner"])
        assert report.is_valid
        assert [r.field for r in report.field_results] == ["meta.owner"]

    def test_literal_key_name(self) -> None:
        present = FrontmatterData.create({"last-modified": "2024-05-01"}).unwrap()
        assert validate_required_fields(present, ["last-modified"]).is_valid
        report = validate_required_fields(_data(title="x"), ["last-modified"])
        assert report.errors == ["Required field 'last-modified' is missing"]

    def test_literal_key_under_path(self) -> None:
        data = _data(meta={"last-modified": "2024-05-01"})
        assert validate_required_fields(data, ["meta.last-modified"]).is_valid
        assert not validate_required_fields(_data(meta={}), ["meta.last-modified"]).is_valid


class TestFieldTypes:
    def test_mismatch_message(self) -> None:
        report = validate_field_types(_data(count="three"), [TypeRule("count", "number")])
        assert report.errors == ["Field 'count' expected type 'number' but got 'string'"]

    def test_absent_field_passes(self) -> None:
        assert validate_field_types(_data(), [TypeRule("count", "number")]).is_valid

    def test_all_types(self) -> None:
        data = _data(s="x", n=1.5, i=3, b=True, a=[1], o={"k": 1}, z=None)
        rules = [
            TypeRule("s", "string"),
            TypeRule("n", "number"),
            TypeRule("i", "integer"),
            TypeRule("b", "boolean"),
            TypeRule("a", "array"),
            TypeRule("o", "object"),
            TypeRule("z", "null"),
        ]
        assert validate_field_types(data, rules).is_valid


class TestTypeHelpers:
    def test_bool_is_not_number(self) -> None:
        assert value_type(True) == "boolean"
        assert not is_type_compatible(True, "number")
        assert not is_type_compatible(False, "integer")

    def test_integer_accepts_whole_float(self) -> None:
        assert is_type_compatible(2.0, "integer")
        assert not is_type_compatible(2.5, "integer")

    def test_date_counts_as_string(self) -> None:
        assert value_type(date(2024, 1, 1)) == "date"
        assert is_type_compatible(date(2024, 1, 1), "string")


class TestRuleSetCreation:
    @pytest.mark.parametrize(
        ("rule_type", "param"),
        [
            ("type", "expected_type"),
            ("format", "format"),
            ("enum", "values"),
            ("pattern", "pattern"),
        ],
    )
    def test_missing_params_rejected(self, rule_type: str, param: str) -> None:
        rule = ValidationRule(field="x", type=rule_type)  # type: ignore[arg-type]
        result = ValidationRules.create([rule])
        assert result.kind is ErrorKind.INVALID_FORMAT
        assert result.error is not None
        assert param in result.error.message

    def test_bad_regex_rejected(self) -> None:
        rule = ValidationRule(field="x", type="pattern", params={"pattern": "[unclosed"})
        assert ValidationRules.create([rule]).kind is ErrorKind.INVALID_FORMAT

    def test_blank_field_rejected(self) -> None:
        rule = ValidationRule(field=" ", type="required")
        assert ValidationRules.create([rule]).kind is ErrorKind.INVALID_FORMAT

    def test_empty_rule_set(self) -> None:
        rules = ValidationRules.create([]).unwrap()
        assert rules.is_empty()
        assert len(rules) == 0


class TestValidateAgainstRules:
    def test_required_missing_is_error(self) -> None:
        report = validate_against_rules(
            _data(title="T"),
            _rules(ValidationRule(field="c1", type="required")),
        )
        assert not report.is_valid
        assert report.errors == ["Required field 'c1' is missing"]

    def test_absent_field_skips_non_required_rules(self) -> None:
        report = validate_against_rules(
            _data(),
            _rules(
                ValidationRule(field="age", type="range", params={"min": 0}),
                ValidationRule(field="email", type="format", params={"format": "email"}),
            ),
        )
        assert report.is_valid
        assert all(r.valid for r in report.field_results)

    def test_warning_severity_does_not_invalidate(self) -> None:
        report = validate_against_rules(
            _data(status="odd"),
            _rules(
                ValidationRule(
                    field="status",
                    type="enum",
                    severity="warning",
                    params={"values": ["draft", "final"]},
                )
            ),
        )
        assert report.is_valid
        assert report.warnings == ["Field 'status' must be one of ['draft', 'final'], got 'odd'"]

    def test_enum_keeps_booleans_apart_from_numbers(self) -> None:
        rule = ValidationRule(field="v", type="enum", params={"values": [1, 2]})
        assert validate_against_rules(_data(v=1), _rules(rule)).is_valid
        assert validate_against_rules(_data(v=2.0), _rules(rule)).is_valid
        report = validate_against_rules(_data(v=True), _rules(rule))
        assert report.errors == ["Field 'v' must be one of [1, 2], got True"]

    def test_enum_of_booleans_rejects_zero(self) -> None:
        rule = ValidationRule(field="v", type="enum", params={"values": [True, False]})
        assert not validate_against_rules(_data(v=0), _rules(rule)).is_valid

    def test_rules_apply_to_literal_keys(self) -> None:
        data = FrontmatterData.create({"last-modified": 20240501}).unwrap()
        rule = ValidationRule(
            field="last-modified", type="type", params={"expected_type": "string"}
        )
        report = validate_against_rules(data, _rules(rule))
        assert report.errors == ["Field 'last-modified' expected type 'string' but got 'number'"]

    def test_custom_message_wins(self) -> None:
        report = validate_against_rules(
            _data(),
            _rules(ValidationRule(field="id", type="required", message="id please")),
        )
        assert report.errors == ["id please"]

    @pytest.mark.parametrize(
        ("value", "params", "expected"),
        [
            (-1, {"min": 0}, "Field 'v' must be at least 0"),
            (11, {"max": 10}, "Field 'v' must be at most 10"),
            ("x", {"min": 0}, "Range validation for 'v' requires a numeric value"),
        ],
    )
    def test_range(self, value: object, params: dict, expected: str) -> None:
        report = validate_against_rules(
            _data(v=value), _rules(ValidationRule(field="v", type="range", params=params))
        )
        assert report.errors == [expected]

    def test_length(self) -> None:
        rule = ValidationRule(field="v", type="length", params={"min_length": 3, "max_length": 5})
        assert validate_against_rules(_data(v="abcd"), _rules(rule)).is_valid
        short = validate_against_rules(_data(v="ab"), _rules(rule))
        assert short.errors == ["Field 'v' must be at least 3 characters long"]
        long = validate_against_rules(_data(v="abcdef"), _rules(rule))
        assert long.errors == ["Field 'v' must be at most 5 characters long"]

    @pytest.mark.parametrize(
        ("fmt", "good", "bad"),
        [
            ("email", "a@b.io", "not-an-email"),
            ("url", "https://example.com/x", "example"),
            ("date", "2024-02-29", "2024-13-01"),
            ("date-time", "2024-01-01T10:00:00", "yesterday"),
        ],
    )
    def test_formats(self, fmt: str, good: str, bad: str) -> None:
        rule = ValidationRule(field="v", type="format", params={"format": fmt})
        assert validate_against_rules(_data(v=good), _rules(rule)).is_valid
        report = validate_against_rules(_data(v=bad), _rules(rule))
        assert report.errors == [f"Field 'v' must be a valid {fmt}"]

    def test_native_date_passes_date_format(self) -> None:
        rule = ValidationRule(field="v", type="format", params={"format": "date"})
        assert validate_against_rules(_data(v=date(2024, 1, 1)), _rules(rule)).is_valid

    def test_pattern(self) -> None:
        rule = ValidationRule(field="id", type="pattern", params={"pattern": r"^[a-z]+-\d+$"})
        assert validate_against_rules(_data(id="cmd-12"), _rules(rule)).is_valid
        report = validate_against_rules(_data(id="CMD"), _rules(rule))
        assert not report.is_valid
        assert "does not match pattern" in report.errors[0]

    def test_input_not_mutated(self) -> None:
        data = _data(title="T")
        validate_against_rules(data, _rules(ValidationRule(field="x", type="required")))
        assert data.to_dict() == {"title": "T"}


class TestReportMerge:
    def test_merged_is_valid_only_if_both(self) -> None:
        ok = ValidationReport(is_valid=True, warnings=["w"])
        bad = ValidationReport(is_valid=False, errors=["e"])
        merged = ok.merged(bad)
        assert not merged.is_valid
        assert merged.errors == ["e"]
        assert merged.warnings == ["w"]
