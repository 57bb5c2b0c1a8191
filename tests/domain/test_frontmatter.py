"""Tests for frontmatter extraction, parsing, and the FrontmatterData model."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from fmctl.domain.frontmatter import (
    FrontmatterData,
    FrontmatterFormat,
    MarkdownDocument,
    detect_format,
    extract,
    parse_frontmatter,
    read_document,
)
from fmctl.domain.result import ErrorKind

# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class TestDetectFormat:
    @pytest.mark.parametrize(
        ("content", "expected"),
        [
            ("---\na: 1\n---\n", FrontmatterFormat.YAML),
            ('{"a": 1}\n', FrontmatterFormat.JSON),
            ("+++\na = 1\n+++\n", FrontmatterFormat.TOML),
            ("# Heading\n", None),
            ("", None),
        ],
    )
    def test_detection(self, content: str, expected: FrontmatterFormat | None) -> None:
        assert detect_format(content) is expected


class TestExtractYaml:
    def test_basic(self) -> None:
        result = extract("---\ntitle: Hello\ntags: [a, b]\n---\n# Body\n")
        ex = result.unwrap()
        assert ex.format is FrontmatterFormat.YAML
        assert ex.frontmatter is not None
        assert ex.frontmatter.get("title").unwrap() == "Hello"
        assert ex.frontmatter.get("tags").unwrap() == ["a", "b"]
        assert ex.body == "# Body\n"

    def test_type_fidelity(self) -> None:
        text = "---\ncount: 3\nratio: 1.5\ndraft: true\nnothing: null\nwhen: 2024-01-15\n---\n"
        fm = extract(text).unwrap().frontmatter
        assert fm is not None
        assert fm.get("count").unwrap() == 3
        assert isinstance(fm.get("count").unwrap(), int)
        assert fm.get("ratio").unwrap() == 1.5
        assert fm.get("draft").unwrap() is True
        assert fm.get("nothing").unwrap() is None
        assert fm.get("when").unwrap() == date(2024, 1, 15)

    def test_nested_mappings(self) -> None:
        text = "---\noptions:\n  input:\n    - name: a\n    - name: b\n---\n"
        fm = extract(text).unwrap().frontmatter
        assert fm is not None
        assert fm.get("options.input[1].name").unwrap() == "b"

    def test_crlf_line_endings(self) -> None:
        fm = extract("---\r\ntitle: Win\r\n---\r\nBody\r\n").unwrap()
        assert fm.frontmatter is not None
        assert fm.frontmatter.get("title").unwrap() == "Win"
        assert fm.body == "Body\n"

    def test_unclosed_is_invalid_format(self) -> None:
        assert extract("---\ntitle: x\n").kind is ErrorKind.INVALID_FORMAT

    def test_empty_block_is_empty_input(self) -> None:
        assert extract("---\n---\nBody\n").kind is ErrorKind.EMPTY_INPUT

    def test_malformed_yaml_is_parse_error(self) -> None:
        assert extract("---\ntitle: [unclosed\n---\n").kind is ErrorKind.PARSE_ERROR

    def test_scalar_block_is_invalid_format(self) -> None:
        assert extract("---\njust a string\n---\n").kind is ErrorKind.INVALID_FORMAT


class TestExtractOtherFormats:
    def test_json(self) -> None:
        ex = extract('{"title": "J", "n": 2}\nBody text\n').unwrap()
        assert ex.format is FrontmatterFormat.JSON
        assert ex.frontmatter is not None
        assert ex.frontmatter.to_dict() == {"title": "J", "n": 2}
        assert ex.body == "Body text\n"

    def test_json_with_braces_in_strings(self) -> None:
        ex = extract('{"pattern": "a{b}c", "q": "say \\"hi\\""}\nrest\n').unwrap()
        assert ex.frontmatter is not None
        assert ex.frontmatter.get("pattern").unwrap() == "a{b}c"

    def test_json_unclosed(self) -> None:
        assert extract('{"a": 1\nbody\n').kind is ErrorKind.INVALID_FORMAT

    def test_toml(self) -> None:
        ex = extract('+++\ntitle = "T"\n[meta]\nlevel = 2\n+++\nBody\n').unwrap()
        assert ex.format is FrontmatterFormat.TOML
        assert ex.frontmatter is not None
        assert ex.frontmatter.get("meta.level").unwrap() == 2

    def test_malformed_toml(self) -> None:
        assert extract("+++\ntitle = \n+++\n").kind is ErrorKind.PARSE_ERROR


class TestExtractEdgeCases:
    @pytest.mark.parametrize("text", ["", "   \n\t"])
    def test_empty_content(self, text: str) -> None:
        assert extract(text).kind is ErrorKind.EMPTY_INPUT

    def test_no_frontmatter_is_success(self) -> None:
        ex = extract("# Just a heading\n").unwrap()
        assert ex.frontmatter is None
        assert ex.format is None
        assert ex.body == "# Just a heading\n"

    def test_parse_frontmatter_empty_mapping(self) -> None:
        assert parse_frontmatter("{}", FrontmatterFormat.JSON).kind is ErrorKind.EMPTY_INPUT


# ---------------------------------------------------------------------------
# FrontmatterData
# ---------------------------------------------------------------------------


class TestFrontmatterDataCreate:
    @pytest.mark.parametrize("raw", [None, [1, 2], "text", 5])
    def test_rejects_non_mapping(self, raw: object) -> None:
        assert FrontmatterData.create(raw).kind is ErrorKind.INVALID_FORMAT

    def test_rejects_unsupported_values(self) -> None:
        result = FrontmatterData.create({"a": {"b": object()}})
        assert result.kind is ErrorKind.INVALID_FORMAT
        assert result.error is not None
        assert "a.b" in result.error.message

    def test_copies_input(self) -> None:
        raw = {"tags": ["a"]}
        data = FrontmatterData.create(raw).unwrap()
        raw["tags"].append("b")
        assert data.get("tags").unwrap() == ["a"]

    def test_empty_is_not_none(self) -> None:
        empty = FrontmatterData.empty()
        assert empty.is_empty()
        assert len(empty) == 0


class TestFrontmatterDataAccess:
    @pytest.fixture
    def data(self) -> FrontmatterData:
        return FrontmatterData.create(
            {"title": "T", "meta": {"owner": None}, "items": [{"n": 1}]}
        ).unwrap()

    def test_get_missing_is_missing_required(self, data: FrontmatterData) -> None:
        assert data.get("nope").kind is ErrorKind.MISSING_REQUIRED
        assert data.get("items[5].n").kind is ErrorKind.MISSING_REQUIRED

    def test_get_bad_path_is_parse_error(self, data: FrontmatterData) -> None:
        assert data.get("a..b").kind is ErrorKind.PARSE_ERROR

    def test_has_counts_null_as_present(self, data: FrontmatterData) -> None:
        assert data.has("meta.owner")
        assert not data.has("meta.team")

    def test_returned_containers_are_copies(self, data: FrontmatterData) -> None:
        data.get("items").unwrap().append({"n": 2})
        data.to_dict()["title"] = "changed"
        assert data.get("items").unwrap() == [{"n": 1}]
        assert data.get("title").unwrap() == "T"

    def test_keys_and_contains(self, data: FrontmatterData) -> None:
        assert data.keys() == ["title", "meta", "items"]
        assert "title" in data
        assert list(data) == ["title", "meta", "items"]


class TestFrontmatterDataDerive:
    def test_filter(self) -> None:
        data = FrontmatterData.create({"a": 1, "b": 2}).unwrap()
        kept = data.filter(lambda key, _value: key == "a").unwrap()
        assert kept.to_dict() == {"a": 1}
        assert data.to_dict() == {"a": 1, "b": 2}

    def test_filter_everything_is_empty_input(self) -> None:
        data = FrontmatterData.create({"a": 1}).unwrap()
        assert data.filter(lambda _k, _v: False).kind is ErrorKind.EMPTY_INPUT

    def test_with_field_creates_mappings(self) -> None:
        data = FrontmatterData.empty().with_field("meta.owner.name", "x").unwrap()
        assert data.to_dict() == {"meta": {"owner": {"name": "x"}}}

    def test_with_field_leaves_original(self) -> None:
        original = FrontmatterData.create({"a": 1}).unwrap()
        original.with_field("b", 2)
        assert original.to_dict() == {"a": 1}

    def test_with_field_through_scalar_fails(self) -> None:
        data = FrontmatterData.create({"a": 1}).unwrap()
        assert data.with_field("a.b", 2).kind is ErrorKind.INVALID_FORMAT

    def test_with_field_existing_index(self) -> None:
        data = FrontmatterData.create({"xs": [1, 2]}).unwrap()
        assert data.with_field("xs[1]", 9).unwrap().to_dict() == {"xs": [1, 9]}

    def test_equality(self) -> None:
        a = FrontmatterData.create({"x": 1}).unwrap()
        b = FrontmatterData.create({"x": 1}).unwrap()
        assert a == b


class TestMarkdownDocument:
    def test_read_document(self) -> None:
        doc = read_document(Path("a.md"), "---\ntitle: A\n---\nBody\n").unwrap()
        assert doc.has_frontmatter
        assert doc.format is FrontmatterFormat.YAML
        assert doc.body == "Body\n"

    def test_read_document_without_frontmatter(self) -> None:
        doc = read_document(Path("a.md"), "Plain text\n").unwrap()
        assert not doc.has_frontmatter

    def test_with_field_on_document_without_frontmatter(self) -> None:
        doc = MarkdownDocument(path=Path("a.md"), content="x", body="x")
        updated = doc.with_field("title", "New").unwrap()
        assert updated.frontmatter is not None
        assert updated.frontmatter.get("title").unwrap() == "New"
        assert doc.frontmatter is None
