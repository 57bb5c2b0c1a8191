"""Tests for ExtractService."""

from __future__ import annotations

from fmctl.infrastructure.workspace import Workspace
from fmctl.services.extract import ExtractService
from tests.conftest import write_md


class TestExtractService:
    def test_yaml_document(self, workspace: Workspace) -> None:
        write_md(workspace.root / "docs", "a.md", "title: Hello\ntags: [x, y]", body="Body text\n")
        result = ExtractService(workspace).extract("docs/a.md")
        assert result.ok
        assert result.data["format"] == "yaml"
        assert result.data["frontmatter"] == {"title": "Hello", "tags": ["x", "y"]}
        assert result.data["body_length"] == len("Body text\n")
        assert result.data["body_preview"] == "Body text"
        assert result.warnings == []

    def test_toml_document(self, workspace: Workspace) -> None:
        (workspace.root / "t.md").write_text('+++\ntitle = "T"\n+++\n', encoding="utf-8")
        result = ExtractService(workspace).extract("t.md")
        assert result.data["format"] == "toml"

    def test_no_frontmatter_warns(self, workspace: Workspace) -> None:
        (workspace.root / "plain.md").write_text("# Plain\n", encoding="utf-8")
        result = ExtractService(workspace).extract("plain.md")
        assert result.ok
        assert result.data["frontmatter"] is None
        assert result.data["format"] is None
        assert len(result.warnings) == 1

    def test_preview_truncated(self, workspace: Workspace) -> None:
        write_md(workspace.root, "long.md", "a: 1", body="x" * 500)
        result = ExtractService(workspace).extract("long.md")
        assert len(result.data["body_preview"]) == 200

    def test_missing_file(self, workspace: Workspace) -> None:
        result = ExtractService(workspace).extract("gone.md")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "FileNotFound"

    def test_parse_error(self, workspace: Workspace) -> None:
        (workspace.root / "bad.md").write_text("---\na: [x\n---\n", encoding="utf-8")
        result = ExtractService(workspace).extract("bad.md")
        assert result.error is not None
        assert result.error.code == "ParseError"
        assert result.data["path"].endswith("bad.md")
