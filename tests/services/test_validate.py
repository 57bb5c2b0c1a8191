"""Tests for ValidateService."""

from __future__ import annotations

from pathlib import Path

from fmctl.infrastructure.workspace import Workspace
from fmctl.services.validate import ValidateService
from tests.conftest import REGISTRY_SCHEMA, write_json, write_md


class TestValidateService:
    def test_all_valid(self, workspace: Workspace) -> None:
        write_json(workspace.root / "schema.json", REGISTRY_SCHEMA)
        write_md(workspace.root / "docs", "a.md", "c1: x")
        write_md(workspace.root / "docs", "b.md", "c1: y\ntitle: T")
        result = ValidateService(workspace).validate("schema.json", "docs")
        assert result.ok
        assert result.data["valid_count"] == 2
        assert result.data["invalid_count"] == 0
        assert result.data["rule_count"] == 3

    def test_reports_each_invalid_file(self, workspace: Workspace) -> None:
        write_json(workspace.root / "schema.json", REGISTRY_SCHEMA)
        docs = workspace.root / "docs"
        write_md(docs, "a.md", "c1: x")
        write_md(docs, "b.md", "title: 5\nc1: 1")
        (docs / "c.md").write_text("no frontmatter\n", encoding="utf-8")
        result = ValidateService(workspace).validate("schema.json", "docs")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "ValidationFailed"
        assert result.error.message == "2 of 3 files failed validation"

        by_name = {Path(f["path"]).name: f for f in result.data["files"]}
        assert by_name["a.md"]["valid"]
        assert by_name["b.md"]["errors"] == [
            "Field 'c1' expected type 'string' but got 'number'",
            "Field 'title' expected type 'string' but got 'number'",
        ]
        assert by_name["c.md"]["kind"] == "MissingRequired"
        assert by_name["c.md"]["errors"] == ["Document has no frontmatter"]

    def test_missing_input(self, workspace: Workspace) -> None:
        write_json(workspace.root / "schema.json", REGISTRY_SCHEMA)
        write_md(workspace.root / "docs", "a.md", "c1: x")
        result = ValidateService(workspace).validate("schema.json", "missing-dir")
        assert result.error is not None
        assert result.error.code == "FileNotFound"

    def test_records_at_part_path_checked_individually(self, workspace: Workspace) -> None:
        write_json(workspace.root / "schema.json", REGISTRY_SCHEMA)
        docs = workspace.root / "docs"
        write_md(docs, "a.md", "tools:\n  commands:\n    - c1: x\n    - c1: y")
        write_md(docs, "b.md", "tools:\n  commands:\n    - c1: z\n    - title: no c1")
        result = ValidateService(workspace).validate("schema.json", "docs")
        by_name = {Path(f["path"]).name: f for f in result.data["files"]}
        assert by_name["a.md"]["valid"]
        assert by_name["b.md"]["errors"] == ["tools.commands[1]: Required field 'c1' is missing"]
