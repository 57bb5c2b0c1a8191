"""Pydantic configuration models with code-baked defaults.

Each section maps to a table of the config file. Defaults live here, so a
config file only lists overrides and an empty one is valid.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from fmctl.domain.bounds import ProcessingBounds


class BoundsConfig(BaseModel):
    """[bounds] section. One memory unit is one KiB of input."""

    model_config = {"frozen": True}

    max_files: int = Field(default=1000, ge=1)
    max_memory_units: int = Field(default=102400, ge=1)
    max_derived_fields: int = Field(default=100, ge=0)

    def to_bounds(self) -> ProcessingBounds:
        return ProcessingBounds(
            max_files=self.max_files,
            max_memory_units=self.max_memory_units,
            max_derived_fields=self.max_derived_fields,
        )


class PipelineConfig(BaseModel):
    """[pipeline] section."""

    model_config = {"frozen": True, "populate_by_name": True}

    fail_fast: bool = False
    validate_documents: bool = Field(default=True, alias="validate")
    extensions: list[str] = Field(default_factory=lambda: [".md", ".markdown"])


class OutputConfig(BaseModel):
    """[output] section."""

    model_config = {"frozen": True}

    indent: int = Field(default=2, ge=0)
    ensure_ascii: bool = False

