"""Processing bounds checked before bulk work starts.

One memory unit is one KiB of source content, measured from file sizes so
the check runs without reading anything.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from fmctl.domain.result import ErrorKind, Result, failure, success

BYTES_PER_UNIT = 1024


class ProcessingBounds(BaseModel):
    """Resource ceilings for one pipeline run."""

    model_config = {"frozen": True}

    max_files: int = Field(default=1000, ge=1)
    max_memory_units: int = Field(default=102400, ge=1)
    max_derived_fields: int = Field(default=100, ge=0)


def memory_units(size_bytes: int) -> int:
    """Round a byte count up to whole units."""
    return -(-size_bytes // BYTES_PER_UNIT)


def check_file_count(count: int, bounds: ProcessingBounds) -> Result[None]:
    if count > bounds.max_files:
        return failure(
            ErrorKind.MEMORY_BOUNDS_VIOLATION,
            f"File count {count} exceeds max_files ({bounds.max_files})",
            bound="max_files",
            actual=count,
            limit=bounds.max_files,
        )
    return success(None)


def check_file_bounds(count: int, units: int, bounds: ProcessingBounds) -> Result[None]:
    """File count first, then total memory units."""
    by_count = check_file_count(count, bounds)
    if not by_count.ok:
        return by_count
    if units > bounds.max_memory_units:
        return failure(
            ErrorKind.MEMORY_BOUNDS_VIOLATION,
            f"Input size {units} KiB exceeds max_memory_units ({bounds.max_memory_units})",
            bound="max_memory_units",
            actual=units,
            limit=bounds.max_memory_units,
        )
    return success(None)


def check_derived_bounds(count: int, bounds: ProcessingBounds) -> Result[None]:
    if count > bounds.max_derived_fields:
        return failure(
            ErrorKind.MEMORY_BOUNDS_VIOLATION,
            f"Derived field count {count} exceeds max_derived_fields ({bounds.max_derived_fields})",
            bound="max_derived_fields",
            actual=count,
            limit=bounds.max_derived_fields,
        )
    return success(None)
