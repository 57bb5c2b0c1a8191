"""Result and DomainError — the core's success/failure contract.

INVARIANT: Core operations never raise for expected failures. They return a
:class:`Result` carrying either a value or a :class:`DomainError` whose
``kind`` is machine-checkable and whose ``message`` is human-readable.
Services translate these into :class:`~fmctl.services.result.ServiceResult`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    """Categories of expected failure."""

    EMPTY_INPUT = "EmptyInput"
    PARSE_ERROR = "ParseError"
    INVALID_FORMAT = "InvalidFormat"
    FILE_NOT_FOUND = "FileNotFound"
    READ_FAILED = "ReadFailed"
    MISSING_REQUIRED = "MissingRequired"
    VALIDATION_FAILED = "ValidationFailed"
    AGGREGATION_FAILED = "AggregationFailed"
    MERGE_FAILED = "MergeFailed"
    MEMORY_BOUNDS_VIOLATION = "MemoryBoundsViolation"
    FRONTMATTER_PART_NOT_FOUND = "FrontmatterPartNotFound"
    CONFIGURATION_ERROR = "ConfigurationError"
    RENDER_FAILED = "RenderFailed"
    WRITE_FAILED = "WriteFailed"


@dataclass(frozen=True)
class DomainError:
    """Typed error payload within a failed :class:`Result`."""

    kind: ErrorKind
    message: str
    detail: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


@dataclass(frozen=True)
class Result[T]:
    """Tagged success/failure wrapper.

    Attributes:
        ok: Whether the operation succeeded.
        value: The payload on success (``None`` on failure).
        error: The typed error on failure (``None`` on success).
    """

    ok: bool
    value: T | None = None
    error: DomainError | None = None

    def unwrap(self) -> T:
        """Return the value, raising ``ValueError`` if this is a failure.

        Only for call sites that have already checked ``ok`` or for tests.
        """
        if not self.ok:
            msg = f"unwrap() on failed result: {self.error}"
            raise ValueError(msg)
        return self.value  # type: ignore[return-value]

    @property
    def kind(self) -> ErrorKind | None:
        """Shortcut for ``error.kind``."""
        return self.error.kind if self.error is not None else None


def success[T](value: T) -> Result[T]:
    """Build a successful result."""
    return Result(ok=True, value=value)


def failure(kind: ErrorKind, message: str, **detail: Any) -> Result[Any]:
    """Build a failed result with a typed error."""
    return Result(ok=False, error=DomainError(kind=kind, message=message, detail=detail))


def propagate(result: Result[Any]) -> Result[Any]:
    """Re-wrap a failed result so it can be returned under another value type."""
    return Result(ok=False, error=result.error)
