"""ServiceResult and ServiceError — the universal service contract.

INVARIANT: All service-layer methods return ServiceResult. The CLI and any
future interface consume this type; core :class:`~fmctl.domain.result.Result`
failures are translated here, never re-raised.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from fmctl.domain.result import DomainError


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, error: DomainError) -> ServiceError:
        return cls(code=str(error.kind), message=error.message, detail=dict(error.detail))


class ServiceResult(BaseModel):
    """Universal return type for all service operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"transform"``).
        data: Operation-specific payload (may be populated on failure too).
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (timing, counts, etc.).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None


def failed(
    op: str,
    error: DomainError | None,
    *,
    warnings: list[str] | None = None,
    data: dict[str, Any] | None = None,
) -> ServiceResult:
    """Build a failed ServiceResult from a core error."""
    if error is None:
        service_error = ServiceError(code="Unknown", message="Operation failed")
    else:
        service_error = ServiceError.from_domain(error)
    return ServiceResult(
        ok=False,
        op=op,
        data=data or {},
        warnings=warnings or [],
        error=service_error,
    )
