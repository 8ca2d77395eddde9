"""ServiceResult and ServiceError — the universal service contract.

INVARIANT: All service-layer methods return ServiceResult.
Expected failures (missing records, exhausted copies, duplicate loans,
lock contention) are ServiceErrors, never exceptions.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorCode:
    """Stable error codes carried by :class:`ServiceError`."""

    NOT_FOUND = "NOT_FOUND"
    EXHAUSTED = "EXHAUSTED"
    DUPLICATE_LOAN = "DUPLICATE_LOAN"
    ALREADY_RETURNED = "ALREADY_RETURNED"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    BUSY = "BUSY"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    DUPLICATE_ISBN = "DUPLICATE_ISBN"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    ACTIVE_LOANS = "ACTIVE_LOANS"
    LOAN_ACTIVE = "LOAN_ACTIVE"
    CHECK_FAILED = "CHECK_FAILED"
    BACKUP_FAILED = "BACKUP_FAILED"
    MIGRATION_FAILED = "MIGRATION_FAILED"


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Universal return type for all service operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"issue"``).
        data: Operation-specific payload on success.
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
