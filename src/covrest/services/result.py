"""ServiceResult and ServiceError — the contract between services and the CLI.

INVARIANT: Every operation exposed to the CLI returns a ServiceResult; it
never raises for caller errors or transport failures.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Return type of the CLI-facing operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"capabilities"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None

    @classmethod
    def failure(
        cls,
        op: str,
        code: str,
        message: str,
        **detail: Any,
    ) -> ServiceResult:
        detail = {k: v for k, v in detail.items() if v is not None}
        return cls(ok=False, op=op, error=ServiceError(code=code, message=message, detail=detail))
