"""Standardized service result and response wrappers."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

# Failure reason codes returned to controllers
UPSTREAM_UNAVAILABLE = "upstream_unavailable"
UPSTREAM_RATE_LIMITED = "upstream_rate_limited"
INVALID_REQUEST = "invalid_request"
INTERNAL_ERROR = "internal_error"


class ErrorDetail(BaseModel):
    code: str
    message: str


class ServiceResult(BaseModel):
    """
    Outcome of one retrieval operation.

    ``success`` with ``data=None`` (or ``[]``) means "nothing found"; a
    genuine fault is ``success=False`` with an error code.
    """

    success: bool
    data: Any = None
    error: ErrorDetail | None = None
    cached: bool = False
    source: str | None = None

    @classmethod
    def ok(cls, data: Any, *, cached: bool = False, source: str | None = None) -> "ServiceResult":
        return cls(success=True, data=data, cached=cached, source=source)

    @classmethod
    def fail(cls, code: str, message: str) -> "ServiceResult":
        return cls(success=False, error=ErrorDetail(code=code, message=message))

    @property
    def reason(self) -> str | None:
        return self.error.code if self.error else None

    def to_dict(self) -> dict[str, Any]:
        """Response body for the controller layer."""
        if not self.success:
            assert self.error is not None
            return {"success": False, **error_response(self.error.code, self.error.message)}
        total = len(self.data) if isinstance(self.data, list) else None
        return {
            "success": True,
            "cached": self.cached,
            **wrap_response(self.data, total_count=total, source=self.source),
        }


def wrap_response(
    data: Any,
    *,
    total_count: int | None = None,
    source: str | None = None,
) -> dict[str, Any]:
    """Build a standardized response dict."""
    meta = {
        "total_count": total_count,
        "source": source,
    }
    return {
        "data": data,
        "meta": {k: v for k, v in meta.items() if v is not None},
    }


def error_response(
    code: str,
    message: str,
    *,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a standardized error response dict."""
    err: dict[str, Any] = {"code": code, "message": message}
    if details:
        err["details"] = details
    return {"error": err}
