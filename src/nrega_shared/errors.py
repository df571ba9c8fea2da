"""
errors.py — Failure taxonomy shared by the pipeline and the API services.

"Not found" is deliberately absent: an empty upstream result is returned
as ``[]`` / ``None`` and left to the caller to interpret.
"""

from __future__ import annotations


class NregaError(Exception):
    """Base class for all nrega-pulse failures."""

    code: str = "internal_error"


class UpstreamError(NregaError):
    """The data.gov.in API could not serve a request."""

    code = "upstream_error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamUnavailable(UpstreamError):
    """Network failure, timeout, or a non-429 error status from upstream."""

    code = "upstream_unavailable"


class UpstreamRateLimited(UpstreamError):
    """Upstream answered HTTP 429."""

    code = "upstream_rate_limited"

    def __init__(self, message: str = "upstream rate limit exceeded") -> None:
        super().__init__(message, status_code=429)


class CacheUnavailable(NregaError):
    """Read or write against the cache store failed. Never surfaced to callers."""

    code = "cache_unavailable"


class PersistenceFailure(NregaError):
    """Persistent storage failed outside per-record handling in the sync job."""

    code = "persistence_failure"
