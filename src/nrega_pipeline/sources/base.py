"""
sources/base.py — Contract for paged, filterable record APIs.

A source serves flat key/value records one page at a time. Subclasses
implement fetch_records(): one HTTP page in, raw dicts out, upstream
faults raised as the typed UpstreamError subclasses. The sync job and the
retrieval service depend only on this method.

Usage:
    class MySource(BaseSource):
        name = "my-api"

        async def fetch_records(self, filters=None, *, limit=None, offset=0):
            ...

    records = await MySource().fetch_records(filters, limit=500)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import structlog

log = structlog.get_logger(__name__)


class BaseSource(ABC):
    """Base for upstream adapters; ``name`` labels every log line."""

    name: str = "unknown"
    base_url: str = ""

    def __init__(self) -> None:
        self._log = log.bind(source_name=self.name)

    @abstractmethod
    async def fetch_records(
        self,
        filters: Any = None,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        One page of raw records; [] when nothing matches.

        Raises:
            UpstreamRateLimited: upstream answered HTTP 429.
            UpstreamUnavailable: timeout, transport error or other error status.
        """
