"""
sources/datagov.py — data.gov.in MGNREGA district-wise resource adapter.

One resource serves every record; callers narrow it with equality filters.

Endpoint:
  GET {data_gov_api_url}?api-key=…&format=json&limit=N&offset=M
      &filters[state_name]=…&filters[district_name]=…&filters[fin_year]=YYYY-YYYY

Response shape:
  {
    "total": 12345,
    "count": 100,
    "records": [
      { "fin_year": "2024-2025", "month": "Dec", "state_code": "31",
        "state_name": "UTTAR PRADESH", "district_code": "3101",
        "district_name": "AGRA", "Total_No_of_Workers": "512345", ... },
      ...
    ]
  }

Failure mapping (no automatic retry here):
  timeout / connection error     → UpstreamUnavailable
  HTTP 429                       → UpstreamRateLimited
  HTTP 404, missing "records"    → [] (not found is not an error)
  any other HTTP error / bad JSON → UpstreamUnavailable(status_code=…)

Usage:
    source = DataGovSource()
    raw = await source.fetch_records(RecordFilters(state_name="Uttar Pradesh"), limit=1000)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from nrega_shared.config import Settings, settings as default_settings
from nrega_shared.constants import FILTER_DISTRICT_NAME, FILTER_FIN_YEAR, FILTER_STATE_NAME
from nrega_shared.errors import UpstreamRateLimited, UpstreamUnavailable

from nrega_pipeline.sources.base import BaseSource


@dataclass(frozen=True)
class RecordFilters:
    """Equality filters accepted by the resource API."""

    state_name: str | None = None
    district_name: str | None = None
    financial_year: str | None = None

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.state_name:
            params[FILTER_STATE_NAME] = self.state_name
        if self.district_name:
            params[FILTER_DISTRICT_NAME] = self.district_name
        if self.financial_year:
            params[FILTER_FIN_YEAR] = self.financial_year
        return params


class DataGovSource(BaseSource):
    """Reads MGNREGA district performance rows from data.gov.in."""

    name = "data.gov.in"

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self._settings = settings or default_settings
        self.base_url = self._settings.data_gov_api_url.rstrip("/")
        self._timeout = self._settings.upstream_timeout_seconds
        self._client = client

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def fetch_records(
        self,
        filters: RecordFilters | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        Fetch one page of raw records.

        Args:
            filters: Optional state / district / financial-year equality filters.
            limit:   Page size (default: settings.upstream_page_limit).
            offset:  Page offset.

        Returns:
            Raw record dicts exactly as served; [] when nothing matches.
        """
        params: dict[str, Any] = {
            "api-key": self._settings.data_gov_api_key,
            "format": "json",
            "limit": limit if limit is not None else self._settings.upstream_page_limit,
            "offset": offset,
            **(filters or RecordFilters()).to_params(),
        }
        self._log.debug("datagov_fetch", limit=params["limit"], offset=offset,
                        filters=(filters or RecordFilters()).to_params())

        response = await self._get(params)

        if response.status_code == 404:
            self._log.info("datagov_not_found", filters=(filters or RecordFilters()).to_params())
            return []
        if response.status_code == 429:
            self._log.warning("upstream_rate_limited")
            raise UpstreamRateLimited()
        if response.is_error:
            raise UpstreamUnavailable(
                f"data.gov.in returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamUnavailable("data.gov.in response was not valid JSON") from exc

        records = payload.get("records") if isinstance(payload, dict) else None
        if not isinstance(records, list):
            return []
        return [r for r in records if isinstance(r, dict)]

    async def _get(self, params: dict[str, Any]) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.get(self.base_url, params=params, timeout=self._timeout)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.get(self.base_url, params=params)
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailable(f"data.gov.in timed out after {self._timeout}s") from exc
        except httpx.TransportError as exc:
            raise UpstreamUnavailable(f"data.gov.in unreachable: {exc}") from exc
