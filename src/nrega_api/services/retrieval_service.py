"""
Retrieval orchestrator: cache-or-upstream decisions for every read flow.

One service, parameterized by a cache policy, answers every read the
controllers need:

  list_states / list_districts / search_districts
      response cache → Cache Store (fresh within cache_expiry_hours) →
      upstream page, de-duplicated by code in first-seen order, then put
      into the Cache Store. Store reads are skipped under policy "none".
  get_latest_performance / get_performance_history
      response cache → upstream, always. Under "write_through" the
      snapshots are also upserted into the Cache Store.
  compare_districts / get_state_summary
      response cache → stored snapshots (these flows have no upstream
      equivalent).

Every public method returns a ServiceResult and never raises. "Nothing
found" is a success carrying None or []. Upstream faults become failures
with a reason code; Cache Store faults are already misses by the time they
reach this module.

Usage:
    service = create_retrieval_service()
    result = await service.get_latest_performance("Agra", "Uttar Pradesh")
    if result.success and result.data is not None:
        print(result.data["indicators"]["overall_score"])
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import structlog

from nrega_shared.cache_store import CacheStore
from nrega_shared.config import Settings, settings as default_settings
from nrega_shared.errors import UpstreamError
from nrega_shared.models import PerformanceRecord
from nrega_shared.time_utils import is_valid_financial_year

from nrega_api.responses import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    UPSTREAM_RATE_LIMITED,
    UPSTREAM_UNAVAILABLE,
    ServiceResult,
)
from nrega_api.utils.cache import TTLCache, cache_key
from nrega_pipeline.sources.datagov import DataGovSource, RecordFilters
from nrega_pipeline.transforms import entities
from nrega_pipeline.transforms.aggregate import state_averages
from nrega_pipeline.transforms.indicators import compute_indicators
from nrega_pipeline.transforms.normalize import frame_to_records, normalize_record, records_to_frame
from nrega_pipeline.transforms.time_series import deduplicate_periods, latest_period, sort_by_period

log = structlog.get_logger(__name__)

MAX_HISTORY_LIMIT = 120
MAX_COMPARE_DISTRICTS = 10

SOURCE_UPSTREAM = "upstream"
SOURCE_CACHE = "cache"
SOURCE_STORAGE = "storage"
SOURCE_RESPONSE_CACHE = "response_cache"

# Performance columns echoed in comparison rows
COMPARISON_FIELDS: tuple[str, ...] = (
    "person_days_generated",
    "households_employed",
    "average_days_per_household",
    "average_wage_per_day",
    "total_expenditure",
)


class CachePolicy(str, Enum):
    NONE = "none"
    READ_THROUGH = "read_through"
    WRITE_THROUGH = "write_through"


class InvalidRequest(ValueError):
    """Caller-supplied parameters are unusable."""


def performance_payload(record: PerformanceRecord) -> dict[str, Any]:
    """A record plus its freshly computed indicators."""
    return {
        **record.model_dump(mode="json"),
        "indicators": compute_indicators(record).model_dump(mode="json"),
    }


class RetrievalService:
    """Read flows over data.gov.in with an optional Supabase-backed cache."""

    def __init__(
        self,
        source: DataGovSource,
        *,
        cache_store: CacheStore | None = None,
        response_cache: TTLCache | None = None,
        settings: Settings | None = None,
        policy: CachePolicy | str | None = None,
    ) -> None:
        self._settings = settings or default_settings
        self._source = source
        self._store = cache_store
        if response_cache is None:
            response_cache = TTLCache(default_ttl=self._settings.response_cache_list_ttl_seconds)
        self._responses = response_cache
        resolved = CachePolicy(policy or self._settings.cache_policy)
        # Without a store there is nothing to read or write through.
        self.policy = resolved if cache_store is not None else CachePolicy.NONE
        self._list_ttl = self._settings.response_cache_list_ttl_seconds
        self._record_ttl = self._settings.response_cache_record_ttl_seconds

    @property
    def _reads_store(self) -> bool:
        return self.policy in (CachePolicy.READ_THROUGH, CachePolicy.WRITE_THROUGH)

    @property
    def _writes_snapshots(self) -> bool:
        return self.policy is CachePolicy.WRITE_THROUGH

    # ------------------------------------------------------------------
    # List flows
    # ------------------------------------------------------------------

    async def list_states(self) -> ServiceResult:
        async def flow() -> ServiceResult:
            if self._reads_store:
                cached = self._store.get_fresh_states()
                if cached is not None:
                    log.info("states_cache_hit", count=len(cached))
                    return ServiceResult.ok(_dump_all(cached), cached=True, source=SOURCE_CACHE)

            records = await self._source.fetch_records(limit=self._settings.upstream_page_limit)
            states = entities.unique_states(records)
            if self._reads_store and states:
                self._store.put_states(states)
            log.info("states_fetched", count=len(states))
            return ServiceResult.ok(_dump_all(states), source=SOURCE_UPSTREAM)

        return await self._respond("list_states", cache_key("states"), self._list_ttl, flow)

    async def list_districts(self, state_name: str) -> ServiceResult:
        async def flow() -> ServiceResult:
            name = _required(state_name, "state_name")
            if self._reads_store:
                cached = self._store.get_fresh_districts(name)
                if cached is not None:
                    log.info("districts_cache_hit", state_name=name, count=len(cached))
                    return ServiceResult.ok(_dump_all(cached), cached=True, source=SOURCE_CACHE)

            records = await self._source.fetch_records(
                RecordFilters(state_name=name),
                limit=self._settings.upstream_page_limit,
            )
            districts = entities.unique_districts(records)
            if self._reads_store and districts:
                # districts.state_code references states
                if self._store.put_states(entities.unique_states(records)):
                    self._store.put_districts(districts)
            log.info("districts_fetched", state_name=name, count=len(districts))
            return ServiceResult.ok(_dump_all(districts), source=SOURCE_UPSTREAM)

        return await self._respond(
            "list_districts", cache_key("districts", state_name), self._list_ttl, flow
        )

    async def search_districts(self, query: str) -> ServiceResult:
        async def flow() -> ServiceResult:
            needle = _required(query, "query")
            records = await self._source.fetch_records(limit=self._settings.upstream_page_limit)
            matches = entities.search_districts(records, needle)
            log.info("districts_searched", query=needle, count=len(matches))
            return ServiceResult.ok(_dump_all(matches), source=SOURCE_UPSTREAM)

        return await self._respond("search_districts", cache_key("search", query), self._list_ttl, flow)

    # ------------------------------------------------------------------
    # Performance flows (always upstream)
    # ------------------------------------------------------------------

    async def get_latest_performance(
        self,
        district_name: str,
        state_name: str,
        financial_year: str | None = None,
    ) -> ServiceResult:
        fy = financial_year or self._settings.default_financial_year

        async def flow() -> ServiceResult:
            records = await self._fetch_district_records(district_name, state_name, fy)
            if not records:
                log.info("performance_not_found", district_name=district_name, financial_year=fy)
                return ServiceResult.ok(None, source=SOURCE_UPSTREAM)

            # ties keep the first record upstream served
            latest = frame_to_records(latest_period(records_to_frame(records)))[0]
            self._write_through([latest])
            return ServiceResult.ok(performance_payload(latest), source=SOURCE_UPSTREAM)

        return await self._respond(
            "get_latest_performance",
            cache_key("performance", "latest", state_name, district_name, fy),
            self._record_ttl,
            flow,
        )

    async def get_performance_history(
        self,
        district_name: str,
        state_name: str,
        financial_year: str | None = None,
        limit: int = 12,
    ) -> ServiceResult:
        fy = financial_year or self._settings.default_financial_year

        async def flow() -> ServiceResult:
            if not 1 <= limit <= MAX_HISTORY_LIMIT:
                raise InvalidRequest(f"limit must be between 1 and {MAX_HISTORY_LIMIT}")
            records = await self._fetch_district_records(district_name, state_name, fy)
            if not records:
                return ServiceResult.ok([], source=SOURCE_UPSTREAM)

            df = deduplicate_periods(records_to_frame(records))
            history = frame_to_records(sort_by_period(df, descending=True).head(limit))
            self._write_through(history)
            log.info("history_fetched", district_name=district_name, periods=len(history))
            return ServiceResult.ok(
                [performance_payload(r) for r in history], source=SOURCE_UPSTREAM
            )

        return await self._respond(
            "get_performance_history",
            cache_key("performance", "history", state_name, district_name, fy, limit),
            self._record_ttl,
            flow,
        )

    # ------------------------------------------------------------------
    # Stored-snapshot flows
    # ------------------------------------------------------------------

    async def compare_districts(
        self,
        district_codes: list[str],
        financial_year: str | None = None,
    ) -> ServiceResult:
        fy = financial_year or self._settings.default_financial_year
        try:
            codes = _district_codes(district_codes)
        except InvalidRequest as exc:
            return ServiceResult.fail(INVALID_REQUEST, str(exc))
        key = cache_key("performance", "compare", "-".join(codes), fy)

        async def flow() -> ServiceResult:
            _check_financial_year(fy)
            if self._store is None:
                return ServiceResult.ok([], source=SOURCE_STORAGE)

            stored = self._store.get_response(key)
            if stored is not None:
                return ServiceResult.ok(stored, cached=True, source=SOURCE_CACHE)

            snapshots = self._store.get_latest_snapshots(codes, fy) or []
            rows = [
                {
                    "district_code": r.district_code,
                    "district_name": r.district_name,
                    "month": r.month,
                    "performance": {f: getattr(r, f) for f in COMPARISON_FIELDS},
                    "indicators": compute_indicators(r).model_dump(mode="json"),
                }
                for r in snapshots
            ]
            if rows:
                self._store.put_response(key, rows, self._list_ttl)
            return ServiceResult.ok(rows, source=SOURCE_STORAGE)

        return await self._respond("compare_districts", key, self._list_ttl, flow)

    async def get_state_summary(
        self,
        state_name: str,
        financial_year: str | None = None,
    ) -> ServiceResult:
        fy = financial_year or self._settings.default_financial_year

        async def flow() -> ServiceResult:
            name = _required(state_name, "state_name")
            _check_financial_year(fy)
            snapshots = self._store.get_state_snapshots(name, fy) if self._store else None
            summary = state_averages(records_to_frame(snapshots or []))
            if summary is None:
                return ServiceResult.ok(None, source=SOURCE_STORAGE)
            return ServiceResult.ok(
                {"state_name": name, "financial_year": fy, **summary},
                source=SOURCE_STORAGE,
            )

        return await self._respond(
            "get_state_summary", cache_key("summary", state_name, fy), self._list_ttl, flow
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch_district_records(
        self,
        district_name: str,
        state_name: str,
        financial_year: str,
    ) -> list[PerformanceRecord]:
        district = _required(district_name, "district_name")
        state = _required(state_name, "state_name")
        _check_financial_year(financial_year)
        raw = await self._source.fetch_records(
            RecordFilters(
                state_name=state,
                district_name=district,
                financial_year=financial_year,
            ),
            limit=self._settings.upstream_page_limit,
        )
        return [normalize_record(r) for r in raw]

    def _write_through(self, records: list[PerformanceRecord]) -> None:
        if self._writes_snapshots and records:
            if not self._store.put_performance(records):
                log.warning("write_through_skipped", records=len(records))

    async def _respond(
        self,
        operation: str,
        key: str,
        ttl: float,
        flow: Callable[[], Awaitable[ServiceResult]],
    ) -> ServiceResult:
        """Serve from the response cache, else run *flow* and convert faults."""
        hit = self._responses.get(key)
        if hit is not None:
            log.debug("response_cache_hit", operation=operation, key=key)
            return ServiceResult.ok(hit, cached=True, source=SOURCE_RESPONSE_CACHE)

        try:
            result = await flow()
        except InvalidRequest as exc:
            return ServiceResult.fail(INVALID_REQUEST, str(exc))
        except UpstreamError as exc:
            log.warning(
                "upstream_fetch_failed",
                operation=operation,
                error=str(exc),
                status_code=exc.status_code,
            )
            code = UPSTREAM_RATE_LIMITED if exc.code == UPSTREAM_RATE_LIMITED else UPSTREAM_UNAVAILABLE
            return ServiceResult.fail(code, str(exc))
        except Exception as exc:
            log.exception("retrieval_failed", operation=operation, error=str(exc))
            return ServiceResult.fail(INTERNAL_ERROR, f"{operation} failed")

        if result.success and result.data is not None:
            self._responses.set(key, result.data, ttl)
        return result


def _dump_all(items: list[Any]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json", exclude={"updated_at"}) for item in items]


def _required(value: str | None, name: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise InvalidRequest(f"{name} is required")
    return cleaned


def _check_financial_year(value: str) -> None:
    if not is_valid_financial_year(value):
        raise InvalidRequest(f"financial_year must look like 2024-2025, got {value!r}")


def _district_codes(values: Any) -> list[str]:
    """Stripped, de-duplicated district codes in request order."""
    if values is None or isinstance(values, (str, bytes)):
        raise InvalidRequest("district_codes must be a list of codes")
    try:
        items = list(values)
    except TypeError as exc:
        raise InvalidRequest("district_codes must be a list of codes") from exc
    codes: list[str] = []
    for value in items:
        if value is None:
            continue
        if not isinstance(value, str):
            raise InvalidRequest(f"district code must be a string, got {value!r}")
        if value.strip():
            codes.append(value.strip())
    codes = list(dict.fromkeys(codes))
    if not codes:
        raise InvalidRequest("at least one district code is required")
    if len(codes) > MAX_COMPARE_DISTRICTS:
        raise InvalidRequest(f"at most {MAX_COMPARE_DISTRICTS} districts can be compared")
    return codes


def create_retrieval_service(settings: Settings | None = None) -> RetrievalService:
    """
    Build the process-wide service: one source, one response cache and,
    unless the policy is "none", a Supabase-backed Cache Store.
    """
    settings = settings or default_settings
    store = None if settings.cache_policy == CachePolicy.NONE.value else CacheStore(settings=settings)
    return RetrievalService(
        DataGovSource(settings=settings),
        cache_store=store,
        response_cache=TTLCache(default_ttl=settings.response_cache_list_ttl_seconds),
        settings=settings,
    )
