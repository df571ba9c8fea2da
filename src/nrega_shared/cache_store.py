"""
cache_store.py — Advisory Supabase-backed cache for lists, snapshots and responses.

Three kinds of entries live here:
  - state / district lists (states, districts tables), merged by natural
    code on write and served while ``now - updated_at < window``
  - performance snapshots (performance table), upserted by
    (district_code, financial_year, month)
  - derived responses (api_cache table), opaque JSON with an explicit
    ``expires_at``

The store is advisory: every backing-store failure is logged as
``cache_*_failed`` and converted into a miss (reads) or a ``False`` return
(writes). Nothing raised by Supabase ever leaves this class, so callers
fall back to direct upstream mode when the database is down.

Usage:
    store = CacheStore(client=get_supabase_client(service_role=True))

    states = store.get_fresh_states()          # None on miss / failure
    if states is None:
        states = fetch_from_upstream()
        store.put_states(states)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

import structlog
from supabase import Client

from nrega_shared.config import Settings, settings as default_settings
from nrega_shared.constants import (
    API_CACHE_TABLE,
    DISTRICT_KEY,
    DISTRICTS_TABLE,
    PERFORMANCE_KEY,
    PERFORMANCE_TABLE,
    STATE_KEY,
    STATES_TABLE,
)
from nrega_shared.errors import CacheUnavailable
from nrega_shared.models import District, PerformanceRecord, State
from nrega_shared.time_utils import fy_month_index, is_fresh, parse_timestamp, utcnow

log = structlog.get_logger(__name__)


class CacheStore:
    """Read-through / write-through cache over the Supabase tables."""

    def __init__(
        self,
        client: Client | None = None,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._client = client
        self._settings = settings or default_settings
        self._clock = clock
        self.list_window = timedelta(seconds=self._settings.cache_window_seconds)

    # ------------------------------------------------------------------
    # State / district lists
    # ------------------------------------------------------------------

    def get_fresh_states(self, window: timedelta | None = None) -> list[State] | None:
        """Return cached states updated within *window*, or None on a miss."""
        rows = self._read(
            "states",
            lambda c: c.table(STATES_TABLE).select("*").order("state_name").execute().data,
        )
        fresh = self._fresh_rows(rows, window)
        if not fresh:
            return None
        return [State.from_db_row(r) for r in fresh]

    def put_states(self, states: Iterable[State]) -> bool:
        rows = [s.to_insert_dict() for s in states]
        return self._upsert("states", STATES_TABLE, rows, on_conflict=STATE_KEY)

    def get_fresh_districts(
        self,
        state_name: str,
        window: timedelta | None = None,
    ) -> list[District] | None:
        """Return cached districts of *state_name* updated within *window*."""
        rows = self._read(
            "districts",
            lambda c: (
                c.table(DISTRICTS_TABLE)
                .select("*")
                .eq("state_name", state_name)
                .order("district_name")
                .execute()
                .data
            ),
        )
        fresh = self._fresh_rows(rows, window)
        if not fresh:
            return None
        return [District.from_db_row(r) for r in fresh]

    def put_districts(self, districts: Iterable[District]) -> bool:
        rows = [d.to_insert_dict() for d in districts]
        return self._upsert("districts", DISTRICTS_TABLE, rows, on_conflict=DISTRICT_KEY)

    # ------------------------------------------------------------------
    # Performance snapshots
    # ------------------------------------------------------------------

    def put_performance(self, records: Iterable[PerformanceRecord]) -> bool:
        """Upsert snapshots; the last write for an identity wins."""
        rows = [r.to_insert_dict() for r in records]
        return self._upsert(
            "performance",
            PERFORMANCE_TABLE,
            rows,
            on_conflict=",".join(PERFORMANCE_KEY),
        )

    def get_latest_snapshots(
        self,
        district_codes: list[str],
        financial_year: str,
    ) -> list[PerformanceRecord] | None:
        """
        Latest stored month per district for one financial year.

        Districts with nothing stored are simply absent from the result.
        """
        rows = self._read(
            "performance",
            lambda c: (
                c.table(PERFORMANCE_TABLE)
                .select("*")
                .in_("district_code", district_codes)
                .eq("financial_year", financial_year)
                .execute()
                .data
            ),
        )
        if rows is None:
            return None

        latest: dict[str, PerformanceRecord] = {}
        for row in rows:
            record = PerformanceRecord.from_db_row(row)
            current = latest.get(record.district_code)
            if current is None or fy_month_index(record.month) > fy_month_index(current.month):
                latest[record.district_code] = record
        return [latest[code] for code in district_codes if code in latest]

    def get_state_snapshots(
        self,
        state_name: str,
        financial_year: str,
    ) -> list[PerformanceRecord] | None:
        rows = self._read(
            "performance",
            lambda c: (
                c.table(PERFORMANCE_TABLE)
                .select("*")
                .eq("state_name", state_name)
                .eq("financial_year", financial_year)
                .execute()
                .data
            ),
        )
        if rows is None:
            return None
        return [PerformanceRecord.from_db_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Derived responses
    # ------------------------------------------------------------------

    def get_response(self, key: str) -> Any | None:
        """Return the cached payload for *key* if it has not expired."""
        rows = self._read(
            "response",
            lambda c: (
                c.table(API_CACHE_TABLE)
                .select("payload, expires_at")
                .eq("cache_key", key)
                .limit(1)
                .execute()
                .data
            ),
        )
        if not rows:
            return None
        expires_at = parse_timestamp(rows[0].get("expires_at"))
        if expires_at is None or self._clock() >= expires_at:
            return None
        return rows[0].get("payload")

    def put_response(self, key: str, payload: Any, ttl_seconds: float) -> bool:
        now = self._clock()
        row = {
            "cache_key": key,
            "payload": payload,
            "expires_at": (now + timedelta(seconds=ttl_seconds)).isoformat(),
        }
        return self._upsert("response", API_CACHE_TABLE, [row], on_conflict="cache_key")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_client(self) -> Client:
        if self._client is None:
            # Imported lazily so a missing key only disables the cache.
            from nrega_shared.db import get_supabase_client

            try:
                self._client = get_supabase_client(service_role=True, settings=self._settings)
            except RuntimeError as exc:
                raise CacheUnavailable(str(exc)) from exc
        return self._client

    def _fresh_rows(
        self,
        rows: list[dict[str, Any]] | None,
        window: timedelta | None,
    ) -> list[dict[str, Any]]:
        if not rows:
            return []
        window = window or self.list_window
        now = self._clock()
        return [r for r in rows if is_fresh(r.get("updated_at"), window, now=now)]

    def _read(
        self,
        entity: str,
        query: Callable[[Client], list[dict[str, Any]] | None],
    ) -> list[dict[str, Any]] | None:
        try:
            return query(self._get_client()) or []
        except Exception as exc:
            log.warning("cache_read_failed", entity=entity, error=str(exc))
            return None

    def _upsert(
        self,
        entity: str,
        table: str,
        rows: list[dict[str, Any]],
        *,
        on_conflict: str,
    ) -> bool:
        if not rows:
            return True
        stamp = self._clock().isoformat()
        rows = [{**row, "updated_at": stamp} for row in rows]
        try:
            self._get_client().table(table).upsert(rows, on_conflict=on_conflict).execute()
        except Exception as exc:
            log.warning("cache_write_failed", entity=entity, rows=len(rows), error=str(exc))
            return False
        log.debug("cache_write", entity=entity, rows=len(rows))
        return True
