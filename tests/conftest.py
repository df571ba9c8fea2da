"""
tests/conftest.py — Shared pytest fixtures for the nrega-pulse test suite.

Provides:
  fixture_path       — resolves paths to tests/fixtures/
  datagov_payload    — parsed data.gov.in response fixture
  datagov_records    — its "records" list
  test_settings      — Settings isolated from the environment / .env
  api_url            — upstream resource URL the test settings point at
  fake_supabase      — in-memory stand-in for the supabase.Client query chain
  clock              — controllable UTC clock for freshness tests
  recorded_sleep     — awaitable sleep that records delays instead of waiting
  stub_source        — factory for a DataGovSource stand-in with canned records
"""

from __future__ import annotations

import copy
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from nrega_shared.config import Settings
from nrega_shared.errors import NregaError

FIXTURES_DIR = Path(__file__).parent / "fixtures"

API_URL = "https://api.test.local/resource/mgnrega"


# ---------------------------------------------------------------------------
# Fake Supabase client
# ---------------------------------------------------------------------------

class FakeResult:
    def __init__(self, data: list[dict[str, Any]]) -> None:
        self.data = data
        self.count = len(data)


class FakeQuery:
    """Records a query-builder chain and evaluates it on execute()."""

    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._columns: list[str] | None = None
        self._filters: list[Callable[[dict[str, Any]], bool]] = []
        self._order: tuple[str, bool] | None = None
        self._limit: int | None = None
        self._payload: Any = None
        self._on_conflict: list[str] = []

    # -- operations ---------------------------------------------------------
    def select(self, columns: str = "*", count: str | None = None) -> "FakeQuery":
        self._op = "select"
        if columns.strip() != "*":
            self._columns = [c.strip() for c in columns.split(",")]
        return self

    def upsert(self, rows: Any, on_conflict: str = "") -> "FakeQuery":
        self._op = "upsert"
        self._payload = rows if isinstance(rows, list) else [rows]
        self._on_conflict = [c for c in on_conflict.split(",") if c]
        return self

    def insert(self, rows: Any) -> "FakeQuery":
        self._op = "insert"
        self._payload = rows if isinstance(rows, list) else [rows]
        return self

    def update(self, values: dict[str, Any]) -> "FakeQuery":
        self._op = "update"
        self._payload = values
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    # -- filters ------------------------------------------------------------
    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda r: r.get(column) == value)
        return self

    def in_(self, column: str, values: list[Any]) -> "FakeQuery":
        allowed = set(values)
        self._filters.append(lambda r: r.get(column) in allowed)
        return self

    def ilike(self, column: str, pattern: str) -> "FakeQuery":
        needle = pattern.strip("%").lower()
        self._filters.append(lambda r: needle in str(r.get(column, "")).lower())
        return self

    def lt(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda r: r.get(column) is not None and r[column] < value)
        return self

    def gte(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda r: r.get(column) is not None and r[column] >= value)
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def limit(self, n: int) -> "FakeQuery":
        self._limit = n
        return self

    # -- evaluation ---------------------------------------------------------
    def execute(self) -> FakeResult:
        self._db.calls.append((self._table, self._op))
        if (self._table, self._op) in self._db.failures or self._table in self._db.failures:
            raise RuntimeError(f"simulated failure: {self._table}.{self._op}")

        rows = self._db.tables.setdefault(self._table, [])
        matching = [r for r in rows if all(f(r) for f in self._filters)]

        if self._op == "select":
            if self._order:
                col, desc = self._order
                matching = sorted(matching, key=lambda r: str(r.get(col, "")), reverse=desc)
            if self._limit is not None:
                matching = matching[: self._limit]
            out = copy.deepcopy(matching)
            if self._columns:
                out = [{c: r.get(c) for c in self._columns} for r in out]
            return FakeResult(out)

        if self._op in ("insert", "upsert"):
            self._db.check_references(self._table, self._payload)

        if self._op == "insert":
            for row in self._payload:
                rows.append(copy.deepcopy(row))
            return FakeResult(copy.deepcopy(self._payload))

        if self._op == "upsert":
            for row in self._payload:
                existing = next(
                    (
                        r for r in rows
                        if self._on_conflict
                        and all(r.get(k) == row.get(k) for k in self._on_conflict)
                    ),
                    None,
                )
                if existing is None:
                    rows.append(copy.deepcopy(row))
                else:
                    existing.update(copy.deepcopy(row))
            return FakeResult(copy.deepcopy(self._payload))

        if self._op == "update":
            for r in matching:
                r.update(copy.deepcopy(self._payload))
            return FakeResult(copy.deepcopy(matching))

        if self._op == "delete":
            self._db.tables[self._table] = [r for r in rows if r not in matching]
            return FakeResult(copy.deepcopy(matching))

        raise AssertionError(f"unsupported op {self._op}")


class FakeSupabase:
    """
    Minimal supabase.Client stand-in backed by per-table lists of dicts.

    Add a table name, or a (table, op) pair, to ``failures`` to make the
    matching execute() calls raise. Map (table, column) to (ref_table,
    ref_column) in ``foreign_keys`` to reject writes whose value has no
    referenced row, the way Postgres rejects them.
    """

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = copy.deepcopy(tables or {})
        self.failures: set[Any] = set()
        self.calls: list[tuple[str, str]] = []
        self.foreign_keys: dict[tuple[str, str], tuple[str, str]] = {}

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> list[dict[str, Any]]:
        return self.tables.get(name, [])

    def check_references(self, table: str, rows: list[dict[str, Any]]) -> None:
        for (src_table, column), (ref_table, ref_column) in self.foreign_keys.items():
            if src_table != table:
                continue
            present = {r.get(ref_column) for r in self.rows(ref_table)}
            for row in rows:
                value = row.get(column)
                if value is not None and value not in present:
                    raise RuntimeError(
                        f"foreign key violation: {table}.{column}={value!r} "
                        f"not in {ref_table}.{ref_column}"
                    )


# ---------------------------------------------------------------------------
# Upstream stand-in
# ---------------------------------------------------------------------------

class StubSource:
    """
    DataGovSource stand-in. ``records`` are filtered the way the resource
    API filters them (case-insensitive equality); queued ``errors`` are
    raised by successive calls before any records are returned.
    """

    def __init__(
        self,
        records: list[dict[str, Any]] | None = None,
        *,
        errors: list[NregaError] | None = None,
        errors_by_state: dict[str, NregaError] | None = None,
    ) -> None:
        self.records = records or []
        self.errors = list(errors or [])
        self.errors_by_state = errors_by_state or {}
        self.calls: list[dict[str, Any]] = []

    async def fetch_records(self, filters=None, *, limit=None, offset=0):
        params = filters.to_params() if filters is not None else {}
        self.calls.append({"filters": params, "limit": limit, "offset": offset})
        if self.errors:
            raise self.errors.pop(0)
        state = getattr(filters, "state_name", None)
        if state and state.lower() in self.errors_by_state:
            raise self.errors_by_state[state.lower()]

        def keep(r: dict[str, Any]) -> bool:
            for key, attr in (
                ("state_name", "state_name"),
                ("district_name", "district_name"),
                ("fin_year", "financial_year"),
            ):
                wanted = getattr(filters, attr, None) if filters is not None else None
                if wanted and str(r.get(key, "")).lower() != wanted.lower():
                    return False
            return True

        matched = [copy.deepcopy(r) for r in self.records if keep(r)]
        return matched[: limit] if limit else matched


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class FrozenClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def datagov_payload() -> dict:
    return json.loads((FIXTURES_DIR / "datagov_sample.json").read_text())


@pytest.fixture
def datagov_records(datagov_payload: dict) -> list[dict[str, Any]]:
    return datagov_payload["records"]


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        data_gov_api_url=API_URL,
        data_gov_api_key="test-key",
        upstream_timeout_seconds=5.0,
        supabase_url="http://localhost:54321",
        supabase_service_key="",
        cache_policy="read_through",
        sync_delay_ms=500,
        rate_limit_backoff_seconds=5.0,
    )


@pytest.fixture
def api_url() -> str:
    return API_URL


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def recorded_sleep():
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays  # type: ignore[attr-defined]
    return sleep


@pytest.fixture
def stub_source():
    return StubSource
