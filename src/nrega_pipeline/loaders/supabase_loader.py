"""
loaders/supabase_loader.py — Persistent writes and the sync-run log.

Everything the sync job and the seed command store goes through here.
Unlike the advisory CacheStore, a storage failure is not swallowed: every
method raises PersistenceFailure so the caller decides whether it is fatal
(loading the district list, opening a sync run) or per-district (one
performance upsert).

The loader:
  - Upserts rows in batches (INSERT … ON CONFLICT DO UPDATE) keyed by the
    natural identity of each table
  - Upserts one PerformanceRecord per (district_code, financial_year, month)
  - Records sync_runs rows: in_progress on start, completed / failed once
  - Applies the snapshot retention policy (cleanup)

Usage:
    from nrega_pipeline.loaders.supabase_loader import SupabaseLoader

    loader = SupabaseLoader()

    run = await loader.start_sync_run()
    try:
        districts = await loader.load_districts()
        ...
        await loader.finish_sync_run(run, records_synced=42)
    except PersistenceFailure as exc:
        await loader.fail_sync_run(run, str(exc))
"""

from __future__ import annotations

import math
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import structlog
from supabase import Client

from nrega_shared.config import Settings
from nrega_shared.constants import (
    API_CACHE_TABLE,
    DISTRICT_KEY,
    DISTRICTS_TABLE,
    PERFORMANCE_KEY,
    PERFORMANCE_TABLE,
    STATE_KEY,
    STATES_TABLE,
    SYNC_RUNS_TABLE,
)
from nrega_shared.errors import PersistenceFailure
from nrega_shared.models import District, PerformanceRecord, State, SyncRun, SyncStatus
from nrega_shared.time_utils import utcnow

log = structlog.get_logger(__name__)

BATCH_SIZE = 500        # rows per Supabase request
ERROR_MESSAGE_MAX = 2000  # sync_runs.error_message column limit


@dataclass
class LoadResult:
    """Summary of a batched upsert."""

    table: str
    records_loaded: int = 0
    records_failed: int = 0
    batches_total: int = 0
    batches_failed: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.records_failed == 0

    @property
    def status(self) -> str:
        if self.records_failed == 0:
            return "success"
        if self.records_loaded > 0:
            return "partial_failure"
        return "failure"


class SupabaseLoader:
    """
    Handles all persistent writes for the sync job and the CLI.

    Uses the service role key so RLS is bypassed for job writes.
    """

    def __init__(
        self,
        client: Client | None = None,
        *,
        settings: Settings | None = None,
        batch_size: int = BATCH_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._client = client
        self._settings = settings
        self._batch_size = batch_size
        self._clock = clock

    # ------------------------------------------------------------------
    # Batched upsert
    # ------------------------------------------------------------------

    async def upsert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        conflict_columns: list[str] | tuple[str, ...],
    ) -> LoadResult:
        """
        Upsert rows into *table* in batches, stamping ``updated_at``.

        Failed batches are logged and counted; the remaining batches still
        run. Raises PersistenceFailure only when no client can be created.
        """
        result = LoadResult(table=table)
        t0 = time.monotonic()

        if not rows:
            log.warning("upsert_empty_rows", table=table)
            return result

        client = self._get_client()
        loader_log = log.bind(table=table, total_rows=len(rows))
        loader_log.info("upsert_start")

        stamp = self._clock().isoformat()
        rows = [{**row, "updated_at": stamp} for row in rows]

        n_batches = math.ceil(len(rows) / self._batch_size)
        result.batches_total = n_batches

        for batch_idx in range(n_batches):
            start = batch_idx * self._batch_size
            batch = rows[start : start + self._batch_size]
            try:
                client.table(table).upsert(
                    batch,
                    on_conflict=",".join(conflict_columns),
                ).execute()
                result.records_loaded += len(batch)
            except Exception as exc:
                log.error("batch_failed", table=table, batch=batch_idx + 1, error=str(exc))
                result.records_failed += len(batch)
                result.batches_failed += 1
                result.errors.append(f"Batch {batch_idx + 1}/{n_batches}: {exc}")

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        loader_log.info(
            "upsert_complete",
            records_loaded=result.records_loaded,
            records_failed=result.records_failed,
            duration_ms=result.duration_ms,
            status=result.status,
        )
        return result

    async def upsert_states(self, states: list[State]) -> LoadResult:
        return await self.upsert(STATES_TABLE, [s.to_insert_dict() for s in states], [STATE_KEY])

    async def upsert_districts(self, districts: list[District]) -> LoadResult:
        return await self.upsert(
            DISTRICTS_TABLE, [d.to_insert_dict() for d in districts], [DISTRICT_KEY]
        )

    async def upsert_performance(self, record: PerformanceRecord) -> None:
        """
        Store one snapshot, replacing any earlier one with the same identity.

        Raises:
            PersistenceFailure: the write was rejected.
        """
        row = {**record.to_insert_dict(), "updated_at": self._clock().isoformat()}
        try:
            self._get_client().table(PERFORMANCE_TABLE).upsert(
                row, on_conflict=",".join(PERFORMANCE_KEY)
            ).execute()
        except PersistenceFailure:
            raise
        except Exception as exc:
            raise PersistenceFailure(
                f"performance upsert failed for {record.district_code}: {exc}"
            ) from exc
        log.debug("performance_upserted", identity=record.identity)

    # ------------------------------------------------------------------
    # Reads used by the sync job
    # ------------------------------------------------------------------

    async def load_districts(self) -> list[District]:
        """
        Every stored district, ordered by name.

        Raises:
            PersistenceFailure: the districts table could not be read.
        """
        try:
            result = (
                self._get_client()
                .table(DISTRICTS_TABLE)
                .select("*")
                .order("district_name")
                .execute()
            )
        except PersistenceFailure:
            raise
        except Exception as exc:
            raise PersistenceFailure(f"could not load districts: {exc}") from exc
        districts = [District.from_db_row(r) for r in (result.data or [])]
        log.info("districts_loaded", count=len(districts))
        return districts

    # ------------------------------------------------------------------
    # Sync run tracking
    # ------------------------------------------------------------------

    async def start_sync_run(self, sync_type: str = "scheduled") -> SyncRun:
        """Insert an in_progress sync_runs row and return it."""
        run = SyncRun(
            id=str(uuid.uuid4()),
            sync_type=sync_type,
            status=SyncStatus.IN_PROGRESS,
            started_at=self._clock(),
        )
        self._execute(
            "start_sync_run",
            lambda c: c.table(SYNC_RUNS_TABLE).insert(run.to_insert_dict()).execute(),
        )
        log.info("sync_run_started", sync_run_id=run.id, sync_type=sync_type)
        return run

    async def finish_sync_run(self, run: SyncRun, records_synced: int) -> SyncRun:
        """Mark *run* completed with its final count."""
        finished = run.model_copy(
            update={
                "status": SyncStatus.COMPLETED,
                "records_synced": records_synced,
                "completed_at": self._clock(),
            }
        )
        self._update_run(finished, ["status", "records_synced", "completed_at"])
        log.info("sync_run_finished", sync_run_id=run.id, records_synced=records_synced)
        return finished

    async def fail_sync_run(self, run: SyncRun, error_message: str) -> SyncRun:
        """Mark *run* failed with a (truncated) error message."""
        failed = run.model_copy(
            update={
                "status": SyncStatus.FAILED,
                "error_message": error_message[:ERROR_MESSAGE_MAX],
                "completed_at": self._clock(),
            }
        )
        self._update_run(failed, ["status", "error_message", "completed_at"])
        log.error("sync_run_failed", sync_run_id=run.id, error=error_message[:200])
        return failed

    async def recent_sync_runs(self, limit: int = 10) -> list[SyncRun]:
        result = self._execute(
            "recent_sync_runs",
            lambda c: (
                c.table(SYNC_RUNS_TABLE)
                .select("*")
                .order("started_at", desc=True)
                .limit(limit)
                .execute()
            ),
        )
        return [SyncRun.from_db_row(r) for r in (result.data or [])]

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def cleanup(self, retention_days: int) -> dict[str, int]:
        """
        Delete performance snapshots not refreshed within *retention_days*
        and every expired api_cache row.

        Returns:
            Rows deleted per table.
        """
        now = self._clock()
        cutoff = (now - timedelta(days=retention_days)).isoformat()

        snapshots = self._execute(
            "cleanup_performance",
            lambda c: c.table(PERFORMANCE_TABLE).delete().lt("updated_at", cutoff).execute(),
        )
        responses = self._execute(
            "cleanup_api_cache",
            lambda c: c.table(API_CACHE_TABLE).delete().lt("expires_at", now.isoformat()).execute(),
        )
        deleted = {
            PERFORMANCE_TABLE: len(snapshots.data or []),
            API_CACHE_TABLE: len(responses.data or []),
        }
        log.info("cleanup_complete", retention_days=retention_days, **deleted)
        return deleted

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_client(self) -> Client:
        if self._client is None:
            from nrega_shared.db import get_supabase_client

            try:
                self._client = get_supabase_client(service_role=True, settings=self._settings)
            except RuntimeError as exc:
                raise PersistenceFailure(str(exc)) from exc
        return self._client

    def _execute(self, operation: str, query: Callable[[Client], Any]) -> Any:
        client = self._get_client()
        try:
            return query(client)
        except Exception as exc:
            raise PersistenceFailure(f"{operation} failed: {exc}") from exc

    def _update_run(self, run: SyncRun, columns: list[str]) -> None:
        values = run.model_dump(mode="json", include=set(columns))
        self._execute(
            "update_sync_run",
            lambda c: c.table(SYNC_RUNS_TABLE).update(values).eq("id", run.id).execute(),
        )
