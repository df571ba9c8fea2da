"""
pipelines/district_sync.py — Batch refresh of per-district performance snapshots.

Orchestrates:
  1. Open a sync_runs row (in_progress)
  2. Load every stored district (the districts table must have been seeded)
  3. For each district, sequentially:
       fetch upstream rows for the district's state and financial year
       (one fixed-delay retry on HTTP 429), pick the rows whose district
       name matches, normalize the latest month and upsert it
  4. Sleep sync_delay_ms between districts, whatever the outcome
  5. Close the sync_runs row as completed with the number of districts
     stored, or as failed when anything outside the per-district loop
     breaks

A district with no matching upstream rows is skipped. A district whose
fetch or upsert fails is logged and skipped. Neither fails the run.

Usage:
    from nrega_pipeline.pipelines import district_sync

    result = await district_sync.run(financial_year="2024-2025")
    print(result.success, result.records_synced)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from nrega_shared.config import Settings, settings as default_settings
from nrega_shared.errors import PersistenceFailure, UpstreamRateLimited
from nrega_shared.models import District, PerformanceRecord, SyncRun
from nrega_shared.time_utils import fy_month_index

from nrega_pipeline.loaders.supabase_loader import SupabaseLoader
from nrega_pipeline.sources.datagov import DataGovSource, RecordFilters
from nrega_pipeline.transforms.entities import names_match
from nrega_pipeline.transforms.normalize import normalize_record
from nrega_pipeline.utils.logging import bind_run_context, clear_run_context, get_logger
from nrega_pipeline.utils.retry import retry_once_after

log = get_logger(__name__, pipeline="district_sync")


@dataclass
class SyncResult:
    """Outcome of one batch run; ``sync_run`` is None if it was never recorded."""

    success: bool
    records_synced: int = 0
    districts_total: int = 0
    error: str | None = None
    sync_run: SyncRun | None = None


def select_district_rows(
    district: District,
    records: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """
    Rows belonging to *district*, matched by name.

    Names are compared with a two-way substring test. When that matches more
    than one upstream district, the first one seen is used and the ambiguity
    is logged.
    """
    matched = [
        r for r in records
        if names_match(district.district_name, str(r.get("district_name") or ""))
    ]
    if not matched:
        return []

    names = list(dict.fromkeys(str(r.get("district_name")).strip() for r in matched))
    if len(names) > 1:
        log.warning(
            "district_match_ambiguous",
            district_code=district.district_code,
            district_name=district.district_name,
            candidates=names,
            chosen=names[0],
        )
    chosen = names[0].lower()
    return [r for r in matched if str(r.get("district_name")).strip().lower() == chosen]


def latest_district_record(district: District, rows: list[dict[str, Any]]) -> PerformanceRecord:
    """Normalize the latest financial-year month among *rows*, keyed to *district*."""
    latest = max(rows, key=lambda r: fy_month_index(str(r.get("month") or "")))
    record = normalize_record(latest)
    # Stored codes are authoritative so performance rows join back to districts
    return record.model_copy(
        update={
            "district_code": district.district_code,
            "state_code": district.state_code or record.state_code,
        }
    )


async def _sync_district(
    district: District,
    *,
    source: DataGovSource,
    settings: Settings,
    financial_year: str,
    sleep: Callable[[float], Awaitable[None]],
) -> PerformanceRecord | None:
    filters = RecordFilters(state_name=district.state_name, financial_year=financial_year)
    records = await retry_once_after(
        lambda: source.fetch_records(filters, limit=settings.sync_page_limit),
        delay=settings.rate_limit_backoff_seconds,
        retry_on=UpstreamRateLimited,
        sleep=sleep,
    )
    rows = select_district_rows(district, records)
    if not rows:
        return None
    return latest_district_record(district, rows)


async def run(
    *,
    loader: SupabaseLoader | None = None,
    source: DataGovSource | None = None,
    settings: Settings | None = None,
    financial_year: str | None = None,
    delay_ms: int | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> SyncResult:
    """
    Run one batch sync end-to-end. Never raises.

    Args:
        loader:         Persistent store (default: SupabaseLoader(settings=settings)).
        source:         Upstream adapter (default: DataGovSource()).
        settings:       Settings instance (default: module settings).
        financial_year: FY to sync (default: settings.default_financial_year).
        delay_ms:       Pause between districts (default: settings.sync_delay_ms).
        sleep:          Awaitable sleep, injectable for tests.

    Returns:
        SyncResult with success flag, count and the final SyncRun.
    """
    settings = settings or default_settings
    if loader is None:
        loader = SupabaseLoader(settings=settings)
    if source is None:
        source = DataGovSource(settings=settings)
    fy = financial_year or settings.default_financial_year
    delay_s = (settings.sync_delay_ms if delay_ms is None else delay_ms) / 1000

    sync_run: SyncRun | None = None
    synced = 0
    total = 0
    try:
        log.info("district_sync_start", financial_year=fy, delay_ms=int(delay_s * 1000))
        sync_run = await loader.start_sync_run()
        bind_run_context(sync_run_id=sync_run.id)

        districts = await loader.load_districts()
        total = len(districts)

        for idx, district in enumerate(districts):
            district_log = log.bind(
                district_code=district.district_code,
                district_name=district.district_name,
            )
            try:
                record = await _sync_district(
                    district,
                    source=source,
                    settings=settings,
                    financial_year=fy,
                    sleep=sleep,
                )
                if record is None:
                    district_log.info("district_not_found", financial_year=fy)
                else:
                    await loader.upsert_performance(record)
                    synced += 1
                    district_log.info("district_synced", month=record.month)
            except Exception as exc:
                district_log.error(
                    "district_sync_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )

            if idx < total - 1:
                await sleep(delay_s)

        sync_run = await loader.finish_sync_run(sync_run, synced)
        log.info(
            "district_sync_complete",
            records_synced=synced,
            districts_total=total,
        )
        return SyncResult(
            success=True,
            records_synced=synced,
            districts_total=total,
            sync_run=sync_run,
        )

    except Exception as exc:
        message = str(exc) or type(exc).__name__
        log.error("district_sync_failed_fatal", error=message, error_type=type(exc).__name__)
        if sync_run is not None:
            try:
                sync_run = await loader.fail_sync_run(sync_run, message)
            except PersistenceFailure as record_exc:
                log.error("sync_run_failure_unrecorded", error=str(record_exc))
        return SyncResult(
            success=False,
            records_synced=synced,
            districts_total=total,
            error=message,
            sync_run=sync_run,
        )

    finally:
        clear_run_context()
