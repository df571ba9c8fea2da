"""
pipelines/seed_geography.py — Populate the states and districts tables.

The batch sync iterates stored districts only, so a fresh database has to
be seeded first. One upstream page (optionally narrowed to a state) is
reduced to unique states and districts by code and upserted.

Usage:
    from nrega_pipeline.pipelines import seed_geography

    result = await seed_geography.run(state_name="Uttar Pradesh")
    print(result.states_loaded, result.districts_loaded)
"""

from __future__ import annotations

from dataclasses import dataclass

from nrega_shared.config import Settings, settings as default_settings
from nrega_shared.errors import NregaError

from nrega_pipeline.loaders.supabase_loader import SupabaseLoader
from nrega_pipeline.sources.datagov import DataGovSource, RecordFilters
from nrega_pipeline.transforms.entities import unique_districts, unique_states
from nrega_pipeline.utils.logging import get_logger

log = get_logger(__name__, pipeline="seed_geography")


@dataclass
class SeedResult:
    success: bool
    states_loaded: int = 0
    districts_loaded: int = 0
    error: str | None = None


async def run(
    *,
    loader: SupabaseLoader | None = None,
    source: DataGovSource | None = None,
    settings: Settings | None = None,
    state_name: str | None = None,
    limit: int | None = None,
) -> SeedResult:
    """Seed states and districts from upstream. Never raises."""
    settings = settings or default_settings
    if loader is None:
        loader = SupabaseLoader(settings=settings)
    if source is None:
        source = DataGovSource(settings=settings)

    try:
        log.info("seed_geography_start", state_name=state_name)
        records = await source.fetch_records(
            RecordFilters(state_name=state_name),
            limit=limit or settings.upstream_page_limit,
        )
        states = unique_states(records)
        districts = unique_districts(records)

        states_result = await loader.upsert_states(states)
        districts_result = await loader.upsert_districts(districts)
    except NregaError as exc:
        log.error("seed_geography_failed", error=str(exc), error_code=exc.code)
        return SeedResult(success=False, error=str(exc))

    result = SeedResult(
        success=states_result.success and districts_result.success,
        states_loaded=states_result.records_loaded,
        districts_loaded=districts_result.records_loaded,
        error="; ".join(states_result.errors + districts_result.errors) or None,
    )
    log.info(
        "seed_geography_complete",
        states=result.states_loaded,
        districts=result.districts_loaded,
        success=result.success,
    )
    return result
