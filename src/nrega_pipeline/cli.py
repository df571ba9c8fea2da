"""
cli.py — Click CLI entrypoint for the sync worker.

Usage:
    nrega seed --state-name "Uttar Pradesh"
    nrega sync --financial-year 2024-2025
    nrega status
    nrega cleanup --days 7
"""

from __future__ import annotations

import asyncio
import sys

import click
import structlog

from nrega_shared.config import settings
from nrega_shared.errors import PersistenceFailure
from nrega_shared.time_utils import is_valid_financial_year

from nrega_pipeline.utils.logging import configure_logging

log = structlog.get_logger(__name__)

_STATUS_MARKS = {"completed": "✓", "failed": "✗", "in_progress": "⟳"}


def _loader(ctx: click.Context):
    """Loader from the context (tests inject one) or a fresh SupabaseLoader."""
    loader = ctx.obj.get("loader")
    if loader is None:
        from nrega_pipeline.loaders.supabase_loader import SupabaseLoader

        loader = ctx.obj["loader"] = SupabaseLoader(settings=settings)
    return loader


def _source(ctx: click.Context):
    source = ctx.obj.get("source")
    if source is None:
        from nrega_pipeline.sources.datagov import DataGovSource

        source = ctx.obj["source"] = DataGovSource(settings=settings)
    return source


def _validate_fy(ctx: click.Context, param: click.Parameter, value: str | None) -> str | None:
    if value is not None and not is_valid_financial_year(value):
        raise click.BadParameter("expected YYYY-YYYY, e.g. 2024-2025")
    return value


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.pass_context
def main(ctx: click.Context, log_level: str) -> None:
    """nrega-pulse sync worker."""
    ctx.ensure_object(dict)
    configure_logging(log_level=log_level)


@main.command()
@click.option("--state-name", default=None, help="Only seed districts of this state.")
@click.option("--limit", default=None, type=int, help="Upstream page size.")
@click.pass_context
def seed(ctx: click.Context, state_name: str | None, limit: int | None) -> None:
    """Seed the states and districts tables from data.gov.in."""
    from nrega_pipeline.pipelines import seed_geography

    result = asyncio.run(
        seed_geography.run(
            loader=_loader(ctx),
            source=_source(ctx),
            settings=settings,
            state_name=state_name,
            limit=limit,
        )
    )
    click.echo(f"States: {result.states_loaded}  Districts: {result.districts_loaded}")
    if not result.success:
        click.echo(f"Seed failed: {result.error}", err=True)
        sys.exit(1)


@main.command()
@click.option(
    "--financial-year",
    default=None,
    callback=_validate_fy,
    help="Financial year to sync (default: DEFAULT_FINANCIAL_YEAR).",
)
@click.option("--delay-ms", default=None, type=click.IntRange(min=0), help="Pause between districts.")
@click.pass_context
def sync(ctx: click.Context, financial_year: str | None, delay_ms: int | None) -> None:
    """Refresh performance snapshots for every stored district."""
    from nrega_pipeline.pipelines import district_sync

    result = asyncio.run(
        district_sync.run(
            loader=_loader(ctx),
            source=_source(ctx),
            settings=settings,
            financial_year=financial_year,
            delay_ms=delay_ms,
        )
    )
    if result.success:
        click.echo(
            f"Sync completed: {result.records_synced}/{result.districts_total} districts synced"
        )
        return
    click.echo(f"Sync failed: {result.error}", err=True)
    sys.exit(1)


@main.command()
@click.option("--limit", default=10, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def status(ctx: click.Context, limit: int) -> None:
    """Show the most recent sync runs."""
    click.echo("Sync runs:")
    try:
        runs = asyncio.run(_loader(ctx).recent_sync_runs(limit))
    except PersistenceFailure as exc:
        log.error("sync_status_failed", error=str(exc))
        click.echo(f"  Error fetching status: {exc}", err=True)
        sys.exit(1)

    if not runs:
        click.echo("  No sync runs found.")
        return
    for run in runs:
        mark = _STATUS_MARKS.get(run.status.value, "?")
        line = (
            f"  {mark} {run.status.value:12s} "
            f"{run.records_synced:6d} records  "
            f"{run.started_at.isoformat()[:19]}"
        )
        if run.error_message:
            line += f"  {run.error_message[:80]}"
        click.echo(line)


@main.command()
@click.option(
    "--days",
    default=settings.performance_retention_days,
    show_default=True,
    type=click.IntRange(min=1),
    help="Keep snapshots refreshed within this many days.",
)
@click.pass_context
def cleanup(ctx: click.Context, days: int) -> None:
    """Delete stale performance snapshots and expired cached responses."""
    try:
        deleted = asyncio.run(_loader(ctx).cleanup(days))
    except PersistenceFailure as exc:
        log.error("cleanup_failed", retention_days=days, error=str(exc))
        click.echo(f"Cleanup failed: {exc}", err=True)
        sys.exit(1)
    for table, count in deleted.items():
        click.echo(f"  {table}: {count} rows deleted")


if __name__ == "__main__":
    main()
