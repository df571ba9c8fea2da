"""
tests/test_cli.py — Click commands over an injected loader and source.

configure_logging is replaced with a no-op so no structlog logger gets
cached against CliRunner's short-lived output stream.
"""

from __future__ import annotations

import asyncio

import pytest
from click.testing import CliRunner

from nrega_shared.errors import UpstreamUnavailable
from nrega_pipeline import cli
from nrega_pipeline.loaders.supabase_loader import SupabaseLoader


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)


@pytest.fixture
def loader(fake_supabase, clock) -> SupabaseLoader:
    return SupabaseLoader(fake_supabase, clock=clock)


@pytest.fixture
def invoke(loader):
    runner = CliRunner()

    def _invoke(args, source=None):
        return runner.invoke(cli.main, args, obj={"loader": loader, "source": source})

    return _invoke


class TestSeed:
    def test_loads_states_and_districts(self, invoke, stub_source, datagov_records, fake_supabase):
        result = invoke(["seed"], source=stub_source(datagov_records))

        assert result.exit_code == 0, result.output
        assert "States: 2  Districts: 3" in result.output
        assert {r["district_code"] for r in fake_supabase.rows("districts")} == {"3101", "3102", "0501"}

    def test_state_filter(self, invoke, stub_source, datagov_records):
        source = stub_source(datagov_records)
        result = invoke(["seed", "--state-name", "Bihar"], source=source)

        assert result.exit_code == 0
        assert "States: 1  Districts: 1" in result.output
        assert source.calls[0]["filters"] == {"filters[state_name]": "Bihar"}

    def test_upstream_down_exits_nonzero(self, invoke, stub_source):
        source = stub_source([], errors=[UpstreamUnavailable("timed out")])
        result = invoke(["seed"], source=source)
        assert result.exit_code == 1


class TestSync:
    def test_syncs_stored_districts(self, invoke, stub_source, datagov_records, fake_supabase):
        fake_supabase.tables["districts"] = [
            {"district_code": "3101", "district_name": "Agra", "state_code": "31",
             "state_name": "Uttar Pradesh", "updated_at": None},
        ]
        result = invoke(
            ["sync", "--financial-year", "2024-2025", "--delay-ms", "0"],
            source=stub_source(datagov_records),
        )

        assert result.exit_code == 0, result.output
        assert "Sync completed: 1/1 districts synced" in result.output
        assert [r["month"] for r in fake_supabase.rows("performance")] == ["Jan"]

    def test_rejects_malformed_financial_year(self, invoke, stub_source):
        result = invoke(["sync", "--financial-year", "2024-25"], source=stub_source([]))
        assert result.exit_code == 2
        assert "YYYY-YYYY" in result.output

    def test_rejects_negative_delay(self, invoke, stub_source):
        result = invoke(["sync", "--delay-ms", "-1"], source=stub_source([]))
        assert result.exit_code == 2

    def test_storage_outage_exits_nonzero(self, invoke, stub_source, fake_supabase):
        fake_supabase.failures.add("districts")
        result = invoke(["sync", "--delay-ms", "0"], source=stub_source([]))

        assert result.exit_code == 1
        assert fake_supabase.rows("sync_runs")[0]["status"] == "failed"


class TestStatus:
    def test_no_runs(self, invoke):
        result = invoke(["status"])
        assert result.exit_code == 0
        assert "No sync runs found." in result.output

    def test_lists_runs_newest_first(self, invoke, loader, clock):
        first = asyncio.run(loader.start_sync_run())
        asyncio.run(loader.finish_sync_run(first, records_synced=12))
        clock.advance(hours=1)
        second = asyncio.run(loader.start_sync_run())
        asyncio.run(loader.fail_sync_run(second, "could not load districts: boom"))

        result = invoke(["status"])

        lines = result.output.splitlines()
        assert lines[0] == "Sync runs:"
        assert lines[1].startswith("  ✗ failed")
        assert "could not load districts" in lines[1]
        assert lines[2].startswith("  ✓ completed")
        assert "12 records" in lines[2]

    def test_storage_outage(self, invoke, fake_supabase):
        fake_supabase.failures.add("sync_runs")
        assert invoke(["status"]).exit_code == 1


class TestCleanup:
    def test_reports_deleted_rows(self, invoke, fake_supabase, clock):
        fake_supabase.tables["performance"] = [
            {"district_code": "3101", "financial_year": "2024-2025", "month": "Dec",
             "updated_at": "2024-12-01T00:00:00+00:00"},
        ]
        fake_supabase.tables["api_cache"] = []

        result = invoke(["cleanup", "--days", "7"])

        assert result.exit_code == 0
        assert "performance: 1 rows deleted" in result.output
        assert "api_cache: 0 rows deleted" in result.output
        assert fake_supabase.rows("performance") == []

    def test_storage_outage(self, invoke, fake_supabase):
        fake_supabase.failures.add("performance")
        assert invoke(["cleanup"]).exit_code == 1


def test_default_loader_uses_cli_settings(monkeypatch, fake_supabase):
    calls = []

    def client(**kwargs):
        calls.append(kwargs)
        return fake_supabase

    monkeypatch.setattr("nrega_shared.db.get_supabase_client", client)
    result = CliRunner().invoke(cli.main, ["status"], obj={})

    assert result.exit_code == 0, result.output
    assert calls == [{"service_role": True, "settings": cli.settings}]
