"""
tests/test_shared/test_models.py — Row conversion for the pydantic models.
"""

from __future__ import annotations

from datetime import datetime, timezone

from nrega_shared.models import District, PerformanceRecord, State, SyncRun, SyncStatus


def test_state_insert_dict_excludes_timestamp():
    state = State(state_code="31", state_name="UTTAR PRADESH", updated_at=datetime.now(timezone.utc))
    assert state.to_insert_dict() == {"state_code": "31", "state_name": "UTTAR PRADESH"}


def test_district_from_row():
    district = District.from_db_row(
        {
            "district_code": "3101",
            "district_name": "AGRA",
            "state_code": "31",
            "state_name": "UTTAR PRADESH",
            "updated_at": "2025-01-15T12:00:00+00:00",
        }
    )
    assert district.updated_at == datetime(2025, 1, 15, 12, tzinfo=timezone.utc)


def test_performance_row_round_trip():
    record = PerformanceRecord(
        district_code="3101",
        district_name="AGRA",
        financial_year="2024-2025",
        month="Dec",
        total_workers=500,
    )
    row = record.to_insert_dict()

    assert row["district_code"] == "3101"
    assert row["month"] == "Dec"
    assert row["data"]["total_workers"] == 500.0
    assert PerformanceRecord.from_db_row(row) == record
    assert record.identity == ("3101", "2024-2025", "Dec")


def test_performance_from_row_fills_identity_from_columns():
    record = PerformanceRecord.from_db_row(
        {"district_code": "3101", "financial_year": "2024-2025", "month": "Jan", "data": {"total_workers": 7}}
    )
    assert record.identity == ("3101", "2024-2025", "Jan")
    assert record.total_workers == 7.0


def test_sync_run_insert_dict_is_json_ready():
    run = SyncRun(id="abc", started_at=datetime(2025, 1, 15, tzinfo=timezone.utc))
    row = run.to_insert_dict()

    assert row["status"] == "in_progress"
    assert row["started_at"].startswith("2025-01-15T00:00:00")
    assert "completed_at" not in row
    assert SyncRun.from_db_row(row).status is SyncStatus.IN_PROGRESS
