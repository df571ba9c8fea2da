"""
nrega_shared.models — Pydantic models matching each database table.

These models are used by:
- nrega_pipeline: validate data before writing to Supabase
- nrega_api: shape cache rows and upstream records into service payloads

Table-backed models provide:
  .from_db_row(row: dict) -> Model
  .to_insert_dict() -> dict
"""

from nrega_shared.models.geography import District, State
from nrega_shared.models.performance import Indicators, PerformanceLevel, PerformanceRecord
from nrega_shared.models.sync import SyncRun, SyncStatus

__all__ = [
    "State",
    "District",
    "PerformanceRecord",
    "Indicators",
    "PerformanceLevel",
    "SyncRun",
    "SyncStatus",
]
