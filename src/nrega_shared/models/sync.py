"""
models/sync.py — Pydantic model for the sync_runs table.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


class SyncStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncRun(BaseModel):
    """
    Matches the sync_runs table row.

    Inserted as in_progress when a batch starts and updated exactly once
    when it completes or fails.
    """

    id: str
    sync_type: str = "scheduled"
    status: SyncStatus = SyncStatus.IN_PROGRESS
    started_at: datetime
    completed_at: datetime | None = None
    records_synced: int = 0
    error_message: str | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "SyncRun":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
