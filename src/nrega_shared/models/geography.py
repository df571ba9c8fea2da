"""
models/geography.py — Pydantic models for the states and districts tables.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class State(BaseModel):
    """Matches the states table row. Identity is state_code."""

    state_code: str
    state_name: str
    updated_at: datetime | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "State":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump(include={"state_code", "state_name"})


class District(BaseModel):
    """Matches the districts table row. Identity is district_code."""

    district_code: str
    district_name: str
    state_code: str
    state_name: str
    updated_at: datetime | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "District":
        return cls(**row)

    def to_insert_dict(self) -> dict[str, Any]:
        return self.model_dump(
            include={"district_code", "district_name", "state_code", "state_name"}
        )
