"""
models/performance.py — Canonical performance snapshot and its derived indicators.

PerformanceRecord is stored in the performance table as a JSON document
keyed by (district_code, financial_year, month). Indicators are never
stored; they are recomputed from a record on every read.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class PerformanceRecord(BaseModel):
    """One district's programme figures for one financial-year month."""

    district_code: str = ""
    district_name: str = ""
    state_code: str = ""
    state_name: str = ""
    financial_year: str = ""
    month: str = ""

    # Job cards & workers
    total_job_cards_issued: float = 0.0
    active_job_cards: float = 0.0
    total_workers: float = 0.0
    active_workers: float = 0.0
    total_individuals_worked: float = 0.0

    # Person-days and households
    person_days_generated: float = 0.0
    households_employed: float = 0.0
    average_days_per_household: float = 0.0
    households_completed_100_days: float = 0.0

    # Demographic breakdown
    women_persondays: float = 0.0
    women_workers: float = 0.0
    sc_workers: float = 0.0
    sc_persondays: float = 0.0
    st_workers: float = 0.0
    st_persondays: float = 0.0
    differently_abled_persons_worked: float = 0.0

    # Expenditure
    total_expenditure: float = 0.0
    wage_expenditure: float = 0.0
    material_expenditure: float = 0.0
    admin_expenditure: float = 0.0
    average_wage_per_day: float = 0.0

    # Works
    total_works_takenup: float = 0.0
    total_works_ongoing: float = 0.0
    total_works_completed: float = 0.0

    # Budget and timeliness
    approved_labour_budget: float = 0.0
    payment_within_15_days_percent: float = 0.0
    employment_demand_fulfilled_percent: float = 0.0
    percent_category_b_works: float = 0.0
    percent_nrm_expenditure: float = 0.0
    percent_agriculture_expenditure: float = 0.0
    number_of_gps_with_nil_exp: float = 0.0

    data_source: str = "data.gov.in"
    remarks: str = ""

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.district_code, self.financial_year, self.month)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "PerformanceRecord":
        """Build from a performance table row (document lives in ``data``)."""
        payload = dict(row.get("data") or {})
        for key in (
            "district_code", "district_name", "state_code",
            "state_name", "financial_year", "month",
        ):
            if row.get(key) is not None:
                payload.setdefault(key, row[key])
        return cls(**payload)

    def to_insert_dict(self) -> dict[str, Any]:
        return {
            "district_code": self.district_code,
            "district_name": self.district_name,
            "state_code": self.state_code,
            "state_name": self.state_name,
            "financial_year": self.financial_year,
            "month": self.month,
            "data": self.model_dump(),
        }


class PerformanceLevel(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    AVERAGE = "Average"
    NEEDS_IMPROVEMENT = "Needs Improvement"


class Indicators(BaseModel):
    """Derived view of a PerformanceRecord."""

    overall_score: int = Field(ge=0, le=100)
    performance_level: PerformanceLevel
    performance_color: str
    performance_icon: str

    employment_rating: str
    demand_fulfillment_rating: str
    payment_timeliness_rating: str

    households_100_days_percent: int = 0
    employment_rate: int = 0
    budget_utilization: int = 0
    women_participation: int = 0
    payment_efficiency: float = 0.0
    work_completion_rate: int = 0
