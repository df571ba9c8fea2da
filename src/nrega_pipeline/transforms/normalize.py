"""
transforms/normalize.py — Raw data.gov.in record → canonical PerformanceRecord.

The upstream dataset uses CamelCase_With_Underscores column names (with at
least one misspelling that must be matched exactly), ships every number as
a string, and leaves many cells empty. This module:

  - maps upstream keys to canonical keys through a fixed table; anything
    not in the table is dropped
  - parses every numeric cell tolerantly: None, "", "NA", "1,2x" … → 0.0,
    never an exception, never NaN
  - derives employment_demand_fulfilled_percent and women_workers

Demand fulfilled is active workers as a share of registered workers,
clamped to [0, 100] and rounded half-up. A zero denominator yields 0, which
the indicator calculator treats as "unknown" rather than as a score.

Usage:
    from nrega_pipeline.transforms.normalize import normalize_record, records_to_frame

    record = normalize_record(raw_dict)
    df = records_to_frame([record, ...])
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

import polars as pl

from nrega_shared.constants import ASSUMED_DAYS_PER_WORKER, DATA_SOURCE_NAME
from nrega_shared.models import PerformanceRecord

# ---------------------------------------------------------------------------
# Field mapping: upstream key → canonical key
# ---------------------------------------------------------------------------
FIELD_MAP: dict[str, str] = {
    # identity
    "district_code": "district_code",
    "district_name": "district_name",
    "state_code": "state_code",
    "state_name": "state_name",
    "fin_year": "financial_year",
    "month": "month",
    "Remarks": "remarks",
    # job cards & workers
    "Total_No_of_JobCards_issued": "total_job_cards_issued",
    "Total_No_of_Active_Job_Cards": "active_job_cards",
    "Total_No_of_Workers": "total_workers",
    "Total_No_of_Active_Workers": "active_workers",
    "Total_Individuals_Worked": "total_individuals_worked",
    # person-days and households
    "Persondays_of_Central_Liability_so_far": "person_days_generated",
    "Total_Households_Worked": "households_employed",
    "Average_days_of_employment_provided_per_Household": "average_days_per_household",
    "Total_No_of_HHs_completed_100_Days_of_Wage_Employment": "households_completed_100_days",
    # demographics
    "Women_Persondays": "women_persondays",
    "SC_workers_against_active_workers": "sc_workers",
    "SC_persondays": "sc_persondays",
    "ST_workers_against_active_workers": "st_workers",
    "ST_persondays": "st_persondays",
    "Differently_abled_persons_worked": "differently_abled_persons_worked",
    # expenditure
    "Total_Exp": "total_expenditure",
    "Wages": "wage_expenditure",
    "Material_and_skilled_Wages": "material_expenditure",
    "Total_Adm_Expenditure": "admin_expenditure",
    "Average_Wage_rate_per_day_per_person": "average_wage_per_day",
    # works
    "Total_No_of_Works_Takenup": "total_works_takenup",
    "Number_of_Ongoing_Works": "total_works_ongoing",
    "Number_of_Completed_Works": "total_works_completed",
    # budget, timeliness, composition
    "Approved_Labour_Budget": "approved_labour_budget",
    "percentage_payments_gererated_within_15_days": "payment_within_15_days_percent",
    "percent_of_Category_B_Works": "percent_category_b_works",
    "percent_of_NRM_Expenditure": "percent_nrm_expenditure",
    "percent_of_Expenditure_on_Agriculture_Allied_Works": "percent_agriculture_expenditure",
    "Number_of_GPs_with_NIL_exp": "number_of_gps_with_nil_exp",
}

TEXT_FIELDS: frozenset[str] = frozenset(
    {"district_code", "district_name", "state_code", "state_name", "financial_year", "month", "remarks"}
)

# Fields computed here rather than read from upstream
DERIVED_FIELDS: frozenset[str] = frozenset(
    {"employment_demand_fulfilled_percent", "women_workers"}
)

NUMERIC_FIELDS: tuple[str, ...] = tuple(
    name
    for name, info in PerformanceRecord.model_fields.items()
    if info.annotation is float
)

# Already-canonical keys are accepted too (cached or hand-built records),
# but an upstream key wins when both are present.
_CANONICAL_ALIASES: dict[str, str] = {
    canonical: canonical
    for canonical in FIELD_MAP.values()
    if canonical not in DERIVED_FIELDS
}


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

def parse_number(value: Any) -> float:
    """
    Tolerant numeric parse: anything that is not a finite number becomes 0.0.

    Thousands separators in strings are ignored ("1,234.5" → 1234.5).
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        s = value.replace(",", "").strip()
        if not s:
            return 0.0
        try:
            number = float(s)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 away from zero for positives."""
    return int(math.floor(value + 0.5))


def ratio_percent(numerator: float, denominator: float, *, cap: float | None = None) -> int:
    """numerator/denominator as a rounded percentage; 0 when denominator is 0."""
    if denominator <= 0:
        return 0
    pct = numerator / denominator * 100
    if cap is not None:
        pct = min(pct, cap)
    return round_half_up(pct)


def demand_fulfilled_percent(active_workers: float, total_workers: float) -> int:
    """Active workers as a share of registered workers, clamped to [0, 100]."""
    if total_workers <= 0:
        return 0
    pct = active_workers / total_workers * 100
    return round_half_up(min(max(pct, 0.0), 100.0))


def estimate_women_workers(women_persondays: float) -> int:
    """Heuristic head-count: person-days over an assumed 50 days per worker."""
    return round_half_up(women_persondays / ASSUMED_DAYS_PER_WORKER)


# ---------------------------------------------------------------------------
# Record normalization
# ---------------------------------------------------------------------------

def map_fields(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply FIELD_MAP; canonical keys fill in only where upstream keys are absent."""
    mapped: dict[str, Any] = {}
    for key, value in raw.items():
        canonical = FIELD_MAP.get(key)
        if canonical is not None:
            mapped[canonical] = value
    for key, value in raw.items():
        canonical = _CANONICAL_ALIASES.get(key)
        if canonical is not None and canonical not in mapped:
            mapped[canonical] = value
    return mapped


def normalize_record(raw: dict[str, Any]) -> PerformanceRecord:
    """Map, parse and derive one upstream record. Never raises on bad cells."""
    mapped = map_fields(raw)

    fields: dict[str, Any] = {}
    for name in TEXT_FIELDS:
        value = mapped.get(name)
        fields[name] = "" if value is None else str(value).strip()

    for name in NUMERIC_FIELDS:
        if name in DERIVED_FIELDS:
            continue
        fields[name] = parse_number(mapped.get(name))

    fields["employment_demand_fulfilled_percent"] = float(
        demand_fulfilled_percent(fields["active_workers"], fields["total_workers"])
    )
    fields["women_workers"] = float(estimate_women_workers(fields["women_persondays"]))
    fields["data_source"] = DATA_SOURCE_NAME

    return PerformanceRecord(**fields)


# ---------------------------------------------------------------------------
# DataFrame conversion
# ---------------------------------------------------------------------------

def performance_schema() -> dict[str, pl.DataType]:
    """polars schema mirroring PerformanceRecord's field order and types."""
    schema: dict[str, pl.DataType] = {}
    for name in PerformanceRecord.model_fields:
        schema[name] = pl.Float64() if name in NUMERIC_FIELDS else pl.String()
    return schema


def records_to_frame(records: Iterable[PerformanceRecord]) -> pl.DataFrame:
    rows = [r.model_dump() for r in records]
    return pl.DataFrame(rows, schema=performance_schema())


def frame_to_records(df: pl.DataFrame) -> list[PerformanceRecord]:
    return [PerformanceRecord(**row) for row in df.to_dicts()]
