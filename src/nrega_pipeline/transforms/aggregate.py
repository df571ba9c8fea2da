"""
transforms/aggregate.py — State-level averages over stored district snapshots.
"""

from __future__ import annotations

from typing import Any

import polars as pl

# output key → source column
STATE_AVERAGE_COLUMNS: dict[str, str] = {
    "avg_person_days": "person_days_generated",
    "avg_days_per_household": "average_days_per_household",
    "avg_wage_per_day": "average_wage_per_day",
    "avg_demand_fulfilled": "employment_demand_fulfilled_percent",
    "avg_timely_payment": "payment_within_15_days_percent",
}


def state_averages(df: pl.DataFrame) -> dict[str, Any] | None:
    """
    Mean of each STATE_AVERAGE_COLUMNS metric, rounded to 2 dp.

    Returns None for an empty frame.
    """
    if df.is_empty():
        return None
    summary = df.select(
        [pl.col(src).mean().round(2).alias(out) for out, src in STATE_AVERAGE_COLUMNS.items()]
        + [pl.col("district_code").n_unique().alias("districts_reporting")]
    )
    return summary.to_dicts()[0]
