"""
transforms/time_series.py — Period ordering and de-duplication for performance frames.

Works on polars DataFrames shaped by normalize.performance_schema(). A
period is (financial_year, month); months order April → March inside a
financial year.

Usage:
    from nrega_pipeline.transforms.time_series import (
        deduplicate_periods,
        sort_by_period,
    )

    df = deduplicate_periods(df)               # one row per period, first seen wins
    df = sort_by_period(df, descending=True)   # newest period first
"""

from __future__ import annotations

from typing import Literal

import polars as pl
import structlog

from nrega_shared.time_utils import fy_month_index

log = structlog.get_logger(__name__)

PERIOD_COLS: list[str] = ["financial_year", "month"]


def deduplicate_periods(
    df: pl.DataFrame,
    *,
    key_cols: list[str] | None = None,
    keep: Literal["first", "last"] = "first",
) -> pl.DataFrame:
    """
    Remove duplicate rows by period (or *key_cols*), preserving order.

    Args:
        df:       Input DataFrame.
        key_cols: Columns that define uniqueness (default: financial_year, month).
        keep:     Which duplicate to keep ("first" | "last").
    """
    key_cols = key_cols or PERIOD_COLS
    n_before = len(df)
    df = df.unique(subset=key_cols, keep=keep, maintain_order=True)

    dropped = n_before - len(df)
    if dropped:
        log.debug("deduplicated", dropped=dropped, key_cols=key_cols)
    return df


def sort_by_period(df: pl.DataFrame, *, descending: bool = True) -> pl.DataFrame:
    """
    Order rows by financial-year start then financial-year month.

    Rows with an unparseable year or month sort as the oldest.
    """
    if df.is_empty():
        return df
    return (
        df.with_columns(
            pl.col("financial_year")
            .str.slice(0, 4)
            .cast(pl.Int32, strict=False)
            .fill_null(0)
            .alias("_fy_start"),
            pl.col("month")
            .map_elements(fy_month_index, return_dtype=pl.Int32)
            .alias("_fy_month"),
        )
        .sort(["_fy_start", "_fy_month"], descending=descending, maintain_order=True)
        .drop(["_fy_start", "_fy_month"])
    )


def latest_period(df: pl.DataFrame) -> pl.DataFrame:
    """Single-row frame holding the newest period (empty in, empty out)."""
    return sort_by_period(df, descending=True).head(1)
