"""
constants.py — shared constants used across the pipeline and API.

Table names, upstream query parameter names, and the presentation
metadata attached to performance levels are defined here so they stay in
sync between the sync job and the retrieval services.
"""

from __future__ import annotations

from typing import Final

DATA_SOURCE_NAME: Final[str] = "data.gov.in"

# ---------------------------------------------------------------------------
# Supabase tables
# ---------------------------------------------------------------------------
STATES_TABLE: Final[str] = "states"
DISTRICTS_TABLE: Final[str] = "districts"
PERFORMANCE_TABLE: Final[str] = "performance"
API_CACHE_TABLE: Final[str] = "api_cache"
SYNC_RUNS_TABLE: Final[str] = "sync_runs"

# Natural keys used for upserts (ON CONFLICT targets)
STATE_KEY: Final[str] = "state_code"
DISTRICT_KEY: Final[str] = "district_code"
PERFORMANCE_KEY: Final[tuple[str, ...]] = ("district_code", "financial_year", "month")

# ---------------------------------------------------------------------------
# Upstream query filters (data.gov.in resource API)
# ---------------------------------------------------------------------------
FILTER_STATE_NAME: Final[str] = "filters[state_name]"
FILTER_DISTRICT_NAME: Final[str] = "filters[district_name]"
FILTER_FIN_YEAR: Final[str] = "filters[fin_year]"

# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------
# Women workers are not reported directly; person-days are divided by an
# assumed average number of working days per worker.
ASSUMED_DAYS_PER_WORKER: Final[int] = 50

# ---------------------------------------------------------------------------
# Performance levels: (minimum score, label, colour, icon), highest first
# ---------------------------------------------------------------------------
LEVEL_BANDS: Final[tuple[tuple[int, str, str, str], ...]] = (
    (75, "Excellent", "#4CAF50", "✅"),
    (50, "Good", "#8BC34A", "👍"),
    (30, "Average", "#FFC107", "⚠️"),
    (0, "Needs Improvement", "#F44336", "❌"),
)
