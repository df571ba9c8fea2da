"""
transforms/indicators.py — Composite score and rating bands for a performance record.

compute_indicators() is a pure function of its input: no I/O, no clock,
no module state. Indicators are recomputed on every read and never
persisted, so thresholds can change without invalidating stored snapshots.

Score:
  Up to three components contribute, each only when strictly positive
  (0 means "not reported", not "no performance"):
    - average days per household, capped at 100
    - employment demand fulfilled percent
    - payment within 15 days percent
  overall_score = round_half_up(mean(components)), or 0 with no component.

Levels:   ≥75 Excellent, ≥50 Good, ≥30 Average, otherwise Needs Improvement.
Ratings:  applied to the raw metric, independent of overall_score.
"""

from __future__ import annotations

from nrega_shared.constants import LEVEL_BANDS
from nrega_shared.models import Indicators, PerformanceLevel, PerformanceRecord

from nrega_pipeline.transforms.normalize import ratio_percent, round_half_up


def overall_score(record: PerformanceRecord) -> int:
    components: list[float] = []
    if record.average_days_per_household > 0:
        components.append(min(record.average_days_per_household, 100.0))
    if record.employment_demand_fulfilled_percent > 0:
        components.append(min(record.employment_demand_fulfilled_percent, 100.0))
    if record.payment_within_15_days_percent > 0:
        components.append(min(record.payment_within_15_days_percent, 100.0))
    if not components:
        return 0
    return round_half_up(sum(components) / len(components))


def performance_level(score: int) -> tuple[PerformanceLevel, str, str]:
    """Map a score to (level, colour, icon)."""
    for minimum, label, color, icon in LEVEL_BANDS:
        if score >= minimum:
            return PerformanceLevel(label), color, icon
    _, label, color, icon = LEVEL_BANDS[-1]
    return PerformanceLevel(label), color, icon


def employment_rating(average_days: float) -> str:
    if average_days >= 80:
        return "High"
    if average_days >= 50:
        return "Medium"
    return "Low"


def percent_rating(percent: float) -> str:
    """Shared band for demand fulfilment and payment timeliness."""
    if percent >= 80:
        return "Excellent"
    if percent >= 60:
        return "Good"
    return "Poor"


def compute_indicators(record: PerformanceRecord) -> Indicators:
    score = overall_score(record)
    level, color, icon = performance_level(score)

    return Indicators(
        overall_score=score,
        performance_level=level,
        performance_color=color,
        performance_icon=icon,
        employment_rating=employment_rating(record.average_days_per_household),
        demand_fulfillment_rating=percent_rating(record.employment_demand_fulfilled_percent),
        payment_timeliness_rating=percent_rating(record.payment_within_15_days_percent),
        households_100_days_percent=ratio_percent(
            record.households_completed_100_days, record.households_employed
        ),
        employment_rate=ratio_percent(
            record.total_individuals_worked, record.active_workers
        ),
        budget_utilization=ratio_percent(
            record.person_days_generated, record.approved_labour_budget, cap=100.0
        ),
        women_participation=ratio_percent(
            record.women_persondays, record.person_days_generated
        ),
        payment_efficiency=record.payment_within_15_days_percent,
        work_completion_rate=ratio_percent(
            record.total_works_completed, record.total_works_takenup
        ),
    )
