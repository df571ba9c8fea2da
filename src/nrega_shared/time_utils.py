"""
time_utils.py — Financial-year, month-label and timestamp helpers.

The programme reports by Indian financial year ("2024-2025", April to
March) and labels months by name ("Apr", "April", "Dec", ...). Upstream
and Supabase timestamps arrive as ISO strings, sometimes with a trailing
"Z".

Usage:
    from nrega_shared.time_utils import current_financial_year, fy_month_index

    current_financial_year(date(2025, 2, 1))   # "2024-2025"
    fy_month_index("Apr")                      # 1
    fy_month_index("March")                    # 12
    is_fresh(updated_at, timedelta(hours=6), now=utcnow())
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone

_FY_PATTERN = re.compile(r"(\d{4})-(\d{4})")

# Calendar month number for every label form the upstream dataset uses
_MONTH_NAMES: dict[str, int] = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def current_financial_year(today: date | None = None) -> str:
    """Return the financial year containing *today* (April start)."""
    today = today or date.today()
    start = today.year if today.month >= 4 else today.year - 1
    return f"{start}-{start + 1}"


def is_valid_financial_year(value: str | None) -> bool:
    """True for "YYYY-YYYY" where the second year follows the first."""
    if not value:
        return False
    m = _FY_PATTERN.fullmatch(value.strip())
    if not m:
        return False
    return int(m.group(2)) == int(m.group(1)) + 1


def month_number(label: str | None) -> int | None:
    """Calendar month (1-12) for a month label, or None if unrecognised."""
    if not label:
        return None
    s = label.strip().lower().rstrip(".")
    if s.isdigit():
        n = int(s)
        return n if 1 <= n <= 12 else None
    return _MONTH_NAMES.get(s)


def fy_month_index(label: str | None) -> int:
    """
    Position of a month inside the financial year: April = 1 … March = 12.

    Unrecognised labels sort before every real month (0).
    """
    n = month_number(label)
    if n is None:
        return 0
    return (n - 4) % 12 + 1


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """
    Parse an ISO timestamp into a timezone-aware datetime.

    Naive values are assumed to be UTC. Returns None for empty or
    unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        s = value.strip()
        normalized = s[:-1] + "+00:00" if s.endswith("Z") else s
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_fresh(
    updated_at: str | datetime | None,
    window: timedelta,
    *,
    now: datetime,
) -> bool:
    """An entry is fresh while ``now - updated_at < window``."""
    ts = parse_timestamp(updated_at)
    if ts is None:
        return False
    return now - ts < window
