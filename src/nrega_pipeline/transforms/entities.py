"""
transforms/entities.py — State and district lists extracted from raw records.

The dataset has no dedicated state or district endpoints: every list is
derived from performance rows. Rows missing either the code or the name are
skipped. De-duplication is by code; the first row seen for a code supplies
its fields, and output order is first-seen order.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from nrega_shared.models import District, State


def _text(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    return "" if value is None else str(value).strip()


def unique_states(records: Iterable[dict[str, Any]]) -> list[State]:
    states: dict[str, State] = {}
    for raw in records:
        code, name = _text(raw, "state_code"), _text(raw, "state_name")
        if code and name and code not in states:
            states[code] = State(state_code=code, state_name=name)
    return list(states.values())


def unique_districts(records: Iterable[dict[str, Any]]) -> list[District]:
    districts: dict[str, District] = {}
    for raw in records:
        code, name = _text(raw, "district_code"), _text(raw, "district_name")
        if code and name and code not in districts:
            districts[code] = District(
                district_code=code,
                district_name=name,
                state_code=_text(raw, "state_code"),
                state_name=_text(raw, "state_name"),
            )
    return list(districts.values())


def search_districts(records: Iterable[dict[str, Any]], query: str) -> list[District]:
    """Districts whose name contains *query*, case-insensitively."""
    needle = query.strip().lower()
    if not needle:
        return []
    return [d for d in unique_districts(records) if needle in d.district_name.lower()]


def names_match(stored: str, upstream: str) -> bool:
    """
    Two-way case-insensitive substring match between district names.

    Known to be ambiguous for similarly named districts ("Nagar" matches
    "Ahmednagar" and "Shahjahanpur Nagar"); callers log multiple matches.
    """
    a, b = stored.strip().lower(), upstream.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a
