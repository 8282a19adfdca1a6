"""Suggested-contribution estimates shown to requesters. Nothing is charged."""
from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

_AMOUNT = re.compile(r"[^0-9.]")


def duration_hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def estimate_contribution(suggested_donation: Optional[str], start: datetime, end: datetime) -> float:
    """Hourly dollar suggestion times the booking length; 0 when no dollar figure is set."""
    if not suggested_donation or "$" not in suggested_donation:
        return 0.0
    digits = _AMOUNT.sub("", suggested_donation)
    try:
        hourly = float(digits)
    except ValueError:
        return 0.0
    return round(hourly * duration_hours(start, end), 2)
