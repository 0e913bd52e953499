from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from dateutil.parser import isoparse


def now_utc_iso() -> str:
    """Return current time as a UTC ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_date(value: Any) -> date:
    """Coerce a date, datetime or ISO 8601 string to a calendar date.

    Raises ValueError for anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or not str(value).strip():
        raise ValueError("date is required")
    return isoparse(str(value).strip()).date()
