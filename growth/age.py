from __future__ import annotations

import math
from datetime import date

from growth.errors import InvalidDateRange, UnsupportedAge


DAYS_PER_MONTH = 30.4375
MIN_AGE_MONTHS = 0
MAX_AGE_MONTHS = 60


def age_in_months(birth_date: date, measurement_date: date) -> int:
    """
    Whole months between birth and measurement, WHO convention:
      days_elapsed / 30.4375, rounded half-up.

    Only [0, 60] months is covered by the WHO 0-5y standard; anything else
    is rejected rather than clamped.
    """
    if measurement_date < birth_date:
        raise InvalidDateRange(
            f"measurement date {measurement_date.isoformat()} precedes birth date {birth_date.isoformat()}"
        )

    days = (measurement_date - birth_date).days
    months = int(math.floor(days / DAYS_PER_MONTH + 0.5))

    if months < MIN_AGE_MONTHS or months > MAX_AGE_MONTHS:
        raise UnsupportedAge(
            f"age {months} months is outside the supported range [{MIN_AGE_MONTHS}, {MAX_AGE_MONTHS}]"
        )
    return months
