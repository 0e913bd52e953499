from datetime import date

import pytest

from growth.age import age_in_months
from growth.errors import InvalidDateRange, UnsupportedAge


@pytest.mark.parametrize(
    "birth, measured, expected",
    [
        (date(2023, 1, 1), date(2023, 1, 1), 0),
        (date(2023, 1, 1), date(2023, 1, 15), 0),  # 14 days = 0.46 months
        (date(2023, 1, 1), date(2023, 1, 17), 1),  # 16 days = 0.53 months
        (date(2023, 1, 1), date(2024, 1, 1), 12),  # 365 days = 11.99 months
        (date(2022, 6, 15), date(2024, 6, 15), 24),
        (date(2019, 1, 1), date(2024, 1, 16), 60),  # 1841 days = 60.48 months
    ],
)
def test_age_in_months(birth, measured, expected):
    assert age_in_months(birth, measured) == expected


def test_sixty_one_months_is_rejected():
    # 1842 days = 60.52 months, rounds to 61
    with pytest.raises(UnsupportedAge):
        age_in_months(date(2019, 1, 1), date(2024, 1, 17))


def test_measurement_before_birth():
    with pytest.raises(InvalidDateRange):
        age_in_months(date(2023, 1, 1), date(2022, 12, 1))


def test_errors_are_value_errors():
    with pytest.raises(ValueError):
        age_in_months(date(2023, 1, 1), date(2022, 12, 31))
