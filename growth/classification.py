from __future__ import annotations

from bisect import bisect_right
from typing import Dict, Iterable, Tuple

from growth.types import (
    Category,
    HeightForAgeCategory,
    Indicator,
    OverallStatus,
    WeightForAgeCategory,
    WeightForHeightCategory,
)


# (cut points, categories): categories[i] covers [cuts[i-1], cuts[i]).
# Every interval is closed on its lower bound, so Z == cut belongs to the
# interval that starts at that cut.
BANDS: Dict[Indicator, Tuple[Tuple[float, ...], Tuple[Category, ...]]] = {
    Indicator.HEIGHT_FOR_AGE: (
        (-3.0, -2.0, 3.0),
        (
            HeightForAgeCategory.SEVERELY_STUNTED,
            HeightForAgeCategory.STUNTED,
            HeightForAgeCategory.NORMAL,
            HeightForAgeCategory.TALL,
        ),
    ),
    Indicator.WEIGHT_FOR_AGE: (
        (-3.0, -2.0, 2.0),
        (
            WeightForAgeCategory.SEVERELY_UNDERWEIGHT,
            WeightForAgeCategory.UNDERWEIGHT,
            WeightForAgeCategory.NORMAL,
            WeightForAgeCategory.OVERWEIGHT,
        ),
    ),
    Indicator.WEIGHT_FOR_HEIGHT: (
        (-3.0, -2.0, 1.0, 2.0),
        (
            WeightForHeightCategory.SEVERELY_WASTED,
            WeightForHeightCategory.WASTED,
            WeightForHeightCategory.NORMAL,
            WeightForHeightCategory.OVERWEIGHT,
            WeightForHeightCategory.OBESE,
        ),
    ),
    Indicator.BMI_FOR_AGE: (
        (-3.0, -2.0, 1.0, 2.0),
        (
            WeightForHeightCategory.SEVERELY_WASTED,
            WeightForHeightCategory.WASTED,
            WeightForHeightCategory.NORMAL,
            WeightForHeightCategory.OVERWEIGHT,
            WeightForHeightCategory.OBESE,
        ),
    ),
}

CATEGORY_TYPES = {
    Indicator.HEIGHT_FOR_AGE: HeightForAgeCategory,
    Indicator.WEIGHT_FOR_AGE: WeightForAgeCategory,
    Indicator.WEIGHT_FOR_HEIGHT: WeightForHeightCategory,
    Indicator.BMI_FOR_AGE: WeightForHeightCategory,
}


def classify(indicator: Indicator, z: float) -> Category:
    cuts, categories = BANDS[indicator]
    return categories[bisect_right(cuts, z)]


def parse_category(indicator: Indicator, value: str) -> Category:
    return CATEGORY_TYPES[indicator](value)


def is_severe(category: Category) -> bool:
    return category.value.startswith("severely_")


def is_normal(category: Category) -> bool:
    return category.value == "normal"


def overall_status(categories: Iterable[Category]) -> OverallStatus:
    categories = list(categories)
    if any(is_severe(c) for c in categories):
        return OverallStatus.URGENT
    if any(not is_normal(c) for c in categories):
        return OverallStatus.NEEDS_ATTENTION
    return OverallStatus.NORMAL
