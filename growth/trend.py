from __future__ import annotations

from typing import Optional, Sequence

from growth.classification import is_normal
from growth.types import (
    HeightForAgeCategory,
    HistoryEntry,
    Indicator,
    IndicatorTrend,
    StuntingWarning,
    TrendFlag,
    TrendPoint,
    TrendReport,
)


DEFAULT_THRESHOLD = 0.2

# At or above this Z a falling score is the improvement (excess weight side).
UPPER_RISK_CUT = {
    Indicator.HEIGHT_FOR_AGE: None,
    Indicator.WEIGHT_FOR_AGE: 2.0,
    Indicator.WEIGHT_FOR_HEIGHT: 1.0,
    Indicator.BMI_FOR_AGE: 1.0,
}

# Below this HFA Z a child is flagged as at risk of stunting.
STUNTING_RISK_Z = -1.0


def trend_flag(indicator: Indicator, previous: float, latest: float, threshold: float = DEFAULT_THRESHOLD) -> TrendFlag:
    delta = round(latest - previous, 2)
    if abs(delta) < threshold:
        return TrendFlag.STABLE

    cut = UPPER_RISK_CUT[indicator]
    higher_is_better = cut is None or previous < cut
    rising = delta > 0
    return TrendFlag.IMPROVING if rising == higher_is_better else TrendFlag.WORSENING


def _series(history: Sequence[HistoryEntry], indicator: Indicator) -> tuple:
    return tuple(
        TrendPoint(
            measurement_date=e.measurement_date,
            age_months=e.age_months,
            z_score=e.analysis.result_for(indicator).z_score,
            category=e.analysis.result_for(indicator).category,
            raw_value=e.analysis.result_for(indicator).raw_value,
        )
        for e in history
    )


def _indicator_trend(history: Sequence[HistoryEntry], indicator: Indicator, threshold: float) -> IndicatorTrend:
    points = _series(history, indicator)
    if len(points) < 2:
        return IndicatorTrend(indicator=indicator, points=points, flag=TrendFlag.STABLE)
    prev, last = points[-2].z_score, points[-1].z_score
    return IndicatorTrend(
        indicator=indicator,
        points=points,
        flag=trend_flag(indicator, prev, last, threshold),
        delta=round(last - prev, 2),
    )


def stunting_warning(hfa: IndicatorTrend) -> StuntingWarning:
    if not hfa.points:
        return StuntingWarning.NONE
    latest = hfa.points[-1]
    if not is_normal(latest.category) and latest.category is not HeightForAgeCategory.TALL:
        return StuntingWarning.STUNTED
    if latest.z_score < STUNTING_RISK_Z:
        return StuntingWarning.AT_RISK
    if hfa.flag is TrendFlag.WORSENING and latest.z_score < 0:
        return StuntingWarning.AT_RISK
    return StuntingWarning.NONE


def analyze_trend(
    subject_id: str,
    history: Sequence[HistoryEntry],
    threshold: Optional[float] = None,
) -> TrendReport:
    """Per-indicator chart series and trend flags, recomputed from history on every read."""
    threshold = DEFAULT_THRESHOLD if threshold is None else threshold
    trends = tuple(_indicator_trend(history, ind, threshold) for ind in Indicator)
    hfa = next(t for t in trends if t.indicator is Indicator.HEIGHT_FOR_AGE)
    return TrendReport(subject_id=subject_id, indicators=trends, stunting_warning=stunting_warning(hfa))
