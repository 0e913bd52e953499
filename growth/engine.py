from __future__ import annotations

import logging

from growth.age import age_in_months
from growth.classification import classify, overall_status
from growth.errors import InvalidMeasurement, MissingMeasurement
from growth.recommendations import STATUS_ACTIONS, build_recommendations, interpretation
from growth.types import (
    AnalysisResult,
    Indicator,
    IndicatorResult,
    Measurement,
    Subject,
    parse_sex,
)
from growth.who_lms import GrowthReference, zscore


logger = logging.getLogger(__name__)


def calculate_bmi(weight_kg: float, height_cm: float) -> float:
    height_m = height_cm / 100.0
    return weight_kg / (height_m * height_m)


def _require_positive(name: str, value) -> float:
    if value is None:
        raise MissingMeasurement(f"{name} is required")
    value = float(value)
    if not value > 0:
        raise InvalidMeasurement(f"{name} must be positive, got {value:g}")
    return value


def _score(ref: GrowthReference, indicator: Indicator, sex, x: float, value: float) -> IndicatorResult:
    lms = ref.lookup(indicator, sex, x)
    z = zscore(indicator, value, lms)
    return IndicatorResult(indicator=indicator, z_score=z, category=classify(indicator, z), raw_value=value)


def analyze(ref: GrowthReference, subject: Subject, measurement: Measurement) -> AnalysisResult:
    """
    Score one measurement against the WHO reference.

    HFA, WFA and BFA are looked up on age in months, WFH on height. Pure
    and deterministic; raises a GrowthAssessmentError subclass on bad input.
    """
    sex = parse_sex(subject.sex)
    weight = _require_positive("weight_kg", measurement.weight_kg)
    height = _require_positive("height_cm", measurement.height_cm)
    if measurement.head_circumference_cm is not None:
        _require_positive("head_circumference_cm", measurement.head_circumference_cm)

    age = age_in_months(subject.birth_date, measurement.measurement_date)
    bmi = calculate_bmi(weight, height)

    hfa = _score(ref, Indicator.HEIGHT_FOR_AGE, sex, age, height)
    wfa = _score(ref, Indicator.WEIGHT_FOR_AGE, sex, age, weight)
    wfh = _score(ref, Indicator.WEIGHT_FOR_HEIGHT, sex, height, weight)
    bfa = _score(ref, Indicator.BMI_FOR_AGE, sex, age, bmi)

    categories = {r.indicator: r.category for r in (hfa, wfa, wfh, bfa)}
    status = overall_status(categories.values())
    logger.debug(
        "subject=%s age=%d haz=%.2f waz=%.2f whz=%.2f baz=%.2f status=%s",
        subject.id, age, hfa.z_score, wfa.z_score, wfh.z_score, bfa.z_score, status.value,
    )

    return AnalysisResult(
        height_for_age=hfa,
        weight_for_age=wfa,
        weight_for_height=wfh,
        bmi_for_age=bfa,
        overall_status=status,
        recommendations=build_recommendations(categories),
        age_months=age,
        bmi=round(bmi, 2),
        interpretation=interpretation(categories),
        action=STATUS_ACTIONS[status],
    )
