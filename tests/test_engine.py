"""
End-to-end analysis of a single measurement.
"""

from datetime import date

import pytest

from growth.engine import analyze, calculate_bmi
from growth.errors import (
    InvalidDateRange,
    InvalidMeasurement,
    InvalidSex,
    MissingMeasurement,
    OutOfDomain,
    UnsupportedAge,
)
from growth.recommendations import COMBINATIONS, ROUTINE_MESSAGE, STATUS_ACTIONS
from growth.types import (
    HeightForAgeCategory as HFA,
    OverallStatus,
    Subject,
    WeightForAgeCategory as WFA,
    WeightForHeightCategory as WFH,
)


def _rule(rule_id):
    return next(r["text"] for r in COMBINATIONS if r["id"] == rule_id)


class TestAnalyze:
    def test_end_to_end_scenario(self, reference, boy, measure):
        result = analyze(reference, boy, measure())

        assert result.age_months == 12
        assert result.height_for_age.z_score == -1.14
        assert result.height_for_age.category is HFA.NORMAL
        assert result.height_for_age.raw_value == 72.0
        assert result.weight_for_age.z_score == pytest.approx(-0.63, abs=0.01)
        assert result.weight_for_height.z_score == pytest.approx(0.56, abs=0.01)
        assert result.bmi == pytest.approx(17.36, abs=0.01)
        assert result.bmi_for_age.raw_value == pytest.approx(calculate_bmi(9.0, 72.0))
        assert result.overall_status is OverallStatus.NORMAL
        assert result.recommendations == (ROUTINE_MESSAGE,)
        assert result.action == STATUS_ACTIONS[OverallStatus.NORMAL]
        assert not result.needs_intervention

    def test_stunted_and_underweight(self, reference, boy, measure):
        result = analyze(reference, boy, measure(weight=7.5, height=68.0))

        assert result.height_for_age.z_score == pytest.approx(-2.67, abs=0.01)
        assert result.height_for_age.category is HFA.STUNTED
        assert result.weight_for_age.category is WFA.UNDERWEIGHT
        assert result.weight_for_height.category is WFH.NORMAL
        assert result.overall_status is OverallStatus.NEEDS_ATTENTION
        assert result.recommendations == (_rule("stunted_underweight"),)

    def test_severe_malnutrition_is_urgent(self, reference, boy, measure):
        result = analyze(reference, boy, measure(weight=6.0, height=72.0))

        assert result.weight_for_age.z_score == pytest.approx(-4.09, abs=0.01)
        assert result.weight_for_age.category is WFA.SEVERELY_UNDERWEIGHT
        assert result.weight_for_height.category is WFH.SEVERELY_WASTED
        assert result.overall_status is OverallStatus.URGENT
        assert _rule("severe_acute_malnutrition") in result.recommendations

    def test_is_deterministic(self, reference, boy, measure):
        assert analyze(reference, boy, measure()) == analyze(reference, boy, measure())

    def test_indicator_accessors(self, reference, boy, measure):
        result = analyze(reference, boy, measure())
        assert [r.indicator.value for r in result.indicators] == [
            "height_for_age", "weight_for_age", "weight_for_height", "bmi_for_age",
        ]


class TestValidation:
    def test_missing_weight(self, reference, boy, measure):
        with pytest.raises(MissingMeasurement):
            analyze(reference, boy, measure(weight=None))

    def test_missing_height(self, reference, boy, measure):
        with pytest.raises(MissingMeasurement):
            analyze(reference, boy, measure(height=None))

    def test_non_positive_weight(self, reference, boy, measure):
        with pytest.raises(InvalidMeasurement):
            analyze(reference, boy, measure(weight=0))

    def test_non_positive_head_circumference(self, reference, boy, measure):
        with pytest.raises(InvalidMeasurement):
            analyze(reference, boy, measure(head_circumference_cm=-1.0))

    def test_measurement_before_birth(self, reference, boy, measure):
        with pytest.raises(InvalidDateRange):
            analyze(reference, boy, measure(when=date(2022, 12, 31)))

    def test_older_than_sixty_months(self, reference, measure):
        subject = Subject(id="A", sex="male", birth_date=date(2019, 1, 1))
        with pytest.raises(UnsupportedAge):
            analyze(reference, subject, measure(when=date(2024, 1, 17)))

    def test_implausible_height(self, reference, boy, measure):
        with pytest.raises(OutOfDomain):
            analyze(reference, boy, measure(height=130.0))

    def test_invalid_sex(self, reference, measure):
        subject = Subject(id="A", sex="x", birth_date=date(2023, 1, 1))
        with pytest.raises(InvalidSex):
            analyze(reference, subject, measure())
