import itertools

import pytest

from growth.classification import BANDS, CATEGORY_TYPES, classify, overall_status
from growth.recommendations import (
    COMBINATIONS,
    FALLBACK,
    ROUTINE_MESSAGE,
    STATUS_ACTIONS,
    build_recommendations,
    interpretation,
)
from growth.types import (
    HeightForAgeCategory as HFA,
    Indicator,
    OverallStatus,
    WeightForAgeCategory as WFA,
    WeightForHeightCategory as WFH,
)


class TestClassify:
    @pytest.mark.parametrize(
        "indicator, z, expected",
        [
            (Indicator.HEIGHT_FOR_AGE, -3.01, HFA.SEVERELY_STUNTED),
            (Indicator.HEIGHT_FOR_AGE, -3.0, HFA.STUNTED),
            (Indicator.HEIGHT_FOR_AGE, -2.01, HFA.STUNTED),
            (Indicator.HEIGHT_FOR_AGE, -2.0, HFA.NORMAL),
            (Indicator.HEIGHT_FOR_AGE, 2.99, HFA.NORMAL),
            (Indicator.HEIGHT_FOR_AGE, 3.0, HFA.TALL),
            (Indicator.WEIGHT_FOR_AGE, -3.5, WFA.SEVERELY_UNDERWEIGHT),
            (Indicator.WEIGHT_FOR_AGE, -3.0, WFA.UNDERWEIGHT),
            (Indicator.WEIGHT_FOR_AGE, -2.0, WFA.NORMAL),
            (Indicator.WEIGHT_FOR_AGE, 1.99, WFA.NORMAL),
            (Indicator.WEIGHT_FOR_AGE, 2.0, WFA.OVERWEIGHT),
            (Indicator.WEIGHT_FOR_HEIGHT, -3.0, WFH.WASTED),
            (Indicator.WEIGHT_FOR_HEIGHT, -2.0, WFH.NORMAL),
            (Indicator.WEIGHT_FOR_HEIGHT, 0.99, WFH.NORMAL),
            (Indicator.WEIGHT_FOR_HEIGHT, 1.0, WFH.OVERWEIGHT),
            (Indicator.WEIGHT_FOR_HEIGHT, 2.0, WFH.OBESE),
            (Indicator.BMI_FOR_AGE, -3.01, WFH.SEVERELY_WASTED),
            (Indicator.BMI_FOR_AGE, -2.0, WFH.NORMAL),
            (Indicator.BMI_FOR_AGE, 1.0, WFH.OVERWEIGHT),
        ],
    )
    def test_boundaries_are_closed_below(self, indicator, z, expected):
        assert classify(indicator, z) is expected

    @pytest.mark.parametrize("indicator", list(Indicator))
    def test_every_category_is_reachable(self, indicator):
        cuts, categories = BANDS[indicator]
        samples = [cuts[0] - 1.0] + list(cuts)
        assert {classify(indicator, z) for z in samples} == set(CATEGORY_TYPES[indicator])
        assert len(categories) == len(cuts) + 1

    @pytest.mark.parametrize("indicator", list(Indicator))
    def test_extreme_values_are_classified(self, indicator):
        low = classify(indicator, -1e9)
        high = classify(indicator, 1e9)
        assert low.value.startswith("severely_")
        assert high.value in ("tall", "overweight", "obese")


class TestOverallStatus:
    def test_all_normal(self):
        assert overall_status([HFA.NORMAL, WFA.NORMAL, WFH.NORMAL, WFH.NORMAL]) is OverallStatus.NORMAL

    def test_any_severe_is_urgent(self):
        cats = [HFA.NORMAL, WFA.OVERWEIGHT, WFH.SEVERELY_WASTED, WFH.NORMAL]
        assert overall_status(cats) is OverallStatus.URGENT

    def test_non_normal_needs_attention(self):
        assert overall_status([HFA.STUNTED, WFA.NORMAL, WFH.NORMAL, WFH.NORMAL]) is OverallStatus.NEEDS_ATTENTION
        assert overall_status([HFA.TALL, WFA.NORMAL, WFH.NORMAL, WFH.NORMAL]) is OverallStatus.NEEDS_ATTENTION


def _all_category_combinations():
    return itertools.product(*(CATEGORY_TYPES[ind] for ind in Indicator))


class TestRecommendations:
    def rule(self, rule_id):
        return next(r["text"] for r in COMBINATIONS if r["id"] == rule_id)

    def test_all_normal_gets_routine_message(self):
        cats = {ind: CATEGORY_TYPES[ind].NORMAL for ind in Indicator}
        assert build_recommendations(cats) == (ROUTINE_MESSAGE,)

    def test_stunted_and_underweight_uses_combination(self):
        cats = {
            Indicator.HEIGHT_FOR_AGE: HFA.STUNTED,
            Indicator.WEIGHT_FOR_AGE: WFA.UNDERWEIGHT,
            Indicator.WEIGHT_FOR_HEIGHT: WFH.NORMAL,
            Indicator.BMI_FOR_AGE: WFH.NORMAL,
        }
        assert build_recommendations(cats) == (self.rule("stunted_underweight"),)

    def test_unmatched_combination_falls_back_per_indicator(self):
        cats = {
            Indicator.HEIGHT_FOR_AGE: HFA.STUNTED,
            Indicator.WEIGHT_FOR_AGE: WFA.NORMAL,
            Indicator.WEIGHT_FOR_HEIGHT: WFH.NORMAL,
            Indicator.BMI_FOR_AGE: WFH.OVERWEIGHT,
        }
        assert build_recommendations(cats) == (
            FALLBACK[(Indicator.HEIGHT_FOR_AGE, HFA.STUNTED)],
            FALLBACK[(Indicator.BMI_FOR_AGE, WFH.OVERWEIGHT)],
        )

    def test_every_combination_is_covered(self):
        for combo in _all_category_combinations():
            cats = dict(zip(Indicator, combo))
            recs = build_recommendations(cats)
            assert recs, cats
            assert recs == build_recommendations(cats)
            assert all(isinstance(r, str) and r for r in recs)

    def test_every_non_normal_category_has_a_fallback(self):
        for ind in Indicator:
            for cat in CATEGORY_TYPES[ind]:
                if cat.value != "normal":
                    assert (ind, cat) in FALLBACK

    def test_every_status_has_an_action(self):
        assert set(STATUS_ACTIONS) == set(OverallStatus)

    def test_interpretation_names_each_indicator(self):
        cats = {ind: CATEGORY_TYPES[ind].NORMAL for ind in Indicator}
        cats[Indicator.HEIGHT_FOR_AGE] = HFA.SEVERELY_STUNTED
        text = interpretation(cats)
        assert "Height-for-age: severely stunted" in text
        assert text.count(";") == 3
