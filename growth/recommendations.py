from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple

from growth.classification import is_normal
from growth.types import (
    Category,
    HeightForAgeCategory as HFA,
    Indicator,
    OverallStatus,
    WeightForAgeCategory as WFA,
    WeightForHeightCategory as WFH,
)

Categories = Mapping[Indicator, Category]

_STUNTED = (HFA.STUNTED, HFA.SEVERELY_STUNTED)
_UNDERWEIGHT = (WFA.UNDERWEIGHT, WFA.SEVERELY_UNDERWEIGHT)
_WASTED = (WFH.WASTED, WFH.SEVERELY_WASTED)
_HEAVY = (WFH.OVERWEIGHT, WFH.OBESE)


# Combination rules, evaluated in order. A rule claims the indicators it
# covers; claimed indicators get no per-indicator fallback message.
COMBINATIONS: List[Dict[str, Any]] = [
    {
        "id": "severe_acute_malnutrition",
        "covers": (Indicator.WEIGHT_FOR_HEIGHT, Indicator.WEIGHT_FOR_AGE),
        "when": lambda c: c[Indicator.WEIGHT_FOR_HEIGHT] is WFH.SEVERELY_WASTED
        and c[Indicator.WEIGHT_FOR_AGE] in _UNDERWEIGHT,
        "text": "Severe acute malnutrition: refer to the puskesmas today for therapeutic feeding and medical assessment.",
    },
    {
        "id": "chronic_and_acute_undernutrition",
        "covers": (Indicator.HEIGHT_FOR_AGE, Indicator.WEIGHT_FOR_HEIGHT),
        "when": lambda c: c[Indicator.HEIGHT_FOR_AGE] in _STUNTED
        and c[Indicator.WEIGHT_FOR_HEIGHT] in _WASTED,
        "text": "Stunting with wasting: refer to a health worker for combined treatment of acute and chronic undernutrition.",
    },
    {
        "id": "stunted_underweight",
        "covers": (Indicator.HEIGHT_FOR_AGE, Indicator.WEIGHT_FOR_AGE),
        "when": lambda c: c[Indicator.HEIGHT_FOR_AGE] in _STUNTED
        and c[Indicator.WEIGHT_FOR_AGE] in _UNDERWEIGHT,
        "text": "Stunted and underweight: start energy- and protein-dense supplementary feeding and re-measure monthly.",
    },
    {
        "id": "wasted_underweight",
        "covers": (Indicator.WEIGHT_FOR_HEIGHT, Indicator.WEIGHT_FOR_AGE),
        "when": lambda c: c[Indicator.WEIGHT_FOR_HEIGHT] in _WASTED
        and c[Indicator.WEIGHT_FOR_AGE] in _UNDERWEIGHT,
        "text": "Wasted and underweight: give supplementary feeding and screen for infection or diarrhoea.",
    },
    {
        "id": "stunted_overweight",
        "covers": (Indicator.HEIGHT_FOR_AGE, Indicator.WEIGHT_FOR_HEIGHT),
        "when": lambda c: c[Indicator.HEIGHT_FOR_AGE] in _STUNTED
        and c[Indicator.WEIGHT_FOR_HEIGHT] in _HEAVY,
        "text": "Stunted with excess weight for height: improve diet quality (protein, vegetables) rather than quantity.",
    },
    {
        "id": "wasted_by_both_indices",
        "covers": (Indicator.WEIGHT_FOR_HEIGHT, Indicator.BMI_FOR_AGE),
        "when": lambda c: c[Indicator.WEIGHT_FOR_HEIGHT] in _WASTED
        and c[Indicator.BMI_FOR_AGE] in _WASTED,
        "text": "Low weight for height and low BMI for age: increase meal frequency and check weight again in two weeks.",
    },
    {
        "id": "overweight_by_both_indices",
        "covers": (Indicator.WEIGHT_FOR_HEIGHT, Indicator.BMI_FOR_AGE),
        "when": lambda c: c[Indicator.WEIGHT_FOR_HEIGHT] in _HEAVY
        and c[Indicator.BMI_FOR_AGE] in _HEAVY,
        "text": "Excess weight by weight-for-height and BMI: limit sugary drinks and snacks and encourage active play.",
    },
]


FALLBACK: Dict[Tuple[Indicator, Category], str] = {
    (Indicator.HEIGHT_FOR_AGE, HFA.SEVERELY_STUNTED): "Severely stunted: refer to a health worker for growth assessment.",
    (Indicator.HEIGHT_FOR_AGE, HFA.STUNTED): "Stunted: improve dietary diversity and animal-source protein; measure length monthly.",
    (Indicator.HEIGHT_FOR_AGE, HFA.TALL): "Very tall for age: usually normal; refer only if parents are of average height.",
    (Indicator.WEIGHT_FOR_AGE, WFA.SEVERELY_UNDERWEIGHT): "Severely underweight: refer to the puskesmas for assessment.",
    (Indicator.WEIGHT_FOR_AGE, WFA.UNDERWEIGHT): "Underweight: add one extra nutritious meal or snack per day and weigh monthly.",
    (Indicator.WEIGHT_FOR_AGE, WFA.OVERWEIGHT): "Possible growth problem: check weight-for-height and BMI for age.",
    (Indicator.WEIGHT_FOR_HEIGHT, WFH.SEVERELY_WASTED): "Severely wasted: refer urgently for therapeutic feeding.",
    (Indicator.WEIGHT_FOR_HEIGHT, WFH.WASTED): "Wasted: give supplementary feeding and weigh again in two weeks.",
    (Indicator.WEIGHT_FOR_HEIGHT, WFH.OVERWEIGHT): "Possible risk of overweight: review feeding practices with the caregiver.",
    (Indicator.WEIGHT_FOR_HEIGHT, WFH.OBESE): "Obese for height: counsel the caregiver on diet and activity; refer if persistent.",
    (Indicator.BMI_FOR_AGE, WFH.SEVERELY_WASTED): "Very low BMI for age: refer urgently for assessment.",
    (Indicator.BMI_FOR_AGE, WFH.WASTED): "Low BMI for age: increase energy intake and monitor monthly.",
    (Indicator.BMI_FOR_AGE, WFH.OVERWEIGHT): "High BMI for age: review portion sizes and sugary foods.",
    (Indicator.BMI_FOR_AGE, WFH.OBESE): "Very high BMI for age: counsel on diet and activity; refer if persistent.",
}

ROUTINE_MESSAGE = "Growth is within the normal range: continue exclusive or complementary feeding and monthly posyandu visits."

STATUS_ACTIONS: Dict[OverallStatus, str] = {
    OverallStatus.NORMAL: "Routine monitoring at the next posyandu session.",
    OverallStatus.NEEDS_ATTENTION: "Counsel the caregiver and re-measure within 30 days.",
    OverallStatus.URGENT: "Refer to the puskesmas immediately.",
}

_LABELS = {
    Indicator.HEIGHT_FOR_AGE: "Height-for-age",
    Indicator.WEIGHT_FOR_AGE: "Weight-for-age",
    Indicator.WEIGHT_FOR_HEIGHT: "Weight-for-height",
    Indicator.BMI_FOR_AGE: "BMI-for-age",
}


def build_recommendations(categories: Categories) -> Tuple[str, ...]:
    """Map the four categories to guidance text: combination rules first, then fallbacks."""
    out: List[str] = []
    claimed: set = set()
    for rule in COMBINATIONS:
        if rule["when"](categories):
            out.append(rule["text"])
            claimed.update(rule["covers"])

    for indicator in Indicator:
        category = categories[indicator]
        if indicator in claimed or is_normal(category):
            continue
        out.append(FALLBACK[(indicator, category)])

    if not out:
        out.append(ROUTINE_MESSAGE)
    return tuple(out)


def interpretation(categories: Categories) -> str:
    return "; ".join(
        f"{_LABELS[ind]}: {categories[ind].value.replace('_', ' ')}" for ind in Indicator
    )
