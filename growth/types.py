from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Tuple, Union

from growth.errors import InvalidSex


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"


class Indicator(str, Enum):
    HEIGHT_FOR_AGE = "height_for_age"
    WEIGHT_FOR_AGE = "weight_for_age"
    WEIGHT_FOR_HEIGHT = "weight_for_height"
    BMI_FOR_AGE = "bmi_for_age"

    @property
    def short(self) -> str:
        return _SHORT_NAMES[self]

    @property
    def is_weight_based(self) -> bool:
        return self is not Indicator.HEIGHT_FOR_AGE


_SHORT_NAMES = {
    Indicator.HEIGHT_FOR_AGE: "hfa",
    Indicator.WEIGHT_FOR_AGE: "wfa",
    Indicator.WEIGHT_FOR_HEIGHT: "wfh",
    Indicator.BMI_FOR_AGE: "bfa",
}


class HeightForAgeCategory(str, Enum):
    SEVERELY_STUNTED = "severely_stunted"
    STUNTED = "stunted"
    NORMAL = "normal"
    TALL = "tall"


class WeightForAgeCategory(str, Enum):
    SEVERELY_UNDERWEIGHT = "severely_underweight"
    UNDERWEIGHT = "underweight"
    NORMAL = "normal"
    OVERWEIGHT = "overweight"


class WeightForHeightCategory(str, Enum):
    """Shared by weight-for-height and BMI-for-age."""

    SEVERELY_WASTED = "severely_wasted"
    WASTED = "wasted"
    NORMAL = "normal"
    OVERWEIGHT = "overweight"
    OBESE = "obese"


Category = Union[HeightForAgeCategory, WeightForAgeCategory, WeightForHeightCategory]


class OverallStatus(str, Enum):
    NORMAL = "normal"
    NEEDS_ATTENTION = "needs_attention"
    URGENT = "urgent"


class TrendFlag(str, Enum):
    IMPROVING = "improving"
    WORSENING = "worsening"
    STABLE = "stable"


class StuntingWarning(str, Enum):
    NONE = "none"
    AT_RISK = "at_risk"
    STUNTED = "stunted"


_SEX_ALIASES = {
    "male": Sex.MALE,
    "m": Sex.MALE,
    "boy": Sex.MALE,
    "boys": Sex.MALE,
    "l": Sex.MALE,  # laki-laki
    "laki-laki": Sex.MALE,
    "1": Sex.MALE,
    "female": Sex.FEMALE,
    "f": Sex.FEMALE,
    "girl": Sex.FEMALE,
    "girls": Sex.FEMALE,
    "p": Sex.FEMALE,  # perempuan
    "perempuan": Sex.FEMALE,
    "2": Sex.FEMALE,
}


def parse_sex(value) -> Sex:
    """Resolve an external sex code to exactly one reference partition."""
    if isinstance(value, Sex):
        return value
    if value is None:
        raise InvalidSex("sex is required")
    key = str(value).strip().lower()
    try:
        return _SEX_ALIASES[key]
    except KeyError:
        raise InvalidSex(f"unrecognised sex value: {value!r}") from None


@dataclass(frozen=True)
class LMS:
    L: float
    M: float
    S: float


@dataclass(frozen=True)
class Subject:
    id: str
    sex: Sex
    birth_date: date


@dataclass(frozen=True)
class Measurement:
    subject_id: str
    measurement_date: date
    weight_kg: Optional[float]
    height_cm: Optional[float]
    head_circumference_cm: Optional[float] = None
    location: Optional[str] = None
    source: str = "posyandu"


@dataclass(frozen=True)
class IndicatorResult:
    indicator: Indicator
    z_score: float
    category: Category
    raw_value: float


@dataclass(frozen=True)
class AnalysisResult:
    height_for_age: IndicatorResult
    weight_for_age: IndicatorResult
    weight_for_height: IndicatorResult
    bmi_for_age: IndicatorResult
    overall_status: OverallStatus
    recommendations: Tuple[str, ...] = ()
    age_months: int = 0
    bmi: float = 0.0
    interpretation: str = ""
    action: str = ""

    @property
    def indicators(self) -> Tuple[IndicatorResult, ...]:
        return (self.height_for_age, self.weight_for_age, self.weight_for_height, self.bmi_for_age)

    def result_for(self, indicator: Indicator) -> IndicatorResult:
        return getattr(self, indicator.value)

    @property
    def needs_intervention(self) -> bool:
        return self.overall_status is not OverallStatus.NORMAL


@dataclass(frozen=True)
class HistoryEntry:
    measurement: Measurement
    analysis: AnalysisResult

    @property
    def age_months(self) -> int:
        return self.analysis.age_months

    @property
    def measurement_date(self) -> date:
        return self.measurement.measurement_date


@dataclass(frozen=True)
class TrendPoint:
    measurement_date: date
    age_months: int
    z_score: float
    category: Category
    raw_value: float


@dataclass(frozen=True)
class IndicatorTrend:
    indicator: Indicator
    points: Tuple[TrendPoint, ...]
    flag: TrendFlag
    delta: Optional[float] = None


@dataclass(frozen=True)
class TrendReport:
    subject_id: str
    indicators: Tuple[IndicatorTrend, ...] = field(default_factory=tuple)
    stunting_warning: StuntingWarning = StuntingWarning.NONE

    def for_indicator(self, indicator: Indicator) -> IndicatorTrend:
        for t in self.indicators:
            if t.indicator is indicator:
                return t
        raise KeyError(indicator)

    @property
    def flags(self) -> dict:
        return {t.indicator: t.flag for t in self.indicators}
