"""
Request/response models for the growth endpoints.

Request models are the normalization boundary: every accepted payload shape
(English or Indonesian field names, enveloped or flat bodies, any ISO date
string) is mapped onto one schema here and converted to the engine's domain
types with `to_domain`. Nothing past this module sees the raw shapes.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from app.utils.time import parse_date
from growth.types import Measurement, Subject, parse_sex


def _unwrap(data: Any, keys: tuple) -> Any:
    """Strip a single envelope such as {"data": {...}}."""
    if isinstance(data, dict):
        for k in keys:
            inner = data.get(k)
            if isinstance(inner, dict) and len(data) == 1:
                return inner
    return data


class SubjectIn(BaseModel):
    subject_id: str = Field(..., validation_alias=AliasChoices("subject_id", "warga_id", "child_id", "id"))
    sex: Optional[str] = Field(None, validation_alias=AliasChoices("sex", "gender", "jenis_kelamin"))
    birth_date: date = Field(..., validation_alias=AliasChoices("birth_date", "tanggal_lahir", "dob"))

    @model_validator(mode="before")
    @classmethod
    def _envelope(cls, data: Any) -> Any:
        return _unwrap(data, ("data", "subject", "anak", "child"))

    @field_validator("subject_id", "sex", mode="before")
    @classmethod
    def _as_str(cls, v: Any) -> Any:
        return None if v is None else str(v)

    @field_validator("birth_date", mode="before")
    @classmethod
    def _date(cls, v: Any) -> date:
        return parse_date(v)

    def to_domain(self) -> Subject:
        return Subject(id=self.subject_id, sex=parse_sex(self.sex), birth_date=self.birth_date)


class MeasurementIn(BaseModel):
    weight_kg: Optional[float] = Field(None, validation_alias=AliasChoices("weight_kg", "berat_kg", "weight", "berat"))
    height_cm: Optional[float] = Field(
        None, validation_alias=AliasChoices("height_cm", "tinggi_cm", "length_cm", "panjang_cm", "height", "tinggi")
    )
    head_circumference_cm: Optional[float] = Field(
        None, validation_alias=AliasChoices("head_circumference_cm", "lingkar_kepala_cm")
    )
    measurement_date: Optional[date] = Field(
        None, validation_alias=AliasChoices("measurement_date", "tanggal_pengukuran", "date")
    )
    location: Optional[str] = Field(None, validation_alias=AliasChoices("location", "posyandu"))
    source: str = Field("posyandu", validation_alias=AliasChoices("source", "sumber"))

    @model_validator(mode="before")
    @classmethod
    def _envelope(cls, data: Any) -> Any:
        return _unwrap(data, ("data", "measurement", "pengukuran"))

    @field_validator("measurement_date", mode="before")
    @classmethod
    def _date(cls, v: Any) -> Optional[date]:
        return None if v in (None, "") else parse_date(v)

    def to_domain(self, subject_id: str) -> Measurement:
        # No date given: the measurement was taken today.
        when = self.measurement_date or datetime.now(timezone.utc).date()
        return Measurement(
            subject_id=subject_id,
            measurement_date=when,
            weight_kg=self.weight_kg,
            height_cm=self.height_cm,
            head_circumference_cm=self.head_circumference_cm,
            location=self.location,
            source=self.source,
        )


class AnalyzeRequest(BaseModel):
    subject: SubjectIn
    measurement: MeasurementIn
    # None: save, or inside a batch follow the batch-wide flag
    save: Optional[bool] = Field(None, validation_alias=AliasChoices("save", "simpan"))

    @model_validator(mode="before")
    @classmethod
    def _flat_body(cls, data: Any) -> Any:
        data = _unwrap(data, ("data",))
        # Flat bodies carry subject and measurement fields side by side.
        if isinstance(data, dict) and "subject" not in data and "measurement" not in data:
            return {"subject": data, "measurement": data, "save": data.get("save", data.get("simpan"))}
        return data


class BatchAnalyzeRequest(BaseModel):
    items: List[AnalyzeRequest] = Field(..., validation_alias=AliasChoices("items", "children", "anak"))
    location: Optional[str] = Field(None, validation_alias=AliasChoices("location", "posyandu"))
    save: bool = Field(True, validation_alias=AliasChoices("save", "simpan"))


class IndicatorOut(BaseModel):
    z_score: float
    category: str
    raw_value: float


class AnalysisOut(BaseModel):
    age_months: int
    bmi: float
    indicators: Dict[str, IndicatorOut]
    overall_status: str
    needs_intervention: bool
    recommendations: List[str]
    interpretation: str
    action: str


class MeasurementOut(BaseModel):
    subject_id: str
    measurement_date: date
    weight_kg: Optional[float]
    height_cm: Optional[float]
    head_circumference_cm: Optional[float] = None
    location: Optional[str] = None
    source: str


class HistoryEntryOut(BaseModel):
    measurement: MeasurementOut
    analysis: AnalysisOut


class HistoryResponse(BaseModel):
    subject_id: str
    value: List[HistoryEntryOut]
    Count: int


class TrendPointOut(BaseModel):
    measurement_date: date
    age_months: int
    z_score: float
    category: str
    raw_value: float


class IndicatorTrendOut(BaseModel):
    flag: str
    delta: Optional[float] = None
    points: List[TrendPointOut]


class TrendOut(BaseModel):
    subject_id: str
    stunting_warning: str
    indicators: Dict[str, IndicatorTrendOut]


class BatchItemOut(BaseModel):
    subject_id: Optional[str]
    ok: bool
    analysis: Optional[AnalysisOut] = None
    error: Optional[str] = None
    detail: Optional[str] = None


class BatchAnalyzeResponse(BaseModel):
    total: int
    succeeded: int
    failed: int
    results: List[BatchItemOut]
