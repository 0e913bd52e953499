from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from growth.engine import analyze
from growth.errors import GrowthAssessmentError
from growth.store import GrowthRecordStore, ensure_same_subject
from growth.trend import DEFAULT_THRESHOLD, analyze_trend
from growth.types import (
    AnalysisResult,
    HistoryEntry,
    Indicator,
    Measurement,
    OverallStatus,
    Subject,
    TrendReport,
    parse_sex,
)
from growth.who_lms import GrowthReference
from app.utils.time import now_utc_iso


logger = logging.getLogger(__name__)

# Dashboard families: category values that count towards each headline number.
FAMILIES = {
    "stunting": (Indicator.HEIGHT_FOR_AGE, ("stunted", "severely_stunted")),
    "underweight": (Indicator.WEIGHT_FOR_AGE, ("underweight", "severely_underweight")),
    "wasting": (Indicator.WEIGHT_FOR_HEIGHT, ("wasted", "severely_wasted")),
    "overweight": (Indicator.WEIGHT_FOR_HEIGHT, ("overweight",)),
    "obese": (Indicator.WEIGHT_FOR_HEIGHT, ("obese",)),
}


@dataclass(frozen=True)
class BatchItem:
    subject: Subject
    measurement: Measurement
    save: Optional[bool] = None  # None: follow the batch


@dataclass(frozen=True)
class BatchOutcome:
    subject_id: Optional[str]
    analysis: Optional[AnalysisResult] = None
    error: Optional[str] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.analysis is not None


def trend_to_payload(report: TrendReport) -> Dict[str, Any]:
    return {
        "subject_id": report.subject_id,
        "stunting_warning": report.stunting_warning.value,
        "indicators": {
            t.indicator.value: {
                "flag": t.flag.value,
                "delta": t.delta,
                "points": [
                    {
                        "measurement_date": p.measurement_date,
                        "age_months": p.age_months,
                        "z_score": p.z_score,
                        "category": p.category.value,
                        "raw_value": p.raw_value,
                    }
                    for p in t.points
                ],
            }
            for t in report.indicators
        },
    }


class GrowthAssessmentService:
    """analyze / history / trend over one reference repository and one record store."""

    def __init__(
        self,
        reference: GrowthReference,
        store: GrowthRecordStore,
        trend_threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self.reference = reference
        self.store = store
        self.trend_threshold = trend_threshold

    def analyze(self, subject: Subject, measurement: Measurement, save: bool = True) -> AnalysisResult:
        """Score a measurement and, when `save`, upsert it into the subject's history.

        On any GrowthAssessmentError nothing is written.
        """
        ensure_same_subject(subject, measurement)
        try:
            result = analyze(self.reference, subject, measurement)
        except GrowthAssessmentError as e:
            logger.warning("analysis rejected subject=%s error=%s: %s", subject.id, type(e).__name__, e)
            raise

        if save:
            self.store.upsert(subject, measurement, result)
            logger.info(
                "saved growth analysis subject=%s date=%s status=%s",
                subject.id, measurement.measurement_date.isoformat(), result.overall_status.value,
            )
        return result

    def history(
        self, subject_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[HistoryEntry]:
        return self.store.history(subject_id, start=start, end=end)

    def trend(self, subject_id: str) -> TrendReport:
        return analyze_trend(subject_id, self.store.history(subject_id), self.trend_threshold)

    def batch_analyze(
        self, items: Iterable[Union[BatchItem, Tuple[Subject, Measurement]]], save: bool = True
    ) -> List[BatchOutcome]:
        """Analyze a posyandu session; every item is attempted and failures are reported per item.

        An item's own `save` overrides the batch-wide one.
        """
        outcomes: List[BatchOutcome] = []
        for item in items:
            if not isinstance(item, BatchItem):
                item = BatchItem(*item)
            subject = item.subject
            item_save = save if item.save is None else item.save
            try:
                result = self.analyze(subject, item.measurement, save=item_save)
            except GrowthAssessmentError as e:
                outcomes.append(BatchOutcome(subject_id=subject.id, error=type(e).__name__, detail=str(e)))
                continue
            outcomes.append(BatchOutcome(subject_id=subject.id, analysis=result))

        failed = sum(1 for o in outcomes if not o.ok)
        logger.info("batch analyzed total=%d failed=%d", len(outcomes), failed)
        return outcomes

    def _all_entries(self) -> List[Tuple[str, HistoryEntry]]:
        return [(sid, e) for sid in self.store.subject_ids() for e in self.store.history(sid)]

    def dashboard(self) -> Dict[str, Any]:
        """Population summary over each subject's latest entry plus a monthly series over all entries."""
        rows = [
            {
                "subject_id": sid,
                "measurement_date": e.measurement_date,
                "month": e.measurement_date.strftime("%Y-%m"),
                "age_months": e.age_months,
                "overall_status": e.analysis.overall_status.value,
                "needs_intervention": e.analysis.needs_intervention,
                "location": e.measurement.location,
                **{f"{ind.short}_z": e.analysis.result_for(ind).z_score for ind in Indicator},
                **{f"{ind.short}_category": e.analysis.result_for(ind).category.value for ind in Indicator},
            }
            for sid, e in self._all_entries()
        ]

        out: Dict[str, Any] = {
            "generated_at": now_utc_iso(),
            "total_children": 0,
            "needs_intervention": 0,
            "status_counts": {s.value: 0 for s in OverallStatus},
            "summary": {**{k: 0 for k in FAMILIES}, "normal": 0},
            "urgent_cases": [],
            "monthly": [],
        }
        if not rows:
            return out

        df = pd.DataFrame(rows)
        latest = (
            df.sort_values(["subject_id", "measurement_date", "age_months"])
            .groupby("subject_id", as_index=False)
            .tail(1)
        )

        out["total_children"] = int(len(latest))
        out["needs_intervention"] = int(latest["needs_intervention"].sum())
        counts = latest["overall_status"].value_counts()
        for status in OverallStatus:
            out["status_counts"][status.value] = int(counts.get(status.value, 0))
        for family, (ind, values) in FAMILIES.items():
            out["summary"][family] = int(latest[f"{ind.short}_category"].isin(values).sum())
        out["summary"]["normal"] = out["status_counts"][OverallStatus.NORMAL.value]

        urgent = latest[latest["overall_status"] == OverallStatus.URGENT.value]
        out["urgent_cases"] = [
            {
                "subject_id": r.subject_id,
                "measurement_date": r.measurement_date.isoformat(),
                "age_months": int(r.age_months),
                "location": r.location,
                "hfa_z": float(r.hfa_z),
                "wfa_z": float(r.wfa_z),
                "wfh_z": float(r.wfh_z),
            }
            for r in urgent.itertuples(index=False)
        ]

        monthly = (
            df.groupby("month")
            .agg(
                measurements=("subject_id", "size"),
                needs_intervention=("needs_intervention", "sum"),
                avg_hfa_z=("hfa_z", "mean"),
                avg_wfa_z=("wfa_z", "mean"),
            )
            .reset_index()
            .sort_values("month")
        )
        out["monthly"] = [
            {
                "month": r.month,
                "measurements": int(r.measurements),
                "needs_intervention": int(r.needs_intervention),
                "avg_hfa_z": round(float(r.avg_hfa_z), 2),
                "avg_wfa_z": round(float(r.avg_wfa_z), 2),
            }
            for r in monthly.itertuples(index=False)
        ]
        return out

    def chart(self, indicator: Indicator | str, sex) -> pd.DataFrame:
        """Reference SD curves (sd_3_negative .. sd_3_positive) for one indicator and sex."""
        indicator = Indicator(indicator)
        return self.reference.reference_curves(indicator, parse_sex(sex))
