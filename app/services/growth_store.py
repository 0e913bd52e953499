from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.db.models import GrowthRecord
from app.utils.time import parse_date
from growth.classification import parse_category
from growth.store import ensure_same_subject, sort_history
from growth.types import (
    AnalysisResult,
    HistoryEntry,
    Indicator,
    IndicatorResult,
    Measurement,
    OverallStatus,
    Subject,
)


logger = logging.getLogger(__name__)


def measurement_to_payload(m: Measurement) -> Dict[str, Any]:
    return {
        "subject_id": m.subject_id,
        "measurement_date": m.measurement_date.isoformat(),
        "weight_kg": m.weight_kg,
        "height_cm": m.height_cm,
        "head_circumference_cm": m.head_circumference_cm,
        "location": m.location,
        "source": m.source,
    }


def measurement_from_payload(d: Dict[str, Any]) -> Measurement:
    return Measurement(
        subject_id=d["subject_id"],
        measurement_date=parse_date(d["measurement_date"]),
        weight_kg=d.get("weight_kg"),
        height_cm=d.get("height_cm"),
        head_circumference_cm=d.get("head_circumference_cm"),
        location=d.get("location"),
        source=d.get("source") or "posyandu",
    )


def analysis_to_payload(a: AnalysisResult) -> Dict[str, Any]:
    return {
        "age_months": a.age_months,
        "bmi": a.bmi,
        "indicators": {
            r.indicator.value: {
                "z_score": r.z_score,
                "category": r.category.value,
                "raw_value": r.raw_value,
            }
            for r in a.indicators
        },
        "overall_status": a.overall_status.value,
        "needs_intervention": a.needs_intervention,
        "recommendations": list(a.recommendations),
        "interpretation": a.interpretation,
        "action": a.action,
    }


def analysis_from_payload(d: Dict[str, Any]) -> AnalysisResult:
    results = {}
    for indicator in Indicator:
        r = d["indicators"][indicator.value]
        results[indicator.value] = IndicatorResult(
            indicator=indicator,
            z_score=r["z_score"],
            category=parse_category(indicator, r["category"]),
            raw_value=r["raw_value"],
        )
    return AnalysisResult(
        **results,
        overall_status=OverallStatus(d["overall_status"]),
        recommendations=tuple(d.get("recommendations") or ()),
        age_months=d["age_months"],
        bmi=d.get("bmi", 0.0),
        interpretation=d.get("interpretation", ""),
        action=d.get("action", ""),
    )


def record_id(subject_id: str, measurement_date: date) -> str:
    return f"{subject_id}:{measurement_date.isoformat()}"


class SqlGrowthRecordStore:
    """GrowthRecordStore backed by the growth_records table."""

    def __init__(self, session_factory: sessionmaker, history_limit: int = 500) -> None:
        self._session_factory = session_factory
        self._history_limit = history_limit

    def upsert(self, subject: Subject, measurement: Measurement, analysis: AnalysisResult) -> None:
        """Replace-or-insert keyed by (subject, date); the deterministic id makes merge idempotent."""
        ensure_same_subject(subject, measurement)
        rid = record_id(subject.id, measurement.measurement_date)
        row_values = dict(
            id=rid,
            subject_id=subject.id,
            measurement_date=measurement.measurement_date,
            age_months=analysis.age_months,
            weight_kg=measurement.weight_kg,
            height_cm=measurement.height_cm,
            head_circumference_cm=measurement.head_circumference_cm,
            location=measurement.location,
            source=measurement.source,
            haz=analysis.height_for_age.z_score,
            waz=analysis.weight_for_age.z_score,
            whz=analysis.weight_for_height.z_score,
            baz=analysis.bmi_for_age.z_score,
            overall_status=analysis.overall_status.value,
            snapshot={
                "measurement": measurement_to_payload(measurement),
                "analysis": analysis_to_payload(analysis),
            },
        )

        # A concurrent insert of the same key loses the race with an
        # IntegrityError; the retry then merges onto the committed row.
        for attempt in range(2):
            db = self._session_factory()
            try:
                db.merge(GrowthRecord(**row_values))
                db.commit()
                logger.debug("upserted growth record %s", rid)
                return
            except IntegrityError:
                db.rollback()
                if attempt == 1:
                    raise
                logger.debug("concurrent insert for %s, retrying as update", rid)
            finally:
                db.close()

    def history(
        self, subject_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[HistoryEntry]:
        db = self._session_factory()
        try:
            q = db.query(GrowthRecord).filter(GrowthRecord.subject_id == subject_id)
            if start is not None:
                q = q.filter(GrowthRecord.measurement_date >= start)
            if end is not None:
                q = q.filter(GrowthRecord.measurement_date <= end)
            rows = (
                q.order_by(GrowthRecord.age_months.desc(), GrowthRecord.measurement_date.desc())
                .limit(self._history_limit)
                .all()
            )
            entries = [
                HistoryEntry(
                    measurement=measurement_from_payload(r.snapshot["measurement"]),
                    analysis=analysis_from_payload(r.snapshot["analysis"]),
                )
                for r in rows
            ]
        finally:
            db.close()
        return sort_history(entries)

    def subject_ids(self) -> List[str]:
        db = self._session_factory()
        try:
            rows = db.query(GrowthRecord.subject_id).distinct().all()
            return sorted(r[0] for r in rows)
        finally:
            db.close()
