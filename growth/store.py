from __future__ import annotations

import threading
from datetime import date
from typing import Dict, List, Optional, Protocol, Tuple

from growth.errors import SubjectMismatch
from growth.types import AnalysisResult, HistoryEntry, Measurement, Subject


class GrowthRecordStore(Protocol):
    """
    Append-only measurement history per subject.

    `upsert` is an atomic replace-or-insert keyed by (subject id, measurement
    date); `history` returns entries ordered by age in months ascending.
    """

    def upsert(self, subject: Subject, measurement: Measurement, analysis: AnalysisResult) -> None: ...

    def history(
        self, subject_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[HistoryEntry]: ...

    def subject_ids(self) -> List[str]: ...


def ensure_same_subject(subject: Subject, measurement: Measurement) -> None:
    if measurement.subject_id != subject.id:
        raise SubjectMismatch(
            f"measurement belongs to {measurement.subject_id!r}, not {subject.id!r}"
        )


def sort_history(entries) -> List[HistoryEntry]:
    return sorted(entries, key=lambda e: (e.age_months, e.measurement_date))


def in_range(d: date, start: Optional[date], end: Optional[date]) -> bool:
    return (start is None or d >= start) and (end is None or d <= end)


class InMemoryGrowthRecordStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: Dict[Tuple[str, date], HistoryEntry] = {}

    def upsert(self, subject: Subject, measurement: Measurement, analysis: AnalysisResult) -> None:
        ensure_same_subject(subject, measurement)
        key = (subject.id, measurement.measurement_date)
        with self._lock:
            self._rows[key] = HistoryEntry(measurement=measurement, analysis=analysis)

    def history(
        self, subject_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[HistoryEntry]:
        with self._lock:
            rows = [e for (sid, d), e in self._rows.items() if sid == subject_id and in_range(d, start, end)]
        return sort_history(rows)

    def subject_ids(self) -> List[str]:
        with self._lock:
            return sorted({sid for sid, _ in self._rows})
