from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Date, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import declarative_base


Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GrowthRecord(Base):
    __tablename__ = "growth_records"
    __table_args__ = (UniqueConstraint("subject_id", "measurement_date", name="uq_growth_subject_date"),)

    id = Column(String, primary_key=True)  # f"{subject_id}:{measurement_date}"
    subject_id = Column(String, index=True, nullable=False)
    measurement_date = Column(Date, nullable=False)
    age_months = Column(Integer, nullable=False)

    weight_kg = Column(Float, nullable=False)
    height_cm = Column(Float, nullable=False)
    head_circumference_cm = Column(Float, nullable=True)
    location = Column(String, nullable=True)
    source = Column(String, nullable=True)

    # domain outputs, denormalised for dashboards
    haz = Column(Float, nullable=True)
    waz = Column(Float, nullable=True)
    whz = Column(Float, nullable=True)
    baz = Column(Float, nullable=True)
    overall_status = Column(String, nullable=False)

    # full measurement + analysis payload
    snapshot = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
