from datetime import date

import pandas as pd
import pytest

from app.db.session import init_db, make_session_factory
from app.services.growth_service import GrowthAssessmentService
from app.services.growth_store import SqlGrowthRecordStore
from growth.store import InMemoryGrowthRecordStore
from growth.types import Measurement, Sex, Subject
from growth.who_lms import GrowthReference


# Small LMS test table. HFA(0), WFA(0, 12) and WFH/BFA(0) rows are WHO 2006
# values; the remaining rows are fixture values chosen for round numbers.
# HFA(12, male) is L=1, M=75.0, S=0.035 so the end-to-end scenario is easy to
# check by hand.
LMS_ROWS = [
    # indicator, sex, x, L, M, S
    ("height_for_age", "M", 0, 1.0, 49.8842, 0.03795),
    ("height_for_age", "M", 12, 1.0, 75.0, 0.035),
    ("height_for_age", "M", 24, 1.0, 87.8161, 0.03507),
    ("height_for_age", "M", 60, 1.0, 109.9638, 0.04030),
    ("height_for_age", "F", 0, 1.0, 49.1477, 0.03790),
    ("height_for_age", "F", 12, 1.0, 74.0150, 0.03400),
    ("height_for_age", "F", 24, 1.0, 86.4153, 0.03691),
    ("height_for_age", "F", 60, 1.0, 109.4233, 0.04267),
    ("weight_for_age", "M", 0, 0.3487, 3.3464, 0.14602),
    ("weight_for_age", "M", 12, 0.0644, 9.6479, 0.11080),
    ("weight_for_age", "M", 24, -0.0137, 12.1515, 0.11426),
    ("weight_for_age", "M", 60, -0.1506, 18.3366, 0.13517),
    ("weight_for_age", "F", 0, 0.3809, 3.2322, 0.14171),
    ("weight_for_age", "F", 12, -0.0756, 8.9481, 0.12727),
    ("weight_for_age", "F", 24, -0.1596, 11.4775, 0.13004),
    ("weight_for_age", "F", 60, -0.2212, 18.2193, 0.14821),
    ("weight_for_height", "M", 45, -0.3521, 2.4410, 0.09182),
    ("weight_for_height", "M", 72, -0.3521, 8.6, 0.08),
    ("weight_for_height", "M", 80, -0.3521, 10.4, 0.08),
    ("weight_for_height", "M", 120, -0.3521, 22.4, 0.085),
    ("weight_for_height", "F", 45, -0.3833, 2.4607, 0.09029),
    ("weight_for_height", "F", 72, -0.3833, 8.3, 0.08),
    ("weight_for_height", "F", 80, -0.3833, 10.2, 0.08),
    ("weight_for_height", "F", 120, -0.3833, 22.6, 0.09),
    ("bmi_for_age", "M", 0, -0.3053, 13.4069, 0.0956),
    ("bmi_for_age", "M", 12, -0.1, 16.9, 0.08),
    ("bmi_for_age", "M", 24, -0.3, 16.0, 0.08),
    ("bmi_for_age", "M", 60, -0.9, 15.2, 0.08),
    ("bmi_for_age", "F", 0, -0.0631, 13.3363, 0.09272),
    ("bmi_for_age", "F", 12, -0.2, 16.4, 0.085),
    ("bmi_for_age", "F", 24, -0.4, 15.7, 0.085),
    ("bmi_for_age", "F", 60, -0.8, 15.2, 0.09),
]


def lms_frame() -> pd.DataFrame:
    return pd.DataFrame(LMS_ROWS, columns=["indicator", "sex", "x", "L", "M", "S"])


@pytest.fixture(scope="session")
def reference() -> GrowthReference:
    return GrowthReference.from_frame(lms_frame())


@pytest.fixture
def boy() -> Subject:
    return Subject(id="A", sex=Sex.MALE, birth_date=date(2023, 1, 1))


@pytest.fixture
def measure():
    def make(subject_id="A", when=date(2024, 1, 1), weight=9.0, height=72.0, **kw) -> Measurement:
        return Measurement(subject_id=subject_id, measurement_date=when, weight_kg=weight, height_cm=height, **kw)

    return make


@pytest.fixture
def sql_store(tmp_path) -> SqlGrowthRecordStore:
    factory = make_session_factory(f"sqlite:///{tmp_path / 'growth.db'}")
    init_db(factory)
    return SqlGrowthRecordStore(factory)


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryGrowthRecordStore()
    return request.getfixturevalue("sql_store")


@pytest.fixture
def service(reference, store) -> GrowthAssessmentService:
    return GrowthAssessmentService(reference=reference, store=store)
