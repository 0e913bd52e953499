from __future__ import annotations


class GrowthAssessmentError(ValueError):
    """Base class for validation failures raised by the growth engine."""


class InvalidDateRange(GrowthAssessmentError):
    pass


class UnsupportedAge(GrowthAssessmentError):
    pass


class OutOfDomain(GrowthAssessmentError):
    pass


class MissingMeasurement(GrowthAssessmentError):
    pass


class InvalidMeasurement(GrowthAssessmentError):
    pass


class InvalidSex(GrowthAssessmentError):
    pass


class ReferenceDataError(GrowthAssessmentError):
    """Reference dataset missing or malformed (raised while loading)."""


class SubjectMismatch(GrowthAssessmentError):
    """Measurement filed under a different subject than the one given."""
