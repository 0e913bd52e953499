from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from growth.errors import InvalidMeasurement, OutOfDomain, ReferenceDataError
from growth.types import LMS, Indicator, Sex, parse_sex


logger = logging.getLogger(__name__)

TABLE_FILES = {
    Indicator.HEIGHT_FOR_AGE: "hfa_lms.csv",
    Indicator.WEIGHT_FOR_AGE: "wfa_lms.csv",
    Indicator.WEIGHT_FOR_HEIGHT: "wfh_lms.csv",
    Indicator.BMI_FOR_AGE: "bfa_lms.csv",
}
REQUIRED_COLUMNS = {"sex", "x", "L", "M", "S"}

# Column names used by the reference curves, one per SD line.
CURVE_COLUMNS = (
    ("sd_3_negative", -3),
    ("sd_2_negative", -2),
    ("sd_1_negative", -1),
    ("median", 0),
    ("sd_1_positive", 1),
    ("sd_2_positive", 2),
    ("sd_3_positive", 3),
)


def _frozen(values) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class AxisTable:
    """LMS parameters of one (indicator, sex) partition, sorted by axis value."""

    x: np.ndarray
    L: np.ndarray
    M: np.ndarray
    S: np.ndarray

    def __len__(self) -> int:
        return len(self.x)


@dataclass(frozen=True)
class GrowthReference:
    """
    Immutable WHO LMS reference tables, indexed by (indicator, sex).

    The axis is age in months for HFA/WFA/BFA and height/length in cm for WFH.
    Build once with `load_who_reference` or `from_frame` and pass the object
    by reference; it is never mutated afterwards.
    """

    tables: Mapping[Tuple[Indicator, Sex], AxisTable]

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "GrowthReference":
        """Expects columns: indicator, sex, x, L, M, S."""
        required = REQUIRED_COLUMNS | {"indicator"}
        missing = required - set(df.columns)
        if missing:
            raise ReferenceDataError(
                f"reference frame missing columns: {sorted(missing)}. Required={sorted(required)}"
            )

        tables: dict[Tuple[Indicator, Sex], AxisTable] = {}
        for (ind_raw, sex_raw), part in df.groupby(["indicator", "sex"], sort=False):
            try:
                indicator = Indicator(str(ind_raw))
            except ValueError:
                raise ReferenceDataError(f"unknown indicator in reference data: {ind_raw!r}") from None
            sex = parse_sex(sex_raw)

            part = part.astype({"x": float, "L": float, "M": float, "S": float}).sort_values("x")
            if part[["x", "L", "M", "S"]].isna().any().any():
                raise ReferenceDataError(f"{indicator.value}/{sex.value}: empty LMS values")
            if part["x"].duplicated().any():
                raise ReferenceDataError(f"{indicator.value}/{sex.value}: duplicate axis values")
            if (part["M"] <= 0).any() or (part["S"] <= 0).any():
                raise ReferenceDataError(f"{indicator.value}/{sex.value}: M and S must be positive")
            if (indicator, sex) in tables:
                raise ReferenceDataError(f"{indicator.value}/{sex.value}: partition given twice")

            tables[(indicator, sex)] = AxisTable(
                x=_frozen(part["x"]),
                L=_frozen(part["L"]),
                M=_frozen(part["M"]),
                S=_frozen(part["S"]),
            )

        if not tables:
            raise ReferenceDataError("reference frame has no rows")
        return cls(tables=MappingProxyType(tables))

    def indicators(self) -> set[Indicator]:
        return {ind for ind, _ in self.tables}

    def _table(self, indicator: Indicator, sex: Sex) -> AxisTable:
        try:
            return self.tables[(indicator, sex)]
        except KeyError:
            raise ReferenceDataError(
                f"no reference table loaded for {indicator.value}/{sex.value}"
            ) from None

    def axis(self, indicator: Indicator, sex: Sex) -> np.ndarray:
        return self._table(indicator, sex).x

    def lookup(self, indicator: Indicator, sex: Sex, x: float) -> LMS:
        """
        Exact row if x is on the axis, else L, M and S are linearly
        interpolated independently between the bracketing rows.
        No extrapolation outside the published domain.
        """
        t = self._table(indicator, sex)
        x = float(x)
        if not np.isfinite(x) or x < t.x[0] or x > t.x[-1]:
            raise OutOfDomain(
                f"{indicator.value}: axis value {x:g} outside reference range [{t.x[0]:g}, {t.x[-1]:g}]"
            )

        i = int(np.searchsorted(t.x, x))
        if i < len(t) and t.x[i] == x:
            return LMS(L=float(t.L[i]), M=float(t.M[i]), S=float(t.S[i]))

        return LMS(
            L=float(np.interp(x, t.x, t.L)),
            M=float(np.interp(x, t.x, t.M)),
            S=float(np.interp(x, t.x, t.S)),
        )

    def reference_curves(
        self, indicator: Indicator, sex: Sex, sds: Optional[Iterable[int]] = None
    ) -> pd.DataFrame:
        """Measurement value at each SD line for every axis point (growth chart curves).

        `sds` picks a subset of the -3..+3 lines; all seven by default.
        """
        t = self._table(indicator, sex)
        wanted = None if sds is None else set(sds)
        out = pd.DataFrame({"x": t.x})
        for col, z in CURVE_COLUMNS:
            if wanted is not None and z not in wanted:
                continue
            out[col] = [value_at_z(z, L, M, S) for L, M, S in zip(t.L, t.M, t.S)]
        return out


def _load_table(path: Path) -> pd.DataFrame:
    df = pd.read_csv(path)
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ReferenceDataError(
            f"{path.name} missing columns: {sorted(missing)}. Required={sorted(REQUIRED_COLUMNS)}"
        )
    df = df.copy()
    df["sex"] = df["sex"].astype(str).str.upper()
    return df.sort_values(["sex", "x"]).reset_index(drop=True)


def load_who_reference(who_lms_dir: str | Path) -> GrowthReference:
    """
    Loads WHO LMS reference tables from a directory.

      hfa_lms.csv  (x=age_months)
      wfa_lms.csv  (x=age_months)
      wfh_lms.csv  (x=height_or_length_cm)
      bfa_lms.csv  (x=age_months)

    Use `python -m growth.reference_tables` to produce these from the WHO
    workbooks. No values are generated here; these must be real published tables.
    """
    d = Path(who_lms_dir)
    if not d.exists():
        raise ReferenceDataError(f"WHO LMS directory not found: {d}")

    frames = []
    for indicator, fname in TABLE_FILES.items():
        path = d / fname
        if not path.exists():
            logger.warning("WHO LMS table %s not found in %s", fname, d)
            continue
        df = _load_table(path)
        df["indicator"] = indicator.value
        logger.info("Loaded %s: %d rows", fname, len(df))
        frames.append(df)

    if not frames:
        raise ReferenceDataError(
            f"No WHO LMS CSVs found in {d}. Expected at least one of: {', '.join(TABLE_FILES.values())}"
        )
    return GrowthReference.from_frame(pd.concat(frames, ignore_index=True))


def lms_zscore(value: float, L: float, M: float, S: float) -> float:
    """
    WHO LMS z-score formula:
      If L != 0: Z = ((value/M)^L - 1) / (L*S)
      If L == 0: Z = ln(value/M) / S
    """
    if value is None or not np.isfinite(value) or value <= 0:
        raise InvalidMeasurement(f"measurement must be a positive number, got {value!r}")
    if M <= 0 or S <= 0:
        raise ReferenceDataError(f"invalid LMS parameters M={M}, S={S}")
    if np.isclose(L, 0.0):
        return float(np.log(value / M) / S)
    return float(((value / M) ** L - 1.0) / (L * S))


def value_at_z(z: float, L: float, M: float, S: float) -> float:
    """Inverse LMS: the measurement value lying exactly z SDs from the median."""
    if np.isclose(L, 0.0):
        return float(M * np.exp(S * z))
    base = 1.0 + L * S * z
    if base <= 0:
        return float("nan")
    return float(M * base ** (1.0 / L))


def _restricted_tail(z: float, value: float, lms: LMS) -> float:
    # Beyond +/-3 SD the distance is measured in units of the 2-3 SD interval
    # on the same side instead of the raw LMS transform.
    if z < -3:
        sd3 = value_at_z(-3, lms.L, lms.M, lms.S)
        sd2 = value_at_z(-2, lms.L, lms.M, lms.S)
        return -3.0 + (value - sd3) / (sd2 - sd3)
    sd3 = value_at_z(3, lms.L, lms.M, lms.S)
    sd2 = value_at_z(2, lms.L, lms.M, lms.S)
    return 3.0 + (value - sd3) / (sd3 - sd2)


def zscore(indicator: Indicator, value: float, lms: LMS) -> float:
    """
    Z-score of `value` against `lms`, rounded to 2 decimals.

    Weight-based indicators (WFA, WFH, BFA) get the WHO restricted tail
    correction when |Z| > 3; height-for-age is treated as normally
    distributed and is never corrected.
    """
    z = lms_zscore(value, lms.L, lms.M, lms.S)
    if indicator.is_weight_based and abs(z) > 3:
        z = _restricted_tail(z, value, lms)
    return round(z, 2)
