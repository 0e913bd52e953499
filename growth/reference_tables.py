"""
Normalize WHO LMS source tables into the fixed `sex, x, L, M, S` CSV format
read by `growth.who_lms.load_who_reference`.

The WHO publishes its tables as workbooks with varying column names
(`Month`, `Day`, `Length`, `Height`, lower/upper case L/M/S) and encodes sex
and indicator in the file name. All of that shape-sniffing lives here so the
rest of the engine only ever sees one schema.

Run manually:

    python -m growth.reference_tables data/raw/who data/processed/who
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import pandas as pd

from growth.age import DAYS_PER_MONTH
from growth.errors import ReferenceDataError
from growth.types import Indicator, Sex, parse_sex
from growth.who_lms import TABLE_FILES


RAW_DIR = Path("data/raw/who")
OUT_DIR = Path("data/processed/who")

_SEX_CODES = {Sex.MALE: "M", Sex.FEMALE: "F"}

_AGE_KEYS = ("age", "age_month", "age_months", "month", "months", "age_in_months")
_DAY_KEYS = ("day", "days", "age_in_days", "age_days")
_HEIGHT_KEYS = ("height", "height_cm", "length", "length_cm", "len", "ht", "recumbent_length", "x")

# Order matters: "bmi" files would otherwise match nothing, "wfl" must not hit "lfa".
_INDICATOR_TOKENS = (
    (Indicator.BMI_FOR_AGE, ("bmi", "bfa")),
    (Indicator.WEIGHT_FOR_HEIGHT, ("wfh", "wfl", "weight-for-length", "weight-for-height", "weight_for_height")),
    (Indicator.WEIGHT_FOR_AGE, ("wfa", "weight-for-age", "weight_for_age", "wtfa")),
    (Indicator.HEIGHT_FOR_AGE, ("lhfa", "hfa", "lfa", "length-for-age", "height-for-age", "height_for_age")),
)


@dataclass
class DetectedColumns:
    kind: str  # "age" or "height"
    x_col: str
    l_col: str
    m_col: str
    s_col: str
    in_days: bool = False


def _norm(s) -> str:
    return str(s).strip().lower().replace(" ", "_")


def guess_sex_from_filename(name: str) -> Optional[Sex]:
    n = name.lower()
    if "girl" in n or "female" in n:
        return Sex.FEMALE
    if "boy" in n or "male" in n:
        return Sex.MALE
    if "_f" in n:
        return Sex.FEMALE
    if "_m" in n:
        return Sex.MALE
    return None


def guess_indicator_from_filename(name: str) -> Optional[Indicator]:
    n = name.lower()
    for indicator, tokens in _INDICATOR_TOKENS:
        if any(tok in n for tok in tokens):
            return indicator
    return None


def _find_lms_columns(cols) -> Optional[Tuple[str, str, str]]:
    norm = {_norm(c): c for c in cols}
    if all(k in norm for k in ("l", "m", "s")):
        return norm["l"], norm["m"], norm["s"]

    def find(token: str) -> Optional[str]:
        for k, orig in norm.items():
            if k.endswith(f"_{token}") or k.startswith(f"{token}_"):
                return orig
        return None

    l, m, s = find("l"), find("m"), find("s")
    if l and m and s:
        return l, m, s
    return None


def _find_x_column(cols) -> Optional[Tuple[str, str, bool]]:
    """Return (kind, x_col, in_days). kind="age" or "height"."""
    norm = {_norm(c): c for c in cols}
    for key in _AGE_KEYS:
        if key in norm:
            return "age", norm[key], False
    for key in _DAY_KEYS:
        if key in norm:
            return "age", norm[key], True
    for key in _HEIGHT_KEYS:
        if key in norm:
            return "height", norm[key], False

    for k, orig in norm.items():
        if "month" in k:
            return "age", orig, False
        if "day" in k:
            return "age", orig, True
    for k, orig in norm.items():
        if "height" in k or "length" in k:
            return "height", orig, False
    return None


def detect_columns(df: pd.DataFrame) -> Optional[DetectedColumns]:
    cols = list(df.columns)
    xinfo = _find_x_column(cols)
    lms = _find_lms_columns(cols)
    if not xinfo or not lms:
        return None
    kind, x_col, in_days = xinfo
    return DetectedColumns(kind, x_col, *lms, in_days=in_days)


def normalize_lms_frame(df: pd.DataFrame, sex: Optional[Sex] = None) -> pd.DataFrame:
    """
    Map one source table onto `sex, x, L, M, S`.

    Sex comes from a `sex`/`gender` column when present, else from `sex`.
    Age axes given in days are converted to months.
    """
    det = detect_columns(df)
    if det is None:
        raise ReferenceDataError(f"no axis/L/M/S columns recognised in {list(df.columns)}")

    out = df[[det.x_col, det.l_col, det.m_col, det.s_col]].copy()
    out.columns = ["x", "L", "M", "S"]

    norm = {_norm(c): c for c in df.columns}
    sex_col = norm.get("sex") or norm.get("gender")
    if sex_col is not None:
        out["sex"] = [_SEX_CODES[parse_sex(v)] for v in df[sex_col]]
    elif sex is not None:
        out["sex"] = _SEX_CODES[sex]
    else:
        raise ReferenceDataError("sex not given and no sex column found")

    for c in ["x", "L", "M", "S"]:
        out[c] = pd.to_numeric(out[c], errors="coerce")
    out = out.dropna(subset=["x", "L", "M", "S"])
    if det.in_days:
        out["x"] = out["x"] / DAYS_PER_MONTH

    return out.sort_values(["sex", "x"]).reset_index(drop=True)[["sex", "x", "L", "M", "S"]]


def merge_segments(frames: List[pd.DataFrame]) -> Tuple[pd.DataFrame, int]:
    """
    Join the per-file tables of one indicator into a single axis per sex.

    WHO splits several indicators across files whose axes overlap: length/
    height-for-age 0-2y and 2-5y share month 24, weight-for-length (45-110 cm)
    and weight-for-height (65-120 cm) share 65-110 cm. Within a sex, the
    segment whose axis starts later wins over the whole range it covers, so
    the 2-5y standing-height rows take month 24 onward and the height table
    takes 65 cm onward. Returns the merged table and the number of rows dropped.
    """
    by_sex: dict[str, list[pd.DataFrame]] = {}
    for frame in frames:
        for sex, seg in frame.groupby("sex", sort=False):
            by_sex.setdefault(sex, []).append(seg.drop_duplicates())

    kept = []
    dropped = 0
    for sex in sorted(by_sex):
        # stable sort: for equal starts the later file wins
        segs = sorted(by_sex[sex], key=lambda s: s["x"].min())
        for i, seg in enumerate(segs):
            covered = pd.Series(False, index=seg.index)
            for later in segs[i + 1 :]:
                covered |= seg["x"].between(later["x"].min(), later["x"].max())
            dropped += int(covered.sum())
            kept.append(seg[~covered])

    table = pd.concat(kept, ignore_index=True)
    return table.sort_values(["sex", "x"]).reset_index(drop=True), dropped


def _read_sources(path: Path) -> Iterator[Tuple[str, pd.DataFrame]]:
    if path.suffix.lower() == ".csv":
        yield path.stem, pd.read_csv(path)
        return
    xl = pd.ExcelFile(path)
    for sheet in xl.sheet_names:
        yield sheet, xl.parse(sheet_name=sheet)


def build_tables(raw_dir: Path, out_dir: Path) -> dict:
    """Convert every WHO workbook/CSV in raw_dir; returns {indicator: written path}."""
    raw_dir, out_dir = Path(raw_dir), Path(out_dir)
    if not raw_dir.exists():
        raise ReferenceDataError(f"Missing folder: {raw_dir.resolve()}")

    files = sorted(p for p in raw_dir.iterdir() if p.suffix.lower() in (".xlsx", ".csv"))
    if not files:
        raise ReferenceDataError(f"No .xlsx or .csv files found in {raw_dir.resolve()}")

    rows: dict[Indicator, list[pd.DataFrame]] = {}
    for f in files:
        indicator = guess_indicator_from_filename(f.name)
        if indicator is None:
            print(f"[WARN] Cannot infer indicator from filename, skipped: {f.name}")
            continue
        sex = guess_sex_from_filename(f.name)
        for sheet, df in _read_sources(f):
            if df is None or df.empty or detect_columns(df) is None:
                continue
            rows.setdefault(indicator, []).append(normalize_lms_frame(df, sex=sex))
            print(f"- {f.name} | sheet='{sheet}' | {indicator.value} | sex={sex.value if sex else 'column'}")

    if not rows:
        raise ReferenceDataError("No LMS tables detected in any file.")

    out_dir.mkdir(parents=True, exist_ok=True)
    written = {}
    for indicator, frames in rows.items():
        table, dropped = merge_segments(frames)
        if dropped:
            print(f"- {indicator.value}: {dropped} overlapping rows replaced by the later-starting table")
        path = out_dir / TABLE_FILES[indicator]
        table.to_csv(path, index=False)
        written[indicator] = path
        print(f"Saved: {path}  rows={len(table)}")
    return written


def main(argv=None) -> None:
    args = list(sys.argv[1:] if argv is None else argv)
    raw_dir = Path(args[0]) if len(args) > 0 else RAW_DIR
    out_dir = Path(args[1]) if len(args) > 1 else OUT_DIR
    build_tables(raw_dir, out_dir)
    print("\nDONE. Point paths.who_lms_dir in configs/config.yaml at", out_dir)


if __name__ == "__main__":
    main()
