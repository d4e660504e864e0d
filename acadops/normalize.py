from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

import pandas as pd


_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_LEADING_INT = r"^\s*([+-]?\d+)"
_LEADING_FLOAT = r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"

PLACEHOLDER_TEACHER = "TBA"


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def normalize_id(value: object) -> str:
    """Canonical join key: alphanumerics only, lowercased ("CSE-101" -> "cse101")."""
    if _is_missing(value):
        return ""
    return _NON_ALNUM.sub("", str(value)).lower()


def normalize_semester(label: object) -> str:
    """Semester labels are matched with the same key as IDs ("Fall 2024" -> "fall2024")."""
    return normalize_id(label)


def normalize_ids(values: Optional[Iterable[object]]) -> set:
    return {normalize_id(v) for v in (values or []) if normalize_id(v)}


def is_blank(value: object) -> bool:
    return _is_missing(value) or str(value).strip() == ""


def is_placeholder_teacher(value: object) -> bool:
    return is_blank(value) or str(value) == PLACEHOLDER_TEACHER


def parse_int(value: object) -> Optional[int]:
    """Leading-integer parse ("30 seats" -> 30). Returns None when nothing parses."""
    if _is_missing(value):
        return None
    match = re.match(_LEADING_INT, str(value))
    if not match:
        return None
    return int(match.group(1))


def parse_float(value: object) -> Optional[float]:
    if _is_missing(value):
        return None
    match = re.match(_LEADING_FLOAT, str(value))
    if not match:
        return None
    return float(match.group(1))


def int_or_zero(value: object) -> int:
    parsed = parse_int(value)
    return 0 if parsed is None else parsed


def float_or_zero(value: object) -> float:
    parsed = parse_float(value)
    return 0.0 if parsed is None else parsed


def to_int_series(series: pd.Series) -> pd.Series:
    """Vectorized `int_or_zero`; malformed cells become 0."""
    if series.empty:
        return pd.Series(dtype="int64", index=series.index)
    extracted = series.astype("string").str.extract(_LEADING_INT, expand=False)
    return pd.to_numeric(extracted, errors="coerce").fillna(0).astype("int64")


def to_float_series(series: pd.Series) -> pd.Series:
    if series.empty:
        return pd.Series(dtype="float64", index=series.index)
    extracted = series.astype("string").str.extract(_LEADING_FLOAT, expand=False)
    return pd.to_numeric(extracted, errors="coerce").fillna(0.0).astype("float64")


def blank_mask(series: pd.Series) -> pd.Series:
    stripped = series.astype("string").str.strip().fillna("")
    return (series.isna() | stripped.eq("")).astype(bool)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def round_decimal(value: float, ndigits: int = 1) -> float:
    """Half-up rounding to `ndigits` places (7.25 -> 7.3)."""
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))
