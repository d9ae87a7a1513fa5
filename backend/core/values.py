"""Cell-level coercions shared by inference, filtering, profiling and aggregation.

Every engine reads raw cells through these helpers so that "is this missing",
"what number is this" and "what is its display string" have one answer
everywhere in the pipeline.
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

Number = Union[int, float]


def is_missing(value: Any) -> bool:
    """None, empty string and float NaN all count as a missing cell."""
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, str):
        return value == ''
    if isinstance(value, float):
        return math.isnan(value)
    return False


def _normalize(number: float) -> Number:
    return int(number) if number.is_integer() else number


def to_number(value: Any) -> Optional[Number]:
    """Parse a cell as a finite number, or return None.

    Booleans are not numbers here, otherwise a true/false column could never
    be classified as boolean.
    """
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        f = float(value)
        return _normalize(f) if math.isfinite(f) else None
    if isinstance(value, str):
        text = value.strip()
        # float() accepts "1_000"; spreadsheets do not
        if not text or '_' in text:
            return None
        try:
            f = float(text)
        except ValueError:
            return None
        return _normalize(f) if math.isfinite(f) else None
    return None


# a four digit year or a d/m/y triple; anything looser lets the parser
# fill gaps from the clock ("now", "Jan 5", "10:30")
_DATE_SHAPE = re.compile(r"\d{4}|\d{1,2}[/.-]\d{1,2}[/.-]\d{2}")


@lru_cache(maxsize=65536)
def _parse_date_text(text: str) -> Optional[pd.Timestamp]:
    if not _DATE_SHAPE.search(text):
        return None
    try:
        ts = pd.to_datetime(text, errors='coerce')
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    return _naive(ts)


def _naive(ts: pd.Timestamp) -> pd.Timestamp:
    # aware and naive timestamps cannot be compared
    if ts.tzinfo is not None:
        return ts.tz_convert(None)
    return ts


def to_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """Parse a cell as a date, or return None. Numbers are never dates."""
    if value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else _naive(value)
    if isinstance(value, (datetime, date)):
        return _naive(pd.Timestamp(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        return _parse_date_text(text)
    return None


def to_text(value: Any) -> str:
    """Stringify a cell the way spreadsheets display it.

    Grouping keys, category counts and categorical filters all compare these
    strings, so ``1``, ``1.0`` and ``"1"`` land in the same bucket.
    """
    if value is None:
        return 'null'
    if isinstance(value, (bool, np.bool_)):
        return 'true' if value else 'false'
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        f = float(value)
        if math.isnan(f):
            return 'NaN'
        if math.isinf(f):
            return 'Infinity' if f > 0 else '-Infinity'
        return str(int(f)) if f.is_integer() else repr(f)
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.isoformat()
    return str(value)


def to_jsonable(value: Any) -> Any:
    """Unwrap numpy/pandas scalars into plain JSON-safe Python values."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, (float, np.floating)):
        f = float(value)
        if math.isnan(f) or math.isinf(f):
            return None
        return _normalize(f)
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.isoformat()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value
