from __future__ import annotations
import datetime as dt
from typing import Any, Iterable, Optional

import numpy as np
import pandas as pd
from dateutil import parser as dtparser

from .errors import DateFormatError


def to_day(value: Any) -> np.datetime64:
    """Coerce one date-like value to a calendar day (numpy datetime64[D]).

    Accepts datetime/date, pandas Timestamp, numpy datetime64 and date strings
    (ISO or anything dateutil understands). Aware datetimes are taken in UTC.
    Anything else (numbers, NaT, garbage strings) raises DateFormatError.
    """
    if value is None or value is pd.NaT:
        raise DateFormatError("missing date")
    if isinstance(value, np.datetime64):
        if np.isnat(value):
            raise DateFormatError("missing date")
        return value.astype("datetime64[D]")
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc)
        return np.datetime64(value.date(), "D")
    if isinstance(value, dt.date):
        return np.datetime64(value, "D")
    if isinstance(value, str):
        try:
            parsed = dtparser.parse(value)
        except (ValueError, OverflowError) as e:
            raise DateFormatError(f"cannot parse date {value!r}: {e}") from e
        return to_day(parsed)
    raise DateFormatError(f"{type(value).__name__} is not a date: {value!r}")


def to_days(values: Iterable[Any]) -> np.ndarray:
    """Vector version of to_day; returns datetime64[D] array (order preserved)."""
    if isinstance(values, (pd.Series, pd.Index)) and pd.api.types.is_datetime64_any_dtype(values.dtype):
        idx = pd.DatetimeIndex(values)
        if idx.tz is not None:
            idx = idx.tz_convert("UTC").tz_localize(None)
        if idx.hasnans:
            raise DateFormatError("missing dates in date column")
        return idx.values.astype("datetime64[D]")
    if isinstance(values, np.ndarray) and np.issubdtype(values.dtype, np.datetime64):
        if np.isnat(values).any():
            raise DateFormatError("missing dates in date array")
        return values.astype("datetime64[D]")
    if isinstance(values, (str, bytes)):
        raise DateFormatError("expected a sequence of dates, got a single string")
    return np.array([to_day(v) for v in values], dtype="datetime64[D]")


def date_vector(start: Any, end: Any) -> np.ndarray:
    """Daily dates from tagging (start) to pop-up (end), both inclusive."""
    d0, d1 = to_day(start), to_day(end)
    if d1 < d0:
        raise ValueError(f"end {d1} is before start {d0}")
    return np.arange(d0, d1 + np.timedelta64(1, "D"), dtype="datetime64[D]")


def interval_index(date_vec: np.ndarray, day: Any) -> Optional[int]:
    """Index of the last timestep whose day is <= `day`.

    Returns None when the day precedes the first timestep or falls after the
    last one (such dates cannot be placed on the time grid).
    """
    days = to_days(date_vec)
    d = to_day(day)
    if len(days) == 0 or d > days[-1]:
        return None
    i = int(np.searchsorted(days, d, side="right")) - 1
    return i if i >= 0 else None


def day_iso(day: Any) -> str:
    """YYYY-MM-DD, used in date-keyed file names."""
    return str(to_day(day))
