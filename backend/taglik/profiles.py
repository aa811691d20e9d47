"""Tag depth-temperature (PDT) daily profiles.

The tag record arrives already parsed as a table with columns
Date, Depth, MinTemp, MaxTemp (one row per depth bin per summary period).
This module only groups it by calendar day and matches sample depths onto
reference depth levels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import numpy as np
import pandas as pd

from .utils_time import to_days

# standard (WOA-style) depth levels shared by the engines
STANDARD_DEPTHS = np.concatenate([
    [0.0],
    np.arange(2.5, 97.5 + 1e-9, 5.0),
    np.arange(112.5, 487.5 + 1e-9, 25.0),
    np.arange(525.0, 1475.0 + 1e-9, 50.0),
])

REQUIRED_COLUMNS = ("Date", "Depth", "MinTemp", "MaxTemp")


@dataclass(frozen=True)
class TagDailyProfile:
    day: np.datetime64
    depth: np.ndarray
    min_temp: np.ndarray
    max_temp: np.ndarray

    def __post_init__(self) -> None:
        for name in ("depth", "min_temp", "max_temp"):
            arr = np.array(getattr(self, name), dtype=np.float64)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    @property
    def mid_temp(self) -> np.ndarray:
        return (self.min_temp + self.max_temp) / 2.0

    @property
    def month(self) -> int:
        return int(pd.Timestamp(self.day).month)

    def __len__(self) -> int:
        return int(self.depth.size)


def match_depth_levels(sample_depths: np.ndarray, levels: np.ndarray) -> np.ndarray:
    """Indices of the reference levels nearest to each sample (unique, depth order).

    Nearest means minimum squared difference; ties go to the first level.
    """
    d = np.asarray(sample_depths, dtype=np.float64)
    d = d[np.isfinite(d)]
    if d.size == 0:
        return np.zeros(0, dtype=np.int64)
    lv = np.asarray(levels, dtype=np.float64)
    idx = np.argmin((d[:, None] - lv[None, :]) ** 2, axis=1)
    return np.unique(idx)


def group_daily_profiles(pdt: pd.DataFrame) -> List[TagDailyProfile]:
    """Split a PDT table into one TagDailyProfile per calendar day (sorted)."""
    missing = [c for c in REQUIRED_COLUMNS if c not in pdt.columns]
    if missing:
        raise KeyError(f"PDT table missing columns: {missing}")

    days = to_days(pdt["Date"])
    depth = pd.to_numeric(pdt["Depth"], errors="coerce").to_numpy(dtype=np.float64)
    tmin = pd.to_numeric(pdt["MinTemp"], errors="coerce").to_numpy(dtype=np.float64)
    tmax = pd.to_numeric(pdt["MaxTemp"], errors="coerce").to_numpy(dtype=np.float64)

    keep = np.isfinite(depth)
    depth = np.where(depth < 0, 0.0, depth)

    out: List[TagDailyProfile] = []
    for day in np.unique(days):
        m = keep & (days == day)
        order = np.argsort(depth[m], kind="stable")
        out.append(TagDailyProfile(
            day=day,
            depth=depth[m][order],
            min_temp=tmin[m][order],
            max_temp=tmax[m][order],
        ))
    return out
