from __future__ import annotations

import numpy as np
from scipy.stats import norm


def likint(mean: np.ndarray, sd: np.ndarray, low, high) -> np.ndarray:
    """P(low <= X <= high) for X ~ Normal(mean, sd), cell by cell.

    `low`/`high` may be scalars or anything broadcastable against `mean`.
    Cells whose sd is NaN, zero or negative (or whose mean is NaN) are NaN.
    """
    mean = np.asarray(mean, dtype=np.float64)
    sd = np.asarray(sd, dtype=np.float64)
    if mean.shape != sd.shape:
        raise ValueError(f"mean {mean.shape} and sd {sd.shape} must share a shape")

    ok = np.isfinite(mean) & np.isfinite(sd) & (sd > 0)
    safe_sd = np.where(ok, sd, 1.0)
    p = norm.cdf((high - mean) / safe_sd) - norm.cdf((low - mean) / safe_sd)
    return np.where(ok, np.clip(p, 0.0, 1.0), np.nan)
