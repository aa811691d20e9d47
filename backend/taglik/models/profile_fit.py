from __future__ import annotations

from dataclasses import dataclass
import logging
import numpy as np

from ..errors import InsufficientDataError
from ..profiles import TagDailyProfile, match_depth_levels

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalFit:
    fit: np.ndarray
    se: np.ndarray


@dataclass(frozen=True)
class UncertaintyBand:
    """Temperature bounds at the reference levels matched by one day's samples."""

    level_index: np.ndarray   # indices into the reference depth levels
    depth: np.ndarray
    low: np.ndarray
    high: np.ndarray

    @property
    def n(self) -> int:
        return int(self.level_index.size)


def _tricube(u: np.ndarray) -> np.ndarray:
    u = np.clip(np.abs(u), 0.0, 1.0)
    return (1.0 - u ** 3) ** 3


def _smoother_weights(x: np.ndarray, x0: float, degree: int, alpha: float) -> np.ndarray:
    """Row l(x0) of the local polynomial smoother, so that fit(x0) = l(x0) @ y."""
    d = np.abs(x - x0)
    k = min(max(int(np.ceil(alpha * x.size)), degree + 1), x.size)
    h = float(np.sort(d)[k - 1])

    # degree+1 distinct depths must sit strictly inside the kernel
    ud = np.sort(np.abs(np.unique(x) - x0))
    if ud.size <= degree:
        raise InsufficientDataError(f"need {degree + 1} distinct depths, got {ud.size}")
    h = max(h, float(ud[degree]) * 1.1)
    if h <= 0:
        raise InsufficientDataError("zero bandwidth")

    w = _tricube(d / h)
    u = (x - x0) / h
    X = np.vander(u, degree + 1, increasing=True)
    XtW = X.T * w
    A = XtW @ X
    if not np.all(np.isfinite(A)) or np.linalg.cond(A) > 1e12:
        raise InsufficientDataError(f"singular local fit at depth {x0:g}")
    return np.linalg.solve(A, XtW)[0]


def local_regression(
    x: np.ndarray,
    y: np.ndarray,
    x_new: np.ndarray,
    degree: int = 2,
    alpha: float = 0.7,
) -> LocalFit:
    """Local polynomial regression (tricube kernel, nearest-neighbour bandwidth).

    The residual variance follows the usual linear-smoother estimate
    rss / (n - 2*tr(L) + tr(L'L)); se(x0) = sigma * ||l(x0)||.
    Degree drops to (distinct x - 1) when too few depths are available.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    keep = np.isfinite(x) & np.isfinite(y)
    x, y = x[keep], y[keep]
    n_distinct = np.unique(x).size
    if n_distinct < 2:
        raise InsufficientDataError(f"need >= 2 distinct depths, got {n_distinct}")
    deg = min(int(degree), n_distinct - 1)

    try:
        L = np.vstack([_smoother_weights(x, xi, deg, alpha) for xi in x])
        rows = np.vstack([_smoother_weights(x, float(x0), deg, alpha) for x0 in np.atleast_1d(x_new)])
    except (np.linalg.LinAlgError, ValueError, FloatingPointError) as e:
        raise InsufficientDataError(str(e)) from e

    resid = y - L @ y
    rss = float(resid @ resid)
    nu1 = float(np.trace(L))
    nu2 = float(np.sum(L * L))
    df = x.size - 2.0 * nu1 + nu2
    sigma2 = rss / max(df, 1.0) if rss > 1e-12 else 0.0

    fit = rows @ y
    se = np.sqrt(sigma2) * np.sqrt(np.sum(rows * rows, axis=1))
    if not (np.all(np.isfinite(fit)) and np.all(np.isfinite(se))):
        raise InsufficientDataError("non-finite local fit")
    return LocalFit(fit=fit, se=se)


def interpolate_band(
    profile: TagDailyProfile,
    levels: np.ndarray,
    degree: int = 2,
    alpha: float = 0.7,
) -> UncertaintyBand:
    """Regress min/max temperature on depth and bound them at the matched levels.

    low  = fit_min - se_min * sqrt(n)
    high = fit_max + se_max * sqrt(n)
    with n the number of matched levels that day.
    """
    levels = np.asarray(levels, dtype=np.float64)
    idx = match_depth_levels(profile.depth, levels)
    if idx.size == 0:
        raise InsufficientDataError(f"{profile.day}: no valid depths")

    at = levels[idx]
    f_low = local_regression(profile.depth, profile.min_temp, at, degree=degree, alpha=alpha)
    f_high = local_regression(profile.depth, profile.max_temp, at, degree=degree, alpha=alpha)

    root_n = np.sqrt(idx.size)
    low = f_low.fit - f_low.se * root_n
    high = f_high.fit + f_high.se * root_n
    # crossing fits (possible with negative smoother weights)
    low, high = np.minimum(low, high), np.maximum(low, high)

    logger.debug(f"{profile.day}: band at {idx.size} levels, low {low.min():.2f} high {high.max():.2f}")
    return UncertaintyBand(level_index=idx, depth=at, low=low, high=high)
