from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence
import logging
import warnings

import numpy as np
import pandas as pd

from ..errors import DuplicateFixWarning, GridMismatchError
from ..utils_time import interval_index, to_day, to_days
from .stack import LikelihoodStack

logger = logging.getLogger(__name__)

EPSILON_FLOOR = 1e-15


@dataclass(frozen=True)
class Fix:
    """A known (or assumed) location for a date."""

    date: Any
    lon: float
    lat: float


def as_fixes(fixes: Any) -> List[Fix]:
    """Accept Fix objects, (date, lon, lat) tuples or a DataFrame with date/lon/lat columns."""
    if fixes is None:
        return []
    if isinstance(fixes, pd.DataFrame):
        missing = [c for c in ("date", "lon", "lat") if c not in fixes.columns]
        if missing:
            raise KeyError(f"fix table missing columns: {missing}")
        days = to_days(fixes["date"])
        return [Fix(date=d, lon=float(x), lat=float(y)) for d, x, y in zip(days, fixes["lon"], fixes["lat"])]
    out: List[Fix] = []
    for f in fixes:
        if isinstance(f, Fix):
            out.append(Fix(date=to_day(f.date), lon=float(f.lon), lat=float(f.lat)))
        else:
            d, x, y = f
            out.append(Fix(date=to_day(d), lon=float(x), lat=float(y)))
    return out


def layer_kind(layer: np.ndarray) -> str:
    """'undefined' (all NaN), 'degenerate' (zeros counted as one sum to the cell count) or 'informative'."""
    if not np.any(np.isfinite(layer)):
        return "undefined"
    as_one = np.where(layer == 0, 1.0, layer)
    if np.nansum(as_one) == layer.size:
        return "degenerate"
    return "informative"


def _combine_step(layers: List[np.ndarray], day: Any = None) -> Optional[np.ndarray]:
    kinds = [layer_kind(x) for x in layers]
    keep = [x for x, k in zip(layers, kinds) if k != "undefined"]
    if not keep:
        return None
    if "degenerate" in kinds:
        logger.debug(f"{day}: {kinds.count('degenerate')} degenerate layer(s) in the sum")
    total = np.sum(keep, axis=0)  # NaN propagates; resolved by the final floor
    finite = total[np.isfinite(total)]
    peak = float(finite.max()) if finite.size else np.nan
    if not (np.isfinite(peak) and peak > 0):
        logger.warning(f"{day}: combined likelihood has no positive maximum, left at zero")
        return None
    return total / peak


def _apply_fixes(values: np.ndarray, stack: LikelihoodStack, fixes: Sequence[Fix], label: str) -> None:
    by_step: dict = {}
    for f in fixes:
        i = interval_index(stack.dates, f.date)
        if i is None:
            logger.warning(f"{label} fix on {f.date} is outside the time grid, ignored")
            continue
        by_step.setdefault(i, []).append(f)

    for i, fs in sorted(by_step.items()):
        if len(fs) > 1:
            warnings.warn(
                f"Multiple {label} locations supplied at time step {stack.dates[i]}. Only the first one is being used.",
                DuplicateFixWarning,
                stacklevel=3,
            )
        f = fs[0]
        if not stack.grid.contains(f.lon, f.lat):
            logger.warning(f"{label} fix ({f.lon}, {f.lat}) lies outside the grid; snapping to the nearest cell")
        row, col = stack.grid.nearest_cell(f.lon, f.lat)
        values[i] = 0.0
        values[i, row, col] = 1.0


def combine_likelihoods(
    stacks: Sequence[LikelihoodStack],
    date_vec: Iterable[Any],
    known_fixes: Any = None,
    initial_fixes: Any = None,
    epsilon: float = EPSILON_FLOOR,
) -> LikelihoodStack:
    """Fuse per-source likelihood stacks into one field on `date_vec`.

    Per timestep the available layers are summed (NaN-only layers dropped)
    and divided by the sum's maximum. Known fixes then replace their timestep by a one-hot
    layer, initial/final fixes after them, and the whole field is floored to
    `epsilon` so it stays strictly positive.
    """
    if not stacks:
        raise ValueError("need at least one likelihood stack")
    grid = stacks[0].grid
    for s in stacks[1:]:
        if s.grid.shape != grid.shape:
            raise GridMismatchError(f"{s.name} grid {s.grid.shape} does not match {stacks[0].name} grid {grid.shape}")
        if not s.grid.same_as(grid):
            logger.warning(f"{s.name} grid coordinates differ from {stacks[0].name}; align stacks first")

    days = to_days(date_vec)
    known = as_fixes(known_fixes)
    initial = as_fixes(initial_fixes)

    out = LikelihoodStack.empty(days, grid, name="L", fill=0.0)
    n_empty = 0
    for t, day in enumerate(days):
        layers = [lyr for lyr in (s.layer(day) for s in stacks) if lyr is not None]
        combined = _combine_step(layers, day)
        if combined is None:
            n_empty += 1
            continue
        out.values[t] = combined
    if n_empty:
        logger.info(f"{n_empty} of {days.size} timesteps carry no evidence (left at zero)")

    if known:
        logger.info("Input known locations are being added to the likelihoods...")
        _apply_fixes(out.values, out, known, "known")
    if initial:
        logger.info("Adding start and end locations...")
        _apply_fixes(out.values, out, initial, "initial/final")

    v = out.values
    v[~np.isfinite(v) | (v <= epsilon)] = epsilon
    return out
