"""Ocean heat content (OHC) matching against daily ocean-model snapshots.

Tag-implied OHC bounds (from the daily temperature band) are compared with the
model OHC integrated above the same isotherm over the matched depth levels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple, Union
import logging
import time

import numpy as np

from ..config import LikelihoodConfig
from ..errors import GridMismatchError, InsufficientDataError
from ..pipeline.pool import map_days
from ..profiles import TagDailyProfile
from ..utils_geo import GridSpec
from ..utils_time import to_day, to_days
from .integrate import likint
from .profile_fit import UncertaintyBand, interpolate_band
from .stack import LikelihoodStack
from .variability import local_sd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixedIsotherm:
    value: float


@dataclass(frozen=True)
class DailyMinimumIsotherm:
    """Isotherm = lowest band temperature of the day."""


Isotherm = Union[FixedIsotherm, DailyMinimumIsotherm]


def resolve_isotherm(isotherm: Isotherm, band: UncertaintyBand) -> float:
    if isinstance(isotherm, FixedIsotherm):
        return float(isotherm.value)
    if isinstance(isotherm, DailyMinimumIsotherm):
        low = band.low[np.isfinite(band.low)]
        if low.size == 0:
            raise InsufficientDataError("no finite band values to derive an isotherm")
        return float(low.min())
    raise TypeError(f"unknown isotherm {isotherm!r}")


@dataclass(frozen=True, eq=False)
class OceanSnapshot:
    """One day of ocean-model temperature, [lon, lat, depth]."""

    day: np.datetime64
    temp: np.ndarray
    lon: np.ndarray
    lat: np.ndarray
    depth: np.ndarray

    def __post_init__(self) -> None:
        temp = np.asarray(self.temp, dtype=np.float64)
        lon = np.asarray(self.lon, dtype=np.float64)
        lat = np.asarray(self.lat, dtype=np.float64)
        depth = np.asarray(self.depth, dtype=np.float64)
        if temp.shape != (lon.size, lat.size, depth.size):
            raise GridMismatchError(f"snapshot temp {temp.shape} vs (lon, lat, depth) {(lon.size, lat.size, depth.size)}")
        object.__setattr__(self, "day", to_day(self.day))
        object.__setattr__(self, "temp", temp)
        object.__setattr__(self, "lon", lon)
        object.__setattr__(self, "lat", lat)
        object.__setattr__(self, "depth", np.where(depth < 0, 0.0, depth))

    @property
    def grid(self) -> GridSpec:
        return GridSpec(lon=self.lon, lat=self.lat)


SnapshotSource = Union[Mapping[Any, OceanSnapshot], Callable[[np.datetime64], Optional[OceanSnapshot]]]


def tag_ohc(band: UncertaintyBand, isotherm: float, factor: float) -> Tuple[float, float]:
    """(minOHC, maxOHC) from the band parts above the isotherm."""
    lo = band.low - isotherm
    hi = band.high - isotherm
    return float(factor * np.sum(lo[lo > 0])), float(factor * np.sum(hi[hi > 0]))


def model_ohc(temp: np.ndarray, level_index: np.ndarray, isotherm: float, factor: float) -> np.ndarray:
    """Cell-wise OHC over the given levels; cells with no water above the isotherm are NaN."""
    excess = temp[:, :, level_index] - isotherm
    ohc = factor * np.sum(np.where(excess > 0, excess, 0.0), axis=2)
    ohc[ohc == 0] = np.nan
    return ohc


class OHCLikelihoodEngine:
    def __init__(
        self,
        snapshots: SnapshotSource,
        isotherm: Isotherm = DailyMinimumIsotherm(),
        config: Optional[LikelihoodConfig] = None,
    ) -> None:
        self.snapshots = snapshots
        self.isotherm = isotherm
        self.config = config or LikelihoodConfig()

    def snapshot_for(self, day: np.datetime64) -> Optional[OceanSnapshot]:
        if isinstance(self.snapshots, Mapping):
            for k, v in self.snapshots.items():
                if to_day(k) == day:
                    return v
            return None
        return self.snapshots(day)

    def day_surface(self, profile: TagDailyProfile, snap: OceanSnapshot) -> np.ndarray:
        """[lon, lat] OHC likelihood for one day (NaN everywhere if the day is unusable)."""
        cfg = self.config
        try:
            band = interpolate_band(profile, snap.depth, cfg.fit_degree, cfg.fit_alpha)
            iso = resolve_isotherm(self.isotherm, band)
        except InsufficientDataError as e:
            logger.warning(f"{profile.day}: profile interpolation failed ({e}); surface left undefined")
            return np.full(snap.temp.shape[:2], np.nan)

        min_ohc, max_ohc = tag_ohc(band, iso, cfg.ohc_factor)
        ohc = model_ohc(snap.temp, band.level_index, iso, cfg.ohc_factor)
        logger.debug(f"{profile.day}: isotherm {iso:.2f}, tag OHC [{min_ohc:.1f}, {max_ohc:.1f}]")

        t0 = time.perf_counter()
        sd = local_sd(ohc, cfg.ohc_window)
        logger.debug(f"{profile.day}: OHC sd took {time.perf_counter() - t0:.2f}s")
        return likint(ohc, sd, min_ohc, max_ohc)

    def _task(self, task: Tuple[int, TagDailyProfile]) -> Optional[Tuple[GridSpec, np.ndarray]]:
        _, profile = task
        snap = self.snapshot_for(profile.day)
        if snap is None:
            logger.warning(f"{profile.day}: no ocean-model snapshot, day left undefined")
            return None
        return snap.grid, self.day_surface(profile, snap)

    def run(
        self,
        profiles: Sequence[TagDailyProfile],
        date_vec,
        workers: Optional[int] = None,
    ) -> LikelihoodStack:
        days = to_days(date_vec)
        tasks = []
        for p in profiles:
            hit = np.flatnonzero(days == p.day)
            if hit.size == 0:
                logger.warning(f"{p.day}: tag day outside dateVec, skipped")
                continue
            tasks.append((int(hit[0]), p))

        t0 = time.perf_counter()
        results = map_days(self._task, tasks, workers=workers if workers is not None else self.config.workers)

        grid: Optional[GridSpec] = None
        for r in results:
            if r is None:
                continue
            if grid is None:
                grid = r[0]
            elif not grid.same_as(r[0]):
                raise GridMismatchError("ocean-model snapshots do not share one lon/lat grid")
        if grid is None:
            raise LookupError("no ocean-model snapshot available for any tag day")

        stack = LikelihoodStack.empty(days, grid, name="ohc")
        for (i, _), r in zip(tasks, results):
            if r is not None:
                stack.put_surface(i, r[1])
        logger.info(f"OHC likelihood: {len(tasks)} days in {time.perf_counter() - t0:.2f}s")
        return stack
