"""Climatology (WOA-style) profile matching.

Each tag day's min/max temperature band is compared, depth by depth, against
the month's climatological mean and spatial SD. Per-depth likelihoods are
independent evidence and multiply; the daily product is max-normalized and
offset so near-zero background is deflated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple
import logging
import time

import numpy as np

from ..config import LikelihoodConfig
from ..errors import InsufficientDataError
from ..pipeline.pool import map_days
from ..profiles import STANDARD_DEPTHS, TagDailyProfile
from ..utils_geo import GridSpec
from ..utils_time import to_days
from .integrate import likint
from .profile_fit import interpolate_band
from .stack import LikelihoodStack
from .variability import SDCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Climatology:
    """Monthly temperature climatology.

    temp: [lon, lat, depth, month] with 12 months; optional sd of the same shape
    replaces the neighbourhood SD estimate.
    """

    temp: np.ndarray
    lon: np.ndarray
    lat: np.ndarray
    depth: np.ndarray = field(default_factory=lambda: STANDARD_DEPTHS.copy())
    sd: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        temp = np.asarray(self.temp, dtype=np.float64)
        lon = np.asarray(self.lon, dtype=np.float64)
        lat = np.asarray(self.lat, dtype=np.float64)
        depth = np.asarray(self.depth, dtype=np.float64)
        expected = (lon.size, lat.size, depth.size, 12)
        if temp.shape != expected:
            raise ValueError(f"climatology temp shape {temp.shape}, expected {expected}")
        if np.any(np.diff(depth) <= 0):
            raise ValueError("climatology depths must be strictly increasing")
        object.__setattr__(self, "temp", temp)
        object.__setattr__(self, "lon", lon)
        object.__setattr__(self, "lat", lat)
        object.__setattr__(self, "depth", depth)
        if self.sd is not None:
            sd = np.asarray(self.sd, dtype=np.float64)
            if sd.shape != temp.shape:
                raise ValueError(f"climatology sd shape {sd.shape} != temp shape {temp.shape}")
            object.__setattr__(self, "sd", sd)

    @property
    def grid(self) -> GridSpec:
        return GridSpec(lon=self.lon, lat=self.lat)

    def month_slice(self, month: int) -> np.ndarray:
        return self.temp[..., int(month) - 1]


class ProfileLikelihoodEngine:
    def __init__(self, climatology: Climatology, config: Optional[LikelihoodConfig] = None) -> None:
        self.clim = climatology
        self.config = config or LikelihoodConfig()
        self.sd_cache = SDCache(self.config.profile_window)

    def month_sd(self, month: int) -> np.ndarray:
        """SD field for a month: supplied climatology SD, else the cached neighbourhood SD."""
        if self.clim.sd is not None:
            return self.clim.sd[..., int(month) - 1]
        return self.sd_cache.get(int(month), lambda: self.clim.month_slice(month))

    def normalize(self, lik: np.ndarray) -> np.ndarray:
        finite = lik[np.isfinite(lik)]
        peak = float(finite.max()) if finite.size else np.nan
        if not (np.isfinite(peak) and peak > 0):
            return np.full(lik.shape, np.nan)
        return lik / peak - self.config.profile_offset

    def day_surface(self, profile: TagDailyProfile) -> np.ndarray:
        """[lon, lat] surface for one tag day (NaN everywhere if the day is unusable)."""
        shape = self.clim.temp.shape[:2]
        try:
            band = interpolate_band(profile, self.clim.depth, self.config.fit_degree, self.config.fit_alpha)
        except InsufficientDataError as e:
            logger.warning(f"{profile.day}: profile interpolation failed ({e}); surface left undefined")
            return np.full(shape, np.nan)

        month = profile.month
        mean = self.clim.month_slice(month)
        sd = self.month_sd(month)

        lik = np.ones(shape)
        for b, k in enumerate(band.level_index):
            lik = lik * likint(mean[:, :, k], sd[:, :, k], band.low[b], band.high[b])

        out = self.normalize(lik)
        if np.all(np.isnan(out)):
            logger.warning(f"{profile.day}: no positive likelihood anywhere; surface left undefined")
        return out

    def _task(self, task: Tuple[int, TagDailyProfile]) -> np.ndarray:
        return self.day_surface(task[1])

    def run(
        self,
        profiles: Sequence[TagDailyProfile],
        date_vec,
        workers: Optional[int] = None,
    ) -> LikelihoodStack:
        days = to_days(date_vec)
        stack = LikelihoodStack.empty(days, self.clim.grid, name="profile")

        tasks = []
        for p in profiles:
            hit = np.flatnonzero(days == p.day)
            if hit.size == 0:
                logger.warning(f"{p.day}: tag day outside dateVec, skipped")
                continue
            tasks.append((int(hit[0]), p))

        if tasks:
            logger.info(f"Generating profile likelihood for {tasks[0][1].day} through {tasks[-1][1].day}")
        t0 = time.perf_counter()
        surfaces = map_days(self._task, tasks, workers=workers if workers is not None else self.config.workers)
        for (i, _), s in zip(tasks, surfaces):
            stack.put_surface(i, s)
        logger.info(f"profile likelihood: {len(tasks)} days in {time.perf_counter() - t0:.2f}s")
        return stack
