from __future__ import annotations

from typing import Callable, Dict, Hashable
import logging
import threading
import time

import numpy as np
from scipy.ndimage import convolve

logger = logging.getLogger(__name__)


def local_sd(field: np.ndarray, window: int) -> np.ndarray:
    """Sample SD (ddof=1) over each cell's window x window neighbourhood.

    NaN neighbours are ignored and out-of-bounds neighbours do not exist,
    so edge cells use whatever in-bounds cells they have. Fewer than two
    valid neighbours -> NaN.
    """
    a = np.asarray(field, dtype=np.float64)
    if a.ndim != 2:
        raise ValueError(f"local_sd expects a 2-D slice, got shape {a.shape}")
    w = int(window)
    if w < 1 or w % 2 == 0:
        raise ValueError(f"window must be a positive odd integer, got {w}")

    valid = np.isfinite(a)
    if not valid.any():
        return np.full(a.shape, np.nan)

    # centre first so flat patches cancel exactly
    x = np.where(valid, a - float(np.nanmean(a)), 0.0)
    k = np.ones((w, w))
    cnt = convolve(valid.astype(np.float64), k, mode="constant", cval=0.0)
    s1 = convolve(x, k, mode="constant", cval=0.0)
    s2 = convolve(x * x, k, mode="constant", cval=0.0)

    with np.errstate(invalid="ignore", divide="ignore"):
        ss = s2 - s1 * s1 / cnt
        ss = np.where(ss <= 1e-10 * s2, 0.0, ss)
        var = ss / (cnt - 1.0)
    return np.where(cnt >= 2, np.sqrt(np.clip(var, 0.0, None)), np.nan)


def local_sd_stack(arr: np.ndarray, window: int) -> np.ndarray:
    """local_sd applied to every slice along the last axis of a [lon, lat, depth] array."""
    arr = np.asarray(arr, dtype=np.float64)
    if arr.ndim == 2:
        return local_sd(arr, window)
    return np.stack([local_sd(arr[..., k], window) for k in range(arr.shape[-1])], axis=-1)


class SDCache:
    """Local SD fields memoized by epoch key (month for climatology, day for snapshots).

    Owned by one engine instance. Concurrent misses on the same key may compute
    the field twice; the first stored result wins.
    """

    def __init__(self, window: int) -> None:
        self.window = int(window)
        self.computed = 0
        self._store: Dict[Hashable, np.ndarray] = {}
        self._lock = threading.Lock()

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._store

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: Hashable, source: Callable[[], np.ndarray]) -> np.ndarray:
        with self._lock:
            hit = self._store.get(key)
        if hit is not None:
            return hit

        t0 = time.perf_counter()
        field = local_sd_stack(source(), self.window)
        logger.info(f"local sd for {key!r} (window {self.window}) took {time.perf_counter() - t0:.2f}s")

        with self._lock:
            self.computed += 1
            return self._store.setdefault(key, field)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
