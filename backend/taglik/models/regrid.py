from __future__ import annotations

import logging

import numpy as np
from rasterio.enums import Resampling
from rasterio.warp import reproject

from ..errors import GridMismatchError
from ..utils_geo import GridSpec
from .stack import LikelihoodStack

logger = logging.getLogger(__name__)

_METHODS = {
    "nearest": Resampling.nearest,
    "bilinear": Resampling.bilinear,
}


def align_stack(stack: LikelihoodStack, target: GridSpec, method: str = "nearest") -> LikelihoodStack:
    """Resample every layer of `stack` onto `target`; the time axis is untouched.

    Aligning onto the stack's own grid returns an exact copy.
    """
    if method not in _METHODS:
        raise ValueError(f"method must be one of {sorted(_METHODS)}, got {method!r}")
    if stack.grid.same_as(target):
        return stack.copy()
    if not stack.grid.overlaps(target):
        raise GridMismatchError(f"{stack.name}: extent {stack.grid.extent} does not overlap target {target.extent}")
    for g, label in ((stack.grid, stack.name), (target, "target")):
        if not g.is_regular:
            raise GridMismatchError(f"{label} grid is not regularly spaced")

    # rasterio works north-up: flip latitude (rows) on the way in and out
    src = np.ascontiguousarray(stack.values[:, ::-1, :], dtype=np.float64)
    dst = np.full((len(stack),) + target.shape, np.nan, dtype=np.float64)
    if len(stack):
        reproject(
            source=src,
            destination=dst,
            src_transform=stack.grid.transform,
            src_crs=stack.grid.crs,
            src_nodata=np.nan,
            dst_transform=target.transform,
            dst_crs=target.crs,
            dst_nodata=np.nan,
            resampling=_METHODS[method],
        )
    logger.debug(f"{stack.name}: aligned {stack.grid.shape} -> {target.shape} ({method})")
    return LikelihoodStack(values=dst[:, ::-1, :].copy(), dates=stack.dates.copy(), grid=target, name=stack.name)
