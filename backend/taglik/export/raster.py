from __future__ import annotations

import os

import numpy as np
import rasterio

from ..models.stack import LikelihoodStack


def write_geotiff(
    path: str,
    stack: LikelihoodStack,
    *,
    nodata: float = np.nan,
    dtype: str = "float64",
    compress: str = "deflate",
    tiled: bool = True,
    blocksize: int = 256,
) -> None:
    """Write a likelihood stack as a multi-band GeoTIFF (one band per day, band description = date)."""
    if len(stack) == 0:
        raise ValueError(f"{stack.name}: nothing to write")
    ny, nx = stack.grid.shape
    tiled = tiled and nx >= 16 and ny >= 16
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)

    profile = {
        "driver": "GTiff",
        "height": ny,
        "width": nx,
        "count": len(stack),
        "dtype": dtype,
        "crs": stack.grid.crs,
        "transform": stack.grid.transform,
        "compress": compress,
        "tiled": tiled,
        "blockxsize": min(blocksize, nx) // 16 * 16 if tiled else None,
        "blockysize": min(blocksize, ny) // 16 * 16 if tiled else None,
        "nodata": nodata,
    }
    # drop None keys
    profile = {k: v for k, v in profile.items() if v is not None}

    # north-up rows
    data = stack.values[:, ::-1, :].astype(dtype)
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(data)
        for b, day in enumerate(stack.dates, start=1):
            dst.set_band_description(b, str(day))
        dst.update_tags(name=stack.name)


def read_geotiff_band(path: str, band: int = 1) -> np.ndarray:
    """One band back as (lat ascending, lon) array."""
    with rasterio.open(path) as src:
        return src.read(band)[::-1, :]
