from __future__ import annotations
from pathlib import Path
from typing import Dict, Optional, Tuple
import logging
import numpy as np
import xarray as xr

from ..models.ohc_lik import OceanSnapshot
from ..models.profile_lik import Climatology
from ..models.stack import LikelihoodStack
from ..utils_geo import normalise_longitudes
from ..utils_time import day_iso, to_day

logger = logging.getLogger(__name__)

_DIM_ALIASES: Dict[str, Tuple[str, ...]] = {
    "lon": ("lon", "longitude", "x"),
    "lat": ("lat", "latitude", "y"),
    "depth": ("depth", "z", "lev"),
    "month": ("month", "time"),
}


def _standard_dims(da: xr.DataArray, wanted: Tuple[str, ...]) -> xr.DataArray:
    rename = {}
    for std in wanted:
        for alias in _DIM_ALIASES[std]:
            if alias in da.dims:
                if alias != std:
                    rename[alias] = std
                break
        else:
            raise KeyError(f"{da.name}: no '{std}' dimension among {da.dims}")
    return da.rename(rename)


def _lon_lat_ascending(da: xr.DataArray) -> xr.DataArray:
    # 0..360 model longitudes -> -180..180, then sort both axes
    da = da.assign_coords(lon=normalise_longitudes(da["lon"].values))
    return da.sortby("lon").sortby("lat")


def load_climatology(path: Path, variable: str = "t_an", sd_variable: Optional[str] = None) -> Climatology:
    """Read a monthly climatology NetCDF into a [lon, lat, depth, month] Climatology."""
    with xr.open_dataset(path) as ds:
        dims = ("lon", "lat", "depth", "month")
        temp = _lon_lat_ascending(_standard_dims(ds[variable], dims)).transpose(*dims).load()
        sd = None
        if sd_variable:
            sd = _lon_lat_ascending(_standard_dims(ds[sd_variable], dims)).transpose(*dims).values
    if temp.sizes["month"] != 12:
        raise ValueError(f"{path}: expected 12 months, got {temp.sizes['month']}")
    logger.info(f"climatology {path}: {dict(temp.sizes)}")
    return Climatology(
        temp=temp.values,
        lon=temp["lon"].values,
        lat=temp["lat"].values,
        depth=temp["depth"].values,
        sd=sd,
    )


def load_snapshot(path: Path, day, variable: str = "water_temp") -> OceanSnapshot:
    """Read one day's ocean-model temperature file into an OceanSnapshot."""
    with xr.open_dataset(path) as ds:
        da = ds[variable]
        for extra in [d for d in da.dims if d in ("time", "MT")]:
            da = da.isel({extra: 0})
        dims = ("lon", "lat", "depth")
        da = _lon_lat_ascending(_standard_dims(da, dims)).transpose(*dims).load()
    return OceanSnapshot(
        day=to_day(day),
        temp=da.values,
        lon=da["lon"].values,
        lat=da["lat"].values,
        depth=da["depth"].values,
    )


class SnapshotDirectory:
    """Date-keyed snapshot files: <root>/<prefix><YYYY-MM-DD>.nc."""

    def __init__(self, root: Path, prefix: str = "Lyd_", variable: str = "water_temp") -> None:
        self.root = Path(root)
        self.prefix = prefix
        self.variable = variable

    def path_for(self, day) -> Path:
        return self.root / f"{self.prefix}{day_iso(day)}.nc"

    def __call__(self, day) -> Optional[OceanSnapshot]:
        p = self.path_for(day)
        if not p.exists():
            return None
        return load_snapshot(p, day, variable=self.variable)


def write_likelihood_netcdf(path: Path, stack: LikelihoodStack) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    da = stack.to_xarray()
    da.attrs["extent"] = np.asarray(da.attrs["extent"], dtype=np.float64)
    da.to_dataset(name=stack.name).to_netcdf(path)
    logger.info(f"wrote {stack.name} {stack.values.shape} -> {path}")
    return path


def read_likelihood_netcdf(path: Path, name: Optional[str] = None) -> LikelihoodStack:
    with xr.open_dataset(path) as ds:
        da = ds[name or list(ds.data_vars)[0]].load()
    return LikelihoodStack.from_xarray(da)
