from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import numpy as np
import xarray as xr

from ..errors import GridMismatchError
from ..utils_geo import GridSpec
from ..utils_time import to_day, to_days


@dataclass
class LikelihoodStack:
    """Daily likelihood surfaces on one grid.

    values: float array (time, lat, lon), latitude ascending. A missing day
    is an all-NaN layer.
    """

    values: np.ndarray
    dates: np.ndarray
    grid: GridSpec
    name: str = "likelihood"

    def __post_init__(self) -> None:
        self.values = np.asarray(self.values, dtype=np.float64)
        self.dates = to_days(self.dates)
        if self.values.ndim != 3:
            raise GridMismatchError(f"{self.name}: expected (time, lat, lon), got {self.values.shape}")
        if self.values.shape[1:] != self.grid.shape:
            raise GridMismatchError(
                f"{self.name}: layer shape {self.values.shape[1:]} does not match grid {self.grid.shape}"
            )
        if self.values.shape[0] != self.dates.size:
            raise ValueError(f"{self.name}: {self.values.shape[0]} layers but {self.dates.size} dates")

    @classmethod
    def empty(cls, dates: Any, grid: GridSpec, name: str = "likelihood", fill: float = np.nan) -> "LikelihoodStack":
        days = to_days(dates)
        return cls(values=np.full((days.size,) + grid.shape, fill), dates=days, grid=grid, name=name)

    def __len__(self) -> int:
        return int(self.dates.size)

    def index_of(self, day: Any) -> Optional[int]:
        hit = np.flatnonzero(self.dates == to_day(day))
        return int(hit[0]) if hit.size else None

    def layer(self, day: Any) -> Optional[np.ndarray]:
        i = self.index_of(day)
        return None if i is None else self.values[i]

    def put_surface(self, i: int, surface_lonlat: np.ndarray) -> None:
        """Store a [lon, lat] engine surface as layer i."""
        s = np.asarray(surface_lonlat, dtype=np.float64)
        if s.shape != (self.grid.width, self.grid.height):
            raise GridMismatchError(f"{self.name}: surface {s.shape} vs grid (lon, lat) {(self.grid.width, self.grid.height)}")
        self.values[i] = s.T

    def copy(self) -> "LikelihoodStack":
        return LikelihoodStack(values=self.values.copy(), dates=self.dates.copy(), grid=self.grid, name=self.name)

    def to_xarray(self) -> xr.DataArray:
        lon_min, lon_max, lat_min, lat_max = self.grid.extent
        return xr.DataArray(
            self.values,
            dims=("time", "lat", "lon"),
            coords={"time": self.dates.astype("datetime64[ns]"), "lat": self.grid.lat, "lon": self.grid.lon},
            name=self.name,
            attrs={"crs": self.grid.crs, "extent": [lon_min, lon_max, lat_min, lat_max]},
        )

    @classmethod
    def from_xarray(cls, da: xr.DataArray) -> "LikelihoodStack":
        da = da.transpose("time", "lat", "lon").sortby("lat").sortby("lon")
        grid = GridSpec(lon=da["lon"].values, lat=da["lat"].values, crs=str(da.attrs.get("crs", "EPSG:4326")))
        return cls(values=da.values, dates=da["time"].values, grid=grid, name=str(da.name or "likelihood"))
