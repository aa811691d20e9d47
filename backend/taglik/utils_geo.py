from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple
import numpy as np
from rasterio.transform import Affine, from_origin


def normalise_longitudes(lon, to: str = "-180-180", eps: float = 1e-12):
    """Wrap longitudes to [-180, 180) or [0, 360); NaNs pass through."""
    lon = np.asarray(lon, dtype=np.float64)
    wrapped = ((lon % 360.0) + 360.0) % 360.0
    if to == "0-360":
        return np.where(np.isclose(wrapped, 360.0, atol=eps), 0.0, wrapped)
    if to == "-180-180":
        lon_180 = ((wrapped + 180.0) % 360.0) - 180.0
        return np.where(np.isclose(lon_180, 180.0, atol=eps), -180.0, lon_180)
    raise ValueError("to must be '0-360' or '-180-180'")


def _spacing(v: np.ndarray, fallback: float) -> float:
    return float(v[1] - v[0]) if v.size > 1 else float(fallback)


@dataclass(frozen=True, eq=False)
class GridSpec:
    """Regular lon/lat analysis grid (cell centres, both axes ascending)."""

    lon: np.ndarray
    lat: np.ndarray
    crs: str = "EPSG:4326"

    def __post_init__(self) -> None:
        lon = np.asarray(self.lon, dtype=np.float64).ravel()
        lat = np.asarray(self.lat, dtype=np.float64).ravel()
        if lon.size == 0 or lat.size == 0:
            raise ValueError("grid needs at least one lon and one lat")
        if np.any(np.diff(lon) <= 0) or np.any(np.diff(lat) <= 0):
            raise ValueError("grid lon/lat must be strictly increasing")
        object.__setattr__(self, "lon", lon)
        object.__setattr__(self, "lat", lat)

    @classmethod
    def from_bbox(cls, bbox: Tuple[float, float, float, float], ddeg: float) -> "GridSpec":
        """bbox = (min_lon, min_lat, max_lon, max_lat), centres every `ddeg` degrees."""
        min_lon, min_lat, max_lon, max_lat = bbox
        nlon = int(round((max_lon - min_lon) / ddeg)) + 1
        nlat = int(round((max_lat - min_lat) / ddeg)) + 1
        return cls(lon=np.linspace(min_lon, max_lon, nlon), lat=np.linspace(min_lat, max_lat, nlat))

    @property
    def width(self) -> int:
        return int(self.lon.size)

    @property
    def height(self) -> int:
        return int(self.lat.size)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height, self.width

    @property
    def dx(self) -> float:
        return _spacing(self.lon, _spacing(self.lat, 1.0))

    @property
    def dy(self) -> float:
        return _spacing(self.lat, _spacing(self.lon, 1.0))

    @property
    def is_regular(self) -> bool:
        ok_lon = self.lon.size < 3 or np.allclose(np.diff(self.lon), self.dx, rtol=1e-6, atol=1e-9)
        ok_lat = self.lat.size < 3 or np.allclose(np.diff(self.lat), self.dy, rtol=1e-6, atol=1e-9)
        return bool(ok_lon and ok_lat)

    @property
    def extent(self) -> Tuple[float, float, float, float]:
        """(lon_min, lon_max, lat_min, lat_max) of the cell edges."""
        return (
            float(self.lon[0] - self.dx / 2.0),
            float(self.lon[-1] + self.dx / 2.0),
            float(self.lat[0] - self.dy / 2.0),
            float(self.lat[-1] + self.dy / 2.0),
        )

    @property
    def transform(self) -> Affine:
        # north-up: row 0 is the northernmost latitude
        west, _, _, north = self.extent
        return from_origin(west, north, self.dx, self.dy)

    def nearest_cell(self, lon: float, lat: float) -> Tuple[int, int]:
        """(row, col) of the cell centre closest to (lon, lat); ties -> first."""
        col = int(np.argmin((self.lon - float(lon)) ** 2))
        row = int(np.argmin((self.lat - float(lat)) ** 2))
        return row, col

    def contains(self, lon: float, lat: float) -> bool:
        lon_min, lon_max, lat_min, lat_max = self.extent
        return lon_min <= lon <= lon_max and lat_min <= lat <= lat_max

    def overlaps(self, other: "GridSpec") -> bool:
        a, b = self.extent, other.extent
        return a[0] < b[1] and b[0] < a[1] and a[2] < b[3] and b[2] < a[3]

    def same_as(self, other: "GridSpec") -> bool:
        return (
            self.crs == other.crs
            and np.array_equal(self.lon, other.lon)
            and np.array_equal(self.lat, other.lat)
        )

    def to_dict(self) -> dict:
        lon_min, lon_max, lat_min, lat_max = self.extent
        return {
            "crs": self.crs,
            "width": self.width,
            "height": self.height,
            "extent": [lon_min, lon_max, lat_min, lat_max],
        }
