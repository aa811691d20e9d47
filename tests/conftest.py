"""Synthetic reference fields and tag records shared by the test modules."""

import numpy as np
import pandas as pd
import pytest

from taglik.config import LikelihoodConfig
from taglik.models.ohc_lik import OceanSnapshot
from taglik.models.profile_lik import Climatology
from taglik.profiles import STANDARD_DEPTHS
from taglik.utils_geo import GridSpec

SNAP_DEPTHS = np.array([0.0, 10.0, 20.0, 50.0, 100.0])


def pdt_rows(day, depths, tmin, tmax):
    """PDT rows for one day; scalars broadcast over depths."""
    depths = np.asarray(depths, dtype=float)
    return pd.DataFrame({
        "Date": pd.Timestamp(day),
        "Depth": depths,
        "MinTemp": np.broadcast_to(tmin, depths.shape).astype(float),
        "MaxTemp": np.broadcast_to(tmax, depths.shape).astype(float),
    })


@pytest.fixture
def grid():
    # 5 lon x 4 lat, 1 degree
    return GridSpec(lon=np.arange(-70.0, -65.0), lat=np.arange(30.0, 34.0))


@pytest.fixture
def serial_config():
    return LikelihoodConfig(workers=1)


@pytest.fixture
def flat_climatology(grid):
    """10 degC everywhere with a supplied SD of 1."""
    shape = (grid.width, grid.height, STANDARD_DEPTHS.size, 12)
    return Climatology(
        temp=np.full(shape, 10.0),
        lon=grid.lon,
        lat=grid.lat,
        sd=np.ones(shape),
    )


@pytest.fixture
def sloped_climatology(grid):
    """Warmer to the east and north, cooling with depth; SD left to the neighbourhood estimate."""
    i = np.arange(grid.width)[:, None, None, None]
    j = np.arange(grid.height)[None, :, None, None]
    d = STANDARD_DEPTHS[None, None, :, None]
    m = np.arange(12)[None, None, None, :]
    temp = 8.0 + 0.8 * i + 0.5 * j - 0.01 * d + 0.1 * m
    return Climatology(temp=temp, lon=grid.lon, lat=grid.lat)


@pytest.fixture
def flat_pdt():
    """Two days, samples at 0/0.5 m and 52/53 m, band 9..11 degC."""
    depths = [0.0, 0.5, 52.0, 53.0]
    return pd.concat([
        pdt_rows("2020-06-01", depths, 9.0, 11.0),
        pdt_rows("2020-06-02", depths, 9.0, 11.0),
    ], ignore_index=True)


@pytest.fixture
def june_days():
    return np.arange(np.datetime64("2020-06-01"), np.datetime64("2020-06-04"))


@pytest.fixture
def snapshot_factory(grid):
    """OceanSnapshot for a day; temp rises 0.5/lon cell and 0.3/lat cell, falls 0.05/m."""

    def make(day):
        i = np.arange(grid.width)[:, None, None]
        j = np.arange(grid.height)[None, :, None]
        d = SNAP_DEPTHS[None, None, :]
        temp = 20.0 + 0.5 * i + 0.3 * j - 0.05 * d
        return OceanSnapshot(day=day, temp=temp, lon=grid.lon, lat=grid.lat, depth=SNAP_DEPTHS)

    return make


@pytest.fixture
def ohc_pdt():
    """Linear profiles matching the snapshot depths, band 19..21 degC at the surface."""
    frames = [
        pdt_rows(day, SNAP_DEPTHS, 19.0 - 0.05 * SNAP_DEPTHS, 21.0 - 0.05 * SNAP_DEPTHS)
        for day in ("2020-06-01", "2020-06-02")
    ]
    return pd.concat(frames, ignore_index=True)
