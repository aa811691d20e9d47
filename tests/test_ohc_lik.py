import numpy as np
import pytest

from taglik.config import LikelihoodConfig
from taglik.errors import GridMismatchError, InsufficientDataError
from taglik.models.ohc_lik import (
    DailyMinimumIsotherm,
    FixedIsotherm,
    OceanSnapshot,
    OHCLikelihoodEngine,
    model_ohc,
    resolve_isotherm,
    tag_ohc,
)
from taglik.models.profile_fit import UncertaintyBand
from taglik.profiles import group_daily_profiles
from taglik.utils_geo import GridSpec

from conftest import SNAP_DEPTHS


def _band(low, high):
    low = np.asarray(low, dtype=float)
    return UncertaintyBand(level_index=np.arange(low.size), depth=np.arange(low.size) * 10.0,
                           low=low, high=np.asarray(high, dtype=float))


class TestIsotherm:

    def test_fixed(self):
        assert resolve_isotherm(FixedIsotherm(15.0), _band([18, 16], [20, 18])) == 15.0

    def test_daily_minimum(self):
        assert resolve_isotherm(DailyMinimumIsotherm(), _band([18, 16, 14.5], [20, 18, 16])) == 14.5

    def test_daily_minimum_needs_values(self):
        with pytest.raises(InsufficientDataError):
            resolve_isotherm(DailyMinimumIsotherm(), _band([np.nan], [np.nan]))


class TestHeatContent:

    def test_tag_ohc_counts_only_water_above_isotherm(self):
        band = _band([19.0, 16.0, 13.0], [21.0, 18.0, 15.0])
        lo, hi = tag_ohc(band, 14.0, 1.0)
        assert lo == pytest.approx(5.0 + 2.0)
        assert hi == pytest.approx(7.0 + 4.0 + 1.0)

    def test_model_ohc_zero_becomes_nan(self):
        temp = np.array([[[20.0, 18.0]], [[10.0, 9.0]]])  # (2 lon, 1 lat, 2 depth)
        ohc = model_ohc(temp, np.array([0, 1]), 15.0, 2.0)
        assert ohc[0, 0] == pytest.approx(2.0 * (5.0 + 3.0))
        assert np.isnan(ohc[1, 0])

    def test_factor_from_config(self):
        cfg = LikelihoodConfig()
        assert cfg.ohc_factor == pytest.approx(3.993 * 1025 / 10000)


class TestOceanSnapshot:

    def test_negative_depth_clamped(self, grid):
        snap = OceanSnapshot(day="2020-06-01", temp=np.zeros((grid.width, grid.height, 2)),
                             lon=grid.lon, lat=grid.lat, depth=[-0.5, 10.0])
        np.testing.assert_array_equal(snap.depth, [0.0, 10.0])
        assert snap.day == np.datetime64("2020-06-01")

    def test_shape_checked(self, grid):
        with pytest.raises(GridMismatchError):
            OceanSnapshot(day="2020-06-01", temp=np.zeros((grid.height, grid.width, 2)),
                          lon=grid.lon, lat=grid.lat, depth=[0.0, 10.0])


class TestOHCLikelihoodEngine:

    def test_surface_peaks_where_model_matches_tag(self, snapshot_factory, ohc_pdt, june_days, serial_config):
        snaps = {d: snapshot_factory(d) for d in june_days[:2]}
        stack = OHCLikelihoodEngine(snaps, DailyMinimumIsotherm(), serial_config).run(group_daily_profiles(ohc_pdt), june_days)
        assert stack.name == "ohc"
        day1 = stack.values[0]
        assert np.all(np.isfinite(day1))
        assert np.all((day1 >= 0) & (day1 <= 1))
        # south-west cell holds exactly the tag's mid OHC
        assert np.unravel_index(np.argmax(day1), day1.shape) == (0, 0)
        assert day1[0, 0] > day1[-1, -1]

    def test_missing_snapshot_leaves_day_undefined(self, snapshot_factory, ohc_pdt, june_days, serial_config):
        snaps = {"2020-06-01": snapshot_factory(june_days[0])}
        stack = OHCLikelihoodEngine(snaps, config=serial_config).run(group_daily_profiles(ohc_pdt), june_days)
        assert np.all(np.isfinite(stack.values[0]))
        assert np.all(np.isnan(stack.values[1]))
        assert np.all(np.isnan(stack.values[2]))

    def test_callable_source(self, snapshot_factory, ohc_pdt, june_days, serial_config):
        engine = OHCLikelihoodEngine(lambda day: snapshot_factory(day), config=serial_config)
        stack = engine.run(group_daily_profiles(ohc_pdt), june_days)
        np.testing.assert_allclose(stack.values[0], stack.values[1])

    def test_fixed_isotherm_changes_surface(self, snapshot_factory, ohc_pdt, june_days, serial_config):
        snaps = {d: snapshot_factory(d) for d in june_days[:2]}
        profiles = group_daily_profiles(ohc_pdt)
        daily = OHCLikelihoodEngine(snaps, DailyMinimumIsotherm(), serial_config).run(profiles, june_days)
        fixed = OHCLikelihoodEngine(snaps, FixedIsotherm(17.0), serial_config).run(profiles, june_days)
        assert not np.allclose(daily.values[0], fixed.values[0])

    def test_no_snapshots_at_all(self, ohc_pdt, june_days, serial_config):
        with pytest.raises(LookupError):
            OHCLikelihoodEngine({}, config=serial_config).run(group_daily_profiles(ohc_pdt), june_days)

    def test_snapshots_on_different_grids(self, snapshot_factory, ohc_pdt, june_days, serial_config):
        first = snapshot_factory(june_days[0])
        shifted = GridSpec(lon=first.lon + 0.5, lat=first.lat)
        other = OceanSnapshot(day=june_days[1], temp=first.temp, lon=shifted.lon, lat=shifted.lat, depth=SNAP_DEPTHS)
        with pytest.raises(GridMismatchError):
            OHCLikelihoodEngine({june_days[0]: first, june_days[1]: other}, config=serial_config).run(
                group_daily_profiles(ohc_pdt), june_days)
