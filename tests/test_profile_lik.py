import numpy as np
import pandas as pd
import pytest

from taglik.config import LikelihoodConfig
from taglik.models.profile_lik import Climatology, ProfileLikelihoodEngine
from taglik.profiles import STANDARD_DEPTHS, group_daily_profiles

from conftest import pdt_rows


class TestClimatology:

    def test_shape_checked(self, grid):
        with pytest.raises(ValueError):
            Climatology(temp=np.zeros((grid.width, grid.height, STANDARD_DEPTHS.size, 11)), lon=grid.lon, lat=grid.lat)

    def test_sd_shape_checked(self, grid):
        shape = (grid.width, grid.height, STANDARD_DEPTHS.size, 12)
        with pytest.raises(ValueError):
            Climatology(temp=np.zeros(shape), lon=grid.lon, lat=grid.lat, sd=np.ones(shape[:-1]))

    def test_default_depths_are_standard_levels(self, flat_climatology, sloped_climatology):
        np.testing.assert_array_equal(flat_climatology.depth, STANDARD_DEPTHS)
        assert flat_climatology.depth is not sloped_climatology.depth
        assert flat_climatology.depth is not STANDARD_DEPTHS

    def test_month_slice(self, sloped_climatology):
        june = sloped_climatology.month_slice(6)
        np.testing.assert_array_equal(june, sloped_climatology.temp[..., 5])


class TestProfileLikelihoodEngine:

    def test_flat_climatology_is_uniform(self, flat_climatology, flat_pdt, june_days, serial_config):
        engine = ProfileLikelihoodEngine(flat_climatology, serial_config)
        stack = engine.run(group_daily_profiles(flat_pdt), june_days)
        assert stack.name == "profile"
        np.testing.assert_allclose(stack.values[0], 0.8)
        np.testing.assert_allclose(stack.values[1], 0.8)

    def test_three_day_flat_scenario(self, flat_climatology, june_days, serial_config):
        depths = [0.0, 0.5, 52.0, 53.0]
        pdt = pd.concat([pdt_rows(d, depths, 9.0, 11.0) for d in june_days], ignore_index=True)
        profiles = group_daily_profiles(pdt)
        assert len(profiles) == 3
        stack = ProfileLikelihoodEngine(flat_climatology, serial_config).run(profiles, june_days)
        np.testing.assert_allclose(stack.values, 0.8)

    def test_evenly_spaced_bins(self, sloped_climatology, june_days, serial_config):
        pdt = pdt_rows("2020-06-01", [0.0, 50.0, 100.0], [10.0, 9.5, 9.0], [11.0, 10.5, 10.0])
        stack = ProfileLikelihoodEngine(sloped_climatology, serial_config).run(group_daily_profiles(pdt), june_days)
        assert np.nanmax(stack.values[0]) == pytest.approx(0.8)

    def test_failed_day_does_not_stop_pooled_siblings(self, flat_climatology, june_days):
        depths = [0.0, 0.5, 52.0, 53.0]
        pdt = pd.concat([
            pdt_rows("2020-06-01", depths, 9.0, 11.0),
            pdt_rows("2020-06-02", [25.0, 25.0], [9.0, 9.5], [11.0, 11.5]),
            pdt_rows("2020-06-03", depths, 9.0, 11.0),
        ], ignore_index=True)
        engine = ProfileLikelihoodEngine(flat_climatology, LikelihoodConfig(workers=3))
        stack = engine.run(group_daily_profiles(pdt), june_days)
        np.testing.assert_allclose(stack.values[0], 0.8)
        assert np.all(np.isnan(stack.values[1]))
        np.testing.assert_allclose(stack.values[2], 0.8)

    def test_day_without_profile_is_undefined(self, flat_climatology, flat_pdt, june_days, serial_config):
        stack = ProfileLikelihoodEngine(flat_climatology, serial_config).run(group_daily_profiles(flat_pdt), june_days)
        assert np.all(np.isnan(stack.values[2]))

    def test_maximum_is_one_minus_offset(self, sloped_climatology, flat_pdt, june_days, serial_config):
        stack = ProfileLikelihoodEngine(sloped_climatology, serial_config).run(group_daily_profiles(flat_pdt), june_days)
        for t in (0, 1):
            assert np.nanmax(stack.values[t]) == pytest.approx(0.8)
            assert np.nanmin(stack.values[t]) >= -0.2

    def test_custom_offset(self, flat_climatology, flat_pdt, june_days):
        cfg = LikelihoodConfig(profile_offset=0.0, workers=1)
        stack = ProfileLikelihoodEngine(flat_climatology, cfg).run(group_daily_profiles(flat_pdt), june_days)
        np.testing.assert_allclose(stack.values[0], 1.0)

    def test_failed_interpolation_leaves_day_undefined(self, flat_climatology, flat_pdt, june_days, serial_config):
        bad = pdt_rows("2020-06-03", [25.0, 25.0], [9.0, 9.5], [11.0, 11.5])
        profiles = group_daily_profiles(pd.concat([flat_pdt, bad], ignore_index=True))
        stack = ProfileLikelihoodEngine(flat_climatology, serial_config).run(profiles, june_days)
        assert np.all(np.isnan(stack.values[2]))
        np.testing.assert_allclose(stack.values[0], 0.8)

    def test_days_outside_date_vec_skipped(self, flat_climatology, flat_pdt, serial_config):
        days = np.array(["2020-06-02"], dtype="datetime64[D]")
        stack = ProfileLikelihoodEngine(flat_climatology, serial_config).run(group_daily_profiles(flat_pdt), days)
        assert len(stack) == 1
        np.testing.assert_allclose(stack.values[0], 0.8)

    def test_sd_computed_once_per_month(self, sloped_climatology, serial_config):
        depths = [0.0, 20.0, 60.0, 150.0]
        pdt = pd.concat([
            pdt_rows("2020-06-29", depths, 9.0, 11.0),
            pdt_rows("2020-06-30", depths, 9.0, 11.0),
            pdt_rows("2020-07-01", depths, 9.0, 11.0),
        ], ignore_index=True)
        days = np.arange(np.datetime64("2020-06-29"), np.datetime64("2020-07-02"))
        engine = ProfileLikelihoodEngine(sloped_climatology, serial_config)
        engine.run(group_daily_profiles(pdt), days)
        assert engine.sd_cache.computed == 2
        assert 6 in engine.sd_cache and 7 in engine.sd_cache

    def test_pool_keeps_day_order(self, sloped_climatology):
        days = np.arange(np.datetime64("2020-06-01"), np.datetime64("2020-06-09"))
        pdt = pd.concat([
            pdt_rows(d, [0.0, 30.0, 80.0, 200.0], 8.0 + 0.3 * k, 10.0 + 0.3 * k)
            for k, d in enumerate(days)
        ], ignore_index=True)
        profiles = group_daily_profiles(pdt)
        serial = ProfileLikelihoodEngine(sloped_climatology, LikelihoodConfig(workers=1)).run(profiles, days)
        pooled = ProfileLikelihoodEngine(sloped_climatology, LikelihoodConfig(workers=4)).run(profiles, days)
        np.testing.assert_array_equal(pooled.values, serial.values)
        assert not np.array_equal(serial.values[0], serial.values[-1], equal_nan=True)
