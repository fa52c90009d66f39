"""
Tests for the illumination model and solar angles.

Covers:
- Exact incidence-angle formula
- Zero slope reduces to cos(zenith) regardless of aspect
- Sun-facing slopes reach cos(i) = 1
- Clamping helpers
- Solar angle units, validation and constructors
"""

import math

import numpy as np
import pytest

from topocorr.exceptions import InvalidGridError, InvalidSolarGeometryError
from topocorr.illumination import (
    clamp_illumination,
    compute_illumination,
    illumination_from_arrays,
    shadow_mask,
)
from topocorr.solar import SolarAngles
from topocorr.terrain import compute_slope_aspect


class TestIlluminationFormula:
    """cos(i) = cos(b)cos(sz) + sin(b)sin(sz)cos(az - aspect)."""

    def test_matches_formula(self):
        rng = np.random.RandomState(42)
        slope = rng.uniform(0, np.pi / 3, (20, 20))
        aspect = rng.uniform(0, 2 * np.pi, (20, 20))
        zenith, azimuth = math.radians(40.0), math.radians(135.0)

        cos_i = illumination_from_arrays(slope, aspect, zenith, azimuth)

        expected = (np.cos(slope) * np.cos(zenith)
                    + np.sin(slope) * np.sin(zenith) * np.cos(azimuth - aspect))
        np.testing.assert_allclose(cos_i, expected, rtol=0, atol=1e-15)

    def test_zero_slope_ignores_aspect(self):
        """At zero slope aspect has no effect; cos(i) equals cos(zenith)."""
        rng = np.random.RandomState(0)
        aspect = rng.uniform(0, 2 * np.pi, (15, 15))
        zenith = math.radians(33.0)

        cos_i = illumination_from_arrays(np.zeros((15, 15)), aspect, zenith, math.radians(200.0))

        np.testing.assert_allclose(cos_i, math.cos(zenith))

    def test_slope_facing_sun(self):
        """Slope equal to the zenith, facing the sun: incidence angle 0."""
        zenith, azimuth = math.radians(35.0), math.radians(160.0)
        cos_i = illumination_from_arrays(
            np.full((3, 3), zenith), np.full((3, 3), azimuth), zenith, azimuth
        )
        np.testing.assert_allclose(cos_i, 1.0)

    def test_slope_facing_away(self):
        """Facing away from the sun: cos(i) = cos(slope + zenith)."""
        zenith, azimuth = math.radians(30.0), math.radians(180.0)
        slope = math.radians(40.0)
        cos_i = illumination_from_arrays(np.full((2, 2), slope), np.zeros((2, 2)), zenith, azimuth)
        np.testing.assert_allclose(cos_i, math.cos(slope + zenith))

    def test_self_shadow_is_negative_and_unclamped(self):
        zenith = math.radians(70.0)
        cos_i = illumination_from_arrays(
            np.full((2, 2), math.radians(45.0)), np.zeros((2, 2)), zenith, math.pi
        )
        assert np.all(cos_i < 0)

    def test_shape_mismatch(self):
        with pytest.raises(InvalidGridError):
            illumination_from_arrays(np.zeros((3, 3)), np.zeros((3, 4)), 0.5, 0.5)


class TestComputeIllumination:
    """Illumination from terrain parameters and solar angles."""

    def test_sun_facing_plane_from_dem(self, synthetic):
        """A south-facing plane at the zenith angle is lit head-on by a southern sun."""
        solar = SolarAngles(elevation_deg=60.0, azimuth_deg=180.0)
        # Elevation drops southward at tan(30 deg) per metre
        drop = 25.0 * math.tan(math.radians(30.0))
        dem = synthetic.plane(6, 6, rise_per_row=-drop)

        terrain = compute_slope_aspect(dem, 25.0)
        cos_i = compute_illumination(terrain, solar)

        np.testing.assert_allclose(cos_i, 1.0, atol=1e-12)

    def test_flat_dem_equals_cos_zenith(self, flat_dem, solar):
        terrain = compute_slope_aspect(flat_dem, 30.0)
        cos_i = compute_illumination(terrain, solar)

        np.testing.assert_allclose(cos_i, solar.cos_zenith, rtol=1e-14)

    def test_read_only_and_bounded(self, hilly_dem, solar):
        cos_i = compute_illumination(compute_slope_aspect(hilly_dem, 30.0), solar)

        assert cos_i.shape == hilly_dem.shape
        assert np.all(np.abs(cos_i) <= 1.0)
        with pytest.raises(ValueError):
            cos_i[0, 0] = 0.0


class TestClamping:
    """Floors applied before division."""

    def test_clamp_counts_pixels_below_floor(self):
        cos_i = np.array([[-0.5, 0.0, 0.01], [0.05, 0.5, np.nan]])
        clamped, count = clamp_illumination(cos_i, 0.05)

        assert count == 3
        np.testing.assert_allclose(clamped[0], 0.05)
        assert clamped[1, 0] == 0.05
        assert clamped[1, 1] == 0.5
        assert np.isnan(clamped[1, 2])

    def test_clamp_does_not_modify_input(self):
        cos_i = np.array([0.0, 0.5])
        clamp_illumination(cos_i, 0.1)
        assert cos_i[0] == 0.0

    def test_shadow_mask(self):
        mask = shadow_mask(np.array([-0.1, 0.1, 0.5]), 0.1)
        np.testing.assert_array_equal(mask, [True, True, False])


class TestSolarAngles:
    """Solar angle units and validation."""

    def test_degrees(self):
        solar = SolarAngles.create(30.0, 120.0)
        assert solar.zenith == pytest.approx(math.radians(60.0))
        assert solar.azimuth == pytest.approx(math.radians(120.0))
        assert solar.cos_zenith == pytest.approx(0.5)

    def test_radians(self):
        solar = SolarAngles.create(math.pi / 6, math.pi, units="radians")
        assert solar.elevation_deg == pytest.approx(30.0)
        assert solar.azimuth_deg == pytest.approx(180.0)

    def test_from_zenith(self):
        solar = SolarAngles.from_zenith(25.0, 90.0)
        assert solar.elevation_deg == pytest.approx(65.0)
        assert solar.elevation == pytest.approx(math.radians(65.0))

    def test_azimuth_normalised(self):
        assert SolarAngles(45.0, 370.0).azimuth_deg == pytest.approx(10.0)
        assert SolarAngles(45.0, -90.0).azimuth_deg == pytest.approx(270.0)

    @pytest.mark.parametrize("elevation", [0.0, -10.0, 95.0, float("nan")])
    def test_invalid_elevation(self, elevation):
        with pytest.raises(InvalidSolarGeometryError):
            SolarAngles(elevation, 180.0)

    def test_unknown_units(self):
        with pytest.raises(ValueError):
            SolarAngles.create(30.0, 180.0, units="gradians")

    def test_from_dict(self):
        solar = SolarAngles.from_dict({"zenith": 0.5, "azimuth": 1.0, "units": "radians"})
        assert solar.zenith == pytest.approx(0.5)

        solar = SolarAngles.from_dict({"elevation": 40.0, "azimuth": 200.0})
        assert solar.elevation_deg == 40.0

        with pytest.raises(KeyError):
            SolarAngles.from_dict({"azimuth": 200.0})

    def test_to_dict(self):
        data = SolarAngles(50.0, 100.0).to_dict()
        assert data == {"elevation_deg": 50.0, "zenith_deg": 40.0, "azimuth_deg": 100.0}
