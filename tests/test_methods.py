"""
Tests for correction formulas and the method registry.
"""

import math

import numpy as np
import pytest

from topocorr.methods import (
    CORRECTION_METHODS,
    CorrectionMethod,
    apply_avgcosine_correction,
    apply_c_correction,
    apply_cosine_correction,
    apply_minnaert_correction,
    apply_statistical_correction,
    get_method,
    list_methods,
    normalize_method_name,
)

COS_ZENITH = math.cos(math.radians(40.0))
FLOOR = 0.05


@pytest.fixture
def band():
    rng = np.random.RandomState(21)
    cos_i = rng.uniform(0.2, 1.0, (25, 25))
    radiance = rng.uniform(20.0, 200.0, (25, 25))
    return radiance, cos_i


class TestCCorrection:
    """L * (cos(sz) + C) / (cos(i) + C)."""

    def test_removes_linear_illumination_dependence(self, band):
        _, cos_i = band
        radiance = 80.0 * cos_i + 20.0

        corrected, clamped = apply_c_correction(radiance, cos_i, COS_ZENITH, 0.25, FLOOR)

        np.testing.assert_allclose(corrected, 80.0 * (COS_ZENITH + 0.25))
        assert clamped == 0

    def test_infinite_c_is_identity(self, band):
        radiance, cos_i = band
        corrected, clamped = apply_c_correction(radiance, cos_i, COS_ZENITH, math.inf, FLOOR)

        np.testing.assert_array_equal(corrected, radiance)
        assert corrected is not radiance
        assert clamped == 0

    def test_huge_c_approaches_identity(self, band):
        radiance, cos_i = band
        corrected, _ = apply_c_correction(radiance, cos_i, COS_ZENITH, 1e9, FLOOR)

        np.testing.assert_allclose(corrected, radiance, rtol=1e-8)

    def test_singular_denominator_floored(self):
        radiance = np.array([100.0, 100.0])
        cos_i = np.array([0.5, 0.9])

        corrected, clamped = apply_c_correction(radiance, cos_i, COS_ZENITH, -0.5, FLOOR)

        assert clamped == 1
        assert np.all(np.isfinite(corrected))
        assert corrected[0] == pytest.approx(100.0 * (COS_ZENITH - 0.5) / FLOOR)
        assert corrected[1] == pytest.approx(100.0 * (COS_ZENITH - 0.5) / 0.4)

    def test_output_is_new_array(self, band):
        radiance, cos_i = band
        original = radiance.copy()
        apply_c_correction(radiance, cos_i, COS_ZENITH, 0.3, FLOOR)
        np.testing.assert_array_equal(radiance, original)


class TestMinnaertCorrection:
    """L * (cos(sz) / cos(i)) ** k."""

    def test_removes_power_law_dependence(self, band):
        _, cos_i = band
        radiance = 150.0 * cos_i ** 0.6

        corrected, clamped = apply_minnaert_correction(radiance, cos_i, COS_ZENITH, 0.6, FLOOR)

        np.testing.assert_allclose(corrected, 150.0 * COS_ZENITH ** 0.6)
        assert clamped == 0

    def test_k_one_matches_cosine(self, band):
        radiance, cos_i = band
        minnaert, _ = apply_minnaert_correction(radiance, cos_i, COS_ZENITH, 1.0, FLOOR)
        cosine, _ = apply_cosine_correction(radiance, cos_i, COS_ZENITH, FLOOR)

        np.testing.assert_allclose(minnaert, cosine, rtol=1e-12)

    def test_k_zero_is_identity(self, band):
        radiance, cos_i = band
        corrected, _ = apply_minnaert_correction(radiance, cos_i, COS_ZENITH, 0.0, FLOOR)
        np.testing.assert_array_equal(corrected, radiance)

    def test_shadowed_pixels_clamped(self):
        radiance = np.array([10.0, 10.0, 10.0])
        cos_i = np.array([-0.3, 0.0, 0.5])

        corrected, clamped = apply_minnaert_correction(radiance, cos_i, COS_ZENITH, 0.5, FLOOR)

        assert clamped == 2
        assert np.all(np.isfinite(corrected))
        assert corrected[0] == pytest.approx(10.0 * (COS_ZENITH / FLOOR) ** 0.5)


class TestStatisticalCorrection:
    """L - (A * cos(i) + B) + mean(L)."""

    def test_linear_data_maps_to_mean(self, band):
        _, cos_i = band
        radiance = 50.0 * cos_i + 10.0
        mean = float(np.mean(radiance))

        corrected, clamped = apply_statistical_correction(radiance, cos_i, 50.0, 10.0, mean)

        np.testing.assert_allclose(corrected, mean)
        assert clamped == 0

    def test_residuals_preserved(self, band):
        radiance, cos_i = band
        corrected, _ = apply_statistical_correction(radiance, cos_i, 30.0, 5.0, 70.0)
        np.testing.assert_allclose(corrected, radiance - 30.0 * cos_i - 5.0 + 70.0)


class TestCosineCorrections:
    """Fit-free corrections."""

    def test_cosine_at_zenith_illumination_is_identity(self):
        radiance = np.array([12.0, 34.0])
        corrected, _ = apply_cosine_correction(radiance, np.full(2, COS_ZENITH), COS_ZENITH, FLOOR)
        np.testing.assert_allclose(corrected, radiance)

    def test_cosine_clamps_self_shadow(self):
        corrected, clamped = apply_cosine_correction(
            np.array([10.0, 10.0]), np.array([-0.2, 0.8]), COS_ZENITH, FLOOR
        )
        assert clamped == 1
        assert corrected[0] == pytest.approx(10.0 * COS_ZENITH / FLOOR)

    def test_avgcosine(self, band):
        radiance, cos_i = band
        mean_cos_i = float(np.mean(cos_i))

        corrected, clamped = apply_avgcosine_correction(radiance, cos_i, mean_cos_i)

        expected = radiance + radiance * (mean_cos_i - cos_i) / mean_cos_i
        np.testing.assert_allclose(corrected, expected)
        assert clamped == 0

    def test_avgcosine_at_mean_is_identity(self):
        radiance = np.array([5.0, 6.0])
        corrected, _ = apply_avgcosine_correction(radiance, np.full(2, 0.7), 0.7)
        np.testing.assert_array_equal(corrected, radiance)


class TestMethodRegistry:
    """Method lookup by name, alias and enum."""

    def test_all_methods_registered(self):
        names = [name for name, _ in list_methods()]
        assert names == ["c", "minnaert", "stat", "cosine", "avgcosine", "illu"]
        assert set(names) == {m.value for m in CorrectionMethod}

    @pytest.mark.parametrize("name,expected", [
        ("c", "c"),
        ("C", "c"),
        (" Minnaert ", "minnaert"),
        ("statistical", "stat"),
        ("avg_cosine", "avgcosine"),
        ("illumination", "illu"),
        (CorrectionMethod.STAT, "stat"),
    ])
    def test_normalize(self, name, expected):
        assert normalize_method_name(name) == expected

    def test_unknown_method_lists_available(self):
        with pytest.raises(KeyError) as exc_info:
            get_method("scs")
        assert "minnaert" in str(exc_info.value)

    def test_fit_requirements(self):
        assert get_method("c").requires_fit
        assert get_method("minnaert").requires_fit
        assert get_method("minnaert").uses_n_strat
        assert get_method("stat").requires_fit
        assert not get_method("cosine").requires_fit
        assert not get_method("illu").requires_fit

    def test_registry_entries_carry_their_enum(self):
        for name, info in CORRECTION_METHODS.items():
            assert info.method.value == name
