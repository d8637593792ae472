"""
Unit Tests for fit_loglog

Covers:
- Exact recovery of power laws C·ε^α
- Logarithm base handling
- Fits through the origin
- Degenerate inputs
"""

import numpy as np
import pytest

from stochval.analysis import fit_loglog
from stochval.exceptions import RegressionDegeneracyError

EPS = np.array([0.5, 0.1, 0.05, 0.01, 0.005, 0.001])


class TestPowerLawRecovery:
    @pytest.mark.parametrize("alpha", [0.5, 1.0, 2.0, -1.0])
    def test_slope(self, alpha):
        fit = fit_loglog(EPS, 3.0 * EPS**alpha)
        assert fit["slope"] == pytest.approx(alpha, abs=1e-10)
        assert fit["intercept"] == pytest.approx(np.log(3.0), abs=1e-10)

    def test_base_ten(self):
        fit = fit_loglog(EPS, 2.0 * EPS**1.5, base=10)
        assert fit["slope"] == pytest.approx(1.5, abs=1e-10)
        assert fit["intercept"] == pytest.approx(np.log10(2.0), abs=1e-10)
        assert fit["base"] == 10.0
        np.testing.assert_allclose(fit["log_epsilons"], np.log10(EPS))

    def test_fitted_line_aligned_with_inputs(self):
        fit = fit_loglog(EPS, EPS**2)
        assert fit["fitted"].shape == EPS.shape
        np.testing.assert_allclose(fit["fitted"], fit["log_values"], atol=1e-10)

    def test_without_intercept(self):
        fit = fit_loglog(EPS, EPS**2, intercept=False)
        assert fit["slope"] == pytest.approx(2.0, abs=1e-10)
        assert fit["intercept"] == 0.0

    def test_noisy_data(self, rng):
        values = EPS**2 * np.exp(0.05 * rng.standard_normal(EPS.size))
        assert fit_loglog(EPS, values)["slope"] == pytest.approx(2.0, abs=0.1)

    def test_two_points(self):
        fit = fit_loglog([0.1, 0.01], [0.01, 0.0001])
        assert fit["slope"] == pytest.approx(2.0)


class TestDegenerateInputs:
    def test_single_point(self):
        with pytest.raises(RegressionDegeneracyError, match="At least 2"):
            fit_loglog([0.1], [0.2])

    def test_length_mismatch(self):
        with pytest.raises(RegressionDegeneracyError, match="differ in length"):
            fit_loglog([0.1, 0.01], [1.0])

    def test_zero_statistic(self):
        with pytest.raises(RegressionDegeneracyError, match="Non-finite"):
            fit_loglog([0.1, 0.01, 0.001], [1.0, 0.0, 1.0])

    def test_equal_epsilons(self):
        with pytest.raises(RegressionDegeneracyError, match="equal"):
            fit_loglog([0.1, 0.1], [1.0, 2.0])

    def test_nan_statistic(self):
        with pytest.raises(RegressionDegeneracyError):
            fit_loglog([0.1, 0.01], [np.nan, 1.0])

    @pytest.mark.parametrize("base", [1.0, 0.0, -2.0])
    def test_invalid_base(self, base):
        with pytest.raises(ValueError, match="base"):
            fit_loglog(EPS, EPS, base=base)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            fit_loglog([0.1], [0.2])
