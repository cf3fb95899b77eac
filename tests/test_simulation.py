# tests/test_simulation.py
"""
Tests for ARIMA simulation.
"""

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from arimalab.core.config import SimulationConfig
from arimalab.core.exceptions import InvalidSpecError, ModelWarning
from arimalab.models.time_series import ModelSpec, ObservationSeries, simulate


class TestSimulate:
    """Tests for simulate."""

    def test_same_seed_same_series(self, ar2_spec):
        first = simulate(ar2_spec, 300, random_state=11)
        second = simulate(ar2_spec, 300, random_state=11)
        assert_array_equal(first.values, second.values)

    def test_different_seeds_differ(self, ar2_spec):
        first = simulate(ar2_spec, 300, random_state=1)
        second = simulate(ar2_spec, 300, random_state=2)
        assert not np.allclose(first.values, second.values)

    def test_accepts_generator(self, ar2_spec, rng):
        series = simulate(ar2_spec, 50, random_state=rng)
        assert isinstance(series, ObservationSeries)
        assert len(series) == 50

    def test_requires_coefficients(self):
        with pytest.raises(InvalidSpecError):
            simulate(ModelSpec.orders(1, 0, 1), 100)

    def test_white_noise_needs_no_coefficients(self):
        series = simulate(ModelSpec.orders(0, 0, 0), 100, random_state=0)
        assert len(series) == 100

    @pytest.mark.parametrize("n", [0, -5, 2.5])
    def test_rejects_invalid_length(self, ar2_spec, n):
        with pytest.raises(InvalidSpecError):
            simulate(ar2_spec, n)

    def test_rejects_non_positive_variance(self, ar2_spec):
        with pytest.raises(InvalidSpecError):
            simulate(ar2_spec, 100, noise_variance=0.0)

    def test_strict_rejects_non_stationary(self):
        spec = ModelSpec(1, 0, 0, ar_coeffs=[1.1])
        with pytest.raises(InvalidSpecError):
            simulate(spec, 100, strict=True)

    def test_strict_rejects_non_invertible(self):
        spec = ModelSpec(0, 0, 1, ma_coeffs=[1.5])
        with pytest.raises(InvalidSpecError):
            simulate(spec, 100, strict=True)

    def test_non_stationary_warns(self):
        spec = ModelSpec(1, 0, 0, ar_coeffs=[1.02])
        with pytest.warns(ModelWarning):
            series = simulate(spec, 50, random_state=0)
        assert len(series) == 50

    def test_stationary_variance(self):
        spec = ModelSpec(1, 0, 0, ar_coeffs=[0.5])
        series = simulate(spec, 5000, noise_variance=2.0, random_state=3)
        # gamma_0 = sigma2 / (1 - phi^2)
        assert abs(series.values.var() - 2.0 / 0.75) < 0.25

    def test_mean_shift(self, ar2_spec):
        base = simulate(ar2_spec, 200, random_state=5)
        shifted = simulate(ar2_spec, 200, random_state=5, mean=10.0)
        assert_allclose(shifted.values - base.values, 10.0)

    def test_integration(self):
        stationary = simulate(ModelSpec(1, 0, 0, ar_coeffs=[0.5]), 200, random_state=9)
        integrated = simulate(ModelSpec(1, 1, 0, ar_coeffs=[0.5]), 200, random_state=9)
        assert_allclose(np.diff(integrated.values), stationary.values[1:], atol=1e-10)

    def test_burn_in_from_config(self, ar2_spec):
        # Without burn-in the first value is the first innovation
        config = SimulationConfig(burn_in_multiplier=0, burn_in_offset=0)
        series = simulate(ar2_spec, 10, random_state=4, config=config)
        first_draw = np.random.default_rng(4).normal(0.0, 1.0, size=10)[0]
        assert series.values[0] == pytest.approx(first_draw)

    def test_index_and_name(self, ar2_spec):
        index = pd.date_range("2022-01-03", periods=30, freq="B")
        series = simulate(ar2_spec, 30, random_state=0, index=index, name="sim")
        assert series.name == "sim"
        assert series.index.equals(index)
