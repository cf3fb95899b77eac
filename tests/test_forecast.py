# tests/test_forecast.py
"""
Tests for point forecasts and prediction intervals.
"""

import dataclasses
import gc

import numpy as np
import pandas as pd
import pytest
from hypothesis import given, settings, strategies as st
from numpy.testing import assert_allclose

from arimalab.core.config import ForecastConfig, set_config
from arimalab.core.exceptions import ForecastError, ModelNotStationaryError
from arimalab.models.time_series import Forecast, ModelSpec, fit, forecast, simulate
from arimalab.models.time_series.utils import constrain_stationary, forecast_error_variance


class TestPointForecasts:
    """Forecasts should follow the fitted recurrence."""

    def test_ar1_decays_to_mean(self, dated_series):
        model = fit(dated_series, ModelSpec.orders(1, 0, 0))
        fc = forecast(model, 24)
        phi = model.params["ar1"]
        mu = model.intercept
        expected = mu + phi ** np.arange(1, 25) * (dated_series.iloc[-1] - mu)
        assert_allclose(fc.point_forecast, expected, rtol=1e-10)

        expected_se = np.sqrt(model.sigma2 * (1 - phi ** (2 * np.arange(1, 25))) / (1 - phi ** 2))
        assert_allclose(fc.std_errors, expected_se, rtol=1e-10)

    def test_ma1_reverts_after_one_step(self):
        y = simulate(ModelSpec(0, 0, 1, ma_coeffs=[0.6]), 400, random_state=17, mean=1.0)
        model = fit(y, ModelSpec.orders(0, 0, 1))
        fc = forecast(model, 4)
        expected_first = model.intercept + model.params["ma1"] * model.residuals.values[-1]
        assert fc.point_forecast[0] == pytest.approx(expected_first)
        assert_allclose(fc.point_forecast[1:], model.intercept)

    def test_random_walk_is_flat(self):
        y = simulate(ModelSpec(0, 1, 0), 300, random_state=23)
        model = fit(y, ModelSpec.orders(0, 1, 0))
        fc = forecast(model, 10)
        assert_allclose(fc.point_forecast, y.values[-1])
        assert_allclose(fc.std_errors, np.sqrt(model.sigma2 * np.arange(1, 11)))

    def test_integrated_ar1(self):
        y = simulate(ModelSpec(1, 1, 0, ar_coeffs=[0.5]), 400, random_state=31)
        model = fit(y, ModelSpec.orders(1, 1, 0))
        fc = forecast(model, 2)
        phi = model.params["ar1"]
        last_step = y.values[-1] - y.values[-2]
        assert fc.point_forecast[0] == pytest.approx(y.values[-1] + phi * last_step)
        assert fc.point_forecast[1] == pytest.approx(
            y.values[-1] + phi * last_step + phi ** 2 * last_step)
        assert fc.std_errors[1] == pytest.approx(np.sqrt(model.sigma2 * (1 + (1 + phi) ** 2)))

    def test_covariate_effect(self, rng):
        x = rng.standard_normal(300)
        noise = simulate(ModelSpec(1, 0, 0, ar_coeffs=[0.4]), 300, random_state=rng)
        model = fit(1.5 * x + noise.values, ModelSpec.orders(1, 0, 0), covariates={"x": x})
        high = forecast(model, 5, future_covariates={"x": np.ones(5)})
        low = forecast(model, 5, future_covariates={"x": np.zeros(5)})
        assert_allclose(high.point_forecast - low.point_forecast, model.params["x"])
        assert_allclose(high.std_errors, low.std_errors)


class TestIntervals:
    """Tests for prediction intervals."""

    def test_widths_never_shrink(self, arma11_series):
        model = fit(arma11_series, ModelSpec.orders(1, 0, 1))
        fc = forecast(model, 30)
        widths = fc.upper_bound - fc.lower_bound
        assert np.all(np.diff(widths) >= 0)
        assert np.all(fc.lower_bound < fc.point_forecast)
        assert np.all(fc.point_forecast < fc.upper_bound)

    @given(partials=st.lists(st.floats(min_value=-2.0, max_value=2.0), min_size=0, max_size=3),
           ma=st.lists(st.floats(min_value=-3.0, max_value=3.0), min_size=0, max_size=3),
           d=st.integers(min_value=0, max_value=2),
           steps=st.integers(min_value=1, max_value=40))
    @settings(max_examples=100, deadline=None)
    def test_error_variance_is_non_decreasing(self, partials, ma, d, steps):
        ar = constrain_stationary(np.array(partials))
        variance = forecast_error_variance(ar, np.array(ma), 1.3, steps, d)
        assert variance[0] == pytest.approx(1.3)
        assert np.all(np.diff(variance) >= 0)

    def test_confidence_level(self, ar2_series):
        model = fit(ar2_series, ModelSpec.orders(2, 0, 0))
        wide = forecast(model, 5, confidence_level=0.99)
        narrow = forecast(model, 5, confidence_level=0.8)
        assert np.all(narrow.upper_bound - narrow.lower_bound < wide.upper_bound - wide.lower_bound)
        assert narrow.confidence_level == 0.8

    def test_configured_confidence_level(self, ar2_series):
        model = fit(ar2_series, ModelSpec.orders(2, 0, 0))
        set_config("forecast", "confidence_level", 0.9)
        assert forecast(model, 3).confidence_level == 0.9
        assert forecast(model, 3, config=ForecastConfig()).confidence_level == 0.95

    @pytest.mark.slow
    def test_one_step_coverage(self):
        rng = np.random.default_rng(77)
        spec = ModelSpec(1, 0, 0, ar_coeffs=[0.6])
        covered = 0
        trials = 60
        for _ in range(trials):
            y = simulate(spec, 201, random_state=rng).values
            fc = forecast(fit(y[:-1], ModelSpec.orders(1, 0, 0)), 1)
            covered += fc.lower_bound[0] <= y[-1] <= fc.upper_bound[0]
        assert covered / trials >= 0.85


class TestForecastObject:
    """Tests for the Forecast container."""

    def test_index_continues_dates(self, dated_series):
        fc = forecast(fit(dated_series, ModelSpec.orders(1, 0, 0)), 3)
        assert list(fc.index) == list(pd.date_range("2020-01-01", periods=3, freq="MS"))
        frame = fc.to_dataframe()
        assert list(frame.columns) == ["forecast", "lower", "upper", "std_error"]
        assert frame.index.equals(fc.index)

    def test_sequence_interface(self, ar2_series):
        fc = fit(ar2_series, ModelSpec.orders(2, 0, 0)).forecast(4)
        assert isinstance(fc, Forecast)
        assert len(fc) == fc.horizon == 4
        rows = list(fc)
        assert len(rows) == 4
        assert rows[0] == (fc.point_forecast[0], fc.lower_bound[0], fc.upper_bound[0])
        assert fc.to_dict()["model"] == "ARIMA(2,0,0)"

    def test_arrays_are_read_only(self, ar2_series):
        fc = forecast(fit(ar2_series, ModelSpec.orders(2, 0, 0)), 3)
        with pytest.raises(ValueError):
            fc.point_forecast[0] = 0.0

    def test_weak_model_reference(self, ar2_series):
        model = fit(ar2_series, ModelSpec.orders(2, 0, 0))
        fc = forecast(model, 3)
        assert fc.model is model
        del model
        gc.collect()
        assert fc.model is None
        assert len(fc.point_forecast) == 3


class TestForecastErrors:
    """Tests for invalid forecast requests."""

    @pytest.fixture
    def model(self, ar2_series):
        return fit(ar2_series, ModelSpec.orders(2, 0, 0))

    @pytest.mark.parametrize("h", [0, -3, 2.5, True])
    def test_invalid_horizon(self, model, h):
        with pytest.raises(ForecastError):
            forecast(model, h)

    @pytest.mark.parametrize("level", [0.0, 1.0, 1.5])
    def test_invalid_confidence_level(self, model, level):
        with pytest.raises(ForecastError):
            forecast(model, 3, confidence_level=level)

    def test_unexpected_covariates(self, model):
        with pytest.raises(ForecastError):
            forecast(model, 3, future_covariates={"x": np.ones(3)})

    def test_covariate_requirements(self, rng):
        x = rng.standard_normal(200)
        y = simulate(ModelSpec(1, 0, 0, ar_coeffs=[0.5]), 200, random_state=rng).values + x
        model = fit(y, ModelSpec.orders(1, 0, 0), covariates={"x": x})

        with pytest.raises(ForecastError):
            forecast(model, 3)
        with pytest.raises(ForecastError):
            forecast(model, 3, future_covariates={"x": np.ones(4)})
        with pytest.raises(ForecastError):
            forecast(model, 3, future_covariates={"z": np.ones(3)})
        with pytest.raises(ForecastError):
            forecast(model, 3, future_covariates={"x": pd.Series(np.ones(3), index=[0, 1, 2])})

    def test_unit_root_is_rejected(self, model):
        params = dict(model.params, ar1=1.0, ar2=0.0)
        unit_root = dataclasses.replace(model, params=params)
        with pytest.raises(ModelNotStationaryError) as exc_info:
            forecast(unit_root, 5)
        assert exc_info.value.horizon == 5
