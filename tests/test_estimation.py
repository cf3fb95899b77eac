# tests/test_estimation.py
"""
Tests for maximum-likelihood estimation of ARIMA models.

Recovery tests use long simulated series so that the tolerances are several
standard errors wide.
"""

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose
from statsmodels.tsa.arima.model import ARIMA

from arimalab.core.config import EstimationConfig
from arimalab.core.exceptions import ArimaLabError, ConvergenceError, DataError
from arimalab.models.time_series import (
    CovariateSet, FittedModel, ModelSpec, ObservationSeries, fit, simulate
)
from arimalab.models.time_series import estimation as estimation_module
from arimalab.models.time_series.estimation import _prepare


class TestParameterRecovery:
    """Estimates should land near the simulating coefficients."""

    def test_ar2(self, ar2_series):
        model = fit(ar2_series, ModelSpec.orders(2, 0, 0))
        tolerance = 4.0 / np.sqrt(len(ar2_series))
        assert abs(model.params["ar1"] - 0.6) < tolerance
        assert abs(model.params["ar2"] + 0.4) < tolerance
        assert abs(model.intercept) < 0.2
        assert abs(model.sigma2 - 1.0) < 0.15

    def test_ma1(self):
        y = simulate(ModelSpec(0, 0, 1, ma_coeffs=[0.5]), 1000, random_state=21)
        model = fit(y, ModelSpec.orders(0, 0, 1))
        assert abs(model.params["ma1"] - 0.5) < 0.12

    def test_arma11_with_mean(self, arma11_series):
        model = fit(arma11_series, ModelSpec.orders(1, 0, 1))
        assert abs(model.params["ar1"] - 0.7) < 0.15
        assert abs(model.params["ma1"] - 0.4) < 0.15
        assert abs(model.intercept - 2.0) < 0.7

    def test_integrated(self):
        y = simulate(ModelSpec(1, 1, 0, ar_coeffs=[0.5]), 600, random_state=8)
        model = fit(y, ModelSpec.orders(1, 1, 0))
        assert abs(model.params["ar1"] - 0.5) < 0.12
        assert "intercept" not in model.params
        assert model.nobs == 599

    @pytest.mark.parametrize("n", [500, 4000])
    @pytest.mark.parametrize("spec", [
        ModelSpec(0, 0, 1, ma_coeffs=[0.5], include_mean=False),
        ModelSpec(1, 0, 1, ar_coeffs=[0.7], ma_coeffs=[0.4], include_mean=False),
    ], ids=["ma1", "arma11"])
    def test_error_shrinks_with_sample_size(self, spec, n):
        # Asymptotic standard deviations are below 1.1 / sqrt(n) for both models
        tolerance = 5.0 / np.sqrt(n)
        y = simulate(spec, n, random_state=n + spec.p)
        model = fit(y, ModelSpec.orders(spec.p, 0, spec.q, include_mean=False))
        for i, value in enumerate(spec.ar_coeffs):
            assert abs(model.params[f"ar{i + 1}"] - value) < tolerance
        for j, value in enumerate(spec.ma_coeffs):
            assert abs(model.params[f"ma{j + 1}"] - value) < tolerance

    def test_estimates_are_stationary_and_invertible(self, arma11_series):
        model = fit(arma11_series, ModelSpec.orders(1, 0, 1))
        assert model.fitted_spec.is_stationary()
        assert model.fitted_spec.is_invertible()


class TestFittedModel:
    """Tests for the contents of FittedModel."""

    @pytest.fixture
    def model(self, ar2_series) -> FittedModel:
        return fit(ar2_series, ModelSpec.orders(2, 0, 0))

    def test_parameter_names(self, model):
        assert model.param_names == ["ar1", "ar2", "intercept"]
        assert set(model.std_errors) == set(model.params)
        assert set(model.p_values) == set(model.params)

    def test_standard_errors(self, model, ar2_series):
        # Asymptotic standard error of the AR(2) coefficients is sqrt((1 - phi_2^2) / n)
        expected = np.sqrt((1.0 - 0.4 ** 2) / len(ar2_series))
        assert model.std_errors["ar1"] == pytest.approx(expected, rel=0.25)
        assert model.std_errors["ar2"] == pytest.approx(expected, rel=0.25)
        assert model.p_values["ar1"] < 1e-6
        assert model.cov_params.shape == (3, 3)

    def test_information_criteria(self, model):
        k = model.n_params
        assert k == 4
        assert model.aic == pytest.approx(-2.0 * model.loglikelihood + 2.0 * k)
        assert model.bic == pytest.approx(-2.0 * model.loglikelihood + k * np.log(model.nobs))
        assert model.aicc == pytest.approx(model.aic + 2.0 * k * (k + 1) / (model.nobs - k - 1))
        assert model.information_criterion("bic") == model.bic

    def test_residuals(self, model, ar2_series):
        assert isinstance(model.residuals, ObservationSeries)
        assert len(model.residuals) == len(ar2_series)
        assert model.residuals.index.equals(ar2_series.index)
        assert abs(np.mean(model.residuals.values ** 2) - model.sigma2) < 0.1

    def test_is_read_only(self, model):
        with pytest.raises(AttributeError):
            model.sigma2 = 2.0
        with pytest.raises(ValueError):
            model.cov_params[0, 0] = 1.0

    def test_coefficient_table(self, model):
        table = model.to_dataframe()
        assert list(table.columns) == ["coef", "std_err", "z", "p_value"]
        assert list(table.index) == ["ar1", "ar2", "intercept"]
        assert table.loc["ar1", "coef"] == model.params["ar1"]

    def test_summary(self, model):
        text = model.summary()
        assert "ARIMA(2,0,0)" in text
        assert "ar2" in text
        assert model.to_dict()["order"] == (2, 0, 0)

    def test_no_intercept(self, ar2_series):
        model = fit(ar2_series, ModelSpec.orders(2, 0, 0, include_mean=False))
        assert model.param_names == ["ar1", "ar2"]
        assert model.n_params == 3

    def test_white_noise_mean(self, white_noise):
        model = fit(white_noise + 3.0, ModelSpec.orders(0, 0, 0))
        assert model.intercept == pytest.approx(np.mean(white_noise) + 3.0, abs=1e-4)
        assert model.sigma2 == pytest.approx(np.var(white_noise), rel=1e-3)

    def test_keeps_pandas_index(self, dated_series):
        model = fit(dated_series, ModelSpec.orders(1, 1, 0))
        assert model.residuals.index.equals(dated_series.index[1:])
        assert model.series.name == "sales"


class TestCovariates:
    """Tests for regression on covariates with ARMA errors."""

    def test_irrelevant_covariate_is_insignificant(self):
        rng = np.random.default_rng(2024)
        spec = ModelSpec(1, 0, 0, ar_coeffs=[0.5])
        insignificant = 0
        for _ in range(20):
            y = simulate(spec, 200, random_state=rng)
            covariates = CovariateSet({"x": rng.standard_normal(200)}, index=y.index)
            model = fit(y, ModelSpec.orders(1, 0, 0), covariates=covariates)
            if model.p_values["x"] > 0.05:
                insignificant += 1
        assert insignificant >= 15

    def test_relevant_covariate_is_recovered(self, rng):
        x = rng.standard_normal(300)
        noise = simulate(ModelSpec(1, 0, 0, ar_coeffs=[0.5]), 300, random_state=rng)
        y = 1.5 * x + noise.values
        model = fit(y, ModelSpec.orders(1, 0, 0), covariates={"x": x})
        assert model.p_values["x"] < 0.01
        assert abs(model.params["x"] - 1.5) < 0.2
        assert model.param_names == ["ar1", "intercept", "x"]
        assert model.covariate_coeffs == {"x": model.params["x"]}

    def test_covariates_with_differencing(self, rng):
        x = np.cumsum(rng.standard_normal(400))
        noise = simulate(ModelSpec(1, 1, 0, ar_coeffs=[0.3]), 400, random_state=rng)
        y = pd.Series(2.0 * x + noise.values)
        model = fit(y, ModelSpec.orders(1, 1, 0), covariates=pd.DataFrame({"x": x}))
        assert abs(model.params["x"] - 2.0) < 0.2

    def test_misaligned_covariates(self, ar2_series):
        with pytest.raises(DataError):
            fit(ar2_series, ModelSpec.orders(1, 0, 0),
                covariates={"x": np.ones(len(ar2_series) - 1)})

    def test_covariate_index_mismatch(self, dated_series):
        shifted = pd.Series(np.arange(len(dated_series), dtype=float),
                            index=dated_series.index.shift(1))
        with pytest.raises(DataError):
            fit(dated_series, ModelSpec.orders(1, 0, 0), covariates={"x": shifted})

    def test_reserved_covariate_name(self, ar2_series, rng):
        with pytest.raises(DataError):
            fit(ar2_series, ModelSpec.orders(1, 0, 0),
                covariates={"ar1": rng.standard_normal(len(ar2_series))})

    def test_collinear_covariates(self, ar2_series, rng):
        x = rng.standard_normal(len(ar2_series))
        with pytest.raises(DataError):
            fit(ar2_series, ModelSpec.orders(1, 0, 0), covariates={"a": x, "b": 2.0 * x})


class TestEstimationErrors:
    """Tests for failure modes of fit."""

    def test_too_few_observations(self):
        with pytest.raises(DataError):
            fit(np.array([0.1, -0.3, 0.5, 0.2, -0.1, 0.4]), ModelSpec.orders(2, 0, 2))

    def test_series_shorter_than_differencing(self):
        with pytest.raises(DataError):
            fit([1.0, 2.0], ModelSpec.orders(0, 2, 0))

    def test_constant_series(self):
        with pytest.raises(DataError):
            fit(np.full(100, 5.0), ModelSpec.orders(1, 0, 0))

    def test_iteration_bound(self, arma11_series):
        config = EstimationConfig(max_iterations=1, css_max_iterations=1)
        with pytest.raises(ConvergenceError) as exc_info:
            fit(arma11_series, ModelSpec.orders(1, 0, 1), config=config)
        assert exc_info.value.context["Step"] == "mle"
        assert exc_info.value.context["Order"] == "ARIMA(1,0,1)"

    def test_spec_coefficients_are_ignored(self, ar2_series):
        with_coeffs = fit(ar2_series, ModelSpec(2, 0, 0, ar_coeffs=[0.1, 0.1]))
        without = fit(ar2_series, ModelSpec.orders(2, 0, 0))
        assert_allclose(with_coeffs.ar_coeffs, without.ar_coeffs)
        assert not with_coeffs.spec.has_coefficients


class TestLikelihood:
    """The exact likelihood should agree with the statsmodels state-space ARIMA."""

    def test_matches_statsmodels_loglike(self, arma11_series):
        y = arma11_series.values - arma11_series.values.mean()
        model = fit(y, ModelSpec.orders(1, 0, 1, include_mean=False))
        reference = ARIMA(y, order=(1, 0, 1), trend="n")
        params = [model.params["ar1"], model.params["ma1"], model.sigma2]
        assert model.loglikelihood == pytest.approx(reference.loglike(params), rel=1e-6)

    def test_estimates_match_statsmodels(self, ar2_series):
        model = fit(ar2_series, ModelSpec.orders(2, 0, 0))
        reference = ARIMA(ar2_series.values, order=(2, 0, 0), trend="c").fit()
        assert model.params["ar1"] == pytest.approx(reference.params[1], abs=5e-3)
        assert model.params["ar2"] == pytest.approx(reference.params[2], abs=5e-3)
        assert model.intercept == pytest.approx(reference.params[0], abs=2e-2)

    def test_unit_root_likelihood_is_minus_infinity(self, white_noise):
        series = ObservationSeries.from_data(white_noise)
        problem = _prepare(series, ModelSpec.orders(1, 0, 0), None)
        llf, sigma2, _ = problem.loglikelihood(np.array([1.0]), np.zeros(0), np.zeros(1))
        assert llf == -np.inf
        assert np.isnan(sigma2)
        assert problem.mle_objective(np.array([50.0, 0.0])) == pytest.approx(1e10)

    def test_singular_state_covariance_is_a_convergence_error(self, ar2_series, monkeypatch):
        def singular(T, R):
            raise np.linalg.LinAlgError("A singular matrix detected")

        monkeypatch.setattr(estimation_module, "stationary_state_covariance", singular)
        with pytest.raises(ConvergenceError) as exc_info:
            fit(ar2_series, ModelSpec.orders(1, 0, 0))
        assert exc_info.value.context["Step"] == "mle"

    def test_explosive_series_does_not_leak_linalg_errors(self):
        y = simulate(ModelSpec(1, 0, 0, ar_coeffs=[1.02]), 200, random_state=1)
        for order in [(2, 0, 0), (3, 0, 2)]:
            try:
                model = fit(y, ModelSpec.orders(*order))
            except ArimaLabError:
                continue
            assert np.isfinite(model.loglikelihood)
