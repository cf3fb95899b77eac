"""
Maximum-likelihood estimation of ARIMA models with optional covariates.

The series (and any covariates) are differenced d times. The differenced
target is modelled as a linear regression on the differenced covariates,
plus an intercept when d == 0, with ARMA(p, q) errors:

    z_t = mu + x_t' beta + u_t,    phi(B) u_t = theta(B) eps_t

All coefficients are estimated jointly. Conditional sum of squares gives
starting values; the exact Gaussian likelihood, evaluated with a Kalman
filter on the ARMA state-space form with the innovation variance
concentrated out, is then maximized. AR and MA coefficients are optimized
through the partial-autocorrelation reparameterization so that every trial
point is stationary and invertible. Standard errors come from a numerical
Hessian of the negative log-likelihood at the optimum.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import optimize, stats

from arimalab.core.config import EstimationConfig, get_estimation_config
from arimalab.core.exceptions import (
    ConvergenceError, DataError, SingularInformationError, raise_data_error,
    warn_convergence, warn_model
)
from arimalab.core.types import CovariatesLike, Matrix, SeriesLike
from arimalab.utils.differentiation import gradient_2sided, hessian_2sided
from ._numba_core import css_residuals, kalman_filter
from .series import CovariateSet, ObservationSeries, difference
from .spec import ModelSpec
from .utils import (
    constrain_invertible, constrain_stationary, information_criteria,
    min_root_modulus, ar_roots, ma_roots, state_space_matrices,
    stationary_state_covariance, unconstrain_invertible, unconstrain_stationary
)

# Set up module-level logger
logger = logging.getLogger("arimalab.models.time_series.estimation")

# Objective value returned for trial points where the likelihood is undefined
_PENALTY = 1e10

_LOG_2PI = np.log(2.0 * np.pi)


@dataclass(frozen=True, eq=False)
class FittedModel:
    """
    Result of fitting an ARIMA model.

    Instances are read-only. Forecasts and diagnostics derived from a fitted
    model refer back to it but never own it.

    Attributes:
        spec: Orders-only specification that was fitted
        params: Estimated coefficients keyed ar1..arp, ma1..maq, intercept
            (the mean of a d == 0 series) and covariate names
        std_errors: Standard errors keyed like params
        z_values: z statistics keyed like params
        p_values: Two-sided p-values keyed like params
        cov_params: Covariance matrix of the estimates in params order
        residuals: One-step prediction errors on the differenced scale
        sigma2: Innovation variance
        loglikelihood: Maximized exact Gaussian log-likelihood
        aic: Akaike information criterion
        aicc: Small-sample corrected AIC
        bic: Bayesian information criterion
        nobs: Number of observations after differencing
        n_params: Number of estimated parameters including sigma2
        iterations: Iterations used by the likelihood optimizer
        series: The training series
        covariates: The training covariates, if any
    """
    spec: ModelSpec
    params: Dict[str, float]
    std_errors: Dict[str, float]
    z_values: Dict[str, float]
    p_values: Dict[str, float]
    cov_params: Matrix
    residuals: ObservationSeries
    sigma2: float
    loglikelihood: float
    aic: float
    aicc: float
    bic: float
    nobs: int
    n_params: int
    iterations: int
    series: ObservationSeries
    covariates: Optional[CovariateSet] = None

    @property
    def order(self) -> Tuple[int, int, int]:
        return self.spec.order

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def param_names(self) -> List[str]:
        return list(self.params)

    @property
    def ar_coeffs(self) -> np.ndarray:
        return np.array([self.params[f"ar{i + 1}"] for i in range(self.spec.p)])

    @property
    def ma_coeffs(self) -> np.ndarray:
        return np.array([self.params[f"ma{j + 1}"] for j in range(self.spec.q)])

    @property
    def intercept(self) -> float:
        return self.params.get("intercept", 0.0)

    @property
    def covariate_coeffs(self) -> Dict[str, float]:
        if self.covariates is None:
            return {}
        return {name: self.params[name] for name in self.covariates.names}

    @property
    def fitted_spec(self) -> ModelSpec:
        """Specification carrying the estimated AR and MA coefficients."""
        return self.spec.with_coefficients(self.ar_coeffs, self.ma_coeffs)

    def information_criterion(self, criterion: str) -> float:
        return {"aic": self.aic, "aicc": self.aicc, "bic": self.bic}[criterion]

    def forecast(self, h: int, **kwargs: Any) -> "Forecast":
        """Shortcut for ``arimalab.models.time_series.forecast.forecast(self, h, ...)``."""
        from .forecast import forecast
        return forecast(self, h, **kwargs)

    def to_dataframe(self) -> pd.DataFrame:
        """Coefficient table with estimates, standard errors, z values and p-values."""
        names = self.param_names
        return pd.DataFrame(
            {
                "coef": [self.params[n] for n in names],
                "std_err": [self.std_errors[n] for n in names],
                "z": [self.z_values[n] for n in names],
                "p_value": [self.p_values[n] for n in names],
            },
            index=pd.Index(names, name="parameter")
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": self.order,
            "params": dict(self.params),
            "std_errors": dict(self.std_errors),
            "p_values": dict(self.p_values),
            "sigma2": self.sigma2,
            "loglikelihood": self.loglikelihood,
            "aic": self.aic,
            "aicc": self.aicc,
            "bic": self.bic,
            "nobs": self.nobs,
            "n_params": self.n_params,
            "iterations": self.iterations,
        }

    def summary(self) -> str:
        """Generate a text summary of the fitted model.

        Returns:
            str: A formatted string containing the model results summary
        """
        header = f"Model: {self.name}\n"
        header += "=" * (len(header) - 1) + "\n\n"

        info = f"Observations (differenced): {self.nobs}\n"
        info += f"Log-Likelihood: {self.loglikelihood:.6f}\n"
        info += f"AIC: {self.aic:.6f}\n"
        info += f"AICc: {self.aicc:.6f}\n"
        info += f"BIC: {self.bic:.6f}\n"
        info += f"sigma2: {self.sigma2:.6f}\n"
        info += f"Iterations: {self.iterations}\n\n"

        table = ""
        if self.params:
            table = "Parameter Estimates:\n"
            table += "-" * 64 + "\n"
            table += f"{'Parameter':<16}{'Estimate':>12}{'Std. Error':>12}{'z':>10}{'P>|z|':>10}\n"
            table += "-" * 64 + "\n"
            for name in self.param_names:
                table += (f"{name:<16}{self.params[name]:>12.4f}{self.std_errors[name]:>12.4f}"
                          f"{self.z_values[name]:>10.3f}{self.p_values[name]:>10.4f}\n")
            table += "-" * 64 + "\n"

        return header + info + table

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return f"FittedModel({self.name}, llf={self.loglikelihood:.4f}, aic={self.aic:.4f})"


class _Problem:
    """Differenced data and parameter layout of one estimation problem."""

    def __init__(self,
                 spec: ModelSpec,
                 z: np.ndarray,
                 design: np.ndarray,
                 regressor_names: List[str]) -> None:
        self.spec = spec
        self.p = spec.p
        self.q = spec.q
        self.z = z
        self.design = design
        self.regressor_names = regressor_names
        self.k = design.shape[1]
        self.n = z.shape[0]
        self.names = ([f"ar{i + 1}" for i in range(self.p)]
                      + [f"ma{j + 1}" for j in range(self.q)]
                      + regressor_names)

    def split(self, params: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        p, q = self.p, self.q
        return params[:p], params[p:p + q], params[p + q:]

    def to_natural(self, x: np.ndarray) -> np.ndarray:
        x_ar, x_ma, beta = self.split(x)
        return np.concatenate((constrain_stationary(x_ar), constrain_invertible(x_ma), beta))

    def to_unconstrained(self, params: np.ndarray) -> np.ndarray:
        phi, theta, beta = self.split(params)
        return np.concatenate((unconstrain_stationary(phi), unconstrain_invertible(theta), beta))

    def errors(self, beta: np.ndarray) -> np.ndarray:
        if self.k == 0:
            return self.z
        return self.z - self.design @ beta

    def css_objective(self, x: np.ndarray) -> float:
        phi, theta, beta = self.split(self.to_natural(x))
        e = css_residuals(self.errors(beta), phi, theta)[self.p:]
        ssr = float(np.mean(e ** 2))
        if not np.isfinite(ssr) or ssr <= 0.0:
            return _PENALTY
        return 0.5 * np.log(ssr)

    def filter(self, phi: np.ndarray, theta: np.ndarray,
               beta: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        T, R = state_space_matrices(phi, theta)
        P0 = stationary_state_covariance(T, R)
        return kalman_filter(np.ascontiguousarray(self.errors(beta)),
                             np.ascontiguousarray(T),
                             np.ascontiguousarray(T.T),
                             np.ascontiguousarray(np.outer(R, R)),
                             np.ascontiguousarray(P0))

    def loglikelihood(self, phi: np.ndarray, theta: np.ndarray,
                      beta: np.ndarray) -> Tuple[float, float, np.ndarray]:
        """Concentrated exact log-likelihood, innovation variance and prediction errors.

        The likelihood is minus infinity at AR coefficients on or outside the
        unit circle, where the state covariance has no stationary solution.
        """
        if min_root_modulus(ar_roots(phi)) <= 1.0:
            return -np.inf, np.nan, self.errors(beta)
        try:
            v, F = self.filter(phi, theta, beta)
        except np.linalg.LinAlgError as e:
            logger.debug(f"{self.spec.name} state covariance is singular at phi={phi}: {e}")
            return -np.inf, np.nan, self.errors(beta)
        if not np.all(F > 0.0):
            return -np.inf, np.nan, v
        ssq = float(np.sum(v ** 2 / F))
        if not np.isfinite(ssq) or ssq <= 0.0:
            return -np.inf, np.nan, v
        sigma2 = ssq / self.n
        llf = -0.5 * (self.n * (_LOG_2PI + np.log(sigma2) + 1.0) + np.sum(np.log(F)))
        return float(llf), sigma2, v

    def mle_objective(self, x: np.ndarray) -> float:
        phi, theta, beta = self.split(self.to_natural(x))
        llf, _, _ = self.loglikelihood(phi, theta, beta)
        if not np.isfinite(llf):
            return _PENALTY
        return -llf / self.n

    def negative_loglikelihood(self, params: np.ndarray) -> float:
        """Negative log-likelihood in natural coordinates; infinite outside the admissible region."""
        phi, theta, beta = self.split(params)
        if min_root_modulus(ma_roots(theta)) <= 1.0:
            return np.inf
        llf, _, _ = self.loglikelihood(phi, theta, beta)
        return -llf


def _prepare(series: ObservationSeries,
             spec: ModelSpec,
             covariates: Optional[CovariateSet]) -> _Problem:
    d = spec.d
    if len(series) <= d:
        raise_data_error(
            f"Cannot difference {len(series)} observations {d} times",
            data_name=series.name or "series",
            issue="series too short for differencing order"
        )
    z = difference(series.values, d)

    columns = []
    regressor_names = []
    if spec.has_intercept:
        columns.append(np.ones(z.shape[0]))
        regressor_names.append("intercept")
    if covariates is not None:
        reserved = {"intercept"} | {f"ar{i + 1}" for i in range(spec.p)} \
            | {f"ma{j + 1}" for j in range(spec.q)}
        for name in covariates.names:
            if name in reserved:
                raise_data_error(
                    f"Covariate name {name!r} clashes with a model parameter name",
                    data_name=name,
                    issue="reserved parameter name"
                )
        X = covariates.to_matrix()
        if d > 0:
            X = np.diff(X, n=d, axis=0)
        columns.extend(X.T)
        regressor_names.extend(covariates.names)

    design = np.column_stack(columns) if columns else np.zeros((z.shape[0], 0))
    problem = _Problem(spec, z, design, regressor_names)

    n_params = spec.p + spec.q + problem.k + 1
    if problem.n <= n_params + 1:
        raise_data_error(
            f"{problem.n} differenced observations are too few to fit {n_params} parameters",
            data_name=series.name or "series",
            issue="insufficient observations",
            context={"Order": spec.name}
        )
    return problem


def _regression_start(problem: _Problem) -> np.ndarray:
    if problem.k == 0:
        return np.zeros(0)
    beta, _, rank, _ = np.linalg.lstsq(problem.design, problem.z, rcond=None)
    if rank < problem.k:
        raise_data_error(
            "Regression design is rank deficient; covariates are collinear or constant",
            data_name="covariates",
            issue="rank deficient design",
            context={"Order": problem.spec.name, "Rank": int(rank), "Columns": problem.k}
        )
    return beta


def _gradient_norm(result: optimize.OptimizeResult,
                   objective: Any,
                   x: np.ndarray) -> float:
    jac = getattr(result, "jac", None)
    if jac is None:
        jac = gradient_2sided(objective, x)
    jac = np.asarray(jac, dtype=float)
    return float(np.max(np.abs(jac))) if jac.size else 0.0


def _css_start(problem: _Problem, beta0: np.ndarray, config: EstimationConfig) -> np.ndarray:
    x0 = np.concatenate((np.zeros(problem.p + problem.q), beta0))
    if problem.p + problem.q == 0:
        return x0

    result = optimize.minimize(problem.css_objective, x0, method=config.optimizer,
                               options={"maxiter": config.css_max_iterations})
    if not np.isfinite(result.fun) or result.fun >= _PENALTY:
        raise ConvergenceError(
            f"Conditional sum of squares diverged for {problem.spec.name}",
            iterations=int(getattr(result, "nit", 0)),
            final_value=float(result.fun),
            context={"Order": problem.spec.name, "Step": "css"}
        )
    logger.debug(f"{problem.spec.name} CSS seed after {getattr(result, 'nit', 0)} "
                 f"iterations: {result.message}")
    return np.asarray(result.x, dtype=float)


def _maximize(problem: _Problem, x0: np.ndarray,
              config: EstimationConfig) -> Tuple[np.ndarray, int]:
    options: Dict[str, Any] = {"maxiter": config.max_iterations}
    if config.optimizer in ("BFGS", "CG"):
        options["gtol"] = config.tolerance
    result = optimize.minimize(problem.mle_objective, x0, method=config.optimizer,
                               options=options)
    iterations = int(getattr(result, "nit", 0))
    context = {"Order": problem.spec.name, "Step": "mle"}

    if not np.isfinite(result.fun) or result.fun >= _PENALTY:
        raise ConvergenceError(
            f"Likelihood optimization diverged for {problem.spec.name}",
            iterations=iterations,
            tolerance=config.tolerance,
            final_value=float(result.fun),
            context=context
        )
    if iterations >= config.max_iterations:
        raise ConvergenceError(
            f"Likelihood optimization for {problem.spec.name} reached the "
            f"iteration limit of {config.max_iterations}",
            iterations=iterations,
            tolerance=config.tolerance,
            final_value=float(result.fun),
            details=str(result.message),
            context=context
        )
    if not result.success:
        gnorm = _gradient_norm(result, problem.mle_objective, result.x)
        if gnorm > config.gradient_tolerance:
            raise ConvergenceError(
                f"Likelihood optimization for {problem.spec.name} stopped away from an optimum",
                iterations=iterations,
                tolerance=config.gradient_tolerance,
                final_value=float(result.fun),
                gradient_norm=gnorm,
                details=str(result.message),
                context=context
            )
        warn_convergence(
            f"Likelihood optimization for {problem.spec.name} stopped without reporting "
            f"success; accepting the estimate with gradient norm {gnorm:.2e}",
            iterations=iterations,
            gradient_norm=gnorm,
            details=str(result.message),
            context=context
        )

    return np.asarray(result.x, dtype=float), iterations


def _covariance(problem: _Problem, params: np.ndarray) -> np.ndarray:
    if params.size == 0:
        return np.zeros((0, 0))

    hess = hessian_2sided(problem.negative_loglikelihood, params)
    context = {"Order": problem.spec.name, "Step": "standard errors"}
    if not np.all(np.isfinite(hess)):
        raise SingularInformationError(
            f"Information matrix of {problem.spec.name} is not finite at the optimum",
            param_names=problem.names,
            details="The optimum lies at the edge of the stationary/invertible region",
            context=context
        )

    hess = 0.5 * (hess + hess.T)
    condition_number = float(np.linalg.cond(hess))
    try:
        cov = np.linalg.inv(hess)
    except np.linalg.LinAlgError as e:
        raise SingularInformationError(
            f"Information matrix of {problem.spec.name} is singular",
            condition_number=condition_number,
            param_names=problem.names,
            details=str(e),
            context=context
        ) from e

    if not np.all(np.isfinite(cov)) or np.any(np.diag(cov) <= 0.0):
        raise SingularInformationError(
            f"Information matrix of {problem.spec.name} is not positive definite",
            condition_number=condition_number,
            param_names=problem.names,
            context=context
        )
    return cov


def _check_roots(spec: ModelSpec, phi: np.ndarray, theta: np.ndarray,
                 margin: float) -> None:
    ar_modulus = min_root_modulus(ar_roots(phi))
    ma_modulus = min_root_modulus(ma_roots(theta))
    if ma_modulus < margin:
        warn_model(
            f"Fitted MA polynomial of {spec.name} is close to non-invertible",
            model_type=spec.name,
            issue="MA root near the unit circle",
            value=ma_modulus
        )
    if ar_modulus < margin:
        warn_model(
            f"Fitted AR polynomial of {spec.name} is close to a unit root",
            model_type=spec.name,
            issue="AR root near the unit circle",
            value=ar_modulus
        )


def fit(series: Union[ObservationSeries, SeriesLike],
        spec: ModelSpec,
        covariates: Optional[Union[CovariateSet, CovariatesLike]] = None,
        config: Optional[EstimationConfig] = None) -> FittedModel:
    """
    Fit an ARIMA(p, d, q) model by exact Gaussian maximum likelihood.

    Args:
        series: Target series
        spec: Model orders; coefficients on the spec, if any, are ignored
        covariates: Optional covariates aligned with the target series
        config: Estimation settings, defaults to the global configuration

    Returns:
        FittedModel: Estimates, standard errors, residuals and fit statistics

    Raises:
        DataError: If the covariates are not aligned with the series or the
            series is too short for the requested model
        ConvergenceError: If the optimizer diverges, hits its iteration bound
            or stops away from an optimum
        SingularInformationError: If the information matrix at the optimum
            cannot be inverted

    Examples:
        >>> from arimalab import ModelSpec, simulate, fit
        >>> y = simulate(ModelSpec(1, 0, 0, ar_coeffs=[0.6]), 500, random_state=0)
        >>> model = fit(y, ModelSpec.orders(1, 0, 0))
        >>> abs(model.params["ar1"] - 0.6) < 0.1
        True
    """
    config = config or get_estimation_config()
    series = ObservationSeries.from_data(series)
    covariates = CovariateSet.coerce(covariates, index=series.index)
    if covariates is not None:
        covariates.check_aligned(series)

    spec = ModelSpec.orders(spec.p, spec.d, spec.q, include_mean=spec.include_mean)
    problem = _prepare(series, spec, covariates)
    logger.debug(f"Fitting {spec.name} to {problem.n} differenced observations "
                 f"with {problem.k} regressors")

    beta0 = _regression_start(problem)
    if np.sum(problem.errors(beta0) ** 2) <= 1e-12 * max(1.0, float(np.sum(problem.z ** 2))):
        raise DataError(
            "Series is exactly explained by its regressors; the innovation variance is zero",
            data_name=series.name or "series",
            issue="zero residual variance",
            context={"Order": spec.name}
        )

    iterations = 0
    x_hat = _css_start(problem, beta0, config)
    if x_hat.size > 0:
        x_hat, iterations = _maximize(problem, x_hat, config)

    params = problem.to_natural(x_hat)
    phi, theta, beta = problem.split(params)
    llf, sigma2, innovations = problem.loglikelihood(phi, theta, beta)
    if not np.isfinite(llf):
        raise ConvergenceError(
            f"Log-likelihood of {spec.name} is not finite at the optimum",
            iterations=iterations,
            context={"Order": spec.name, "Step": "mle"}
        )

    _check_roots(spec, phi, theta, config.invertibility_margin)

    cov = _covariance(problem, params)
    cov.setflags(write=False)
    se = np.sqrt(np.diag(cov)) if params.size else np.zeros(0)
    z_stats = params / se if params.size else np.zeros(0)
    p_vals = 2.0 * stats.norm.sf(np.abs(z_stats))

    n_params = params.size + 1
    ic = information_criteria(llf, problem.n, n_params)

    residuals = ObservationSeries(innovations, series.index[spec.d:], "residuals")

    model = FittedModel(
        spec=spec,
        params={name: float(v) for name, v in zip(problem.names, params)},
        std_errors={name: float(v) for name, v in zip(problem.names, se)},
        z_values={name: float(v) for name, v in zip(problem.names, z_stats)},
        p_values={name: float(v) for name, v in zip(problem.names, p_vals)},
        cov_params=cov,
        residuals=residuals,
        sigma2=float(sigma2),
        loglikelihood=float(llf),
        aic=ic["aic"],
        aicc=ic["aicc"],
        bic=ic["bic"],
        nobs=problem.n,
        n_params=n_params,
        iterations=iterations,
        series=series,
        covariates=covariates
    )
    logger.info(f"Fitted {spec.name}: llf={llf:.4f}, aic={ic['aic']:.4f}, "
                f"iterations={iterations}")
    return model
