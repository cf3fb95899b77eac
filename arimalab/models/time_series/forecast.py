# arimalab/models/time_series/forecast.py
"""
Forecasting for fitted ARIMA models.

Point forecasts come from recursive substitution into the fitted ARMA
recurrence on the differenced regression errors, with past innovations taken
from the model residuals and future innovations set to zero. The forecasts
are then integrated back d times from the last observed levels and the
regression part (intercept and future covariates) is added back.

Prediction intervals use the MA(infinity) weights of phi(B)(1 - B)^d:

    Var[e_{n+k}] = sigma2 * sum_{j<k} psi_j^2

which is non-decreasing in k, so intervals never narrow with the horizon.
"""

import logging
import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats

from arimalab.core.config import ForecastConfig, get_forecast_config
from arimalab.core.exceptions import DataError, ForecastError, ModelNotStationaryError
from arimalab.core.types import CovariatesLike
from ._numba_core import arma_forecast
from .estimation import FittedModel
from .series import CovariateSet, difference
from .utils import ar_roots, forecast_error_variance, min_root_modulus

logger = logging.getLogger("arimalab.models.time_series.forecast")


@dataclass(frozen=True, eq=False)
class Forecast:
    """Point forecasts and prediction intervals.

    The forecast refers to its model through a weak reference only; it stays
    valid after the model is garbage collected, but ``model`` then returns None.

    Attributes:
        point_forecast: Point forecasts for horizons 1..h
        lower_bound: Lower bounds of the prediction intervals
        upper_bound: Upper bounds of the prediction intervals
        std_errors: Forecast standard errors
        confidence_level: Coverage of the intervals
        index: Index continuing the training index
        model_name: Name of the model used for forecasting
    """

    point_forecast: np.ndarray
    lower_bound: np.ndarray
    upper_bound: np.ndarray
    std_errors: np.ndarray
    confidence_level: float
    index: pd.Index
    model_name: str
    _model_ref: Optional[weakref.ref] = field(default=None, repr=False)

    @property
    def horizon(self) -> int:
        return len(self.point_forecast)

    @property
    def model(self) -> Optional[FittedModel]:
        """The fitted model, or None once it no longer exists."""
        return self._model_ref() if self._model_ref is not None else None

    def __len__(self) -> int:
        return self.horizon

    def __iter__(self) -> Iterator[Tuple[float, float, float]]:
        for point, lower, upper in zip(self.point_forecast, self.lower_bound, self.upper_bound):
            yield float(point), float(lower), float(upper)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert forecasts to a DataFrame indexed like the forecast period."""
        return pd.DataFrame(
            {
                "forecast": self.point_forecast,
                "lower": self.lower_bound,
                "upper": self.upper_bound,
                "std_error": self.std_errors,
            },
            index=self.index
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "confidence_level": self.confidence_level,
            "point_forecast": self.point_forecast.tolist(),
            "lower_bound": self.lower_bound.tolist(),
            "upper_bound": self.upper_bound.tolist(),
        }


def _future_design(model: FittedModel,
                   h: int,
                   future_index: pd.Index,
                   future_covariates: Optional[Union[CovariateSet, CovariatesLike]]) -> np.ndarray:
    """Covariate matrix for the forecast period in the order used for fitting."""
    if model.covariates is None:
        if future_covariates is not None:
            raise ForecastError(
                "Model was fitted without covariates; future covariates are not accepted",
                model_type=model.name,
                horizon=h,
                issue="unexpected covariates"
            )
        return np.zeros((h, 0))

    if future_covariates is None:
        raise ForecastError(
            "Future covariate values are required for a model fitted with covariates",
            model_type=model.name,
            horizon=h,
            issue="missing covariates",
            context={"Covariates": list(model.covariates.names)}
        )

    try:
        future = CovariateSet.coerce(future_covariates, index=future_index)
    except DataError as e:
        raise ForecastError(
            "Future covariates are malformed",
            model_type=model.name,
            horizon=h,
            issue=e.message,
            details=str(e)
        ) from e
    missing = [name for name in model.covariates.names if name not in future]
    if missing:
        raise ForecastError(
            f"Future covariates are missing {missing}",
            model_type=model.name,
            horizon=h,
            issue="missing covariates"
        )
    if future.nobs != h:
        raise ForecastError(
            f"Future covariates cover {future.nobs} periods, horizon is {h}",
            model_type=model.name,
            horizon=h,
            issue="length mismatch"
        )
    if not future.index.equals(future_index):
        raise ForecastError(
            "Future covariate index does not continue the training index",
            model_type=model.name,
            horizon=h,
            issue="index mismatch",
            context={"Expected Start": future_index[0], "Got Start": future.index[0]}
        )
    return np.column_stack([future[name].values for name in model.covariates.names])


def _integrate_forecast(levels: np.ndarray, forecasts: np.ndarray, d: int) -> np.ndarray:
    """Undo d differences of a forecast path, starting from the last observed levels."""
    history = [levels]
    for _ in range(d):
        history.append(np.diff(history[-1]))
    path = forecasts
    for j in range(d - 1, -1, -1):
        path = history[j][-1] + np.cumsum(path)
    return path


def forecast(model: FittedModel,
             h: int,
             confidence_level: Optional[float] = None,
             future_covariates: Optional[Union[CovariateSet, CovariatesLike]] = None,
             config: Optional[ForecastConfig] = None) -> Forecast:
    """
    Forecast a fitted model h steps ahead.

    Args:
        model: Fitted model
        h: Forecast horizon
        confidence_level: Coverage of the prediction intervals, defaults to the
            configured level
        future_covariates: Covariate values for the h forecast periods;
            required exactly when the model was fitted with covariates
        config: Forecast settings, defaults to the global configuration

    Returns:
        Forecast: Point forecasts with prediction intervals

    Raises:
        ForecastError: If h is not a positive integer, the confidence level is
            invalid, or future covariates are missing or misaligned
        ModelNotStationaryError: If a fitted AR root lies within the unit-root
            tolerance of the unit circle or the recursion is not finite

    Examples:
        >>> from arimalab import ModelSpec, simulate, fit, forecast
        >>> y = simulate(ModelSpec(1, 0, 0, ar_coeffs=[0.5]), 300, random_state=3)
        >>> fc = forecast(fit(y, ModelSpec.orders(1, 0, 0)), 5)
        >>> len(fc)
        5
    """
    if isinstance(h, bool) or not isinstance(h, (int, np.integer)) or h <= 0:
        raise ForecastError(
            f"Forecast horizon must be a positive integer, got {h!r}",
            model_type=model.name,
            issue="invalid horizon"
        )
    h = int(h)

    config = config or get_forecast_config()
    level = config.confidence_level if confidence_level is None else confidence_level
    if not 0.0 < level < 1.0:
        raise ForecastError(
            f"Confidence level must be between 0 and 1, got {level}",
            model_type=model.name,
            horizon=h,
            issue="invalid confidence level"
        )

    phi = model.ar_coeffs
    theta = model.ma_coeffs
    d = model.spec.d

    roots = ar_roots(phi)
    if min_root_modulus(roots) < 1.0 + config.unit_root_tolerance:
        raise ModelNotStationaryError(
            f"Fitted AR polynomial of {model.name} has a root on or near the unit circle",
            roots=roots,
            horizon=h,
            details="Consider a higher differencing order",
            context={"Model": model.name}
        )

    future_index = model.series.future_index(h)
    X_future = _future_design(model, h, future_index, future_covariates)

    # Regression errors in levels
    u = model.series.values.copy()
    if model.spec.has_intercept:
        u = u - model.intercept
    beta = np.array([model.params[name] for name in model.covariate_coeffs])
    if beta.size:
        u = u - model.covariates.to_matrix() @ beta

    w = difference(u, d)
    path = arma_forecast(np.ascontiguousarray(w),
                         np.ascontiguousarray(model.residuals.values, dtype=np.float64),
                         np.ascontiguousarray(phi, dtype=np.float64),
                         np.ascontiguousarray(theta, dtype=np.float64),
                         h)
    point = _integrate_forecast(u, path, d)
    if model.spec.has_intercept:
        point = point + model.intercept
    if beta.size:
        point = point + X_future @ beta

    variance = forecast_error_variance(phi, theta, model.sigma2, h, d)
    std_errors = np.sqrt(variance)
    if not (np.all(np.isfinite(point)) and np.all(np.isfinite(std_errors))):
        raise ModelNotStationaryError(
            f"Forecast recursion of {model.name} produced non-finite values",
            roots=roots,
            horizon=h,
            context={"Model": model.name}
        )

    z = stats.norm.ppf(0.5 + level / 2.0)
    for arr in (point, std_errors):
        arr.setflags(write=False)
    lower = point - z * std_errors
    upper = point + z * std_errors
    lower.setflags(write=False)
    upper.setflags(write=False)

    logger.debug(f"Forecast {model.name} {h} steps ahead at level {level}")
    return Forecast(
        point_forecast=point,
        lower_bound=lower,
        upper_bound=upper,
        std_errors=std_errors,
        confidence_level=float(level),
        index=future_index,
        model_name=model.name,
        _model_ref=weakref.ref(model)
    )
