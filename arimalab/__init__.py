# arimalab/__init__.py
"""
arimalab - ARMA/ARIMA modelling toolkit

Simulate series from known ARIMA specifications, fit models by exact Gaussian
maximum likelihood (optionally with covariates), inspect ACF/PACF and residual
portmanteau statistics, forecast with prediction intervals, and select orders
by a penalized information criterion over a bounded grid.

Typical use:

    >>> from arimalab import ModelSpec, simulate, fit, forecast
    >>> y = simulate(ModelSpec(2, 0, 0, ar_coeffs=[0.6, -0.4]), 400, random_state=0)
    >>> model = fit(y, ModelSpec.orders(2, 0, 0))
    >>> fc = forecast(model, 10)
"""

import logging

from .version import __version__, __title__, __description__, __license__
from .core.config import get_config_manager

# Set up package-wide logger; handler and level come from the logging config
logger = logging.getLogger("arimalab")
get_config_manager()

from .core.exceptions import (
    ArimaLabError,
    InvalidSpecError,
    ConvergenceError,
    SingularInformationError,
    ModelNotStationaryError,
    DataError,
    ForecastError,
    ModelSelectionError,
    ConfigurationError,
    ArimaLabWarning,
    ConvergenceWarning,
    ModelWarning,
)
from .core.config import get_config, set_config, reset_config
from .models.time_series import (
    ObservationSeries,
    CovariateSet,
    ModelSpec,
    FittedModel,
    Forecast,
    SelectionResult,
    AutocorrelationResult,
    PortmanteauResult,
    difference,
    integrate,
    simulate,
    fit,
    forecast,
    select,
    ndiffs,
    autocorrelation,
    theoretical_acf,
    portmanteau_test,
    residual_diagnostics,
    information_criteria,
)

__all__ = [
    "__version__",
    "ArimaLabError",
    "InvalidSpecError",
    "ConvergenceError",
    "SingularInformationError",
    "ModelNotStationaryError",
    "DataError",
    "ForecastError",
    "ModelSelectionError",
    "ConfigurationError",
    "ArimaLabWarning",
    "ConvergenceWarning",
    "ModelWarning",
    "get_config",
    "set_config",
    "reset_config",
    "ObservationSeries",
    "CovariateSet",
    "ModelSpec",
    "FittedModel",
    "Forecast",
    "SelectionResult",
    "AutocorrelationResult",
    "PortmanteauResult",
    "difference",
    "integrate",
    "simulate",
    "fit",
    "forecast",
    "select",
    "ndiffs",
    "autocorrelation",
    "theoretical_acf",
    "portmanteau_test",
    "residual_diagnostics",
    "information_criteria",
]
