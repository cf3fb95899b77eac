# arimalab/models/time_series/__init__.py
"""
ARIMA time series models.

Key components:
- ObservationSeries / CovariateSet: validated, immutable inputs
- ModelSpec: model orders and optional coefficients
- simulate: draw series from a specification
- fit / FittedModel: exact maximum-likelihood estimation
- autocorrelation, portmanteau_test, residual_diagnostics: diagnostics
- forecast / Forecast: point forecasts and prediction intervals
- select / SelectionResult: order search by information criterion
- ndiffs: differencing order from a unit-root test
"""

import logging

# Set up module-level logger
logger = logging.getLogger("arimalab.models.time_series")

from .series import ObservationSeries, CovariateSet, difference, integrate
from .spec import ModelSpec
from .simulation import simulate
from .estimation import FittedModel, fit
from .correlation import AutocorrelationResult, autocorrelation, theoretical_acf
from .diagnostics import (
    PortmanteauResult,
    ResidualDiagnostics,
    information_criteria,
    jarque_bera,
    portmanteau_test,
    residual_diagnostics,
)
from .forecast import Forecast, forecast
from .unit_root import ndiffs, stationarity_test
from .selection import CandidateFailure, RankedCandidate, SelectionResult, select
