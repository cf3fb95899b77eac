# arimalab/models/time_series/unit_root.py
"""
Unit root tests used to choose the differencing order.

The model selector fixes d before searching over (p, q), because information
criteria are not comparable across differently differenced series. ``ndiffs``
chooses d by differencing until a unit-root test indicates stationarity:

- KPSS (null hypothesis: stationary): difference while the null is rejected
- ADF (null hypothesis: unit root): difference while the null is not rejected

Both tests come from statsmodels.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Union

import numpy as np
from statsmodels.tools.sm_exceptions import InterpolationWarning
from statsmodels.tsa.stattools import adfuller, kpss

from arimalab.core.exceptions import raise_data_error, raise_invalid_spec_error
from arimalab.core.types import SeriesLike, UnitRootTest
from .series import ObservationSeries

# Set up module-level logger
logger = logging.getLogger("arimalab.models.time_series.unit_root")

# Fewest observations on which a test is attempted
_MIN_OBS = 10


@dataclass(frozen=True)
class UnitRootTestResult:
    """Result of a single stationarity test.

    Attributes:
        test_name: "kpss" or "adf"
        statistic: Test statistic
        p_value: P-value; KPSS p-values are interpolated and clipped to [0.01, 0.1]
        stationary: Conclusion at the requested significance level
        alpha: Significance level
    """
    test_name: str
    statistic: float
    p_value: float
    stationary: bool
    alpha: float


def stationarity_test(series: Union[ObservationSeries, SeriesLike],
                      test: UnitRootTest = "kpss",
                      alpha: float = 0.05) -> UnitRootTestResult:
    """
    Test a series for stationarity around a constant.

    Args:
        series: Series to test
        test: "kpss" or "adf"
        alpha: Significance level

    Returns:
        UnitRootTestResult: Statistic, p-value and conclusion

    Raises:
        InvalidSpecError: If the test name or alpha is invalid
        DataError: If the series is too short to test
    """
    test = str(test).lower()
    if test not in ("kpss", "adf"):
        raise_invalid_spec_error(f"Unknown unit root test {test!r}", param_name="test",
                                 param_value=test, constraint="'kpss' or 'adf'")
    if not 0.0 < alpha < 1.0:
        raise_invalid_spec_error("alpha must lie in (0, 1)", param_name="alpha",
                                 param_value=alpha, constraint="0 < alpha < 1")

    x = ObservationSeries.from_data(series).values
    if len(x) < _MIN_OBS:
        raise_data_error(f"At least {_MIN_OBS} observations are needed for a unit root test",
                         data_name="series", issue="too few observations")

    if np.ptp(x) == 0.0:
        # A constant series is trivially stationary
        return UnitRootTestResult(test, 0.0, 1.0 if test == "kpss" else 0.0, True, alpha)

    if test == "kpss":
        with warnings.catch_warnings():
            # Statistics beyond the lookup table only clip the p-value
            warnings.simplefilter("ignore", InterpolationWarning)
            statistic, p_value, _, _ = kpss(x, regression="c", nlags="auto")
        stationary = p_value >= alpha
    else:
        statistic, p_value = adfuller(x, regression="c", autolag="AIC")[:2]
        stationary = p_value < alpha

    return UnitRootTestResult(test, float(statistic), float(p_value), bool(stationary), alpha)


def ndiffs(series: Union[ObservationSeries, SeriesLike],
           max_d: int = 2,
           test: UnitRootTest = "kpss",
           alpha: float = 0.05) -> int:
    """
    Number of differences needed to make a series stationary.

    Args:
        series: Series to examine
        max_d: Largest differencing order returned
        test: "kpss" or "adf"
        alpha: Significance level of the test

    Returns:
        int: The chosen differencing order, between 0 and max_d

    Examples:
        >>> import numpy as np
        >>> from arimalab.models.time_series.unit_root import ndiffs
        >>> walk = np.cumsum(np.random.default_rng(0).standard_normal(300))
        >>> ndiffs(walk)
        1
    """
    if isinstance(max_d, bool) or not isinstance(max_d, (int, np.integer)) or max_d < 0:
        raise_invalid_spec_error("max_d must be a non-negative integer", param_name="max_d",
                                 param_value=max_d, constraint="max_d >= 0")

    x = ObservationSeries.from_data(series).values
    d = 0
    while d < max_d:
        if len(x) < _MIN_OBS:
            logger.debug(f"Stopping unit root search at d={d}: {len(x)} observations left")
            break
        result = stationarity_test(x, test=test, alpha=alpha)
        logger.debug(f"{test.upper()} at d={d}: statistic={result.statistic:.4f}, "
                     f"p={result.p_value:.4f}, stationary={result.stationary}")
        if result.stationary:
            break
        x = np.diff(x)
        d += 1

    logger.info(f"Selected differencing order d={d} with {test.upper()} test")
    return d
