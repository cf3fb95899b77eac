# arimalab/models/time_series/correlation.py
"""
Correlation Analysis Module for Time Series

Sample and theoretical autocorrelation functions. The sample ACF uses the
biased autocovariance estimator (divide by n), which keeps the implied
autocovariance sequence positive semi-definite; the sample PACF follows from
the ACF by the Durbin-Levinson recursion. Both are reported with the
approximate white-noise band +/- z/sqrt(n).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd
from scipy import stats

from arimalab.core.exceptions import raise_data_error, raise_invalid_spec_error
from arimalab.core.types import SeriesLike
from ._numba_core import acf_numba, durbin_levinson
from .series import ObservationSeries
from .spec import ModelSpec
from .utils import arma_autocovariance

logger = logging.getLogger("arimalab.models.time_series.correlation")


def default_max_lag(nobs: int) -> int:
    """min(10 log10(n), n - 1), at least 1."""
    return max(1, min(int(np.floor(10.0 * np.log10(nobs))), nobs - 1))


@dataclass(frozen=True, eq=False)
class AutocorrelationResult:
    """
    Sample ACF and PACF of a series.

    Attributes:
        lags: Lags 1..max_lag
        acf: Autocorrelations at each lag
        pacf: Partial autocorrelations at each lag
        band: Half-width of the approximate white-noise significance band
        nobs: Number of observations used
        confidence_level: Coverage of the band
    """
    lags: np.ndarray
    acf: np.ndarray
    pacf: np.ndarray
    band: float
    nobs: int
    confidence_level: float = 0.95

    @property
    def max_lag(self) -> int:
        return int(self.lags[-1])

    def significant_lags(self, which: str = "acf") -> np.ndarray:
        """Lags whose ACF (or PACF) value lies outside the band."""
        values = self.acf if which == "acf" else self.pacf
        return self.lags[np.abs(values) > self.band]

    def fraction_inside_band(self, which: str = "acf") -> float:
        values = self.acf if which == "acf" else self.pacf
        return float(np.mean(np.abs(values) <= self.band))

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"acf": self.acf, "pacf": self.pacf,
             "lower": -self.band, "upper": self.band},
            index=pd.Index(self.lags, name="lag")
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lags": self.lags.tolist(),
            "acf": self.acf.tolist(),
            "pacf": self.pacf.tolist(),
            "band": self.band,
            "nobs": self.nobs,
        }


def autocorrelation(series: Union[ObservationSeries, SeriesLike],
                    max_lag: Optional[int] = None,
                    confidence_level: float = 0.95) -> AutocorrelationResult:
    """
    Compute the sample ACF and PACF of a series.

    Args:
        series: Input series
        max_lag: Largest lag to report. Defaults to min(10 log10(n), n - 1)
        confidence_level: Coverage of the white-noise band

    Returns:
        AutocorrelationResult: ACF and PACF for lags 1..max_lag with the band

    Raises:
        DataError: If the series has fewer than two observations or max_lag is
            not between 1 and n - 1

    Examples:
        >>> import numpy as np
        >>> from arimalab.models.time_series.correlation import autocorrelation
        >>> x = np.random.default_rng(0).standard_normal(500)
        >>> result = autocorrelation(x, max_lag=20)
        >>> len(result.acf)
        20
    """
    series = ObservationSeries.from_data(series)
    n = len(series)
    if n < 2:
        raise_data_error("At least two observations are needed for autocorrelations",
                         data_name=series.name or "series", issue="too few observations")

    if max_lag is None:
        max_lag = default_max_lag(n)
    if isinstance(max_lag, bool) or not isinstance(max_lag, (int, np.integer)) \
            or not 1 <= max_lag <= n - 1:
        raise_data_error(
            f"max_lag must be an integer between 1 and {n - 1}",
            data_name=series.name or "series",
            issue=f"invalid max_lag {max_lag!r}"
        )

    x = np.ascontiguousarray(series.values, dtype=np.float64)
    acf_values = acf_numba(x, int(max_lag))
    pacf_values = durbin_levinson(acf_values, int(max_lag))

    z = stats.norm.ppf(0.5 + confidence_level / 2.0)
    band = float(z / np.sqrt(n))

    logger.debug(f"Computed ACF/PACF of {n} observations up to lag {max_lag}")
    return AutocorrelationResult(
        lags=np.arange(1, max_lag + 1),
        acf=acf_values[1:],
        pacf=pacf_values[1:],
        band=band,
        nobs=n,
        confidence_level=confidence_level
    )


def theoretical_acf(spec: ModelSpec, max_lag: int) -> np.ndarray:
    """
    Autocorrelations implied by a stationary ARMA specification.

    Args:
        spec: Specification with coefficients; d must be 0
        max_lag: Largest lag

    Returns:
        np.ndarray: Autocorrelations for lags 0..max_lag

    Raises:
        InvalidSpecError: If the spec lacks coefficients, is integrated or is
            not stationary
    """
    if not spec.has_coefficients:
        raise_invalid_spec_error(f"{spec.name} has no coefficients",
                                 param_name="spec", param_value=repr(spec))
    if spec.d != 0:
        raise_invalid_spec_error("Integrated models have no autocorrelation function",
                                 param_name="d", param_value=spec.d, constraint="d == 0")
    if not spec.is_stationary():
        raise_invalid_spec_error("AR coefficients are not stationary",
                                 param_name="ar_coeffs", param_value=spec.ar_coeffs.tolist(),
                                 constraint="all AR roots outside the unit circle")

    gamma = arma_autocovariance(spec.ar_coeffs, spec.ma_coeffs, 1.0, max_lag)
    return gamma / gamma[0]
