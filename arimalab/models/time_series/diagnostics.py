# arimalab/models/time_series/diagnostics.py

"""
Time Series Diagnostics Module

Residual checks for fitted ARIMA models: the Ljung-Box portmanteau test
reported lag by lag, Jarque-Bera normality, and residual ACF/PACF.
Information criteria are re-exported here for convenience.

Functions:
    portmanteau_test: Ljung-Box test at one or more lags
    jarque_bera: Jarque-Bera test for normality of residuals
    residual_diagnostics: All residual checks for a fitted model
    information_criteria: AIC, AICc and BIC
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats

from arimalab.core.exceptions import raise_data_error
from arimalab.core.types import AdequacyStatus, SeriesLike
from .correlation import AutocorrelationResult, autocorrelation
from .series import ObservationSeries
from .utils import information_criteria

logger = logging.getLogger("arimalab.models.time_series.diagnostics")

__all__ = [
    "PortmanteauResult",
    "JarqueBeraResult",
    "ResidualDiagnostics",
    "portmanteau_test",
    "jarque_bera",
    "residual_diagnostics",
    "information_criteria",
]


@dataclass(frozen=True, eq=False)
class PortmanteauResult:
    """Ljung-Box statistics at several lags.

    Each lag is judged on its own; there is no averaging across lags. Lags
    whose degrees of freedom ``lag - model_df`` are not positive carry a NaN
    p-value and are not judged.

    Attributes:
        lags: Lags at which the statistic was computed
        statistics: Ljung-Box Q statistic at each lag
        p_values: Chi-square p-value at each lag (NaN when df <= 0)
        df: Degrees of freedom at each lag
        model_df: Number of fitted ARMA coefficients subtracted from each lag
        significance_level: Threshold for rejecting no-autocorrelation
        nobs: Number of residuals
    """

    lags: np.ndarray
    statistics: np.ndarray
    p_values: np.ndarray
    df: np.ndarray
    model_df: int
    significance_level: float
    nobs: int

    @property
    def judged(self) -> np.ndarray:
        return ~np.isnan(self.p_values)

    @property
    def failing_lags(self) -> List[int]:
        """Lags where the no-autocorrelation hypothesis is rejected."""
        mask = self.judged & (self.p_values <= self.significance_level)
        return self.lags[mask].tolist()

    @property
    def passing_lags(self) -> List[int]:
        mask = self.judged & (self.p_values > self.significance_level)
        return self.lags[mask].tolist()

    @property
    def adequate(self) -> bool:
        """True if every judged lag passes."""
        return len(self.failing_lags) == 0

    @property
    def status(self) -> AdequacyStatus:
        """Overall verdict: adequate, partial or inadequate."""
        if not self.failing_lags:
            return "adequate"
        if not self.passing_lags:
            return "inadequate"
        return "partial"

    def rows(self) -> List[tuple]:
        """(lag, statistic, p_value) triples."""
        return [(int(lag), float(q), float(p))
                for lag, q, p in zip(self.lags, self.statistics, self.p_values)]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"statistic": self.statistics, "df": self.df, "p_value": self.p_values},
            index=pd.Index(self.lags, name="lag")
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": self.rows(),
            "model_df": self.model_df,
            "significance_level": self.significance_level,
            "adequate": self.adequate,
            "status": self.status,
            "failing_lags": self.failing_lags,
            "passing_lags": self.passing_lags,
        }

    def __str__(self) -> str:
        lines = [
            "Ljung-Box Test Results:",
            f"  Residuals: {self.nobs}",
            f"  Model df: {self.model_df}",
            f"  {'Lag':>5}{'Q':>12}{'df':>6}{'P-value':>10}",
        ]
        for lag, q, dfree, p in zip(self.lags, self.statistics, self.df, self.p_values):
            p_str = "n/a" if np.isnan(p) else f"{p:.4f}"
            lines.append(f"  {lag:>5}{q:>12.4f}{dfree:>6}{p_str:>10}")
        lines.append(f"  Status: {self.status}")
        if self.failing_lags:
            lines.append(f"  Failing lags: {self.failing_lags}")
        return "\n".join(lines)


@dataclass(frozen=True)
class JarqueBeraResult:
    """Results from the Jarque-Bera test for normality.

    Attributes:
        statistic: Test statistic
        p_value: Chi-square(2) p-value
        skewness: Sample skewness of the residuals
        kurtosis: Sample (non-excess) kurtosis of the residuals
        significance_level: Threshold used for ``normal``
    """

    statistic: float
    p_value: float
    skewness: float
    kurtosis: float
    significance_level: float = 0.05

    @property
    def normal(self) -> bool:
        return self.p_value > self.significance_level


@dataclass(frozen=True, eq=False)
class ResidualDiagnostics:
    """Residual checks of a fitted model.

    Attributes:
        model_name: Name of the diagnosed model, e.g. "ARIMA(1,0,1)"
        correlation: Residual ACF and PACF
        standardized_residuals: Residuals divided by sqrt(sigma2)
        portmanteau: Ljung-Box test with the ARMA coefficients as model_df
        normality: Jarque-Bera test
    """

    model_name: str
    correlation: AutocorrelationResult
    standardized_residuals: ObservationSeries
    portmanteau: PortmanteauResult
    normality: JarqueBeraResult

    @property
    def adequate(self) -> bool:
        return self.portmanteau.adequate

    def summary(self) -> str:
        lines = [f"Residual diagnostics: {self.model_name}", "=" * 40,
                 str(self.portmanteau), "",
                 "Jarque-Bera Test Results:",
                 f"  Statistic: {self.normality.statistic:.4f}",
                 f"  P-value: {self.normality.p_value:.4f}",
                 f"  Skewness: {self.normality.skewness:.4f}",
                 f"  Kurtosis: {self.normality.kurtosis:.4f}"]
        sig_acf = self.correlation.significant_lags("acf").tolist()
        lines.append("")
        lines.append(f"ACF lags outside band: {sig_acf if sig_acf else 'none'}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()


def _lag_list(lags: Union[int, Sequence[int]], nobs: int) -> np.ndarray:
    if isinstance(lags, (int, np.integer)) and not isinstance(lags, bool):
        lag_array = np.arange(1, int(lags) + 1)
    else:
        lag_array = np.unique(np.asarray(list(lags), dtype=int))
    if lag_array.size == 0 or lag_array[0] < 1 or lag_array[-1] > nobs - 1:
        raise_data_error(
            f"Lags must lie between 1 and {nobs - 1}",
            data_name="lags",
            issue=f"invalid lags {lags!r}"
        )
    return lag_array


def portmanteau_test(residuals: Union[ObservationSeries, SeriesLike],
                     lags: Union[int, Sequence[int]] = 10,
                     model_df: int = 0,
                     significance_level: float = 0.05) -> PortmanteauResult:
    """
    Ljung-Box test for residual autocorrelation.

    Q(m) = n (n + 2) sum_{k=1}^{m} r_k^2 / (n - k), compared against a
    chi-square distribution with m - model_df degrees of freedom.

    Args:
        residuals: Model residuals
        lags: Largest lag (tests lags 1..lags) or an explicit list of lags
        model_df: Number of estimated ARMA coefficients (p + q)
        significance_level: Rejection threshold for each lag

    Returns:
        PortmanteauResult: Statistics and p-values lag by lag

    Raises:
        DataError: If lags are out of range or no lag has positive degrees of freedom

    Examples:
        >>> import numpy as np
        >>> from arimalab.models.time_series.diagnostics import portmanteau_test
        >>> e = np.random.default_rng(1).standard_normal(400)
        >>> portmanteau_test(e, lags=10).status
        'adequate'
    """
    residuals = ObservationSeries.from_data(residuals)
    n = len(residuals)
    lag_array = _lag_list(lags, n)

    max_lag = int(lag_array[-1])
    corr = autocorrelation(residuals, max_lag=max_lag)
    r = corr.acf
    k = np.arange(1, max_lag + 1)
    cumulative = n * (n + 2.0) * np.cumsum(r ** 2 / (n - k))

    q_stats = cumulative[lag_array - 1]
    df = lag_array - int(model_df)
    p_values = np.full(lag_array.shape, np.nan)
    positive = df > 0
    if not np.any(positive):
        raise_data_error(
            f"No lag exceeds the model degrees of freedom ({model_df})",
            data_name="lags",
            issue="no testable lag"
        )
    p_values[positive] = stats.chi2.sf(q_stats[positive], df[positive])

    result = PortmanteauResult(
        lags=lag_array,
        statistics=q_stats,
        p_values=p_values,
        df=df,
        model_df=int(model_df),
        significance_level=significance_level,
        nobs=n
    )
    logger.debug(f"Ljung-Box on {n} residuals: status={result.status}, "
                 f"failing lags={result.failing_lags}")
    return result


def jarque_bera(residuals: Union[ObservationSeries, SeriesLike],
                significance_level: float = 0.05) -> JarqueBeraResult:
    """Jarque-Bera normality test (scipy.stats.jarque_bera)."""
    values = ObservationSeries.from_data(residuals).values
    test = stats.jarque_bera(values)
    return JarqueBeraResult(
        statistic=float(test.statistic),
        p_value=float(test.pvalue),
        skewness=float(stats.skew(values)),
        kurtosis=float(stats.kurtosis(values, fisher=False)),
        significance_level=significance_level
    )


def residual_diagnostics(model: Any,
                         lags: int = 20,
                         significance_level: float = 0.05) -> ResidualDiagnostics:
    """
    Run the residual checks of a fitted model.

    The portmanteau test uses ``model_df = p + q``. ``lags`` is capped at the
    number of residuals minus one.

    Args:
        model: A FittedModel
        lags: Largest lag for the ACF/PACF and the Ljung-Box test
        significance_level: Rejection threshold

    Returns:
        ResidualDiagnostics: Correlation, portmanteau and normality results
    """
    residuals = model.residuals
    n = len(residuals)
    max_lag = min(int(lags), n - 1)
    model_df = model.spec.p + model.spec.q

    standardized = ObservationSeries(residuals.values / np.sqrt(model.sigma2),
                                     residuals.index, "standardized_residuals")
    result = ResidualDiagnostics(
        model_name=model.name,
        correlation=autocorrelation(residuals, max_lag=max_lag),
        standardized_residuals=standardized,
        portmanteau=portmanteau_test(residuals, lags=max_lag, model_df=model_df,
                                     significance_level=significance_level),
        normality=jarque_bera(residuals, significance_level)
    )
    logger.info(f"Residual diagnostics for {model.name}: {result.portmanteau.status}")
    return result
