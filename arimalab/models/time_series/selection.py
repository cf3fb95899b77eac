"""
Order selection by penalized information criterion over a bounded grid.

The differencing order is fixed before the search, either by the caller or
by a unit-root test, so that every candidate is fitted to the same
differenced series and their criteria are comparable. Each (p, q) in the
grid is fitted independently; failed fits are excluded from the ranking and
reported, never scored as infinity.

Candidates are ranked by

    score = -2 llf + penalty_multiplier * penalty(k)

where penalty is the complexity term of the configured criterion (2k for
AIC). Ties are broken by fewer parameters, then smaller p, then smaller q, so
the ranking is a total order and does not depend on the number of workers.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from arimalab.core.config import (
    EstimationConfig, SelectionConfig, get_estimation_config, get_selection_config
)
from arimalab.core.exceptions import ArimaLabError, ModelSelectionError, raise_invalid_spec_error
from arimalab.core.types import CovariatesLike, Order, SeriesLike
from .estimation import FittedModel, fit
from .series import CovariateSet, ObservationSeries
from .spec import ModelSpec
from .unit_root import ndiffs
from .utils import criterion_penalty

# Set up module-level logger
logger = logging.getLogger("arimalab.models.time_series.selection")


@dataclass(frozen=True)
class CandidateFailure:
    """A grid point whose fit raised an error.

    Attributes:
        order: (p, d, q) of the candidate
        error_type: Class name of the error
        message: Error message
        step: Estimation step that failed, when known
    """
    order: Order
    error_type: str
    message: str
    step: Optional[str] = None


@dataclass(frozen=True, eq=False)
class RankedCandidate:
    """A successfully fitted candidate with its ranking score."""
    model: FittedModel
    score: float

    @property
    def order(self) -> Order:
        return self.model.order

    @property
    def n_params(self) -> int:
        return self.model.n_params

    def sort_key(self) -> Tuple[float, int, int, int]:
        p, _, q = self.order
        return (self.score, self.n_params, p, q)


@dataclass(frozen=True, eq=False)
class SelectionResult:
    """
    Outcome of an order search.

    Attributes:
        candidates: Successfully fitted candidates, best first
        failures: Excluded candidates in grid order
        d: Differencing order shared by all candidates
        criterion: Information criterion used for ranking
        penalty_multiplier: Multiplier applied to the complexity penalty
    """
    candidates: Tuple[RankedCandidate, ...]
    failures: Tuple[CandidateFailure, ...]
    d: int
    criterion: str
    penalty_multiplier: float

    @property
    def best(self) -> FittedModel:
        return self.candidates[0].model

    @property
    def best_order(self) -> Order:
        return self.candidates[0].order

    @property
    def ranking(self) -> List[Order]:
        return [candidate.order for candidate in self.candidates]

    def to_dataframe(self) -> pd.DataFrame:
        """Ranked candidates with their score and information criteria."""
        rows = []
        for rank, candidate in enumerate(self.candidates, start=1):
            model = candidate.model
            rows.append({
                "rank": rank,
                "order": candidate.order,
                "score": candidate.score,
                "loglikelihood": model.loglikelihood,
                "aic": model.aic,
                "aicc": model.aicc,
                "bic": model.bic,
                "n_params": model.n_params,
            })
        return pd.DataFrame(rows).set_index("rank")

    def summary(self) -> str:
        header = f"Order selection ({self.criterion.upper()}, penalty x{self.penalty_multiplier:g}, d={self.d})\n"
        header += "=" * (len(header) - 1) + "\n"
        body = self.to_dataframe().to_string() + "\n"
        if self.failures:
            body += "\nExcluded candidates:\n"
            for failure in self.failures:
                body += f"  {failure.order}: {failure.error_type}: {failure.message.splitlines()[0]}\n"
        return header + body


def _check_bound(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 0:
        raise_invalid_spec_error(f"{name} must be a non-negative integer", param_name=name,
                                 param_value=value, constraint=f"{name} >= 0")
    return int(value)


def _fit_candidate(series: ObservationSeries,
                   spec: ModelSpec,
                   covariates: Optional[CovariateSet],
                   config: EstimationConfig) -> Union[FittedModel, CandidateFailure]:
    try:
        return fit(series, spec, covariates=covariates, config=config)
    except ArimaLabError as e:
        logger.warning(f"Excluding {spec.name}: {type(e).__name__}: {e.message}")
        return CandidateFailure(order=spec.order, error_type=type(e).__name__,
                                message=e.message, step=e.context.get("Step"))


def select(series: Union[ObservationSeries, SeriesLike],
           max_p: int,
           max_d: int,
           max_q: int,
           covariates: Optional[Union[CovariateSet, CovariatesLike]] = None,
           d: Optional[int] = None,
           include_mean: bool = True,
           config: Optional[SelectionConfig] = None,
           estimation_config: Optional[EstimationConfig] = None) -> SelectionResult:
    """
    Select ARIMA orders by information criterion.

    Args:
        series: Target series
        max_p: Largest AR order in the grid
        max_d: Largest admissible differencing order
        max_q: Largest MA order in the grid
        covariates: Optional covariates passed to every fit
        d: Differencing order; chosen by a unit-root test when None
        include_mean: Whether d == 0 candidates carry an intercept
        config: Selection settings, defaults to the global configuration
        estimation_config: Estimation settings passed to every fit

    Returns:
        SelectionResult: Ranked candidates; ``best`` is the top model

    Raises:
        InvalidSpecError: If a bound is negative or d exceeds max_d
        DataError: If the covariates are not aligned with the series
        ModelSelectionError: If no candidate could be fitted

    Examples:
        >>> from arimalab import ModelSpec, simulate, select
        >>> y = simulate(ModelSpec(1, 0, 0, ar_coeffs=[0.7]), 300, random_state=2)
        >>> result = select(y, max_p=2, max_d=0, max_q=1)
        >>> len(result.candidates) + len(result.failures)
        6
    """
    config = config or get_selection_config()
    estimation_config = estimation_config or get_estimation_config()
    max_p = _check_bound("max_p", max_p)
    max_d = _check_bound("max_d", max_d)
    max_q = _check_bound("max_q", max_q)

    series = ObservationSeries.from_data(series)
    covariates = CovariateSet.coerce(covariates, index=series.index)
    if covariates is not None:
        covariates.check_aligned(series)

    if d is None:
        d = ndiffs(series, max_d=max_d, test=config.unit_root_test, alpha=config.alpha)
    else:
        d = _check_bound("d", d)
        if d > max_d:
            raise_invalid_spec_error(f"d={d} exceeds max_d={max_d}", param_name="d",
                                     param_value=d, constraint=f"d <= {max_d}")

    specs = [ModelSpec.orders(p, d, q, include_mean=include_mean)
             for p in range(max_p + 1) for q in range(max_q + 1)]
    logger.info(f"Searching {len(specs)} candidates with d={d}, "
                f"criterion={config.criterion}, workers={config.max_workers}")

    if config.max_workers > 1:
        with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
            outcomes = list(executor.map(
                lambda spec: _fit_candidate(series, spec, covariates, estimation_config), specs))
    else:
        outcomes = [_fit_candidate(series, spec, covariates, estimation_config) for spec in specs]

    ranked: List[RankedCandidate] = []
    failures: List[CandidateFailure] = []
    for outcome in outcomes:
        if isinstance(outcome, CandidateFailure):
            failures.append(outcome)
            continue
        penalty = criterion_penalty(config.criterion, outcome.nobs, outcome.n_params)
        score = -2.0 * outcome.loglikelihood + config.penalty_multiplier * penalty
        ranked.append(RankedCandidate(model=outcome, score=float(score)))

    if not ranked:
        raise ModelSelectionError(
            f"None of the {len(specs)} candidates could be fitted",
            failures=failures,
            details="; ".join(f"{f.order}: {f.error_type}" for f in failures),
            context={"d": d, "Max Order": (max_p, max_q)}
        )

    ranked.sort(key=RankedCandidate.sort_key)
    result = SelectionResult(
        candidates=tuple(ranked),
        failures=tuple(failures),
        d=d,
        criterion=config.criterion,
        penalty_multiplier=config.penalty_multiplier
    )
    logger.info(f"Selected {result.best.name} from {len(ranked)} candidates "
                f"({len(failures)} excluded)")
    return result
