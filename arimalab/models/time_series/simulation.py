"""
ARIMA simulation.

Draws Gaussian white noise, filters it through the MA polynomial and the AR
recursion, discards a burn-in stretch and integrates the remainder d times.
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd

from arimalab.core.config import SimulationConfig, get_simulation_config
from arimalab.core.exceptions import raise_invalid_spec_error, warn_model
from arimalab.core.types import RandomState
from ._numba_core import arma_filter
from .series import ObservationSeries
from .spec import ModelSpec
from .utils import min_root_modulus

# Set up module-level logger
logger = logging.getLogger("arimalab.models.time_series.simulation")


def _make_generator(random_state: RandomState) -> np.random.Generator:
    if isinstance(random_state, np.random.Generator):
        return random_state
    return np.random.default_rng(random_state)


def simulate(spec: ModelSpec,
             n: int,
             noise_variance: float = 1.0,
             random_state: RandomState = None,
             strict: bool = False,
             mean: float = 0.0,
             index: Optional[pd.Index] = None,
             name: Optional[str] = None,
             config: Optional[SimulationConfig] = None) -> ObservationSeries:
    """
    Simulate n observations from an ARIMA model with known coefficients.

    Args:
        spec: Model specification carrying AR and MA coefficients
        n: Number of observations to return
        noise_variance: Variance of the Gaussian innovations
        random_state: Seed or numpy Generator; the same seed gives the same series
        strict: Reject non-stationary AR or non-invertible MA coefficients
        mean: Constant added to the returned series
        index: Optional index for the result, defaults to a RangeIndex
        name: Optional name for the result
        config: Simulation settings, defaults to the global configuration

    Returns:
        ObservationSeries: The simulated series

    Raises:
        InvalidSpecError: If the spec has no coefficients for a positive order,
            n or noise_variance is not positive, or strict is set and the
            coefficients fail the stationarity/invertibility check

    Examples:
        >>> from arimalab import ModelSpec, simulate
        >>> spec = ModelSpec(1, 0, 0, ar_coeffs=[0.5])
        >>> len(simulate(spec, 200, random_state=1))
        200
    """
    if not spec.has_coefficients:
        raise_invalid_spec_error(
            f"{spec.name} needs AR and MA coefficients to be simulated",
            param_name="spec",
            param_value=repr(spec),
            constraint="len(ar_coeffs) == p and len(ma_coeffs) == q"
        )
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)) or n <= 0:
        raise_invalid_spec_error("Number of observations must be a positive integer",
                                 param_name="n", param_value=n, constraint="n > 0")
    if not np.isfinite(noise_variance) or noise_variance <= 0:
        raise_invalid_spec_error("Noise variance must be positive",
                                 param_name="noise_variance", param_value=noise_variance,
                                 constraint="noise_variance > 0")

    if strict:
        spec.check_stationarity(strict=True)
    elif not spec.is_stationary():
        warn_model(
            "Simulating from non-stationary AR coefficients; the series may explode",
            model_type=spec.name,
            issue="non-stationary AR polynomial",
            value=min_root_modulus(spec.ar_roots())
        )

    config = config or get_simulation_config()
    burn = config.burn_in(spec.p, spec.q)
    rng = _make_generator(random_state)

    innovations = rng.normal(0.0, np.sqrt(noise_variance), size=int(n) + burn)
    x = arma_filter(innovations,
                    np.ascontiguousarray(spec.ar_coeffs, dtype=np.float64),
                    np.ascontiguousarray(spec.ma_coeffs, dtype=np.float64))
    x = x[burn:]

    for _ in range(spec.d):
        x = np.cumsum(x)

    logger.debug(f"Simulated {n} observations from {spec.name} with burn-in {burn}")
    return ObservationSeries(x + mean, index, name)
