"""
Polynomial and state-space utilities for ARMA models.

This module contains the small numerical building blocks shared by the
simulator, the estimator, the diagnostics and the forecaster:

- roots of the AR and MA lag polynomials and the stationarity/invertibility
  checks built on them
- MA(infinity) (psi) weights, including those of integrated models
- the partial-autocorrelation reparameterization that maps unconstrained
  optimizer coordinates to stationary AR (or invertible MA) coefficients
- Harvey's state-space matrices and the stationary state covariance
- theoretical autocovariances and information criteria

Conventions:
    AR polynomial: phi(B) = 1 - phi_1 B - ... - phi_p B^p
    MA polynomial: theta(B) = 1 + theta_1 B + ... + theta_q B^q
"""

import logging
from typing import Dict, Tuple

import numpy as np
from scipy import linalg

from arimalab.core.exceptions import raise_data_error
from arimalab.core.types import Matrix, PolynomialCoefficients, Vector

# Set up module-level logger
logger = logging.getLogger("arimalab.models.time_series.utils")

# Largest partial autocorrelation accepted when mapping coefficients back to
# the unconstrained space
_MAX_PARTIAL = 1.0 - 1e-8


def _as_coefficients(params: Vector, name: str) -> np.ndarray:
    params = np.asarray(params, dtype=float)
    if params.ndim != 1:
        raise_data_error(
            f"{name} parameters must be a 1D array",
            data_name=name,
            issue=f"got shape {params.shape}"
        )
    return params


def _polynomial_roots(lag_coefficients: np.ndarray) -> np.ndarray:
    """Roots of 1 + c_1 z + ... + c_k z^k given [c_1, ..., c_k]."""
    # np.roots expects the highest power first
    poly = np.concatenate((lag_coefficients[::-1], [1.0]))
    return np.roots(poly)


def ar_roots(ar_params: PolynomialCoefficients) -> np.ndarray:
    """
    Compute the roots of the AR polynomial 1 - a_1 z - ... - a_p z^p.

    Args:
        ar_params: AR parameters [a_1, a_2, ..., a_p]

    Returns:
        Array of roots of the AR polynomial; empty for p = 0

    Examples:
        >>> import numpy as np
        >>> from arimalab.models.time_series.utils import ar_roots
        >>> np.abs(ar_roots(np.array([0.5])))
        array([2.])
    """
    ar_params = _as_coefficients(ar_params, "AR")
    if len(ar_params) == 0:
        return np.array([])
    return _polynomial_roots(-ar_params)


def ma_roots(ma_params: PolynomialCoefficients) -> np.ndarray:
    """
    Compute the roots of the MA polynomial 1 + b_1 z + ... + b_q z^q.

    Args:
        ma_params: MA parameters [b_1, b_2, ..., b_q]

    Returns:
        Array of roots of the MA polynomial; empty for q = 0
    """
    ma_params = _as_coefficients(ma_params, "MA")
    if len(ma_params) == 0:
        return np.array([])
    return _polynomial_roots(ma_params)


def min_root_modulus(roots: np.ndarray) -> float:
    """Smallest root modulus, infinity when there are no roots."""
    if len(roots) == 0:
        return np.inf
    return float(np.min(np.abs(roots)))


def check_ar_stationarity(ar_params: PolynomialCoefficients, margin: float = 1.0) -> bool:
    """
    Check if AR parameters satisfy the stationarity condition.

    An AR process is stationary if all roots of the AR polynomial lie outside
    the unit circle. With ``margin`` above one the roots must clear a circle of
    that radius instead.

    Examples:
        >>> import numpy as np
        >>> from arimalab.models.time_series.utils import check_ar_stationarity
        >>> check_ar_stationarity(np.array([0.5, -0.2]))
        True
        >>> check_ar_stationarity(np.array([1.2, -0.2]))
        False
    """
    return bool(min_root_modulus(ar_roots(ar_params)) > margin)


def check_ma_invertibility(ma_params: PolynomialCoefficients, margin: float = 1.0) -> bool:
    """
    Check if MA parameters satisfy the invertibility condition.

    An MA process is invertible if all roots of the MA polynomial lie outside
    the unit circle (or outside a circle of radius ``margin``).
    """
    return bool(min_root_modulus(ma_roots(ma_params)) > margin)


def integrated_ar_polynomial(ar_params: PolynomialCoefficients, d: int) -> np.ndarray:
    """
    AR coefficients of phi(B)(1 - B)^d in the 1 - a_1 B - ... convention.

    Args:
        ar_params: AR parameters of the stationary part
        d: Number of unit roots

    Returns:
        np.ndarray: Coefficients [a_1, ..., a_{p+d}]
    """
    poly = np.concatenate(([1.0], -_as_coefficients(ar_params, "AR")))
    for _ in range(d):
        poly = np.convolve(poly, [1.0, -1.0])
    return -poly[1:]


def psi_weights(ar_params: PolynomialCoefficients,
                ma_params: PolynomialCoefficients,
                steps: int,
                d: int = 0) -> np.ndarray:
    """
    MA(infinity) weights of an ARIMA(p, d, q) model.

    The weights satisfy psi_0 = 1 and

        psi_j = theta_j + sum_{i=1}^{min(j, p+d)} a_i psi_{j-i}

    where a are the coefficients of phi(B)(1 - B)^d and theta_j = 0 for j > q.

    Args:
        ar_params: AR parameters
        ma_params: MA parameters
        steps: Number of weights to return
        d: Differencing order

    Returns:
        np.ndarray: Weights psi_0, ..., psi_{steps-1}
    """
    a = integrated_ar_polynomial(ar_params, d)
    theta = _as_coefficients(ma_params, "MA")
    p_total = len(a)
    q = len(theta)

    psi = np.zeros(steps)
    if steps == 0:
        return psi
    psi[0] = 1.0
    for j in range(1, steps):
        value = theta[j - 1] if j <= q else 0.0
        for i in range(1, min(j, p_total) + 1):
            value += a[i - 1] * psi[j - i]
        psi[j] = value
    return psi


def forecast_error_variance(ar_params: PolynomialCoefficients,
                            ma_params: PolynomialCoefficients,
                            sigma2: float,
                            steps: int,
                            d: int = 0) -> np.ndarray:
    """
    Forecast error variances sigma2 * sum_{j<k} psi_j^2 for k = 1..steps.

    The sequence is non-decreasing in k by construction.
    """
    psi = psi_weights(ar_params, ma_params, steps, d)
    return sigma2 * np.cumsum(psi ** 2)


# ============================================================================
# Reparameterization
# ============================================================================

def constrain_stationary(unconstrained: Vector) -> np.ndarray:
    """
    Map unconstrained values to stationary AR coefficients.

    Each coordinate is squashed by tanh into a partial autocorrelation in
    (-1, 1); the Durbin-Levinson recursion then builds the AR coefficients.
    Any real input yields a stationary polynomial.

    Args:
        unconstrained: Real vector of length p

    Returns:
        np.ndarray: AR coefficients [phi_1, ..., phi_p]
    """
    partial = np.tanh(np.asarray(unconstrained, dtype=float))
    phi = np.zeros(0)
    for r in partial:
        phi = np.append(phi - r * phi[::-1], r)
    return phi


def unconstrain_stationary(constrained: Vector) -> np.ndarray:
    """
    Inverse of ``constrain_stationary``.

    Non-stationary inputs have their partial autocorrelations clipped just
    inside (-1, 1), so the result is always finite.
    """
    phi = np.asarray(constrained, dtype=float).copy()
    p = len(phi)
    partial = np.zeros(p)
    for k in range(p, 0, -1):
        r = float(np.clip(phi[k - 1], -_MAX_PARTIAL, _MAX_PARTIAL))
        partial[k - 1] = r
        head = phi[:k - 1]
        phi = (head + r * head[::-1]) / (1.0 - r * r)
    return np.arctanh(partial)


def constrain_invertible(unconstrained: Vector) -> np.ndarray:
    """Map unconstrained values to invertible MA coefficients."""
    return -constrain_stationary(unconstrained)


def unconstrain_invertible(constrained: Vector) -> np.ndarray:
    """Inverse of ``constrain_invertible``."""
    return unconstrain_stationary(-np.asarray(constrained, dtype=float))


# ============================================================================
# State space
# ============================================================================

def state_space_matrices(ar_params: PolynomialCoefficients,
                         ma_params: PolynomialCoefficients) -> Tuple[Matrix, Vector]:
    """
    Harvey's state-space form of an ARMA(p, q) process.

    With r = max(p, q + 1) the transition matrix has the AR coefficients in its
    first column and ones on the superdiagonal; the selection vector is
    [1, theta_1, ..., theta_{r-1}]. The first state element is the observation.

    Returns:
        Tuple[np.ndarray, np.ndarray]: Transition matrix T (r x r) and selection vector R (r,)
    """
    phi = _as_coefficients(ar_params, "AR")
    theta = _as_coefficients(ma_params, "MA")
    r = max(len(phi), len(theta) + 1)

    T = np.zeros((r, r))
    T[:len(phi), 0] = phi
    T[np.arange(r - 1), np.arange(1, r)] = 1.0

    R = np.zeros(r)
    R[0] = 1.0
    R[1:len(theta) + 1] = theta
    return T, R


def stationary_state_covariance(T: Matrix, R: Vector) -> Matrix:
    """Solve P = T P T' + R R' for the unconditional state covariance (unit noise variance)."""
    return linalg.solve_discrete_lyapunov(T, np.outer(R, R))


def arma_autocovariance(ar_params: PolynomialCoefficients,
                        ma_params: PolynomialCoefficients,
                        sigma2: float,
                        max_lag: int) -> np.ndarray:
    """
    Theoretical autocovariances gamma_0..gamma_max_lag of a stationary ARMA process.

    Uses gamma_k = sigma2 * (T^k P)[0, 0] with P the stationary state covariance.
    """
    T, R = state_space_matrices(ar_params, ma_params)
    P = stationary_state_covariance(T, R)
    gamma = np.zeros(max_lag + 1)
    M = P.copy()
    for k in range(max_lag + 1):
        gamma[k] = sigma2 * M[0, 0]
        M = T @ M
    return gamma


def information_criteria(loglikelihood: float, nobs: int, nparams: int) -> Dict[str, float]:
    """
    Compute information criteria for model selection.

    AIC = -2 llf + 2k, AICc = AIC + 2k(k+1)/(n-k-1), BIC = -2 llf + k log(n).
    AICc is infinite when n - k - 1 <= 0.

    Args:
        loglikelihood: Log-likelihood value
        nobs: Number of observations
        nparams: Number of parameters, including the innovation variance

    Returns:
        Dict[str, float]: Values keyed by "aic", "aicc" and "bic"

    Examples:
        >>> from arimalab.models.time_series.utils import information_criteria
        >>> ic = information_criteria(-100.0, 100, 3)
        >>> round(ic["aic"], 2), round(ic["bic"], 2)
        (206.0, 213.82)
    """
    aic = -2.0 * loglikelihood + 2.0 * nparams
    denom = nobs - nparams - 1
    aicc = aic + 2.0 * nparams * (nparams + 1) / denom if denom > 0 else np.inf
    bic = -2.0 * loglikelihood + nparams * np.log(nobs)
    return {"aic": float(aic), "aicc": float(aicc), "bic": float(bic)}


def criterion_penalty(criterion: str, nobs: int, nparams: int) -> float:
    """Complexity penalty of an information criterion, i.e. the criterion minus -2 llf."""
    ic = information_criteria(0.0, nobs, nparams)
    return ic[criterion]
