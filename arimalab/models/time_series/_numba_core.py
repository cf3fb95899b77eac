"""
Numba-accelerated core functions for ARMA models.

This module holds the recursive kernels that dominate the run time of fitting,
simulating and forecasting: the conditional-sum-of-squares residual recursion,
the Kalman filter over the ARMA state-space form, the simulation filter, the
forecast recursion and the sample ACF/PACF computations.

All kernels are compiled with ``nopython=True`` and release the GIL, so the
model selector can fit several candidates concurrently from a thread pool.

Conventions used throughout:
    AR polynomial: 1 - phi_1 B - ... - phi_p B^p
    MA polynomial: 1 + theta_1 B + ... + theta_q B^q
"""

import logging
from typing import Tuple

import numpy as np
from numba import jit

# Set up module-level logger
logger = logging.getLogger("arimalab.models.time_series._numba_core")

# ============================================================================
# Estimation kernels
# ============================================================================

@jit(nopython=True, nogil=True, cache=True)
def css_residuals(z: np.ndarray,
                  phi: np.ndarray,
                  theta: np.ndarray) -> np.ndarray:
    """
    Conditional residuals of an ARMA model.

    Residuals are computed from observation p onward with pre-sample
    residuals set to zero:

        e_t = z_t - sum_i phi_i z_{t-i} - sum_j theta_j e_{t-j}

    Args:
        z: Zero-mean input series
        phi: AR coefficients
        theta: MA coefficients

    Returns:
        np.ndarray: Residuals, zero for the first p observations
    """
    n = z.shape[0]
    p = phi.shape[0]
    q = theta.shape[0]
    e = np.zeros(n)

    for t in range(p, n):
        value = z[t]
        for i in range(p):
            value -= phi[i] * z[t - i - 1]
        for j in range(q):
            if t - j - 1 >= 0:
                value -= theta[j] * e[t - j - 1]
        e[t] = value

    return e


@jit(nopython=True, nogil=True, cache=True)
def kalman_filter(z: np.ndarray,
                  T: np.ndarray,
                  Tt: np.ndarray,
                  RR: np.ndarray,
                  P0: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Kalman filter for an ARMA process in Harvey's state-space form.

    The state equation is a_{t+1} = T a_t + R eps_t and the observation is the
    first state element, without measurement noise. All variances are scaled
    by the innovation variance, which is concentrated out of the likelihood
    by the caller.

    Args:
        z: Zero-mean observations
        T: Transition matrix (r x r)
        Tt: Contiguous transpose of T
        RR: Outer product R R' of the selection vector
        P0: Stationary initial state covariance solving P = T P T' + RR

    Returns:
        Tuple[np.ndarray, np.ndarray]: One-step prediction errors v_t and their
        scaled variances F_t. A non-positive F_t stops the filter and is left
        in place so the caller can reject the evaluation.
    """
    n = z.shape[0]
    r = T.shape[0]
    a = np.zeros(r)
    P = P0.copy()
    v = np.zeros(n)
    F = np.zeros(n)

    for t in range(n):
        f_t = P[0, 0]
        F[t] = f_t
        if not f_t > 0.0:
            return v, F
        v_t = z[t] - a[0]
        v[t] = v_t

        # Gain for the one-step state prediction
        TP = T @ P
        K = TP[:, 0] / f_t
        a = T @ a + K * v_t
        P = TP @ Tt + RR - np.outer(K, K) * f_t

    return v, F


# ============================================================================
# Simulation and forecasting kernels
# ============================================================================

@jit(nopython=True, nogil=True, cache=True)
def arma_filter(innovations: np.ndarray,
                phi: np.ndarray,
                theta: np.ndarray) -> np.ndarray:
    """
    Pass white noise through an ARMA filter.

    The noise is first convolved with the MA polynomial, then fed through the
    AR recursion. Pre-sample values of both stages are zero.

    Args:
        innovations: White-noise draws
        phi: AR coefficients
        theta: MA coefficients

    Returns:
        np.ndarray: Filtered series of the same length as innovations
    """
    n = innovations.shape[0]
    p = phi.shape[0]
    q = theta.shape[0]

    ma_part = innovations.copy()
    for t in range(n):
        for j in range(q):
            if t - j - 1 >= 0:
                ma_part[t] += theta[j] * innovations[t - j - 1]

    x = np.zeros(n)
    for t in range(n):
        value = ma_part[t]
        for i in range(p):
            if t - i - 1 >= 0:
                value += phi[i] * x[t - i - 1]
        x[t] = value

    return x


@jit(nopython=True, nogil=True, cache=True)
def arma_forecast(z: np.ndarray,
                  e: np.ndarray,
                  phi: np.ndarray,
                  theta: np.ndarray,
                  steps: int) -> np.ndarray:
    """
    Recursive multi-step ARMA point forecasts.

    Past values of the series and of the residuals are substituted into the
    recurrence; future innovations are set to their expectation of zero.

    Args:
        z: Observed zero-mean series
        e: Residuals aligned with z
        phi: AR coefficients
        theta: MA coefficients
        steps: Number of steps to forecast

    Returns:
        np.ndarray: Point forecasts for steps 1..steps
    """
    n = z.shape[0]
    p = phi.shape[0]
    q = theta.shape[0]

    path = np.zeros(n + steps)
    path[:n] = z
    shocks = np.zeros(n + steps)
    shocks[:n] = e

    for t in range(n, n + steps):
        value = 0.0
        for i in range(p):
            if t - i - 1 >= 0:
                value += phi[i] * path[t - i - 1]
        for j in range(q):
            if t - j - 1 >= 0:
                value += theta[j] * shocks[t - j - 1]
        path[t] = value

    return path[n:]


# ============================================================================
# Correlation kernels
# ============================================================================

@jit(nopython=True, nogil=True, cache=True)
def acf_numba(x: np.ndarray, nlags: int) -> np.ndarray:
    """
    Sample autocorrelation with the biased (divide by n) autocovariance.

    Args:
        x: Input time series (1D array)
        nlags: Number of lags to compute

    Returns:
        np.ndarray: Autocorrelations for lags 0..nlags. A constant series
        yields zeros beyond lag 0.
    """
    n = x.shape[0]
    acf = np.zeros(nlags + 1)
    acf[0] = 1.0

    x_centered = x - np.mean(x)
    variance = np.sum(x_centered ** 2) / n
    if variance <= 1e-15:
        return acf

    for lag in range(1, nlags + 1):
        cov = 0.0
        for t in range(lag, n):
            cov += x_centered[t] * x_centered[t - lag]
        acf[lag] = (cov / n) / variance

    return acf


@jit(nopython=True, nogil=True, cache=True)
def durbin_levinson(acf: np.ndarray, nlags: int) -> np.ndarray:
    """
    Partial autocorrelations from autocorrelations by the Durbin-Levinson recursion.

    Args:
        acf: Autocorrelations for lags 0..nlags
        nlags: Number of lags to compute

    Returns:
        np.ndarray: Partial autocorrelations for lags 0..nlags (lag 0 is 1)
    """
    pacf = np.zeros(nlags + 1)
    pacf[0] = 1.0
    if nlags == 0:
        return pacf

    phi = np.zeros(nlags + 1)
    phi_prev = np.zeros(nlags + 1)
    phi[1] = acf[1]
    pacf[1] = acf[1]
    v = 1.0 - acf[1] ** 2

    for k in range(2, nlags + 1):
        if v <= 1e-15:
            break
        num = acf[k]
        for j in range(1, k):
            num -= phi[j] * acf[k - j]
        phi_kk = num / v

        for j in range(1, k):
            phi_prev[j] = phi[j]
        for j in range(1, k):
            phi[j] = phi_prev[j] - phi_kk * phi_prev[k - j]
        phi[k] = phi_kk
        pacf[k] = phi_kk
        v *= 1.0 - phi_kk ** 2

    return pacf
