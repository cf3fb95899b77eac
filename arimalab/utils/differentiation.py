"""
Numerical Differentiation Module

Finite-difference gradients and Hessians used by the likelihood estimator.
The gradient feeds the convergence check after optimization and the Hessian
of the negative log-likelihood gives the observed information matrix from
which standard errors are computed.

Functions:
    gradient_2sided: Compute two-sided numerical gradient of a function
    hessian_2sided: Compute two-sided numerical Hessian of a function
"""

import logging
from typing import Callable, Optional, Tuple, Union

import numpy as np

from arimalab.core.exceptions import raise_data_error
from arimalab.core.types import Matrix, Vector

# Set up module-level logger
logger = logging.getLogger("arimalab.utils.differentiation")


def _as_vector(x: Vector, func_name: str) -> np.ndarray:
    x = np.asarray(x, dtype=float)
    if x.ndim != 1:
        raise_data_error(
            f"Input to {func_name} must be a 1D vector",
            data_name="x",
            issue=f"expected shape (n,), got {x.shape}"
        )
    return x


def _step_sizes(x: np.ndarray,
                epsilon: Optional[Union[float, np.ndarray]],
                power: float) -> np.ndarray:
    if epsilon is not None:
        return np.broadcast_to(np.asarray(epsilon, dtype=float), x.shape).copy()
    eps = np.finfo(float).eps
    # Scale with the magnitude of each coordinate, never below a fixed floor
    return np.power(eps, power) * np.maximum(np.abs(x), 0.1)


def gradient_2sided(func: Callable[..., float],
                    x: Vector,
                    epsilon: Optional[Union[float, np.ndarray]] = None,
                    args: Tuple = ()) -> Vector:
    """
    Compute two-sided numerical gradient of a function.

    For a function f(x), the gradient is computed as

    ∂f/∂x_i ≈ [f(x + h_i e_i) - f(x - h_i e_i)] / (2 h_i)

    where e_i is the i-th unit vector and h_i a coordinate-specific step.

    Args:
        func: Function to differentiate, should take a vector and return a scalar
        x: Point at which to compute the gradient
        epsilon: Step size(s). If None, steps of eps**(1/3) scaled by max(|x_i|, 0.1)
            are used
        args: Additional arguments to pass to the function

    Returns:
        Gradient vector of the same shape as x

    Raises:
        DataError: If x is not a 1D array

    Examples:
        >>> import numpy as np
        >>> from arimalab.utils.differentiation import gradient_2sided
        >>> def f(x): return x[0]**2 + x[1]**2
        >>> np.round(gradient_2sided(f, np.array([1.0, 2.0])), 6)
        array([2., 4.])
    """
    x = _as_vector(x, "gradient_2sided")
    h = _step_sizes(x, epsilon, 1.0 / 3.0)

    n = x.shape[0]
    grad = np.zeros(n, dtype=float)
    x_plus = x.copy()
    x_minus = x.copy()

    for i in range(n):
        x_plus[i] = x[i] + h[i]
        x_minus[i] = x[i] - h[i]
        grad[i] = (func(x_plus, *args) - func(x_minus, *args)) / (2.0 * h[i])
        x_plus[i] = x[i]
        x_minus[i] = x[i]

    return grad


def hessian_2sided(func: Callable[..., float],
                   x: Vector,
                   epsilon: Optional[Union[float, np.ndarray]] = None,
                   args: Tuple = ()) -> Matrix:
    """
    Compute two-sided numerical Hessian of a function.

    The Hessian elements are computed as

    ∂²f/∂x_i∂x_j ≈ [f(x + h_i e_i + h_j e_j) - f(x + h_i e_i - h_j e_j)
                    - f(x - h_i e_i + h_j e_j) + f(x - h_i e_i - h_j e_j)] / (4 h_i h_j)

    which on the diagonal reduces to
    [f(x + 2h_i e_i) - 2f(x) + f(x - 2h_i e_i)] / (4 h_i²).

    Non-finite function values are propagated into the result rather than
    raised, so the caller can decide how to report an undefined Hessian.

    Args:
        func: Function to differentiate, should take a vector and return a scalar
        x: Point at which to compute the Hessian
        epsilon: Step size(s). If None, steps of eps**(1/4) scaled by max(|x_i|, 0.1)
            are used
        args: Additional arguments to pass to the function

    Returns:
        Symmetric Hessian matrix of shape (n, n) where n is the length of x

    Raises:
        DataError: If x is not a 1D array

    Examples:
        >>> import numpy as np
        >>> from arimalab.utils.differentiation import hessian_2sided
        >>> def f(x): return x[0]**2 + x[0] * x[1]
        >>> np.round(hessian_2sided(f, np.array([1.0, 2.0])), 6)
        array([[2., 1.],
               [1., 0.]])
    """
    x = _as_vector(x, "hessian_2sided")
    h = _step_sizes(x, epsilon, 0.25)

    n = x.shape[0]
    hess = np.zeros((n, n), dtype=float)
    f0 = func(x, *args)

    for i in range(n):
        x_p = x.copy()
        x_m = x.copy()
        x_p[i] += 2.0 * h[i]
        x_m[i] -= 2.0 * h[i]
        hess[i, i] = (func(x_p, *args) - 2.0 * f0 + func(x_m, *args)) / (4.0 * h[i] ** 2)

        for j in range(i + 1, n):
            x_pp = x.copy()
            x_pm = x.copy()
            x_mp = x.copy()
            x_mm = x.copy()
            x_pp[i] += h[i]
            x_pp[j] += h[j]
            x_pm[i] += h[i]
            x_pm[j] -= h[j]
            x_mp[i] -= h[i]
            x_mp[j] += h[j]
            x_mm[i] -= h[i]
            x_mm[j] -= h[j]
            value = (func(x_pp, *args) - func(x_pm, *args)
                     - func(x_mp, *args) + func(x_mm, *args)) / (4.0 * h[i] * h[j])
            hess[i, j] = value
            hess[j, i] = value

    logger.debug(f"Computed {n}x{n} numerical Hessian")
    return hess
