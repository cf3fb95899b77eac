"""
ARIMA model specification.

A ModelSpec fixes the orders (p, d, q) of a model and, optionally, its AR and
MA coefficients. Specifications with coefficients drive the simulator;
orders-only specifications are what the estimator fits.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from arimalab.core.exceptions import raise_invalid_spec_error
from arimalab.core.types import CoefficientsLike, Order
from .utils import ar_roots, ma_roots, min_root_modulus

# Set up module-level logger
logger = logging.getLogger("arimalab.models.time_series.spec")


def _check_order(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 0:
        raise_invalid_spec_error(
            f"Order {name} must be a non-negative integer",
            param_name=name,
            param_value=value,
            constraint=f"{name} >= 0"
        )
    return int(value)


def _coefficient_array(name: str, values: Optional[CoefficientsLike]) -> np.ndarray:
    if values is None:
        values = []
    if np.ndim(values) > 1:
        raise_invalid_spec_error(
            f"{name} must be a one-dimensional sequence",
            param_name=name,
            param_value=values
        )
    arr = np.array(values, dtype=float).reshape(-1)
    if not np.all(np.isfinite(arr)):
        raise_invalid_spec_error(
            f"{name} must be finite",
            param_name=name,
            param_value=arr.tolist()
        )
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class ModelSpec:
    """
    Orders and optional coefficients of an ARIMA(p, d, q) model.

    The AR polynomial is 1 - phi_1 B - ... - phi_p B^p and the MA polynomial
    is 1 + theta_1 B + ... + theta_q B^q. Coefficients are either absent
    (orders-only spec) or given for both polynomials with lengths p and q.

    Attributes:
        p: Autoregressive order
        d: Differencing order
        q: Moving-average order
        ar_coeffs: AR coefficients, read-only
        ma_coeffs: MA coefficients, read-only
        include_mean: Whether a model with d == 0 carries an intercept
    """
    p: int
    d: int
    q: int
    ar_coeffs: Optional[CoefficientsLike] = None
    ma_coeffs: Optional[CoefficientsLike] = None
    include_mean: bool = True

    def __post_init__(self) -> None:
        p = _check_order("p", self.p)
        d = _check_order("d", self.d)
        q = _check_order("q", self.q)

        has_coefficients = self.ar_coeffs is not None or self.ma_coeffs is not None
        ar = _coefficient_array("ar_coeffs", self.ar_coeffs)
        ma = _coefficient_array("ma_coeffs", self.ma_coeffs)

        if has_coefficients:
            if len(ar) != p:
                raise_invalid_spec_error(
                    f"Expected {p} AR coefficients, got {len(ar)}",
                    param_name="ar_coeffs",
                    param_value=ar.tolist(),
                    constraint="len(ar_coeffs) == p"
                )
            if len(ma) != q:
                raise_invalid_spec_error(
                    f"Expected {q} MA coefficients, got {len(ma)}",
                    param_name="ma_coeffs",
                    param_value=ma.tolist(),
                    constraint="len(ma_coeffs) == q"
                )

        object.__setattr__(self, "p", p)
        object.__setattr__(self, "d", d)
        object.__setattr__(self, "q", q)
        object.__setattr__(self, "ar_coeffs", ar)
        object.__setattr__(self, "ma_coeffs", ma)
        object.__setattr__(self, "include_mean", bool(self.include_mean))

    @classmethod
    def orders(cls, p: int, d: int, q: int, include_mean: bool = True) -> "ModelSpec":
        """Orders-only specification, as used for fitting."""
        return cls(p, d, q, include_mean=include_mean)

    @property
    def order(self) -> Order:
        return (self.p, self.d, self.q)

    @property
    def has_coefficients(self) -> bool:
        """Whether every AR and MA coefficient is specified."""
        return len(self.ar_coeffs) == self.p and len(self.ma_coeffs) == self.q

    @property
    def has_intercept(self) -> bool:
        return self.include_mean and self.d == 0

    @property
    def name(self) -> str:
        return f"ARIMA({self.p},{self.d},{self.q})"

    def __repr__(self) -> str:
        if self.has_coefficients and (self.p or self.q):
            return (f"ModelSpec({self.name}, ar={self.ar_coeffs.tolist()}, "
                    f"ma={self.ma_coeffs.tolist()}, include_mean={self.include_mean})")
        return f"ModelSpec({self.name}, include_mean={self.include_mean})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModelSpec):
            return NotImplemented
        return (self.order == other.order
                and self.include_mean == other.include_mean
                and np.array_equal(self.ar_coeffs, other.ar_coeffs)
                and np.array_equal(self.ma_coeffs, other.ma_coeffs))

    def __hash__(self) -> int:
        return hash((self.order, self.include_mean,
                     tuple(self.ar_coeffs.tolist()), tuple(self.ma_coeffs.tolist())))

    def with_coefficients(self,
                          ar_coeffs: Optional[CoefficientsLike] = None,
                          ma_coeffs: Optional[CoefficientsLike] = None) -> "ModelSpec":
        """Copy of this spec carrying the given coefficients."""
        return ModelSpec(self.p, self.d, self.q,
                         ar_coeffs=[] if ar_coeffs is None else ar_coeffs,
                         ma_coeffs=[] if ma_coeffs is None else ma_coeffs,
                         include_mean=self.include_mean)

    def ar_roots(self) -> np.ndarray:
        return ar_roots(self.ar_coeffs)

    def ma_roots(self) -> np.ndarray:
        return ma_roots(self.ma_coeffs)

    def is_stationary(self) -> bool:
        return min_root_modulus(self.ar_roots()) > 1.0

    def is_invertible(self) -> bool:
        return min_root_modulus(self.ma_roots()) > 1.0

    def check_stationarity(self, strict: bool = True) -> bool:
        """
        Check the AR roots for stationarity and the MA roots for invertibility.

        Args:
            strict: Raise instead of returning False

        Returns:
            bool: True if every AR and MA root lies outside the unit circle

        Raises:
            InvalidSpecError: If strict and a root lies on or inside the unit circle
        """
        stationary = self.is_stationary()
        invertible = self.is_invertible()
        if strict and not stationary:
            raise_invalid_spec_error(
                "AR coefficients are not stationary",
                param_name="ar_coeffs",
                param_value=self.ar_coeffs.tolist(),
                constraint="all AR roots outside the unit circle",
                context={"Min Root Modulus": min_root_modulus(self.ar_roots())}
            )
        if strict and not invertible:
            raise_invalid_spec_error(
                "MA coefficients are not invertible",
                param_name="ma_coeffs",
                param_value=self.ma_coeffs.tolist(),
                constraint="all MA roots outside the unit circle",
                context={"Min Root Modulus": min_root_modulus(self.ma_roots())}
            )
        return stationary and invertible

    def to_dict(self) -> Dict[str, Any]:
        return {
            "p": self.p,
            "d": self.d,
            "q": self.q,
            "ar_coeffs": self.ar_coeffs.tolist(),
            "ma_coeffs": self.ma_coeffs.tolist(),
            "include_mean": self.include_mean,
        }
