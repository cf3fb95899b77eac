'''
Custom exception classes for arimalab.

This module defines the exception hierarchy used throughout the package. Every
error raised by the engine derives from ArimaLabError, which formats the
message together with optional details, a context dictionary and the location
of the caller. The context is meant to tell the caller exactly which model
order, estimation step or forecast horizon failed so the call can be retried
with different settings.

None of these errors are process-fatal. The model selector, in particular,
catches them per candidate and reports them instead of aborting the search.
'''

from typing import Any, Dict, List, Optional, Tuple, Union
import inspect
import warnings
import numpy as np
from pathlib import Path


class ArimaLabError(Exception):
    """Base exception class for all arimalab errors.

    Attributes:
        message: The error message
        details: Additional details about the error
        context: Dictionary containing contextual information about the error
    """

    def __init__(self,
                 message: str,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the ArimaLabError.

        Args:
            message: The primary error message
            details: Additional details about the error
            context: Dictionary containing contextual information about the error
        """
        self.message = message
        self.details = details
        self.context = context or {}

        full_message = message
        if details:
            full_message += f"\n\nDetails: {details}"

        if self.context:
            context_str = "\n".join(f"  {k}: {v}" for k, v in self.context.items())
            full_message += f"\n\nContext:\n{context_str}"

        # Add caller information for better debugging
        frame = inspect.currentframe()
        if frame:
            try:
                frame = frame.f_back
                # Skip the constructors of subclasses
                while frame is not None and frame.f_code.co_name == "__init__":
                    frame = frame.f_back
                if frame:
                    caller_info = inspect.getframeinfo(frame)
                    full_message += f"\n\nLocation: {Path(caller_info.filename).name}:{caller_info.lineno}"
            finally:
                del frame  # Avoid reference cycles

        super().__init__(full_message)


class InvalidSpecError(ArimaLabError):
    """Exception raised for a malformed model specification.

    Raised when model orders are not non-negative integers, when the number of
    AR/MA coefficients does not match the declared orders, or when a strict
    stationarity/invertibility check rejects the coefficients.

    Attributes:
        param_name: The name of the offending field
        param_value: The invalid value
        constraint: Description of the constraint that was violated
    """

    def __init__(self,
                 message: str,
                 param_name: Optional[str] = None,
                 param_value: Optional[Any] = None,
                 constraint: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.param_name = param_name
        self.param_value = param_value
        self.constraint = constraint

        context_dict = context or {}
        if param_name:
            context_dict["Parameter"] = param_name
        if param_value is not None:
            context_dict["Value"] = param_value
        if constraint:
            context_dict["Constraint"] = constraint

        super().__init__(message, details, context_dict)


class ConvergenceError(ArimaLabError):
    """Exception raised when the likelihood optimizer fails to converge.

    Attributes:
        iterations: The number of iterations performed before failure
        tolerance: The convergence tolerance that was used
        final_value: The final objective function value
        gradient_norm: The norm of the final gradient
    """

    def __init__(self,
                 message: str,
                 iterations: Optional[int] = None,
                 tolerance: Optional[float] = None,
                 final_value: Optional[float] = None,
                 gradient_norm: Optional[float] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.iterations = iterations
        self.tolerance = tolerance
        self.final_value = final_value
        self.gradient_norm = gradient_norm

        context_dict = context or {}
        if iterations is not None:
            context_dict["Iterations"] = iterations
        if tolerance is not None:
            context_dict["Tolerance"] = tolerance
        if final_value is not None:
            context_dict["Final Value"] = final_value
        if gradient_norm is not None:
            context_dict["Gradient Norm"] = gradient_norm

        super().__init__(message, details, context_dict)


class SingularInformationError(ArimaLabError):
    """Exception raised when standard errors are undefined at the optimum.

    The observed information matrix (Hessian of the negative log-likelihood)
    could not be inverted, contains non-finite entries, or is not positive
    definite. This usually means the model is close to unidentified, for
    example an ARMA(1,1) with nearly cancelling AR and MA roots.

    Attributes:
        condition_number: Condition number of the information matrix, if known
        param_names: Names of the parameters in the information matrix
    """

    def __init__(self,
                 message: str,
                 condition_number: Optional[float] = None,
                 param_names: Optional[List[str]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.condition_number = condition_number
        self.param_names = param_names

        context_dict = context or {}
        if condition_number is not None:
            context_dict["Condition Number"] = condition_number
        if param_names:
            context_dict["Parameters"] = param_names

        super().__init__(message, details, context_dict)


class ModelNotStationaryError(ArimaLabError):
    """Exception raised when a forecast cannot be extrapolated safely.

    Attributes:
        roots: The offending polynomial roots
        horizon: The forecast horizon that was requested
    """

    def __init__(self,
                 message: str,
                 roots: Optional[np.ndarray] = None,
                 horizon: Optional[int] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.roots = roots
        self.horizon = horizon

        context_dict = context or {}
        if roots is not None and len(roots) > 0:
            context_dict["Root Moduli"] = np.round(np.abs(roots), 6).tolist()
        if horizon is not None:
            context_dict["Horizon"] = horizon

        super().__init__(message, details, context_dict)


class DataError(ArimaLabError):
    """Exception raised for errors related to input data.

    This exception is used when a series contains missing or infinite values,
    has an irregular time index, or is not aligned with its covariates.

    Attributes:
        data_name: The name of the data that caused the error
        issue: Description of the issue with the data
        index: The index or location where the issue was detected
    """

    def __init__(self,
                 message: str,
                 data_name: Optional[str] = None,
                 issue: Optional[str] = None,
                 index: Optional[Union[int, Tuple[int, ...], str]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.data_name = data_name
        self.issue = issue
        self.index = index

        context_dict = context or {}
        if data_name:
            context_dict["Data"] = data_name
        if issue:
            context_dict["Issue"] = issue
        if index is not None:
            context_dict["Index"] = index

        super().__init__(message, details, context_dict)


class ForecastError(ArimaLabError):
    """Exception raised for invalid forecast requests.

    Attributes:
        model_type: The model being used for forecasting
        horizon: The forecast horizon that was requested
        issue: Description of the issue that occurred during forecasting
    """

    def __init__(self,
                 message: str,
                 model_type: Optional[str] = None,
                 horizon: Optional[int] = None,
                 issue: Optional[str] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.model_type = model_type
        self.horizon = horizon
        self.issue = issue

        context_dict = context or {}
        if model_type:
            context_dict["Model Type"] = model_type
        if horizon is not None:
            context_dict["Horizon"] = horizon
        if issue:
            context_dict["Issue"] = issue

        super().__init__(message, details, context_dict)


class ModelSelectionError(ArimaLabError):
    """Exception raised when no candidate of an order search could be fitted.

    Attributes:
        failures: Description of every excluded candidate
    """

    def __init__(self,
                 message: str,
                 failures: Optional[List[Any]] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.failures = failures or []

        context_dict = context or {}
        if self.failures:
            context_dict["Failures"] = len(self.failures)

        super().__init__(message, details, context_dict)


class ConfigurationError(ArimaLabError):
    """Exception raised for invalid configuration values.

    Attributes:
        section: The configuration section
        option: The configuration option
        value: The invalid value
    """

    def __init__(self,
                 message: str,
                 section: Optional[str] = None,
                 option: Optional[str] = None,
                 value: Optional[Any] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.section = section
        self.option = option
        self.value = value

        context_dict = context or {}
        if section:
            context_dict["Section"] = section
        if option:
            context_dict["Option"] = option
        if value is not None:
            context_dict["Value"] = value

        super().__init__(message, details, context_dict)


class ArimaLabWarning(Warning):
    """Base warning class for all arimalab warnings.

    Attributes:
        message: The warning message
        details: Additional details about the warning
        context: Dictionary containing contextual information about the warning
    """

    def __init__(self,
                 message: str,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details
        self.context = context or {}

        full_message = message
        if details:
            full_message += f"\n\nDetails: {details}"

        if self.context:
            context_str = "\n".join(f"  {k}: {v}" for k, v in self.context.items())
            full_message += f"\n\nContext:\n{context_str}"

        super().__init__(full_message)


class ConvergenceWarning(ArimaLabWarning):
    """Warning for questionable but accepted convergence.

    Attributes:
        iterations: The number of iterations performed
        gradient_norm: The norm of the final gradient
    """

    def __init__(self,
                 message: str,
                 iterations: Optional[int] = None,
                 gradient_norm: Optional[float] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.iterations = iterations
        self.gradient_norm = gradient_norm

        context_dict = context or {}
        if iterations is not None:
            context_dict["Iterations"] = iterations
        if gradient_norm is not None:
            context_dict["Gradient Norm"] = gradient_norm

        super().__init__(message, details, context_dict)


class ModelWarning(ArimaLabWarning):
    """Warning for fitted models that are usable but suspicious.

    Typical causes are MA roots or AR roots very close to the unit circle.

    Attributes:
        model_type: The model description, e.g. "ARIMA(1,0,1)"
        issue: Description of the model issue
        value: The value that triggered the warning
    """

    def __init__(self,
                 message: str,
                 model_type: Optional[str] = None,
                 issue: Optional[str] = None,
                 value: Optional[Any] = None,
                 details: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None) -> None:
        self.model_type = model_type
        self.issue = issue
        self.value = value

        context_dict = context or {}
        if model_type:
            context_dict["Model Type"] = model_type
        if issue:
            context_dict["Issue"] = issue
        if value is not None:
            context_dict["Value"] = value

        super().__init__(message, details, context_dict)


# Helper functions for raising exceptions with consistent formatting

def raise_data_error(message: str,
                     data_name: Optional[str] = None,
                     issue: Optional[str] = None,
                     index: Optional[Union[int, Tuple[int, ...], str]] = None,
                     details: Optional[str] = None,
                     context: Optional[Dict[str, Any]] = None) -> None:
    """Raise a DataError with consistent formatting.

    Raises:
        DataError: The formatted data error
    """
    raise DataError(message, data_name, issue, index, details, context)


def raise_invalid_spec_error(message: str,
                             param_name: Optional[str] = None,
                             param_value: Optional[Any] = None,
                             constraint: Optional[str] = None,
                             details: Optional[str] = None,
                             context: Optional[Dict[str, Any]] = None) -> None:
    """Raise an InvalidSpecError with consistent formatting.

    Raises:
        InvalidSpecError: The formatted specification error
    """
    raise InvalidSpecError(message, param_name, param_value, constraint, details, context)


# Helper functions for issuing warnings with consistent formatting

def warn_convergence(message: str,
                     iterations: Optional[int] = None,
                     gradient_norm: Optional[float] = None,
                     details: Optional[str] = None,
                     context: Optional[Dict[str, Any]] = None) -> None:
    """Issue a ConvergenceWarning with consistent formatting."""
    warnings.warn(
        ConvergenceWarning(message, iterations, gradient_norm, details, context),
        stacklevel=3
    )


def warn_model(message: str,
               model_type: Optional[str] = None,
               issue: Optional[str] = None,
               value: Optional[Any] = None,
               details: Optional[str] = None,
               context: Optional[Dict[str, Any]] = None) -> None:
    """Issue a ModelWarning with consistent formatting."""
    warnings.warn(
        ModelWarning(message, model_type, issue, value, details, context),
        stacklevel=3
    )
