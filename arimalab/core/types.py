# arimalab/core/types.py

"""
Core type aliases for arimalab.

The aliases document the expected shape of arrays and the accepted input
containers at function boundaries; they do not enforce anything at runtime.
"""

from typing import Literal, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

# NumPy array aliases
Vector = np.ndarray  # 1D array
Matrix = np.ndarray  # 2D array
PolynomialCoefficients = np.ndarray  # AR or MA coefficients without the leading one

# Accepted inputs for a single series
SeriesLike = Union[Sequence[float], np.ndarray, pd.Series]

# Accepted inputs for a set of covariates
CovariatesLike = Union[Mapping[str, SeriesLike], pd.DataFrame]

# Coefficient containers
CoefficientsLike = Union[Sequence[float], np.ndarray]

# Seed or generator for random draws
RandomState = Optional[Union[int, np.random.Generator]]

# Model order (p, d, q)
Order = Tuple[int, int, int]

# Option literals
Criterion = Literal["aic", "aicc", "bic"]
UnitRootTest = Literal["kpss", "adf"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
AdequacyStatus = Literal["adequate", "partial", "inadequate"]
