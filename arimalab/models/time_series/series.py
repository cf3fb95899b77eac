"""
Observation series and covariate containers.

An ObservationSeries is an immutable, regularly indexed sequence of finite
real samples. A CovariateSet is an immutable mapping from covariate names to
ObservationSeries that all share one index. Both are validated once, at
construction, so the numerical components can rely on clean inputs.

The module also provides differencing and its exact inverse.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
from pandas.tseries.frequencies import to_offset

from arimalab.core.exceptions import DataError, raise_data_error, raise_invalid_spec_error
from arimalab.core.types import CovariatesLike, Matrix, SeriesLike, Vector

# Set up module-level logger
logger = logging.getLogger("arimalab.models.time_series.series")


def _validate_index(index: Optional[pd.Index], n: int, data_name: str) -> pd.Index:
    """Check that an index is regular and return a normalized copy."""
    if index is None:
        return pd.RangeIndex(n)

    if not isinstance(index, pd.Index):
        index = pd.Index(index)

    if len(index) != n:
        raise_data_error(
            f"Index length {len(index)} does not match data length {n}",
            data_name=data_name,
            issue="length mismatch"
        )

    if isinstance(index, pd.RangeIndex):
        if index.step <= 0:
            raise_data_error("Index must be increasing", data_name=data_name,
                             issue="non-increasing index")
        return index

    if index.has_duplicates:
        raise_data_error("Index contains duplicate entries", data_name=data_name,
                         issue="duplicate index entries")

    if isinstance(index, pd.DatetimeIndex):
        if n > 1 and not index.is_monotonic_increasing:
            raise_data_error("Time index must be increasing", data_name=data_name,
                             issue="non-increasing index")
        freq = index.freq
        if freq is None and n >= 3:
            freq = pd.infer_freq(index)
            if freq is None:
                raise_data_error(
                    "Time index is irregular; no frequency could be inferred",
                    data_name=data_name,
                    issue="irregular spacing"
                )
        elif freq is None and n == 2:
            freq = to_offset(index[1] - index[0])
        if freq is None:
            return index
        return pd.DatetimeIndex(index, freq=freq)

    if isinstance(index, pd.PeriodIndex):
        if n > 1 and not index.is_monotonic_increasing:
            raise_data_error("Period index must be increasing", data_name=data_name,
                             issue="non-increasing index")
        steps = np.diff(index.asi8)
        if len(steps) > 0 and not np.all(steps == 1):
            raise_data_error("Period index has gaps", data_name=data_name,
                             issue="irregular spacing")
        return index

    if pd.api.types.is_numeric_dtype(index):
        positions = np.asarray(index, dtype=float)
        if not np.all(np.isfinite(positions)):
            raise_data_error("Numeric index contains non-finite entries",
                             data_name=data_name, issue="non-finite index")
        if n > 1:
            steps = np.diff(positions)
            if steps[0] <= 0 or not np.allclose(steps, steps[0], rtol=1e-9, atol=0.0):
                bad = int(np.argmax(~np.isclose(steps, steps[0], rtol=1e-9, atol=0.0))) + 1
                raise_data_error(
                    "Numeric index is not evenly spaced and increasing",
                    data_name=data_name,
                    issue="irregular spacing",
                    index=bad
                )
        return index

    raise_data_error(
        f"Unsupported index type {type(index).__name__}",
        data_name=data_name,
        issue="index must be a RangeIndex, numeric, DatetimeIndex or PeriodIndex"
    )


def _extend_index(index: pd.Index, steps: int) -> pd.Index:
    """Continue a validated index for ``steps`` periods."""
    if isinstance(index, pd.RangeIndex):
        start = index.start + index.step * len(index)
        return pd.RangeIndex(start, start + index.step * steps, index.step)

    if isinstance(index, pd.DatetimeIndex):
        if index.freq is None:
            raise_data_error(
                "Cannot extend a time index without a frequency",
                data_name="index",
                issue="a single timestamp has no spacing"
            )
        return pd.date_range(start=index[-1] + index.freq, periods=steps, freq=index.freq)

    if isinstance(index, pd.PeriodIndex):
        return pd.period_range(start=index[-1] + 1, periods=steps, freq=index.freq)

    last = index[-1]
    step = index[-1] - index[-2] if len(index) > 1 else 1
    return pd.Index(last + step * np.arange(1, steps + 1))


@dataclass(frozen=True, eq=False)
class ObservationSeries:
    """
    An immutable, regularly indexed series of finite observations.

    Attributes:
        values: Read-only float array of observations
        index: Regular pandas index of the same length
        name: Optional series name
    """
    values: Vector
    index: Optional[pd.Index] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        data_name = self.name or "series"
        values = np.array(self.values, dtype=float)
        if values.ndim != 1:
            raise_data_error(
                "Observations must be one-dimensional",
                data_name=data_name,
                issue=f"got array with shape {values.shape}"
            )
        if values.shape[0] == 0:
            raise_data_error("Series is empty", data_name=data_name, issue="no observations")

        bad = ~np.isfinite(values)
        if np.any(bad):
            first = int(np.argmax(bad))
            raise_data_error(
                "Series contains missing or infinite values",
                data_name=data_name,
                issue="non-finite values",
                index=first
            )

        index = _validate_index(self.index, values.shape[0], data_name)
        values.setflags(write=False)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "index", index)

    @classmethod
    def from_data(cls,
                  data: Union[SeriesLike, "ObservationSeries"],
                  index: Optional[pd.Index] = None,
                  name: Optional[str] = None) -> "ObservationSeries":
        """
        Build a series from a list, array, pandas Series or another ObservationSeries.

        A pandas Series keeps its own index and name unless they are given.
        """
        if isinstance(data, ObservationSeries):
            if index is None and name is None:
                return data
            return cls(data.values, data.index if index is None else index,
                       data.name if name is None else name)

        if isinstance(data, pd.DataFrame):
            if data.shape[1] != 1:
                raise_data_error(
                    "A DataFrame can only be used as a series if it has one column",
                    data_name=name or "series",
                    issue=f"got {data.shape[1]} columns"
                )
            data = data.iloc[:, 0]

        if isinstance(data, pd.Series):
            series_name = name if name is not None else (
                str(data.name) if data.name is not None else None)
            return cls(data.to_numpy(dtype=float),
                       data.index if index is None else index,
                       series_name)

        return cls(np.asarray(data, dtype=float), index, name)

    def __len__(self) -> int:
        return self.values.shape[0]

    def __repr__(self) -> str:
        return (f"ObservationSeries(name={self.name!r}, nobs={len(self)}, "
                f"index={type(self.index).__name__})")

    @property
    def nobs(self) -> int:
        return len(self)

    def to_series(self) -> pd.Series:
        """Return a writable pandas copy of the series."""
        return pd.Series(self.values.copy(), index=self.index, name=self.name)

    def diff(self, d: int = 1) -> "ObservationSeries":
        """Difference the series d times, dropping the first d index entries."""
        return ObservationSeries(difference(self.values, d), self.index[d:], self.name)

    def future_index(self, steps: int) -> pd.Index:
        """Index of the ``steps`` periods that follow the last observation."""
        return _extend_index(self.index, steps)


def difference(values: Union[SeriesLike, ObservationSeries], d: int = 1) -> np.ndarray:
    """
    Difference a sequence d times.

    Args:
        values: Input sequence
        d: Number of differences

    Returns:
        np.ndarray: Differenced values of length len(values) - d

    Raises:
        InvalidSpecError: If d is negative
        DataError: If the sequence is not longer than d
    """
    if isinstance(values, ObservationSeries):
        values = values.values
    if not isinstance(d, (int, np.integer)) or isinstance(d, bool) or d < 0:
        raise_invalid_spec_error(
            "Differencing order must be a non-negative integer",
            param_name="d",
            param_value=d,
            constraint="d >= 0"
        )

    x = np.asarray(values, dtype=float)
    if x.shape[0] <= d:
        raise_data_error(
            f"Cannot difference {x.shape[0]} observations {d} times",
            data_name="series",
            issue="series too short for differencing order"
        )
    if d == 0:
        return x.copy()
    return np.diff(x, n=d)


def integrate(differenced: Union[SeriesLike, np.ndarray],
              initial_values: Union[SeriesLike, np.ndarray]) -> np.ndarray:
    """
    Undo ``difference``.

    ``integrate(difference(y, d), y[:d])`` reproduces ``y``; d is the length
    of ``initial_values``.

    Args:
        differenced: Differenced values
        initial_values: The first d values of the undifferenced sequence

    Returns:
        np.ndarray: Reconstructed sequence of length len(differenced) + d
    """
    current = np.asarray(differenced, dtype=float)
    initial = np.asarray(initial_values, dtype=float)
    d = initial.shape[0]
    if d == 0:
        return current.copy()

    # First element of each intermediate difference level
    starts = [initial[0]]
    level = initial
    for _ in range(1, d):
        level = np.diff(level)
        starts.append(level[0])

    for j in range(d - 1, -1, -1):
        current = np.concatenate(([starts[j]], starts[j] + np.cumsum(current)))

    return current


class CovariateSet(Mapping):
    """
    Immutable mapping from covariate name to ObservationSeries.

    All members share one length and one index. Insertion order is kept and
    defines the column order of ``to_matrix``.
    """

    def __init__(self,
                 covariates: Mapping[str, Union[SeriesLike, ObservationSeries]],
                 index: Optional[pd.Index] = None) -> None:
        if len(covariates) == 0:
            raise_data_error("Covariate set is empty", data_name="covariates",
                             issue="no covariates")

        members: Dict[str, ObservationSeries] = {}
        for name, data in covariates.items():
            name = str(name)
            member_index = None
            if index is not None and not isinstance(data, (pd.Series, ObservationSeries)):
                member_index = index
            members[name] = ObservationSeries.from_data(data, index=member_index, name=name)

        first_name, first = next(iter(members.items()))
        for name, member in members.items():
            if len(member) != len(first):
                raise_data_error(
                    f"Covariate {name!r} has {len(member)} observations, "
                    f"{first_name!r} has {len(first)}",
                    data_name=name,
                    issue="length mismatch"
                )
            if not member.index.equals(first.index):
                raise_data_error(
                    f"Covariate {name!r} is not aligned with {first_name!r}",
                    data_name=name,
                    issue="index mismatch"
                )

        self._members = members
        self._index = first.index

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "CovariateSet":
        """Build a covariate set with one member per DataFrame column."""
        return cls({str(col): frame[col] for col in frame.columns})

    @classmethod
    def coerce(cls,
               covariates: Optional[Union[CovariatesLike, "CovariateSet"]],
               index: Optional[pd.Index] = None) -> Optional["CovariateSet"]:
        """
        Convert supported covariate inputs to a CovariateSet.

        Plain arrays and lists take ``index``; pandas objects keep their own.
        """
        if covariates is None or isinstance(covariates, CovariateSet):
            return covariates
        if isinstance(covariates, pd.DataFrame):
            return cls.from_frame(covariates)
        if isinstance(covariates, Mapping):
            return cls(covariates, index=index)
        raise_data_error(
            f"Unsupported covariate container {type(covariates).__name__}",
            data_name="covariates",
            issue="expected a mapping, DataFrame or CovariateSet"
        )

    def __getitem__(self, name: str) -> ObservationSeries:
        return self._members[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def __repr__(self) -> str:
        return f"CovariateSet(names={list(self._members)}, nobs={self.nobs})"

    @property
    def names(self) -> Sequence[str]:
        return tuple(self._members)

    @property
    def index(self) -> pd.Index:
        return self._index

    @property
    def nobs(self) -> int:
        return len(self._index)

    def aligned_with(self, series: ObservationSeries) -> bool:
        """Whether the covariates share the length and index of ``series``."""
        return self.nobs == len(series) and self._index.equals(series.index)

    def check_aligned(self, series: ObservationSeries, data_name: str = "covariates") -> None:
        """
        Raises:
            DataError: If the covariates are not aligned with ``series``
        """
        if self.nobs != len(series):
            raise DataError(
                f"Covariates have {self.nobs} observations, target has {len(series)}",
                data_name=data_name,
                issue="length mismatch"
            )
        if not self._index.equals(series.index):
            raise DataError(
                "Covariate index does not match the target index",
                data_name=data_name,
                issue="index mismatch"
            )

    def to_matrix(self) -> Matrix:
        """Stack the covariates column-wise into an (nobs, k) array."""
        return np.column_stack([member.values for member in self._members.values()])

    def diff(self, d: int = 1) -> "CovariateSet":
        """Difference every covariate d times."""
        return CovariateSet({name: member.diff(d) for name, member in self._members.items()})

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({name: member.values for name, member in self._members.items()},
                            index=self._index)
