# tests/test_series.py
"""
Tests for observation series, differencing and covariate sets.
"""

import numpy as np
import pandas as pd
import pytest
from hypothesis import given, settings, strategies as st
from numpy.testing import assert_array_equal

from arimalab.core.exceptions import DataError, InvalidSpecError
from arimalab.models.time_series.series import (
    CovariateSet, ObservationSeries, difference, integrate
)


class TestObservationSeries:
    """Tests for ObservationSeries validation and conversion."""

    def test_defaults_to_range_index(self):
        series = ObservationSeries.from_data([1.0, 2.0, 3.0])
        assert isinstance(series.index, pd.RangeIndex)
        assert len(series) == 3
        assert series.nobs == 3

    def test_values_are_read_only(self):
        series = ObservationSeries.from_data(np.arange(5.0))
        with pytest.raises(ValueError):
            series.values[0] = 10.0

    def test_pandas_series_keeps_index_and_name(self, dated_series):
        series = ObservationSeries.from_data(dated_series)
        assert series.name == "sales"
        assert series.index.equals(dated_series.index)
        assert series.index.freqstr == "MS"

    def test_single_column_frame(self):
        frame = pd.DataFrame({"y": [1.0, 2.0, 4.0]})
        series = ObservationSeries.from_data(frame)
        assert series.name == "y"
        assert_array_equal(series.values, [1.0, 2.0, 4.0])

    def test_rejects_multi_column_frame(self):
        frame = pd.DataFrame({"a": [1.0, 2.0], "b": [3.0, 4.0]})
        with pytest.raises(DataError):
            ObservationSeries.from_data(frame)

    @pytest.mark.parametrize("values", [
        [1.0, np.nan, 3.0],
        [1.0, np.inf, 3.0],
        [],
        [[1.0, 2.0], [3.0, 4.0]],
    ])
    def test_rejects_invalid_values(self, values):
        with pytest.raises(DataError):
            ObservationSeries.from_data(values)

    def test_rejects_irregular_datetime_index(self):
        index = pd.DatetimeIndex(["2020-01-01", "2020-01-02", "2020-01-04", "2020-01-08"])
        with pytest.raises(DataError):
            ObservationSeries(np.arange(4.0), index)

    def test_rejects_unsorted_index(self):
        index = pd.DatetimeIndex(["2020-01-03", "2020-01-02", "2020-01-01"])
        with pytest.raises(DataError):
            ObservationSeries(np.arange(3.0), index)

    def test_rejects_period_index_with_gaps(self):
        index = pd.PeriodIndex(["2020-01", "2020-02", "2020-04"], freq="M")
        with pytest.raises(DataError):
            ObservationSeries(np.arange(3.0), index)

    def test_rejects_unevenly_spaced_numeric_index(self):
        with pytest.raises(DataError):
            ObservationSeries(np.arange(3.0), pd.Index([0.0, 1.0, 3.0]))

    def test_rejects_index_length_mismatch(self):
        with pytest.raises(DataError):
            ObservationSeries(np.arange(3.0), pd.RangeIndex(4))

    def test_infers_frequency(self):
        index = pd.DatetimeIndex(["2021-01-01", "2021-01-02", "2021-01-03"])
        series = ObservationSeries(np.arange(3.0), index)
        assert series.index.freq is not None

    def test_future_index_continues_range_index(self):
        series = ObservationSeries.from_data(np.arange(10.0))
        assert list(series.future_index(3)) == [10, 11, 12]

    def test_future_index_continues_dates(self, dated_series):
        series = ObservationSeries.from_data(dated_series)
        future = series.future_index(2)
        assert future[0] == pd.Timestamp("2020-01-01")
        assert future[1] == pd.Timestamp("2020-02-01")

    def test_future_index_continues_periods(self):
        index = pd.period_range("2019Q1", periods=4, freq="Q")
        series = ObservationSeries(np.arange(4.0), index)
        assert series.future_index(1)[0] == pd.Period("2020Q1", freq="Q")

    def test_future_index_continues_numeric_index(self):
        series = ObservationSeries(np.arange(3.0), pd.Index([1990, 1995, 2000]))
        assert list(series.future_index(2)) == [2005, 2010]

    def test_diff_drops_leading_index(self):
        series = ObservationSeries.from_data([1.0, 4.0, 9.0, 16.0])
        diffed = series.diff(1)
        assert_array_equal(diffed.values, [3.0, 5.0, 7.0])
        assert list(diffed.index) == [1, 2, 3]


class TestDifferencing:
    """Tests for difference and integrate."""

    def test_second_difference(self):
        assert_array_equal(difference([1.0, 4.0, 9.0, 16.0, 25.0], 2), [2.0, 2.0, 2.0])

    def test_zero_order_copies(self):
        x = np.array([1.0, 2.0])
        result = difference(x, 0)
        assert_array_equal(result, x)
        assert result is not x

    def test_negative_order(self):
        with pytest.raises(InvalidSpecError):
            difference([1.0, 2.0, 3.0], -1)

    def test_too_short(self):
        with pytest.raises(DataError):
            difference([1.0, 2.0], 2)

    @given(values=st.lists(st.integers(min_value=-1000, max_value=1000), min_size=4, max_size=60),
           d=st.integers(min_value=0, max_value=3))
    @settings(max_examples=50, deadline=None)
    def test_integrate_inverts_difference(self, values, d):
        y = np.asarray(values, dtype=float)
        restored = integrate(difference(y, d), y[:d])
        assert_array_equal(restored, y)


class TestCovariateSet:
    """Tests for CovariateSet construction and alignment."""

    def test_from_mapping_keeps_order(self):
        covariates = CovariateSet({"b": [1.0, 2.0, 3.0], "a": [0.0, 1.0, 0.0]})
        assert covariates.names == ("b", "a")
        assert covariates.to_matrix().shape == (3, 2)
        assert_array_equal(covariates.to_matrix()[:, 0], [1.0, 2.0, 3.0])

    def test_from_frame(self):
        frame = pd.DataFrame({"x": [1.0, 2.0], "z": [3.0, 5.0]},
                             index=pd.date_range("2020-01-01", periods=2, freq="D"))
        covariates = CovariateSet.coerce(frame)
        assert covariates.names == ("x", "z")
        assert covariates.index.equals(frame.index)
        assert covariates.to_frame().equals(frame)

    def test_rejects_length_mismatch(self):
        with pytest.raises(DataError):
            CovariateSet({"a": [1.0, 2.0, 3.0], "b": [1.0, 2.0]})

    def test_rejects_index_mismatch(self):
        a = pd.Series([1.0, 2.0, 3.0], index=pd.RangeIndex(3))
        b = pd.Series([1.0, 2.0, 3.0], index=pd.RangeIndex(1, 4))
        with pytest.raises(DataError):
            CovariateSet({"a": a, "b": b})

    def test_rejects_empty(self):
        with pytest.raises(DataError):
            CovariateSet({})

    def test_rejects_unsupported_container(self):
        with pytest.raises(DataError):
            CovariateSet.coerce([1.0, 2.0, 3.0])

    def test_alignment_with_series(self):
        series = ObservationSeries.from_data(np.arange(4.0))
        covariates = CovariateSet({"x": np.ones(4)}, index=series.index)
        assert covariates.aligned_with(series)
        covariates.check_aligned(series)

        shorter = CovariateSet({"x": np.ones(3)})
        assert not shorter.aligned_with(series)
        with pytest.raises(DataError):
            shorter.check_aligned(series)

        shifted = CovariateSet({"x": pd.Series(np.ones(4), index=pd.RangeIndex(1, 5))})
        with pytest.raises(DataError):
            shifted.check_aligned(series)

    def test_mapping_interface(self):
        covariates = CovariateSet({"x": [1.0, 2.0]})
        assert "x" in covariates
        assert len(covariates) == 1
        assert isinstance(covariates["x"], ObservationSeries)
        assert_array_equal(covariates.diff(1)["x"].values, [1.0])
