'''
Pytest configuration and fixtures for the arimalab test suite.

Provides seeded random number generators, simulated ARMA series and a
fixture that restores the global configuration after each test.
'''

import numpy as np
import pandas as pd
import pytest

from arimalab.core.config import reset_config
from arimalab.models.time_series import ModelSpec, ObservationSeries, simulate


# ---- Configuration ----

@pytest.fixture(autouse=True)
def clean_config():
    """Restore default configuration after every test."""
    yield
    reset_config()


# ---- Basic Data Generation Fixtures ----

@pytest.fixture
def rng() -> np.random.Generator:
    """Provide a seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def white_noise(rng: np.random.Generator) -> np.ndarray:
    """Gaussian white noise with unit variance."""
    return rng.standard_normal(500)


@pytest.fixture
def ar2_spec() -> ModelSpec:
    """Stationary AR(2) with complex roots."""
    return ModelSpec(2, 0, 0, ar_coeffs=[0.6, -0.4])


@pytest.fixture
def ar2_series(ar2_spec: ModelSpec) -> ObservationSeries:
    """1000 observations from the AR(2) process."""
    return simulate(ar2_spec, 1000, random_state=42)


@pytest.fixture
def arma11_series() -> ObservationSeries:
    """500 observations from an ARMA(1,1) process with a mean of 2."""
    spec = ModelSpec(1, 0, 1, ar_coeffs=[0.7], ma_coeffs=[0.4])
    return simulate(spec, 500, random_state=7, mean=2.0)


@pytest.fixture
def dated_series(rng: np.random.Generator) -> pd.Series:
    """AR(1) series on a monthly DatetimeIndex."""
    spec = ModelSpec(1, 0, 0, ar_coeffs=[0.5])
    values = simulate(spec, 240, random_state=rng).values
    index = pd.date_range("2000-01-01", periods=240, freq="MS")
    return pd.Series(values, index=index, name="sales")


