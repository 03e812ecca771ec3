"""
pytest configuration and shared fixtures.
"""

import matplotlib
import numpy as np
import pytest

matplotlib.use("Agg")

from pysurvplot.plotting.options import reset_option
from pysurvplot.survival import CurveModel, StratumCurve, survfit


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture(autouse=True)
def _clean_options():
    """Every test starts and ends with default plotting options."""
    reset_option()
    yield
    reset_option()


@pytest.fixture
def two_strata_model():
    """Strata "A" and "B" observed at times 0..5.

    Stratum "A" has n.risk [10, 9, 8, 6, 5, 5].
    """
    time = [0, 1, 2, 3, 4, 5]
    a = StratumCurve.from_arrays(
        "A", time, [1.0, 0.9, 0.8, 0.7, 0.6, 0.6],
        n_risk=[10, 9, 8, 6, 5, 5],
        n_event=[0, 1, 1, 1, 1, 0],
        n_censor=[0, 0, 0, 1, 0, 5],
    )
    b = StratumCurve.from_arrays(
        "B", time, [1.0, 0.95, 0.85, 0.8, 0.7, 0.65],
        n_risk=[12, 12, 11, 10, 9, 7],
        n_event=[0, 0, 1, 1, 1, 1],
        n_censor=[0, 0, 0, 0, 1, 6],
    )
    return CurveModel.from_curves([a, b])


@pytest.fixture
def km_data(rng):
    """Two-arm exponential survival data with censoring."""
    n = 60
    group = np.repeat(["control", "treated"], n // 2)
    scale = np.where(group == "control", 8.0, 14.0)
    event_time = rng.exponential(scale)
    censor_time = rng.uniform(5, 30, n)
    time = np.round(np.minimum(event_time, censor_time), 1)
    event = (event_time <= censor_time).astype(np.float64)
    return time, event, group


@pytest.fixture
def km_model(km_data):
    time, event, group = km_data
    return survfit(time, event, strata=group)


@pytest.fixture
def single_model(km_data):
    time, event, _ = km_data
    return survfit(time, event)


@pytest.fixture
def competing_data(rng):
    """Two causes plus censoring, in two strata."""
    n = 80
    strata = np.repeat(["low", "high"], n // 2)
    t1 = rng.exponential(np.where(strata == "low", 20.0, 10.0))
    t2 = rng.exponential(15.0, n)
    censor = rng.uniform(5, 40, n)
    first = np.minimum(np.minimum(t1, t2), censor)
    status = np.where(censor == first, 0, np.where(t1 == first, 1, 2))
    time = np.round(first, 1)
    return time, status, strata
