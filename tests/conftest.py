"""Shared deterministic series for the test suite."""

import numpy as np
import pandas as pd
import pytest

from fund_quant.data.models import PricePoint


def make_points(values, end="2024-12-31"):
    """Wrap raw values into PricePoints on consecutive business days."""
    dates = pd.bdate_range(end=end, periods=len(values))
    return [PricePoint(d.strftime('%Y-%m-%d'), float(v)) for d, v in zip(dates, values)]


def random_walk(n, seed=7, drift=0.0003, vol=0.01, start=1.0):
    rng = np.random.default_rng(seed)
    return list(np.round(start * np.cumprod(1 + rng.normal(drift, vol, n)), 4))


@pytest.fixture
def walk_values():
    return random_walk(400)


@pytest.fixture
def walk_points(walk_values):
    return make_points(walk_values)


@pytest.fixture
def flat_values():
    return [1.0] * 200


@pytest.fixture
def rising_then_flat():
    """Linear rise 1.0 -> 2.0 over 300 points, then 60 flat points."""
    rise = list(np.linspace(1.0, 2.0, 300))
    return rise + [2.0] * 60
