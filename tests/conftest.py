import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from neuralnet.helpers.Backend import backend


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow (long CD training loops)"
    )


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def float64(monkeypatch):
    """Build layers in float64 so finite-difference checks are tight."""
    monkeypatch.setattr(backend, "default_float", np.float64)
    return np.float64
