"""
Shared fixtures for the unit tests.

Models, small configurations and in-memory caches that keep every
simulation in the suite down to a few thousand samples on a coarse grid.
"""

import numpy as np
import pytest

from stochval.storage import MemoryStore, RealizationCache
from stochval.systems import LinearSystem, LogisticGrowth, OrnsteinUhlenbeck
from stochval.validation import ValidationConfig


@pytest.fixture
def ou_model():
    return OrnsteinUhlenbeck(alpha=1.0)


@pytest.fixture
def logistic_model():
    return LogisticGrowth(rho=1.0, kappa=1.0)


@pytest.fixture
def planar_linear_model():
    return LinearSystem([[-1.0, 0.5], [0.0, -2.0]], name="Planar")


@pytest.fixture
def memory_cache():
    return RealizationCache(MemoryStore())


@pytest.fixture
def small_config(tmp_path):
    return ValidationConfig(
        n_samples=500,
        t0=0.0,
        T=1.0,
        dt=1e-2,
        epsilons=[0.1, 0.05, 0.01],
        rs=[1, 2],
        seed=1234,
        data_dir=tmp_path / "data",
    )


@pytest.fixture
def rng():
    return np.random.default_rng(0)
