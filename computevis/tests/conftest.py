"""Shared pytest fixtures for ComputeVis tests."""

import numpy as np
import pytest

from computevis import ComputeVis
from computevis.models import SimulationConfig


@pytest.fixture
def rng():
    """Seeded randomness so sampled values are reproducible."""
    return np.random.default_rng(42)


@pytest.fixture
def fast_config():
    """Config with short timers for tests that run the event loop."""

    def _create(step_ceiling: int = 3, history_size: int = 30) -> SimulationConfig:
        return SimulationConfig(
            metrics_interval_s=0.01,
            step_interval_s=0.01,
            history_size=history_size,
            step_ceiling=step_ceiling,
        )

    return _create


@pytest.fixture
def sim(rng):
    """Session with the reference configuration and no running timers."""
    return ComputeVis(rng=rng)
