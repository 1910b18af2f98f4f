"""Global pytest configuration and shared fixtures for ode_engine."""

from __future__ import annotations

import importlib.util
from typing import TYPE_CHECKING, Final

import numpy as np
import pytest

from ode_engine.model_core import ModelCore

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

    FloatArray = NDArray[np.floating]

# -----------------------------------------------------------------------------
# Optional dependency detection
# -----------------------------------------------------------------------------

HAS_SCIPY: Final[bool] = importlib.util.find_spec("scipy") is not None


# -----------------------------------------------------------------------------
# Global markers registration safety (for local pytest runs)
# -----------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used by the test suite."""
    config.addinivalue_line(
        "markers",
        "accuracy: mark test as comparing against a scipy reference solution",
    )


# -----------------------------------------------------------------------------
# Conditional skipping fixture
# -----------------------------------------------------------------------------


@pytest.fixture(scope="session")
def require_scipy() -> None:
    """
    Skip tests if scipy (test extra) is not installed.

    Usage:
        def test_x(require_scipy):
            ...
    """
    if not HAS_SCIPY:
        pytest.skip("scipy not installed")


# -----------------------------------------------------------------------------
# Model fixtures
# -----------------------------------------------------------------------------


def _decay(_t: float, y: FloatArray) -> FloatArray:
    return -y


def _growth(_t: float, y: FloatArray) -> FloatArray:
    return y


def _oscillator(_t: float, y: FloatArray) -> FloatArray:
    return np.array([y[1], -y[0]])


@pytest.fixture
def decay_model() -> ModelCore:
    """dx/dt = -x with x(0) = 1."""
    return ModelCore(_decay, [1.0])


@pytest.fixture
def growth_model() -> ModelCore:
    """dx/dt = x with x(0) = 1."""
    return ModelCore(_growth, [1.0])


@pytest.fixture
def oscillator_model() -> ModelCore:
    """Harmonic oscillator x'' = -x as [x, v, t] with x(0) = 1, v(0) = 0."""
    return ModelCore(_oscillator, [1.0, 0.0])


@pytest.fixture
def make_model() -> Callable[..., ModelCore]:
    """Factory fixture building a ModelCore from a rate function and state."""

    def _make(
        rate_func: Callable[[float, FloatArray], FloatArray],
        y0: list[float],
        **kwargs: object,
    ) -> ModelCore:
        return ModelCore(rate_func, y0, **kwargs)

    return _make
