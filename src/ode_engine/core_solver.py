# ode_engine/src/ode_engine/core_solver.py
"""Solver capabilities and the lifecycle shared by every algorithm.

Every solver in ode_engine is bound to one :class:`~ode_engine.model_core.ODE`
at construction and exposes the same capability set:

    initialize(step_size)   (re)allocate buffers sized to the current state
    step() -> float         advance the model state, return the time advance
    set_step_size(h)        change the step size (sign = direction)
    get_step_size() -> h

Adaptive solvers add tolerance control and an error code
(:class:`ODEAdaptiveSolver`).

Buffer policy:
    All scratch arrays are owned by the solver and (re)allocated only in
    ``initialize``. The solver caches the state length it was sized for; if the
    model's state vector has a different length when ``step()`` is entered, the
    solver calls ``initialize`` again before stepping. This also discards any
    multistep history.

Aliasing contract:
    The state vector returned by ``ode.get_state()`` is borrowed for the
    duration of one ``step()`` call. Stages are computed in solver-owned
    buffers; the model state is written once, when the step completes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Protocol

import numpy as np

from .errors import ErrorCode

if TYPE_CHECKING:
    from .model_core import ODE, FloatArray


# =============================================================================
# Capabilities
# =============================================================================


class ODESolver(Protocol):
    """Operations implemented by every solver."""

    def initialize(self, step_size: float) -> None:
        """Allocate buffers and reset history for the given step size."""
        ...

    def step(self) -> float:
        """Advance the model state and return the time advance."""
        ...

    def set_step_size(self, step_size: float) -> None:
        """Set the step size used by the next call to step()."""
        ...

    def get_step_size(self) -> float:
        """Return the current step size."""
        ...


class ODEAdaptiveSolver(ODESolver, Protocol):
    """Operations added by solvers with error control."""

    def set_tolerance(self, tol: float) -> None:
        """Set the error tolerance (clamped to the solver floor)."""
        ...

    def get_tolerance(self) -> float:
        """Return the error tolerance."""
        ...

    def get_error_code(self) -> ErrorCode:
        """Return the error code of the most recent step."""
        ...

    def enable_runtime_exceptions(self, enable: bool) -> None:  # noqa: FBT001
        """Toggle raising on convergence failure."""
        ...


@dataclass(slots=True, frozen=True)
class StepReport:
    """Outcome of one call to ``step()``.

    Attributes:
        step: Time advance actually achieved.
        error_code: Error code of the call.
        attempts: Trial steps (adaptive solvers) or internal substeps
            (fixed-interval solver) used.
        error_estimate: Final truncation-error estimate (adaptive solvers).
        remainder: Uncovered part of the requested interval (fixed-interval
            solver); zero otherwise.
    """

    step: float
    error_code: ErrorCode = ErrorCode.NO_ERROR
    attempts: int = 1
    error_estimate: float = 0.0
    remainder: float = 0.0


# =============================================================================
# SolverBase
# =============================================================================


class SolverBase(ABC):
    """Shared lifecycle for solvers bound to a single model.

    Subclasses implement ``_advance(state)`` and, when they need scratch
    arrays or history, the ``_allocate(n)`` and ``_reset_history()`` hooks.
    """

    name: str = "ODESolver"
    default_step_size: ClassVar[float] = 0.1

    def __init__(self, ode: ODE, *, step_size: float | None = None) -> None:
        """
        Bind the solver to a model and initialize it.

        Args:
            ode: Model supplying the state vector and rate function.
            step_size: Initial step size; if None, the class default is used.
        """
        self._ode = ode
        self._step_size = float(self.default_step_size)
        self._n_eqn = 0
        self.dtype = np.dtype(np.float64)
        self.last_report = StepReport(step=0.0)
        self.initialize(self.default_step_size if step_size is None else step_size)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def ode(self) -> ODE:
        """The model this solver is bound to."""
        return self._ode

    @property
    def n_equations(self) -> int:
        """State length the buffers are currently sized for."""
        return self._n_eqn

    @property
    def step_size(self) -> float:
        """Step size used by the next call to step()."""
        return self.get_step_size()

    @step_size.setter
    def step_size(self, value: float) -> None:
        self.set_step_size(value)

    def set_step_size(self, step_size: float) -> None:
        """
        Set the step size.

        Args:
            step_size: New step size; negative values integrate backward.
        """
        self._step_size = float(step_size)

    def get_step_size(self) -> float:
        """
        Get the step size.

        Returns:
            The step size the next call to step() will use.
        """
        return self._step_size

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, step_size: float) -> None:
        """
        Initialize the solver.

        Records the step size, reads the current state length from the model,
        allocates every scratch buffer to that length and resets history.

        Args:
            step_size: Step size for subsequent steps.
        """
        self._step_size = float(step_size)
        state = self._ode.get_state()
        self.dtype = np.result_type(state, np.float64)
        self._n_eqn = int(np.shape(state)[0])
        self._allocate(self._n_eqn)
        self._reset_history()

    def step(self) -> float:
        """
        Step (advance) the differential equations.

        Returns:
            The time advance achieved by this call.
        """
        state = self._sync_state()
        report = self._advance(state)
        self.last_report = report
        return report.step

    # ------------------------------------------------------------------
    # Hooks / helpers
    # ------------------------------------------------------------------

    def _allocate(self, n: int) -> None:
        """Allocate scratch buffers for n equations."""

    def _reset_history(self) -> None:
        """Discard any history accumulated by previous steps."""

    @abstractmethod
    def _advance(self, state: FloatArray) -> StepReport:
        """Advance ``state`` in place by one step and describe what was done."""

    def _zeros(self, *shape: int) -> FloatArray:
        return np.zeros(shape, dtype=self.dtype)

    def _sync_state(self) -> FloatArray:
        """
        Return the model state, rebuilding buffers if its length changed.

        Returns:
            The borrowed model state vector.
        """
        state = self._ode.get_state()
        if int(np.shape(state)[0]) != self._n_eqn:
            self.initialize(self._step_size)
            state = self._ode.get_state()
        return state

    def _rate_into(self, out: FloatArray, state: FloatArray) -> None:
        """Evaluate the model rate of ``state`` into ``out``."""
        self._ode.get_rate(state, out)

    def __repr__(self) -> str:
        """Return a short description of the solver."""
        return (
            f"{type(self).__name__}(step_size={self._step_size!r}, "
            f"n_equations={self._n_eqn})"
        )
