# ode_engine/src/ode_engine/model_core.py
"""Model contract and a ready-made state container for ODE solvers.

Solvers in this package talk to a model through the two-method :class:`ODE`
protocol:

- ``get_state()`` returns the model's state vector. The array is *borrowed*:
  the model owns it, solvers read it during a step and write the advanced
  state into it once, at the end of ``step()``. Solvers never keep a
  reference to it between calls.
- ``get_rate(state, rate)`` writes the rate of ``state`` into the
  caller-supplied ``rate`` buffer. Solvers call it at trial states that are
  not the model's own state, so it must not depend on ``get_state()``.

:class:`ModelCore` adapts a plain ``rate_func(t, y)`` to that protocol. Its
state vector is ``[y_0, ..., y_{n-1}, t]``; the trailing time component has
rate one, so any solver advances time together with the dependent variables.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import numpy as np
import numpy.typing as npt

from .errors import raise_state_shape_error

if TYPE_CHECKING:
    from numpy.typing import DTypeLike


# Typing helpers ------------------------------------------------------------

FloatArray = npt.NDArray[np.floating[Any]]
RateFunction = Callable[[float, FloatArray], npt.ArrayLike]

_INITIAL_STATE_NDIM_ERROR = "initial state must be a 1D array"


@runtime_checkable
class ODE(Protocol):
    """Minimal model interface consumed by every solver."""

    def get_state(self) -> FloatArray:
        """Return the borrowed, mutable state vector."""
        ...

    def get_rate(self, state: FloatArray, rate: FloatArray) -> None:
        """Write the rate of ``state`` into ``rate``."""
        ...


@dataclass(slots=True)
class ModelCoreOptions:
    """Optional configuration for ModelCore.

    Attributes:
        t0: Initial value of the time component.
        track_time: Whether the state carries a trailing time component whose
            rate is one. Verlet-family solvers rely on this layout.
        dtype: Floating-point dtype of the state vector.
    """

    t0: float = 0.0
    track_time: bool = True
    dtype: DTypeLike = np.float64


class ModelCore:
    """ODE model built from a rate function ``rate_func(t, y) -> dy/dt``."""

    def __init__(
        self,
        rate_func: RateFunction,
        initial_state: npt.ArrayLike,
        *,
        options: ModelCoreOptions | None = None,
    ) -> None:
        """
        Initialize ModelCore.

        Args:
            rate_func: Function returning dy/dt for the dependent variables.
            initial_state: Initial dependent variables, shape (n_states,).
            options: Optional ModelCoreOptions for additional configuration.

        Raises:
            ValueError: if initial_state is not one-dimensional.
        """
        opts = options or ModelCoreOptions()

        self.rate_func = rate_func
        self.dtype = np.dtype(opts.dtype)
        self.track_time = bool(opts.track_time)
        self.rate_evaluations = 0

        self._state: FloatArray = np.zeros(0, dtype=self.dtype)
        self.set_initial_state(initial_state, t0=opts.t0)

    # ------------------------------------------------------------------
    # Shape helpers
    # ------------------------------------------------------------------

    @property
    def n_states(self) -> int:
        """Number of dependent variables (time excluded)."""
        return self.state_size - 1 if self.track_time else self.state_size

    @property
    def state_size(self) -> int:
        """Length of the full state vector seen by solvers."""
        return int(self._state.shape[0])

    def validate_state_shape(self, arr: npt.ArrayLike, *, name: str = "state") -> None:
        """
        Validate that arr has the full state shape.

        Args:
            arr: Array to validate.
            name: Name used in the error message.

        Raises:
            StateShapeError: if arr does not have shape (state_size,).
        """
        shape = np.shape(arr)
        if shape != self._state.shape:
            raise_state_shape_error(name=name, expected=self._state.shape, got=shape)

    # ------------------------------------------------------------------
    # Time / value accessors
    # ------------------------------------------------------------------

    @property
    def current_time(self) -> float:
        """Current value of the time component (t0 if time is not tracked)."""
        if not self.track_time:
            return self._t0
        return float(self._state[-1])

    @property
    def values(self) -> FloatArray:
        """View of the dependent variables, without the time component."""
        if self.track_time:
            return self._state[:-1]
        return self._state

    def set_initial_state(
        self,
        initial_state: npt.ArrayLike,
        *,
        t0: float | None = None,
    ) -> None:
        """
        Set the dependent variables and, optionally, the time.

        A state of a different length replaces the state vector with a new
        array. Solvers detect the change on their next step and rebuild their
        buffers.

        Args:
            initial_state: Dependent variables, shape (n_states,).
            t0: New time value; if None, the current time is kept.

        Raises:
            ValueError: if initial_state is not one-dimensional.
        """
        values = np.asarray(initial_state, dtype=self.dtype)
        if values.ndim != 1:
            raise ValueError(_INITIAL_STATE_NDIM_ERROR)

        if t0 is not None:
            self._t0 = float(t0)
        elif self.track_time and self._state.size:
            self._t0 = float(self._state[-1])

        size = values.size + (1 if self.track_time else 0)
        if size != self._state.size:
            self._state = np.zeros(size, dtype=self.dtype)

        if self.track_time:
            self._state[:-1] = values
            self._state[-1] = self._t0
        else:
            np.copyto(self._state, values)

    # ------------------------------------------------------------------
    # ODE protocol
    # ------------------------------------------------------------------

    def get_state(self) -> FloatArray:
        """
        Return the borrowed state vector.

        Returns:
            State array, shape (state_size,).
        """
        return self._state

    def get_rate(self, state: FloatArray, rate: FloatArray) -> None:
        """
        Evaluate the rate of ``state`` into ``rate``.

        Args:
            state: State at which to evaluate, shape (state_size,).
            rate: Output buffer, shape (state_size,).

        Raises:
            StateShapeError: if rate_func returns the wrong number of values.
        """
        self.rate_evaluations += 1
        if self.track_time:
            t = float(state[-1])
            y = state[:-1]
        else:
            t = self._t0
            y = state

        dydt = np.asarray(self.rate_func(t, y), dtype=self.dtype)
        if dydt.shape != y.shape:
            raise_state_shape_error(
                name="rate_func output",
                expected=y.shape,
                got=dydt.shape,
            )

        if self.track_time:
            rate[:-1] = dydt
            rate[-1] = 1.0
        else:
            np.copyto(rate, dydt)
