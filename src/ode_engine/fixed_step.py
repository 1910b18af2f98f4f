# ode_engine/src/ode_engine/fixed_step.py
"""Fixed-step solvers: Euler, Euler-Richardson, RK4, Verlet, LeapFrog, Adams5.

These algorithms use a constant, caller-chosen step size and do no error
control. They share the lifecycle of :class:`~ode_engine.core_solver.SolverBase`
and always report ``ErrorCode.NO_ERROR``.

State layout for the Verlet family:
    [x0, v0, x1, v1, ..., x_{m-1}, v_{m-1}] or the same followed by one extra
    component (usually time). The model's rate for a position entry is its
    velocity and the rate for a velocity entry is its acceleration. A trailing
    unpaired component is advanced with its own rate.

Performance hygiene:
    - Scratch arrays are preallocated in ``_allocate``.
    - Inner updates use in-place NumPy ops and np.copyto.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

import numpy as np

from .core_solver import SolverBase, StepReport

if TYPE_CHECKING:
    from .model_core import FloatArray


def _read_only(values: list[float], scale: float) -> FloatArray:
    out = np.array(values, dtype=np.float64) / scale
    out.setflags(write=False)
    return out


class Euler(SolverBase):
    """Explicit Euler: ``state += h * rate``."""

    name = "Euler"

    def _allocate(self, n: int) -> None:
        self._rate = self._zeros(n)

    def _advance(self, state: FloatArray) -> StepReport:
        h = self._step_size
        self._rate_into(self._rate, state)
        state += h * self._rate
        return StepReport(step=h)


class EulerRichardson(SolverBase):
    """Midpoint method: advance with the rate at a half-step estimate."""

    name = "EulerRichardson"

    def _allocate(self, n: int) -> None:
        self._rate = self._zeros(n)
        self._mid_state = self._zeros(n)

    def _advance(self, state: FloatArray) -> StepReport:
        h = self._step_size
        self._rate_into(self._rate, state)

        np.multiply(self._rate, 0.5 * h, out=self._mid_state)
        self._mid_state += state
        self._rate_into(self._rate, self._mid_state)

        state += h * self._rate
        return StepReport(step=h)


class RK4(SolverBase):
    """Classic fourth-order Runge-Kutta."""

    name = "RK4"

    def _allocate(self, n: int) -> None:
        self._k1 = self._zeros(n)
        self._k2 = self._zeros(n)
        self._k3 = self._zeros(n)
        self._k4 = self._zeros(n)
        self._trial = self._zeros(n)

    def _advance(self, state: FloatArray) -> StepReport:
        h = self._step_size
        self._rate_into(self._k1, state)
        self._rk4_update(state, h)
        return StepReport(step=h)

    def _rk4_update(self, state: FloatArray, h: float) -> None:
        """Finish an RK4 step from ``state`` whose rate is already in ``_k1``.

        Args:
            state: Model state, updated in place when the step completes.
            h: Step size.
        """
        np.multiply(self._k1, 0.5 * h, out=self._trial)
        self._trial += state
        self._rate_into(self._k2, self._trial)

        np.multiply(self._k2, 0.5 * h, out=self._trial)
        self._trial += state
        self._rate_into(self._k3, self._trial)

        np.multiply(self._k3, h, out=self._trial)
        self._trial += state
        self._rate_into(self._k4, self._trial)

        # trial <- k1 + 2 k2 + 2 k3 + k4
        np.add(self._k2, self._k3, out=self._trial)
        self._trial *= 2.0
        self._trial += self._k1
        self._trial += self._k4
        state += (h / 6.0) * self._trial


class Verlet(SolverBase):
    """Velocity-Verlet for interleaved position/velocity states.

    The rate function is called twice per step. ``rate_counter`` tells a model
    which call is in progress: 0 during the first call (rate at the current
    state), 1 during the second (rate at the advanced positions) and 2 once
    both are done. Models whose velocity rates are costly can use it to skip
    work. It is -1 until the first step.
    """

    name = "Verlet"

    @property
    def rate_counter(self) -> int:
        """Index of the rate evaluation in progress within the current step."""
        return self._rate_counter

    def _allocate(self, n: int) -> None:
        self._rate1 = self._zeros(n)
        self._rate2 = self._zeros(n)
        self._trial = self._zeros(n)
        self._rate_counter = -1

    def _reset_history(self) -> None:
        self._rate_counter = -1

    def _verlet_into(self, state: FloatArray, h: float, out: FloatArray) -> None:
        """Take one velocity-Verlet step of size h from state into out.

        Args:
            state: Starting state (not modified).
            h: Step size, possibly negative.
            out: Output array for the advanced state.
        """
        n = self._n_eqn
        n_pairs = n - n % 2
        pos = slice(0, n_pairs, 2)
        vel = slice(1, n_pairs, 2)

        self._rate_counter = 0
        self._rate_into(self._rate1, state)

        np.copyto(out, state)
        out[pos] += h * self._rate1[pos] + (0.5 * h * h) * self._rate1[vel]
        if n % 2 == 1:
            out[-1] += h * self._rate1[-1]

        self._rate_counter = 1
        self._rate_into(self._rate2, out)
        self._rate_counter = 2

        out[vel] += (0.5 * h) * (self._rate1[vel] + self._rate2[vel])

    def _advance(self, state: FloatArray) -> StepReport:
        h = self._step_size
        self._verlet_into(state, h, self._trial)
        np.copyto(state, self._trial)
        return StepReport(step=h)


class LeapFrog(Verlet):
    """Position-Verlet leapfrog using one rate evaluation per step.

    The method is not self-starting: it needs the state one step in the past.
    ``initialize`` synthesizes that state with a backward velocity-Verlet step,
    and does so again every time it is called or the step size changes.
    """

    name = "LeapFrog"

    def _allocate(self, n: int) -> None:
        super()._allocate(n)
        self._prior = self._zeros(n)

    def _reset_history(self) -> None:
        self._estimate_previous_state()
        super()._reset_history()

    def _estimate_previous_state(self) -> None:
        state = self._ode.get_state()
        self._verlet_into(state, -self._step_size, self._prior)

    def set_step_size(self, step_size: float) -> None:
        """
        Set the step size and re-synthesize the previous state if it changed.

        Args:
            step_size: New step size; negative values integrate backward.
        """
        step_size = float(step_size)
        if step_size == self._step_size:
            return
        self._step_size = step_size
        if self._n_eqn == int(np.shape(self._ode.get_state())[0]):
            self._estimate_previous_state()

    def _advance(self, state: FloatArray) -> StepReport:
        h = self._step_size
        n = self._n_eqn
        n_pairs = n - n % 2
        pos = slice(0, n_pairs, 2)
        vel = slice(1, n_pairs, 2)
        rate = self._rate1

        self._rate_counter = 0
        self._rate_into(rate, state)
        self._rate_counter = 2

        # x_{n+1} = 2 x_n - x_{n-1} + h^2 a_n ; v_{n+1} = v_{n-1} + 2 h a_n
        np.copyto(self._trial, state)
        self._trial[pos] = 2.0 * state[pos] - self._prior[pos] + (h * h) * rate[vel]
        self._trial[vel] = self._prior[vel] + (2.0 * h) * rate[vel]
        if n % 2 == 1:
            self._trial[-1] += h * rate[-1]

        np.copyto(self._prior, state)
        np.copyto(state, self._trial)
        return StepReport(step=h)


class Adams5(RK4):
    """Fifth-order Adams-Bashforth-Moulton predictor-corrector.

    The predictor uses the rates of the last five steps; the corrector uses
    the rate at the predicted state plus the last four. The first four steps
    after ``initialize`` (or a change of step size) are taken with RK4 to
    build that history.
    """

    name = "Adams5"

    _WARMUP_STEPS: Final[int] = 4
    _PREDICTOR: Final = _read_only([1901.0, -2774.0, 2616.0, -1274.0, 251.0], 720.0)
    _CORRECTOR: Final = _read_only([251.0, 646.0, -264.0, 106.0, -19.0], 720.0)

    def _allocate(self, n: int) -> None:
        super()._allocate(n)
        # Row 0 holds the newest rate.
        self._rates = self._zeros(5, n)
        self._predicted = self._zeros(n)
        self._predicted_rate = self._zeros(n)

    def _reset_history(self) -> None:
        self._n_history = 0

    @property
    def warming_up(self) -> bool:
        """True while the next step will still be taken with RK4."""
        return self._n_history < self._WARMUP_STEPS

    def set_step_size(self, step_size: float) -> None:
        """
        Set the step size, restarting the warm-up if it changed.

        Args:
            step_size: New step size; negative values integrate backward.
        """
        step_size = float(step_size)
        if step_size != self._step_size:
            self._reset_history()
        self._step_size = step_size

    def _advance(self, state: FloatArray) -> StepReport:
        h = self._step_size
        self._rates[1:] = self._rates[:-1].copy()
        self._rate_into(self._rates[0], state)

        if self.warming_up:
            self._n_history += 1
            np.copyto(self._k1, self._rates[0])
            self._rk4_update(state, h)
            return StepReport(step=h)

        np.dot(self._PREDICTOR, self._rates, out=self._predicted)
        self._predicted *= h
        self._predicted += state
        self._rate_into(self._predicted_rate, self._predicted)

        # Reuse the predicted buffer for the corrector increment.
        np.dot(self._CORRECTOR[1:], self._rates[:4], out=self._predicted)
        self._predicted += self._CORRECTOR[0] * self._predicted_rate
        state += h * self._predicted
        return StepReport(step=h)
