# ode_engine/src/ode_engine/multistep.py
"""Fixed-interval solver built on an embedded adaptive Runge-Kutta engine.

Each call to ``step()`` tries to advance the model by exactly the fixed step
size, taking as many adaptive substeps as needed:

    remainder = fixed
    while |remainder| > tol * |fixed|:
        take one adaptive substep (shortened to the remainder when the engine
        step would overshoot; the engine step is restored afterwards)
        remainder -= substep
        stop with DID_NOT_CONVERGE if the engine reported an error, the
        remainder stopped changing, the engine step collapsed below
        tol * |fixed| / 10, or more than max_iterations substeps were taken

The engine integrates a private copy of the client state. The copy is written
back to the model once, when the interval loop ends, so the model only ever
sees whole intervals (or, on failure, the partial advance that was reached).

``step()`` returns ``fixed - remainder``. On failure the solver raises
:class:`~ode_engine.errors.DidNotConvergeError` in exception mode; otherwise it
emits a limited number of RuntimeWarnings and returns the short advance.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

import numpy as np

from .adaptive import DORMAND_PRINCE_45, AdaptiveConfig, EmbeddedRungeKutta
from .core_solver import SolverBase, StepReport
from .errors import ErrorCode, raise_did_not_converge, warn_did_not_converge

if TYPE_CHECKING:
    from .adaptive import EmbeddedTableau
    from .model_core import ODE, FloatArray


_MACHINE_EPS: Final[float] = float(np.finfo(np.float64).eps)
_DEFAULT_MAX_ITERATIONS: Final[int] = 200
_DEFAULT_MAX_MESSAGES: Final[int] = 4
_STEP_COLLAPSE_SCALE: Final[float] = 0.1


class _StagingModel:
    """Copy of a client model's state that the adaptive engine integrates."""

    def __init__(self, client: ODE) -> None:
        self._client = client
        self._state: FloatArray = np.zeros(0, dtype=np.float64)

    @property
    def size(self) -> int:
        return int(self._state.shape[0])

    def load(self) -> None:
        """Copy the client state into the staging buffer."""
        source = self._client.get_state()
        if np.shape(source) != self._state.shape:
            self._state = np.array(source, dtype=np.result_type(source, np.float64))
        else:
            np.copyto(self._state, source)

    def commit(self) -> None:
        """Write the staging buffer back into the client state."""
        np.copyto(self._client.get_state(), self._state)

    def get_state(self) -> FloatArray:
        return self._state

    def get_rate(self, state: FloatArray, rate: FloatArray) -> None:
        self._client.get_rate(state, rate)


class FixedIntervalSolver(SolverBase):
    """Advance a model by a fixed interval using adaptive substeps."""

    name = "FixedIntervalSolver"
    default_step_size = 0.1

    def __init__(
        self,
        ode: ODE,
        *,
        tableau: EmbeddedTableau = DORMAND_PRINCE_45,
        config: AdaptiveConfig | None = None,
        raise_on_failure: bool = False,
        step_size: float | None = None,
        max_iterations: int = _DEFAULT_MAX_ITERATIONS,
    ) -> None:
        """
        Initialize the solver.

        Args:
            ode: Model supplying the state vector and rate function.
            tableau: Coefficient set used by the inner adaptive engine.
            config: Step-control configuration of the inner engine.
            raise_on_failure: If True, an interval that is not fully covered
                raises DidNotConvergeError after committing the partial advance.
            step_size: Fixed interval; if None, the class default is used.
            max_iterations: Substep limit per interval (at least 1).
        """
        self._staging = _StagingModel(ode)
        self._staging.load()
        self._engine = EmbeddedRungeKutta(self._staging, tableau, config=config)

        self._raise_on_failure = bool(raise_on_failure)
        self._error_code = ErrorCode.NO_ERROR
        self._remainder = 0.0
        self._max_iterations = max(1, int(max_iterations))
        self._max_messages = _DEFAULT_MAX_MESSAGES
        self._messages_left = self._max_messages

        super().__init__(ode, step_size=step_size)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def adaptive_solver(self) -> EmbeddedRungeKutta:
        """The inner adaptive engine."""
        return self._engine

    @property
    def remainder(self) -> float:
        """Part of the last requested interval that was not covered."""
        return self._remainder

    @property
    def max_iterations(self) -> int:
        """Substep limit per interval."""
        return self._max_iterations

    def set_max_iterations(self, n: int) -> None:
        """
        Set the substep limit per interval.

        Args:
            n: Maximum number of substeps; values below 1 are raised to 1.
        """
        self._max_iterations = max(1, int(n))

    def set_maximum_number_of_error_messages(self, n: int) -> None:
        """
        Set how many convergence warnings are emitted before suppression.

        Args:
            n: Number of warnings; the counter restarts at this value.
        """
        self._max_messages = max(0, int(n))
        self._messages_left = self._max_messages

    def set_step_size(self, step_size: float) -> None:
        """
        Set the fixed interval.

        The inner engine step is pulled toward the new interval so that it
        never exceeds it in magnitude, and the warning counter restarts.

        Args:
            step_size: New interval; negative values integrate backward.
        """
        step_size = float(step_size)
        self._messages_left = self._max_messages
        self._step_size = step_size
        inner = abs(self._engine.get_step_size())
        if step_size < 0:
            self._engine.set_step_size(max(-inner, step_size))
        else:
            self._engine.set_step_size(min(inner, step_size))

    # ------------------------------------------------------------------
    # Adaptive capability (delegated to the engine)
    # ------------------------------------------------------------------

    def set_tolerance(self, tol: float) -> None:
        """Set the error tolerance of the inner engine."""
        self._engine.set_tolerance(tol)

    def get_tolerance(self) -> float:
        """Return the error tolerance of the inner engine."""
        return self._engine.get_tolerance()

    def get_error_code(self) -> ErrorCode:
        """Return the error code of the most recent interval."""
        return self._error_code

    def enable_runtime_exceptions(self, enable: bool) -> None:  # noqa: FBT001
        """
        Enable or disable raising when an interval is not fully covered.

        Args:
            enable: If True, failures raise DidNotConvergeError.
        """
        self._raise_on_failure = bool(enable)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, step_size: float) -> None:
        """
        Initialize the solver and its inner engine.

        Args:
            step_size: Fixed interval for subsequent steps.
        """
        self._step_size = float(step_size)
        self._messages_left = self._max_messages
        self._error_code = ErrorCode.NO_ERROR
        self._remainder = 0.0

        self._staging.load()
        self.dtype = np.result_type(self._staging.get_state(), np.float64)
        self._n_eqn = self._staging.size
        self._engine.initialize(self._step_size)

    def _advance(self, state: FloatArray) -> StepReport:  # noqa: ARG002
        self._error_code = ErrorCode.NO_ERROR
        self._staging.load()
        remainder, iterations = self._cover_interval()
        self._staging.commit()

        self._remainder = remainder
        advanced = self._step_size - remainder
        report = StepReport(
            step=advanced,
            error_code=self._error_code,
            attempts=iterations,
            error_estimate=self._engine.last_report.error_estimate,
            remainder=remainder,
        )
        if self._error_code is ErrorCode.NO_ERROR:
            return report

        self.last_report = report
        if self._raise_on_failure:
            raise_did_not_converge(self.name, step=advanced, remainder=remainder)
        if self._messages_left > 0:
            self._messages_left -= 1
            warn_did_not_converge(
                self.name,
                remainder=remainder,
                last=self._messages_left == 0,
            )
        return report

    def _cover_interval(self) -> tuple[float, int]:
        """
        Take adaptive substeps until the fixed interval is covered.

        Returns:
            Tuple of (remainder, substeps taken).
        """
        fixed = self._step_size
        engine = self._engine
        tol = engine.get_tolerance()

        # The engine step must point the same way as the interval and fit in it.
        h = engine.get_step_size()
        if h * fixed <= 0.0 or abs(h) > abs(fixed) or fixed - h == fixed:
            engine.set_step_size(fixed)

        remainder = fixed
        iterations = 0
        while abs(remainder) > tol * abs(fixed):
            iterations += 1
            previous = remainder
            h = engine.get_step_size()
            if abs(remainder) < abs(h):
                engine.set_step_size(remainder)
                remainder -= engine.step()
                engine.set_step_size(h)
            else:
                remainder -= engine.step()

            if (
                engine.get_error_code() is not ErrorCode.NO_ERROR
                or abs(previous - remainder) <= _MACHINE_EPS * abs(fixed)
                or abs(engine.get_step_size()) < _STEP_COLLAPSE_SCALE * tol * abs(fixed)
                or iterations > self._max_iterations
            ):
                self._error_code = ErrorCode.DID_NOT_CONVERGE
                break
        return remainder, iterations
