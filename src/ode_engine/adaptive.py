# ode_engine/src/ode_engine/adaptive.py
"""Embedded adaptive Runge-Kutta 4/5 solvers (Cash-Karp, Dormand-Prince).

One six-stage algorithm parameterized by an :class:`EmbeddedTableau`:

    k0 = f(y)
    k_s = f(y + h * sum_j a[s-1][j] * k_j)              s = 1..5
    err = max_i | h * sum_s er[s] * k_s[i] |             er = +-(b5 - b4)
    y_next = y + h * sum_s b5[s] * k_s                   (5th order)

Step-size control (per attempt):
    - err <= eps is treated as tol / 1e5 so the step can grow.
    - err > tol:       h *= max(0.9 * (err/tol)^-0.25, 0.1)
    - err < tol / 10:  h *= min(0.9 * (err/tol)^-0.2, 10) when that factor > 1

An attempt whose error exceeds the tolerance is retried with the adapted step
(the stage-0 rate is reused because the starting state has not changed), up to
``AdaptiveConfig.max_attempts`` times. The state is then advanced with the step
used by the last attempt, even if it never met the tolerance; in that case the
error code is ``DID_NOT_CONVERGE`` and, in exception mode only, a
:class:`~ode_engine.errors.DidNotConvergeError` is raised after the state has
been written.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

import numpy as np

from .core_solver import SolverBase, StepReport
from .errors import ErrorCode, raise_did_not_converge, warn_tolerance_clamped

if TYPE_CHECKING:
    from .model_core import ODE, FloatArray


_MACHINE_EPS: Final[float] = float(np.finfo(np.float64).eps)
_NEGLIGIBLE_ERROR_SCALE: Final[float] = 1.0e-5

_TABLEAU_A_ROWS_ERROR = "tableau '{name}' needs {expected} rows in a, got {actual}"
_TABLEAU_A_ROW_LEN_ERROR = (
    "tableau '{name}' row {row} of a must have {expected} entries"
)
_TABLEAU_WEIGHTS_ERROR = "tableau '{name}' needs {expected} weights in {field}"


# =============================================================================
# Coefficient sets
# =============================================================================


@dataclass(slots=True, frozen=True)
class EmbeddedTableau:
    """Coefficients of an embedded Runge-Kutta pair.

    Attributes:
        name: Display name used in diagnostics.
        a: Lower-triangular stage coefficients; row ``s-1`` holds the ``s``
            weights used to build the trial state of stage ``s``.
        b5: Higher-order weights used to advance the state.
        er: Error weights, the difference between the two embedded orders.
    """

    name: str
    a: tuple[tuple[float, ...], ...]
    b5: tuple[float, ...]
    er: tuple[float, ...]

    def __post_init__(self) -> None:
        """Validate the tableau dimensions.

        Raises:
            ValueError: If the coefficient tables are inconsistent.
        """
        n_stages = len(self.b5)
        if len(self.a) != n_stages - 1:
            raise ValueError(
                _TABLEAU_A_ROWS_ERROR.format(
                    name=self.name,
                    expected=n_stages - 1,
                    actual=len(self.a),
                )
            )
        for row, coeffs in enumerate(self.a):
            if len(coeffs) != row + 1:
                raise ValueError(
                    _TABLEAU_A_ROW_LEN_ERROR.format(
                        name=self.name,
                        row=row,
                        expected=row + 1,
                    )
                )
        if len(self.er) != n_stages:
            raise ValueError(
                _TABLEAU_WEIGHTS_ERROR.format(
                    name=self.name,
                    expected=n_stages,
                    field="er",
                )
            )

    @property
    def n_stages(self) -> int:
        """Number of rate evaluations per attempt."""
        return len(self.b5)

    def a_matrix(self) -> FloatArray:
        """
        Return ``a`` as a dense (n_stages - 1, n_stages) array.

        Returns:
            Zero-padded lower-triangular coefficient matrix.
        """
        out = np.zeros((self.n_stages - 1, self.n_stages), dtype=np.float64)
        for row, coeffs in enumerate(self.a):
            out[row, : len(coeffs)] = coeffs
        return out


CASH_KARP_45: Final[EmbeddedTableau] = EmbeddedTableau(
    name="CashKarp45",
    a=(
        (1.0 / 5.0,),
        (3.0 / 40.0, 9.0 / 40.0),
        (3.0 / 10.0, -9.0 / 10.0, 6.0 / 5.0),
        (-11.0 / 54.0, 5.0 / 2.0, -70.0 / 27.0, 35.0 / 27.0),
        (
            1631.0 / 55296.0,
            175.0 / 512.0,
            575.0 / 13824.0,
            44275.0 / 110592.0,
            253.0 / 4096.0,
        ),
    ),
    b5=(37.0 / 378.0, 0.0, 250.0 / 621.0, 125.0 / 594.0, 0.0, 512.0 / 1771.0),
    er=(
        277.0 / 64512.0,
        0.0,
        -6925.0 / 370944.0,
        6925.0 / 202752.0,
        277.0 / 14336.0,
        -277.0 / 7084.0,
    ),
)

DORMAND_PRINCE_45: Final[EmbeddedTableau] = EmbeddedTableau(
    name="DormandPrince45",
    a=(
        (1.0 / 5.0,),
        (3.0 / 40.0, 9.0 / 40.0),
        (3.0 / 10.0, -9.0 / 10.0, 6.0 / 5.0),
        (226.0 / 729.0, -25.0 / 27.0, 880.0 / 729.0, 55.0 / 729.0),
        (-181.0 / 270.0, 5.0 / 2.0, -266.0 / 297.0, -91.0 / 27.0, 189.0 / 55.0),
    ),
    b5=(19.0 / 216.0, 0.0, 1000.0 / 2079.0, -125.0 / 216.0, 81.0 / 88.0, 5.0 / 56.0),
    # er[0] = 31/540 - 19/216 = -11/360
    er=(-11.0 / 360.0, 0.0, 10.0 / 63.0, -55.0 / 72.0, 27.0 / 40.0, -11.0 / 280.0),
)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(slots=True, frozen=True)
class AdaptiveConfig:
    """Configuration for embedded Runge-Kutta step control.

    Attributes:
        tolerance: Initial absolute error tolerance per step.
        step_size: Initial step size.
        max_attempts: Maximum trial steps per call to step().
        safety: Safety factor applied to step-size updates.
        shrink_exponent: Exponent of error/tol when shrinking.
        grow_exponent: Exponent of error/tol when growing.
        fac_min: Smallest multiplicative change per attempt.
        fac_max: Largest multiplicative change per attempt.
        tolerance_floor: Smallest tolerance accepted by set_tolerance.
    """

    tolerance: float = 1.0e-6
    step_size: float = 0.01
    max_attempts: int = 10
    safety: float = 0.9
    shrink_exponent: float = -0.25
    grow_exponent: float = -0.2
    fac_min: float = 0.1
    fac_max: float = 10.0
    tolerance_floor: float = 1.0e-12


# =============================================================================
# EmbeddedRungeKutta
# =============================================================================


class EmbeddedRungeKutta(SolverBase):
    """Adaptive solver driven by an embedded Runge-Kutta 4/5 tableau."""

    name = "EmbeddedRungeKutta"
    default_step_size = 0.01

    def __init__(
        self,
        ode: ODE,
        tableau: EmbeddedTableau,
        *,
        config: AdaptiveConfig | None = None,
        raise_on_failure: bool = False,
        step_size: float | None = None,
    ) -> None:
        """
        Initialize the solver.

        Args:
            ode: Model supplying the state vector and rate function.
            tableau: Coefficient set of the embedded pair.
            config: Step-control configuration; defaults to AdaptiveConfig().
            raise_on_failure: If True, a step that does not converge raises
                DidNotConvergeError after committing its result.
            step_size: Initial step size; if None, config.step_size is used.
        """
        cfg = config or AdaptiveConfig()
        self.config = cfg
        self.tableau = tableau
        self.name = tableau.name

        self._a = tableau.a_matrix()
        self._b5 = np.asarray(tableau.b5, dtype=np.float64)
        self._er = np.asarray(tableau.er, dtype=np.float64)

        self._tol = cfg.tolerance
        self._raise_on_failure = bool(raise_on_failure)
        self._error_code = ErrorCode.NO_ERROR

        if step_size is None:
            step_size = cfg.step_size
        super().__init__(ode, step_size=step_size)
        self.set_tolerance(cfg.tolerance)

    # ------------------------------------------------------------------
    # Adaptive capability
    # ------------------------------------------------------------------

    def set_tolerance(self, tol: float) -> None:
        """
        Set the error tolerance.

        Values below ``config.tolerance_floor`` are clamped to the floor and
        reported with a RuntimeWarning.

        Args:
            tol: Requested tolerance; its absolute value is used.
        """
        tol = abs(float(tol))
        floor = self.config.tolerance_floor
        if tol < floor:
            warn_tolerance_clamped(self.name, requested=tol, floor=floor)
            tol = floor
        self._tol = tol

    def get_tolerance(self) -> float:
        """Return the error tolerance."""
        return self._tol

    def get_error_code(self) -> ErrorCode:
        """
        Get the error code of the most recent step.

        Returns:
            ErrorCode.NO_ERROR or ErrorCode.DID_NOT_CONVERGE.
        """
        return self._error_code

    def enable_runtime_exceptions(self, enable: bool) -> None:  # noqa: FBT001
        """
        Enable or disable raising when a step does not converge.

        Args:
            enable: If True, non-convergence raises DidNotConvergeError.
        """
        self._raise_on_failure = bool(enable)

    @property
    def raise_on_failure(self) -> bool:
        """Whether non-convergence raises."""
        return self._raise_on_failure

    # ------------------------------------------------------------------
    # Buffers
    # ------------------------------------------------------------------

    def _allocate(self, n: int) -> None:
        self._k = self._zeros(self.tableau.n_stages, n)
        self._temp_state = self._zeros(n)
        self._trunc_err = self._zeros(n)

    # ------------------------------------------------------------------
    # Algorithm
    # ------------------------------------------------------------------

    def _compute_stages(self, state: FloatArray, h: float) -> None:
        """Evaluate stage rates 1..n_stages-1 for step size h into ``_k``."""
        for s in range(1, self.tableau.n_stages):
            np.dot(self._a[s - 1, :s], self._k[:s], out=self._temp_state)
            self._temp_state *= h
            self._temp_state += state
            self._rate_into(self._k[s], self._temp_state)

    def _error_estimate(self, h: float) -> float:
        """
        Return the max-norm truncation error of the current stages.

        Args:
            h: Step size the stages were computed with.

        Returns:
            Error estimate; inf if it is not finite.
        """
        if self._n_eqn == 0:
            return 0.0
        np.dot(self._er, self._k, out=self._trunc_err)
        self._trunc_err *= h
        error = float(np.max(np.abs(self._trunc_err)))
        if not np.isfinite(error):
            return float("inf")
        return error

    def _propose_step(self, h: float, error: float) -> float:
        """
        Propose the step size for the next attempt or call.

        Args:
            h: Step size of the attempt that produced ``error``.
            error: Truncation-error estimate of that attempt.

        Returns:
            Adapted step size.
        """
        cfg = self.config
        tol = self._tol
        if error > tol:
            fac = cfg.safety * (error / tol) ** cfg.shrink_exponent
            return h * max(fac, cfg.fac_min)
        if error < tol / 10.0:
            fac = cfg.safety * (error / tol) ** cfg.grow_exponent
            # Only grow; fac can dip below 1 when error/tol is close to 0.1.
            if fac > 1.0:
                return h * min(fac, cfg.fac_max)
        return h

    def _advance(self, state: FloatArray) -> StepReport:
        self._error_code = ErrorCode.NO_ERROR
        self._rate_into(self._k[0], state)

        attempts = 0
        current_step = self._step_size
        error = 0.0
        while True:
            attempts += 1
            current_step = self._step_size
            self._compute_stages(state, current_step)

            error = self._error_estimate(current_step)
            if error <= _MACHINE_EPS:
                error = self._tol * _NEGLIGIBLE_ERROR_SCALE
            self._step_size = self._propose_step(current_step, error)

            if error <= self._tol or attempts >= self.config.max_attempts:
                break

        np.dot(self._b5, self._k, out=self._temp_state)
        state += current_step * self._temp_state

        if error <= self._tol:
            return StepReport(
                step=current_step,
                attempts=attempts,
                error_estimate=error,
            )

        self._error_code = ErrorCode.DID_NOT_CONVERGE
        report = StepReport(
            step=current_step,
            error_code=self._error_code,
            attempts=attempts,
            error_estimate=error,
        )
        self.last_report = report
        if self._raise_on_failure:
            raise_did_not_converge(self.name, step=current_step)
        return report


class CashKarp45(EmbeddedRungeKutta):
    """Embedded RK 4/5 solver with Cash-Karp coefficients."""

    def __init__(
        self,
        ode: ODE,
        *,
        config: AdaptiveConfig | None = None,
        raise_on_failure: bool = False,
        step_size: float | None = None,
    ) -> None:
        """Initialize a Cash-Karp solver bound to ``ode``."""
        super().__init__(
            ode,
            CASH_KARP_45,
            config=config,
            raise_on_failure=raise_on_failure,
            step_size=step_size,
        )


class DormandPrince45(EmbeddedRungeKutta):
    """Embedded RK 4/5 solver with Dormand-Prince coefficients."""

    def __init__(
        self,
        ode: ODE,
        *,
        config: AdaptiveConfig | None = None,
        raise_on_failure: bool = False,
        step_size: float | None = None,
    ) -> None:
        """Initialize a Dormand-Prince solver bound to ``ode``."""
        super().__init__(
            ode,
            DORMAND_PRINCE_45,
            config=config,
            raise_on_failure=raise_on_failure,
            step_size=step_size,
        )
