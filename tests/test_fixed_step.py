# tests/test_fixed_step.py
"""Behavior tests for the fixed-step solvers.

Coverage:
- Zero rates leave the state unchanged (all fixed-step solvers)
- Euler matches state + h * rate exactly
- Midpoint / RK4 / Adams5 accuracy on dx/dt = -x
- Verlet and LeapFrog: rate_counter, odd trailing component, reversibility
- Adams5 warm-up bookkeeping
- Buffer rebuild when the state length changes
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pytest

from ode_engine.core_solver import SolverBase
from ode_engine.errors import ErrorCode
from ode_engine.fixed_step import RK4, Adams5, Euler, EulerRichardson, LeapFrog, Verlet
from ode_engine.model_core import ModelCore, ModelCoreOptions

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

    FloatArray = NDArray[np.floating]


FIXED_STEP_SOLVERS: tuple[type[SolverBase], ...] = (
    Euler,
    EulerRichardson,
    RK4,
    Verlet,
    LeapFrog,
    Adams5,
)


def _zero_rate(_t: float, y: FloatArray) -> FloatArray:
    return np.zeros_like(y)


def _run(solver: SolverBase, n_steps: int) -> float:
    total = 0.0
    for _ in range(n_steps):
        total += solver.step()
    return total


# -----------------------------------------------------------------------------
# Shared behavior
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("solver_cls", FIXED_STEP_SOLVERS)
def test_zero_rates_leave_state_unchanged(solver_cls: type[SolverBase]) -> None:
    """With all rates zero the state is identical after many steps."""
    core = ModelCore(
        _zero_rate,
        [1.0, -2.0, 3.5, 0.25],
        options=ModelCoreOptions(track_time=False),
    )
    before = core.get_state().copy()

    solver = solver_cls(core, step_size=0.3)
    _run(solver, 12)

    assert np.array_equal(core.get_state(), before)


@pytest.mark.parametrize("solver_cls", FIXED_STEP_SOLVERS)
def test_step_returns_step_size_and_advances_time(
    solver_cls: type[SolverBase],
    decay_model: ModelCore,
) -> None:
    """Fixed-step solvers advance by exactly h and report no error."""
    solver = solver_cls(decay_model, step_size=0.05)

    assert solver.step() == 0.05
    assert solver.last_report.error_code is ErrorCode.NO_ERROR
    assert np.isclose(decay_model.current_time, 0.05)


@pytest.mark.parametrize("solver_cls", FIXED_STEP_SOLVERS)
def test_state_length_change_rebuilds_buffers(
    solver_cls: type[SolverBase],
    decay_model: ModelCore,
) -> None:
    """A new state length is picked up on the next step."""
    solver = solver_cls(decay_model, step_size=0.01)
    solver.step()
    assert solver.n_equations == 2

    decay_model.set_initial_state([1.0, 2.0, 3.0])
    solver.step()

    assert solver.n_equations == 4
    assert np.all(np.isfinite(decay_model.get_state()))
    assert np.all(decay_model.values < [1.0, 2.0, 3.0])


def test_solver_base_requires_advance(decay_model: ModelCore) -> None:
    """SolverBase cannot be instantiated without an _advance implementation."""
    with pytest.raises(TypeError, match="_advance"):
        SolverBase(decay_model)  # type: ignore[abstract]


# -----------------------------------------------------------------------------
# Euler / midpoint / RK4
# -----------------------------------------------------------------------------


def test_euler_matches_explicit_formula() -> None:
    """One Euler step is exactly state + h * rate."""
    core = ModelCore(lambda _t, y: np.array([3.0 * y[0], -y[1]]), [2.0, 5.0])
    solver = Euler(core, step_size=0.125)

    solver.step()

    expected = [2.0 + 0.125 * 6.0, 5.0 - 0.125 * 5.0, 0.125]
    assert np.array_equal(core.get_state(), expected)


def test_euler_richardson_uses_midpoint_rate() -> None:
    """For dx/dt = t the midpoint method is exact: x(h) = h^2 / 2."""
    core = ModelCore(lambda t, _y: np.array([t]), [0.0])
    solver = EulerRichardson(core, step_size=0.5)

    solver.step()

    assert core.values[0] == pytest.approx(0.125)


@pytest.mark.parametrize(
    ("solver_cls", "tol"),
    [(Euler, 2e-2), (EulerRichardson, 5e-4), (RK4, 1e-8), (Adams5, 1e-8)],
)
def test_accuracy_on_decay(
    solver_cls: type[SolverBase],
    tol: float,
    decay_model: ModelCore,
) -> None:
    """Integrating dx/dt = -x to t = 1 with h = 0.01 is accurate to the method order."""
    solver = solver_cls(decay_model, step_size=0.01)
    _run(solver, 100)

    assert decay_model.current_time == pytest.approx(1.0)
    assert abs(decay_model.values[0] - np.exp(-1.0)) < tol


def test_rk4_calls_rate_four_times(decay_model: ModelCore) -> None:
    """RK4 evaluates the rate four times per step."""
    solver = RK4(decay_model)
    decay_model.rate_evaluations = 0
    solver.step()
    assert decay_model.rate_evaluations == 4


# -----------------------------------------------------------------------------
# Verlet / LeapFrog
# -----------------------------------------------------------------------------


def test_verlet_rate_counter_sequence(make_model: Callable[..., ModelCore]) -> None:
    """rate_counter is 0 on the first rate call of a step, 1 on the second, 2 after."""
    seen: list[int] = []
    holder: dict[str, Verlet] = {}

    def rate(_t: float, y: FloatArray) -> FloatArray:
        if "solver" in holder:
            seen.append(holder["solver"].rate_counter)
        return np.array([y[1], -y[0]])

    core = make_model(rate, [1.0, 0.0])
    solver = Verlet(core, step_size=0.1)
    assert solver.rate_counter == -1

    holder["solver"] = solver
    solver.step()

    assert seen == [0, 1]
    assert solver.rate_counter == 2


def test_verlet_advances_trailing_component(oscillator_model: ModelCore) -> None:
    """The unpaired trailing component (time) advances with its own rate."""
    solver = Verlet(oscillator_model, step_size=0.01)
    _run(solver, 100)

    assert oscillator_model.current_time == pytest.approx(1.0, abs=1e-12)
    assert oscillator_model.values[0] == pytest.approx(np.cos(1.0), abs=1e-4)
    assert oscillator_model.values[1] == pytest.approx(-np.sin(1.0), abs=1e-4)


@pytest.mark.parametrize("solver_cls", [Verlet, LeapFrog])
def test_time_reversibility(
    solver_cls: type[Verlet],
    oscillator_model: ModelCore,
) -> None:
    """Stepping forward then backward returns close to the start."""
    h = 0.01
    start = oscillator_model.get_state().copy()

    solver = solver_cls(oscillator_model, step_size=h)
    _run(solver, 50)
    solver.set_step_size(-h)
    _run(solver, 50)

    assert np.allclose(oscillator_model.get_state(), start, atol=10 * h * h)


def test_leapfrog_uses_one_rate_per_step(oscillator_model: ModelCore) -> None:
    """After initialization LeapFrog evaluates the rate once per step."""
    solver = LeapFrog(oscillator_model, step_size=0.01)
    oscillator_model.rate_evaluations = 0
    _run(solver, 10)
    assert oscillator_model.rate_evaluations == 10


def test_leapfrog_conserves_energy(oscillator_model: ModelCore) -> None:
    """Energy of the harmonic oscillator stays bounded over many periods."""
    solver = LeapFrog(oscillator_model, step_size=0.05)
    _run(solver, 2000)

    x, v = oscillator_model.values
    assert 0.5 * (x * x + v * v) == pytest.approx(0.5, rel=1e-2)


# -----------------------------------------------------------------------------
# Adams5
# -----------------------------------------------------------------------------


def test_adams5_warm_up(decay_model: ModelCore) -> None:
    """The first four steps are RK4 steps; changing h restarts the warm-up."""
    solver = Adams5(decay_model, step_size=0.01)
    assert solver.warming_up

    decay_model.rate_evaluations = 0
    _run(solver, 4)
    assert decay_model.rate_evaluations == 16
    assert not solver.warming_up

    decay_model.rate_evaluations = 0
    solver.step()
    assert decay_model.rate_evaluations == 2

    solver.set_step_size(0.01)
    assert not solver.warming_up
    solver.set_step_size(0.02)
    assert solver.warming_up


def test_adams5_matches_rk4_during_warm_up() -> None:
    """Warm-up steps are identical to RK4 steps."""
    a = ModelCore(lambda _t, y: -y, [1.0])
    b = ModelCore(lambda _t, y: -y, [1.0])
    adams = Adams5(a, step_size=0.1)
    rk4 = RK4(b, step_size=0.1)

    _run(adams, 4)
    _run(rk4, 4)

    assert np.array_equal(a.get_state(), b.get_state())


def test_adams5_coefficients_are_read_only(decay_model: ModelCore) -> None:
    """The shared predictor/corrector weights cannot be modified in place."""
    solver = Adams5(decay_model)

    for coeffs in (solver._PREDICTOR, solver._CORRECTOR):  # noqa: SLF001
        assert not coeffs.flags.writeable
        with pytest.raises(ValueError, match="read-only"):
            coeffs[0] = 0.0

    assert Adams5._PREDICTOR.sum() == pytest.approx(1.0)  # noqa: SLF001
    assert Adams5._CORRECTOR.sum() == pytest.approx(1.0)  # noqa: SLF001
