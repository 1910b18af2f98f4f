# ode_engine/examples/harmonic_oscillator.py
"""Harmonic oscillator x'' = -x integrated with several ode_engine solvers.

This example demonstrates the step-by-step API:

- ModelCore wraps a plain rate function; its state is [x, v, t].
- Each solver is created by name with create_solver(...) and stepped manually.
- Fixed-step solvers advance by exactly h per step; the rk45-multistep solver
  covers each fixed interval with adaptive substeps.

The energy E = (x^2 + v^2) / 2 is conserved by the exact solution, so its drift
is a simple quality measure. Symplectic solvers (Verlet, LeapFrog) keep it
bounded; Euler lets it grow.

This script saves plots to disk (no interactive windows).
"""

from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from ode_engine.factory import create_solver
from ode_engine.model_core import ModelCore

_OUTPUT_DIR = Path(__file__).resolve().parent / "output" / "oscillator"
_UNKNOWN_SOLVER_ERROR = "unknown solver name: {name}"

_SOLVER_NAMES: tuple[str, ...] = (
    "euler",
    "euler-richardson",
    "verlet",
    "leapfrog",
    "rk4",
    "rk45-multistep",
)


def oscillator_rate(
    t: float,  # noqa: ARG001 (no explicit time dependence here)
    y: np.ndarray,
    *,
    omega: float,
) -> np.ndarray:
    """Rate for x'' = -omega^2 x in first-order form.

    Args:
        t: Current time (unused; included for API compatibility).
        y: Dependent variables (x, v).
        omega: Angular frequency.

    Returns:
        (dx/dt, dv/dt).
    """
    return np.array([y[1], -(omega**2) * y[0]])


def run_solver(
    name: str,
    *,
    omega: float,
    step_size: float,
    n_steps: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Integrate the oscillator with one solver and record the trajectory.

    Args:
        name: Solver name understood by create_solver().
        omega: Angular frequency.
        step_size: Step size (or fixed interval).
        n_steps: Number of steps to take.

    Raises:
        ValueError: If the solver name is unknown.

    Returns:
        Tuple of (times, values) with shapes (n_steps + 1,) and (n_steps + 1, 2).
    """
    core = ModelCore(lambda t, y: oscillator_rate(t, y, omega=omega), [1.0, 0.0])
    solver = create_solver(core, name)
    if solver is None:
        raise ValueError(_UNKNOWN_SOLVER_ERROR.format(name=name))
    solver.initialize(step_size)

    times = np.empty(n_steps + 1)
    values = np.empty((n_steps + 1, 2))
    times[0] = core.current_time
    values[0] = core.values
    for k in range(1, n_steps + 1):
        solver.step()
        times[k] = core.current_time
        values[k] = core.values
    return times, values


def energy_drift(values: np.ndarray, *, omega: float) -> np.ndarray:
    """Relative energy drift along a trajectory.

    Args:
        values: Trajectory, shape (n, 2).
        omega: Angular frequency.

    Returns:
        (E(t) - E(0)) / E(0), shape (n,).
    """
    energy = 0.5 * (values[:, 1] ** 2 + (omega * values[:, 0]) ** 2)
    return (energy - energy[0]) / energy[0]


def save_drift_plot(
    results: dict[str, tuple[np.ndarray, np.ndarray]],
    *,
    omega: float,
    out_path: Path,
) -> None:
    """Save the energy drift of every solver to an image file.

    Args:
        results: Mapping of solver name to (times, values).
        omega: Angular frequency.
        out_path: Output path for the saved figure.
    """
    plt.figure(figsize=(8, 5))
    for name, (times, values) in results.items():
        plt.plot(times, energy_drift(values, omega=omega), label=name)
    plt.yscale("symlog", linthresh=1e-8)
    plt.grid(visible=True)
    plt.legend()
    plt.title("Harmonic oscillator: relative energy drift")
    plt.xlabel("Time")
    plt.ylabel("(E - E0) / E0")
    plt.tight_layout()

    out_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(out_path, dpi=150)
    plt.close()


def main() -> None:
    """Run every solver on the same oscillator and save a drift comparison.

    Files are written to: examples/output/oscillator/
    """
    omega = 2.0 * np.pi
    step_size = 0.01
    n_steps = 1000

    results = {
        name: run_solver(name, omega=omega, step_size=step_size, n_steps=n_steps)
        for name in _SOLVER_NAMES
    }

    save_drift_plot(
        results,
        omega=omega,
        out_path=_OUTPUT_DIR / "energy_drift.png",
    )


if __name__ == "__main__":
    main()
