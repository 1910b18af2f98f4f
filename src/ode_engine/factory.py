# ode_engine/src/ode_engine/factory.py
"""Name-based solver construction.

Names are matched case-insensitively, ignoring hyphens, underscores and
spaces, so ``"Dormand-Prince45"``, ``"dormand_prince45"`` and
``"DormandPrince45"`` all resolve to the same solver.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Final

from .adaptive import CashKarp45, DormandPrince45
from .fixed_step import RK4, Adams5, Euler, EulerRichardson, LeapFrog, Verlet
from .multistep import FixedIntervalSolver

if TYPE_CHECKING:
    from .core_solver import ODESolver
    from .model_core import ODE


SolverFactory = Callable[["ODE"], "ODESolver"]

_CANONICAL: Final[dict[str, SolverFactory]] = {
    "euler": Euler,
    "euler-richardson": EulerRichardson,
    "rk4": RK4,
    "verlet": Verlet,
    "leapfrog": LeapFrog,
    "adams5": Adams5,
    "cash-karp45": CashKarp45,
    "dormand-prince45": DormandPrince45,
    "rk45-multistep": FixedIntervalSolver,
}

_ALIASES: Final[dict[str, str]] = {
    "midpoint": "euler-richardson",
    "rk45": "dormand-prince45",
    "multistep": "rk45-multistep",
    "fixed-interval": "rk45-multistep",
}


def normalize_solver_name(name: str) -> str:
    """
    Normalize a solver name for lookup.

    Args:
        name: User-supplied solver name.

    Returns:
        Lower-case name with hyphens, underscores and whitespace removed.
    """
    return "".join(ch for ch in name.strip().lower() if ch not in "-_ \t")


_REGISTRY: Final[dict[str, SolverFactory]] = {
    normalize_solver_name(key): factory for key, factory in _CANONICAL.items()
} | {
    normalize_solver_name(alias): _CANONICAL[target]
    for alias, target in _ALIASES.items()
}


def available_solvers() -> tuple[str, ...]:
    """Return the canonical solver names accepted by create_solver()."""
    return tuple(_CANONICAL)


def resolve_solver(name: str) -> SolverFactory | None:
    """
    Look up the constructor registered under ``name``.

    Args:
        name: Solver name, canonical or alias.

    Returns:
        The solver class, or None if the name is unknown.
    """
    return _REGISTRY.get(normalize_solver_name(name))


def create_solver(ode: ODE, name: str) -> ODESolver | None:
    """
    Create a solver by name, bound to ``ode`` and initialized.

    Args:
        ode: Model the solver integrates.
        name: Solver name, canonical or alias.

    Returns:
        A ready solver, or None if the name is unknown.
    """
    factory = resolve_solver(name)
    if factory is None:
        return None
    return factory(ode)
