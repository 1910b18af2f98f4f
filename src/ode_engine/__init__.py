"""ode_engine: fixed-step and embedded adaptive Runge-Kutta ODE solvers."""

from __future__ import annotations

from .adaptive import (
    CASH_KARP_45,
    DORMAND_PRINCE_45,
    AdaptiveConfig,
    CashKarp45,
    DormandPrince45,
    EmbeddedRungeKutta,
    EmbeddedTableau,
)
from .config import SolverConfig
from .core_solver import ODEAdaptiveSolver, ODESolver, SolverBase, StepReport
from .errors import (
    DidNotConvergeError,
    ErrorCode,
    ODESolverError,
    StateShapeError,
    UnknownSolverError,
)
from .factory import available_solvers, create_solver, normalize_solver_name
from .fixed_step import RK4, Adams5, Euler, EulerRichardson, LeapFrog, Verlet
from .model_core import ODE, ModelCore, ModelCoreOptions, RateFunction
from .multistep import FixedIntervalSolver

__all__ = [
    "CASH_KARP_45",
    "DORMAND_PRINCE_45",
    "ODE",
    "RK4",
    "Adams5",
    "AdaptiveConfig",
    "CashKarp45",
    "DidNotConvergeError",
    "DormandPrince45",
    "EmbeddedRungeKutta",
    "EmbeddedTableau",
    "ErrorCode",
    "Euler",
    "EulerRichardson",
    "FixedIntervalSolver",
    "LeapFrog",
    "ModelCore",
    "ModelCoreOptions",
    "ODEAdaptiveSolver",
    "ODESolver",
    "ODESolverError",
    "RateFunction",
    "SolverBase",
    "SolverConfig",
    "StateShapeError",
    "StepReport",
    "UnknownSolverError",
    "Verlet",
    "available_solvers",
    "create_solver",
    "normalize_solver_name",
]

__version__ = "0.1.0"
