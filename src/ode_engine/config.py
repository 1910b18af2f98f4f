# ode_engine/src/ode_engine/config.py
"""Configuration model for building solvers from YAML/JSON-style mappings.

Notes:
    - Unknown fields are allowed and ignored (`extra="allow"`), so a solver
      section can live inside a larger application config.
    - `method` is resolved by the factory at build time; names it does not
      know raise UnknownSolverError.
    - `tolerance` and `max_iterations` only apply to solvers that support
      them and are ignored otherwise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .adaptive import EmbeddedRungeKutta
from .errors import UnknownSolverError
from .factory import available_solvers, create_solver
from .multistep import FixedIntervalSolver

if TYPE_CHECKING:
    from .core_solver import ODESolver
    from .model_core import ODE

_ZERO_STEP_ERROR = "step_size must be non-zero"
_UNKNOWN_METHOD_ERROR = "Unknown solver method {method!r}; expected one of {known}"


class SolverConfig(BaseModel):
    """Configuration schema for a single solver.

    Notes:
        - A negative `step_size` integrates backward.
        - `tolerance` below the solver floor is clamped by the solver with a
          RuntimeWarning rather than rejected here.
    """

    model_config = ConfigDict(extra="allow")

    method: str = Field(
        default="dormand-prince45",
        description="Solver name understood by create_solver()",
    )

    step_size: float = Field(
        default=0.1,
        description="Fixed step, or initial step for adaptive solvers",
    )

    tolerance: float | None = Field(default=None, gt=0.0)

    raise_on_failure: bool = Field(
        default=False,
        description="Raise DidNotConvergeError instead of reporting an error code",
    )

    max_iterations: int | None = Field(default=None, ge=1)

    @field_validator("step_size")
    @classmethod
    def _check_step_size(cls, value: float) -> float:
        if value == 0.0:
            raise ValueError(_ZERO_STEP_ERROR)
        return value

    def build(self, ode: ODE) -> ODESolver:
        """Construct and configure the solver described by this config.

        Args:
            ode: Model the solver integrates.

        Returns:
            Initialized solver bound to ``ode``.

        Raises:
            UnknownSolverError: If `method` is not a known solver name.
        """
        solver = create_solver(ode, self.method)
        if solver is None:
            raise UnknownSolverError(
                _UNKNOWN_METHOD_ERROR.format(
                    method=self.method,
                    known=", ".join(available_solvers()),
                )
            )

        solver.initialize(self.step_size)

        if isinstance(solver, (EmbeddedRungeKutta, FixedIntervalSolver)):
            if self.tolerance is not None:
                solver.set_tolerance(self.tolerance)
            solver.enable_runtime_exceptions(self.raise_on_failure)

        if isinstance(solver, FixedIntervalSolver) and self.max_iterations is not None:
            solver.set_max_iterations(self.max_iterations)

        return solver
