# ode_engine/src/ode_engine/errors.py
"""Error codes, exception types and diagnostic helpers for ode_engine.

Solvers report the outcome of a step in two ways:
- an :class:`ErrorCode` value that callers can poll after every call, and
- optionally, a :class:`DidNotConvergeError` raised when exception mode was
  enabled on the solver.

Non-fatal diagnostics (tolerance clamping, repeated convergence failures in the
fixed-interval layer) are emitted as ``RuntimeWarning`` through
:mod:`warnings`.
"""

from __future__ import annotations

import warnings
from enum import StrEnum
from typing import Final

_TOLERANCE_FLOOR_MSG: Final[str] = (
    "{solver} tolerance {requested:g} is below the floor {floor:g}; "
    "using {floor:g} instead."
)
_DID_NOT_CONVERGE_MSG: Final[str] = "{solver} ODE solver did not converge."
_REMAINDER_MSG: Final[str] = "{solver} did not converge. Remainder={remainder!r}"
_SUPPRESSED_MSG: Final[str] = "{solver} did not converge. Further warnings suppressed."


class ErrorCode(StrEnum):
    """Outcome of the most recent solver step."""

    NO_ERROR = "no_error"
    DID_NOT_CONVERGE = "did_not_converge"
    # Reserved for event-locating solvers; no solver in this package emits it.
    BISECTION_EVENT_NOT_FOUND = "bisection_event_not_found"


class ODESolverError(RuntimeError):
    """Base exception for ode_engine failures."""

    def __init__(self, message: str, *, code: ErrorCode | None = None) -> None:
        """
        Initialize an ODESolverError.

        Args:
            message: Human-readable error message.
            code: Optional error code classifying the failure.
        """
        super().__init__(message)
        self.code: ErrorCode | None = code


class DidNotConvergeError(ODESolverError):
    """Raised in exception mode when a step could not meet its tolerance."""

    def __init__(
        self,
        message: str,
        *,
        step: float = 0.0,
        remainder: float = 0.0,
    ) -> None:
        """
        Initialize a DidNotConvergeError.

        Args:
            message: Human-readable error message.
            step: Time advance that was committed before raising.
            remainder: Part of the requested interval that was not covered.
        """
        super().__init__(message, code=ErrorCode.DID_NOT_CONVERGE)
        self.step = float(step)
        self.remainder = float(remainder)


class UnknownSolverError(ODESolverError, ValueError):
    """Raised when a solver name cannot be resolved."""


class StateShapeError(ODESolverError, ValueError):
    """Raised when a state or rate array has an unexpected shape."""


def raise_did_not_converge(
    solver: str,
    *,
    step: float = 0.0,
    remainder: float = 0.0,
) -> None:
    """Raise a standardized DidNotConvergeError.

    Args:
        solver: Name of the solver reporting the failure.
        step: Time advance committed before raising.
        remainder: Uncovered part of the requested interval.

    Raises:
        DidNotConvergeError: Always.
    """
    msg = _DID_NOT_CONVERGE_MSG.format(solver=solver)
    if remainder:
        msg = f"{msg} Remainder={remainder!r}"
    raise DidNotConvergeError(msg, step=step, remainder=remainder)


def raise_state_shape_error(*, name: str, expected: object, got: object) -> None:
    """Raise a standardized StateShapeError.

    Args:
        name: Name of the array with the shape issue.
        expected: Expected shape.
        got: Observed shape.

    Raises:
        StateShapeError: Always.
    """
    msg = f"{name} has shape {got!r}; expected {expected!r}."
    raise StateShapeError(msg)


def warn_tolerance_clamped(solver: str, *, requested: float, floor: float) -> None:
    """Emit a RuntimeWarning for a tolerance below the solver floor."""
    warnings.warn(
        _TOLERANCE_FLOOR_MSG.format(solver=solver, requested=requested, floor=floor),
        RuntimeWarning,
        stacklevel=3,
    )


def warn_did_not_converge(solver: str, *, remainder: float, last: bool) -> None:
    """
    Emit a RuntimeWarning for a fixed-interval step that fell short.

    Args:
        solver: Name of the solver reporting the failure.
        remainder: Uncovered part of the requested interval.
        last: True when this is the last warning before suppression.
    """
    warnings.warn(
        _REMAINDER_MSG.format(solver=solver, remainder=remainder),
        RuntimeWarning,
        stacklevel=3,
    )
    if last:
        warnings.warn(
            _SUPPRESSED_MSG.format(solver=solver),
            RuntimeWarning,
            stacklevel=3,
        )
