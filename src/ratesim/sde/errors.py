# src/ratesim/sde/errors.py
from __future__ import annotations


class SimulationError(Exception):
    """Base class for every failure surfaced by a simulation request."""


class ConfigError(SimulationError, ValueError):
    """Raised when a parameter violates its constraint. Detected before simulation."""

    def __init__(self, field: str, constraint: str):
        self.field = field
        self.constraint = constraint
        super().__init__(f"Invalid parameter '{field}': {constraint}")


class EvaluationError(SimulationError, ValueError):
    """Raised when a user formula fails to parse or to evaluate on the time grid."""

    def __init__(self, expr: str, reason: str, role: str | None = None):
        self.expr = expr
        self.reason = reason
        self.role = role
        prefix = f"Invalid {role} function" if role else "Invalid function"
        super().__init__(f"{prefix} '{expr}': {reason}")


class NumericError(SimulationError, ArithmeticError):
    """Raised when an integrated value stops being finite."""

    def __init__(self, message: str, path_index: int | None = None, step: int | None = None):
        self.path_index = path_index
        self.step = step
        super().__init__(message)


class CancelledRunError(SimulationError, RuntimeError):
    """Raised when the results of a cancelled run are about to be written."""


def format_error(exc: BaseException) -> str:
    """Single human-readable message shown at the request boundary."""
    return f"Error: {exc}"
