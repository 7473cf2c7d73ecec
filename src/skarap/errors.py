"""Custom errors for the skarap package."""

from beartype.roar import BeartypeCallHintParamViolation
from jaxtyping import TypeCheckError

InputTypeError = (TypeCheckError, BeartypeCallHintParamViolation)


class InputStructureError(Exception):
    """Raised when the input structure is not valid."""


class ShapeError(Exception):
    """Raised when an input has an invalid shape."""


class NotFittedError(Exception):
    """Raised when the solver is used before its precomputation."""


class SolverError(Exception):
    """Base class of the errors raised by the ADMM solver."""


class FactorizationError(SolverError):
    """Raised when the system matrix cannot be factorized."""


class SolveError(SolverError):
    """Raised when the factorized system cannot be solved."""


class NumericalInconsistencyError(SolverError):
    """Raised when a solution does not satisfy its linear system."""


class InvariantViolationError(SolverError):
    """Raised when a rotation variable leaves SO(3) or a step check fails."""
