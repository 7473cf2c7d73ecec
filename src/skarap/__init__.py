"""Scikit-ARAP: As-Rigid-As-Possible mesh deformation in python."""

from .admm import *
from .errors import (
    FactorizationError,
    InputStructureError,
    InputTypeError,
    InvariantViolationError,
    NotFittedError,
    NumericalInconsistencyError,
    ShapeError,
    SolveError,
    SolverError,
)
from .globals import (
    float_dtype,
    int_dtype,
)
from .input_validation import *
from .triangle_mesh import *
from .types import DeformationOutput, SolverOptions

__version__ = "0.1.0"

__all__ = [
    "AdmmFixedSolver",
    "DeformationOutput",
    "Energy",
    "SolverOptions",
    "VertexPartition",
    "admm",
    "errors",
    "input_validation",
    "triangle_mesh",
    "types",
]
