"""Types aliases and utility classes for scikit-arap."""

from typing import Literal

import torch
from beartype import beartype
from beartype.typing import NamedTuple
from jaxtyping import Float64, Int64

from .globals import (
    default_assembly,
    energy_tolerance,
    matrix_diff_threshold,
    perturbation_delta,
)

# Type aliases
Number = int | float

# Numerical types
# Only Float64 tensors are accepted for coordinates, only Int64 tensors for
# indices (see `convert_inputs`)
Int1dTensor = Int64[torch.Tensor, "_"]
BoolTensor = torch.Tensor

# Specific numerical types
Points3d = Float64[torch.Tensor, "_ 3"]
Triangles = Int64[torch.Tensor, "_ 3"]
Edges = Int64[torch.Tensor, "_ 2"]
EdgeWeights = Float64[torch.Tensor, "n_edges"]
TriangleCotangents = Float64[torch.Tensor, "n_triangles 3"]

# One 3x3 matrix per vertex (R, S and T variables of the ADMM solver)
Rotations = Float64[torch.Tensor, "_ 3 3"]

# Right-hand side / solution of the linear step: one column per axis
RightHandSide = Float64[torch.Tensor, "n_unknowns 3"]

AssemblyMethod = Literal["direct_gradient", "normal_equations"]


@beartype
class SolverOptions(NamedTuple):
    """Parameters of the ADMM solver.

    Parameters
    ----------
    assembly : str, default="direct_gradient"
        The derivation used to assemble the system matrix and the right-hand
        side of the linear step. Possible values are "direct_gradient" and
        "normal_equations". Both produce the same linear system. The default
        can be changed with the SKARAP_ASSEMBLY environment variable.
    validate : bool, default=False
        If True, each iteration runs the diagnostics of
        :mod:`skarap.admm.validation` (finite-difference optimality of the
        linear step, energy decrease of the projection, SO(3) membership) and
        raises if one of them fails.
    residual_tolerance : float, default=1e-6
        Upper bound on the squared residual of the linear solve.
    energy_tolerance : float, default=0.02
        Tolerance on the energy increase allowed by the projection step.
    perturbation_delta : float, default=1e-3
        Step of the finite-difference perturbations.
    record_energy : bool, default=False
        If True, :meth:`AdmmFixedSolver.solve` records the energy after each
        iteration.
    """

    assembly: AssemblyMethod = default_assembly
    validate: bool = False
    residual_tolerance: float = matrix_diff_threshold
    energy_tolerance: float = energy_tolerance
    perturbation_delta: float = perturbation_delta
    record_energy: bool = False


class DeformationOutput:
    """Class containing the result of a deformation.

    It acts as a container for the result of
    :meth:`AdmmFixedSolver.solve`. It contains the deformed vertices, the
    per-vertex rotations, the energy of the final state and the number of
    iterations, and eventually other attributes.

    Parameters
    ----------
    vertices
        the deformed vertex positions
    rotations
        the per-vertex rotations (linear-solve variables)
    energy
        the energy of the final state
    n_iterations
        the number of ADMM iterations performed
    energy_history
        the energy after each iteration (if recorded)
    kwargs
        other attributes (if any)

    """

    def __init__(
        self,
        vertices: Points3d | None = None,
        rotations: Rotations | None = None,
        energy=None,
        n_iterations: int = 0,
        energy_history: list | None = None,
        **kwargs,
    ) -> None:
        self.vertices = vertices
        self.rotations = rotations
        self.energy = energy
        self.n_iterations = n_iterations
        self.energy_history = energy_history

        # Eventually add other attributes
        for key, value in kwargs.items():
            setattr(self, key, value)
