"""
The :mod:`skarap.admm` module gathers the ADMM solver of the ARAP energy.
"""

from .assembly import (
    assemble_rhs,
    assemble_system_matrix,
    direct_gradient_matrix,
    direct_gradient_rhs,
    normal_equations_matrix,
    normal_equations_rhs,
)
from .energy import (
    Energy,
    arap_energy,
    compute_energy,
    linear_solve_energy,
    projection_energy,
)
from .factorization import SparseFactorization
from .partition import VertexPartition, VertexType
from .problem import ArapProblem
from .rotations import closest_rotations, is_rotation
from .solver import (
    AdmmFixedSolver,
    dual_update_step,
    linear_solve_step,
    projection_step,
)
from .state import AdmmState
from .validation import check_linear_solve, check_projection, check_rotations
