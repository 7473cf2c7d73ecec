"""As-Rigid-As-Possible deformation with fixed vertices, solved with ADMM.

The deformation minimizes the ARAP energy

    sum_(i, j) w_ij |(q_i - q_j) - R_i (p_i - p_j)|^2,   R_i in SO(3)

over the free vertex positions q and the per-vertex rotations R, the fixed
vertices being moved to target positions. The constraint R_i in SO(3) is
split with an auxiliary variable S (R = S, S in SO(3)) and handled by ADMM
with the scaled dual variable T. Each iteration is:

1. linear step: minimize the ARAP energy + rho / 2 |R - S + T|^2 over q and
   R, a sparse linear system whose matrix does not depend on the iteration
   and is factorized once;
2. projection step: S = closest rotation to R + T (orthogonal Procrustes);
3. dual update: T = T + R - S.
"""

import logging

import numpy as np
import scipy.sparse as sp

from ..errors import (
    InvariantViolationError,
    NotFittedError,
    NumericalInconsistencyError,
    ShapeError,
    SolveError,
)
from ..globals import admissible_assembly_methods
from ..input_validation import convert_inputs, typecheck
from ..types import (
    AssemblyMethod,
    DeformationOutput,
    Int1dTensor,
    Number,
    Points3d,
    Rotations,
    SolverOptions,
    Triangles,
)
from .assembly import assemble_rhs, assemble_system_matrix
from .energy import Energy, compute_energy, projection_energy
from .factorization import SparseFactorization
from .partition import VertexPartition
from .problem import ArapProblem
from .rotations import closest_rotations
from .state import AdmmState
from .validation import check_linear_solve, check_projection, check_rotations

logger = logging.getLogger(__name__)


def linear_solve_step(
    problem: ArapProblem,
    system_matrix: sp.spmatrix,
    factorization: SparseFactorization,
    state: AdmmState,
    *,
    method: AssemblyMethod = "direct_gradient",
    residual_tolerance: float = 1e-6,
) -> float:
    """Solve the linear step and write q and R into the state.

    Returns
    -------
    float
        The squared residual |M x - rhs|^2 of the solution.

    Raises
    ------
    SolveError
        If the solution does not have one row per unknown.
    NumericalInconsistencyError
        If the squared residual exceeds residual_tolerance.
    """
    partition = problem.partition

    rhs = assemble_rhs(
        method=method,
        **problem.system_inputs(),
        vertices_updated=state.vertices_updated,
        projected=state.projected,
        dual=state.dual,
    )
    solution = factorization.solve(rhs)

    if solution.shape[0] != partition.n_unknowns:
        msg = (
            f"The solution has {solution.shape[0]} rows,"
            + f" expected {partition.n_unknowns}"
        )
        raise SolveError(msg)

    residual = float(
        np.sum((system_matrix @ solution.numpy() - rhs.numpy()) ** 2)
    )
    if residual > residual_tolerance:
        msg = (
            f"The sparse linear solve is wrong: squared residual {residual}"
            + f" exceeds {residual_tolerance}"
        )
        raise NumericalInconsistencyError(msg)

    n_free = partition.n_free
    state.vertices_updated[partition.free] = solution[:n_free]
    # Rows n_free + 3 * v + i hold the entries R_v[:, i]
    state.rotations = (
        solution[n_free:].reshape(-1, 3, 3).transpose(1, 2).contiguous()
    )
    return residual


def projection_step(state: AdmmState) -> None:
    """S = closest rotation to R + T, for every vertex."""
    state.projected = closest_rotations(state.rotations + state.dual)


def dual_update_step(state: AdmmState) -> None:
    """T = T + R - S, for every vertex."""
    state.dual = state.dual + state.rotations - state.projected


class AdmmFixedSolver:
    """ARAP deformation solver with fixed vertices.

    Examples
    --------
    ```python
    solver = AdmmFixedSolver(
        vertices=vertices, faces=faces, fixed=[0, 5], max_iteration=50, rho=1.0
    )
    solver.precompute()
    output = solver.solve(fixed_vertices=targets)
    output.vertices  # deformed positions
    output.energy["Total"]
    ```

    The solver can also be driven step by step, which is what an
    interactive tool does to update the mesh after each iteration:

    ```python
    solver.solve_preprocess(targets)
    for _ in range(solver.max_iteration):
        solver.solve_one_iteration()
    ```

    Parameters
    ----------
    vertices
        Rest positions with shape (n_vertices, 3).
    faces
        Triangles of the mesh with shape (n_faces, 3). Triangles must not be
        degenerate.
    fixed
        Indices of the fixed vertices.
    max_iteration
        Number of iterations run by :meth:`solve`.
    rho
        Weight of the rotation augmentation. Larger values enforce R in
        SO(3) more tightly at each iteration but can slow down convergence.
    options
        Assembly method, diagnostics and tolerances.

    Raises
    ------
    ValueError
        If rho is not positive, max_iteration is negative or the assembly
        method is unknown.
    IndexError
        If a face or a fixed index references a vertex that does not exist.
    """

    @convert_inputs
    @typecheck
    def __init__(
        self,
        *,
        vertices: Points3d,
        faces: Triangles,
        fixed: Int1dTensor,
        max_iteration: int = 50,
        rho: Number = 1.0,
        options: SolverOptions | None = None,
    ) -> None:
        if rho <= 0:
            msg = f"rho must be positive, got {rho}"
            raise ValueError(msg)

        if max_iteration < 0:
            msg = f"max_iteration must be non negative, got {max_iteration}"
            raise ValueError(msg)

        n_vertices = vertices.shape[0]
        if faces.numel() > 0 and (
            faces.min() < 0 or faces.max() >= n_vertices
        ):
            msg = "Faces reference vertices that do not exist"
            raise IndexError(msg)

        self.vertices = vertices.clone()
        self.faces = faces.clone()
        self.partition = VertexPartition(n_vertices=n_vertices, fixed=fixed)
        self.max_iteration = max_iteration
        self.rho = float(rho)
        self.options = options if options is not None else SolverOptions()

        if self.options.assembly not in admissible_assembly_methods:
            msg = (
                f"Unknown assembly method {self.options.assembly}. Possible"
                + f" values are {admissible_assembly_methods}"
            )
            raise ValueError(msg)

        self.problem = None
        self.system_matrix = None
        self.factorization = None
        self.state = None
        self.last_residual = None

    @property
    def is_precomputed(self) -> bool:
        """Whether precompute() has succeeded."""
        return self.factorization is not None

    def precompute(self) -> "AdmmFixedSolver":
        """Compute the weights, assemble and factorize the system matrix.

        Returns
        -------
        AdmmFixedSolver
            self, to allow chaining.

        Raises
        ------
        FactorizationError
            If the system matrix is not positive definite.
        """
        problem = ArapProblem.from_mesh(
            points=self.vertices,
            triangles=self.faces,
            partition=self.partition,
            rho=self.rho,
        )
        system_matrix = assemble_system_matrix(
            method=self.options.assembly, **problem.system_inputs()
        )
        factorization = SparseFactorization().factorize(system_matrix)

        self.problem = problem
        self.system_matrix = system_matrix
        self.factorization = factorization

        logger.info(
            "Precomputed %s (%s unknowns, assembly: %s)",
            self.partition,
            self.partition.n_unknowns,
            self.options.assembly,
        )
        return self

    @convert_inputs
    @typecheck
    def solve_preprocess(self, fixed_vertices: Points3d) -> None:
        """Start a deformation towards new fixed-vertex targets.

        Positions are reset to the rest pose with the fixed vertices moved
        to their targets, R and S to the identity and T to zero.

        Parameters
        ----------
        fixed_vertices
            Targets of the fixed vertices, in the order of `fixed`, with
            shape (n_fixed, 3).

        Raises
        ------
        ShapeError
            If the number of targets does not match the number of fixed
            vertices. The current state is left untouched.
        """
        if fixed_vertices.shape[0] != self.partition.n_fixed:
            msg = (
                f"Got {fixed_vertices.shape[0]} fixed vertex positions for"
                + f" {self.partition.n_fixed} fixed vertices"
            )
            raise ShapeError(msg)

        self.state = AdmmState.initial(
            points=self.vertices,
            fixed=self.partition.fixed,
            fixed_vertices=fixed_vertices,
        )

    def solve_one_iteration(self) -> None:
        """Run one ADMM iteration: linear step, projection, dual update.

        The iteration works on a copy of the state, which replaces the
        current state only if every step (and every diagnostic, when
        `options.validate` is set) succeeded.

        Raises
        ------
        NotFittedError
            If precompute() or solve_preprocess() has not been called.
        SolveError
            If the sparse solve fails.
        NumericalInconsistencyError
            If the linear step solution is not accurate, or (with
            validation) is not a minimum of the linear step objective.
        InvariantViolationError
            With validation, if the projection increases the energy or a
            projected rotation is not in SO(3).
        """
        self._check_ready()
        problem = self.problem
        options = self.options
        state = self.state.clone()

        residual = linear_solve_step(
            problem,
            self.system_matrix,
            self.factorization,
            state,
            method=options.assembly,
            residual_tolerance=options.residual_tolerance,
        )

        if options.validate:
            if not check_linear_solve(
                problem, state, delta=options.perturbation_delta
            ):
                msg = "The linear step did not reach a minimum"
                raise NumericalInconsistencyError(msg)
            energy_before = projection_energy(problem, state)

        projection_step(state)

        if options.validate:
            energy_after = projection_energy(problem, state)
            if not check_rotations(state.projected):
                msg = "A projected rotation does not belong to SO(3)"
                raise InvariantViolationError(msg)
            if not check_projection(
                energy_before, energy_after, options.energy_tolerance
            ):
                msg = (
                    "The projection step increased the energy from"
                    + f" {energy_before} to {energy_after}"
                )
                raise InvariantViolationError(msg)

        dual_update_step(state)
        state.iteration += 1
        self.state = state
        self.last_residual = residual

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Iteration %s: residual %.3g, %s",
                state.iteration,
                residual,
                compute_energy(problem, state),
            )

    @convert_inputs
    @typecheck
    def solve(self, fixed_vertices: Points3d) -> DeformationOutput:
        """Deform the mesh: preprocess, then run max_iteration iterations.

        The system matrix is precomputed on the first call.

        Parameters
        ----------
        fixed_vertices
            Targets of the fixed vertices with shape (n_fixed, 3).

        Returns
        -------
        DeformationOutput
            The deformed vertices, the rotations, the final energy and, if
            `options.record_energy`, the energy after each iteration.
        """
        if not self.is_precomputed:
            self.precompute()

        self.solve_preprocess(fixed_vertices)

        history = [] if self.options.record_energy else None
        for it in range(self.max_iteration):
            logger.debug("Iteration %s/%s...", it + 1, self.max_iteration)
            self.solve_one_iteration()
            if history is not None:
                history.append(self.compute_energy())

        return DeformationOutput(
            vertices=self.vertices_updated,
            rotations=self.rotations,
            energy=self.compute_energy(),
            n_iterations=self.state.iteration,
            energy_history=history,
        )

    def compute_energy(self) -> Energy:
        """Energy breakdown ("ARAP", "Rotation", "Total") of the state."""
        self._check_ready()
        return compute_energy(self.problem, self.state)

    @property
    def vertices_updated(self) -> Points3d:
        """Current positions of all the vertices."""
        self._check_state()
        return self.state.vertices_updated.clone()

    @property
    def rotations(self) -> Rotations:
        """Current rotations R (output of the last linear step)."""
        self._check_state()
        return self.state.rotations.clone()

    @property
    def projected_rotations(self) -> Rotations:
        """Current projected rotations S."""
        self._check_state()
        return self.state.projected.clone()

    def _check_state(self) -> None:
        if self.state is None:
            msg = "solve_preprocess() must be called first"
            raise NotFittedError(msg)

    def _check_ready(self) -> None:
        if not self.is_precomputed:
            msg = "precompute() must be called first"
            raise NotFittedError(msg)
        self._check_state()

    def __repr__(self) -> str:
        return (
            f"AdmmFixedSolver(n_vertices={self.partition.n_vertices},"
            + f" n_faces={len(self.faces)}, n_fixed={self.partition.n_fixed},"
            + f" max_iteration={self.max_iteration}, rho={self.rho})"
        )
