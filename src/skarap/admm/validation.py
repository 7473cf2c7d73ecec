"""Diagnostics of the ADMM iterations.

These checks are not needed to deform a mesh. They are run by the solver
when `SolverOptions(validate=True)` and are used by the test suite:

- :func:`check_linear_solve` perturbs each free coordinate and each rotation
  entry around the output of the linear step and checks that the objective
  of the linear step does not decrease, in both directions;
- :func:`check_projection` checks that the projection onto SO(3) does not
  increase the augmented energy;
- :func:`check_rotations` checks that the projected rotations are in SO(3).
"""

import logging
from math import inf

from ..globals import energy_tolerance, perturbation_delta
from ..types import Rotations
from .energy import linear_solve_energy
from .problem import ArapProblem
from .rotations import is_rotation
from .state import AdmmState

logger = logging.getLogger(__name__)


def _perturbation_gaps(evaluate, tensor, index, delta, reference):
    """Energy increase when tensor[index] is moved by +delta and -delta."""
    value = tensor[index].item()

    tensor[index] = value + delta
    gap_plus = evaluate() - reference
    tensor[index] = value - delta
    gap_minus = evaluate() - reference
    tensor[index] = value

    return gap_plus, gap_minus


def check_linear_solve(
    problem: ArapProblem,
    state: AdmmState,
    delta: float = perturbation_delta,
    atol: float = 1e-10,
) -> bool:
    """Check that the state is a minimum of the linear step objective.

    Each free vertex coordinate and each entry of each R_v is moved by
    +delta and -delta; the objective must not go below its value at the
    state (up to atol, relative to the objective when it exceeds 1).
    The state is not modified.

    Parameters
    ----------
    problem
        The deformation problem.
    state
        The state right after the linear step.
    delta
        Perturbation step.
    atol
        Tolerance on the energy decrease.

    Returns
    -------
    bool
        True if no perturbation decreases the objective.
    """
    vertices = state.vertices_updated.clone()
    rotations = state.rotations.clone()

    def evaluate():
        return linear_solve_energy(problem, state, vertices, rotations)

    optimal = evaluate()
    tolerance = atol * max(1.0, abs(optimal))
    logger.debug("Optimal linear energy: %.15g", optimal)

    for vertex in problem.partition.free.tolist():
        for axis in range(3):
            gaps = _perturbation_gaps(
                evaluate, vertices, (vertex, axis), delta, optimal
            )
            if min(gaps) < -tolerance:
                logger.warning(
                    "Linear solve check failed at vertex %s, axis %s:"
                    + " energy changes %s",
                    vertex,
                    axis,
                    gaps,
                )
                return False

    for vertex in range(problem.n_vertices):
        for i in range(3):
            for j in range(3):
                gaps = _perturbation_gaps(
                    evaluate, rotations, (vertex, i, j), delta, optimal
                )
                if min(gaps) < -tolerance:
                    logger.warning(
                        "Linear solve check failed at rotation (%s, %s, %s):"
                        + " energy changes %s",
                        vertex,
                        i,
                        j,
                        gaps,
                    )
                    return False

    logger.debug("All linear solve checks passed")
    return True


def check_projection(
    energy_before: float,
    energy_after: float,
    tolerance: float = energy_tolerance,
) -> bool:
    """Check that the projection step did not increase the energy.

    Parameters
    ----------
    energy_before
        Projection energy before the step (see
        :func:`skarap.admm.energy.projection_energy`).
    energy_after
        Projection energy after the step.
    tolerance
        Allowed increase.

    Returns
    -------
    bool
        False if one of the energies is infinite or if the energy increased
        by more than the tolerance.
    """
    if energy_before == inf or energy_after == inf:
        logger.warning(
            "Projection check failed: infinite energy (before: %s, after: %s)",
            energy_before,
            energy_after,
        )
        return False

    if energy_before < energy_after - tolerance:
        logger.warning(
            "Projection check failed: energy increased from %s to %s",
            energy_before,
            energy_after,
        )
        return False

    return True


def check_rotations(matrices: Rotations) -> bool:
    """Check that every matrix of a batch belongs to SO(3)."""
    valid = is_rotation(matrices)
    if not bool(valid.all()):
        invalid = valid.logical_not().nonzero().view(-1).tolist()
        logger.warning("Matrices %s do not belong to SO(3)", invalid)
        return False
    return True
