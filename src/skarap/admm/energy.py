"""Energies of the ADMM solver.

The energy reported to the caller is

    ARAP     = sum_(i, j) w_ij |(q_i - q_j) - R_i (p_i - p_j)|^2
    Rotation = rho / 2 * sum_v |R_v - S_v|^2
    Total    = ARAP + Rotation

where the sum runs over the directed edges of the mesh. It is only defined
when every S_v belongs to SO(3); otherwise the energy is infinite.
"""

import logging
from collections.abc import Mapping
from math import inf

import torch

from ..types import Points3d, Rotations
from .problem import ArapProblem
from .rotations import is_rotation
from .state import AdmmState

logger = logging.getLogger(__name__)


class Energy(Mapping):
    """Named energy terms, e.g. "ARAP", "Rotation" and "Total".

    Examples
    --------
    ```python
    energy = Energy()
    energy.add_energy_type("ARAP", 0.5)
    energy["ARAP"]  # 0.5
    ```
    """

    def __init__(self, terms: dict | None = None) -> None:
        self._terms = {}
        for name, value in (terms or {}).items():
            self.add_energy_type(name, value)

    def add_energy_type(self, name: str, value) -> None:
        """Add (or replace) a term."""
        self._terms[name] = float(value)

    @property
    def is_finite(self) -> bool:
        """Whether all the terms are finite."""
        return all(abs(value) < inf for value in self._terms.values())

    def __getitem__(self, name: str) -> float:
        return self._terms[name]

    def __iter__(self):
        return iter(self._terms)

    def __len__(self) -> int:
        return len(self._terms)

    def __repr__(self) -> str:
        terms = ", ".join(f"{k}={v:.6g}" for k, v in self._terms.items())
        return f"Energy({terms})"


def arap_energy(
    problem: ArapProblem, vertices: Points3d, rotations: Rotations
) -> torch.Tensor:
    """ARAP term for given positions and (not necessarily orthogonal) R."""
    first, second = problem.edges[:, 0], problem.edges[:, 1]
    rest = problem.rest_edge_vectors()
    residuals = (vertices[first] - vertices[second]) - torch.einsum(
        "eij,ej->ei", rotations[first], rest
    )
    return (problem.weights * (residuals**2).sum(dim=-1)).sum()


def compute_energy(problem: ArapProblem, state: AdmmState) -> Energy:
    """Energy breakdown of a state.

    Returns
    -------
    Energy
        The terms "ARAP", "Rotation" and "Total". If a projected rotation
        S_v is not in SO(3), only "Total" is set, to infinity.
    """
    if not bool(is_rotation(state.projected).all()):
        logger.warning("A projected rotation does not belong to SO(3)")
        return Energy({"Total": inf})

    arap = arap_energy(problem, state.vertices_updated, state.rotations)
    rotation = (
        problem.rho
        / 2
        * ((state.rotations - state.projected) ** 2).sum()
    )

    energy = Energy()
    energy.add_energy_type("ARAP", arap)
    energy.add_energy_type("Rotation", rotation)
    energy.add_energy_type("Total", arap + rotation)
    return energy


def linear_solve_energy(
    problem: ArapProblem,
    state: AdmmState,
    vertices: Points3d | None = None,
    rotations: Rotations | None = None,
) -> float:
    """Objective minimized by the linear step.

    ARAP + rho / 2 * sum_v |R_v - S_v + T_v|^2, with S and T read from the
    state. Positions and rotations default to those of the state and can be
    overridden to evaluate perturbations.
    """
    if vertices is None:
        vertices = state.vertices_updated
    if rotations is None:
        rotations = state.rotations

    augmentation = ((rotations - state.projected + state.dual) ** 2).sum()
    return float(
        arap_energy(problem, vertices, rotations)
        + problem.rho / 2 * augmentation
    )


def projection_energy(problem: ArapProblem, state: AdmmState) -> float:
    """Objective minimized by the projection step.

    rho / 2 * sum_v |R_v - S_v + T_v|^2, infinite if a S_v is not in SO(3).
    """
    if not bool(is_rotation(state.projected).all()):
        return inf

    augmentation = (
        (state.rotations - state.projected + state.dual) ** 2
    ).sum()
    return float(problem.rho / 2 * augmentation)
