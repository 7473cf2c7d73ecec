"""Tests for the energies of the ADMM solver."""

import logging
from math import inf

import pytest
import torch

from skarap.admm import (
    AdmmState,
    ArapProblem,
    Energy,
    VertexPartition,
    compute_energy,
    linear_solve_energy,
    projection_energy,
)

from .utils import quad_mesh, random_state


@pytest.fixture
def quad_problem():
    points, triangles = quad_mesh()
    partition = VertexPartition(n_vertices=4, fixed=[0, 2])
    return ArapProblem.from_mesh(
        points=points, triangles=triangles, partition=partition, rho=1.0
    )


def test_energy_container():
    """Energy behaves like a read-only mapping."""
    energy = Energy({"ARAP": 1})
    energy.add_energy_type("Rotation", torch.tensor(0.5))

    assert dict(energy) == {"ARAP": 1.0, "Rotation": 0.5}
    assert len(energy) == 2
    assert energy.is_finite
    assert "ARAP=1" in repr(energy)
    with pytest.raises(KeyError):
        energy["Total"]

    assert not Energy({"Total": inf}).is_finite


def test_rest_energy(quad_problem):
    """The rest pose has zero energy."""
    state = AdmmState.initial(
        points=quad_problem.points,
        fixed=quad_problem.partition.fixed,
        fixed_vertices=quad_problem.points[[0, 2]],
    )
    energy = compute_energy(quad_problem, state)

    assert set(energy) == {"ARAP", "Rotation", "Total"}
    assert energy["Total"] == 0


def test_moved_vertex_energy(quad_problem):
    """Moving vertex 2 by 0.1 stretches the edges (1, 2) and (2, 3)."""
    targets = quad_problem.points[[0, 2]].clone()
    targets[1, 0] += 0.1
    state = AdmmState.initial(
        points=quad_problem.points,
        fixed=quad_problem.partition.fixed,
        fixed_vertices=targets,
    )
    energy = compute_energy(quad_problem, state)

    # w = 0.5 on both edges, the diagonal (0, 2) has weight 0
    assert energy["ARAP"] == pytest.approx(0.5 * 0.01 + 0.5 * 0.01)
    assert energy["Rotation"] == 0
    assert energy["Total"] == pytest.approx(0.01)


def test_rotation_energy(quad_problem):
    """The rotation term is rho / 2 |R - S|^2."""
    state = random_state(quad_problem, quad_problem.points[[0, 2]])
    energy = compute_energy(quad_problem, state)

    expected = 0.5 * ((state.rotations - state.projected) ** 2).sum()
    assert energy["Rotation"] == pytest.approx(float(expected))
    assert energy["Total"] == pytest.approx(
        energy["ARAP"] + energy["Rotation"]
    )


def test_infinite_energy(quad_problem, caplog):
    """If a S_v is not a rotation, the energy is infinite."""
    state = random_state(quad_problem, quad_problem.points[[0, 2]])
    state.projected[3] = 2 * state.projected[3]

    with caplog.at_level(logging.WARNING, logger="skarap.admm.energy"):
        energy = compute_energy(quad_problem, state)

    assert dict(energy) == {"Total": inf}
    assert not energy.is_finite
    assert "SO(3)" in caplog.text
    assert projection_energy(quad_problem, state) == inf


def test_step_energies(quad_problem):
    """The step objectives share the augmentation rho / 2 |R - S + T|^2."""
    state = random_state(quad_problem, quad_problem.points[[0, 2]], seed=3)
    energy = compute_energy(quad_problem, state)

    augmentation = 0.5 * (
        (state.rotations - state.projected + state.dual) ** 2
    ).sum()
    assert projection_energy(quad_problem, state) == pytest.approx(
        float(augmentation)
    )
    assert linear_solve_energy(quad_problem, state) == pytest.approx(
        energy["ARAP"] + float(augmentation)
    )

    # Overriding the rotations
    eye = torch.eye(3, dtype=torch.float64).repeat(4, 1, 1)
    overridden = linear_solve_energy(quad_problem, state, rotations=eye)
    assert overridden != linear_solve_energy(quad_problem, state)
