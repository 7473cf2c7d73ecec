"""Test the assembly of the linear step."""

import numpy as np
import pytest
import torch

import skarap
from skarap.admm import (
    ArapProblem,
    VertexPartition,
    VertexType,
    arap_energy,
    assemble_rhs,
    assemble_system_matrix,
    direct_gradient_matrix,
    direct_gradient_rhs,
    normal_equations_matrix,
    normal_equations_rhs,
)
from skarap.admm.assembly import constraint_rows

from .utils import grid_mesh, octahedron, quad_mesh, random_state, tetrahedron

# (mesh, fixed vertices): the octahedron with two opposite fixed vertices
# has edges between free vertices, the tetrahedron has no free vertex
configurations = [
    (quad_mesh, [0]),
    (quad_mesh, [3, 1]),
    (octahedron, [0, 1]),
    (tetrahedron, [0, 1, 2, 3]),
    (grid_mesh, [0, 15, 5]),
]


def make_problem(mesh, fixed, rho=1.0):
    points, triangles = mesh()
    partition = VertexPartition(n_vertices=len(points), fixed=fixed)
    return ArapProblem.from_mesh(
        points=points, triangles=triangles, partition=partition, rho=rho
    )


def test_partition():
    """Free vertices are sorted, fixed vertices keep the caller's order."""
    partition = VertexPartition(n_vertices=6, fixed=[4, 1])

    assert partition.n_free == 4
    assert partition.n_fixed == 2
    assert partition.n_unknowns == 4 + 18
    assert partition.free.tolist() == [0, 2, 3, 5]
    assert partition.fixed.tolist() == [4, 1]
    assert partition.position.tolist() == [0, 1, 1, 2, 0, 3]
    assert partition.vertex_type(4) == VertexType.FIXED
    assert partition.vertex_type(5) == VertexType.FREE
    assert partition.rotation_slot(2, 1) == 4 + 7
    assert "n_free=4" in repr(partition)


@pytest.mark.parametrize(("mesh", "fixed"), configurations)
@pytest.mark.parametrize("rho", [1.0, 10.0])
def test_derivations_agree(mesh, fixed, rho):
    """The direct gradient and the normal equations give the same system."""
    problem = make_problem(mesh, fixed, rho=rho)
    inputs = problem.system_inputs()

    M_direct = direct_gradient_matrix(**inputs)
    M_normal = normal_equations_matrix(**inputs)

    n = problem.partition.n_unknowns
    assert M_direct.shape == M_normal.shape == (n, n)
    assert abs(M_direct - M_normal).max() < 1e-9
    assert abs(M_direct - M_direct.T).max() < 1e-12

    fixed_vertices = problem.points[fixed] + 0.1
    state = random_state(problem, fixed_vertices)
    state_inputs = {
        "vertices_updated": state.vertices_updated,
        "projected": state.projected,
        "dual": state.dual,
    }
    rhs_direct = direct_gradient_rhs(**inputs, **state_inputs)
    rhs_normal = normal_equations_rhs(**inputs, **state_inputs)

    assert rhs_direct.shape == rhs_normal.shape == (n, 3)
    assert torch.allclose(rhs_direct, rhs_normal, atol=1e-9)


@pytest.mark.parametrize(("mesh", "fixed"), configurations)
@pytest.mark.parametrize("method", ["direct_gradient", "normal_equations"])
def test_gradient(mesh, fixed, method):
    """M x - rhs is the gradient of the linear step objective."""
    problem = make_problem(mesh, fixed, rho=2.0)
    partition = problem.partition
    inputs = problem.system_inputs()

    state = random_state(problem, problem.points[fixed] * 1.2, seed=1)
    M = assemble_system_matrix(method=method, **inputs)
    rhs = assemble_rhs(
        method=method,
        **inputs,
        vertices_updated=state.vertices_updated,
        projected=state.projected,
        dual=state.dual,
    )

    vertices = state.vertices_updated.clone().requires_grad_(True)
    rotations = state.rotations.clone().requires_grad_(True)
    energy = arap_energy(problem, vertices, rotations) + problem.rho / 2 * (
        (rotations - state.projected + state.dual) ** 2
    ).sum()
    grad_vertices, grad_rotations = torch.autograd.grad(
        energy, [vertices, rotations]
    )

    x = torch.cat(
        [
            state.vertices_updated[partition.free],
            state.rotations.transpose(1, 2).reshape(-1, 3),
        ]
    )
    gradient = M @ x.numpy() - rhs.numpy()

    assert np.allclose(
        gradient[: partition.n_free],
        grad_vertices[partition.free].numpy(),
        atol=1e-9,
    )
    assert np.allclose(
        gradient[partition.n_free :],
        grad_rotations.transpose(1, 2).reshape(-1, 3).numpy(),
        atol=1e-9,
    )
    # Fixed vertices are not unknowns
    assert len(gradient) == partition.n_unknowns


def test_free_free_edges():
    """Edges between two free vertices do not enter the right-hand side."""
    problem = make_problem(octahedron, [0, 1])
    partition = problem.partition
    A, row_weights = constraint_rows(**problem.system_inputs())

    n_edges = len(problem.edges)
    assert A.shape == (n_edges + 3 * problem.n_vertices, partition.n_unknowns)
    assert len(row_weights) == A.shape[0]
    assert np.allclose(row_weights[n_edges:], problem.rho / 2)

    first, second = problem.edges[:, 0], problem.edges[:, 1]
    free_free = ~partition.is_fixed[first] & ~partition.is_fixed[second]
    assert free_free.any()

    state = random_state(problem, problem.points[[0, 1]])
    rhs_before = direct_gradient_rhs(
        **problem.system_inputs(),
        vertices_updated=state.vertices_updated,
        projected=state.projected,
        dual=state.dual,
    )
    moved = state.vertices_updated.clone()
    moved[partition.free] += 1.0
    rhs_after = direct_gradient_rhs(
        **problem.system_inputs(),
        vertices_updated=moved,
        projected=state.projected,
        dual=state.dual,
    )
    # Only the rows of fixed vertices are read from vertices_updated
    assert torch.allclose(rhs_before, rhs_after)


def test_rotation_block():
    """Without edges, the system is rho * I on the rotation unknowns."""
    problem = make_problem(tetrahedron, [0, 1, 2, 3], rho=3.0)
    inputs = dict(problem.system_inputs())
    inputs["weights"] = torch.zeros_like(problem.weights)

    M = direct_gradient_matrix(**inputs).toarray()
    assert np.allclose(M, 3.0 * np.eye(12))

    state = random_state(problem, problem.points, seed=2)
    rhs = direct_gradient_rhs(
        **inputs,
        vertices_updated=state.vertices_updated,
        projected=state.projected,
        dual=state.dual,
    )
    # Row 3 * v + i, column d holds rho * (S - T)[v, d, i]
    expected = 3.0 * (state.projected - state.dual)
    for v in range(4):
        for i in range(3):
            for d in range(3):
                assert torch.isclose(rhs[3 * v + i, d], expected[v, d, i])


def test_unknown_method():
    """Unknown assembly methods are rejected."""
    problem = make_problem(quad_mesh, [0])
    with pytest.raises(KeyError):
        assemble_system_matrix(method="cholesky", **problem.system_inputs())


def test_matrix_dtype():
    """The system matrix is a sorted float64 CSC matrix."""
    problem = make_problem(grid_mesh, [0, 3])
    M = assemble_system_matrix(**problem.system_inputs())

    assert M.format == "csc"
    assert M.dtype == np.float64
    assert M.has_sorted_indices
    assert skarap.float_dtype == torch.float64
