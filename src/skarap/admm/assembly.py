"""Assembly of the linear step of the ADMM solver.

The linear step minimizes, for fixed S and T, the augmented objective

    sum_(i, j) w_ij |(q_i - q_j) - R_i (p_i - p_j)|^2
        + rho / 2 * sum_v |R_v - S_v + T_v|^2

over the free vertex positions q and the rotations R, where the first sum
runs over the directed edges of the mesh and p are the rest positions. The
objective separates along the three coordinates: for coordinate d the
unknowns are the free positions and the rows d of the matrices R_v, and all
three coordinates share the same system matrix.

Two derivations of the linear system are available:

- the direct gradient, assembled coefficient by coefficient,
- the normal equations: every term is written w_k |A_k x - b_k|^2 with a
  sparse row A_k, and the system is (sum 2 w_k A_k^T A_k) x = sum 2 w_k A_k^T b_k.

They produce the same matrix and right-hand side. Edges whose two endpoints
are free do not contribute to the right-hand side; they only act through
the off-diagonal coupling of the matrix.
"""

import numpy as np
import scipy.sparse as sp
import torch

from ..globals import float_dtype, int_dtype
from ..types import (
    AssemblyMethod,
    Edges,
    EdgeWeights,
    Points3d,
    RightHandSide,
    Rotations,
)
from .partition import VertexPartition


def _numpy(t: torch.Tensor) -> np.ndarray:
    return t.detach().cpu().numpy()


def _edge_terms(
    points: Points3d, edges: Edges, partition: VertexPartition
) -> tuple:
    """Indices and rest vectors shared by the edge terms."""
    first, second = edges[:, 0], edges[:, 1]
    first_free = ~partition.is_fixed[first]
    second_free = ~partition.is_fixed[second]
    first_pos = partition.position[first]
    second_pos = partition.position[second]
    rest = points[first] - points[second]  # (n_edges, 3)
    slots = partition.rotation_slot(
        first.view(-1, 1), torch.arange(3, dtype=int_dtype).view(1, 3)
    )  # (n_edges, 3)
    return (
        first,
        second,
        first_free,
        second_free,
        first_pos,
        second_pos,
        rest,
        slots,
    )


def direct_gradient_matrix(
    *,
    points: Points3d,
    edges: Edges,
    weights: EdgeWeights,
    partition: VertexPartition,
    rho: float,
) -> sp.csc_matrix:
    """System matrix assembled from the gradient of the objective.

    Parameters
    ----------
    points
        Rest positions with shape (n_vertices, 3).
    edges
        Directed edges with shape (n_edges, 2).
    weights
        Weights of the directed edges.
    partition
        Free / fixed classification of the vertices.
    rho
        Weight of the rotation augmentation.

    Returns
    -------
        The symmetric system matrix of size partition.n_unknowns.
    """
    (
        _,
        _,
        first_free,
        second_free,
        first_pos,
        second_pos,
        rest,
        slots,
    ) = _edge_terms(points, edges, partition)
    two_w = 2 * weights
    wv = two_w.view(-1, 1) * rest  # (n_edges, 3)
    both_free = first_free & second_free

    rows, cols, vals = [], [], []

    def add(r, c, v):
        rows.append(r.reshape(-1))
        cols.append(c.reshape(-1))
        vals.append(v.reshape(-1))

    # Gradient with respect to the first position
    m = first_free
    add(first_pos[m], first_pos[m], two_w[m])
    add(first_pos[both_free], second_pos[both_free], -two_w[both_free])
    add(first_pos[m].view(-1, 1).expand(-1, 3), slots[m], -wv[m])

    # Gradient with respect to the second position
    m = second_free
    add(second_pos[m], second_pos[m], two_w[m])
    add(second_pos[both_free], first_pos[both_free], -two_w[both_free])
    add(second_pos[m].view(-1, 1).expand(-1, 3), slots[m], wv[m])

    # Gradient with respect to the rotation of the first vertex
    outer = two_w.view(-1, 1, 1) * rest.view(-1, 3, 1) * rest.view(-1, 1, 3)
    add(
        slots.view(-1, 3, 1).expand(-1, 3, 3),
        slots.view(-1, 1, 3).expand(-1, 3, 3),
        outer,
    )
    m = first_free
    add(slots[m], first_pos[m].view(-1, 1).expand(-1, 3), -wv[m])
    m = second_free
    add(slots[m], second_pos[m].view(-1, 1).expand(-1, 3), wv[m])

    # Augmentation: rho * I on the rotation block
    diag = torch.arange(partition.n_free, partition.n_unknowns)
    add(diag, diag, torch.full(diag.shape, rho, dtype=float_dtype))

    n = partition.n_unknowns
    matrix = sp.coo_matrix(
        (
            _numpy(torch.cat(vals)),
            (_numpy(torch.cat(rows)), _numpy(torch.cat(cols))),
        ),
        shape=(n, n),
    ).tocsc()
    matrix.sum_duplicates()
    matrix.sort_indices()
    return matrix


def constraint_rows(
    *,
    points: Points3d,
    edges: Edges,
    weights: EdgeWeights,
    partition: VertexPartition,
    rho: float,
) -> tuple[sp.csr_matrix, np.ndarray]:
    """Sparse rows A_k and weights w_k of the least-squares formulation.

    The first n_edges rows are the edge terms: for the directed edge
    (i, j) the row holds +1 at the position of i (if free), -1 at the
    position of j (if free) and -(p_i - p_j) at the rotation slots of i.
    The next 3 * n_vertices rows select the rotation slots of each vertex,
    with weight rho / 2.

    Returns
    -------
        The matrix A with shape (n_edges + 3 * n_vertices, n_unknowns) and
        the weights with shape (n_edges + 3 * n_vertices,).
    """
    (
        _,
        _,
        first_free,
        second_free,
        first_pos,
        second_pos,
        rest,
        slots,
    ) = _edge_terms(points, edges, partition)
    n_edges = edges.shape[0]
    k = torch.arange(n_edges)

    rows = [
        k[first_free],
        k[second_free],
        k.view(-1, 1).expand(-1, 3).reshape(-1),
    ]
    cols = [first_pos[first_free], second_pos[second_free], slots.reshape(-1)]
    vals = [
        torch.ones(int(first_free.sum()), dtype=float_dtype),
        -torch.ones(int(second_free.sum()), dtype=float_dtype),
        -rest.reshape(-1),
    ]

    n_rotation_rows = 3 * partition.n_vertices
    rows.append(n_edges + torch.arange(n_rotation_rows))
    cols.append(partition.n_free + torch.arange(n_rotation_rows))
    vals.append(torch.ones(n_rotation_rows, dtype=float_dtype))

    A = sp.coo_matrix(
        (
            _numpy(torch.cat(vals)),
            (_numpy(torch.cat(rows)), _numpy(torch.cat(cols))),
        ),
        shape=(n_edges + n_rotation_rows, partition.n_unknowns),
    ).tocsr()

    row_weights = np.concatenate(
        [_numpy(weights), np.full(n_rotation_rows, rho / 2)]
    )
    return A, row_weights


def normal_equations_matrix(
    *,
    points: Points3d,
    edges: Edges,
    weights: EdgeWeights,
    partition: VertexPartition,
    rho: float,
) -> sp.csc_matrix:
    """System matrix assembled as sum 2 w_k A_k^T A_k.

    See :func:`direct_gradient_matrix` for the parameters.
    """
    A, row_weights = constraint_rows(
        points=points,
        edges=edges,
        weights=weights,
        partition=partition,
        rho=rho,
    )
    matrix = (A.T @ sp.diags(2 * row_weights) @ A).tocsc()
    matrix.sum_duplicates()
    matrix.sort_indices()
    return matrix


def _rotation_rhs(projected: Rotations, dual: Rotations, rho: float):
    # Row 3 * v + i, column d holds rho * (S_v - T_v)[d, i]
    return rho * (projected - dual).transpose(1, 2).reshape(-1, 3)


def direct_gradient_rhs(
    *,
    points: Points3d,
    edges: Edges,
    weights: EdgeWeights,
    partition: VertexPartition,
    rho: float,
    vertices_updated: Points3d,
    projected: Rotations,
    dual: Rotations,
) -> RightHandSide:
    """Right-hand side of the linear step, from the gradient.

    Parameters
    ----------
    points
        Rest positions with shape (n_vertices, 3).
    edges
        Directed edges with shape (n_edges, 2).
    weights
        Weights of the directed edges.
    partition
        Free / fixed classification of the vertices.
    rho
        Weight of the rotation augmentation.
    vertices_updated
        Current positions; only the rows of fixed vertices are read.
    projected
        Projected rotations S with shape (n_vertices, 3, 3).
    dual
        Dual variables T with shape (n_vertices, 3, 3).

    Returns
    -------
        The right-hand side with shape (n_unknowns, 3), one column per axis.
    """
    (
        first,
        second,
        first_free,
        second_free,
        first_pos,
        second_pos,
        rest,
        slots,
    ) = _edge_terms(points, edges, partition)
    two_w = 2 * weights

    rhs = torch.zeros(partition.n_unknowns, 3, dtype=float_dtype)
    rhs[partition.n_free :] = _rotation_rhs(projected, dual, rho)

    # Edges between two free vertices contribute nothing
    keep = ~(first_free & second_free)
    q_first = vertices_updated[first]
    q_second = vertices_updated[second]

    m = keep & first_free
    rhs.index_add_(0, first_pos[m], two_w[m].view(-1, 1) * q_second[m])
    m = keep & second_free
    rhs.index_add_(0, second_pos[m], two_w[m].view(-1, 1) * q_first[m])

    b = torch.where(first_free.view(-1, 1), 0.0, q_first) - torch.where(
        second_free.view(-1, 1), 0.0, q_second
    )
    block = (
        two_w.view(-1, 1, 1) * rest.view(-1, 3, 1) * b.view(-1, 1, 3)
    )  # (n_edges, 3, 3)
    rhs.index_add_(0, slots[keep].reshape(-1), block[keep].reshape(-1, 3))
    return rhs


def normal_equations_rhs(
    *,
    points: Points3d,
    edges: Edges,
    weights: EdgeWeights,
    partition: VertexPartition,
    rho: float,
    vertices_updated: Points3d,
    projected: Rotations,
    dual: Rotations,
) -> RightHandSide:
    """Right-hand side of the linear step, as sum 2 w_k A_k^T b_k.

    See :func:`direct_gradient_rhs` for the parameters.
    """
    A, row_weights = constraint_rows(
        points=points,
        edges=edges,
        weights=weights,
        partition=partition,
        rho=rho,
    )
    first, second = edges[:, 0], edges[:, 1]
    fixed_first = partition.is_fixed[first].view(-1, 1)
    fixed_second = partition.is_fixed[second].view(-1, 1)

    # Known part of q_first - q_second, moved to the right-hand side
    b_edges = torch.where(fixed_second, vertices_updated[second], 0.0) - (
        torch.where(fixed_first, vertices_updated[first], 0.0)
    )
    b_rotations = (projected - dual).transpose(1, 2).reshape(-1, 3)
    b = np.concatenate([_numpy(b_edges), _numpy(b_rotations)])

    rhs = A.T @ (2 * row_weights.reshape(-1, 1) * b)
    return torch.from_numpy(np.asarray(rhs, dtype=np.float64))


_matrix_assemblers = {
    "direct_gradient": direct_gradient_matrix,
    "normal_equations": normal_equations_matrix,
}

_rhs_assemblers = {
    "direct_gradient": direct_gradient_rhs,
    "normal_equations": normal_equations_rhs,
}


def assemble_system_matrix(
    *, method: AssemblyMethod = "direct_gradient", **kwargs
) -> sp.csc_matrix:
    """Assemble the system matrix with the chosen derivation."""
    return _matrix_assemblers[method](**kwargs)


def assemble_rhs(
    *, method: AssemblyMethod = "direct_gradient", **kwargs
) -> RightHandSide:
    """Assemble the right-hand side with the chosen derivation."""
    return _rhs_assemblers[method](**kwargs)
