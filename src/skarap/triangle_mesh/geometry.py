"""Geometric properties of a triangular mesh.

This module provides the rest-pose quantities needed by the ARAP solver:
the cotangents of the triangle corners, the cotangent weight matrix and
the directed edges along which the ARAP energy is summed.

Cotangents are implemented in PyTorch. The weight matrix is a SciPy sparse
matrix, as it is consumed by the sparse assembly of the system matrix.
"""

import numpy as np
import scipy.sparse as sp
import torch

from ..input_validation import convert_inputs, typecheck
from ..types import (
    Edges,
    EdgeWeights,
    Points3d,
    TriangleCotangents,
    Triangles,
)


@convert_inputs
@typecheck
def triangle_cotangents(
    *,
    points: Points3d,
    triangles: Triangles,
) -> TriangleCotangents:
    """Cotangents of the corner angles of each triangle.

    The triangle is defined as follows:

    ```
               A
              /  -
           c /     - b
            /        -
           /    a      -
          B--------------C
    ```

    where A, B, C are the points of `triangles[:, 0]`, `triangles[:, 1]` and
    `triangles[:, 2]`. With the law of cosines and area = bc sin(A) / 2 we
    have cot(A) = (b^2 + c^2 - a^2) / (4 area), and similarly for B and C.

    Degenerate (zero area) triangles lead to a division by zero.

    Parameters
    ----------
    points
        Points of the mesh with shape (n_points, 3).
    triangles
        Triangles of the mesh.

    Returns
    -------
        The cotangents (cot(A), cot(B), cot(C)) with shape (n_triangles, 3).
    """
    A = points[triangles[:, 0]]
    B = points[triangles[:, 1]]
    C = points[triangles[:, 2]]

    a_squared = ((B - C) ** 2).sum(dim=-1)
    b_squared = ((C - A) ** 2).sum(dim=-1)
    c_squared = ((A - B) ** 2).sum(dim=-1)

    area = torch.linalg.cross(B - A, C - A).norm(dim=-1) / 2
    four_area = (4 * area).view(-1, 1)

    numerators = torch.stack(
        [
            b_squared + c_squared - a_squared,
            c_squared + a_squared - b_squared,
            a_squared + b_squared - c_squared,
        ],
        dim=-1,
    )
    return numerators / four_area


@convert_inputs
@typecheck
def directed_edges(*, triangles: Triangles) -> Edges:
    """Directed edges of a triangular mesh, three per triangle.

    For a triangle (A, B, C), the edges are (B, C), (C, A) and (A, B): edge
    number i is the edge opposite to corner i. Edges are ordered triangle by
    triangle, so that edge 3 * f + i belongs to triangle f. On a consistently
    oriented closed mesh, every undirected edge appears once in each
    direction.

    Parameters
    ----------
    triangles
        Triangles of the mesh.

    Returns
    -------
        The (first, second) vertex indices with shape (3 * n_triangles, 2).
    """
    first = triangles[:, [1, 2, 0]].reshape(-1)
    second = triangles[:, [2, 0, 1]].reshape(-1)
    return torch.stack([first, second], dim=1)


@convert_inputs
@typecheck
def cotan_weight_matrix(
    *,
    points: Points3d,
    triangles: Triangles,
) -> sp.csr_matrix:
    """Cotangent weight matrix of a triangular mesh.

    Each corner of each triangle contributes half of its cotangent to the
    weight of the opposite edge, in both directions, and the opposite of
    this half-cotangent to the diagonal entries of the two endpoints. The
    matrix is symmetric and its rows sum to zero (Laplacian convention).

    Parameters
    ----------
    points
        Rest-pose points of the mesh with shape (n_points, 3).
    triangles
        Triangles of the mesh.

    Returns
    -------
        The weight matrix with shape (n_points, n_points).
    """
    cotangents = triangle_cotangents(points=points, triangles=triangles)
    edges = directed_edges(triangles=triangles)

    half_cot = (cotangents / 2).reshape(-1)
    first, second = edges[:, 0], edges[:, 1]

    rows = torch.cat([first, second, first, second])
    cols = torch.cat([second, first, first, second])
    vals = torch.cat([half_cot, half_cot, -half_cot, -half_cot])

    n_points = points.shape[0]
    # Duplicated entries are summed by the conversion to csr
    return sp.coo_matrix(
        (
            vals.detach().cpu().numpy(),
            (rows.cpu().numpy(), cols.cpu().numpy()),
        ),
        shape=(n_points, n_points),
    ).tocsr()


@convert_inputs
@typecheck
def edge_weights(*, weight_matrix: sp.spmatrix, edges: Edges) -> EdgeWeights:
    """Read the weights w(first, second) of a list of edges.

    Parameters
    ----------
    weight_matrix
        The cotangent weight matrix.
    edges
        Edges with shape (n_edges, 2).

    Returns
    -------
        The weights with shape (n_edges,).
    """
    # scipy fancy indexing needs owned arrays, not views of a torch tensor
    first = edges[:, 0].cpu().numpy().copy()
    second = edges[:, 1].cpu().numpy().copy()
    weights = np.asarray(weight_matrix.tocsr()[first, second]).reshape(-1)
    return torch.from_numpy(weights.astype(np.float64))
