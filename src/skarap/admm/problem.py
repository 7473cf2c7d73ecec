"""Rest-pose data of an ARAP deformation problem."""

from __future__ import annotations

from dataclasses import dataclass

import scipy.sparse as sp
import torch

from ..input_validation import convert_inputs, typecheck
from ..triangle_mesh import cotan_weight_matrix, directed_edges, edge_weights
from ..types import (
    Edges,
    EdgeWeights,
    Number,
    Points3d,
    Triangles,
)
from .partition import VertexPartition


@dataclass(frozen=True)
class ArapProblem:
    """Everything the solver derives from the rest pose, once.

    Attributes
    ----------
    points
        Rest positions with shape (n_vertices, 3).
    triangles
        Triangles of the mesh.
    edges
        Directed edges, three per triangle (see
        :func:`skarap.triangle_mesh.directed_edges`).
    weights
        Cotangent weights of the directed edges.
    weight_matrix
        The cotangent weight matrix.
    partition
        Free / fixed classification of the vertices.
    rho
        Weight of the rotation augmentation.
    """

    points: Points3d
    triangles: Triangles
    edges: Edges
    weights: EdgeWeights
    weight_matrix: sp.csr_matrix
    partition: VertexPartition
    rho: float

    @classmethod
    @convert_inputs
    @typecheck
    def from_mesh(
        cls,
        *,
        points: Points3d,
        triangles: Triangles,
        partition: VertexPartition,
        rho: Number,
    ) -> ArapProblem:
        """Compute the cotangent weights and the directed edges of a mesh."""
        weight_matrix = cotan_weight_matrix(points=points, triangles=triangles)
        edges = directed_edges(triangles=triangles)
        weights = edge_weights(weight_matrix=weight_matrix, edges=edges)

        return cls(
            points=points,
            triangles=triangles,
            edges=edges,
            weights=weights,
            weight_matrix=weight_matrix,
            partition=partition,
            rho=float(rho),
        )

    @property
    def n_vertices(self) -> int:
        """Number of vertices."""
        return self.points.shape[0]

    def system_inputs(self) -> dict:
        """Keyword arguments of the assembly functions."""
        return {
            "points": self.points,
            "edges": self.edges,
            "weights": self.weights,
            "partition": self.partition,
            "rho": self.rho,
        }

    def rest_edge_vectors(self) -> torch.Tensor:
        """p_first - p_second for each directed edge, shape (n_edges, 3)."""
        return self.points[self.edges[:, 0]] - self.points[self.edges[:, 1]]
