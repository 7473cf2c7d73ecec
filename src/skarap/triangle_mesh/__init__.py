"""Functions related to triangle meshes."""

from .geometry import (
    cotan_weight_matrix,
    directed_edges,
    edge_weights,
    triangle_cotangents,
)
