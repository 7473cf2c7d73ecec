"""Free / fixed classification of the vertices."""

from enum import Enum

import torch

from ..errors import InputStructureError
from ..globals import int_dtype
from ..input_validation import convert_inputs, typecheck
from ..types import Int1dTensor


class VertexType(Enum):
    """Classification of a vertex."""

    FREE = "free"
    FIXED = "fixed"


class VertexPartition:
    """Partition of the vertices of a mesh into free and fixed vertices.

    Free vertices are the unknowns of the linear step, ordered by increasing
    vertex index. Fixed vertices follow the order of the `fixed` list given
    by the caller, which is also the order of the target positions.

    The unknowns of the linear system are laid out as follows:

    - unknown `i` for `i < n_free` is the coordinate of vertex `free[i]`,
    - unknown `n_free + 3 * v + i` is entry `i` of the row of `R_v` matching
      the coordinate being solved.

    Parameters
    ----------
    n_vertices
        Number of vertices of the mesh.
    fixed
        Indices of the fixed vertices.

    Raises
    ------
    IndexError
        If a fixed index is out of range.
    InputStructureError
        If a vertex is listed more than once in `fixed`.
    """

    @convert_inputs
    @typecheck
    def __init__(self, *, n_vertices: int, fixed: Int1dTensor) -> None:
        if len(fixed) > 0 and (fixed.min() < 0 or fixed.max() >= n_vertices):
            msg = (
                f"Fixed vertex indices must be in [0, {n_vertices}),"
                + f" got range [{fixed.min()}, {fixed.max()}]"
            )
            raise IndexError(msg)

        if len(torch.unique(fixed)) != len(fixed):
            msg = "A vertex cannot be listed more than once in fixed"
            raise InputStructureError(msg)

        is_fixed = torch.zeros(n_vertices, dtype=torch.bool)
        is_fixed[fixed] = True

        free = torch.nonzero(~is_fixed).view(-1).to(dtype=int_dtype)

        position = torch.empty(n_vertices, dtype=int_dtype)
        position[free] = torch.arange(len(free), dtype=int_dtype)
        position[fixed] = torch.arange(len(fixed), dtype=int_dtype)

        self.n_vertices = n_vertices
        self.fixed = fixed.clone()
        self.free = free
        self.is_fixed = is_fixed
        self.position = position

    @property
    def n_free(self) -> int:
        """Number of free vertices."""
        return len(self.free)

    @property
    def n_fixed(self) -> int:
        """Number of fixed vertices."""
        return len(self.fixed)

    @property
    def n_unknowns(self) -> int:
        """Number of unknowns of the linear step (per coordinate)."""
        return self.n_free + 3 * self.n_vertices

    def vertex_type(self, vertex: int) -> VertexType:
        """Classification of a vertex."""
        if self.is_fixed[vertex]:
            return VertexType.FIXED
        return VertexType.FREE

    def rotation_slot(self, vertex, i):
        """Index of the unknown holding entry i of the rotation of vertex.

        Works elementwise on integers or int64 tensors.
        """
        return self.n_free + 3 * vertex + i

    def __repr__(self) -> str:
        return (
            f"VertexPartition(n_vertices={self.n_vertices},"
            + f" n_free={self.n_free}, n_fixed={self.n_fixed})"
        )
