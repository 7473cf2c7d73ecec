"""Per-session state of the ADMM solver."""

from dataclasses import dataclass, fields

import torch

from ..globals import float_dtype
from ..types import Points3d, Rotations


@dataclass
class AdmmState:
    """The variables updated by the ADMM iterations.

    Attributes
    ----------
    fixed_vertices
        Target positions of the fixed vertices, in the order of the fixed
        list, with shape (n_fixed, 3).
    vertices_updated
        Current positions of all the vertices with shape (n_vertices, 3).
        Rows of fixed vertices hold their targets.
    rotations
        Unconstrained rotations R, output of the linear step.
    projected
        Rotations S, projections of R + T onto SO(3).
    dual
        Scaled dual variables T, running sum of R - S.
    iteration
        Number of iterations performed since the last preprocessing.
    """

    fixed_vertices: Points3d
    vertices_updated: Points3d
    rotations: Rotations
    projected: Rotations
    dual: Rotations
    iteration: int = 0

    @classmethod
    def initial(
        cls,
        *,
        points: Points3d,
        fixed: torch.Tensor,
        fixed_vertices: Points3d,
    ) -> "AdmmState":
        """State at the start of a deformation.

        Positions are the rest positions with the fixed vertices moved to
        their targets, R = S = I and T = 0.
        """
        n_vertices = points.shape[0]
        vertices_updated = points.clone()
        vertices_updated[fixed] = fixed_vertices

        eye = torch.eye(3, dtype=float_dtype).repeat(n_vertices, 1, 1)
        return cls(
            fixed_vertices=fixed_vertices.clone(),
            vertices_updated=vertices_updated,
            rotations=eye.clone(),
            projected=eye.clone(),
            dual=torch.zeros(n_vertices, 3, 3, dtype=float_dtype),
        )

    def clone(self) -> "AdmmState":
        """Deep copy of the state."""
        values = {}
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, torch.Tensor):
                value = value.clone()
            values[field.name] = value
        return AdmmState(**values)
