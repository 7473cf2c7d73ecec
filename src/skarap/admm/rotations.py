"""Projection onto the rotation group SO(3)."""

import torch

from ..globals import matrix_diff_threshold
from ..input_validation import convert_inputs, typecheck
from ..types import BoolTensor, Rotations


@convert_inputs
@typecheck
def closest_rotations(matrices: Rotations) -> Rotations:
    """Closest rotation matrices, in Frobenius norm.

    This is the orthogonal Procrustes problem restricted to proper rotations:

        min_S |S - M|^2  s.t.  S in SO(3)

    With the singular value decomposition M = U Sigma V^T, the solution is
    S = U D V^T where D = diag(1, 1, det(U V^T)). The sign correction flips
    the direction of the smallest singular value when U V^T is a reflection.

    Parameters
    ----------
    matrices
        Batch of 3x3 matrices with shape (n, 3, 3).

    Returns
    -------
        The closest rotations with shape (n, 3, 3).
    """
    U, _, Vh = torch.linalg.svd(matrices)
    signs = torch.sign(torch.linalg.det(U @ Vh))
    # det is +-1 here, sign(0) cannot happen
    U = U.clone()
    U[:, :, 2] = U[:, :, 2] * signs.view(-1, 1)
    return U @ Vh


@convert_inputs
@typecheck
def is_rotation(
    matrices: Rotations, tolerance: float = matrix_diff_threshold
) -> BoolTensor:
    """Check elementwise that a batch of matrices belongs to SO(3).

    A matrix S is accepted if |S S^T - I|^2 <= tolerance (squared Frobenius
    norm) and |det(S) - 1| <= tolerance.

    Returns
    -------
        Boolean tensor with shape (n,).
    """
    eye = torch.eye(3, dtype=matrices.dtype)
    orthogonality = ((matrices @ matrices.transpose(1, 2) - eye) ** 2).sum(
        dim=(1, 2)
    )
    determinant = torch.linalg.det(matrices)
    return (orthogonality <= tolerance) & (
        (determinant - 1).abs() <= tolerance
    )
