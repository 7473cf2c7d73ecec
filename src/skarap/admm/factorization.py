"""Sparse factorization of the system matrix.

The system matrix is symmetric positive definite and fixed for the lifetime
of a solver: it is factorized once and the factorization is reused with a new
right-hand side at each iteration.

The factorization is SciPy's SuperLU in symmetric mode: the fill-reducing
ordering is computed on A + A^T and the diagonal is always taken as pivot,
so that P^T A P = L U with U = D L^T. The pivots D are then all positive if
and only if the matrix is positive definite, which is checked after the
factorization.
"""

from __future__ import annotations

import logging

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla
import torch

from ..errors import FactorizationError, NotFittedError, SolveError
from ..input_validation import typecheck
from ..types import RightHandSide

logger = logging.getLogger(__name__)


class SparseFactorization:
    """Factorize a sparse symmetric positive definite matrix once, solve often.

    Examples
    --------
    ```python
    factorization = SparseFactorization().factorize(matrix)
    x = factorization.solve(rhs)
    ```
    """

    def __init__(self, symmetry_tolerance: float = 1e-10) -> None:
        self.symmetry_tolerance = symmetry_tolerance
        self._lu = None
        self._n = None

    @property
    def is_factorized(self) -> bool:
        """Whether factorize() has succeeded."""
        return self._lu is not None

    @typecheck
    def factorize(self, matrix: sp.spmatrix) -> SparseFactorization:
        """Factorize a sparse symmetric positive definite matrix.

        Parameters
        ----------
        matrix
            The matrix to factorize.

        Returns
        -------
        SparseFactorization
            self, to allow chaining.

        Raises
        ------
        FactorizationError
            If the matrix is not square, not symmetric, singular or not
            positive definite.
        """
        n_rows, n_cols = matrix.shape
        if n_rows != n_cols:
            msg = f"The matrix must be square, got shape {matrix.shape}"
            raise FactorizationError(msg)

        matrix = sp.csc_matrix(matrix)
        asymmetry = abs(matrix - matrix.T)
        if asymmetry.nnz > 0 and asymmetry.max() > self.symmetry_tolerance:
            msg = "The matrix is not symmetric"
            raise FactorizationError(msg)

        try:
            lu = spla.splu(
                matrix,
                permc_spec="MMD_AT_PLUS_A",
                diag_pivot_thresh=0.0,
                options={"SymmetricMode": True},
            )
        except RuntimeError as err:
            msg = f"Failed to factorize the matrix: {err}"
            raise FactorizationError(msg) from err

        # With diagonal pivoting, row and column permutations coincide and
        # the diagonal of U holds the pivots
        pivots = lu.U.diagonal()
        if not np.array_equal(lu.perm_r, lu.perm_c) or np.any(pivots <= 0):
            msg = "The matrix is not positive definite"
            raise FactorizationError(msg)

        logger.info(
            "Factorized a %s x %s matrix with %s non-zeros (L: %s, U: %s)",
            n_rows,
            n_cols,
            matrix.nnz,
            lu.L.nnz,
            lu.U.nnz,
        )

        self._lu = lu
        self._n = n_rows
        return self

    @typecheck
    def solve(self, rhs: RightHandSide) -> RightHandSide:
        """Solve the factorized system for a right-hand side.

        Parameters
        ----------
        rhs
            Right-hand side with shape (n, 3), one column per axis.

        Returns
        -------
            The solution with shape (n, 3).

        Raises
        ------
        NotFittedError
            If the matrix has not been factorized.
        SolveError
            If the right-hand side does not match the matrix or the solution
            is not finite.
        """
        if self._lu is None:
            msg = "factorize() must be called before solve()"
            raise NotFittedError(msg)

        if rhs.shape[0] != self._n:
            msg = (
                f"The right-hand side has {rhs.shape[0]} rows, the"
                + f" factorized matrix has {self._n}"
            )
            raise SolveError(msg)

        solution = self._lu.solve(np.ascontiguousarray(rhs.cpu().numpy()))
        if not np.all(np.isfinite(solution)):
            msg = "The sparse solve returned non finite values"
            raise SolveError(msg)

        return torch.from_numpy(solution.reshape(rhs.shape))
