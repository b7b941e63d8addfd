"""
Fixed-effects stage of the Penalized Least Squares (PLS) solve.

For fixed θ each model variant factors its own random-effects block

    L L' = Λ'Z'ZΛ + I

and forms cu = L⁻¹Λ'Z'y and CX = L⁻¹Λ'Z'X. What remains is shared: the
Schur complement (downdated X'X) and its Cholesky factor RX, which give
the profiled fixed effects β. The spherical random effects then follow
from L'u = cu - CXβ.

References:
    Bates, D., Maechler, M., Bolker, B., & Walker, S. (2015).
    Fitting Linear Mixed-Effects Models Using lme4.
    Journal of Statistical Software, 67(1), 1-48. Section 3.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
import scipy.linalg as sla

from pymixed.core.exceptions import NotPositiveDefiniteError


def solve_fixed_effects(
    XtX: NDArray,
    Xty: NDArray,
    CX: NDArray,
    cu: NDArray,
) -> tuple[NDArray, NDArray]:
    """Downdate X'X by the random-effects block and solve for β.

    Args:
        XtX: Weighted X'X (p, p).
        Xty: Weighted X'y (p,).
        CX: L⁻¹Λ'Z'X, shape (q, p).
        cu: L⁻¹Λ'Z'y, shape (q,).

    Returns:
        (RX, beta) where RX is lower triangular with RX RX' = X'X - CX'CX.

    Raises:
        NotPositiveDefiniteError: If the downdated cross-product is not
            positive definite (X is rank deficient).
    """
    # RX RX' = X'X - CX'CX  (the Schur complement)
    RtR = XtX - CX.T @ CX
    rhs_beta = Xty - CX.T @ cu

    try:
        RX = np.linalg.cholesky(RtR)
    except np.linalg.LinAlgError as e:
        raise NotPositiveDefiniteError(
            "Downdated fixed-effects cross-product is not positive definite; "
            "the fixed-effects design matrix X is probably rank deficient",
            matrix_name="X'X - CX'CX",
            min_eigenvalue=float(np.linalg.eigvalsh(RtR)[0]),
        ) from e

    tmp = sla.solve_triangular(RX, rhs_beta, lower=True)
    beta = sla.solve_triangular(RX.T, tmp, lower=False)
    return RX, beta


def log_det_triangular(T: NDArray) -> float:
    """Σ log diag(T) for a (stack of) triangular factor(s) with positive diagonal."""
    diag = np.diagonal(T, axis1=-2, axis2=-1)
    return float(np.sum(np.log(diag)))
