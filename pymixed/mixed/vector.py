"""
Single vector-valued random-effects term, e.g. y ~ days + (1 + days | subject).

Each level j carries k correlated random effects with relative covariance
factor T (k × k, lower triangular, filled row-wise from θ). Λ is
block-diagonal with T repeated once per level, and since every
observation loads on a single level the penalized system splits into
independent k × k blocks:

    L_j L_j' = T' Z_j'Z_j T + I

All J blocks are factored and solved as one stacked array.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from pymixed.mixed._common import ModelKind, PLSUpdate
from pymixed.mixed._pls import log_det_triangular, solve_fixed_effects
from pymixed.mixed.base import LinearMixedModel
from pymixed.mixed.design import MixedDesign
from pymixed.mixed.terms import (
    incidence_transpose, lower_triangle, theta_lower_bounds, theta_start,
)


class VectorLMM(LinearMixedModel):
    """Linear mixed model with one non-simple random-effects term.

    The raw regressors (n × k) are kept apart from the level index.
    u is stored level-major: u[j*k:(j+1)*k] belongs to level j.
    ``L()`` returns one (k, k) lower-triangular block per level.
    """

    kind = ModelKind.VECTOR

    def __init__(self, design: MixedDesign, reml: bool = False):
        (term,) = design.terms
        k = term.n_columns
        J = term.n_levels
        p = design.p
        w = design.scaled_rows()

        self._k = k
        self._f = term.group_ids
        self._Zraw = term.regressors
        Zw = term.regressors * w[:, np.newaxis]
        Xw = design.X * w[:, np.newaxis]
        yw = design.y * w

        # Per-level cross-products, stacked along the first axis
        self._ZtZ = np.zeros((J, k, k), dtype=np.float64)
        np.add.at(self._ZtZ, self._f, Zw[:, :, np.newaxis] * Zw[:, np.newaxis, :])
        self._ZtX = np.zeros((J, k, p), dtype=np.float64)
        np.add.at(self._ZtX, self._f, Zw[:, :, np.newaxis] * Xw[:, np.newaxis, :])
        self._Zty = np.zeros((J, k), dtype=np.float64)
        np.add.at(self._Zty, self._f, Zw * yw[:, np.newaxis])
        self._XtX = Xw.T @ Xw
        self._Xty = Xw.T @ yw
        self._eye = np.eye(k)

        self._Zt = incidence_transpose(term)
        self._Zt.setflags(write=False)

        super().__init__(
            design, theta0=theta_start(k), lower=theta_lower_bounds(k), reml=reml,
        )

    def _factorize(self, theta: NDArray) -> PLSUpdate:
        J = self._ZtZ.shape[0]
        p = self._XtX.shape[0]
        T = lower_triangle(theta, self._k)

        # L_j = chol(T' Z_j'Z_j T + I)
        L = np.linalg.cholesky(T.T @ self._ZtZ @ T + self._eye)

        cu = np.linalg.solve(L, (self._Zty @ T)[..., np.newaxis])[..., 0]
        CX = np.linalg.solve(L, T.T @ self._ZtX)
        RX, beta = solve_fixed_effects(
            self._XtX, self._Xty, CX.reshape(J * self._k, p), cu.reshape(-1),
        )

        # L_j' u_j = cu_j - CX_j β
        r = cu - CX @ beta
        u = np.linalg.solve(np.swapaxes(L, 1, 2), r[..., np.newaxis])[..., 0]
        b = u @ T.T
        mu = self._design.X @ beta + np.einsum('ik,ik->i', self._Zraw, b[self._f])

        return PLSUpdate(
            L=tuple(L),
            RX=RX,
            beta=beta,
            u=u.reshape(-1),
            mu=mu,
            log_det_L=log_det_triangular(L),
            log_det_RX=log_det_triangular(RX),
        )

    def relative_covariance_factor(self) -> NDArray:
        """T at the current θ."""
        return lower_triangle(self._state.theta, self._k)

    def Zt(self) -> NDArray:
        return self._Zt

    def ranef(self) -> list[NDArray]:
        self.fit()
        T = self.relative_covariance_factor()
        return [self._state.u.reshape(-1, self._k) @ T.T]

    def var_corr(self) -> list:
        """[σ² T T', σ²]: the k × k random-effects covariance, then σ²."""
        self.fit()
        s2 = self.sigma2()
        T = self.relative_covariance_factor()
        return [s2 * (T @ T.T), s2]
