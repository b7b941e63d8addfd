"""
Single simple random-effects term, e.g. y ~ x + (1 | subject).

With one scalar term every observation loads on exactly one level, so
Z'Z is diagonal and so is L:

    L_jj = sqrt(θ² d_j + 1),    d_j = Σ_{i in level j} z_i²

Nothing in the factorization is larger than O(n + q·p).
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from pymixed.mixed._common import ModelKind, PLSUpdate
from pymixed.mixed._pls import solve_fixed_effects
from pymixed.mixed.base import ScalarLinearMixedModel
from pymixed.mixed.design import MixedDesign
from pymixed.mixed.terms import incidence_transpose


class ScalarLMM(ScalarLinearMixedModel):
    """Linear mixed model with one simple random-effects term.

    ``L()`` returns a single block: the diagonal of L as a vector.
    """

    kind = ModelKind.SCALAR

    def __init__(self, design: MixedDesign, reml: bool = False):
        (term,) = design.terms
        q = term.n_levels
        p = design.p
        w = design.scaled_rows()

        self._f = term.group_ids
        self._z = term.regressors[:, 0]
        zw = self._z * w
        Xw = design.X * w[:, np.newaxis]
        yw = design.y * w

        # Per-level cross-products
        self._d = np.bincount(self._f, weights=zw * zw, minlength=q)
        self._ZtX = np.zeros((q, p), dtype=np.float64)
        np.add.at(self._ZtX, self._f, zw[:, np.newaxis] * Xw)
        self._Zty = np.bincount(self._f, weights=zw * yw, minlength=q)
        self._XtX = Xw.T @ Xw
        self._Xty = Xw.T @ yw

        self._Zt = incidence_transpose(term)
        self._Zt.setflags(write=False)

        super().__init__(design, theta0=[1.0], lower=[0.0], reml=reml)

    def _factorize(self, theta: NDArray) -> PLSUpdate:
        th = theta[0]
        Ldiag = np.sqrt(th * th * self._d + 1.0)

        cu = th * self._Zty / Ldiag
        CX = (th / Ldiag)[:, np.newaxis] * self._ZtX
        RX, beta = solve_fixed_effects(self._XtX, self._Xty, CX, cu)

        u = (cu - CX @ beta) / Ldiag
        mu = self._design.X @ beta + self._z * (th * u[self._f])

        return PLSUpdate(
            L=(Ldiag,),
            RX=RX,
            beta=beta,
            u=u,
            mu=mu,
            log_det_L=float(np.sum(np.log(Ldiag))),
            log_det_RX=float(np.sum(np.log(np.diag(RX)))),
        )

    def Zt(self) -> NDArray:
        return self._Zt

    def ranef(self) -> list[NDArray]:
        self.fit()
        b = self._state.theta[0] * self._state.u
        return [b.reshape(-1, 1)]
