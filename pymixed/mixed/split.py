"""
Several simple random-effects terms, e.g. y ~ x + (1 | subject) + (1 | item).

Each term t contributes one θ_t, so Λ is diagonal with θ_t repeated over
that term's n_levels_t columns. Crossed or nested factors couple the
terms through the off-diagonal blocks of Z'Z, so the penalized system

    L L' = ΛZ'ZΛ + I

is factored as a whole. Z'Z, Z'X and Z'y are formed once; each
evaluation only rescales them by Λ.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
import scipy.linalg as sla

from pymixed.mixed._common import ModelKind, PLSUpdate
from pymixed.mixed._pls import log_det_triangular, solve_fixed_effects
from pymixed.mixed.base import ScalarLinearMixedModel
from pymixed.mixed.design import MixedDesign
from pymixed.mixed.terms import incidence_transpose


class SplitLMM(ScalarLinearMixedModel):
    """Linear mixed model with several simple random-effects terms.

    Random effects are ordered term by term. ``L()`` returns the factor
    split into one block row per term: rows of term t and every column
    up to and including term t's own diagonal block.
    """

    kind = ModelKind.SPLIT

    def __init__(self, design: MixedDesign, reml: bool = False):
        terms = design.terms
        levels = [term.n_levels for term in terms]
        w = design.scaled_rows()

        self._Zt = np.vstack([incidence_transpose(term) for term in terms])
        self._Zt.setflags(write=False)
        self._ends = np.cumsum(levels)
        self._term_of = np.repeat(np.arange(len(terms)), levels)

        Zw = self._Zt.T * w[:, np.newaxis]
        Xw = design.X * w[:, np.newaxis]
        yw = design.y * w
        self._ZtZ = Zw.T @ Zw
        self._ZtX = Zw.T @ Xw
        self._Zty = Zw.T @ yw
        self._XtX = Xw.T @ Xw
        self._Xty = Xw.T @ yw
        self._eye = np.eye(self._ZtZ.shape[0])

        super().__init__(
            design, theta0=np.ones(len(terms)), lower=np.zeros(len(terms)),
            reml=reml,
        )

    def _factorize(self, theta: NDArray) -> PLSUpdate:
        lam = theta[self._term_of]  # diagonal of Λ

        L = np.linalg.cholesky(
            lam[:, np.newaxis] * self._ZtZ * lam[np.newaxis, :] + self._eye
        )
        cu = sla.solve_triangular(L, lam * self._Zty, lower=True)
        CX = sla.solve_triangular(L, lam[:, np.newaxis] * self._ZtX, lower=True)
        RX, beta = solve_fixed_effects(self._XtX, self._Xty, CX, cu)

        u = sla.solve_triangular(L.T, cu - CX @ beta, lower=False)
        mu = self._design.X @ beta + self._Zt.T @ (lam * u)

        starts = np.concatenate([[0], self._ends[:-1]])
        blocks = tuple(L[s:e, :e] for s, e in zip(starts, self._ends))

        return PLSUpdate(
            L=blocks,
            RX=RX,
            beta=beta,
            u=u,
            mu=mu,
            log_det_L=log_det_triangular(L),
            log_det_RX=log_det_triangular(RX),
        )

    def Zt(self) -> NDArray:
        return self._Zt

    def ranef(self) -> list[NDArray]:
        self.fit()
        b = self._state.theta[self._term_of] * self._state.u
        return [blk.reshape(-1, 1) for blk in np.split(b, self._ends[:-1])]
