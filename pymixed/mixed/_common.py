"""
Common data types for linear mixed models.

ModelState is the one mutable record a model instance owns; everything
the objective recomputes lives there. PLSUpdate is the immutable bundle
a variant's factorization hands back for installation. The remaining
types are frozen report payloads with no computation.

References:
    Bates, D., Maechler, M., Bolker, B., & Walker, S. (2015).
    Fitting Linear Mixed-Effects Models Using lme4.
    Journal of Statistical Software, 67(1), 1-48.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import NDArray


class ModelKind(Enum):
    """Internal representation selected by the dispatcher."""
    SCALAR = 'scalar'      # one simple term
    VECTOR = 'vector'      # one term with k > 1 correlated effects
    SPLIT = 'split'        # several simple terms


@dataclass(frozen=True)
class PLSUpdate:
    """Result of one penalized least squares factorization at a given θ.

    Attributes:
        L: Blocks making up the Cholesky factor of Λ'Z'ZΛ + I.
        RX: Lower Cholesky factor of the downdated X'X, shape (p, p).
        beta: Fixed effects (p,).
        u: Spherical random effects (q,).
        mu: Fitted mean Xβ + ZΛu (n,).
        log_det_L: Σ log diag(L).
        log_det_RX: Σ log diag(RX).
    """
    L: tuple[NDArray, ...]
    RX: NDArray
    beta: NDArray
    u: NDArray
    mu: NDArray
    log_det_L: float
    log_det_RX: float


def _frozen(a: NDArray) -> NDArray:
    a = np.array(a, dtype=np.float64, copy=True)
    a.setflags(write=False)
    return a


@dataclass
class ModelState:
    """Mutable per-model fields, updated only by the objective and fit."""
    theta: NDArray
    reml: bool
    fit: bool = False
    beta: NDArray | None = None
    u: NDArray | None = None
    mu: NDArray | None = None
    L: tuple[NDArray, ...] = ()
    RX: NDArray | None = None
    log_det_L: float = 0.0
    log_det_RX: float = 0.0

    def install(self, theta: NDArray, update: PLSUpdate) -> None:
        """Install θ and everything computed from it, all at once."""
        self.theta = _frozen(theta)
        self.beta = _frozen(update.beta)
        self.u = _frozen(update.u)
        self.mu = _frozen(update.mu)
        self.L = tuple(_frozen(block) for block in update.L)
        self.RX = _frozen(update.RX)
        self.log_det_L = float(update.log_det_L)
        self.log_det_RX = float(update.log_det_RX)


@dataclass(frozen=True)
class VarCompSummary:
    """Variance component summary for one random effect column.

    Attributes:
        group: Grouping factor name (e.g. 'subject').
        name: Term name within the group (e.g. '(Intercept)', 'time').
        variance: Estimated variance σ²_b for this component.
        std_dev: Standard deviation (sqrt of variance).
        corr: Correlation with the first column of the same group,
              or None if this is the first (or only) column.
    """
    group: str
    name: str
    variance: float
    std_dev: float
    corr: float | None = None


@dataclass(frozen=True)
class LMMSummary:
    """
    Everything an external formatter needs to present a fitted model.

    log_likelihood and deviance are only defined for maximum likelihood
    fits and are None under REML.
    """
    criterion_name: str                # 'REML' or 'maximum likelihood'
    criterion: float
    log_likelihood: float | None
    deviance: float | None

    var_components: tuple[VarCompSummary, ...]
    residual_variance: float
    n_levels: dict[str, int]           # grouping factor → number of levels

    coefficients: NDArray              # β̂ (p,)
    theta: NDArray
    n_obs: int
    reml: bool
    converged: bool
