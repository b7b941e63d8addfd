"""
The capability interface shared by every linear mixed model variant.

LinearMixedModel fixes the operations the fit controller and the report
layer may use and implements everything that does not depend on how
the random-effects system is stored: the residual sums of squares,
flag handling, validation and installation of a new θ, and the
criterion. A concrete variant supplies one penalized least squares
factorization (``_factorize``) plus the accessors that expose its
internal layout.

Accessors return read-only views into the model; they never copy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pymixed.core.exceptions import BoundsViolationError, DimensionError
from pymixed.core.validation import check_array, check_finite, check_1d
from pymixed.mixed._common import ModelKind, ModelState, PLSUpdate
from pymixed.mixed._deviance import profiled_criterion, residual_variance
from pymixed.mixed.design import MixedDesign
from pymixed.mixed.terms import RandomEffectTerm

if TYPE_CHECKING:
    from pymixed.core.result import Result


class LinearMixedModel(ABC):
    """Abstract linear mixed model: y = Xβ + ZΛu + ε, u ~ N(0, σ²I).

    Subclasses must set their cached cross-products before calling
    ``LinearMixedModel.__init__``, which evaluates the objective once at
    the starting θ so every field of the state is defined.
    """

    kind: ModelKind

    def __init__(
        self,
        design: MixedDesign,
        theta0: ArrayLike,
        lower: ArrayLike,
        reml: bool = False,
    ):
        self._design = design
        self._lower = np.array(lower, dtype=np.float64)
        self._lower.setflags(write=False)
        theta0 = np.array(theta0, dtype=np.float64)
        if theta0.shape != self._lower.shape:
            raise DimensionError(
                f"theta0 has length {theta0.size}, lower bounds have length "
                f"{self._lower.size}"
            )
        self._state = ModelState(theta=theta0, reml=bool(reml))
        self.fit_info: Result[Any] | None = None
        self.objective(theta0)

    def __repr__(self) -> str:
        n, p, q, t = self.size()
        return (f"{self.__class__.__name__}(n={n}, p={p}, q={q}, t={t}, "
                f"reml={self.isreml()}, fit={self.isfit()})")

    # --- Variant-specific ---

    @abstractmethod
    def _factorize(self, theta: NDArray) -> PLSUpdate:
        """Solve the penalized least squares problem at θ, without side effects."""
        ...

    @abstractmethod
    def Zt(self) -> NDArray:
        """Transposed random-effects design matrix, shape (q, n)."""
        ...

    @abstractmethod
    def ranef(self) -> list[NDArray]:
        """Conditional modes b = Λu per term, each (n_levels, k). Fits first."""
        ...

    @abstractmethod
    def var_corr(self) -> list:
        """Estimated variance components, residual variance last. Fits first."""
        ...

    # --- Data accessors ---

    def obs(self) -> NDArray:
        """The observed response y."""
        return self._design.y

    def exptd(self) -> NDArray:
        """The fitted mean μ at the current θ."""
        return self._state.mu

    def sqrtwts(self) -> NDArray:
        """Square roots of the case weights; empty for an unweighted model."""
        return self._design.sqrtwts

    def X(self) -> NDArray:
        """The fixed-effects design matrix."""
        return self._design.X

    def L(self) -> tuple[NDArray, ...]:
        """Blocks making up the Cholesky factor of Λ'Z'ZΛ + I."""
        return self._state.L

    def RX(self) -> NDArray:
        """Lower Cholesky factor of the downdated X'X."""
        return self._state.RX

    def size(self) -> tuple[int, int, int, int]:
        """(n, p, q, t): observations, fixed effects, random effects, terms."""
        n, p = self._design.X.shape
        return n, p, self._state.u.shape[0], len(self._design.terms)

    def terms(self) -> tuple[RandomEffectTerm, ...]:
        return self._design.terms

    def lower(self) -> NDArray:
        return self._lower

    def theta(self) -> NDArray:
        return self._state.theta

    def uvec(self) -> NDArray:
        """Spherical random effects u at the current θ. Does not fit."""
        return self._state.u

    def fixef(self) -> NDArray:
        """Fixed-effect estimates β̂. Fits the model first if necessary."""
        self.fit()
        return self._state.beta

    def grplevels(self) -> list[int]:
        """Number of grouping-factor levels referenced by each term."""
        return [int(np.unique(term.group_ids).size) for term in self._design.terms]

    # --- Residual sums of squares ---

    def wrss(self) -> float:
        """Weighted residual sum of squares Σ ((y - μ) / sqrtwt)²."""
        r = self._design.y - self._state.mu
        if self._design.sqrtwts.size > 0:
            r = r / self._design.sqrtwts
        return float(r @ r)

    def pwrss(self) -> float:
        """Penalized weighted residual sum of squares, wrss + ‖u‖²."""
        u = self._state.u
        return self.wrss() + float(u @ u)

    def sigma2(self) -> float:
        """Profiled residual variance at the current θ."""
        n, p, _, _ = self.size()
        return residual_variance(self.pwrss(), n, p, self._state.reml)

    # --- Flags ---

    def isfit(self) -> bool:
        return self._state.fit

    def setfit(self) -> 'LinearMixedModel':
        self._state.fit = True
        return self

    def unsetfit(self) -> 'LinearMixedModel':
        self._state.fit = False
        return self

    def isreml(self) -> bool:
        return self._state.reml

    def set_reml(self, reml: bool = True) -> 'LinearMixedModel':
        """Select the REML (or ML) criterion. Always clears the fit flag."""
        self._state.reml = bool(reml)
        self._state.fit = False
        return self

    # --- Objective ---

    def objective(self, theta: ArrayLike) -> float:
        """Install θ, re-solve the penalized system and return the criterion.

        Updates θ, β, u, μ, L and RX together. Validation happens before
        anything is touched, so a rejected θ leaves the model unchanged.
        Moving a fitted model to a different θ clears its fit flag.

        Args:
            theta: Candidate parameter vector, same length as ``theta()``.

        Returns:
            The ML deviance or REML criterion at θ.

        Raises:
            DimensionError: If θ is not 1-D or has the wrong length.
            BoundsViolationError: If any θ_i < lower_i.
        """
        theta = check_array(theta, "theta")
        check_1d(theta, "theta")
        current = self._state.theta
        if theta.shape != current.shape:
            raise DimensionError(
                f"theta has length {theta.size}, expected {current.size}"
            )
        check_finite(theta, "theta")
        if np.any(theta < self._lower):
            raise BoundsViolationError(
                f"theta = {theta} violates lower bounds {self._lower}",
                theta=theta,
                lower=self._lower,
            )

        update = self._factorize(theta)
        if self._state.fit and not np.array_equal(theta, current):
            self._state.fit = False
        self._state.install(theta, update)
        return self._criterion()

    def criterion(self) -> float:
        """The objective re-evaluated at the current θ."""
        return self.objective(self._state.theta)

    def set_theta(self, theta: ArrayLike) -> float:
        """Move the model to θ and clear the fit flag."""
        value = self.objective(theta)
        self._state.fit = False
        return value

    def _criterion(self) -> float:
        n, p, _, _ = self.size()
        return profiled_criterion(
            self.pwrss(), self._state.log_det_L, self._state.log_det_RX,
            n, p, self._state.reml,
        )

    # --- Fitting ---

    def fit(self, verbose: bool = False, **kwargs) -> 'LinearMixedModel':
        """Minimize the objective over θ. See ``pymixed.mixed.fitting.fit``."""
        from pymixed.mixed.fitting import fit

        return fit(self, verbose, **kwargs)


class ScalarLinearMixedModel(LinearMixedModel):
    """A model whose every term contributes a single scalar variance."""

    def var_corr(self) -> NDArray:
        """Per-term variances θ_i² σ², followed by the residual variance σ².

        Returns:
            Array of length t + 1.
        """
        self.fit()
        s2 = self.sigma2()
        return np.append(self._state.theta ** 2, 1.0) * s2
