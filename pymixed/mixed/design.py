"""
Design validation for mixed models.

MixedDesign validates and organizes the inputs for a linear mixed model:
the response y, fixed effects matrix X, random-effects terms and
optional case weights.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pymixed.core.exceptions import DimensionError
from pymixed.core.validation import (
    check_array, check_finite, check_1d, check_2d, check_consistent_length,
    check_min_samples, check_positive,
)
from pymixed.mixed.terms import RandomEffectTerm


@dataclass(frozen=True)
class MixedDesign:
    """Validated design for a linear mixed model.

    All arrays are read-only.

    Attributes:
        y: Response vector (n,).
        X: Fixed effects design matrix (n, p).
        terms: Random-effects terms, in model order.
        sqrtwts: Square roots of the case weights (n,), or an empty
            array for an unweighted model.
        n: Number of observations.
        p: Number of fixed effect columns.
    """
    y: NDArray
    X: NDArray
    terms: tuple[RandomEffectTerm, ...]
    sqrtwts: NDArray
    n: int
    p: int

    @staticmethod
    def validate(
        y: ArrayLike,
        X: ArrayLike,
        terms: Sequence[RandomEffectTerm],
        weights: ArrayLike | None = None,
    ) -> 'MixedDesign':
        """Validate inputs and create a MixedDesign.

        Args:
            y: Response vector.
            X: Fixed effects design matrix. If 1-D, treated as a single
               column (include an intercept column explicitly).
            terms: Random-effects terms. May be empty here; the
               dispatcher decides whether that is acceptable.
            weights: Optional strictly positive case weights (n,).

        Returns:
            Validated MixedDesign.

        Raises:
            ValidationError: On invalid inputs.
            DimensionError: On inconsistent shapes.
        """
        y = check_array(y, "y")
        if y.ndim == 2 and y.shape[1] == 1:
            y = y.ravel()
        check_1d(y, "y")
        check_min_samples(y, 3, "y")
        check_finite(y, "y")
        n = y.shape[0]

        X = check_array(X, "X")
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        check_2d(X, "X")
        check_consistent_length(y, X, names=("y", "X"))
        check_finite(X, "X")
        p = X.shape[1]
        if p >= n:
            raise DimensionError(
                f"X has {p} columns but only {n} observations"
            )

        terms = tuple(terms)
        for term in terms:
            if term.n_obs != n:
                raise DimensionError(
                    f"Random-effects term '{term.group_name}' has "
                    f"{term.n_obs} observations, expected {n}"
                )

        if weights is None:
            sqrtwts = np.empty(0, dtype=np.float64)
        else:
            w = check_array(weights, "weights")
            check_1d(w, "weights")
            check_consistent_length(y, w, names=("y", "weights"))
            check_finite(w, "weights")
            check_positive(w, "weights")
            sqrtwts = np.sqrt(w)

        for arr in (y, X, sqrtwts):
            arr.setflags(write=False)

        return MixedDesign(
            y=y,
            X=X,
            terms=terms,
            sqrtwts=sqrtwts,
            n=n,
            p=p,
        )

    def scaled_rows(self) -> NDArray:
        """Per-observation row multipliers for the penalized solve.

        Residuals enter the weighted RSS as (y - μ) / sqrtwt, so every row
        of y, X and Z is divided by its square-root weight. Unweighted
        models use ones.
        """
        if self.sqrtwts.size == 0:
            return np.ones(self.n, dtype=np.float64)
        return 1.0 / self.sqrtwts
