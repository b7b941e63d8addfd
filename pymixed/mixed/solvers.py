"""
Model construction for linear mixed models.

Public API:
    lmm() — validate the inputs and build the model variant that the
            random-effects structure requires
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Union

from numpy.typing import ArrayLike

from pymixed.core.exceptions import ConstructionError
from pymixed.mixed.design import MixedDesign
from pymixed.mixed.scalar import ScalarLMM
from pymixed.mixed.split import SplitLMM
from pymixed.mixed.terms import RandomEffectTerm
from pymixed.mixed.vector import VectorLMM

MixedModel = Union[ScalarLMM, VectorLMM, SplitLMM]


def lmm(
    y: ArrayLike,
    X: ArrayLike,
    terms: Sequence[RandomEffectTerm],
    *,
    weights: ArrayLike | None = None,
    reml: bool = False,
) -> MixedModel:
    """Build an (unfit) linear mixed model.

    The representation is chosen once, from the shape of the
    random-effects structure:

    - one simple term            → ScalarLMM
    - one non-simple term        → VectorLMM
    - several simple terms       → SplitLMM

    Call ``fit()`` on the result (or any accessor that fits, such as
    ``fixef()``) to estimate θ.

    Args:
        y: Response vector (n,).
        X: Fixed effects design matrix (n, p). Should include an
            intercept column if desired.
        terms: Random-effects terms, e.g. from ``random_effect_term`` or
            ``parse_random_effects``.
        weights: Optional strictly positive case weights (n,).
        reml: If True, use the REML criterion; default is ML.

    Returns:
        ScalarLMM, VectorLMM or SplitLMM.

    Raises:
        ConstructionError: If no terms are given, or several terms are
            given and any of them is not simple.

    Examples:
        # Random intercept model
        >>> m = lmm(y, X, [random_effect_term(subject, group_name='subject')])
        >>> m.fit().fixef()

        # Random intercept + slope
        >>> terms = parse_random_effects({'subject': subject},
        ...                              {'subject': ['1', 'days']},
        ...                              {'days': days}, len(y))
        >>> m = lmm(y, X, terms, reml=True)
    """
    terms = tuple(terms)
    if len(terms) == 0:
        raise ConstructionError("no random-effects terms")

    design = MixedDesign.validate(y, X, terms, weights)

    if len(terms) == 1:
        if terms[0].is_simple:
            return ScalarLMM(design, reml=reml)
        return VectorLMM(design, reml=reml)

    if not all(term.is_simple for term in terms):
        raise ConstructionError("only simple random-effects terms allowed")
    return SplitLMM(design, reml=reml)
