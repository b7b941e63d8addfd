"""
Exception hierarchy for pymixed.

All exceptions inherit from PyMixedError so callers can catch any
library-specific error in one place. Domain code raises the most specific
class available here.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


class PyMixedError(Exception):
    """Base exception for all pymixed errors."""
    pass


class ValidationError(PyMixedError):
    """
    Input validation failed.

    Raised when user-provided inputs fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when array shapes don't match expected dimensions, including a
    proposed θ whose length differs from the model's parameter vector.
    """
    pass


class ConstructionError(ValidationError):
    """
    The random-effects structure cannot be represented by any model variant.

    Raised when no random-effects terms are supplied, or when several
    terms are supplied and at least one of them is not simple.
    """
    pass


class BoundsViolationError(ValidationError):
    """
    A proposed θ has a component below its lower bound.

    Attributes:
        theta: The rejected parameter vector
        lower: The lower bounds it was checked against
    """

    def __init__(
        self,
        message: str,
        theta: NDArray | None = None,
        lower: NDArray | None = None,
    ):
        super().__init__(message)
        self.theta = None if theta is None else np.array(theta, copy=True)
        self.lower = None if lower is None else np.array(lower, copy=True)


class NumericalError(PyMixedError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during computation.
    """
    pass


class NotPositiveDefiniteError(NumericalError):
    """
    Matrix is not positive definite.

    Raised when a Cholesky factorization fails, typically the downdated
    fixed-effects cross-product of a rank-deficient X.

    Attributes:
        matrix_name: Name/description of the problematic matrix
        min_eigenvalue: Minimum eigenvalue, if computed
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        min_eigenvalue: float | None = None
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.min_eigenvalue = min_eigenvalue


class GradientUnsupportedError(PyMixedError):
    """
    The optimizer requested a gradient evaluation.

    The profiled criterion is only ever minimized by derivative-free
    methods; a nonempty gradient buffer means the optimizer was
    misconfigured.
    """
    pass


class ConvergenceError(PyMixedError):
    """
    Iterative algorithm failed to converge.

    Attributes:
        iterations: Number of iterations (or function evaluations) completed
        final_change: Final parameter or objective change, if known
        reason: Why convergence failed (e.g., 'max_evals', 'failure')
        threshold: The convergence threshold that was not met
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        final_change: float | None = None,
        reason: str | None = None,
        threshold: float | None = None
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.reason = reason
        self.threshold = threshold


class OptimizerFailure(ConvergenceError):
    """
    The derivative-free optimizer returned a non-success termination status.

    Attributes:
        status: The optimizer's termination status
        result: The full optimizer result, for inspection by the caller
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        status: object = None,
        result: object = None,
    ):
        super().__init__(
            message,
            iterations=iterations,
            reason=getattr(status, 'value', None if status is None else str(status)),
        )
        self.status = status
        self.result = result
