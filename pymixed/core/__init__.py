"""
Core infrastructure for pymixed.

Key components:
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing utilities
"""

from pymixed.core.result import Result
from pymixed.core.exceptions import (
    PyMixedError,
    ValidationError,
    DimensionError,
    ConstructionError,
    BoundsViolationError,
    NumericalError,
    NotPositiveDefiniteError,
    GradientUnsupportedError,
    ConvergenceError,
    OptimizerFailure,
)

__all__ = [
    # Result
    "Result",
    # Exceptions
    "PyMixedError",
    "ValidationError",
    "DimensionError",
    "ConstructionError",
    "BoundsViolationError",
    "NumericalError",
    "NotPositiveDefiniteError",
    "GradientUnsupportedError",
    "ConvergenceError",
    "OptimizerFailure",
]
