"""
pymixed: linear mixed-effects models for Python.

Fixed effects and variance components for grouped data, estimated by
minimizing a profiled deviance or REML criterion over the
variance-component parameters.

Submodules:
    core: Exceptions, validation, result envelope, timing
    mixed: Linear mixed models
"""

__version__ = "0.1.0"

from pymixed import mixed
from pymixed.mixed import lmm, random_effect_term, parse_random_effects

__all__ = [
    "__version__",
    "mixed",
    "lmm",
    "random_effect_term",
    "parse_random_effects",
]
