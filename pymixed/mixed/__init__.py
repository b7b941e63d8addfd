"""
Linear mixed models fit by profiled ML or REML.

Public API:
    lmm()                  — build the model variant for a set of random-effects terms
    random_effect_term()   — describe one grouping factor and its regressors
    parse_random_effects() — build terms from lme4-style dictionaries
    fit()                  — minimize the profiled criterion over θ
    deviance()             — ML fit, return the criterion
    reml_criterion()       — REML fit, return the criterion
    summarize()            — collect fitted quantities for presentation
"""

from pymixed.mixed._common import LMMSummary, ModelKind, VarCompSummary
from pymixed.mixed._optimizer import (
    BoundedMinimizer, NelderMeadMinimizer, OptimizerResult, Termination,
)
from pymixed.mixed.base import LinearMixedModel, ScalarLinearMixedModel
from pymixed.mixed.fitting import (
    EvaluationTrace, FitControl, deviance, fit, reml_criterion,
)
from pymixed.mixed.report import summarize, variance_components
from pymixed.mixed.scalar import ScalarLMM
from pymixed.mixed.solvers import MixedModel, lmm
from pymixed.mixed.split import SplitLMM
from pymixed.mixed.terms import (
    RandomEffectTerm, parse_random_effects, random_effect_term,
)
from pymixed.mixed.vector import VectorLMM

__all__ = [
    "lmm",
    "MixedModel",
    "ModelKind",
    "LinearMixedModel",
    "ScalarLinearMixedModel",
    "ScalarLMM",
    "VectorLMM",
    "SplitLMM",
    "RandomEffectTerm",
    "random_effect_term",
    "parse_random_effects",
    "fit",
    "deviance",
    "reml_criterion",
    "FitControl",
    "EvaluationTrace",
    "BoundedMinimizer",
    "NelderMeadMinimizer",
    "OptimizerResult",
    "Termination",
    "summarize",
    "variance_components",
    "LMMSummary",
    "VarCompSummary",
]
