"""
Profiled criterion for linear mixed models.

Once β, u and σ² are profiled out, the objective the outer optimizer
minimizes over θ depends only on the penalized weighted residual sum of
squares and the log-determinants of the two Cholesky factors:

ML:   d(θ) = n × log(2π × pwrss/n) + 2 log|L|

REML: d(θ) = (n-p) × log(2π × pwrss/(n-p)) + 2 log|L| + 2 log|RX|

The constant n (or n-p) that lme4 adds to both forms is left out; it
does not move the optimum.

References:
    Bates, D., Maechler, M., Bolker, B., & Walker, S. (2015).
    Fitting Linear Mixed-Effects Models Using lme4.
    Journal of Statistical Software, 67(1), Sections 3.4-3.5.
"""

from __future__ import annotations

import numpy as np


def profiled_criterion(
    pwrss: float,
    log_det_L: float,
    log_det_RX: float,
    n: int,
    p: int,
    reml: bool,
) -> float:
    """Compute the profiled ML deviance or REML criterion.

    Args:
        pwrss: Penalized weighted residual sum of squares.
        log_det_L: Σ log diag(L) of the random-effects factor.
        log_det_RX: Σ log diag(RX) of the fixed-effects factor.
        n: Number of observations.
        p: Number of fixed-effect columns.
        reml: If True, compute the REML criterion; otherwise ML.

    Returns:
        Criterion value (scalar to minimize).
    """
    if reml:
        df = n - p
        return float(df * np.log(2.0 * np.pi * pwrss / df)
                     + 2.0 * log_det_L
                     + 2.0 * log_det_RX)
    return float(n * np.log(2.0 * np.pi * pwrss / n) + 2.0 * log_det_L)


def residual_variance(pwrss: float, n: int, p: int, reml: bool) -> float:
    """Profiled σ² = pwrss / (n - p) under REML, pwrss / n under ML."""
    return pwrss / float(n - (p if reml else 0))
