"""
Variance-component reporting for fitted linear mixed models.

summarize() gathers everything an external formatter needs: the
criterion and, for ML fits, the log-likelihood and deviance; the
variance components with standard deviations and correlations; the
number of levels per grouping factor; and the fixed effects.
Formatting itself is left to the caller.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from pymixed.mixed._common import LMMSummary, VarCompSummary
from pymixed.mixed.base import LinearMixedModel
from pymixed.mixed.terms import RandomEffectTerm


def _column_name(name: str) -> str:
    return '(Intercept)' if name == '1' else name


def _covariance_components(
    term: RandomEffectTerm,
    cov_matrix: NDArray,
) -> list[VarCompSummary]:
    """Variance, std dev and correlation with the first column, per column."""
    var_comps = []
    for i, name in enumerate(term.names):
        var_i = float(cov_matrix[i, i])
        sd_i = np.sqrt(max(var_i, 0.0))

        # Correlation with first term (only for 2nd+ terms)
        if i > 0 and cov_matrix[0, 0] > 0 and var_i > 0:
            corr = cov_matrix[i, 0] / (np.sqrt(cov_matrix[0, 0]) * sd_i)
            corr = float(np.clip(corr, -1.0, 1.0))
        else:
            corr = None

        var_comps.append(VarCompSummary(
            group=term.group_name,
            name=_column_name(name),
            variance=var_i,
            std_dev=float(sd_i),
            corr=corr,
        ))
    return var_comps


def variance_components(model: LinearMixedModel) -> tuple[list[VarCompSummary], float]:
    """Per-column variance components and the residual variance.

    Fits the model first if necessary.
    """
    vc = model.var_corr()
    var_comps = []
    for term, cov in zip(model.terms(), vc[:-1]):
        # scalar terms report a bare variance
        var_comps.extend(_covariance_components(term, np.atleast_2d(cov)))
    return var_comps, float(vc[-1])


def summarize(model: LinearMixedModel) -> LMMSummary:
    """Collect the fitted quantities of a model for presentation.

    Fits the model first if necessary.
    """
    model.fit()
    reml = model.isreml()
    value = model.criterion()
    var_comps, resid_var = variance_components(model)
    n, _, _, _ = model.size()
    terms = model.terms()

    return LMMSummary(
        criterion_name='REML' if reml else 'maximum likelihood',
        criterion=value,
        log_likelihood=None if reml else -value / 2.0,
        deviance=None if reml else value,
        var_components=tuple(var_comps),
        residual_variance=resid_var,
        n_levels={term.group_name: lev
                  for term, lev in zip(terms, model.grplevels())},
        coefficients=np.array(model.fixef(), copy=True),
        theta=np.array(model.theta(), copy=True),
        n_obs=n,
        reml=reml,
        converged=model.isfit(),
    )
