"""
Fit controller: minimize the profiled criterion over θ.

fit() hands the model's objective to a derivative-free bound-constrained
optimizer and, on success, marks the model as fit. The optimizer's own
report of the minimizer is not copied back: every objective evaluation
installs its θ, β, u and μ in the model, and the optimizer contract
guarantees its last evaluation is at the minimizer.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from pymixed.core.compute.timing import Timer
from pymixed.core.exceptions import GradientUnsupportedError, OptimizerFailure
from pymixed.core.result import Result
from pymixed.mixed._optimizer import (
    BoundedMinimizer, NelderMeadMinimizer, ObjectiveFunction,
)

if TYPE_CHECKING:
    from pymixed.mixed.base import LinearMixedModel

logger = logging.getLogger(__name__)

Observer = Callable[[int, float, NDArray], None]


@dataclass(frozen=True)
class FitControl:
    """Convergence settings for the θ optimization.

    Attributes:
        ftol_abs: Absolute tolerance on changes in the criterion.
        xtol_abs: Absolute tolerance on changes in every θ component.
        max_evals: Maximum number of objective evaluations.
    """
    ftol_abs: float = 1e-6
    xtol_abs: float = 1e-6
    max_evals: int = 10_000


def _reject_gradient(grad: NDArray | None) -> None:
    if grad is not None and len(grad) > 0:
        raise GradientUnsupportedError("gradient evaluations are not provided")


def _log_evaluation(count: int, value: float, x: NDArray) -> None:
    logger.info("f_%d: %.10g, %s", count, value, np.array2string(x, precision=8))


class EvaluationTrace:
    """Objective wrapper that reports every evaluation to an observer.

    A fresh trace is built for each fit call, so the counter starts at 1
    for every optimization.

    Args:
        objective: The plain objective ``f(x, grad)``.
        observer: Called as ``observer(count, value, x)`` after each
            evaluation.
    """

    def __init__(self, objective: ObjectiveFunction, observer: Observer):
        self._objective = objective
        self._observer = observer
        self.count = 0

    def __call__(self, x: NDArray, grad: NDArray) -> float:
        _reject_gradient(grad)
        self.count += 1
        value = self._objective(x, grad)
        self._observer(self.count, value, np.array(x, copy=True))
        return value


def fit(
    model: 'LinearMixedModel',
    verbose: bool = False,
    *,
    control: FitControl | None = None,
    optimizer: BoundedMinimizer | None = None,
    observer: Observer | None = None,
) -> 'LinearMixedModel':
    """Fit a linear mixed model by minimizing its profiled criterion.

    A model that is already fit is returned unchanged.

    Args:
        model: The model to fit (modified in place).
        verbose: If True, report every evaluation to ``observer`` and log
            the optimizer's termination status.
        control: Tolerances. Default: FitControl() (1e-6 absolute on the
            criterion and on every θ component).
        optimizer: Derivative-free bound-constrained optimizer.
            Default: NelderMeadMinimizer().
        observer: Evaluation sink used when verbose. Default: log each
            evaluation at INFO level on this module's logger.

    Returns:
        The model, now fit.

    Raises:
        OptimizerFailure: If the optimizer does not report success. The
            model is left unfit.
        GradientUnsupportedError: If the optimizer asks for a gradient.
    """
    if model.isfit():
        return model

    control = FitControl() if control is None else control
    optimizer = NelderMeadMinimizer() if optimizer is None else optimizer

    def obj(x: NDArray, grad: NDArray) -> float:
        _reject_gradient(grad)
        return model.objective(x)

    objective: ObjectiveFunction = obj
    if verbose:
        objective = EvaluationTrace(
            obj, _log_evaluation if observer is None else observer,
        )

    timer = Timer()
    timer.start()
    with timer.section('optimization'):
        opt = optimizer.minimize(
            objective,
            np.array(model.theta(), copy=True),
            model.lower(),
            ftol_abs=control.ftol_abs,
            xtol_abs=control.xtol_abs,
            max_evals=control.max_evals,
        )
    timer.stop()

    if verbose:
        logger.info("%s: %s (%d evaluations)",
                    optimizer.name, opt.status.value, opt.n_evals)

    if not opt.status.is_success:
        raise OptimizerFailure(
            f"{optimizer.name} stopped with status '{opt.status.value}' "
            f"after {opt.n_evals} evaluations: {opt.message}",
            iterations=opt.n_evals,
            status=opt.status,
            result=opt,
        )

    model.setfit()
    model.fit_info = Result(
        params=opt,
        info={
            'criterion': 'REML' if model.isreml() else 'ML',
            'status': opt.status.value,
            'n_evals': opt.n_evals,
            'n_restarts': opt.n_restarts,
            'objective': opt.fmin,
            'ftol_abs': control.ftol_abs,
            'xtol_abs': control.xtol_abs,
        },
        timing=timer.result(),
        backend_name=optimizer.name,
    )
    return model


def deviance(model: 'LinearMixedModel', **kwargs) -> float:
    """Fit by maximum likelihood and return the criterion at the optimum."""
    if model.isreml():
        model.set_reml(False)
    fit(model, **kwargs)
    return model.criterion()


def reml_criterion(model: 'LinearMixedModel', **kwargs) -> float:
    """Fit by REML and return the criterion at the optimum."""
    if not model.isreml():
        model.set_reml(True)
    fit(model, **kwargs)
    return model.criterion()
