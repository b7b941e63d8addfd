"""
Derivative-free, bound-constrained optimizer boundary.

The fit controller only depends on the BoundedMinimizer protocol: given
an objective ``f(x, grad) -> float`` (grad is always an empty buffer),
a starting point, lower bounds, and absolute tolerances on the objective
and on every parameter, return the minimum, the minimizer and a
termination status. Implementations must leave the objective's last
evaluation at the reported minimizer, because the model state is
whatever the last evaluation installed.

NelderMeadMinimizer adapts ``scipy.optimize.minimize`` to this contract.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import Bounds, minimize


ObjectiveFunction = Callable[[NDArray, NDArray], float]

# Gradient buffer handed to every derivative-free evaluation
EMPTY_GRADIENT = np.empty(0, dtype=np.float64)
EMPTY_GRADIENT.setflags(write=False)


class Termination(Enum):
    """Why the optimizer stopped."""
    SUCCESS = 'success'
    FTOL_REACHED = 'ftol_reached'
    XTOL_REACHED = 'xtol_reached'
    MAXEVAL_REACHED = 'maxeval_reached'
    FAILURE = 'failure'

    @property
    def is_success(self) -> bool:
        return self in (Termination.SUCCESS,
                        Termination.FTOL_REACHED,
                        Termination.XTOL_REACHED)


@dataclass(frozen=True)
class OptimizerResult:
    """What an optimizer reports back.

    Attributes:
        fmin: Objective value at xmin.
        xmin: Minimizing parameter vector.
        status: Termination status.
        n_evals: Number of objective evaluations.
        message: Optimizer-specific explanation of the status.
        n_restarts: Number of times the search was restarted from its
            own minimizer.
    """
    fmin: float
    xmin: NDArray
    status: Termination
    n_evals: int
    message: str = ''
    n_restarts: int = 0


@runtime_checkable
class BoundedMinimizer(Protocol):
    """Contract required of a derivative-free bound-constrained optimizer."""

    @property
    def name(self) -> str:
        """Optimizer identifier, e.g. 'nelder_mead'."""
        ...

    def minimize(
        self,
        objective: ObjectiveFunction,
        x0: NDArray,
        lower: NDArray,
        *,
        ftol_abs: float,
        xtol_abs: float,
        max_evals: int,
    ) -> OptimizerResult:
        """Minimize objective over x >= lower (no upper bound), starting at x0."""
        ...


class NelderMeadMinimizer:
    """Bounded Nelder-Mead simplex search from scipy.

    Each run stops when the simplex is within ``xtol_abs`` in every
    coordinate and its objective values are within ``ftol_abs`` of each
    other. A simplex whose vertices are clipped onto a bound can collapse
    there and report convergence short of the minimum, so the search is
    restarted from the reported minimizer until a run improves the
    objective by less than ``ftol_abs``.

    Args:
        adaptive: Use dimension-adapted simplex parameters, which help
            for larger θ vectors.
    """

    def __init__(self, adaptive: bool = False):
        self._adaptive = adaptive

    @property
    def name(self) -> str:
        return 'nelder_mead'

    def minimize(
        self,
        objective: ObjectiveFunction,
        x0: NDArray,
        lower: NDArray,
        *,
        ftol_abs: float,
        xtol_abs: float,
        max_evals: int,
    ) -> OptimizerResult:
        lower = np.asarray(lower, dtype=np.float64)
        bounds = Bounds(lower, np.full(lower.shape, np.inf))
        last_x: NDArray | None = None
        n_evals = 0

        def fun(x: NDArray) -> float:
            nonlocal last_x, n_evals
            last_x = np.array(x, dtype=np.float64, copy=True)
            n_evals += 1
            return objective(last_x, EMPTY_GRADIENT)

        xmin = np.asarray(x0, dtype=np.float64)
        fmin = np.inf
        n_restarts = -1
        while True:
            budget = max_evals - n_evals
            if budget <= 0:
                status = Termination.MAXEVAL_REACHED
                message = "evaluation budget spent before the restart converged"
                break

            res = minimize(
                fun,
                xmin,
                method='Nelder-Mead',
                bounds=bounds,
                options={
                    'xatol': xtol_abs,
                    'fatol': ftol_abs,
                    'maxfev': budget,
                    'maxiter': budget,
                    'adaptive': self._adaptive,
                },
            )
            n_restarts += 1
            message = str(res.message)

            if not res.success:
                status = (Termination.MAXEVAL_REACHED if res.status in (1, 2)
                          else Termination.FAILURE)
                if float(res.fun) < fmin:
                    xmin, fmin = np.array(res.x, dtype=np.float64), float(res.fun)
                break

            improvement = fmin - float(res.fun)
            if improvement >= 0.0:
                xmin, fmin = np.array(res.x, dtype=np.float64), float(res.fun)
            if improvement < ftol_abs:
                status = Termination.SUCCESS
                break

        if last_x is None or not np.array_equal(last_x, xmin):
            # Leave the caller's state at the reported minimizer
            fmin = fun(xmin)

        return OptimizerResult(
            fmin=fmin,
            xmin=xmin,
            status=status,
            n_evals=n_evals,
            message=message,
            n_restarts=n_restarts,
        )
