"""
Random-effects term descriptors.

A term describes one grouping factor and the raw per-observation
regressors whose coefficients vary by level of that factor, in the sense
of lme4's ``(1 + time | subject)``. The model variants consume terms; they
never see grouping labels or variable names.

The θ parameterization follows Bates et al. (2015): θ contains the
elements of the lower-triangular Cholesky factor of the *relative*
covariance matrix (the covariance divided by σ²), filled row-wise.
"""

from __future__ import annotations

from dataclasses import dataclass
import numpy as np
from numpy.typing import ArrayLike, NDArray

from pymixed.core.exceptions import DimensionError, ValidationError
from pymixed.core.validation import check_array, check_finite


@dataclass(frozen=True)
class RandomEffectTerm:
    """Specification for one grouping factor's random effects.

    Attributes:
        group_name: Name of the grouping factor (e.g. 'subject').
        group_ids: Integer level index for each observation, shape (n,).
            Values are 0-indexed consecutive integers.
        n_levels: Number of distinct levels (J).
        regressors: Raw random-effects regressors, shape (n, k). A random
            intercept is a single column of ones.
        names: Names of the k regressor columns (e.g. ('1', 'time')).
    """
    group_name: str
    group_ids: NDArray
    n_levels: int
    regressors: NDArray
    names: tuple[str, ...]

    @property
    def n_obs(self) -> int:
        return self.group_ids.shape[0]

    @property
    def n_columns(self) -> int:
        """Number of random effects per level (k)."""
        return self.regressors.shape[1]

    @property
    def is_simple(self) -> bool:
        """True if the term contributes one scalar variance per level."""
        return self.n_columns == 1

    @property
    def theta_size(self) -> int:
        """Number of θ parameters for this term = k*(k+1)/2."""
        k = self.n_columns
        return k * (k + 1) // 2


def random_effect_term(
    groups: ArrayLike,
    regressors: ArrayLike | None = None,
    *,
    group_name: str = 'group',
    names: tuple[str, ...] | None = None,
) -> RandomEffectTerm:
    """Build a term from grouping labels and optional regressors.

    Args:
        groups: Group label per observation, shape (n,). Any sortable
            labels; they are mapped to consecutive integers.
        regressors: Random-effects regressors, shape (n,) or (n, k).
            Default: a random intercept (one column of ones).
        group_name: Name of the grouping factor.
        names: Column names for the regressors. Default: '1' for a
            random intercept, 'z0', 'z1', ... otherwise.

    Returns:
        RandomEffectTerm.

    Raises:
        DimensionError: If regressors and groups disagree in length.
        ValidationError: If regressors are non-numeric or non-finite.
    """
    group_raw = np.asarray(groups)
    if group_raw.ndim != 1:
        raise DimensionError(
            f"{group_name}: expected 1D group labels, got shape {group_raw.shape}"
        )
    n = group_raw.shape[0]
    if n == 0:
        raise ValidationError(f"{group_name}: group labels are empty")

    levels, group_ids = np.unique(group_raw, return_inverse=True)

    if regressors is None:
        Z = np.ones((n, 1), dtype=np.float64)
        if names is None:
            names = ('1',)
    else:
        Z = check_array(regressors, f"{group_name} regressors")
        if Z.ndim == 1:
            Z = Z.reshape(-1, 1)
        if Z.ndim != 2 or Z.shape[0] != n:
            raise DimensionError(
                f"{group_name}: regressors have shape {Z.shape}, "
                f"expected ({n}, k) matching the group labels"
            )
        check_finite(Z, f"{group_name} regressors")
        if names is None:
            names = tuple(f'z{j}' for j in range(Z.shape[1]))

    names = tuple(names)
    if len(names) != Z.shape[1]:
        raise DimensionError(
            f"{group_name}: {len(names)} names given for {Z.shape[1]} regressor columns"
        )

    group_ids = group_ids.astype(np.intp).ravel()
    group_ids.setflags(write=False)
    Z.setflags(write=False)

    return RandomEffectTerm(
        group_name=group_name,
        group_ids=group_ids,
        n_levels=len(levels),
        regressors=Z,
        names=names,
    )


def parse_random_effects(
    groups: dict[str, ArrayLike],
    random_effects: dict[str, list[str]] | None,
    random_data: dict[str, ArrayLike] | None,
    n: int,
) -> list[RandomEffectTerm]:
    """Parse dictionary-style input into RandomEffectTerm objects.

    Args:
        groups: Mapping of grouping factor name → group labels array (n,).
        random_effects: Mapping of group name → list of term names.
            If None, defaults to random intercept ('1') for each group.
            Example: {'subject': ['1', 'time']} for (1 + time | subject).
        random_data: Mapping of variable name → data array (n,) for
            random slope variables. Required if any term in random_effects
            is not '1' (intercept).
        n: Number of observations.

    Returns:
        List of RandomEffectTerm, one per grouping factor, in the order of
        ``groups``.
    """
    if random_effects is None:
        random_effects = {name: ['1'] for name in groups}

    if random_data is None:
        random_data = {}

    for name in random_effects:
        if name not in groups:
            raise ValidationError(
                f"Random effect group '{name}' not found in groups dict. "
                f"Available: {list(groups.keys())}"
            )

    terms = []
    for group_name in groups:
        group_raw = np.asarray(groups[group_name])
        if group_raw.shape[0] != n:
            raise DimensionError(
                f"Group '{group_name}' has {group_raw.shape[0]} elements, "
                f"expected {n}"
            )

        names = tuple(random_effects.get(group_name, ['1']))
        if not names:
            raise ValidationError(f"Group '{group_name}' has no random effect terms")

        columns = []
        for name in names:
            if name == '1':
                columns.append(np.ones(n, dtype=np.float64))
                continue
            if name not in random_data:
                raise ValidationError(
                    f"Random slope term '{name}' requires data in "
                    f"random_data dict, but '{name}' was not found. "
                    f"Available: {list(random_data.keys())}"
                )
            var_data = check_array(random_data[name], name).ravel()
            if var_data.shape[0] != n:
                raise DimensionError(
                    f"Random data '{name}' has {var_data.shape[0]} elements, "
                    f"expected {n}"
                )
            columns.append(var_data)

        terms.append(random_effect_term(
            group_raw,
            np.column_stack(columns),
            group_name=group_name,
            names=names,
        ))

    return terms


def lower_triangle(theta: NDArray, k: int) -> NDArray:
    """Form the k × k lower-triangular factor T from θ filled row-wise."""
    T = np.zeros((k, k), dtype=np.float64)
    T[np.tril_indices(k)] = theta
    return T


def theta_lower_bounds(k: int) -> NDArray:
    """Lower bounds for one term's θ.

    Diagonal elements of the Cholesky factor must be ≥ 0 (variance is
    non-negative). Off-diagonal elements are unbounded.
    """
    bounds = []
    for row in range(k):
        for col in range(row + 1):
            bounds.append(0.0 if row == col else -np.inf)
    return np.array(bounds, dtype=np.float64)


def theta_start(k: int) -> NDArray:
    """Starting θ for one term: identity relative covariance factor."""
    return np.tril(np.eye(k))[np.tril_indices(k)].astype(np.float64)


def incidence_transpose(term: RandomEffectTerm) -> NDArray:
    """Dense Z' for one term, shape (J*k, n).

    Rows are level-major: row j*k + c holds regressor column c for the
    observations in level j.
    """
    k = term.n_columns
    n = term.n_obs
    Zt = np.zeros((term.n_levels * k, n), dtype=np.float64)
    obs = np.arange(n)
    for c in range(k):
        Zt[term.group_ids * k + c, obs] = term.regressors[:, c]
    return Zt
