"""
Shared fixtures for linear mixed model tests.

Provides realistic test datasets with known structure, and a dense
reference implementation of the profiled criterion that the model
variants are checked against.
"""

import numpy as np
import pytest
from scipy.optimize import Bounds, minimize


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(2024)


@pytest.fixture
def random_intercept_simple(rng):
    """Simple random intercept dataset: y ~ x + (1 | group).

    20 groups, 10 observations each = 200 observations.
    """
    n_groups = 20
    n_per_group = 10
    n = n_groups * n_per_group

    beta0 = 5.0
    beta1 = 2.0
    sigma_group = 3.0
    sigma_resid = 1.0

    group_effects = rng.normal(0, sigma_group, size=n_groups)
    group = np.repeat(np.arange(n_groups), n_per_group)
    x = rng.normal(0, 1, size=n)

    y = beta0 + beta1 * x + group_effects[group] + rng.normal(0, sigma_resid, size=n)

    X = np.column_stack([np.ones(n), x])

    return {
        'y': y, 'X': X, 'group': group, 'x': x,
        'n_groups': n_groups, 'n_per_group': n_per_group,
        'beta0': beta0, 'beta1': beta1,
        'sigma_group': sigma_group, 'sigma_resid': sigma_resid,
    }


@pytest.fixture
def sleepstudy_like(rng):
    """Sleepstudy-like dataset: reaction time ~ days + (1 + days | subject).

    18 subjects, 10 days each = 180 observations.
    Random intercept SD ≈ 25, random slope SD ≈ 6, correlation ≈ 0.07.
    Residual SD ≈ 25.
    """
    n_subjects = 18
    n_days = 10
    n = n_subjects * n_days

    beta_intercept = 250.0
    beta_days = 10.0
    sigma_intercept = 25.0
    sigma_slope = 6.0
    rho = 0.07
    sigma_resid = 25.0

    cov_matrix = np.array([
        [sigma_intercept**2, rho * sigma_intercept * sigma_slope],
        [rho * sigma_intercept * sigma_slope, sigma_slope**2],
    ])
    re = rng.multivariate_normal([0, 0], cov_matrix, size=n_subjects)

    subject = np.repeat(np.arange(n_subjects), n_days)
    days = np.tile(np.arange(n_days, dtype=float), n_subjects)

    y = (beta_intercept + re[subject, 0]
         + (beta_days + re[subject, 1]) * days
         + rng.normal(0, sigma_resid, size=n))

    X = np.column_stack([np.ones(n), days])

    return {
        'y': y, 'X': X, 'subject': subject, 'days': days,
        'n_subjects': n_subjects, 'n_days': n_days,
        'beta_intercept': beta_intercept, 'beta_days': beta_days,
        'sigma_intercept': sigma_intercept, 'sigma_slope': sigma_slope,
        'sigma_resid': sigma_resid,
    }


@pytest.fixture
def crossed_effects(rng):
    """Crossed random effects: y ~ x + (1 | subject) + (1 | item).

    30 subjects × 10 items = 300 observations.
    """
    n_subjects = 30
    n_items = 10
    n = n_subjects * n_items

    beta0 = 3.0
    beta1 = 1.5
    sigma_subject = 2.0
    sigma_item = 1.5
    sigma_resid = 1.0

    subject_effects = rng.normal(0, sigma_subject, size=n_subjects)
    item_effects = rng.normal(0, sigma_item, size=n_items)

    subject = np.repeat(np.arange(n_subjects), n_items)
    item = np.tile(np.arange(n_items), n_subjects)
    x = rng.normal(0, 1, size=n)

    y = (beta0 + beta1 * x
         + subject_effects[subject]
         + item_effects[item]
         + rng.normal(0, sigma_resid, size=n))

    X = np.column_stack([np.ones(n), x])

    return {
        'y': y, 'X': X, 'subject': subject, 'item': item, 'x': x,
        'n_subjects': n_subjects, 'n_items': n_items,
        'beta0': beta0, 'beta1': beta1,
        'sigma_subject': sigma_subject, 'sigma_item': sigma_item,
        'sigma_resid': sigma_resid,
    }


@pytest.fixture
def nested_effects(rng):
    """Nested random effects: y ~ x + (1 | classroom) + (1 | classroom:student).

    5 classrooms × 6 students × 4 observations = 120 observations.
    Classroom labels are strings to exercise label mapping.
    """
    n_classrooms = 5
    n_students_per = 6
    n_obs_per = 4
    n_students = n_classrooms * n_students_per
    n = n_students * n_obs_per

    classroom_effects = rng.normal(0, 3.0, size=n_classrooms)
    student_effects = rng.normal(0, 1.5, size=n_students)

    classroom = np.repeat(
        np.repeat(np.arange(n_classrooms), n_students_per),
        n_obs_per
    )
    student = np.repeat(np.arange(n_students), n_obs_per)
    x = rng.normal(0, 1, size=n)

    y = (10.0 + 0.5 * x
         + classroom_effects[classroom]
         + student_effects[student]
         + rng.normal(0, 1.0, size=n))

    X = np.column_stack([np.ones(n), x])

    return {
        'y': y, 'X': X, 'x': x,
        'classroom': np.array([f'room{c}' for c in classroom]),
        'student': student,
        'n_classrooms': n_classrooms, 'n_students': n_students,
    }


@pytest.fixture
def three_crossed_effects():
    """Three crossed factors with 15, 12 and 6 levels; the third carries almost no variance.

    n = 300, levels assigned at random. The small third component puts
    the optimum close to the θ_3 = 0 bound, where a bounded simplex can
    stop early.
    """
    rng = np.random.default_rng(4)
    n = 300
    sizes = (15, 12, 6)
    sds = (1.0, 0.6, 0.1)

    factors = [rng.integers(0, size, size=n) for size in sizes]
    y = 2.0 + rng.normal(0, 1.0, size=n)
    for f, size, sd in zip(factors, sizes, sds):
        y += rng.normal(0, sd, size=size)[f]

    return {
        'y': y, 'X': np.ones((n, 1)), 'factors': factors,
        'names': ('a', 'b', 'c'),
    }


def _dense_profiled(X, Z, y, Lambda, reml=False):
    """Profiled criterion by brute force on the augmented least squares problem.

    Minimizes ‖[y; 0] - [X  ZΛ; 0  I][β; u]‖² with lstsq, then takes the
    log-determinants from slogdet of the dense cross-products.
    """
    n, p = X.shape
    q = Z.shape[1]
    ZL = Z @ Lambda
    A_aug = np.block([[X, ZL], [np.zeros((q, p)), np.eye(q)]])
    y_aug = np.concatenate([y, np.zeros(q)])
    coef, _, _, _ = np.linalg.lstsq(A_aug, y_aug, rcond=None)
    beta, u = coef[:p], coef[p:]
    resid = y_aug - A_aug @ coef
    pwrss = float(resid @ resid)

    A = ZL.T @ ZL + np.eye(q)
    _, logdet_A = np.linalg.slogdet(A)
    RtR = X.T @ X - X.T @ ZL @ np.linalg.solve(A, ZL.T @ X)
    _, logdet_RtR = np.linalg.slogdet(RtR)

    if reml:
        crit = (n - p) * np.log(2 * np.pi * pwrss / (n - p)) + logdet_A + logdet_RtR
    else:
        crit = n * np.log(2 * np.pi * pwrss / n) + logdet_A
    return {'criterion': float(crit), 'beta': beta, 'u': u, 'pwrss': pwrss}


@pytest.fixture
def dense_profiled():
    """Dense reference: f(X, Z, y, Lambda, reml) → dict(criterion, beta, u, pwrss)."""
    return _dense_profiled


@pytest.fixture
def indicator():
    """Dense indicator matrix for 0-based group ids: f(ids) → (n, J)."""
    def _indicator(ids):
        ids = np.asarray(ids)
        return (ids[:, np.newaxis] == np.arange(ids.max() + 1)).astype(float)
    return _indicator


def _bounded_reference(f, x0, lower):
    """Tight Powell minimization of f over x >= lower, restarted once from its own optimum."""
    bounds = Bounds(np.asarray(lower, dtype=float), np.full(len(lower), np.inf))
    x = np.asarray(x0, dtype=float)
    for _ in range(2):
        res = minimize(f, x, method='Powell', bounds=bounds,
                       options={'xtol': 1e-10, 'ftol': 1e-14, 'maxfev': 50_000})
        x = res.x
    return res


@pytest.fixture
def bounded_reference():
    """Independent optimum: f(fun, x0, lower) → scipy OptimizeResult."""
    return _bounded_reference
