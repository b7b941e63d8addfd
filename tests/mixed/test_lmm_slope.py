"""Tests for LMM with correlated random intercepts and slopes."""

import numpy as np
import pytest

from pymixed.mixed import lmm, parse_random_effects, summarize


def _slope_model(d, reml=False):
    terms = parse_random_effects(
        {'subject': d['subject']}, {'subject': ['1', 'days']},
        {'days': d['days']}, len(d['y']),
    )
    return lmm(d['y'], d['X'], terms, reml=reml)


@pytest.fixture
def fitted(sleepstudy_like):
    return _slope_model(sleepstudy_like, reml=True).fit()


class TestLMMRandomSlope:
    """Tests for the sleepstudy-like (1 + days | subject) model."""

    def test_basic_fit(self, fitted):
        assert fitted.isfit()
        assert fitted.theta().shape == (3,)

    def test_fixed_effects_close_to_truth(self, fitted, sleepstudy_like):
        d = sleepstudy_like
        beta = fitted.fixef()
        np.testing.assert_allclose(beta[0], d['beta_intercept'], atol=25.0)
        np.testing.assert_allclose(beta[1], d['beta_days'], atol=5.0)

    def test_theta_respects_bounds(self, fitted):
        theta = fitted.theta()
        assert theta[0] >= 0.0
        assert theta[2] >= 0.0

    def test_var_corr_structure(self, fitted):
        cov, s2 = fitted.var_corr()
        assert cov.shape == (2, 2)
        np.testing.assert_allclose(cov, cov.T)
        assert np.all(np.linalg.eigvalsh(cov) >= -1e-10)
        assert s2 == pytest.approx(fitted.sigma2())

    def test_var_corr_is_scaled_TTt(self, fitted):
        T = fitted.relative_covariance_factor()
        cov, s2 = fitted.var_corr()
        np.testing.assert_allclose(cov, s2 * T @ T.T)

    def test_residual_sd_reasonable(self, fitted, sleepstudy_like):
        _, s2 = fitted.var_corr()
        assert 15.0 < np.sqrt(s2) < 35.0

    def test_blups_shape(self, fitted, sleepstudy_like):
        (b,) = fitted.ranef()
        assert b.shape == (sleepstudy_like['n_subjects'], 2)

    def test_fitted_values(self, fitted, sleepstudy_like):
        """μ = Xβ + b0[subject] + b1[subject] × days."""
        d = sleepstudy_like
        (b,) = fitted.ranef()
        expected = (d['X'] @ fitted.fixef()
                    + b[d['subject'], 0] + b[d['subject'], 1] * d['days'])
        np.testing.assert_allclose(fitted.exptd(), expected, atol=1e-8)

    def test_summary_components(self, fitted):
        s = summarize(fitted)
        assert [vc.name for vc in s.var_components] == ['(Intercept)', 'days']
        assert all(vc.group == 'subject' for vc in s.var_components)
        assert s.var_components[0].corr is None
        corr = s.var_components[1].corr
        assert corr is None or -1.0 <= corr <= 1.0
        assert s.n_levels == {'subject': 18}
        assert s.criterion_name == 'REML'

    def test_criterion_is_local_minimum(self, fitted):
        value = fitted.criterion()
        theta = fitted.theta().copy()
        lower = fitted.lower()
        for i in range(3):
            for step in (-1e-2, 1e-2):
                trial = theta.copy()
                trial[i] += step
                if trial[i] < lower[i]:
                    continue
                assert fitted.objective(trial) >= value - 1e-6
        assert not fitted.isfit()


class TestSlopeMLvsREML:

    def test_ml_and_reml_differ(self, sleepstudy_like):
        ml = _slope_model(sleepstudy_like).fit()
        reml = _slope_model(sleepstudy_like, reml=True).fit()
        assert not np.allclose(ml.theta(), reml.theta())
        np.testing.assert_allclose(ml.fixef(), reml.fixef(), rtol=1e-2)


class TestSlopeOptimum:
    """Fitted θ agrees with an independent bounded minimization of the dense criterion."""

    @pytest.mark.parametrize('reml', [False, True])
    def test_matches_bounded_reference(self, sleepstudy_like, dense_profiled,
                                       bounded_reference, reml):
        d = sleepstudy_like
        n = len(d['y'])
        J = d['n_subjects']
        Zraw = np.column_stack([np.ones(n), d['days']])
        Z = np.zeros((n, 2 * J))
        for c in range(2):
            Z[np.arange(n), 2 * d['subject'] + c] = Zraw[:, c]

        def f(theta):
            T = np.array([[theta[0], 0.0], [theta[1], theta[2]]])
            return dense_profiled(d['X'], Z, d['y'], np.kron(np.eye(J), T), reml)['criterion']

        m = _slope_model(d, reml=reml).fit()
        ref = bounded_reference(f, [1.0, 0.0, 1.0], m.lower())

        np.testing.assert_allclose(m.theta(), ref.x, atol=1e-4)
        assert m.criterion() == pytest.approx(ref.fun, abs=1e-5)
