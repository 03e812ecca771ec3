"""
Tests for coxph() and covariate-adjusted survfit(), matching
R survival::coxph(Surv(time, event) ~ x + strata(s)) and
survfit(fit, newdata).
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from pysurvplot.core.exceptions import EstimationError
from pysurvplot.survival import CoxModel, CurveModel, coxph, survfit


# ── Fixtures ─────────────────────────────────────────────────────────

# Distinct event times, so Efron and Breslow coincide
TIME = np.array([3, 5, 7, 11, 13, 15, 2, 4, 6, 8,
                 10, 12, 14, 16, 18, 20, 1, 9, 17, 19], dtype=np.float64)
EVENT = np.array([1, 1, 0, 1, 1, 0, 1, 0, 1, 1,
                  0, 1, 1, 0, 1, 1, 1, 1, 0, 1], dtype=np.float64)
X = np.column_stack([
    [0.5, 1.2, -0.3, 0.8, -0.5, 1.0, -1.2, 0.3, 0.7, -0.8,
     1.5, -0.2, 0.4, -1.0, 0.9, -0.6, 1.1, -0.4, 0.2, -0.1],
    [1, 0, 1, 0, 1, 1, 0, 1, 0, 1,
     0, 1, 0, 1, 1, 0, 0, 1, 0, 1],
]).astype(np.float64)
SITE = np.tile(["north", "south"], 10)


class TestCoxFit:

    def test_converges(self):
        model = coxph(TIME, EVENT, X)
        assert isinstance(model, CoxModel)
        assert model.params.converged
        assert model.n_observations == 20
        assert model.n_events == 14
        assert model.ties == "efron"
        assert_allclose(model.hazard_ratios, np.exp(model.coefficients))
        assert np.all(model.standard_errors > 0)
        assert np.all((model.p_values >= 0) & (model.p_values <= 1))

    def test_likelihood_improves(self):
        null_loglik, fitted_loglik = coxph(TIME, EVENT, X).loglik
        assert fitted_loglik >= null_loglik

    def test_score_is_zero_at_optimum(self):
        from pysurvplot.survival._cox import _score_and_information, _stratum_groups

        model = coxph(TIME, EVENT, X)
        Xc = X - X.mean(axis=0)
        groups = _stratum_groups(TIME, EVENT, Xc, np.full(20, "All", dtype=object))
        _, score, _ = _score_and_information(model.coefficients, groups, "efron")
        assert_allclose(score, 0.0, atol=1e-4)

    def test_breslow_equals_efron_without_ties(self):
        efron = coxph(TIME, EVENT, X, ties="efron")
        breslow = coxph(TIME, EVENT, X, ties="breslow")
        assert_allclose(efron.coefficients, breslow.coefficients, rtol=1e-8)

    def test_ties_change_efron(self):
        time = np.array([1, 1, 1, 2, 2, 3, 3, 3, 4, 5], dtype=np.float64)
        event = np.ones(10)
        x = np.array([0, 1, 1, 0, 1, 0, 1, 1, 0, 0], dtype=np.float64)
        efron = coxph(time, event, x, ties="efron")
        breslow = coxph(time, event, x, ties="breslow")
        assert not np.allclose(efron.coefficients, breslow.coefficients)


class TestStratifiedCox:

    def test_baseline_per_stratum(self):
        model = coxph(TIME, EVENT, X, strata=SITE)
        assert model.strata == ["north", "south"]
        assert len(model.params.baseline) == 2

    def test_strata_change_fit(self):
        plain = coxph(TIME, EVENT, X)
        stratified = coxph(TIME, EVENT, X, strata=SITE)
        assert not np.allclose(plain.coefficients, stratified.coefficients)

    def test_summary_lists_strata(self):
        text = coxph(TIME, EVENT, X, strata=SITE).summary()
        assert "coxph()" in text
        assert "Strata: north, south" in text


class TestAdjustedCurves:

    def test_curve_at_means(self):
        curves = survfit(coxph(TIME, EVENT, X))
        assert isinstance(curves, CurveModel)
        assert curves.kind == "survival"
        assert curves.strata == ["All"]
        curve = curves.curves[0]
        assert curve.time[0] == 0.0
        assert curve.estimate[0] == 1.0
        assert curve.n_risk[0] == 20
        assert np.all(np.diff(curve.estimate) <= 1e-15)

    def test_baseline_matches_breslow_formula(self):
        model = coxph(TIME, EVENT, X)
        base = model.params.baseline[0]
        curve = survfit(model).curves[0]
        assert_allclose(curve.estimate[1:], np.exp(-base.cumhaz))

    def test_newdata_rows(self):
        model = coxph(TIME, EVENT, X)
        low, high = np.array([[-1.0, 0.0], [1.0, 1.0]])
        curves = survfit(model, newdata=np.vstack([low, high]))
        assert curves.strata == ["1", "2"]
        risk_low = (low - model.params.means) @ model.coefficients
        risk_high = (high - model.params.means) @ model.coefficients
        s_low, s_high = curves.curve("1").estimate, curves.curve("2").estimate
        if risk_high > risk_low:
            assert np.all(s_high <= s_low + 1e-12)
        else:
            assert np.all(s_high >= s_low - 1e-12)

    def test_stratified_labels(self):
        model = coxph(TIME, EVENT, X, strata=SITE)
        assert survfit(model).strata == ["north", "south"]
        two_rows = survfit(model, newdata=np.zeros((2, 2)))
        assert two_rows.strata == ["north: 1", "north: 2", "south: 1", "south: 2"]

    def test_newdata_width_checked(self):
        with pytest.raises(ValueError, match="2 columns"):
            survfit(coxph(TIME, EVENT, X), newdata=np.zeros((1, 3)))


class TestEstimationFailures:

    def test_no_events(self):
        with pytest.raises(EstimationError) as exc_info:
            coxph(TIME, np.zeros(20), X)
        assert exc_info.value.reason == "no_events"

    def test_constant_covariate_singular(self):
        with pytest.raises(EstimationError) as exc_info:
            coxph(TIME, EVENT, np.ones(20))
        assert exc_info.value.reason == "singular"

    def test_iteration_limit(self):
        with pytest.raises(EstimationError) as exc_info:
            coxph(TIME, EVENT, X, max_iter=1)
        assert exc_info.value.reason == "max_iterations"
        assert exc_info.value.iterations == 1


class TestValidation:

    def test_invalid_ties(self):
        with pytest.raises(ValueError, match="ties"):
            coxph(TIME, EVENT, X, ties="exact")

    def test_covariates_required(self):
        with pytest.raises(ValueError, match="X"):
            coxph(TIME, EVENT, None)

    def test_covariate_rows(self):
        with pytest.raises(ValueError, match="rows"):
            coxph(TIME, EVENT, X[:5])
