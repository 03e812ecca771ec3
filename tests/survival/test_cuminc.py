"""
Tests for cuminc(), Aalen-Johansen cumulative incidence, matching
tidycmprsk::cuminc(Surv(time, status) ~ strata).
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from pysurvplot.survival import cuminc, survfit


class TestAalenJohansen:

    def test_hand_computed(self):
        # Distinct times 1..4 with n at risk 4, 3, 2, 1
        model = cuminc([1, 2, 3, 4], [1, 2, 0, 1])
        assert model.kind == "incidence"
        assert model.outcomes == ["1", "2"]

        f1 = model.curve("All", "1")
        f2 = model.curve("All", "2")
        assert_allclose(f1.time, [0, 1, 2, 3, 4])
        assert_allclose(f1.estimate, [0, 0.25, 0.25, 0.25, 0.75])
        assert_allclose(f2.estimate, [0, 0, 0.25, 0.25, 0.25])
        assert_allclose(f1.n_risk, [4, 4, 3, 2, 1])
        assert_allclose(f1.n_event, [0, 1, 0, 0, 1])
        assert_allclose(f2.n_event, [0, 0, 1, 0, 0])

    def test_single_cause_is_one_minus_km(self, km_data):
        time, event, _ = km_data
        incidence = cuminc(time, event).curves[0]
        survival = survfit(time, event).curves[0]
        assert_allclose(incidence.estimate, 1.0 - survival.estimate, atol=1e-12)

    def test_causes_and_survival_sum_to_one(self, competing_data):
        time, status, _ = competing_data
        model = cuminc(time, status)
        total = sum(c.estimate for c in model.curves)
        all_cause = survfit(time, (status > 0).astype(float)).curves[0]
        assert_allclose(total + all_cause.estimate, 1.0, atol=1e-12)

    def test_nondecreasing(self, competing_data):
        time, status, strata = competing_data
        for curve in cuminc(time, status, strata=strata).curves:
            assert np.all(np.diff(curve.estimate) >= -1e-15)

    def test_interval_brackets_estimate(self, competing_data):
        time, status, _ = competing_data
        for curve in cuminc(time, status).curves:
            assert np.all(curve.conf_low <= curve.estimate + 1e-12)
            assert np.all(curve.conf_high >= curve.estimate - 1e-12)
            assert np.all((curve.conf_low >= 0) & (curve.conf_high <= 1))


class TestStrataAndLabels:

    def test_curve_per_stratum_and_cause(self, competing_data):
        time, status, strata = competing_data
        model = cuminc(time, status, strata=strata)
        assert model.strata == ["high", "low"]
        assert len(model.curves) == 4
        assert model.curve("low", "2").outcome == "2"

    def test_cause_labels(self):
        model = cuminc([1, 2, 3, 4], [1, 2, 0, 1], cause_labels={1: "Relapse", 2: "Death"})
        assert model.outcomes == ["Relapse", "Death"]
        assert model.curves[0].label == "All, Relapse"

    def test_metadata(self, competing_data):
        time, status, _ = competing_data
        model = cuminc(time, status)
        assert model.info["method"] == "Aalen-Johansen"
        assert model.info["n_causes"] == 2
        assert model.conf_type == "log-log"
        assert model.backend_name == "cpu_cuminc"


class TestValidation:

    def test_negative_status(self):
        with pytest.raises(ValueError, match="status"):
            cuminc([1, 2], [-1, 1])

    def test_fractional_status(self):
        with pytest.raises(ValueError, match="integer"):
            cuminc([1, 2], [0.5, 1])

    def test_no_events(self):
        with pytest.raises(ValueError, match="no events"):
            cuminc([1, 2], [0, 0])
