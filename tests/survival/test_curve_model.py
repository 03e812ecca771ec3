"""
Tests for the CurveModel contract consumed by the plotting layer:
records, right-continuous lookups, and StratumCurve invariants.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from pysurvplot.core.exceptions import ConfigurationError, ValidationError
from pysurvplot.survival import CurveModel, StratumCurve


class TestStratumCurve:

    def test_from_arrays_fills_columns(self):
        curve = StratumCurve.from_arrays("A", [0, 1], [1.0, 0.5], n_risk=[2, 2])
        assert_allclose(curve.conf_low, [1.0, 0.5])
        assert_allclose(curve.n_event, [0, 0])
        assert curve.outcome is None
        assert curve.label == "A"

    def test_decreasing_time_rejected(self):
        with pytest.raises(ValidationError, match="non-decreasing"):
            StratumCurve.from_arrays("A", [0, 2, 1], [1, 0.9, 0.8], n_risk=[3, 2, 1])

    def test_non_finite_time_rejected(self):
        with pytest.raises(ValidationError, match="time: contains non-finite"):
            StratumCurve.from_arrays("A", [0, np.nan, 2], [1, 0.9, 0.8], n_risk=[3, 2, 1])

    def test_non_finite_count_rejected(self):
        with pytest.raises(ValidationError, match="n_risk: contains non-finite"):
            StratumCurve.from_arrays("A", [0, 1], [1.0, 0.5], n_risk=[2, np.inf])

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValidationError):
            StratumCurve.from_arrays("A", [0, 1], [1.0], n_risk=[2, 2])

    def test_empty_rejected(self):
        with pytest.raises(ValidationError, match="at least one record"):
            StratumCurve.from_arrays("A", [], [], n_risk=[])

    def test_cumulative_columns(self, two_strata_model):
        curve = two_strata_model.curve("A")
        assert_allclose(curve.column("cum.event"), [0, 1, 2, 3, 4, 4])
        assert_allclose(curve.column("cum.censor"), [0, 0, 0, 1, 1, 6])

    def test_unknown_column(self, two_strata_model):
        with pytest.raises(KeyError):
            two_strata_model.curve("A").column("n.foo")


class TestLookup:

    def test_at_risk_at_explicit_times(self, two_strata_model):
        values = two_strata_model.lookup([0, 2, 4], "n.risk", strata="A")
        assert_allclose(values, [10, 8, 5])

    def test_between_records_uses_preceding(self, two_strata_model):
        values = two_strata_model.lookup([0.5, 2.99, 3.0, 100], "n.risk", strata="A")
        assert_allclose(values, [10, 8, 6, 5])

    def test_estimate_step(self, two_strata_model):
        assert_allclose(
            two_strata_model.lookup([1.5], "estimate", strata="B"), [0.95],
        )

    def test_ties_take_last_record(self):
        curve = StratumCurve.from_arrays(
            "A", [0, 0, 1], [1.0, 0.8, 0.6], n_risk=[5, 5, 4],
        )
        model = CurveModel.from_curves([curve])
        assert_allclose(model.lookup([0.0], "estimate", strata="A"), [0.8])

    def test_unknown_key(self, two_strata_model):
        with pytest.raises(ConfigurationError, match="not available"):
            two_strata_model.lookup([1], "n.foo", strata="A")

    def test_negative_time(self, two_strata_model):
        with pytest.raises(ConfigurationError, match="non-negative"):
            two_strata_model.lookup([-1], "n.risk", strata="A")

    def test_unknown_stratum(self, two_strata_model):
        with pytest.raises(KeyError, match="C"):
            two_strata_model.lookup([1], "n.risk", strata="C")


class TestRecords:

    def test_lazy_generator(self, two_strata_model):
        records = two_strata_model.records()
        assert not isinstance(records, list)
        first = next(records)
        assert first["strata"] == "A"
        assert first["n.risk"] == 10
        assert first["time"] == 0.0

    def test_filter_by_stratum(self, two_strata_model):
        rows = list(two_strata_model.records(strata="B"))
        assert len(rows) == 6
        assert {r["strata"] for r in rows} == {"B"}
        assert rows[-1]["cum.event"] == 4

    def test_all_keys_present(self, two_strata_model):
        record = next(two_strata_model.records())
        assert two_strata_model.available_keys <= set(record)


class TestFromCurves:

    def test_properties(self, two_strata_model):
        model = two_strata_model
        assert model.kind == "survival"
        assert model.strata == ["A", "B"]
        assert model.outcomes == []
        assert model.n_observations == 22
        assert model.max_time == 5.0
        assert model.backend_name == "external"
        assert model.p_value is None

    def test_empty_rejected(self):
        with pytest.raises(ValueError, match="at least one"):
            CurveModel.from_curves([])

    def test_bad_kind(self, two_strata_model):
        with pytest.raises(ValueError, match="kind"):
            CurveModel.from_curves(two_strata_model.curves, kind="hazard")
