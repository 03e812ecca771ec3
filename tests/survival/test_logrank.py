"""
Tests for survdiff(), the G-rho family of log-rank tests, matching
R survival::survdiff(Surv(time, event) ~ group, rho=...).
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from pysurvplot.survival import LogRankSolution, survdiff


# R:
#   time <- c(6, 7, 10, 15, 16, 22, 23, 6, 9, 10, 11, 17, 19, 20)
#   event <- c(1, 1, 1, 1, 0, 1, 1, 0, 1, 0, 1, 1, 1, 1)
#   group <- rep(1:2, each=7)
TIME = np.array([6, 7, 10, 15, 16, 22, 23, 6, 9, 10, 11, 17, 19, 20], dtype=np.float64)
EVENT = np.array([1, 1, 1, 1, 0, 1, 1, 0, 1, 0, 1, 1, 1, 1], dtype=np.float64)
GROUP = np.repeat([1, 2], 7)


class TestLogRank:

    def test_two_groups(self):
        result = survdiff(TIME, EVENT, GROUP)
        assert isinstance(result, LogRankSolution)
        assert result.n_groups == 2
        assert result.df == 1
        assert result.statistic >= 0
        assert 0 <= result.p_value <= 1
        assert_allclose(result.n_per_group, [7, 7])

    def test_observed_and_expected_sum_to_events(self):
        result = survdiff(TIME, EVENT, GROUP)
        assert_allclose(result.observed.sum(), EVENT.sum())
        assert_allclose(result.expected.sum(), EVENT.sum())
        assert np.sum(result.observed - result.expected) == pytest.approx(0.0, abs=1e-8)

    def test_hand_computed_statistic(self):
        # Group 1 fails at 1 and 2, group 2 at 3 and 4; risk sets shrink
        # from 4 to 1. Expected for group 1: 2/4 + 1/3 + 0 + 0
        result = survdiff([1, 2, 3, 4], [1, 1, 1, 1], ["a", "a", "b", "b"])
        assert_allclose(result.observed, [2, 2])
        assert_allclose(result.expected[0], 2 / 4 + 1 / 3)

    def test_identical_groups(self):
        time = np.tile([1, 2, 3, 4, 5], 2).astype(np.float64)
        event = np.tile([1, 1, 0, 1, 1], 2).astype(np.float64)
        result = survdiff(time, event, np.repeat([1, 2], 5))
        assert result.statistic == pytest.approx(0.0, abs=1e-10)
        assert result.p_value == pytest.approx(1.0)

    def test_separated_groups_significant(self):
        time = np.array([1, 2, 3, 4, 5, 50, 60, 70, 80, 90], dtype=np.float64)
        result = survdiff(time, np.ones(10), np.repeat([1, 2], 5))
        assert result.p_value < 0.05

    def test_three_groups_sorted_labels(self):
        time = np.arange(1, 19, dtype=np.float64)
        event = np.tile([1, 0, 1], 6).astype(np.float64)
        group = np.repeat(["C", "A", "B"], 6)
        result = survdiff(time, event, group)
        assert result.df == 2
        assert list(result.group_labels) == ["A", "B", "C"]


class TestGRho:

    @pytest.mark.parametrize("rho", [0.5, 1.0])
    def test_weighted(self, rho):
        result = survdiff(TIME, EVENT, GROUP, rho=rho)
        assert result.rho == rho
        assert result.statistic >= 0
        assert 0 <= result.p_value <= 1


class TestEdgeCases:

    def test_single_group_rejected(self):
        with pytest.raises(ValueError, match="2 groups"):
            survdiff([1, 2, 3], [1, 1, 1], [1, 1, 1])

    def test_group_length_mismatch(self):
        with pytest.raises(ValueError, match="elements"):
            survdiff([1, 2, 3], [1, 1, 1], [1, 2])

    def test_no_events(self):
        result = survdiff([1, 2, 3, 4], np.zeros(4), [1, 1, 2, 2])
        assert result.statistic == 0.0
        assert result.p_value == 1.0


class TestLogRankSolution:

    def test_summary(self):
        text = survdiff(TIME, EVENT, GROUP).summary()
        assert "survdiff()" in text
        assert "Observed" in text
        assert "degrees of freedom" in text

    def test_repr(self):
        assert repr(survdiff(TIME, EVENT, GROUP)).startswith("LogRankSolution(chisq=")

    def test_metadata(self):
        result = survdiff(TIME, EVENT, GROUP)
        assert result.backend_name == "cpu_logrank"
        assert result.timing is not None
