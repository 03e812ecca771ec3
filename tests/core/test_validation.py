"""
Tests for input validation utilities.

Validates every function in core/validation.py:
    - check_array: conversion, dtype coercion, object rejection
    - check_finite: NaN/Inf detection
    - check_1d: dimensionality
    - check_consistent_length: multi-array length matching
    - check_nondecreasing: ordered time columns
"""

import numpy as np
import pytest

from pysurvplot.core.exceptions import DimensionError, ValidationError
from pysurvplot.core.validation import (
    check_1d,
    check_array,
    check_consistent_length,
    check_finite,
    check_nondecreasing,
)


# ═══════════════════════════════════════════════════════════════════════
# check_array
# ═══════════════════════════════════════════════════════════════════════


class TestCheckArray:
    """check_array converts to ndarray and rejects non-numeric data."""

    def test_list_to_float_array(self):
        result = check_array([1, 2, 3], "time")
        assert isinstance(result, np.ndarray)
        assert result.dtype == np.float64
        np.testing.assert_array_equal(result, [1.0, 2.0, 3.0])

    def test_bool_promoted_to_float(self):
        result = check_array([True, False], "event")
        assert result.dtype == np.float64
        np.testing.assert_array_equal(result, [1.0, 0.0])

    def test_float32_preserved(self):
        result = check_array(np.array([1.0], dtype=np.float32), "time")
        assert result.dtype == np.float32

    def test_rejects_mixed_types(self):
        with pytest.raises(ValidationError, match="object dtype"):
            check_array([1, "a", None], "time")

    def test_rejects_strings(self):
        with pytest.raises(ValidationError, match="time"):
            check_array(["a", "b"], "time")


# ═══════════════════════════════════════════════════════════════════════
# check_finite / check_1d
# ═══════════════════════════════════════════════════════════════════════


class TestCheckFinite:

    def test_finite_passes(self):
        check_finite(np.array([0.0, 1.0]), "time")

    def test_nan_rejected(self):
        with pytest.raises(ValidationError, match="1 NaN"):
            check_finite(np.array([0.0, np.nan]), "time")

    def test_inf_rejected(self):
        with pytest.raises(ValidationError, match="1 Inf"):
            check_finite(np.array([np.inf, 1.0]), "time")


class TestCheck1d:

    def test_1d_passes(self):
        check_1d(np.zeros(3), "time")

    def test_2d_rejected(self):
        with pytest.raises(DimensionError, match=r"shape \(2, 2\)"):
            check_1d(np.zeros((2, 2)), "time")


# ═══════════════════════════════════════════════════════════════════════
# check_consistent_length
# ═══════════════════════════════════════════════════════════════════════


class TestCheckConsistentLength:

    def test_same_length_passes(self):
        check_consistent_length(np.zeros(3), np.ones(3), names=("time", "event"))

    def test_different_length_raises(self):
        with pytest.raises(DimensionError, match="time=3, event=2"):
            check_consistent_length(np.zeros(3), np.ones(2), names=("time", "event"))

    def test_wrong_number_of_names(self):
        with pytest.raises(ValueError):
            check_consistent_length(np.zeros(3), np.ones(3), names=("time",))

    def test_single_array_passes(self):
        check_consistent_length(np.zeros(3), names=("time",))


# ═══════════════════════════════════════════════════════════════════════
# check_nondecreasing
# ═══════════════════════════════════════════════════════════════════════


class TestCheckNondecreasing:

    def test_ties_allowed(self):
        check_nondecreasing(np.array([0.0, 1.0, 1.0, 2.0]), "time")

    def test_short_arrays_pass(self):
        check_nondecreasing(np.array([]), "time")
        check_nondecreasing(np.array([5.0]), "time")

    def test_drop_reports_position(self):
        with pytest.raises(ValidationError, match="element 2"):
            check_nondecreasing(np.array([0.0, 2.0, 1.0]), "time")
