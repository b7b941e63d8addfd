"""
Tests for input validation utilities.
"""

import numpy as np
import pytest

from pymixed.core.exceptions import DimensionError, ValidationError
from pymixed.core.validation import (
    check_1d,
    check_2d,
    check_array,
    check_consistent_length,
    check_finite,
    check_min_samples,
    check_positive,
)


# ═══════════════════════════════════════════════════════════════════════
# check_array
# ═══════════════════════════════════════════════════════════════════════


class TestCheckArray:
    """check_array converts to float64 and rejects non-numeric data."""

    def test_list_to_float_array(self):
        result = check_array([1, 2, 3], "X")
        assert isinstance(result, np.ndarray)
        assert result.dtype == np.float64
        np.testing.assert_array_equal(result, [1.0, 2.0, 3.0])

    def test_returns_copy(self):
        arr = np.array([1.0, 2.0])
        result = check_array(arr, "X")
        result[0] = 99.0
        assert arr[0] == 1.0

    def test_rejects_strings(self):
        with pytest.raises(ValidationError, match="non-numeric"):
            check_array(np.array(["a", "b"]), "X")

    def test_rejects_object(self):
        with pytest.raises(ValidationError, match="object dtype"):
            check_array(np.array([1, "a", None], dtype=object), "X")


class TestShapeChecks:

    def test_check_1d(self):
        check_1d(np.zeros(3), "y")
        with pytest.raises(DimensionError, match="y: expected 1D"):
            check_1d(np.zeros((3, 1)), "y")

    def test_check_2d(self):
        check_2d(np.zeros((3, 2)), "X")
        with pytest.raises(DimensionError):
            check_2d(np.zeros(3), "X")

    def test_consistent_length(self):
        check_consistent_length(np.zeros(4), np.zeros((4, 2)), names=("y", "X"))
        with pytest.raises(DimensionError, match="y=4, X=5"):
            check_consistent_length(np.zeros(4), np.zeros((5, 2)), names=("y", "X"))

    def test_consistent_length_name_mismatch(self):
        with pytest.raises(ValueError):
            check_consistent_length(np.zeros(4), names=("y", "X"))


class TestValueChecks:

    def test_check_finite(self):
        check_finite(np.array([1.0, 2.0]), "y")
        with pytest.raises(ValidationError, match="1 NaN, 1 Inf"):
            check_finite(np.array([np.nan, np.inf, 1.0]), "y")

    def test_check_min_samples(self):
        check_min_samples(np.zeros(3), 3, "y")
        with pytest.raises(ValidationError, match="at least 3"):
            check_min_samples(np.zeros(2), 3, "y")

    def test_check_positive(self):
        check_positive(np.array([0.5, 2.0]), "weights")
        with pytest.raises(ValidationError, match="strictly positive"):
            check_positive(np.array([1.0, 0.0, -1.0]), "weights")
