"""
Tests for log-space arithmetic with NaN as the log of zero.
"""

import math

import numpy as np
import pytest

from poremodel_hmm.exceptions import DivideByZeroError, NegativeLogError, RecoverableError
from poremodel_hmm.logspace import (
    from_log,
    log_add,
    log_div,
    log_greater_than,
    log_mul,
    log_sum,
    to_log,
)


class TestConversion:

    @pytest.mark.parametrize("x", [1e-300, 0.25, 1.0, 7.5, 1e300])
    def test_round_trip(self, x):
        """to_log and from_log invert each other."""
        assert from_log(to_log(x)) == pytest.approx(x, rel=1e-12)

    def test_zero_is_nan(self):
        """Zero maps to NaN and back."""
        assert math.isnan(to_log(0.0))
        assert from_log(math.nan) == 0.0

    def test_negative_raises(self):
        """Negative input raises a recoverable NegativeLogError."""
        with pytest.raises(NegativeLogError) as excinfo:
            to_log(-1e-9)
        assert excinfo.value.recoverable
        assert str(excinfo.value) == "Negative value passed to natural log function."

    def test_nan_input_raises(self):
        """NaN input is not a probability."""
        with pytest.raises(NegativeLogError):
            to_log(math.nan)

    def test_array(self):
        """Arrays convert elementwise."""
        out = to_log(np.array([0.0, 1.0, math.e]))
        assert math.isnan(out[0])
        np.testing.assert_allclose(out[1:], [0.0, 1.0])
        np.testing.assert_allclose(from_log(out), [0.0, 1.0, math.e])

    def test_array_with_negative_raises(self):
        """A negative entry anywhere in an array raises."""
        with pytest.raises(NegativeLogError):
            to_log(np.array([0.5, -0.5]))

    def test_scalar_returns_float(self):
        """Scalars come back as plain floats."""
        assert isinstance(to_log(np.float64(2.0)), float)


class TestAddition:

    def test_matches_linear_sum(self):
        """log_add matches addition in linear space."""
        assert from_log(log_add(to_log(0.2), to_log(0.3))) == pytest.approx(0.5)

    def test_commutative(self):
        """log_add is exactly commutative."""
        a, b = to_log(0.01), to_log(0.7)
        assert log_add(a, b) == log_add(b, a)

    def test_associative(self):
        """log_add is associative within rounding."""
        a, b, c = to_log(0.1), to_log(0.2), to_log(0.3)
        assert log_add(log_add(a, b), c) == pytest.approx(log_add(a, log_add(b, c)))

    def test_nan_is_identity(self):
        """NaN is the additive identity."""
        y = to_log(0.4)
        assert log_add(math.nan, y) == y
        assert log_add(y, math.nan) == y
        assert math.isnan(log_add(math.nan, math.nan))

    def test_no_overflow_for_large_gap(self):
        """A large gap between terms does not overflow."""
        assert log_add(-1000.0, 0.0) == pytest.approx(0.0)

    def test_array_elementwise(self):
        """Arrays add elementwise with NaN as identity."""
        lx = np.array([math.nan, to_log(0.5), math.nan])
        ly = np.array([to_log(0.25), math.nan, math.nan])
        out = log_add(lx, ly)
        assert out[0] == pytest.approx(to_log(0.25))
        assert out[1] == pytest.approx(to_log(0.5))
        assert math.isnan(out[2])

    def test_log_sum(self):
        """log_sum skips NaN terms and is NaN when nothing is left."""
        values = [to_log(0.1), math.nan, to_log(0.2), to_log(0.3)]
        assert from_log(log_sum(values)) == pytest.approx(0.6)
        assert math.isnan(log_sum([math.nan, math.nan]))
        assert math.isnan(log_sum([]))

    def test_log_sum_large_magnitude(self):
        """Terms far below exp underflow still sum exactly."""
        assert log_sum([-1000.0, -1000.0, math.nan]) == pytest.approx(-1000.0 + math.log(2.0))
        assert log_sum(np.array([-2000.0])) == pytest.approx(-2000.0)


class TestMultiplicationAndDivision:

    def test_product(self):
        """log_mul matches multiplication in linear space."""
        assert from_log(log_mul(to_log(0.5), to_log(0.4))) == pytest.approx(0.2)

    def test_zero_absorbs(self):
        """NaN absorbs products."""
        assert math.isnan(log_mul(math.nan, 0.0))
        assert math.isnan(log_mul(-3.0, math.nan))
        assert np.isnan(log_mul(np.array([0.0, math.nan]), math.nan)).all()

    def test_division(self):
        """log_div matches division in linear space."""
        assert from_log(log_div(to_log(0.2), to_log(0.4))) == pytest.approx(0.5)

    def test_zero_numerator(self):
        """Zero divided by anything is zero."""
        assert math.isnan(log_div(math.nan, 0.0))

    def test_divide_by_zero(self):
        """Dividing by zero raises a recoverable ZeroDivisionError."""
        with pytest.raises(DivideByZeroError) as excinfo:
            log_div(0.0, math.nan)
        assert isinstance(excinfo.value, RecoverableError)
        assert isinstance(excinfo.value, ZeroDivisionError)

    def test_divide_array_by_zero(self):
        """Any zero in an array denominator raises."""
        with pytest.raises(DivideByZeroError):
            log_div(np.zeros(3), np.array([0.0, math.nan, 0.0]))


class TestComparison:

    def test_ordering(self):
        """Comparison is strict."""
        assert log_greater_than(to_log(0.5), to_log(0.4))
        assert not log_greater_than(to_log(0.4), to_log(0.5))
        assert not log_greater_than(to_log(0.4), to_log(0.4))

    def test_nan_is_smallest(self):
        """NaN sorts below every finite value."""
        assert log_greater_than(-1e6, math.nan)
        assert not log_greater_than(math.nan, -1e6)
        assert not log_greater_than(math.nan, math.nan)

    def test_array(self):
        """Arrays compare elementwise."""
        out = log_greater_than(np.array([0.0, math.nan, -1.0]), np.array([math.nan, 0.0, -2.0]))
        np.testing.assert_array_equal(out, [True, False, True])
