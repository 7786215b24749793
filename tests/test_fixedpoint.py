"""
poolrewards/tests/test_fixedpoint.py

Unit tests for the signed fixed-point library:
- basic arithmetic and overflow detection
- conversions
- ln / exp accuracy and domain checks
"""

import math

import pytest

from poolrewards import fixedpoint as fp
from poolrewards.config import INT256_MIN, INT256_MAX
from poolrewards.errors import ArithmeticOverflow, DivisionByZero, DomainError


ONE = fp.FIXED_1

# ln/exp use truncated series; results agree with floats to well within this
TOLERANCE = ONE // 10**9


def to_float(f: int) -> float:
    return f / ONE


# ============================================================================
# Constants
# ============================================================================

class TestConstants:
    """Tests for the fixed-point scale and limits."""

    def test_one(self):
        assert fp.one() == 2**127
        assert fp.ONE == fp.FIXED_1

    def test_exp_min_val(self):
        assert to_float(fp.EXP_MIN_VAL) == -63.875

    def test_segment_tables_are_decreasing(self):
        for table, size in ((fp._LN_SEGMENTS, 9), (fp._EXP_SEGMENTS, 10)):
            assert len(table) == size
            exponents = [k for k, _ in table]
            factors = [v for _, v in table]
            assert exponents[0] == 64 * ONE
            assert exponents == sorted(exponents, reverse=True)
            assert factors == sorted(factors)

    def test_segment_values(self):
        for exponent, factor in fp._EXP_SEGMENTS:
            expected = math.exp(-exponent / ONE)
            assert math.isclose(factor / ONE, expected, rel_tol=1e-12)


# ============================================================================
# Arithmetic
# ============================================================================

class TestArithmetic:
    """Tests for add/sub/mul/div and overflow handling."""

    def test_add_sub(self):
        a = fp.to_fixed(3)
        b = fp.to_fixed(5)
        assert fp.add(a, b) == fp.to_fixed(8)
        assert fp.sub(a, b) == fp.to_fixed(-2)

    def test_add_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            fp.add(INT256_MAX, 1)
        with pytest.raises(ArithmeticOverflow):
            fp.add(INT256_MIN, -1)

    def test_sub_int256_min_overflows(self):
        with pytest.raises(ArithmeticOverflow):
            fp.sub(0, INT256_MIN)

    def test_mul(self):
        assert fp.mul(fp.to_fixed(3), fp.to_fixed(1, 2)) == fp.to_fixed(3, 2)
        assert fp.mul(fp.to_fixed(-1, 2), fp.to_fixed(3, 2)) == fp.to_fixed(-3, 4)

    def test_mul_overflow(self):
        big = fp.to_fixed(1 << 120)
        with pytest.raises(ArithmeticOverflow):
            fp.mul(big, big)

    def test_div(self):
        assert fp.div(fp.to_fixed(1), fp.to_fixed(4)) == fp.to_fixed(1, 4)
        assert fp.div(fp.to_fixed(-1), fp.to_fixed(2)) == fp.to_fixed(-1, 2)

    def test_div_truncates_toward_zero(self):
        # -1 raw unit / 2 would floor to -1 but truncates to 0
        assert fp.div(-1, 2 * ONE) == 0
        assert fp.div(1, 2 * ONE) == 0

    def test_div_by_zero(self):
        with pytest.raises(DivisionByZero):
            fp.div(ONE, 0)
        with pytest.raises(ZeroDivisionError):
            fp.invert(0)

    def test_mul_div(self):
        assert fp.mul_div(fp.to_fixed(10), 1, 3) == fp.to_fixed(10) // 3
        assert fp.mul_div(-7, 1, 2) == -3
        with pytest.raises(DivisionByZero):
            fp.mul_div(ONE, 1, 0)

    def test_uint_mul(self):
        assert fp.uint_mul(fp.to_fixed(1, 2), 1000) == 500
        assert fp.uint_mul(fp.to_fixed(1, 3), 10) == 3

    def test_uint_mul_clamps_negative(self):
        assert fp.uint_mul(fp.to_fixed(-1, 2), 1000) == 0
        assert fp.uint_mul(fp.to_fixed(5), 0) == 0

    def test_uint_mul_rejects_negative_operand(self):
        with pytest.raises(ArithmeticOverflow):
            fp.uint_mul(ONE, -1)

    def test_absolute(self):
        assert fp.absolute(fp.to_fixed(-5)) == fp.to_fixed(5)
        assert fp.absolute(fp.to_fixed(5)) == fp.to_fixed(5)
        with pytest.raises(ArithmeticOverflow):
            fp.absolute(INT256_MIN)

    def test_invert(self):
        assert fp.invert(fp.to_fixed(4)) == fp.to_fixed(1, 4)


# ============================================================================
# Conversions
# ============================================================================

class TestConversions:
    """Tests for to_fixed/to_integer."""

    def test_integer_round_trip(self):
        for n in (0, 1, -1, 12345, -98765):
            assert fp.to_integer(fp.to_fixed(n)) == n

    def test_ratio(self):
        assert fp.to_fixed(1, 2) == ONE // 2
        assert fp.to_fixed(-1, 2) == -(ONE // 2)

    def test_to_integer_floors(self):
        assert fp.to_integer(fp.to_fixed(7, 2)) == 3
        assert fp.to_integer(fp.to_fixed(-7, 2)) == -4

    def test_to_fixed_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            fp.to_fixed(1 << 130)

    def test_to_fixed_zero_denominator(self):
        with pytest.raises(DivisionByZero):
            fp.to_fixed(1, 0)


# ============================================================================
# Transcendentals
# ============================================================================

class TestLn:
    """Tests for the natural logarithm on (0, 1]."""

    def test_ln_one_is_zero(self):
        assert fp.ln(ONE) == 0

    @pytest.mark.parametrize("num,den", [(9, 10), (1, 2), (1, 4), (1, 10), (1, 10**3), (1, 10**9), (1, 10**20)])
    def test_ln_accuracy(self, num, den):
        f = fp.to_fixed(num, den)
        expected = math.log(f / ONE)
        assert abs(to_float(fp.ln(f)) - expected) < 1e-9

    def test_ln_smallest_value(self):
        assert math.isclose(to_float(fp.ln(1)), -127 * math.log(2), rel_tol=1e-9)

    def test_ln_is_monotonic(self):
        values = [fp.ln(fp.to_fixed(i, 100)) for i in range(1, 101)]
        assert values == sorted(values)

    @pytest.mark.parametrize("x", [0, -1, ONE + 1])
    def test_ln_domain(self, x):
        with pytest.raises(DomainError):
            fp.ln(x)

    def test_domain_error_is_assertion(self):
        with pytest.raises(AssertionError):
            fp.ln(0)


class TestExp:
    """Tests for the natural exponent on (-inf, 0]."""

    def test_exp_zero_is_one(self):
        assert fp.exp(0) == ONE

    @pytest.mark.parametrize("num,den", [(-1, 100), (-1, 8), (-1, 2), (-1, 1), (-11, 4), (-10, 1), (-40, 1)])
    def test_exp_accuracy(self, num, den):
        f = fp.to_fixed(num, den)
        expected = math.exp(f / ONE)
        assert math.isclose(to_float(fp.exp(f)), expected, rel_tol=1e-9)

    def test_exp_saturates(self):
        assert fp.exp(fp.EXP_MIN_VAL) == 0
        assert fp.exp(fp.to_fixed(-100)) == 0

    def test_exp_just_above_min(self):
        assert fp.exp(fp.EXP_MIN_VAL + 1) > 0

    def test_exp_domain(self):
        with pytest.raises(DomainError):
            fp.exp(1)

    def test_exp_ln_inverse(self):
        for num in (1, 3, 7, 50, 99):
            x = fp.to_fixed(num, 100)
            assert abs(fp.exp(fp.ln(x)) - x) < TOLERANCE
