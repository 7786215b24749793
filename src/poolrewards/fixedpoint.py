"""
poolrewards/fixedpoint.py

Deterministic signed fixed-point arithmetic.

Values are plain Python ints interpreted as a rational scaled by
FIXED_1 = 2**127, constrained to the signed 256-bit range. Every raw
intermediate is range-checked so results match a fixed-width implementation
bit for bit; anything that would wrap raises ArithmeticOverflow instead.

ln() and exp() are computed by peeling off precomputed powers of e until the
residual is small, then summing a fixed number of Taylor terms. Only integer
multiply, divide, add and shift are used, so independent parties always agree
on the result.

Usage:
    from poolrewards import fixedpoint as fp

    half = fp.to_fixed(1, 2)
    fp.to_integer(fp.mul(fp.to_fixed(10), half))   # 5
    fp.exp(fp.ln(half)) ~= half
"""

from decimal import Decimal, localcontext, ROUND_HALF_EVEN
from typing import List, Optional, Tuple

from .config import INT256_MIN, INT256_MAX, FIXED_POINT_BITS
from .errors import ArithmeticOverflow, DivisionByZero, DomainError


# ============================================================================
# CONSTANTS
# ============================================================================

FIXED_1 = 1 << FIXED_POINT_BITS
ONE = FIXED_1

# ln is defined on (0, 1]
LN_MAX_VAL = FIXED_1

# exp is defined on (-inf, 0] and saturates to 0 at or below -63.875
EXP_MAX_VAL = 0
EXP_MIN_VAL = -(511 << (FIXED_POINT_BITS - 3))

LN_TAYLOR_TERMS = 16
EXP_TAYLOR_TERMS = 20

# Decimal digits used when deriving the e^-k table
_TABLE_PRECISION = 100


def _exp_neg_fixed(exponent: int) -> int:
    """Return e^(-exponent) as a fixed-point value, rounded half-even."""
    with localcontext() as ctx:
        ctx.prec = _TABLE_PRECISION
        value = (-(Decimal(exponent) / Decimal(FIXED_1))).exp() * Decimal(FIXED_1)
        return int(value.to_integral_value(rounding=ROUND_HALF_EVEN))


def _segment_table(count: int) -> List[Tuple[int, int]]:
    """(exponent, e^-exponent) pairs for exponents 64, 32, 16, ... halving `count` times."""
    exponents = [(FIXED_1 << 6) >> i for i in range(count)]
    return [(k, _exp_neg_fixed(k)) for k in exponents]


# 64, 32, 16, 8, 4, 2, 1, 1/2, 1/4
_LN_SEGMENTS = _segment_table(9)
# 64, 32, 16, 8, 4, 2, 1, 1/2, 1/4, 1/8
_EXP_SEGMENTS = _segment_table(10)


# ============================================================================
# INTERNAL HELPERS
# ============================================================================

def _check(value: int) -> int:
    if value < INT256_MIN or value > INT256_MAX:
        raise ArithmeticOverflow(f"Value does not fit in int256: {value}")
    return value


def _tdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    if b == 0:
        raise DivisionByZero("Division by zero")
    q = (a if a >= 0 else -a) // (b if b >= 0 else -b)
    return q if (a < 0) == (b < 0) else -q


# ============================================================================
# ARITHMETIC
# ============================================================================

def one() -> int:
    """The fixed-point representation of 1."""
    return FIXED_1


def add(a: int, b: int) -> int:
    """a + b, reverting on overflow."""
    return _check(a + b)


def sub(a: int, b: int) -> int:
    """a - b, reverting on overflow."""
    if b == INT256_MIN:
        raise ArithmeticOverflow("Cannot negate INT256_MIN")
    return _check(a - b)


def mul(a: int, b: int) -> int:
    """
    Fixed-point product.

    The raw product must fit in 256 bits; it is then shifted right by the
    scale (rounding toward negative infinity).
    """
    return _check(a * b) >> FIXED_POINT_BITS


def div(a: int, b: int) -> int:
    """Fixed-point quotient (a * FIXED_1) / b, truncated toward zero."""
    if b == 0:
        raise DivisionByZero("Fixed-point division by zero")
    return _tdiv(_check(a * FIXED_1), b)


def mul_div(a: int, n: int, d: int) -> int:
    """(a * n) / d where n and d are plain integers."""
    if d == 0:
        raise DivisionByZero("mul_div denominator is zero")
    return _tdiv(_check(a * n), d)


def uint_mul(f: int, u: int) -> int:
    """
    Multiply fixed-point `f` by the non-negative integer `u`.

    Returns a plain integer. Negative products clamp to 0.
    """
    if u < 0 or u > INT256_MAX:
        raise ArithmeticOverflow(f"Unsigned operand out of range: {u}")
    c = _check(f * u)
    if c <= 0:
        return 0
    return c >> FIXED_POINT_BITS


def absolute(f: int) -> int:
    """|f|. INT256_MIN has no positive counterpart and overflows."""
    if f == INT256_MIN:
        raise ArithmeticOverflow("Cannot take absolute value of INT256_MIN")
    return -f if f < 0 else f


def invert(f: int) -> int:
    """1 / f."""
    return div(FIXED_1, f)


# ============================================================================
# CONVERSIONS
# ============================================================================

def to_fixed(n: int, d: Optional[int] = None) -> int:
    """Convert the integer `n` (or the ratio n / d) to fixed-point."""
    raw = _check(n * FIXED_1)
    if d is None:
        return raw
    if d == 0:
        raise DivisionByZero("to_fixed denominator is zero")
    return _tdiv(raw, d)


def to_integer(f: int) -> int:
    """Convert fixed-point to integer by arithmetic shift (floor)."""
    return f >> FIXED_POINT_BITS


# ============================================================================
# TRANSCENDENTALS
# ============================================================================

def ln(x: int) -> int:
    """
    Natural logarithm for 0 < x <= 1.

    x is divided by the largest e^-k factors it is below until the residual
    lies in (e^-1/4, 1]; the accumulated -k terms plus a 16-term series of
    ln(1 + z), z = residual - 1, give the result.

    Raises:
        DomainError: if x <= 0 or x > 1
    """
    if x <= 0 or x > LN_MAX_VAL:
        raise DomainError(f"ln argument out of range (0, 1]: {x}")
    if x == FIXED_1:
        return 0

    r = 0
    for exponent, factor in _LN_SEGMENTS:
        if x <= factor:
            r -= exponent
            x = _tdiv(x * FIXED_1, factor)

    z = x - FIXED_1
    w = z
    for n in range(1, LN_TAYLOR_TERMS + 1):
        term = _tdiv(w, n)
        r = r + term if n % 2 else r - term
        w = mul(w, z)
    return r


def exp(x: int) -> int:
    """
    Natural exponent for x <= 0.

    Whole powers of two (64 down to 1/8) are stripped from x while the
    matching e^-k factors are multiplied into an accumulator; the residual in
    (-1/8, 0] is handled with a 20-term Taylor series.

    Returns 0 for x <= EXP_MIN_VAL, where the result underflows.

    Raises:
        DomainError: if x > 0
    """
    if x > EXP_MAX_VAL:
        raise DomainError(f"exp argument must be <= 0: {x}")
    if x == 0:
        return FIXED_1
    if x <= EXP_MIN_VAL:
        return 0

    r = FIXED_1
    for exponent, factor in _EXP_SEGMENTS:
        if x <= -exponent:
            x += exponent
            r = mul(r, factor)

    term = FIXED_1
    series = FIXED_1
    for n in range(1, EXP_TAYLOR_TERMS + 1):
        term = _tdiv(mul(term, x), n)
        series += term
    return mul(r, series)
