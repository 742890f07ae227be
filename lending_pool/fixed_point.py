"""
fixed_point.py - WAD fixed-point arithmetic

Every ratio, rate and share price in the pool is an unsigned integer scaled
by WAD (10**18). Python integers are unbounded, so products never overflow;
what matters is the rounding direction, which is always down (toward zero).

Provides:
- mul_div_down: floor(a * b / denominator)
- sub_floor_zero: x - y, floored at zero
- wad_mul_down / wad_div_down: WAD-scaled shorthands
- per_second_rate: annual rate -> per-second rate
"""

# Wad: decimal numbers with 18 digits of precision
WAD = 10**18

# Sentinel for "no debt" collateralization ratios
MAX_UINT = 2**256 - 1

SECONDS_PER_YEAR = 31_536_000


def _check_unsigned(**values: int) -> None:
    for name, value in values.items():
        if value < 0:
            raise ValueError(f"{name} must be non-negative, got {value}")


def mul_div_down(a: int, b: int, denominator: int) -> int:
    """
    Compute floor(a * b / denominator) with a full-precision intermediate.

    Raises:
        ValueError: if any argument is negative
        ZeroDivisionError: if denominator is zero
    """
    _check_unsigned(a=a, b=b, denominator=denominator)
    if denominator == 0:
        raise ZeroDivisionError("mul_div_down denominator is zero")
    return (a * b) // denominator


def sub_floor_zero(x: int, y: int) -> int:
    """Return x - y if x >= y, else 0. Never exceeds x."""
    return x - y if x >= y else 0


def wad_mul_down(a: int, b: int) -> int:
    return mul_div_down(a, b, WAD)


def wad_div_down(a: int, b: int) -> int:
    return mul_div_down(a, WAD, b)


def per_second_rate(annual_rate: int) -> int:
    """Convert a WAD-scaled annual rate into a WAD-scaled per-second rate (rounded down)."""
    _check_unsigned(annual_rate=annual_rate)
    return annual_rate // SECONDS_PER_YEAR
