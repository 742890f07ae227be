"""
interest_rate.py - Kinked utilization interest-rate curve

Pure functions mapping pool utilization to per-second borrower and lender
rates, all WAD-scaled integers.

    borrower_rate(u) = u * KINK_RATE / OPTIMAL                                   u <= OPTIMAL
                     = KINK_RATE + (u - OPTIMAL) * (MAX_RATE - KINK_RATE)
                                   / (WAD - OPTIMAL)                             u >  OPTIMAL
    lender_rate(u)   = borrower_rate(u) * u / WAD

Both segments are linear; the curve is continuous at the kink. Lenders earn
the borrower rate scaled by utilization, so idle liquidity earns nothing.
"""

from __future__ import annotations
from typing import Tuple

from .fixed_point import WAD, mul_div_down, per_second_rate, sub_floor_zero


OPTIMAL_UTILIZATION = 95 * WAD // 100

# ~5% a year at the kink, ~50% a year at full utilization
KINK_RATE = per_second_rate(5 * WAD // 100)
MAX_RATE = per_second_rate(50 * WAD // 100)


def utilization(total_borrowed: int, total_deposited: int) -> int:
    """
    Fraction of deposited liquidity currently borrowed, WAD-scaled.

    Zero when nothing is deposited. Clamped to WAD: recorded principal can
    drift so that total_borrowed exceeds total_deposited.
    """
    if total_deposited == 0:
        return 0
    return min(mul_div_down(total_borrowed, WAD, total_deposited), WAD)


def borrower_rate(
    util: int,
    optimal_utilization: int = OPTIMAL_UTILIZATION,
    kink_rate: int = KINK_RATE,
    max_rate: int = MAX_RATE,
) -> int:
    if util <= optimal_utilization:
        return mul_div_down(util, kink_rate, optimal_utilization)
    excess = util - optimal_utilization
    return kink_rate + mul_div_down(
        excess, sub_floor_zero(max_rate, kink_rate), WAD - optimal_utilization
    )


def rates(
    util: int,
    optimal_utilization: int = OPTIMAL_UTILIZATION,
    kink_rate: int = KINK_RATE,
    max_rate: int = MAX_RATE,
) -> Tuple[int, int]:
    """
    Per-second (borrower_rate, lender_rate) for a utilization, WAD-scaled.

    Args:
        util: Utilization in [0, WAD]
        optimal_utilization: Kink position
        kink_rate: Borrower rate at the kink
        max_rate: Borrower rate at 100% utilization

    Returns:
        Tuple of (borrower_rate, lender_rate)

    Example:
        br, lr = rates(OPTIMAL_UTILIZATION)
        assert br == KINK_RATE
    """
    if util < 0:
        raise ValueError(f"utilization must be non-negative, got {util}")
    br = borrower_rate(util, optimal_utilization, kink_rate, max_rate)
    lr = mul_div_down(br, util, WAD)
    return br, lr
