"""
projection.py - Vectorised what-if analysis of rates and share prices

Float (numpy) counterparts of the integer engine, for sampling the rate
curve and projecting share-price paths without touching a ledger. Results
track the integer engine up to its round-down truncation.

Rates taken and returned here are per-second and WAD-scaled, like the
rest of the package; utilizations are fractions in [0, 1].
"""

import numpy as np
from typing import Tuple, Union

from .accrual import pool_rates
from .fixed_point import WAD, SECONDS_PER_YEAR
from .interest_rate import OPTIMAL_UTILIZATION, KINK_RATE, MAX_RATE
from .pool import PoolParameters, PoolState


# Type alias for scalar or array inputs
Numeric = Union[float, np.ndarray]


def rate_curve(
    points: int = 101,
    optimal_utilization: int = OPTIMAL_UTILIZATION,
    kink_rate: int = KINK_RATE,
    max_rate: int = MAX_RATE,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Sample the kinked curve at `points` evenly spaced utilizations in [0, 1].

    Returns:
        Tuple of (utilization, borrower_rate, lender_rate) arrays.
    """
    if points < 2:
        raise ValueError(f"points must be at least 2, got {points}")
    u = np.linspace(0.0, 1.0, points)
    opt = optimal_utilization / WAD
    below = u * kink_rate / opt
    above = kink_rate + (u - opt) * (max_rate - kink_rate) / (1.0 - opt)
    br = np.where(u <= opt, below, above)
    return u, br, br * u


def apr_from_rate(rate_per_second: Numeric) -> Numeric:
    """Annual simple rate (as a fraction) of a WAD per-second rate."""
    return np.asarray(rate_per_second, dtype=float) * SECONDS_PER_YEAR / WAD


def apy_from_rate(rate_per_second: Numeric, seconds: int = SECONDS_PER_YEAR) -> Numeric:
    """
    Yield over `seconds` (default one year) of a WAD per-second rate
    compounded every second: (1 + r)^N - 1.
    """
    r = np.asarray(rate_per_second, dtype=float) / WAD
    return np.expm1(seconds * np.log1p(r))


def project_share_price(price: int, rates: Numeric, dts: Numeric) -> np.ndarray:
    """
    Project a share price through a sequence of accrual calls.

    Call i applies simple interest at rates[i] over dts[i] seconds, on top
    of the price left by call i-1.

    Args:
        price: Starting share price (WAD)
        rates: Per-second WAD rate for each call
        dts: Elapsed seconds for each call

    Returns:
        Array of share prices (WAD, float) after each call.
    """
    rates_arr = np.atleast_1d(np.asarray(rates, dtype=float))
    dts_arr = np.atleast_1d(np.asarray(dts, dtype=float))
    if rates_arr.shape != dts_arr.shape:
        raise ValueError(f"rates and dts must have the same shape, got {rates_arr.shape} and {dts_arr.shape}")
    if np.any(rates_arr < 0) or np.any(dts_arr < 0):
        raise ValueError("rates and dts must be non-negative")
    return float(price) * np.cumprod(1.0 + rates_arr * dts_arr / WAD)


def project_pool(
    params: PoolParameters,
    state: PoolState,
    horizon_seconds: int,
    steps: int = 1,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Lender and borrower share-price paths if the pool is updated `steps`
    times, evenly, over `horizon_seconds` at its current utilization.
    """
    if steps < 1:
        raise ValueError(f"steps must be at least 1, got {steps}")
    br, lr = pool_rates(params, state)
    dts = np.full(steps, horizon_seconds / steps)
    return (
        project_share_price(state.lender_share_price, np.full(steps, lr), dts),
        project_share_price(state.borrower_share_price, np.full(steps, br), dts),
    )
