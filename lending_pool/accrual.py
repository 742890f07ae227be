"""
accrual.py - Share price accrual

Advances the lender and borrower share prices by the time elapsed since the
last update, at the rates the curve gives for the current utilization:

    price += price * (rate * dt) / WAD

Interest is simple within one call and compounds across calls, because each
call multiplies the already-grown price. A single long gap therefore grows
less than continuous compounding would; this is the intended behaviour.

Every state-mutating pool operation starts from accrue(); skipping it would
understate debt and overstate withdrawable collateral.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from .core import LedgerView, PendingTransaction, empty_pending_transaction
from .fixed_point import WAD, mul_div_down, sub_floor_zero
from .interest_rate import rates, utilization
from .pool import PoolParameters, PoolState, load_pool, build_pool_transaction


_EPOCH = datetime(1970, 1, 1)


def _epoch_seconds(t: datetime) -> int:
    epoch = _EPOCH if t.tzinfo is None else _EPOCH.replace(tzinfo=timezone.utc)
    return int((t - epoch).total_seconds())


def elapsed_seconds(last_update_time: datetime, now: datetime) -> int:
    """Whole seconds from last_update_time to now, floored at zero."""
    return sub_floor_zero(_epoch_seconds(now), _epoch_seconds(last_update_time))


def pool_utilization(state: PoolState) -> int:
    return utilization(state.total_borrowed, state.total_deposited)


def pool_rates(params: PoolParameters, state: PoolState):
    """(borrower_rate, lender_rate) at the pool's current utilization."""
    return rates(
        pool_utilization(state),
        params.optimal_utilization,
        params.kink_rate,
        params.max_rate,
    )


def accrue(params: PoolParameters, state: PoolState, now: datetime) -> PoolState:
    """
    Bring both share prices up to `now`.

    PURE FUNCTION - returns a new PoolState.

    - No time elapsed: state returned unchanged.
    - Both rates zero: only last_update_time advances.
    - Otherwise both prices grow by price * rate * dt / WAD.
    """
    dt = elapsed_seconds(state.last_update_time, now)
    if dt == 0:
        return state

    borrower_rate, lender_rate = pool_rates(params, state)
    if borrower_rate == 0 and lender_rate == 0:
        return replace(state, last_update_time=now)

    lender_price = state.lender_share_price
    borrower_price = state.borrower_share_price
    return replace(
        state,
        lender_share_price=lender_price + mul_div_down(lender_price, lender_rate * dt, WAD),
        borrower_share_price=borrower_price + mul_div_down(borrower_price, borrower_rate * dt, WAD),
        last_update_time=now,
    )


def load_accrued(view: LedgerView, pool_symbol: str) -> Tuple[Dict[str, Any], PoolParameters, PoolState]:
    """
    Load a pool and accrue it to the view's current time, in memory.

    Returns (raw_state, params, accrued_state); raw_state is the snapshot the
    committing transaction must name as its old state.
    """
    raw = view.get_unit_state(pool_symbol)
    params, state = load_pool(view, pool_symbol)
    return raw, params, accrue(params, state, view.current_time)


def compute_accrual(view: LedgerView, pool_symbol: str, caller: str = "keeper") -> PendingTransaction:
    """
    Persist accrual up to the view's current time with no other effect.

    Returns an empty transaction when accrual changes nothing.
    """
    raw, params, accrued = load_accrued(view, pool_symbol)
    if accrued.last_update_time == raw['last_update_time']:
        return empty_pending_transaction(view)
    return build_pool_transaction(view, pool_symbol, raw, params, accrued, [], caller, "ACCRUE")
