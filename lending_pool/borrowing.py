"""
borrowing.py - Borrower side of the pool

Per-borrower collateral and debt shares, collateral valuation, and the
minimum collateralization invariant.

ARCHITECTURE:
    calculate_*  - pure functions on explicit inputs (account, prices, quote)
    compute_*    - read a LedgerView, accrue, stage the new pool state and
                   moves, check invariants on the staged state, and return
                   a PoolAction for the ledger to apply atomically

The ratio checks on borrow and collateral withdrawal run against the
post-mutation account: the staged record already includes the new debt or
the reduced collateral.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Optional

from .accrual import load_accrued
from .core import (
    LedgerView, InsufficientCollateral, InsufficientLiquidity, MinCollateralization, Slippage,
    empty_pending_transaction,
)
from .events import Borrow, DepositCollateral, PoolAction, Repay, WithdrawCollateral
from .fixed_point import MAX_UINT, WAD, mul_div_down, sub_floor_zero
from .oracle import OracleQuote, PriceOracle
from .pool import (
    BorrowerAccount, PoolParameters, PoolState,
    build_pool_transaction, load_pool, require_amount, require_participant, transfer,
)


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_collateral_value(collateral: int, quote: OracleQuote) -> int:
    """
    Collateral value in pool-asset base units.

        value = collateral * price / 10**decimals   (rounded down)
    """
    return mul_div_down(collateral, quote.price, 10 ** quote.decimals)


def calculate_debt_value(debt_shares: int, borrower_share_price: int) -> int:
    """Asset owed for `debt_shares` at the given borrower share price."""
    return mul_div_down(debt_shares, borrower_share_price, WAD)


def calculate_collateralization_ratio(
    account: BorrowerAccount,
    borrower_share_price: int,
    quote: OracleQuote,
) -> int:
    """
    Collateral value over debt value, WAD-scaled.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Returns:
        MAX_UINT when the account has no debt shares (or its debt value
        rounds to zero); 0 when it has debt but no collateral.

    Example:
        acct = BorrowerAccount(debt_shares=100 * WAD, collateral=200 * WAD)
        quote = OracleQuote(10**8, 8, now)
        assert calculate_collateralization_ratio(acct, WAD, quote) == 2 * WAD
    """
    if account.debt_shares == 0:
        return MAX_UINT
    debt_value = calculate_debt_value(account.debt_shares, borrower_share_price)
    if debt_value == 0:
        return MAX_UINT
    return mul_div_down(calculate_collateral_value(account.collateral, quote), WAD, debt_value)


def require_min_collateralization(
    params: PoolParameters,
    state: PoolState,
    user: str,
    quote: OracleQuote,
) -> None:
    """Raise MinCollateralization if the user's staged ratio is below the minimum (inclusive)."""
    ratio = calculate_collateralization_ratio(state.account(user), state.borrower_share_price, quote)
    if ratio < params.min_collateralization_ratio:
        raise MinCollateralization(
            f"{user} collateralization ratio {ratio} below minimum {params.min_collateralization_ratio}"
        )


# ============================================================================
# LEDGER-AWARE FUNCTIONS
# ============================================================================

def compute_deposit_collateral(
    view: LedgerView,
    pool_symbol: str,
    user: str,
    amount: int,
) -> PoolAction:
    """
    Post collateral for `user`.

    Purely additive, so no accrual is performed.

    Raises:
        ValueError: If amount is negative or not an integer
    """
    require_amount("amount", amount)

    raw = view.get_unit_state(pool_symbol)
    params, state = load_pool(view, pool_symbol)
    require_participant(params, user)

    acct = state.account(user)
    new_state = state.with_account(user, replace(acct, collateral=acct.collateral + amount))
    moves = transfer(
        amount, params.collateral_symbol, user, params.pool_wallet, f"collateral_in_{pool_symbol}"
    )

    pending = build_pool_transaction(view, pool_symbol, raw, params, new_state, moves, user, "DEPOSIT_COLLATERAL")
    return PoolAction(pending, DepositCollateral(user, amount, view.current_time, state.nonce + 1))


def compute_withdraw_collateral(
    view: LedgerView,
    pool_symbol: str,
    user: str,
    amount: int,
    oracle: PriceOracle,
) -> PoolAction:
    """
    Return collateral to `user`.

    The collateral is decremented first; the minimum ratio is then checked
    against the reduced record. An account without debt can withdraw all
    of its collateral.

    Raises:
        ValueError: If amount is negative or not an integer
        InsufficientCollateral: If the account holds less than `amount`
        MinCollateralization: If the remaining collateral is too little
    """
    require_amount("amount", amount)

    raw, params, state = load_accrued(view, pool_symbol)
    require_participant(params, user)

    acct = state.account(user)
    if acct.collateral < amount:
        raise InsufficientCollateral(f"{user} has {acct.collateral} collateral, cannot withdraw {amount}")

    new_state = state.with_account(user, replace(acct, collateral=acct.collateral - amount))
    moves = transfer(
        amount, params.collateral_symbol, params.pool_wallet, user, f"collateral_out_{pool_symbol}"
    )
    require_min_collateralization(params, new_state, user, oracle.latest_price(view.current_time))

    pending = build_pool_transaction(view, pool_symbol, raw, params, new_state, moves, user, "WITHDRAW_COLLATERAL")
    return PoolAction(pending, WithdrawCollateral(user, amount, view.current_time, state.nonce + 1))


def compute_borrow(
    view: LedgerView,
    pool_symbol: str,
    user: str,
    amount: int,
    oracle: PriceOracle,
) -> PoolAction:
    """
    Borrow pool asset against posted collateral.

    A zero amount is a no-op: nothing is committed and no event is emitted.

    Raises:
        ValueError: If amount is negative, or so small it mints no debt shares
        PoolError: If the user is the pool or system wallet
        InsufficientLiquidity: If the pool holds less than `amount`
        MinCollateralization: If the post-borrow ratio is below the minimum
    """
    require_amount("amount", amount)
    if amount == 0:
        return PoolAction(empty_pending_transaction(view))

    raw, params, state = load_accrued(view, pool_symbol)
    require_participant(params, user)

    available = view.get_balance(params.pool_wallet, params.asset_symbol)
    if amount > available:
        raise InsufficientLiquidity(f"borrow of {amount} exceeds pool balance {available}")

    new_shares = mul_div_down(amount, WAD, state.borrower_share_price)
    if new_shares == 0:
        raise ValueError(f"borrow too small: {amount} mints no debt shares")

    acct = state.account(user)
    new_state = state.with_account(user, replace(acct, debt_shares=acct.debt_shares + new_shares))
    moves = transfer(amount, params.asset_symbol, params.pool_wallet, user, f"borrow_{pool_symbol}")
    require_min_collateralization(params, new_state, user, oracle.latest_price(view.current_time))
    new_state = replace(new_state, total_borrowed=new_state.total_borrowed + amount)

    pending = build_pool_transaction(view, pool_symbol, raw, params, new_state, moves, user, "BORROW")
    return PoolAction(pending, Borrow(user, amount, view.current_time, state.nonce + 1))


def compute_repay(
    view: LedgerView,
    pool_symbol: str,
    user: str,
    amount: int,
    min_shares_burned: int = 0,
) -> PoolAction:
    """
    Repay debt in pool asset.

    Debt shares and total_borrowed both floor at zero. Over-repayment is
    accepted and the excess is kept by the pool. total_borrowed is reduced
    by the shares burned, not by `amount`; at a share price above par the two
    differ and recorded principal drifts from the share-adjusted debt.

    Raises:
        ValueError: If amount is negative or not an integer
        PoolError: If the user is the pool or system wallet
        Slippage: If fewer than min_shares_burned shares would be burned
    """
    require_amount("amount", amount)
    require_amount("min_shares_burned", min_shares_burned)

    raw, params, state = load_accrued(view, pool_symbol)
    require_participant(params, user)

    shares_to_burn = mul_div_down(amount, WAD, state.borrower_share_price)
    if shares_to_burn < min_shares_burned:
        raise Slippage(f"repay would burn {shares_to_burn} shares, below minimum {min_shares_burned}")

    acct = state.account(user)
    new_state = state.with_account(
        user, replace(acct, debt_shares=sub_floor_zero(acct.debt_shares, shares_to_burn))
    )
    new_state = replace(new_state, total_borrowed=sub_floor_zero(state.total_borrowed, shares_to_burn))
    moves = transfer(amount, params.asset_symbol, user, params.pool_wallet, f"repay_{pool_symbol}")

    pending = build_pool_transaction(view, pool_symbol, raw, params, new_state, moves, user, "REPAY")
    return PoolAction(pending, Repay(user, shares_to_burn, view.current_time, state.nonce + 1))


def compute_collateralization_ratio(
    view: LedgerView,
    pool_symbol: str,
    user: str,
    oracle: PriceOracle,
    quote: Optional[OracleQuote] = None,
) -> int:
    """Ratio of `user` on the pool accrued to the view's current time (nothing committed)."""
    _, _, state = load_accrued(view, pool_symbol)
    quote = quote or oracle.latest_price(view.current_time)
    return calculate_collateralization_ratio(state.account(user), state.borrower_share_price, quote)
