"""
liquidation.py - Full, single-shot liquidation of under-collateralized accounts

An account whose collateralization ratio is strictly below the liquidation
threshold can be liquidated by anyone: the liquidator pays the whole debt
value into the pool and receives the whole collateral balance. There is no
bonus and no partial path; if the collateral is worth less than the debt,
the liquidator takes the loss.
"""

from __future__ import annotations
from dataclasses import replace
from typing import List

from .accrual import load_accrued
from .borrowing import calculate_collateralization_ratio, calculate_debt_value
from .core import LedgerView, HealthyAccount
from .events import Liquidate, PoolAction
from .fixed_point import sub_floor_zero
from .oracle import OracleQuote, PriceOracle
from .pool import ZERO_ACCOUNT, BorrowerAccount, PoolState, build_pool_transaction, require_participant, transfer


def calculate_can_liquidate(
    account: BorrowerAccount,
    borrower_share_price: int,
    quote: OracleQuote,
    liquidation_threshold: int,
) -> bool:
    """True iff the ratio is strictly below the threshold; at the threshold the account is healthy."""
    ratio = calculate_collateralization_ratio(account, borrower_share_price, quote)
    return ratio < liquidation_threshold


def find_liquidatable(state: PoolState, quote: OracleQuote, liquidation_threshold: int) -> List[str]:
    """Borrowers in `state` that can be liquidated, sorted by wallet id."""
    return sorted(
        user for user, acct in state.accounts.items()
        if calculate_can_liquidate(acct, state.borrower_share_price, quote, liquidation_threshold)
    )


def compute_liquidation(
    view: LedgerView,
    pool_symbol: str,
    liquidator: str,
    borrower: str,
    oracle: PriceOracle,
) -> PoolAction:
    """
    Liquidate `borrower`, swapping their debt for their collateral.

    The liquidator's payment and the collateral hand-over are moves of one
    transaction: if the liquidator cannot pay, nothing is applied and the
    borrower is untouched.

    Returns:
        PoolAction with:
        - moves: amount_owed liquidator -> pool, all collateral pool -> liquidator
        - state: total_borrowed reduced (floored at zero), account zeroed

    Raises:
        PoolError: If the liquidator is the pool or system wallet
        HealthyAccount: If the borrower's ratio is at or above the threshold
    """
    raw, params, state = load_accrued(view, pool_symbol)
    require_participant(params, liquidator)

    acct = state.account(borrower)
    quote = oracle.latest_price(view.current_time)
    if not calculate_can_liquidate(acct, state.borrower_share_price, quote, params.liquidation_threshold):
        raise HealthyAccount(f"{borrower} is not below the liquidation threshold")

    amount_owed = calculate_debt_value(acct.debt_shares, state.borrower_share_price)
    seized = acct.collateral

    contract_id = f"liquidate_{pool_symbol}_{borrower}"
    moves = (
        transfer(amount_owed, params.asset_symbol, liquidator, params.pool_wallet, contract_id)
        + transfer(seized, params.collateral_symbol, params.pool_wallet, liquidator, contract_id)
    )
    new_state = state.with_account(borrower, ZERO_ACCOUNT)
    new_state = replace(new_state, total_borrowed=sub_floor_zero(state.total_borrowed, amount_owed))

    pending = build_pool_transaction(view, pool_symbol, raw, params, new_state, moves, liquidator, "LIQUIDATE")
    return PoolAction(pending, Liquidate(liquidator, borrower, seized, view.current_time, state.nonce + 1))
