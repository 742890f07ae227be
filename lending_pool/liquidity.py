"""
liquidity.py - Lender side of the pool: deposit and redeem

Lenders supply the pool asset and receive lender shares at the current
lender share price; redeeming burns shares for asset at the (grown) price.

Every function accrues first and returns a PoolAction whose transaction
carries the token moves, the share mint or burn and the new pool state
together. A transfer the ledger cannot apply rejects the whole action.
"""

from __future__ import annotations
from dataclasses import replace

from .accrual import load_accrued
from .core import LedgerView, SYSTEM_WALLET, Slippage, InsufficientLiquidity
from .events import Deposit, PoolAction, Redeem
from .fixed_point import WAD, mul_div_down, sub_floor_zero
from .pool import build_pool_transaction, require_amount, require_participant, transfer


def calculate_shares_out(amount: int, lender_share_price: int) -> int:
    """Lender shares minted for `amount` of asset (rounded down)."""
    return mul_div_down(amount, WAD, lender_share_price)


def calculate_amount_out(shares: int, lender_share_price: int) -> int:
    """Asset paid out for `shares` lender shares (rounded down)."""
    return mul_div_down(shares, lender_share_price, WAD)


def compute_deposit(
    view: LedgerView,
    pool_symbol: str,
    user: str,
    amount: int,
    min_shares_out: int = 0,
) -> PoolAction:
    """
    Deposit pool asset and mint lender shares.

    Args:
        view: Read-only ledger access
        pool_symbol: Symbol of the pool unit
        user: Depositing wallet
        amount: Asset amount (base units; zero mints nothing)
        min_shares_out: Slippage bound on shares minted

    Returns:
        PoolAction moving `amount` user -> pool and minting shares to user.

    Raises:
        ValueError: If amount is negative or not an integer
        Slippage: If shares minted < min_shares_out
    """
    require_amount("amount", amount)
    require_amount("min_shares_out", min_shares_out)

    raw, params, state = load_accrued(view, pool_symbol)
    require_participant(params, user)

    shares_out = calculate_shares_out(amount, state.lender_share_price)
    if shares_out < min_shares_out:
        raise Slippage(f"deposit would mint {shares_out} shares, below minimum {min_shares_out}")

    contract_id = f"deposit_{pool_symbol}"
    moves = (
        transfer(amount, params.asset_symbol, user, params.pool_wallet, contract_id)
        + transfer(shares_out, params.share_symbol, SYSTEM_WALLET, user, contract_id)
    )
    new_state = replace(state, total_deposited=state.total_deposited + amount)

    pending = build_pool_transaction(view, pool_symbol, raw, params, new_state, moves, user, "DEPOSIT")
    return PoolAction(pending, Deposit(user, amount, shares_out, view.current_time, state.nonce + 1))


def compute_redeem(
    view: LedgerView,
    pool_symbol: str,
    user: str,
    shares: int,
    min_amount_out: int = 0,
) -> PoolAction:
    """
    Burn lender shares and pay out pool asset.

    Only idle liquidity (deposited principal not lent out) can be redeemed.
    A holder without enough shares is rejected by the ledger at execution.

    Raises:
        ValueError: If shares is negative or not an integer
        Slippage: If the payout < min_amount_out
        InsufficientLiquidity: If idle liquidity < payout
    """
    require_amount("shares", shares)
    require_amount("min_amount_out", min_amount_out)

    raw, params, state = load_accrued(view, pool_symbol)
    require_participant(params, user)

    amount_out = calculate_amount_out(shares, state.lender_share_price)
    if amount_out < min_amount_out:
        raise Slippage(f"redeem would pay {amount_out}, below minimum {min_amount_out}")

    idle = sub_floor_zero(state.total_deposited, state.total_borrowed)
    if idle < amount_out:
        raise InsufficientLiquidity(f"redeem of {amount_out} exceeds idle liquidity {idle}")

    contract_id = f"redeem_{pool_symbol}"
    moves = (
        transfer(shares, params.share_symbol, user, SYSTEM_WALLET, contract_id)
        + transfer(amount_out, params.asset_symbol, params.pool_wallet, user, contract_id)
    )
    new_state = replace(state, total_deposited=sub_floor_zero(state.total_deposited, amount_out))

    pending = build_pool_transaction(view, pool_symbol, raw, params, new_state, moves, user, "REDEEM")
    return PoolAction(pending, Redeem(user, shares, amount_out, view.current_time, state.nonce + 1))
