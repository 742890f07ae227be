"""
pool.py - Lending pool state, parameters and ledger adapters

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - PoolParameters: Immutable configuration (set at creation, never changes)
   - PoolState: Immutable accounting snapshot (changes with every operation)
   - BorrowerAccount: Immutable per-borrower record (debt shares, collateral)

2. ADAPTER FUNCTIONS (load_pool / to_state_dict):
   - Extract pool state from a LedgerView once
   - Convert to and from the typed frozen dataclasses
   - The ONLY place that touches the pool unit's raw state dict

3. UNIT FACTORIES:
   - create_lending_pool: the pool unit, whose state holds PoolState
   - create_lender_share_unit: the fungible lender share token

4. TRANSACTION BUILDER (build_pool_transaction):
   - Turns (old raw state, new PoolState, moves) into one PendingTransaction,
     so every operation commits its transfers and its accounting together.

All amounts are integers in 18-decimal base units; ratios and share prices
are WAD-scaled (10**18).
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Tuple

from .core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange,
    TransactionOrigin, OriginType, PoolError, SYSTEM_WALLET,
    UNIT_TYPE_LENDING_POOL, UNIT_TYPE_LENDER_SHARE,
    build_transaction, _freeze_state,
)
from .fixed_point import WAD
from .interest_rate import OPTIMAL_UTILIZATION, KINK_RATE, MAX_RATE


MIN_COLLATERALIZATION_RATIO = 15 * WAD // 10
LIQUIDATION_THRESHOLD = 11 * WAD // 10

DEFAULT_POOL_WALLET = "pool"


# ============================================================================
# FROZEN DATACLASSES
# ============================================================================

@dataclass(frozen=True, slots=True)
class PoolParameters:
    """
    Immutable pool configuration - set at creation, never changes.

    Rates are per-second and WAD-scaled; ratios are WAD-scaled.
    """
    asset_symbol: str
    collateral_symbol: str
    share_symbol: str
    pool_wallet: str = DEFAULT_POOL_WALLET
    optimal_utilization: int = OPTIMAL_UTILIZATION
    kink_rate: int = KINK_RATE
    max_rate: int = MAX_RATE
    min_collateralization_ratio: int = MIN_COLLATERALIZATION_RATIO
    liquidation_threshold: int = LIQUIDATION_THRESHOLD

    def __post_init__(self):
        for name in ('asset_symbol', 'collateral_symbol', 'share_symbol', 'pool_wallet'):
            value = getattr(self, name)
            if not value or not value.strip():
                raise ValueError(f"{name} cannot be empty")
        if len({self.asset_symbol, self.collateral_symbol, self.share_symbol}) != 3:
            raise ValueError("asset, collateral and share symbols must be distinct")
        if not 0 < self.optimal_utilization < WAD:
            raise ValueError(
                f"optimal_utilization must be in (0, {WAD}), got {self.optimal_utilization}"
            )
        if self.kink_rate < 0 or self.max_rate < 0:
            raise ValueError("rates cannot be negative")
        if self.kink_rate > self.max_rate:
            raise ValueError(
                f"kink_rate ({self.kink_rate}) cannot exceed max_rate ({self.max_rate})"
            )
        if self.liquidation_threshold <= 0:
            raise ValueError(f"liquidation_threshold must be positive, got {self.liquidation_threshold}")
        if self.liquidation_threshold > self.min_collateralization_ratio:
            raise ValueError(
                f"liquidation_threshold ({self.liquidation_threshold}) cannot exceed "
                f"min_collateralization_ratio ({self.min_collateralization_ratio})"
            )


@dataclass(frozen=True, slots=True)
class BorrowerAccount:
    """Per-borrower record. The zero record stands for "no account"."""
    debt_shares: int = 0
    collateral: int = 0

    def is_empty(self) -> bool:
        return self.debt_shares == 0 and self.collateral == 0


ZERO_ACCOUNT = BorrowerAccount()


@dataclass(frozen=True, slots=True)
class PoolState:
    """
    Immutable snapshot of pool accounting.

    Each operation produces a NEW instance (value semantics); combined with
    PoolParameters it is every input any pool calculation needs.
    """
    total_deposited: int
    total_borrowed: int
    lender_share_price: int
    borrower_share_price: int
    last_update_time: datetime
    nonce: int = 0
    accounts: Mapping[str, BorrowerAccount] = field(default_factory=dict)

    def account(self, user: str) -> BorrowerAccount:
        """Return the user's record; an unknown user has the zero record."""
        return self.accounts.get(user, ZERO_ACCOUNT)

    def with_account(self, user: str, account: BorrowerAccount) -> PoolState:
        """Return a copy with the user's record replaced (zero records are pruned)."""
        accounts = dict(self.accounts)
        if account.is_empty():
            accounts.pop(user, None)
        else:
            accounts[user] = account
        return replace(self, accounts=accounts)


# ============================================================================
# ADAPTER FUNCTIONS
# ============================================================================

def load_pool(view: LedgerView, symbol: str) -> Tuple[PoolParameters, PoolState]:
    """
    Load a lending pool from ledger state as typed frozen dataclasses.

    Returns:
        Tuple of (PoolParameters, PoolState)

    Raises:
        ValueError: If the unit's state is not a lending pool
    """
    raw = view.get_unit_state(symbol)
    return _params_from_raw(raw, symbol), _state_from_raw(raw)


def _params_from_raw(raw: Dict[str, Any], symbol: str) -> PoolParameters:
    if 'lender_share_price' not in raw:
        raise ValueError(f"Unit {symbol} is not a lending pool")
    return PoolParameters(
        asset_symbol=raw['asset_symbol'],
        collateral_symbol=raw['collateral_symbol'],
        share_symbol=raw['share_symbol'],
        pool_wallet=raw['pool_wallet'],
        optimal_utilization=raw['optimal_utilization'],
        kink_rate=raw['kink_rate'],
        max_rate=raw['max_rate'],
        min_collateralization_ratio=raw['min_collateralization_ratio'],
        liquidation_threshold=raw['liquidation_threshold'],
    )


def _state_from_raw(raw: Dict[str, Any]) -> PoolState:
    return PoolState(
        total_deposited=raw['total_deposited'],
        total_borrowed=raw['total_borrowed'],
        lender_share_price=raw['lender_share_price'],
        borrower_share_price=raw['borrower_share_price'],
        last_update_time=raw['last_update_time'],
        nonce=raw.get('nonce', 0),
        accounts={
            user: BorrowerAccount(rec.get('debt_shares', 0), rec.get('collateral', 0))
            for user, rec in raw.get('accounts', {}).items()
        },
    )


def to_state_dict(params: PoolParameters, state: PoolState) -> Dict[str, Any]:
    """
    Convert typed dataclasses back to a state dict for ledger storage.

    This is the inverse of load_pool().
    """
    return {
        'asset_symbol': params.asset_symbol,
        'collateral_symbol': params.collateral_symbol,
        'share_symbol': params.share_symbol,
        'pool_wallet': params.pool_wallet,
        'optimal_utilization': params.optimal_utilization,
        'kink_rate': params.kink_rate,
        'max_rate': params.max_rate,
        'min_collateralization_ratio': params.min_collateralization_ratio,
        'liquidation_threshold': params.liquidation_threshold,
        'total_deposited': state.total_deposited,
        'total_borrowed': state.total_borrowed,
        'lender_share_price': state.lender_share_price,
        'borrower_share_price': state.borrower_share_price,
        'last_update_time': state.last_update_time,
        'nonce': state.nonce,
        'accounts': {
            user: {'debt_shares': acct.debt_shares, 'collateral': acct.collateral}
            for user, acct in state.accounts.items()
            if not acct.is_empty()
        },
    }


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def create_lending_pool(
    symbol: str,
    name: str,
    params: PoolParameters,
    created_at: datetime,
) -> Unit:
    """
    Create the pool unit: nobody holds it, its state is the pool's books.

    Args:
        symbol: Pool identifier (e.g., "USDC_WETH_POOL")
        name: Human-readable pool name
        params: Pool configuration
        created_at: Initial last_update_time (accrual starts here)

    Returns:
        Unit of type LENDING_POOL with both share prices at par.

    Example:
        params = PoolParameters("USDC", "WETH", "USDC-LP")
        ledger.register_unit(create_lending_pool("POOL", "USDC/WETH", params, ledger.current_time))
    """
    if not symbol or not symbol.strip():
        raise ValueError("pool symbol cannot be empty")
    state = PoolState(
        total_deposited=0,
        total_borrowed=0,
        lender_share_price=WAD,
        borrower_share_price=WAD,
        last_update_time=created_at,
    )
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_LENDING_POOL,
        min_balance=Decimal("0"),
        max_balance=Decimal("0"),
        decimal_places=0,
        _frozen_state=_freeze_state(to_state_dict(params, state)),
    )


def create_lender_share_unit(params: PoolParameters, name: str = "") -> Unit:
    """
    Create the lender share token for a pool.

    Shares are minted as moves out of SYSTEM_WALLET and burned as moves back
    into it; holders cannot go negative.
    """
    return Unit(
        symbol=params.share_symbol,
        name=name or f"{params.asset_symbol} lender share",
        unit_type=UNIT_TYPE_LENDER_SHARE,
        min_balance=Decimal("0"),
        decimal_places=0,
        _frozen_state=_freeze_state({'pool_asset': params.asset_symbol}),
    )


# ============================================================================
# TRANSACTION BUILDER
# ============================================================================

def transfer(quantity: int, unit_symbol: str, source: str, dest: str, contract_id: str) -> List[Move]:
    """A single token move, or nothing for a zero quantity."""
    if quantity == 0:
        return []
    return [Move(Decimal(quantity), unit_symbol, source, dest, contract_id)]


def build_pool_transaction(
    view: LedgerView,
    pool_symbol: str,
    raw_state: Dict[str, Any],
    params: PoolParameters,
    new_state: PoolState,
    moves: List[Move],
    user: str,
    event_type: str,
) -> PendingTransaction:
    """
    Build the single transaction committing an operation.

    The nonce is bumped so that two otherwise identical operations never
    share an intent_id.
    """
    committed = replace(new_state, nonce=new_state.nonce + 1)
    change = UnitStateChange(
        unit=pool_symbol,
        old_state=raw_state,
        new_state=to_state_dict(params, committed),
    )
    origin = TransactionOrigin(
        origin_type=OriginType.USER_ACTION,
        source_id=user,
        unit_symbol=pool_symbol,
        event_type=event_type,
    )
    return build_transaction(view, moves, [change], origin=origin)


def require_amount(name: str, value: int) -> int:
    """Validate a uint amount argument; zero is allowed."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} cannot be negative, got {value}")
    return value


def require_participant(params: PoolParameters, wallet: str) -> str:
    """Reject the pool wallet and the system wallet as an operation's caller."""
    if wallet in (params.pool_wallet, SYSTEM_WALLET):
        raise PoolError(f"{wallet} cannot act on pool {params.share_symbol}: it is a reserved wallet")
    return wallet
