"""
events.py - Pool event records

Every committed pool operation emits exactly one event. Events are
observable side effects only: the pool never reads them back.

Each event carries the ledger time of the operation and the pool nonce
after commit, which totally orders events within a pool.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from .core import PendingTransaction


@dataclass(frozen=True, slots=True)
class Deposit:
    user: str
    amount: int
    shares: int
    timestamp: datetime
    nonce: int


@dataclass(frozen=True, slots=True)
class Redeem:
    user: str
    shares: int
    amount: int
    timestamp: datetime
    nonce: int


@dataclass(frozen=True, slots=True)
class DepositCollateral:
    user: str
    amount: int
    timestamp: datetime
    nonce: int


@dataclass(frozen=True, slots=True)
class WithdrawCollateral:
    user: str
    amount: int
    timestamp: datetime
    nonce: int


@dataclass(frozen=True, slots=True)
class Borrow:
    user: str
    amount: int
    timestamp: datetime
    nonce: int


@dataclass(frozen=True, slots=True)
class Repay:
    user: str
    shares_burned: int
    timestamp: datetime
    nonce: int


@dataclass(frozen=True, slots=True)
class Liquidate:
    liquidator: str
    borrower: str
    collateral_seized: int
    timestamp: datetime
    nonce: int


PoolEvent = Union[Deposit, Redeem, DepositCollateral, WithdrawCollateral, Borrow, Repay, Liquidate]


@dataclass(frozen=True, slots=True)
class PoolAction:
    """
    Result of a pool compute function: the transaction to execute and the
    event to emit once it has been applied.

    An action with an empty pending transaction and no event is a no-op
    (e.g. a zero borrow).
    """
    pending: PendingTransaction
    event: Optional[PoolEvent] = None

    def is_noop(self) -> bool:
        return self.pending.is_empty()
