"""
engine.py - LendingPool service

Binds one pool to a Ledger and a PriceOracle and exposes the pool's public
operations and queries.

Execution of each operation:
1. Acquire the pool lock (operations are totally ordered)
2. Build a PoolAction with the pure compute_* function
3. Execute its transaction on the ledger (all moves and the pool state
   change apply together, or nothing does)
4. Record the event

A rejected transaction raises TransferFailed with the ledger's reason;
errors raised while building the action propagate unchanged. Either way
the ledger and the event log are exactly as before the call.

Queries accrue in memory to the ledger's current time and never commit.
"""

from __future__ import annotations
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .accrual import compute_accrual, load_accrued, pool_utilization
from .borrowing import (
    calculate_collateral_value, calculate_collateralization_ratio, calculate_debt_value,
    compute_borrow, compute_deposit_collateral, compute_repay, compute_withdraw_collateral,
)
from .core import ExecuteResult, LedgerError, SYSTEM_WALLET, TransferFailed
from .events import PoolAction, PoolEvent
from .interest_rate import rates
from .ledger import Ledger
from .liquidation import calculate_can_liquidate, compute_liquidation, find_liquidatable
from .liquidity import compute_deposit, compute_redeem
from .oracle import PriceOracle
from .pool import (
    PoolParameters, PoolState,
    create_lender_share_unit, create_lending_pool, load_pool,
)


class LendingPool:
    """
    A lending pool living in a Ledger.

    The pool asset and collateral units must already be registered in the
    ledger. The pool wallet, the lender share unit and the pool unit are
    registered on construction.

    Example:
        ledger = Ledger("main", datetime(2025, 1, 1), test_mode=True)
        ledger.register_unit(token("USDC", "USD Coin"))
        ledger.register_unit(token("WETH", "Wrapped Ether"))
        params = PoolParameters("USDC", "WETH", "USDC-LP")
        pool = LendingPool(ledger, "USDC_POOL", params, StaticPriceOracle(10**8))
        shares = pool.deposit("alice", 1_000 * WAD)
    """

    def __init__(
        self,
        ledger: Ledger,
        symbol: str,
        params: PoolParameters,
        oracle: PriceOracle,
        name: str = "",
        created_at: Optional[datetime] = None,
        verbose: Optional[bool] = None,
    ):
        """
        Create the pool and register it in the ledger.

        Args:
            ledger: Ledger holding the pool asset and collateral units
            symbol: Symbol of the pool unit
            params: Pool configuration
            oracle: Collateral price feed
            name: Human-readable pool name
            created_at: Start of accrual (default: ledger time)
            verbose: Print operation summaries (default: ledger.verbose)
        """
        ledger.get_unit(params.asset_symbol)
        ledger.get_unit(params.collateral_symbol)

        self.ledger = ledger
        self.symbol = symbol
        self.oracle = oracle
        self.events: List[PoolEvent] = []
        self.verbose = ledger.verbose if verbose is None else verbose
        self._lock = threading.RLock()

        if not ledger.is_registered(params.pool_wallet):
            ledger.register_wallet(params.pool_wallet)
        ledger.register_unit(create_lender_share_unit(params))
        ledger.register_unit(create_lending_pool(
            symbol,
            name or f"{params.asset_symbol}/{params.collateral_symbol} lending pool",
            params,
            created_at or ledger.current_time,
        ))

    @property
    def params(self) -> PoolParameters:
        return load_pool(self.ledger, self.symbol)[0]

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def _run(self, action: PoolAction, label: str) -> None:
        if action.is_noop():
            return

        result = self.ledger.execute(action.pending)
        if result == ExecuteResult.REJECTED:
            raise TransferFailed(f"{label} on {self.symbol} rejected: {self.ledger.last_rejection}")
        if result == ExecuteResult.ALREADY_APPLIED:
            raise LedgerError(f"{label} on {self.symbol} was already applied")

        if action.event is not None:
            self.events.append(action.event)
            if self.verbose:
                print(f"[{self.symbol}] {action.event}")

    # ========================================================================
    # OPERATIONS
    # ========================================================================

    def update(self, caller: str = "keeper") -> None:
        """Persist accrual up to the ledger's current time."""
        with self._lock:
            self._run(PoolAction(compute_accrual(self.ledger, self.symbol, caller)), "update")

    def deposit(self, user: str, amount: int, min_shares_out: int = 0) -> int:
        """Deposit pool asset; returns lender shares minted."""
        with self._lock:
            action = compute_deposit(self.ledger, self.symbol, user, amount, min_shares_out)
            self._run(action, "deposit")
            return action.event.shares

    def redeem(self, user: str, shares: int, min_amount_out: int = 0) -> int:
        """Redeem lender shares; returns the asset amount paid out."""
        with self._lock:
            action = compute_redeem(self.ledger, self.symbol, user, shares, min_amount_out)
            self._run(action, "redeem")
            return action.event.amount

    def deposit_collateral(self, user: str, amount: int) -> None:
        with self._lock:
            self._run(compute_deposit_collateral(self.ledger, self.symbol, user, amount), "deposit_collateral")

    def withdraw_collateral(self, user: str, amount: int) -> None:
        with self._lock:
            self._run(
                compute_withdraw_collateral(self.ledger, self.symbol, user, amount, self.oracle),
                "withdraw_collateral",
            )

    def borrow(self, user: str, amount: int) -> None:
        with self._lock:
            self._run(compute_borrow(self.ledger, self.symbol, user, amount, self.oracle), "borrow")

    def repay(self, user: str, amount: int, min_shares_burned: int = 0) -> int:
        """Repay debt; returns the debt shares burned."""
        with self._lock:
            action = compute_repay(self.ledger, self.symbol, user, amount, min_shares_burned)
            self._run(action, "repay")
            return action.event.shares_burned

    def liquidate(self, liquidator: str, borrower: str) -> int:
        """Liquidate `borrower`; returns the collateral seized by `liquidator`."""
        with self._lock:
            action = compute_liquidation(self.ledger, self.symbol, liquidator, borrower, self.oracle)
            self._run(action, "liquidate")
            return action.event.collateral_seized

    def transact(self, event_type: str, **kwargs) -> Any:
        """
        Dispatch an operation by name.

        Args:
            event_type: One of UPDATE, DEPOSIT, REDEEM, DEPOSIT_COLLATERAL,
                WITHDRAW_COLLATERAL, BORROW, REPAY, LIQUIDATE
            **kwargs: Arguments of the corresponding method

        Example:
            pool.transact("BORROW", user="bob", amount=100 * WAD)
        """
        handlers = {
            'UPDATE': (self.update, (), ('caller',)),
            'DEPOSIT': (self.deposit, ('user', 'amount'), ('min_shares_out',)),
            'REDEEM': (self.redeem, ('user', 'shares'), ('min_amount_out',)),
            'DEPOSIT_COLLATERAL': (self.deposit_collateral, ('user', 'amount'), ()),
            'WITHDRAW_COLLATERAL': (self.withdraw_collateral, ('user', 'amount'), ()),
            'BORROW': (self.borrow, ('user', 'amount'), ()),
            'REPAY': (self.repay, ('user', 'amount'), ('min_shares_burned',)),
            'LIQUIDATE': (self.liquidate, ('liquidator', 'borrower'), ()),
        }
        if event_type not in handlers:
            raise ValueError(f"Unknown event type '{event_type}' for lending pool {self.symbol}")

        handler, required, optional = handlers[event_type]
        for key in required:
            if kwargs.get(key) is None:
                raise ValueError(f"Missing '{key}' parameter for {event_type} event on {self.symbol}")
        unexpected = set(kwargs) - set(required) - set(optional)
        if unexpected:
            raise ValueError(f"Unexpected parameters {sorted(unexpected)} for {event_type} event on {self.symbol}")
        return handler(**kwargs)

    # ========================================================================
    # QUERY METHODS
    # ========================================================================

    def pool_state(self) -> PoolState:
        """Pool state accrued to the ledger's current time (not committed)."""
        with self._lock:
            return load_accrued(self.ledger, self.symbol)[2]

    def utilization(self) -> int:
        with self._lock:
            return pool_utilization(load_pool(self.ledger, self.symbol)[1])

    def interest_rate(self, util: int) -> Tuple[int, int]:
        """(borrower_rate, lender_rate) per second for a given utilization."""
        with self._lock:
            params = self.params
        return rates(util, params.optimal_utilization, params.kink_rate, params.max_rate)

    def get_account(self, user: str) -> Tuple[int, int]:
        """(debt_shares, collateral) of `user`; unknown users have (0, 0)."""
        with self._lock:
            acct = self.pool_state().account(user)
        return acct.debt_shares, acct.collateral

    def collateral_value(self, user: str) -> int:
        with self._lock:
            acct = self.pool_state().account(user)
            return calculate_collateral_value(acct.collateral, self.oracle.latest_price(self.ledger.current_time))

    def debt_value(self, user: str) -> int:
        with self._lock:
            state = self.pool_state()
        return calculate_debt_value(state.account(user).debt_shares, state.borrower_share_price)

    def collateralization_ratio(self, user: str) -> int:
        with self._lock:
            state = self.pool_state()
            quote = self.oracle.latest_price(self.ledger.current_time)
            return calculate_collateralization_ratio(state.account(user), state.borrower_share_price, quote)

    def can_liquidate(self, user: str) -> bool:
        with self._lock:
            _, params, state = load_accrued(self.ledger, self.symbol)
            quote = self.oracle.latest_price(self.ledger.current_time)
            return calculate_can_liquidate(
                state.account(user), state.borrower_share_price, quote, params.liquidation_threshold
            )

    def liquidatable_accounts(self) -> List[str]:
        with self._lock:
            _, params, state = load_accrued(self.ledger, self.symbol)
            quote = self.oracle.latest_price(self.ledger.current_time)
            return find_liquidatable(state, quote, params.liquidation_threshold)

    def share_balance(self, user: str) -> int:
        with self._lock:
            return int(self.ledger.get_positions(self.params.share_symbol).get(user, 0))

    def total_shares(self) -> int:
        """Lender shares outstanding (sum of all holder balances)."""
        with self._lock:
            positions: Dict[str, Any] = self.ledger.get_positions(self.params.share_symbol)
        return int(sum(qty for wallet, qty in positions.items() if wallet != SYSTEM_WALLET))

    def __repr__(self):
        return f"LendingPool({self.symbol}, {len(self.events)} events)"
