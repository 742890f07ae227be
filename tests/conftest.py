"""
conftest.py - Shared pytest fixtures for lending pool tests

Provides common fixtures used across unit, conformance and functional tests:
- A test-mode ledger with the pool asset and collateral tokens registered
- A static oracle at par (1 collateral unit == 1 asset unit)
- A fresh pool, and a pool with lender liquidity and a funded borrower
- Snapshot helpers for all-or-nothing assertions
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict

from lending_pool import (
    Ledger, LendingPool, PoolParameters, StaticPriceOracle,
    Move, SYSTEM_WALLET, ExecuteResult, build_transaction, token, WAD,
)


T0 = datetime(2025, 1, 1)
ASSET = "USDC"
COLLATERAL = "WETH"
SHARE = "USDC-LP"
POOL = "USDC_POOL"
POOL_WALLET = "pool"

# 1 collateral unit == 1 asset unit at 8 oracle decimals
PAR_PRICE = 10**8

WALLETS = ("alice", "bob", "carol", "liquidator")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def fund(ledger: Ledger, wallet: str, unit: str, amount: int) -> None:
    """Issue `amount` of `unit` to `wallet` from the system wallet."""
    tx = build_transaction(ledger, [Move(amount, unit, SYSTEM_WALLET, wallet, f"faucet_{len(ledger.transaction_log)}")])
    assert ledger.execute(tx) == ExecuteResult.APPLIED


def balance(ledger: Ledger, wallet: str, unit: str) -> int:
    return int(ledger.get_balance(wallet, unit))


def advance(ledger: Ledger, seconds: int) -> None:
    ledger.advance_time(ledger.current_time + timedelta(seconds=seconds))


def snapshot(ledger: Ledger) -> Dict[str, Any]:
    """Everything an operation could change: balances, unit states, log length."""
    return {
        'balances': {
            wallet: {unit: bal for unit, bal in bals.items() if bal != 0}
            for wallet, bals in ledger.balances.items()
        },
        'states': {symbol: ledger.get_unit_state(symbol) for symbol in ledger.units},
        'log': len(ledger.transaction_log),
    }


def make_ledger() -> Ledger:
    ledger = Ledger("test", T0, verbose=False, test_mode=True)
    ledger.register_unit(token(ASSET, "USD Coin"))
    ledger.register_unit(token(COLLATERAL, "Wrapped Ether"))
    for wallet in WALLETS:
        ledger.register_wallet(wallet)
    return ledger


def make_pool(ledger: Ledger, oracle: StaticPriceOracle, **overrides) -> LendingPool:
    params = PoolParameters(ASSET, COLLATERAL, SHARE, pool_wallet=POOL_WALLET, **overrides)
    return LendingPool(ledger, POOL, params, oracle, verbose=False)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def ledger():
    """Test-mode ledger with USDC and WETH registered and four empty wallets."""
    return make_ledger()


@pytest.fixture
def oracle():
    return StaticPriceOracle(PAR_PRICE, decimals=8, updated_at=T0)


@pytest.fixture
def pool(ledger, oracle):
    """Empty pool with default parameters."""
    return make_pool(ledger, oracle)


@pytest.fixture
def funded_pool(ledger, pool):
    """
    Pool with 1,000 USDC of lender liquidity from alice.

    bob holds 1,000 WETH and 1,000 USDC; the liquidator holds 10,000 USDC.
    """
    fund(ledger, "alice", ASSET, 1_000 * WAD)
    fund(ledger, "bob", COLLATERAL, 1_000 * WAD)
    fund(ledger, "bob", ASSET, 1_000 * WAD)
    fund(ledger, "liquidator", ASSET, 10_000 * WAD)
    pool.deposit("alice", 1_000 * WAD)
    return pool
