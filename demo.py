#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Lending Pool Step by Step

A walk through one pool's life. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3: Setup        - Ledger, tokens, the pool and its share unit
  4-6: Lending      - Deposits, collateral, borrowing against it
  7-8: Interest     - Time passing, accrual, the rate curve
  9-10: Risk        - Price drops and liquidation, conservation proof

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

from lending_pool import (
    Ledger, LendingPool, PoolParameters, StaticPriceOracle,
    Move, SYSTEM_WALLET, build_transaction, token,
    MinCollateralization, HealthyAccount,
)
from lending_pool.fixed_point import WAD
from lending_pool.projection import apr_from_rate, rate_curve


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Whole tokens, scaled by WAD when issued
    alice_deposit: int = 10_000
    bob_collateral: int = 5
    bob_borrow: int = 6_000
    liquidator_cash: int = 20_000

    # Collateral price in asset units, 8 oracle decimals
    initial_price: int = 2_000 * 10**8
    crash_price: int = 1_300 * 10**8

    days_elapsed: int = 90


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def fmt(amount: int) -> str:
    """WAD-scaled amount as a decimal string."""
    return f"{amount / WAD:,.6f}"


def issue(ledger: Ledger, wallet: str, unit: str, amount: int):
    tx = build_transaction(ledger, [Move(amount, unit, SYSTEM_WALLET, wallet, f"issue_{wallet}_{unit}")])
    ledger.execute(tx)


# ============================================================================
# SETUP
# ============================================================================

def step_01_ledger():
    step_header(1, "Ledger and Tokens",
        "Register the pool asset, the collateral token and the participants.")

    ledger = Ledger("tutorial", initial_time=CONFIG.start_time, verbose=True)
    ledger.register_unit(token("USDC", "USD Coin"))
    ledger.register_unit(token("WETH", "Wrapped Ether"))
    for wallet in ("alice", "bob", "liquidator"):
        ledger.register_wallet(wallet)

    issue(ledger, "alice", "USDC", CONFIG.alice_deposit * WAD)
    issue(ledger, "bob", "WETH", CONFIG.bob_collateral * WAD)
    issue(ledger, "liquidator", "USDC", CONFIG.liquidator_cash * WAD)

    section_header("Balances")
    for wallet in ("alice", "bob", "liquidator"):
        print(f"{wallet:12s} {ledger.get_wallet_balances(wallet)}")
    return ledger


def step_02_pool(ledger: Ledger):
    step_header(2, "Creating the Pool",
        "A pool is a unit whose state holds totals, share prices and borrower accounts.")

    oracle = StaticPriceOracle(CONFIG.initial_price, decimals=8, updated_at=CONFIG.start_time)
    pool = LendingPool(ledger, "USDC_POOL", PoolParameters("USDC", "WETH", "USDC-LP"), oracle)

    section_header("Pool State")
    print(pool.pool_state())
    print(f"\nPool wallet: {pool.params.pool_wallet}")
    print(f"Minimum collateralization: {fmt(pool.params.min_collateralization_ratio)}")
    print(f"Liquidation threshold:     {fmt(pool.params.liquidation_threshold)}")
    return pool, oracle


def step_03_rate_curve():
    step_header(3, "The Rate Curve",
        "Borrower rates rise gently up to 95% utilization, then steeply.")

    u, br, lr = rate_curve(11)
    print(f"{'util':>6s} {'borrow APR':>12s} {'lend APR':>12s}")
    for ui, b, l in zip(u, apr_from_rate(br), apr_from_rate(lr)):
        print(f"{ui:6.0%} {b:12.2%} {l:12.2%}")


# ============================================================================
# LENDING
# ============================================================================

def step_04_deposit(pool: LendingPool):
    step_header(4, "Lender Deposit",
        "alice deposits USDC and receives lender shares at the current share price.")
    wait_for_enter()
    shares = pool.deposit("alice", CONFIG.alice_deposit * WAD)
    print(f"\nalice received {fmt(shares)} USDC-LP")


def step_05_collateral(pool: LendingPool):
    step_header(5, "Posting Collateral",
        "bob moves WETH into the pool wallet; it is recorded on his account.")
    wait_for_enter()
    pool.deposit_collateral("bob", CONFIG.bob_collateral * WAD)
    print(f"\nbob collateral value: {fmt(pool.collateral_value('bob'))} USDC")


def step_06_borrow(pool: LendingPool):
    step_header(6, "Borrowing",
        "bob borrows up to the minimum collateralization ratio, and no further.")
    wait_for_enter()
    pool.borrow("bob", CONFIG.bob_borrow * WAD)
    print(f"\nbob ratio after borrow: {fmt(pool.collateralization_ratio('bob'))}")

    section_header("Borrowing Too Much")
    try:
        pool.borrow("bob", 1_000 * WAD)
    except MinCollateralization as e:
        print(f"Rejected: {e}")


# ============================================================================
# INTEREST
# ============================================================================

def step_07_time(ledger: Ledger, pool: LendingPool):
    step_header(7, "Time Passes",
        "Interest is accrued lazily; queries see it before anything is committed.")
    wait_for_enter()
    ledger.advance_time(ledger.current_time + timedelta(days=CONFIG.days_elapsed))

    state = pool.pool_state()
    print(f"utilization:           {fmt(pool.utilization())}")
    print(f"lender share price:    {fmt(state.lender_share_price)}")
    print(f"borrower share price:  {fmt(state.borrower_share_price)}")
    print(f"bob owes:              {fmt(pool.debt_value('bob'))}")


def step_08_update(pool: LendingPool):
    step_header(8, "Persisting Accrual",
        "update() commits accrual with no other effect.")
    wait_for_enter()
    pool.update()
    print(pool.pool_state())


# ============================================================================
# RISK
# ============================================================================

def step_09_liquidation(ledger: Ledger, pool: LendingPool, oracle: StaticPriceOracle):
    step_header(9, "Liquidation",
        "Below the threshold anyone may repay the debt and take all the collateral.")
    wait_for_enter()

    try:
        pool.liquidate("liquidator", "bob")
    except HealthyAccount as e:
        print(f"Not yet: {e}")

    oracle.update_price(CONFIG.crash_price)
    print(f"\nWETH drops; bob ratio is now {fmt(pool.collateralization_ratio('bob'))}")
    print(f"Liquidatable: {pool.liquidatable_accounts()}")

    seized = pool.liquidate("liquidator", "bob")
    print(f"\nliquidator seized {fmt(seized)} WETH")
    print(f"liquidator balances: {ledger.get_wallet_balances('liquidator')}")


def step_10_conservation(ledger: Ledger, pool: LendingPool):
    step_header(10, "Conservation Proof",
        "Every unit still sums to zero across wallets, system included.")
    result = ledger.verify_double_entry()
    for unit in ("USDC", "WETH", "USDC-LP"):
        print(f"{unit:8s} total supply = {ledger.total_supply(unit)}")
    print(f"\nvalid: {result['valid']}")

    section_header("Event Log")
    for event in pool.events:
        print(event)


def main():
    ledger = step_01_ledger()
    pool, oracle = step_02_pool(ledger)
    step_03_rate_curve()
    step_04_deposit(pool)
    step_05_collateral(pool)
    step_06_borrow(pool)
    step_07_time(ledger, pool)
    step_08_update(pool)
    step_09_liquidation(ledger, pool, oracle)
    step_10_conservation(ledger, pool)


if __name__ == "__main__":
    main()
