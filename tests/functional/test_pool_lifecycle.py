"""
test_pool_lifecycle.py - End-to-end lending pool scenarios

Tests complete pool lifecycles:
- Borrow and full repayment at a 2x collateralization ratio
- A year of interest at full utilization
- The liquidation threshold boundary
- Liquidation after a collateral price drop
- Lenders earning interest paid by borrowers
"""

import pytest
from datetime import timedelta

from lending_pool import (
    Ledger, LendingPool, PoolParameters, TimeSeriesPriceOracle, HealthyAccount,
    MinCollateralization, Liquidate, token,
)
from lending_pool.fixed_point import WAD, MAX_UINT, SECONDS_PER_YEAR
from lending_pool.interest_rate import MAX_RATE
from tests.conftest import T0, POOL, balance, fund, advance


class TestBorrowAndRepay:
    """Borrow against collateral and unwind completely."""

    def test_two_to_one_round_trip(self, ledger, funded_pool):
        funded_pool.deposit_collateral("bob", 200 * WAD)
        funded_pool.borrow("bob", 100 * WAD)

        assert funded_pool.collateralization_ratio("bob") == 2 * WAD
        assert balance(ledger, "bob", "USDC") == 1_100 * WAD
        assert balance(ledger, "pool", "USDC") == 900 * WAD

        burned = funded_pool.repay("bob", 100 * WAD)
        assert burned == 100 * WAD
        assert funded_pool.get_account("bob") == (0, 200 * WAD)
        assert funded_pool.collateralization_ratio("bob") == MAX_UINT

        funded_pool.withdraw_collateral("bob", 200 * WAD)
        assert funded_pool.get_account("bob") == (0, 0)
        assert balance(ledger, "bob", "WETH") == 1_000 * WAD
        assert balance(ledger, "bob", "USDC") == 1_000 * WAD
        assert "bob" not in funded_pool.pool_state().accounts

    def test_cannot_borrow_past_minimum(self, funded_pool):
        funded_pool.deposit_collateral("bob", 150 * WAD)
        funded_pool.borrow("bob", 100 * WAD)
        with pytest.raises(MinCollateralization):
            funded_pool.borrow("bob", 1)


class TestFullUtilizationYear:
    """One year at 100% utilization accrues MAX_RATE for a full year."""

    def test_borrower_price_after_one_year(self, ledger, funded_pool):
        fund(ledger, "carol", "WETH", 1_500 * WAD)
        funded_pool.deposit_collateral("carol", 1_500 * WAD)
        funded_pool.borrow("carol", 1_000 * WAD)
        assert funded_pool.utilization() == WAD

        advance(ledger, SECONDS_PER_YEAR)
        funded_pool.update()

        price = ledger.get_unit_state(POOL)['borrower_share_price']
        assert price == WAD + MAX_RATE * SECONDS_PER_YEAR
        assert 14 * WAD // 10 <= price <= 16 * WAD // 10
        assert ledger.get_unit_state(POOL)['last_update_time'] == T0 + timedelta(seconds=SECONDS_PER_YEAR)

    def test_second_update_is_noop(self, ledger, funded_pool):
        advance(ledger, 3_600)
        funded_pool.update()
        log_length = len(ledger.transaction_log)
        funded_pool.update()
        assert len(ledger.transaction_log) == log_length


class TestLiquidationThreshold:
    """A ratio exactly at the threshold is healthy; one wei below is not."""

    @pytest.fixture
    def levered(self, funded_pool):
        funded_pool.deposit_collateral("bob", 200 * WAD)
        funded_pool.borrow("bob", 100 * WAD)
        return funded_pool

    def test_at_threshold_is_healthy(self, levered, oracle):
        oracle.update_price(55_000_000)
        assert levered.collateralization_ratio("bob") == 11 * WAD // 10
        assert not levered.can_liquidate("bob")
        with pytest.raises(HealthyAccount):
            levered.liquidate("liquidator", "bob")

    def test_below_threshold_is_liquidatable(self, ledger, levered, oracle):
        oracle.update_price(54_999_999)
        assert levered.can_liquidate("bob")
        assert levered.liquidatable_accounts() == ["bob"]

        seized = levered.liquidate("liquidator", "bob")
        assert seized == 200 * WAD
        assert balance(ledger, "liquidator", "WETH") == 200 * WAD
        assert balance(ledger, "liquidator", "USDC") == 9_900 * WAD
        assert levered.get_account("bob") == (0, 0)
        assert levered.pool_state().total_borrowed == 0
        assert levered.events[-1] == Liquidate("liquidator", "bob", 200 * WAD, T0, 4)


class TestPriceDrivenLiquidation:
    """Liquidation driven by a collateral price path over several days."""

    def test_crash_then_liquidate(self):
        ledger = Ledger("crash", T0, verbose=False, test_mode=True)
        ledger.register_unit(token("USDC", "USD Coin"))
        ledger.register_unit(token("WETH", "Wrapped Ether"))
        for wallet in ("alice", "bob", "liquidator"):
            ledger.register_wallet(wallet)

        oracle = TimeSeriesPriceOracle([
            (T0, 2_000 * 10**8),
            (T0 + timedelta(days=1), 1_500 * 10**8),
            (T0 + timedelta(days=2), 900 * 10**8),
        ])
        pool = LendingPool(ledger, POOL, PoolParameters("USDC", "WETH", "USDC-LP"), oracle, verbose=False)

        fund(ledger, "alice", "USDC", 10_000 * WAD)
        fund(ledger, "bob", "WETH", 5 * WAD)
        fund(ledger, "liquidator", "USDC", 10_000 * WAD)
        pool.deposit("alice", 10_000 * WAD)
        pool.deposit_collateral("bob", 5 * WAD)
        pool.borrow("bob", 5_000 * WAD)

        advance(ledger, 86_400)
        assert not pool.can_liquidate("bob")

        advance(ledger, 86_400)
        assert pool.can_liquidate("bob")

        owed = pool.debt_value("bob")
        assert owed > 5_000 * WAD
        pool.liquidate("liquidator", "bob")

        assert balance(ledger, "liquidator", "USDC") == 10_000 * WAD - owed
        assert balance(ledger, "liquidator", "WETH") == 5 * WAD
        assert pool.get_account("bob") == (0, 0)
        assert ledger.verify_double_entry()['valid']


class TestLendersEarnInterest:

    def test_redeem_after_interest(self, ledger, funded_pool):
        funded_pool.deposit_collateral("bob", 1_000 * WAD)
        funded_pool.borrow("bob", 500 * WAD)
        advance(ledger, 30 * 86_400)

        # one wei over the floored debt value burns every share
        funded_pool.repay("bob", funded_pool.debt_value("bob") + 1)
        assert funded_pool.get_account("bob")[0] == 0

        price = funded_pool.pool_state().lender_share_price
        assert price > WAD
        idle = balance(ledger, "pool", "USDC")
        paid = funded_pool.redeem("alice", 900 * WAD)
        assert paid == 900 * WAD * price // WAD
        assert paid <= idle
        assert balance(ledger, "alice", "USDC") == paid
