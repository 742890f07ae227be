"""
test_lending_pool.py - Unit tests for the LendingPool service

Tests:
- Construction and registration
- Event log contents and ordering
- transact() dispatch
- Query methods
- Verbose output
- Queries serialised with operations
"""

import threading

import pytest
from datetime import timedelta

from lending_pool import (
    Ledger, LendingPool, PoolParameters, StaticPriceOracle, UnitNotRegistered,
    Deposit, DepositCollateral, Borrow, Repay, WithdrawCollateral, Redeem,
    UNIT_TYPE_LENDING_POOL, UNIT_TYPE_LENDER_SHARE, token,
)
from lending_pool.fixed_point import WAD, MAX_UINT
from lending_pool.interest_rate import KINK_RATE, OPTIMAL_UTILIZATION
from tests.conftest import T0, POOL, balance, fund, advance, make_ledger, make_pool


class TestConstruction:

    def test_registers_units_and_wallet(self, ledger, pool):
        assert ledger.get_unit(POOL).unit_type == UNIT_TYPE_LENDING_POOL
        assert ledger.get_unit("USDC-LP").unit_type == UNIT_TYPE_LENDER_SHARE
        assert ledger.is_registered("pool")
        assert pool.params == PoolParameters("USDC", "WETH", "USDC-LP")

    def test_requires_registered_assets(self):
        ledger = Ledger("bare", T0, verbose=False)
        ledger.register_unit(token("USDC", "USD Coin"))
        with pytest.raises(UnitNotRegistered):
            LendingPool(ledger, POOL, PoolParameters("USDC", "WETH", "USDC-LP"), StaticPriceOracle(1))

    def test_existing_pool_wallet_is_reused(self, oracle):
        ledger = make_ledger()
        ledger.register_wallet("pool")
        make_pool(ledger, oracle)
        assert ledger.is_registered("pool")

    def test_custom_parameters(self, oracle):
        ledger = make_ledger()
        pool = make_pool(ledger, oracle, min_collateralization_ratio=2 * WAD)
        assert pool.params.min_collateralization_ratio == 2 * WAD


class TestEvents:

    def test_event_sequence(self, ledger, pool):
        fund(ledger, "alice", "USDC", 500 * WAD)
        fund(ledger, "bob", "WETH", 300 * WAD)
        pool.deposit("alice", 500 * WAD)
        pool.deposit_collateral("bob", 300 * WAD)
        pool.borrow("bob", 100 * WAD)
        pool.repay("bob", 100 * WAD)
        pool.withdraw_collateral("bob", 300 * WAD)
        pool.redeem("alice", 500 * WAD)

        assert pool.events == [
            Deposit("alice", 500 * WAD, 500 * WAD, T0, 1),
            DepositCollateral("bob", 300 * WAD, T0, 2),
            Borrow("bob", 100 * WAD, T0, 3),
            Repay("bob", 100 * WAD, T0, 4),
            WithdrawCollateral("bob", 300 * WAD, T0, 5),
            Redeem("alice", 500 * WAD, 500 * WAD, T0, 6),
        ]

    def test_identical_operations_both_apply(self, ledger, pool):
        fund(ledger, "alice", "USDC", 20 * WAD)
        pool.deposit("alice", 10 * WAD)
        pool.deposit("alice", 10 * WAD)
        assert pool.share_balance("alice") == 20 * WAD
        assert [e.nonce for e in pool.events] == [1, 2]

    def test_events_carry_ledger_time(self, ledger, pool):
        fund(ledger, "alice", "USDC", WAD)
        advance(ledger, 60)
        pool.deposit("alice", WAD)
        assert pool.events[-1].timestamp == T0 + timedelta(seconds=60)


class TestTransact:

    def test_dispatch(self, ledger, funded_pool):
        shares = funded_pool.transact("DEPOSIT", user="bob", amount=10 * WAD)
        assert shares == 10 * WAD
        funded_pool.transact("DEPOSIT_COLLATERAL", user="bob", amount=30 * WAD)
        funded_pool.transact("BORROW", user="bob", amount=20 * WAD)
        assert funded_pool.get_account("bob") == (20 * WAD, 30 * WAD)
        assert funded_pool.transact("REPAY", user="bob", amount=20 * WAD, min_shares_burned=20 * WAD) == 20 * WAD
        funded_pool.transact("UPDATE")

    def test_unknown_event(self, funded_pool):
        with pytest.raises(ValueError, match="Unknown event type"):
            funded_pool.transact("FLASH_LOAN", user="bob", amount=1)

    def test_missing_parameter(self, funded_pool):
        with pytest.raises(ValueError, match="Missing 'amount'"):
            funded_pool.transact("BORROW", user="bob")

    def test_unexpected_parameter(self, funded_pool):
        with pytest.raises(ValueError, match="Unexpected"):
            funded_pool.transact("BORROW", user="bob", amount=1, prices={})


class TestQueries:

    def test_unknown_user(self, funded_pool):
        assert funded_pool.get_account("stranger") == (0, 0)
        assert funded_pool.collateralization_ratio("stranger") == MAX_UINT
        assert not funded_pool.can_liquidate("stranger")
        assert funded_pool.debt_value("stranger") == 0

    def test_utilization_and_rates(self, ledger, funded_pool):
        fund(ledger, "carol", "WETH", 2_000 * WAD)
        funded_pool.deposit_collateral("carol", 2_000 * WAD)
        funded_pool.borrow("carol", 950 * WAD)
        assert funded_pool.utilization() == OPTIMAL_UTILIZATION
        br, lr = funded_pool.interest_rate(funded_pool.utilization())
        assert br == KINK_RATE
        assert lr == KINK_RATE * 95 // 100

    def test_queries_accrue_without_committing(self, ledger, funded_pool):
        funded_pool.deposit_collateral("bob", 300 * WAD)
        funded_pool.borrow("bob", 100 * WAD)
        log_length = len(ledger.transaction_log)
        advance(ledger, 86_400 * 30)
        assert funded_pool.debt_value("bob") > 100 * WAD
        assert funded_pool.pool_state().borrower_share_price > WAD
        assert ledger.get_unit_state(POOL)['borrower_share_price'] == WAD
        assert len(ledger.transaction_log) == log_length

    def test_total_shares(self, ledger, funded_pool):
        funded_pool.deposit("bob", 5 * WAD)
        assert funded_pool.total_shares() == 1_005 * WAD
        assert -ledger.get_balance("system", "USDC-LP") == 1_005 * WAD


class TestVerbose:

    def test_prints_events(self, ledger, oracle, capsys):
        pool = LendingPool(ledger, POOL, PoolParameters("USDC", "WETH", "USDC-LP"), oracle, verbose=True)
        fund(ledger, "alice", "USDC", WAD)
        pool.deposit("alice", WAD)
        out = capsys.readouterr().out
        assert "[USDC_POOL] Deposit(" in out


class TestZeroAmounts:
    """Zero amounts are valid input: nothing moves, accrual and the nonce still commit."""

    def test_repay_zero_after_borrow(self, ledger, funded_pool):
        funded_pool.deposit_collateral("bob", 300 * WAD)
        funded_pool.borrow("bob", 100 * WAD)
        advance(ledger, 86_400)
        before = balance(ledger, "bob", "USDC")

        assert funded_pool.repay("bob", 0) == 0
        assert funded_pool.get_account("bob") == (100 * WAD, 300 * WAD)
        assert balance(ledger, "bob", "USDC") == before
        assert ledger.get_unit_state(POOL)['last_update_time'] == T0 + timedelta(days=1)
        assert funded_pool.events[-1] == Repay("bob", 0, T0 + timedelta(days=1), 4)

    def test_deposit_zero_mints_nothing(self, ledger, funded_pool):
        assert funded_pool.deposit("alice", 0) == 0
        assert funded_pool.share_balance("alice") == 1_000 * WAD
        assert funded_pool.events[-1] == Deposit("alice", 0, 0, T0, 2)

    def test_redeem_zero_pays_nothing(self, ledger, funded_pool):
        assert funded_pool.redeem("alice", 0) == 0
        assert balance(ledger, "alice", "USDC") == 0
        assert funded_pool.events[-1] == Redeem("alice", 0, 0, T0, 2)

    def test_collateral_zero(self, ledger, funded_pool):
        funded_pool.deposit_collateral("bob", 0)
        funded_pool.withdraw_collateral("bob", 0)
        assert funded_pool.get_account("bob") == (0, 0)
        assert balance(ledger, "bob", "WETH") == 1_000 * WAD
        assert funded_pool.events[-2:] == [
            DepositCollateral("bob", 0, T0, 2),
            WithdrawCollateral("bob", 0, T0, 3),
        ]

    def test_negative_still_rejected(self, funded_pool):
        with pytest.raises(ValueError, match="negative"):
            funded_pool.deposit("alice", -1)


class TestQueryLocking:

    @pytest.mark.parametrize("query", [
        lambda p: p.interest_rate(0),
        lambda p: p.get_account("bob"),
        lambda p: p.debt_value("bob"),
        lambda p: p.share_balance("alice"),
        lambda p: p.total_shares(),
    ])
    def test_query_waits_for_running_operation(self, funded_pool, query):
        results = []
        worker = threading.Thread(target=lambda: results.append(query(funded_pool)))

        with funded_pool._lock:
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            assert results == []

        worker.join(timeout=5)
        assert not worker.is_alive()
        assert len(results) == 1

    def test_concurrent_deposits_and_queries(self, ledger, funded_pool):
        fund(ledger, "bob", "USDC", 1_000 * WAD)
        seen = []

        def deposit():
            for _ in range(20):
                funded_pool.deposit("bob", WAD)

        def observe():
            for _ in range(20):
                seen.append(funded_pool.total_shares())

        threads = [threading.Thread(target=deposit), threading.Thread(target=observe)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert funded_pool.share_balance("bob") == 20 * WAD
        assert funded_pool.total_shares() == 1_020 * WAD
        assert all((total - 1_000 * WAD) % WAD == 0 for total in seen)
        assert seen == sorted(seen)
