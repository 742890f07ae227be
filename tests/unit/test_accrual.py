"""
test_accrual.py - Unit tests for share price accrual

Tests:
- No elapsed time / clock going backwards
- Zero rates only advance the clock
- Simple interest per call, compounding across calls
- Timezone-aware timestamps
- compute_accrual transactions
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from lending_pool import PoolParameters
from lending_pool.accrual import accrue, elapsed_seconds, compute_accrual, load_accrued
from lending_pool.fixed_point import WAD, SECONDS_PER_YEAR
from lending_pool.interest_rate import MAX_RATE, KINK_RATE
from lending_pool.pool import PoolState
from tests.conftest import fund, advance
from tests.fake_view import pool_view


T0 = datetime(2025, 1, 1)
PARAMS = PoolParameters("USDC", "WETH", "USDC-LP")


def make_state(total_deposited=1_000 * WAD, total_borrowed=0, **kwargs) -> PoolState:
    fields = dict(
        total_deposited=total_deposited,
        total_borrowed=total_borrowed,
        lender_share_price=WAD,
        borrower_share_price=WAD,
        last_update_time=T0,
    )
    fields.update(kwargs)
    return PoolState(**fields)


class TestElapsedSeconds:

    def test_whole_seconds(self):
        assert elapsed_seconds(T0, T0 + timedelta(seconds=90, microseconds=999_999)) == 90

    def test_backwards_is_zero(self):
        assert elapsed_seconds(T0, T0 - timedelta(days=1)) == 0

    def test_timezone_aware(self):
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert elapsed_seconds(start, start + timedelta(hours=1)) == 3600


class TestAccrue:

    def test_no_elapsed_time_returns_state_unchanged(self):
        state = make_state(total_borrowed=500 * WAD)
        assert accrue(PARAMS, state, T0) is state

    def test_clock_going_backwards_is_ignored(self):
        state = make_state(total_borrowed=500 * WAD)
        assert accrue(PARAMS, state, T0 - timedelta(days=1)) is state

    def test_zero_rates_only_advance_clock(self):
        state = make_state(total_borrowed=0)
        later = T0 + timedelta(days=30)
        result = accrue(PARAMS, state, later)
        assert result.lender_share_price == WAD
        assert result.borrower_share_price == WAD
        assert result.last_update_time == later

    def test_full_utilization_one_year(self):
        state = make_state(total_deposited=100 * WAD, total_borrowed=100 * WAD)
        result = accrue(PARAMS, state, T0 + timedelta(seconds=SECONDS_PER_YEAR))
        expected = WAD + MAX_RATE * SECONDS_PER_YEAR
        assert result.borrower_share_price == expected
        assert result.lender_share_price == expected
        assert 14 * WAD // 10 <= result.borrower_share_price <= 16 * WAD // 10

    def test_at_kink(self):
        state = make_state(total_deposited=100 * WAD, total_borrowed=95 * WAD)
        result = accrue(PARAMS, state, T0 + timedelta(seconds=1_000))
        assert result.borrower_share_price == WAD + KINK_RATE * 1_000
        assert result.lender_share_price < result.borrower_share_price

    def test_uses_current_price_as_base(self):
        state = make_state(total_deposited=100 * WAD, total_borrowed=100 * WAD, borrower_share_price=2 * WAD)
        result = accrue(PARAMS, state, T0 + timedelta(seconds=10))
        assert result.borrower_share_price == 2 * WAD + 2 * MAX_RATE * 10

    def test_compounds_across_calls(self):
        state = make_state(total_deposited=100 * WAD, total_borrowed=100 * WAD)
        half = timedelta(seconds=SECONDS_PER_YEAR // 2)
        once = accrue(PARAMS, state, T0 + 2 * half)
        twice = accrue(PARAMS, accrue(PARAMS, state, T0 + half), T0 + 2 * half)
        assert twice.borrower_share_price > once.borrower_share_price

    def test_does_not_touch_totals_or_accounts(self):
        state = make_state(total_deposited=100 * WAD, total_borrowed=50 * WAD)
        result = accrue(PARAMS, state, T0 + timedelta(days=1))
        assert result == replace(
            state,
            lender_share_price=result.lender_share_price,
            borrower_share_price=result.borrower_share_price,
            last_update_time=result.last_update_time,
        )


class TestComputeAccrual:

    def test_no_elapsed_time_is_empty(self):
        view = pool_view(PARAMS, time=T0)
        assert compute_accrual(view, "POOL").is_empty()

    def test_persists_accrued_prices(self):
        later = pool_view(PARAMS, time=T0 + timedelta(seconds=60),
                          total_deposited=100 * WAD, total_borrowed=100 * WAD)
        later._states["POOL"]["last_update_time"] = T0

        pending = compute_accrual(later, "POOL")
        assert not pending.moves
        (change,) = pending.state_changes
        assert change.new_state['borrower_share_price'] == WAD + MAX_RATE * 60
        assert change.new_state['last_update_time'] == T0 + timedelta(seconds=60)
        assert change.new_state['nonce'] == change.old_state['nonce'] + 1
        assert pending.origin.event_type == "ACCRUE"
        assert later.get_unit_state("POOL")['borrower_share_price'] == WAD

    def test_idle_pool_still_advances_clock(self):
        view = pool_view(PARAMS, time=T0 + timedelta(days=1))
        view._states["POOL"]["last_update_time"] = T0
        (change,) = compute_accrual(view, "POOL").state_changes
        assert change.changed_fields() == {'last_update_time': (T0, T0 + timedelta(days=1)), 'nonce': (0, 1)}

    def test_load_accrued_returns_snapshot(self):
        view = pool_view(PARAMS, time=T0)
        raw, params, state = load_accrued(view, "POOL")
        assert raw == view.get_unit_state("POOL")
        assert params == PARAMS
        assert state.lender_share_price == WAD


class TestUpdateOnLedger:

    def test_update_commits_accrual(self, ledger, funded_pool):
        fund(ledger, "carol", "WETH", 1_500 * WAD)
        funded_pool.deposit_collateral("carol", 1_500 * WAD)
        funded_pool.borrow("carol", 1_000 * WAD)

        advance(ledger, 3_600)
        funded_pool.update()
        state = ledger.get_unit_state("USDC_POOL")
        assert state['borrower_share_price'] == WAD + MAX_RATE * 3_600
        assert state['last_update_time'] == ledger.current_time

    def test_update_without_elapsed_time_is_noop(self, ledger, funded_pool):
        log_length = len(ledger.transaction_log)
        funded_pool.update()
        assert len(ledger.transaction_log) == log_length
