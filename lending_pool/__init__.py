"""
lending_pool - Lending pool accrual and solvency engine

A two-sided lending pool on top of a double-entry token ledger: lenders
deposit the pool asset for lender shares, borrowers post collateral and
borrow against it, interest accrues through two share prices, and
under-collateralized accounts are liquidated in full.

Usage:
    from lending_pool import (
        Ledger, LendingPool, PoolParameters, StaticPriceOracle, token, WAD,
        SYSTEM_WALLET, Move, build_transaction,
    )

    ledger = Ledger("main", test_mode=True)
    ledger.register_unit(token("USDC", "USD Coin"))
    ledger.register_unit(token("WETH", "Wrapped Ether"))
    for wallet in ("alice", "bob"):
        ledger.register_wallet(wallet)

    # Fund wallets via SYSTEM_WALLET (proper issuance)
    ledger.execute(build_transaction(ledger, [
        Move(1_000 * WAD, "USDC", SYSTEM_WALLET, "alice", "faucet"),
        Move(300 * WAD, "WETH", SYSTEM_WALLET, "bob", "faucet"),
    ]))

    pool = LendingPool(ledger, "USDC_POOL", PoolParameters("USDC", "WETH", "USDC-LP"),
                       StaticPriceOracle(10**8))
    pool.deposit("alice", 1_000 * WAD)
    pool.deposit_collateral("bob", 200 * WAD)
    pool.borrow("bob", 100 * WAD)
"""

__version__ = "0.1.0"

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    empty_pending_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    LedgerError,
    UnitNotRegistered,
    WalletNotRegistered,
    TransferFailed,
    PoolError,
    Slippage,
    InsufficientLiquidity,
    MinCollateralization,
    InsufficientCollateral,
    HealthyAccount,
    token,
    SYSTEM_WALLET,
    UNIT_TYPE_TOKEN,
    UNIT_TYPE_LENDER_SHARE,
    UNIT_TYPE_LENDING_POOL,
)

# Ledger
from .ledger import Ledger

# Fixed-point math and the rate curve
from .fixed_point import WAD, MAX_UINT, SECONDS_PER_YEAR, mul_div_down, sub_floor_zero
from .interest_rate import OPTIMAL_UTILIZATION, KINK_RATE, MAX_RATE, rates, utilization

# Oracles
from .oracle import OracleQuote, PriceOracle, StaticPriceOracle, TimeSeriesPriceOracle

# Pool state
from .pool import (
    PoolParameters,
    PoolState,
    BorrowerAccount,
    MIN_COLLATERALIZATION_RATIO,
    LIQUIDATION_THRESHOLD,
    load_pool,
    create_lending_pool,
    create_lender_share_unit,
)

# Operations
from .accrual import accrue, compute_accrual
from .liquidity import compute_deposit, compute_redeem
from .borrowing import (
    calculate_collateral_value,
    calculate_debt_value,
    calculate_collateralization_ratio,
    compute_deposit_collateral,
    compute_withdraw_collateral,
    compute_borrow,
    compute_repay,
)
from .liquidation import calculate_can_liquidate, compute_liquidation
from .events import (
    Deposit, Redeem, DepositCollateral, WithdrawCollateral, Borrow, Repay, Liquidate,
    PoolAction,
)

# Service
from .engine import LendingPool
