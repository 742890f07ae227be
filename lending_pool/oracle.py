"""
oracle.py - Collateral price oracles

Provides the price feed the pool uses to value collateral in pool-asset terms.

Classes:
- OracleQuote: Immutable (price, decimals, updated_at) observation
- PriceOracle: Protocol defining the oracle interface
- StaticPriceOracle: Settable, time-independent price
- TimeSeriesPriceOracle: Time-varying prices with historical data

Prices are positive integers with a fixed decimal scale: a price of
100_000_000 with 8 decimals means one collateral unit is worth one pool-asset
unit. Quotes are trusted as-is; there is no staleness check.
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol, Tuple, runtime_checkable


@dataclass(frozen=True, slots=True)
class OracleQuote:
    """A single oracle observation."""
    price: int
    decimals: int
    updated_at: datetime

    def __post_init__(self):
        if isinstance(self.price, bool) or not isinstance(self.price, int) or self.price <= 0:
            raise ValueError(f"oracle price must be a positive integer, got {self.price!r}")
        if self.decimals < 0:
            raise ValueError(f"oracle decimals cannot be negative, got {self.decimals}")


@runtime_checkable
class PriceOracle(Protocol):
    """
    Protocol for collateral price oracles.

    Implementations return the most recent quote available at `timestamp`.
    """

    def latest_price(self, timestamp: datetime) -> OracleQuote:
        ...


class StaticPriceOracle:
    """
    Oracle with a single settable price (time-independent).

    The quote's updated_at is the time of the last update_price() call.
    """

    def __init__(self, price: int, decimals: int = 8, updated_at: Optional[datetime] = None):
        self.decimals = decimals
        self._quote = OracleQuote(price, decimals, updated_at or datetime(1970, 1, 1))

    def latest_price(self, timestamp: datetime) -> OracleQuote:
        """Get the static quote (timestamp is ignored)."""
        return self._quote

    def update_price(self, price: int, updated_at: Optional[datetime] = None) -> None:
        """Replace the price; keeps the previous updated_at when none is given."""
        self._quote = OracleQuote(price, self.decimals, updated_at or self._quote.updated_at)

    def __repr__(self):
        return f"StaticPriceOracle({self._quote.price}e-{self.decimals})"


class TimeSeriesPriceOracle:
    """
    Oracle with time-varying prices.

    Returns the most recent observation at or before the requested timestamp.

    Examples:
        oracle = TimeSeriesPriceOracle(decimals=8)
        oracle.add_price(datetime(2025, 1, 1), 2_000 * 10**8)

        oracle = TimeSeriesPriceOracle([(t0, 100), (t1, 102)], decimals=0)
    """

    def __init__(
        self,
        price_path: Optional[List[Tuple[datetime, int]]] = None,
        decimals: int = 8,
    ):
        self.decimals = decimals
        self.history: List[Tuple[datetime, int]] = []
        if price_path:
            for timestamp, price in price_path:
                OracleQuote(price, decimals, timestamp)
            self.history = sorted(price_path, key=lambda x: x[0])

    def add_price(self, timestamp: datetime, price: int) -> None:
        """Add an observation, keeping the history in timestamp order."""
        OracleQuote(price, self.decimals, timestamp)
        self.history.append((timestamp, price))
        self.history.sort(key=lambda x: x[0])

    def latest_price(self, timestamp: datetime) -> OracleQuote:
        """
        Get the quote at or before `timestamp`.

        Raises:
            ValueError: if there is no observation at or before `timestamp`
        """
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, timestamp)
        if idx == 0:
            raise ValueError(f"No oracle price at or before {timestamp}")
        updated_at, price = self.history[idx - 1]
        return OracleQuote(price, self.decimals, updated_at)

    def __repr__(self):
        return f"TimeSeriesPriceOracle({len(self.history)} observations, decimals={self.decimals})"
