"""Portfolio ledger: position mutation and valuation over the ledger store."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime

from tradeguard.domain.models import Position
from tradeguard.errors import LedgerError
from tradeguard.state.store import LedgerStore

logger = logging.getLogger(__name__)


class PortfolioLedger:
    """Owns held positions and their money-weighted accounting.

    Every mutation goes through :meth:`apply_delta`; valuation helpers read a
    fresh snapshot from the store on each call so nothing is cached across
    ticks.
    """

    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    def apply_delta(
        self,
        symbol: str,
        quantity_delta: float,
        price: float,
        now: datetime | None = None,
    ) -> bool:
        """Apply a signed quantity change at price; False when the store rolled back."""
        try:
            result = self.store.apply_delta(symbol, quantity_delta, price, now=now)
        except LedgerError as exc:
            logger.error("ledger | %s | update failed | %s", symbol, exc)
            return False
        self._log_delta(symbol, quantity_delta, price, result)
        return True

    def apply_deltas(
        self,
        deltas: Sequence[tuple[str, float, float]],
        now: datetime | None = None,
    ) -> bool:
        """Apply every leg or none of them; False when the store rolled back."""
        try:
            results = self.store.apply_deltas(deltas, now=now)
        except LedgerError as exc:
            logger.error("ledger | %s | update failed | %s", ", ".join(leg[0] for leg in deltas), exc)
            return False
        for (symbol, quantity_delta, price), result in zip(deltas, results):
            self._log_delta(symbol, quantity_delta, price, result)
        return True

    def holdings(self) -> list[Position]:
        return self.store.list_positions()

    def position(self, symbol: str) -> Position | None:
        return self.store.get_position(symbol)

    def valuation(self, prices: Mapping[str, float]) -> float:
        """Sum price * amount over holdings; unpriced positions count as zero."""
        return self.value_of(self.holdings(), prices)

    def share(self, symbol: str, prices: Mapping[str, float]) -> float:
        """Fraction of the valuation held in symbol, 0 when not held or nothing is valued."""
        holdings = self.holdings()
        total = self.value_of(holdings, prices)
        if total <= 0:
            return 0.0
        for position in holdings:
            if position.symbol == symbol.upper():
                return position.market_value(float(prices.get(position.symbol, 0.0))) / total
        return 0.0

    def is_overweight(
        self,
        symbol: str,
        prices: Mapping[str, float],
        max_share: float,
    ) -> bool:
        return self.share(symbol, prices) > max_share

    @staticmethod
    def _log_delta(
        symbol: str,
        quantity_delta: float,
        price: float,
        result: Position | None,
    ) -> None:
        if result is None:
            logger.info("ledger | %s | closed | delta %+.8f @ %.8f", symbol, quantity_delta, price)
            return
        logger.info(
            "ledger | %s | amount %.8f | entry %.8f | delta %+.8f @ %.8f",
            symbol,
            result.amount,
            result.entry_price,
            quantity_delta,
            price,
        )

    @staticmethod
    def value_of(holdings: list[Position], prices: Mapping[str, float]) -> float:
        total = 0.0
        for position in holdings:
            price = prices.get(position.symbol)
            if price is None:
                continue
            total += position.market_value(float(price))
        return total
