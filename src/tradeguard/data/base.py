"""Market feed contract."""

from __future__ import annotations

from typing import Protocol

from tradeguard.domain.models import MarketData


class MarketFeed(Protocol):
    """Interface for ticker snapshots and symbol selection."""

    def get_market_data(self, symbol: str) -> MarketData:
        """Return the latest price, volume, and 24h change; raises on failure."""

    def rank_symbols(self, limit: int) -> list[str]:
        """Return up to limit tradeable symbols, best first; [] on failure."""
