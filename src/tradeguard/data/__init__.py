"""Market feed implementations."""

from .base import MarketFeed
from .bybit_market_data import BybitMarketFeed

__all__ = ["BybitMarketFeed", "MarketFeed"]
