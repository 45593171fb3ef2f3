"""Position ledger and rebalancing."""

from .ledger import PortfolioLedger
from .rebalancer import Liquidator, PortfolioRebalancer

__all__ = ["Liquidator", "PortfolioLedger", "PortfolioRebalancer"]
