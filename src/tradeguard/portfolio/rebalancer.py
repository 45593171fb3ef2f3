"""Proportional rebalancing and emergency liquidation into the stable asset."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

from tradeguard.domain.models import TradeAction, TradeDecision
from tradeguard.execution.sizing import quantize_down
from tradeguard.portfolio.ledger import PortfolioLedger

logger = logging.getLogger(__name__)


class Liquidator(Protocol):
    """Narrow execution capability: submit a decision and record the fill."""

    def execute(self, decision: TradeDecision) -> bool:
        """Return True when the decision was executed."""


class PortfolioRebalancer:
    """Trims overweight positions back to the maximum per-asset share."""

    def __init__(
        self,
        ledger: PortfolioLedger,
        liquidator: Liquidator,
        max_asset_percent: float,
        stable_symbol: str,
        min_trade_notional: float = 0.0,
        qty_precision: int = 6,
    ) -> None:
        self.ledger = ledger
        self.liquidator = liquidator
        self.max_asset_percent = max_asset_percent
        self.stable_symbol = stable_symbol.upper()
        self.min_trade_notional = min_trade_notional
        self.qty_precision = qty_precision

    def rebalance(self, prices: Mapping[str, float]) -> list[TradeDecision]:
        """Sell the excess of every position above the target share."""
        holdings = self.ledger.holdings()
        portfolio_value = PortfolioLedger.value_of(holdings, prices)
        if portfolio_value <= 0:
            logger.info("rebalance | skipped | portfolio value is zero")
            return []

        issued: list[TradeDecision] = []
        for holding in holdings:
            if holding.symbol == self.stable_symbol:
                continue
            price = float(prices.get(holding.symbol, 0.0))
            asset_share = holding.market_value(price) / portfolio_value
            if asset_share <= self.max_asset_percent:
                continue
            excess_share = asset_share - self.max_asset_percent
            amount_to_sell = quantize_down(
                holding.amount * (excess_share / asset_share),
                self.qty_precision,
            )
            if amount_to_sell <= 0 or amount_to_sell * price < self.min_trade_notional:
                logger.debug("rebalance | %s | trim below minimum notional", holding.symbol)
                continue
            logger.info(
                "rebalance | %s | sell %.6f | share %.1f%% -> %.1f%%",
                holding.symbol,
                amount_to_sell,
                asset_share * 100,
                self.max_asset_percent * 100,
            )
            decision = TradeDecision(
                symbol=holding.symbol,
                action=TradeAction.SELL,
                confidence=1.0,
                potential_profit=0.0,
                price=price,
                amount=amount_to_sell,
                reason="Automatic portfolio rebalance",
            )
            self.liquidator.execute(decision)
            issued.append(decision)
        logger.info("rebalance | done | %d trims", len(issued))
        return issued

    def liquidate_to_stable(
        self,
        prices: Mapping[str, float],
        stable_symbol: str | None = None,
    ) -> list[TradeDecision]:
        """Exit every non-stable position in full, whatever its share."""
        stable = (stable_symbol or self.stable_symbol).upper()
        issued: list[TradeDecision] = []
        for holding in self.ledger.holdings():
            if holding.symbol == stable:
                continue
            price = prices.get(holding.symbol)
            if price is None:
                logger.warning("liquidate | %s | no price, exiting at zero mark", holding.symbol)
            decision = TradeDecision(
                symbol=holding.symbol,
                action=TradeAction.SELL,
                confidence=1.0,
                potential_profit=0.0,
                price=float(price or 0.0),
                amount=holding.amount,
                reason="Emergency move to stable asset",
            )
            # Keep liquidating the rest when one exit fails.
            try:
                self.liquidator.execute(decision)
            except Exception as exc:
                logger.error("liquidate | %s | failed | %s", holding.symbol, exc)
            issued.append(decision)
        logger.warning("liquidate | done | %d positions moved to %s", len(issued), stable)
        return issued
