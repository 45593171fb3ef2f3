"""Risk adjustment that turns an oracle verdict into a sized trade decision."""

from __future__ import annotations

import logging

from tradeguard.domain.models import OracleVerdict, RiskMode, TradeAction, TradeDecision
from tradeguard.execution.sizing import clamp_unit, notional_to_quantity, quantize_down
from tradeguard.portfolio.ledger import PortfolioLedger
from tradeguard.risk.engine import RiskEngine

logger = logging.getLogger(__name__)


class DecisionPolicy:
    """Applies confidence discounting, mode gates, and position sizing."""

    def __init__(
        self,
        risk_engine: RiskEngine,
        ledger: PortfolioLedger,
        stable_symbol: str,
        min_confidence: float = 0.7,
        qty_precision: int = 6,
    ) -> None:
        self.risk_engine = risk_engine
        self.ledger = ledger
        self.stable_symbol = stable_symbol.upper()
        self.min_confidence = min_confidence
        self.qty_precision = qty_precision

    def finalize(
        self,
        symbol: str,
        verdict: OracleVerdict,
        price: float,
        volatility_score: float,
        portfolio_value: float,
    ) -> TradeDecision:
        confidence = clamp_unit(verdict.confidence * (1 - clamp_unit(volatility_score)))
        base = TradeDecision(
            symbol=symbol.upper(),
            action=verdict.action,
            confidence=confidence,
            potential_profit=clamp_unit(verdict.potential_profit),
            price=price,
            reason=verdict.reason,
        )

        if base.action is TradeAction.HOLD:
            return base
        if base.action is TradeAction.BUY and self.risk_engine.current_mode is RiskMode.SAFETY:
            return self._hold(base, "buying is disabled in SAFETY mode")
        if confidence < self.min_confidence:
            return self._hold(base, f"adjusted confidence {confidence:.2f} below {self.min_confidence:.2f}")
        if price <= 0:
            logger.warning("policy | %s | no usable price, holding", base.symbol)
            return self._hold(base, "no usable price")

        size = self.risk_engine.calculate_position_size(portfolio_value, volatility_score)
        if base.action is TradeAction.BUY:
            size = min(size, self._stable_balance())
        amount = notional_to_quantity(size, price, self.qty_precision)

        if base.action is TradeAction.SELL:
            held = self.ledger.position(base.symbol)
            if held is None or held.amount <= 0:
                return self._hold(base, "nothing held to sell")
            amount = min(amount, quantize_down(held.amount, self.qty_precision))

        if amount <= 0:
            return self._hold(base, "position size rounds to zero")
        return TradeDecision(
            symbol=base.symbol,
            action=base.action,
            confidence=base.confidence,
            potential_profit=base.potential_profit,
            price=price,
            amount=amount,
            reason=base.reason,
        )

    def is_special_opportunity(self, decision: TradeDecision) -> bool:
        if decision.action is TradeAction.HOLD:
            return False
        return self.risk_engine.can_switch_to_aggressive(
            decision.confidence,
            decision.potential_profit,
        )

    @staticmethod
    def format_opportunity_message(decision: TradeDecision) -> str:
        lines = [
            f"Special opportunity: {decision.symbol}",
            f"Action: {decision.action}",
            f"Confidence: {decision.confidence * 100:.1f}%",
            f"Potential profit: {decision.potential_profit * 100:.1f}%",
        ]
        if decision.reason:
            lines.append(f"Reason: {decision.reason}")
        return "\n".join(lines)

    def _stable_balance(self) -> float:
        position = self.ledger.position(self.stable_symbol)
        return position.amount if position is not None else 0.0

    @staticmethod
    def _hold(decision: TradeDecision, why: str) -> TradeDecision:
        logger.debug("policy | %s | %s -> HOLD | %s", decision.symbol, decision.action, why)
        return TradeDecision(
            symbol=decision.symbol,
            action=TradeAction.HOLD,
            confidence=decision.confidence,
            potential_profit=decision.potential_profit,
            price=decision.price,
            reason=decision.reason or why,
        )
