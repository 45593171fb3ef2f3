"""Order submission plus ledger bookkeeping for filled decisions."""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime

from tradeguard.brokers.base import Broker
from tradeguard.domain.models import DecisionRecord, OrderReceipt, TradeAction, TradeDecision
from tradeguard.errors import BrokerError, LedgerError
from tradeguard.logging.logger import HumanLogger
from tradeguard.portfolio.ledger import PortfolioLedger
from tradeguard.risk.engine import RiskEngine

logger = logging.getLogger(__name__)


class TradeExecutor:
    """Sends decisions to the broker and books fills against the ledger.

    A BUY debits the stable asset by the quote notional and a SELL credits
    it, so portfolio valuation keeps tracking cash.
    """

    def __init__(
        self,
        broker: Broker,
        ledger: PortfolioLedger,
        risk_engine: RiskEngine,
        stable_symbol: str,
        human_logger: HumanLogger | None = None,
    ) -> None:
        self.broker = broker
        self.ledger = ledger
        self.risk_engine = risk_engine
        self.stable_symbol = stable_symbol.upper()
        self.human_logger = human_logger

    def execute(self, decision: TradeDecision) -> bool:
        if decision.action is TradeAction.HOLD:
            return True
        if not decision.amount or decision.amount <= 0:
            logger.warning("execute | %s | no quantity, skipping", decision.symbol)
            self._record(decision, executed=False, note="no quantity")
            return False

        if self.human_logger is not None:
            self.human_logger.order_submit(
                decision.symbol,
                decision.action,
                decision.amount,
                reference_price=decision.price,
            )
        try:
            receipt = self.broker.execute(decision)
        except BrokerError as exc:
            logger.error("execute | %s | broker error | %s", decision.symbol, exc)
            self._record(decision, executed=False, note=str(exc))
            return False
        if not receipt.accepted:
            logger.error("execute | %s | order rejected | %s", decision.symbol, receipt.status)
            self._record(decision, executed=False, note=f"rejected: {receipt.status}")
            return False
        if self.human_logger is not None:
            self.human_logger.order_update(receipt.order_id, receipt.status, receipt.raw)

        booked = self._book_fill(decision, receipt)
        self._record(decision, executed=booked)
        return booked

    def _book_fill(self, decision: TradeDecision, receipt: OrderReceipt) -> bool:
        quantity = receipt.qty if receipt.qty > 0 else float(decision.amount or 0.0)
        price = self._fill_price(decision, receipt)
        signed = math.copysign(quantity, decision.signed_amount)

        legs = [(decision.symbol, signed, price)]
        if decision.symbol.upper() != self.stable_symbol and price > 0:
            legs.append((self.stable_symbol, -signed * price, 1.0))
        # Coin and cash legs commit together or not at all.
        if not self.ledger.apply_deltas(legs):
            logger.error(
                "execute | %s | order %s filled but ledger update failed",
                decision.symbol,
                receipt.order_id,
            )
            return False
        return True

    @staticmethod
    def _fill_price(decision: TradeDecision, receipt: OrderReceipt) -> float:
        raw_price = receipt.raw.get("filled_avg_price")
        try:
            price = float(raw_price) if raw_price is not None else 0.0
        except (TypeError, ValueError):
            price = 0.0
        return price if price > 0 else decision.price

    def _record(self, decision: TradeDecision, executed: bool, note: str | None = None) -> None:
        reason = decision.reason
        if note:
            reason = f"{reason} [{note}]" if reason else note
        record = DecisionRecord(
            symbol=decision.symbol,
            action=str(decision.action),
            amount=decision.amount,
            price=decision.price,
            confidence=decision.confidence,
            potential_profit=decision.potential_profit,
            risk_mode=str(self.risk_engine.current_mode),
            executed=executed,
            reason=reason,
            created_ts=datetime.now(tz=UTC).isoformat(),
        )
        try:
            self.ledger.store.record_decision(record)
        except LedgerError as exc:
            logger.error("execute | %s | decision log write failed | %s", decision.symbol, exc)
