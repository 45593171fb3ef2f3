"""Deterministic in-memory broker for paper trading."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import uuid4

from tradeguard.domain.models import OrderReceipt, TradeAction, TradeDecision
from tradeguard.errors import BrokerError


@dataclass
class PaperBroker:
    """Paper broker that fills market orders immediately at the decision price."""

    fills: list[OrderReceipt] = field(default_factory=list)

    def execute(self, decision: TradeDecision) -> OrderReceipt:
        if decision.action is TradeAction.HOLD:
            raise BrokerError(f"HOLD decision for {decision.symbol} cannot be submitted")
        qty = float(decision.amount or 0.0)
        if qty <= 0:
            raise BrokerError(f"Order quantity for {decision.symbol} must be positive")
        receipt = OrderReceipt(
            order_id=str(uuid4()),
            symbol=decision.symbol,
            action=decision.action,
            qty=qty,
            status="filled",
            raw={"source": "paper", "filled_avg_price": decision.price},
        )
        self.fills.append(receipt)
        return receipt
