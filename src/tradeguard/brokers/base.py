"""Broker contract definitions."""

from __future__ import annotations

from typing import Protocol

from tradeguard.domain.models import OrderReceipt, TradeDecision


class Broker(Protocol):
    """Interface for live and paper order execution."""

    def execute(self, decision: TradeDecision) -> OrderReceipt:
        """Submit a BUY or SELL decision and return the venue receipt.

        Raises ``BrokerError`` when the venue cannot be reached or rejects
        the request outright.
        """
