from __future__ import annotations

import pytest

from tradeguard.brokers.paper_broker import PaperBroker
from tradeguard.domain.models import TradeAction, TradeDecision
from tradeguard.errors import BrokerError


def _decision(action: TradeAction, amount: float | None) -> TradeDecision:
    return TradeDecision("SOLUSDT", action, 0.9, 0.1, price=25.0, amount=amount)


def test_fills_immediately_at_decision_price() -> None:
    broker = PaperBroker()

    receipt = broker.execute(_decision(TradeAction.BUY, 2.0))

    assert receipt.status == "filled"
    assert receipt.qty == 2.0
    assert receipt.raw["filled_avg_price"] == 25.0
    assert broker.fills == [receipt]


@pytest.mark.parametrize(
    ("action", "amount"),
    [(TradeAction.HOLD, 1.0), (TradeAction.BUY, 0.0), (TradeAction.SELL, None)],
)
def test_unfillable_decisions_raise(action: TradeAction, amount: float | None) -> None:
    with pytest.raises(BrokerError):
        PaperBroker().execute(_decision(action, amount))
