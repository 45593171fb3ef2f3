from __future__ import annotations

from tradeguard.domain.models import RiskLimits, RiskMode, TradeAction, TradeDecision
from tradeguard.portfolio.ledger import PortfolioLedger
from tradeguard.portfolio.rebalancer import PortfolioRebalancer
from tradeguard.risk.emergency import EmergencyProtocol
from tradeguard.risk.engine import RiskEngine


class RecordingLiquidator:
    def __init__(self, ledger: PortfolioLedger) -> None:
        self.ledger = ledger
        self.decisions: list[TradeDecision] = []

    def execute(self, decision: TradeDecision) -> bool:
        self.decisions.append(decision)
        self.ledger.apply_delta(decision.symbol, decision.signed_amount, decision.price)
        self.ledger.apply_delta("USDT", -decision.signed_amount * decision.price, 1.0)
        return True


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def alert(self, message: str) -> None:
        self.messages.append(message)


def build_protocol(ledger: PortfolioLedger) -> tuple[EmergencyProtocol, RecordingLiquidator, RecordingNotifier]:
    engine = RiskEngine(ledger, RiskLimits(initial_balance=50, emergency_threshold=0.08))
    liquidator = RecordingLiquidator(ledger)
    rebalancer = PortfolioRebalancer(ledger, liquidator, max_asset_percent=0.2, stable_symbol="USDT")
    notifier = RecordingNotifier()
    return EmergencyProtocol(engine, rebalancer, "USDT", notifier=notifier), liquidator, notifier


def test_drawdown_activates_once_and_liquidates(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("USDT", 30, 1.0)
    ledger.apply_delta("BTCUSDT", 0.001, 20000)
    protocol, liquidator, notifier = build_protocol(ledger)
    prices = {"USDT": 1.0, "BTCUSDT": 16000}

    assert protocol.check_and_activate(prices) is True
    assert protocol.risk_engine.current_mode is RiskMode.SAFETY
    assert [decision.action for decision in liquidator.decisions] == [TradeAction.SELL]
    assert [position.symbol for position in ledger.holdings()] == ["USDT"]
    assert len(notifier.messages) == 1

    assert protocol.check_and_activate(prices) is False
    assert len(liquidator.decisions) == 1
    assert len(notifier.messages) == 1


def test_no_activation_without_drawdown(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("USDT", 50, 1.0)
    protocol, liquidator, notifier = build_protocol(ledger)

    assert protocol.check_and_activate({"USDT": 1.0}) is False
    assert liquidator.decisions == []
    assert notifier.messages == []
