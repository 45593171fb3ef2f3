from __future__ import annotations

import pytest

from tradeguard.domain.models import TradeAction, TradeDecision
from tradeguard.portfolio.ledger import PortfolioLedger
from tradeguard.portfolio.rebalancer import PortfolioRebalancer


class BookingLiquidator:
    """Fills at the decision price and books the stable leg."""

    def __init__(self, ledger: PortfolioLedger, fail_for: set[str] | None = None) -> None:
        self.ledger = ledger
        self.fail_for = fail_for or set()
        self.decisions: list[TradeDecision] = []

    def execute(self, decision: TradeDecision) -> bool:
        self.decisions.append(decision)
        if decision.symbol in self.fail_for:
            raise RuntimeError("exchange unavailable")
        self.ledger.apply_delta(decision.symbol, decision.signed_amount, decision.price)
        self.ledger.apply_delta("USDT", -decision.signed_amount * decision.price, 1.0)
        return True


def build(ledger: PortfolioLedger, **kwargs: object) -> tuple[PortfolioRebalancer, BookingLiquidator]:
    liquidator = BookingLiquidator(ledger, **kwargs)
    rebalancer = PortfolioRebalancer(
        ledger,
        liquidator,
        max_asset_percent=0.2,
        stable_symbol="USDT",
        min_trade_notional=1.0,
    )
    return rebalancer, liquidator


def test_trim_brings_share_back_to_target_and_is_idempotent(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("USDT", 700, 1.0)
    ledger.apply_delta("BTCUSDT", 3, 100)
    prices = {"USDT": 1.0, "BTCUSDT": 100}
    rebalancer, liquidator = build(ledger)

    issued = rebalancer.rebalance(prices)

    assert len(issued) == 1
    trim = issued[0]
    assert trim.action is TradeAction.SELL
    assert trim.confidence == 1.0
    assert trim.potential_profit == 0.0
    assert trim.amount == pytest.approx(1.0, abs=1e-5)
    assert ledger.share("BTCUSDT", prices) == pytest.approx(0.2, abs=1e-6)

    assert rebalancer.rebalance(prices) == []
    assert len(liquidator.decisions) == 1


def test_rerun_without_notional_floor_issues_no_dust_sell(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("USDT", 613.37, 1.0)
    ledger.apply_delta("BTCUSDT", 2.71828, 97.31)
    prices = {"USDT": 1.0, "BTCUSDT": 97.31}
    liquidator = BookingLiquidator(ledger)
    rebalancer = PortfolioRebalancer(
        ledger,
        liquidator,
        max_asset_percent=0.2,
        stable_symbol="USDT",
    )

    assert len(rebalancer.rebalance(prices)) == 1
    assert ledger.share("BTCUSDT", prices) == pytest.approx(0.2, abs=1e-6)

    assert rebalancer.rebalance(prices) == []
    assert rebalancer.rebalance(prices) == []
    assert len(liquidator.decisions) == 1


def test_positions_within_limit_are_untouched(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("USDT", 800, 1.0)
    ledger.apply_delta("BTCUSDT", 2, 100)
    rebalancer, liquidator = build(ledger)

    assert rebalancer.rebalance({"USDT": 1.0, "BTCUSDT": 100}) == []
    assert liquidator.decisions == []


def test_stable_asset_is_never_trimmed(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("USDT", 100, 1.0)
    rebalancer, liquidator = build(ledger)

    assert rebalancer.rebalance({"USDT": 1.0}) == []
    assert liquidator.decisions == []


def test_empty_portfolio_is_skipped(ledger: PortfolioLedger) -> None:
    rebalancer, _liquidator = build(ledger)

    assert rebalancer.rebalance({}) == []


def test_liquidate_exits_every_non_stable_position(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("USDT", 10, 1.0)
    ledger.apply_delta("BTCUSDT", 0.01, 100)
    ledger.apply_delta("ETHUSDT", 0.5, 10)
    rebalancer, liquidator = build(ledger)

    issued = rebalancer.liquidate_to_stable({"USDT": 1.0, "BTCUSDT": 100, "ETHUSDT": 10})

    assert sorted(decision.symbol for decision in issued) == ["BTCUSDT", "ETHUSDT"]
    assert all(decision.action is TradeAction.SELL for decision in issued)
    assert [position.symbol for position in ledger.holdings()] == ["USDT"]
    assert ledger.position("USDT").amount == pytest.approx(16)


def test_liquidate_continues_after_a_failed_exit(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("USDT", 10, 1.0)
    ledger.apply_delta("BTCUSDT", 0.01, 100)
    ledger.apply_delta("ETHUSDT", 0.5, 10)
    rebalancer, liquidator = build(ledger, fail_for={"BTCUSDT"})

    rebalancer.liquidate_to_stable({"USDT": 1.0, "BTCUSDT": 100, "ETHUSDT": 10})

    assert len(liquidator.decisions) == 2
    assert sorted(position.symbol for position in ledger.holdings()) == ["BTCUSDT", "USDT"]
