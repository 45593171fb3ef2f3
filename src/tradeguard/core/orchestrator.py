"""One trading tick: selection, data, emergency check, risk, decisions, rebalance."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from tradeguard.data.base import MarketFeed
from tradeguard.decision.analyzer import Headline, HeadlineSource, analyze_market_context
from tradeguard.decision.oracle import DecisionOracle
from tradeguard.decision.policy import DecisionPolicy
from tradeguard.domain.events import TradeEvent
from tradeguard.domain.models import (
    MarketData,
    Mode,
    OracleVerdict,
    RiskAssessment,
    RiskMode,
    TradeAction,
    TradeDecision,
)
from tradeguard.errors import DataProviderError
from tradeguard.execution.executor import TradeExecutor
from tradeguard.logging.event_sink import JsonlEventSink
from tradeguard.logging.logger import HumanLogger
from tradeguard.notify.notifier import Notifier
from tradeguard.portfolio.ledger import PortfolioLedger
from tradeguard.portfolio.rebalancer import PortfolioRebalancer
from tradeguard.risk.emergency import EmergencyProtocol
from tradeguard.risk.engine import RiskEngine

logger = logging.getLogger(__name__)


class TickStatus(StrEnum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    NO_SYMBOLS = "no_symbols"
    EMERGENCY = "emergency"
    FAILED = "failed"


@dataclass(frozen=True)
class TickResult:
    """Outcome of one orchestrator tick."""

    tick: int
    status: TickStatus
    symbols: list[str] = field(default_factory=list)
    decisions: list[TradeDecision] = field(default_factory=list)
    executed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    rebalanced: list[TradeDecision] = field(default_factory=list)
    assessment: RiskAssessment | None = None


class CycleOrchestrator:
    """Runs the fixed tick sequence; a tick never propagates an exception."""

    def __init__(
        self,
        feed: MarketFeed,
        oracle: DecisionOracle,
        policy: DecisionPolicy,
        executor: TradeExecutor,
        risk_engine: RiskEngine,
        ledger: PortfolioLedger,
        emergency: EmergencyProtocol,
        rebalancer: PortfolioRebalancer,
        notifier: Notifier,
        stable_symbol: str,
        symbol_limit: int = 3,
        rebalance_weekday: int = 0,
        rebalance_hour: int = 8,
        human_logger: HumanLogger | None = None,
        event_sink: JsonlEventSink | None = None,
        run_id: str = "",
        mode: Mode = "paper",
        headline_source: HeadlineSource | None = None,
    ) -> None:
        self.feed = feed
        self.oracle = oracle
        self.policy = policy
        self.executor = executor
        self.risk_engine = risk_engine
        self.ledger = ledger
        self.emergency = emergency
        self.rebalancer = rebalancer
        self.notifier = notifier
        self.stable_symbol = stable_symbol.upper()
        self.symbol_limit = symbol_limit
        self.rebalance_weekday = rebalance_weekday
        self.rebalance_hour = rebalance_hour
        self.human_logger = human_logger
        self.event_sink = event_sink
        self.run_id = run_id
        self.mode = mode
        self.headline_source = headline_source
        self.tick_count = 0
        self._busy = threading.Lock()
        self._last_rebalance: date | None = None

    def run_tick(self, now: datetime | None = None) -> TickResult:
        if not self._busy.acquire(blocking=False):
            logger.warning("tick | skipped | previous tick still running")
            return TickResult(tick=self.tick_count, status=TickStatus.SKIPPED)
        try:
            self.tick_count += 1
            current = now or datetime.now(tz=UTC)
            try:
                return self._run_tick(self.tick_count, current)
            except Exception as exc:
                logger.exception("tick | #%d | failed", self.tick_count)
                self._log_error(f"tick #{self.tick_count} failed: {exc}")
                self._emit("tick_failed", {"tick": self.tick_count, "error": str(exc)})
                return TickResult(tick=self.tick_count, status=TickStatus.FAILED)
        finally:
            self._busy.release()

    def _run_tick(self, tick: int, now: datetime) -> TickResult:
        symbols = [symbol.upper() for symbol in self.feed.rank_symbols(self.symbol_limit)]
        if self.human_logger is not None:
            self.human_logger.tick(tick, symbols, self.risk_engine.current_mode)
        if not symbols:
            logger.warning("tick | #%d | no symbols to trade, aborting", tick)
            self._emit("no_symbols", {"tick": tick})
            return TickResult(tick=tick, status=TickStatus.NO_SYMBOLS)

        market_data, prices = self.snapshot(symbols)

        if self.emergency.check_and_activate(prices):
            self._emit("emergency", {"tick": tick, "portfolio_value": self.ledger.valuation(prices)})
            return TickResult(tick=tick, status=TickStatus.EMERGENCY, symbols=symbols)

        assessment = self.risk_engine.evaluate_risk(prices)
        scored = dict(market_data)
        scored[self.stable_symbol] = MarketData(self.stable_symbol, 1.0, 0.0, 0.0)
        report = self.risk_engine.risk_report(scored, now=now, ignore={self.stable_symbol})
        if report.risk_positions:
            logger.warning("risk | over limit | %s", ", ".join(report.risk_positions))
        portfolio_value = self.ledger.valuation(prices)
        if self.human_logger is not None:
            self.human_logger.risk(assessment, report)
        self._emit(
            "risk",
            {
                "tick": tick,
                "portfolio_value": portfolio_value,
                "drawdown_percent": assessment.drawdown_percent,
                "sharpe_ratio": report.sharpe_ratio,
                "risk_positions": report.risk_positions,
            },
        )

        decisions: list[TradeDecision] = []
        executed: list[str] = []
        failed: list[str] = []
        special_seen = False
        for symbol in symbols:
            try:
                decision = self._decide(symbol, market_data[symbol], portfolio_value)
                decisions.append(decision)
                if self.policy.is_special_opportunity(decision):
                    special_seen = True
                    self._on_special_opportunity(decision)
                if self.executor.execute(decision):
                    if decision.action is not TradeAction.HOLD:
                        executed.append(symbol)
                        self._emit("order", self._decision_payload(decision))
                else:
                    failed.append(symbol)
            except Exception as exc:
                logger.exception("tick | %s | processing failed", symbol)
                self._log_error(f"{symbol}: {exc}")
                failed.append(symbol)

        if not special_seen and self.risk_engine.current_mode is RiskMode.AGGRESSIVE:
            self._switch_mode(RiskMode.NORMAL, "no special opportunity this tick")

        rebalanced: list[TradeDecision] = []
        if self.is_rebalance_window(now):
            try:
                rebalanced = self.rebalancer.rebalance(prices)
                self._last_rebalance = now.astimezone(UTC).date()
                self._emit("rebalance", {"tick": tick, "trims": len(rebalanced)})
            except Exception as exc:
                logger.exception("rebalance | failed")
                self._log_error(f"rebalance failed: {exc}")

        self._log_holdings(prices)
        self._emit(
            "tick",
            {"tick": tick, "symbols": symbols, "executed": executed, "failed": failed},
        )
        return TickResult(
            tick=tick,
            status=TickStatus.COMPLETED,
            symbols=symbols,
            decisions=decisions,
            executed=executed,
            failed=failed,
            rebalanced=rebalanced,
            assessment=assessment,
        )

    def fetch_market_data(self, symbols: list[str]) -> dict[str, MarketData]:
        """Fetch each symbol independently; failures yield zero-valued placeholders."""
        market_data: dict[str, MarketData] = {}
        for symbol in symbols:
            try:
                market_data[symbol] = self.feed.get_market_data(symbol)
            except DataProviderError as exc:
                logger.warning("data | %s | fetch failed, using placeholder | %s", symbol, exc)
                market_data[symbol] = MarketData.placeholder(symbol)
            except Exception:
                logger.exception("data | %s | unexpected feed error, using placeholder", symbol)
                market_data[symbol] = MarketData.placeholder(symbol)
        return market_data

    def snapshot(
        self,
        candidates: list[str] | None = None,
    ) -> tuple[dict[str, MarketData], dict[str, float]]:
        """Market data for candidates plus holdings, and the valuation price map."""
        market_data = self.fetch_market_data(self._symbols_to_price(candidates or []))
        return market_data, self._price_map(market_data)

    def is_rebalance_window(self, now: datetime) -> bool:
        """True once per day inside the configured UTC weekday and hour."""
        current = now.astimezone(UTC) if now.tzinfo else now.replace(tzinfo=UTC)
        if current.weekday() != self.rebalance_weekday or current.hour != self.rebalance_hour:
            return False
        return self._last_rebalance != current.date()

    def _decide(self, symbol: str, data: MarketData, portfolio_value: float) -> TradeDecision:
        if data.price <= 0:
            logger.warning("data | %s | degraded, no price this tick", symbol)
        context = analyze_market_context(data, self._headlines(symbol))
        try:
            verdict = self.oracle.decide(symbol, context)
        except Exception as exc:
            logger.error("oracle | %s | failed, holding | %s", symbol, exc)
            verdict = OracleVerdict(
                action=TradeAction.HOLD,
                confidence=0.0,
                potential_profit=0.0,
                reason=f"oracle unavailable: {exc}",
            )
        decision = self.policy.finalize(
            symbol,
            verdict,
            price=data.price,
            volatility_score=context.volatility_score,
            portfolio_value=portfolio_value,
        )
        if self.human_logger is not None:
            self.human_logger.decision(decision)
        self._emit("decision", self._decision_payload(decision))
        return decision

    def _headlines(self, symbol: str) -> Sequence[Headline]:
        if self.headline_source is None:
            return ()
        try:
            return self.headline_source.headlines(symbol)
        except Exception as exc:
            logger.warning("news | %s | unavailable, using numeric context only | %s", symbol, exc)
            return ()

    def _on_special_opportunity(self, decision: TradeDecision) -> None:
        self.notifier.alert(self.policy.format_opportunity_message(decision))
        if self.risk_engine.current_mode is RiskMode.NORMAL:
            self._switch_mode(RiskMode.AGGRESSIVE, f"special opportunity on {decision.symbol}")

    def _switch_mode(self, target: RiskMode, reason: str) -> None:
        previous = self.risk_engine.current_mode
        self.risk_engine.set_mode(target)
        if self.human_logger is not None:
            self.human_logger.mode(previous, target, reason)
        self._emit("mode", {"from": str(previous), "to": str(target), "reason": reason})

    def _symbols_to_price(self, candidates: list[str]) -> list[str]:
        symbols = list(candidates)
        for holding in self.ledger.holdings():
            if holding.symbol != self.stable_symbol and holding.symbol not in symbols:
                symbols.append(holding.symbol)
        return symbols

    def _price_map(self, market_data: dict[str, MarketData]) -> dict[str, float]:
        """Tick prices for valuation; held symbols without a quote are marked at entry."""
        prices = {symbol: data.price for symbol, data in market_data.items() if data.price > 0}
        for holding in self.ledger.holdings():
            if holding.symbol == self.stable_symbol or holding.symbol in prices:
                continue
            logger.warning("data | %s | no quote, marking at entry price", holding.symbol)
            prices[holding.symbol] = holding.entry_price
        prices[self.stable_symbol] = 1.0
        return prices

    def _log_holdings(self, prices: dict[str, float]) -> None:
        if self.human_logger is None:
            return
        holdings = self.ledger.holdings()
        cash = 0.0
        for position in holdings:
            if position.symbol == self.stable_symbol:
                cash = position.amount
                continue
            self.human_logger.position(position, prices.get(position.symbol))
        self.human_logger.portfolio(
            PortfolioLedger.value_of(holdings, prices),
            cash,
            self.risk_engine.limits.initial_balance,
        )

    def _log_error(self, message: str) -> None:
        if self.human_logger is not None:
            self.human_logger.error(message)

    @staticmethod
    def _decision_payload(decision: TradeDecision) -> dict[str, Any]:
        return {
            "symbol": decision.symbol,
            "action": str(decision.action),
            "amount": decision.amount or 0.0,
            "price": decision.price,
            "confidence": decision.confidence,
            "potential_profit": decision.potential_profit,
        }

    def _emit(self, event_type: str, payload: dict[str, Any]) -> None:
        if self.event_sink is None:
            return
        self.event_sink.emit(
            TradeEvent(
                run_id=self.run_id,
                mode=self.mode,
                risk_mode=str(self.risk_engine.current_mode),
                event_type=event_type,
                payload=payload,
            )
        )
