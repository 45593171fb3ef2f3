"""Risk engine: operating-mode state machine and position sizing."""

from __future__ import annotations

import logging
import threading
from collections.abc import Collection, Mapping
from datetime import datetime

from tradeguard.domain.models import (
    MarketData,
    Position,
    PositionRisk,
    RiskAssessment,
    RiskLimits,
    RiskMode,
    RiskReport,
)
from tradeguard.errors import LedgerError, ModeTransitionError
from tradeguard.portfolio.ledger import PortfolioLedger
from tradeguard.risk import calculator

logger = logging.getLogger(__name__)

SPECIAL_OPPORTUNITY_CONFIDENCE = 0.8
SPECIAL_OPPORTUNITY_PROFIT = 0.15

ALLOWED_TRANSITIONS = {
    (RiskMode.NORMAL, RiskMode.SAFETY),
    (RiskMode.AGGRESSIVE, RiskMode.SAFETY),
    (RiskMode.SAFETY, RiskMode.NORMAL),
    (RiskMode.NORMAL, RiskMode.AGGRESSIVE),
    (RiskMode.AGGRESSIVE, RiskMode.NORMAL),
}


class RiskEngine:
    """Owns the single process-wide risk mode.

    The only writers are :meth:`evaluate_risk` and :meth:`set_mode`; both, and
    every read, go through one re-entrant lock.
    """

    def __init__(
        self,
        ledger: PortfolioLedger,
        limits: RiskLimits,
        initial_mode: RiskMode = RiskMode.NORMAL,
    ) -> None:
        self.ledger = ledger
        self.limits = limits
        self._mode = initial_mode
        self._lock = threading.RLock()

    @property
    def current_mode(self) -> RiskMode:
        with self._lock:
            return self._mode

    def set_mode(self, mode: RiskMode) -> None:
        """Switch mode; raises ModeTransitionError for transitions the machine forbids."""
        target = RiskMode(mode)
        with self._lock:
            if target is self._mode:
                return
            if (self._mode, target) not in ALLOWED_TRANSITIONS:
                raise ModeTransitionError(
                    f"Risk mode transition {self._mode} -> {target} is not allowed"
                )
            logger.info("mode | %s -> %s", self._mode, target)
            self._mode = target

    def evaluate_risk(self, prices: Mapping[str, float]) -> RiskAssessment:
        """Recompute drawdown and apply the automatic SAFETY transitions.

        ``emergency`` is only reported on the evaluation that moves the engine
        into SAFETY, so repeated calls during one drawdown do not re-trigger.
        """
        with self._lock:
            try:
                portfolio_value = self.ledger.valuation(prices)
            except LedgerError as exc:
                logger.error("risk | evaluation failed | %s", exc)
                return RiskAssessment(mode=self._mode, drawdown_percent=0.0, emergency=False)

            drawdown = calculator.drawdown(self.limits.initial_balance, portfolio_value)
            drawdown_percent = round(drawdown * 100, 2)

            if drawdown >= self.limits.emergency_threshold and self._mode is not RiskMode.SAFETY:
                logger.warning("risk | emergency | drawdown %.2f%%", drawdown_percent)
                self._mode = RiskMode.SAFETY
                return RiskAssessment(
                    mode=RiskMode.SAFETY,
                    drawdown_percent=drawdown_percent,
                    emergency=True,
                )

            if drawdown < self.limits.emergency_threshold and self._mode is RiskMode.SAFETY:
                logger.info("risk | recovered | drawdown %.2f%% | back to NORMAL", drawdown_percent)
                self._mode = RiskMode.NORMAL

            return RiskAssessment(
                mode=self._mode,
                drawdown_percent=drawdown_percent,
                emergency=False,
            )

    def calculate_position_size(self, portfolio_value: float, volatility_score: float) -> float:
        return calculator.position_size(
            portfolio_value,
            self.limits.position_size_percent,
            self.current_mode,
            volatility_score,
        )

    @staticmethod
    def can_switch_to_aggressive(confidence: float, potential_profit: float) -> bool:
        return (
            confidence > SPECIAL_OPPORTUNITY_CONFIDENCE
            and potential_profit > SPECIAL_OPPORTUNITY_PROFIT
        )

    def evaluate_position_risk(
        self,
        position: Position,
        market_data: MarketData,
        now: datetime | None = None,
    ) -> PositionRisk:
        score = calculator.position_risk(
            position,
            market_data,
            self.limits.max_asset_percent,
            now=now,
        )
        return PositionRisk(
            symbol=position.symbol,
            risk_score=score,
            over_limit=calculator.is_over_risk_limit(score, self.current_mode),
        )

    def risk_report(
        self,
        market_data: Mapping[str, MarketData],
        now: datetime | None = None,
        ignore: Collection[str] = (),
    ) -> RiskReport:
        """Summarize portfolio risk; holdings without a usable price are listed as unpriced.

        Symbols in ``ignore`` (the stable asset) count toward valuation but are
        not scored.
        """
        holdings = self.ledger.holdings()
        prices = {symbol: data.price for symbol, data in market_data.items() if data.price > 0}
        portfolio_value = PortfolioLedger.value_of(holdings, prices)

        scored: list[PositionRisk] = []
        unpriced: list[str] = []
        for holding in holdings:
            if holding.symbol in ignore:
                continue
            data = market_data.get(holding.symbol)
            if data is None or data.price <= 0:
                unpriced.append(holding.symbol)
                continue
            scored.append(self.evaluate_position_risk(holding, data, now=now))
        if unpriced:
            logger.warning("risk | no price for %s", ", ".join(unpriced))

        volatility = 0.0
        if scored:
            volatility = sum(item.risk_score for item in scored) / len(scored)

        return RiskReport(
            sharpe_ratio=calculator.sharpe_ratio(
                portfolio_value,
                self.limits.initial_balance,
                volatility,
                self.limits.risk_free_rate,
            ),
            max_drawdown=portfolio_value * self.limits.max_drawdown,
            risk_positions=[item.symbol for item in scored if item.over_limit],
            unpriced=unpriced,
        )
