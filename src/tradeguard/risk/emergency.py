"""Drawdown trip-wire that forces SAFETY mode and exits into the stable asset."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from tradeguard.domain.models import RiskMode
from tradeguard.notify.notifier import Notifier
from tradeguard.portfolio.rebalancer import PortfolioRebalancer
from tradeguard.risk.engine import RiskEngine

logger = logging.getLogger(__name__)


class EmergencyProtocol:
    def __init__(
        self,
        risk_engine: RiskEngine,
        rebalancer: PortfolioRebalancer,
        stable_symbol: str,
        notifier: Notifier | None = None,
    ) -> None:
        self.risk_engine = risk_engine
        self.rebalancer = rebalancer
        self.stable_symbol = stable_symbol.upper()
        self.notifier = notifier

    def check_and_activate(self, prices: Mapping[str, float]) -> bool:
        """Return True when the protocol fired; the caller must stop trading this tick."""
        previous_mode = self.risk_engine.current_mode
        assessment = self.risk_engine.evaluate_risk(prices)
        if not assessment.emergency or previous_mode is RiskMode.SAFETY:
            return False
        self._activate(prices, assessment.drawdown_percent)
        return True

    def _activate(self, prices: Mapping[str, float], drawdown_percent: float) -> None:
        logger.warning("emergency | activating | drawdown %.2f%%", drawdown_percent)
        self.risk_engine.set_mode(RiskMode.SAFETY)
        self.rebalancer.liquidate_to_stable(prices, self.stable_symbol)
        logger.error("emergency | trading halted for this cycle")
        if self.notifier is not None:
            self.notifier.alert(
                f"Emergency protocol activated: drawdown {drawdown_percent:.2f}%. "
                f"Portfolio moved to {self.stable_symbol}."
            )
