"""Concise human-readable run logger."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from tradeguard.domain.models import Position, RiskAssessment, RiskReport, TradeDecision


class HumanLogger:
    """Console logger with fixed line types."""

    def __init__(self, level: str = "INFO") -> None:
        self._logger = logging.getLogger("tradeguard")
        self._logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        self._logger.propagate = False
        if not self._logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s | %(message)s", "%Y-%m-%d %H:%M:%S")
            handler.setFormatter(formatter)
            self._logger.addHandler(handler)

    def run_started(self, run_id: str, mode: str, interval_seconds: int) -> None:
        self._logger.info("run | %s | mode %s | every %ss", run_id[:8], mode, interval_seconds)

    def tick(self, tick: int, symbols: list[str], risk_mode: str) -> None:
        listed = ", ".join(symbols) if symbols else "none"
        self._logger.info("tick | #%d | %s | symbols %s", tick, risk_mode, listed)

    def mode(self, previous: str, current: str, reason: str) -> None:
        self._logger.info("mode | %s -> %s | %s", previous, current, reason)

    def decision(self, decision: TradeDecision) -> None:
        parts = [
            f"decision | {decision.symbol} | {decision.action}",
            f"conf {decision.confidence * 100:.1f}%",
            f"profit {decision.potential_profit * 100:.1f}%",
        ]
        if decision.amount:
            parts.append(f"qty {self._format_qty(decision.amount)}")
        if decision.price > 0:
            parts.append(f"ref ${decision.price:,.4f}")
        self._logger.info(" | ".join(parts))

    def order_submit(
        self,
        symbol: str,
        action: str,
        qty: float,
        reference_price: float | None = None,
    ) -> None:
        normalized = action.strip().upper()
        buy_amount = qty if normalized == "BUY" else 0.0
        sell_amount = qty if normalized == "SELL" else 0.0
        buy_text = self._format_qty(buy_amount)
        sell_text = self._format_qty(sell_amount)
        if reference_price is not None and reference_price > 0:
            buy_text = f"{buy_text} (${buy_amount * reference_price:,.2f})"
            sell_text = f"{sell_text} (${sell_amount * reference_price:,.2f})"
        self._logger.info("submit | %s | buy_amount %s | sell_amount %s", symbol, buy_text, sell_text)

    def order_update(
        self,
        order_id: str,
        status: str,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        parts = [f"update | {status}"]
        if order_id:
            parts.append(f"id {self._short_id(order_id)}")
        if details:
            filled_price = self._as_float(details.get("filled_avg_price"))
            if filled_price is not None:
                parts.append(f"fill ${filled_price:,.4f}")
        self._logger.info(" | ".join(parts))

    def position(self, position: Position, price: float | None = None) -> None:
        parts = [
            f"position | {position.symbol} | qty {self._format_qty(position.amount)}",
            f"entry ${position.entry_price:,.4f}",
        ]
        if price is not None:
            value = position.market_value(price)
            cost = position.amount * position.entry_price
            parts.append(f"value ${value:,.2f}")
            parts.append(f"upl {value - cost:+,.2f}")
        self._logger.info(" | ".join(parts))

    def portfolio(self, value: float, cash: float, initial_balance: float) -> None:
        pnl = value - initial_balance
        pnl_pct = pnl / initial_balance if initial_balance > 0 else 0.0
        self._logger.info(
            "portfolio | value $%s | cash $%s | pnl %s | pnl%% %s",
            f"{value:,.2f}",
            f"{cash:,.2f}",
            f"{pnl:+,.2f}",
            f"{pnl_pct * 100.0:+,.3f}%",
        )

    def risk(self, assessment: RiskAssessment, report: RiskReport | None = None) -> None:
        parts = [f"risk | {assessment.mode} | drawdown {assessment.drawdown_percent:.2f}%"]
        if report is not None:
            parts.append(f"sharpe {report.sharpe_ratio:.3f}")
            parts.append(f"max_dd ${report.max_drawdown:,.2f}")
            if report.risk_positions:
                parts.append(f"over_limit {', '.join(report.risk_positions)}")
            if report.unpriced:
                parts.append(f"unpriced {', '.join(report.unpriced)}")
        self._logger.info(" | ".join(parts))

    def error(self, message: str) -> None:
        self._logger.error("error | %s", message)

    @staticmethod
    def _short_id(value: str | None, head: int = 10, tail: int = 6) -> str:
        if not value:
            return ""
        text = str(value)
        if len(text) <= head + tail + 1:
            return text
        return f"{text[:head]}...{text[-tail:]}"

    @staticmethod
    def _as_float(value: Any) -> float | None:
        if value is None:
            return None
        if isinstance(value, (int, float)):
            return float(value)
        text = str(value).strip()
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None

    @staticmethod
    def _format_qty(value: float, signed: bool = False, precision: int = 8) -> str:
        normalized = 0.0 if abs(float(value)) < 1e-9 else float(value)
        template = f"{{:{'+' if signed else ''}.{max(0, precision)}f}}"
        text = template.format(normalized).rstrip("0").rstrip(".")
        if text in {"", "+", "-", "-0"}:
            return "+0" if signed else "0"
        return text
