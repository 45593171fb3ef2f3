"""Core trading domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

Mode = Literal["paper", "live"]


class RiskMode(StrEnum):
    """Operating modes of the risk engine."""

    NORMAL = "NORMAL"
    AGGRESSIVE = "AGGRESSIVE"
    SAFETY = "SAFETY"


class TradeAction(StrEnum):
    """Actions a decision can carry."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


@dataclass(frozen=True)
class Position:
    """Held quantity of one symbol with its money-weighted cost basis."""

    symbol: str
    amount: float
    entry_price: float
    entry_time: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def market_value(self, price: float) -> float:
        return self.amount * price


@dataclass(frozen=True)
class MarketData:
    """Latest ticker snapshot; change_24h is expressed in percent."""

    symbol: str
    price: float
    volume: float
    change_24h: float
    liquidity: float = 0.0

    @classmethod
    def placeholder(cls, symbol: str) -> MarketData:
        """Zero-valued stand-in used when a fetch fails."""
        return cls(symbol=symbol, price=0.0, volume=0.0, change_24h=0.0, liquidity=0.0)


@dataclass(frozen=True)
class MarketContext:
    """Numeric market and news summary handed to the decision oracle."""

    volatility_score: float
    volume_score: float
    news_sentiment: float = 0.0
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class OracleVerdict:
    """Structured output of the decision oracle."""

    action: TradeAction
    confidence: float
    potential_profit: float
    reason: str | None = None


@dataclass(frozen=True)
class TradeDecision:
    """Decision flowing from the oracle through risk sizing into execution.

    ``amount`` is a base-asset quantity, so it maps one-to-one onto the
    ledger delta once the order is filled.
    """

    symbol: str
    action: TradeAction
    confidence: float
    potential_profit: float
    price: float
    amount: float | None = None
    reason: str | None = None

    @property
    def signed_amount(self) -> float:
        """Ledger delta implied by this decision."""
        quantity = float(self.amount or 0.0)
        if self.action is TradeAction.BUY:
            return quantity
        if self.action is TradeAction.SELL:
            return -quantity
        return 0.0

    @property
    def notional(self) -> float:
        return float(self.amount or 0.0) * self.price


@dataclass(frozen=True)
class RiskAssessment:
    """Result of one portfolio risk evaluation."""

    mode: RiskMode
    drawdown_percent: float
    emergency: bool


@dataclass(frozen=True)
class PositionRisk:
    """Risk score of one held position."""

    symbol: str
    risk_score: float
    over_limit: bool


@dataclass(frozen=True)
class RiskReport:
    """Portfolio risk summary produced every tick."""

    sharpe_ratio: float
    max_drawdown: float
    risk_positions: list[str] = field(default_factory=list)
    unpriced: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RiskLimits:
    """Portfolio-level risk constraints."""

    initial_balance: float = 50.0
    max_drawdown: float = 0.1
    position_size_percent: float = 0.02
    emergency_threshold: float = 0.08
    max_asset_percent: float = 0.2
    risk_free_rate: float = 0.0


@dataclass(frozen=True)
class OrderReceipt:
    """Submission result returned by brokers."""

    order_id: str
    symbol: str
    action: TradeAction
    qty: float
    status: str
    accepted: bool = True
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DecisionRecord:
    """Persisted audit row for a decision the bot acted on."""

    symbol: str
    action: str
    amount: float | None
    price: float | None
    confidence: float
    potential_profit: float
    risk_mode: str
    executed: bool
    reason: str | None
    created_ts: str
