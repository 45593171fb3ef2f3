"""Domain models and event types."""

from .events import TradeEvent
from .models import (
    DecisionRecord,
    MarketContext,
    MarketData,
    Mode,
    OracleVerdict,
    OrderReceipt,
    Position,
    PositionRisk,
    RiskAssessment,
    RiskLimits,
    RiskMode,
    RiskReport,
    TradeAction,
    TradeDecision,
)

__all__ = [
    "DecisionRecord",
    "MarketContext",
    "MarketData",
    "Mode",
    "OracleVerdict",
    "OrderReceipt",
    "Position",
    "PositionRisk",
    "RiskAssessment",
    "RiskLimits",
    "RiskMode",
    "RiskReport",
    "TradeAction",
    "TradeDecision",
    "TradeEvent",
]
