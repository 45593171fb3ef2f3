"""Market context, oracle adapters, and risk-adjusted decision policy."""

from .analyzer import Headline, HeadlineSource, analyze_market_context
from .oracle import DecisionOracle, OpenAIDecisionOracle
from .policy import DecisionPolicy

__all__ = [
    "DecisionOracle",
    "DecisionPolicy",
    "Headline",
    "HeadlineSource",
    "OpenAIDecisionOracle",
    "analyze_market_context",
]
