"""Stateless risk formulas for positions and the portfolio."""

from __future__ import annotations

from datetime import UTC, datetime

from tradeguard.domain.models import MarketData, Position, RiskMode

VOLATILITY_CEILING_PCT = 20.0
POSITION_VOLATILITY_CEILING_PCT = 50.0
MAX_HOLDING_HOURS = 96.0

MODE_RISK_FACTORS = {
    RiskMode.AGGRESSIVE: 1.5,
    RiskMode.SAFETY: 0.5,
    RiskMode.NORMAL: 1.0,
}

MODE_RISK_LIMITS = {
    RiskMode.SAFETY: 0.3,
    RiskMode.NORMAL: 0.6,
    RiskMode.AGGRESSIVE: 0.8,
}


def volatility_score(change_24h: float) -> float:
    """Map a 24h percent move onto [0, 1]; a 20% move saturates the score."""
    return min(abs(change_24h) / VOLATILITY_CEILING_PCT, 1.0)


def position_size(
    portfolio_value: float,
    position_size_percent: float,
    mode: RiskMode,
    volatility: float,
) -> float:
    """Quote-currency size for a new position under the given mode."""
    risk_factor = position_size_percent * MODE_RISK_FACTORS.get(mode, 1.0)
    return portfolio_value * risk_factor * (1 - volatility)


def time_risk(entry_time: datetime, now: datetime | None = None) -> float:
    """Holding-time risk that saturates after four days."""
    current = now or datetime.now(tz=UTC)
    if entry_time.tzinfo is None:
        entry_time = entry_time.replace(tzinfo=UTC)
    hours_held = (current - entry_time).total_seconds() / 3600.0
    return min(max(hours_held, 0.0) / MAX_HOLDING_HOURS, 1.0)


def position_risk(
    position: Position,
    market_data: MarketData,
    max_asset_percent: float,
    now: datetime | None = None,
) -> float:
    """Weighted risk score of one holding.

    The share term divides the absolute position value by the max-share
    constant, so it behaves as a scaling knob rather than a true ratio.
    """
    volatility_risk = min(market_data.change_24h / POSITION_VOLATILITY_CEILING_PCT, 1.0)
    position_value = position.market_value(market_data.price)
    share_risk = min(position_value / max_asset_percent, 1.0) if max_asset_percent > 0 else 1.0
    holding_risk = time_risk(position.entry_time, now)
    return volatility_risk * 0.5 + share_risk * 0.3 + holding_risk * 0.2


def is_over_risk_limit(risk_score: float, mode: RiskMode) -> bool:
    return risk_score > MODE_RISK_LIMITS.get(mode, MODE_RISK_LIMITS[RiskMode.NORMAL])


def sharpe_ratio(
    portfolio_value: float,
    initial_balance: float,
    volatility: float,
    risk_free_rate: float = 0.0,
) -> float:
    if volatility == 0 or initial_balance == 0:
        return 0.0
    returns = (portfolio_value - initial_balance) / initial_balance
    return (returns - risk_free_rate) / volatility


def position_drawdown(
    position: Position,
    market_data: MarketData,
    worst_case: float = 0.2,
) -> float:
    """Potential loss of a holding if its price drops by worst_case."""
    return position.market_value(market_data.price) * worst_case


def drawdown(initial_balance: float, portfolio_value: float) -> float:
    if initial_balance <= 0:
        return 0.0
    return (initial_balance - portfolio_value) / initial_balance
