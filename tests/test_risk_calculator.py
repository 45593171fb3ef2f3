from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from tradeguard.domain.models import MarketData, Position, RiskMode
from tradeguard.risk import calculator


def test_volatility_score_saturates_at_twenty_percent() -> None:
    assert calculator.volatility_score(5) == pytest.approx(0.25)
    assert calculator.volatility_score(-10) == pytest.approx(0.5)
    assert calculator.volatility_score(35) == 1.0


def test_position_size_scales_with_mode_and_volatility() -> None:
    assert calculator.position_size(1000, 0.02, RiskMode.NORMAL, 0.0) == pytest.approx(20)
    assert calculator.position_size(1000, 0.02, RiskMode.AGGRESSIVE, 0.0) == pytest.approx(30)
    assert calculator.position_size(1000, 0.02, RiskMode.SAFETY, 0.5) == pytest.approx(5)


def test_time_risk_saturates_after_four_days() -> None:
    now = datetime(2024, 1, 5, tzinfo=UTC)

    assert calculator.time_risk(now - timedelta(hours=48), now) == pytest.approx(0.5)
    assert calculator.time_risk(now - timedelta(days=10), now) == 1.0
    assert calculator.time_risk(now + timedelta(hours=1), now) == 0.0


def test_position_risk_weights_components() -> None:
    now = datetime(2024, 1, 5, tzinfo=UTC)
    position = Position("BTCUSDT", amount=0.001, entry_price=100, entry_time=now - timedelta(hours=48))
    market = MarketData("BTCUSDT", price=100, volume=1e6, change_24h=25)

    score = calculator.position_risk(position, market, max_asset_percent=0.2, now=now)

    # volatility 0.5, share min(0.1 / 0.2, 1) = 0.5, time 0.5
    assert score == pytest.approx(0.5 * 0.5 + 0.5 * 0.3 + 0.5 * 0.2)


def test_over_limit_thresholds_depend_on_mode() -> None:
    assert calculator.is_over_risk_limit(0.31, RiskMode.SAFETY)
    assert not calculator.is_over_risk_limit(0.31, RiskMode.NORMAL)
    assert calculator.is_over_risk_limit(0.61, RiskMode.NORMAL)
    assert not calculator.is_over_risk_limit(0.8, RiskMode.AGGRESSIVE)


def test_sharpe_ratio_is_zero_without_volatility() -> None:
    assert calculator.sharpe_ratio(60, 50, 0.0) == 0.0
    assert calculator.sharpe_ratio(60, 50, 0.5) == pytest.approx(0.4)
    assert calculator.sharpe_ratio(60, 0, 0.5) == 0.0


def test_drawdown_against_initial_balance() -> None:
    assert calculator.drawdown(50, 46) == pytest.approx(0.08)
    assert calculator.drawdown(50, 55) == pytest.approx(-0.1)
    assert calculator.drawdown(0, 10) == 0.0


def test_position_drawdown_uses_worst_case_drop() -> None:
    position = Position("ETHUSDT", amount=2, entry_price=90)
    market = MarketData("ETHUSDT", price=100, volume=0, change_24h=0)

    assert calculator.position_drawdown(position, market) == pytest.approx(40)
