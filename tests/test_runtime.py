from __future__ import annotations

from pathlib import Path

import pytest

from tradeguard.config import Settings
from tradeguard.domain.models import (
    MarketContext,
    MarketData,
    OracleVerdict,
    TradeAction,
    TradeDecision,
)
from tradeguard.errors import ConfigError, DataProviderError
from tradeguard.logging.event_sink import load_events
from tradeguard.runtime import (
    build_bot,
    build_oracle,
    daily_report,
    rebalance_now,
    run,
    seed_ledger,
    show_portfolio,
)
from tradeguard.state.sqlite_store import SqliteLedgerStore


class StubFeed:
    def __init__(self, prices: dict[str, float]) -> None:
        self.prices = prices

    def rank_symbols(self, limit: int) -> list[str]:
        return list(self.prices)[:limit]

    def get_market_data(self, symbol: str) -> MarketData:
        if symbol not in self.prices:
            raise DataProviderError(f"{symbol} unknown")
        return MarketData(symbol, self.prices[symbol], volume=1e6, change_24h=0.0)


class BuyingOracle:
    def decide(self, symbol: str, context: MarketContext) -> OracleVerdict:
        return OracleVerdict(TradeAction.BUY, confidence=0.9, potential_profit=0.05)


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def alert(self, message: str) -> None:
        self.messages.append(message)


def _settings(tmp_path: Path, **overrides: object) -> Settings:
    return Settings(
        state_db_path=str(tmp_path / "state" / "ledger.db"),
        events_dir=str(tmp_path / "runs"),
        interval_seconds=1,
        **overrides,
    )


def test_seed_ledger_only_on_empty_ledger(tmp_path: Path) -> None:
    settings = _settings(tmp_path)
    bot = build_bot(settings, feed=StubFeed({}), oracle=BuyingOracle())

    assert seed_ledger(bot.ledger, settings) is True
    assert seed_ledger(bot.ledger, settings) is False
    assert bot.ledger.position("USDT").amount == pytest.approx(50)
    bot.close()


def test_run_single_tick_trades_and_writes_report(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr("tradeguard.runtime.build_feed", lambda _s: StubFeed({"BTCUSDT": 100.0}))
    monkeypatch.setattr("tradeguard.runtime.build_oracle", lambda _s: BuyingOracle())
    settings = _settings(tmp_path, max_ticks=1, initial_balance=1000.0)

    assert run(settings) == 0

    run_dirs = list((tmp_path / "runs").iterdir())
    assert len(run_dirs) == 1
    events = load_events(run_dirs[0] / "events.jsonl")
    event_types = [event["event_type"] for event in events]
    assert event_types[0] == "run_started"
    assert "order" in event_types
    assert "tick" in event_types
    assert (run_dirs[0] / "report.html").exists()

    store = SqliteLedgerStore(settings.state_db_path)
    position = store.get_position("BTCUSDT")
    store.close()
    assert position is not None
    assert position.amount == pytest.approx(0.2)


def test_run_without_oracle_key_is_a_configuration_error(tmp_path: Path) -> None:
    assert run(_settings(tmp_path, max_ticks=1)) == 2


def test_daily_report_summarizes_and_alerts(tmp_path: Path) -> None:
    notifier = RecordingNotifier()
    settings = _settings(tmp_path)
    bot = build_bot(
        settings,
        feed=StubFeed({"ETHUSDT": 20.0}),
        oracle=BuyingOracle(),
        notifier=notifier,
    )
    seed_ledger(bot.ledger, settings)
    bought = bot.executor.execute(
        TradeDecision(
            symbol="ETHUSDT",
            action=TradeAction.BUY,
            confidence=0.9,
            potential_profit=0.1,
            price=20.0,
            amount=0.5,
        )
    )

    text = daily_report(bot)
    bot.close()

    assert bought
    assert "Portfolio value: $50.00" in text
    assert "ETHUSDT: 0.50000000" in text
    assert "last decision: BUY (executed)" in text
    assert "Worst-case loss on a 20% drop: $2.00" in text
    assert notifier.messages == [text]


def test_show_portfolio_values_holdings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    settings = _settings(tmp_path)
    store = SqliteLedgerStore(settings.state_db_path)
    store.apply_delta("USDT", 40, 1.0)
    store.apply_delta("ETHUSDT", 0.5, 18.0)
    store.apply_delta("DOGEUSDT", 10, 0.1)
    store.close()
    monkeypatch.setattr("tradeguard.runtime.build_feed", lambda _s: StubFeed({"ETHUSDT": 20.0}))

    assert show_portfolio(settings) == 0


def test_rebalance_now_trims_overweight_position(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    settings = _settings(tmp_path, min_trade_notional=1.0)
    store = SqliteLedgerStore(settings.state_db_path)
    store.apply_delta("USDT", 70, 1.0)
    store.apply_delta("BTCUSDT", 0.3, 100.0)
    store.close()
    monkeypatch.setattr("tradeguard.runtime.build_feed", lambda _s: StubFeed({"BTCUSDT": 100.0}))

    assert rebalance_now(settings) == 0

    store = SqliteLedgerStore(settings.state_db_path)
    btc = store.get_position("BTCUSDT")
    cash = store.get_position("USDT")
    store.close()
    assert btc.amount == pytest.approx(0.2, abs=1e-5)
    assert cash.amount == pytest.approx(80, abs=1e-3)


def test_build_oracle_requires_api_key() -> None:
    with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
        build_oracle(Settings())
