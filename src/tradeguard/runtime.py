"""Runtime wiring and scheduled trading loop."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from tradeguard.brokers.base import Broker
from tradeguard.brokers.bybit_spot import BybitSpotBroker
from tradeguard.brokers.paper_broker import PaperBroker
from tradeguard.config import Settings
from tradeguard.core.orchestrator import CycleOrchestrator, TickResult
from tradeguard.core.scheduler import Scheduler
from tradeguard.data.base import MarketFeed
from tradeguard.data.bybit_market_data import BybitMarketFeed
from tradeguard.decision.analyzer import HeadlineSource
from tradeguard.decision.oracle import DecisionOracle, OpenAIDecisionOracle
from tradeguard.decision.policy import DecisionPolicy
from tradeguard.domain.events import TradeEvent
from tradeguard.domain.models import DecisionRecord, MarketData
from tradeguard.errors import ConfigError, DataProviderError, LedgerError
from tradeguard.execution.executor import TradeExecutor
from tradeguard.logging.event_sink import JsonlEventSink, generate_plotly_report
from tradeguard.logging.logger import HumanLogger
from tradeguard.notify.notifier import EmailNotifier, LogNotifier, Notifier
from tradeguard.portfolio.ledger import PortfolioLedger
from tradeguard.portfolio.rebalancer import PortfolioRebalancer
from tradeguard.risk import calculator
from tradeguard.risk.emergency import EmergencyProtocol
from tradeguard.risk.engine import RiskEngine
from tradeguard.state.sqlite_store import SqliteLedgerStore
from tradeguard.state.store import LedgerStore

logger = logging.getLogger(__name__)

TRADE_CYCLE_TASK = "trade_cycle"
DAILY_REPORT_TASK = "daily_report"


@dataclass
class TradingBot:
    """Every long-lived component, wired once."""

    settings: Settings
    store: LedgerStore
    ledger: PortfolioLedger
    risk_engine: RiskEngine
    executor: TradeExecutor
    rebalancer: PortfolioRebalancer
    emergency: EmergencyProtocol
    policy: DecisionPolicy
    orchestrator: CycleOrchestrator
    notifier: Notifier

    def close(self) -> None:
        self.store.close()


def build_bot(
    settings: Settings,
    *,
    store: LedgerStore | None = None,
    feed: MarketFeed | None = None,
    oracle: DecisionOracle | None = None,
    broker: Broker | None = None,
    notifier: Notifier | None = None,
    human_logger: HumanLogger | None = None,
    event_sink: JsonlEventSink | None = None,
    run_id: str = "",
    headline_source: HeadlineSource | None = None,
) -> TradingBot:
    """Wire the bot; collaborators not passed in are built from settings."""
    feed = feed or build_feed(settings)
    oracle = oracle or build_oracle(settings)
    broker = broker or build_broker(settings)
    notifier = notifier or build_notifier(settings)
    store = store or build_state_store(settings)
    stable = settings.stable_asset_symbol

    ledger = PortfolioLedger(store)
    risk_engine = RiskEngine(ledger, settings.risk_limits())
    executor = TradeExecutor(broker, ledger, risk_engine, stable, human_logger=human_logger)
    rebalancer = PortfolioRebalancer(
        ledger,
        executor,
        max_asset_percent=settings.max_asset_percent,
        stable_symbol=stable,
        min_trade_notional=settings.min_trade_notional,
        qty_precision=settings.qty_precision,
    )
    emergency = EmergencyProtocol(risk_engine, rebalancer, stable, notifier=notifier)
    policy = DecisionPolicy(
        risk_engine,
        ledger,
        stable_symbol=stable,
        min_confidence=settings.min_confidence,
        qty_precision=settings.qty_precision,
    )
    orchestrator = CycleOrchestrator(
        feed=feed,
        oracle=oracle,
        policy=policy,
        executor=executor,
        risk_engine=risk_engine,
        ledger=ledger,
        emergency=emergency,
        rebalancer=rebalancer,
        notifier=notifier,
        stable_symbol=stable,
        symbol_limit=settings.symbol_limit,
        rebalance_weekday=settings.rebalance_weekday,
        rebalance_hour=settings.rebalance_hour,
        human_logger=human_logger,
        event_sink=event_sink,
        run_id=run_id,
        mode=settings.mode,
        headline_source=headline_source,
    )
    return TradingBot(
        settings=settings,
        store=store,
        ledger=ledger,
        risk_engine=risk_engine,
        executor=executor,
        rebalancer=rebalancer,
        emergency=emergency,
        policy=policy,
        orchestrator=orchestrator,
        notifier=notifier,
    )


def seed_ledger(ledger: PortfolioLedger, settings: Settings) -> bool:
    """Book the initial balance as stable asset on an empty ledger."""
    if ledger.holdings():
        return False
    logger.info(
        "ledger | seeding %s %.2f",
        settings.stable_asset_symbol,
        settings.initial_balance,
    )
    return ledger.apply_delta(settings.stable_asset_symbol, settings.initial_balance, 1.0)


def run(settings: Settings) -> int:
    """Run the trade cycle on its interval until interrupted or max_ticks is reached."""
    run_id = uuid4().hex
    run_directory = Path(settings.events_dir) / run_id
    run_directory.mkdir(parents=True, exist_ok=True)
    events_path = run_directory / "events.jsonl"
    report_path = run_directory / "report.html"

    event_sink = JsonlEventSink(str(events_path))
    human_logger = HumanLogger(level=settings.log_level)

    try:
        bot = build_bot(settings, human_logger=human_logger, event_sink=event_sink, run_id=run_id)
    except ValueError as exc:
        human_logger.error(f"Configuration error: {exc}")
        return 2
    except LedgerError as exc:
        human_logger.error(str(exc))
        return 1

    seed_ledger(bot.ledger, settings)
    human_logger.run_started(run_id, settings.mode, settings.interval_seconds)
    event_sink.emit(
        TradeEvent(
            run_id=run_id,
            mode=settings.mode,
            risk_mode=str(bot.risk_engine.current_mode),
            event_type="run_started",
            payload={"interval_seconds": settings.interval_seconds},
        )
    )

    scheduler = Scheduler()
    register_tasks(scheduler, bot)

    exit_code = 0
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        scheduler.stop()
        exit_code = 0
    except Exception as exc:
        human_logger.error(str(exc))
        event_sink.emit(
            TradeEvent(
                run_id=run_id,
                mode=settings.mode,
                risk_mode=str(bot.risk_engine.current_mode),
                event_type="error",
                payload={"message": str(exc)},
            )
        )
        exit_code = 1
    finally:
        scheduler.cancel_all()
        try:
            generate_plotly_report(str(events_path), str(report_path))
        finally:
            bot.close()

    return exit_code


def register_tasks(scheduler: Scheduler, bot: TradingBot) -> None:
    """Register the trade cycle and, when configured, the daily report."""
    max_ticks = bot.settings.max_ticks
    completed: list[TickResult] = []

    def trade_cycle() -> None:
        completed.append(bot.orchestrator.run_tick())
        if max_ticks is not None and len(completed) >= max_ticks:
            logger.info("scheduler | reached %d ticks, stopping", max_ticks)
            scheduler.stop()

    scheduler.register_interval_task(TRADE_CYCLE_TASK, bot.settings.interval_seconds, trade_cycle)
    if bot.settings.daily_report_time:
        scheduler.register_timed_task(
            DAILY_REPORT_TASK,
            bot.settings.daily_report_time,
            lambda: daily_report(bot),
        )


def daily_report(bot: TradingBot) -> str:
    """Summarize holdings and risk, send it as an alert, and return the text."""
    market_data, prices = bot.orchestrator.snapshot()
    stable = bot.settings.stable_asset_symbol
    holdings = bot.ledger.holdings()
    value = PortfolioLedger.value_of(holdings, prices)
    drawdown = calculator.drawdown(bot.settings.initial_balance, value)
    report = bot.risk_engine.risk_report(
        {**market_data, **_stable_quote(stable)},
        ignore={stable},
    )

    lines = [
        f"Daily report ({bot.settings.mode})",
        f"Portfolio value: ${value:,.2f}",
        f"Risk mode: {bot.risk_engine.current_mode}",
        f"Drawdown: {drawdown * 100:.2f}%",
        f"Sharpe ratio: {report.sharpe_ratio:.3f}",
    ]
    worst_case_loss = 0.0
    for position in holdings:
        price = prices.get(position.symbol, 0.0)
        lines.append(
            f"{position.symbol}: {position.amount:.8f} @ entry ${position.entry_price:,.4f} "
            f"(value ${position.market_value(price):,.2f})"
        )
        if position.symbol == stable:
            continue
        worst_case_loss += calculator.position_drawdown(
            position,
            MarketData(position.symbol, price, 0.0, 0.0),
        )
        last = _last_decision(bot.store, position.symbol)
        if last is not None:
            status = "executed" if last.executed else "not executed"
            lines.append(f"  last decision: {last.action} ({status}) at {last.created_ts}")
    lines.append(f"Worst-case loss on a 20% drop: ${worst_case_loss:,.2f}")
    if report.risk_positions:
        lines.append(f"Over risk limit: {', '.join(report.risk_positions)}")
    if report.unpriced:
        lines.append(f"No live price: {', '.join(report.unpriced)}")
    text = "\n".join(lines)
    logger.info("report | value $%.2f | %d holdings", value, len(holdings))
    bot.notifier.alert(text)
    return text


def _last_decision(store: LedgerStore, symbol: str) -> DecisionRecord | None:
    try:
        records = store.recent_decisions(symbol, limit=1)
    except LedgerError as exc:
        logger.warning("report | %s | decision log unavailable | %s", symbol, exc)
        return None
    return records[0] if records else None


def price_holdings(ledger: PortfolioLedger, feed: MarketFeed, stable: str) -> dict[str, float]:
    """Current prices for held symbols; unavailable quotes fall back to the entry price."""
    prices: dict[str, float] = {stable.upper(): 1.0}
    for position in ledger.holdings():
        if position.symbol in prices:
            continue
        try:
            prices[position.symbol] = feed.get_market_data(position.symbol).price
        except DataProviderError as exc:
            logger.warning("portfolio | %s | price unavailable | %s", position.symbol, exc)
            prices[position.symbol] = position.entry_price
    return prices


def show_portfolio(settings: Settings) -> int:
    """Print stored holdings valued at current market prices."""
    human_logger = HumanLogger(level=settings.log_level)
    try:
        store = build_state_store(settings)
    except LedgerError as exc:
        human_logger.error(str(exc))
        return 1
    try:
        ledger = PortfolioLedger(store)
        stable = settings.stable_asset_symbol
        prices = price_holdings(ledger, build_feed(settings), stable)
        holdings = ledger.holdings()
        cash = 0.0
        for position in holdings:
            if position.symbol == stable:
                cash = position.amount
                continue
            human_logger.position(position, prices.get(position.symbol))
        human_logger.portfolio(
            PortfolioLedger.value_of(holdings, prices),
            cash,
            settings.initial_balance,
        )
    finally:
        store.close()
    return 0


def rebalance_now(settings: Settings) -> int:
    """Run the rebalancer once against current prices, outside the weekly window."""
    human_logger = HumanLogger(level=settings.log_level)
    try:
        broker = build_broker(settings)
        store = build_state_store(settings)
    except ValueError as exc:
        human_logger.error(f"Configuration error: {exc}")
        return 2
    except LedgerError as exc:
        human_logger.error(str(exc))
        return 1
    try:
        stable = settings.stable_asset_symbol
        ledger = PortfolioLedger(store)
        risk_engine = RiskEngine(ledger, settings.risk_limits())
        executor = TradeExecutor(broker, ledger, risk_engine, stable, human_logger=human_logger)
        rebalancer = PortfolioRebalancer(
            ledger,
            executor,
            max_asset_percent=settings.max_asset_percent,
            stable_symbol=stable,
            min_trade_notional=settings.min_trade_notional,
            qty_precision=settings.qty_precision,
        )
        prices = price_holdings(ledger, build_feed(settings), stable)
        trims = rebalancer.rebalance(prices)
        logger.info("rebalance | %d trims issued", len(trims))
    finally:
        store.close()
    return 0


def build_broker(settings: Settings) -> Broker:
    """Select broker implementation based on mode."""
    if settings.mode == "paper":
        return PaperBroker()
    if not settings.bybit_api_key or not settings.bybit_api_secret:
        raise ConfigError("BYBIT_API_KEY and BYBIT_API_SECRET are required for live mode")
    return BybitSpotBroker(
        api_key=settings.bybit_api_key,
        api_secret=settings.bybit_api_secret,
        base_url=settings.effective_bybit_url(),
        qty_precision=settings.qty_precision,
    )


def build_feed(settings: Settings) -> MarketFeed:
    return BybitMarketFeed(
        base_url=settings.effective_bybit_url(),
        quote_suffix=settings.stable_asset_symbol,
    )


def build_oracle(settings: Settings) -> DecisionOracle:
    if not settings.openai_api_key:
        raise ConfigError("OPENAI_API_KEY is required to run the trade cycle")
    return OpenAIDecisionOracle(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        temperature=settings.openai_temperature,
        max_tokens=settings.openai_max_tokens,
    )


def build_notifier(settings: Settings) -> Notifier:
    if not settings.email_configured():
        return LogNotifier()
    return EmailNotifier(
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        sender=settings.email_sender,
        password=settings.email_password,
        recipient=settings.email_recipient,
    )


def build_state_store(settings: Settings) -> LedgerStore:
    return SqliteLedgerStore(settings.state_db_path)


def _stable_quote(stable: str) -> dict[str, MarketData]:
    return {stable: MarketData(stable, 1.0, 0.0, 0.0)}
