"""Environment and CLI runtime configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Self

from dotenv import load_dotenv

from tradeguard.core.scheduler import parse_time_of_day
from tradeguard.domain.models import Mode, RiskLimits

BYBIT_MAINNET_URL = "https://api.bybit.com"
BYBIT_TESTNET_URL = "https://api-testnet.bybit.com"


def parse_bool(value: str | None, default: bool) -> bool:
    """Parse truthy environment strings."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_optional_positive_int(value: str | None, *, field_name: str) -> int | None:
    """Parse optional positive integer values from env strings."""
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    parsed = int(text)
    if parsed <= 0:
        raise ValueError(f"{field_name} must be positive")
    return parsed


def parse_float(value: str | None, default: float, *, field_name: str) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{field_name} must be a number") from exc


def parse_int(value: str | None, default: int, *, field_name: str) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{field_name} must be an integer") from exc


def normalize_mode(value: str | None, default: Mode = "paper") -> Mode:
    candidate = (value or default).strip().lower()
    if candidate in {"paper", "live"}:
        return candidate
    return default


@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings."""

    mode: Mode = "paper"
    interval_seconds: int = 900
    max_ticks: int | None = None
    symbol_limit: int = 3
    events_dir: str = "runs"
    state_db_path: str = "state/tradeguard.db"
    log_level: str = "INFO"

    initial_balance: float = 50.0
    max_drawdown: float = 0.1
    position_size_percent: float = 0.02
    emergency_threshold: float = 0.08
    max_asset_percent: float = 0.2
    stable_asset_symbol: str = "USDT"
    min_trade_notional: float = 5.0
    qty_precision: int = 6
    min_confidence: float = 0.7
    rebalance_weekday: int = 0
    rebalance_hour: int = 8
    daily_report_time: str = ""

    bybit_api_key: str = ""
    bybit_api_secret: str = ""
    bybit_testnet: bool = True
    bybit_base_url: str = ""

    openai_api_key: str = ""
    openai_model: str = "gpt-4-turbo"
    openai_temperature: float = 0.2
    openai_max_tokens: int = 500

    smtp_host: str = ""
    smtp_port: int = 587
    email_sender: str = ""
    email_password: str = ""
    email_recipient: str = ""

    @classmethod
    def from_env(cls) -> Self:
        """Create settings from environment variables."""
        load_dotenv()
        raw = cls(
            mode=normalize_mode(os.getenv("MODE"), default="paper"),
            interval_seconds=parse_int(
                os.getenv("INTERVAL_SECONDS"), 900, field_name="interval_seconds"
            ),
            max_ticks=parse_optional_positive_int(os.getenv("MAX_TICKS"), field_name="max_ticks"),
            symbol_limit=parse_int(os.getenv("SYMBOL_LIMIT"), 3, field_name="symbol_limit"),
            events_dir=str(os.getenv("EVENTS_DIR", "runs")).strip(),
            state_db_path=str(os.getenv("STATE_DB_PATH", "state/tradeguard.db")).strip(),
            log_level=str(os.getenv("LOG_LEVEL", "INFO")).strip().upper(),
            initial_balance=parse_float(
                os.getenv("INITIAL_BALANCE"), 50.0, field_name="initial_balance"
            ),
            max_drawdown=parse_float(os.getenv("MAX_DRAWDOWN"), 0.1, field_name="max_drawdown"),
            position_size_percent=parse_float(
                os.getenv("POSITION_SIZE_PERCENT"), 0.02, field_name="position_size_percent"
            ),
            emergency_threshold=parse_float(
                os.getenv("EMERGENCY_THRESHOLD"), 0.08, field_name="emergency_threshold"
            ),
            max_asset_percent=parse_float(
                os.getenv("MAX_ASSET_PERCENT"), 0.2, field_name="max_asset_percent"
            ),
            stable_asset_symbol=str(os.getenv("STABLE_ASSET_SYMBOL", "USDT")).strip().upper(),
            min_trade_notional=parse_float(
                os.getenv("MIN_TRADE_NOTIONAL"), 5.0, field_name="min_trade_notional"
            ),
            qty_precision=parse_int(os.getenv("QTY_PRECISION"), 6, field_name="qty_precision"),
            min_confidence=parse_float(
                os.getenv("MIN_CONFIDENCE"), 0.7, field_name="min_confidence"
            ),
            rebalance_weekday=parse_int(
                os.getenv("REBALANCE_WEEKDAY"), 0, field_name="rebalance_weekday"
            ),
            rebalance_hour=parse_int(os.getenv("REBALANCE_HOUR"), 8, field_name="rebalance_hour"),
            daily_report_time=str(os.getenv("DAILY_REPORT_TIME", "")).strip(),
            bybit_api_key=str(os.getenv("BYBIT_API_KEY", "")).strip(),
            bybit_api_secret=str(os.getenv("BYBIT_API_SECRET", "")).strip(),
            bybit_testnet=parse_bool(os.getenv("BYBIT_TESTNET"), True),
            bybit_base_url=str(os.getenv("BYBIT_BASE_URL", "")).strip(),
            openai_api_key=str(os.getenv("OPENAI_API_KEY", "")).strip(),
            openai_model=str(os.getenv("OPENAI_MODEL", "gpt-4-turbo")).strip(),
            openai_temperature=parse_float(
                os.getenv("OPENAI_TEMPERATURE"), 0.2, field_name="openai_temperature"
            ),
            openai_max_tokens=parse_int(
                os.getenv("OPENAI_MAX_TOKENS"), 500, field_name="openai_max_tokens"
            ),
            smtp_host=str(os.getenv("SMTP_HOST", "")).strip(),
            smtp_port=parse_int(os.getenv("SMTP_PORT"), 587, field_name="smtp_port"),
            email_sender=str(os.getenv("EMAIL_SENDER", "")).strip(),
            email_password=str(os.getenv("EMAIL_PASSWORD", "")),
            email_recipient=str(os.getenv("EMAIL_RECIPIENT", "")).strip(),
        )
        return raw.validate()

    def with_overrides(self, **kwargs: object) -> Self:
        """Return a new settings object with updated values."""
        overrides = dict(kwargs)
        mode_override = overrides.get("mode")
        if isinstance(mode_override, str):
            overrides["mode"] = normalize_mode(mode_override, default=self.mode)
        updated = replace(self, **overrides)
        return updated.validate()

    def risk_limits(self) -> RiskLimits:
        return RiskLimits(
            initial_balance=self.initial_balance,
            max_drawdown=self.max_drawdown,
            position_size_percent=self.position_size_percent,
            emergency_threshold=self.emergency_threshold,
            max_asset_percent=self.max_asset_percent,
        )

    def effective_bybit_url(self) -> str:
        if self.bybit_base_url:
            return self.bybit_base_url
        return BYBIT_TESTNET_URL if self.bybit_testnet else BYBIT_MAINNET_URL

    def email_configured(self) -> bool:
        return all((self.smtp_host, self.email_sender, self.email_password, self.email_recipient))

    def validate(self) -> Self:
        """Validate settings fields."""
        if self.mode not in {"paper", "live"}:
            raise ValueError("mode must be one of paper, live")
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if self.max_ticks is not None and self.max_ticks <= 0:
            raise ValueError("max_ticks must be positive")
        if self.symbol_limit <= 0:
            raise ValueError("symbol_limit must be positive")
        if self.initial_balance <= 0:
            raise ValueError("initial_balance must be positive")
        for name in (
            "max_drawdown",
            "position_size_percent",
            "emergency_threshold",
            "max_asset_percent",
        ):
            value = getattr(self, name)
            if not 0 < value <= 1:
                raise ValueError(f"{name} must be in (0, 1]")
        if not 0 <= self.min_confidence <= 1:
            raise ValueError("min_confidence must be between 0 and 1")
        if self.min_trade_notional < 0:
            raise ValueError("min_trade_notional must be non-negative")
        if self.qty_precision < 0 or self.qty_precision > 12:
            raise ValueError("qty_precision must be between 0 and 12")
        if not self.stable_asset_symbol:
            raise ValueError("stable_asset_symbol must be set")
        if not 0 <= self.rebalance_weekday <= 6:
            raise ValueError("rebalance_weekday must be between 0 (Monday) and 6")
        if not 0 <= self.rebalance_hour <= 23:
            raise ValueError("rebalance_hour must be between 0 and 23")
        if self.daily_report_time:
            parse_time_of_day(self.daily_report_time)
        if self.openai_max_tokens <= 0:
            raise ValueError("openai_max_tokens must be positive")
        if self.mode == "live" and not (self.bybit_api_key and self.bybit_api_secret):
            raise ValueError("live mode requires BYBIT_API_KEY and BYBIT_API_SECRET")
        return self
