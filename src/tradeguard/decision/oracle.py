"""Decision oracle contract and the OpenAI-backed implementation."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import openai

from tradeguard.domain.models import MarketContext, OracleVerdict, TradeAction
from tradeguard.errors import OracleError
from tradeguard.execution.sizing import clamp_unit

logger = logging.getLogger(__name__)

BASE_PROMPT = """You are a professional crypto trader. The main goal is to preserve the deposit
and grow capital steadily.
Rules:
1. Risk no more than 2% of capital per trade.
2. Never allocate more than 20% of the portfolio to one asset.
3. Take profit: 25% of the position at +5%, 50% at +10%.
4. Avoid illiquid assets (under $1M daily volume).
5. On a drawdown above 8% switch to a conservative stance."""

RESPONSE_FORMAT = """Respond with JSON only:
{"action": "BUY" | "SELL" | "HOLD", "confidence": 0-100, "potential_profit": 0-100, "reason": "short justification"}"""


class DecisionOracle(Protocol):
    """External decision service queried once per symbol per tick."""

    def decide(self, symbol: str, context: MarketContext) -> OracleVerdict:
        """Return a structured verdict; raises OracleError when none can be produced."""


class OpenAIDecisionOracle:
    """Chat-completions oracle that enforces a JSON verdict."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4-turbo",
        temperature: float = 0.2,
        max_tokens: int = 500,
        timeout_s: float = 30.0,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = client or openai.OpenAI(api_key=api_key, timeout=timeout_s)

    def decide(self, symbol: str, context: MarketContext) -> OracleVerdict:
        prompt = self.build_prompt(symbol, context)
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as exc:
            raise OracleError(f"Oracle request failed for {symbol}: {exc}") from exc
        content = response.choices[0].message.content
        if not content:
            raise OracleError(f"Oracle returned an empty response for {symbol}")
        verdict = self.parse_verdict(content)
        logger.debug(
            "oracle | %s | %s | conf %.2f | profit %.2f",
            symbol,
            verdict.action,
            verdict.confidence,
            verdict.potential_profit,
        )
        return verdict

    @staticmethod
    def build_prompt(symbol: str, context: MarketContext) -> str:
        keywords = ", ".join(context.keywords) or "none"
        return (
            f"{BASE_PROMPT}\n\n"
            f"Market analysis for {symbol}:\n"
            f"- Volatility: {context.volatility_score * 100:.1f}%\n"
            f"- Volume: {context.volume_score * 100:.1f}%\n"
            f"- News sentiment: {context.news_sentiment * 100:.1f}%\n"
            f"- Keywords: {keywords}\n\n"
            "Recommend an action: BUY, SELL or HOLD. Give your confidence (0-100%) "
            "and the potential profit (0-100%). Justify briefly.\n\n"
            f"{RESPONSE_FORMAT}"
        )

    @staticmethod
    def parse_verdict(content: str) -> OracleVerdict:
        """Parse and clamp the JSON verdict; percentages above 1 are scaled down."""
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise OracleError("Oracle response was not valid JSON") from exc
        if not isinstance(data, dict):
            raise OracleError("Oracle response must be a JSON object")

        raw_action = str(data.get("action", "HOLD")).strip().upper()
        try:
            action = TradeAction(raw_action)
        except ValueError:
            logger.warning("oracle | unknown action %r, treating as HOLD", raw_action)
            action = TradeAction.HOLD

        reason = data.get("reason")
        return OracleVerdict(
            action=action,
            confidence=_as_fraction(data.get("confidence"), default=0.0),
            potential_profit=_as_fraction(data.get("potential_profit"), default=0.0),
            reason=str(reason)[:500] if reason else None,
        )


def _as_fraction(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number > 1.0:
        number /= 100.0
    return clamp_unit(number)
