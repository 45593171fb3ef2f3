from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import openai
import pytest

from tradeguard.decision.oracle import OpenAIDecisionOracle
from tradeguard.domain.models import MarketContext, TradeAction
from tradeguard.errors import OracleError

CONTEXT = MarketContext(volatility_score=0.25, volume_score=0.6, keywords=("etf", "halving"))


class _FakeCompletions:
    def __init__(self, content: str | None = None, error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.kwargs: dict[str, Any] = {}

    def create(self, **kwargs: Any) -> Any:
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _oracle(completions: _FakeCompletions) -> OpenAIDecisionOracle:
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIDecisionOracle(api_key="sk-test", client=client)


def test_decide_requests_json_and_parses_verdict() -> None:
    completions = _FakeCompletions(
        '{"action": "buy", "confidence": 85, "potential_profit": 12, "reason": "breakout"}'
    )

    verdict = _oracle(completions).decide("BTCUSDT", CONTEXT)

    assert verdict.action is TradeAction.BUY
    assert verdict.confidence == pytest.approx(0.85)
    assert verdict.potential_profit == pytest.approx(0.12)
    assert verdict.reason == "breakout"
    assert completions.kwargs["response_format"] == {"type": "json_object"}
    prompt = completions.kwargs["messages"][0]["content"]
    assert "BTCUSDT" in prompt
    assert "Volatility: 25.0%" in prompt
    assert "etf, halving" in prompt


def test_fractions_are_kept_and_values_clamped() -> None:
    verdict = OpenAIDecisionOracle.parse_verdict(
        '{"action": "SELL", "confidence": 0.7, "potential_profit": 250}'
    )

    assert verdict.action is TradeAction.SELL
    assert verdict.confidence == pytest.approx(0.7)
    assert verdict.potential_profit == 1.0


def test_unknown_action_becomes_hold() -> None:
    verdict = OpenAIDecisionOracle.parse_verdict('{"action": "PANIC", "confidence": "n/a"}')

    assert verdict.action is TradeAction.HOLD
    assert verdict.confidence == 0.0


@pytest.mark.parametrize("content", ["not json", "[1, 2]"])
def test_malformed_content_raises(content: str) -> None:
    with pytest.raises(OracleError):
        OpenAIDecisionOracle.parse_verdict(content)


def test_empty_response_raises() -> None:
    with pytest.raises(OracleError, match="empty"):
        _oracle(_FakeCompletions(content=None)).decide("BTCUSDT", CONTEXT)


def test_api_errors_are_wrapped() -> None:
    completions = _FakeCompletions(error=openai.OpenAIError("quota exceeded"))

    with pytest.raises(OracleError, match="quota exceeded"):
        _oracle(completions).decide("ETHUSDT", CONTEXT)
