"""Numeric market and news context for the decision oracle."""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from tradeguard.domain.models import MarketContext, MarketData
from tradeguard.risk.calculator import volatility_score

MAX_KEYWORDS = 10


@dataclass(frozen=True)
class Headline:
    """News item reduced to the fields the analyzer reads."""

    title: str
    summary: str = ""
    sentiment_score: float | None = None


class HeadlineSource(Protocol):
    """Optional news feed consulted once per symbol each tick."""

    def headlines(self, symbol: str) -> Sequence[Headline]:
        """Recent news items for symbol."""


def volume_score(volume: float) -> float:
    """Log-scaled volume score; 10^8 units of volume saturate it."""
    return min(math.log10(max(volume, 0.0) + 1) / 8, 1.0)


def news_sentiment(headlines: Sequence[Headline]) -> float:
    scores = [item.sentiment_score for item in headlines if item.sentiment_score is not None]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def extract_keywords(headlines: Sequence[Headline], limit: int = MAX_KEYWORDS) -> tuple[str, ...]:
    text = " ".join(f"{item.title} {item.summary}" for item in headlines).lower()
    words = [word for word in re.split(r"\W+", text) if len(word) > 3]
    return tuple(word for word, _count in Counter(words).most_common(limit))


def analyze_market_context(
    market_data: MarketData,
    headlines: Sequence[Headline] = (),
) -> MarketContext:
    return MarketContext(
        volatility_score=volatility_score(market_data.change_24h),
        volume_score=volume_score(market_data.volume),
        news_sentiment=news_sentiment(headlines),
        keywords=extract_keywords(headlines),
    )
