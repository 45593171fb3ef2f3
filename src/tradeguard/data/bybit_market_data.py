"""Bybit spot market data provider."""

from __future__ import annotations

import logging
from time import sleep
from typing import Any

import pandas as pd
import requests

from tradeguard.domain.models import MarketData
from tradeguard.errors import DataProviderError

logger = logging.getLogger(__name__)

FALLBACK_SYMBOLS = ["BTCUSDT", "ETHUSDT"]


class BybitMarketFeed:
    """Fetch spot tickers from Bybit's public v5 market API."""

    def __init__(
        self,
        base_url: str,
        min_volume: float = 100.0,
        min_abs_change_pct: float = 0.1,
        quote_suffix: str = "USDT",
        timeout: int = 10,
        max_retries: int = 3,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.min_volume = min_volume
        self.min_abs_change_pct = min_abs_change_pct
        self.quote_suffix = quote_suffix.upper()
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = requests.Session()

    def get_market_data(self, symbol: str) -> MarketData:
        normalized = symbol.strip().upper().replace("/", "")
        tickers = self._fetch_tickers({"category": "spot", "symbol": normalized})
        if not tickers:
            raise DataProviderError(f"No ticker data returned for {symbol}")
        ticker = tickers[0]
        try:
            return MarketData(
                symbol=normalized,
                price=float(ticker["lastPrice"]),
                volume=float(ticker.get("volume24h") or 0.0),
                change_24h=float(ticker.get("price24hPcnt") or 0.0) * 100,
                liquidity=float(ticker.get("turnover24h") or 0.0),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DataProviderError(f"{symbol}: malformed ticker payload") from exc

    def rank_symbols(self, limit: int = 5) -> list[str]:
        """Top symbols by 24h volume among liquid, moving pairs; [] when the feed fails."""
        try:
            tickers = self._fetch_tickers({"category": "spot"})
        except DataProviderError as exc:
            logger.error("feed | ranking failed | %s", exc)
            return []
        frame = self._tickers_to_frame(tickers)
        if frame.empty:
            logger.warning("feed | no tickers returned")
            return []

        passed = frame[
            (frame["volume"] > self.min_volume)
            & (frame["change_pct"].abs() > self.min_abs_change_pct)
        ]
        if self.quote_suffix:
            passed = passed[passed["symbol"].str.endswith(self.quote_suffix)]
        logger.debug("feed | %d of %d pairs passed filters", len(passed), len(frame))
        if passed.empty:
            logger.warning("feed | no pairs passed filters, using fallback symbols")
            return list(FALLBACK_SYMBOLS)

        ranked = passed.sort_values("volume", ascending=False).head(max(0, int(limit)))
        symbols = [str(value) for value in ranked["symbol"]]
        logger.info("feed | top %d pairs: %s", limit, ", ".join(symbols))
        return symbols

    def _fetch_tickers(self, params: dict[str, str]) -> list[dict[str, Any]]:
        payload = self._request_with_retry("/v5/market/tickers", params)
        result = payload.get("result", {})
        tickers = result.get("list", []) if isinstance(result, dict) else []
        return tickers if isinstance(tickers, list) else []

    def _request_with_retry(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as exc:
                if attempt == self.max_retries:
                    raise DataProviderError(f"Bybit market request failed: {exc}") from exc
                sleep(float(attempt))
                continue
            if response.status_code in {403, 429}:
                if attempt == self.max_retries:
                    raise DataProviderError("Bybit market rate limit exceeded")
                sleep(float(attempt))
                continue
            if response.status_code >= 500:
                if attempt == self.max_retries:
                    raise DataProviderError(f"Bybit market server error: {response.status_code}")
                sleep(float(attempt))
                continue
            if response.status_code >= 400:
                detail = response.text.strip() or "No response body"
                raise DataProviderError(f"Bybit market error {response.status_code}: {detail}")
            try:
                payload = response.json()
            except ValueError as exc:
                raise DataProviderError("Bybit market response was not valid JSON") from exc
            if not isinstance(payload, dict):
                raise DataProviderError("Bybit market response was not a JSON object")
            if int(payload.get("retCode", -1)) != 0:
                raise DataProviderError(
                    f"Bybit market error retCode {payload.get('retCode')}: {payload.get('retMsg', '')}"
                )
            return payload
        raise DataProviderError("Bybit market request exhausted retries")

    @staticmethod
    def _tickers_to_frame(tickers: list[dict[str, Any]]) -> pd.DataFrame:
        frame = pd.DataFrame(tickers)
        required = {"symbol", "volume24h", "price24hPcnt"}
        if frame.empty or not required.issubset(frame.columns):
            return pd.DataFrame(columns=["symbol", "volume", "change_pct"])
        frame = frame.rename(columns={"volume24h": "volume"})
        frame["volume"] = pd.to_numeric(frame["volume"], errors="coerce")
        frame["change_pct"] = pd.to_numeric(frame["price24hPcnt"], errors="coerce") * 100
        frame["symbol"] = frame["symbol"].astype(str).str.upper()
        return frame[["symbol", "volume", "change_pct"]].dropna()
