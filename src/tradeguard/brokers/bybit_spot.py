"""Bybit v5 spot broker adapter (mainnet or testnet endpoint)."""

from __future__ import annotations

import hashlib
import hmac
import json
from time import sleep, time
from typing import Any
from uuid import uuid4

import requests

from tradeguard.domain.models import OrderReceipt, TradeAction, TradeDecision
from tradeguard.errors import BrokerError
from tradeguard.execution.sizing import quantize_down

RATE_LIMIT_RET_CODES = {10006, 10018}


class BybitSpotBroker:
    """Signed REST order client with retry and rate-limit handling."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str,
        qty_precision: int = 6,
        recv_window: int = 5000,
        timeout: int = 10,
        max_retries: int = 3,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.qty_precision = qty_precision
        self.recv_window = recv_window
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def execute(self, decision: TradeDecision) -> OrderReceipt:
        if decision.action is TradeAction.HOLD:
            raise BrokerError(f"HOLD decision for {decision.symbol} cannot be submitted")
        qty = quantize_down(float(decision.amount or 0.0), self.qty_precision)
        if qty <= 0:
            raise BrokerError(f"Order quantity for {decision.symbol} rounds to zero")
        # Reused across retries so the venue rejects duplicates.
        order_link_id = uuid4().hex[:32]
        body = {
            "category": "spot",
            "symbol": self.normalize_symbol(decision.symbol),
            "side": "Buy" if decision.action is TradeAction.BUY else "Sell",
            "orderType": "Market",
            "qty": self._format_qty(qty),
            "marketUnit": "baseCoin",
            "orderLinkId": order_link_id,
        }
        payload = self._signed_post("/v5/order/create", body)
        result = payload.get("result") if isinstance(payload.get("result"), dict) else {}
        return OrderReceipt(
            order_id=str(result.get("orderId", "")),
            symbol=decision.symbol,
            action=decision.action,
            qty=qty,
            status="submitted",
            accepted=True,
            raw=payload,
        )

    def _signed_post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        body_text = json.dumps(body, separators=(",", ":"))
        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            headers = self._auth_headers(body_text)
            try:
                response = self.session.post(
                    url,
                    data=body_text,
                    headers=headers,
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                last_error = exc
                if attempt == self.max_retries:
                    break
                sleep(float(attempt))
                continue

            if response.status_code in {403, 429} or response.status_code >= 500:
                if attempt == self.max_retries:
                    detail = response.text.strip() or "No response body"
                    raise BrokerError(
                        f"Bybit API error {response.status_code} for {path}: {detail}"
                    )
                sleep(float(attempt))
                continue

            if response.status_code >= 400:
                detail = response.text.strip() or "Request rejected"
                raise BrokerError(f"Bybit API error {response.status_code} for {path}: {detail}")

            try:
                payload = response.json()
            except ValueError as exc:
                raise BrokerError(f"Bybit response for {path} was not valid JSON") from exc
            if not isinstance(payload, dict):
                raise BrokerError(f"Bybit response for {path} was not a JSON object")

            ret_code = int(payload.get("retCode", -1))
            if ret_code in RATE_LIMIT_RET_CODES and attempt < self.max_retries:
                sleep(float(attempt))
                continue
            if ret_code != 0:
                raise BrokerError(
                    f"Bybit rejected {path}: retCode {ret_code} {payload.get('retMsg', '')}".strip()
                )
            return payload

        if last_error is not None:
            raise BrokerError(f"Bybit request failed for {path}: {last_error}") from last_error
        raise BrokerError(f"Bybit request failed for {path}")

    def _auth_headers(self, body_text: str) -> dict[str, str]:
        timestamp = str(int(time() * 1000))
        recv_window = str(self.recv_window)
        return {
            "X-BAPI-API-KEY": self.api_key,
            "X-BAPI-TIMESTAMP": timestamp,
            "X-BAPI-RECV-WINDOW": recv_window,
            "X-BAPI-SIGN-TYPE": "2",
            "X-BAPI-SIGN": self.sign(
                self.api_secret, timestamp + self.api_key + recv_window + body_text
            ),
        }

    @staticmethod
    def sign(secret: str, message: str) -> str:
        return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()

    @staticmethod
    def normalize_symbol(symbol: str) -> str:
        return symbol.strip().upper().replace("/", "").replace("-", "")

    def _format_qty(self, qty: float) -> str:
        text = f"{qty:.{max(0, self.qty_precision)}f}".rstrip("0").rstrip(".")
        return text or "0"
