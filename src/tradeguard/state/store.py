"""Ledger store contract used by the portfolio ledger and runtime."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from tradeguard.domain.models import DecisionRecord, Position


class LedgerStore(Protocol):
    """Durable, transactional persistence for positions and decisions."""

    def apply_delta(
        self,
        symbol: str,
        quantity_delta: float,
        price: float,
        now: datetime | None = None,
    ) -> Position | None:
        """Atomically apply a signed quantity change and return the resulting row.

        Returns ``None`` when the symbol is not held afterwards. Raises
        ``LedgerError`` after rolling back on storage failure.
        """

    def apply_deltas(
        self,
        deltas: Sequence[tuple[str, float, float]],
        now: datetime | None = None,
    ) -> list[Position | None]:
        """Apply (symbol, delta, price) legs all-or-nothing in one transaction."""

    def get_position(self, symbol: str) -> Position | None:
        """Return the stored position for symbol, if any."""

    def list_positions(self) -> list[Position]:
        """Return every stored position."""

    def record_decision(self, record: DecisionRecord) -> None:
        """Persist a decision audit row."""

    def recent_decisions(self, symbol: str, limit: int = 10) -> list[DecisionRecord]:
        """Return the newest decisions for symbol, newest first."""

    def close(self) -> None:
        """Close persistence resources."""
