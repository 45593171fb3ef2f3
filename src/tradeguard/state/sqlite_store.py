"""SQLite ledger store with transactional position updates."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from tradeguard.domain.models import DecisionRecord, Position
from tradeguard.errors import LedgerError


class SqliteLedgerStore:
    """SQLite-backed implementation of the ledger store."""

    def __init__(self, db_path: str) -> None:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            # Autocommit mode; transactions are opened explicitly below.
            self.connection = sqlite3.connect(
                path,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise LedgerError(f"Unable to open ledger at {path}: {exc}") from exc
        self.connection.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._initialize_schema()

    def apply_delta(
        self,
        symbol: str,
        quantity_delta: float,
        price: float,
        now: datetime | None = None,
    ) -> Position | None:
        return self.apply_deltas([(symbol, quantity_delta, price)], now=now)[0]

    def apply_deltas(
        self,
        deltas: Sequence[tuple[str, float, float]],
        now: datetime | None = None,
    ) -> list[Position | None]:
        """Apply several (symbol, delta, price) legs in one transaction."""
        timestamp = (now or datetime.now(tz=UTC)).isoformat()
        keys = [symbol.upper() for symbol, _delta, _price in deltas]
        results: list[Position | None] = []
        with self._lock:
            try:
                self.connection.execute("BEGIN IMMEDIATE")
                for key, (_symbol, quantity_delta, price) in zip(keys, deltas):
                    current = self._select_position(key)
                    result = self._next_position(key, current, quantity_delta, price, timestamp)
                    if result is None:
                        if current is not None:
                            self._delete_position(key)
                    else:
                        self._upsert_position(result, timestamp)
                    results.append(result)
                self.connection.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback()
                raise LedgerError(f"Position update failed for {', '.join(keys)}: {exc}") from exc
        return results

    def get_position(self, symbol: str) -> Position | None:
        with self._lock:
            try:
                return self._select_position(symbol.upper())
            except sqlite3.Error as exc:
                raise LedgerError(f"Position read failed for {symbol}: {exc}") from exc

    def list_positions(self) -> list[Position]:
        with self._lock:
            try:
                rows = self.connection.execute(
                    """
                    SELECT symbol, amount, entry_price, entry_time
                    FROM positions
                    ORDER BY symbol ASC
                    """
                ).fetchall()
            except sqlite3.Error as exc:
                raise LedgerError(f"Position listing failed: {exc}") from exc
        return [self._row_to_position(row) for row in rows]

    def record_decision(self, record: DecisionRecord) -> None:
        with self._lock:
            try:
                self.connection.execute(
                    """
                    INSERT INTO decisions(
                        symbol,
                        action,
                        amount,
                        price,
                        confidence,
                        potential_profit,
                        risk_mode,
                        executed,
                        reason,
                        created_ts
                    )
                    VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.symbol.upper(),
                        record.action,
                        record.amount,
                        record.price,
                        record.confidence,
                        record.potential_profit,
                        record.risk_mode,
                        1 if record.executed else 0,
                        record.reason,
                        record.created_ts,
                    ),
                )
            except sqlite3.Error as exc:
                raise LedgerError(f"Decision insert failed for {record.symbol}: {exc}") from exc

    def recent_decisions(self, symbol: str, limit: int = 10) -> list[DecisionRecord]:
        with self._lock:
            try:
                rows = self.connection.execute(
                    """
                    SELECT
                        symbol,
                        action,
                        amount,
                        price,
                        confidence,
                        potential_profit,
                        risk_mode,
                        executed,
                        reason,
                        created_ts
                    FROM decisions
                    WHERE symbol = ?
                    ORDER BY id DESC
                    LIMIT ?
                    """,
                    (symbol.upper(), int(limit)),
                ).fetchall()
            except sqlite3.Error as exc:
                raise LedgerError(f"Decision read failed for {symbol}: {exc}") from exc
        records: list[DecisionRecord] = []
        for row in rows:
            records.append(
                DecisionRecord(
                    symbol=str(row["symbol"]),
                    action=str(row["action"]),
                    amount=float(row["amount"]) if row["amount"] is not None else None,
                    price=float(row["price"]) if row["price"] is not None else None,
                    confidence=float(row["confidence"]),
                    potential_profit=float(row["potential_profit"]),
                    risk_mode=str(row["risk_mode"]),
                    executed=bool(row["executed"]),
                    reason=str(row["reason"]) if row["reason"] else None,
                    created_ts=str(row["created_ts"]),
                )
            )
        return records

    def close(self) -> None:
        self.connection.close()

    @staticmethod
    def _next_position(
        symbol: str,
        current: Position | None,
        quantity_delta: float,
        price: float,
        timestamp: str,
    ) -> Position | None:
        """Apply weighted-average accounting; None means no row should remain."""
        if current is None:
            if quantity_delta <= 0:
                return None
            return Position(
                symbol=symbol,
                amount=float(quantity_delta),
                entry_price=float(price),
                entry_time=datetime.fromisoformat(timestamp),
            )
        new_amount = current.amount + quantity_delta
        if new_amount <= 0:
            return None
        new_entry_price = (current.entry_price * current.amount + price * quantity_delta) / new_amount
        entry_time = current.entry_time
        if quantity_delta > 0:
            entry_time = datetime.fromisoformat(timestamp)
        return Position(
            symbol=symbol,
            amount=new_amount,
            entry_price=new_entry_price,
            entry_time=entry_time,
        )

    def _select_position(self, symbol: str) -> Position | None:
        row = self.connection.execute(
            """
            SELECT symbol, amount, entry_price, entry_time
            FROM positions
            WHERE symbol = ?
            """,
            (symbol,),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_position(row)

    def _upsert_position(self, position: Position, timestamp: str) -> None:
        self.connection.execute(
            """
            INSERT INTO positions(symbol, amount, entry_price, entry_time, updated_ts)
            VALUES(?, ?, ?, ?, ?)
            ON CONFLICT(symbol) DO UPDATE SET
                amount = excluded.amount,
                entry_price = excluded.entry_price,
                entry_time = excluded.entry_time,
                updated_ts = excluded.updated_ts
            """,
            (
                position.symbol,
                position.amount,
                position.entry_price,
                position.entry_time.isoformat(),
                timestamp,
            ),
        )

    def _delete_position(self, symbol: str) -> None:
        self.connection.execute("DELETE FROM positions WHERE symbol = ?", (symbol,))

    def _rollback(self) -> None:
        if self.connection.in_transaction:
            self.connection.execute("ROLLBACK")

    def _initialize_schema(self) -> None:
        self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS positions(
                symbol TEXT PRIMARY KEY,
                amount REAL NOT NULL CHECK (amount > 0),
                entry_price REAL NOT NULL,
                entry_time TEXT NOT NULL,
                updated_ts TEXT NOT NULL
            )
            """
        )
        self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS decisions(
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                symbol TEXT NOT NULL,
                action TEXT NOT NULL,
                amount REAL,
                price REAL,
                confidence REAL NOT NULL DEFAULT 0,
                potential_profit REAL NOT NULL DEFAULT 0,
                risk_mode TEXT NOT NULL DEFAULT 'NORMAL',
                executed INTEGER NOT NULL DEFAULT 0,
                reason TEXT,
                created_ts TEXT NOT NULL
            )
            """
        )
        self.connection.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_decisions_symbol
            ON decisions(symbol, id)
            """
        )

    @staticmethod
    def _row_to_position(row: sqlite3.Row) -> Position:
        entry_time = datetime.fromisoformat(str(row["entry_time"]))
        if entry_time.tzinfo is None:
            entry_time = entry_time.replace(tzinfo=UTC)
        return Position(
            symbol=str(row["symbol"]),
            amount=float(row["amount"]),
            entry_price=float(row["entry_price"]),
            entry_time=entry_time,
        )
