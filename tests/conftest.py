from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from tradeguard.portfolio.ledger import PortfolioLedger
from tradeguard.state.sqlite_store import SqliteLedgerStore


@pytest.fixture
def store(tmp_path: Path) -> Iterator[SqliteLedgerStore]:
    ledger_store = SqliteLedgerStore(str(tmp_path / "ledger.db"))
    yield ledger_store
    ledger_store.close()


@pytest.fixture
def ledger(store: SqliteLedgerStore) -> PortfolioLedger:
    return PortfolioLedger(store)
