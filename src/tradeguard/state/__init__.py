"""Ledger store interfaces and implementations."""

from .sqlite_store import SqliteLedgerStore
from .store import LedgerStore

__all__ = ["LedgerStore", "SqliteLedgerStore"]
