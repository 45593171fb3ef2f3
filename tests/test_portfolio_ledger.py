from __future__ import annotations

import pytest

from tradeguard.errors import LedgerError
from tradeguard.portfolio.ledger import PortfolioLedger


class FailingStore:
    def apply_delta(self, *_args: object, **_kwargs: object) -> None:
        raise LedgerError("database is locked")

    def apply_deltas(self, *_args: object, **_kwargs: object) -> None:
        raise LedgerError("database is locked")

    def list_positions(self) -> list:
        return []


def test_apply_delta_reports_success(ledger: PortfolioLedger) -> None:
    assert ledger.apply_delta("BTCUSDT", 2, 100)
    assert ledger.apply_delta("BTCUSDT", 3, 200)

    position = ledger.position("BTCUSDT")
    assert position is not None
    assert position.entry_price == pytest.approx(160)


def test_apply_delta_returns_false_when_store_rolls_back() -> None:
    ledger = PortfolioLedger(FailingStore())

    assert ledger.apply_delta("BTCUSDT", 1, 100) is False


def test_apply_deltas_books_both_legs(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("USDT", 100, 1.0)

    assert ledger.apply_deltas([("ETHUSDT", 2, 25), ("USDT", -50, 1.0)])

    assert ledger.valuation({"USDT": 1.0, "ETHUSDT": 25}) == pytest.approx(100)


def test_apply_deltas_returns_false_when_store_rolls_back() -> None:
    ledger = PortfolioLedger(FailingStore())

    assert ledger.apply_deltas([("ETHUSDT", 2, 25), ("USDT", -50, 1.0)]) is False


def test_closed_position_is_excluded_from_valuation(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("BTCUSDT", 1, 100)
    ledger.apply_delta("ETHUSDT", 2, 50)
    ledger.apply_delta("ETHUSDT", -2, 60)

    assert ledger.valuation({"BTCUSDT": 120, "ETHUSDT": 60}) == pytest.approx(120)


def test_unpriced_positions_count_as_zero(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("BTCUSDT", 1, 100)
    ledger.apply_delta("ETHUSDT", 1, 10)

    assert ledger.valuation({"BTCUSDT": 100}) == pytest.approx(100)


def test_overweight_boundary_is_strict(ledger: PortfolioLedger) -> None:
    ledger.apply_delta("USDT", 800, 1.0)
    ledger.apply_delta("BTCUSDT", 1, 200)

    assert ledger.valuation({"USDT": 1.0, "BTCUSDT": 200}) == pytest.approx(1000)
    assert not ledger.is_overweight("BTCUSDT", {"USDT": 1.0, "BTCUSDT": 200}, 0.2)
    assert ledger.is_overweight("BTCUSDT", {"USDT": 1.0, "BTCUSDT": 200.01}, 0.2)


def test_share_is_zero_for_empty_or_unknown(ledger: PortfolioLedger) -> None:
    assert ledger.share("BTCUSDT", {"BTCUSDT": 100}) == 0.0

    ledger.apply_delta("ETHUSDT", 1, 10)
    assert ledger.share("BTCUSDT", {"ETHUSDT": 10}) == 0.0
    assert ledger.share("ethusdt", {"ETHUSDT": 10}) == pytest.approx(1.0)
