from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest

from tradeguard.core.scheduler import Scheduler, parse_time_of_day

START = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)


def test_interval_task_runs_immediately_then_on_interval() -> None:
    scheduler = Scheduler()
    calls: list[int] = []
    scheduler.register_interval_task("tick", 60, lambda: calls.append(1), now=START)

    assert scheduler.run_pending(START) == 1
    assert scheduler.run_pending(START + timedelta(seconds=30)) == 0
    assert scheduler.run_pending(START + timedelta(seconds=60)) == 1
    assert len(calls) == 2


def test_missed_slots_are_not_replayed() -> None:
    scheduler = Scheduler()
    calls: list[int] = []
    scheduler.register_interval_task("tick", 60, lambda: calls.append(1), now=START)

    scheduler.run_pending(START + timedelta(minutes=10, seconds=5))

    assert len(calls) == 1
    assert scheduler.next_run("tick") == START + timedelta(minutes=11)


def test_timed_task_runs_daily() -> None:
    scheduler = Scheduler()
    calls: list[int] = []
    scheduler.register_timed_task("report", "08:30", lambda: calls.append(1), now=START)

    assert scheduler.next_run("report") == datetime(2024, 1, 2, 8, 30, tzinfo=UTC)
    assert scheduler.run_pending(datetime(2024, 1, 2, 8, 29, tzinfo=UTC)) == 0
    assert scheduler.run_pending(datetime(2024, 1, 2, 8, 30, tzinfo=UTC)) == 1
    assert scheduler.next_run("report") == datetime(2024, 1, 3, 8, 30, tzinfo=UTC)


def test_registering_same_name_replaces_task() -> None:
    scheduler = Scheduler()
    calls: list[str] = []
    scheduler.register_interval_task("tick", 60, lambda: calls.append("old"), now=START)
    scheduler.register_interval_task("tick", 60, lambda: calls.append("new"), now=START)

    scheduler.run_pending(START)

    assert calls == ["new"]
    assert scheduler.task_names() == ["tick"]


def test_failing_task_does_not_stop_others() -> None:
    scheduler = Scheduler()
    calls: list[str] = []

    def broken() -> None:
        raise RuntimeError("boom")

    scheduler.register_interval_task("a_broken", 60, broken, now=START)
    scheduler.register_interval_task("b_ok", 60, lambda: calls.append("ok"), now=START)

    assert scheduler.run_pending(START) == 2
    assert calls == ["ok"]


def test_cancel_task_and_cancel_all() -> None:
    scheduler = Scheduler()
    scheduler.register_interval_task("a", 60, lambda: None, now=START)
    scheduler.register_interval_task("b", 60, lambda: None, now=START)

    assert scheduler.cancel_task("a") is True
    assert scheduler.cancel_task("a") is False
    assert scheduler.task_names() == ["b"]

    scheduler.cancel_all()
    assert scheduler.run_pending(START) == 0


def test_stop_from_inside_a_task_ends_run_forever() -> None:
    scheduler = Scheduler(poll_seconds=0.01)
    calls: list[int] = []

    def task() -> None:
        calls.append(1)
        if len(calls) == 3:
            scheduler.stop()

    scheduler.register_interval_task("tick", 0.01, task)
    worker = threading.Thread(target=scheduler.run_forever)
    worker.start()
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert len(calls) == 3
    assert scheduler.stopped


@pytest.mark.parametrize("value", ["8", "24:00", "08:60", "ab:cd", "08:30:00"])
def test_parse_time_of_day_rejects_bad_values(value: str) -> None:
    with pytest.raises(ValueError):
        parse_time_of_day(value)
