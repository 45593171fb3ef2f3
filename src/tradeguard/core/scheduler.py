"""Interval and daily task scheduler driven by a single loop thread."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ScheduledTask:
    name: str
    task: Callable[[], Any]
    next_run: datetime
    interval: timedelta | None = None
    at: time | None = None
    runs: int = 0

    def advance(self, now: datetime) -> None:
        """Move next_run past now; missed slots are skipped, not replayed."""
        if self.interval is not None:
            while self.next_run <= now:
                self.next_run += self.interval
            return
        if self.at is not None:
            self.next_run = _next_daily_run(self.at, now)


def parse_time_of_day(value: str) -> time:
    """Parse an ``HH:MM`` string; raises ValueError on anything else."""
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValueError(f"Time of day must be HH:MM, got {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Time of day out of range: {value!r}")
    return time(hour=hour, minute=minute, tzinfo=UTC)


def _next_daily_run(at: time, now: datetime) -> datetime:
    candidate = now.astimezone(UTC).replace(
        hour=at.hour,
        minute=at.minute,
        second=0,
        microsecond=0,
    )
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class Scheduler:
    """Runs registered tasks one after another; a failing task never stops the loop."""

    def __init__(self, poll_seconds: float = 1.0) -> None:
        self.poll_seconds = poll_seconds
        self._tasks: dict[str, ScheduledTask] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def register_interval_task(
        self,
        name: str,
        interval_seconds: float,
        task: Callable[[], Any],
        now: datetime | None = None,
        run_immediately: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        current = now or datetime.now(tz=UTC)
        interval = timedelta(seconds=interval_seconds)
        first_run = current if run_immediately else current + interval
        self._register(ScheduledTask(name=name, task=task, next_run=first_run, interval=interval))
        logger.info("scheduler | %s | every %ss", name, interval_seconds)

    def register_timed_task(
        self,
        name: str,
        time_of_day: str,
        task: Callable[[], Any],
        now: datetime | None = None,
    ) -> None:
        """Run task daily at ``HH:MM`` UTC."""
        at = parse_time_of_day(time_of_day)
        current = now or datetime.now(tz=UTC)
        self._register(
            ScheduledTask(name=name, task=task, next_run=_next_daily_run(at, current), at=at)
        )
        logger.info("scheduler | %s | daily at %s UTC", name, time_of_day)

    def cancel_task(self, name: str) -> bool:
        with self._lock:
            removed = self._tasks.pop(name, None)
        if removed is not None:
            logger.info("scheduler | %s | cancelled", name)
        return removed is not None

    def cancel_all(self) -> None:
        with self._lock:
            self._tasks.clear()
        logger.info("scheduler | all tasks cancelled")

    def task_names(self) -> list[str]:
        with self._lock:
            return sorted(self._tasks)

    def next_run(self, name: str) -> datetime | None:
        with self._lock:
            task = self._tasks.get(name)
            return task.next_run if task is not None else None

    def run_pending(self, now: datetime | None = None) -> int:
        """Run every due task once and return how many ran."""
        current = now or datetime.now(tz=UTC)
        with self._lock:
            due = [task for task in self._tasks.values() if task.next_run <= current]
            for task in due:
                task.advance(current)
        ran = 0
        for task in due:
            if self._stop.is_set():
                break
            try:
                task.task()
            except Exception:
                logger.exception("scheduler | %s | task failed", task.name)
            task.runs += 1
            ran += 1
        return ran

    def run_forever(self) -> None:
        """Loop until :meth:`stop`; waits on an event so stopping is prompt."""
        logger.info("scheduler | started | %s", ", ".join(self.task_names()) or "no tasks")
        while not self.stopped:
            self.run_pending()
            self._stop.wait(self._seconds_until_next())
        logger.info("scheduler | stopped")

    def start(self) -> threading.Thread:
        """Run the loop in a background thread."""
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="tradeguard-scheduler", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        """Cancel future runs; a task already running finishes first."""
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _register(self, task: ScheduledTask) -> None:
        with self._lock:
            if task.name in self._tasks:
                logger.warning("scheduler | %s | already registered, replacing", task.name)
            self._tasks[task.name] = task

    def _seconds_until_next(self) -> float:
        with self._lock:
            if not self._tasks:
                return self.poll_seconds
            earliest = min(task.next_run for task in self._tasks.values())
        remaining = (earliest - datetime.now(tz=UTC)).total_seconds()
        return max(0.0, min(remaining, self.poll_seconds))
