"""Tick orchestration and scheduling."""

from .orchestrator import CycleOrchestrator, TickResult, TickStatus
from .scheduler import Scheduler

__all__ = ["CycleOrchestrator", "Scheduler", "TickResult", "TickStatus"]
