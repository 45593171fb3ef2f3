"""Alert delivery."""

from .notifier import EmailNotifier, LogNotifier, Notifier

__all__ = ["EmailNotifier", "LogNotifier", "Notifier"]
