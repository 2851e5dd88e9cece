"""Monitoring exports."""

from crossbot.monitoring.audit import AuditLog
from crossbot.monitoring.monitor import Monitor
from crossbot.monitoring.notifier import LogNotifier, MemoryNotifier, Notifier

__all__ = [
    "AuditLog",
    "LogNotifier",
    "MemoryNotifier",
    "Monitor",
    "Notifier",
]
