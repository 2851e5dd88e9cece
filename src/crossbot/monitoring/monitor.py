"""Operator alert routing."""

from __future__ import annotations

from dataclasses import dataclass

from crossbot.monitoring.notifier import Notifier


@dataclass
class Monitor:
    notifier: Notifier

    def halted(self, reason: str) -> None:
        self.notifier.notify("HALT", reason)

    def order_rejected(self, instrument: str, message: str) -> None:
        self.notifier.notify("ORDER_REJECTED", f"{instrument}: {message}")

    def configuration_error(self, message: str) -> None:
        self.notifier.notify("CONFIG", message)
