"""Pending-confirmation gate for entries and exits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class GateState:
    awaiting_open: bool = False
    awaiting_close: bool = False

    @property
    def blocked(self) -> bool:
        return self.awaiting_open or self.awaiting_close


class TradingGate:
    """Blocks new trading actions while an entry or exit awaits confirmation."""

    def __init__(self, audit_log: Optional[object] = None) -> None:
        self._audit_log = audit_log
        self._awaiting_open = False
        self._awaiting_close = False

    def _log(self, event: str, payload: dict) -> None:
        if self._audit_log is None:
            return
        self._audit_log.log(event, payload)

    @property
    def awaiting_open(self) -> bool:
        return self._awaiting_open

    @property
    def awaiting_close(self) -> bool:
        return self._awaiting_close

    @property
    def state(self) -> GateState:
        return GateState(self._awaiting_open, self._awaiting_close)

    def can_trade(self) -> bool:
        if self._awaiting_open:
            self._log("gate_skip", {"reason": "awaiting_open"})
            return False
        if self._awaiting_close:
            self._log("gate_skip", {"reason": "awaiting_close"})
            return False
        return True

    def mark_opening(self, value: bool) -> None:
        value = bool(value)
        if not value and not self._awaiting_open:
            return
        self._awaiting_open = value
        self._log("gate_flag", {"flag": "awaiting_open", "value": value})

    def mark_closing(self, value: bool) -> None:
        value = bool(value)
        if not value and not self._awaiting_close:
            return
        self._awaiting_close = value
        self._log("gate_flag", {"flag": "awaiting_close", "value": value})
