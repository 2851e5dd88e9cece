"""Halt latch recording why a controller stopped trading."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from crossbot.monitoring.monitor import Monitor


@dataclass(frozen=True)
class HaltState:
    halted: bool
    reason: Optional[str]
    since: Optional[datetime]


class HaltLatch:
    def __init__(
        self,
        path: str | Path | None = None,
        latched: bool = True,
        monitor: Optional[Monitor] = None,
        audit_log: Optional[object] = None,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.latched = latched
        self.monitor = monitor
        self._audit_log = audit_log
        self._state = self._load_state()

    def _log(self, event: str, payload: dict) -> None:
        if self._audit_log is None:
            return
        self._audit_log.log(event, payload)

    def _load_state(self) -> HaltState:
        if self.path is None or not self.path.exists():
            return HaltState(False, None, None)
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        since = payload.get("since")
        return HaltState(
            halted=bool(payload.get("halted", False)),
            reason=payload.get("reason"),
            since=datetime.fromisoformat(since) if since else None,
        )

    def _save_state(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "halted": self._state.halted,
            "reason": self._state.reason,
            "since": self._state.since.isoformat() if self._state.since else None,
        }
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    @property
    def state(self) -> HaltState:
        return self._state

    @property
    def halted(self) -> bool:
        return self._state.halted

    def trigger(self, reason: str) -> bool:
        """Record a halt; returns False when an earlier halt is latched."""
        if self._state.halted and self.latched:
            return False
        self._state = HaltState(True, reason, datetime.now(timezone.utc))
        self._save_state()
        if self.monitor is not None:
            self.monitor.halted(reason)
        self._log("halt", {"halted": True, "reason": reason})
        return True

    def clear(self, reason: str = "manual") -> None:
        self._state = HaltState(False, reason, datetime.now(timezone.utc))
        self._save_state()
        self._log("halt", {"halted": False, "reason": reason})
