"""Controller counters and PnL snapshots for runtime observability."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path


@dataclass(frozen=True)
class ControllerMetrics:
    status: str
    long_positions: int = 0
    short_positions: int = 0
    net_pnl: float = 0.0
    gross_pnl: float = 0.0
    fee: float = 0.0
    trades: int = 0
    awaiting_open: bool = False
    awaiting_close: bool = False
    stop_reason: str | None = None


def write_metrics(path: str | Path, snapshot: ControllerMetrics) -> dict:
    path = Path(path)
    payload = asdict(snapshot)
    payload["last_updated"] = datetime.now(timezone.utc).isoformat()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return payload


def read_metrics(path: str | Path) -> dict:
    path = Path(path)
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return {}
