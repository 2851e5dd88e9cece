"""Configuration models for reproducible controller runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from crossbot.execution.models import OrderKind
from crossbot.strategy.models import StrategyKind


@dataclass(frozen=True)
class ControllerConfig:
    instrument: str
    account: str
    quantity: float = 1.0
    period: str = "M5"
    start_point: Optional[datetime] = None
    lookback_days: int = 100
    strategy_id: int = 1
    order_kind: OrderKind = OrderKind.MARKET
    entry_offset_ticks: int = 0
    stop_loss_ticks: Optional[int] = None
    take_profit_ticks: Optional[int] = None
    source_prefix: str = "MA_Cross"

    def resolve_start_point(self, now: datetime) -> datetime:
        if self.start_point is not None:
            return self.start_point
        return now - timedelta(days=self.lookback_days)


@dataclass(frozen=True)
class StrategyConfig:
    kind: StrategyKind
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExecutionConfig:
    gateway: str = "paper"
    connection_id: str = "paper"
    fee_per_unit: float = 0.0
    tick_size: float = 0.0001


@dataclass(frozen=True)
class MonitoringConfig:
    audit_log_path: str = "runtime/audit.log"


@dataclass(frozen=True)
class RuntimeConfig:
    bar_loop_interval_seconds: float = 1.0
    status_interval_seconds: float = 5.0
    metrics_path: str = "runtime/metrics.json"
    halt_path: str = "runtime/halt.json"
    halt_latched: bool = True


@dataclass(frozen=True)
class BotConfig:
    name: str
    version: str
    run_id_prefix: str
    controller: ControllerConfig
    strategy: StrategyConfig
    execution: ExecutionConfig = ExecutionConfig()
    monitoring: MonitoringConfig = MonitoringConfig()
    runtime: RuntimeConfig = RuntimeConfig()
