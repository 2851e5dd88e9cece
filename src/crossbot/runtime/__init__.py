"""Runtime services: halt latch, metrics, async pump and run context."""

from crossbot.runtime.async_service import AsyncEventPump, MarketTick, PumpConfig
from crossbot.runtime.context import RunContext, create_run_context
from crossbot.runtime.halt import HaltLatch, HaltState
from crossbot.runtime.metrics import ControllerMetrics, read_metrics, write_metrics

__all__ = [
    "AsyncEventPump",
    "ControllerMetrics",
    "HaltLatch",
    "HaltState",
    "MarketTick",
    "PumpConfig",
    "RunContext",
    "create_run_context",
    "read_metrics",
    "write_metrics",
]
