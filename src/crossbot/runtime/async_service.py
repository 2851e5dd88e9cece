"""Asyncio event pump feeding the bus from the event-loop thread."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from crossbot.events import EventBus
from crossbot.runtime.halt import HaltLatch
from crossbot.runtime.metrics import write_metrics
from crossbot.strategy.market_data import HistoryFeed

if TYPE_CHECKING:  # pragma: no cover
    from crossbot.controller.controller import TradingController


Callback = Callable[[], Awaitable[None] | None]


@dataclass(frozen=True)
class MarketTick:
    instrument: str
    time: datetime
    price: float


@dataclass(frozen=True)
class PumpConfig:
    bar_loop_interval_seconds: float = 1.0
    metrics_interval_seconds: float = 5.0
    queue_poll_seconds: float = 0.05
    metrics_path: Optional[str] = None


class AsyncEventPump:
    """Moves queued ticks and venue events onto the bus one at a time.

    Producers on the loop call ``put``; other threads use
    ``put_threadsafe``. Ticks go through the feed so history is updated
    before ``HistoryUpdated`` is published.
    """

    def __init__(
        self,
        bus: EventBus,
        feed: Optional[HistoryFeed] = None,
        controller: Optional["TradingController"] = None,
        config: Optional[PumpConfig] = None,
        halt: Optional[HaltLatch] = None,
        audit_log: Optional[object] = None,
    ) -> None:
        self.bus = bus
        self.feed = feed
        self.controller = controller
        self.config = config or PumpConfig()
        self.halt = halt
        self._audit_log = audit_log
        self.queue: asyncio.Queue[Any] = asyncio.Queue()
        self.dispatched = 0

    def _log(self, event: str, payload: dict) -> None:
        if self._audit_log is None:
            return
        self._audit_log.log(event, payload)

    async def put(self, item: Any) -> None:
        await self.queue.put(item)

    def put_threadsafe(self, loop: asyncio.AbstractEventLoop, item: Any) -> None:
        loop.call_soon_threadsafe(self.queue.put_nowait, item)

    async def _maybe_call(self, callback: Callback | None) -> None:
        if callback is None:
            return
        result = callback()
        if inspect.isawaitable(result):
            await result

    def _fail(self, name: str, exc: Exception) -> None:
        self._log("service_error", {"loop": name, "error": str(exc)})
        reason = f"{name} loop error: {exc}"
        if self.controller is not None:
            self.controller.stop(reason, halt=True)
        elif self.halt is not None:
            self.halt.trigger(reason)

    def dispatch(self, item: Any) -> None:
        if isinstance(item, MarketTick):
            if self.feed is None:
                raise RuntimeError("MarketTick queued without a feed")
            self.feed.push_tick(item.instrument, item.time, item.price)
        else:
            self.bus.publish(item)
        self.dispatched += 1

    async def _drain(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                item = await asyncio.wait_for(self.queue.get(), timeout=self.config.queue_poll_seconds)
            except asyncio.TimeoutError:
                continue
            try:
                self.dispatch(item)
            except Exception as exc:
                self._fail("dispatch", exc)
            finally:
                self.queue.task_done()

    async def _run_periodic(
        self,
        name: str,
        interval: float,
        callback: Callback | None,
        stop_event: asyncio.Event,
    ) -> None:
        loop = asyncio.get_running_loop()
        while not stop_event.is_set():
            start = loop.time()
            try:
                await self._maybe_call(callback)
            except Exception as exc:  # pragma: no cover - defensive
                self._fail(name, exc)
            elapsed = loop.time() - start
            delay = max(0.0, interval - elapsed)
            if delay:
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass

    def write_metrics_once(self) -> Optional[dict]:
        if self.controller is None or self.config.metrics_path is None:
            return None
        return write_metrics(Path(self.config.metrics_path), self.controller.metrics())

    async def run_forever(
        self,
        stop_event: Optional[asyncio.Event] = None,
        bar_callback: Callback | None = None,
    ) -> None:
        if stop_event is None:
            stop_event = asyncio.Event()

        async with asyncio.TaskGroup() as group:
            group.create_task(self._drain(stop_event))
            if bar_callback is not None:
                group.create_task(
                    self._run_periodic(
                        "bar",
                        self.config.bar_loop_interval_seconds,
                        bar_callback,
                        stop_event,
                    )
                )
            group.create_task(
                self._run_periodic(
                    "metrics",
                    self.config.metrics_interval_seconds,
                    self.write_metrics_once,
                    stop_event,
                )
            )
            await stop_event.wait()
        self.write_metrics_once()
