from __future__ import annotations

import asyncio
import json
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from crossbot.config import ControllerConfig
from crossbot.controller import TradingController
from crossbot.events import EventBus, HistoryUpdated
from crossbot.execution import Account, Instrument, PaperGateway
from crossbot.monitoring import AuditLog, MemoryNotifier, Monitor
from crossbot.runtime import (
    AsyncEventPump,
    ControllerMetrics,
    HaltLatch,
    MarketTick,
    PumpConfig,
    create_run_context,
    read_metrics,
    write_metrics,
)
from crossbot.strategy import HistoryFeed, MovingAverageCrossStrategy

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Note:
    text: str


def test_halt_latch_keeps_first_reason_and_persists(tmp_path):
    notifier = MemoryNotifier()
    latch = HaltLatch(tmp_path / "halt.json", monitor=Monitor(notifier))

    assert latch.trigger("order rejected")
    assert not latch.trigger("second")

    assert latch.state.reason == "order rejected"
    assert notifier.messages == [("HALT", "order rejected")]
    reloaded = HaltLatch(tmp_path / "halt.json")
    assert reloaded.halted
    assert reloaded.state.reason == "order rejected"

    reloaded.clear()
    assert not HaltLatch(tmp_path / "halt.json").halted


def test_unlatched_halt_takes_latest_reason():
    latch = HaltLatch(latched=False)

    latch.trigger("first")
    latch.trigger("second")

    assert latch.state.reason == "second"
    assert latch.path is None


def test_write_and_read_metrics(tmp_path):
    path = tmp_path / "metrics" / "metrics.json"
    snapshot = ControllerMetrics(status="running", long_positions=1, net_pnl=2.5)

    payload = write_metrics(path, snapshot)

    assert payload["long_positions"] == 1
    stored = read_metrics(path)
    assert stored["status"] == "running"
    assert stored["net_pnl"] == 2.5
    assert "last_updated" in stored
    assert read_metrics(tmp_path / "missing.json") == {}


def test_run_context_and_audit_log(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("name: test\n", encoding="utf-8")

    context = create_run_context(config_path, "macross", started_at=START)
    audit = context.audit_log(tmp_path / "audit.log")
    audit.log("run_start", {"config": str(config_path)})

    assert context.run_id == f"macross-20240101T000000Z-{context.config_hash[:8]}"
    events = AuditLog(tmp_path / "audit.log").read_events()
    assert events[0]["event"] == "run_start"
    assert events[0]["run_id"] == context.run_id
    assert events[0]["config_hash"] == context.config_hash


def test_pump_dispatches_ticks_and_events_in_order():
    bus = EventBus()
    feed = HistoryFeed(bus)
    feed.subscribe("EURUSD", "M1", START)
    received: list = []
    bus.subscribe(HistoryUpdated, received.append)
    bus.subscribe(Note, received.append)
    pump = AsyncEventPump(bus, feed=feed, config=PumpConfig(queue_poll_seconds=0.01))
    bar_calls: list[int] = []

    async def scenario() -> None:
        stop_event = asyncio.Event()

        async def produce() -> None:
            await pump.put(MarketTick("EURUSD", START, 1.1))
            await pump.put(Note("between"))
            await pump.put(MarketTick("EURUSD", START + timedelta(minutes=1), 1.2))
            await pump.queue.join()
            stop_event.set()

        async with asyncio.TaskGroup() as group:
            group.create_task(pump.run_forever(stop_event, bar_callback=lambda: bar_calls.append(1)))
            group.create_task(produce())

    asyncio.run(scenario())

    assert [type(event).__name__ for event in received] == ["HistoryUpdated", "Note", "HistoryUpdated"]
    assert received[2].bar_closed is True
    assert pump.dispatched == 3
    assert bar_calls


def test_pump_writes_controller_metrics(tmp_path):
    bus = EventBus()
    feed = HistoryFeed(bus)
    gateway = PaperGateway(bus, instruments=[Instrument("EURUSD", "paper")], accounts=[Account("acc-1", "paper")])
    controller = TradingController(
        ControllerConfig(instrument="EURUSD", account="acc-1", period="M1"),
        MovingAverageCrossStrategy(),
        gateway,
        bus,
        feed,
    )
    controller.start(now=START)
    metrics_path = tmp_path / "metrics.json"
    pump = AsyncEventPump(
        bus,
        feed=feed,
        controller=controller,
        config=PumpConfig(metrics_interval_seconds=60.0, queue_poll_seconds=0.01, metrics_path=str(metrics_path)),
    )

    async def scenario() -> None:
        stop_event = asyncio.Event()

        async def produce() -> None:
            for minute in range(30):
                await pump.put(MarketTick("EURUSD", START + timedelta(minutes=minute), 1.1 + 0.001 * (minute % 7)))
            await pump.queue.join()
            stop_event.set()

        async with asyncio.TaskGroup() as group:
            group.create_task(pump.run_forever(stop_event))
            group.create_task(produce())

    asyncio.run(scenario())

    payload = json.loads(metrics_path.read_text(encoding="utf-8"))
    assert payload["status"] == "running"
    assert payload["trades"] == controller.metrics().trades
    assert len(controller.history) == 30


def test_pump_delivers_items_from_worker_thread_serially_in_order():
    bus = EventBus()
    received: list[str] = []
    handler_threads: set[int] = set()
    active = []

    def on_note(event: Note) -> None:
        assert not active
        active.append(event)
        handler_threads.add(threading.get_ident())
        received.append(event.text)
        active.pop()

    bus.subscribe(Note, on_note)
    pump = AsyncEventPump(bus, config=PumpConfig(queue_poll_seconds=0.01))
    loop_threads: list[int] = []

    async def scenario() -> None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        loop_threads.append(threading.get_ident())

        def worker() -> None:
            for index in range(20):
                pump.put_threadsafe(loop, Note(f"n{index}"))

        async def produce() -> None:
            await asyncio.to_thread(worker)
            await pump.queue.join()
            stop_event.set()

        async with asyncio.TaskGroup() as group:
            group.create_task(pump.run_forever(stop_event))
            group.create_task(produce())

    asyncio.run(scenario())

    assert received == [f"n{index}" for index in range(20)]
    assert handler_threads == set(loop_threads)
    assert pump.dispatched == 20


def test_pump_crash_halts_controller(tmp_path):
    bus = EventBus()
    feed = HistoryFeed(bus)
    gateway = PaperGateway(bus, instruments=[Instrument("EURUSD", "paper")], accounts=[Account("acc-1", "paper")])
    notifier = MemoryNotifier()
    halt = HaltLatch(tmp_path / "halt.json")
    controller = TradingController(
        ControllerConfig(instrument="EURUSD", account="acc-1", period="M1"),
        MovingAverageCrossStrategy(),
        gateway,
        bus,
        feed,
        monitor=Monitor(notifier),
        halt=halt,
    )
    controller.start(now=START)
    audit = AuditLog(tmp_path / "audit.log")
    pump = AsyncEventPump(bus, controller=controller, config=PumpConfig(queue_poll_seconds=0.01), audit_log=audit)

    async def scenario() -> None:
        stop_event = asyncio.Event()

        async def produce() -> None:
            await pump.put(MarketTick("EURUSD", START, 1.1))
            await pump.queue.join()
            stop_event.set()

        async with asyncio.TaskGroup() as group:
            group.create_task(pump.run_forever(stop_event))
            group.create_task(produce())

    asyncio.run(scenario())

    assert controller.status.value == "stopped"
    assert controller.stop_reason.startswith("dispatch loop error")
    assert ("HALT", controller.stop_reason) in notifier.messages
    assert halt.halted
    assert [event["event"] for event in audit.read_events()] == ["service_error"]
