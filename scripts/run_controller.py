from __future__ import annotations

import argparse
import asyncio
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path

from crossbot.config import BotConfig, freeze_config, load_config, verify_config_lock
from crossbot.controller import TradingController
from crossbot.errors import ConfigurationError
from crossbot.events import EventBus
from crossbot.execution import Account, Instrument, PaperGateway
from crossbot.monitoring import LogNotifier, Monitor
from crossbot.runtime import AsyncEventPump, HaltLatch, MarketTick, PumpConfig, create_run_context
from crossbot.strategy import HistoryFeed, build_strategy, load_ticks_csv


def _random_walk(start: datetime, count: int, step_seconds: int, seed: int) -> list[tuple[datetime, float]]:
    rng = random.Random(seed)
    price = 1.1000
    ticks = []
    for index in range(count):
        price = max(0.0001, price + rng.gauss(0.0, 0.0004))
        ticks.append((start + timedelta(seconds=index * step_seconds), round(price, 5)))
    return ticks


def _build_gateway(bus: EventBus, config: BotConfig) -> PaperGateway:
    if config.execution.gateway != "paper":
        raise ConfigurationError(f"Unsupported gateway: {config.execution.gateway}")
    connection_id = config.execution.connection_id
    return PaperGateway(
        bus,
        instruments=[Instrument(config.controller.instrument, connection_id, config.execution.tick_size)],
        accounts=[Account(config.controller.account, connection_id)],
        fee_per_unit=config.execution.fee_per_unit,
    )


async def _replay(
    pump: AsyncEventPump,
    controller: TradingController,
    ticks: list[tuple[datetime, float]],
    delay: float,
    stop_event: asyncio.Event,
) -> None:
    for time, price in ticks:
        if not controller.running:
            break
        await pump.put(MarketTick(controller.config.instrument, time, price))
        await asyncio.sleep(delay)
    await pump.queue.join()
    stop_event.set()


async def _run(pump: AsyncEventPump, controller: TradingController, ticks, delay: float) -> None:
    stop_event = asyncio.Event()
    async with asyncio.TaskGroup() as group:
        group.create_task(pump.run_forever(stop_event))
        group.create_task(_replay(pump, controller, ticks, delay, stop_event))


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay ticks through the trading controller on the paper venue.")
    parser.add_argument("--config", default="configs/ma_cross_paper.yaml")
    parser.add_argument("--ticks", default=None, help="CSV with time,price columns")
    parser.add_argument("--count", type=int, default=2000, help="random-walk ticks when no CSV is given")
    parser.add_argument("--step-seconds", type=int, default=30)
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--delay", type=float, default=0.0)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--clear-halt", action="store_true")
    args = parser.parse_args()

    config_path = Path(args.config)
    config = load_config(config_path)
    lock_path = freeze_config(config_path)
    if not verify_config_lock(config_path, lock_path):
        raise SystemExit("Config lock mismatch")

    context = create_run_context(config_path, config.run_id_prefix, run_id=args.run_id)
    audit = context.audit_log(config.monitoring.audit_log_path)
    audit.log("run_start", {"config": str(config_path), "lock": str(lock_path)})
    monitor = Monitor(LogNotifier())

    halt = HaltLatch(config.runtime.halt_path, latched=config.runtime.halt_latched, audit_log=audit)
    if args.clear_halt:
        halt.clear("manual_clear")
    if halt.halted:
        raise SystemExit(f"Halt latched: {halt.state.reason} (use --clear-halt)")

    if args.ticks:
        ticks = load_ticks_csv(args.ticks)
    else:
        start = datetime.now(timezone.utc).replace(microsecond=0) - timedelta(seconds=args.count * args.step_seconds)
        ticks = _random_walk(start, args.count, args.step_seconds, args.seed)
    if not ticks:
        raise SystemExit("No ticks to replay")

    bus = EventBus()
    feed = HistoryFeed(bus)
    gateway = _build_gateway(bus, config)
    strategy = build_strategy(config.strategy)
    controller = TradingController(
        config.controller,
        strategy,
        gateway,
        bus,
        feed,
        audit_log=audit,
        monitor=monitor,
        halt=halt,
    )
    controller.start(now=ticks[0][0])

    pump = AsyncEventPump(
        bus,
        feed=feed,
        controller=controller,
        config=PumpConfig(
            bar_loop_interval_seconds=config.runtime.bar_loop_interval_seconds,
            metrics_interval_seconds=config.runtime.status_interval_seconds,
            metrics_path=config.runtime.metrics_path,
        ),
        halt=halt,
        audit_log=audit,
    )
    try:
        asyncio.run(_run(pump, controller, ticks, args.delay))
    finally:
        controller.stop("replay finished")
        gateway.close()
        pump.write_metrics_once()

    metrics = controller.metrics()
    print(
        f"run={context.run_id} ticks={pump.dispatched} trades={metrics.trades} "
        f"net={metrics.net_pnl:.5f} gross={metrics.gross_pnl:.5f} fee={metrics.fee:.5f} "
        f"stop={metrics.stop_reason}"
    )


if __name__ == "__main__":
    main()
