from datetime import datetime, timedelta, timezone
from pathlib import Path

from crossbot.config import ControllerConfig
from crossbot.controller import TradingController
from crossbot.events import EventBus
from crossbot.execution import Account, Instrument, PaperGateway
from crossbot.monitoring import AuditLog, LogNotifier, Monitor
from crossbot.strategy import HistoryFeed, MovingAverageCrossParams, MovingAverageCrossStrategy

start = datetime(2024, 6, 3, 8, 0, tzinfo=timezone.utc)

bus = EventBus()
feed = HistoryFeed(bus)
gateway = PaperGateway(
    bus,
    instruments=[Instrument("EURUSD", "paper")],
    accounts=[Account("demo-001", "paper")],
    fee_per_unit=0.2,
)
audit = AuditLog(Path("runtime") / "demo_audit.log")

controller = TradingController(
    ControllerConfig(instrument="EURUSD", account="demo-001", period="M1"),
    MovingAverageCrossStrategy(MovingAverageCrossParams(fast_period=3, slow_period=6, close_mode="cross")),
    gateway,
    bus,
    feed,
    audit_log=audit,
    monitor=Monitor(LogNotifier()),
)
controller.start(now=start)

prices = [1.100, 1.099, 1.098, 1.097, 1.096, 1.095, 1.094, 1.097, 1.101, 1.104, 1.106, 1.103, 1.099, 1.095, 1.092, 1.090]
for minute, price in enumerate(prices):
    feed.push_tick("EURUSD", start + timedelta(minutes=minute), price)
    print(f"{minute:02d} {price:.3f} positions={len(gateway.list_positions())} gate={controller.gate.state}")

print("Metrics:", controller.metrics())
controller.stop("demo finished")
