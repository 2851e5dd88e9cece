from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from crossbot.config import ControllerConfig
from crossbot.controller import ControllerStatus, TradingController
from crossbot.errors import ConfigurationError
from crossbot.events import (
    EventBus,
    HistoryUpdated,
    OrderRejected,
    PositionAdded,
    PositionRemoved,
    TradeConfirmed,
)
from crossbot.execution import (
    Account,
    Instrument,
    OrderGateway,
    OrderKind,
    OrderResult,
    PaperGateway,
    Position,
    ResultStatus,
    Side,
    Trade,
)
from crossbot.monitoring import MemoryNotifier, Monitor
from crossbot.runtime import HaltLatch
from crossbot.strategy import HistoryFeed, SignalDecision, SignalStrategy, StrategyKind

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


class RecordingAudit:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def log(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))

    def count(self, name: str) -> int:
        return sum(1 for event, _ in self.events if event == name)


class ScriptedStrategy(SignalStrategy):
    kind = StrategyKind.MA_CROSS

    def __init__(self, trace: list[str] | None = None) -> None:
        super().__init__()
        self.long = False
        self.short = False
        self.close = False
        self.queries: list[str] = []
        self.trace = trace if trace is not None else []

    def _create_indicators(self, history) -> None:
        self.history = history

    def _release_indicators(self) -> None:
        self.trace.append("strategy")

    def is_long_signal(self) -> bool:
        self.queries.append("long")
        return self.long

    def is_short_signal(self) -> bool:
        self.queries.append("short")
        return self.short

    def should_close_position(self) -> bool:
        self.queries.append("close")
        return self.close

    def describe(self) -> dict:
        return {"kind": "scripted"}


class StubGateway(OrderGateway):
    """Venue that never publishes; tests drive confirmations by hand."""

    def __init__(self) -> None:
        self.positions: list[Position] = []
        self.result = OrderResult(ResultStatus.SUCCESS, "Accepted", "order-1")
        self.submitted = []
        self.flattened = []

    def submit(self, request):
        self.submitted.append(request)
        return self.result

    def flatten(self, instrument, account, source_tag):
        self.flattened.append((instrument, account, source_tag))
        return self.result

    def list_positions(self):
        return list(self.positions)

    def get_instrument(self, name):
        return Instrument("EURUSD", "paper") if name == "EURUSD" else None

    def get_account(self, account_id):
        return Account("acc-1", "paper") if account_id == "acc-1" else None

    def supported_order_kinds(self, connection_id):
        return {OrderKind.MARKET}


class RecordingBus(EventBus):
    def __init__(self, trace: list[str]) -> None:
        super().__init__()
        self.trace = trace

    def _remove(self, subscription) -> None:
        self.trace.append(subscription.event_type.__name__)
        super()._remove(subscription)


class RecordingFeed(HistoryFeed):
    def __init__(self, bus: EventBus, trace: list[str]) -> None:
        super().__init__(bus)
        self.trace = trace

    def release(self, history) -> None:
        self.trace.append("history")
        super().release(history)


def _position(position_id: str, side: Side = Side.BUY, quantity: float = 1.0, instrument: str = "EURUSD"):
    return Position(position_id, instrument, "acc-1", side, quantity)


def _build(gateway=None, bus=None, feed=None, strategy=None, halt=None, start=True, **config):
    bus = bus or EventBus()
    feed = feed or HistoryFeed(bus)
    if gateway is None:
        gateway = StubGateway()
    elif gateway == "paper":
        gateway = PaperGateway(
            bus,
            instruments=[Instrument("EURUSD", "paper")],
            accounts=[Account("acc-1", "paper")],
            fee_per_unit=0.5,
        )
    strategy = strategy or ScriptedStrategy()
    audit = RecordingAudit()
    notifier = MemoryNotifier()
    controller = TradingController(
        ControllerConfig(**{"instrument": "EURUSD", "account": "acc-1", **config}),
        strategy,
        gateway,
        bus,
        feed,
        audit_log=audit,
        monitor=Monitor(notifier),
        halt=halt,
    )
    if start:
        controller.start(now=START)
    return SimpleNamespace(
        controller=controller,
        gateway=gateway,
        bus=bus,
        feed=feed,
        strategy=strategy,
        audit=audit,
        notifier=notifier,
    )


def test_gate_blocks_all_actions_until_open_is_confirmed():
    env = _build()
    env.strategy.long = True

    assert env.controller.on_update() == SignalDecision.OPEN_LONG
    assert env.controller.gate.awaiting_open
    queries = list(env.strategy.queries)

    for _ in range(3):
        assert env.controller.on_update() is None

    assert len(env.gateway.submitted) == 1
    assert env.strategy.queries == queries

    env.gateway.positions = [_position("p1")]
    env.bus.publish(PositionAdded(env.gateway.positions[0]))

    assert not env.controller.gate.awaiting_open
    assert env.controller.counts.long == 1


def test_partial_quantity_does_not_clear_opening_flag():
    env = _build(quantity=2.0)
    env.strategy.long = True
    env.controller.on_update()

    env.gateway.positions = [_position("p1", quantity=1.0)]
    env.bus.publish(PositionAdded(env.gateway.positions[0]))
    assert env.controller.gate.awaiting_open

    env.gateway.positions.append(_position("p2", quantity=1.0))
    env.bus.publish(PositionAdded(env.gateway.positions[1]))
    assert not env.controller.gate.awaiting_open
    assert env.controller.counts.long == 2


def test_closing_flag_clears_only_when_no_positions_remain():
    env = _build()
    env.gateway.positions = [_position("p1"), _position("p2", Side.SELL)]
    env.strategy.close = True

    assert env.controller.on_update() == SignalDecision.CLOSE
    assert env.gateway.flattened == [("EURUSD", "acc-1", "MA_Cross_1_EURUSD_close")]
    assert env.controller.gate.awaiting_close

    removed = env.gateway.positions.pop(0)
    env.bus.publish(PositionRemoved(removed))
    assert env.controller.gate.awaiting_close
    assert env.controller.on_update() is None

    removed = env.gateway.positions.pop(0)
    env.bus.publish(PositionRemoved(removed))
    assert not env.controller.gate.awaiting_close
    assert env.controller.counts.total == 0


def test_open_position_without_close_signal_holds():
    env = _build()
    env.gateway.positions = [_position("p1")]
    env.strategy.long = True

    assert env.controller.on_update() == SignalDecision.HOLD
    assert env.gateway.submitted == []
    assert env.strategy.queries == ["close"]


def test_long_wins_when_both_signals_fire():
    env = _build()
    env.strategy.long = True
    env.strategy.short = True

    env.controller.on_update()

    assert [request.side for request in env.gateway.submitted] == [Side.BUY]


def test_events_for_other_pairs_are_ignored():
    env = _build()
    env.strategy.long = True
    env.controller.on_update()

    other = _position("x1", instrument="GBPUSD")
    env.bus.publish(PositionAdded(other))
    env.bus.publish(TradeConfirmed(Trade("t1", "EURUSD", "acc-2", Side.BUY, 1.0, 1.1, net_pnl=5.0)))
    env.bus.publish(OrderRejected("GBPUSD", "acc-1", "nope"))

    assert env.controller.gate.awaiting_open
    assert env.controller.accumulator.totals.net_pnl == 0.0
    assert env.controller.status == ControllerStatus.RUNNING


def test_synchronous_refusal_stops_exactly_once(tmp_path):
    halt = HaltLatch(tmp_path / "halt.json")
    env = _build(halt=halt)
    env.gateway.result = OrderResult(ResultStatus.FAILURE, "no margin")
    env.strategy.short = True

    env.controller.on_update()
    env.controller.stop("again")
    env.bus.publish(OrderRejected("EURUSD", "acc-1", "late"))

    assert env.controller.status == ControllerStatus.STOPPED
    assert env.audit.count("controller_stopped") == 1
    assert [event for event, _ in env.notifier.messages] == ["HALT"]
    assert halt.halted
    assert "no margin" in halt.state.reason
    assert HaltLatch(tmp_path / "halt.json").state.reason == halt.state.reason


def test_asynchronous_rejection_stops_exactly_once():
    env = _build(gateway="paper")
    env.gateway.reject_next("insufficient margin")
    env.strategy.long = True

    env.controller.on_update()
    env.bus.publish(OrderRejected("EURUSD", "acc-1", "duplicate"))

    assert env.controller.status == ControllerStatus.STOPPED
    assert env.controller.stop_reason == "Order rejected: insufficient margin"
    assert env.audit.count("controller_stopped") == 1
    assert [event for event, _ in env.notifier.messages] == ["ORDER_REJECTED", "HALT"]
    assert env.bus.subscriber_count(PositionAdded) == 0
    assert env.bus.subscriber_count(HistoryUpdated) == 1  # paper venue marks only


def test_stop_releases_in_fixed_order():
    trace: list[str] = []
    bus = RecordingBus(trace)
    env = _build(bus=bus, feed=RecordingFeed(bus, trace), strategy=ScriptedStrategy(trace))

    env.controller.stop("operator")

    assert trace == [
        "PositionAdded",
        "PositionRemoved",
        "OrderRejected",
        "TradeConfirmed",
        "HistoryUpdated",
        "strategy",
        "history",
    ]
    assert env.audit.count("controller_stopped") == 1
    assert env.notifier.messages == []


def test_no_handler_runs_after_stop():
    env = _build()
    env.controller.stop()
    env.strategy.long = True

    env.gateway.positions = [_position("p1")]
    env.bus.publish(PositionAdded(env.gateway.positions[0]))
    env.bus.publish(TradeConfirmed(Trade("t1", "EURUSD", "acc-1", Side.BUY, 1.0, 1.1, net_pnl=5.0)))
    env.feed.push_tick("EURUSD", START, 1.1)

    assert env.controller.on_update() is None
    assert env.strategy.queries == []
    assert env.controller.counts.total == 0
    assert env.controller.accumulator.totals.net_pnl == 0.0
    with pytest.raises(RuntimeError):
        env.controller.start(now=START)


def test_market_data_updates_drive_the_loop():
    env = _build()

    assert env.feed.is_subscribed("EURUSD")
    assert env.controller.history.start_point == START - timedelta(days=100)
    env.feed.push_tick("EURUSD", START, 1.1)
    env.feed.push_tick("EURUSD", START + timedelta(minutes=5), 1.2)

    assert env.strategy.queries == ["long", "short", "long", "short"]


def test_limit_entry_uses_last_closed_bar_as_reference():
    gateway = StubGateway()
    gateway.supported_order_kinds = lambda connection_id: {OrderKind.MARKET, OrderKind.LIMIT}
    env = _build(gateway=gateway, order_kind=OrderKind.LIMIT, entry_offset_ticks=2)
    env.feed.push_tick("EURUSD", START, 1.1)
    env.feed.push_tick("EURUSD", START + timedelta(minutes=5), 1.2)
    env.strategy.long = True

    env.controller.on_update()

    assert env.gateway.submitted[0].price == pytest.approx(1.1 - 0.0002)


def test_paper_round_trip_accumulates_totals():
    env = _build(gateway="paper")
    env.gateway.mark("EURUSD", 1.1)
    env.strategy.long = True

    env.controller.on_update()
    assert not env.controller.gate.awaiting_open
    assert env.controller.counts.long == 1

    env.gateway.mark("EURUSD", 1.105)
    env.strategy.close = True
    env.controller.on_update()

    metrics = env.controller.metrics()
    assert metrics.status == "running"
    assert metrics.long_positions == 0
    assert metrics.trades == 2
    assert metrics.gross_pnl == pytest.approx(0.005)
    assert metrics.fee == pytest.approx(1.0)
    assert metrics.net_pnl == pytest.approx(-0.995)
    assert not metrics.awaiting_close


def test_unknown_instrument_is_fatal_configuration_error():
    env = _build(start=False, instrument="GBPUSD")

    with pytest.raises(ConfigurationError):
        env.controller.start(now=START)

    assert env.controller.status == ControllerStatus.CREATED
    assert env.audit.count("configuration_error") == 1
    assert [event for event, _ in env.notifier.messages] == ["CONFIG"]
    assert not env.feed.is_subscribed("GBPUSD")
    assert env.bus.subscriber_count(PositionAdded) == 0


def test_missing_account_is_configuration_error():
    env = _build(start=False, account="")

    with pytest.raises(ConfigurationError):
        env.controller.start(now=START)


def test_mismatched_connections_are_configuration_error():
    gateway = StubGateway()
    gateway.get_account = lambda account_id: Account("acc-1", "live")
    env = _build(gateway=gateway, start=False)

    with pytest.raises(ConfigurationError, match="connection"):
        env.controller.start(now=START)


def test_unsupported_order_kind_is_configuration_error():
    env = _build(start=False, order_kind=OrderKind.STOP)

    with pytest.raises(ConfigurationError, match="stop"):
        env.controller.start(now=START)
    assert not env.feed.is_subscribed("EURUSD")


@pytest.mark.parametrize(
    "settings",
    [
        {"quantity": 0.0},
        {"period": "M7"},
        {"entry_offset_ticks": -1},
        {"stop_loss_ticks": 0},
        {"take_profit_ticks": -3},
    ],
)
def test_invalid_settings_are_fatal_at_start(settings):
    env = _build(start=False, **settings)

    with pytest.raises(ConfigurationError):
        env.controller.start(now=START)

    assert env.controller.status == ControllerStatus.CREATED
    assert env.audit.count("configuration_error") == 1
    assert [event for event, _ in env.notifier.messages] == ["CONFIG"]
    assert not env.feed.is_subscribed("EURUSD")
    assert env.bus.subscriber_count(PositionAdded) == 0


def test_feed_subscription_failure_is_logged_configuration_error():
    class RefusingFeed(HistoryFeed):
        def subscribe(self, instrument, period, start_point):
            raise ConfigurationError(f"No data for {instrument}")

    bus = EventBus()
    env = _build(bus=bus, feed=RefusingFeed(bus), start=False)

    with pytest.raises(ConfigurationError, match="No data"):
        env.controller.start(now=START)

    assert env.controller.status == ControllerStatus.CREATED
    assert env.audit.count("configuration_error") == 1
    assert [event for event, _ in env.notifier.messages] == ["CONFIG"]
    assert env.bus.subscriber_count(HistoryUpdated) == 0
