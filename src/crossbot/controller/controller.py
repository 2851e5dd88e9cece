"""Update loop wiring strategy, gate, ledger, executor and venue events."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from crossbot.config.models import ControllerConfig
from crossbot.controller.gate import TradingGate
from crossbot.controller.ledger import PositionCounts, PositionLedger
from crossbot.controller.pnl import TradeAccumulator
from crossbot.errors import ConfigurationError
from crossbot.events import (
    EventBus,
    HistoryUpdated,
    OrderRejected,
    PositionAdded,
    PositionRemoved,
    Subscription,
    TradeConfirmed,
)
from crossbot.execution.executor import OrderExecutor
from crossbot.execution.gateway import OrderGateway
from crossbot.execution.models import Account, Instrument, Side
from crossbot.monitoring.monitor import Monitor
from crossbot.runtime.halt import HaltLatch
from crossbot.runtime.metrics import ControllerMetrics
from crossbot.strategy.base import SignalStrategy
from crossbot.strategy.market_data import PERIODS, HistoricalData, HistoryFeed
from crossbot.strategy.models import SignalDecision

QUANTITY_TOLERANCE = 1e-9


class ControllerStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class TradingController:
    """Runs one strategy against one instrument/account pair.

    Every market data update goes through ``on_update``; venue confirmations
    arrive as bus events and are the only thing that clears the gate. Any
    refusal or rejection stops the controller for good.
    """

    def __init__(
        self,
        config: ControllerConfig,
        strategy: SignalStrategy,
        gateway: OrderGateway,
        bus: EventBus,
        feed: HistoryFeed,
        audit_log: Optional[object] = None,
        monitor: Optional[Monitor] = None,
        halt: Optional[HaltLatch] = None,
    ) -> None:
        self.config = config
        self.strategy = strategy
        self.gateway = gateway
        self.bus = bus
        self.feed = feed
        self.monitor = monitor
        self.halt = halt
        self._audit_log = audit_log

        self.gate = TradingGate(audit_log=audit_log)
        self.ledger = PositionLedger(gateway, config.instrument, config.account)
        self.accumulator = TradeAccumulator()
        self.counts = PositionCounts()
        self.status = ControllerStatus.CREATED
        self.stop_reason: Optional[str] = None

        self.instrument: Optional[Instrument] = None
        self.account: Optional[Account] = None
        self.history: Optional[HistoricalData] = None
        self.executor: Optional[OrderExecutor] = None
        self._venue_subscriptions: list[Subscription] = []
        self._market_subscription: Optional[Subscription] = None

    def _log(self, event: str, payload: dict) -> None:
        if self._audit_log is None:
            return
        self._audit_log.log(event, payload)

    @property
    def running(self) -> bool:
        return self.status == ControllerStatus.RUNNING

    def _configuration_error(self, message: str) -> ConfigurationError:
        self._log("configuration_error", {"message": message})
        if self.monitor is not None:
            self.monitor.configuration_error(message)
        return ConfigurationError(message)

    def _validate_settings(self) -> None:
        config = self.config
        if not config.quantity > 0:
            raise self._configuration_error(f"quantity must be positive, got {config.quantity}")
        if config.period not in PERIODS:
            raise self._configuration_error(f"Unsupported period: {config.period}")
        if config.entry_offset_ticks < 0:
            raise self._configuration_error(
                f"entry_offset_ticks must not be negative, got {config.entry_offset_ticks}"
            )
        for key in ("stop_loss_ticks", "take_profit_ticks"):
            ticks = getattr(config, key)
            if ticks is not None and ticks <= 0:
                raise self._configuration_error(f"{key} must be positive, got {ticks}")

    def _validate(self) -> tuple[Instrument, Account]:
        self._validate_settings()
        instrument = self.gateway.get_instrument(self.config.instrument) if self.config.instrument else None
        if instrument is None:
            raise self._configuration_error(f"Instrument is not specified or unknown: {self.config.instrument!r}")
        account = self.gateway.get_account(self.config.account) if self.config.account else None
        if account is None:
            raise self._configuration_error(f"Account is not specified or unknown: {self.config.account!r}")
        if instrument.connection_id != account.connection_id:
            raise self._configuration_error(
                f"Instrument and account have different connection ids "
                f"({instrument.connection_id} != {account.connection_id})"
            )
        if self.config.order_kind not in self.gateway.supported_order_kinds(instrument.connection_id):
            raise self._configuration_error(
                f"Connection {instrument.connection_id} does not support {self.config.order_kind.value} orders"
            )
        return instrument, account

    def start(self, now: Optional[datetime] = None) -> None:
        if self.status == ControllerStatus.RUNNING:
            return
        if self.status == ControllerStatus.STOPPED:
            raise RuntimeError("Controller was stopped and cannot be restarted")

        self.instrument, self.account = self._validate()
        start_point = self.config.resolve_start_point(now or datetime.now(timezone.utc))
        try:
            self.history = self.feed.subscribe(self.instrument.name, self.config.period, start_point)
        except ConfigurationError as exc:
            raise self._configuration_error(str(exc)) from exc
        try:
            self.strategy.initialize(self.instrument, self.history)
        except ConfigurationError as exc:
            self.feed.release(self.history)
            self.history = None
            raise self._configuration_error(str(exc)) from exc

        self.executor = OrderExecutor(
            self.gateway,
            self.gate,
            self.config,
            self.instrument,
            on_refused=self._on_refused,
            audit_log=self._audit_log,
        )
        self.counts = self.ledger.position_counts(self.ledger.current_positions())

        self._venue_subscriptions = [
            self.bus.subscribe(PositionAdded, self._on_position_added),
            self.bus.subscribe(PositionRemoved, self._on_position_removed),
            self.bus.subscribe(OrderRejected, self._on_order_rejected),
            self.bus.subscribe(TradeConfirmed, self._on_trade_confirmed),
        ]
        self._market_subscription = self.bus.subscribe(HistoryUpdated, self._on_history_updated)

        self.status = ControllerStatus.RUNNING
        self._log(
            "controller_started",
            {
                "instrument": self.instrument.name,
                "account": self.account.account_id,
                "period": self.config.period,
                "start_point": start_point.isoformat(),
                "quantity": self.config.quantity,
                "strategy": self.strategy.describe(),
                "source": self.executor.source_tag("start"),
            },
        )

    def _reference_price(self) -> Optional[float]:
        if self.history is None:
            return None
        return self.history.close_price(1)

    def on_update(self) -> Optional[SignalDecision]:
        if not self.running:
            return None
        positions = self.ledger.current_positions()
        if not self.gate.can_trade():
            return None

        decision = self.strategy.decide(bool(positions))
        if decision == SignalDecision.CLOSE:
            self.executor.execute_close(positions)
        elif decision == SignalDecision.OPEN_LONG:
            self.executor.execute_open(Side.BUY, self._reference_price())
        elif decision == SignalDecision.OPEN_SHORT:
            self.executor.execute_open(Side.SELL, self._reference_price())
        return decision

    def _refresh_positions(self) -> tuple:
        positions = self.ledger.current_positions()
        self.counts = self.ledger.position_counts(positions)
        return positions

    def _on_history_updated(self, event: HistoryUpdated) -> None:
        if event.instrument != self.config.instrument:
            return
        self.on_update()

    def _on_position_added(self, event: PositionAdded) -> None:
        if not self.ledger.tracks(event.instrument, event.account):
            return
        positions = self._refresh_positions()
        net = self.ledger.net_quantity(positions)
        self._log(
            "position_added",
            {
                "position_id": event.position.position_id,
                "side": event.position.side.value,
                "long": self.counts.long,
                "short": self.counts.short,
                "net_quantity": net,
            },
        )
        if abs(abs(net) - self.config.quantity) <= QUANTITY_TOLERANCE:
            self.gate.mark_opening(False)

    def _on_position_removed(self, event: PositionRemoved) -> None:
        if not self.ledger.tracks(event.instrument, event.account):
            return
        positions = self._refresh_positions()
        self._log(
            "position_removed",
            {
                "position_id": event.position.position_id,
                "long": self.counts.long,
                "short": self.counts.short,
                "remaining": len(positions),
            },
        )
        if not positions:
            self.gate.mark_closing(False)

    def _on_order_rejected(self, event: OrderRejected) -> None:
        if not self.ledger.tracks(event.instrument, event.account):
            return
        self._log(
            "order_rejected",
            {"order_id": event.order_id, "source": event.source_tag, "message": event.message},
        )
        if self.monitor is not None:
            self.monitor.order_rejected(event.instrument, event.message)
        self.stop(f"Order rejected: {event.message}", halt=True)

    def _on_trade_confirmed(self, event: TradeConfirmed) -> None:
        if not self.ledger.tracks(event.instrument, event.account):
            return
        totals = self.accumulator.on_trade_confirmed(event.trade)
        self._log(
            "trade_confirmed",
            {
                "trade_id": event.trade.trade_id,
                "net_pnl": totals.net_pnl,
                "gross_pnl": totals.gross_pnl,
                "fee": totals.fee,
            },
        )

    def _on_refused(self, message: str) -> None:
        self.stop(message, halt=True)

    def stop(self, reason: str = "stopped", halt: bool = False) -> None:
        """Tear down once; ``halt`` marks a stop forced by the venue and alerts."""
        if self.status == ControllerStatus.STOPPED:
            return
        self.status = ControllerStatus.STOPPED
        self.stop_reason = reason

        for subscription in self._venue_subscriptions:
            subscription.close()
        self._venue_subscriptions = []
        if self._market_subscription is not None:
            self._market_subscription.close()
            self._market_subscription = None
        self.strategy.dispose()
        if self.history is not None:
            self.feed.release(self.history)
            self.history = None

        self._log("controller_stopped", {"reason": reason, "halt": halt})
        if not halt:
            return
        if self.monitor is not None:
            self.monitor.halted(reason)
        if self.halt is not None:
            self.halt.trigger(reason)

    def metrics(self) -> ControllerMetrics:
        totals = self.accumulator.totals
        gate = self.gate.state
        return ControllerMetrics(
            status=self.status.value,
            long_positions=self.counts.long,
            short_positions=self.counts.short,
            net_pnl=totals.net_pnl,
            gross_pnl=totals.gross_pnl,
            fee=totals.fee,
            trades=self.accumulator.trade_count,
            awaiting_open=gate.awaiting_open,
            awaiting_close=gate.awaiting_close,
            stop_reason=self.stop_reason,
        )
