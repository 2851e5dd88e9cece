"""Paper venue for local runs and tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional

from crossbot.events import EventBus, HistoryUpdated, OrderRejected, PositionAdded, PositionRemoved, TradeConfirmed
from crossbot.execution.gateway import OrderGateway
from crossbot.execution.models import (
    Account,
    Instrument,
    OrderKind,
    OrderRequest,
    OrderResult,
    Position,
    ResultStatus,
    Trade,
)


class PaperGateway(OrderGateway):
    """Fills orders against the last marked price and reports through the bus.

    Confirmations are published, never returned: the synchronous result only
    says whether the venue accepted the request.
    """

    def __init__(
        self,
        bus: EventBus,
        instruments: Iterable[Instrument] = (),
        accounts: Iterable[Account] = (),
        order_kinds: Optional[dict[str, set[OrderKind]]] = None,
        fee_per_unit: float = 0.0,
        fill_on_submit: bool = True,
    ) -> None:
        self.bus = bus
        self.fee_per_unit = fee_per_unit
        self.fill_on_submit = fill_on_submit
        self._instruments = {instrument.name: instrument for instrument in instruments}
        self._accounts = {account.account_id: account for account in accounts}
        self._order_kinds = order_kinds
        self._positions: dict[str, Position] = {}
        self._last_price: dict[str, float] = {}
        self._last_time: dict[str, datetime] = {}
        self._pending_fills: list[tuple[str, OrderRequest]] = []
        self._counter = 0
        self._refuse_message: Optional[str] = None
        self._refuse_remaining = 0
        self._reject_message: Optional[str] = None
        self._reject_remaining = 0
        self.requests: list[OrderRequest] = []
        self.flatten_requests: list[tuple[str, str, str]] = []
        self._market_subscription = bus.subscribe(HistoryUpdated, self._on_history_updated)

    def close(self) -> None:
        self._market_subscription.close()

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    def _now(self, instrument: str) -> datetime:
        return self._last_time.get(instrument) or datetime.now(timezone.utc)

    def _on_history_updated(self, event: HistoryUpdated) -> None:
        self.mark(event.instrument, event.price, event.time)

    def mark(self, instrument: str, price: float, time: Optional[datetime] = None) -> None:
        self._last_price[instrument] = price
        if time is not None:
            self._last_time[instrument] = time

    def refuse_next(self, message: str = "Refused by paper venue", count: int = 1) -> None:
        self._refuse_message = message
        self._refuse_remaining = count

    def reject_next(self, message: str = "Rejected by paper venue", count: int = 1) -> None:
        self._reject_message = message
        self._reject_remaining = count

    def _take_refusal(self) -> Optional[str]:
        if self._refuse_remaining <= 0:
            return None
        self._refuse_remaining -= 1
        return self._refuse_message

    def submit(self, request: OrderRequest) -> OrderResult:
        self.requests.append(request)
        refusal = self._take_refusal()
        if refusal is not None:
            return OrderResult(ResultStatus.FAILURE, refusal)

        instrument = self._instruments.get(request.instrument)
        account = self._accounts.get(request.account)
        if instrument is None:
            return OrderResult(ResultStatus.FAILURE, f"Unknown instrument {request.instrument}")
        if account is None:
            return OrderResult(ResultStatus.FAILURE, f"Unknown account {request.account}")
        if request.order_kind not in self.supported_order_kinds(instrument.connection_id):
            return OrderResult(ResultStatus.FAILURE, f"Order kind {request.order_kind.value} not supported")

        order_id = self._next_id("paper-order")
        if self._reject_remaining > 0:
            self._reject_remaining -= 1
            self.bus.publish(
                OrderRejected(
                    instrument=request.instrument,
                    account=request.account,
                    message=self._reject_message or "",
                    order_id=order_id,
                    source_tag=request.source_tag,
                )
            )
            return OrderResult(ResultStatus.SUCCESS, "Accepted", order_id)

        if self.fill_on_submit:
            self._fill(order_id, request)
        else:
            self._pending_fills.append((order_id, request))
        return OrderResult(ResultStatus.SUCCESS, "Accepted", order_id)

    def fill_pending(self) -> int:
        pending, self._pending_fills = self._pending_fills, []
        for order_id, request in pending:
            self._fill(order_id, request)
        return len(pending)

    def _fill(self, order_id: str, request: OrderRequest) -> None:
        price = request.price or request.trigger_price or self._last_price.get(request.instrument, 0.0)
        time = self._now(request.instrument)
        position = Position(
            position_id=self._next_id("paper-position"),
            instrument=request.instrument,
            account=request.account,
            side=request.side,
            quantity=request.quantity,
            open_price=price,
            open_time=time,
        )
        self._positions[position.position_id] = position
        fee = request.quantity * self.fee_per_unit
        self.bus.publish(PositionAdded(position))
        self.bus.publish(
            TradeConfirmed(
                Trade(
                    trade_id=self._next_id("paper-trade"),
                    instrument=request.instrument,
                    account=request.account,
                    side=request.side,
                    quantity=request.quantity,
                    price=price,
                    time=time,
                    net_pnl=-fee,
                    gross_pnl=0.0,
                    fee=fee,
                    position_id=position.position_id,
                )
            )
        )

    def flatten(self, instrument: str, account: str, source_tag: str) -> OrderResult:
        self.flatten_requests.append((instrument, account, source_tag))
        refusal = self._take_refusal()
        if refusal is not None:
            return OrderResult(ResultStatus.FAILURE, refusal)

        targets = [
            position
            for position in self._positions.values()
            if position.instrument == instrument and position.account == account
        ]
        if not targets:
            return OrderResult(ResultStatus.SUCCESS, "Nothing to flatten")

        exit_price = self._last_price.get(instrument, 0.0)
        time = self._now(instrument)
        for position in targets:
            del self._positions[position.position_id]
            gross = (exit_price - position.open_price) * position.signed_quantity
            fee = position.quantity * self.fee_per_unit
            self.bus.publish(
                TradeConfirmed(
                    Trade(
                        trade_id=self._next_id("paper-trade"),
                        instrument=instrument,
                        account=account,
                        side=position.side.opposite,
                        quantity=position.quantity,
                        price=exit_price,
                        time=time,
                        net_pnl=gross - fee,
                        gross_pnl=gross,
                        fee=fee,
                        position_id=position.position_id,
                    )
                )
            )
            self.bus.publish(PositionRemoved(position))
        return OrderResult(ResultStatus.SUCCESS, f"Flattened {len(targets)} positions")

    def list_positions(self) -> list[Position]:
        return list(self._positions.values())

    def get_instrument(self, name: str) -> Instrument | None:
        return self._instruments.get(name)

    def get_account(self, account_id: str) -> Account | None:
        return self._accounts.get(account_id)

    def supported_order_kinds(self, connection_id: str) -> set[OrderKind]:
        if self._order_kinds is None:
            return set(OrderKind)
        return set(self._order_kinds.get(connection_id, set()))
