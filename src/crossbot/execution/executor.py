"""Turns signal decisions into gateway submissions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional, Sequence

from crossbot.errors import GatewayError
from crossbot.execution.gateway import OrderGateway
from crossbot.execution.models import Instrument, OrderKind, OrderRequest, OrderResult, Position, ResultStatus, Side
from crossbot.execution.requests import build_order_request, generate_source_tag

if TYPE_CHECKING:  # pragma: no cover
    from crossbot.config.models import ControllerConfig
    from crossbot.controller.gate import TradingGate


class OrderExecutor:
    """Submits entry orders and flatten requests for one instrument/account.

    The gate flag is raised before anything reaches the gateway and is left
    raised afterwards; only a confirmation event clears it. A refused
    submission is reported through ``on_refused`` and never retried.
    """

    def __init__(
        self,
        gateway: OrderGateway,
        gate: "TradingGate",
        config: "ControllerConfig",
        instrument: Instrument,
        on_refused: Callable[[str], None],
        audit_log: Optional[object] = None,
    ) -> None:
        self.gateway = gateway
        self.gate = gate
        self.config = config
        self.instrument = instrument
        self._on_refused = on_refused
        self._audit_log = audit_log

    def _log(self, event: str, payload: dict) -> None:
        if self._audit_log is None:
            return
        self._audit_log.log(event, payload)

    def source_tag(self, action: str) -> str:
        return generate_source_tag(
            self.config.strategy_id,
            self.instrument.name,
            action,
            prefix=self.config.source_prefix,
        )

    def build_entry_request(self, side: Side, source: str, reference_price: Optional[float] = None) -> OrderRequest:
        kind = self.config.order_kind
        price = None
        trigger_price = None
        if kind != OrderKind.MARKET:
            if reference_price is None:
                raise ValueError(f"{kind.value} entry requires a reference price")
            offset = self.config.entry_offset_ticks * self.instrument.tick_size
            direction = 1.0 if side == Side.BUY else -1.0
            if kind == OrderKind.LIMIT:
                price = reference_price - direction * offset
            else:
                trigger_price = reference_price + direction * offset

        return build_order_request(
            account=self.config.account,
            instrument=self.instrument.name,
            side=side,
            quantity=self.config.quantity,
            source_tag=source,
            order_kind=kind,
            price=price,
            trigger_price=trigger_price,
            stop_loss_ticks=self.config.stop_loss_ticks,
            take_profit_ticks=self.config.take_profit_ticks,
        )

    def execute_open(self, side: Side, reference_price: Optional[float] = None) -> OrderResult:
        side = Side(side)
        source = self.source_tag("open")
        request = self.build_entry_request(side, source, reference_price)

        self.gate.mark_opening(True)
        self._log(
            "open_requested",
            {
                "source": source,
                "side": side.value,
                "quantity": request.quantity,
                "order_kind": request.order_kind.value,
                "price": request.price,
                "trigger_price": request.trigger_price,
            },
        )
        try:
            result = self.gateway.submit(request)
        except GatewayError as exc:
            result = OrderResult(ResultStatus.FAILURE, str(exc))

        if not result.ok:
            self._log("order_refused", {"source": source, "side": side.value, "message": result.describe()})
            self._on_refused(f"Opening {side.label} position refused: {result.describe()}")
        else:
            self._log("order_submitted", {"source": source, "order_id": result.order_id, "status": result.status.value})
        return result

    def execute_close(self, positions: Sequence[Position]) -> OrderResult:
        source = self.source_tag("close")
        self.gate.mark_closing(True)
        self._log("flatten_requested", {"source": source, "positions": len(positions)})
        try:
            result = self.gateway.flatten(self.instrument.name, self.config.account, source)
        except GatewayError as exc:
            result = OrderResult(ResultStatus.FAILURE, str(exc))

        if not result.ok:
            self._log("flatten_refused", {"source": source, "message": result.describe()})
            self._on_refused(f"Flatten refused: {result.describe()}")
        else:
            self._log("flatten_submitted", {"source": source, "status": result.status.value})
        return result
