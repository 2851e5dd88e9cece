"""Order gateway and venue metadata interface."""

from __future__ import annotations

from typing import Iterable

from crossbot.execution.models import Account, Instrument, OrderKind, OrderRequest, OrderResult, Position


class OrderGateway:
    def submit(self, request: OrderRequest) -> OrderResult:  # pragma: no cover - interface
        raise NotImplementedError

    def flatten(self, instrument: str, account: str, source_tag: str) -> OrderResult:  # pragma: no cover
        raise NotImplementedError

    def list_positions(self) -> Iterable[Position]:  # pragma: no cover - interface
        raise NotImplementedError

    def get_instrument(self, name: str) -> Instrument | None:  # pragma: no cover - interface
        raise NotImplementedError

    def get_account(self, account_id: str) -> Account | None:  # pragma: no cover - interface
        raise NotImplementedError

    def supported_order_kinds(self, connection_id: str) -> set[OrderKind]:  # pragma: no cover - interface
        raise NotImplementedError
