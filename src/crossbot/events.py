"""Venue and market-data events with a serialized dispatch bus."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:  # pragma: no cover
    from crossbot.execution.models import Position, Trade


@dataclass(frozen=True)
class PositionAdded:
    position: Position

    @property
    def instrument(self) -> str:
        return self.position.instrument

    @property
    def account(self) -> str:
        return self.position.account


@dataclass(frozen=True)
class PositionRemoved:
    position: Position

    @property
    def instrument(self) -> str:
        return self.position.instrument

    @property
    def account(self) -> str:
        return self.position.account


@dataclass(frozen=True)
class OrderRejected:
    instrument: str
    account: str
    message: str = ""
    order_id: Optional[str] = None
    source_tag: Optional[str] = None


@dataclass(frozen=True)
class TradeConfirmed:
    trade: Trade

    @property
    def instrument(self) -> str:
        return self.trade.instrument

    @property
    def account(self) -> str:
        return self.trade.account


@dataclass(frozen=True)
class HistoryUpdated:
    instrument: str
    time: datetime
    price: float
    bar_closed: bool = False


Handler = Callable[[Any], None]


class Subscription:
    """Handle for one registered handler; closing it is idempotent."""

    def __init__(self, bus: "EventBus", event_type: type, handler: Handler) -> None:
        self._bus = bus
        self.event_type = event_type
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class EventBus:
    """Delivers events one at a time, in publish order, exactly once.

    A publish made while another event is being dispatched (from inside a
    handler or from another thread) is queued and delivered by the caller that
    is already dispatching, so no two handlers ever run concurrently.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[type, list[Subscription]] = {}
        self._pending: deque[Any] = deque()
        self._lock = threading.Lock()
        self._dispatching = False

    def subscribe(self, event_type: type, handler: Handler) -> Subscription:
        subscription = Subscription(self, event_type, handler)
        with self._lock:
            self._subscriptions.setdefault(event_type, []).append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            handlers = self._subscriptions.get(subscription.event_type, [])
            if subscription in handlers:
                handlers.remove(subscription)

    def subscriber_count(self, event_type: type) -> int:
        with self._lock:
            return len(self._subscriptions.get(event_type, []))

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def publish(self, event: Any) -> None:
        with self._lock:
            self._pending.append(event)
            if self._dispatching:
                return
            self._dispatching = True
        try:
            self._drain()
        except BaseException:
            with self._lock:
                self._dispatching = False
            raise

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    self._dispatching = False
                    return
                event = self._pending.popleft()
                handlers = list(self._subscriptions.get(type(event), []))
            for subscription in handlers:
                # a handler earlier in this pass may have closed it
                if subscription.active:
                    subscription.handler(event)
