"""Execution models for venue interaction."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> "Side":
        return Side.SELL if self is Side.BUY else Side.BUY

    @property
    def label(self) -> str:
        return "long" if self is Side.BUY else "short"


class OrderKind(str, Enum):
    MARKET = "market"
    LIMIT = "limit"
    STOP = "stop"


class ResultStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Instrument:
    name: str
    connection_id: str
    tick_size: float = 0.0001


@dataclass(frozen=True)
class Account:
    account_id: str
    connection_id: str


@dataclass(frozen=True)
class OrderRequest:
    account: str
    instrument: str
    side: Side
    quantity: float
    order_kind: OrderKind
    source_tag: str
    price: Optional[float] = None
    trigger_price: Optional[float] = None
    stop_loss_ticks: Optional[int] = None
    take_profit_ticks: Optional[int] = None


@dataclass(frozen=True)
class OrderResult:
    status: ResultStatus
    message: str = ""
    order_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    def describe(self) -> str:
        return self.message or self.status.value


@dataclass(frozen=True)
class Position:
    position_id: str
    instrument: str
    account: str
    side: Side
    quantity: float
    open_price: float = 0.0
    open_time: Optional[datetime] = None

    @property
    def signed_quantity(self) -> float:
        return self.quantity if self.side == Side.BUY else -self.quantity


@dataclass(frozen=True)
class Trade:
    trade_id: str
    instrument: str
    account: str
    side: Side
    quantity: float
    price: float
    time: Optional[datetime] = None
    net_pnl: Optional[float] = None
    gross_pnl: Optional[float] = None
    fee: Optional[float] = None
    position_id: Optional[str] = None
