"""Venue-backed view of positions for one instrument/account pair."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from crossbot.execution.gateway import OrderGateway
from crossbot.execution.models import Position, Side


@dataclass(frozen=True)
class PositionCounts:
    long: int = 0
    short: int = 0

    @property
    def total(self) -> int:
        return self.long + self.short


class PositionLedger:
    """Re-reads positions from the gateway on every call; nothing is cached."""

    def __init__(self, gateway: OrderGateway, instrument: str, account: str) -> None:
        self.gateway = gateway
        self.instrument = instrument
        self.account = account

    def tracks(self, instrument: str, account: str) -> bool:
        return instrument == self.instrument and account == self.account

    def current_positions(self) -> tuple[Position, ...]:
        return tuple(
            position
            for position in self.gateway.list_positions()
            if self.tracks(position.instrument, position.account)
        )

    @staticmethod
    def position_counts(positions: Sequence[Position]) -> PositionCounts:
        long = sum(1 for position in positions if position.side == Side.BUY)
        return PositionCounts(long=long, short=len(positions) - long)

    @staticmethod
    def net_quantity(positions: Sequence[Position]) -> float:
        return sum(position.signed_quantity for position in positions)
