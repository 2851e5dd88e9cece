"""Running PnL and fee totals from confirmed trades."""

from __future__ import annotations

from dataclasses import dataclass

from crossbot.execution.models import Trade


@dataclass(frozen=True)
class RunningTotals:
    net_pnl: float = 0.0
    gross_pnl: float = 0.0
    fee: float = 0.0


class TradeAccumulator:
    def __init__(self) -> None:
        self._totals = RunningTotals()
        self.trade_count = 0

    @property
    def totals(self) -> RunningTotals:
        return self._totals

    def on_trade_confirmed(self, trade: Trade) -> RunningTotals:
        # missing components count as zero
        self._totals = RunningTotals(
            net_pnl=self._totals.net_pnl + (trade.net_pnl or 0.0),
            gross_pnl=self._totals.gross_pnl + (trade.gross_pnl or 0.0),
            fee=self._totals.fee + (trade.fee or 0.0),
        )
        self.trade_count += 1
        return self._totals
