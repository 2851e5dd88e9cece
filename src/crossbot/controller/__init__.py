"""Trading controller exports."""

from crossbot.controller.controller import ControllerStatus, TradingController
from crossbot.controller.gate import GateState, TradingGate
from crossbot.controller.ledger import PositionCounts, PositionLedger
from crossbot.controller.pnl import RunningTotals, TradeAccumulator

__all__ = [
    "ControllerStatus",
    "GateState",
    "PositionCounts",
    "PositionLedger",
    "RunningTotals",
    "TradeAccumulator",
    "TradingController",
    "TradingGate",
]
