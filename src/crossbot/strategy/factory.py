"""Construction-time selection of the active signal strategy."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from crossbot.strategy.base import SignalStrategy
from crossbot.strategy.indicators import IndicatorEngine
from crossbot.strategy.ma_cross import MovingAverageCrossParams, MovingAverageCrossStrategy
from crossbot.strategy.macd import MacdHistogramStrategy, MacdParams
from crossbot.strategy.models import StrategyKind
from crossbot.strategy.rsi import RsiParams, RsiThresholdStrategy

if TYPE_CHECKING:  # pragma: no cover
    from crossbot.config.models import StrategyConfig


def build_strategy(config: "StrategyConfig", engine: Optional[IndicatorEngine] = None) -> SignalStrategy:
    kind = StrategyKind(config.kind)
    parameters = config.parameters or {}
    if kind == StrategyKind.MA_CROSS:
        return MovingAverageCrossStrategy(MovingAverageCrossParams.from_dict(parameters), engine)
    if kind == StrategyKind.MACD:
        return MacdHistogramStrategy(MacdParams.from_dict(parameters), engine)
    if kind == StrategyKind.RSI:
        return RsiThresholdStrategy(RsiParams.from_dict(parameters), engine)
    raise ValueError(f"Unsupported strategy kind: {kind}")  # pragma: no cover
