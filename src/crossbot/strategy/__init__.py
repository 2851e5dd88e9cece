"""Signal strategies, indicators and market data."""

from crossbot.strategy.base import SignalStrategy
from crossbot.strategy.factory import build_strategy
from crossbot.strategy.indicators import IndicatorEngine, IndicatorSeries
from crossbot.strategy.ma_cross import MovingAverageCrossParams, MovingAverageCrossStrategy
from crossbot.strategy.macd import MacdHistogramStrategy, MacdParams
from crossbot.strategy.market_data import PERIODS, HistoricalData, HistoryFeed, load_ticks_csv
from crossbot.strategy.models import SignalDecision, StrategyKind
from crossbot.strategy.rsi import RsiParams, RsiThresholdStrategy

__all__ = [
    "HistoricalData",
    "HistoryFeed",
    "IndicatorEngine",
    "IndicatorSeries",
    "MacdHistogramStrategy",
    "MacdParams",
    "MovingAverageCrossParams",
    "MovingAverageCrossStrategy",
    "PERIODS",
    "RsiParams",
    "RsiThresholdStrategy",
    "SignalDecision",
    "SignalStrategy",
    "StrategyKind",
    "build_strategy",
    "load_ticks_csv",
]
