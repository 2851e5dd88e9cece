"""MACD histogram zero-cross strategy."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from crossbot.errors import ConfigurationError
from crossbot.strategy.base import SignalStrategy, values_present
from crossbot.strategy.indicators import IndicatorEngine, IndicatorSeries
from crossbot.strategy.market_data import HistoricalData
from crossbot.strategy.models import StrategyKind

HISTOGRAM_LINE = 2


@dataclass(frozen=True)
class MacdParams:
    fast_period: int = 12
    slow_period: int = 26
    signal_period: int = 9

    def __post_init__(self) -> None:
        if min(self.fast_period, self.slow_period, self.signal_period) < 1:
            raise ConfigurationError("MACD periods must be at least 1")

    @staticmethod
    def from_dict(data: dict) -> "MacdParams":
        return MacdParams(
            fast_period=int(data.get("fast_period", 12)),
            slow_period=int(data.get("slow_period", 26)),
            signal_period=int(data.get("signal_period", 9)),
        )


class MacdHistogramStrategy(SignalStrategy):
    kind = StrategyKind.MACD

    def __init__(self, params: Optional[MacdParams] = None, engine: Optional[IndicatorEngine] = None) -> None:
        super().__init__(engine)
        self.params = params or MacdParams()
        self._macd: Optional[IndicatorSeries] = None

    def _create_indicators(self, history: HistoricalData) -> None:
        self._macd = self.engine.macd(
            history,
            self.params.fast_period,
            self.params.slow_period,
            self.params.signal_period,
        )

    def _release_indicators(self) -> None:
        if self._macd is not None:
            self._macd.dispose()
        self._macd = None

    def _histogram(self) -> tuple[Optional[float], Optional[float]]:
        self._require_ready()
        return self._macd.value(2, HISTOGRAM_LINE), self._macd.value(1, HISTOGRAM_LINE)

    def is_long_signal(self) -> bool:
        previous, current = self._histogram()
        if not values_present(previous, current):
            return False
        return previous < 0 and current > 0

    def is_short_signal(self) -> bool:
        previous, current = self._histogram()
        if not values_present(previous, current):
            return False
        return previous > 0 and current < 0

    def should_close_position(self) -> bool:
        previous, current = self._histogram()
        if not values_present(previous, current):
            return False
        return (current > 0 and previous < 0) or (current < 0 and previous > 0)

    def describe(self) -> dict[str, Any]:
        return {"kind": self.kind.value, **asdict(self.params)}
