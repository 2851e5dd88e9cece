"""RSI overbought/oversold threshold strategy."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from crossbot.errors import ConfigurationError
from crossbot.strategy.base import SignalStrategy, values_present
from crossbot.strategy.indicators import IndicatorEngine, IndicatorSeries
from crossbot.strategy.market_data import HistoricalData
from crossbot.strategy.models import StrategyKind


@dataclass(frozen=True)
class RsiParams:
    period: int = 14
    overbought: float = 70.0
    oversold: float = 30.0
    neutral_low: float = 45.0
    neutral_high: float = 55.0

    def __post_init__(self) -> None:
        if self.period < 1:
            raise ConfigurationError("RSI period must be at least 1")
        if not self.oversold < self.overbought:
            raise ConfigurationError("RSI oversold level must be below overbought level")
        if not self.neutral_low < self.neutral_high:
            raise ConfigurationError("RSI neutral band is empty")

    @staticmethod
    def from_dict(data: dict) -> "RsiParams":
        return RsiParams(
            period=int(data.get("period", 14)),
            overbought=float(data.get("overbought", 70.0)),
            oversold=float(data.get("oversold", 30.0)),
            neutral_low=float(data.get("neutral_low", 45.0)),
            neutral_high=float(data.get("neutral_high", 55.0)),
        )


class RsiThresholdStrategy(SignalStrategy):
    kind = StrategyKind.RSI

    def __init__(self, params: Optional[RsiParams] = None, engine: Optional[IndicatorEngine] = None) -> None:
        super().__init__(engine)
        self.params = params or RsiParams()
        self._rsi: Optional[IndicatorSeries] = None

    def _create_indicators(self, history: HistoricalData) -> None:
        self._rsi = self.engine.rsi(history, self.params.period)

    def _release_indicators(self) -> None:
        if self._rsi is not None:
            self._rsi.dispose()
        self._rsi = None

    def _values(self) -> tuple[Optional[float], Optional[float]]:
        self._require_ready()
        return self._rsi.value(2), self._rsi.value(1)

    def is_long_signal(self) -> bool:
        previous, current = self._values()
        if not values_present(previous, current):
            return False
        return previous < self.params.oversold and current > self.params.oversold

    def is_short_signal(self) -> bool:
        previous, current = self._values()
        if not values_present(previous, current):
            return False
        return previous > self.params.overbought and current < self.params.overbought

    def should_close_position(self) -> bool:
        _, current = self._values()
        if current is None:
            return False
        return self.params.neutral_low < current < self.params.neutral_high

    def describe(self) -> dict[str, Any]:
        return {"kind": self.kind.value, **asdict(self.params)}
