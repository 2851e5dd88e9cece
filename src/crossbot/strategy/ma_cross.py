"""Dual moving average cross strategy."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from crossbot.errors import ConfigurationError
from crossbot.strategy.base import SignalStrategy, values_present
from crossbot.strategy.indicators import IndicatorEngine, IndicatorSeries
from crossbot.strategy.market_data import HistoricalData
from crossbot.strategy.models import StrategyKind

MA_TYPES = ("sma", "ema")
# "ordering" closes whenever fast != slow; "cross" needs a fresh cross.
CLOSE_MODES = ("ordering", "cross")


@dataclass(frozen=True)
class MovingAverageCrossParams:
    fast_period: int = 5
    slow_period: int = 10
    ma_type: str = "sma"
    close_mode: str = "ordering"

    def __post_init__(self) -> None:
        if self.fast_period < 1 or self.slow_period < 1:
            raise ConfigurationError("Moving average periods must be at least 1")
        if self.ma_type not in MA_TYPES:
            raise ConfigurationError(f"Unsupported ma_type: {self.ma_type}")
        if self.close_mode not in CLOSE_MODES:
            raise ConfigurationError(f"Unsupported close_mode: {self.close_mode}")

    @staticmethod
    def from_dict(data: dict) -> "MovingAverageCrossParams":
        return MovingAverageCrossParams(
            fast_period=int(data.get("fast_period", 5)),
            slow_period=int(data.get("slow_period", 10)),
            ma_type=str(data.get("ma_type", "sma")).lower(),
            close_mode=str(data.get("close_mode", "ordering")).lower(),
        )


class MovingAverageCrossStrategy(SignalStrategy):
    kind = StrategyKind.MA_CROSS

    def __init__(self, params: Optional[MovingAverageCrossParams] = None, engine: Optional[IndicatorEngine] = None) -> None:
        super().__init__(engine)
        self.params = params or MovingAverageCrossParams()
        self._fast: Optional[IndicatorSeries] = None
        self._slow: Optional[IndicatorSeries] = None

    def _create_indicators(self, history: HistoricalData) -> None:
        build = self.engine.sma if self.params.ma_type == "sma" else self.engine.ema
        self._fast = build(history, self.params.fast_period)
        self._slow = build(history, self.params.slow_period)

    def _release_indicators(self) -> None:
        for series in (self._fast, self._slow):
            if series is not None:
                series.dispose()
        self._fast = None
        self._slow = None

    def _values(self) -> tuple[Optional[float], Optional[float], Optional[float], Optional[float]]:
        self._require_ready()
        return (
            self._fast.value(2),
            self._slow.value(2),
            self._fast.value(1),
            self._slow.value(1),
        )

    def is_long_signal(self) -> bool:
        fast_prev, slow_prev, fast_cur, slow_cur = self._values()
        if not values_present(fast_prev, slow_prev, fast_cur, slow_cur):
            return False
        return fast_prev < slow_prev and fast_cur > slow_cur

    def is_short_signal(self) -> bool:
        fast_prev, slow_prev, fast_cur, slow_cur = self._values()
        if not values_present(fast_prev, slow_prev, fast_cur, slow_cur):
            return False
        return fast_prev > slow_prev and fast_cur < slow_cur

    def should_close_position(self) -> bool:
        if self.params.close_mode == "cross":
            return self.is_long_signal() or self.is_short_signal()
        _, _, fast_cur, slow_cur = self._values()
        if not values_present(fast_cur, slow_cur):
            return False
        return fast_cur < slow_cur or fast_cur > slow_cur

    def describe(self) -> dict[str, Any]:
        return {"kind": self.kind.value, **asdict(self.params)}
