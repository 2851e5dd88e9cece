"""Indicator series addressable by bars back."""

from __future__ import annotations

from typing import Optional

from crossbot.strategy.market_data import HistoricalData


def _ema_values(values: list[float], period: int) -> list[Optional[float]]:
    result: list[Optional[float]] = [None] * len(values)
    if len(values) < period:
        return result
    ema = sum(values[:period]) / period
    result[period - 1] = ema
    alpha = 2.0 / (period + 1.0)
    for index in range(period, len(values)):
        ema = alpha * values[index] + (1.0 - alpha) * ema
        result[index] = ema
    return result


class IndicatorSeries:
    """Values computed over a history's closes.

    ``value(1)`` is the most recently closed bar, ``value(0)`` the bar still
    forming. Multi-line indicators select a line with ``line``.
    """

    name = "indicator"
    lines = 1

    def __init__(self, history: HistoricalData) -> None:
        self._history: Optional[HistoricalData] = history
        self._cache: dict[tuple[int, int], Optional[float]] = {}
        self._cached_bars = -1

    @property
    def disposed(self) -> bool:
        return self._history is None

    def value(self, bars_back: int = 1, line: int = 0) -> Optional[float]:
        if self._history is None:
            raise RuntimeError(f"{self.name} series is disposed")
        if not 0 <= line < self.lines:
            raise IndexError(f"{self.name} has no line {line}")
        bar_count = len(self._history)
        end = bar_count - bars_back
        if bars_back < 0 or end <= 0:
            return None
        # closed bars never change, so their values hold until a new bar opens
        if bar_count != self._cached_bars:
            self._cache.clear()
            self._cached_bars = bar_count
        key = (bars_back, line)
        if bars_back > 0 and key in self._cache:
            return self._cache[key]
        result = self._compute(self._history.closes()[:end], line)
        if bars_back > 0:
            self._cache[key] = result
        return result

    def _compute(self, closes: list[float], line: int) -> Optional[float]:  # pragma: no cover - interface
        raise NotImplementedError

    def dispose(self) -> None:
        history = self._history
        if history is None:
            return
        self._history = None
        self._cache.clear()
        history.remove_indicator(self)


class SmaSeries(IndicatorSeries):
    name = "SMA"

    def __init__(self, history: HistoricalData, period: int) -> None:
        super().__init__(history)
        self.period = period

    def _compute(self, closes: list[float], line: int) -> Optional[float]:
        if len(closes) < self.period:
            return None
        return sum(closes[-self.period :]) / self.period


class EmaSeries(IndicatorSeries):
    name = "EMA"

    def __init__(self, history: HistoricalData, period: int) -> None:
        super().__init__(history)
        self.period = period

    def _compute(self, closes: list[float], line: int) -> Optional[float]:
        return _ema_values(closes, self.period)[-1] if closes else None


class MacdSeries(IndicatorSeries):
    """Lines: 0 MACD, 1 signal, 2 histogram."""

    name = "MACD"
    lines = 3

    def __init__(self, history: HistoricalData, fast_period: int, slow_period: int, signal_period: int) -> None:
        super().__init__(history)
        self.fast_period = fast_period
        self.slow_period = slow_period
        self.signal_period = signal_period

    def _compute(self, closes: list[float], line: int) -> Optional[float]:
        fast = _ema_values(closes, self.fast_period)
        slow = _ema_values(closes, self.slow_period)
        macd = [f - s for f, s in zip(fast, slow) if f is not None and s is not None]
        if not macd:
            return None
        if line == 0:
            return macd[-1]
        signal = _ema_values(macd, self.signal_period)[-1]
        if signal is None:
            return None
        if line == 1:
            return signal
        return macd[-1] - signal


class RsiSeries(IndicatorSeries):
    name = "RSI"

    def __init__(self, history: HistoricalData, period: int) -> None:
        super().__init__(history)
        self.period = period

    def _compute(self, closes: list[float], line: int) -> Optional[float]:
        if len(closes) < self.period + 1:
            return None
        deltas = [closes[i] - closes[i - 1] for i in range(len(closes) - self.period, len(closes))]
        gains = sum(delta for delta in deltas if delta > 0)
        losses = -sum(delta for delta in deltas if delta < 0)
        if gains == 0 and losses == 0:
            return 50.0
        if losses == 0:
            return 100.0
        rs = gains / losses
        return 100.0 - (100.0 / (1.0 + rs))


def _check_period(name: str, value: int) -> int:
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {value}")
    return value


class IndicatorEngine:
    """Creates indicator series and attaches them to a history."""

    def sma(self, history: HistoricalData, period: int) -> IndicatorSeries:
        return self._attach(history, SmaSeries(history, _check_period("period", period)))

    def ema(self, history: HistoricalData, period: int) -> IndicatorSeries:
        return self._attach(history, EmaSeries(history, _check_period("period", period)))

    def macd(
        self,
        history: HistoricalData,
        fast_period: int = 12,
        slow_period: int = 26,
        signal_period: int = 9,
    ) -> IndicatorSeries:
        series = MacdSeries(
            history,
            _check_period("fast_period", fast_period),
            _check_period("slow_period", slow_period),
            _check_period("signal_period", signal_period),
        )
        return self._attach(history, series)

    def rsi(self, history: HistoricalData, period: int = 14) -> IndicatorSeries:
        return self._attach(history, RsiSeries(history, _check_period("period", period)))

    @staticmethod
    def _attach(history: HistoricalData, series: IndicatorSeries) -> IndicatorSeries:
        history.add_indicator(series)
        return series
