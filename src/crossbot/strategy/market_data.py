"""Market data history and in-memory tick feed."""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from crossbot.errors import ConfigurationError
from crossbot.events import EventBus, HistoryUpdated

if TYPE_CHECKING:  # pragma: no cover
    from crossbot.strategy.indicators import IndicatorSeries


PERIODS: dict[str, timedelta] = {
    "M1": timedelta(minutes=1),
    "M5": timedelta(minutes=5),
    "M15": timedelta(minutes=15),
    "M30": timedelta(minutes=30),
    "H1": timedelta(hours=1),
    "H4": timedelta(hours=4),
    "D1": timedelta(days=1),
}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def bar_open_time(moment: datetime, period: timedelta) -> datetime:
    elapsed = _as_utc(moment) - _EPOCH
    return _EPOCH + (elapsed - elapsed % period)


@dataclass
class Bar:
    time: datetime
    open: float
    high: float
    low: float
    close: float

    def update(self, price: float) -> None:
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price


class HistoricalData:
    """Bars for one instrument; the last bar is the one still forming."""

    def __init__(self, instrument: str, period: str, start_point: datetime) -> None:
        if period not in PERIODS:
            raise ConfigurationError(f"Unsupported period: {period}")
        self.instrument = instrument
        self.period = period
        self.start_point = _as_utc(start_point)
        self.bars: list[Bar] = []
        self._indicators: list[IndicatorSeries] = []
        self._disposed = False

    def __len__(self) -> int:
        return len(self.bars)

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def indicators(self) -> tuple[IndicatorSeries, ...]:
        return tuple(self._indicators)

    def add_indicator(self, series: IndicatorSeries) -> None:
        if series not in self._indicators:
            self._indicators.append(series)

    def remove_indicator(self, series: IndicatorSeries) -> None:
        if series in self._indicators:
            self._indicators.remove(series)

    def closes(self) -> list[float]:
        return [bar.close for bar in self.bars]

    def close_price(self, bars_back: int = 0) -> Optional[float]:
        index = len(self.bars) - 1 - bars_back
        if bars_back < 0 or index < 0:
            return None
        return self.bars[index].close

    def apply_tick(self, time: datetime, price: float) -> Optional[bool]:
        """Fold a tick into the bars.

        Returns None when the tick is ignored (before the start point or older
        than the forming bar), otherwise whether the tick closed the previous bar.
        """
        if self._disposed:
            raise RuntimeError(f"History for {self.instrument} is disposed")
        time = _as_utc(time)
        if time < self.start_point:
            return None
        open_time = bar_open_time(time, PERIODS[self.period])
        if self.bars and open_time < self.bars[-1].time:
            return None
        if self.bars and open_time == self.bars[-1].time:
            self.bars[-1].update(price)
            return False
        closed_previous = bool(self.bars)
        self.bars.append(Bar(time=open_time, open=price, high=price, low=price, close=price))
        return closed_previous

    def dispose(self) -> None:
        for series in list(self._indicators):
            series.dispose()
        self._indicators.clear()
        self.bars.clear()
        self._disposed = True


class HistoryFeed:
    """In-memory market data source publishing HistoryUpdated on every tick."""

    def __init__(self, bus: EventBus) -> None:
        self.bus = bus
        self._histories: dict[str, HistoricalData] = {}

    def subscribe(self, instrument: str, period: str, start_point: datetime) -> HistoricalData:
        history = HistoricalData(instrument, period, start_point)
        self._histories[instrument] = history
        return history

    def release(self, history: HistoricalData) -> None:
        if self._histories.get(history.instrument) is history:
            del self._histories[history.instrument]
        history.dispose()

    def is_subscribed(self, instrument: str) -> bool:
        return instrument in self._histories

    def preload(self, instrument: str, ticks: Iterable[tuple[datetime, float]]) -> int:
        """Seed history without publishing updates; returns ticks applied."""
        history = self._histories.get(instrument)
        if history is None:
            return 0
        applied = 0
        for time, price in ticks:
            if history.apply_tick(time, price) is not None:
                applied += 1
        return applied

    def push_tick(self, instrument: str, time: datetime, price: float) -> bool:
        history = self._histories.get(instrument)
        if history is None:
            return False
        bar_closed = history.apply_tick(time, price)
        if bar_closed is None:
            return False
        self.bus.publish(HistoryUpdated(instrument=instrument, time=_as_utc(time), price=price, bar_closed=bar_closed))
        return True


def load_ticks_csv(path: str | Path) -> list[tuple[datetime, float]]:
    ticks: list[tuple[datetime, float]] = []
    with Path(path).open("r", encoding="utf-8", newline="") as handle:
        for row in csv.DictReader(handle):
            ticks.append((_as_utc(datetime.fromisoformat(row["time"])), float(row["price"])))
    return ticks
