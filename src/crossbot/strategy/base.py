"""Signal strategy interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from crossbot.errors import ConfigurationError
from crossbot.execution.models import Instrument
from crossbot.strategy.indicators import IndicatorEngine
from crossbot.strategy.market_data import HistoricalData
from crossbot.strategy.models import SignalDecision, StrategyKind


def values_present(*values: Optional[float]) -> bool:
    return all(value is not None for value in values)


class SignalStrategy(ABC):
    """Boolean signal queries over the two most recently closed bars.

    Bars back 2 is the older closed bar and bars back 1 the newer one; the
    forming bar (bars back 0) is never read. Missing values during warm-up
    make every query False.
    """

    kind: StrategyKind

    def __init__(self, engine: Optional[IndicatorEngine] = None) -> None:
        self.engine = engine or IndicatorEngine()
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def initialize(self, instrument: Instrument | str | None, history: Optional[HistoricalData]) -> None:
        if instrument is None:
            raise ConfigurationError(f"{self.kind.value} strategy requires an instrument")
        if history is None or history.disposed:
            raise ConfigurationError(f"{self.kind.value} strategy requires historical data")
        if self._ready:
            self.dispose()
        self._create_indicators(history)
        self._ready = True

    def dispose(self) -> None:
        if not self._ready:
            return
        self._release_indicators()
        self._ready = False

    def _require_ready(self) -> None:
        if not self._ready:
            raise RuntimeError(f"{self.kind.value} strategy is not initialized")

    def decide(self, has_position: bool) -> SignalDecision:
        if has_position:
            return SignalDecision.CLOSE if self.should_close_position() else SignalDecision.HOLD
        if self.is_long_signal():
            return SignalDecision.OPEN_LONG
        if self.is_short_signal():
            return SignalDecision.OPEN_SHORT
        return SignalDecision.HOLD

    @abstractmethod
    def _create_indicators(self, history: HistoricalData) -> None:
        raise NotImplementedError

    @abstractmethod
    def _release_indicators(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def is_long_signal(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def is_short_signal(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def should_close_position(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def describe(self) -> dict[str, Any]:
        raise NotImplementedError
