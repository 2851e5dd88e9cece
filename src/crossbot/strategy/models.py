"""Strategy selection and decision models."""

from __future__ import annotations

from enum import Enum


class StrategyKind(str, Enum):
    MA_CROSS = "ma_cross"
    MACD = "macd"
    RSI = "rsi"


class SignalDecision(str, Enum):
    OPEN_LONG = "open_long"
    OPEN_SHORT = "open_short"
    CLOSE = "close"
    HOLD = "hold"
