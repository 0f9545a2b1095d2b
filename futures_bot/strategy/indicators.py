from typing import Sequence

import numpy as np
import pandas as pd

from futures_bot.datas.market import Candle, candles_to_frame
from futures_bot.errors import InsufficientHistory


class IndicatorCalculator:
    """
    Pure indicator functions over oldest-first series. No state, no I/O.
    """

    @staticmethod
    def ema(closes: Sequence[float], period: int) -> float:
        """
        EMA seeded with the first close, multiplier 2/(period+1) applied across the rest.
        Returns the last smoothed value only.
        """
        if period < 1:
            raise ValueError(f"EMA period must be >= 1, got {period}")
        if len(closes) < 1:
            raise InsufficientHistory(f"EMA({period})", 1, 0)

        # ewm(span=p, adjust=False) is exactly y0 = x0, yt = a*xt + (1-a)*y(t-1), a = 2/(p+1)
        close = pd.Series(closes, dtype=float)
        return float(close.ewm(span=period, adjust=False).mean().iloc[-1])

    @staticmethod
    def rsi(closes: Sequence[float], period: int = 14) -> float:
        """
        RSI from the simple average gain / loss of the first `period` transitions.
        Average loss of exactly zero -> 100.
        """
        if period < 1:
            raise ValueError(f"RSI period must be >= 1, got {period}")
        if len(closes) < period + 1:
            raise InsufficientHistory(f"RSI({period})", period + 1, len(closes))

        window = np.asarray(closes[: period + 1], dtype=float)
        deltas = np.diff(window)
        avg_gain = float(deltas[deltas > 0].sum()) / period
        avg_loss = float(-deltas[deltas < 0].sum()) / period

        if avg_loss == 0:
            return 100.0

        rs = avg_gain / avg_loss
        return float(100.0 - 100.0 / (1.0 + rs))

    @staticmethod
    def vwap(candles: Sequence[Candle]) -> float:
        """
        Σ(typical price × volume) / Σ volume, typical price = (high + low + close) / 3.
        Returns 0.0 (undefined) when the cumulative volume is zero.
        """
        df = candles_to_frame(candles)
        if df.empty:
            return 0.0

        volume = df["volume"].astype(float)
        cum_volume = float(volume.sum())
        if cum_volume == 0:
            return 0.0

        typical = (df["high"].astype(float) + df["low"].astype(float) + df["close"].astype(float)) / 3.0
        return float((typical * volume).sum() / cum_volume)

    @staticmethod
    def mean_volume(candles: Sequence[Candle]) -> float:
        if not candles:
            return 0.0
        return float(np.mean([c.volume for c in candles]))
