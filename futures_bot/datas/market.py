from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd


@dataclass(frozen=True)
class Candle:
    timestamp: int  # open time, epoch ms
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_ohlcv(cls, row: Sequence[Any]) -> "Candle":
        """
        ccxt fetch_ohlcv row: [timestamp, open, high, low, close, volume]
        """
        ts, o, h, l, c, v = row[:6]
        return cls(timestamp=int(ts), open=float(o), high=float(h), low=float(l), close=float(c), volume=float(v or 0.0))


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """
    Oldest-first candles -> DataFrame with timestamp/open/high/low/close/volume columns.
    """
    cols = ["timestamp", "open", "high", "low", "close", "volume"]
    if not candles:
        return pd.DataFrame(columns=cols, dtype=float)
    return pd.DataFrame([[c.timestamp, c.open, c.high, c.low, c.close, c.volume] for c in candles], columns=cols)


@dataclass(frozen=True)
class OrderBookLevel:
    price: float
    size: float


@dataclass
class OrderBookSnapshot:
    asks: List[OrderBookLevel] = field(default_factory=list)  # ascending price
    bids: List[OrderBookLevel] = field(default_factory=list)  # descending price

    @classmethod
    def from_ccxt(cls, book: Dict[str, Any]) -> "OrderBookSnapshot":
        asks = [OrderBookLevel(price=float(a[0]), size=float(a[1])) for a in book.get("asks", []) or []]
        bids = [OrderBookLevel(price=float(b[0]), size=float(b[1])) for b in book.get("bids", []) or []]
        # venues already sort, enforce it anyway so the liquidity scan can stop at the first hit
        asks.sort(key=lambda lvl: lvl.price)
        bids.sort(key=lambda lvl: lvl.price, reverse=True)
        return cls(asks=asks, bids=bids)


@dataclass(frozen=True)
class Ticker:
    symbol: str
    last: Decimal


@dataclass(frozen=True)
class OrderFill:
    order_id: str
    fill_price: Optional[Decimal]  # None when the venue did not report an average
    amount: Decimal
