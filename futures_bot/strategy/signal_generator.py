from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence

from futures_bot.database.logger import Logger
from futures_bot.datas.market import Candle, OrderBookSnapshot
from futures_bot.datas.signal import Direction, RationaleToken, Signal
from futures_bot.datas.strategy import EngineConfig
from futures_bot.errors import DataUnavailable, InsufficientHistory
from futures_bot.interface.collaborators import IExchange
from futures_bot.strategy.indicators import IndicatorCalculator as ind
from futures_bot.strategy.liquidity_filter import LiquidityFilter


@dataclass
class TechnicalSnapshot:
    """
    Indicator values of one evaluation, taken on the latest short-timeframe candle.
    """

    ema_fast_short: float
    ema_slow_short: float
    ema_fast_long: float
    ema_slow_long: float
    rsi: float
    vwap: float
    close: float
    prev_high: float
    prev_low: float
    volume: float
    avg_volume: float

    @property
    def volume_ratio(self) -> float:
        return self.volume / self.avg_volume if self.avg_volume > 0 else 0.0

    def trend_bullish(self) -> bool:
        return self.ema_fast_short > self.ema_slow_short and self.ema_fast_long > self.ema_slow_long

    def trend_bearish(self) -> bool:
        return self.ema_fast_short < self.ema_slow_short and self.ema_fast_long < self.ema_slow_long

    def rsi_neutral(self, oversold: float, overbought: float) -> bool:
        return oversold < self.rsi < overbought

    def volume_spike(self, multiple: float) -> bool:
        return self.avg_volume > 0 and self.volume > self.avg_volume * multiple

    def above_vwap(self) -> bool:
        # vwap == 0 means undefined (no volume), never a pass
        return self.vwap > 0 and self.close > self.vwap

    def below_vwap(self) -> bool:
        return self.vwap > 0 and self.close < self.vwap

    def bullish_breakout(self) -> bool:
        return self.close > self.prev_high

    def bearish_breakout(self) -> bool:
        return self.close < self.prev_low


class SignalGenerator:
    """
    Fuses two-timeframe EMA trend, RSI neutral zone, VWAP side, volume spike, breakout and
    exit liquidity into a LONG / SHORT / no-signal decision.
    """

    def __init__(self, config: EngineConfig, liquidity_filter: Optional[LiquidityFilter] = None, logger: Optional[Logger] = None):
        self.config = config
        self.logger = logger or Logger()
        self.liquidity = liquidity_filter or LiquidityFilter(zone_percent=config.liquidity_zone_percent, logger=self.logger)

    # ------------------------------------------------------------------
    # indicators
    # ------------------------------------------------------------------
    def analyze(self, short_candles: Sequence[Candle], long_candles: Sequence[Candle]) -> TechnicalSnapshot:
        cfg = self.config
        required = max(2, cfg.rsi_period + 1)
        if len(short_candles) < required:
            raise InsufficientHistory(f"short series ({cfg.short_timeframe})", required, len(short_candles))
        if len(long_candles) < 1:
            raise InsufficientHistory(f"long series ({cfg.long_timeframe})", 1, 0)

        closes_short = [c.close for c in short_candles]
        closes_long = [c.close for c in long_candles]
        last = short_candles[-1]
        prev = short_candles[-2]

        return TechnicalSnapshot(
            ema_fast_short=ind.ema(closes_short, cfg.ema_fast_period),
            ema_slow_short=ind.ema(closes_short, cfg.ema_slow_period),
            ema_fast_long=ind.ema(closes_long, cfg.ema_fast_period),
            ema_slow_long=ind.ema(closes_long, cfg.ema_slow_period),
            rsi=ind.rsi(closes_short, cfg.rsi_period),
            vwap=ind.vwap(short_candles),
            close=last.close,
            prev_high=prev.high,
            prev_low=prev.low,
            volume=last.volume,
            avg_volume=ind.mean_volume(short_candles),
        )

    def candidate_direction(self, snap: TechnicalSnapshot) -> Optional[Direction]:
        """
        Direction whose technical conditions all hold, liquidity not yet checked.
        """
        cfg = self.config
        common = snap.rsi_neutral(cfg.rsi_oversold, cfg.rsi_overbought) and snap.volume_spike(cfg.volume_spike)
        if not common:
            return None
        if snap.trend_bullish() and snap.above_vwap() and snap.bullish_breakout():
            return Direction.LONG
        if snap.trend_bearish() and snap.below_vwap() and snap.bearish_breakout():
            return Direction.SHORT
        return None

    def rationale(self, snap: TechnicalSnapshot, direction: Direction) -> List[RationaleToken]:
        cfg = self.config
        bullish = direction is Direction.LONG
        return [
            RationaleToken("ema_trend", {"fast": cfg.ema_fast_period, "slow": cfg.ema_slow_period, "timeframes": [cfg.short_timeframe, cfg.long_timeframe], "bias": "bullish" if bullish else "bearish"}),
            RationaleToken("volume_spike", round(snap.volume_ratio, 2)),
            RationaleToken("rsi", round(snap.rsi, 2)),
            RationaleToken("vwap", "above" if bullish else "below"),
            RationaleToken("breakout", "bullish" if bullish else "bearish"),
            RationaleToken("exit_liquidity", "asks" if bullish else "bids"),
        ]

    # ------------------------------------------------------------------
    # decisions
    # ------------------------------------------------------------------
    def generate(self, symbol: str, short_candles: Sequence[Candle], long_candles: Sequence[Candle], book: Optional[OrderBookSnapshot]) -> Optional[Signal]:
        """
        Pure decision on already fetched data. `book=None` counts as no liquidity.
        """
        snap = self.analyze(short_candles, long_candles)
        direction = self.candidate_direction(snap)
        if direction is None:
            return None
        if not self.liquidity.has_exit_liquidity(book, snap.close, direction):
            self.logger.log(f"[SIGNAL] {symbol} {direction.value} setup rejected: no exit liquidity", level="INFO")
            return None
        return self._build_signal(symbol, snap, direction)

    def evaluate_symbol(self, exchange: IExchange, symbol: str) -> Optional[Signal]:
        """
        Fetch both candle series and, only when a setup exists, the order book.
        Data errors degrade to "no signal" for this symbol.
        """
        cfg = self.config
        try:
            short_candles = exchange.fetch_candles(symbol, cfg.short_timeframe, cfg.short_limit)
            long_candles = exchange.fetch_candles(symbol, cfg.long_timeframe, cfg.long_limit)
        except DataUnavailable as e:
            self.logger.log(f"[SIGNAL] {symbol} candles unavailable, skip this tick: {e}", level="WARNING")
            return None

        snap = self.analyze(short_candles, long_candles)
        direction = self.candidate_direction(snap)
        self.logger.log(
            f"[SIGNAL] {symbol} close={snap.close} ema{cfg.ema_fast_period}/{cfg.ema_slow_period} "
            f"{cfg.short_timeframe}={snap.ema_fast_short:.6f}/{snap.ema_slow_short:.6f} "
            f"{cfg.long_timeframe}={snap.ema_fast_long:.6f}/{snap.ema_slow_long:.6f} "
            f"rsi={snap.rsi:.2f} vwap={snap.vwap:.6f} vol={snap.volume_ratio:.2f}x candidate={direction.value if direction else None}",
            level="DEBUG",
        )
        if direction is None:
            return None

        if not self.liquidity.check(exchange, symbol, snap.close, direction):
            self.logger.log(f"[SIGNAL] {symbol} {direction.value} setup rejected: no exit liquidity", level="INFO")
            return None

        return self._build_signal(symbol, snap, direction)

    def _build_signal(self, symbol: str, snap: TechnicalSnapshot, direction: Direction) -> Signal:
        signal = Signal(symbol=symbol, direction=direction, price=Decimal(str(snap.close)), rationale=self.rationale(snap, direction))
        self.logger.log(f"[SIGNAL] {symbol} {direction.value} @ {signal.price} rsi={snap.rsi:.2f} vol={snap.volume_ratio:.2f}x", level="INFO")
        return signal
