from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Dict

_DECIMAL_FIELDS = (
    "risk_per_trade",
    "dca_increase_percent",
    "dca_trigger_percent",
    "tp1_percent",
    "tp2_percent",
    "tp1_close_ratio",
    "sl_percent",
    "trail_activate_percent",
    "amount_step",
)

_FLOAT_FIELDS = ("rsi_overbought", "rsi_oversold", "volume_spike", "liquidity_zone_percent")


@dataclass
class EngineConfig:
    # risk management
    risk_per_trade: Decimal = Decimal("1")  # quote currency notional per entry
    max_dca_levels: int = 2
    dca_increase_percent: Decimal = Decimal("50")  # % of current size added per DCA
    dca_trigger_percent: Decimal = Decimal("-5")  # signed PnL% at or below which DCA fires

    # take profit & stop
    tp1_percent: Decimal = Decimal("1.5")
    tp2_percent: Decimal = Decimal("3")
    tp1_close_ratio: Decimal = Decimal("0.5")
    sl_percent: Decimal = Decimal("1")
    trail_activate_percent: Decimal = Decimal("0.5")

    # technical analysis
    rsi_overbought: float = 60.0
    rsi_oversold: float = 40.0
    rsi_period: int = 14
    ema_fast_period: int = 9
    ema_slow_period: int = 18
    volume_spike: float = 2.0  # current volume > mean volume * volume_spike
    liquidity_zone_percent: float = 0.5

    # data windows
    short_timeframe: str = "5m"
    short_limit: int = 50
    long_timeframe: str = "15m"
    long_limit: int = 20

    # execution
    amount_step: Decimal = Decimal("1")  # minimum tradable unit
    quote_currency: str = "USDT"
    one_position_per_symbol: bool = True
    tick_interval_seconds: float = 30.0
    max_workers: int = 8

    def __post_init__(self) -> None:
        for name in _DECIMAL_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                setattr(self, name, Decimal(str(value)))
        for name in _FLOAT_FIELDS:
            setattr(self, name, float(getattr(self, name)))
        self.max_dca_levels = int(self.max_dca_levels)
        self.rsi_period = int(self.rsi_period)
        self.ema_fast_period = int(self.ema_fast_period)
        self.ema_slow_period = int(self.ema_slow_period)
        self.short_limit = int(self.short_limit)
        self.long_limit = int(self.long_limit)
        self.max_workers = int(self.max_workers)
        self.tick_interval_seconds = float(self.tick_interval_seconds)
        self.validate()

    def validate(self) -> None:
        if self.risk_per_trade <= 0:
            raise ValueError("risk_per_trade must be positive")
        if self.max_dca_levels < 0:
            raise ValueError("max_dca_levels must be >= 0")
        if self.dca_trigger_percent > 0:
            raise ValueError("dca_trigger_percent is signed against the position and must be <= 0")
        if not (Decimal("0") < self.tp1_close_ratio <= Decimal("1")):
            raise ValueError("tp1_close_ratio must be in (0, 1]")
        if self.tp2_percent < self.tp1_percent:
            raise ValueError("tp2_percent must be >= tp1_percent")
        if self.sl_percent <= 0 or self.sl_percent >= 100:
            raise ValueError("sl_percent must be in (0, 100)")
        if self.rsi_oversold >= self.rsi_overbought:
            raise ValueError("rsi_oversold must be below rsi_overbought")
        if self.ema_fast_period < 1 or self.ema_slow_period < 1 or self.rsi_period < 1:
            raise ValueError("indicator periods must be >= 1")
        if self.amount_step <= 0:
            raise ValueError("amount_step must be positive")
        if self.short_limit < max(2, self.rsi_period + 1):
            raise ValueError(f"short_limit must cover RSI({self.rsi_period}) and the previous bar")
        if self.long_limit < 1:
            raise ValueError("long_limit must be >= 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

    @classmethod
    def from_mapping(cls, cfg: Dict[str, Any]) -> "EngineConfig":
        """
        Build from a CONFIG-style dict (lower-cased keys), unknown keys are ignored.
        """
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in cfg.items() if k in names})
