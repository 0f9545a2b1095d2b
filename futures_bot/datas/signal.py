from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, List


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def sign(self) -> int:
        return 1 if self is Direction.LONG else -1

    @property
    def entry_side(self) -> str:
        return "buy" if self is Direction.LONG else "sell"

    @property
    def exit_side(self) -> str:
        return "sell" if self is Direction.LONG else "buy"


@dataclass(frozen=True)
class RationaleToken:
    name: str  # condition name, e.g. "ema_trend", "rsi", "volume_spike"
    value: Any = None


@dataclass
class Signal:
    symbol: str
    direction: Direction
    price: Decimal
    rationale: List[RationaleToken] = field(default_factory=list)
