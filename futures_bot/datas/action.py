from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from futures_bot.datas.signal import Signal


class ActionType(str, Enum):
    NONE = "NONE"
    DCA = "DCA"
    PARTIAL_CLOSE = "PARTIAL_CLOSE"
    FULL_CLOSE = "FULL_CLOSE"


REASON_DCA = "DCA"
REASON_TP1 = "TP1 HIT"
REASON_TP2 = "TP2 HIT"
REASON_TRAILING = "TRAILING SL HIT"
REASON_MANUAL = "MANUAL CLOSE"


@dataclass
class PositionAction:
    """
    Decision of the lifecycle manager for one position on one tick.
    `amount` is base-asset quantity, `price` the reference price the decision was taken at.
    """

    type: ActionType
    position_id: str
    amount: Decimal = Decimal("0")
    price: Optional[Decimal] = None
    reason: str = ""
    pnl: Optional[Decimal] = None  # estimated at `price`, final value comes from the fill

    @classmethod
    def none(cls, position_id: str, price: Optional[Decimal] = None) -> "PositionAction":
        return cls(type=ActionType.NONE, position_id=position_id, price=price)


@dataclass
class TickReport:
    skipped: bool = False
    signals: List[Signal] = field(default_factory=list)
    opened: List[str] = field(default_factory=list)  # position ids
    actions: List[PositionAction] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
