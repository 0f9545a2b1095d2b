from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from futures_bot.datas.signal import Direction

STATUS_OPEN = "OPEN"
STATUS_CLOSED = "CLOSED"


@dataclass
class Position:
    id: str  # engine assigned, never the exchange order id
    symbol: str
    direction: Direction
    entry_price: Decimal  # size-weighted average of all fills
    size: Decimal
    dca_level: int = 0
    tp1_hit: bool = False
    trailing_stop: Optional[Decimal] = None
    trail_active: bool = False
    status: str = STATUS_OPEN
    exit_price: Optional[Decimal] = None
    realized_pnl: Optional[Decimal] = None
    close_reason: Optional[str] = None
    opened_at: int = 0  # timestamp ms
    closed_at: Optional[int] = None
    entry_order_id: Optional[str] = None

    # row id in trades table
    db_id: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.status == STATUS_OPEN

    def signed_pnl_percent(self, price: Decimal) -> Decimal:
        """
        PnL% normalized so that positive always means favorable to the position's direction.
        """
        return (price - self.entry_price) / self.entry_price * Decimal("100") * self.direction.sign

    def pnl_for(self, exit_price: Decimal, amount: Decimal) -> Decimal:
        return (exit_price - self.entry_price) * amount * self.direction.sign

    def to_record(self) -> Dict[str, Any]:
        return {
            "position_id": self.id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "entry_price": self.entry_price,
            "size": self.size,
            "dca_level": self.dca_level,
            "tp1_hit": int(self.tp1_hit),
            "trailing_stop": self.trailing_stop,
            "trail_active": int(self.trail_active),
            "status": self.status,
            "exit_price": self.exit_price,
            "pnl": self.realized_pnl,
            "close_reason": self.close_reason,
            "opened_at": self.opened_at,
            "closed_at": self.closed_at,
            "entry_order_id": self.entry_order_id,
        }

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> "Position":
        def dec(v):
            return None if v is None else Decimal(str(v))

        return cls(
            id=row["position_id"],
            symbol=row["symbol"],
            direction=Direction(row["direction"]),
            entry_price=dec(row["entry_price"]),
            size=dec(row["size"]),
            dca_level=int(row.get("dca_level") or 0),
            tp1_hit=bool(row.get("tp1_hit")),
            trailing_stop=dec(row.get("trailing_stop")),
            trail_active=bool(row.get("trail_active")),
            status=row.get("status", STATUS_OPEN),
            exit_price=dec(row.get("exit_price")),
            realized_pnl=dec(row.get("pnl")),
            close_reason=row.get("close_reason"),
            opened_at=int(row.get("opened_at") or 0),
            closed_at=row.get("closed_at"),
            entry_order_id=row.get("entry_order_id"),
            db_id=row.get("id"),
        )
