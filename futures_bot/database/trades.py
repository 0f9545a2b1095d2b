from decimal import Decimal
from typing import Any, Dict, List, Optional

from futures_bot.database.base_database import BaseMySQLRepo
from futures_bot.datas.position import Position, STATUS_CLOSED, STATUS_OPEN
from futures_bot.interface.collaborators import ITradeStore

# mutable fields, everything else is fixed at creation
_UPDATE_COLS = [
    "entry_price",
    "size",
    "dca_level",
    "tp1_hit",
    "trailing_stop",
    "trail_active",
    "status",
    "exit_price",
    "pnl",
    "close_reason",
    "closed_at",
]

_INSERT_COLS = ["position_id", "symbol", "direction", "opened_at", "entry_order_id"] + _UPDATE_COLS


class TradeStore(BaseMySQLRepo, ITradeStore):
    """
    CRUD operations for the trades table (one row per position).
    """

    def __init__(self, **db_kwargs) -> None:
        super().__init__(**db_kwargs)
        self._ensure_table()

    def _ensure_table(self):
        with self._cursor(commit=True) as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS `trades` (
                    `id` INT AUTO_INCREMENT PRIMARY KEY,
                    `position_id` VARCHAR(64) NOT NULL UNIQUE,        -- engine assigned id
                    `symbol` VARCHAR(32) NOT NULL,
                    `direction` VARCHAR(8) NOT NULL,                  -- LONG / SHORT
                    `entry_price` DECIMAL(28,12) NOT NULL,            -- size-weighted average entry
                    `size` DECIMAL(28,12) NOT NULL,                   -- base asset quantity held
                    `dca_level` INT NOT NULL DEFAULT 0,
                    `tp1_hit` TINYINT(1) NOT NULL DEFAULT 0,
                    `trailing_stop` DECIMAL(28,12) DEFAULT NULL,
                    `trail_active` TINYINT(1) NOT NULL DEFAULT 0,
                    `status` VARCHAR(16) NOT NULL,                    -- OPEN / CLOSED
                    `exit_price` DECIMAL(28,12) DEFAULT NULL,
                    `pnl` DECIMAL(28,12) DEFAULT NULL,
                    `close_reason` VARCHAR(32) DEFAULT NULL,
                    `entry_order_id` VARCHAR(64) DEFAULT NULL,        -- exchange order id, informational
                    `opened_at` BIGINT NOT NULL,
                    `closed_at` BIGINT DEFAULT NULL,
                    `created_at` TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

            cursor.execute(
                """
                SELECT COUNT(1) FROM INFORMATION_SCHEMA.STATISTICS
                WHERE TABLE_SCHEMA = DATABASE()
                AND TABLE_NAME = 'trades'
                AND INDEX_NAME = 'idx_trades_status_symbol';
            """
            )

            if cursor.fetchone()[0] == 0:
                cursor.execute("CREATE INDEX idx_trades_status_symbol ON trades(status, symbol)")

    def create_position(self, position: Position) -> int:
        """
        Insert a new OPEN position. Returns the internal row id.
        """
        record = position.to_record()
        placeholders = ", ".join("%s" for _ in _INSERT_COLS)
        values = [record.get(col) for col in _INSERT_COLS]

        with self._cursor(commit=True) as cursor:
            cursor.execute(f"INSERT INTO trades ({', '.join(_INSERT_COLS)}) VALUES ({placeholders})", values)
            row_id = cursor.lastrowid

        position.db_id = row_id
        return row_id

    def update_position(self, position: Position) -> bool:
        """
        Update the mutable fields in place. Only rows still OPEN are touched, so a position
        closed out of band (manual override) is never written back and never closed twice.
        """
        record = position.to_record()
        set_clause = ", ".join(f"{col} = %s" for col in _UPDATE_COLS)
        values = [record.get(col) for col in _UPDATE_COLS] + [position.id, STATUS_OPEN]

        with self._cursor(commit=True) as cursor:
            cursor.execute(f"UPDATE trades SET {set_clause} WHERE position_id = %s AND status = %s", values)
            return cursor.rowcount > 0

    def get_position(self, position_id: str) -> Optional[Position]:
        with self._cursor(dictionary=True) as cursor:
            cursor.execute("SELECT * FROM trades WHERE position_id = %s", (position_id,))
            row = cursor.fetchone()
        return Position.from_record(row) if row else None

    def list_open_positions(self) -> List[Position]:
        with self._cursor(dictionary=True) as cursor:
            cursor.execute("SELECT * FROM trades WHERE status = %s ORDER BY opened_at", (STATUS_OPEN,))
            rows = cursor.fetchall()
        return [Position.from_record(row) for row in rows]

    def has_open_position(self, symbol: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute("SELECT COUNT(1) FROM trades WHERE symbol = %s AND status = %s", (symbol, STATUS_OPEN))
            return cursor.fetchone()[0] > 0

    def performance_summary(self) -> Dict[str, Any]:
        with self._cursor(dictionary=True) as cursor:
            cursor.execute(
                """
                SELECT
                    SUM(status = %s) AS open_count,
                    SUM(status = %s AND pnl > 0) AS wins,
                    SUM(status = %s AND pnl <= 0) AS losses,
                    COALESCE(SUM(CASE WHEN status = %s THEN pnl END), 0) AS total_pnl
                FROM trades
                """,
                (STATUS_OPEN, STATUS_CLOSED, STATUS_CLOSED, STATUS_CLOSED),
            )
            row = cursor.fetchone() or {}

        return summarize(
            open_count=int(row.get("open_count") or 0),
            wins=int(row.get("wins") or 0),
            losses=int(row.get("losses") or 0),
            total_pnl=Decimal(str(row.get("total_pnl") or 0)),
        )


def summarize(open_count: int, wins: int, losses: int, total_pnl: Decimal) -> Dict[str, Any]:
    closed = wins + losses
    win_rate = (Decimal(wins) / Decimal(closed) * Decimal("100")) if closed else Decimal("0")
    return {
        "open_count": open_count,
        "closed_count": closed,
        "wins": wins,
        "losses": losses,
        "win_rate": win_rate,
        "total_pnl": total_pnl,
    }
