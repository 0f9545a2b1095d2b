import threading
from decimal import Decimal, ROUND_DOWN
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from futures_bot.datas.market import OrderFill


class Util:

    def __init__(self):
        self.sequence = 0
        self.sequence_lock = threading.Lock()

    @staticmethod
    def to_decimal(value: Any) -> Decimal:
        """
        Convert exchange numbers (float / str / int) to Decimal without binary float noise.
        """
        if isinstance(value, Decimal):
            return value
        return Decimal(str(value))

    @staticmethod
    def floor_to_step(amount: Decimal, step: Decimal) -> Decimal:
        """
        Truncate amount down to a multiple of the instrument's minimum tradable unit.
        Never rounds up, so a close can not exceed what is held.
        """
        if step <= 0:
            raise ValueError(f"step must be positive, got {step}")
        if amount <= 0:
            return Decimal("0")
        units = (amount / step).to_integral_value(rounding=ROUND_DOWN)
        return units * step

    @staticmethod
    def now_ms() -> int:
        return int(datetime.now(timezone.utc).timestamp() * 1000)

    def generate_id(self, action: str) -> str:
        """
        Generate a unique id composed of:
        - UTC timestamp in YYYYMMDDHHMMSSffffff format (timezone-aware)
        - action: one of 'POS' (positions), 'ORDER' (simulated orders)
        - sequence number to avoid duplicates within the same microsecond

        Example:
            20250625123456789012_POS_1
        """
        allowed = {"POS", "ORDER"}
        if action not in allowed:
            raise ValueError(f"Invalid action '{action}'. Must be one of {allowed}.")

        with self.sequence_lock:
            self.sequence += 1
            seq = self.sequence

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")

        return f"{timestamp}_{action}_{seq}"

    def generate_position_id(self) -> str:
        return self.generate_id("POS")

    def _mock_market_order(self, symbol: str, side: str, price: Decimal, amount: Decimal) -> Dict[str, Any]:
        """
        ccxt-shaped market order that is already filled at `price` (paper mode).
        """
        now_ms = self.now_ms()
        order_id = self.generate_id("ORDER")
        return {
            "info": {
                "symbol": symbol.replace("/", ""),
                "orderId": order_id,
                "clientOrderId": f"paper-{order_id}",
                "avgPrice": str(price),
                "origQty": str(amount),
                "executedQty": str(amount),
                "cumQuote": str(price * amount),
                "status": "FILLED",
                "type": "MARKET",
                "side": side.upper(),
                "time": now_ms,
                "updateTime": now_ms,
            },
            "id": order_id,
            "symbol": symbol,
            "type": "market",
            "side": side.lower(),
            "price": float(price),
            "average": float(price),
            "amount": float(amount),
            "filled": float(amount),
            "remaining": 0.0,
            "status": "closed",
            "timestamp": now_ms,
        }

    def _build_order_fill(self, resp: Dict[str, Any], amount: Decimal, fallback_price: Optional[Decimal] = None) -> OrderFill:
        """
        Normalize a ccxt order response to an OrderFill.
        Market orders on some venues come back without an average; fallback_price (may be None) is used then.
        """
        price = resp.get("average") or resp.get("price")
        if not price:
            info = resp.get("info", {}) or {}
            price = info.get("avgPrice") or info.get("price")
        if price in (None, "", 0, "0") or self.to_decimal(price) <= 0:
            fill_price = fallback_price
        else:
            fill_price = self.to_decimal(price)

        filled = resp.get("filled")
        filled_amount = self.to_decimal(filled) if filled else amount

        return OrderFill(order_id=str(resp.get("id") or resp.get("info", {}).get("orderId", "")), fill_price=fill_price, amount=filled_amount)

