from typing import Optional

from futures_bot.database.logger import Logger
from futures_bot.datas.market import OrderBookSnapshot
from futures_bot.datas.signal import Direction
from futures_bot.errors import DataUnavailable
from futures_bot.interface.collaborators import IExchange


class LiquidityFilter:
    """
    Checks that resting counter-side depth exists near the exit zone of a prospective
    position, as a proxy for being able to close it later.
    """

    def __init__(self, zone_percent: float = 0.5, logger: Optional[Logger] = None):
        self.zone_percent = float(zone_percent)
        self.logger = logger or Logger()

    @staticmethod
    def target_price(current_price: float, direction: Direction, zone_percent: float) -> float:
        """
        LONG exits above price (into asks), SHORT exits below price (into bids).
        """
        offset = zone_percent / 100.0
        if direction is Direction.LONG:
            return current_price * (1 + offset)
        return current_price * (1 - offset)

    def has_exit_liquidity(self, book: Optional[OrderBookSnapshot], current_price: float, direction: Direction, zone_percent: Optional[float] = None) -> bool:
        if book is None:
            return False

        zone = self.zone_percent if zone_percent is None else float(zone_percent)
        target = self.target_price(float(current_price), direction, zone)

        if direction is Direction.LONG:
            # asks ascending: first level at or above target
            level = next((a for a in book.asks if a.price >= target), None)
        else:
            # bids descending: first level at or below target
            level = next((b for b in book.bids if b.price <= target), None)

        return level is not None and level.size > 0

    def check(self, exchange: IExchange, symbol: str, current_price: float, direction: Direction) -> bool:
        """
        Fetch the book and test it. Fails closed: a fetch error means "no liquidity".
        """
        try:
            book = exchange.fetch_order_book(symbol)
        except DataUnavailable as e:
            self.logger.log(f"[LIQ] {symbol} order book unavailable, treating as no liquidity: {e}", level="WARNING")
            return False

        ok = self.has_exit_liquidity(book, current_price, direction)
        self.logger.log(f"[LIQ] {symbol} {direction.value} exit liquidity={'yes' if ok else 'no'} price={current_price}", level="DEBUG")
        return ok
