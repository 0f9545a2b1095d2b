from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Optional

from futures_bot.datas.market import Candle, OrderBookSnapshot, OrderFill, Ticker
from futures_bot.datas.position import Position


class IExchange(ABC):
    """
    Market data and order execution. Implementations raise DataUnavailable on
    network / exchange errors and OrderRejected when an order is refused.
    """

    @abstractmethod
    def fetch_candles(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        """ordered oldest first"""
        raise NotImplementedError

    @abstractmethod
    def fetch_order_book(self, symbol: str) -> OrderBookSnapshot:
        raise NotImplementedError

    @abstractmethod
    def fetch_ticker(self, symbol: str) -> Ticker:
        raise NotImplementedError

    @abstractmethod
    def place_market_order(self, symbol: str, side: str, amount: Decimal) -> OrderFill:
        raise NotImplementedError


class ITradeStore(ABC):
    """
    Single source of truth for position state between ticks.
    """

    @abstractmethod
    def create_position(self, position: Position) -> int:
        raise NotImplementedError

    @abstractmethod
    def update_position(self, position: Position) -> bool:
        """
        Persist the mutable fields. Returns False when the stored row is already CLOSED.
        """
        raise NotImplementedError

    @abstractmethod
    def get_position(self, position_id: str) -> Optional[Position]:
        raise NotImplementedError

    @abstractmethod
    def list_open_positions(self) -> List[Position]:
        raise NotImplementedError

    @abstractmethod
    def has_open_position(self, symbol: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def performance_summary(self) -> Dict[str, Any]:
        raise NotImplementedError


class INotifier(ABC):
    """
    Fire-and-forget text notifications. Must never raise into the caller.
    """

    @abstractmethod
    def send(self, text: str) -> bool:
        raise NotImplementedError
