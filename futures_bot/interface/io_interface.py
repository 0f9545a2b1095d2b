# ------------------------------------------------------------------
# Abstract "I/O" methods - implemented by the live / paper engines
# ------------------------------------------------------------------
from abc import ABC, abstractmethod
from decimal import Decimal

from futures_bot.datas.market import OrderFill


class IEngineIO(ABC):
    """
    Abstract I/O methods for the trading engine.
    Subclasses implement these for live or paper trading.
    """

    @property
    def is_paper_mode(self) -> bool:
        """
        True when orders are simulated (paper trading) instead of sent to the exchange.
        """
        return self.mode == "paper"

    @abstractmethod
    def _io_place_market_order(self, symbol: str, side: str, amount: Decimal, reference_price: Decimal) -> OrderFill:
        """
        - live: send a market order through the exchange, return the real fill
        - paper: fill immediately at reference_price
        raises OrderRejected / DataUnavailable
        """
        raise NotImplementedError
