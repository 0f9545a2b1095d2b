# live_engine.py
from decimal import Decimal
from typing import Optional

from futures_bot.base_engine import BaseTradingEngine
from futures_bot.database.logger import Logger
from futures_bot.datas.market import OrderFill
from futures_bot.datas.strategy import EngineConfig
from futures_bot.interface.collaborators import IExchange, INotifier, ITradeStore


class LiveTradingEngine(BaseTradingEngine):
    """
    Engine for live trading
    - market orders go to the exchange (ExchangeSync / ccxt)
    - positions are recorded with the real fill price
    """

    def __init__(self, config: EngineConfig, exchange: IExchange, store: ITradeStore, notifier: INotifier, logger: Optional[Logger] = None) -> None:
        super().__init__(config=config, exchange=exchange, store=store, notifier=notifier, mode="live", logger=logger)
        self.logger.log("[LiveTradingEngine] initialized", level="INFO")

    # ------------------------------------------------------------------
    # implement abstract I/O
    # ------------------------------------------------------------------
    def _io_place_market_order(self, symbol: str, side: str, amount: Decimal, reference_price: Decimal) -> OrderFill:
        self.logger.log(f"[ORDER] live {side} {amount} {symbol} (ref {reference_price})", level="DEBUG")
        fill = self.exchange.place_market_order(symbol, side, amount)
        self.logger.log(f"[ORDER] live {side} {symbol} filled {fill.amount} @ {fill.fill_price} id={fill.order_id}", level="INFO")
        return fill
