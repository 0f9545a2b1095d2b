# paper_engine.py
from decimal import Decimal
from typing import Optional

from futures_bot.base_engine import BaseTradingEngine
from futures_bot.database.logger import Logger
from futures_bot.datas.market import OrderFill
from futures_bot.datas.strategy import EngineConfig
from futures_bot.interface.collaborators import IExchange, INotifier, ITradeStore


class PaperTradingEngine(BaseTradingEngine):
    """
    Engine for paper trading
    - market data comes from the exchange, orders are never sent
    - every order fills immediately at the reference price
    - the store still records positions so the lifecycle can be followed
    """

    def __init__(self, config: EngineConfig, exchange: IExchange, store: ITradeStore, notifier: INotifier, logger: Optional[Logger] = None) -> None:
        super().__init__(config=config, exchange=exchange, store=store, notifier=notifier, mode="paper", logger=logger)
        self.logger.log("[PaperTradingEngine] initialized", level="INFO")

    # ------------------------------------------------------------------
    # implement abstract I/O
    # ------------------------------------------------------------------
    def _io_place_market_order(self, symbol: str, side: str, amount: Decimal, reference_price: Decimal) -> OrderFill:
        """
        Simulated market order, formatted like a ccxt response so it goes through the same parsing as live.
        """
        resp = self.util._mock_market_order(symbol=symbol, side=side, price=reference_price, amount=amount)
        fill = self.util._build_order_fill(resp, amount, fallback_price=reference_price)
        self.logger.log(f"[ORDER] paper {side} {symbol} filled {fill.amount} @ {fill.fill_price} id={fill.order_id}", level="DEBUG")
        return fill
