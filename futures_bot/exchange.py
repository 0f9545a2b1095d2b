from decimal import Decimal
from typing import Any, List, Optional

import ccxt

from futures_bot.datas.exchange import ExchangeConfig
from futures_bot.datas.market import Candle, OrderBookSnapshot, OrderFill, Ticker
from futures_bot.errors import DataUnavailable, OrderRejected
from futures_bot.interface.collaborators import IExchange
from futures_bot.utils.util import Util


class ExchangeSync(IExchange):
    """
    ccxt futures client wrapper. Translates ccxt errors at this boundary:
    - reads: any ccxt error -> DataUnavailable
    - orders: network error -> DataUnavailable, exchange refusal -> OrderRejected
    """

    def __init__(self, config: Optional[ExchangeConfig] = None, load_markets: bool = True, futures_client: Any = None, **_: Any):
        self.config = config or ExchangeConfig()
        self.quote = self.config.quote_currency
        self.util = Util()
        self.futures = futures_client or self.create_future_exchange(self.config)
        if load_markets:
            self.ensure_markets_loaded()

    def ensure_markets_loaded(self):
        try:
            if not self.futures.markets:
                self.futures.load_markets()
        except ccxt.BaseError as e:
            raise DataUnavailable(f"load_markets failed: {e}") from e

    @staticmethod
    def create_future_exchange(config: ExchangeConfig):
        if not hasattr(ccxt, config.exchange_id):
            raise ValueError(f"unknown ccxt exchange id '{config.exchange_id}'")

        exchange_class = getattr(ccxt, config.exchange_id)
        futures = exchange_class(
            {
                "apiKey": config.api_key,
                "secret": config.api_secret,
                "enableRateLimit": config.enable_rate_limit,
                "options": {"defaultType": "future", "adjustForTimeDifference": config.adjust_for_time_diff},
            }
        )

        if config.use_testnet:
            futures.set_sandbox_mode(True)

        return futures

    def market_symbol(self, symbol: str) -> str:
        """
        "WIF" -> "WIF/USDT", already qualified symbols pass through.
        """
        symbol = symbol.strip().upper()
        if "/" in symbol:
            return symbol
        return f"{symbol}/{self.quote}"

    # ---------------- market data ----------------
    def fetch_candles(self, symbol: str, timeframe: str, limit: int) -> List[Candle]:
        try:
            rows = self.futures.fetch_ohlcv(self.market_symbol(symbol), timeframe, None, limit)
        except ccxt.BaseError as e:
            raise DataUnavailable(f"fetch_ohlcv {symbol} {timeframe}: {e}") from e
        candles = [Candle.from_ohlcv(r) for r in rows or []]
        candles.sort(key=lambda c: c.timestamp)
        return candles

    def fetch_order_book(self, symbol: str) -> OrderBookSnapshot:
        try:
            book = self.futures.fetch_order_book(self.market_symbol(symbol))
        except ccxt.BaseError as e:
            raise DataUnavailable(f"fetch_order_book {symbol}: {e}") from e
        return OrderBookSnapshot.from_ccxt(book or {})

    def fetch_ticker(self, symbol: str) -> Ticker:
        try:
            ticker = self.futures.fetch_ticker(self.market_symbol(symbol))
        except ccxt.BaseError as e:
            raise DataUnavailable(f"fetch_ticker {symbol}: {e}") from e
        last = (ticker or {}).get("last")
        if last is None:
            raise DataUnavailable(f"fetch_ticker {symbol}: no last price")
        return Ticker(symbol=symbol, last=self.util.to_decimal(last))

    # ---------------- orders ----------------
    def place_market_order(self, symbol: str, side: str, amount: Decimal) -> OrderFill:
        try:
            resp = self.futures.create_order(self.market_symbol(symbol), "market", side.lower(), float(amount))
        except ccxt.NetworkError as e:
            raise DataUnavailable(f"create_order {side} {amount} {symbol}: {e}") from e
        except ccxt.BaseError as e:
            raise OrderRejected(f"create_order {side} {amount} {symbol}: {e}") from e

        # fill_price stays None when the venue reports no average yet, the engine prices it at its reference
        return self.util._build_order_fill(resp, amount)
