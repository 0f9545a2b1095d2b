from dataclasses import dataclass


@dataclass
class ExchangeConfig:
    exchange_id: str = "bybit"
    api_key: str = ""
    api_secret: str = ""
    use_testnet: bool = False
    quote_currency: str = "USDT"
    enable_rate_limit: bool = True
    adjust_for_time_diff: bool = True
