import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv, dotenv_values

from futures_bot.datas.exchange import ExchangeConfig
from futures_bot.datas.strategy import EngineConfig

load_dotenv()


def _cast_value(val: str):
    lower = val.lower()
    if lower in ("true", "false"):
        return lower == "true"
    if val.isdigit():
        return int(val)
    try:
        return float(val)
    except ValueError:
        return val


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read .env (or `path`) into a dict with lower-cased keys and cast values.
    Process environment wins over the file for keys present in both.
    """
    raw_env = dotenv_values(path) if path else dotenv_values()
    merged = {key: os.environ.get(key, value) for key, value in raw_env.items()}

    config = {key.lower(): _cast_value(value) for key, value in merged.items() if value is not None}
    return config


CONFIG = load_config()


def load_engine_config(cfg: Optional[Dict[str, Any]] = None) -> EngineConfig:
    return EngineConfig.from_mapping(CONFIG if cfg is None else cfg)


def load_exchange_config(cfg: Optional[Dict[str, Any]] = None) -> ExchangeConfig:
    cfg = CONFIG if cfg is None else cfg
    testnet = bool(cfg.get("use_testnet", False))
    key_name, secret_name = ("api_key_test", "api_secret_test") if testnet else ("api_key", "api_secret")
    return ExchangeConfig(
        exchange_id=str(cfg.get("exchange_id", "bybit")),
        api_key=str(cfg.get(key_name, "") or ""),
        api_secret=str(cfg.get(secret_name, "") or ""),
        use_testnet=testnet,
        quote_currency=str(cfg.get("quote_currency", "USDT")),
    )


def parse_watchlist(value: Any) -> List[str]:
    """
    "WIF, PEPE,NOT" -> ["WIF", "PEPE", "NOT"]
    """
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(",")
    seen: List[str] = []
    for item in items:
        symbol = str(item).strip().upper()
        if symbol and symbol not in seen:
            seen.append(symbol)
    return seen
