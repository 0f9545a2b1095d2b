import asyncio
import os

from futures_bot.config import CONFIG, load_engine_config, load_exchange_config, parse_watchlist
from futures_bot.database.logger import Logger
from futures_bot.database.trades import TradeStore
from futures_bot.datas.state import EngineState
from futures_bot.exchange import ExchangeSync
from futures_bot.live_engine import LiveTradingEngine
from futures_bot.notifier.telegram_notifier import LogNotifier, TelegramNotifier
from futures_bot.paper_engine import PaperTradingEngine
from futures_bot.scheduler import TickScheduler


def build_engine(mode: str, logger: Logger):
    engine_config = load_engine_config()
    exchange = ExchangeSync(load_exchange_config())
    store = TradeStore()
    notifier = TelegramNotifier.from_env(logger=logger) or LogNotifier(logger)

    if mode == "live":
        return LiveTradingEngine(engine_config, exchange, store, notifier, logger=logger)
    return PaperTradingEngine(engine_config, exchange, store, notifier, logger=logger)


async def main():

    logger = Logger()
    mode = (os.getenv("MODE") or "paper").lower()
    if mode not in ("live", "paper"):
        raise ValueError(f"MODE must be 'live' or 'paper', got '{mode}'")

    engine = build_engine(mode, logger)
    state = EngineState(enabled=bool(CONFIG.get("trading_enabled", True)), watchlist=parse_watchlist(CONFIG.get("watchlist")))
    logger.log(f"✅ Bot initialized mode={mode} enabled={state.enabled} watchlist={state.snapshot()}", level="INFO")

    max_ticks = CONFIG.get("max_ticks")
    scheduler = TickScheduler(engine, state, logger=logger)
    await scheduler.run(max_ticks=int(max_ticks) if max_ticks else None)


if __name__ == "__main__":
    asyncio.run(main())
