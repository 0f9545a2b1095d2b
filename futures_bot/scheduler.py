# scheduler.py
import asyncio
from typing import Optional

from futures_bot.base_engine import BaseTradingEngine
from futures_bot.database.logger import Logger
from futures_bot.datas.action import TickReport
from futures_bot.datas.state import EngineState


class TickScheduler:
    """
    Drives engine.run_tick(state) every `interval` seconds.
    The tick itself is blocking (thread pools, ccxt, MySQL) so it runs in a worker thread.
    A tick that raises is logged and the loop keeps going.
    """

    def __init__(self, engine: BaseTradingEngine, state: EngineState, interval: Optional[float] = None, logger: Optional[Logger] = None):
        self.engine = engine
        self.state = state
        self.interval = float(interval if interval is not None else engine.config.tick_interval_seconds)
        self.logger = logger or engine.logger
        self.ticks = 0
        self.last_report: Optional[TickReport] = None
        self._stopped = asyncio.Event()

    def stop(self) -> None:
        self._stopped.set()

    async def tick_once(self) -> Optional[TickReport]:
        try:
            report = await asyncio.to_thread(self.engine.run_tick, self.state)
        except Exception as e:
            self.logger.log(f"[TICK] tick failed: {e}", level="ERROR")
            report = None
        self.ticks += 1
        self.last_report = report
        return report

    async def run(self, max_ticks: Optional[int] = None) -> None:
        self.logger.log(f"[TICK] scheduler started, interval={self.interval}s", level="INFO")
        while not self._stopped.is_set():
            await self.tick_once()
            if max_ticks is not None and self.ticks >= max_ticks:
                break
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        self.logger.log(f"[TICK] scheduler stopped after {self.ticks} ticks", level="INFO")
