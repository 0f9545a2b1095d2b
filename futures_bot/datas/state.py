import threading
from dataclasses import dataclass, field
from typing import List


@dataclass
class EngineState:
    """
    Scheduler-owned switches passed into every tick: global enable flag and watchlist.
    The engine only reads it; a tick takes a snapshot of the watchlist when it starts.
    """

    enabled: bool = False
    watchlist: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def start(self) -> None:
        self.enabled = True

    def stop(self) -> None:
        self.enabled = False

    def add_symbol(self, symbol: str) -> bool:
        symbol = symbol.strip().upper()
        with self._lock:
            if not symbol or symbol in self.watchlist:
                return False
            self.watchlist.append(symbol)
            return True

    def remove_symbol(self, symbol: str) -> bool:
        symbol = symbol.strip().upper()
        with self._lock:
            if symbol not in self.watchlist:
                return False
            self.watchlist.remove(symbol)
            return True

    def snapshot(self) -> List[str]:
        with self._lock:
            return list(self.watchlist)
