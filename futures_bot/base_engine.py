# base_engine.py
import copy
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
import threading
from typing import Any, Dict, List, Optional, Set

from futures_bot.database.logger import Logger
from futures_bot.datas.action import ActionType, PositionAction, REASON_MANUAL, TickReport
from futures_bot.datas.market import OrderFill
from futures_bot.datas.position import Position
from futures_bot.datas.signal import Direction, Signal
from futures_bot.datas.state import EngineState
from futures_bot.datas.strategy import EngineConfig
from futures_bot.errors import DataUnavailable, OrderRejected
from futures_bot.interface.collaborators import IExchange, INotifier, ITradeStore
from futures_bot.interface.io_interface import IEngineIO
from futures_bot.notifier import messages
from futures_bot.strategy.position_manager import PositionManager
from futures_bot.strategy.signal_generator import SignalGenerator
from futures_bot.utils.util import Util


class BaseTradingEngine(IEngineIO):
    """
    Base class : decision and execution flow shared by live and paper trading.
    Order placement goes through _io_place_market_order, everything else is common.

    One tick:
      1. signal phase   - every watched symbol in parallel, accepted signals open positions
      2. position phase - open positions re-read from the store, each evaluated in parallel
    A failing symbol or position is logged and recorded in the TickReport, the tick goes on.
    """

    def __init__(
        self,
        config: EngineConfig,
        exchange: IExchange,
        store: ITradeStore,
        notifier: INotifier,
        mode: str,
        logger: Optional[Logger] = None,
    ) -> None:
        self.config = config
        self.exchange = exchange
        self.store = store
        self.notifier = notifier
        self.mode = mode

        self.logger = logger or Logger()
        self.util = Util()
        self.signals = SignalGenerator(config, logger=self.logger)
        self.manager = PositionManager(config, logger=self.logger)

        # position ids currently being evaluated or executed
        self._inflight: Set[str] = set()
        self._inflight_lock = threading.Lock()
        # filled but not persisted, written back before the store row is trusted again
        self._unsynced: Dict[str, Position] = {}

        self.logger.log(
            f"[BaseTradingEngine] Init mode={mode}, risk_per_trade={config.risk_per_trade}, max_dca={config.max_dca_levels}, "
            f"tp1={config.tp1_percent}%, tp2={config.tp2_percent}%, sl={config.sl_percent}%, workers={config.max_workers}",
            level="INFO",
        )

    # ------------------------------------------------------------------
    # tick
    # ------------------------------------------------------------------
    def run_tick(self, state: EngineState) -> TickReport:
        report = TickReport()
        if not state.enabled:
            self.logger.log("[TICK] engine disabled, skipping", level="DEBUG")
            report.skipped = True
            return report

        symbols = state.snapshot()
        self._signal_phase(symbols, report)
        self._position_phase(report)

        self.logger.log(
            f"[TICK] symbols={len(symbols)} signals={len(report.signals)} opened={len(report.opened)} "
            f"actions={len(report.actions)} errors={len(report.errors)}",
            level="INFO",
        )
        return report

    def _signal_phase(self, symbols: List[str], report: TickReport) -> None:
        if not symbols:
            return
        with ThreadPoolExecutor(max_workers=self._workers(len(symbols))) as pool:
            futures = {symbol: pool.submit(self._scan_symbol, symbol) for symbol in symbols}
            for symbol, fut in futures.items():
                try:
                    signal, position = fut.result()
                except Exception as e:
                    self.logger.log(f"[SIGNAL] {symbol} failed: {e}", level="ERROR")
                    report.errors.append(f"{symbol}: {e}")
                    continue
                if signal is not None:
                    report.signals.append(signal)
                if position is not None:
                    report.opened.append(position.id)

    def _scan_symbol(self, symbol: str):
        if self.config.one_position_per_symbol and self.store.has_open_position(symbol):
            self.logger.log(f"[SIGNAL] {symbol} already has an open position, skip scan", level="DEBUG")
            return None, None
        signal = self.signals.evaluate_symbol(self.exchange, symbol)
        if signal is None:
            return None, None
        return signal, self.open_position(signal)

    def _position_phase(self, report: TickReport) -> None:
        positions = self.store.list_open_positions()
        if not positions:
            return
        with ThreadPoolExecutor(max_workers=self._workers(len(positions))) as pool:
            futures = {p.id: pool.submit(self._manage_position, p) for p in positions}
            for position_id, fut in futures.items():
                try:
                    action = fut.result()
                except Exception as e:
                    self.logger.log(f"[POSITION] {position_id} failed: {e}", level="ERROR")
                    report.errors.append(f"{position_id}: {e}")
                    continue
                if action is not None and action.type != ActionType.NONE:
                    report.actions.append(action)

    def _manage_position(self, position: Position) -> Optional[PositionAction]:
        if not self._claim(position.id):
            self.logger.log(f"[POSITION] {position.id} already in flight, skip", level="DEBUG")
            return None
        try:
            unsynced = self._take_unsynced(position.id)
            if unsynced is not None:
                # the store row predates an executed order, never act on it
                self._resync(unsynced)
                return None
            return self.evaluate_position(position)
        finally:
            self._release(position.id)

    def _take_unsynced(self, position_id: str) -> Optional[Position]:
        with self._inflight_lock:
            return self._unsynced.pop(position_id, None)

    def _resync(self, position: Position) -> None:
        try:
            self.store.update_position(position)
        except Exception:
            with self._inflight_lock:
                self._unsynced[position.id] = position
            raise
        self.logger.log(f"[STORE] {position.symbol} {position.id} written back after store failure, status={position.status}", level="WARNING")

    def _workers(self, units: int) -> int:
        return max(1, min(self.config.max_workers, units))

    def _claim(self, position_id: str) -> bool:
        with self._inflight_lock:
            if position_id in self._inflight:
                return False
            self._inflight.add(position_id)
            return True

    def _release(self, position_id: str) -> None:
        with self._inflight_lock:
            self._inflight.discard(position_id)

    # ------------------------------------------------------------------
    # entries
    # ------------------------------------------------------------------
    def entry_amount(self, price: Decimal) -> Decimal:
        if price <= 0:
            return Decimal("0")
        return self.util.floor_to_step(self.config.risk_per_trade / price, self.config.amount_step)

    def open_position(self, signal: Signal, amount: Optional[Decimal] = None) -> Optional[Position]:
        """
        Market entry for an accepted signal. Nothing is recorded unless the order fills.
        """
        if amount is None:
            amount = self.entry_amount(signal.price)
        if amount <= 0:
            self.logger.log(f"[ENTRY] {signal.symbol} size rounds to zero at {signal.price} (risk={self.config.risk_per_trade}), skipped", level="WARNING")
            self._notify(messages.format_failure("entry", signal.symbol, ValueError(f"amount rounds to zero at {signal.price}"), signal.direction))
            return None

        try:
            fill = self._place(signal.symbol, signal.direction.entry_side, amount, signal.price)
        except (OrderRejected, DataUnavailable) as e:
            self.logger.log(f"[ENTRY] {signal.direction.value} {signal.symbol} order failed: {e}", level="ERROR")
            self._notify(messages.format_failure("entry", signal.symbol, e, signal.direction))
            return None

        position = Position(
            id=self.util.generate_position_id(),
            symbol=signal.symbol,
            direction=signal.direction,
            entry_price=fill.fill_price,
            size=fill.amount,
            opened_at=self.util.now_ms(),
            entry_order_id=fill.order_id,
        )
        try:
            self.store.create_position(position)
        except Exception as e:
            # the exchange holds a position the store does not know about
            self.logger.log(f"[STORE] {position.symbol} create_position failed after fill {fill.order_id}: {e}", level="CRITICAL")
            self._notify(messages.format_failure("record entry", signal.symbol, e, signal.direction, attention=True))
            raise

        self.logger.log(f"[ENTRY] {position.direction.value} {position.symbol} {position.size} @ {position.entry_price} id={position.id}", level="INFO")
        self._notify(messages.format_entry(position, signal.rationale, notional=position.size * position.entry_price))
        return position

    def force_entry(self, symbol: str, direction: Direction, amount: Optional[Decimal] = None) -> Optional[Position]:
        """
        Manual market entry at the current ticker, bypassing the signal rules.
        """
        symbol = symbol.strip().upper()
        try:
            ticker = self.exchange.fetch_ticker(symbol)
        except DataUnavailable as e:
            self.logger.log(f"[ENTRY] manual {direction.value} {symbol} ticker unavailable: {e}", level="ERROR")
            self._notify(messages.format_failure("entry", symbol, e, direction))
            return None
        signal = Signal(symbol=symbol, direction=direction, price=ticker.last, rationale=[])
        if amount is not None:
            amount = self.util.floor_to_step(self.util.to_decimal(amount), self.config.amount_step)
        return self.open_position(signal, amount)

    # ------------------------------------------------------------------
    # open positions
    # ------------------------------------------------------------------
    def evaluate_position(self, position: Position) -> Optional[PositionAction]:
        try:
            price = self.exchange.fetch_ticker(position.symbol).last
        except DataUnavailable as e:
            self.logger.log(f"[POSITION] {position.symbol} {position.id} ticker unavailable, skip this tick: {e}", level="WARNING")
            return None

        action = self.manager.evaluate(position, price)
        if action.type == ActionType.NONE:
            # trailing stop state may have moved
            self.store.update_position(position)
            return action
        return self._execute_action(position, action)

    def force_close(self, position_id: str, reason: str = REASON_MANUAL) -> Optional[PositionAction]:
        """
        Full close at the current ticker through the normal execution path.
        Returns None when the position is unknown, closed or busy.
        """
        if not self._claim(position_id):
            self.logger.log(f"[POSITION] {position_id} in flight, manual close refused", level="WARNING")
            return None
        try:
            unsynced = self._take_unsynced(position_id)
            if unsynced is not None:
                self._resync(unsynced)
            position = self.store.get_position(position_id)
            if position is None or not position.is_open:
                self.logger.log(f"[POSITION] {position_id} not open, nothing to close", level="WARNING")
                return None
            try:
                price = self.exchange.fetch_ticker(position.symbol).last
            except DataUnavailable as e:
                self.logger.log(f"[POSITION] {position.symbol} {position_id} ticker unavailable, manual close aborted: {e}", level="ERROR")
                self._notify(messages.format_failure(reason, position.symbol, e, position.direction))
                return None
            action = self.manager.close_manually(position, price, reason)
            return self._execute_action(position, action)
        finally:
            self._release(position_id)

    def _execute_action(self, position: Position, action: PositionAction) -> PositionAction:
        fill: Optional[OrderFill] = None
        if action.amount > 0:
            side = position.direction.entry_side if action.type == ActionType.DCA else position.direction.exit_side
            try:
                fill = self._place(position.symbol, side, action.amount, action.price)
            except (OrderRejected, DataUnavailable) as e:
                self.logger.log(f"[{action.reason}] {position.symbol} {position.id} {action.type.value} {action.amount} failed: {e}", level="CRITICAL")
                self._notify(messages.format_failure(action.reason or action.type.value, position.symbol, e, position.direction, attention=True))
                # keep the trailing state computed this tick, retried next tick
                self.store.update_position(position)
                raise

        fill_price = fill.fill_price if fill is not None else action.price
        filled_amount = fill.amount if fill is not None else None
        pnl = self.manager.apply(position, action, fill_price, filled_amount=filled_amount)

        try:
            persisted = self.store.update_position(position)
        except Exception as e:
            if fill is None:
                raise
            # the exchange already moved, the store row is stale until written back
            with self._inflight_lock:
                self._unsynced[position.id] = copy.deepcopy(position)
            what = f"record {action.reason or action.type.value} (order {fill.order_id}, {fill.amount} @ {fill_price})"
            self.logger.log(f"[STORE] {position.symbol} {position.id} update failed after fill: {what}: {e}", level="CRITICAL")
            self._notify(messages.format_failure(what, position.symbol, e, position.direction, attention=True))
            raise
        if not persisted:
            self.logger.log(f"[STORE] {position.id} was already closed in the store, {action.type.value} not persisted", level="CRITICAL")

        if fill is not None:
            self._notify(messages.format_action(position, action, fill_price, pnl))
        else:
            self.logger.log(f"[{action.reason}] {position.symbol} {position.id} amount rounds to zero, state updated without an order", level="INFO")
        return action

    def _place(self, symbol: str, side: str, amount: Decimal, reference_price: Decimal) -> OrderFill:
        fill = self._io_place_market_order(symbol, side, amount, reference_price)
        if fill.fill_price is None:
            # venue did not report an average, price it at the reference
            fill = OrderFill(order_id=fill.order_id, fill_price=reference_price, amount=fill.amount)
        return fill

    # ------------------------------------------------------------------
    # reporting
    # ------------------------------------------------------------------
    def performance_report(self) -> Dict[str, Any]:
        summary = self.store.performance_summary()
        self._notify(messages.format_performance(summary))
        return summary

    def _notify(self, text: str) -> bool:
        try:
            return bool(self.notifier.send(text))
        except Exception as e:
            self.logger.log(f"[NOTIFY] send failed: {e}", level="WARNING")
            return False
