from decimal import Decimal
from typing import Optional

from futures_bot.database.logger import Logger
from futures_bot.datas.action import ActionType, PositionAction, REASON_DCA, REASON_MANUAL, REASON_TP1, REASON_TP2, REASON_TRAILING
from futures_bot.datas.position import Position, STATUS_CLOSED
from futures_bot.datas.signal import Direction
from futures_bot.datas.strategy import EngineConfig
from futures_bot.utils.util import Util

HUNDRED = Decimal("100")


class PositionManager:
    """
    Per-position state machine (OPEN -> CLOSED).

    evaluate() decides what a position needs on this tick, in fixed priority:
      1. DCA              - losing past the trigger and levels left
      2. trailing stop    - arm / tighten (state only, never an order)
      3. TP1              - partial close of tp1_close_ratio
      4. TP2              - close the rest once TP1 was taken
      5. trailing trigger - price crossed an active stop
    apply() mutates the position once the caller has executed the action.
    """

    def __init__(self, config: EngineConfig, logger: Optional[Logger] = None):
        self.config = config
        self.logger = logger or Logger()
        self.util = Util()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def stop_from(self, reference: Decimal, direction: Direction) -> Decimal:
        """
        Price sl_percent away from reference on the losing side.
        """
        return reference * (Decimal("1") - direction.sign * self.config.sl_percent / HUNDRED)

    def dca_amount(self, position: Position) -> Decimal:
        return self.util.floor_to_step(position.size * self.config.dca_increase_percent / HUNDRED, self.config.amount_step)

    def partial_close_amount(self, position: Position) -> Decimal:
        amount = self.util.floor_to_step(position.size * self.config.tp1_close_ratio, self.config.amount_step)
        return min(amount, position.size)

    @staticmethod
    def _improves(candidate: Decimal, current: Optional[Decimal], direction: Direction) -> bool:
        if current is None:
            return True
        if direction is Direction.LONG:
            return candidate > current
        return candidate < current

    @staticmethod
    def _crossed(price: Decimal, stop: Decimal, direction: Direction) -> bool:
        if direction is Direction.LONG:
            return price <= stop
        return price >= stop

    # ------------------------------------------------------------------
    # decision
    # ------------------------------------------------------------------
    def evaluate(self, position: Position, price: Decimal) -> PositionAction:
        if not position.is_open:
            return PositionAction.none(position.id, price)

        cfg = self.config
        pnl_pct = position.signed_pnl_percent(price)

        # 1) DCA
        if position.dca_level < cfg.max_dca_levels and pnl_pct <= cfg.dca_trigger_percent:
            amount = self.dca_amount(position)
            if amount > 0:
                return PositionAction(type=ActionType.DCA, position_id=position.id, amount=amount, price=price, reason=REASON_DCA)
            self.logger.log(f"[DCA] {position.symbol} {position.id} DCA amount rounds to zero (size={position.size}), skipped", level="WARNING")

        # 2) trailing stop
        self.update_trailing_stop(position, price, pnl_pct)

        # 3) TP1
        if not position.tp1_hit and pnl_pct >= cfg.tp1_percent:
            amount = self.partial_close_amount(position)
            action_type = ActionType.FULL_CLOSE if amount >= position.size else ActionType.PARTIAL_CLOSE
            return PositionAction(type=action_type, position_id=position.id, amount=amount, price=price, reason=REASON_TP1, pnl=position.pnl_for(price, amount))

        # 4) TP2
        if position.tp1_hit and pnl_pct >= cfg.tp2_percent:
            return self._full_close(position, price, REASON_TP2)

        # 5) trailing stop hit
        if position.trail_active and position.trailing_stop is not None and self._crossed(price, position.trailing_stop, position.direction):
            return self._full_close(position, price, REASON_TRAILING)

        return PositionAction.none(position.id, price)

    def update_trailing_stop(self, position: Position, price: Decimal, pnl_pct: Optional[Decimal] = None) -> Optional[Decimal]:
        """
        Arm the stop at the initial stop-loss level, then tighten it from the current price
        once the activation threshold is reached. Clamped at breakeven, never loosened.
        """
        if pnl_pct is None:
            pnl_pct = position.signed_pnl_percent(price)

        if position.trailing_stop is None:
            position.trailing_stop = self.stop_from(position.entry_price, position.direction)

        if pnl_pct >= self.config.trail_activate_percent:
            candidate = self.stop_from(price, position.direction)
            if position.direction is Direction.LONG:
                candidate = max(candidate, position.entry_price)
            else:
                candidate = min(candidate, position.entry_price)

            if not position.trail_active:
                self.logger.log(f"[TRAIL] {position.symbol} {position.id} trailing activated at pnl={pnl_pct:.2f}%", level="INFO")
            position.trail_active = True

            if self._improves(candidate, position.trailing_stop, position.direction):
                self.logger.log(f"[TRAIL] {position.symbol} {position.id} stop {position.trailing_stop} -> {candidate}", level="DEBUG")
                position.trailing_stop = candidate

        return position.trailing_stop

    def close_manually(self, position: Position, price: Decimal, reason: str = REASON_MANUAL) -> PositionAction:
        if not position.is_open:
            return PositionAction.none(position.id, price)
        return self._full_close(position, price, reason)

    @staticmethod
    def _full_close(position: Position, price: Decimal, reason: str) -> PositionAction:
        return PositionAction(type=ActionType.FULL_CLOSE, position_id=position.id, amount=position.size, price=price, reason=reason, pnl=position.pnl_for(price, position.size))

    # ------------------------------------------------------------------
    # state transitions
    # ------------------------------------------------------------------
    def apply(
        self,
        position: Position,
        action: PositionAction,
        fill_price: Optional[Decimal] = None,
        timestamp_ms: Optional[int] = None,
        filled_amount: Optional[Decimal] = None,
    ) -> Optional[Decimal]:
        """
        Mutate the position after the action was executed at fill_price.
        filled_amount is what the venue actually executed, action.amount when not given; a close
        that filled short of the full size leaves the remainder open.
        Returns the realized PnL for closes, None otherwise. No-op on CLOSED positions.
        """
        if not position.is_open or action.type == ActionType.NONE:
            return None

        price = fill_price if fill_price is not None else action.price
        amount = filled_amount if filled_amount is not None else action.amount

        if action.type == ActionType.DCA:
            self.apply_dca(position, price, amount)
            return None

        if action.reason == REASON_TP1:
            position.tp1_hit = True

        if action.type == ActionType.PARTIAL_CLOSE or amount < position.size:
            return self.apply_partial_close(position, price, amount, action.reason or REASON_TP1)

        return self.apply_close(position, price, action.reason, timestamp_ms)

    def apply_dca(self, position: Position, fill_price: Decimal, amount: Decimal) -> None:
        if position.dca_level >= self.config.max_dca_levels:
            raise ValueError(f"position {position.id} already at max DCA level {position.dca_level}")

        new_size = position.size + amount
        new_entry = (position.entry_price * position.size + fill_price * amount) / new_size

        self.logger.log(
            f"[DCA] {position.symbol} {position.id} level {position.dca_level + 1}: +{amount} @ {fill_price}, entry {position.entry_price} -> {new_entry}, size {position.size} -> {new_size}",
            level="INFO",
        )

        position.entry_price = new_entry
        position.size = new_size
        position.dca_level += 1
        # stop reference follows the new average entry
        position.trailing_stop = self.stop_from(new_entry, position.direction)
        position.trail_active = False

    def apply_partial_close(self, position: Position, fill_price: Decimal, amount: Decimal, reason: str = REASON_TP1) -> Decimal:
        amount = min(amount, position.size)
        pnl = position.pnl_for(fill_price, amount)
        position.size -= amount
        self.logger.log(f"[{reason}] {position.symbol} {position.id} closed {amount} @ {fill_price}, pnl={pnl}, remaining={position.size}", level="INFO")
        if position.size <= 0:
            return self.apply_close(position, fill_price, reason, realized_pnl=pnl)
        return pnl

    def apply_close(self, position: Position, fill_price: Decimal, reason: str, timestamp_ms: Optional[int] = None, realized_pnl: Optional[Decimal] = None) -> Decimal:
        if position.status == STATUS_CLOSED:
            return position.realized_pnl

        pnl = realized_pnl if realized_pnl is not None else position.pnl_for(fill_price, position.size)
        position.exit_price = fill_price
        position.realized_pnl = pnl
        position.close_reason = reason
        position.size = Decimal("0")
        position.status = STATUS_CLOSED
        position.closed_at = timestamp_ms if timestamp_ms is not None else self.util.now_ms()

        self.logger.log(f"[EXIT] {position.symbol} {position.id} {reason} @ {fill_price}, entry={position.entry_price}, pnl={pnl}", level="INFO")
        return pnl

