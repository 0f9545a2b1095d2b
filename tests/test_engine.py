import unittest
from decimal import Decimal

from futures_bot.datas.action import ActionType, REASON_MANUAL, REASON_TP1, REASON_TP2
from futures_bot.datas.position import STATUS_CLOSED, STATUS_OPEN
from futures_bot.datas.signal import Direction
from futures_bot.datas.state import EngineState
from futures_bot.datas.strategy import EngineConfig
from futures_bot.errors import DataUnavailable
from futures_bot.live_engine import LiveTradingEngine
from futures_bot.paper_engine import PaperTradingEngine
from tests.fakes import (
    FakeExchange,
    FakeLogger,
    FakeNotifier,
    FakeTradeStore,
    bearish_short_candles,
    book,
    bullish_short_candles,
    falling_long_candles,
    flat_candles,
    make_position,
    rejected,
    rising_long_candles,
)

D = Decimal


class EngineTestCase(unittest.TestCase):

    engine_class = LiveTradingEngine

    def setUp(self):
        self.config = EngineConfig(risk_per_trade="1150")
        self.exchange = FakeExchange()
        self.store = FakeTradeStore()
        self.notifier = FakeNotifier()
        self.logger = FakeLogger()
        self.engine = self.engine_class(self.config, self.exchange, self.store, self.notifier, logger=self.logger)
        self.state = EngineState(enabled=True)

    def script_long(self, symbol="WIF"):
        self.exchange.set_candles(symbol, bullish_short_candles(), rising_long_candles())
        self.exchange.books[symbol] = book(asks=[(115.1, 1), (116.0, 5)])
        self.exchange.prices[symbol] = D("115")

    def script_short(self, symbol="PEPE"):
        self.exchange.set_candles(symbol, bearish_short_candles(), falling_long_candles())
        self.exchange.books[symbol] = book(bids=[(184.9, 1), (184.0, 5)])
        self.exchange.prices[symbol] = D("185")

    def seed_position(self, direction=Direction.LONG, entry="100", size="100", symbol="WIF", position_id="P1"):
        pos = make_position(direction, entry=entry, size=size, symbol=symbol, position_id=position_id)
        self.store.create_position(pos)
        return pos


class TestTick(EngineTestCase):

    def test_disabled_tick_does_nothing(self):
        self.script_long()
        self.seed_position(entry="100")
        self.state.stop()
        self.state.add_symbol("WIF")

        report = self.engine.run_tick(self.state)

        self.assertTrue(report.skipped)
        self.assertEqual(self.exchange.orders, [])
        self.assertEqual(self.notifier.sent, [])
        self.assertEqual(self.store.updates, 0)

    def test_signals_open_positions(self):
        self.script_long("WIF")
        self.script_short("PEPE")
        self.exchange.set_candles("DOGE", flat_candles(), flat_candles(20))
        for symbol in ("WIF", "PEPE", "DOGE"):
            self.state.add_symbol(symbol)

        report = self.engine.run_tick(self.state)

        self.assertFalse(report.skipped)
        self.assertEqual(sorted(s.symbol for s in report.signals), ["PEPE", "WIF"])
        self.assertEqual(len(report.opened), 2)
        self.assertEqual(report.errors, [])

        opened = {p.symbol: p for p in self.store.list_open_positions()}
        self.assertEqual(opened["WIF"].direction, Direction.LONG)
        self.assertEqual(opened["WIF"].size, D("10"))
        self.assertEqual(opened["WIF"].entry_price, D("115"))
        self.assertEqual(opened["PEPE"].direction, Direction.SHORT)
        self.assertEqual(opened["PEPE"].size, D("6"))
        self.assertEqual({o["side"] for o in self.exchange.orders}, {"buy", "sell"})
        # engine ids, not exchange order ids
        self.assertTrue(all("_POS_" in pid for pid in report.opened))

        self.assertEqual(len(self.notifier.sent), 2)
        self.assertTrue(any(m.startswith("🚀 LONG WIF") for m in self.notifier.sent))
        self.assertTrue(any("Above VWAP" in m for m in self.notifier.sent))

    def test_open_symbol_not_rescanned(self):
        self.script_long()
        self.state.add_symbol("WIF")
        self.engine.run_tick(self.state)
        report = self.engine.run_tick(self.state)
        self.assertEqual(report.opened, [])
        self.assertEqual(len(self.store.list_open_positions()), 1)

    def test_failing_symbol_is_isolated(self):
        self.script_long("WIF")
        # too short for RSI
        self.exchange.set_candles("BAD", bullish_short_candles()[-5:], rising_long_candles())
        self.state.add_symbol("BAD")
        self.state.add_symbol("WIF")

        report = self.engine.run_tick(self.state)

        self.assertEqual(len(report.opened), 1)
        self.assertEqual(len(report.errors), 1)
        self.assertTrue(report.errors[0].startswith("BAD"))

    def test_failing_position_is_isolated(self):
        self.seed_position(symbol="WIF", position_id="P1")
        self.seed_position(symbol="PEPE", position_id="P2")
        self.exchange.prices["PEPE"] = D("103")
        self.exchange.fail_ticker.add("WIF")

        report = self.engine.run_tick(self.state)

        self.assertEqual(len(report.actions), 1)
        self.assertEqual(report.actions[0].position_id, "P2")
        self.assertEqual(self.store.get_position("P1").status, STATUS_OPEN)
        self.assertTrue(any("ticker unavailable" in m for m in self.logger.messages("WARNING")))

    def test_lifecycle_through_ticks(self):
        self.seed_position(entry="100", size="100")

        self.exchange.prices["WIF"] = D("101.5")
        report = self.engine.run_tick(self.state)
        self.assertEqual([a.type for a in report.actions], [ActionType.PARTIAL_CLOSE])
        stored = self.store.get_position("P1")
        self.assertEqual(stored.size, D("50"))
        self.assertTrue(stored.tp1_hit)

        self.exchange.prices["WIF"] = D("103")
        report = self.engine.run_tick(self.state)
        self.assertEqual(report.actions[0].reason, REASON_TP2)
        stored = self.store.get_position("P1")
        self.assertEqual(stored.status, STATUS_CLOSED)
        self.assertEqual(stored.realized_pnl, D("150"))
        self.assertEqual(stored.close_reason, REASON_TP2)

        self.assertEqual([o["side"] for o in self.exchange.orders], ["sell", "sell"])
        self.assertEqual(len(self.notifier.sent), 2)
        self.assertTrue(self.notifier.sent[0].startswith(f"🎯 {REASON_TP1} WIF"))
        self.assertIn("PnL: $150.00", self.notifier.sent[1])

        # closed positions drop out of the position phase
        self.assertEqual(self.engine.run_tick(self.state).actions, [])

    def test_dca_through_tick(self):
        self.seed_position(direction=Direction.SHORT, entry="100", size="10")
        self.exchange.prices["WIF"] = D("105")

        report = self.engine.run_tick(self.state)

        self.assertEqual(report.actions[0].type, ActionType.DCA)
        self.assertEqual(self.exchange.orders[0]["side"], "sell")
        stored = self.store.get_position("P1")
        self.assertEqual(stored.dca_level, 1)
        self.assertEqual(stored.size, D("15"))
        self.assertTrue(self.notifier.sent[0].startswith("🔄 DCA LEVEL 1 ACTIVATED"))

    def test_trailing_state_persisted_without_action(self):
        self.seed_position(entry="100", size="10")
        self.exchange.prices["WIF"] = D("101")
        report = self.engine.run_tick(self.state)
        self.assertEqual(report.actions, [])
        stored = self.store.get_position("P1")
        self.assertTrue(stored.trail_active)
        self.assertEqual(stored.trailing_stop, D("100"))


class TestExecutionFailures(EngineTestCase):

    def test_entry_rejection_creates_no_record(self):
        self.script_long()
        self.exchange.reject_orders["WIF"] = rejected()
        self.state.add_symbol("WIF")

        report = self.engine.run_tick(self.state)

        self.assertEqual(len(report.signals), 1)
        self.assertEqual(report.opened, [])
        self.assertEqual(self.store.rows, {})
        self.assertEqual(len(self.notifier.sent), 1)
        self.assertTrue(self.notifier.sent[0].startswith("❌ Failed: entry LONG WIF"))

    def test_entry_amount_rounding_to_zero_is_aborted(self):
        self.config.risk_per_trade = D("1")
        self.script_long()
        self.state.add_symbol("WIF")

        report = self.engine.run_tick(self.state)

        self.assertEqual(report.opened, [])
        self.assertEqual(self.exchange.orders, [])
        self.assertEqual(len(self.notifier.sent), 1)
        self.assertIn("rounds to zero", self.notifier.sent[0])

    def test_exit_rejection_is_loud_and_retried(self):
        self.seed_position(entry="100", size="100")
        self.exchange.prices["WIF"] = D("101.5")
        self.exchange.reject_orders["WIF"] = rejected("reduce-only rejected")

        report = self.engine.run_tick(self.state)

        self.assertEqual(report.actions, [])
        self.assertEqual(len(report.errors), 1)
        self.assertIn("reduce-only rejected", report.errors[0])
        self.assertTrue(any("reduce-only rejected" in m for m in self.logger.messages("CRITICAL")))
        self.assertEqual(len(self.notifier.sent), 1)
        self.assertTrue(self.notifier.sent[0].startswith("🚨 OPERATOR ATTENTION"))

        stored = self.store.get_position("P1")
        self.assertEqual(stored.size, D("100"))
        self.assertFalse(stored.tp1_hit)
        self.assertEqual(stored.status, STATUS_OPEN)

        del self.exchange.reject_orders["WIF"]
        report = self.engine.run_tick(self.state)
        self.assertEqual(report.actions[0].type, ActionType.PARTIAL_CLOSE)
        self.assertEqual(self.store.get_position("P1").size, D("50"))

    def test_network_error_on_exit_is_reported(self):
        self.seed_position(entry="100", size="100")
        self.exchange.prices["WIF"] = D("103")
        self.exchange.reject_orders["WIF"] = DataUnavailable("timeout")

        report = self.engine.run_tick(self.state)

        self.assertEqual(len(report.errors), 1)
        self.assertEqual(self.store.get_position("P1").status, STATUS_OPEN)

    def test_notifier_failure_does_not_break_entry(self):
        self.notifier.raise_on_send = True
        self.script_long()
        self.state.add_symbol("WIF")

        report = self.engine.run_tick(self.state)

        self.assertEqual(len(report.opened), 1)
        self.assertTrue(any("send failed" in m for m in self.logger.messages("WARNING")))

    def test_missing_fill_price_uses_reference(self):
        self.exchange.prices["WIF"] = D("115")
        self.exchange.fill_prices["WIF"] = None

        pos = self.engine.force_entry("WIF", Direction.LONG, amount=D("2"))

        self.assertEqual(pos.entry_price, D("115"))

    def test_store_failure_after_exit_fill_is_loud_and_not_repeated(self):
        pos = make_position(Direction.LONG, entry="100", size="50", tp1_hit=True)
        self.store.create_position(pos)
        self.exchange.prices["WIF"] = D("103")
        self.store.fail_update = True

        report = self.engine.run_tick(self.state)

        self.assertEqual(len(self.exchange.orders), 1)
        self.assertEqual(report.errors, ["P1: db down"])
        self.assertEqual(len(self.notifier.sent), 1)
        self.assertTrue(self.notifier.sent[0].startswith("🚨 OPERATOR ATTENTION"))
        self.assertIn("order ex-1, 50 @ 103", self.notifier.sent[0])
        self.assertTrue(any("update failed after fill" in m for m in self.logger.messages("CRITICAL")))
        self.assertEqual(self.store.get_position("P1").status, STATUS_OPEN)

        # still down: the stale row is not traded on
        report = self.engine.run_tick(self.state)
        self.assertEqual(len(report.errors), 1)
        self.assertEqual(len(self.exchange.orders), 1)

        self.store.fail_update = False
        report = self.engine.run_tick(self.state)

        self.assertEqual(report.errors, [])
        self.assertEqual(report.actions, [])
        self.assertEqual(len(self.exchange.orders), 1)
        stored = self.store.get_position("P1")
        self.assertEqual(stored.status, STATUS_CLOSED)
        self.assertEqual(stored.close_reason, REASON_TP2)
        self.assertEqual(len(self.notifier.sent), 1)

        self.engine.run_tick(self.state)
        self.assertEqual(len(self.exchange.orders), 1)

    def test_partial_fill_on_close_keeps_remainder(self):
        self.seed_position(entry="100", size="10")
        self.exchange.prices["WIF"] = D("102")
        self.exchange.fill_amounts["WIF"] = D("4")

        self.engine.force_close("P1")

        stored = self.store.get_position("P1")
        self.assertEqual(stored.status, STATUS_OPEN)
        self.assertEqual(stored.size, D("6"))


class TestManualOverrides(EngineTestCase):

    def test_force_close(self):
        self.seed_position(entry="100", size="10")
        self.exchange.prices["WIF"] = D("102")

        action = self.engine.force_close("P1")

        self.assertEqual(action.type, ActionType.FULL_CLOSE)
        stored = self.store.get_position("P1")
        self.assertEqual(stored.status, STATUS_CLOSED)
        self.assertEqual(stored.close_reason, REASON_MANUAL)
        self.assertEqual(stored.realized_pnl, D("20"))
        self.assertEqual(len(self.notifier.sent), 1)

        self.assertIsNone(self.engine.force_close("P1"))
        self.assertIsNone(self.engine.force_close("UNKNOWN"))
        self.assertEqual(len(self.exchange.orders), 1)

    def test_force_close_respects_inflight_claim(self):
        self.seed_position(entry="100", size="10")
        self.exchange.prices["WIF"] = D("102")
        self.assertTrue(self.engine._claim("P1"))
        try:
            self.assertIsNone(self.engine.force_close("P1"))
            self.assertEqual(self.engine.run_tick(self.state).actions, [])
        finally:
            self.engine._release("P1")
        self.assertEqual(self.exchange.orders, [])

    def test_stale_copy_never_reopens_closed_row(self):
        self.seed_position(entry="100", size="100")
        stale = self.store.list_open_positions()[0]
        self.exchange.prices["WIF"] = D("101.5")
        self.engine.force_close("P1")

        self.engine.evaluate_position(stale)

        stored = self.store.get_position("P1")
        self.assertEqual(stored.status, STATUS_CLOSED)
        self.assertEqual(stored.close_reason, REASON_MANUAL)
        self.assertTrue(any("already closed" in m for m in self.logger.messages("CRITICAL")))

    def test_force_entry(self):
        self.exchange.prices["WIF"] = D("50")

        pos = self.engine.force_entry("wif", Direction.SHORT, amount=D("3.7"))

        self.assertEqual(pos.symbol, "WIF")
        self.assertEqual(pos.direction, Direction.SHORT)
        self.assertEqual(pos.size, D("3"))
        self.assertEqual(self.store.get_position(pos.id).entry_price, D("50"))
        self.assertEqual(self.exchange.orders[0]["side"], "sell")
        self.assertEqual(len(self.notifier.sent), 1)

    def test_force_entry_without_ticker_is_reported(self):
        pos = self.engine.force_entry("WIF", Direction.SHORT)

        self.assertIsNone(pos)
        self.assertEqual(self.exchange.orders, [])
        self.assertEqual(self.store.rows, {})
        self.assertEqual(len(self.notifier.sent), 1)
        self.assertTrue(self.notifier.sent[0].startswith("❌ Failed: entry SHORT WIF"))

    def test_force_close_without_ticker_is_reported(self):
        self.seed_position(entry="100", size="10")
        self.exchange.prices["WIF"] = D("102")
        self.exchange.fail_ticker.add("WIF")

        self.assertIsNone(self.engine.force_close("P1"))

        self.assertEqual(self.exchange.orders, [])
        self.assertEqual(self.store.get_position("P1").status, STATUS_OPEN)
        self.assertEqual(len(self.notifier.sent), 1)
        self.assertTrue(self.notifier.sent[0].startswith(f"❌ Failed: {REASON_MANUAL} LONG WIF"))

        # claim was released
        self.exchange.fail_ticker.discard("WIF")
        self.assertEqual(self.engine.force_close("P1").type, ActionType.FULL_CLOSE)

    def test_performance_report(self):
        self.seed_position(entry="100", size="10", position_id="P1")
        self.seed_position(entry="100", size="10", position_id="P2", symbol="PEPE")
        self.exchange.prices["WIF"] = D("102")
        self.engine.force_close("P1")

        summary = self.engine.performance_report()

        self.assertEqual(summary["open_count"], 1)
        self.assertEqual(summary["closed_count"], 1)
        self.assertEqual(summary["wins"], 1)
        self.assertEqual(summary["total_pnl"], D("20"))
        self.assertTrue(self.notifier.sent[-1].startswith("📊 Performance"))


class TestPaperEngine(EngineTestCase):

    engine_class = PaperTradingEngine

    def test_paper_fills_at_reference_without_orders(self):
        self.script_long()
        self.state.add_symbol("WIF")

        report = self.engine.run_tick(self.state)

        self.assertTrue(self.engine.is_paper_mode)
        self.assertEqual(self.exchange.orders, [])
        pos = self.store.get_position(report.opened[0])
        self.assertEqual(pos.entry_price, D("115"))
        self.assertEqual(pos.size, D("10"))
        self.assertTrue(pos.entry_order_id.endswith("_ENTRY_1"))

    def test_paper_exit(self):
        self.seed_position(entry="100", size="100")
        self.exchange.prices["WIF"] = D("101.5")
        self.exchange.reject_orders["WIF"] = rejected()

        report = self.engine.run_tick(self.state)

        self.assertEqual(report.actions[0].type, ActionType.PARTIAL_CLOSE)
        self.assertEqual(self.store.get_position("P1").size, D("50"))


if __name__ == "__main__":
    unittest.main()
