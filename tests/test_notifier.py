import os
import unittest
from decimal import Decimal
from unittest import mock

import requests

from futures_bot.datas.action import ActionType, PositionAction, REASON_DCA, REASON_TP1, REASON_TRAILING
from futures_bot.datas.signal import Direction, RationaleToken
from futures_bot.notifier import messages
from futures_bot.notifier.telegram_notifier import LogNotifier, TelegramNotifier
from tests.fakes import FakeLogger, make_position

D = Decimal


class TestTelegramNotifier(unittest.TestCase):

    def setUp(self):
        self.session = mock.Mock(spec=requests.Session)
        self.logger = FakeLogger()
        self.notifier = TelegramNotifier("TOKEN", 1234, timeout=3.0, logger=self.logger, session=self.session)

    def _response(self, body):
        resp = mock.Mock()
        resp.raise_for_status.return_value = None
        resp.json.return_value = body
        return resp

    def test_send_posts_to_bot_api(self):
        self.session.post.return_value = self._response({"ok": True})

        self.assertTrue(self.notifier.send("hello"))

        self.session.post.assert_called_once_with(
            "https://api.telegram.org/botTOKEN/sendMessage",
            json={"chat_id": "1234", "text": "hello", "disable_web_page_preview": True},
            timeout=3.0,
        )

    def test_api_refusal_returns_false(self):
        self.session.post.return_value = self._response({"ok": False, "description": "chat not found"})
        self.assertFalse(self.notifier.send("hello"))
        self.assertTrue(any("chat not found" in m for m in self.logger.messages("WARNING")))

    def test_network_error_never_raises(self):
        self.session.post.side_effect = requests.ConnectionError("no route")
        self.assertFalse(self.notifier.send("hello"))
        self.assertTrue(any("no route" in m for m in self.logger.messages("WARNING")))

    def test_http_error_never_raises(self):
        resp = mock.Mock()
        resp.raise_for_status.side_effect = requests.HTTPError("502")
        self.session.post.return_value = resp
        self.assertFalse(self.notifier.send("hello"))

    def test_requires_credentials(self):
        with self.assertRaises(ValueError):
            TelegramNotifier("", "1")

    def test_from_env(self):
        with mock.patch.dict(os.environ, {"TELEGRAM_TOKEN": "", "TELEGRAM_CHAT_ID": ""}):
            self.assertIsNone(TelegramNotifier.from_env(logger=self.logger))
        with mock.patch.dict(os.environ, {"TELEGRAM_TOKEN": "T", "TELEGRAM_CHAT_ID": "9"}):
            notifier = TelegramNotifier.from_env(logger=self.logger)
        self.assertEqual(notifier.chat_id, "9")

    def test_log_notifier(self):
        self.assertTrue(LogNotifier(self.logger).send("hi"))
        self.assertEqual(self.logger.messages("INFO"), ["[NOTIFY] hi"])


class TestMessages(unittest.TestCase):

    def test_entry(self):
        pos = make_position(Direction.LONG, entry="1.25", size="80", position_id="20250101_POS_1")
        tokens = [
            RationaleToken("ema_trend", {"fast": 9, "slow": 18, "timeframes": ["5m", "15m"], "bias": "bullish"}),
            RationaleToken("volume_spike", 3.21),
            RationaleToken("rsi", 52.4),
            RationaleToken("vwap", "above"),
            RationaleToken("breakout", "bullish"),
            RationaleToken("exit_liquidity", "asks"),
        ]
        text = messages.format_entry(pos, tokens, notional=D("100"))
        self.assertTrue(text.startswith("🚀 LONG WIF"))
        self.assertIn("📌 Entry: 1.25", text)
        self.assertIn("✅ EMA9 > EMA18 (5m & 15m)", text)
        self.assertIn("📊 Volume 3.2x", text)
        self.assertIn("📈 RSI 52 (Neutral)", text)
        self.assertIn("💰 Notional: $100.00", text)
        self.assertTrue(text.endswith("🆔 20250101_POS_1"))

    def test_short_tokens(self):
        self.assertEqual(messages.render_token(RationaleToken("vwap", "below")), "🔽 Below VWAP")
        self.assertEqual(messages.render_token(RationaleToken("breakout", "bearish")), "⚡ Bearish Breakout")
        self.assertEqual(messages.render_token(RationaleToken("custom", 1)), "• custom: 1")

    def test_dca(self):
        pos = make_position(Direction.SHORT, entry="101.5", size="15", dca_level=1)
        action = PositionAction(type=ActionType.DCA, position_id=pos.id, amount=D("5"), price=D("105"), reason=REASON_DCA)
        text = messages.format_action(pos, action, D("105"), None)
        self.assertTrue(text.startswith("🔄 DCA LEVEL 1 ACTIVATED"))
        self.assertIn("📊 Size Added: 5 ($525.00)", text)

    def test_partial_and_full_close(self):
        pos = make_position(Direction.LONG, entry="100", size="50")
        partial = PositionAction(type=ActionType.PARTIAL_CLOSE, position_id=pos.id, amount=D("50"), price=D("101.5"), reason=REASON_TP1)
        text = messages.format_action(pos, partial, D("101.5"), D("75"))
        self.assertIn("🔹 Closed: 50 @ 101.5", text)
        self.assertIn("📦 Remaining: 50", text)
        self.assertIn("💰 PnL: $75.00", text)

        full = PositionAction(type=ActionType.FULL_CLOSE, position_id=pos.id, amount=D("50"), price=D("99"), reason=REASON_TRAILING)
        text = messages.format_action(pos, full, D("99"), D("-50"))
        self.assertTrue(text.startswith("🏁 WIF TRAILING SL HIT"))
        self.assertIn("💰 PnL: $-50.00", text)

    def test_failure(self):
        text = messages.format_failure("TP2 HIT", "WIF", RuntimeError("rejected"), Direction.SHORT, attention=True)
        self.assertEqual(text, "🚨 OPERATOR ATTENTION: TP2 HIT SHORT WIF\nrejected")
        self.assertEqual(messages.format_failure("entry", "WIF", RuntimeError("x")), "❌ Failed: entry WIF\nx")

    def test_performance(self):
        text = messages.format_performance({"open_count": 2, "closed_count": 4, "wins": 3, "losses": 1, "win_rate": D("75"), "total_pnl": D("12.346")})
        self.assertIn("📂 Open: 2", text)
        self.assertIn("(W 3 / L 1)", text)
        self.assertIn("🎯 Win rate: 75.0%", text)
        self.assertIn("💰 Total PnL: $12.35", text)


if __name__ == "__main__":
    unittest.main()
