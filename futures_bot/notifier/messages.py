from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from futures_bot.datas.action import ActionType, PositionAction
from futures_bot.datas.position import Position
from futures_bot.datas.signal import Direction, RationaleToken


def _fmt(value: Optional[Decimal], places: int = 8) -> str:
    if value is None:
        return "-"
    return f"{Decimal(value):.{places}f}".rstrip("0").rstrip(".")


def _money(value: Optional[Decimal]) -> str:
    if value is None:
        return "-"
    return f"{Decimal(value):.2f}"


def render_token(token: RationaleToken) -> str:
    """
    One rationale token -> one human readable line.
    """
    name, value = token.name, token.value
    if name == "ema_trend":
        op = ">" if value.get("bias") == "bullish" else "<"
        tfs = " & ".join(value.get("timeframes", []))
        return f"✅ EMA{value.get('fast')} {op} EMA{value.get('slow')} ({tfs})"
    if name == "volume_spike":
        return f"📊 Volume {float(value):.1f}x"
    if name == "rsi":
        return f"📈 RSI {float(value):.0f} (Neutral)"
    if name == "vwap":
        return "🔼 Above VWAP" if value == "above" else "🔽 Below VWAP"
    if name == "breakout":
        return "⚡ Bullish Breakout" if value == "bullish" else "⚡ Bearish Breakout"
    if name == "exit_liquidity":
        return f"💧 Exit liquidity on {value}"
    return f"• {name}: {value}"


def render_rationale(tokens: Iterable[RationaleToken]) -> str:
    return "\n".join(render_token(t) for t in tokens)


def format_entry(position: Position, rationale: Iterable[RationaleToken] = (), notional: Optional[Decimal] = None) -> str:
    lines = [
        f"🚀 {position.direction.value} {position.symbol}",
        f"📌 Entry: {_fmt(position.entry_price)}",
        f"📦 Size: {_fmt(position.size)}",
    ]
    reason = render_rationale(rationale)
    if reason:
        lines.append(f"📝 Reason:\n{reason}")
    if notional is not None:
        lines.append(f"💰 Notional: ${_money(notional)}")
    lines.append(f"🆔 {position.id}")
    return "\n".join(lines)


def format_action(position: Position, action: PositionAction, fill_price: Decimal, pnl: Optional[Decimal]) -> str:
    if action.type == ActionType.DCA:
        return (
            f"🔄 DCA LEVEL {position.dca_level} ACTIVATED\n"
            f"🔹 {position.symbol} @ {_fmt(fill_price)}\n"
            f"📈 New Avg Entry: {_fmt(position.entry_price)}\n"
            f"📊 Size Added: {_fmt(action.amount)} (${_money(action.amount * fill_price)})"
        )
    if action.type == ActionType.PARTIAL_CLOSE:
        return (
            f"🎯 {action.reason} {position.symbol}\n"
            f"🔹 Closed: {_fmt(action.amount)} @ {_fmt(fill_price)}\n"
            f"📦 Remaining: {_fmt(position.size)}\n"
            f"💰 PnL: ${_money(pnl)}"
        )
    return (
        f"🏁 {position.symbol} {action.reason}\n"
        f"🔹 Entry: {_fmt(position.entry_price)}\n"
        f"🔸 Exit: {_fmt(fill_price)}\n"
        f"💰 PnL: ${_money(pnl)}"
    )


def format_failure(what: str, symbol: str, error: Exception, direction: Optional[Direction] = None, attention: bool = False) -> str:
    head = "🚨 OPERATOR ATTENTION" if attention else "❌ Failed"
    side = f" {direction.value}" if direction is not None else ""
    return f"{head}: {what}{side} {symbol}\n{error}"


def format_performance(summary: Dict[str, Any]) -> str:
    return (
        "📊 Performance\n"
        f"📂 Open: {summary.get('open_count', 0)}\n"
        f"✅ Closed: {summary.get('closed_count', 0)} (W {summary.get('wins', 0)} / L {summary.get('losses', 0)})\n"
        f"🎯 Win rate: {Decimal(summary.get('win_rate', 0)):.1f}%\n"
        f"💰 Total PnL: ${_money(summary.get('total_pnl', Decimal('0')))}"
    )
