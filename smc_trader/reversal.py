"""
Reversal Detector - Alerta de estrutura contra um trade aberto
CHoCH contra a direcao do trade tem prioridade; depois, Order Block oposto
a menos de 0.5% do preco atual (Breaker Block).
"""
import logging
from typing import Optional

from .data import to_frame
from .indicators import detect_choch, detect_order_block
from .models import BEARISH, BULLISH, ReversalSignal, Trade
from .utils import now_ms

log = logging.getLogger(__name__)

CHOCH = 'CHOCH'
BREAKER_BLOCK = 'BreakerBlock'
BREAKER_PROXIMITY = 0.005


def _against(trade: Trade, direction: Optional[str]) -> bool:
    if trade.is_long:
        return direction == BEARISH
    return direction == BULLISH


def check_reversal_signals(trade: Trade, candles, now: Optional[int] = None) -> Optional[ReversalSignal]:
    """ReversalSignal contra `trade` ou None."""
    df = to_frame(candles)
    if df.empty:
        return None
    timestamp = now if now is not None else now_ms()
    side = trade.direction.value

    choch = detect_choch(df)
    if choch.detected and _against(trade, choch.direction):
        log.info(f"{trade.symbol}: CHoCH {choch.direction} contra {side}")
        return ReversalSignal(
            type=CHOCH,
            trade_id=trade.id,
            symbol=trade.symbol,
            direction=choch.direction,
            price=choch.level,
            timestamp=timestamp,
            description=(f"Change of Character detected - market structure shifted {choch.direction}. "
                         f"Consider closing or reversing your {side} position."),
        )

    ob = detect_order_block(df)
    if ob.detected and _against(trade, ob.direction):
        current_price = float(df['close'].iloc[-1])
        if abs(current_price - ob.midpoint) / current_price < BREAKER_PROXIMITY:
            log.info(f"{trade.symbol}: Breaker Block {ob.direction} em {ob.midpoint:.4f}")
            return ReversalSignal(
                type=BREAKER_BLOCK,
                trade_id=trade.id,
                symbol=trade.symbol,
                direction=ob.direction,
                price=ob.midpoint,
                timestamp=timestamp,
                description=(f"Breaker Block detected at {ob.midpoint:.4f}. "
                             f"Price approaching institutional zone against your {side} position."),
            )

    return None
