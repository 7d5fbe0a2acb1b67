"""
Recovery Module - Estrategias de recuperacao de posicao
Analise pura sobre um trade aberto + candles do seu timeframe.

Estrategias (nesta ordem):
    AverageDown   - aporte a 0.5 ATR alem do preco atual
    AverageDown   - aporte no meio do Order Block (quando detectado)
    PartialClose  - fechar 50% agora
    DCA           - tres niveis a 1/2/3 ATR do preco atual
    Hedge         - posicao oposta no preco atual

Sem candles devolve um conjunto generico sem precos.

VERSAO: 1.0
"""
from typing import List

from .config import Config
from .data import to_frame
from .indicators import calculate_atr, detect_order_block
from .models import RecoveryStrategy, Trade

AVERAGE_DOWN = 'AverageDown'
PARTIAL_CLOSE = 'PartialClose'
DCA = 'DCA'
HEDGE = 'Hedge'

AVERAGE_ATR_MULT = 0.5
DCA_ATR_MULTS = (1.0, 2.0, 3.0)

FALLBACK_STRATEGIES = (
    RecoveryStrategy(PARTIAL_CLOSE, 'Close 50% of position to reduce exposure and risk.', 30),
    RecoveryStrategy(HEDGE, 'Open opposite position to neutralize further losses.', 50),
    RecoveryStrategy(DCA, 'Dollar cost average at lower levels to improve entry price.', 40),
)


def _improvement(trade: Trade, level: float, price: float, scale: float = 100) -> float:
    """Quanto o novo nivel aproxima o breakeven, relativo a distancia entrada-preco."""
    distance = abs(trade.entry - price)
    if distance == 0:
        return 0.0
    return abs(trade.entry - level) / distance * scale


def generate_recovery_strategies(trade: Trade, candles, price: float) -> List[RecoveryStrategy]:
    df = to_frame(candles)
    if df.empty:
        return list(FALLBACK_STRATEGIES)

    atr = calculate_atr(df, Config.get('indicators.atr_period', 14))
    ob = detect_order_block(df)
    size = trade.position_size
    toward_loss = -1 if trade.is_long else 1

    loss_percent = (price - trade.entry) / trade.entry * 100
    if not trade.is_long:
        loss_percent = -loss_percent

    strategies = []

    avg_level = price + toward_loss * atr * AVERAGE_ATR_MULT
    avg_entry = (trade.entry + avg_level) / 2
    improvement = _improvement(trade, avg_entry, price)
    strategies.append(RecoveryStrategy(
        AVERAGE_DOWN,
        f"Add position at {avg_level:.4f} to reduce average entry to {avg_entry:.4f}. "
        f"Breakeven improves by ~{improvement:.0f}%.",
        improvement,
        entry_price=avg_level,
        quantity=size / avg_level,
    ))

    if ob.detected:
        strategies.append(RecoveryStrategy(
            AVERAGE_DOWN,
            f"Order Block zone detected at {ob.bottom:.4f}-{ob.top:.4f}. "
            f"Add at OB midpoint {ob.midpoint:.4f} for institutional support.",
            _improvement(trade, ob.midpoint, price, scale=50),
            entry_price=ob.midpoint,
            quantity=size * 0.5 / ob.midpoint,
        ))

    strategies.append(RecoveryStrategy(
        PARTIAL_CLOSE,
        f"Close 50% of position now to reduce exposure. Remaining position needs "
        f"{abs(loss_percent) / 2:.1f}% recovery to break even.",
        30,
        quantity=size * 0.5 / price,
    ))

    levels = tuple(price + toward_loss * atr * m for m in DCA_ATR_MULTS)
    strategies.append(RecoveryStrategy(
        DCA,
        f"Dollar Cost Average across 3 levels: {', '.join(f'{l:.2f}' for l in levels)}. "
        f"Equal position size at each level.",
        45,
        quantity=size / 3 / price,
        levels=levels,
    ))

    opposite = trade.direction.flipped().value
    strategies.append(RecoveryStrategy(
        HEDGE,
        f"Open opposite {opposite} position at {price:.4f} to neutralize further losses "
        f"while waiting for reversal.",
        60,
        entry_price=price,
        quantity=size / price,
    ))

    return strategies
