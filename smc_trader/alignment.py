"""
Alinhamento com a estrategia da modalidade (sub-score 0-20)
===========================================================
Cada modalidade valoriza sinais estruturais diferentes:

- Scalping:   FVG +8, BOS +5, RSI extremo (<35 ou >65) +4
- DayTrading: BOS +8, Order Block +5, RSI neutro (40-60) +4
- Swing:      FVG +6, Order Block +6, CHoCH +5
- Position:   BOS +7, CHoCH +6, RSI <40 ou >60 +4
"""
from typing import Optional

from .config import get_interval
from .indicators import StructureSnapshot, analyze_structure
from .models import ModuleResult, TradeModality

BASE_SCORE = 5
MAX_SCORE = 20


def _scalping(s: StructureSnapshot, interval: str):
    if s.fvg.detected:
        yield 8, f"FVG {s.fvg.direction} entry zone identified"
    if s.bos.detected:
        yield 5, f"BOS {s.bos.direction} - momentum confirmed"
    if s.rsi < 35 or s.rsi > 65:
        yield 4, f"RSI at {s.rsi:.0f} - momentum extreme"


def _day_trading(s: StructureSnapshot, interval: str):
    if s.bos.detected:
        yield 8, f"BOS {s.bos.direction} confirmed on {interval}"
    if s.order_block.detected:
        yield 5, f"Order Block {s.order_block.direction} - institutional zone"
    if 40 < s.rsi < 60:
        yield 4, 'RSI neutral - room for directional move'


def _swing(s: StructureSnapshot, interval: str):
    if s.fvg.detected:
        yield 6, f"FVG {s.fvg.direction} - imbalance zone for swing entry"
    if s.order_block.detected:
        yield 6, f"Order Block {s.order_block.direction} - swing demand/supply zone"
    if s.choch.detected:
        yield 5, f"CHoCH {s.choch.direction} - character change for swing"


def _position(s: StructureSnapshot, interval: str):
    if s.bos.detected:
        yield 7, f"BOS {s.bos.direction} on daily - macro trend shift"
    if s.choch.detected:
        yield 6, f"CHoCH {s.choch.direction} - long-term structure change"
    if s.rsi < 40 or s.rsi > 60:
        yield 4, f"RSI {s.rsi:.0f} - position entry zone"


RULES = {
    TradeModality.SCALPING: _scalping,
    TradeModality.DAY_TRADING: _day_trading,
    TradeModality.SWING: _swing,
    TradeModality.POSITION: _position,
}

if set(RULES) != set(TradeModality):
    raise KeyError(f"Regras de alinhamento incompletas: {set(TradeModality) - set(RULES)}")


def analyze_strategy_alignment(modality: TradeModality, candles,
                               structure: Optional[StructureSnapshot] = None) -> ModuleResult:
    modality = TradeModality(modality)
    if structure is None:
        structure = analyze_structure(candles)

    score = BASE_SCORE
    factors = []
    for points, factor in RULES[modality](structure, get_interval(modality)):
        score += points
        factors.append(factor)

    return ModuleResult(max(0, min(MAX_SCORE, score)), factors)
