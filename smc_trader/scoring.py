"""
Sistema de Score Composto
=========================
Combina as estruturas SMC e os modulos de padroes num score 0-100 por
(simbolo, modalidade), com ate 3 fatores legiveis.

Score = round(soma_dos_sub_scores / 120 * 100), limitado a [0, 100]

Sub-scores (maximo bruto 120):
- structure: 0-25  (base 5, BOS +10, FVG +8, OB +7, CHoCH +5)
- candle:    0-10
- chart:     0-10
- volume:    0-25
- psychology 0-15
- alignment: 0-20
- risk:      0-15

Os fatores seguem a ordem explicita de MODULE_REGISTRY (prioridade
crescente), sem duplicatas, e sao cortados em 3.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .alignment import analyze_strategy_alignment
from .config import Config, get_interval
from .data import to_frame
from .indicators import StructureSnapshot, analyze_structure
from .models import ModuleResult, ScoredSymbol, TradeModality
from .patterns import analyze_candle_patterns, analyze_chart_patterns
from .psychology import analyze_psychology
from .risk import validate_risk
from .volume import analyze_volume

log = logging.getLogger(__name__)

STRUCTURE_BASE = 5
STRUCTURE_CAP = 25


@dataclass
class ScoringContext:
    """Entrada comum a todos os modulos do registro."""
    modality: TradeModality
    interval: str
    candles: object
    structure: StructureSnapshot


def score_structure(ctx: ScoringContext) -> ModuleResult:
    s = ctx.structure
    score = STRUCTURE_BASE
    factors = []
    if s.bos.detected:
        score += 10
        factors.append(f"BOS {s.bos.direction} detected on {ctx.interval} - structural break confirmed")
    if s.fvg.detected:
        score += 8
        factors.append(f"FVG {s.fvg.direction} imbalance zone on {ctx.interval}")
    if s.order_block.detected:
        score += 7
        factors.append(f"Order Block {s.order_block.direction} - institutional zone on {ctx.interval}")
    if s.choch.detected:
        score += 5
        factors.append(f"CHoCH {s.choch.direction} - character change signal")
    return ModuleResult(min(STRUCTURE_CAP, score), factors)


# (nome, prioridade, funcao). Menor prioridade = fatores exibidos primeiro.
MODULE_REGISTRY: Tuple[Tuple[str, int, Callable[[ScoringContext], ModuleResult]], ...] = (
    ('structure', 1, score_structure),
    ('candle', 2, lambda ctx: analyze_candle_patterns(ctx.candles)),
    ('chart', 3, lambda ctx: analyze_chart_patterns(ctx.candles)),
    ('volume', 4, lambda ctx: analyze_volume(ctx.candles)),
    ('psychology', 5, lambda ctx: analyze_psychology(ctx.candles)),
    ('alignment', 6, lambda ctx: analyze_strategy_alignment(ctx.modality, ctx.candles, ctx.structure)),
    ('risk', 7, lambda ctx: validate_risk(ctx.candles, ctx.modality, ctx.structure.atr)),
)


@dataclass
class ScoreBreakdown:
    """Sub-scores por modulo, para diagnostico."""
    symbol: str
    modality: TradeModality
    raw_score: float
    score: int
    components: Dict[str, float] = field(default_factory=dict)
    factors: List[str] = field(default_factory=list)


def select_factors(ranked_factors: List[List[str]], limit: int = 3) -> List[str]:
    """Concatena na ordem dada, remove duplicatas mantendo a primeira, corta em `limit`."""
    unique = []
    for group in ranked_factors:
        for factor in group:
            if factor not in unique:
                unique.append(factor)
    return unique[:limit]


def normalize_score(raw: float, max_raw: float) -> int:
    value = int(raw / max_raw * 100 + 0.5)
    return max(0, min(100, value))


class ScoringSystem:
    """
    Executa o registro de modulos sobre uma janela de candles.
    Janelas curtas devolvem None (dados insuficientes, nunca excecao).
    """

    def __init__(self, config: Dict = None):
        self.config = config or self._default_config()

    def _default_config(self) -> Dict:
        return {
            'min_candles': Config.get('scoring.min_candles', 20),
            'max_raw_score': Config.get('scoring.max_raw_score', 120),
            'max_factors': Config.get('scoring.max_factors', 3),
            'rsi_period': Config.get('indicators.rsi_period', 14),
            'atr_period': Config.get('indicators.atr_period', 14),
        }

    def breakdown(self, symbol: str, modality: TradeModality, candles) -> Optional[ScoreBreakdown]:
        modality = TradeModality(modality)
        df = to_frame(candles)
        if len(df) < self.config['min_candles']:
            return None

        ctx = ScoringContext(
            modality=modality,
            interval=get_interval(modality),
            candles=df,
            structure=analyze_structure(df, self.config['rsi_period'], self.config['atr_period']),
        )

        components = {}
        grouped = []
        for name, _priority, module in sorted(MODULE_REGISTRY, key=lambda entry: entry[1]):
            result = module(ctx)
            components[name] = result.score
            grouped.append(result.factors)

        raw = sum(components.values())
        score = normalize_score(raw, self.config['max_raw_score'])
        factors = select_factors(grouped, self.config['max_factors'])
        if not factors:
            factors = [f"{modality.value} analysis complete - score: {score}"]

        return ScoreBreakdown(symbol, modality, raw, score, components, factors)

    def score_symbol(self, symbol: str, modality: TradeModality, candles) -> Optional[ScoredSymbol]:
        result = self.breakdown(symbol, modality, candles)
        if result is None:
            return None
        log.debug(f"{symbol} [{result.modality.value}] score={result.score} raw={result.raw_score} {result.components}")
        return ScoredSymbol(symbol, result.score, result.factors)


_default_system: Optional[ScoringSystem] = None


def score_symbol(symbol: str, modality: TradeModality, candles) -> Optional[ScoredSymbol]:
    """Score composto de um simbolo; None com menos de 20 candles."""
    global _default_system
    if _default_system is None:
        _default_system = ScoringSystem()
    return _default_system.score_symbol(symbol, modality, candles)
