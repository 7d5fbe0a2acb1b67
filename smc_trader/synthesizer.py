"""
Trade Setup Synthesizer
================================================================================
Deriva direcao, entrada, tres alvos e stop a partir dos candles de um simbolo.

Prioridade da direcao (primeiro match vence):
    1. BOS
    2. FVG       (entrada no meio do gap)
    3. Order Block (entrada no meio do bloco)
    4. Tendencia dos ultimos 10 closes

Entrada a mais de 2% do preco atual volta para o preco atual.

Politica de reward:risk (setup.rr_policy):
    override - tp1 abaixo do minimo (2.0) reposiciona os alvos em 2x/3x/4.5x
               a distancia do stop
    reject   - tp1 abaixo do minimo devolve None

rr_ratio e sempre recalculado como |tp1 - entry| / |entry - stop|, arredondado
a RR_DECIMALS casas antes da comparacao com o minimo.

VERSAO: 1.0
================================================================================
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from .config import Config, get_interval
from .data import to_frame
from .indicators import analyze_structure
from .models import TradeDirection, TradeModality, TradeSetup
from .risk import RiskManager

log = logging.getLogger(__name__)

RR_POLICY_OVERRIDE = 'override'
RR_POLICY_REJECT = 'reject'
# casas de rr_ratio; o piso e comparado ja arredondado
RR_DECIMALS = 10


class SelectionFailure(str, Enum):
    """Qual etapa nao produziu resultado (para mensagens distintas no shell)."""
    NO_DATA = "no_data"
    INSUFFICIENT_VOLATILITY = "insufficient_volatility"
    NO_CANDIDATE = "no_candidate"


FAILURE_MESSAGES = {
    SelectionFailure.NO_DATA: "No market data available for this symbol",
    SelectionFailure.INSUFFICIENT_VOLATILITY: "Insufficient volatility to place ATR-based levels",
    SelectionFailure.NO_CANDIDATE: "No qualifying candidate found",
}


@dataclass(frozen=True)
class SetupPolicy:
    min_rr_ratio: float = 2.0
    rr_policy: str = RR_POLICY_OVERRIDE
    override_multiples: tuple = (2.0, 3.0, 4.5)
    max_entry_deviation: float = 0.02
    trend_lookback: int = 10
    min_candles: int = 20
    atr_period: int = 14

    @classmethod
    def from_config(cls) -> 'SetupPolicy':
        setup = Config.get_section('setup')
        policy = cls(
            min_rr_ratio=setup.get('min_rr_ratio', 2.0),
            rr_policy=setup.get('rr_policy', RR_POLICY_OVERRIDE),
            override_multiples=tuple(setup.get('override_multiples', (2.0, 3.0, 4.5))),
            max_entry_deviation=setup.get('max_entry_deviation', 0.02),
            trend_lookback=setup.get('trend_lookback', 10),
            min_candles=Config.get('scoring.min_candles', 20),
            atr_period=Config.get('indicators.atr_period', 14),
        )
        if policy.rr_policy not in (RR_POLICY_OVERRIDE, RR_POLICY_REJECT):
            raise ValueError(f"rr_policy invalida: {policy.rr_policy}")
        return policy


def diagnose(candles, policy: Optional[SetupPolicy] = None) -> Optional[SelectionFailure]:
    """Motivo pelo qual synthesize_setup devolveria None por falta de dados."""
    policy = policy or SetupPolicy.from_config()
    df = to_frame(candles)
    if len(df) < policy.min_candles:
        return SelectionFailure.NO_DATA
    if analyze_structure(df, atr_period=policy.atr_period).atr == 0:
        return SelectionFailure.INSUFFICIENT_VOLATILITY
    return None


def _choose_direction(structure, closes: Sequence[float], current_price: float,
                      interval: str, lookback: int):
    """(direcao, entrada, motivo) pela ordem BOS > FVG > OB > tendencia."""
    signals = (
        ('BOS', structure.bos, False),
        ('FVG', structure.fvg, True),
        ('Order Block', structure.order_block, True),
    )
    for label, signal, snap_to_zone in signals:
        if not signal.detected:
            continue
        direction = TradeDirection.LONG if signal.is_bullish else TradeDirection.SHORT
        entry = signal.midpoint if snap_to_zone else current_price
        return direction, entry, f"{label} {signal.direction.capitalize()} on {interval}"

    recent = closes[-lookback:]
    if recent[-1] > recent[0]:
        return TradeDirection.LONG, current_price, 'Trend Continuation Long'
    return TradeDirection.SHORT, current_price, 'Trend Continuation Short'


def synthesize_setup(symbol: str, modality: TradeModality, candles,
                     scoring_factors: Optional[List[str]] = None,
                     policy: Optional[SetupPolicy] = None,
                     risk: Optional[RiskManager] = None) -> Optional[TradeSetup]:
    """
    Gera um TradeSetup ou None (menos de 20 candles, ATR 0 ou, na politica
    'reject', reward:risk abaixo do minimo).
    """
    modality = TradeModality(modality)
    policy = policy or SetupPolicy.from_config()
    risk = risk or RiskManager()

    df = to_frame(candles)
    if len(df) < policy.min_candles:
        return None

    structure = analyze_structure(df, atr_period=policy.atr_period)
    if structure.atr == 0:
        return None

    interval = get_interval(modality)
    closes = df['close'].to_numpy(dtype=float)
    current_price = float(closes[-1])

    direction, entry, reason = _choose_direction(
        structure, closes, current_price, interval, policy.trend_lookback)

    if abs(entry - current_price) / current_price > policy.max_entry_deviation:
        entry = current_price

    stop, tp1, tp2, tp3 = risk.atr_levels(entry, structure.atr, direction, modality)
    rr = round(risk.reward_risk(entry, stop, tp1), RR_DECIMALS)

    if rr < policy.min_rr_ratio:
        if policy.rr_policy == RR_POLICY_REJECT:
            log.debug(f"{symbol} [{modality.value}] setup rejeitado: R:R {rr:.2f} < {policy.min_rr_ratio}")
            return None
        tp1, tp2, tp3 = risk.risk_multiple_levels(
            entry, abs(entry - stop), direction, policy.override_multiples)
        rr = round(risk.reward_risk(entry, stop, tp1), RR_DECIMALS)

    return TradeSetup(
        symbol=symbol,
        direction=direction,
        entry=entry,
        tp1=tp1,
        tp2=tp2,
        tp3=tp3,
        stop_loss=stop,
        modality=modality,
        interval=interval,
        entry_reason=reason,
        rr_ratio=rr,
        scoring_factors=tuple(scoring_factors or ()),
    )


def explain_failure(failure: SelectionFailure) -> str:
    return FAILURE_MESSAGES[SelectionFailure(failure)]
