"""
Risk Module
Validacao de volatilidade por modalidade e colocacao de stop/alvos por ATR.

- validate_risk(): sub-score 0-15 do score composto (banda de ATR% da
  modalidade e viabilidade de 1:2)
- RiskManager: stop, tres alvos, reward:risk e tamanho de posicao
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .config import Config, get_modality_config
from .data import to_frame
from .indicators import calculate_atr
from .models import ModuleResult, TradeDirection, TradeModality

BASE_SCORE = 5
MAX_SCORE = 15


@dataclass
class RiskValidation(ModuleResult):
    is_valid: bool = False
    atr: float = 0.0
    atr_percent: float = 0.0
    rr_achievable: bool = False


def validate_risk(candles, modality: TradeModality, atr: Optional[float] = None) -> RiskValidation:
    """
    Score de risco: base 5, +5 dentro da banda de ATR%, -3 abaixo, -2 acima,
    +5 quando o ATR% atinge o minimo da banda (1:2 viavel). ATR 0 vale 0.
    """
    df = to_frame(candles)
    if atr is None:
        atr = calculate_atr(df, Config.get('indicators.atr_period', 14))
    if atr == 0 or df.empty:
        return RiskValidation(0, ['Insufficient data for ATR calculation'])

    modality = TradeModality(modality)
    table = get_modality_config(modality)
    atr_min, atr_max = table['atr_pct_min'], table['atr_pct_max']

    current_price = float(df['close'].iloc[-1])
    atr_percent = atr / current_price * 100
    score = BASE_SCORE
    factors = []

    is_valid = atr_min <= atr_percent <= atr_max
    if is_valid:
        score += 5
        factors.append(f"ATR {atr_percent:.2f}% - optimal volatility for {modality.value}")
    elif atr_percent < atr_min:
        score -= 3
        factors.append(f"ATR too low ({atr_percent:.2f}%) - insufficient volatility")
    else:
        score -= 2
        factors.append(f"ATR high ({atr_percent:.2f}%) - elevated risk")

    rr_achievable = atr_percent >= atr_min
    if rr_achievable:
        score += 5
        factors.append('1:2 R:R achievable with ATR-based stop placement')

    return RiskValidation(
        max(0, min(MAX_SCORE, score)), factors,
        is_valid=is_valid, atr=atr, atr_percent=atr_percent, rr_achievable=rr_achievable,
    )


class RiskManager:
    """
    Colocacao de niveis por distancia.
    Todas as distancias sao positivas; a direcao define o sinal.
    """

    def __init__(self, capital: Optional[float] = None, position_pct: Optional[float] = None):
        self.capital = capital if capital is not None else Config.get('risk.capital', 1000.0)
        self.position_pct = position_pct if position_pct is not None else Config.get('risk.position_pct', 0.02)

    @staticmethod
    def offset(price: float, distance: float, direction: TradeDirection, favorable: bool) -> float:
        """Preco a `distance` de `price`, a favor ou contra a direcao."""
        sign = 1 if (direction is TradeDirection.LONG) == favorable else -1
        return price + sign * distance

    def calculate_stop_loss(self, entry: float, distance: float, direction: TradeDirection) -> float:
        return self.offset(entry, distance, direction, favorable=False)

    def calculate_take_profits(self, entry: float, distances: Sequence[float],
                               direction: TradeDirection) -> Tuple[float, ...]:
        return tuple(self.offset(entry, d, direction, favorable=True) for d in distances)

    def atr_levels(self, entry: float, atr: float, direction: TradeDirection,
                   modality: TradeModality) -> Tuple[float, float, float, float]:
        """(stop, tp1, tp2, tp3) pelos multiplicadores de ATR da modalidade."""
        table = get_modality_config(modality)
        stop = self.calculate_stop_loss(entry, atr * table['sl_atr_mult'], direction)
        tp1, tp2, tp3 = self.calculate_take_profits(
            entry, [atr * m for m in table['tp_atr_mults']], direction)
        return stop, tp1, tp2, tp3

    def risk_multiple_levels(self, entry: float, risk: float, direction: TradeDirection,
                             multiples: Sequence[float]) -> Tuple[float, ...]:
        """Alvos a multiplos fixos da distancia de risco."""
        return self.calculate_take_profits(entry, [risk * m for m in multiples], direction)

    @staticmethod
    def reward_risk(entry: float, stop: float, target: float) -> float:
        risk = abs(entry - stop)
        if risk == 0:
            return 0.0
        return abs(target - entry) / risk

    def position_size(self) -> float:
        return self.capital * self.position_pct
