"""
Indicators Module - RSI, ATR e estruturas Smart Money Concepts
================================================================================
Funcoes puras sobre uma sequencia de candles (DataFrame, lista de Candle,
dicts ou klines brutas). Nenhum estado compartilhado e nenhuma excecao para
dados insuficientes: cada funcao devolve sua sentinela documentada.

- calculate_rsi:  50 com menos de period+1 candles, 100 sem perdas
- calculate_atr:  0 com menos de period+1 candles
- detect_bos / detect_fvg / detect_order_block / detect_choch:
  NOT_DETECTED quando a janela minima nao e atingida

VERSAO: 1.0
================================================================================
"""
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .data import to_frame
from .models import BEARISH, BULLISH, NOT_DETECTED, StructureSignal

BOS_MIN_CANDLES = 10
BOS_WINDOW = 20
FVG_MIN_CANDLES = 3
FVG_WINDOW = 15
OB_MIN_CANDLES = 5
OB_WINDOW = 20
OB_STRONG_BODY = 0.6
CHOCH_MIN_CANDLES = 15
CHOCH_WINDOW = 15


def _arrays(candles) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    df = to_frame(candles)
    return (
        df['open'].to_numpy(dtype=float),
        df['high'].to_numpy(dtype=float),
        df['low'].to_numpy(dtype=float),
        df['close'].to_numpy(dtype=float),
    )


def find_swing_points(highs: np.ndarray, lows: np.ndarray, depth: int = 1) -> Tuple[List[int], List[int]]:
    """
    Indices de swing highs e swing lows.

    depth=1 e o teste de 3 candles (vizinho imediato de cada lado),
    depth=2 o teste de 5 candles. Comparacoes estritas.
    """
    swing_highs, swing_lows = [], []
    for i in range(depth, len(highs) - depth):
        neighbours = [j for j in range(i - depth, i + depth + 1) if j != i]
        if all(highs[i] > highs[j] for j in neighbours):
            swing_highs.append(i)
        if all(lows[i] < lows[j] for j in neighbours):
            swing_lows.append(i)
    return swing_highs, swing_lows


# =============================================================================
# OSCILADORES
# =============================================================================

def calculate_rsi(candles, period: int = 14) -> float:
    """RSI com media simples de ganhos/perdas dos ultimos `period` intervalos."""
    _, _, _, close = _arrays(candles)
    if len(close) < period + 1:
        return 50.0

    changes = np.diff(close[-(period + 1):])
    avg_gain = changes[changes > 0].sum() / period
    avg_loss = -changes[changes < 0].sum() / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return float(100 - 100 / (1 + rs))


def calculate_atr(candles, period: int = 14) -> float:
    """Media do true range nos ultimos `period` intervalos."""
    _, high, low, close = _arrays(candles)
    if len(close) < period + 1:
        return 0.0

    h = high[-period:]
    l = low[-period:]
    prev_close = close[-(period + 1):-1]
    true_range = np.maximum.reduce([h - l, np.abs(h - prev_close), np.abs(l - prev_close)])
    return float(true_range.mean())


# =============================================================================
# ESTRUTURAS SMC
# =============================================================================

def detect_bos(candles) -> StructureSignal:
    """
    Break of Structure sobre os ultimos 20 candles.

    Mantem o swing high mais alto e o swing low mais baixo (teste de 3
    candles). Bullish quando o ultimo close supera o swing high, bearish
    quando perde o swing low.
    """
    _, high, low, close = _arrays(candles)
    if len(close) < BOS_MIN_CANDLES:
        return NOT_DETECTED

    high, low, close = high[-BOS_WINDOW:], low[-BOS_WINDOW:], close[-BOS_WINDOW:]
    swing_high, swing_low = -np.inf, np.inf
    high_idx, low_idx = -1, -1

    for i in range(1, len(close) - 1):
        if high[i] > high[i - 1] and high[i] > high[i + 1] and high[i] > swing_high:
            swing_high, high_idx = high[i], i
        if low[i] < low[i - 1] and low[i] < low[i + 1] and low[i] < swing_low:
            swing_low, low_idx = low[i], i

    last_close = close[-1]
    if high_idx > 0 and last_close > swing_high:
        return StructureSignal(True, BULLISH, level=float(swing_high), index=high_idx)
    if low_idx > 0 and last_close < swing_low:
        return StructureSignal(True, BEARISH, level=float(swing_low), index=low_idx)
    return NOT_DETECTED


def detect_fvg(candles) -> StructureSignal:
    """Fair Value Gap mais recente (trincas deslizantes, ate 15 candles para tras)."""
    _, high, low, _ = _arrays(candles)
    n = len(high)
    if n < FVG_MIN_CANDLES:
        return NOT_DETECTED

    for i in range(n - 3, max(0, n - FVG_WINDOW) - 1, -1):
        if low[i + 2] > high[i]:
            top, bottom = low[i + 2], high[i]
            return StructureSignal(True, BULLISH, top=float(top), bottom=float(bottom),
                                   midpoint=float((top + bottom) / 2), index=i)
        if high[i + 2] < low[i]:
            top, bottom = low[i], high[i + 2]
            return StructureSignal(True, BEARISH, top=float(top), bottom=float(bottom),
                                   midpoint=float((top + bottom) / 2), index=i)
    return NOT_DETECTED


def detect_order_block(candles) -> StructureSignal:
    """
    Order Block nos ultimos 20 candles.

    Varre de len-4 ate 1 procurando um candle forte (corpo > 60% do range)
    seguido de um candle oposto que fecha alem do seu extremo. Primeiro
    match vence.
    """
    opens, high, low, close = _arrays(candles)
    if len(close) < OB_MIN_CANDLES:
        return NOT_DETECTED

    opens, high, low, close = opens[-OB_WINDOW:], high[-OB_WINDOW:], low[-OB_WINDOW:], close[-OB_WINDOW:]

    for i in range(len(close) - 4, 0, -1):
        body = abs(close[i] - opens[i])
        candle_range = high[i] - low[i]
        if not body > candle_range * OB_STRONG_BODY:
            continue

        nxt = i + 1
        if close[i] < opens[i] and close[nxt] > opens[nxt] and close[nxt] > high[i]:
            top, bottom = opens[i], close[i]
            return StructureSignal(True, BULLISH, top=float(top), bottom=float(bottom),
                                   midpoint=float((opens[i] + close[i]) / 2), index=i)
        if close[i] > opens[i] and close[nxt] < opens[nxt] and close[nxt] < low[i]:
            top, bottom = close[i], opens[i]
            return StructureSignal(True, BEARISH, top=float(top), bottom=float(bottom),
                                   midpoint=float((opens[i] + close[i]) / 2), index=i)
    return NOT_DETECTED


def detect_choch(candles) -> StructureSignal:
    """
    Change of Character nos ultimos 15 candles.

    Bearish: os dois ultimos swing lows caem e o close perde o ultimo.
    Bullish: os dois ultimos swing highs sobem e o close supera o ultimo.
    Bearish e avaliado primeiro.
    """
    _, high, low, close = _arrays(candles)
    if len(close) < CHOCH_MIN_CANDLES:
        return NOT_DETECTED

    high, low, close = high[-CHOCH_WINDOW:], low[-CHOCH_WINDOW:], close[-CHOCH_WINDOW:]
    swing_highs, swing_lows = find_swing_points(high, low, depth=1)
    last_close = close[-1]

    if len(swing_lows) >= 2:
        prev_low, last_low = low[swing_lows[-2]], low[swing_lows[-1]]
        if last_low < prev_low and last_close < last_low:
            return StructureSignal(True, BEARISH, level=float(last_low), index=swing_lows[-1])

    if len(swing_highs) >= 2:
        prev_high, last_high = high[swing_highs[-2]], high[swing_highs[-1]]
        if last_high > prev_high and last_close > last_high:
            return StructureSignal(True, BULLISH, level=float(last_high), index=swing_highs[-1])

    return NOT_DETECTED


@dataclass(frozen=True)
class StructureSnapshot:
    """Todas as estruturas de uma janela, calculadas uma unica vez."""
    bos: StructureSignal
    fvg: StructureSignal
    order_block: StructureSignal
    choch: StructureSignal
    rsi: float
    atr: float


def analyze_structure(candles, rsi_period: int = 14, atr_period: int = 14) -> StructureSnapshot:
    df = to_frame(candles)
    return StructureSnapshot(
        bos=detect_bos(df),
        fvg=detect_fvg(df),
        order_block=detect_order_block(df),
        choch=detect_choch(df),
        rsi=calculate_rsi(df, rsi_period),
        atr=calculate_atr(df, atr_period),
    )
