"""
Padroes de candle e de grafico
==============================
Dois detectores independentes que devolvem listas de PatternResult
(nome, direcao, forca 0-1), mais a funcao que converte a lista em sub-score
de 0 a 10 para o score composto.
"""
from typing import List

import numpy as np

from .data import to_frame
from .indicators import find_swing_points
from .models import ModuleResult, PatternResult

EPS = 0.0001
CHART_MIN_CANDLES = 20
CHART_WINDOW = 30
PATTERN_SCORE_CAP = 10
PATTERNS_COUNTED = 2


def detect_candle_patterns(candles) -> List[PatternResult]:
    """Padroes de 1 a 3 candles sobre os tres ultimos candles."""
    df = to_frame(candles)
    if len(df) < 3:
        return []

    c2, c1, c = df.iloc[-3:].itertuples(index=False)
    results = []

    body = abs(c.close - c.open)
    rng = c.high - c.low
    upper_wick = c.high - max(c.open, c.close)
    lower_wick = min(c.open, c.close) - c.low
    is_bullish = bool(c.close > c.open)

    if lower_wick > body * 2 and upper_wick < body * 0.5 and rng > 0:
        results.append(PatternResult('Hammer', True, min(1.0, lower_wick / rng)))

    if upper_wick > body * 2 and lower_wick < body * 0.5 and rng > 0:
        results.append(PatternResult('Inverted Hammer', True, min(1.0, upper_wick / rng)))

    prev_body = abs(c1.close - c1.open)
    if body > prev_body * 1.1:
        strength = min(1.0, body / (prev_body + EPS))
        if is_bullish and c1.close < c1.open and c.open <= c1.close and c.close >= c1.open:
            results.append(PatternResult('Bullish Engulfing', True, strength))
        if not is_bullish and c1.close > c1.open and c.open >= c1.close and c.close <= c1.open:
            results.append(PatternResult('Bearish Engulfing', False, strength))

    if c.high < c1.high and c.low > c1.low:
        results.append(PatternResult('Inside Bar', is_bullish, 0.6))

    if lower_wick / (rng + EPS) > 0.6:
        results.append(PatternResult('Long Wick Rejection (Bullish)', True, min(1.0, lower_wick / rng)))
    if upper_wick / (rng + EPS) > 0.6:
        results.append(PatternResult('Long Wick Rejection (Bearish)', False, min(1.0, upper_wick / rng)))

    c1_body = abs(c1.close - c1.open)
    c1_range = c1.high - c1.low
    if (c1_body > c1_range * 0.6 and body > rng * 0.6
            and is_bullish != bool(c1.close > c1.open)
            and abs(body - c1_body) / (c1_body + EPS) < 0.3):
        results.append(PatternResult('Railroad Tracks', is_bullish, 0.85))

    if body < rng * 0.1 and rng > 0:
        results.append(PatternResult('Doji', is_bullish, 0.5))

    c2_body = abs(c2.close - c2.open)
    c2_range = c2.high - c2.low
    small_middle = c1_body < c1_range * 0.3
    strong_last = body > rng * 0.5
    c2_mid = (c2.open + c2.close) / 2

    if (c2.close < c2.open and c2_body > c2_range * 0.5 and small_middle
            and is_bullish and strong_last and c.close > c2_mid):
        results.append(PatternResult('Morning Star', True, 0.9))

    if (c2.close > c2.open and c2_body > c2_range * 0.5 and small_middle
            and c.close < c.open and strong_last and c.close < c2_mid):
        results.append(PatternResult('Evening Star', False, 0.9))

    return results


def detect_chart_patterns(candles) -> List[PatternResult]:
    """
    Formacoes graficas nos ultimos 30 candles (teste de swing de 5 candles).

    Double Top/Bottom, Head & Shoulders (e inverso), triangulos, flags e
    faixas Wyckoff.
    """
    df = to_frame(candles)
    if len(df) < CHART_MIN_CANDLES:
        return []

    recent = df.iloc[-CHART_WINDOW:]
    highs = recent['high'].to_numpy(dtype=float)
    lows = recent['low'].to_numpy(dtype=float)
    closes = recent['close'].to_numpy(dtype=float)
    volumes = recent['volume'].to_numpy(dtype=float)

    high_idx, low_idx = find_swing_points(highs, lows, depth=2)
    swing_highs = [(i, highs[i]) for i in high_idx]
    swing_lows = [(i, lows[i]) for i in low_idx]
    results = []

    if len(swing_highs) >= 2:
        (i1, h1), (i2, h2) = swing_highs[-2:]
        if abs(h1 - h2) / h1 < 0.02 and i2 > i1 + 3:
            results.append(PatternResult('Double Top', False, 0.8))

    if len(swing_lows) >= 2:
        (i1, l1), (i2, l2) = swing_lows[-2:]
        if abs(l1 - l2) / l1 < 0.02 and i2 > i1 + 3:
            results.append(PatternResult('Double Bottom', True, 0.8))

    if len(swing_highs) >= 3:
        left, head, right = (p for _, p in swing_highs[-3:])
        if head > left and head > right and abs(left - right) / left < 0.03:
            results.append(PatternResult('Head & Shoulders', False, 0.85))

    if len(swing_lows) >= 3:
        left, head, right = (p for _, p in swing_lows[-3:])
        if head < left and head < right and abs(left - right) / left < 0.03:
            results.append(PatternResult('Inverse Head & Shoulders', True, 0.85))

    if len(swing_highs) >= 2 and len(swing_lows) >= 2:
        (_, h1), (_, h2) = swing_highs[-2:]
        (_, l1), (_, l2) = swing_lows[-2:]
        if abs(h1 - h2) / h1 < 0.015 and l2 > l1:
            results.append(PatternResult('Ascending Triangle', True, 0.75))
        if abs(l1 - l2) / l1 < 0.015 and h2 < h1:
            results.append(PatternResult('Descending Triangle', False, 0.75))

    n = len(closes)
    if n >= 15:
        leg = closes[n - 15:n - 5]
        flag = closes[n - 5:]
        leg_move = (leg[-1] - leg[0]) / leg[0]
        flag_range = (flag.max() - flag.min()) / flag.min()
        if leg_move > 0.03 and flag_range < 0.015:
            results.append(PatternResult('Bull Flag', True, 0.7))
        if -leg_move > 0.03 and flag_range < 0.015:
            results.append(PatternResult('Bear Flag', False, 0.7))

    # Wyckoff: faixa lateral com volume secando
    range_closes = closes[-15:]
    range_volumes = volumes[-15:]
    max_p, min_p = range_closes.max(), range_closes.min()
    range_pct = (max_p - min_p) / min_p
    vol_first = range_volumes[:7].sum() / 7
    vol_last = range_volumes[-7:].sum() / 7
    mid = (max_p + min_p) / 2
    if range_pct < 0.05 and vol_last < vol_first * 0.8:
        if range_closes[-1] > mid:
            results.append(PatternResult('Wyckoff Accumulation', True, 0.7))
        elif range_closes[-1] < mid:
            results.append(PatternResult('Wyckoff Distribution', False, 0.7))

    return results


def score_patterns(patterns: List[PatternResult], factor_template: str) -> ModuleResult:
    """
    Os dois primeiros padroes contribuem round(strength * 5) cada, teto 10.

    factor_template recebe {name} e {direction}.
    """
    score = 0
    factors = []
    for p in patterns[:PATTERNS_COUNTED]:
        score += int(np.floor(p.strength * 5 + 0.5))
        factors.append(factor_template.format(name=p.name, direction=p.direction))
    return ModuleResult(min(PATTERN_SCORE_CAP, score), factors)


def analyze_candle_patterns(candles) -> ModuleResult:
    return score_patterns(detect_candle_patterns(candles), "{name} pattern - {direction} signal")


def analyze_chart_patterns(candles) -> ModuleResult:
    return score_patterns(detect_chart_patterns(candles), "{name} - {direction} formation")
