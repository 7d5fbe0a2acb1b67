"""
Insights Module - Previsao de tendencia, sentimento e conselhos
================================================================================
forecast_trend: probabilidade de continuacao (10-90) por RSI, momentum,
volatilidade e volume.

analyze_sentiment: MA20/MA50 + RSI -> bullish / bearish / neutral.

get_trade_advice: recomendacoes para um trade aberto ao preco atual.

VERSAO: 1.0
================================================================================
"""
from typing import List, Optional, Sequence

import numpy as np

from .config import Config
from .data import to_frame
from .indicators import calculate_atr, calculate_rsi
from .models import BEARISH, BULLISH, SentimentResult, Trade, TradeAdvice, TrendForecast
from .utils import now_ms

NEUTRAL = 'neutral'
UPTREND = 'uptrend'
DOWNTREND = 'downtrend'
SIDEWAYS = 'sideways'


# =============================================================================
# PREVISAO DE TENDENCIA
# =============================================================================

def forecast_trend(symbol: str, candles, now: Optional[int] = None) -> TrendForecast:
    df = to_frame(candles)
    closes = df['close'].to_numpy(dtype=float)
    volumes = df['volume'].to_numpy(dtype=float)
    rsi = calculate_rsi(df, Config.get('indicators.rsi_period', 14))
    atr = calculate_atr(df, Config.get('indicators.atr_period', 14))

    factors = []
    score = 50

    if rsi > 55:
        score += 10
        factors.append('RSI bullish momentum')
    elif rsi < 45:
        score -= 10
        factors.append('RSI bearish momentum')

    if rsi > 70:
        score -= 15
        factors.append('RSI overbought - reversal risk')
    elif rsi < 30:
        score += 15
        factors.append('RSI oversold - bounce potential')

    if len(closes) >= 5:
        last5 = closes[-5:]
        momentum = (last5[-1] - last5[0]) / last5[0]
        if momentum > 0.02:
            score += 8
            factors.append('Strong upward momentum')
        elif momentum < -0.02:
            score -= 8
            factors.append('Strong downward momentum')

    if len(closes):
        atr_percent = atr / closes[-1] * 100
        if atr_percent > 3:
            score -= 5
            factors.append('High volatility - uncertain direction')
        elif atr_percent < 1:
            score += 5
            factors.append('Low volatility - consolidation')

    if len(volumes) >= 10:
        window = volumes[-10:]
        if window[5:].mean() > window[:5].mean() * 1.3:
            score += 7
            factors.append('Increasing volume confirms trend')

    score = int(max(10, min(90, score)))

    if len(factors) >= 3:
        confidence = 'high'
    elif len(factors) == 2:
        confidence = 'medium'
    else:
        confidence = 'low'

    return TrendForecast(
        symbol=symbol,
        continuation_probability=score,
        reversal_probability=100 - score,
        confidence=confidence,
        factors=factors,
        timestamp=now if now is not None else now_ms(),
    )


# =============================================================================
# SENTIMENTO
# =============================================================================

def calculate_ma(closes: Sequence[float], period: int) -> float:
    """Media dos ultimos `period` closes (ultimo close se a serie for curta)."""
    if len(closes) == 0:
        return 0.0
    if len(closes) < period:
        return float(closes[-1])
    return float(np.mean(closes[-period:]))


def analyze_sentiment(symbol: str, candles, now: Optional[int] = None) -> SentimentResult:
    df = to_frame(candles)
    closes = df['close'].to_numpy(dtype=float)
    rsi = calculate_rsi(df, Config.get('indicators.rsi_period', 14))
    ma20 = calculate_ma(closes, 20)
    ma50 = calculate_ma(closes, 50)
    price = float(closes[-1]) if len(closes) else 0.0

    if ma20 > ma50 and price > ma20:
        trend = UPTREND
    elif ma20 < ma50 and price < ma20:
        trend = DOWNTREND
    else:
        trend = SIDEWAYS

    if rsi > 60 and trend == UPTREND:
        sentiment, strength = BULLISH, min(100.0, (rsi - 50) * 2)
    elif rsi < 40 and trend == DOWNTREND:
        sentiment, strength = BEARISH, min(100.0, (50 - rsi) * 2)
    else:
        sentiment, strength = NEUTRAL, 50.0

    return SentimentResult(
        symbol=symbol,
        sentiment=sentiment,
        rsi=rsi,
        strength=strength,
        trend=trend,
        ma20=ma20,
        ma50=ma50,
        timestamp=now if now is not None else now_ms(),
    )


# =============================================================================
# CONSELHOS
# =============================================================================

def _relative_distance(price: float, level: float, span: float) -> float:
    # span 0 (ex.: stop no entry): distancia infinita, nenhum alerta
    if span == 0:
        return float('inf')
    return abs(price - level) / span


def get_trade_advice(trade: Trade, price: float) -> List[TradeAdvice]:
    """Sempre devolve ao menos um conselho."""
    diff = price - trade.entry if trade.is_long else trade.entry - price
    pnl_percent = diff / trade.entry * 100

    dist_tp1 = _relative_distance(price, trade.tp1, abs(trade.tp1 - trade.entry))
    dist_sl = _relative_distance(price, trade.current_sl, abs(trade.entry - trade.current_sl))

    advice = []
    if pnl_percent > 3 and not trade.tp1_hit:
        advice.append(TradeAdvice(
            'tighten_sl', 'Tighten Stop Loss',
            f"Trade is {pnl_percent:.1f}% in profit. Consider moving SL to breakeven to protect gains.",
            'medium'))

    if dist_tp1 < 0.15 and not trade.tp1_hit:
        advice.append(TradeAdvice(
            'take_partial', 'Near TP1 - Take Partial',
            'Price is within 15% of TP1. Consider taking 30-50% partial profit now.',
            'high'))

    if dist_sl < 0.1:
        advice.append(TradeAdvice(
            'close_early', 'Near Stop Loss',
            'Price is dangerously close to your stop loss. Consider closing early to minimize loss.',
            'high'))

    if trade.tp1_hit and not trade.tp2_hit:
        advice.append(TradeAdvice(
            'hold', 'TP1 Hit - Hold for TP2',
            'TP1 achieved. SL moved to breakeven. Hold position for TP2 target.',
            'low'))

    if not advice:
        advice.append(TradeAdvice(
            'hold', 'Hold Position',
            'Trade is progressing normally. Monitor price action and wait for TP levels.',
            'low'))

    return advice
