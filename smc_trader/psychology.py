"""
Psicologia de mercado (sub-score 0-15)

Bull/bear traps (rompimento de swing seguido de reversao), stop hunts
(pavio dominante) e momentum dos ultimos 5 candles. Base 8; com menos de 10
candles devolve o neutro sem fatores.
"""
from .data import to_frame
from .models import ModuleResult

MIN_CANDLES = 10
WINDOW = 15
BASE_SCORE = 8
MAX_SCORE = 15


def analyze_psychology(candles) -> ModuleResult:
    df = to_frame(candles)
    if len(df) < MIN_CANDLES:
        return ModuleResult(BASE_SCORE, [])

    recent = df.iloc[-WINDOW:]
    last = recent.iloc[-1]
    prev = recent.iloc[-2]
    score = BASE_SCORE
    factors = []

    # Nivel de referencia exclui os dois ultimos candles
    reference = recent.iloc[:-2]
    swing_high = reference['high'].max()
    swing_low = reference['low'].min()

    body = abs(last['close'] - last['open'])
    rng = last['high'] - last['low']
    is_bullish = last['close'] > last['open']
    is_bearish = last['close'] < last['open']

    if prev['high'] > swing_high and last['close'] < swing_high and is_bearish and body > rng * 0.4:
        score -= 5
        factors.append('Bull trap detected - false breakout above resistance')

    if prev['low'] < swing_low and last['close'] > swing_low and is_bullish and body > rng * 0.4:
        score += 5
        factors.append('Bear trap reversal - liquidity sweep below support')

    upper_wick = last['high'] - max(last['open'], last['close'])
    lower_wick = min(last['open'], last['close']) - last['low']
    if (lower_wick > rng * 0.5 and is_bullish) or (upper_wick > rng * 0.5 and is_bearish):
        score += 4
        factors.append('Stop hunt pattern - liquidity sweep with reversal')

    last5 = recent.iloc[-5:]
    bullish_count = int((last5['close'] > last5['open']).sum())
    if bullish_count >= 4:
        score += 3
        factors.append('Strong bullish momentum - 4/5 recent candles bullish')
    elif bullish_count <= 1:
        score += 3
        factors.append('Strong bearish momentum - 4/5 recent candles bearish')

    return ModuleResult(max(0, min(MAX_SCORE, score)), factors)
