"""
Volume / fluxo de capital (sub-score 0-25).

Base 10. Com menos de 20 candles devolve o neutro 10 sem fatores.
"""
from .data import to_frame
from .models import ModuleResult

MIN_CANDLES = 20
BASE_SCORE = 10
MAX_SCORE = 25


def analyze_volume(candles) -> ModuleResult:
    df = to_frame(candles)
    if len(df) < MIN_CANDLES:
        return ModuleResult(BASE_SCORE, [])

    recent = df.iloc[-MIN_CANDLES:]
    volume = recent['volume'].to_numpy(dtype=float)
    avg_vol = volume.mean()
    last_vol, prev_vol = volume[-1], volume[-2]
    last = recent.iloc[-1]
    prev = recent.iloc[-2]

    score = BASE_SCORE
    factors = []

    first_half = volume[:10].mean()
    second_half = volume[10:].mean()
    if second_half > first_half * 1.1:
        score += 5
        factors.append('Volume trend increasing - capital inflow confirmed')

    price_move = abs(last['close'] - last['open']) / last['open'] if last['open'] else 0.0
    if last_vol > avg_vol * 1.5 and price_move > 0.005:
        score += 8
        factors.append(f"Volume spike ({last_vol / avg_vol:.1f}x avg) confirms breakout")

    if price_move > 0.01 and last_vol < avg_vol * 0.8:
        score -= 8
        factors.append('Low-volume breakout detected - possible fakeout')

    if last['close'] > prev['close'] and last_vol < prev_vol * 0.8:
        score -= 4
        factors.append('Price/volume divergence - weakening momentum')

    body = abs(last['close'] - last['open'])
    if (last_vol > avg_vol * 3 and last['close'] < last['open']
            and body > (last['high'] - last['low']) * 0.6):
        score += 6
        factors.append('Volume capitulation detected - potential reversal bottom')

    return ModuleResult(max(0, min(MAX_SCORE, score)), factors)
