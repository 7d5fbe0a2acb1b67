"""
Testes dos modulos de pontuacao: padroes, volume, psicologia, alinhamento e risco.
"""
import pytest

from conftest import flat_frame, frame, from_closes

from smc_trader.alignment import analyze_strategy_alignment
from smc_trader.indicators import StructureSnapshot
from smc_trader.models import (
    BULLISH, NOT_DETECTED, PatternResult, StructureSignal, TradeDirection, TradeModality,
)
from smc_trader.patterns import (
    analyze_candle_patterns, detect_candle_patterns, detect_chart_patterns, score_patterns,
)
from smc_trader.psychology import analyze_psychology
from smc_trader.risk import RiskManager, validate_risk
from smc_trader.volume import analyze_volume

DOJI = (100.0, 100.2, 99.8, 100.0)


# =============================================================================
# CANDLES
# =============================================================================

def test_hammer_and_wick_rejection():
    df = frame([DOJI, DOJI, (100.0, 101.1, 97.0, 101.0)])
    names = [p.name for p in detect_candle_patterns(df)]
    assert names == ['Hammer', 'Long Wick Rejection (Bullish)']

    result = analyze_candle_patterns(df)
    assert result.score == 8
    assert result.factors[0] == 'Hammer pattern - bullish signal'


def test_bearish_engulfing():
    df = frame([DOJI, (100.0, 101.2, 99.9, 101.0), (101.2, 101.3, 99.4, 99.5)])
    patterns = detect_candle_patterns(df)
    engulfing = [p for p in patterns if p.name == 'Bearish Engulfing']
    assert len(engulfing) == 1
    assert not engulfing[0].bullish
    assert engulfing[0].strength == 1.0


def test_candle_patterns_need_three_candles():
    assert detect_candle_patterns(frame([DOJI, DOJI])) == []
    assert analyze_candle_patterns(frame([DOJI])).score == 0


def test_score_patterns_counts_first_two_only():
    patterns = [PatternResult('A', True, 1.0), PatternResult('B', False, 1.0), PatternResult('C', True, 1.0)]
    result = score_patterns(patterns, "{name} - {direction} formation")
    assert result.score == 10
    assert result.factors == ['A - bullish formation', 'B - bearish formation']


# =============================================================================
# GRAFICOS
# =============================================================================

def test_chart_patterns_need_20_candles():
    assert detect_chart_patterns(flat_frame(19)) == []


def test_bull_flag():
    closes = [100.0] * 15 + [100.0 + i for i in range(10)] + [110.0, 110.2, 110.1, 110.3, 110.2]
    names = [p.name for p in detect_chart_patterns(from_closes(closes, wick=0.1))]
    assert 'Bull Flag' in names
    assert 'Bear Flag' not in names


def swing_frame(peaks=None, troughs=None, n=30):
    """Base lateral (high 100, low 98); swings so nos indices pedidos."""
    peaks, troughs = peaks or {}, troughs or {}
    return frame([(99.0, peaks.get(i, 100.0), troughs.get(i, 98.0), 99.0) for i in range(n)])


def _chart_names(df):
    return [p.name for p in detect_chart_patterns(df)]


def test_double_top():
    patterns = detect_chart_patterns(swing_frame(peaks={10: 105.0, 20: 105.5}))
    assert [(p.name, p.bullish) for p in patterns] == [('Double Top', False)]


def test_double_bottom():
    assert _chart_names(swing_frame(troughs={10: 95.0, 20: 95.2})) == ['Double Bottom']


def test_head_and_shoulders():
    assert _chart_names(swing_frame(peaks={6: 104.0, 14: 108.0, 22: 104.5})) == ['Head & Shoulders']


def test_inverse_head_and_shoulders():
    assert _chart_names(swing_frame(troughs={6: 94.0, 14: 90.0, 22: 94.3})) == ['Inverse Head & Shoulders']


def test_ascending_triangle():
    names = _chart_names(swing_frame(peaks={8: 105.0, 20: 105.2}, troughs={5: 94.0, 17: 96.0}))
    assert 'Ascending Triangle' in names
    assert 'Descending Triangle' not in names


def test_descending_triangle():
    names = _chart_names(swing_frame(peaks={5: 106.0, 17: 103.0}, troughs={8: 95.0, 20: 95.1}))
    assert 'Descending Triangle' in names
    assert 'Ascending Triangle' not in names


def _wyckoff_frame(last_close):
    closes = [100.0] * 19 + [last_close]
    return frame([(c, c + 0.2, c - 0.2, c, 200.0 if i < 12 else 100.0) for i, c in enumerate(closes)])


def test_wyckoff_accumulation():
    assert _chart_names(_wyckoff_frame(100.5)) == ['Wyckoff Accumulation']


def test_wyckoff_distribution():
    assert _chart_names(_wyckoff_frame(99.5)) == ['Wyckoff Distribution']


# =============================================================================
# VOLUME / PSICOLOGIA
# =============================================================================

def test_volume_neutral_with_short_series():
    result = analyze_volume(flat_frame(19))
    assert result.score == 10
    assert result.factors == []


def test_volume_trend_increasing():
    df = flat_frame(20)
    df.loc[10:, 'volume'] = 200.0
    result = analyze_volume(df)
    assert result.score == 15
    assert result.factors == ['Volume trend increasing - capital inflow confirmed']


def test_volume_spike_confirms_breakout():
    df = flat_frame(20)
    df.loc[19, ['open', 'high', 'low', 'close', 'volume']] = [100.0, 101.0, 100.0, 101.0, 400.0]
    result = analyze_volume(df)
    assert 'Volume spike (3.5x avg) confirms breakout' in result.factors
    assert result.score == 23


def test_psychology_neutral_with_short_series():
    result = analyze_psychology(flat_frame(9))
    assert result.score == 8
    assert result.factors == []


def test_psychology_bullish_momentum(uptrend):
    result = analyze_psychology(uptrend)
    assert result.score == 11
    assert result.factors == ['Strong bullish momentum - 4/5 recent candles bullish']


# 13 candles alternando alta/baixa entre 99 e 101 (sem momentum)
RANGE_ROWS = [(100.0, 101.0, 99.0, 100.5) if i % 2 == 0 else (100.5, 101.0, 99.0, 100.0) for i in range(13)]


def test_psychology_bull_trap():
    rows = RANGE_ROWS + [(100.0, 103.0, 99.5, 102.0), (102.0, 102.5, 99.0, 99.5)]
    result = analyze_psychology(frame(rows))
    assert result.factors == ['Bull trap detected - false breakout above resistance']
    assert result.score == 3


def test_psychology_bear_trap():
    rows = RANGE_ROWS + [(100.0, 100.5, 97.0, 98.0), (98.0, 101.5, 97.5, 100.8)]
    result = analyze_psychology(frame(rows))
    assert result.factors == ['Bear trap reversal - liquidity sweep below support']
    assert result.score == 13


def test_psychology_stop_hunt():
    rows = RANGE_ROWS + [(100.5, 101.0, 99.0, 100.0), (100.0, 100.6, 99.2, 100.4)]
    result = analyze_psychology(frame(rows))
    assert result.factors == ['Stop hunt pattern - liquidity sweep with reversal']
    assert result.score == 12


# =============================================================================
# ALINHAMENTO
# =============================================================================

def _snapshot(bos=NOT_DETECTED, fvg=NOT_DETECTED, ob=NOT_DETECTED, choch=NOT_DETECTED, rsi=50.0):
    return StructureSnapshot(bos=bos, fvg=fvg, order_block=ob, choch=choch, rsi=rsi, atr=1.0)


BULL = StructureSignal(True, BULLISH, level=1.0, top=2.0, bottom=1.0, midpoint=1.5)


def test_alignment_rules_differ_by_modality():
    s = _snapshot(bos=BULL)
    scalp = analyze_strategy_alignment(TradeModality.SCALPING, None, s)
    day = analyze_strategy_alignment(TradeModality.DAY_TRADING, None, s)
    swing = analyze_strategy_alignment(TradeModality.SWING, None, s)
    position = analyze_strategy_alignment(TradeModality.POSITION, None, s)

    assert (scalp.score, scalp.factors) == (10, ['BOS bullish - momentum confirmed'])
    assert day.score == 17
    assert day.factors == ['BOS bullish confirmed on 1h', 'RSI neutral - room for directional move']
    assert (swing.score, swing.factors) == (5, [])
    assert position.score == 12


def test_alignment_capped_at_20():
    s = _snapshot(fvg=BULL, ob=BULL, choch=BULL)
    assert analyze_strategy_alignment(TradeModality.SWING, None, s).score == 20


# =============================================================================
# RISCO
# =============================================================================

@pytest.mark.parametrize('atr,score,is_valid', [
    (1.0, 15, True),    # 1% dentro de 0.3-3.0
    (0.1, 2, False),    # abaixo da banda
    (5.0, 8, False),    # acima da banda, 1:2 ainda viavel
])
def test_validate_risk_bands(atr, score, is_valid):
    result = validate_risk(flat_frame(20), TradeModality.DAY_TRADING, atr=atr)
    assert result.score == score
    assert result.is_valid is is_valid


def test_validate_risk_zero_atr():
    result = validate_risk(flat_frame(20), TradeModality.DAY_TRADING)
    assert result.score == 0
    assert result.factors == ['Insufficient data for ATR calculation']


def test_atr_levels_long_and_short():
    risk = RiskManager(capital=1000, position_pct=0.02)
    assert risk.atr_levels(100.0, 2.0, TradeDirection.LONG, TradeModality.SCALPING) == (98.0, 103.0, 105.0, 107.0)
    assert risk.atr_levels(100.0, 2.0, TradeDirection.SHORT, TradeModality.SCALPING) == (102.0, 97.0, 95.0, 93.0)
    assert risk.position_size() == 20.0


def test_reward_risk_guard():
    assert RiskManager.reward_risk(100.0, 98.0, 104.0) == 2.0
    assert RiskManager.reward_risk(100.0, 100.0, 110.0) == 0.0
