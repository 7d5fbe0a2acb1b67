"""
Testes de indicadores e estruturas SMC.
"""
import numpy as np

from conftest import breakout_frame, flat_frame, frame, from_closes

from smc_trader.data import parse_klines, to_frame
from smc_trader.indicators import (
    analyze_structure, calculate_atr, calculate_rsi, detect_bos, detect_choch,
    detect_fvg, detect_order_block, find_swing_points,
)
from smc_trader.models import BEARISH, BULLISH, Candle, TradeModality
from smc_trader.synthesizer import synthesize_setup


# =============================================================================
# NORMALIZACAO
# =============================================================================

def test_parse_klines_accepts_string_prices_and_skips_short_rows():
    rows = [
        [1700000000000, "100.5", "101.0", "99.5", "100.8", "1234.5", 1700000059999],
        [1700000060000, "100.8"],
    ]
    candles = parse_klines(rows)
    assert len(candles) == 1
    assert candles[0] == Candle(1700000000000, 100.5, 101.0, 99.5, 100.8, 1234.5)


def test_to_frame_accepts_candles_dicts_and_raw_rows():
    candle = Candle(0, 1.0, 2.0, 0.5, 1.5, 10.0)
    from_candles = to_frame([candle])
    from_dicts = to_frame([candle.to_dict()])
    from_rows = to_frame([[0, "1", "2", "0.5", "1.5", "10"]])

    for df in (from_candles, from_dicts, from_rows):
        assert list(df.columns) == ['time', 'open', 'high', 'low', 'close', 'volume']
        assert df['close'].iloc[0] == 1.5

    assert to_frame(None).empty
    assert to_frame([]).empty


# =============================================================================
# RSI / ATR
# =============================================================================

def test_rsi_sentinel_with_short_series():
    assert calculate_rsi(from_closes([100, 101, 102]), 14) == 50.0


def test_rsi_is_100_without_losses():
    assert calculate_rsi(from_closes(np.arange(100, 130)), 14) == 100.0


def test_rsi_is_0_without_gains():
    assert calculate_rsi(from_closes(np.arange(130, 100, -1)), 14) == 0.0


def test_rsi_mixed_series_in_range():
    np.random.seed(1)
    closes = 100 + np.cumsum(np.random.normal(0, 1, 50))
    rsi = calculate_rsi(from_closes(closes), 14)
    assert 0 < rsi < 100


def test_atr_zero_with_fewer_than_15_candles():
    df = from_closes(np.linspace(100, 110, 14), wick=1.0)
    assert calculate_atr(df, 14) == 0


def test_atr_constant_range():
    # Sem gaps: true range = high - low = 2
    df = frame([(100, 101, 99, 100)] * 20)
    assert calculate_atr(df, 14) == 2.0


def test_atr_zero_candles_and_short_window_synthesize_none():
    df = from_closes(np.linspace(100, 101, 14), wick=0.1)
    assert calculate_atr(df, 14) == 0
    assert synthesize_setup('BTCUSDT', TradeModality.SCALPING, df) is None


# =============================================================================
# SWINGS E ESTRUTURAS
# =============================================================================

def test_find_swing_points_strict():
    highs = np.array([1, 3, 2, 2, 4, 1], dtype=float)
    lows = np.array([1, 0, 2, 2, 1, 3], dtype=float)
    swing_highs, swing_lows = find_swing_points(highs, lows, depth=1)
    assert swing_highs == [1, 4]
    assert swing_lows == [1, 4]


def test_bos_bullish_on_breakout_above_swing_high():
    bos = detect_bos(breakout_frame())
    assert bos.detected
    assert bos.direction == BULLISH
    assert bos.level == 113.0
    assert bos.is_bullish and not bos.is_bearish


def test_bos_requires_10_candles():
    assert not detect_bos(breakout_frame().iloc[-9:]).detected


def test_bos_not_detected_on_flat_market():
    assert not detect_bos(flat_frame()).detected


def test_bos_bearish_on_breakdown():
    closes = [120 - i for i in range(13)] + [110, 111, 112, 111, 110, 109, 104]
    df = frame([(c + 0.5, c + 1, c - 1, c) for c in closes])
    bos = detect_bos(df)
    assert bos.detected
    assert bos.direction == BEARISH
    assert bos.level == 107.0


def test_fvg_bullish_gap():
    df = frame([
        (9.5, 10.0, 9.0, 9.8),
        (9.8, 12.0, 9.7, 11.9),
        (11.9, 12.5, 11.0, 12.2),
    ])
    fvg = detect_fvg(df)
    assert fvg.detected
    assert fvg.direction == BULLISH
    assert (fvg.top, fvg.bottom, fvg.midpoint) == (11.0, 10.0, 10.5)


def test_fvg_bearish_gap():
    df = frame([
        (12.2, 12.5, 11.0, 11.2),
        (11.2, 11.3, 9.0, 9.1),
        (9.1, 10.0, 8.5, 8.8),
    ])
    fvg = detect_fvg(df)
    assert fvg.detected
    assert fvg.direction == BEARISH
    assert (fvg.top, fvg.bottom) == (11.0, 10.0)


def test_fvg_needs_three_candles():
    assert not detect_fvg(frame([(1, 2, 0.5, 1.5)] * 2)).detected


def test_fvg_most_recent_gap_wins():
    df = frame([
        (9.5, 10.0, 9.0, 9.8),
        (9.8, 12.0, 9.7, 11.9),
        (11.9, 12.5, 11.0, 12.2),   # gap de alta nos candles 0-2
        (12.2, 12.4, 12.0, 12.1),
        (12.1, 12.1, 10.5, 10.6),
        (10.6, 11.5, 10.2, 10.4),   # gap de baixa nos candles 3-5
    ])
    fvg = detect_fvg(df)
    assert fvg.direction == BEARISH
    assert (fvg.top, fvg.bottom, fvg.index) == (12.0, 11.5, 3)


def test_order_block_bullish():
    doji = (10.0, 10.2, 9.8, 10.0)
    df = frame([
        doji,
        doji,
        (10.0, 10.1, 8.9, 9.0),   # bearish forte
        (9.0, 10.6, 8.95, 10.5),  # bullish fecha acima do high anterior
        doji,
        doji,
    ])
    ob = detect_order_block(df)
    assert ob.detected
    assert ob.direction == BULLISH
    assert ob.top == 10.0
    assert ob.bottom == 9.0
    assert ob.midpoint == 9.5


def test_order_block_bearish():
    doji = (10.0, 10.2, 9.8, 10.0)
    df = frame([
        doji,
        doji,
        (10.0, 11.1, 9.9, 11.0),    # bullish forte
        (11.0, 11.05, 9.5, 9.6),    # bearish fecha abaixo do low anterior
        doji,
        doji,
    ])
    ob = detect_order_block(df)
    assert ob.direction == BEARISH
    assert (ob.top, ob.bottom, ob.midpoint) == (11.0, 10.0, 10.5)


def test_order_block_newest_match_wins():
    doji = (10.0, 10.2, 9.8, 10.0)
    df = frame([
        doji,
        (12.0, 12.1, 10.9, 11.0),   # bloco antigo
        (11.0, 12.6, 10.95, 12.5),
        doji,
        (10.0, 10.1, 8.9, 9.0),     # bloco recente
        (9.0, 10.6, 8.95, 10.5),
        doji,
        doji,
        doji,
    ])
    ob = detect_order_block(df)
    assert ob.direction == BULLISH
    assert ob.index == 4
    assert ob.midpoint == 9.5


def test_order_block_requires_five_candles():
    assert not detect_order_block(frame([(10, 10.2, 9.8, 10)] * 4)).detected


def test_choch_bearish_lower_lows():
    lows = [10, 9, 10, 11, 12, 8, 10, 11, 12, 13, 12.5, 12, 11, 10, 7]
    rows = [(l + 0.5, l + 2, l, l + 1) for l in lows[:-1]]
    rows.append((8.0, 9.0, 7.0, 7.5))
    choch = detect_choch(frame(rows))
    assert choch.detected
    assert choch.direction == BEARISH
    assert choch.level == 8.0


def test_choch_bullish_higher_highs():
    highs = [10, 11, 10, 9, 8, 12, 10, 9, 8, 7, 7.5, 8, 9, 10]
    rows = [(h - 1.5, h, h - 2, h - 1) for h in highs]
    rows.append((12.0, 13.5, 11.5, 13.0))
    choch = detect_choch(frame(rows))
    assert choch.direction == BULLISH
    assert choch.level == 12.0
    assert choch.index == 5


def test_choch_bearish_checked_before_bullish():
    # lows 22 -> 21 caindo no alto, highs 5 -> 6 subindo embaixo; close 15 rompe os dois
    rows = [
        (23, 24, 23, 24),
        (22, 23, 22, 23),
        (24, 25, 24, 25),
        (21, 23, 21, 23),
        (23, 24, 23, 24),
        (3, 4, 3, 4),
        (3, 5, 3, 5),
        (3, 4, 3, 4),
        (3, 6, 3, 6),
        (3, 4, 3, 4),
        (3, 4, 3, 4),
        (3, 4, 3, 4),
        (3, 4, 3, 4),
        (3, 4, 3, 4),
        (14, 16, 13, 15),
    ]
    choch = detect_choch(frame(rows))
    assert choch.direction == BEARISH
    assert choch.level == 21.0


def test_choch_requires_15_candles():
    assert not detect_choch(breakout_frame().iloc[-14:]).detected


def test_analyze_structure_bundles_everything():
    snapshot = analyze_structure(breakout_frame())
    assert snapshot.bos.is_bullish
    assert snapshot.atr > 0
    assert 0 <= snapshot.rsi <= 100
