"""
Fixtures compartilhadas: fabricas de candles sinteticos (numpy/pandas).
"""
import sys
import os

import numpy as np
import pandas as pd
import pytest

# Adicionar raiz ao path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from smc_trader.models import Trade, TradeDirection, TradeModality


def frame(rows):
    """rows: lista de (open, high, low, close[, volume])."""
    records = []
    for i, row in enumerate(rows):
        o, h, l, c = row[:4]
        v = row[4] if len(row) > 4 else 100.0
        records.append({'time': i * 60000, 'open': o, 'high': h, 'low': l, 'close': c, 'volume': v})
    return pd.DataFrame.from_records(records)


def from_closes(closes, wick=0.5, volume=100.0):
    """Open = close anterior, high/low = extremos do corpo +/- wick."""
    closes = np.asarray(closes, dtype=float)
    opens = np.concatenate([[closes[0]], closes[:-1]])
    return pd.DataFrame({
        'time': np.arange(len(closes)) * 60000,
        'open': opens,
        'high': np.maximum(opens, closes) + wick,
        'low': np.minimum(opens, closes) - wick,
        'close': closes,
        'volume': np.full(len(closes), volume),
    })


def breakout_closes():
    """Alta, pullback e candle final fechando acima do swing high."""
    return [100 + i for i in range(13)] + [110, 109, 108, 109, 110, 111, 116]


def breakout_frame():
    """20 candles: swing high em 113 no indice 12, close final 116."""
    rows = [(c - 0.5, c + 1, c - 1, c) for c in breakout_closes()]
    return frame(rows)


def flat_frame(n=30, price=100.0):
    return frame([(price, price, price, price)] * n)


@pytest.fixture
def breakout():
    return breakout_frame()


@pytest.fixture
def uptrend():
    np.random.seed(42)
    closes = 100 * np.cumprod(1 + 0.01 + np.random.uniform(0, 0.002, 60))
    return from_closes(closes, wick=0.2)


@pytest.fixture
def downtrend():
    np.random.seed(7)
    closes = 100 * np.cumprod(1 - 0.01 - np.random.uniform(0, 0.002, 60))
    return from_closes(closes, wick=0.2)


def make_trade(direction=TradeDirection.LONG, entry=100.0, stop_loss=95.0,
               tp1=110.0, tp2=120.0, tp3=130.0, modality=TradeModality.DAY_TRADING,
               symbol='ETHUSDT', position_size=20.0, **kwargs):
    return Trade(
        id='trade_1700000000000_abcde',
        modality=modality,
        symbol=symbol,
        direction=direction,
        entry=entry,
        tp1=tp1,
        tp2=tp2,
        tp3=tp3,
        stop_loss=stop_loss,
        current_sl=kwargs.pop('current_sl', stop_loss),
        open_time=kwargs.pop('open_time', 1_700_000_000_000),
        position_size=position_size,
        interval='1h',
        entry_reason='BOS Bullish on 1h',
        scoring_factors=['BOS bullish detected on 1h - structural break confirmed'],
        **kwargs,
    )


def make_short_trade(**kwargs):
    defaults = dict(direction=TradeDirection.SHORT, entry=100.0, stop_loss=105.0,
                    tp1=90.0, tp2=80.0, tp3=70.0)
    defaults.update(kwargs)
    return make_trade(**defaults)
