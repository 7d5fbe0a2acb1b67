"""
Testes do score composto e do sintetizador de setups.
"""
import numpy as np
import pytest

from conftest import breakout_frame, flat_frame, from_closes

import smc_trader.scoring as scoring
import smc_trader.synthesizer as synthesizer
from smc_trader.indicators import StructureSnapshot
from smc_trader.models import (
    BEARISH, BULLISH, NOT_DETECTED, ModuleResult, StructureSignal, TradeDirection, TradeModality,
)
from smc_trader.scoring import ScoringSystem, normalize_score, score_symbol, select_factors
from smc_trader.synthesizer import (
    RR_DECIMALS, RR_POLICY_REJECT, SelectionFailure, SetupPolicy, diagnose,
    explain_failure, synthesize_setup,
)


# =============================================================================
# SCORE COMPOSTO
# =============================================================================

def test_score_none_below_20_candles():
    assert score_symbol('BTCUSDT', TradeModality.SCALPING, breakout_frame().iloc[-19:]) is None


@pytest.mark.parametrize('modality', list(TradeModality))
def test_score_range_and_factor_limit(modality, uptrend):
    scored = score_symbol('ETHUSDT', modality, uptrend)
    assert scored.symbol == 'ETHUSDT'
    assert 0 <= scored.score <= 100
    assert 1 <= len(scored.scoring_factors) <= 3
    assert len(set(scored.scoring_factors)) == len(scored.scoring_factors)


def test_structure_factors_come_first():
    scored = score_symbol('BTCUSDT', TradeModality.SCALPING, breakout_frame())
    assert scored.scoring_factors[0] == 'BOS bullish detected on 5m - structural break confirmed'


def test_fallback_factor_when_no_module_reports(monkeypatch):
    monkeypatch.setattr(scoring, 'MODULE_REGISTRY', (
        ('silent', 1, lambda ctx: ModuleResult(60, [])),
    ))
    scored = ScoringSystem().score_symbol('BTCUSDT', TradeModality.SCALPING, flat_frame(25))
    assert scored.score == 50
    assert scored.scoring_factors == ['Scalping analysis complete - score: 50']


def test_registry_priority_defines_factor_order(monkeypatch):
    monkeypatch.setattr(scoring, 'MODULE_REGISTRY', (
        ('late', 2, lambda ctx: ModuleResult(0, ['late'])),
        ('early', 1, lambda ctx: ModuleResult(0, ['early', 'late'])),
    ))
    scored = ScoringSystem().score_symbol('BTCUSDT', TradeModality.SWING, flat_frame(25))
    assert scored.scoring_factors == ['early', 'late']


def test_normalize_score():
    assert normalize_score(120, 120) == 100
    assert normalize_score(60, 120) == 50
    assert normalize_score(0, 120) == 0
    assert normalize_score(500, 120) == 100


def test_select_factors_dedup_and_limit():
    assert select_factors([['a', 'b'], ['b', 'c'], ['d']], 3) == ['a', 'b', 'c']


# =============================================================================
# SINTETIZADOR
# =============================================================================

OVERRIDE = SetupPolicy()
REJECT_15 = SetupPolicy(min_rr_ratio=1.5, rr_policy=RR_POLICY_REJECT)
REJECT_20 = SetupPolicy(min_rr_ratio=2.0, rr_policy=RR_POLICY_REJECT)


def _rr(setup):
    return abs(setup.tp1 - setup.entry) / abs(setup.entry - setup.stop_loss)


def test_bos_sets_direction_and_entry_at_price():
    setup = synthesize_setup('BTCUSDT', TradeModality.SCALPING, breakout_frame(), policy=OVERRIDE)
    assert setup.direction is TradeDirection.LONG
    assert setup.entry == 116.0
    assert setup.entry_reason == 'BOS Bullish on 5m'
    assert setup.interval == '5m'
    assert setup.stop_loss < setup.entry < setup.tp1 < setup.tp2 < setup.tp3


@pytest.mark.parametrize('modality', list(TradeModality))
def test_override_policy_floor(modality, uptrend, downtrend):
    for candles in (uptrend, downtrend, breakout_frame()):
        setup = synthesize_setup('BTCUSDT', modality, candles, policy=OVERRIDE)
        assert setup is not None
        assert setup.rr_ratio >= 2.0
        assert setup.rr_ratio == round(_rr(setup), RR_DECIMALS)


def test_override_rewrites_scalping_targets():
    setup = synthesize_setup('BTCUSDT', TradeModality.SCALPING, breakout_frame(), policy=OVERRIDE)
    risk = setup.entry - setup.stop_loss
    assert setup.tp1 == pytest.approx(setup.entry + 2.0 * risk)
    assert setup.tp2 == pytest.approx(setup.entry + 3.0 * risk)
    assert setup.tp3 == pytest.approx(setup.entry + 4.5 * risk)


def test_reject_policy_at_15_keeps_atr_targets():
    setup = synthesize_setup('BTCUSDT', TradeModality.SCALPING, breakout_frame(), policy=REJECT_15)
    assert setup is not None
    assert setup.rr_ratio == 1.5


@pytest.mark.parametrize('seed', range(25))
def test_rr_floor_holds_on_random_walks(seed):
    np.random.seed(seed)
    closes = 100 * np.cumprod(1 + np.random.normal(0, 0.01, 60))
    candles = from_closes(closes)
    for modality in TradeModality:
        for policy, floor in ((OVERRIDE, 2.0), (REJECT_15, 1.5)):
            setup = synthesize_setup('X', modality, candles, policy=policy)
            if setup is None:
                continue
            assert setup.rr_ratio >= floor
            assert round(_rr(setup), RR_DECIMALS) >= floor


def test_reject_policy_at_20_drops_scalping_setup():
    assert synthesize_setup('BTCUSDT', TradeModality.SCALPING, breakout_frame(), policy=REJECT_20) is None


def test_scoring_factors_are_carried():
    setup = synthesize_setup('BTCUSDT', TradeModality.SWING, breakout_frame(), ['f1', 'f2'], policy=OVERRIDE)
    assert setup.scoring_factors == ('f1', 'f2')
    assert setup.to_dict()['scoring_factors'] == ['f1', 'f2']


def test_flat_market_has_no_setup():
    df = flat_frame(30)
    assert synthesize_setup('BTCUSDT', TradeModality.SCALPING, df, policy=OVERRIDE) is None
    assert diagnose(df, OVERRIDE) is SelectionFailure.INSUFFICIENT_VOLATILITY
    assert diagnose(df.iloc[:10], OVERRIDE) is SelectionFailure.NO_DATA
    assert diagnose(breakout_frame(), OVERRIDE) is None


def test_explain_failure_messages_are_distinct():
    messages = {explain_failure(f) for f in SelectionFailure}
    assert len(messages) == len(SelectionFailure)


def _patch_structure(monkeypatch, **signals):
    snapshot = StructureSnapshot(
        bos=signals.get('bos', NOT_DETECTED),
        fvg=signals.get('fvg', NOT_DETECTED),
        order_block=signals.get('order_block', NOT_DETECTED),
        choch=NOT_DETECTED,
        rsi=50.0,
        atr=signals.get('atr', 2.0),
    )
    monkeypatch.setattr(synthesizer, 'analyze_structure', lambda *a, **k: snapshot)


def _zone(direction, midpoint):
    return StructureSignal(True, direction, top=midpoint + 0.5, bottom=midpoint - 0.5, midpoint=midpoint)


def test_fvg_entry_at_gap_midpoint(monkeypatch):
    _patch_structure(monkeypatch, fvg=_zone(BULLISH, 99.5))
    setup = synthesize_setup('ETHUSDT', TradeModality.DAY_TRADING, flat_frame(25), policy=OVERRIDE)
    assert setup.direction is TradeDirection.LONG
    assert setup.entry == 99.5
    assert setup.entry_reason == 'FVG Bullish on 1h'


def test_far_entry_snaps_to_current_price(monkeypatch):
    _patch_structure(monkeypatch, order_block=_zone(BEARISH, 90.0))
    setup = synthesize_setup('ETHUSDT', TradeModality.DAY_TRADING, flat_frame(25), policy=OVERRIDE)
    assert setup.direction is TradeDirection.SHORT
    assert setup.entry == 100.0
    assert setup.entry_reason == 'Order Block Bearish on 1h'
    assert setup.stop_loss > setup.entry > setup.tp1


def test_bos_wins_over_fvg(monkeypatch):
    bos = StructureSignal(True, BEARISH, level=101.0)
    _patch_structure(monkeypatch, bos=bos, fvg=_zone(BULLISH, 99.5))
    setup = synthesize_setup('ETHUSDT', TradeModality.SWING, flat_frame(25), policy=OVERRIDE)
    assert setup.direction is TradeDirection.SHORT
    assert setup.entry == 100.0
    assert setup.entry_reason == 'BOS Bearish on 4h'


def test_trend_fallback_direction(monkeypatch):
    _patch_structure(monkeypatch)
    up = synthesize_setup('ETHUSDT', TradeModality.SWING, from_closes(range(100, 125)), policy=OVERRIDE)
    down = synthesize_setup('ETHUSDT', TradeModality.SWING, from_closes(range(125, 100, -1)), policy=OVERRIDE)
    assert (up.direction, up.entry_reason) == (TradeDirection.LONG, 'Trend Continuation Long')
    assert (down.direction, down.entry_reason) == (TradeDirection.SHORT, 'Trend Continuation Short')


def test_invalid_policy_rejected():
    from smc_trader.config import Config
    Config.set('setup.rr_policy', 'bogus')
    try:
        with pytest.raises(ValueError):
            SetupPolicy.from_config()
    finally:
        Config.set('setup.rr_policy', 'override')
