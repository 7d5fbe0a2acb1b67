"""
Statistics Module - Performance por modalidade
Win rate, R medio, sequencia atual, contagem de alvos/stops e duracao media.
"""
from typing import List, Sequence, Union

import numpy as np

from .models import ClosedTrade, TradeModality, TradeStatistics, TradeStatus

OVERALL = 'Overall'


def calc_stats(trades: Sequence[ClosedTrade], modality: Union[TradeModality, str]) -> TradeStatistics:
    """
    Agregados de uma lista de trades encerrados.

    Win: pnl > 0. Loss: pnl <= 0. avg_rr = ganho medio / perda media (perda
    media 1 quando nao ha perdas). current_streak e positivo para vitorias e
    negativo para derrotas, contado do fechamento mais recente para tras.
    """
    label = modality.value if isinstance(modality, TradeModality) else modality
    if not trades:
        return TradeStatistics(modality=label)

    pnls = np.array([t.pnl or 0.0 for t in trades], dtype=float)
    wins = pnls[pnls > 0]
    losses = pnls[pnls <= 0]

    avg_win = wins.mean() if len(wins) else 0.0
    avg_loss = abs(losses.mean()) if len(losses) else 1.0
    avg_rr = avg_win / avg_loss if avg_loss > 0 else 0.0

    newest_first = sorted(trades, key=lambda t: t.close_time or 0, reverse=True)
    first_is_win = (newest_first[0].pnl or 0) > 0
    streak = 0
    for t in newest_first:
        if ((t.pnl or 0) > 0) != first_is_win:
            break
        streak += 1
    if not first_is_win:
        streak = -streak

    durations = [
        (t.close_time - t.open_time) / 60000
        for t in trades if t.close_time and t.open_time
    ]

    return TradeStatistics(
        modality=label,
        total_trades=len(trades),
        wins=int(len(wins)),
        losses=int(len(losses)),
        win_rate=len(wins) / len(trades) * 100,
        avg_rr=float(avg_rr),
        total_pnl=float(pnls.sum()),
        best_trade=float(pnls.max()),
        worst_trade=float(pnls.min()),
        current_streak=streak,
        tp1_hits=sum(1 for t in trades if t.tp1_hit),
        tp2_hits=sum(1 for t in trades if t.tp2_hit),
        tp3_hits=sum(1 for t in trades if t.status is TradeStatus.TP3_HIT),
        sl_hits=sum(1 for t in trades if t.status is TradeStatus.SL_HIT),
        avg_hold_duration=float(np.mean(durations)) if durations else 0.0,
    )


def calculate_statistics(history: Sequence[ClosedTrade]) -> List[TradeStatistics]:
    """Uma entrada por modalidade (ordem do enum) mais 'Overall'."""
    stats = [calc_stats([t for t in history if t.modality is m], m) for m in TradeModality]
    stats.append(calc_stats(list(history), OVERALL))
    return stats
