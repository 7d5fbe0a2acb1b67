"""
Storage Module - Persistencia de trades
Interface de repositorio injetada no ciclo de vida.

VERSÃO: 1.0
- JsonTradeRepository: arquivos JSON com escrita atomica
- InMemoryTradeRepository: testes e simulacao
- Historico mais recente primeiro, limitado a 500 registros
"""
import logging
import threading
from typing import Dict, List, Optional

from .config import Config
from .models import ClosedTrade, Trade, TradeModality, TradeStatistics
from .utils import load_json_safe, save_json_atomic

log = logging.getLogger(__name__)

ActiveTrades = Dict[TradeModality, Optional[Trade]]


def empty_slots() -> ActiveTrades:
    return {m: None for m in TradeModality}


class TradeRepository:
    """Ganchos de load/save usados pelo TradeLifecycleManager."""

    def load_active_trades(self) -> ActiveTrades:
        raise NotImplementedError

    def save_active_trades(self, trades: ActiveTrades) -> None:
        raise NotImplementedError

    def append_closed_trade(self, trade: ClosedTrade) -> None:
        raise NotImplementedError

    def load_history(self) -> List[ClosedTrade]:
        raise NotImplementedError

    def save_statistics(self, stats: List[TradeStatistics]) -> None:
        raise NotImplementedError

    def load_statistics(self) -> List[TradeStatistics]:
        raise NotImplementedError


class InMemoryTradeRepository(TradeRepository):

    def __init__(self, history_limit: Optional[int] = None):
        self.history_limit = history_limit or Config.get('storage.history_limit', 500)
        self._active: ActiveTrades = empty_slots()
        self._history: List[ClosedTrade] = []
        self._stats: List[TradeStatistics] = []

    def load_active_trades(self) -> ActiveTrades:
        return dict(self._active)

    def save_active_trades(self, trades: ActiveTrades) -> None:
        self._active = empty_slots()
        self._active.update(trades)

    def append_closed_trade(self, trade: ClosedTrade) -> None:
        self._history.insert(0, trade)
        del self._history[self.history_limit:]

    def load_history(self) -> List[ClosedTrade]:
        return list(self._history)

    def save_statistics(self, stats: List[TradeStatistics]) -> None:
        self._stats = list(stats)

    def load_statistics(self) -> List[TradeStatistics]:
        return list(self._stats)


class JsonTradeRepository(TradeRepository):
    """
    Tres arquivos JSON: trades ativos por modalidade, historico e estatisticas.
    Caminhos padrao vem de Config (secao storage).
    """

    def __init__(self, active_file: str = None, history_file: str = None,
                 statistics_file: str = None, history_limit: int = None):
        self.active_file = active_file or Config.get('storage.active_trades_file', 'state/active_trades.json')
        self.history_file = history_file or Config.get('storage.history_file', 'state/trade_history.json')
        self.statistics_file = statistics_file or Config.get('storage.statistics_file', 'state/trade_statistics.json')
        self.history_limit = history_limit or Config.get('storage.history_limit', 500)
        self._lock = threading.Lock()

    def load_active_trades(self) -> ActiveTrades:
        raw = load_json_safe(self.active_file, default={})
        trades = empty_slots()
        for modality in TradeModality:
            data = raw.get(modality.value)
            if not data:
                continue
            try:
                trades[modality] = Trade.from_dict(data)
            except (KeyError, ValueError, TypeError) as e:
                log.error(f"Trade ativo invalido em {self.active_file} [{modality.value}]: {e}")
        return trades

    def save_active_trades(self, trades: ActiveTrades) -> None:
        payload = {
            m.value: (trades.get(m).to_dict() if trades.get(m) else None)
            for m in TradeModality
        }
        with self._lock:
            save_json_atomic(self.active_file, payload)

    def append_closed_trade(self, trade: ClosedTrade) -> None:
        with self._lock:
            history = load_json_safe(self.history_file, default=[])
            history.insert(0, trade.to_dict())
            save_json_atomic(self.history_file, history[:self.history_limit])

    def load_history(self) -> List[ClosedTrade]:
        history = []
        for data in load_json_safe(self.history_file, default=[]):
            try:
                history.append(ClosedTrade.from_dict(data))
            except (KeyError, ValueError, TypeError) as e:
                log.warning(f"Registro de historico ignorado: {e}")
        return history

    def save_statistics(self, stats: List[TradeStatistics]) -> None:
        with self._lock:
            save_json_atomic(self.statistics_file, [s.to_dict() for s in stats])

    def load_statistics(self) -> List[TradeStatistics]:
        return [TradeStatistics(**data) for data in load_json_safe(self.statistics_file, default=[])]
