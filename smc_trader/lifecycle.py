"""
Trade Lifecycle Module - Maquina de estados por modalidade
================================================================================
Uma vaga por modalidade (0 ou 1 trade ativo). Cada tick de preco avalia, em
ordem fixa:

    1. Stop (current_sl)        -> fecha com SLHit ao preco do stop
    2. TP3 (se ainda nao marcado) -> fecha com TP3Hit, marca tp1/tp2/tp3
    3. TP2 (se ainda nao marcado) -> tp2_hit, status TP2Hit
    4. TP1 (se ainda nao marcado) -> tp1_hit, status TP1Hit, stop no entry

As flags tp*_hit nunca voltam a False e o stop so se move para o entry
(breakeven) depois do TP1. Fechamentos manuais e reversoes usam a mesma
formula de PnL. A maquina nao reabre vagas sozinha: quem agenda os ticks
pede um novo setup quando uma vaga fica vazia.

VERSAO: 1.0
================================================================================
"""
import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .error_handling import SlotOccupiedError
from .models import (
    ClosedTrade, Trade, TradeModality, TradeSetup, TradeStatus,
)
from .risk import RiskManager
from .statistics import calculate_statistics
from .storage import ActiveTrades, TradeRepository, empty_slots
from .utils import generate_trade_id, now_ms

log = logging.getLogger(__name__)

REVERSAL_MULTIPLES = (2.0, 3.0, 4.5)
REVERSAL_FACTORS = ['Reversal trade', 'Direction flipped', 'ATR-based levels']


# =============================================================================
# FUNCOES PURAS
# =============================================================================

def calculate_pnl(trade: Trade, exit_price: float) -> Tuple[float, float]:
    """(pnl absoluto, pnl %) para sair de `trade` a `exit_price`."""
    diff = exit_price - trade.entry if trade.is_long else trade.entry - exit_price
    pnl_percent = diff / trade.entry * 100
    pnl = diff / trade.entry * trade.position_size
    return pnl, pnl_percent


def close_trade(trade: Trade, status: TradeStatus, exit_price: float,
                close_time: Optional[int] = None, **overrides) -> ClosedTrade:
    """Snapshot imutavel de `trade` encerrado a `exit_price`."""
    pnl, pnl_percent = calculate_pnl(trade, exit_price)
    data = {f.name: getattr(trade, f.name) for f in dataclasses.fields(Trade)}
    data.update(
        status=status,
        close_time=close_time if close_time is not None else now_ms(),
        close_price=exit_price,
        pnl=pnl,
        pnl_percent=pnl_percent,
        scoring_factors=list(trade.scoring_factors),
    )
    data.update(overrides)
    return ClosedTrade(**data).seal()


@dataclass
class TickResult:
    """Resultado de um tick: trade atualizado ou snapshot de fechamento."""
    trade: Trade
    closed: bool = False
    closed_trade: Optional[ClosedTrade] = None
    events: List[TradeStatus] = field(default_factory=list)


def check_tp_sl(trade: Trade, price: float, now: Optional[int] = None) -> TickResult:
    """Avalia um tick sem alterar `trade` (devolve copia atualizada)."""
    updated = dataclasses.replace(trade, scoring_factors=list(trade.scoring_factors))
    is_long = trade.is_long

    def reached(level: float) -> bool:
        return price >= level if is_long else price <= level

    sl_hit = price <= updated.current_sl if is_long else price >= updated.current_sl
    if sl_hit:
        closed = close_trade(updated, TradeStatus.SL_HIT, updated.current_sl, now)
        return TickResult(updated, True, closed, [TradeStatus.SL_HIT])

    if reached(updated.tp3) and not updated.tp3_hit:
        closed = close_trade(updated, TradeStatus.TP3_HIT, updated.tp3, now,
                             tp1_hit=True, tp2_hit=True, tp3_hit=True)
        return TickResult(updated, True, closed, [TradeStatus.TP3_HIT])

    events = []
    if reached(updated.tp2) and not updated.tp2_hit:
        updated.tp2_hit = True
        updated.status = TradeStatus.TP2_HIT
        events.append(TradeStatus.TP2_HIT)

    if reached(updated.tp1) and not updated.tp1_hit:
        updated.tp1_hit = True
        updated.status = TradeStatus.TP1_HIT
        updated.current_sl = updated.entry
        events.append(TradeStatus.TP1_HIT)

    return TickResult(updated, False, None, events)


def manually_close_trade(trade: Trade, price: float, now: Optional[int] = None) -> ClosedTrade:
    return close_trade(trade, TradeStatus.MANUALLY_CLOSED, price, now)


def reverse_trade(trade: Trade, price: float, now: Optional[int] = None,
                  risk: Optional[RiskManager] = None) -> Tuple[ClosedTrade, Trade]:
    """
    Fecha `trade` com status Reversed e abre o trade invertido ao `price`.

    Distancias derivam de atr_approx = |tp1 - entry| / 2: stop a 1x, alvos
    a 2x / 3x / 4.5x.
    """
    risk = risk or RiskManager()
    now = now if now is not None else now_ms()
    closed = close_trade(trade, TradeStatus.REVERSED, price, now)

    direction = trade.direction.flipped()
    atr_approx = abs(trade.tp1 - trade.entry) / 2
    stop = risk.calculate_stop_loss(price, atr_approx, direction)
    tp1, tp2, tp3 = risk.risk_multiple_levels(price, atr_approx, direction, REVERSAL_MULTIPLES)

    reopened = dataclasses.replace(
        trade,
        id=generate_trade_id(now),
        direction=direction,
        entry=price,
        stop_loss=stop,
        current_sl=stop,
        tp1=tp1,
        tp2=tp2,
        tp3=tp3,
        status=TradeStatus.ACTIVE,
        open_time=now,
        close_time=None,
        close_price=None,
        pnl=None,
        pnl_percent=None,
        tp1_hit=False,
        tp2_hit=False,
        tp3_hit=False,
        scoring_factors=list(REVERSAL_FACTORS),
    )
    return closed, reopened


def trade_from_setup(setup: TradeSetup, position_size: float, is_live: bool = False,
                     now: Optional[int] = None) -> Trade:
    now = now if now is not None else now_ms()
    return Trade(
        id=generate_trade_id(now),
        modality=setup.modality,
        symbol=setup.symbol,
        direction=setup.direction,
        entry=setup.entry,
        tp1=setup.tp1,
        tp2=setup.tp2,
        tp3=setup.tp3,
        stop_loss=setup.stop_loss,
        current_sl=setup.stop_loss,
        status=TradeStatus.ACTIVE,
        open_time=now,
        position_size=position_size,
        is_live=is_live,
        interval=setup.interval,
        entry_reason=setup.entry_reason,
        scoring_factors=list(setup.scoring_factors),
    )


# =============================================================================
# GERENCIADOR
# =============================================================================

class TradeLifecycleManager:
    """
    Dono das vagas por modalidade.
    Thread-safe: ticks, fechamentos e reversoes sao serializados por um Lock.
    """

    def __init__(self, repository: TradeRepository, clock: Callable[[], int] = now_ms,
                 risk: Optional[RiskManager] = None):
        self.repository = repository
        self.clock = clock
        self.risk = risk or RiskManager()
        self._lock = threading.Lock()
        self._last_prices: Dict[str, float] = {}
        self._slots: ActiveTrades = empty_slots()
        self._slots.update(repository.load_active_trades())

        active = [m.value for m, t in self._slots.items() if t is not None]
        if active:
            log.info(f"Trades ativos carregados: {active}")

    # -------------------------------------------------------------------------
    # consultas
    # -------------------------------------------------------------------------

    def active_trade(self, modality: TradeModality) -> Optional[Trade]:
        with self._lock:
            return self._slots.get(TradeModality(modality))

    def active_trades(self) -> ActiveTrades:
        with self._lock:
            return dict(self._slots)

    def empty_slots(self) -> List[TradeModality]:
        with self._lock:
            return [m for m in TradeModality if self._slots[m] is None]

    def watched_symbols(self) -> List[str]:
        with self._lock:
            return sorted({t.symbol for t in self._slots.values() if t is not None})

    # -------------------------------------------------------------------------
    # transicoes
    # -------------------------------------------------------------------------

    def open_trade(self, setup: TradeSetup, position_size: Optional[float] = None,
                   is_live: bool = False) -> Trade:
        if position_size is None:
            position_size = self.risk.position_size()

        with self._lock:
            if self._slots[setup.modality] is not None:
                raise SlotOccupiedError(
                    f"{setup.modality.value} ja tem trade ativo ({self._slots[setup.modality].id})")
            trade = trade_from_setup(setup, position_size, is_live, self.clock())
            self._slots[setup.modality] = trade
            self._persist_slots()

        log.info(f"[{trade.modality.value}] ABERTO {trade.direction.value} {trade.symbol} "
                 f"@ {trade.entry:.6g} SL={trade.stop_loss:.6g} TP1={trade.tp1:.6g} "
                 f"({trade.entry_reason})")
        return trade

    def evaluate_tick(self, prices: Dict[str, float]) -> List[ClosedTrade]:
        """
        Aplica um tick (simbolo -> preco) a todas as vagas.
        Vagas cujo simbolo nao tem preco no tick nao mudam.
        Falha de escrita ao gravar um fechamento mantem o trade na vaga
        (nova tentativa no proximo tick) sem afetar as demais modalidades.
        """
        closed_now = []
        with self._lock:
            self._last_prices.update(prices)
            changed = False

            for modality, trade in self._slots.items():
                if trade is None or trade.symbol not in prices:
                    continue

                result = check_tp_sl(trade, prices[trade.symbol], self.clock())
                if result.closed:
                    # a vaga so e liberada depois do fechamento gravado
                    try:
                        self._record_close(result.closed_trade)
                    except OSError as e:
                        log.error(f"[{modality.value}] falha gravando fechamento de {trade.id}: {e}")
                        continue
                    self._slots[modality] = None
                    closed_now.append(result.closed_trade)
                    changed = True
                elif result.events:
                    self._slots[modality] = result.trade
                    changed = True
                    for event in result.events:
                        log.info(f"[{modality.value}] {trade.symbol} {event.value} "
                                 f"@ {prices[trade.symbol]:.6g} SL={result.trade.current_sl:.6g}")

            if changed:
                self._persist_slots()

        return closed_now

    def manually_close(self, modality: TradeModality, price: Optional[float] = None) -> Optional[ClosedTrade]:
        """Fecha a vaga ao preco dado (ou ultimo preco conhecido, ou entry)."""
        modality = TradeModality(modality)
        with self._lock:
            trade = self._slots[modality]
            if trade is None:
                return None
            price = self._resolve_price(trade, price)
            closed = manually_close_trade(trade, price, self.clock())
            self._record_close(closed)
            self._slots[modality] = None
            self._persist_slots()
        return closed

    def reverse(self, modality: TradeModality, price: Optional[float] = None) -> Optional[Trade]:
        """Fecha com status Reversed e reabre na direcao oposta."""
        modality = TradeModality(modality)
        with self._lock:
            trade = self._slots[modality]
            if trade is None:
                return None
            price = self._resolve_price(trade, price)
            closed, reopened = reverse_trade(trade, price, self.clock(), self.risk)
            self._record_close(closed)
            self._slots[modality] = reopened
            self._persist_slots()

        log.info(f"[{modality.value}] REVERTIDO {trade.direction.value} -> {reopened.direction.value} "
                 f"{reopened.symbol} @ {price:.6g}")
        return reopened

    # -------------------------------------------------------------------------
    # internos (chamados com o lock)
    # -------------------------------------------------------------------------

    def _resolve_price(self, trade: Trade, price: Optional[float]) -> float:
        if price is not None:
            return price
        return self._last_prices.get(trade.symbol, trade.entry)

    def _record_close(self, closed: ClosedTrade):
        self.repository.append_closed_trade(closed)
        self.repository.save_statistics(calculate_statistics(self.repository.load_history()))
        log.info(f"[{closed.modality.value}] FECHADO {closed.symbol} {closed.status.value} "
                 f"@ {closed.close_price:.6g} PnL={closed.pnl:+.2f} ({closed.pnl_percent:+.2f}%)")

    def _persist_slots(self):
        self.repository.save_active_trades(dict(self._slots))
