"""
Models Module - Registros do dominio
================================================================================
Dataclasses e enums compartilhados por todos os modulos.

Todos os registros serializam para dict JSON-safe via to_dict()/from_dict()
(enums viram string, tempos sao epoch em milissegundos).

VERSAO: 1.0
================================================================================
"""
from dataclasses import dataclass, field, asdict, fields
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# ENUMS
# =============================================================================

class TradeModality(str, Enum):
    """Horizontes de trading independentes."""
    SCALPING = "Scalping"
    DAY_TRADING = "DayTrading"
    SWING = "Swing"
    POSITION = "Position"


class TradeDirection(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"

    def flipped(self) -> 'TradeDirection':
        return TradeDirection.SHORT if self is TradeDirection.LONG else TradeDirection.LONG


class TradeStatus(str, Enum):
    """Estados do ciclo de vida de um trade."""
    ACTIVE = "Active"
    TP1_HIT = "TP1Hit"
    TP2_HIT = "TP2Hit"
    TP3_HIT = "TP3Hit"
    SL_HIT = "SLHit"
    MANUALLY_CLOSED = "ManuallyClosed"
    REVERSED = "Reversed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    TradeStatus.TP3_HIT,
    TradeStatus.SL_HIT,
    TradeStatus.MANUALLY_CLOSED,
    TradeStatus.REVERSED,
})

BULLISH = 'bullish'
BEARISH = 'bearish'


# =============================================================================
# CANDLES E SINAIS ESTRUTURAIS
# =============================================================================

@dataclass(frozen=True)
class Candle:
    """Um candle OHLCV normalizado."""
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StructureSignal:
    """
    Resultado de BOS / FVG / Order Block / CHoCH.

    `level` e o nivel rompido (BOS, CHoCH). `top`/`bottom`/`midpoint`
    delimitam a zona (FVG, Order Block). `index` e a posicao do swing dentro
    da janela analisada, -1 quando nao detectado.
    """
    detected: bool = False
    direction: Optional[str] = None
    level: float = 0.0
    top: float = 0.0
    bottom: float = 0.0
    midpoint: float = 0.0
    index: int = -1

    @property
    def is_bullish(self) -> bool:
        return self.detected and self.direction == BULLISH

    @property
    def is_bearish(self) -> bool:
        return self.detected and self.direction == BEARISH


NOT_DETECTED = StructureSignal()


@dataclass(frozen=True)
class PatternResult:
    """Padrao de candle ou grafico detectado (strength em [0, 1])."""
    name: str
    bullish: bool
    strength: float

    @property
    def direction(self) -> str:
        return BULLISH if self.bullish else BEARISH


@dataclass
class ModuleResult:
    """Sub-score de um modulo de analise."""
    score: float
    factors: List[str] = field(default_factory=list)


# =============================================================================
# SCORING E SETUP
# =============================================================================

@dataclass
class ScoredSymbol:
    """Projecao do score composto de um simbolo para uma modalidade."""
    symbol: str
    score: int
    scoring_factors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TradeSetup:
    """Setup imutavel gerado pelo sintetizador."""
    symbol: str
    direction: TradeDirection
    entry: float
    tp1: float
    tp2: float
    tp3: float
    stop_loss: float
    modality: TradeModality
    interval: str
    entry_reason: str
    rr_ratio: float
    scoring_factors: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['direction'] = self.direction.value
        data['modality'] = self.modality.value
        data['scoring_factors'] = list(self.scoring_factors)
        return data


# =============================================================================
# TRADES
# =============================================================================

@dataclass
class Trade:
    """Trade ativo (mutavel apenas pela maquina de estados do ciclo de vida)."""
    id: str
    modality: TradeModality
    symbol: str
    direction: TradeDirection
    entry: float
    tp1: float
    tp2: float
    tp3: float
    stop_loss: float
    current_sl: float
    status: TradeStatus = TradeStatus.ACTIVE
    open_time: int = 0
    close_time: Optional[int] = None
    close_price: Optional[float] = None
    pnl: Optional[float] = None
    pnl_percent: Optional[float] = None
    position_size: float = 0.0
    is_live: bool = False
    tp1_hit: bool = False
    tp2_hit: bool = False
    tp3_hit: bool = False
    interval: str = ""
    entry_reason: str = ""
    scoring_factors: List[str] = field(default_factory=list)

    @property
    def is_long(self) -> bool:
        return self.direction is TradeDirection.LONG

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['modality'] = self.modality.value
        data['direction'] = self.direction.value
        data['status'] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Trade':
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs['modality'] = TradeModality(kwargs['modality'])
        kwargs['direction'] = TradeDirection(kwargs['direction'])
        kwargs['status'] = TradeStatus(kwargs.get('status', TradeStatus.ACTIVE.value))
        kwargs['scoring_factors'] = list(kwargs.get('scoring_factors') or [])
        return cls(**kwargs)


@dataclass
class ClosedTrade(Trade):
    """Snapshot append-only de um trade encerrado."""

    def __post_init__(self):
        missing = [
            name for name in ('close_time', 'close_price', 'pnl', 'pnl_percent')
            if getattr(self, name) is None
        ]
        if missing:
            raise ValueError(f"ClosedTrade sem campos obrigatorios: {missing}")

    def __setattr__(self, name, value):
        if getattr(self, '_sealed', False):
            raise AttributeError(f"ClosedTrade e imutavel (campo '{name}')")
        super().__setattr__(name, value)

    def seal(self) -> 'ClosedTrade':
        object.__setattr__(self, '_sealed', True)
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClosedTrade':
        return super().from_dict(data).seal()


# =============================================================================
# ESTATISTICAS E INSIGHTS
# =============================================================================

@dataclass
class TradeStatistics:
    """Agregados de performance por modalidade (ou 'Overall')."""
    modality: str
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: float = 0.0
    avg_rr: float = 0.0
    total_pnl: float = 0.0
    best_trade: float = 0.0
    worst_trade: float = 0.0
    current_streak: int = 0
    tp1_hits: int = 0
    tp2_hits: int = 0
    tp3_hits: int = 0
    sl_hits: int = 0
    avg_hold_duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReversalSignal:
    type: str
    trade_id: str
    symbol: str
    direction: str
    price: float
    timestamp: int
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TrendForecast:
    symbol: str
    continuation_probability: int
    reversal_probability: int
    confidence: str
    factors: List[str]
    timestamp: int


@dataclass
class SentimentResult:
    symbol: str
    sentiment: str
    rsi: float
    strength: float
    trend: str
    ma20: float
    ma50: float
    timestamp: int


@dataclass(frozen=True)
class TradeAdvice:
    type: str
    title: str
    description: str
    urgency: str


@dataclass(frozen=True)
class RecoveryStrategy:
    """Plano para reduzir um trade em prejuizo (preco/quantidade opcionais)."""
    type: str
    description: str
    expected_pnl_improvement: float
    entry_price: Optional[float] = None
    quantity: Optional[float] = None
    levels: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['levels'] = list(self.levels)
        return data
