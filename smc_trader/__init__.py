# SMC Modality Trader
"""
SMC Modality Trader
====================
Selecao de setups SMC e ciclo de vida simulado, uma vaga por modalidade
(Scalping, DayTrading, Swing, Position).

Modulos:
- config: Configuracao centralizada (tabelas por modalidade, ranking, setup)
- data: Candles e precos da Binance USD-M via ccxt
- indicators: RSI, ATR, BOS, FVG, Order Block, CHoCH
- patterns / volume / psychology / alignment / risk: modulos de pontuacao
- scoring: Score composto 0-100 + fatores
- ranking: Ranking em lotes + selecao de candidato com fallback
- synthesizer: Direcao, entrada, TP1-3 e stop a partir dos candles
- lifecycle: Maquina de estados por modalidade (TP/SL, fechamento, reversao)
- storage / statistics: Persistencia e performance por modalidade
- reversal / insights: Alertas de reversao, previsao, sentimento, conselhos
- recovery: Estrategias de recuperacao para trades em prejuizo
"""

from .models import (
    TradeModality, TradeDirection, TradeStatus,
    Candle, TradeSetup, Trade, ClosedTrade, ScoredSymbol, TradeStatistics,
    ReversalSignal, TrendForecast, SentimentResult, TradeAdvice, RecoveryStrategy,
)
from .config import Config, get_modality_config
from .data import MarketData, to_frame
from .scoring import ScoringSystem, score_symbol
from .ranking import rank_symbols, SetupSelector, SetupSelection
from .synthesizer import SetupPolicy, SelectionFailure, synthesize_setup, explain_failure
from .lifecycle import TradeLifecycleManager, check_tp_sl, calculate_pnl
from .storage import JsonTradeRepository, InMemoryTradeRepository, TradeRepository
from .statistics import calculate_statistics
from .reversal import check_reversal_signals
from .insights import forecast_trend, analyze_sentiment, get_trade_advice
from .recovery import generate_recovery_strategies
from .error_handling import TradingBotError, DataUnavailableError, SlotOccupiedError

__version__ = '1.0.0'

__all__ = [
    # Modelos
    'TradeModality', 'TradeDirection', 'TradeStatus',
    'Candle', 'TradeSetup', 'Trade', 'ClosedTrade', 'ScoredSymbol', 'TradeStatistics',
    'ReversalSignal', 'TrendForecast', 'SentimentResult', 'TradeAdvice', 'RecoveryStrategy',
    # Config / dados
    'Config', 'get_modality_config', 'MarketData', 'to_frame',
    # Selecao
    'ScoringSystem', 'score_symbol', 'rank_symbols', 'SetupSelector', 'SetupSelection',
    'SetupPolicy', 'SelectionFailure', 'synthesize_setup', 'explain_failure',
    # Ciclo de vida
    'TradeLifecycleManager', 'check_tp_sl', 'calculate_pnl',
    'JsonTradeRepository', 'InMemoryTradeRepository', 'TradeRepository',
    'calculate_statistics',
    # Insights
    'check_reversal_signals', 'forecast_trend', 'analyze_sentiment', 'get_trade_advice',
    'generate_recovery_strategies',
    # Erros
    'TradingBotError', 'DataUnavailableError', 'SlotOccupiedError',
]
