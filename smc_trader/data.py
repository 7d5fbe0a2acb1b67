"""
Data Module - Normalizacao de candles e coleta de mercado
Converte klines da exchange em candles uniformes e busca dados na Binance
USDⓈ-M via ccxt.

VERSÃO: 1.0
- parse_klines: linhas brutas (strings decimais) -> Candle
- to_frame: qualquer formato aceito -> DataFrame canonico
- MarketData: cache com TTL por timeframe, retry com backoff e circuit breaker
"""
import pandas as pd
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional
from datetime import datetime

import ccxt

from .config import Config, get_fallback_symbols, get_retry_config, get_circuit_breaker_config
from .error_handling import (
    CircuitBreaker, DataUnavailableError, RetryConfig, retry_with_backoff,
)
from .models import Candle

logger = logging.getLogger(__name__)

COLUMNS = ['time', 'open', 'high', 'low', 'close', 'volume']


# =============================================================================
# NORMALIZACAO
# =============================================================================

def parse_klines(rows: Iterable[Any]) -> List[Candle]:
    """
    Converte linhas de kline [openTime, open, high, low, close, volume, ...]
    em Candles. Precos chegam como strings decimais (REST) ou numeros (ccxt).
    Linhas com menos de 6 campos sao ignoradas.
    """
    candles = []
    for row in rows or []:
        if len(row) < 6:
            continue
        candles.append(Candle(
            time=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        ))
    return candles


def to_frame(candles: Any) -> pd.DataFrame:
    """
    Retorna DataFrame com as colunas time/open/high/low/close/volume.

    Aceita DataFrame (colunas 'time' ou 'timestamp'), lista de Candle,
    lista de dicts ou linhas brutas de kline.
    """
    if candles is None:
        return pd.DataFrame(columns=COLUMNS)

    if isinstance(candles, pd.DataFrame):
        df = candles
        if 'time' not in df.columns and 'timestamp' in df.columns:
            df = df.rename(columns={'timestamp': 'time'})
        if 'time' not in df.columns:
            df = df.assign(time=range(len(df)))
        return df[COLUMNS].reset_index(drop=True)

    items = list(candles)
    if not items:
        return pd.DataFrame(columns=COLUMNS)

    first = items[0]
    if isinstance(first, Candle):
        records = [c.to_dict() for c in items]
    elif isinstance(first, dict):
        records = items
    else:
        records = [c.to_dict() for c in parse_klines(items)]

    return pd.DataFrame.from_records(records, columns=COLUMNS).astype(
        {'open': float, 'high': float, 'low': float, 'close': float, 'volume': float}
    )


# =============================================================================
# MARKET DATA (ccxt)
# =============================================================================

def create_exchange() -> ccxt.Exchange:
    """Exchange publica Binance USDⓈ-M (sem credenciais)."""
    return ccxt.binanceusdm({
        'enableRateLimit': True,
        'options': {'adjustForTimeDifference': True},
    })


class MarketData:
    """
    Colaborador de dados de mercado.
    Cache com TTL por timeframe, thread-safe (o ranking busca em paralelo).
    """

    TTL_BY_TIMEFRAME = {
        '1m': 30,
        '5m': 120,
        '15m': 300,
        '1h': 1800,
        '4h': 3600,
        '1d': 7200,
    }

    def __init__(self, exchange: Optional[ccxt.Exchange] = None):
        self.exchange = exchange or create_exchange()
        self.cache: Dict[str, tuple] = {}
        self.cache_ttl = 60
        self._cache_lock = threading.Lock()
        self.breaker = CircuitBreaker.from_dict('data_fetch', get_circuit_breaker_config('data_fetch'))
        self._retry = RetryConfig.from_dict(get_retry_config())

    def _guarded(self, func, *args, **kwargs):
        """Executa a chamada na exchange sob retry e circuit breaker."""
        if not self.breaker.can_execute():
            raise DataUnavailableError(f"CircuitBreaker [{self.breaker.name}] aberto")

        @retry_with_backoff(config=self._retry)
        def call():
            return func(*args, **kwargs)

        try:
            result = call()
        except Exception:
            self.breaker.record_failure()
            raise
        self.breaker.record_success()
        return result

    def get_candles(self, symbol: str, interval: str, limit: int = 100, use_cache: bool = True) -> List[Candle]:
        """Busca klines (ordem crescente de tempo) e normaliza."""
        cache_key = f"{symbol}_{interval}_{limit}"
        ttl = self.TTL_BY_TIMEFRAME.get(interval, self.cache_ttl)

        with self._cache_lock:
            if use_cache and cache_key in self.cache:
                cached_time, cached = self.cache[cache_key]
                if (datetime.now() - cached_time).total_seconds() < ttl:
                    return list(cached)

        rows = self._guarded(
            self.exchange.fapiPublicGetKlines,
            {'symbol': symbol, 'interval': interval, 'limit': limit},
        )
        candles = parse_klines(rows)

        with self._cache_lock:
            self.cache[cache_key] = (datetime.now(), candles)

        logger.debug(f"{symbol} {interval}: {len(candles)} candles")
        return list(candles)

    def get_current_price(self, symbol: str) -> float:
        ticker = self._guarded(self.exchange.fapiPublicGetTickerPrice, {'symbol': symbol})
        return float(ticker['price'])

    def get_all_prices(self) -> Dict[str, float]:
        """Mapa simbolo -> ultimo preco, usado como tick do ciclo de vida."""
        tickers = self._guarded(self.exchange.fapiPublicGetTickerPrice)
        return {t['symbol']: float(t['price']) for t in tickers}

    def get_prices(self, symbols: Iterable[str]) -> Dict[str, float]:
        wanted = set(symbols)
        if not wanted:
            return {}
        return {s: p for s, p in self.get_all_prices().items() if s in wanted}

    def list_tradable_symbols(self, max_symbols: Optional[int] = None) -> List[str]:
        """
        Perpetuos lineares cotados em USDT com status TRADING.
        Qualquer falha retorna a lista estatica de fallback.
        """
        if max_symbols is None:
            max_symbols = Config.get('ranking.max_symbols', 60)
        quote = Config.get('symbols.quote', 'USDT')

        try:
            info = self._guarded(self.exchange.fapiPublicGetExchangeInfo)
            symbols = [
                s['symbol'] for s in info.get('symbols', [])
                if s.get('contractType') == 'PERPETUAL'
                and s.get('status') == 'TRADING'
                and s.get('quoteAsset') == quote
            ]
        except Exception as e:
            logger.warning(f"Falha listando simbolos ({type(e).__name__}: {e}). Usando fallback.")
            return get_fallback_symbols()[:max_symbols]

        if not symbols:
            logger.warning("Exchange retornou zero simbolos. Usando fallback.")
            return get_fallback_symbols()[:max_symbols]

        return symbols[:max_symbols]
