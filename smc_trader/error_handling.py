"""
Error Handling Module - Tratamento de erros na coleta de dados
================================================================================
O nucleo de analise nunca lanca excecoes por falta de dados (retorna None,
[] ou sentinelas). Este modulo cobre a fronteira com a exchange e os erros
de programacao do ciclo de vida.

COMPONENTES:
- Hierarquia de excecoes (TradingBotError e derivadas)
- Classificacao de excecoes ccxt (retentavel / nao-retentavel / critica)
- RetryConfig + @retry_with_backoff: retry com exponential backoff
- CircuitBreaker: evita martelar a exchange durante falhas em cascata

VERSAO: 1.0
================================================================================
"""
import ccxt
import functools
import time
import random
import logging
from typing import Callable, Type, Optional, Dict, Any, Tuple
from datetime import datetime
from dataclasses import dataclass, field
from threading import Lock
from enum import Enum

log = logging.getLogger(__name__)


# =============================================================================
# EXCECOES CUSTOMIZADAS
# =============================================================================

class TradingBotError(Exception):
    """Excecao base do sistema."""
    pass


class RetryableError(TradingBotError):
    """Erro que pode ser retentado (rede, timeout, rate limit)."""
    pass


class NonRetryableError(TradingBotError):
    """Erro que NAO deve ser retentado (simbolo invalido, parametro errado)."""
    pass


class CriticalError(TradingBotError):
    """Erro critico que requer atencao imediata (falha de autenticacao)."""
    pass


class DataUnavailableError(TradingBotError):
    """Fonte de dados indisponivel (circuit breaker aberto ou resposta vazia)."""
    pass


class SlotOccupiedError(TradingBotError):
    """Tentativa de abrir trade numa modalidade que ja tem trade ativo."""
    pass


# =============================================================================
# CLASSIFICACAO DE EXCECOES CCXT
# =============================================================================

RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    ccxt.NetworkError,
    ccxt.ExchangeNotAvailable,
    ccxt.RateLimitExceeded,
    ccxt.RequestTimeout,
    ccxt.DDoSProtection,
    RetryableError,
)

NON_RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    ccxt.BadSymbol,
    ccxt.BadRequest,
    NonRetryableError,
)

CRITICAL_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    ccxt.AuthenticationError,
    ccxt.PermissionDenied,
    ccxt.AccountSuspended,
)


# =============================================================================
# CONFIGURACAO DE RETRY
# =============================================================================

@dataclass
class RetryConfig:
    """Configuracao para comportamento de retry."""
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = True

    @classmethod
    def from_dict(cls, config: Dict) -> 'RetryConfig':
        return cls(
            max_attempts=config.get('max_attempts', 3),
            base_delay=config.get('base_delay', 0.5),
            max_delay=config.get('max_delay', 10.0),
            exponential_base=config.get('exponential_base', 2.0),
            jitter=config.get('jitter', True)
        )


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calcular delay com exponential backoff e jitter opcional.

    Args:
        attempt: Numero da tentativa (0-indexed)
        config: Configuracao de retry

    Returns:
        Delay em segundos
    """
    delay = min(
        config.base_delay * (config.exponential_base ** attempt),
        config.max_delay
    )
    if config.jitter:
        # 50-150% do delay calculado
        delay *= (0.5 + random.random())
    return delay


# =============================================================================
# CIRCUIT BREAKER
# =============================================================================

class CircuitBreakerState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Padrao Circuit Breaker.

    CLOSED -> OPEN (apos failure_threshold falhas)
    OPEN -> HALF_OPEN (apos recovery_timeout)
    HALF_OPEN -> CLOSED (em sucesso) ou OPEN (em falha)
    """
    name: str
    failure_threshold: int = 10
    recovery_timeout: int = 30  # segundos
    half_open_max_calls: int = 5

    _state: CircuitBreakerState = field(default=CircuitBreakerState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _last_failure_time: Optional[datetime] = field(default=None, init=False)
    _half_open_calls: int = field(default=0, init=False)
    _lock: Lock = field(default_factory=Lock, init=False)

    @classmethod
    def from_dict(cls, name: str, config: Dict) -> 'CircuitBreaker':
        return cls(
            name=name,
            failure_threshold=config.get('failure_threshold', 10),
            recovery_timeout=config.get('recovery_timeout', 30),
            half_open_max_calls=config.get('half_open_max_calls', 5),
        )

    def can_execute(self) -> bool:
        with self._lock:
            if self._state == CircuitBreakerState.CLOSED:
                return True

            if self._state == CircuitBreakerState.OPEN:
                if self._last_failure_time:
                    elapsed = (datetime.now() - self._last_failure_time).total_seconds()
                    if elapsed >= self.recovery_timeout:
                        self._state = CircuitBreakerState.HALF_OPEN
                        self._half_open_calls = 0
                        log.info(f"CircuitBreaker [{self.name}]: OPEN -> HALF_OPEN (apos {elapsed:.0f}s)")
                        return True
                return False

            # HALF_OPEN
            if self._half_open_calls < self.half_open_max_calls:
                self._half_open_calls += 1
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitBreakerState.HALF_OPEN:
                log.info(f"CircuitBreaker [{self.name}]: HALF_OPEN -> CLOSED (recuperado)")
            self._state = CircuitBreakerState.CLOSED
            self._failure_count = 0

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = datetime.now()

            if self._state == CircuitBreakerState.HALF_OPEN:
                self._state = CircuitBreakerState.OPEN
                log.warning(f"CircuitBreaker [{self.name}]: HALF_OPEN -> OPEN (falha durante recuperacao)")

            elif self._state == CircuitBreakerState.CLOSED and self._failure_count >= self.failure_threshold:
                self._state = CircuitBreakerState.OPEN
                log.warning(
                    f"CircuitBreaker [{self.name}]: CLOSED -> OPEN "
                    f"(falhas={self._failure_count}/{self.failure_threshold})"
                )

    @property
    def state(self) -> str:
        return self._state.value

    @property
    def is_open(self) -> bool:
        return self._state == CircuitBreakerState.OPEN

    @property
    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'name': self.name,
                'state': self._state.value,
                'failure_count': self._failure_count,
                'failure_threshold': self.failure_threshold,
                'last_failure': self._last_failure_time.isoformat() if self._last_failure_time else None
            }


# =============================================================================
# DECORATOR RETRY WITH BACKOFF
# =============================================================================

def retry_with_backoff(
    config: Optional[RetryConfig] = None,
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    retryable_exceptions: Optional[Tuple] = None,
) -> Callable:
    """
    Decorator para retry de funcoes com exponential backoff.

    Exemplo:
        @retry_with_backoff(max_attempts=3, base_delay=0.5)
        def fetch_klines():
            return exchange.fetch_ohlcv(symbol, '5m', limit=100)
    """
    if config is None:
        config = RetryConfig(
            max_attempts=max_attempts or 3,
            base_delay=base_delay or 0.5
        )

    if retryable_exceptions is None:
        retryable_exceptions = RETRYABLE_EXCEPTIONS

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(config.max_attempts):
                try:
                    return func(*args, **kwargs)

                except CRITICAL_EXCEPTIONS as e:
                    log.critical(f"Erro CRITICO em {func.__name__}: {type(e).__name__}: {e}")
                    raise CriticalError(f"Erro critico: {e}") from e

                except NON_RETRYABLE_EXCEPTIONS as e:
                    log.error(f"Erro nao-retentavel em {func.__name__}: {type(e).__name__}: {e}")
                    raise

                except retryable_exceptions as e:
                    last_exception = e

                    if attempt < config.max_attempts - 1:
                        delay = calculate_delay(attempt, config)
                        log.warning(
                            f"Retry {attempt + 1}/{config.max_attempts}: {func.__name__} | "
                            f"{type(e).__name__} | aguardando {delay:.2f}s"
                        )
                        time.sleep(delay)
                    else:
                        log.error(
                            f"Max retries ({config.max_attempts}) atingido para {func.__name__}: "
                            f"{type(e).__name__}: {e}"
                        )

            if last_exception:
                raise last_exception

        return wrapper
    return decorator
