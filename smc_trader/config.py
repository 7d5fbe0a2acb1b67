"""
Configuration Module - Sistema Centralizado
================================================================================
FONTE UNICA DE VERDADE - TODAS AS CONFIGURACOES PASSAM POR AQUI
================================================================================

COMO USAR:
    from smc_trader.config import Config, get_modality_config

    # Obter parametro
    batch = Config.get('ranking.batch_size', default=8)

    # Tabela de uma modalidade
    scalping = get_modality_config(TradeModality.SCALPING)

    # Recarregar configs (hot-reload)
    Config.reload()

O arquivo JSON (config/settings.json ou $SMC_TRADER_CONFIG) e opcional e e
mesclado recursivamente sobre DEFAULT_CONFIG. Ele nunca e criado
automaticamente na carga.

VERSAO: 1.0
================================================================================
"""
import os
import json
import threading
import logging
from typing import Any, Dict, Optional
from datetime import datetime
from dotenv import load_dotenv

from .models import TradeModality

load_dotenv(override=True)

log = logging.getLogger(__name__)

# =============================================================================
# ARQUIVO DE CONFIGURACAO
# =============================================================================
CONFIG_FILE = os.getenv('SMC_TRADER_CONFIG', 'config/settings.json')

# =============================================================================
# CONFIGURACAO PADRAO
# =============================================================================
DEFAULT_CONFIG = {
    "version": "1.0",
    "last_updated": "",

    # === MODALIDADES ===
    # tp_atr_mults: distancias de tp1/tp2/tp3 em ATRs (estritamente crescentes)
    # atr_pct_min/max: banda de volatilidade aceita (ATR em % do preco)
    "modalities": {
        "Scalping": {
            "interval": "5m",
            "default_symbol": "BTCUSDT",
            "sl_atr_mult": 1.0,
            "tp_atr_mults": [1.5, 2.5, 3.5],
            "atr_pct_min": 0.1,
            "atr_pct_max": 1.0,
        },
        "DayTrading": {
            "interval": "1h",
            "default_symbol": "ETHUSDT",
            "sl_atr_mult": 1.5,
            "tp_atr_mults": [3.0, 4.5, 6.0],
            "atr_pct_min": 0.3,
            "atr_pct_max": 3.0,
        },
        "Swing": {
            "interval": "4h",
            "default_symbol": "SOLUSDT",
            "sl_atr_mult": 2.0,
            "tp_atr_mults": [4.0, 6.0, 9.0],
            "atr_pct_min": 0.8,
            "atr_pct_max": 8.0,
        },
        "Position": {
            "interval": "1d",
            "default_symbol": "BTCUSDT",
            "sl_atr_mult": 2.5,
            "tp_atr_mults": [5.0, 8.0, 12.0],
            "atr_pct_min": 1.5,
            "atr_pct_max": 20.0,
        },
    },

    # === INDICADORES ===
    "indicators": {
        "rsi_period": 14,
        "atr_period": 14,
    },

    # === SCORING ===
    "scoring": {
        "min_candles": 20,
        "max_raw_score": 120,
        "max_factors": 3,
    },

    # === RANKING ===
    "ranking": {
        "batch_size": 8,
        "batch_delay": 0.2,
        "candidate_limit": 10,
        "kline_limit": 100,
        "max_symbols": 60,
    },

    # === SETUP ===
    # rr_policy: "override" (forca 2x/3x/4.5x do risco) ou "reject"
    "setup": {
        "min_rr_ratio": 2.0,
        "rr_policy": "override",
        "override_multiples": [2.0, 3.0, 4.5],
        "max_entry_deviation": 0.02,
        "trend_lookback": 10,
    },

    # === RISCO ===
    "risk": {
        "capital": 1000.0,
        "position_pct": 0.02,
    },

    # === POLLING (usado pelo scheduler do bot) ===
    "polling": {
        "price_interval": 5,
        "insight_interval": 10,
        "refill_delay": 2,
        "retry_delay": 60,
    },

    # === SIMBOLOS ===
    "symbols": {
        "quote": "USDT",
        "fallback": [
            "BTCUSDT", "ETHUSDT", "SOLUSDT", "BNBUSDT", "XRPUSDT",
            "ADAUSDT", "DOGEUSDT", "AVAXUSDT", "DOTUSDT", "LINKUSDT",
            "MATICUSDT", "LTCUSDT", "UNIUSDT", "ATOMUSDT", "NEARUSDT",
            "APTUSDT", "ARBUSDT", "OPUSDT", "INJUSDT", "SUIUSDT",
        ],
    },

    # === STORAGE ===
    "storage": {
        "active_trades_file": "state/active_trades.json",
        "history_file": "state/trade_history.json",
        "statistics_file": "state/trade_statistics.json",
        "history_limit": 500,
    },

    # === ERROR HANDLING ===
    "error_handling": {
        "retry": {
            "max_attempts": 3,
            "base_delay": 0.5,
            "max_delay": 10.0,
            "exponential_base": 2.0,
            "jitter": True,
        },
        "circuit_breaker": {
            "data_fetch": {
                "failure_threshold": 10,
                "recovery_timeout": 30,
                "half_open_max_calls": 5,
            },
        },
    },
}


class ConfigManager:
    """
    Gerenciador de configuracoes centralizado.
    Singleton thread-safe com hot-reload.
    """
    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._config: Dict = {}
        self._last_load: float = 0
        self._config_lock = threading.RLock()
        self._load_config()
        self._initialized = True

    def _load_config(self):
        """Carregar defaults e mesclar o arquivo JSON se existir."""
        with self._config_lock:
            self._config = json.loads(json.dumps(DEFAULT_CONFIG))

            if os.path.exists(CONFIG_FILE):
                try:
                    with open(CONFIG_FILE, 'r', encoding='utf-8') as f:
                        file_config = json.load(f)
                    self._deep_merge(self._config, file_config)
                    log.info(f"Config carregado de {CONFIG_FILE}")
                except (OSError, ValueError) as e:
                    log.warning(f"Erro carregando config: {e}. Usando defaults.")

            self._last_load = datetime.now().timestamp()

    def _deep_merge(self, base: Dict, override: Dict):
        """Mescla recursivamente override em base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save_config(self):
        """Salvar configuracao atual no arquivo."""
        dir_name = os.path.dirname(CONFIG_FILE)
        if dir_name:
            os.makedirs(dir_name, exist_ok=True)
        self._config['last_updated'] = datetime.now().isoformat()
        with open(CONFIG_FILE, 'w', encoding='utf-8') as f:
            json.dump(self._config, f, indent=2, ensure_ascii=False)

    def reload(self):
        """Recarregar configuracoes do arquivo."""
        self._load_config()
        log.info("Configuracoes recarregadas")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Obter valor de configuracao por chave.
        Suporta notacao de ponto: 'ranking.batch_size'
        """
        with self._config_lock:
            value = self._config
            for k in key.split('.'):
                if isinstance(value, dict) and k in value:
                    value = value[k]
                else:
                    return default
            return value

    def get_section(self, section: str) -> Dict:
        """Obter secao inteira de configuracao (copia)."""
        with self._config_lock:
            return json.loads(json.dumps(self._config.get(section, {})))

    def set(self, key: str, value: Any, save: bool = False):
        """
        Definir valor de configuracao.
        Suporta notacao de ponto: 'setup.rr_policy'
        """
        with self._config_lock:
            keys = key.split('.')
            config = self._config
            for k in keys[:-1]:
                if k not in config:
                    config[k] = {}
                config = config[k]
            config[keys[-1]] = value

            if save:
                self._save_config()

    def get_all(self) -> Dict:
        """Obter todas as configuracoes."""
        with self._config_lock:
            return json.loads(json.dumps(self._config))


# =============================================================================
# INSTANCIA GLOBAL (Singleton)
# =============================================================================
_config_manager: Optional[ConfigManager] = None


def _get_manager() -> ConfigManager:
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


# =============================================================================
# API PUBLICA
# =============================================================================
class Config:
    """Interface estatica para acessar configuracoes."""

    @staticmethod
    def get(key: str, default: Any = None) -> Any:
        """Obter valor por chave (suporta 'section.key')."""
        return _get_manager().get(key, default)

    @staticmethod
    def get_section(section: str) -> Dict:
        return _get_manager().get_section(section)

    @staticmethod
    def set(key: str, value: Any, save: bool = False):
        _get_manager().set(key, value, save)

    @staticmethod
    def reload():
        _get_manager().reload()

    @staticmethod
    def get_all() -> Dict:
        return _get_manager().get_all()


# =============================================================================
# TABELAS POR MODALIDADE
# =============================================================================
def _check_modality_tables():
    """Todas as modalidades do enum precisam de entrada em DEFAULT_CONFIG."""
    missing = [m.value for m in TradeModality if m.value not in DEFAULT_CONFIG['modalities']]
    if missing:
        raise KeyError(f"Modalidades sem configuracao: {missing}")


_check_modality_tables()


def get_modality_config(modality: TradeModality) -> Dict:
    """Tabela completa (interval, multiplicadores ATR, banda ATR%) da modalidade."""
    section = Config.get(f'modalities.{TradeModality(modality).value}')
    if section is None:
        raise KeyError(f"Modalidade sem configuracao: {modality}")
    return dict(section)


def get_interval(modality: TradeModality) -> str:
    return get_modality_config(modality)['interval']


def get_default_symbol(modality: TradeModality) -> str:
    return get_modality_config(modality)['default_symbol']


def get_fallback_symbols():
    return list(Config.get('symbols.fallback', DEFAULT_CONFIG['symbols']['fallback']))


# =============================================================================
# ERROR HANDLING CONFIG HELPERS
# =============================================================================
def get_retry_config() -> Dict:
    """Retorna configuracao de retry."""
    return Config.get('error_handling.retry', {})


def get_circuit_breaker_config(name: str) -> Dict:
    """Retorna configuracao de um circuit breaker especifico."""
    return Config.get(f'error_handling.circuit_breaker.{name}', {})
