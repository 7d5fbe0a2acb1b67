"""
Ranking de simbolos e selecao de candidato
================================================================================
rank_symbols: pontua simbolos em lotes paralelos (ThreadPoolExecutor), com
pausa entre lotes para respeitar o rate limit. Falha de um simbolo (excecao
ou None) exclui apenas aquele simbolo. Ordenacao estavel por score
decrescente: empate mantem a ordem de entrada.

SetupSelector: universo de simbolos -> top 10 -> primeiro setup valido ->
fallback no simbolo padrao da modalidade.

VERSAO: 1.0
================================================================================
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .config import Config, get_default_symbol, get_interval
from .models import ScoredSymbol, TradeModality, TradeSetup
from .scoring import ScoringSystem
from .synthesizer import SelectionFailure, SetupPolicy, diagnose, synthesize_setup

log = logging.getLogger(__name__)

# fetch_candles(symbol, interval, limit) -> sequencia de candles
CandleFetcher = Callable[[str, str, int], Sequence]


def rank_symbols(
    modality: TradeModality,
    symbols: Sequence[str],
    limit: int,
    fetch_candles: CandleFetcher,
    batch_size: Optional[int] = None,
    batch_delay: Optional[float] = None,
    scoring: Optional[ScoringSystem] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> List[ScoredSymbol]:
    """
    Top `limit` simbolos da modalidade. Pode devolver menos (ou nenhum).

    Args:
        modality: Modalidade alvo
        symbols: Candidatos na ordem de desempate
        limit: Maximo de resultados
        fetch_candles: Colaborador de dados
        batch_size: Simbolos pontuados em paralelo por lote
        batch_delay: Pausa (s) entre lotes, nao aplicada apos o ultimo
    """
    modality = TradeModality(modality)
    symbols = list(symbols)
    if not symbols or limit <= 0:
        return []

    if batch_size is None:
        batch_size = Config.get('ranking.batch_size', 8)
    if batch_delay is None:
        batch_delay = Config.get('ranking.batch_delay', 0.2)
    scoring = scoring or ScoringSystem()
    interval = get_interval(modality)
    kline_limit = Config.get('ranking.kline_limit', 100)

    def score_one(symbol: str) -> Optional[ScoredSymbol]:
        candles = fetch_candles(symbol, interval, kline_limit)
        return scoring.score_symbol(symbol, modality, candles)

    scored: List[ScoredSymbol] = []
    for start in range(0, len(symbols), batch_size):
        batch = symbols[start:start + batch_size]
        slots: List[Optional[ScoredSymbol]] = [None] * len(batch)

        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            futures = {executor.submit(score_one, s): idx for idx, s in enumerate(batch)}
            for future in as_completed(futures):
                idx = futures[future]
                try:
                    slots[idx] = future.result()
                except Exception as e:
                    log.warning(f"{batch[idx]} excluido do ranking: {type(e).__name__}: {e}")
                    continue
                if slots[idx] is None:
                    log.debug(f"{batch[idx]} excluido do ranking: dados insuficientes")

        scored.extend(result for result in slots if result is not None)
        log.debug(f"Ranking {modality.value}: lote {start // batch_size + 1} "
                  f"({len(batch)} simbolos), {len(scored)} pontuados ate agora")

        if start + batch_size < len(symbols):
            sleep(batch_delay)

    # sorted() e estavel: empates preservam a ordem de entrada
    ranked = sorted(scored, key=lambda s: s.score, reverse=True)
    return ranked[:limit]


@dataclass
class SetupSelection:
    """Resultado da busca de setup: setup ou o motivo da falha."""
    setup: Optional[TradeSetup] = None
    failure: Optional[SelectionFailure] = None
    scored: Optional[ScoredSymbol] = None

    @property
    def ok(self) -> bool:
        return self.setup is not None


class SetupSelector:
    """
    Orquestra ranking + sintese para preencher uma modalidade.

    O colaborador de mercado precisa de get_candles(symbol, interval, limit)
    e list_tradable_symbols().
    """

    FALLBACK_FACTORS = ['Default symbol fallback', 'SMC structure analysis', 'ATR-based levels']

    def __init__(self, market, policy: Optional[SetupPolicy] = None,
                 scoring: Optional[ScoringSystem] = None, sleep: Callable[[float], None] = time.sleep):
        self.market = market
        self.policy = policy
        self.scoring = scoring or ScoringSystem()
        self.sleep = sleep

    def _fetch(self, symbol: str, interval: str, limit: int):
        return self.market.get_candles(symbol, interval, limit)

    def select(self, modality: TradeModality, symbols: Optional[Sequence[str]] = None) -> SetupSelection:
        modality = TradeModality(modality)
        interval = get_interval(modality)
        kline_limit = Config.get('ranking.kline_limit', 100)

        if symbols is None:
            symbols = self.market.list_tradable_symbols()

        ranked = rank_symbols(
            modality, symbols, Config.get('ranking.candidate_limit', 10),
            self._fetch, scoring=self.scoring, sleep=self.sleep,
        )

        for candidate in ranked:
            try:
                candles = self._fetch(candidate.symbol, interval, kline_limit)
            except Exception as e:
                log.warning(f"{candidate.symbol}: falha buscando candles para setup: {e}")
                continue
            setup = synthesize_setup(candidate.symbol, modality, candles,
                                     candidate.scoring_factors, policy=self.policy)
            if setup is not None:
                log.info(f"[{modality.value}] setup {setup.direction.value} {setup.symbol} "
                         f"score={candidate.score} R:R={setup.rr_ratio:.2f}")
                return SetupSelection(setup=setup, scored=candidate)

        if ranked:
            log.info(f"[{modality.value}] nenhum candidato gerou setup, usando simbolo padrao")
        return self._fallback(modality, interval, kline_limit)

    def _fallback(self, modality: TradeModality, interval: str, kline_limit: int) -> SetupSelection:
        symbol = get_default_symbol(modality)
        try:
            candles = self._fetch(symbol, interval, kline_limit)
        except Exception as e:
            log.warning(f"[{modality.value}] fallback {symbol} sem dados: {type(e).__name__}: {e}")
            return SetupSelection(failure=SelectionFailure.NO_DATA)

        setup = synthesize_setup(symbol, modality, candles, self.FALLBACK_FACTORS, policy=self.policy)
        if setup is not None:
            return SetupSelection(setup=setup)

        failure = diagnose(candles, self.policy) or SelectionFailure.NO_CANDIDATE
        log.warning(f"[{modality.value}] sem setup: {failure.value}")
        return SetupSelection(failure=failure)
