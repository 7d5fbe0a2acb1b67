"""
Bot Principal - Selecao SMC por modalidade e ciclo de vida simulado

Uma vaga por modalidade. O loop:
    - preenche vagas vazias (ranking -> setup -> abertura)
    - consulta precos a cada polling.price_interval e avalia TP/SL
    - reabre a vaga polling.refill_delay segundos apos um fechamento
    - opcionalmente, a cada polling.insight_interval, checa reversoes e
      registra previsao / conselhos para os trades abertos

VERSAO: 1.0
"""
import sys
import os
import time
import logging
import argparse
from typing import Dict, List, Optional

from smc_trader.config import Config
from smc_trader.data import MarketData
from smc_trader.error_handling import DataUnavailableError, SlotOccupiedError
from smc_trader.insights import forecast_trend, get_trade_advice
from smc_trader.lifecycle import TradeLifecycleManager, calculate_pnl
from smc_trader.models import TradeModality
from smc_trader.ranking import SetupSelector
from smc_trader.recovery import generate_recovery_strategies
from smc_trader.reversal import check_reversal_signals
from smc_trader.storage import JsonTradeRepository, TradeRepository
from smc_trader.synthesizer import explain_failure
from smc_trader.utils import LOG_DATEFMT, LOG_FORMAT, setup_rotating_logger

log = logging.getLogger('smc_trader')


def configure_logging(log_file: str = 'logs/bot.log', level: int = logging.INFO) -> logging.Logger:
    """Arquivo com rotacao (5MB x 5) + stdout, no logger raiz do pacote."""
    logger = setup_rotating_logger(
        name='smc_trader',
        log_file=log_file,
        max_bytes=5 * 1024 * 1024,
        backup_count=5,
        level=level,
    )
    if not any(isinstance(h, logging.StreamHandler) and getattr(h, 'stream', None) is sys.stdout
               for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATEFMT))
        logger.addHandler(console_handler)
    return logger


class ModalityBot:
    """Agenda os ticks do ciclo de vida e o preenchimento das vagas."""

    def __init__(self, market: MarketData, repository: TradeRepository,
                 modalities: Optional[List[TradeModality]] = None,
                 insights: bool = True, clock=time.monotonic, sleep=time.sleep):
        self.market = market
        self.manager = TradeLifecycleManager(repository)
        self.selector = SetupSelector(market, sleep=sleep)
        self.modalities = list(modalities or TradeModality)
        self.insights = insights
        self.clock = clock
        self.sleep = sleep
        self.running = True

        self.price_interval = Config.get('polling.price_interval', 5)
        self.insight_interval = Config.get('polling.insight_interval', 10)
        self.refill_delay = Config.get('polling.refill_delay', 2)
        self.retry_delay = Config.get('polling.retry_delay', 60)

        self._refill_at: Dict[TradeModality, float] = {}
        self._last_insight = 0.0
        self._last_prices: Dict[str, float] = {}

        log.info(f"Bot inicializado | Modalidades: {[m.value for m in self.modalities]}")

    # -------------------------------------------------------------------------
    # vagas
    # -------------------------------------------------------------------------

    def fill_empty_slots(self, force: bool = False) -> int:
        """Abre trades nas vagas vazias cujo refill ja venceu. Retorna quantos abriu."""
        now = self.clock()
        due = [
            m for m in self.manager.empty_slots()
            if m in self.modalities and (force or self._refill_at.get(m, 0) <= now)
        ]
        if not due:
            return 0

        symbols = self.market.list_tradable_symbols()
        opened = 0
        for modality in due:
            self._refill_at.pop(modality, None)
            selection = self.selector.select(modality, symbols)
            if not selection.ok:
                log.warning(f"[{modality.value}] {explain_failure(selection.failure)} "
                            f"(nova tentativa em {self.retry_delay}s)")
                self._refill_at[modality] = now + self.retry_delay
                continue
            try:
                self.manager.open_trade(selection.setup)
                opened += 1
            except SlotOccupiedError as e:
                log.warning(f"[{modality.value}] {e}")
        return opened

    # -------------------------------------------------------------------------
    # ticks
    # -------------------------------------------------------------------------

    def poll_prices(self):
        symbols = self.manager.watched_symbols()
        if not symbols:
            return []
        prices = self.market.get_prices(symbols)
        self._last_prices.update(prices)
        closed = self.manager.evaluate_tick(prices)
        for trade in closed:
            self._refill_at[trade.modality] = self.clock() + self.refill_delay
        return closed

    def refresh_insights(self):
        for modality, trade in self.manager.active_trades().items():
            if trade is None or modality not in self.modalities:
                continue
            candles = self.market.get_candles(trade.symbol, trade.interval, 50)

            signal = check_reversal_signals(trade, candles)
            if signal is not None:
                log.warning(f"[{modality.value}] {signal.type}: {signal.description}")

            forecast = forecast_trend(trade.symbol, candles)
            log.info(f"[{modality.value}] {trade.symbol} continuacao={forecast.continuation_probability}% "
                     f"({forecast.confidence}) {forecast.factors}")

            price = self._last_prices.get(trade.symbol)
            if price is not None:
                for advice in get_trade_advice(trade, price):
                    log.info(f"[{modality.value}] {advice.urgency.upper()} {advice.title}")
                if calculate_pnl(trade, price)[0] < 0:
                    for strategy in generate_recovery_strategies(trade, candles, price):
                        log.info(f"[{modality.value}] recovery {strategy.type}: {strategy.description}")

    def run_cycle(self):
        self.poll_prices()
        self.fill_empty_slots()
        if self.insights and self.clock() - self._last_insight >= self.insight_interval:
            self._last_insight = self.clock()
            self.refresh_insights()

    def run(self, once: bool = False):
        """Loop principal."""
        log.info(f"Iniciando loop | preco a cada {self.price_interval}s")
        self.fill_empty_slots(force=True)
        if once:
            self.run_cycle()
            return

        while self.running:
            try:
                self.run_cycle()
                self.sleep(self.price_interval)
            except KeyboardInterrupt:
                log.info("Bot parado pelo usuario")
                self.running = False
            except DataUnavailableError as e:
                log.warning(f"Dados indisponiveis: {e}")
                self.sleep(self.price_interval)
            except Exception as e:
                log.error(f"Erro no loop: {type(e).__name__}: {e}")
                self.sleep(self.price_interval)

        log.info("Bot finalizado")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='SMC modality trader (simulado)')
    parser.add_argument(
        '--modalities', nargs='+', choices=[m.value for m in TradeModality],
        help='Modalidades ativas (padrao: todas)',
    )
    parser.add_argument('--once', action='store_true', help='Executa um ciclo e sai')
    parser.add_argument('--no-insights', action='store_true', help='Desliga reversao/previsao/conselhos')
    parser.add_argument('--log-file', default='logs/bot.log')
    parser.add_argument('--debug', action='store_true')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    os.makedirs('state', exist_ok=True)
    configure_logging(args.log_file, logging.DEBUG if args.debug else logging.INFO)

    modalities = [TradeModality(m) for m in args.modalities] if args.modalities else None

    print("=" * 60)
    print("  SMC MODALITY TRADER")
    print(f"  PID: {os.getpid()}")
    print(f"  Modalidades: {', '.join(args.modalities or [m.value for m in TradeModality])}")
    print(f"  Politica R:R: {Config.get('setup.rr_policy')} >= {Config.get('setup.min_rr_ratio')}")
    print("=" * 60)

    bot = ModalityBot(MarketData(), JsonTradeRepository(), modalities, insights=not args.no_insights)
    bot.run(once=args.once)


if __name__ == "__main__":
    main()
