"""
Fund Strategy Runner
====================
Batch pipeline over a list of fund codes:
    FETCH (estimate, NAV history, profile, benchmark) → ENGINE → SUMMARY

Each fund is fetched and evaluated on a bounded worker pool. A failure in
one fund never affects the others; it is reported in its RunResult.
"""

import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import logging

from .config import EngineConfig
from .data.sources import FundDataSource, BenchmarkIndexSource
from .data.cache import HistoryCache
from .decision.synthesizer import Action
from .engine import StrategyEngine, FundInput, EngineOutcome, OutcomeStatus
from .fund_type import detect_fund_type

logger = logging.getLogger(__name__)


def normalize_code(code) -> Optional[str]:
    """Keep digits only and left-pad to six; None when nothing usable remains."""
    digits = re.sub(r'\D', '', str(code or ''))
    if not digits or len(digits) > 6:
        return None
    return digits.zfill(6)


def parse_codes(text: str) -> List[str]:
    """Split a comma / whitespace separated list, normalizing and de-duplicating."""
    codes = []
    for raw in re.split(r'[\s,;]+', text or ''):
        code = normalize_code(raw)
        if code and code not in codes:
            codes.append(code)
    return codes


@dataclass
class RunResult:
    """Outcome of fetching and evaluating one fund."""
    code: str
    ok: bool
    outcome: Optional[EngineOutcome] = None
    error: str = ""

    @property
    def bucket(self) -> str:
        """buy / sell / hold / skip."""
        if not self.ok or self.outcome is None or self.outcome.status != OutcomeStatus.OK:
            return 'skip'
        action = self.outcome.final_action
        if action == Action.ACCUMULATE:
            return 'buy'
        if action == Action.REDUCE:
            return 'sell'
        return 'hold'

    def to_dict(self) -> dict:
        return {
            'code': self.code,
            'ok': self.ok,
            'bucket': self.bucket,
            'error': self.error,
            'outcome': self.outcome.to_dict() if self.outcome else None
        }


class FundStrategyRunner:
    """
    Fetches fund data and runs the strategy engine over many codes.

    Pipeline per fund:
    1. Intraday estimate and previous NAV
    2. NAV history (daily cache first, deep refetch when too short)
    3. Profile and benchmark index (optional, failures only logged)
    4. StrategyEngine.evaluate
    """

    def __init__(self, config: Optional[EngineConfig] = None,
                 source: Optional[FundDataSource] = None,
                 index_source: Optional[BenchmarkIndexSource] = None,
                 cache: Optional[HistoryCache] = None):
        self.config = config or EngineConfig()
        if source is None:
            from .data.sources import EastmoneyFundSource
            runner_cfg = self.config.runner
            source = EastmoneyFundSource(
                timeout=runner_cfg.request_timeout,
                retries=runner_cfg.fetch_retries,
                jitter_ms=(runner_cfg.jitter_min_ms, runner_cfg.jitter_max_ms)
            )
        self.source = source
        self.index_source = index_source
        self.cache = cache
        self.engine = StrategyEngine(self.config)

    def _history(self, code: str, name: str, establish_date: str = ""):
        cached = self.cache.get(code) if self.cache else None
        if cached:
            logger.debug(f"{code}: history from cache ({len(cached)} rows)")
            return cached

        history = self.source.fetch_history(code, self.config.runner.history_days)

        # Long-window categories need more than the default page of rows
        window = self.config.categories.window_for(detect_fund_type(name, code).category)
        if len(history) < min(300, int(window * 0.4)):
            deep = self.source.fetch_history(code, window, establish_date=establish_date)
            if len(deep) > len(history):
                history = deep

        if self.cache and history:
            self.cache.set(code, history)
        return history

    def fetch_input(self, code: str) -> FundInput:
        """Gather everything the engine needs for one fund."""
        snapshot = self.source.fetch_estimate(code)
        name = snapshot.name or ""

        fund_type, benchmark, establish = snapshot.fund_type, snapshot.benchmark, ""
        try:
            profile = self.source.fetch_profile(code)
            fund_type = fund_type or profile.get('type', '')
            benchmark = benchmark or profile.get('benchmark', '')
            establish = profile.get('establish', '')
        except Exception as e:
            logger.warning(f"{code}: profile fetch failed: {e}")

        history = self._history(code, name, establish)

        index_history = []
        if self.index_source is not None:
            index_history = self.index_source.fetch_for_fund(
                name, fund_type, benchmark, self.config.runner.index_history_days
            )

        return FundInput(
            code=code,
            name=name,
            history=history,
            gsz=snapshot.gsz,
            dwjz=snapshot.dwjz,
            index_history=index_history,
            nav_change_pct=snapshot.nav_change_pct,
            estimate_change_pct=snapshot.estimate_change_pct,
            gztime=snapshot.gztime
        )

    def run_one(self, code: str) -> RunResult:
        try:
            fund = self.fetch_input(code)
        except Exception as e:
            logger.error(f"{code}: data fetch failed: {e}")
            return RunResult(code=code, ok=False, error=str(e))

        outcome = self.engine.evaluate(fund)
        return RunResult(code=code, ok=outcome.status == OutcomeStatus.OK,
                         outcome=outcome, error=outcome.reason)

    def run(self, codes: Iterable[str]) -> List[RunResult]:
        """Evaluate all codes concurrently; results arrive in completion order."""
        codes = list(codes)
        if not codes:
            return []

        results = []
        workers = max(1, min(self.config.runner.max_workers, len(codes)))
        logger.info(f"Running strategy for {len(codes)} funds with {workers} workers")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_code = {executor.submit(self.run_one, code): code for code in codes}
            for future in as_completed(future_to_code):
                code = future_to_code[future]
                try:
                    result = future.result()
                except Exception as e:
                    logger.error(f"{code}: worker failed: {e}")
                    result = RunResult(code=code, ok=False, error=str(e))
                results.append(result)
                logger.info(f"[{len(results)}/{len(codes)}] {code}: {result.bucket}")

        return results


def summarize(results: Iterable[RunResult]) -> Dict[str, List[str]]:
    """Group results into buy / sell / hold / skip lines."""
    groups = {'buy': [], 'sell': [], 'hold': [], 'skip': []}
    for r in results:
        name = r.outcome.name if r.outcome and r.outcome.name else ''
        label = f"{r.code} {name}".strip()
        if r.bucket == 'skip':
            label = f"{label} ({r.error or 'no result'})"
        else:
            best = r.outcome.result.best_signal_tier if r.outcome.result else None
            if best:
                label = f"{label} [{best}]"
        groups[r.bucket].append(label)
    return groups


def main():
    """Command line entry point for the fund strategy runner."""
    import argparse

    parser = argparse.ArgumentParser(description='Fund Quant Strategy Runner')
    parser.add_argument('--funds', type=str, default='',
                        help='Comma separated fund codes')
    parser.add_argument('--funds-file', type=str, help='File with one fund code per line')
    parser.add_argument('--config', type=str, help='Path to config file')
    parser.add_argument('--workers', type=int, help='Worker pool size')
    parser.add_argument('--mock', action='store_true', help='Use synthetic data')

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = EngineConfig.load(args.config) if args.config else EngineConfig()
    if args.workers:
        config.runner.max_workers = args.workers

    text = args.funds
    if args.funds_file:
        with open(args.funds_file, 'r', encoding='utf-8') as f:
            text = f"{text},{f.read()}"
    codes = parse_codes(text)
    if not codes:
        print("No fund codes given (use --funds or --funds-file)")
        return

    if args.mock:
        from .data.sources import MockFundSource
        runner = FundStrategyRunner(config, source=MockFundSource())
    else:
        cache = HistoryCache(config.runner.cache_dir, config.timezone) if config.runner.use_cache else None
        runner = FundStrategyRunner(config, index_source=BenchmarkIndexSource(), cache=cache)

    groups = summarize(runner.run(codes))

    print("\n" + "=" * 50)
    print("FUND STRATEGY SUMMARY")
    print("=" * 50)
    for bucket in ('buy', 'sell', 'hold', 'skip'):
        print(f"{bucket.upper()} ({len(groups[bucket])})")
        for line in groups[bucket]:
            print(f"  {line}")


if __name__ == "__main__":
    main()
