"""
Fund Quant Decision Engine
==========================

Quantitative decision support for open-ended mutual funds: given a daily
NAV history and the same-day intraday estimate, produce a factor score,
a valuation reading, a backtest-graded best signal and a final action
(accumulate / reduce / hold).

PIPELINE:
    ┌──────────────┐
    │    DATA      │  ← intraday estimate, NAV history, benchmark (CACHED)
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │ FEATURES     │  ← indicators, valuation position / z / band
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │ ALPHA        │  ← eight-factor composite score
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │ BACKTEST     │  ← pattern win rates, confidence gate, best signal
    └────┬─────────┘
         ↓
    ┌──────────────┐
    │ DECISION     │  ← stance, execution plan, structure overlay
    └──────────────┘

USAGE:
    # Batch run
    python -m fund_quant.orchestrator --funds 110022,161725

    # Programmatic usage
    from fund_quant import StrategyEngine, FundInput

    engine = StrategyEngine()
    outcome = engine.evaluate(FundInput(code="110022", history=history, gsz=1.23, dwjz=1.22))
    print(outcome.final_action)

MODULES:
    - data: series types, Eastmoney / benchmark sources, history cache
    - features: indicator library, valuation explainer
    - alpha: multi-factor scorer
    - risk: performance statistics
    - backtest: pattern backtest, simple signal backtest
    - signals: confidence gate and best-signal selection
    - decision: stance and execution plan
    - structure: pivot / stroke / center detector
"""

from .config import EngineConfig, DEFAULT_CONFIG
from .engine import StrategyEngine, FundInput, EngineOutcome, OutcomeStatus, StrategyResult
from .orchestrator import FundStrategyRunner, RunResult, summarize, main
from .fund_type import FundType, detect_fund_type
from .data import PricePoint, IndexPoint, MockFundSource, EastmoneyFundSource, HistoryCache
from .alpha import QuantScorer, QuantMetrics
from .features import ValuationExplainer, ValuationExplain
from .risk import PerformanceStats, compute_performance
from .backtest import PatternBacktester, BacktestResult
from .signals import SignalGate, BestSignal
from .decision import DecisionSynthesizer, Action
from .structure import StructureDetector, StructureAnalysis

__version__ = "1.0.0"
__all__ = [
    # Main
    'StrategyEngine',
    'FundInput',
    'EngineOutcome',
    'OutcomeStatus',
    'StrategyResult',
    'EngineConfig',
    'DEFAULT_CONFIG',
    'FundStrategyRunner',
    'RunResult',
    'summarize',
    'main',

    # Data
    'PricePoint',
    'IndexPoint',
    'MockFundSource',
    'EastmoneyFundSource',
    'HistoryCache',
    'FundType',
    'detect_fund_type',

    # Pipeline stages
    'QuantScorer',
    'QuantMetrics',
    'ValuationExplainer',
    'ValuationExplain',
    'PerformanceStats',
    'compute_performance',
    'PatternBacktester',
    'BacktestResult',
    'SignalGate',
    'BestSignal',
    'DecisionSynthesizer',
    'Action',
    'StructureDetector',
    'StructureAnalysis'
]
