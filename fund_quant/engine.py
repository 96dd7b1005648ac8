"""
Strategy Engine
===============
Entry point of the decision pipeline for a single fund.

    history + estimate
        |-> QuantScorer ------------|
        |-> ValuationExplainer -----|
        |-> compute_performance ----|-> DecisionSynthesizer -> ExecutionPlan
        |-> PatternBacktester -> SignalGate (best signal) --|
        '-> StructureDetector ------------------------------'-> merge_structure

Every evaluation returns an EngineOutcome: OK with a StrategyResult,
SKIPPED when required valuation inputs are missing, FAILED when the
computation raised.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import logging

from .config import EngineConfig
from .data.models import IntradayEstimate, is_finite, to_price_points, to_index_points
from .fund_type import FundType, detect_fund_type, market_type_for
from .alpha.factor_model import QuantScorer, QuantMetrics
from .features.valuation import ValuationExplainer, ValuationExplain, local_today
from .risk.performance import PerformanceStats, compute_performance
from .backtest.pattern_backtest import PatternBacktester, BacktestResult
from .backtest.signal_backtest import SignalBacktest, SimpleBacktestResult
from .signals.confidence_gate import SignalGate, SignalAssessment, BestSignal, TrendBand
from .decision.synthesizer import DecisionSynthesizer, Decision, ExecutionPlan, Action
from .structure.chanlun import StructureDetector, StructureAnalysis, StructureMerge

logger = logging.getLogger(__name__)


MISSING_VALUATION = "missing valuation data"


class OutcomeStatus(Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class FundInput:
    """Everything the engine needs for one fund."""
    code: str
    name: str = ""
    history: List[Any] = field(default_factory=list)
    gsz: Optional[float] = None
    dwjz: Optional[float] = None
    index_history: List[Any] = field(default_factory=list)
    nav_change_pct: Optional[float] = None
    estimate_change_pct: Optional[float] = None
    manager_commitment: Optional[str] = None
    gztime: Optional[str] = None
    today: Optional[date] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FundInput':
        """Build from a JSON payload (``today`` as an ISO date string)."""
        today = data.get('today')
        if isinstance(today, str) and today:
            today = date.fromisoformat(today)
        return cls(
            code=str(data.get('code', '')),
            name=data.get('name', '') or '',
            history=list(data.get('history') or []),
            gsz=data.get('gsz'),
            dwjz=data.get('dwjz'),
            index_history=list(data.get('index_history') or []),
            nav_change_pct=data.get('nav_change_pct'),
            estimate_change_pct=data.get('estimate_change_pct'),
            manager_commitment=data.get('manager_commitment'),
            gztime=data.get('gztime'),
            today=today or None
        )


@dataclass(frozen=True)
class StrategyResult:
    """Full pipeline output for one fund."""
    metrics: QuantMetrics
    perf: PerformanceStats
    valuation: ValuationExplain
    decision: Optional[Decision]
    plan: ExecutionPlan
    best_signal: Optional[BestSignal]
    assessments: Tuple[SignalAssessment, ...]
    backtest: BacktestResult
    signal_backtest: SimpleBacktestResult
    trend_band: TrendBand
    structure: StructureAnalysis
    structure_merge: Optional[StructureMerge]
    fund_type: FundType
    market_type: str
    estimate: IntradayEstimate
    premium: Optional[float]
    premium_gate: float
    risk_ceiling: float
    lookahead: int

    @property
    def best_signal_tier(self) -> Optional[str]:
        return self.best_signal.tier if self.best_signal else None

    @property
    def final_action(self) -> Action:
        if self.structure_merge is not None:
            return self.structure_merge.action
        return self.plan.action

    def to_dict(self) -> dict:
        return {
            'final_action': self.final_action.value,
            'metrics': self.metrics.to_dict(),
            'perf': self.perf.to_dict(),
            'valuation': self.valuation.to_dict(),
            'decision': self.decision.to_dict() if self.decision else None,
            'plan': self.plan.to_dict(),
            'best_signal': self.best_signal.to_dict() if self.best_signal else None,
            'best_signal_tier': self.best_signal_tier,
            'assessments': [a.to_dict() for a in self.assessments],
            'backtest': self.backtest.to_dict(),
            'signal_backtest': self.signal_backtest.to_dict(),
            'trend_band': self.trend_band.to_dict(),
            'structure': self.structure.to_dict(),
            'structure_merge': self.structure_merge.to_dict() if self.structure_merge else None,
            'fund_type': self.fund_type.to_dict(),
            'market_type': self.market_type,
            'estimate': self.estimate.to_dict(),
            'premium': self.premium,
            'premium_gate': self.premium_gate,
            'risk_ceiling': self.risk_ceiling,
            'lookahead': self.lookahead
        }


@dataclass(frozen=True)
class EngineOutcome:
    """Typed result of one evaluation."""
    status: OutcomeStatus
    code: str
    name: str = ""
    reason: str = ""
    result: Optional[StrategyResult] = None

    @classmethod
    def ok(cls, code: str, name: str, result: StrategyResult) -> 'EngineOutcome':
        return cls(OutcomeStatus.OK, code, name, "", result)

    @classmethod
    def skipped(cls, code: str, name: str, reason: str) -> 'EngineOutcome':
        return cls(OutcomeStatus.SKIPPED, code, name, reason)

    @classmethod
    def failed(cls, code: str, name: str, reason: str) -> 'EngineOutcome':
        return cls(OutcomeStatus.FAILED, code, name, reason)

    @property
    def final_action(self) -> Optional[Action]:
        return self.result.final_action if self.result else None

    def to_dict(self) -> dict:
        return {
            'status': self.status.value,
            'code': self.code,
            'name': self.name,
            'reason': self.reason,
            'result': self.result.to_dict() if self.result else None
        }


class StrategyEngine:
    """
    Runs the full decision pipeline.

    Stateless between calls: every evaluation is a pure function of the
    FundInput and the configuration.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.scorer = QuantScorer(self.config)
        self.explainer = ValuationExplainer(self.config.thresholds, self.config.timezone)
        self.gate = SignalGate(self.config.gate, self.config.indicators.win_rate_strict)
        self.synthesizer = DecisionSynthesizer(self.config)
        self.detector = StructureDetector(self.config.structure)

    def evaluate(self, fund: FundInput) -> EngineOutcome:
        """Evaluate one fund; never raises for data or computation problems."""
        if not is_finite(fund.dwjz) or float(fund.dwjz) <= 0:
            logger.info(f"{fund.code}: skipped, {MISSING_VALUATION}")
            return EngineOutcome.skipped(fund.code, fund.name, MISSING_VALUATION)

        dwjz = float(fund.dwjz)
        if is_finite(fund.gsz):
            estimate = IntradayEstimate(float(fund.gsz), dwjz, fund.gztime, False)
        else:
            # Outside trading hours the estimate falls back to the last NAV
            estimate = IntradayEstimate(dwjz, dwjz, fund.gztime, True)

        try:
            result = self._run(fund, estimate)
        except Exception as e:
            logger.error(f"{fund.code}: strategy computation failed: {e}")
            return EngineOutcome.failed(fund.code, fund.name, f"strategy computation failed: {e}")

        logger.debug(f"{fund.code}: {result.final_action.value}")
        return EngineOutcome.ok(fund.code, fund.name, result)

    def _run(self, fund: FundInput, estimate: IntradayEstimate) -> StrategyResult:
        cfg = self.config
        points = to_price_points(fund.history)
        index_points = to_index_points(fund.index_history)

        if points and abs(points[-1].value - estimate.previous_close) > 1e-9:
            logger.warning(f"{fund.code}: previous close {estimate.previous_close} "
                           f"differs from last NAV {points[-1].value}")

        # 1. Classification and windows
        fund_type = detect_fund_type(fund.name, fund.code)
        category = fund_type.category
        window = cfg.categories.window_for(category)
        metric_points = points[-min(cfg.indicators.strategy_window_days, window):]
        values = [p.value for p in metric_points]
        long_values = [p.value for p in points]
        premium = (estimate.estimated_value - estimate.previous_close) / estimate.previous_close

        # 2. Scoring, valuation, risk
        metrics = self.scorer.score(
            values,
            history=points,
            index_history=index_points,
            premium=premium,
            quant_key=fund_type.quant_key,
            nav_change_pct=fund.nav_change_pct,
            estimate_change_pct=fund.estimate_change_pct,
            manager_commitment=fund.manager_commitment
        )
        valuation = self.explainer.explain(values, metrics.trend_score, premium,
                                           fund.today or local_today(cfg.timezone))
        perf = compute_performance(values, cfg.indicators.min_perf_days, cfg.thresholds,
                                   cfg.indicators.recent_days, cfg.indicators.min_stats_days)

        # 3. Backtests and gating
        lookahead = cfg.categories.lookahead_for(category, cfg.indicators.lookahead_days)
        adaptive_min = max(30, min(cfg.indicators.backtest_min_sample, int(window * 0.25)))
        backtest = PatternBacktester(lookahead, adaptive_min).run(long_values[-window:])
        simple = SignalBacktest(lookahead).run(values)

        trend_band = TrendBand.from_values(long_values)
        assessments = self.gate.assess_all(backtest, len(points), trend_band)
        best = self.gate.select_best(assessments)

        # 4. Decision
        market_type = market_type_for(fund.name, fund.code, fund_type.type_key)
        premium_gate = cfg.quant.premium_gate_for(market_type)
        risk_ceiling = cfg.categories.risk_ceiling_for(category)

        decision = self.synthesizer.decide(metrics, perf, backtest)
        plan = self.synthesizer.plan(decision, metrics, perf, valuation, best,
                                     premium, premium_gate, risk_ceiling)

        # 5. Structure overlay
        structure = self.detector.analyze(metric_points)
        merge = None
        if cfg.merge_structure:
            merge = self.detector.merge(plan.action, structure, fund_type, fund.name)

        return StrategyResult(
            metrics=metrics,
            perf=perf,
            valuation=valuation,
            decision=decision,
            plan=plan,
            best_signal=best,
            assessments=assessments,
            backtest=backtest,
            signal_backtest=simple,
            trend_band=trend_band,
            structure=structure,
            structure_merge=merge,
            fund_type=fund_type,
            market_type=market_type,
            estimate=estimate,
            premium=premium,
            premium_gate=premium_gate,
            risk_ceiling=risk_ceiling,
            lookahead=lookahead
        )