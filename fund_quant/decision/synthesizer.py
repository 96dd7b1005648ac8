"""
Decision & Execution Synthesizer
================================
Fuses scorer output, risk stats, valuation, backtest group bias and the
best gated signal into one action with an ordered list of reasons.

Action resolution:
1. Backtest group bias direction, when one exists
2. Otherwise the stance (bullish and not expensive -> accumulate,
   cautious or expensive -> reduce, else hold)
3. Drawdown at or above the category risk ceiling -> reduce
4. Premium above the market-type gate while not cheap:
   accumulate -> hold, anything else -> reduce
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Optional, Tuple

import logging

from ..alpha.factor_model import QuantMetrics
from ..risk.performance import PerformanceStats, risk_level_for
from ..features.valuation import ValuationExplain, CHEAP, EXPENSIVE
from ..backtest.pattern_backtest import BacktestResult, VOTING_GROUPS
from ..signals.confidence_gate import BestSignal

logger = logging.getLogger(__name__)


class Action(Enum):
    """Final recommendation."""
    ACCUMULATE = "accumulate"
    REDUCE = "reduce"
    HOLD = "hold"


BULLISH = "bullish"
NEUTRAL = "neutral"
CAUTIOUS = "cautious"

BUY_LEANING = "buy-leaning"
SELL_LEANING = "sell-leaning"


@dataclass(frozen=True)
class Decision:
    """Qualitative read of the fund, produced once per evaluation."""
    stance: str
    trend_label: str
    oversold_label: str
    risk_level: str
    group_bias: str
    group_scores: Dict[str, Optional[float]] = field(default_factory=dict)
    explanation: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ExecutionPlan:
    """Final action and the reasons behind it, in evaluation order."""
    action: Action
    reasons: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {'action': self.action.value, 'reasons': list(self.reasons)}


class DecisionSynthesizer:
    """Builds the Decision and the ExecutionPlan."""

    def __init__(self, config=None):
        from ..config import EngineConfig
        self.config = config or EngineConfig()

    def decide(self, metrics: QuantMetrics, perf: PerformanceStats,
               backtest: Optional[BacktestResult] = None) -> Optional[Decision]:
        """Return the Decision, or None when drawdown is undefined (too few points)."""
        if metrics is None or perf is None or perf.mdd is None:
            return None

        t = self.config.thresholds
        score = metrics.composite
        mdd = perf.mdd

        if metrics.short_history or perf.insufficient:
            stance = NEUTRAL
        elif score >= t.trend_good and mdd < 0.2:
            stance = BULLISH
        elif score >= t.trend_warn:
            stance = NEUTRAL
        else:
            stance = CAUTIOUS

        trend_score = metrics.trend_score
        if trend_score >= t.trend_good:
            trend_label = "strong"
        elif trend_score >= t.trend_warn:
            trend_label = "neutral"
        else:
            trend_label = "weak"

        if metrics.last_rsi < 30:
            oversold_label = "oversold"
        elif metrics.last_rsi > 70:
            oversold_label = "overbought"
        else:
            oversold_label = "neutral"

        risk_level = risk_level_for(mdd, t.drawdown_low, t.drawdown_high).value
        group_scores, group_bias = self.group_vote(backtest)

        explanation = (f"trend {trend_label}, RSI {oversold_label}, "
                       f"max drawdown {mdd * 100:.2f}%, group backtest {group_bias}")

        return Decision(
            stance=stance,
            trend_label=trend_label,
            oversold_label=oversold_label,
            risk_level=risk_level,
            group_bias=group_bias,
            group_scores=group_scores,
            explanation=explanation
        )

    def group_vote(self, backtest: Optional[BacktestResult]) -> Tuple[Dict[str, Optional[float]], str]:
        """Weighted buy/sell vote over the backtest group win rates."""
        votes = self.config.groups
        scores: Dict[str, Optional[float]] = {}
        buy = 0.0
        sell = 0.0
        for name in VOTING_GROUPS:
            group = backtest.group(name) if backtest else None
            win_rate = group.win_rate if group else None
            scores[name] = win_rate
            if win_rate is None:
                continue
            weight = votes.weight_for(name)
            if win_rate >= votes.buy_threshold:
                buy += weight * win_rate
            if win_rate <= votes.sell_threshold:
                sell += weight * (1 - win_rate)

        if buy > sell:
            bias = BUY_LEANING
        elif sell > buy:
            bias = SELL_LEANING
        else:
            bias = NEUTRAL
        return scores, bias

    def plan(self, decision: Optional[Decision], metrics: QuantMetrics,
             perf: PerformanceStats, valuation: ValuationExplain,
             best: Optional[BestSignal] = None, premium: Optional[float] = None,
             premium_gate: float = 0.01, risk_ceiling: float = 0.3) -> ExecutionPlan:
        if decision is None or metrics is None or perf is None:
            return ExecutionPlan(action=Action.HOLD, reasons=("insufficient data",))

        if decision.group_bias == BUY_LEANING:
            action = Action.ACCUMULATE
        elif decision.group_bias == SELL_LEANING:
            action = Action.REDUCE
        elif decision.stance == BULLISH and valuation.level != EXPENSIVE:
            action = Action.ACCUMULATE
        elif decision.stance == CAUTIOUS or valuation.level == EXPENSIVE:
            action = Action.REDUCE
        else:
            action = Action.HOLD

        reasons = [f"group backtest bias: {decision.group_bias}"]
        if best is not None and best.pattern.win_rate is not None:
            reasons.append(f"best backtest signal: {best.pattern.key} "
                           f"(win rate {best.pattern.win_rate * 100:.1f}% / sample {best.pattern.sample_count})")
        reasons.append(f"trend: {decision.trend_label}")
        reasons.append(f"valuation: {valuation.label}")
        if premium is not None:
            reasons.append(f"premium: {premium * 100:.2f}%")
        if perf.mdd is not None:
            reasons.append(f"drawdown: {perf.mdd * 100:.2f}%")
        if metrics.last_rsi:
            reasons.append(f"RSI: {metrics.last_rsi:.0f}")

        if perf.mdd is not None and perf.mdd >= risk_ceiling:
            action = Action.REDUCE
            reasons.append(f"risk control: drawdown >= {risk_ceiling * 100:.0f}%")

        if premium is not None and premium > premium_gate and valuation.level != CHEAP:
            action = Action.HOLD if action == Action.ACCUMULATE else Action.REDUCE
            reasons.append(f"premium gate: > {premium_gate * 100:.2f}%")

        logger.debug(f"Plan: {action.value} ({decision.stance}, {decision.group_bias})")
        return ExecutionPlan(action=action, reasons=tuple(reasons))
