"""
Signal Confidence Gate
======================
Judges each backtested pattern for sample adequacy, win rate and alignment
with the current trend band, then picks the single best actionable signal.
"""

from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence, Tuple

import logging

from ..features.indicators import TechnicalIndicators, round_half_up
from ..backtest.pattern_backtest import (
    BacktestResult, PatternSample, BUY, SELL, band_strength
)

logger = logging.getLogger(__name__)


PRIMARY = "primary"
SECONDARY = "secondary"


@dataclass(frozen=True)
class TrendBand:
    """Current trend band from the MA20/MA60 relationship on the full history."""
    level: str = "neutral"
    strength: str = "weak"

    @property
    def label(self) -> str:
        if self.level == "strong":
            return f"strong band ({self.strength})"
        if self.level == "weak":
            return f"weak band ({self.strength})"
        return "neutral"

    @classmethod
    def from_values(cls, values: Sequence[float]) -> 'TrendBand':
        ma20 = TechnicalIndicators.sma(values, 20)
        ma60 = TechnicalIndicators.sma(values, 60)
        if not len(ma20) or not len(ma60):
            return cls()

        m20 = float(ma20[-1])
        m60 = float(ma60[-1])
        prev20 = float(ma20[-2]) if len(ma20) > 1 else None
        slope = (m20 - prev20) / max(1e-6, prev20) if prev20 is not None else 0.0
        gap = (m20 - m60) / max(1e-6, m60)
        strength = band_strength(gap)

        if m20 > m60 and slope > 0:
            return cls(level="strong", strength=strength)
        if m20 < m60 and slope < 0:
            return cls(level="weak", strength=strength)
        return cls(level="neutral", strength=strength)

    def to_dict(self) -> dict:
        return {'level': self.level, 'strength': self.strength, 'label': self.label}


@dataclass(frozen=True)
class SignalAssessment:
    """Gate verdict for one pattern."""
    pattern: PatternSample
    expected: int
    min_soft: int
    min_hard: int
    effective_sample: int
    group_sample: int
    sample_level: str
    low_sample: bool
    very_low_sample: bool
    low_win: bool
    downgraded: bool
    trend_filtered: bool
    drawdown_bad: bool

    @property
    def key(self) -> str:
        return self.pattern.key

    @property
    def side(self) -> str:
        return self.pattern.side

    def to_dict(self) -> dict:
        data = asdict(self)
        data['pattern'] = self.pattern.to_dict()
        return data


@dataclass(frozen=True)
class BestSignal:
    """Selected signal with its tier and selection score."""
    assessment: SignalAssessment
    tier: str
    score: float

    @property
    def pattern(self) -> PatternSample:
        return self.assessment.pattern

    def to_dict(self) -> dict:
        return {'pattern': self.pattern.to_dict(), 'tier': self.tier, 'score': self.score}


class SignalGate:
    """
    Sample adequacy gate and best-signal selector.

    Expected sample counts scale with history length and a per-group
    occurrence prior; a pattern with too few (group-blended) samples, a low
    win rate, or a side that fights the trend band is kept out of selection.
    """

    def __init__(self, config=None, win_rate_strict: float = 0.55):
        from ..config import SignalGateConfig
        self.config = config or SignalGateConfig()
        self.win_rate_strict = win_rate_strict

    # =====================
    # Assessment
    # =====================

    def assess(self, pattern: PatternSample, history_length: int,
               group_sample: int = 0, trend_band: Optional[TrendBand] = None) -> SignalAssessment:
        cfg = self.config
        band = trend_band or TrendBand()
        length = max(1, history_length)

        expected = max(cfg.min_expected, round_half_up(length * cfg.rate_for(pattern.group)))
        effective = max(pattern.sample_count, round_half_up(group_sample * cfg.group_blend))
        min_soft = max(cfg.soft_floor, min(cfg.soft_cap, round_half_up(expected * cfg.soft_ratio)))
        min_hard = max(cfg.hard_floor, min(cfg.hard_cap, round_half_up(expected * cfg.hard_ratio)))

        if effective >= expected * cfg.level_high_ratio:
            level = "high"
        elif effective >= expected * cfg.soft_ratio:
            level = "medium"
        else:
            level = "low"

        low_sample = effective < min_soft
        very_low_sample = effective < min_hard
        win_rate = pattern.win_rate
        low_win = win_rate is not None and win_rate < self.win_rate_strict

        if pattern.side == BUY:
            trend_filtered = band.level != "strong"
        elif pattern.side == SELL:
            trend_filtered = band.level != "weak"
        else:
            trend_filtered = False

        avg_dd = pattern.avg_drawdown
        drawdown_bad = avg_dd is not None and avg_dd <= cfg.bad_drawdown

        return SignalAssessment(
            pattern=pattern,
            expected=expected,
            min_soft=min_soft,
            min_hard=min_hard,
            effective_sample=effective,
            group_sample=group_sample,
            sample_level=level,
            low_sample=low_sample,
            very_low_sample=very_low_sample,
            low_win=low_win,
            downgraded=(not low_sample) and low_win,
            trend_filtered=trend_filtered,
            drawdown_bad=drawdown_bad
        )

    def assess_all(self, result: BacktestResult, history_length: int,
                   trend_band: Optional[TrendBand] = None) -> Tuple[SignalAssessment, ...]:
        """Assess every pattern of a backtest result, in pattern order."""
        out = []
        for pattern in result.patterns:
            group = result.group(pattern.group)
            group_sample = group.sample_count if group else 0
            out.append(self.assess(pattern, history_length, group_sample, trend_band))
        return tuple(out)

    # =====================
    # Selection
    # =====================

    def tier_of(self, key: str) -> Optional[str]:
        if key in self.config.blocked_keys:
            return None
        if key in self.config.primary_keys:
            return PRIMARY
        if key in self.config.secondary_keys:
            return SECONDARY
        return None

    def score(self, pattern: PatternSample) -> float:
        cfg = self.config
        win = pattern.win_rate or 0.0
        avg = pattern.avg_return or 0.0
        dd = abs(pattern.avg_drawdown) if pattern.avg_drawdown is not None else cfg.missing_drawdown
        raw = win * cfg.win_weight + avg * cfg.return_weight - dd * cfg.drawdown_weight
        return raw * cfg.multiplier_for(pattern.group)

    def _usable(self, a: SignalAssessment, tier: str) -> bool:
        if a.downgraded or a.trend_filtered:
            return False
        if tier == PRIMARY and a.very_low_sample:
            return False
        if tier == SECONDARY and a.effective_sample < max(self.config.hard_floor, a.min_hard):
            return False
        return a.pattern.win_rate is not None

    def select_best(self, assessments: Sequence[SignalAssessment]) -> Optional[BestSignal]:
        """
        Pick the best buy and best sell from the highest non-empty tier and
        return whichever scores higher (buy wins ties). None when nothing is eligible.
        """
        pools: Dict[str, List[SignalAssessment]] = {PRIMARY: [], SECONDARY: []}
        for a in assessments:
            tier = self.tier_of(a.key)
            if tier and self._usable(a, tier):
                pools[tier].append(a)

        tier = PRIMARY if pools[PRIMARY] else SECONDARY
        pool = pools[tier]
        if not pool:
            logger.debug("Signal gate: no eligible signal")
            return None

        best_buy = self._best_of([a for a in pool if a.side == BUY])
        best_sell = self._best_of([a for a in pool if a.side == SELL])
        if best_buy and best_sell:
            chosen = best_buy if self.score(best_buy.pattern) >= self.score(best_sell.pattern) else best_sell
        else:
            chosen = best_buy or best_sell

        logger.debug(f"Signal gate: best {chosen.key} ({tier})")
        return BestSignal(assessment=chosen, tier=tier, score=self.score(chosen.pattern))

    def _best_of(self, items: List[SignalAssessment]) -> Optional[SignalAssessment]:
        if not items:
            return None
        # Stable sort: score first, then average return
        ranked = sorted(items, key=lambda a: (self.score(a.pattern), a.pattern.avg_return or 0.0), reverse=True)
        return ranked[0]
