"""
Unified Pattern Backtest
========================
Single forward scan over a NAV series that grades seven pattern families by
their forward return over a fixed lookahead.

The scan is a fold: an immutable ScanState is threaded through one step per
index, and each pattern family is a small function of (context, state, index)
that returns the PatternHits it emits at that index.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import logging

from ..features.indicators import TechnicalIndicators

logger = logging.getLogger(__name__)


BUY = "buy"
SELL = "sell"

# Pattern group names
VALUATION = "valuation"
DRAWDOWN = "drawdown"
RUN_LENGTH = "run_length"
SWING = "swing"
RSI = "rsi"
TREND = "trend"
OTHER = "other"

VOTING_GROUPS = (VALUATION, DRAWDOWN, RUN_LENGTH, SWING, RSI, TREND)


def band_strength(gap: float) -> str:
    """Strength tier of the MA20/MA60 gap."""
    if abs(gap) >= 0.03:
        return "strong"
    if abs(gap) >= 0.015:
        return "medium"
    return "weak"


# =====================
# Samples and results
# =====================

@dataclass(frozen=True)
class _SampleStats:
    sample_count: int = 0
    win_count: int = 0
    cumulative_return: float = 0.0
    cumulative_drawdown: float = 0.0

    @property
    def win_rate(self) -> Optional[float]:
        return self.win_count / self.sample_count if self.sample_count else None

    @property
    def avg_return(self) -> Optional[float]:
        return self.cumulative_return / self.sample_count if self.sample_count else None

    @property
    def avg_drawdown(self) -> Optional[float]:
        return self.cumulative_drawdown / self.sample_count if self.sample_count else None

    def _stats_dict(self) -> dict:
        return {
            'sample_count': self.sample_count,
            'win_count': self.win_count,
            'win_rate': self.win_rate,
            'avg_return': self.avg_return,
            'avg_drawdown': self.avg_drawdown
        }


@dataclass(frozen=True)
class PatternSample(_SampleStats):
    """Aggregated forward outcomes for one pattern key."""
    key: str = ""
    side: str = BUY
    group: str = OTHER
    rule: str = ""

    def add(self, ret: float, drawdown: float) -> 'PatternSample':
        win = (self.side == BUY and ret > 0) or (self.side == SELL and ret < 0)
        return replace(
            self,
            sample_count=self.sample_count + 1,
            win_count=self.win_count + int(win),
            cumulative_return=self.cumulative_return + ret,
            cumulative_drawdown=self.cumulative_drawdown + drawdown
        )

    def to_dict(self) -> dict:
        return {'key': self.key, 'side': self.side, 'group': self.group, 'rule': self.rule,
                **self._stats_dict()}


@dataclass(frozen=True)
class GroupSample(_SampleStats):
    """Sum of the member pattern samples of one group."""
    group: str = OTHER

    def absorb(self, sample: PatternSample) -> 'GroupSample':
        return replace(
            self,
            sample_count=self.sample_count + sample.sample_count,
            win_count=self.win_count + sample.win_count,
            cumulative_return=self.cumulative_return + sample.cumulative_return,
            cumulative_drawdown=self.cumulative_drawdown + sample.cumulative_drawdown
        )

    def to_dict(self) -> dict:
        return {'group': self.group, **self._stats_dict()}


@dataclass(frozen=True)
class BacktestResult:
    """Per-pattern samples (in first-emission order) and group roll-ups."""
    patterns: Tuple[PatternSample, ...] = ()
    groups: Dict[str, GroupSample] = field(default_factory=dict)
    min_sample: int = 0
    lookahead: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.patterns

    def pattern(self, key: str) -> Optional[PatternSample]:
        for p in self.patterns:
            if p.key == key:
                return p
        return None

    def group(self, name: str) -> Optional[GroupSample]:
        return self.groups.get(name)

    def to_dict(self) -> dict:
        return {
            'patterns': [p.to_dict() for p in self.patterns],
            'groups': {k: g.to_dict() for k, g in self.groups.items()},
            'min_sample': self.min_sample,
            'lookahead': self.lookahead
        }


# =====================
# Scan fold
# =====================

@dataclass(frozen=True)
class PatternHit:
    """A pattern trigger emitted at one index."""
    key: str
    side: str
    group: str
    rule: str


@dataclass(frozen=True)
class ScanState:
    """Counters carried from one index to the next."""
    up_run: int = 0
    down_run: int = 0
    peak: float = 0.0
    last_trend_tag: Optional[str] = None


@dataclass(frozen=True)
class ScanContext:
    """Indicator series precomputed once for the scan."""
    values: np.ndarray
    ma20: np.ndarray
    ma60: np.ndarray
    rsi14: np.ndarray
    low: float
    high: float

    def _at(self, series: np.ndarray, i: int) -> Optional[float]:
        idx = i - (len(self.values) - len(series))
        if 0 <= idx < len(series):
            return float(series[idx])
        return None

    def ma20_at(self, i: int) -> Optional[float]:
        return self._at(self.ma20, i)

    def ma60_at(self, i: int) -> Optional[float]:
        return self._at(self.ma60, i)

    def rsi_at(self, i: int) -> Optional[float]:
        return self._at(self.rsi14, i)


NINE_TURN_SELL = PatternHit("nine_turn_sell", SELL, RUN_LENGTH, "up run >= 9")
NINE_TURN_BUY = PatternHit("nine_turn_buy", BUY, RUN_LENGTH, "down run >= 9")
REVERSAL_UP = PatternHit("reversal_up", BUY, OTHER, "up day after >= 3 down days")
REVERSAL_DOWN = PatternHit("reversal_down", SELL, OTHER, "down day after >= 3 up days")
DRAWDOWN_BUY = PatternHit("drawdown_buy", BUY, DRAWDOWN, "drawdown <= -10% from running peak")
SWING_LONG = PatternHit("swing_long", BUY, SWING, "MA20 crosses above MA60")
SWING_SHORT = PatternHit("swing_short", SELL, SWING, "MA20 crosses below MA60")
RSI_OVERSOLD = PatternHit("rsi_oversold", BUY, RSI, "RSI14 <= 30")
RSI_OVERBOUGHT = PatternHit("rsi_overbought", SELL, RSI, "RSI14 >= 70")
VALUATION_LOW = PatternHit("valuation_low", BUY, VALUATION, "range position <= 20%")
VALUATION_HIGH = PatternHit("valuation_high", SELL, VALUATION, "range position >= 80%")


def advance(state: ScanState, v: float, prev: float) -> ScanState:
    """Update run counters and the running peak for value ``v``."""
    up_run, down_run = state.up_run, state.down_run
    if v > prev:
        up_run, down_run = up_run + 1, 0
    elif v < prev:
        up_run, down_run = 0, down_run + 1
    return replace(state, up_run=up_run, down_run=down_run, peak=max(state.peak, v))


def run_length_hits(state: ScanState) -> List[PatternHit]:
    hits = []
    if state.up_run >= 9:
        hits.append(NINE_TURN_SELL)
    if state.down_run >= 9:
        hits.append(NINE_TURN_BUY)
    return hits


def reversal_hits(prior: ScanState, v: float, prev: float) -> List[PatternHit]:
    """Counts of the run that ended before this index."""
    hits = []
    if prior.down_run >= 3 and v > prev:
        hits.append(REVERSAL_UP)
    if prior.up_run >= 3 and v < prev:
        hits.append(REVERSAL_DOWN)
    return hits


def drawdown_hits(state: ScanState, v: float) -> List[PatternHit]:
    dd = (v - state.peak) / state.peak if state.peak else 0.0
    return [DRAWDOWN_BUY] if dd <= -0.1 else []


def swing_hits(ctx: ScanContext, i: int) -> List[PatternHit]:
    """Strict MA20/MA60 cross against the prior day's averages."""
    ma20, ma60 = ctx.ma20_at(i), ctx.ma60_at(i)
    prev20, prev60 = ctx.ma20_at(i - 1), ctx.ma60_at(i - 1)
    if None in (ma20, ma60, prev20, prev60):
        return []
    hits = []
    if prev20 <= prev60 and ma20 > ma60:
        hits.append(SWING_LONG)
    if prev20 >= prev60 and ma20 < ma60:
        hits.append(SWING_SHORT)
    return hits


def rsi_hits(ctx: ScanContext, i: int) -> List[PatternHit]:
    value = ctx.rsi_at(i)
    if value is None:
        return []
    hits = []
    if value <= 30:
        hits.append(RSI_OVERSOLD)
    if value >= 70:
        hits.append(RSI_OVERBOUGHT)
    return hits


def valuation_hits(ctx: ScanContext, v: float) -> List[PatternHit]:
    pos = 0.5 if ctx.high == ctx.low else (v - ctx.low) / (ctx.high - ctx.low)
    hits = []
    if pos <= 0.2:
        hits.append(VALUATION_LOW)
    if pos >= 0.8:
        hits.append(VALUATION_HIGH)
    return hits


def trend_band_step(ctx: ScanContext, state: ScanState, i: int,
                    v: float) -> Tuple[List[PatternHit], ScanState]:
    """Emit a trend-band sample only when the band tag changes."""
    ma20, ma60 = ctx.ma20_at(i), ctx.ma60_at(i)
    if ma20 is None or ma60 is None:
        return [], state
    prev20 = ctx.ma20_at(i - 1)
    slope = (ma20 - prev20) / max(1e-6, prev20) if prev20 is not None else 0.0
    gap = (ma20 - ma60) / max(1e-6, ma60)
    bull = v > ma20 > ma60 and slope > 0
    bear = v < ma20 < ma60 and slope < 0
    if not (bull or bear):
        return [], state

    strength = band_strength(gap)
    tag = f"uptrend_band_{strength}" if bull else f"downtrend_band_{strength}"
    if tag == state.last_trend_tag:
        return [], state
    hit = PatternHit(tag, BUY if bull else SELL, TREND, "trend band change")
    return [hit], replace(state, last_trend_tag=tag)


class PatternBacktester:
    """
    Unified pattern backtest.

    Each emitted hit at index i is graded by the forward return
    (v[i+L] - v[i]) / v[i] and the forward adverse excursion
    (min(v[i..i+L]) - v[i]) / v[i].
    """

    def __init__(self, lookahead: int = 20, min_sample: int = 20):
        self.lookahead = lookahead
        self.min_sample = min_sample

    def run(self, values: Sequence[float]) -> BacktestResult:
        arr = np.asarray([v for v in values if v is not None and np.isfinite(v)], dtype=float)
        n = len(arr)
        L = self.lookahead
        if n < max(60, L + 10):
            logger.debug(f"Backtest skipped: {n} points < {max(60, L + 10)}")
            return BacktestResult(min_sample=self.min_sample, lookahead=L)

        ctx = ScanContext(
            values=arr,
            ma20=TechnicalIndicators.sma(arr, 20),
            ma60=TechnicalIndicators.sma(arr, 60),
            rsi14=TechnicalIndicators.rsi(arr, 14),
            low=float(arr.min()),
            high=float(arr.max())
        )

        samples: Dict[str, PatternSample] = {}
        for i, hits in self._scan(ctx):
            v = arr[i]
            ret = float((arr[i + L] - v) / v)
            drawdown = float((arr[i:i + L + 1].min() - v) / v) if v else 0.0
            for hit in hits:
                current = samples.get(hit.key)
                if current is None:
                    current = PatternSample(key=hit.key, side=hit.side, group=hit.group, rule=hit.rule)
                samples[hit.key] = current.add(ret, drawdown)

        patterns = tuple(samples.values())
        groups: Dict[str, GroupSample] = {}
        for p in patterns:
            groups[p.group] = groups.get(p.group, GroupSample(group=p.group)).absorb(p)

        logger.debug(f"Backtest: {len(patterns)} patterns, {sum(p.sample_count for p in patterns)} samples")
        return BacktestResult(patterns=patterns, groups=groups,
                              min_sample=self.min_sample, lookahead=L)

    def _scan(self, ctx: ScanContext):
        """Yield (index, hits) for every scanned index."""
        values = ctx.values
        state = ScanState(peak=float(values[0]))
        for i in range(4, len(values) - self.lookahead):
            v = float(values[i])
            prev = float(values[i - 1])
            prior = state
            state = advance(state, v, prev)

            hits = (run_length_hits(state)
                    + reversal_hits(prior, v, prev)
                    + drawdown_hits(state, v)
                    + swing_hits(ctx, i)
                    + rsi_hits(ctx, i)
                    + valuation_hits(ctx, v))
            band_hits, state = trend_band_step(ctx, state, i, v)
            yield i, hits + band_hits
