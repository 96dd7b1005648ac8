"""
Structural Pattern Detector
===========================
Pivot / stroke / center analysis of a raw NAV series.

Pipeline (each stage returns a new immutable tuple):
    points -> find_pivots -> build_strokes -> build_centers
    (strokes, last center) -> classify_signals, stroke_trend

The result can be blended into the synthesizer's action with merge_structure.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import logging

from ..data.models import PricePoint
from ..decision.synthesizer import Action
from ..features.indicators import round_half_up
from ..fund_type import FundType, is_index_like

logger = logging.getLogger(__name__)


TOP = "top"
BOTTOM = "bottom"
UP = "up"
DOWN = "down"
SIDEWAYS = "sideways"


@dataclass(frozen=True)
class Pivot:
    """Local extreme of the series."""
    index: int
    date: str
    price: float
    kind: str

    def to_dict(self) -> dict:
        return {'index': self.index, 'date': self.date, 'price': self.price, 'kind': self.kind}


@dataclass(frozen=True)
class Stroke:
    """Directional move between two confirmed pivots."""
    start: Pivot
    end: Pivot
    direction: str

    @property
    def length(self) -> float:
        return abs(self.end.price - self.start.price)

    def to_dict(self) -> dict:
        return {'start': self.start.to_dict(), 'end': self.end.to_dict(), 'direction': self.direction}


@dataclass(frozen=True)
class Center:
    """Consolidation range spanned by three consecutive strokes."""
    stroke_index: int
    high: float
    low: float

    @property
    def midpoint(self) -> float:
        return (self.high + self.low) / 2

    @property
    def range(self) -> float:
        return self.high - self.low

    def to_dict(self) -> dict:
        return {'stroke_index': self.stroke_index, 'high': self.high, 'low': self.low,
                'midpoint': self.midpoint, 'range': self.range}


@dataclass(frozen=True)
class StructureSignal:
    kind: str
    side: str
    strength: str
    date: str

    def to_dict(self) -> dict:
        return {'kind': self.kind, 'side': self.side, 'strength': self.strength, 'date': self.date}


@dataclass(frozen=True)
class StructureTrend:
    direction: str = SIDEWAYS
    strength: int = 0
    completion: int = 0

    def to_dict(self) -> dict:
        return {'direction': self.direction, 'strength': self.strength, 'completion': self.completion}


@dataclass(frozen=True)
class StructureAnalysis:
    strokes: Tuple[Stroke, ...] = ()
    centers: Tuple[Center, ...] = ()
    signals: Tuple[StructureSignal, ...] = ()
    trend: StructureTrend = field(default_factory=StructureTrend)
    price_position: str = "unknown"

    @property
    def last_center(self) -> Optional[Center]:
        return self.centers[-1] if self.centers else None

    def signal_kinds(self) -> List[str]:
        return [s.kind for s in self.signals]

    def to_dict(self) -> dict:
        return {
            'strokes': [s.to_dict() for s in self.strokes],
            'centers': [c.to_dict() for c in self.centers],
            'signals': [s.to_dict() for s in self.signals],
            'trend': self.trend.to_dict(),
            'last_center': self.last_center.to_dict() if self.last_center else None,
            'price_position': self.price_position
        }


@dataclass(frozen=True)
class StructureMerge:
    """Structural overlay on the base action."""
    action: Action
    weight_base: float
    weight_structure: float
    confidence_boost: float
    buy_signals: Tuple[StructureSignal, ...] = ()
    sell_signals: Tuple[StructureSignal, ...] = ()
    is_index_like: bool = False

    def to_dict(self) -> dict:
        return {
            'action': self.action.value,
            'weight_base': self.weight_base,
            'weight_structure': self.weight_structure,
            'confidence_boost': self.confidence_boost,
            'buy_signals': [s.to_dict() for s in self.buy_signals],
            'sell_signals': [s.to_dict() for s in self.sell_signals],
            'is_index_like': self.is_index_like
        }


# =====================
# Stages
# =====================

def find_pivots(points: Sequence[PricePoint]) -> Tuple[Pivot, ...]:
    """3-point test; a flat point can be both a top and a bottom."""
    pivots = []
    for i in range(1, len(points) - 1):
        prev, curr, nxt = points[i - 1].value, points[i].value, points[i + 1].value
        if curr >= prev and curr >= nxt:
            pivots.append(Pivot(i, points[i].date, curr, TOP))
        if curr <= prev and curr <= nxt:
            pivots.append(Pivot(i, points[i].date, curr, BOTTOM))
    return tuple(pivots)


def build_strokes(pivots: Sequence[Pivot], min_gap: int = 5,
                  min_pct: float = 0.01) -> Tuple[Stroke, ...]:
    """
    Fold pivots into strokes.

    A same-kind pivot that is at least as extreme replaces the anchor. An
    opposite-kind pivot far enough away (index gap and relative move) closes
    a stroke and becomes the new anchor, so directions always alternate.
    """
    strokes = []
    anchor: Optional[Pivot] = None
    for p in pivots:
        if anchor is None:
            anchor = p
            continue
        if p.kind == anchor.kind:
            if (p.kind == TOP and p.price >= anchor.price) or (p.kind == BOTTOM and p.price <= anchor.price):
                anchor = p
            continue
        gap = p.index - anchor.index
        pct = abs(p.price - anchor.price) / max(1e-6, anchor.price)
        if gap >= min_gap and pct >= min_pct:
            strokes.append(Stroke(anchor, p, UP if p.kind == TOP else DOWN))
            anchor = p
    return tuple(strokes)


def build_centers(strokes: Sequence[Stroke]) -> Tuple[Center, ...]:
    """One candidate center per window of three consecutive strokes."""
    centers = []
    for i in range(2, len(strokes)):
        prices = [price for s in strokes[i - 2:i + 1] for price in (s.start.price, s.end.price)]
        high = max(prices)
        low = min(prices)
        if low <= high:
            centers.append(Center(stroke_index=i, high=high, low=low))
    return tuple(centers)


def classify_signals(strokes: Sequence[Stroke], center: Optional[Center],
                     near: float = 0.01, breakout: float = 0.02) -> Tuple[StructureSignal, ...]:
    """Match the last one to three strokes against the last center."""
    if len(strokes) < 3 or center is None:
        return ()
    last, prev, prev2 = strokes[-1], strokes[-2], strokes[-3]
    end = last.end.price
    date = last.end.date

    signals = []
    if last.direction == DOWN and end <= center.low * (1 + near):
        signals.append(StructureSignal("first_buy", "buy", "strong", date))
    if prev.direction == UP and last.direction == DOWN and center.low <= end <= center.midpoint:
        signals.append(StructureSignal("second_buy", "buy", "medium", date))
    if prev2.direction == UP and prev.direction == DOWN and last.direction == UP and end > center.high:
        signals.append(StructureSignal("third_buy", "buy", "medium", date))
    if last.direction == UP and end >= center.high * (1 - near):
        signals.append(StructureSignal("first_sell", "sell", "strong", date))
    if last.direction == UP and end > center.high * (1 + breakout):
        signals.append(StructureSignal("third_sell", "sell", "strong", date))
    return tuple(signals)


def stroke_trend(strokes: Sequence[Stroke], average_window: int = 5) -> StructureTrend:
    """Direction of the last stroke, its size against the previous one and against the recent average."""
    if len(strokes) < 2:
        return StructureTrend()
    first, second = strokes[-2], strokes[-1]
    len1 = first.length
    len2 = second.length
    recent = strokes[-average_window:]
    avg_len = sum(s.length for s in recent) / max(1, min(average_window, len(strokes)))

    strength = min(100, round_half_up(len2 / max(1e-6, len1) * 50))
    completion = min(100, round_half_up(len2 / max(1e-6, avg_len) * 100))
    return StructureTrend(
        direction=second.direction,
        strength=max(0, strength),
        completion=max(0, completion)
    )


def price_position(last_price: Optional[float], center: Optional[Center]) -> str:
    if center is None or last_price is None:
        return "unknown"
    if last_price > center.high:
        return "above"
    if last_price < center.low:
        return "below"
    return "inside"


class StructureDetector:
    """Runs the pivot / stroke / center pipeline with configured tolerances."""

    def __init__(self, config=None):
        from ..config import StructureConfig
        self.config = config or StructureConfig()

    def analyze(self, points: Sequence[PricePoint]) -> StructureAnalysis:
        cfg = self.config
        if len(points) < cfg.min_points:
            return StructureAnalysis()

        pivots = find_pivots(points)
        strokes = build_strokes(pivots, cfg.min_gap, cfg.min_pct)
        centers = build_centers(strokes)
        center = centers[-1] if centers else None

        analysis = StructureAnalysis(
            strokes=strokes,
            centers=centers,
            signals=classify_signals(strokes, center, cfg.near_tolerance, cfg.breakout_tolerance),
            trend=stroke_trend(strokes, cfg.stroke_average_window),
            price_position=price_position(points[-1].value, center)
        )
        logger.debug(f"Structure: {len(pivots)} pivots, {len(strokes)} strokes, "
                     f"{len(centers)} centers, signals={analysis.signal_kinds()}")
        return analysis

    def merge(self, base_action: Action, analysis: StructureAnalysis,
              fund_type: Optional[FundType] = None, fund_name: str = "") -> StructureMerge:
        return merge_structure(base_action, analysis, fund_type, fund_name, self.config)


def merge_structure(base_action: Action, analysis: StructureAnalysis,
                    fund_type: Optional[FundType] = None, fund_name: str = "",
                    config=None) -> StructureMerge:
    """
    Blend structural signals into the base action.

    Agreement between structure and the base action adds a confidence boost;
    any third_sell forces reduce.
    """
    if config is None:
        from ..config import StructureConfig
        config = StructureConfig()

    index_like = is_index_like(fund_type, fund_name)
    weight_base = config.index_weight_base if index_like else config.weight_base
    weight_structure = config.index_weight_structure if index_like else config.weight_structure

    buys = tuple(s for s in analysis.signals if s.side == "buy")
    sells = tuple(s for s in analysis.signals if s.side == "sell")

    boost = 0.0
    if buys and base_action == Action.ACCUMULATE:
        boost = config.confidence_boost
    if sells and base_action == Action.REDUCE:
        boost = config.confidence_boost

    action = base_action
    if any(s.kind == "third_sell" for s in sells):
        action = Action.REDUCE

    return StructureMerge(
        action=action,
        weight_base=weight_base,
        weight_structure=weight_structure,
        confidence_boost=boost,
        buy_signals=buys,
        sell_signals=sells,
        is_index_like=index_like
    )
