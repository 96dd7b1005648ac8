"""
Valuation Explainer
===================
Classifies the latest value of a series as cheap, neutral or expensive
relative to its own history and explains the call.
"""

import math
from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import Optional, Sequence

import numpy as np
import pandas as pd
import logging

from .indicators import StatisticalFeatures

logger = logging.getLogger(__name__)


CHEAP = "cheap"
NEUTRAL = "neutral"
EXPENSIVE = "expensive"


@dataclass(frozen=True)
class ValuationExplain:
    """Valuation level and the metrics behind it."""
    level: str = NEUTRAL
    label: str = "valuation neutral"
    position: Optional[float] = None
    z: Optional[float] = None
    drawdown: Optional[float] = None
    percentile: Optional[float] = None
    band: Optional[float] = None
    premium: Optional[float] = None
    action: str = "wait and see"
    trend_filter: str = "trend neutral"
    explain: str = ""
    estimate_days: Optional[int] = None
    estimate_date: Optional[str] = None

    @property
    def is_cheap(self) -> bool:
        return self.level == CHEAP

    @property
    def is_expensive(self) -> bool:
        return self.level == EXPENSIVE

    def to_dict(self) -> dict:
        return asdict(self)


def local_today(tz: str = "Asia/Shanghai") -> date:
    """Current calendar date in the market timezone."""
    return pd.Timestamp.now(tz=tz).date()


class ValuationExplainer:
    """
    Rule-based valuation classifier.

    Five measures are computed from the series: min-max position, full-series
    z-score, drawdown from the trailing peak, rank percentile and a rolling
    band z-score. The first matching rule wins, expensive before cheap.
    """

    def __init__(self, thresholds=None, timezone: str = "Asia/Shanghai"):
        from ..config import ThresholdConfig
        self.thresholds = thresholds or ThresholdConfig()
        self.timezone = timezone

    def explain(self, values: Sequence[float], trend_score: Optional[float] = None,
                premium: Optional[float] = None,
                today: Optional[date] = None) -> ValuationExplain:
        arr = np.asarray(values, dtype=float)
        if len(arr) == 0 or not np.isfinite(arr[-1]):
            return ValuationExplain(premium=premium)

        t = self.thresholds
        last = float(arr[-1])
        low = float(arr.min())
        high = float(arr.max())
        mean = float(arr.mean())
        sd = StatisticalFeatures.std_simple(arr)

        position = 0.5 if high == low else (last - low) / (high - low)
        z = (last - mean) / sd if sd > 0 else 0.0

        peak = float(arr[-t.valuation_peak_window:].max())
        drawdown = (last - peak) / peak if peak else 0.0

        ordered = np.sort(arr)
        rank = int(np.argmax(ordered >= last))
        percentile = rank / max(1, len(ordered) - 1)

        recent = arr[-min(t.band_window, len(arr)):]
        recent_sd = StatisticalFeatures.std_simple(recent)
        band = (last - float(recent.mean())) / recent_sd if recent_sd else 0.0

        # Order matters: conditions overlap
        if (position >= t.high_estimate_pos or z > t.z_high
                or percentile > t.percentile_high or band > t.band_high):
            level, label = EXPENSIVE, "valuation high"
        elif (position <= t.low_estimate_pos or z < t.z_low or drawdown < t.cheap_drawdown
                or percentile < t.percentile_low or band < t.band_low):
            level, label = CHEAP, "valuation low"
        else:
            level, label = NEUTRAL, "valuation neutral"

        score = 50.0 if trend_score is None else trend_score
        if score >= t.trend_filter_strong:
            trend_filter = "trend strong"
        elif score <= t.trend_filter_weak:
            trend_filter = "trend weak"
        else:
            trend_filter = "trend neutral"
        trend_ok = score >= t.trend_ok

        action = "wait and see"
        if level == CHEAP:
            action = "consider adding" if trend_ok else "wait for trend confirmation"
        elif level == EXPENSIVE:
            action = "valuation high but trend strong, reduce cautiously" if trend_ok else "consider reducing"

        estimate_days = self._estimate_days(arr, last, mean)
        estimate_date = None
        if estimate_days is not None:
            base = today or local_today(self.timezone)
            estimate_date = (base + timedelta(days=estimate_days)).isoformat()

        explain = f"percentile {percentile * 100:.1f}% / position {position * 100:.1f}% / {trend_filter}"
        logger.debug(f"Valuation {level}: pos={position:.3f} z={z:.3f} pct={percentile:.3f} band={band:.3f}")

        return ValuationExplain(
            level=level,
            label=label,
            position=position,
            z=z,
            drawdown=drawdown,
            percentile=percentile,
            band=band,
            premium=premium,
            action=action,
            trend_filter=trend_filter,
            explain=explain,
            estimate_days=estimate_days,
            estimate_date=estimate_date
        )

    def _estimate_days(self, arr: np.ndarray, last: float, mean: float) -> Optional[int]:
        """Rough sessions needed to revert to MA20 (or the mean) at the average daily pace."""
        t = self.thresholds
        with np.errstate(divide='ignore', invalid='ignore'):
            rets = np.where(arr[:-1] != 0, np.diff(arr) / arr[:-1], 0.0)
        rets = rets[np.isfinite(rets)]
        avg_abs = float(np.abs(rets).mean()) if len(rets) else 0.0
        if avg_abs <= 0:
            return None

        target = float(arr[-20:].mean()) if len(arr) >= 20 else mean
        gap = abs(target - last) / max(1e-6, last)
        raw_days = math.ceil(gap / max(avg_abs, t.min_abs_return))
        return max(t.reversion_days_min, min(t.reversion_days_max, raw_days))
