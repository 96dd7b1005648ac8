"""
Risk / Performance Statistics
=============================
Annualized return, volatility, Sharpe ratio, drawdown and hit rate of a NAV series.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional, Sequence

import numpy as np
import logging

from ..features.indicators import StatisticalFeatures

logger = logging.getLogger(__name__)


class RiskLevel(Enum):
    """Drawdown-based risk level."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def risk_level_for(mdd: Optional[float], low: float = 0.15, high: float = 0.3) -> Optional[RiskLevel]:
    """Bucket a max drawdown magnitude into a risk level."""
    if mdd is None:
        return None
    if mdd < low:
        return RiskLevel.LOW
    if mdd < high:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


@dataclass(frozen=True)
class PerformanceStats:
    """Risk and performance summary. ``None`` marks an undefined statistic."""
    ann_return: Optional[float] = None
    ann_vol: Optional[float] = None
    sharpe: Optional[float] = None
    mdd: Optional[float] = None
    win_rate: Optional[float] = None
    recent30: Optional[float] = None
    recent30_insufficient: bool = True
    insufficient: bool = True
    risk_level: Optional[RiskLevel] = None
    points: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data['risk_level'] = self.risk_level.value if self.risk_level else None
        return data


def compute_performance(values: Sequence[float], min_perf_days: int = 60,
                        thresholds=None, recent_days: int = 30,
                        min_points: int = 5) -> PerformanceStats:
    """
    Compute risk/performance statistics.

    Fewer than ``min_points`` values gives an all-undefined result flagged
    insufficient. Below ``min_perf_days`` the statistics are still computed
    but ``insufficient`` stays set.
    """
    arr = np.asarray(values, dtype=float)
    n = len(arr)
    if n < min_points:
        logger.debug(f"Performance: only {n} points")
        return PerformanceStats(points=n)

    sf = StatisticalFeatures
    returns = np.diff(arr) / arr[:-1]
    ann_return = sf.annualized_return(arr)
    ann_vol = sf.annualized_vol(returns)
    sharpe = sf.sharpe_ratio(ann_return, ann_vol)
    mdd = sf.max_drawdown(arr)
    win_rate = float((returns > 0).sum() / len(returns))

    if n >= recent_days:
        anchor = arr[-recent_days]
    else:
        anchor = arr[0]
    recent30 = float((arr[-1] - anchor) / anchor)

    low = thresholds.drawdown_low if thresholds else 0.15
    high = thresholds.drawdown_high if thresholds else 0.3

    return PerformanceStats(
        ann_return=ann_return,
        ann_vol=ann_vol,
        sharpe=sharpe,
        mdd=mdd,
        win_rate=win_rate,
        recent30=recent30,
        recent30_insufficient=n < recent_days,
        insufficient=n < min_perf_days,
        risk_level=risk_level_for(mdd, low, high),
        points=n
    )
