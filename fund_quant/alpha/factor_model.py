"""
Quant Multi-Factor Scorer
=========================
Eight factor scores on a 0-100 scale combined into one composite.

Factors:
- trend: valuation position plus MA5/MA20/MA60 ordering
- oversold: low position and a depressed RSI6
- sentiment: positive-day share, volatility against target, trend ordering
- risk: volatility and drawdown against target, manager commitment penalty
- fund_flow: 21-session momentum and intraday premium
- liquidity: held neutral
- consistency: agreement of published NAV change and intraday estimate change
- linkage: correlation of daily returns with a benchmark index

Weights are tilted towards the factors that score higher and renormalized.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import logging

from ..features.indicators import TechnicalIndicators, StatisticalFeatures, clamp
from ..data.models import PricePoint, IndexPoint

logger = logging.getLogger(__name__)


FACTOR_LABELS = {
    'trend': 'Trend',
    'oversold': 'Oversold',
    'sentiment': 'Sentiment',
    'risk': 'Risk',
    'fund_flow': 'Fund flow',
    'liquidity': 'Liquidity',
    'consistency': 'Consistency',
    'linkage': 'Index linkage'
}

FACTOR_KEYS = tuple(FACTOR_LABELS)

NO_SIGNAL = "no clear signal"


@dataclass(frozen=True)
class FactorScore:
    """Single normalized factor score."""
    key: str
    label: str
    value: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class QuantMetrics:
    """Scorer output: factor scores, applied weights and supporting indicators."""
    last: float
    factors: Tuple[FactorScore, ...]
    applied_weights: Dict[str, float]
    base_weights: Dict[str, float]
    composite: float

    last_rsi: float = 50.0
    last_rsi6: float = 50.0
    macd: float = 0.0
    macd_signal: float = 0.0
    macd_hist: float = 0.0
    kdj_k: Optional[float] = None
    kdj_d: Optional[float] = None
    kdj_j: Optional[float] = None
    bb_pos: float = 0.5
    vol: float = 0.0
    ann_vol: float = 0.0
    var5: float = 0.0
    mdd: float = 0.0
    grid_pos: float = 0.0
    td_up: int = 0
    td_down: int = 0

    reversal_label: str = NO_SIGNAL
    swing_label: str = NO_SIGNAL
    drawdown_label: str = NO_SIGNAL

    confidence: str = "low"
    short_history: bool = True
    insufficient_data: bool = False

    def factor(self, key: str) -> float:
        for f in self.factors:
            if f.key == key:
                return f.value
        return 50.0

    @property
    def trend_score(self) -> float:
        return self.factor('trend')

    def to_dict(self) -> dict:
        data = asdict(self)
        data['factors'] = [f.to_dict() for f in self.factors]
        return data


class QuantScorer:
    """Multi-factor scorer over a NAV series."""

    def __init__(self, config=None):
        from ..config import EngineConfig
        self.config = config or EngineConfig()

    def score(self, values: Sequence[float],
              history: Optional[Sequence[PricePoint]] = None,
              index_history: Optional[Sequence[IndexPoint]] = None,
              premium: Optional[float] = 0.0,
              quant_key: str = "equity",
              nav_change_pct: Optional[float] = None,
              estimate_change_pct: Optional[float] = None,
              manager_commitment: Optional[str] = None) -> QuantMetrics:
        """
        Score a NAV series.

        Args:
            values: metric window of NAV values, oldest first
            history: long dated history used to align with the benchmark
            index_history: benchmark closes for the linkage factor
            premium: intraday estimate premium over the last NAV
            quant_key: 'bond', 'equity' or 'qdii' (volatility target)
            nav_change_pct / estimate_change_pct: last published and estimated change, in percent
            manager_commitment: 'low', 'medium' or None

        Returns:
            QuantMetrics
        """
        arr = np.asarray([v for v in values if v is not None and math.isfinite(v)], dtype=float)
        ind = self.config.indicators

        if len(arr) < ind.min_rsi_days:
            logger.debug(f"Scorer: {len(arr)} points < {ind.min_rsi_days}, neutral result")
            return self._neutral(arr)

        quant = self.config.quant
        ti = TechnicalIndicators
        sf = StatisticalFeatures

        returns = sf.daily_returns(arr)
        last = float(arr[-1])

        # 1. Moving averages and oscillators
        ma5 = ti.sma(arr, 5)
        ma20 = ti.sma(arr, 20)
        ma60 = ti.sma(arr, 60)
        rsi6 = ti.rsi(arr, ind.rsi_fast_period)
        rsi14 = ti.rsi(arr, ind.rsi_period)

        last_ma5 = float(ma5[-1]) if len(ma5) else last
        last_ma20 = float(ma20[-1]) if len(ma20) else last
        last_ma60 = float(ma60[-1]) if len(ma60) else last_ma20
        last_rsi = float(rsi14[-1]) if len(rsi14) else 50.0
        last_rsi6 = float(rsi6[-1]) if len(rsi6) else last_rsi

        macd = ti.macd(arr)
        last_macd = float(macd['macd'][-1]) if len(macd['macd']) else 0.0
        last_signal = float(macd['macd_signal'][-1]) if len(macd['macd_signal']) else 0.0
        last_hist = float(macd['macd_hist'][-1]) if len(macd['macd_hist']) else 0.0
        kdj = ti.kdj(arr)
        bb_pos = ti.bollinger_position(arr)

        # 2. Risk statistics
        vol = sf.std_simple(returns) if len(returns) else 0.0
        ann_vol = vol * math.sqrt(252) if vol else 0.0
        var5 = sf.historical_var(returns)
        mdd = sf.max_drawdown(arr)
        low = float(arr.min())
        high = float(arr.max())
        grid_pos = (last - low) / ((high - low) or 1)

        # 3. Factor scores
        valuation_pos = 50.0 if high == low else (last - low) / (high - low) * 100
        trend_strength = int(last_ma5 > last_ma20) + int(last_ma20 > last_ma60) + int(last > last_ma5)
        trend = clamp(50 + 0.4 * (valuation_pos - 50) + 12 * trend_strength)
        oversold = clamp(0.6 * (100 - valuation_pos) + 2 * (50 - last_rsi6))

        win_rate = sf.win_rate(returns)
        target_vol = quant.target_vol_for(quant_key)
        sentiment = clamp(win_rate * 60
                          + (1 - min(ann_vol / (target_vol * 2), 1)) * 25
                          + (trend_strength / 3) * 15)

        penalty = quant.manager_penalty.get(manager_commitment, 0) if manager_commitment else 0
        vol_norm = min(ann_vol / (target_vol * 1.6), 1) if ann_vol else 0.0
        mdd_norm = min(mdd / 0.3, 1)
        risk = clamp(100 - vol_norm * 45 - mdd_norm * 45 - penalty)

        momentum = 0.0
        if len(arr) > ind.momentum_days:
            anchor = float(arr[-ind.momentum_days])
            momentum = (last - anchor) / anchor
        fund_flow = clamp(50 + momentum * 200 + (premium or 0.0) * 200)

        liquidity = 50.0

        if nav_change_pct is not None and estimate_change_pct is not None:
            consistency = clamp(100 - abs(nav_change_pct - estimate_change_pct) * 25)
        else:
            consistency = float(quant.consistency_default)

        linkage = self._linkage(history, index_history)

        scores = {
            'trend': trend,
            'oversold': oversold,
            'sentiment': sentiment,
            'risk': risk,
            'fund_flow': fund_flow,
            'liquidity': liquidity,
            'consistency': consistency,
            'linkage': 50.0 if linkage is None else linkage
        }

        # 4. Tilt weights and combine
        weights = self.config.factors.apply(scores)
        composite = sum(scores[k] * weights.get(k, 0.0) for k in scores)

        td_up, td_down = ti.trailing_runs(arr, 10)
        confidence = 'high' if len(arr) >= ind.min_signal_days else 'medium' if len(arr) >= 30 else 'low'

        logger.debug(f"Scorer: composite={composite:.2f} trend={trend:.1f} risk={risk:.1f} rsi={last_rsi:.1f}")

        return QuantMetrics(
            last=last,
            factors=self._factor_tuple(scores),
            applied_weights=weights,
            base_weights=dict(self.config.factors.base),
            composite=composite,
            last_rsi=last_rsi,
            last_rsi6=last_rsi6,
            macd=last_macd,
            macd_signal=last_signal,
            macd_hist=last_hist,
            kdj_k=kdj['k'],
            kdj_d=kdj['d'],
            kdj_j=kdj['j'],
            bb_pos=bb_pos,
            vol=vol,
            ann_vol=ann_vol,
            var5=var5,
            mdd=mdd,
            grid_pos=grid_pos,
            td_up=td_up,
            td_down=td_down,
            reversal_label=self._reversal_label(returns),
            swing_label="bullish bias" if (last_ma20 > last_ma60 and last_rsi > 50) else "bearish or range",
            drawdown_label="deep drawdown, bottom-fishing window" if mdd > 0.15 else "drawdown contained",
            confidence=confidence,
            short_history=len(arr) < ind.min_signal_days,
            insufficient_data=False
        )

    def _neutral(self, arr: np.ndarray) -> QuantMetrics:
        scores = {key: 50.0 for key in FACTOR_KEYS}
        weights = self.config.factors.apply(scores)
        return QuantMetrics(
            last=float(arr[-1]) if len(arr) else 0.0,
            factors=self._factor_tuple(scores),
            applied_weights=weights,
            base_weights=dict(self.config.factors.base),
            composite=50.0,
            mdd=StatisticalFeatures.max_drawdown(arr),
            confidence='low',
            short_history=True,
            insufficient_data=True
        )

    def _linkage(self, history, index_history) -> Optional[float]:
        """Return-correlation score against the benchmark on date-aligned points."""
        ind = self.config.indicators
        if not history or not index_history:
            return None
        if len(index_history) < ind.linkage_min_points or len(history) < ind.linkage_min_points:
            return None

        closes = {p.date: p.close for p in index_history}
        aligned = [p for p in history if p.date in closes][-ind.linkage_window:]
        if len(aligned) < ind.linkage_min_points:
            return None

        fund_ret = StatisticalFeatures.daily_returns([p.value for p in aligned])
        index_ret = StatisticalFeatures.daily_returns([closes[p.date] for p in aligned])
        corr = StatisticalFeatures.correlation(fund_ret, index_ret)
        if corr is None or not math.isfinite(corr):
            return None
        return clamp((corr + 1) * 50)

    @staticmethod
    def _reversal_label(returns: np.ndarray) -> str:
        """Four moves one way followed by a move the other way."""
        if len(returns) < 5:
            return NO_SIGNAL
        run, last = returns[-5:-1], returns[-1]
        if (run > 0).all() and last < 0:
            return "weakening after a run-up"
        if (run < 0).all() and last > 0:
            return "rebound after a run-down"
        return NO_SIGNAL

    @staticmethod
    def _factor_tuple(scores: Dict[str, float]) -> Tuple[FactorScore, ...]:
        return tuple(FactorScore(key=k, label=FACTOR_LABELS[k], value=float(scores[k])) for k in FACTOR_KEYS)
