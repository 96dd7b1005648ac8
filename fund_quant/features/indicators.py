"""
Indicator Library
=================
Pure numeric transforms over a chronological value series.

All functions are stateless; sequence outputs are numpy arrays and scalar
outputs are floats, with ``None`` standing for an undefined statistic.
"""

import math
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

TRADING_DAYS = 252


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    """Clamp a score into [low, high]."""
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round .5 towards +infinity (``round`` in Python is banker's rounding)."""
    return int(math.floor(value + 0.5))


def _as_array(values) -> np.ndarray:
    return np.asarray(values, dtype=float)


class TechnicalIndicators:
    """Moving averages and oscillators."""

    @staticmethod
    def sma(values: Sequence[float], period: int) -> np.ndarray:
        """Simple Moving Average (only complete windows)."""
        arr = _as_array(values)
        if period <= 0 or len(arr) < period:
            return np.array([], dtype=float)
        return pd.Series(arr).rolling(window=period).mean().to_numpy()[period - 1:]

    @staticmethod
    def ema(values: Sequence[float], period: int) -> np.ndarray:
        """Exponential Moving Average seeded with the first value."""
        arr = _as_array(values)
        if len(arr) < period:
            return np.array([], dtype=float)
        return pd.Series(arr).ewm(span=period, adjust=False).mean().to_numpy()

    @staticmethod
    def std(values: Sequence[float], period: int) -> np.ndarray:
        """Rolling population standard deviation."""
        arr = _as_array(values)
        if period <= 0 or len(arr) < period:
            return np.array([], dtype=float)
        return pd.Series(arr).rolling(window=period).std(ddof=0).to_numpy()[period - 1:]

    @staticmethod
    def rsi(values: Sequence[float], period: int = 14) -> np.ndarray:
        """
        Relative Strength Index with Wilder smoothing.

        The first average is a plain mean over the first ``period`` changes.
        A zero average loss is replaced by 1, so a series without losses
        saturates at ``100 - 100 / (1 + avg_gain)`` rather than exactly 100.
        """
        arr = _as_array(values)
        if len(arr) < period + 1:
            return np.array([], dtype=float)

        diff = np.diff(arr)
        gains = np.maximum(diff, 0.0)
        losses = np.maximum(-diff, 0.0)

        avg_gain = gains[:period].sum() / period
        avg_loss = losses[:period].sum() / period
        out = [100 - 100 / (1 + avg_gain / (avg_loss or 1))]
        for i in range(period, len(gains)):
            avg_gain = (avg_gain * (period - 1) + gains[i]) / period
            avg_loss = (avg_loss * (period - 1) + losses[i]) / period
            out.append(100 - 100 / (1 + avg_gain / (avg_loss or 1)))
        return np.array(out, dtype=float)

    @staticmethod
    def macd(values: Sequence[float], fast: int = 12, slow: int = 26,
             signal: int = 9) -> Dict[str, np.ndarray]:
        """Moving Average Convergence Divergence."""
        ema_fast = TechnicalIndicators.ema(values, fast)
        ema_slow = TechnicalIndicators.ema(values, slow)
        if len(ema_slow) == 0:
            # Slow line not available yet: line collapses to zero
            macd_line = ema_fast - ema_fast
        else:
            macd_line = ema_fast - ema_slow
        signal_line = TechnicalIndicators.ema(macd_line, signal)
        if len(signal_line):
            histogram = macd_line - signal_line
        else:
            histogram = macd_line.copy()

        return {
            'macd': macd_line,
            'macd_signal': signal_line,
            'macd_hist': histogram
        }

    @staticmethod
    def kdj(values: Sequence[float], period: int = 9) -> Dict[str, Optional[float]]:
        """Stochastic KDJ (last values) computed on closes only."""
        arr = _as_array(values)
        if len(arr) < period:
            return {'k': None, 'd': None, 'j': None}

        series = pd.Series(arr)
        lows = series.rolling(window=period).min().to_numpy()
        highs = series.rolling(window=period).max().to_numpy()

        k = 50.0
        d = 50.0
        for i in range(period - 1, len(arr)):
            span = highs[i] - lows[i]
            rsv = 50.0 if span == 0 else (arr[i] - lows[i]) / span * 100
            k = (2 / 3) * k + (1 / 3) * rsv
            d = (2 / 3) * d + (1 / 3) * k
        return {'k': k, 'd': d, 'j': 3 * k - 2 * d}

    @staticmethod
    def bollinger_position(values: Sequence[float], period: int = 20,
                           std_dev: float = 2.0) -> float:
        """Position of the last value inside the Bollinger band (0 = lower, 1 = upper)."""
        arr = _as_array(values)
        if len(arr) == 0:
            return 0.5
        last = arr[-1]
        mid = TechnicalIndicators.sma(arr, period)
        dev = TechnicalIndicators.std(arr, period)
        last_mid = mid[-1] if len(mid) else last
        last_dev = dev[-1] if len(dev) else 0.0

        upper = last_mid + std_dev * last_dev
        lower = last_mid - std_dev * last_dev
        if upper == lower:
            return 0.5
        return float((last - lower) / (upper - lower))

    @staticmethod
    def trailing_runs(values: Sequence[float], window: int = 10) -> Tuple[int, int]:
        """Length of the up-run and down-run ending at the last value."""
        tail = _as_array(values)[-window:]
        up = 0
        down = 0
        for i in range(1, len(tail)):
            up = up + 1 if tail[i] > tail[i - 1] else 0
            down = down + 1 if tail[i] < tail[i - 1] else 0
        return up, down


class StatisticalFeatures:
    """Return, risk and dependence statistics."""

    @staticmethod
    def daily_returns(values: Sequence[float]) -> np.ndarray:
        """Simple returns between consecutive points (non-finite dropped)."""
        arr = _as_array(values)
        if len(arr) < 2:
            return np.array([], dtype=float)
        with np.errstate(divide='ignore', invalid='ignore'):
            rets = np.diff(arr) / arr[:-1]
        return rets[np.isfinite(rets)]

    @staticmethod
    def std_simple(values: Sequence[float]) -> float:
        """Population standard deviation; 0 for an empty sequence."""
        arr = _as_array(values)
        if len(arr) == 0:
            return 0.0
        return float(np.std(arr))

    @staticmethod
    def max_drawdown(values: Sequence[float]) -> float:
        """Magnitude of the worst peak-to-trough decline."""
        arr = _as_array(values)
        if len(arr) == 0:
            return 0.0
        running_max = np.maximum.accumulate(arr)
        drawdown = (arr - running_max) / running_max
        return float(abs(min(drawdown.min(), 0.0)))

    @staticmethod
    def annualized_return(values: Sequence[float]) -> Optional[float]:
        """Geometric annualized return over (n - 1) / 252 years."""
        arr = _as_array(values)
        if len(arr) < 2:
            return None
        total = arr[-1] / arr[0] - 1
        years = (len(arr) - 1) / TRADING_DAYS
        return float((1 + total) ** (1 / years) - 1)

    @staticmethod
    def annualized_vol(returns: Sequence[float]) -> Optional[float]:
        """Sample standard deviation of returns scaled by sqrt(252)."""
        arr = _as_array(returns)
        if len(arr) < 2:
            return None
        return float(np.std(arr, ddof=1) * math.sqrt(TRADING_DAYS))

    @staticmethod
    def sharpe_ratio(ann_ret: Optional[float], ann_vol: Optional[float]) -> Optional[float]:
        if ann_ret is None or ann_vol is None or ann_vol == 0:
            return None
        return ann_ret / ann_vol

    @staticmethod
    def correlation(a: Sequence[float], b: Sequence[float]) -> Optional[float]:
        """Pearson correlation over the trailing common length."""
        xs = _as_array(a)
        ys = _as_array(b)
        if len(xs) == 0 or len(ys) == 0:
            return None
        n = min(len(xs), len(ys))
        xs = xs[-n:] - xs[-n:].mean()
        ys = ys[-n:] - ys[-n:].mean()
        denom = math.sqrt(float((xs * xs).sum() * (ys * ys).sum()))
        if not denom:
            return 0.0
        return float((xs * ys).sum() / denom)

    @staticmethod
    def historical_var(returns: Sequence[float], quantile: float = 0.05) -> float:
        """Empirical value-at-risk: the return at the lower quantile rank."""
        arr = np.sort(_as_array(returns))
        if len(arr) == 0:
            return 0.0
        return float(arr[int(math.floor(len(arr) * quantile))])

    @staticmethod
    def win_rate(returns: Sequence[float]) -> float:
        """Share of strictly positive returns."""
        arr = _as_array(returns)
        if len(arr) == 0:
            return 0.0
        return float((arr > 0).sum() / len(arr))
