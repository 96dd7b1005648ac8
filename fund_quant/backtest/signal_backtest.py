"""
Simple entry-rule backtest reported beside the unified pattern scan.
"""

from dataclasses import dataclass, asdict
from typing import List, Optional, Sequence

import numpy as np

from ..features.indicators import TechnicalIndicators


@dataclass(frozen=True)
class SimpleBacktestResult:
    """Win rates of three long-entry rules over the lookahead."""
    td_win: Optional[float] = None
    td_sample: int = 0
    swing_win: Optional[float] = None
    swing_sample: int = 0
    dd_win: Optional[float] = None
    dd_sample: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class SignalBacktest:
    """
    Long-only entry rules graded by whether the exit is above the entry:

    - td: a 10-point window that opens with at least 7 consecutive declines
    - swing: MA20 above MA60
    - dd: more than 10% below the running peak
    """

    def __init__(self, lookahead: int = 20):
        self.lookahead = lookahead

    def run(self, values: Sequence[float]) -> SimpleBacktestResult:
        arr = np.asarray(values, dtype=float)
        if len(arr) < 2:
            return SimpleBacktestResult()

        td = self._win_rate(arr, self._td_entries(arr))
        swing = self._win_rate(arr, self._swing_entries(arr))
        dd = self._win_rate(arr, self._drawdown_entries(arr))
        return SimpleBacktestResult(
            td_win=td[0], td_sample=td[1],
            swing_win=swing[0], swing_sample=swing[1],
            dd_win=dd[0], dd_sample=dd[1]
        )

    def _win_rate(self, arr: np.ndarray, entries: List[int]):
        if not entries:
            return None, 0
        wins = 0
        for idx in entries:
            exit_idx = idx + self.lookahead
            exit_value = arr[exit_idx] if exit_idx < len(arr) else arr[-1]
            if exit_value > arr[idx]:
                wins += 1
        return wins / len(entries), len(entries)

    def _td_entries(self, arr: np.ndarray) -> List[int]:
        entries = []
        for i in range(9, len(arr) - self.lookahead):
            window = arr[i - 9:i + 1]
            down = 0
            for j in range(1, len(window)):
                if window[j] < window[j - 1]:
                    down += 1
                else:
                    break
            if down >= 7:
                entries.append(i)
        return entries

    def _swing_entries(self, arr: np.ndarray) -> List[int]:
        ma20 = TechnicalIndicators.sma(arr, 20)
        ma60 = TechnicalIndicators.sma(arr, 60)
        off20 = len(arr) - len(ma20)
        off60 = len(arr) - len(ma60)
        entries = []
        for i in range(60, len(arr) - self.lookahead):
            if ma20[i - off20] > ma60[i - off60]:
                entries.append(i)
        return entries

    def _drawdown_entries(self, arr: np.ndarray) -> List[int]:
        entries = []
        peak = arr[0]
        for i in range(1, len(arr) - self.lookahead):
            peak = max(peak, arr[i])
            if (arr[i] - peak) / peak < -0.1:
                entries.append(i)
        return entries
