"""
Backtest Module
===============
Historical pattern grading.
"""
from .pattern_backtest import (
    PatternBacktester,
    BacktestResult,
    PatternSample,
    GroupSample,
    PatternHit,
    ScanState,
    BUY,
    SELL,
    VOTING_GROUPS,
    band_strength
)
from .signal_backtest import SignalBacktest, SimpleBacktestResult

__all__ = [
    'PatternBacktester',
    'BacktestResult',
    'PatternSample',
    'GroupSample',
    'PatternHit',
    'ScanState',
    'BUY',
    'SELL',
    'VOTING_GROUPS',
    'band_strength',
    'SignalBacktest',
    'SimpleBacktestResult'
]
