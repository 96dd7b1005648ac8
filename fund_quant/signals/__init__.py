"""
Signals Module
==============
Confidence gating and best-signal selection over backtested patterns.
"""
from .confidence_gate import (
    SignalGate,
    SignalAssessment,
    BestSignal,
    TrendBand,
    PRIMARY,
    SECONDARY
)

__all__ = [
    'SignalGate',
    'SignalAssessment',
    'BestSignal',
    'TrendBand',
    'PRIMARY',
    'SECONDARY'
]
