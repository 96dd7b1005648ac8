"""
Alpha Models Module
==================
Multi-factor fund scoring.
"""
from .factor_model import (
    QuantScorer,
    QuantMetrics,
    FactorScore,
    FACTOR_KEYS,
    FACTOR_LABELS
)

__all__ = [
    'QuantScorer',
    'QuantMetrics',
    'FactorScore',
    'FACTOR_KEYS',
    'FACTOR_LABELS'
]
