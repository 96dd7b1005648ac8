"""
Feature Engineering Module
==========================
Indicator library and valuation explainer.
"""
from .indicators import (
    TechnicalIndicators,
    StatisticalFeatures,
    clamp,
    round_half_up
)
from .valuation import (
    ValuationExplainer,
    ValuationExplain,
    CHEAP,
    NEUTRAL,
    EXPENSIVE
)

__all__ = [
    'TechnicalIndicators',
    'StatisticalFeatures',
    'clamp',
    'round_half_up',
    'ValuationExplainer',
    'ValuationExplain',
    'CHEAP',
    'NEUTRAL',
    'EXPENSIVE'
]
