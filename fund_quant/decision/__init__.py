"""
Decision Module
===============
"""
from .synthesizer import (
    DecisionSynthesizer,
    Decision,
    ExecutionPlan,
    Action,
    BULLISH,
    NEUTRAL,
    CAUTIOUS,
    BUY_LEANING,
    SELL_LEANING
)

__all__ = [
    'DecisionSynthesizer',
    'Decision',
    'ExecutionPlan',
    'Action',
    'BULLISH',
    'NEUTRAL',
    'CAUTIOUS',
    'BUY_LEANING',
    'SELL_LEANING'
]
