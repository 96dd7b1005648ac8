"""
Risk Engine Module
==================
"""
from .performance import (
    PerformanceStats,
    RiskLevel,
    compute_performance,
    risk_level_for
)

__all__ = [
    'PerformanceStats',
    'RiskLevel',
    'compute_performance',
    'risk_level_for'
]
