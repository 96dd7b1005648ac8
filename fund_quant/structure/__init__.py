"""
Structure Module
================
Pivot / stroke / center pattern detection.
"""
from .chanlun import (
    StructureDetector,
    StructureAnalysis,
    StructureMerge,
    StructureSignal,
    StructureTrend,
    Pivot,
    Stroke,
    Center,
    find_pivots,
    build_strokes,
    build_centers,
    classify_signals,
    stroke_trend,
    merge_structure
)

__all__ = [
    'StructureDetector',
    'StructureAnalysis',
    'StructureMerge',
    'StructureSignal',
    'StructureTrend',
    'Pivot',
    'Stroke',
    'Center',
    'find_pivots',
    'build_strokes',
    'build_centers',
    'classify_signals',
    'stroke_trend',
    'merge_structure'
]
