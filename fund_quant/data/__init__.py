"""
Data Module
===========
Series types, fund data sources and the daily history cache.
"""
from .models import (
    PricePoint,
    IndexPoint,
    IntradayEstimate,
    FundSnapshot,
    is_finite,
    to_price_points,
    to_index_points
)
from .sources import (
    FundDataSource,
    EastmoneyFundSource,
    BenchmarkIndexSource,
    MockFundSource
)
from .cache import HistoryCache

__all__ = [
    'PricePoint',
    'IndexPoint',
    'IntradayEstimate',
    'FundSnapshot',
    'is_finite',
    'to_price_points',
    'to_index_points',
    'FundDataSource',
    'EastmoneyFundSource',
    'BenchmarkIndexSource',
    'MockFundSource',
    'HistoryCache'
]
