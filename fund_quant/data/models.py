"""
Series and snapshot types shared by the data layer and the engine.
"""

import math
from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class PricePoint:
    """One daily NAV observation."""
    date: str
    value: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class IndexPoint:
    """One daily close of a benchmark index."""
    date: str
    close: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class IntradayEstimate:
    """Same-day projected value ahead of NAV publication."""
    estimated_value: float
    previous_close: float
    as_of: Optional[str] = None
    is_fallback: bool = False

    @property
    def change_pct(self) -> Optional[float]:
        """Estimated change in percent (Eastmoney ``gszzl`` convention)."""
        if not self.previous_close:
            return None
        return (self.estimated_value - self.previous_close) / self.previous_close * 100

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class FundSnapshot:
    """Raw payload gathered for one fund before evaluation."""
    code: str
    name: str = ""
    gsz: Optional[float] = None
    dwjz: Optional[float] = None
    gztime: Optional[str] = None
    nav_change_pct: Optional[float] = None
    estimate_change_pct: Optional[float] = None
    fund_type: str = ""
    benchmark: str = ""
    source: str = ""


def is_finite(value) -> bool:
    """True for a real number that is neither NaN nor infinite."""
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def to_price_points(raw: Iterable) -> List[PricePoint]:
    """
    Normalize a history payload into PricePoints.

    Accepts PricePoint objects or mappings with ``date`` and ``value``
    (``t``/``v`` also accepted). Non-finite values are dropped; the result is
    sorted by date with duplicate dates collapsed to the latest entry.
    """
    by_date = {}
    for item in raw or []:
        if isinstance(item, PricePoint):
            date, value = item.date, item.value
        else:
            date = item.get('date', item.get('t'))
            value = item.get('value', item.get('v'))
        if not date or not is_finite(value):
            continue
        by_date[str(date)] = float(value)
    return [PricePoint(date=d, value=by_date[d]) for d in sorted(by_date)]


def to_index_points(raw: Iterable) -> List[IndexPoint]:
    """Normalize a benchmark payload into IndexPoints (same rules as NAV history)."""
    by_date = {}
    for item in raw or []:
        if isinstance(item, IndexPoint):
            date, close = item.date, item.close
        else:
            date = item.get('date')
            close = item.get('close')
        if not date or not is_finite(close):
            continue
        by_date[str(date)] = float(close)
    return [IndexPoint(date=d, close=by_date[d]) for d in sorted(by_date)]
