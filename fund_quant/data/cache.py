"""
Daily NAV history cache, one JSON file per fund code.
"""

import json
import os
from datetime import date
from typing import List, Optional

import logging

from .models import PricePoint, to_price_points
from ..features.valuation import local_today

logger = logging.getLogger(__name__)


class HistoryCache:
    """History is refreshed once per day; a file written on another day is stale."""

    def __init__(self, cache_dir: str = "./cache", timezone: str = "Asia/Shanghai"):
        self.cache_dir = cache_dir
        self.timezone = timezone
        os.makedirs(cache_dir, exist_ok=True)

    def _path(self, code: str) -> str:
        return os.path.join(self.cache_dir, f"history_{code}.json")

    def get(self, code: str, today: Optional[date] = None) -> Optional[List[PricePoint]]:
        """Cached history written today, else None."""
        filepath = self._path(code)
        if not os.path.exists(filepath):
            return None

        today = (today or local_today(self.timezone)).isoformat()
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except Exception as e:
            logger.warning(f"Cache read error for {code}: {e}")
            return None

        if payload.get('date') != today or not isinstance(payload.get('data'), list):
            return None
        return to_price_points(payload['data'])

    def set(self, code: str, points: List[PricePoint], today: Optional[date] = None):
        """Store history stamped with today's date."""
        payload = {
            'date': (today or local_today(self.timezone)).isoformat(),
            'data': [p.to_dict() for p in points]
        }
        try:
            with open(self._path(code), 'w', encoding='utf-8') as f:
                json.dump(payload, f, ensure_ascii=False)
        except Exception as e:
            logger.warning(f"Cache write error for {code}: {e}")

    def clear(self):
        """Clear all cached histories."""
        for f in os.listdir(self.cache_dir):
            if f.startswith('history_') and f.endswith('.json'):
                os.remove(os.path.join(self.cache_dir, f))
