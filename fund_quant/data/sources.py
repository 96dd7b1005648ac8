"""
Fund Data Sources
=================
Collaborators that fetch intraday estimates, NAV history, fund profiles
and benchmark index closes. The engine itself never performs I/O.
"""

import json
import random
import re
import time
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set

import numpy as np
import pandas as pd
import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
import logging

from .models import FundSnapshot, PricePoint, IndexPoint, is_finite

logger = logging.getLogger(__name__)


def jitter(min_ms: int = 200, max_ms: int = 800):
    """Sleep a random number of milliseconds to spread requests out."""
    if max_ms <= 0:
        return
    time.sleep(random.randint(min_ms, max_ms) / 1000)


def _to_float(value) -> Optional[float]:
    return float(value) if is_finite(value) else None


def _iso_date(text: str) -> str:
    """'2010年09月16日 / 12.3亿份' -> '2010-09-16'; empty when no date is present."""
    match = re.search(r'(\d{4})\D(\d{1,2})\D(\d{1,2})', text or '')
    if not match:
        return ''
    year, month, day = match.groups()
    return f"{year}-{int(month):02d}-{int(day):02d}"


def create_session_with_retry(retries: int = 2, backoff_factor: float = 0.3) -> requests.Session:
    """Session retrying connection errors and throttling / server errors with backoff."""
    session = requests.Session()
    retry = Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504]
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class FundDataSource(ABC):
    """Abstract base class for fund data sources."""

    @abstractmethod
    def fetch_estimate(self, code: str) -> FundSnapshot:
        """Fetch the intraday estimate (gsz) and previous NAV (dwjz)."""
        pass

    @abstractmethod
    def fetch_history(self, code: str, days: int = 360,
                      establish_date: str = "") -> List[PricePoint]:
        """Fetch daily NAV history, oldest first, going no further back than ``establish_date``."""
        pass

    def fetch_profile(self, code: str) -> Dict[str, str]:
        """Fetch fund type / benchmark / inception date; empty when unavailable."""
        return {}


class EastmoneyFundSource(FundDataSource):
    """Eastmoney / fundgz public endpoints."""

    ESTIMATE_URL = "https://fundgz.1234567.com.cn/js/{code}.js"
    HISTORY_URL = "https://fundf10.eastmoney.com/F10DataApi.aspx"
    PROFILE_URL = "https://fundf10.eastmoney.com/jbgk_{code}.html"
    PAGE_SIZE = 200

    def __init__(self, timeout: int = 15, retries: int = 2, max_pages: int = 12,
                 jitter_ms: tuple = (200, 800), session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.retries = retries
        self.max_pages = max_pages
        self.jitter_ms = jitter_ms
        # Transport retries live in the session adapter
        self.session = session or create_session_with_retry(retries)
        self.headers = {
            'User-Agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36',
            'Referer': 'https://fund.eastmoney.com/'
        }

    def _get(self, url: str, params: Optional[dict] = None) -> str:
        resp = self.session.get(url, params=params, headers=self.headers, timeout=self.timeout)
        resp.raise_for_status()
        return resp.text

    # =====================
    # Parsers
    # =====================

    @staticmethod
    def parse_jsonp(text: str) -> dict:
        """Extract the JSON object wrapped in a ``callback(...)`` payload."""
        start = text.find('(')
        end = text.rfind(')')
        if start < 0 or end <= start:
            raise ValueError("JSONP parse failed")
        return json.loads(text[start + 1:end])

    @staticmethod
    def parse_table(html: str) -> List[PricePoint]:
        """Parse the NAV history table (newest row first) into ascending points."""
        soup = BeautifulSoup(html, "html.parser")
        points = []
        for tr in soup.find_all('tr'):
            cells = [td.get_text(strip=True) for td in tr.find_all('td')]
            if len(cells) < 2 or not cells[0]:
                continue
            try:
                value = float(cells[1])
            except ValueError:
                continue
            points.append(PricePoint(date=cells[0], value=value))
        points.reverse()
        return points

    @staticmethod
    def parse_profile(html: str) -> Dict[str, str]:
        """Fund type, benchmark and inception date (ISO) from the profile page."""
        soup = BeautifulSoup(html, "html.parser")

        # <th>label</th><td>value</td> pairs of the info table
        fields = {}
        for th in soup.find_all('th'):
            td = th.find_next_sibling('td')
            if td is not None:
                fields[th.get_text(strip=True)] = td.get_text(" ", strip=True)

        def pick(*labels: str) -> str:
            for label in labels:
                for key, value in fields.items():
                    if key.startswith(label) and value:
                        return value
                # inline "label：value" text
                for text in soup.stripped_strings:
                    if text.startswith(label):
                        value = re.sub(r'^[:：\s]+', '', text[len(label):])
                        if value:
                            return value
            return ''

        return {
            'type': pick('基金类型'),
            'benchmark': pick('业绩比较基准'),
            'establish': _iso_date(pick('成立日期', '成立时间'))
        }

    # =====================
    # Fetchers
    # =====================

    def fetch_estimate(self, code: str) -> FundSnapshot:
        """Fetch the fundgz estimate; an empty snapshot when the request or the payload fails."""
        jitter(*self.jitter_ms)
        url = self.ESTIMATE_URL.format(code=code)
        try:
            data = self.parse_jsonp(self._get(url, {'rt': int(time.time() * 1000)}))
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Estimate fetch failed for {code}: {e}")
            return FundSnapshot(code=code, source='fallback')

        return FundSnapshot(
            code=code,
            name=data.get('name', '') or '',
            gsz=_to_float(data.get('gsz')),
            dwjz=_to_float(data.get('dwjz')),
            gztime=data.get('gztime'),
            estimate_change_pct=_to_float(data.get('gszzl')),
            source='fundgz'
        )

    def fetch_history(self, code: str, days: int = 360,
                      establish_date: str = "") -> List[PricePoint]:
        """Page through the NAV table until ``days`` rows or the inception date."""
        rows: List[PricePoint] = []
        for page in range(1, self.max_pages + 1):
            if page > 1:
                jitter(120, 260)
            params = {'type': 'lsjz', 'code': code, 'page': page,
                      'per': self.PAGE_SIZE, 'sdate': '', 'edate': ''}
            batch = self.parse_table(self._get(self.HISTORY_URL, params))
            if not batch:
                break
            rows.extend(batch)
            if len(rows) >= days:
                break
            if establish_date and batch[0].date <= establish_date:
                break

        by_date = {p.date: p.value for p in rows}
        history = [PricePoint(d, by_date[d]) for d in sorted(by_date)]
        logger.debug(f"Fetched {len(history)} NAV rows for {code}")
        return history

    def fetch_profile(self, code: str) -> Dict[str, str]:
        return self.parse_profile(self._get(self.PROFILE_URL.format(code=code)))


class BenchmarkIndexSource:
    """Benchmark index closes from Yahoo Finance."""

    # Fund name / type / benchmark keywords -> Yahoo ticker, first match wins
    TICKER_RULES = [
        (r'沪深300', '000300.SS'),
        (r'中证500', '000905.SS'),
        (r'中证1000', '000852.SS'),
        (r'创业板', '399006.SZ'),
        (r'科创50|科创', '000688.SS'),
        (r'上证50', '000016.SS'),
        (r'红利', '000922.SS'),
        (r'(?i)纳斯达克100|纳指|NDX', '^NDX'),
        (r'(?i)标普500|S&P500|SPX', '^GSPC'),
        (r'(?i)恒生科技|HSTECH', 'HSTECH.HK'),
        (r'恒生|HSI', '^HSI')
    ]
    NO_BENCHMARK = r'债|货币|理财|现金|固收'
    DEFAULT_INDEX_TICKER = '000300.SS'

    def __init__(self):
        import yfinance as yf
        self.yf = yf

    @classmethod
    def ticker_for(cls, name: str = "", fund_type: str = "", benchmark: str = "") -> Optional[str]:
        """Pick the benchmark ticker for a fund; None for bond and cash funds."""
        text = re.sub(r'\s+', '', f"{fund_type or ''}{name or ''}{benchmark or ''}")
        if re.search(cls.NO_BENCHMARK, text):
            return None
        for pattern, ticker in cls.TICKER_RULES:
            if re.search(pattern, text):
                return ticker
        if '指数' in (fund_type or '') or '指数' in (name or ''):
            return cls.DEFAULT_INDEX_TICKER
        return None

    def fetch(self, ticker: str, days: int = 360) -> List[IndexPoint]:
        """Fetch the last ``days`` daily closes of ``ticker``."""
        if not ticker:
            return []
        end = date.today() + timedelta(days=1)
        start = end - timedelta(days=int(days * 1.6) + 10)
        df = self.yf.Ticker(ticker).history(start=start.isoformat(), end=end.isoformat())
        if df is None or df.empty or 'Close' not in df:
            return []

        closes = df['Close'].dropna().tail(days)
        return [IndexPoint(date=idx.strftime('%Y-%m-%d'), close=float(v)) for idx, v in closes.items()]

    def fetch_for_fund(self, name: str = "", fund_type: str = "", benchmark: str = "",
                       days: int = 360) -> List[IndexPoint]:
        ticker = self.ticker_for(name, fund_type, benchmark)
        if ticker is None:
            return []
        try:
            return self.fetch(ticker, days)
        except Exception as e:
            logger.warning(f"Benchmark fetch failed for {ticker}: {e}")
            return []


class MockFundSource(FundDataSource):
    """
    Deterministic synthetic source for tests and demos.

    Each code gets its own seeded random walk, so repeated runs return the
    same data. Snapshots and profiles can be overridden per code and codes
    listed in ``fail_codes`` raise on fetch.
    """

    def __init__(self, volatility: float = 0.01, days: int = 400, end: str = "2024-12-31",
                 names: Optional[Dict[str, str]] = None,
                 snapshots: Optional[Dict[str, FundSnapshot]] = None,
                 profiles: Optional[Dict[str, Dict[str, str]]] = None,
                 fail_codes: Optional[Iterable[str]] = None):
        self.volatility = volatility
        self.days = days
        self.end = end
        self.names = names or {}
        self.snapshots = snapshots or {}
        self.profiles = profiles or {}
        self.fail_codes: Set[str] = set(fail_codes or [])

    def _series(self, code: str, days: int) -> List[PricePoint]:
        seed = int(re.sub(r'\D', '', code) or 0)
        rng = np.random.default_rng(seed)
        dates = pd.bdate_range(end=self.end, periods=days)
        returns = rng.normal(0.0003, self.volatility, days)
        values = np.round(1.0 * np.cumprod(1 + returns), 4)
        return [PricePoint(d.strftime('%Y-%m-%d'), float(v)) for d, v in zip(dates, values)]

    def fetch_estimate(self, code: str) -> FundSnapshot:
        if code in self.fail_codes:
            raise ValueError(f"mock fetch failure for {code}")
        if code in self.snapshots:
            return self.snapshots[code]
        last = self._series(code, self.days)[-1].value
        return FundSnapshot(
            code=code,
            name=self.names.get(code, f"Mock Fund {code}"),
            gsz=round(last * 1.002, 4),
            dwjz=last,
            gztime=f"{self.end} 15:00",
            source='mock'
        )

    def fetch_history(self, code: str, days: int = 360,
                      establish_date: str = "") -> List[PricePoint]:
        if code in self.fail_codes:
            raise ValueError(f"mock fetch failure for {code}")
        points = self._series(code, self.days)[-days:]
        if establish_date:
            points = [p for p in points if p.date >= establish_date]
        return points

    def fetch_profile(self, code: str) -> Dict[str, str]:
        return dict(self.profiles.get(code, {}))
