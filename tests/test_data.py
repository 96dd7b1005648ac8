"""Tests for data models, parsers, cache and the mock source."""

import json
from datetime import date
from unittest.mock import MagicMock

import pytest
import requests
from requests.adapters import HTTPAdapter

from fund_quant.data.models import PricePoint, to_price_points, to_index_points, is_finite
from fund_quant.data.sources import EastmoneyFundSource, BenchmarkIndexSource, MockFundSource
from fund_quant.data.cache import HistoryCache


HISTORY_HTML = """
<table><thead><tr><th>净值日期</th><th>单位净值</th></tr></thead><tbody>
<tr><td>2024-01-04</td><td class='tor bold'>1.0300</td><td>1.5000</td></tr>
<tr><td>2024-01-03</td><td class='tor bold'>1.0200</td><td>1.4900</td></tr>
<tr><td>2024-01-02</td><td class='tor bold'>--</td><td>1.4800</td></tr>
<tr><td>2024-01-01</td><td class='tor bold'>1.0000</td><td>1.4700</td></tr>
</tbody></table>
"""


class TestModels:

    def test_is_finite(self):
        assert is_finite(1)
        assert is_finite("1.5")
        assert not is_finite(None)
        assert not is_finite(float('nan'))
        assert not is_finite(float('inf'))
        assert not is_finite("abc")
        assert not is_finite(True)

    def test_price_points_sorted_and_deduplicated(self):
        raw = [
            {'date': '2024-01-03', 'value': 1.2},
            {'t': '2024-01-01', 'v': 1.0},
            {'date': '2024-01-02', 'value': float('nan')},
            {'date': '2024-01-03', 'value': 1.3},
            PricePoint('2024-01-02', 1.1)
        ]
        points = to_price_points(raw)
        assert [p.date for p in points] == ['2024-01-01', '2024-01-02', '2024-01-03']
        assert points[-1].value == 1.3

    def test_index_points(self):
        points = to_index_points([{'date': '2024-01-02', 'close': 3000},
                                  {'date': '2024-01-01', 'close': None}])
        assert len(points) == 1
        assert points[0].close == 3000.0


class TestEastmoneyParsers:

    def test_parse_jsonp(self):
        data = EastmoneyFundSource.parse_jsonp(
            'jsonpgz({"fundcode":"110022","name":"易方达消费行业","dwjz":"3.1000","gsz":"3.1200"});'
        )
        assert data['fundcode'] == "110022"
        assert data['gsz'] == "3.1200"

    def test_parse_jsonp_rejects_garbage(self):
        with pytest.raises(ValueError):
            EastmoneyFundSource.parse_jsonp("jsonpgz();")
        with pytest.raises(ValueError):
            EastmoneyFundSource.parse_jsonp("no payload")

    def test_parse_table(self):
        points = EastmoneyFundSource.parse_table(HISTORY_HTML)
        assert [p.date for p in points] == ['2024-01-01', '2024-01-03', '2024-01-04']
        assert [p.value for p in points] == [1.0, 1.02, 1.03]

    def test_parse_table_keeps_wrapped_cells(self):
        html = ("<tr><td>2024-01-04</td><td class='tor bold'>\n1.0300\n</td></tr>"
                "<tr><td>2024-01-03</td><td>1.0200</td></tr>")
        points = EastmoneyFundSource.parse_table(html)
        assert points == [PricePoint('2024-01-03', 1.02), PricePoint('2024-01-04', 1.03)]

    def test_parse_profile_info_table(self):
        html = """
        <table class="info w790">
          <tr><th>基金类型</th><td>股票型</td><th>基金代码</th><td>110022</td></tr>
          <tr><th>成立日期/规模</th><td>2010年08月20日 / 18.345亿份</td></tr>
          <tr><th>业绩比较基准</th><td>中证主要消费指数收益率*85%+
              中债总指数收益率*15%</td></tr>
        </table>
        """
        profile = EastmoneyFundSource.parse_profile(html)
        assert profile['type'] == "股票型"
        assert profile['establish'] == "2010-08-20"
        assert profile['benchmark'].startswith("中证主要消费指数收益率*85%+")
        assert profile['benchmark'].endswith("中债总指数收益率*15%")

    def test_parse_profile(self):
        html = "<td>基金类型：股票型</td><td>业绩比较基准：沪深300指数收益率</td>"
        profile = EastmoneyFundSource.parse_profile(html)
        assert profile['type'] == "股票型"
        assert profile['benchmark'] == "沪深300指数收益率"
        assert profile['establish'] == ''


class TestEastmoneyFetch:

    def make_source(self, responses):
        session = MagicMock()
        session.get.side_effect = responses
        return EastmoneyFundSource(retries=1, jitter_ms=(0, 0), session=session), session

    def response(self, text):
        resp = MagicMock()
        resp.text = text
        resp.raise_for_status.return_value = None
        return resp

    def test_fetch_estimate(self):
        body = 'jsonpgz({"name":"测试基金","dwjz":"1.0000","gsz":"1.0100","gszzl":"1.00","gztime":"2024-01-04 15:00"});'
        source, _ = self.make_source([self.response(body)])
        snapshot = source.fetch_estimate("000001")
        assert snapshot.gsz == 1.01
        assert snapshot.dwjz == 1.0
        assert snapshot.estimate_change_pct == 1.0
        assert snapshot.source == 'fundgz'

    def test_fetch_estimate_falls_back_on_transport_error(self):
        source, session = self.make_source([requests.ConnectionError("down")])
        snapshot = source.fetch_estimate("000001")
        assert snapshot.source == 'fallback'
        assert snapshot.gsz is None
        # retries happen inside the session adapter, not in a loop here
        assert session.get.call_count == 1

    def test_fetch_estimate_falls_back_on_bad_payload(self):
        source, _ = self.make_source([self.response("<html>maintenance</html>")])
        assert source.fetch_estimate("000001").source == 'fallback'

    def test_default_session_retries_server_errors(self):
        source = EastmoneyFundSource(retries=3)
        retry = source.session.get_adapter("https://fundgz.1234567.com.cn").max_retries
        assert retry.total == 3
        assert retry.backoff_factor == 0.3
        assert {429, 500, 502, 503, 504} <= set(retry.status_forcelist)
        assert isinstance(source.session.get_adapter("http://example.com"), HTTPAdapter)

    def test_fetch_history_stops_on_empty_page(self, monkeypatch):
        monkeypatch.setattr("fund_quant.data.sources.jitter", lambda *a: None)
        source, session = self.make_source([self.response(HISTORY_HTML), self.response("<table></table>")])
        history = source.fetch_history("000001", days=100)
        assert len(history) == 3
        assert session.get.call_count == 2

    def test_fetch_history_stops_at_inception(self, monkeypatch):
        monkeypatch.setattr("fund_quant.data.sources.jitter", lambda *a: None)
        source, session = self.make_source([self.response(HISTORY_HTML), self.response(HISTORY_HTML)])
        history = source.fetch_history("000001", days=100, establish_date="2024-01-02")
        assert [p.date for p in history] == ['2024-01-01', '2024-01-03', '2024-01-04']
        assert session.get.call_count == 1


class TestBenchmarkTicker:

    @pytest.mark.parametrize("name,fund_type,benchmark,ticker", [
        ("易方达沪深300ETF联接A", "指数型-股票", "", "000300.SS"),
        ("广发纳斯达克100ETF联接(QDII)", "QDII", "", "^NDX"),
        ("华夏恒生科技ETF联接", "", "", "HSTECH.HK"),
        ("某某指数增强", "指数型-股票", "", "000300.SS"),
        ("易方达纯债A", "债券型", "中债总指数", None),
        ("兴全合润混合", "混合型", "", None),
    ])
    def test_ticker_for(self, name, fund_type, benchmark, ticker):
        assert BenchmarkIndexSource.ticker_for(name, fund_type, benchmark) == ticker


class TestMockSource:

    def test_deterministic_per_code(self):
        a = MockFundSource().fetch_history("000001", 100)
        b = MockFundSource().fetch_history("000001", 100)
        c = MockFundSource().fetch_history("000002", 100)
        assert a == b
        assert a != c
        assert len(a) == 100
        assert a[-1].date == "2024-12-31"

    def test_estimate_matches_last_nav(self):
        source = MockFundSource()
        snapshot = source.fetch_estimate("110022")
        assert snapshot.dwjz == source.fetch_history("110022")[-1].value
        assert snapshot.gsz == round(snapshot.dwjz * 1.002, 4)

    def test_fail_codes_raise(self):
        source = MockFundSource(fail_codes=["000009"])
        with pytest.raises(ValueError):
            source.fetch_estimate("000009")

    def test_profile_and_inception_cutoff(self):
        source = MockFundSource(profiles={"000001": {'establish': "2024-06-03"}})
        assert source.fetch_profile("000001") == {'establish': "2024-06-03"}
        assert source.fetch_profile("000002") == {}
        history = source.fetch_history("000001", 400, establish_date="2024-06-03")
        assert history[0].date == "2024-06-03"


class TestHistoryCache:

    def test_same_day_hit_other_day_miss(self, tmp_path):
        cache = HistoryCache(str(tmp_path))
        points = [PricePoint('2024-01-01', 1.0), PricePoint('2024-01-02', 1.1)]
        cache.set("000001", points, today=date(2024, 1, 2))

        assert cache.get("000001", today=date(2024, 1, 2)) == points
        assert cache.get("000001", today=date(2024, 1, 3)) is None
        assert cache.get("000002", today=date(2024, 1, 2)) is None

    def test_corrupt_file_is_a_miss(self, tmp_path):
        cache = HistoryCache(str(tmp_path))
        (tmp_path / "history_000001.json").write_text("{not json", encoding='utf-8')
        assert cache.get("000001") is None

    def test_clear(self, tmp_path):
        cache = HistoryCache(str(tmp_path))
        cache.set("000001", [PricePoint('2024-01-01', 1.0)])
        cache.clear()
        assert cache.get("000001") is None

    def test_default_day_follows_market_timezone(self, tmp_path, monkeypatch):
        seen = []

        def fake_today(tz):
            seen.append(tz)
            return date(2024, 1, 2)

        monkeypatch.setattr("fund_quant.data.cache.local_today", fake_today)
        cache = HistoryCache(str(tmp_path), timezone="Asia/Shanghai")
        points = [PricePoint('2024-01-01', 1.0)]
        cache.set("000001", points)

        payload = json.loads((tmp_path / "history_000001.json").read_text(encoding='utf-8'))
        assert payload['date'] == "2024-01-02"
        assert cache.get("000001") == points
        assert seen == ["Asia/Shanghai", "Asia/Shanghai"]
