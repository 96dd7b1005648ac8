"""End-to-end tests of the strategy engine."""

import json
from datetime import date

import pytest

from fund_quant.decision.synthesizer import Action
from fund_quant.backtest.pattern_backtest import SELL
from fund_quant.engine import StrategyEngine, FundInput, OutcomeStatus, MISSING_VALUATION

from conftest import make_points, random_walk
from test_chanlun import zigzag_with_drop


TODAY = date(2024, 12, 31)


def history_payload(values):
    return [p.to_dict() for p in make_points(values)]


def fund_for(values, code="000001", name="", gsz=None, dwjz=None, **kwargs):
    last = float(values[-1]) if len(values) else 1.0
    return FundInput(
        code=code,
        name=name,
        history=history_payload(values),
        gsz=last if gsz is None else gsz,
        dwjz=last if dwjz is None else dwjz,
        today=TODAY,
        **kwargs
    )


class TestScenarios:

    def setup_method(self):
        self.engine = StrategyEngine()

    def test_flat_series_holds(self):
        outcome = self.engine.evaluate(fund_for([1.0] * 30))
        assert outcome.status == OutcomeStatus.OK
        result = outcome.result
        assert result.valuation.position == 0.5
        assert result.valuation.z == 0.0
        assert result.valuation.drawdown == 0.0
        assert result.best_signal is None
        assert result.final_action == Action.HOLD
        assert outcome.final_action == Action.HOLD

    def test_steady_rise_never_selects_sell(self, rising_then_flat):
        for values in (rising_then_flat[:300], rising_then_flat):
            outcome = self.engine.evaluate(fund_for(values))
            assert outcome.status == OutcomeStatus.OK
            best = outcome.result.best_signal
            assert best is None or best.pattern.side != SELL

        rise = self.engine.evaluate(fund_for(rising_then_flat[:300]))
        assert rise.result.trend_band.level == "strong"

    def test_down_stroke_into_center_emits_first_buy(self):
        outcome = self.engine.evaluate(fund_for(zigzag_with_drop()))
        assert outcome.status == OutcomeStatus.OK
        assert "first_buy" in outcome.result.structure.signal_kinds()
        assert outcome.result.structure_merge is not None

    @pytest.mark.parametrize("dwjz", [None, float('nan'), 0.0, -1.0, "abc"])
    def test_missing_previous_nav_is_skipped(self, dwjz):
        fund = FundInput(code="000001", history=history_payload([1.0] * 30), gsz=1.01, dwjz=dwjz)
        outcome = self.engine.evaluate(fund)
        assert outcome.status == OutcomeStatus.SKIPPED
        assert outcome.reason == MISSING_VALUATION
        assert outcome.result is None
        assert outcome.final_action is None


class TestEngine:

    def setup_method(self):
        self.engine = StrategyEngine()
        self.values = random_walk(400, seed=21)

    def test_missing_estimate_falls_back_to_previous_nav(self):
        fund = fund_for(self.values)
        fund.gsz = None
        result = self.engine.evaluate(fund).result
        assert result.estimate.is_fallback
        assert result.estimate.estimated_value == result.estimate.previous_close
        assert result.premium == 0.0

    def test_premium_from_estimate(self):
        last = self.values[-1]
        result = self.engine.evaluate(fund_for(self.values, gsz=last * 1.02, dwjz=last)).result
        assert result.premium == pytest.approx(0.02)
        assert result.premium_gate == 0.012
        assert result.market_type == "otc"

    def test_category_drives_lookahead_and_ceiling(self):
        bond = self.engine.evaluate(fund_for(self.values, name="易方达纯债A")).result
        assert bond.fund_type.category == "bond"
        assert bond.lookahead == 20
        assert bond.risk_ceiling == 0.20

        qdii = self.engine.evaluate(fund_for(self.values, name="广发纳斯达克100(QDII)")).result
        assert qdii.lookahead == 60
        assert qdii.risk_ceiling == 0.35
        assert qdii.market_type == "qdii"

    def test_computation_failure_is_contained(self, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(self.engine.scorer, "score", boom)
        outcome = self.engine.evaluate(fund_for(self.values))
        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason == "strategy computation failed: boom"
        assert outcome.result is None

    def test_previous_close_mismatch_still_evaluates(self):
        outcome = self.engine.evaluate(fund_for(self.values, dwjz=self.values[-1] * 1.1))
        assert outcome.status == OutcomeStatus.OK

    def test_structure_merge_can_be_disabled(self):
        self.engine.config.merge_structure = False
        result = self.engine.evaluate(fund_for(self.values)).result
        assert result.structure_merge is None
        assert result.final_action == result.plan.action

    def test_output_is_deterministic(self):
        fund = fund_for(self.values, nav_change_pct=0.5, estimate_change_pct=0.7)
        first = json.dumps(self.engine.evaluate(fund).to_dict(), sort_keys=True)
        second = json.dumps(StrategyEngine().evaluate(fund).to_dict(), sort_keys=True)
        assert first == second

    def test_to_dict_shape(self):
        data = self.engine.evaluate(fund_for(self.values)).to_dict()
        assert data['status'] == 'ok'
        result = data['result']
        assert result['final_action'] in ('accumulate', 'reduce', 'hold')
        for key in ('metrics', 'perf', 'valuation', 'plan', 'backtest', 'structure', 'fund_type'):
            assert key in result

    def test_assessments_follow_backtest_patterns(self):
        result = self.engine.evaluate(fund_for(self.values)).result
        assert [a.key for a in result.assessments] == [p.key for p in result.backtest.patterns]


class TestFundInput:

    def test_from_dict(self):
        fund = FundInput.from_dict({
            'code': 110022,
            'history': [{'date': '2024-01-02', 'value': 1.0}],
            'gsz': 1.01,
            'dwjz': 1.0,
            'today': '2024-12-31'
        })
        assert fund.code == "110022"
        assert fund.today == TODAY
        assert fund.index_history == []

    def test_history_accepts_short_keys(self):
        engine = StrategyEngine()
        history = [{'t': d['date'], 'v': d['value']} for d in history_payload([1.0] * 30)]
        outcome = engine.evaluate(FundInput(code="000001", history=history, gsz=1.0, dwjz=1.0, today=TODAY))
        assert outcome.status == OutcomeStatus.OK
        assert outcome.result.perf.points == 30
