"""Tests for configuration loading and lookups."""

import json

import pytest

from fund_quant.config import (
    EngineConfig,
    CategoryConfig,
    FactorWeightConfig,
    QuantThresholds,
    DEFAULT_CONFIG
)


class TestEngineConfig:

    def test_save_load_round_trip(self, tmp_path):
        config = EngineConfig()
        config.thresholds.trend_good = 75
        config.categories.history_windows['bond'] = 500
        config.gate.primary_keys = ["valuation_low"]
        config.runner.max_workers = 2
        config.merge_structure = False

        path = tmp_path / "settings" / "engine.json"
        config.save(str(path))
        loaded = EngineConfig.load(str(path))

        assert loaded == config
        assert loaded.thresholds.trend_good == 75
        assert loaded.categories.history_windows['bond'] == 500
        assert loaded.gate.primary_keys == ["valuation_low"]
        assert loaded.merge_structure is False

    def test_partial_overlay_keeps_defaults(self):
        config = EngineConfig.from_dict({
            'thresholds': {'z_low': -1.5},
            'categories': {'history_windows': {'bond': 500}},
            'unknown_section': {'x': 1}
        })
        assert config.thresholds.z_low == -1.5
        assert config.thresholds.z_high == 1.2
        assert config.categories.history_windows == {
            'money': 300, 'bond': 500, 'qdii': 1500, 'equity': 1800
        }
        assert not hasattr(config, 'unknown_section')

    def test_from_empty_dict_is_default(self):
        assert EngineConfig.from_dict(None) == DEFAULT_CONFIG
        assert EngineConfig.from_dict({}) == EngineConfig()

    def test_to_dict_is_json_serializable(self):
        data = EngineConfig().to_dict()
        assert json.loads(json.dumps(data)) == data
        assert data['indicators']['lookahead_days'] == 40


class TestLookups:

    def test_category_lookups(self):
        cats = CategoryConfig()
        assert cats.window_for("bond") == 600
        assert cats.window_for("nope") == 1800
        assert cats.lookahead_for("money") == 10
        assert cats.lookahead_for("nope", 40) == 40
        assert cats.risk_ceiling_for("qdii") == 0.35
        assert cats.risk_ceiling_for("equity") == 0.30

    def test_premium_gate(self):
        quant = QuantThresholds()
        assert quant.premium_gate_for("etf") == 0.008
        assert quant.premium_gate_for("linked") == 0.006
        assert quant.premium_gate_for("unknown") == 0.01
        assert quant.target_vol_for("bond") == 0.06
        assert quant.target_vol_for("unknown") == 0.15

    def test_factor_tilt(self):
        weights = FactorWeightConfig()
        assert weights.tilt(100) == pytest.approx(1.0)
        assert weights.tilt(0) == pytest.approx(0.5)
        applied = weights.apply({key: 50.0 for key in weights.base})
        # equal scores keep the base proportions
        for key, base in weights.base.items():
            assert applied[key] == pytest.approx(base / sum(weights.base.values()))
