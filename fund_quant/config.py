"""
Configuration Management
========================
Central configuration for the fund decision engine.

Every heuristic constant the engine reads lives in one of the dataclasses
below, so the scoring can be recalibrated from a JSON settings document
without touching computation code.
"""

from dataclasses import dataclass, field, fields, asdict, is_dataclass
from typing import Dict, List, Optional
import json
import os


@dataclass
class ThresholdConfig:
    """Trend and valuation thresholds."""
    # Trend score bands
    trend_good: float = 70
    trend_warn: float = 50

    # Valuation position / z-score
    low_estimate_pos: float = 0.2
    high_estimate_pos: float = 0.8
    z_low: float = -1.2
    z_high: float = 1.2

    # Percentile and rolling band limits
    percentile_low: float = 0.2
    percentile_high: float = 0.8
    band_low: float = -1.2
    band_high: float = 1.2
    cheap_drawdown: float = -0.08

    # Drawdown risk bands
    drawdown_low: float = 0.15
    drawdown_high: float = 0.3

    # Valuation windows
    valuation_peak_window: int = 120
    band_window: int = 60

    # Trend filter used by the valuation explanation
    trend_filter_strong: float = 65
    trend_filter_weak: float = 45
    trend_ok: float = 60

    # Reversion estimate
    reversion_days_min: int = 2
    reversion_days_max: int = 30
    min_abs_return: float = 0.002


@dataclass
class IndicatorConfig:
    """Indicator windows and minimum sample sizes."""
    min_signal_days: int = 120
    min_perf_days: int = 60
    min_rsi_days: int = 14
    min_stats_days: int = 5
    lookahead_days: int = 40
    backtest_min_sample: int = 60
    win_rate_strict: float = 0.55

    rsi_period: int = 14
    rsi_fast_period: int = 6
    momentum_days: int = 21
    recent_days: int = 30

    # Benchmark linkage
    linkage_min_points: int = 30
    linkage_window: int = 120

    # Trailing window used for scoring and risk stats
    strategy_window_days: int = 720


@dataclass
class CategoryConfig:
    """Per fund-category history windows, lookahead and risk ceilings."""
    history_windows: Dict[str, int] = field(default_factory=lambda: {
        "money": 300,
        "bond": 600,
        "qdii": 1500,
        "equity": 1800
    })
    lookahead_days: Dict[str, int] = field(default_factory=lambda: {
        "money": 10,
        "bond": 20,
        "qdii": 60,
        "equity": 40
    })
    risk_ceiling: Dict[str, float] = field(default_factory=lambda: {
        "bond": 0.20,
        "qdii": 0.35,
        "default": 0.30
    })

    def window_for(self, category: str) -> int:
        return self.history_windows.get(category, self.history_windows.get("equity", 1800))

    def lookahead_for(self, category: str, default: int = 40) -> int:
        return self.lookahead_days.get(category, default)

    def risk_ceiling_for(self, category: str) -> float:
        return self.risk_ceiling.get(category, self.risk_ceiling.get("default", 0.30))


@dataclass
class QuantThresholds:
    """Volatility targets, risk budgets and premium gates."""
    target_vol: Dict[str, float] = field(default_factory=lambda: {
        "bond": 0.06,
        "equity": 0.15,
        "qdii": 0.18
    })
    risk_budget: Dict[str, float] = field(default_factory=lambda: {
        "bond": 0.12,
        "equity": 0.18,
        "qdii": 0.25
    })
    premium_threshold: Dict[str, float] = field(default_factory=lambda: {
        "default": 0.01,
        "etf": 0.008,
        "linked": 0.006,
        "otc": 0.012,
        "qdii": 0.012,
        "commodity": 0.012,
        "reits": 0.01
    })
    manager_penalty: Dict[str, float] = field(default_factory=lambda: {
        "low": 10,
        "medium": 5
    })
    consistency_default: float = 60
    consistency_gap: float = 1.2

    def target_vol_for(self, quant_key: str) -> float:
        return self.target_vol.get(quant_key, 0.15)

    def premium_gate_for(self, market_type: str) -> float:
        base = self.premium_threshold.get("default", 0.01)
        return self.premium_threshold.get(market_type, base)


@dataclass
class FactorWeightConfig:
    """Base factor weights and the score-driven tilt."""
    base: Dict[str, float] = field(default_factory=lambda: {
        "trend": 0.15,
        "oversold": 0.15,
        "sentiment": 0.08,
        "risk": 0.25,
        "fund_flow": 0.12,
        "liquidity": 0.10,
        "consistency": 0.10,
        "linkage": 0.05
    })
    tilt_base: float = 0.5
    tilt_div: float = 200

    def tilt(self, score: float) -> float:
        """Multiplier applied to a factor's base weight (higher score, more weight)."""
        return self.tilt_base + score / self.tilt_div

    def apply(self, scores: Dict[str, float]) -> Dict[str, float]:
        """Tilt the base weights by factor scores and renormalize to sum to 1."""
        adjusted = {key: self.base.get(key, 0.0) * self.tilt(value) for key, value in scores.items()}
        total = sum(adjusted.values())
        if total > 0:
            adjusted = {key: value / total for key, value in adjusted.items()}
        return adjusted


@dataclass
class GroupVoteConfig:
    """Backtest group vote weights and win-rate thresholds."""
    weights: Dict[str, float] = field(default_factory=lambda: {
        "valuation": 1.6,
        "drawdown": 1.4,
        "run_length": 0.7,
        "swing": 0.6,
        "rsi": 0.7,
        "trend": 0.4
    })
    default_weight: float = 0.6
    buy_threshold: float = 0.56
    sell_threshold: float = 0.44

    def weight_for(self, group: str) -> float:
        return self.weights.get(group, self.default_weight)


@dataclass
class SignalGateConfig:
    """Sample adequacy and best-signal selection parameters."""
    occurrence_rates: Dict[str, float] = field(default_factory=lambda: {
        "valuation": 0.18,
        "drawdown": 0.08,
        "run_length": 0.06,
        "swing": 0.04,
        "rsi": 0.08,
        "trend": 0.02,
        "other": 0.05
    })
    min_expected: int = 8
    group_blend: float = 0.6
    soft_ratio: float = 0.3
    hard_ratio: float = 0.15
    soft_floor: int = 6
    soft_cap: int = 30
    hard_floor: int = 4
    hard_cap: int = 15
    level_high_ratio: float = 0.6
    bad_drawdown: float = -0.2

    primary_keys: List[str] = field(default_factory=lambda: [
        "valuation_low", "valuation_high", "drawdown_buy"
    ])
    secondary_keys: List[str] = field(default_factory=lambda: [
        "nine_turn_buy", "nine_turn_sell",
        "swing_long", "swing_short",
        "uptrend_band_strong", "uptrend_band_medium",
        "downtrend_band_strong", "downtrend_band_medium"
    ])
    blocked_keys: List[str] = field(default_factory=lambda: [
        "reversal_up", "reversal_down", "rsi_oversold", "rsi_overbought"
    ])

    category_multipliers: Dict[str, float] = field(default_factory=lambda: {
        "valuation": 1.3,
        "drawdown": 1.3,
        "trend": 0.9,
        "swing": 0.8,
        "run_length": 0.8,
        "other": 0.7
    })
    win_weight: float = 0.6
    return_weight: float = 1.2
    drawdown_weight: float = 0.6
    missing_drawdown: float = 0.25

    def rate_for(self, group: str) -> float:
        return self.occurrence_rates.get(group, self.occurrence_rates.get("other", 0.05))

    def multiplier_for(self, group: str) -> float:
        return self.category_multipliers.get(group, self.category_multipliers.get("other", 0.7))


@dataclass
class StructureConfig:
    """Structural (pivot / stroke / center) detector parameters."""
    min_points: int = 10
    min_gap: int = 5
    min_pct: float = 0.01
    near_tolerance: float = 0.01
    breakout_tolerance: float = 0.02
    stroke_average_window: int = 5

    # Merge weights (base action / structural signal)
    weight_base: float = 0.7
    weight_structure: float = 0.3
    index_weight_base: float = 0.6
    index_weight_structure: float = 0.4
    confidence_boost: float = 0.2


@dataclass
class RunnerConfig:
    """Batch runner and data collaborator settings."""
    max_workers: int = 6
    history_days: int = 360
    index_history_days: int = 360
    fetch_retries: int = 2
    request_timeout: int = 15
    jitter_min_ms: int = 200
    jitter_max_ms: int = 800

    # Storage
    cache_dir: str = "./cache"
    use_cache: bool = True


@dataclass
class EngineConfig:
    """Master engine configuration."""
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    indicators: IndicatorConfig = field(default_factory=IndicatorConfig)
    categories: CategoryConfig = field(default_factory=CategoryConfig)
    quant: QuantThresholds = field(default_factory=QuantThresholds)
    factors: FactorWeightConfig = field(default_factory=FactorWeightConfig)
    groups: GroupVoteConfig = field(default_factory=GroupVoteConfig)
    gate: SignalGateConfig = field(default_factory=SignalGateConfig)
    structure: StructureConfig = field(default_factory=StructureConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)

    # Blend the structural detector into the final action
    merge_structure: bool = True
    timezone: str = "Asia/Shanghai"

    def save(self, filepath: str):
        """Save configuration to JSON file."""
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str) -> 'EngineConfig':
        """Load configuration from JSON file."""
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'EngineConfig':
        """Create from dictionary; missing keys keep their defaults."""
        return _merge_into(cls(), data or {})


def _merge_into(instance, data: dict):
    """Overlay a (possibly partial) dict onto a dataclass instance."""
    for f in fields(instance):
        if f.name not in data:
            continue
        current = getattr(instance, f.name)
        value = data[f.name]
        if is_dataclass(current) and isinstance(value, dict):
            _merge_into(current, value)
        elif isinstance(current, dict) and isinstance(value, dict):
            merged = dict(current)
            merged.update(value)
            setattr(instance, f.name, merged)
        else:
            setattr(instance, f.name, value)
    return instance


# Default configuration instance
DEFAULT_CONFIG = EngineConfig()
