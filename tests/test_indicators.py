"""Tests for the indicator library."""

import math

import numpy as np
import pytest

from fund_quant.features.indicators import (
    TechnicalIndicators,
    StatisticalFeatures,
    clamp,
    round_half_up
)


class TestHelpers:

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(-0.5) == 0
        assert round_half_up(49.4) == 49

    def test_clamp(self):
        assert clamp(120) == 100
        assert clamp(-3) == 0
        assert clamp(42.5) == 42.5


class TestTechnicalIndicators:

    def test_sma_complete_windows_only(self):
        out = TechnicalIndicators.sma([1, 2, 3, 4, 5], 3)
        assert list(out) == [2.0, 3.0, 4.0]

    def test_sma_short_input_is_empty(self):
        assert len(TechnicalIndicators.sma([1, 2], 5)) == 0

    def test_ema_seeded_with_first_value(self):
        out = TechnicalIndicators.ema([2.0, 2.0, 2.0, 5.0], 3)
        assert out[0] == 2.0
        # alpha = 2 / (3 + 1)
        assert out[-1] == pytest.approx(2.0 + 0.5 * 3.0)

    def test_ema_short_input_is_empty(self):
        assert len(TechnicalIndicators.ema([1.0, 2.0], 5)) == 0

    def test_rsi_needs_period_plus_one(self):
        assert len(TechnicalIndicators.rsi(list(range(14)), 14)) == 0
        assert len(TechnicalIndicators.rsi(list(range(15)), 14)) == 1

    def test_rsi_without_losses_saturates_below_100(self):
        values = [1.0 + 0.01 * i for i in range(30)]
        out = TechnicalIndicators.rsi(values, 14)
        expected = 100 - 100 / (1 + 0.01)
        assert out[-1] == pytest.approx(expected)
        assert out[-1] < 100

    def test_rsi_in_range(self, walk_values):
        out = TechnicalIndicators.rsi(walk_values, 14)
        assert np.all((out >= 0) & (out <= 100))

    def test_macd_flat_series_is_zero(self):
        out = TechnicalIndicators.macd([1.0] * 60)
        assert out['macd'][-1] == pytest.approx(0.0)
        assert out['macd_signal'][-1] == pytest.approx(0.0)
        assert out['macd_hist'][-1] == pytest.approx(0.0)

    def test_kdj_insufficient(self):
        assert TechnicalIndicators.kdj([1, 2, 3], 9) == {'k': None, 'd': None, 'j': None}

    def test_kdj_flat_series_stays_neutral(self):
        out = TechnicalIndicators.kdj([1.0] * 20)
        assert out['k'] == pytest.approx(50.0)
        assert out['d'] == pytest.approx(50.0)
        assert out['j'] == pytest.approx(50.0)

    def test_bollinger_position_flat_is_half(self):
        assert TechnicalIndicators.bollinger_position([1.0] * 30) == 0.5

    def test_trailing_runs(self):
        assert TechnicalIndicators.trailing_runs([5, 4, 3, 4, 5, 6]) == (3, 0)
        assert TechnicalIndicators.trailing_runs([1, 2, 3, 2, 1]) == (0, 2)
        assert TechnicalIndicators.trailing_runs([1, 1, 1]) == (0, 0)


class TestStatisticalFeatures:

    def test_daily_returns(self):
        rets = StatisticalFeatures.daily_returns([1.0, 1.1, 0.99])
        assert rets == pytest.approx([0.1, -0.1])

    def test_max_drawdown(self):
        assert StatisticalFeatures.max_drawdown([1.0, 1.2, 0.9, 1.1]) == pytest.approx(0.25)
        assert StatisticalFeatures.max_drawdown([1.0, 1.1, 1.2]) == 0.0

    def test_annualized_return_one_year(self):
        values = [1.0] * 252 + [1.1]
        assert StatisticalFeatures.annualized_return(values) == pytest.approx(0.1)

    def test_annualized_return_needs_two_points(self):
        assert StatisticalFeatures.annualized_return([1.0]) is None

    def test_annualized_vol_sample_std(self):
        rets = [0.01, -0.01, 0.01, -0.01]
        expected = np.std(rets, ddof=1) * math.sqrt(252)
        assert StatisticalFeatures.annualized_vol(rets) == pytest.approx(expected)
        assert StatisticalFeatures.annualized_vol([0.01]) is None

    def test_sharpe_undefined_on_zero_vol(self):
        assert StatisticalFeatures.sharpe_ratio(0.1, 0.0) is None
        assert StatisticalFeatures.sharpe_ratio(0.1, 0.2) == pytest.approx(0.5)

    def test_correlation(self):
        assert StatisticalFeatures.correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)
        assert StatisticalFeatures.correlation([1, 2, 3], [3, 2, 1]) == pytest.approx(-1.0)
        assert StatisticalFeatures.correlation([1, 1, 1], [1, 2, 3]) == 0.0
        assert StatisticalFeatures.correlation([], [1, 2]) is None

    def test_historical_var(self):
        rets = [i / 100 for i in range(-10, 10)]
        # floor(20 * 0.05) = 1 -> second smallest
        assert StatisticalFeatures.historical_var(rets) == pytest.approx(-0.09)

    def test_win_rate(self):
        assert StatisticalFeatures.win_rate([0.1, -0.1, 0.0, 0.2]) == pytest.approx(0.5)
        assert StatisticalFeatures.win_rate([]) == 0.0


class TestSeriesProperties:

    @pytest.mark.parametrize("n", [0, 1, 4, 5, 19, 20, 21, 60])
    @pytest.mark.parametrize("period", [1, 3, 5, 20])
    def test_sma_length(self, n, period):
        values = [1.0 + 0.01 * i for i in range(n)]
        assert len(TechnicalIndicators.sma(values, period)) == max(0, n - period + 1)

    @pytest.mark.parametrize("values", [
        [],
        [3.0],
        [1.0, 1.0, 1.0],
        [1.0, 2.0, 3.0, 4.0],
        [-5.0, 2.5, 0.0, 7.25, -1.0],
    ])
    def test_std_simple_non_negative(self, values):
        out = StatisticalFeatures.std_simple(values)
        assert out >= 0.0
        if values:
            assert out == pytest.approx(np.std(values))
        else:
            assert out == 0.0

    @pytest.mark.parametrize("period", [2, 4, 5])
    def test_rolling_std_divides_by_period(self, period):
        values = [1.0, 2.0, 4.0, 3.0, 5.0, 8.0]
        out = TechnicalIndicators.std(values, period)
        assert len(out) == len(values) - period + 1
        for i, got in enumerate(out):
            window = values[i:i + period]
            mean = sum(window) / period
            assert got == pytest.approx(math.sqrt(sum((v - mean) ** 2 for v in window) / period))

    def test_rolling_std_known_value(self):
        # population variance of 1..4 is 1.25
        assert TechnicalIndicators.std([1, 2, 3, 4], 4)[-1] == pytest.approx(math.sqrt(1.25))

    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    @pytest.mark.parametrize("vol", [0.01, 0.05, 0.2])
    def test_max_drawdown_bounded(self, seed, vol):
        rng = np.random.default_rng(seed)
        values = np.cumprod(1 + np.clip(rng.normal(0.0, vol, 300), -0.9, None))
        mdd = StatisticalFeatures.max_drawdown(values)
        assert 0.0 <= mdd <= 1.0

    @pytest.mark.parametrize("values,expected", [
        ([1.0, 0.001], 0.999),
        ([2.0, 4.0, 1.0, 3.0], 0.75),
        ([1.0], 0.0),
    ])
    def test_max_drawdown_extremes(self, values, expected):
        assert StatisticalFeatures.max_drawdown(values) == pytest.approx(expected)
