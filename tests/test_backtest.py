"""Tests for the leave-one-period-out backtest and the naive baselines."""

import math

import numpy as np
import pytest

from accumcast.config import ForecastSettings
from accumcast.evaluation.backtest import METHODS, backtest, summarize_backtest
from accumcast.stats.common.baselines import historical_ratio, prior_mean, run_rate
from accumcast.stats.common.distributions import fit_prior

FAST = ForecastSettings(grid_size=801)


class TestBaselines:
    def test_run_rate(self):
        assert run_rate(25.0, 0.5) == 50.0
        assert math.isnan(run_rate(25.0, 0.0))

    def test_historical_ratio(self):
        assert historical_ratio(30.0, np.array([0.5, 0.25, 0.75])) == pytest.approx(60.0)
        assert math.isnan(historical_ratio(30.0, []))
        assert math.isnan(historical_ratio(30.0, [0.0, 0.0]))

    def test_prior_mean(self):
        prior = fit_prior([90.0, 100.0, 110.0], "normal")
        assert prior_mean(prior) == pytest.approx(100.0)


class TestBacktest:
    def test_rows(self, history):
        rows = backtest(history, [0.25, 0.75], settings=FAST)
        assert rows.height == 2 * len(history)
        assert set(rows["elapsed"].unique().to_list()) == {0.25, 0.75}
        assert (rows["lower"] >= rows["observed"]).all()
        assert (rows["lower"] <= rows["upper"]).all()

    def test_held_out_period_not_in_training(self, linear_history):
        rows = backtest(linear_history, [0.5], periods=["m4"], settings=FAST)
        row = rows.row(0, named=True)
        assert row["actual"] == 120.0
        # the prior mean is fitted on the other four periods only
        assert row["prior_mean"] == pytest.approx(95.0, rel=0.01)
        assert row["run_rate"] == pytest.approx(120.0)

    def test_posterior_beats_prior_late_in_period(self, history):
        summary = summarize_backtest(backtest(history, [0.75], settings=FAST))
        mae = dict(zip(summary["method"].to_list(), summary["mae"].to_list()))
        assert mae["posterior"] < mae["prior_mean"]

    def test_summary_columns(self, history):
        summary = summarize_backtest(backtest(history, [0.5], settings=FAST))
        assert summary.columns == ["elapsed", "method", "n", "mae", "mape", "coverage"]
        assert sorted(summary["method"].to_list()) == sorted(METHODS)
        coverage = dict(zip(summary["method"].to_list(), summary["coverage"].to_list()))
        assert 0.0 <= coverage["posterior"] <= 1.0
        assert coverage["run_rate"] is None

    @pytest.mark.parametrize("grid", [[], [0.0], [1.0]])
    def test_invalid_grid(self, history, grid):
        with pytest.raises(ValueError):
            backtest(history, grid)

    def test_unknown_period(self, history):
        with pytest.raises(ValueError, match="Not complete periods"):
            backtest(history, [0.5], periods=["nope"])

    def test_skips_when_too_little_training_data(self, linear_history):
        rows = backtest(
            linear_history, [0.5], settings=ForecastSettings(grid_size=801, min_history=5)
        )
        assert rows.height == 0
