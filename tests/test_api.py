"""Tests for the user-facing forecasting facade."""

import pytest

from accumcast.api import backtest, compare_priors, forecast_final, forecast_period
from accumcast.api.forecast import OUTLOOK_CONFIDENCE
from accumcast.config import ForecastSettings
from accumcast.core.ledger import Ledger, create_test_connection
from accumcast.errors import InsufficientHistoryError
from accumcast.stats.schemes.accumulation.experiments import AccumulationTemplate

FAST = ForecastSettings(grid_size=801)


class TestForecastPeriod:
    @pytest.mark.parametrize("outlook", sorted(OUTLOOK_CONFIDENCE))
    def test_outlook_sets_confidence(self, history, outlook):
        template = forecast_period("p", history, target=900.0, outlook=outlook)
        assert isinstance(template, AccumulationTemplate)
        assert template.settings.confidence == OUTLOOK_CONFIDENCE[outlook]

    def test_explicit_confidence_wins(self, history):
        template = forecast_period("p", history, outlook="eager", confidence=0.95)
        assert template.settings.confidence == 0.95

    def test_unknown_outlook(self, history):
        with pytest.raises(ValueError, match="outlook"):
            forecast_period("p", history, outlook="reckless")

    def test_families_passed_through(self, history):
        template = forecast_period("p", history, prior="lognormal", likelihood="kde")
        assert template.prior_family == "lognormal"
        assert template.likelihood_family == "kde"


class TestForecastFinal:
    def test_one_shot(self, history):
        result = forecast_final(history, 0.5, 500.0, settings=FAST)
        assert result.look_number == 1
        assert result.lower < result.mean < result.upper
        assert result.action is None

    def test_writes_to_given_ledger(self, history):
        ledger = Ledger(create_test_connection("duckdb"), "audit")
        forecast_final(history, 0.4, 400.0, period_id="2024-08", ledger=ledger, settings=FAST)
        assert ledger.count(period_id="2024-08", payload_type="PosteriorForecast") == 1

    def test_target_call(self, history):
        result = forecast_final(history, 0.75, 950.0, target=800.0, settings=FAST)
        assert result.action == "on_track"

    @pytest.mark.parametrize("prior", ["gamma", "lognormal", "normal", "kde"])
    @pytest.mark.parametrize("likelihood", ["beta", "kde"])
    def test_every_family_combination(self, history, prior, likelihood):
        result = forecast_final(
            history, 0.5, 500.0, prior=prior, likelihood=likelihood, settings=FAST
        )
        assert 500.0 <= result.lower < result.upper
        assert 700.0 < result.mean < 1400.0

    def test_small_history(self, linear_history):
        # identical completion fractions: the concentrated likelihood dominates
        result = forecast_final(linear_history, 0.5, 55.0, settings=FAST)
        assert result.mean == pytest.approx(110.0, rel=0.02)

    def test_insufficient_history(self, linear_history):
        with pytest.raises(InsufficientHistoryError):
            forecast_final(
                linear_history, 0.5, 50.0, settings=ForecastSettings(min_history=6)
            )


class TestComparePriors:
    def test_batch_over_families(self, history):
        batch = compare_priors("p", history, families=["gamma", "kde"], settings=FAST)
        batch.add_observations_all(elapsed=0.5, cumulative=500.0)
        results = batch.analyze_all()
        assert len(results) == 2
        families = [row["prior_family"] for row in batch.get_comparison_summary()["templates"]]
        assert families == ["gamma", "kde"]


def test_backtest_reexported(history):
    rows = backtest(history, [0.5], periods=["P001", "P002"], settings=FAST)
    assert rows["period"].to_list() == ["P001", "P002"]
