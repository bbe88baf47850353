"""Tests for AccumulationTemplate and the runners."""

import pytest

from accumcast.config import ForecastSettings
from accumcast.core.ledger import Ledger, create_test_connection
from accumcast.core.names import Namespace
from accumcast.runtime.forecast_template import ForecastResult
from accumcast.runtime.runners import BatchRunner, SequentialRunner
from accumcast.stats.schemes.accumulation.experiments import AccumulationTemplate

FAST = ForecastSettings(grid_size=801)


@pytest.fixture
def template(history):
    return AccumulationTemplate("2024-07", history, target=1000.0, settings=FAST)


# =============================================================================
# TEMPLATE
# =============================================================================


class TestAccumulationTemplate:
    def test_requires_setup(self, template):
        with pytest.raises(RuntimeError, match="not setup"):
            template.add_observations(elapsed=0.5, cumulative=500.0)
        with pytest.raises(RuntimeError):
            template.analyze()

    def test_setup_registers_design_and_prior(self, template, ledger):
        template.setup(ledger)
        design = ledger.latest(namespace=Namespace.DESIGN, payload_type="AccumulationDesign")
        assert design["payload"]["prior_family"] == "gamma"
        assert design["payload"]["target"] == 1000.0
        assert design["payload"]["history"]["complete_periods"] == 20
        assert ledger.count(namespace=Namespace.DESIGN, payload_type="PriorFit") == 1

    def test_analyze_before_observations(self, template, ledger):
        template.setup(ledger)
        with pytest.raises(ValueError, match="No observations"):
            template.analyze()

    def test_components_in_order(self, template, ledger):
        template.setup(ledger)
        assert list(template.components) == [
            "observation",
            "prior",
            "likelihood",
            "criteria",
            "posterior",
            "signaler",
        ]

    def test_no_criteria_without_target(self, history, ledger):
        t = AccumulationTemplate("p", history, settings=FAST)
        t.setup(ledger)
        assert "criteria" not in t.components

    def test_overrides_take_precedence_over_settings(self, history):
        t = AccumulationTemplate(
            "p", history, prior_family="kde", level=0.5, settings=FAST
        )
        assert t.prior_family == "kde"
        assert t.settings.credible_level == 0.5
        assert t.settings.grid_size == 801

    def test_analysis_result(self, template, ledger):
        template.setup(ledger)
        template.add_observations(elapsed=0.5, cumulative=520.0)
        result = template.analyze()
        assert isinstance(result, ForecastResult)
        assert result.look_number == 1
        assert result.elapsed == 0.5
        assert result.observed == 520.0
        assert result.interval == (result.lower, result.upper)
        assert result.level == 0.9
        assert result.target == 1000.0
        assert 0.0 <= result.p_target <= 1.0
        assert result.action in {"on_track", "at_risk", "undetermined"}
        assert result.baselines["run_rate"] == 1040.0
        assert result.additional_metrics["history_periods"] == 20
        assert result.posterior_event["snapshot_id"] == "look-1"

    def test_step_and_increment_inputs(self, template, ledger):
        template.setup(ledger)
        template.add_observations(step=10, period_length=30, cumulative=300.0)
        template.add_observations(data={"elapsed": 0.5, "increment": 200.0})
        result = template.analyze()
        assert result.look_number == 2
        assert result.observed == 500.0

    def test_invalid_observation_does_not_advance(self, template, ledger):
        template.setup(ledger)
        template.add_observations(elapsed=0.5, cumulative=500.0)
        with pytest.raises(ValueError, match="Failed to register"):
            template.add_observations(elapsed=0.6, cumulative=400.0)
        with pytest.raises(ValueError, match="Failed to register"):
            template.add_observations(elapsed=2.0, cumulative=600.0)
        with pytest.raises(ValueError, match="Invalid observations"):
            template.add_observations(data={"value": 3})
        with pytest.raises(ValueError, match="Unsupported"):
            template.add_observations(total=3)
        assert template.get_summary()["current_look"] == 1

    def test_stale_signal_not_reported(self, history, ledger):
        t = AccumulationTemplate("p", history, settings=FAST)
        t.setup(ledger)
        t.add_observations(elapsed=0.5, cumulative=500.0)
        assert t.analyze().action is None

    def test_complete_period(self, template, ledger):
        template.setup(ledger)
        template.add_observations(elapsed=1.0, cumulative=1010.0)
        result = template.analyze()
        assert result.complete
        assert result.action == "complete"
        assert result.interval == (1010.0, 1010.0)
        assert result.likelihood_event is None

    def test_summary(self, template, ledger):
        assert template.get_summary()["status"] == "not_setup"
        template.setup(ledger)
        summary = template.get_summary()
        assert summary["status"] == "ready"
        assert summary["forecast_type"] == "accumulation"
        assert summary["target"] == 1000.0


# =============================================================================
# RUNNERS
# =============================================================================


class TestSequentialRunner:
    def test_requires_ledger(self, template):
        runner = SequentialRunner(template)
        with pytest.raises(RuntimeError, match="not setup"):
            runner.analyze()

    def test_look_by_look(self, template, ledger):
        runner = SequentialRunner(template, ledger)
        widths = []
        for elapsed, cumulative in [(0.25, 230.0), (0.5, 480.0), (0.75, 740.0)]:
            result = runner.observe_and_analyze(elapsed=elapsed, cumulative=cumulative)
            widths.append(result.upper - result.lower)

        # the interval narrows as the period progresses
        assert widths[0] > widths[1] > widths[2]
        history = runner.get_results_history()
        assert [r.look_number for r in history] == [1, 2, 3]
        summary = runner.get_summary()
        assert summary["total_looks"] == 3
        assert summary["last_action"] == history[-1].action
        assert summary["is_complete"] is False

    def test_reset(self, template, ledger):
        runner = SequentialRunner(template, ledger)
        runner.observe_and_analyze(elapsed=0.5, cumulative=500.0)
        runner.reset()
        assert runner.get_results_history() == []
        assert template.get_summary()["current_look"] == 0


class TestBatchRunner:
    def test_compare_templates(self, history):
        templates = [
            AccumulationTemplate("p", history, prior_family=family, settings=FAST)
            for family in ("gamma", "normal")
        ]
        runner = BatchRunner(
            templates, ledger_factory=lambda: Ledger(create_test_connection("duckdb"), "p")
        )
        runner.setup()
        runner.add_observations_all(elapsed=0.5, cumulative=500.0)
        results = runner.analyze_all()
        assert len(results) == 2
        # both designs agree closely on a well-behaved history
        assert results[0].mean == pytest.approx(results[1].mean, rel=0.05)

        comparison = runner.get_comparison_summary()
        assert comparison["total_templates"] == 2
        assert [row["prior_family"] for row in comparison["templates"]] == ["gamma", "normal"]
        assert comparison["complete_count"] == 0
