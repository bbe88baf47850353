"""
accumcast.runtime.runners
=========================

Runners that execute forecast templates with different strategies.

Runners provide the execution environment while templates define the
forecast logic.

Examples
--------
>>> from accumcast.core.ledger import Ledger, create_test_connection
>>> from accumcast.runtime.runners import SequentialRunner
>>> from accumcast.simulate import simulate_history
>>> from accumcast.stats.schemes.accumulation.experiments import AccumulationTemplate
>>>
>>> template = AccumulationTemplate("current", history=simulate_history(seed=1))
>>> runner = SequentialRunner(template, Ledger(create_test_connection("duckdb"), "doc"))
>>> runner.add_observations(elapsed=0.3, cumulative=250.0)
>>> result = runner.analyze()
>>> runner.get_summary()["total_looks"]
1
"""

from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional

from accumcast.core.ledger import Ledger
from accumcast.runtime.forecast_template import ForecastResult, ForecastTemplate

logger = logging.getLogger(__name__)


class SequentialRunner:
    """
    Runs one template look by look and keeps the history of results.
    """

    def __init__(self, template: ForecastTemplate, ledger: Optional[Ledger] = None):
        self.template = template
        self._ledger = ledger
        self._results_history: List[ForecastResult] = []

        if ledger is not None:
            self.setup(ledger)

    def setup(self, ledger: Ledger) -> None:
        """Setup the runner with a specific ledger backend."""
        self._ledger = ledger
        self.template.setup(ledger)

    def _require_setup(self) -> None:
        if self._ledger is None:
            raise RuntimeError(
                "Runner not setup. Call setup(ledger) first or provide ledger in constructor."
            )

    def add_observations(self, **kwargs: Any) -> None:
        self._require_setup()
        self.template.add_observations(**kwargs)

    def analyze(self) -> ForecastResult:
        """Run analysis and store results."""
        self._require_setup()
        result = self.template.analyze()
        self._results_history.append(result)
        return result

    def observe_and_analyze(self, **kwargs: Any) -> ForecastResult:
        """Add one observation and analyze it."""
        self.add_observations(**kwargs)
        return self.analyze()

    def get_summary(self) -> Dict[str, Any]:
        """Template summary plus runner state."""
        summary = self.template.get_summary()
        last = self._results_history[-1] if self._results_history else None
        summary.update(
            {
                "runner_type": "sequential",
                "total_looks": len(self._results_history),
                "last_action": last.action if last else None,
                "is_complete": last.complete if last else False,
            }
        )
        return summary

    def get_results_history(self) -> List[ForecastResult]:
        return self._results_history.copy()

    def reset(self) -> None:
        """Reset both template and runner state."""
        self.template.reset()
        self._results_history.clear()


class BatchRunner:
    """
    Runs several templates over the same observations.

    Useful for comparing forecast designs (e.g. prior families) on one period.
    """

    def __init__(
        self,
        templates: List[ForecastTemplate],
        ledger_factory: Optional[Callable[[], Optional[Ledger]]] = None,
    ):
        self.templates = templates
        self.ledger_factory = ledger_factory or (lambda: None)
        self.runners: List[SequentialRunner] = []

    def setup(self) -> None:
        """Setup all templates, each with its own ledger from the factory."""
        self.runners = [
            SequentialRunner(template, self.ledger_factory())
            for template in self.templates
        ]

    def add_observations_all(self, **kwargs: Any) -> None:
        for runner in self.runners:
            runner.add_observations(**kwargs)

    def analyze_all(self) -> List[ForecastResult]:
        return [runner.analyze() for runner in self.runners]

    def get_comparison_summary(self) -> Dict[str, Any]:
        """Latest result of every template side by side."""
        rows = []
        for runner in self.runners:
            history = runner.get_results_history()
            last = history[-1] if history else None
            rows.append(
                {
                    **runner.get_summary(),
                    "mean": last.mean if last else None,
                    "lower": last.lower if last else None,
                    "upper": last.upper if last else None,
                    "p_target": last.p_target if last else None,
                }
            )
        return {
            "total_templates": len(self.templates),
            "templates": rows,
            "complete_count": sum(1 for r in rows if r.get("is_complete", False)),
        }
