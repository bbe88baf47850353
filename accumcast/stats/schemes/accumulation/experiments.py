"""
accumcast.stats.schemes.accumulation.experiments
================================================

Forecast template for one period of an accumulating process.

`AccumulationTemplate` wires the accumulation components into a pipeline:

    observation -> likelihood -> [criteria] -> posterior -> [signaler]

and registers the fitted prior as the period's design on setup.

Examples
--------
>>> from accumcast.core.ledger import Ledger, create_test_connection
>>> from accumcast.simulate import simulate_history
>>> from accumcast.stats.schemes.accumulation.experiments import AccumulationTemplate
>>>
>>> template = AccumulationTemplate("current", history=simulate_history(seed=7), target=1100.0)
>>> template.setup(Ledger(create_test_connection("duckdb"), "doc"))
>>> template.add_observations(elapsed=0.5, cumulative=520.0)
>>> result = template.analyze()
>>> result.action in {"on_track", "at_risk", "undetermined"}
True
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from accumcast.config import DEFAULT_SETTINGS, ForecastSettings
from accumcast.core.ledger import Ledger
from accumcast.core.names import (
    Namespace,
    LIKELIHOOD_FIT_TAG,
    POSTERIOR_TAG,
    PROGRESS_OBS_TAG,
    TARGET_DECISION_TAG,
)
from accumcast.history import PeriodHistory
from accumcast.runtime.forecast_template import ForecastResult, ForecastTemplate
from accumcast.stats.schemes.accumulation.common import (
    ProgressBatch,
    ProgressObservation,
)
from accumcast.stats.schemes.accumulation.statistics import (
    PosteriorForecast,
    PriorFit,
    ProgressLikelihood,
    TargetSignaler,
    TargetThreshold,
)


class AccumulationTemplate(ForecastTemplate):
    """
    Empirical-Bayes forecast of the final total of one period.

    Attributes:
        period_id: Identifier of the period being forecast
        history: Historical periods used for the prior and the likelihood
        prior_family: Prior family over final totals
        likelihood_family: Family of the completion-fraction distribution
        target: Optional target final total
        confidence: Probability required for an on-track / at-risk call
        level: Credible level of the reported interval
        settings: Numerical settings (grid, tails, clipping)
    """

    def __init__(
        self,
        period_id: str,
        history: PeriodHistory,
        *,
        prior_family: Optional[str] = None,
        likelihood_family: Optional[str] = None,
        target: Optional[float] = None,
        confidence: Optional[float] = None,
        level: Optional[float] = None,
        settings: Optional[ForecastSettings] = None,
    ):
        super().__init__(period_id)
        self.history = history
        self.settings = (settings or DEFAULT_SETTINGS).with_overrides(
            prior_family=prior_family,
            likelihood_family=likelihood_family,
            confidence=confidence,
            credible_level=level,
        )
        self.target = target

    @property
    def prior_family(self) -> str:
        return self.settings.prior_family

    @property
    def likelihood_family(self) -> str:
        return self.settings.likelihood_family

    def configure_components(self) -> Dict[str, Any]:
        s = self.settings
        components: Dict[str, Any] = {
            "observation": ProgressObservation(),
            "prior": PriorFit(
                history=self.history,
                family=s.prior_family,
                min_history=s.min_history,
            ),
            "likelihood": ProgressLikelihood(
                history=self.history,
                family=s.likelihood_family,
                eps=s.fraction_eps,
                min_history=s.min_history,
            ),
        }
        if self.target is not None:
            components["criteria"] = TargetThreshold(
                target=float(self.target), confidence=s.confidence
            )
        components["posterior"] = PosteriorForecast(
            level=s.credible_level,
            grid_size=s.grid_size,
            tail=s.tail_mass,
            max_factor=s.max_grid_factor,
            eps=s.fraction_eps,
        )
        components["signaler"] = TargetSignaler()
        return components

    def register_design(self, ledger: Ledger) -> None:
        """Fit the prior and register it together with the design settings."""
        ledger.write_event(
            namespace=Namespace.DESIGN,
            kind="forecast_design",
            payload_type="AccumulationDesign",
            period_id=str(self.period_id),
            step_key="design",
            time_index="t0",
            payload={
                "method": "empirical_bayes_accumulation",
                "prior_family": self.settings.prior_family,
                "likelihood_family": self.settings.likelihood_family,
                "credible_level": self.settings.credible_level,
                "confidence": self.settings.confidence,
                "target": self.target,
                "history": self.history.summary(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
        self.components["prior"].step(ledger, str(self.period_id), "design", "t0")

    def _populate_batch(self, batch: ProgressBatch, **kwargs: Any) -> None:
        """Accepts ``elapsed`` plus ``cumulative`` or ``increment``, or ``data``."""
        if "data" in kwargs:
            self.components["observation"].ingest_from_dict(kwargs["data"], batch)
        elif "elapsed" in kwargs or "step" in kwargs:
            self.components["observation"].ingest_from_dict(kwargs, batch)
        else:
            raise ValueError("Unsupported observation format for AccumulationTemplate")

    def extract_results(self, ledger: Ledger) -> ForecastResult:
        pid = str(self.period_id)
        posterior = ledger.latest(
            namespace=Namespace.STATS, period_id=pid, tag=POSTERIOR_TAG
        )
        if posterior is None:
            raise ValueError("No posterior forecast found")
        p = posterior["payload"]

        likelihood = ledger.latest(
            namespace=Namespace.STATS, period_id=pid, tag=LIKELIHOOD_FIT_TAG
        )
        signal = ledger.latest(
            namespace=Namespace.SIGNALS, period_id=pid, tag=TARGET_DECISION_TAG
        )
        # a signal from an earlier look must not be reported as current
        if signal is not None and signal["snapshot_id"] != posterior["snapshot_id"]:
            signal = None

        looks = ledger.count(
            namespace=Namespace.OBS, period_id=pid, tag=PROGRESS_OBS_TAG
        )

        return ForecastResult(
            look_number=looks,
            elapsed=float(p["elapsed"]),
            observed=float(p["observed"]),
            mean=p["mean"],
            median=p["median"],
            lower=p["lower"],
            upper=p["upper"],
            sd=p["sd"],
            level=p["level"],
            target=p.get("target"),
            p_target=p.get("p_target"),
            action=signal["payload"]["action"] if signal else None,
            complete=bool(p["complete"]),
            baselines={
                "run_rate": p.get("run_rate"),
                "historical_ratio": p.get("historical_ratio"),
                "prior_mean": p.get("prior_mean"),
            },
            additional_metrics={
                "mode": p["mode"],
                "prior_family": self.settings.prior_family,
                "likelihood_family": self.settings.likelihood_family,
                "history_periods": len(self.history),
                "mean_fraction": (
                    likelihood["payload"]["mean_fraction"] if likelihood else None
                ),
            },
            posterior_event=posterior,
            likelihood_event=likelihood,
            signal_event=signal,
        )

    def get_summary(self) -> Dict[str, Any]:
        summary = super().get_summary()
        summary.update(
            {
                "forecast_type": "accumulation",
                "prior_family": self.settings.prior_family,
                "likelihood_family": self.settings.likelihood_family,
                "target": self.target,
                "history_periods": len(self.history),
            }
        )
        return summary
