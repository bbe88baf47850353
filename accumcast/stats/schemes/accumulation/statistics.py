"""
accumcast.stats.schemes.accumulation.statistics
===============================================

Pipeline components for forecasting the final total of an accumulating
period.

**Fits:**
- `PriorFit`: fit the prior over final totals from history (design namespace)
- `ProgressLikelihood`: fit the completion-fraction distribution at the
  current elapsed fraction

**Forecast:**
- `PosteriorForecast`: combine prior, likelihood and the observed cumulative
  value into a posterior summary, with naive baselines alongside

**Targets:**
- `TargetThreshold`: register the target total and the confidence required
- `TargetSignaler`: emit ``on_track`` / ``at_risk`` / ``undetermined``, or
  ``complete`` once the period has ended

All components follow the event-sourcing paradigm: they read from and write
to the ledger only.

Examples
--------
>>> from accumcast.core.ledger import Ledger, create_test_connection
>>> from accumcast.simulate import simulate_history
>>> from accumcast.stats.schemes.accumulation.common import ProgressObservation
>>> history = simulate_history(n_periods=12, seed=3)
>>> L = Ledger(create_test_connection("duckdb"), "doc")
>>> obs = ProgressObservation()
>>> batch = obs.create_batch(); batch.set_progress(0.5, 480.0)
>>> obs.register_batch(L, "p", "look-1", "t1", batch)
True
>>> PriorFit(history=history).step(L, "p", "design", "t0")
>>> ProgressLikelihood(history=history).step(L, "p", "look-1", "t1")
>>> PosteriorForecast().step(L, "p", "look-1", "t1")
>>> L.latest(tag="stat:posterior")["payload"]["observed"]
480.0
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from accumcast.config import DEFAULT_SETTINGS
from accumcast.core.components import Criteria, Signaler, Statistic
from accumcast.core.ledger import Ledger, NamespaceLike
from accumcast.core.names import (
    Namespace,
    PeriodId,
    StepKey,
    TimeIndex,
    LIKELIHOOD_FIT_TAG,
    POSTERIOR_TAG,
    PRIOR_FIT_TAG,
    TARGET_DECISION_TAG,
    TARGET_TAG,
)
from accumcast.history import COMPLETE_TOL, PeriodHistory, require_history
from accumcast.stats.common.baselines import historical_ratio, run_rate
from accumcast.stats.common.distributions import (
    FittedDistribution,
    fit_fraction,
    fit_prior,
)
from accumcast.stats.common.posterior import point_mass_summary, posterior_forecast
from accumcast.stats.schemes.accumulation.common import (
    LikelihoodFitPayload,
    PosteriorPayload,
    PriorFitPayload,
    TargetPayload,
    get_latest_payload,
    reduce_progress,
)

logger = logging.getLogger(__name__)


# --- Fits ---


@dataclass(kw_only=True)
class PriorFit(Statistic):
    """
    Fit the prior over final totals from the complete historical periods.

    The prior is fitted once per period; later steps are no-ops.

    Events produced:
        - Namespace.DESIGN: PriorFit payload

    Attributes:
        history: Historical periods
        family: Prior family (``gamma``, ``lognormal``, ``normal``, ``kde``)
        min_history: Minimum number of complete periods
    """

    history: PeriodHistory
    family: str = DEFAULT_SETTINGS.prior_family
    min_history: int = DEFAULT_SETTINGS.min_history
    ns_stats: NamespaceLike = Namespace.DESIGN
    tag_stats: str = PRIOR_FIT_TAG

    def step(
        self,
        ledger: Ledger,
        period_id: Union[PeriodId, str],
        step_key: Union[StepKey, str],
        time_index: Union[TimeIndex, str],
    ) -> None:
        if get_latest_payload(ledger, str(period_id), self.ns_stats, self.tag_stats):
            return

        history = require_history(self.history, self.min_history)
        prior = fit_prior(history.final_totals(), self.family)
        payload: PriorFitPayload = {
            **prior.to_payload(),  # type: ignore[typeddict-item]
            "mean": prior.mean(),
            "sd": prior.std(),
        }
        ledger.write_event(
            time_index=time_index,
            namespace=self.ns_stats,
            kind="registered",
            period_id=str(period_id),
            step_key=str(step_key),
            payload_type="PriorFit",
            payload=dict(payload),
            tag=self.tag_stats,
        )


@dataclass(kw_only=True)
class ProgressLikelihood(Statistic):
    """
    Fit the completion-fraction distribution at the current elapsed fraction.

    Events consumed:
        - Namespace.OBS: progress observations (for the elapsed fraction)

    Events produced:
        - Namespace.STATS: LikelihoodFit payload

    Attributes:
        history: Historical periods
        family: Likelihood family (``beta`` or ``kde``)
        eps: Clipping margin for fractions at 0 or 1
    """

    history: PeriodHistory
    family: str = DEFAULT_SETTINGS.likelihood_family
    eps: float = DEFAULT_SETTINGS.fraction_eps
    min_history: int = DEFAULT_SETTINGS.min_history
    tag_stats: str = LIKELIHOOD_FIT_TAG

    def step(
        self,
        ledger: Ledger,
        period_id: Union[PeriodId, str],
        step_key: Union[StepKey, str],
        time_index: Union[TimeIndex, str],
    ) -> None:
        progress = reduce_progress(ledger, str(period_id))
        if progress is None:
            return
        elapsed, _ = progress
        if elapsed >= 1.0 - COMPLETE_TOL:
            return

        history = require_history(self.history, self.min_history)
        fractions = history.fractions_at(elapsed)
        likelihood = fit_fraction(fractions, self.family, eps=self.eps)
        payload: LikelihoodFitPayload = {
            **likelihood.to_payload(),  # type: ignore[typeddict-item]
            "elapsed": float(elapsed),
            "mean_fraction": float(fractions.mean()),
        }
        ledger.write_event(
            time_index=time_index,
            namespace=self.ns_stats,
            kind="updated",
            period_id=str(period_id),
            step_key=str(step_key),
            payload_type="LikelihoodFit",
            payload=dict(payload),
            tag=self.tag_stats,
        )


# --- Forecast ---


@dataclass(kw_only=True)
class PosteriorForecast(Statistic):
    """
    Posterior over the final total given the progress so far.

    Events consumed:
        - Namespace.OBS: progress observations
        - Namespace.DESIGN: PriorFit
        - Namespace.STATS: LikelihoodFit at the current elapsed fraction
        - Namespace.CRITERIA: Target (optional)

    Events produced:
        - Namespace.STATS: PosteriorForecast payload

    Attributes:
        level: Credible level of the reported interval
        grid_size, tail, max_factor, eps: Numerical settings of the grid
    """

    level: float = DEFAULT_SETTINGS.credible_level
    grid_size: int = DEFAULT_SETTINGS.grid_size
    tail: float = DEFAULT_SETTINGS.tail_mass
    max_factor: float = DEFAULT_SETTINGS.max_grid_factor
    eps: float = DEFAULT_SETTINGS.fraction_eps
    tag_stats: str = POSTERIOR_TAG

    def step(
        self,
        ledger: Ledger,
        period_id: Union[PeriodId, str],
        step_key: Union[StepKey, str],
        time_index: Union[TimeIndex, str],
    ) -> None:
        pid = str(period_id)
        progress = reduce_progress(ledger, pid)
        if progress is None:
            return
        elapsed, observed = progress

        prior_payload = get_latest_payload(ledger, pid, Namespace.DESIGN, PRIOR_FIT_TAG)
        if prior_payload is None:
            raise RuntimeError(f"No prior registered for period {pid!r}")
        prior = FittedDistribution.from_payload(prior_payload)

        target_payload = get_latest_payload(ledger, pid, Namespace.CRITERIA, TARGET_TAG)
        target = float(target_payload["target"]) if target_payload else None

        complete = elapsed >= 1.0 - COMPLETE_TOL
        mean_fraction = float("nan")
        if complete:
            summary = point_mass_summary(observed, level=self.level, target=target)
        else:
            lik_payload = get_latest_payload(ledger, pid, Namespace.STATS, LIKELIHOOD_FIT_TAG)
            if lik_payload is None or abs(float(lik_payload["elapsed"]) - elapsed) > COMPLETE_TOL:
                raise RuntimeError(
                    f"No likelihood fitted at elapsed={elapsed:.4g} for period {pid!r}"
                )
            likelihood = FittedDistribution.from_payload(lik_payload)
            mean_fraction = float(lik_payload["mean_fraction"])
            _, _, summary = posterior_forecast(
                prior,
                likelihood,
                observed,
                level=self.level,
                target=target,
                grid_size=self.grid_size,
                tail=self.tail,
                max_factor=self.max_factor,
                eps=self.eps,
            )

        payload: PosteriorPayload = {
            **summary.to_payload(),  # type: ignore[typeddict-item]
            "elapsed": float(elapsed),
            "observed": float(observed),
            "run_rate": run_rate(observed, elapsed),
            "historical_ratio": (
                float(observed) if complete else historical_ratio(observed, [mean_fraction])
            ),
            "prior_mean": prior.mean(),
            "complete": complete,
        }
        logger.info(
            "Period %s at elapsed=%.3f: observed=%.4g, forecast mean=%.4g [%.4g, %.4g]",
            pid,
            elapsed,
            observed,
            summary.mean,
            summary.lower,
            summary.upper,
        )
        ledger.write_event(
            time_index=time_index,
            namespace=self.ns_stats,
            kind="updated",
            period_id=pid,
            step_key=str(step_key),
            payload_type="PosteriorForecast",
            payload=_json_safe(dict(payload)),
            tag=self.tag_stats,
        )


def _json_safe(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Replace NaN floats with None so the payload is valid JSON."""
    return {
        k: (None if isinstance(v, float) and v != v else v) for k, v in payload.items()
    }


# --- Targets ---


@dataclass(kw_only=True)
class TargetThreshold(Criteria):
    """
    Register the target final total and the confidence needed to call it.

    Attributes:
        target: Final total to reach
        confidence: Posterior probability required for a decision, in (0.5, 1)
    """

    target: float
    confidence: float = DEFAULT_SETTINGS.confidence
    tag_crit: str = TARGET_TAG

    def __post_init__(self) -> None:
        if self.target < 0:
            raise ValueError(f"target must be non-negative, got {self.target}")
        if not 0.5 < self.confidence < 1.0:
            raise ValueError(f"confidence must be in (0.5, 1), got {self.confidence}")

    def step(
        self,
        ledger: Ledger,
        period_id: Union[PeriodId, str],
        step_key: Union[StepKey, str],
        time_index: Union[TimeIndex, str],
    ) -> None:
        payload: TargetPayload = {
            "target": float(self.target),
            "confidence": float(self.confidence),
        }
        ledger.write_event(
            time_index=time_index,
            namespace=self.ns_crit,
            kind="updated",
            period_id=str(period_id),
            step_key=str(step_key),
            payload_type="Target",
            payload=dict(payload),
            tag=self.tag_crit,
        )


@dataclass(kw_only=True)
class TargetSignaler(Signaler):
    """
    Emit a decision about reaching the target.

    Decision rule (p = P(T >= target)):
        - ``complete`` once the period has ended (``reached`` tells the outcome)
        - ``on_track`` if p >= confidence
        - ``at_risk`` if p <= 1 - confidence
        - ``undetermined`` otherwise

    Without a registered target only ``complete`` is ever emitted.
    """

    tag_sig: str = TARGET_DECISION_TAG

    def step(
        self,
        ledger: Ledger,
        period_id: Union[PeriodId, str],
        step_key: Union[StepKey, str],
        time_index: Union[TimeIndex, str],
    ) -> None:
        pid = str(period_id)
        posterior = get_latest_payload(ledger, pid, Namespace.STATS, POSTERIOR_TAG)
        if posterior is None:
            return
        criteria = get_latest_payload(ledger, pid, Namespace.CRITERIA, TARGET_TAG)

        target: Optional[float] = float(criteria["target"]) if criteria else None
        confidence: Optional[float] = float(criteria["confidence"]) if criteria else None
        p_target = posterior.get("p_target")
        body: Dict[str, Any] = {
            "elapsed": posterior["elapsed"],
            "mean": posterior["mean"],
            "target": target,
            "confidence": confidence,
            "p_target": p_target,
        }

        if posterior.get("complete"):
            body["action"] = "complete"
            body["reached"] = (
                None if target is None else bool(posterior["observed"] >= target)
            )
        elif target is None or p_target is None or confidence is None:
            return
        elif p_target >= confidence:
            body["action"] = "on_track"
        elif p_target <= 1.0 - confidence:
            body["action"] = "at_risk"
        else:
            body["action"] = "undetermined"

        ledger.write_event(
            time_index=time_index,
            namespace=self.ns_sig,
            kind="decision",
            period_id=pid,
            step_key=str(step_key),
            payload_type="TargetDecision",
            payload=body,
            tag=self.tag_sig,
        )
