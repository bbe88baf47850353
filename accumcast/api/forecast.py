"""
accumcast.api.forecast
======================

Forecasting facade for repeated accumulating processes.

Examples
--------
>>> from accumcast.api.forecast import forecast_period
>>> from accumcast.core.ledger import Ledger, create_test_connection
>>> from accumcast.runtime.runners import SequentialRunner
>>> from accumcast.simulate import simulate_history
>>>
>>> history = simulate_history(seed=11)
>>> template = forecast_period("2024-06", history, target=1000.0, outlook="cautious")
>>> runner = SequentialRunner(template, Ledger(create_test_connection("duckdb"), "2024-06"))
>>> result = runner.observe_and_analyze(elapsed=0.25, cumulative=180.0)
>>> result.target
1000.0
"""

from __future__ import annotations
from typing import Any, Literal, Optional, Sequence

from accumcast.config import ForecastSettings
from accumcast.core.ledger import Ledger, create_test_connection
from accumcast.evaluation.backtest import backtest
from accumcast.history import PeriodHistory
from accumcast.runtime.forecast_template import ForecastResult
from accumcast.runtime.runners import BatchRunner, SequentialRunner
from accumcast.stats.schemes.accumulation.experiments import AccumulationTemplate

# Confidence needed before a target call is made.
OUTLOOK_CONFIDENCE = {
    "cautious": 0.9,
    "balanced": 0.8,
    "eager": 0.65,
}


def forecast_period(
    period_id: str,
    history: PeriodHistory,
    *,
    prior: Optional[str] = None,
    likelihood: Optional[str] = None,
    target: Optional[float] = None,
    outlook: Literal["cautious", "balanced", "eager"] = "balanced",
    confidence: Optional[float] = None,
    level: Optional[float] = None,
    settings: Optional[ForecastSettings] = None,
) -> AccumulationTemplate:
    """
    Create a forecast template for a period tracked look by look.

    Parameters
    ----------
    period_id : str
        Identifier of the period being forecast
    history : PeriodHistory
        Historical periods of the same process
    prior : str, optional
        Prior family over final totals (default from settings)
    likelihood : str, optional
        Family of the completion-fraction distribution (default from settings)
    target : float, optional
        Target final total; enables on-track / at-risk signals
    outlook : {"cautious", "balanced", "eager"}, default="balanced"
        How much posterior probability is needed before a target call:
        0.9, 0.8 and 0.65 respectively. Ignored if ``confidence`` is given.
    confidence : float, optional
        Explicit confidence in (0.5, 1)
    level : float, optional
        Credible level of the reported interval

    Returns
    -------
    AccumulationTemplate
        A configured template, ready for `setup(ledger)` or a runner
    """
    if confidence is None:
        if outlook not in OUTLOOK_CONFIDENCE:
            raise ValueError(
                f"outlook must be one of {sorted(OUTLOOK_CONFIDENCE)}, got {outlook!r}"
            )
        confidence = OUTLOOK_CONFIDENCE[outlook]
    return AccumulationTemplate(
        period_id,
        history,
        prior_family=prior,
        likelihood_family=likelihood,
        target=target,
        confidence=confidence,
        level=level,
        settings=settings,
    )


def forecast_final(
    history: PeriodHistory,
    elapsed: float,
    cumulative: float,
    *,
    period_id: str = "current",
    ledger: Optional[Ledger] = None,
    **kwargs: Any,
) -> ForecastResult:
    """
    One-shot forecast of the final total from a single progress reading.

    Runs the full pipeline on ``ledger`` (an in-memory duckdb ledger when
    omitted). Keyword arguments are passed to `forecast_period`.
    """
    template = forecast_period(period_id, history, **kwargs)
    if ledger is None:
        ledger = Ledger(create_test_connection("duckdb"), period_id)
    runner = SequentialRunner(template, ledger)
    return runner.observe_and_analyze(elapsed=elapsed, cumulative=cumulative)


def compare_priors(
    period_id: str,
    history: PeriodHistory,
    families: Sequence[str] = ("gamma", "lognormal", "normal", "kde"),
    **kwargs: Any,
) -> BatchRunner:
    """
    Set up a BatchRunner forecasting one period under several prior families.

    Each template gets its own in-memory ledger.

    >>> from accumcast.simulate import simulate_history
    >>> batch = compare_priors("p", simulate_history(seed=4), families=["gamma", "normal"])
    >>> batch.add_observations_all(elapsed=0.5, cumulative=500.0)
    >>> len(batch.analyze_all())
    2
    """
    templates = [
        forecast_period(period_id, history, prior=family, **kwargs)
        for family in families
    ]
    runner = BatchRunner(
        templates,
        ledger_factory=lambda: Ledger(create_test_connection("duckdb"), period_id),
    )
    runner.setup()
    return runner


__all__ = [
    "backtest",
    "compare_priors",
    "forecast_final",
    "forecast_period",
]
