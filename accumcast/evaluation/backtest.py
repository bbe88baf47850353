"""
accumcast.evaluation.backtest
=============================

Leave-one-period-out backtest.

Each complete period is held out in turn. The prior and the likelihood are
fitted on the remaining periods, the held-out period's cumulative value at
each elapsed fraction of the grid is treated as the observation, and the
forecast is compared with the period's actual final total. The naive
baselines are evaluated on the same rows.

Examples
--------
>>> from accumcast.simulate import simulate_history
>>> from accumcast.evaluation.backtest import backtest, summarize_backtest
>>> rows = backtest(simulate_history(n_periods=8, seed=2), elapsed_grid=[0.5])
>>> rows.height
8
>>> sorted(summarize_backtest(rows)["method"].unique().to_list())
['historical_ratio', 'posterior', 'prior_mean', 'run_rate']
"""

from __future__ import annotations
import logging
from typing import Iterable, List, Optional, Sequence

import polars as pl

from accumcast.config import DEFAULT_SETTINGS, ForecastSettings
from accumcast.history import PeriodHistory
from accumcast.stats.common.baselines import historical_ratio, run_rate
from accumcast.stats.common.distributions import fit_fraction, fit_prior
from accumcast.stats.common.posterior import posterior_forecast

logger = logging.getLogger(__name__)

DEFAULT_ELAPSED_GRID = (0.25, 0.5, 0.75)
METHODS = ("posterior", "run_rate", "historical_ratio", "prior_mean")


def backtest(
    history: PeriodHistory,
    elapsed_grid: Iterable[float] = DEFAULT_ELAPSED_GRID,
    *,
    prior_family: Optional[str] = None,
    likelihood_family: Optional[str] = None,
    level: Optional[float] = None,
    settings: Optional[ForecastSettings] = None,
    periods: Optional[Sequence[str]] = None,
) -> pl.DataFrame:
    """
    Run the leave-one-period-out backtest.

    Args:
        history: Historical periods
        elapsed_grid: Elapsed fractions in (0, 1) at which to forecast
        prior_family, likelihood_family, level: Overrides of ``settings``
        settings: Numerical settings (defaults to DEFAULT_SETTINGS)
        periods: Subset of complete periods to hold out (default: all)

    Returns:
        polars DataFrame with one row per (period, elapsed)
    """
    s = (settings or DEFAULT_SETTINGS).with_overrides(
        prior_family=prior_family,
        likelihood_family=likelihood_family,
        credible_level=level,
    )
    grid = sorted(float(t) for t in elapsed_grid)
    if not grid or any(not 0.0 < t < 1.0 for t in grid):
        raise ValueError("elapsed_grid must contain values in (0, 1)")

    held_out = list(periods) if periods is not None else history.complete_periods()
    unknown = set(held_out) - set(history.complete_periods())
    if unknown:
        raise ValueError(f"Not complete periods of this history: {sorted(unknown)}")

    rows: List[dict] = []
    for period in held_out:
        train = history.without(period)
        if len(train) < s.min_history:
            logger.warning(
                "Skipping period %s: only %d training periods", period, len(train)
            )
            continue
        prior = fit_prior(train.final_totals(), s.prior_family)
        _, curve = history.curve(period)
        actual = float(curve[-1])

        for tau in grid:
            observed = history.value_at(period, tau)
            fractions = train.fractions_at(tau)
            likelihood = fit_fraction(fractions, s.likelihood_family, eps=s.fraction_eps)
            _, _, summary = posterior_forecast(
                prior,
                likelihood,
                observed,
                level=s.credible_level,
                grid_size=s.grid_size,
                tail=s.tail_mass,
                max_factor=s.max_grid_factor,
                eps=s.fraction_eps,
            )
            rows.append(
                {
                    "period": period,
                    "elapsed": tau,
                    "observed": observed,
                    "actual": actual,
                    "posterior": summary.mean,
                    "median": summary.median,
                    "lower": summary.lower,
                    "upper": summary.upper,
                    "covered": summary.lower <= actual <= summary.upper,
                    "run_rate": run_rate(observed, tau),
                    "historical_ratio": historical_ratio(observed, fractions),
                    "prior_mean": prior.mean(),
                }
            )

    logger.info("Backtest produced %d rows over %d periods", len(rows), len(held_out))
    return pl.DataFrame(
        rows,
        schema={
            "period": pl.Utf8,
            "elapsed": pl.Float64,
            "observed": pl.Float64,
            "actual": pl.Float64,
            "posterior": pl.Float64,
            "median": pl.Float64,
            "lower": pl.Float64,
            "upper": pl.Float64,
            "covered": pl.Boolean,
            "run_rate": pl.Float64,
            "historical_ratio": pl.Float64,
            "prior_mean": pl.Float64,
        },
    )


def summarize_backtest(rows: pl.DataFrame) -> pl.DataFrame:
    """
    Error metrics per elapsed fraction and method.

    Columns: ``elapsed, method, n, mae, mape, coverage`` (coverage only for
    the posterior interval). MAPE ignores periods whose actual total is 0.
    """
    long = rows.unpivot(
        index=["period", "elapsed", "actual", "covered"],
        on=list(METHODS),
        variable_name="method",
        value_name="forecast",
    ).with_columns((pl.col("forecast") - pl.col("actual")).abs().alias("abs_error"))

    return (
        long.group_by(["elapsed", "method"])
        .agg(
            pl.len().alias("n"),
            pl.col("abs_error").mean().alias("mae"),
            (pl.col("abs_error") / pl.col("actual"))
            .filter(pl.col("actual") > 0)
            .mean()
            .alias("mape"),
            pl.when(pl.col("method") == "posterior")
            .then(pl.col("covered").cast(pl.Float64))
            .otherwise(None)
            .mean()
            .alias("coverage"),
        )
        .sort(["elapsed", "method"])
    )
