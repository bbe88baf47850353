"""
accumcast.reporting.accumulation
================================

Forecast progress view for the accumulation scheme.

The reporter works on a polars frame of ledger rows, extracting payload
fields with JSON path expressions so that no payload needs decoding row by
row.

Examples
--------
>>> from accumcast.api.forecast import forecast_final
>>> from accumcast.core.ledger import Ledger, create_test_connection
>>> from accumcast.simulate import simulate_history
>>> from accumcast.reporting.accumulation import ForecastReporter
>>> L = Ledger(create_test_connection("duckdb"), "doc")
>>> _ = forecast_final(simulate_history(seed=9), 0.5, 500.0, period_id="p", ledger=L)
>>> rep = ForecastReporter.from_ledger(L)
>>> rep.progress_table().select("look", "elapsed", "observed").rows()
[(1, 0.5, 500.0)]
"""

from __future__ import annotations
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
import polars as pl

from accumcast.config import DEFAULT_SETTINGS
from accumcast.core.names import (
    LIKELIHOOD_FIT_TAG,
    POSTERIOR_TAG,
    PRIOR_FIT_TAG,
    TARGET_DECISION_TAG,
)
from accumcast.stats.common.distributions import FittedDistribution
from accumcast.stats.common.posterior import build_grid, posterior_on_grid

if TYPE_CHECKING:
    from accumcast.core.ledger import Ledger

POSTERIOR_FIELDS = {
    "elapsed": pl.Float64,
    "observed": pl.Float64,
    "mean": pl.Float64,
    "median": pl.Float64,
    "lower": pl.Float64,
    "upper": pl.Float64,
    "p_target": pl.Float64,
    "target": pl.Float64,
    "run_rate": pl.Float64,
    "historical_ratio": pl.Float64,
}


@dataclass
class ForecastReporter:
    """Per-look forecast progress of one period."""

    df: pl.DataFrame
    period_id: Optional[str] = None

    @classmethod
    def from_ledger(
        cls, ledger: "Ledger", period_id: Optional[str] = None
    ) -> "ForecastReporter":
        return cls(ledger.frame(), period_id)

    def _rows(self, tag: str) -> pl.DataFrame:
        q = self.df.filter(pl.col("tag") == tag)
        if self.period_id is not None:
            q = q.filter(pl.col("entity").str.starts_with(f"{self.period_id}#"))
        return q.sort("seq")

    def progress_table(self) -> pl.DataFrame:
        """
        One row per look:
        look, elapsed, observed, mean, median, lower, upper, p_target,
        target, run_rate, historical_ratio, action
        """
        stats = self._rows(POSTERIOR_TAG).with_columns(
            *[
                pl.col("payload").str.json_path_match(f"$.{name}").cast(dtype).alias(name)
                for name, dtype in POSTERIOR_FIELDS.items()
            ],
            pl.col("time_index").str.strip_prefix("t").cast(pl.Int64).alias("look"),
        ).select("entity", "time_index", "look", *POSTERIOR_FIELDS.keys())

        decisions = self._rows(TARGET_DECISION_TAG).with_columns(
            pl.col("payload").str.json_path_match("$.action").alias("action")
        ).select("entity", "time_index", "action")

        return stats.join(
            decisions, on=["entity", "time_index"], how="left"
        ).sort("look")

    def _payload(self, tag: str, time_index: Optional[str] = None) -> Optional[Dict[str, Any]]:
        q = self._rows(tag)
        if time_index is not None:
            q = q.filter(pl.col("time_index") == time_index)
        if q.height == 0:
            return None
        return json.loads(q["payload"][-1])

    def posterior_curve(
        self, look: Optional[int] = None, grid_size: int = DEFAULT_SETTINGS.grid_size
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Recompute the posterior density of one look (default: the latest)
        from the prior, likelihood and observation recorded in the ledger.
        """
        time_index = None if look is None else f"t{look}"
        posterior = self._payload(POSTERIOR_TAG, time_index)
        prior = self._payload(PRIOR_FIT_TAG)
        if posterior is None or prior is None:
            raise ValueError("No posterior forecast recorded for this look")
        if posterior.get("complete"):
            raise ValueError("The period is complete; the posterior is a point mass")
        likelihood = self._payload(LIKELIHOOD_FIT_TAG, time_index)
        if likelihood is None:
            raise ValueError("No likelihood fit recorded for this look")

        prior_dist = FittedDistribution.from_payload(prior)
        lik_dist = FittedDistribution.from_payload(likelihood)
        observed = float(posterior["observed"])
        grid = build_grid(prior_dist, lik_dist, observed, size=grid_size)
        return grid, posterior_on_grid(prior_dist, lik_dist, observed, grid)

    def plot(self, show: bool = True, ax: Optional[Any] = None) -> Any:
        """
        Fan chart of the forecast against elapsed fraction: posterior mean,
        credible band, run-rate baseline and (if set) the target.
        """
        prog = self.progress_table()
        if ax is None:
            _, ax = plt.subplots(figsize=(6.5, 4.2))
        if prog.is_empty():
            ax.set_title("(no forecasts)")
            return ax

        xs = prog["elapsed"].to_numpy()
        ax.fill_between(
            xs,
            prog["lower"].to_numpy(),
            prog["upper"].to_numpy(),
            alpha=0.25,
            label="Credible interval",
        )
        ax.plot(xs, prog["mean"].to_numpy(), marker="o", label="Posterior mean")
        ax.plot(xs, prog["observed"].to_numpy(), marker="s", label="Observed so far")
        ax.plot(
            xs,
            prog["run_rate"].to_numpy(),
            linestyle="--",
            label="Run-rate",
        )
        targets = prog["target"].drop_nulls()
        if targets.len() > 0:
            ax.axhline(float(targets[-1]), linestyle=":", color="red", label="Target")

        ax.set_xlim(0.0, 1.0)
        ax.set_xlabel("Elapsed fraction of period")
        ax.set_ylabel("Final total")
        ax.set_title(f"Forecast progress{f' ({self.period_id})' if self.period_id else ''}")
        ax.legend()
        if show:
            plt.tight_layout()
            plt.show()
        return ax
