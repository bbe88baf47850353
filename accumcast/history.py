"""
accumcast.history
=================

Historical periods of an accumulating process.

A history is a long-format table with one row per (period, elapsed) point:

- ``period``: period identifier (cast to string)
- ``elapsed``: elapsed fraction of the period in [0, 1]
- ``cumulative``: amount accumulated so far, non-decreasing within a period

Only *complete* periods (those observed at ``elapsed == 1``) feed the prior
and the progress likelihood. Incomplete periods are kept in the frame and
reported, but never fitted.

Examples
--------
>>> import polars as pl
>>> from accumcast.history import PeriodHistory
>>> df = pl.DataFrame({
...     "period": ["a", "a", "b", "b", "c"],
...     "elapsed": [0.5, 1.0, 0.5, 1.0, 0.5],
...     "cumulative": [40.0, 100.0, 60.0, 120.0, 30.0],
... })
>>> h = PeriodHistory(df)
>>> h.complete_periods()
['a', 'b']
>>> h.fractions_at(0.5).round(2).tolist()
[0.4, 0.5]
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import polars as pl

from accumcast.errors import HistoryError, InsufficientHistoryError

logger = logging.getLogger(__name__)

COMPLETE_TOL = 1e-9


class PeriodHistory:
    """Validated collection of historical accumulation curves."""

    def __init__(
        self,
        frame: pl.DataFrame,
        *,
        period_col: str = "period",
        elapsed_col: str = "elapsed",
        value_col: str = "cumulative",
        increments: bool = False,
    ) -> None:
        missing = [c for c in (period_col, elapsed_col, value_col) if c not in frame.columns]
        if missing:
            raise HistoryError(f"History is missing required columns: {missing}")

        df = frame.select(
            pl.col(period_col).cast(pl.Utf8).alias("period"),
            pl.col(elapsed_col).cast(pl.Float64).alias("elapsed"),
            pl.col(value_col).cast(pl.Float64).alias("cumulative"),
        ).sort(["period", "elapsed"])

        if increments:
            df = df.with_columns(pl.col("cumulative").cum_sum().over("period"))

        self._validate(df)
        self._frame = df
        self._curves: Dict[str, Tuple[np.ndarray, np.ndarray]] = {}
        for (period,), part in df.group_by(["period"], maintain_order=True):
            self._curves[str(period)] = (
                part["elapsed"].to_numpy(),
                part["cumulative"].to_numpy(),
            )

        self._complete = [
            p for p, (xs, _) in self._curves.items() if xs[-1] >= 1.0 - COMPLETE_TOL
        ]
        incomplete = [p for p in self._curves if p not in self._complete]
        if incomplete:
            logger.warning(
                "Excluding %d incomplete period(s) from fitting: %s",
                len(incomplete),
                incomplete,
            )

    @staticmethod
    def _validate(df: pl.DataFrame) -> None:
        if df.height == 0:
            raise HistoryError("History is empty")
        if df.null_count().sum_horizontal().item() > 0:
            raise HistoryError("History contains null values")
        non_finite = [c for c in ("elapsed", "cumulative") if df.filter(~pl.col(c).is_finite()).height]
        if non_finite:
            raise HistoryError(f"History contains non-finite values in {non_finite}")
        if df.filter((pl.col("elapsed") < 0) | (pl.col("elapsed") > 1)).height:
            raise HistoryError("elapsed must lie in [0, 1]")
        if df.filter(pl.col("cumulative") < 0).height:
            raise HistoryError("cumulative values cannot be negative")

        dupes = df.group_by(["period", "elapsed"]).len().filter(pl.col("len") > 1)
        if dupes.height:
            raise HistoryError(
                f"Duplicate elapsed points in periods: {sorted(dupes['period'].unique().to_list())}"
            )

        decreasing = (
            df.with_columns(pl.col("cumulative").diff().over("period").alias("_step"))
            .filter(pl.col("_step") < 0)["period"]
            .unique()
            .to_list()
        )
        if decreasing:
            raise HistoryError(
                f"cumulative must be non-decreasing within a period; violated in {sorted(decreasing)}"
            )

    # ---- constructors ----

    @classmethod
    def from_steps(
        cls,
        frame: pl.DataFrame,
        period_length: float,
        *,
        step_col: str = "step",
        period_col: str = "period",
        value_col: str = "cumulative",
        increments: bool = False,
    ) -> "PeriodHistory":
        """Build a history from step indices (e.g. day of month).

        Step ``period_length`` maps to ``elapsed == 1``.

        >>> df = pl.DataFrame({"period": [1, 1], "step": [15, 30], "cumulative": [5, 9]})
        >>> PeriodHistory.from_steps(df, 30).final_totals().tolist()
        [9.0]
        """
        if period_length <= 0:
            raise HistoryError(f"period_length must be positive, got {period_length}")
        if step_col not in frame.columns:
            raise HistoryError(f"History is missing required columns: [{step_col!r}]")
        df = frame.with_columns(
            (pl.col(step_col).cast(pl.Float64) / float(period_length)).alias("elapsed")
        )
        return cls(
            df,
            period_col=period_col,
            elapsed_col="elapsed",
            value_col=value_col,
            increments=increments,
        )

    @classmethod
    def from_pandas(cls, df: pd.DataFrame, **kwargs: Any) -> "PeriodHistory":
        """Build a history from a pandas DataFrame."""
        return cls(pl.from_pandas(df), **kwargs)

    # ---- accessors ----

    @property
    def frame(self) -> pl.DataFrame:
        return self._frame.clone()

    @property
    def periods(self) -> List[str]:
        return list(self._curves)

    def __len__(self) -> int:
        return len(self._complete)

    def __repr__(self) -> str:
        return (
            f"PeriodHistory(periods={len(self._curves)}, complete={len(self._complete)})"
        )

    def complete_periods(self) -> List[str]:
        return list(self._complete)

    def curve(self, period: str) -> Tuple[np.ndarray, np.ndarray]:
        """Return (elapsed, cumulative) arrays for one period."""
        try:
            xs, ys = self._curves[str(period)]
        except KeyError:
            raise KeyError(f"Unknown period: {period!r}") from None
        return xs.copy(), ys.copy()

    def value_at(self, period: str, tau: float) -> float:
        """Cumulative value of one period at elapsed fraction ``tau``.

        Linear interpolation between observed points; the curve starts at 0.
        """
        if not 0.0 <= tau <= 1.0:
            raise ValueError(f"tau must be in [0, 1], got {tau}")
        xs, ys = self.curve(period)
        if xs[0] > 0.0:
            xs = np.concatenate([[0.0], xs])
            ys = np.concatenate([[0.0], ys])
        if tau > xs[-1]:
            raise ValueError(
                f"Period {period!r} is only observed up to elapsed={xs[-1]:.3f}"
            )
        return float(np.interp(tau, xs, ys))

    def final_totals(self) -> np.ndarray:
        """Final totals of the complete periods, in period order."""
        return np.array([self._curves[p][1][-1] for p in self._complete], dtype=float)

    def cumulative_at(self, tau: float) -> np.ndarray:
        """Cumulative values of the complete periods at elapsed fraction ``tau``."""
        return np.array([self.value_at(p, tau) for p in self._complete], dtype=float)

    def fractions_at(self, tau: float) -> np.ndarray:
        """Completion fractions x(tau) / T of the complete periods.

        Periods with a final total of zero carry no information about the
        fraction and are skipped.
        """
        totals = self.final_totals()
        values = self.cumulative_at(tau)
        usable = totals > 0
        if not usable.all():
            logger.warning(
                "Skipping %d period(s) with zero final total", int((~usable).sum())
            )
        return values[usable] / totals[usable]

    def without(self, period: str) -> "PeriodHistory":
        """Copy of this history with one period removed (for backtesting)."""
        if str(period) not in self._curves:
            raise KeyError(f"Unknown period: {period!r}")
        return PeriodHistory(self._frame.filter(pl.col("period") != str(period)))

    def summary(self) -> Dict[str, Any]:
        totals = self.final_totals()
        out: Dict[str, Any] = {
            "periods": len(self._curves),
            "complete_periods": len(self._complete),
        }
        if totals.size:
            out.update(
                {
                    "final_total_mean": float(totals.mean()),
                    "final_total_std": float(totals.std(ddof=1)) if totals.size > 1 else 0.0,
                    "final_total_min": float(totals.min()),
                    "final_total_max": float(totals.max()),
                }
            )
        return out


def require_history(history: Optional[PeriodHistory], min_periods: int) -> PeriodHistory:
    """Raise InsufficientHistoryError unless ``history`` has enough complete periods."""
    if history is None:
        raise InsufficientHistoryError("No history provided")
    if len(history) < min_periods:
        raise InsufficientHistoryError(
            f"Need at least {min_periods} complete periods, got {len(history)}"
        )
    return history
