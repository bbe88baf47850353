"""
accumcast.simulate
==================

Synthetic histories of an accumulating process, for examples and tests.

Final totals are gamma distributed with a given mean and coefficient of
variation. Each period accumulates along a Beta-CDF shaped curve whose shape
parameters and per-step increments are perturbed with multiplicative
log-normal noise, then renormalised so that the curve ends at the total.

Examples
--------
>>> from accumcast.simulate import simulate_history
>>> h = simulate_history(n_periods=5, n_steps=10, seed=0)
>>> len(h), h.frame.height
(5, 50)
"""

from __future__ import annotations
from typing import Optional, Tuple

import numpy as np
import polars as pl
from scipy import stats

from accumcast.history import PeriodHistory


def simulate_history(
    n_periods: int = 24,
    n_steps: int = 30,
    *,
    mean_total: float = 1000.0,
    cv: float = 0.15,
    curve_shape: Tuple[float, float] = (1.5, 1.5),
    noise: float = 0.1,
    seed: Optional[int] = None,
) -> PeriodHistory:
    """
    Simulate ``n_periods`` complete periods observed at ``n_steps`` points.

    Args:
        n_periods: Number of periods
        n_steps: Observations per period (the last one at elapsed == 1)
        mean_total: Mean final total
        cv: Coefficient of variation of the final total
        curve_shape: Beta(a, b) shape of the average accumulation curve
        noise: Log-scale noise on the curve shape and the increments
        seed: Seed for ``numpy.random.default_rng``
    """
    if n_periods < 1 or n_steps < 1:
        raise ValueError("n_periods and n_steps must be positive")
    if mean_total <= 0 or cv <= 0:
        raise ValueError("mean_total and cv must be positive")

    rng = np.random.default_rng(seed)
    k = 1.0 / cv**2
    totals = rng.gamma(shape=k, scale=mean_total / k, size=n_periods)
    elapsed = np.arange(1, n_steps + 1) / n_steps

    periods, xs, ys = [], [], []
    a0, b0 = curve_shape
    for i, total in enumerate(totals):
        a = a0 * np.exp(noise * rng.standard_normal())
        b = b0 * np.exp(noise * rng.standard_normal())
        base = stats.beta.cdf(np.concatenate([[0.0], elapsed]), a, b)
        steps = np.diff(base) * np.exp(noise * rng.standard_normal(n_steps))
        curve = np.cumsum(steps)
        curve = curve / curve[-1]
        periods.extend([f"P{i + 1:03d}"] * n_steps)
        xs.extend(elapsed.tolist())
        ys.extend((total * curve).tolist())

    frame = pl.DataFrame({"period": periods, "elapsed": xs, "cumulative": ys})
    return PeriodHistory(frame)
