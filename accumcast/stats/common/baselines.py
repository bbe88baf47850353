"""
accumcast.stats.common.baselines
================================

Naive final-total forecasts used as reference points for the posterior.

- `run_rate`: extrapolate the pace so far linearly to the end of the period
- `historical_ratio`: divide by the average historical completion fraction
- `prior_mean`: ignore within-period progress entirely
"""

from __future__ import annotations
import math
from typing import Any

import numpy as np

from accumcast.stats.common.distributions import FittedDistribution


def run_rate(observed: float, tau: float) -> float:
    """
    Linear extrapolation ``observed / tau``.

    >>> run_rate(30.0, 0.25)
    120.0
    >>> run_rate(30.0, 0.0)
    nan
    """
    if tau <= 0:
        return math.nan
    return float(observed) / float(tau)


def historical_ratio(observed: float, fractions: Any) -> float:
    """
    ``observed`` divided by the mean historical completion fraction.

    >>> historical_ratio(30.0, [0.2, 0.3])
    120.0
    """
    arr = np.asarray(fractions, dtype=float)
    if arr.size == 0:
        return math.nan
    mean_fraction = float(arr.mean())
    if mean_fraction <= 0:
        return math.nan
    return float(observed) / mean_fraction


def prior_mean(prior: FittedDistribution) -> float:
    return prior.mean()
