"""
accumcast.stats.common
======================

Generic, scheme-independent numerical methods: distribution fits, grid
posteriors and naive baselines.
"""

from accumcast.stats.common.distributions import (
    FittedDistribution,
    fit_fraction,
    fit_prior,
)
from accumcast.stats.common.posterior import (
    PosteriorSummary,
    build_grid,
    point_mass_summary,
    posterior_forecast,
    posterior_on_grid,
    summarize,
)
from accumcast.stats.common.baselines import historical_ratio, prior_mean, run_rate

__all__ = [
    "FittedDistribution",
    "fit_fraction",
    "fit_prior",
    "PosteriorSummary",
    "build_grid",
    "point_mass_summary",
    "posterior_forecast",
    "posterior_on_grid",
    "summarize",
    "historical_ratio",
    "prior_mean",
    "run_rate",
]
