"""
accumcast.stats.common.posterior
================================

Combination of the prior over final totals with the progress likelihood.

Given the cumulative value ``x`` observed at elapsed fraction ``tau``, the
posterior over the final total ``T`` is

    p(T | x) ∝ p_prior(T) * p_f(x / T) / T,    T >= x

where ``p_f`` is the density of the completion fraction at ``tau``. The
``1 / T`` factor is the Jacobian of the change of variables from the fraction
``f = x / T`` to ``x`` for fixed ``T``.

The posterior has no closed form for the supported families, so it is
evaluated on a grid in log-space and normalised with the trapezoid rule.

Edge cases:
- ``x == 0``: every ``T`` gives fraction 0, the likelihood is flat in ``T``
  and the posterior is the prior restricted to ``T >= 0``.
- complete period (``tau == 1``): the final total is known and the posterior
  is a point mass at ``x`` (see `point_mass_summary`).

Examples
--------
>>> import numpy as np
>>> from accumcast.stats.common.distributions import fit_prior, fit_fraction
>>> from accumcast.stats.common.posterior import posterior_forecast
>>> prior = fit_prior(np.array([80.0, 95.0, 100.0, 110.0, 120.0]), "gamma")
>>> lik = fit_fraction(np.array([0.48, 0.5, 0.52, 0.49, 0.51]), "beta")
>>> grid, dens, summary = posterior_forecast(prior, lik, observed=60.0)
>>> 110 < summary.mean < 125
True
"""

from __future__ import annotations
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np

from accumcast.errors import PosteriorError
from accumcast.stats.common.distributions import FittedDistribution

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PosteriorSummary:
    """Summary of the posterior over the final total."""

    mean: float
    median: float
    mode: float
    sd: float
    lower: float
    upper: float
    level: float
    target: Optional[float] = None
    p_target: Optional[float] = None

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


def build_grid(
    prior: FittedDistribution,
    likelihood: FittedDistribution,
    observed: float,
    *,
    size: int = 2001,
    tail: float = 1e-4,
    max_factor: float = 50.0,
) -> np.ndarray:
    """
    Evaluation grid over the final total.

    The grid covers the bulk of the prior and the range of totals the
    likelihood considers plausible for ``observed``, never goes below
    ``observed`` (or 0), and is capped at ``max_factor`` times the larger of
    the prior's upper quantile and ``observed``.
    """
    if observed < 0:
        raise ValueError(f"observed must be non-negative, got {observed}")

    p_lo, p_hi = (float(v) for v in prior.ppf([tail, 1.0 - tail]))
    lo = max(p_lo, 0.0)
    hi = p_hi

    if observed > 0:
        f_lo, f_hi = (float(v) for v in likelihood.ppf([tail, 1.0 - tail]))
        f_lo = max(f_lo, tail)
        f_hi = min(max(f_hi, f_lo), 1.0)
        lo = min(lo, observed / f_hi)
        hi = max(hi, observed / f_lo)
        lo = max(lo, observed)

    cap = max_factor * max(p_hi, observed, 1e-12)
    if not np.isfinite(hi) or hi > cap:
        logger.debug("Capping grid upper bound %.4g at %.4g", hi, cap)
        hi = cap
    if hi <= lo:
        hi = lo + max(abs(lo), 1.0) * 1e-6

    return np.linspace(lo, hi, size)


def posterior_on_grid(
    prior: FittedDistribution,
    likelihood: FittedDistribution,
    observed: float,
    grid: np.ndarray,
    *,
    eps: float = 1e-6,
) -> np.ndarray:
    """
    Normalised posterior density over ``grid``.

    Raises:
        PosteriorError: the density is unbounded or has no finite mass
    """
    grid = np.asarray(grid, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        logp = prior.logpdf(grid)
        if observed > 0:
            frac = np.clip(observed / grid, eps, 1.0 - eps)
            logp = logp + likelihood.logpdf(frac) - np.log(grid)
            logp = np.where(grid < observed, -np.inf, logp)
        else:
            logp = np.where(grid < 0, -np.inf, logp)

    if np.isposinf(logp).any() or np.isnan(logp).any():
        raise PosteriorError("Posterior density is unbounded on the grid")
    if not np.isfinite(logp).any():
        raise PosteriorError(
            f"Prior and likelihood have no overlap for observed={observed:.4g}"
        )

    density = np.exp(logp - logp.max())
    mass = float(np.trapezoid(density, grid))
    if not np.isfinite(mass) or mass <= 0:
        raise PosteriorError("Posterior has no finite mass on the grid")
    return density / mass


def _cdf(grid: np.ndarray, density: np.ndarray) -> np.ndarray:
    steps = 0.5 * (density[1:] + density[:-1]) * np.diff(grid)
    cdf = np.concatenate([[0.0], np.cumsum(steps)])
    return cdf / cdf[-1]


def _quantile(grid: np.ndarray, cdf: np.ndarray, q: float) -> float:
    cdf_u, idx = np.unique(cdf, return_index=True)
    return float(np.interp(q, cdf_u, grid[idx]))


def summarize(
    grid: np.ndarray,
    density: np.ndarray,
    *,
    level: float = 0.9,
    target: Optional[float] = None,
) -> PosteriorSummary:
    """Mean, median, mode, sd, equal-tailed interval and P(T >= target)."""
    if not 0.0 < level < 1.0:
        raise ValueError(f"level must be in (0, 1), got {level}")
    cdf = _cdf(grid, density)
    mean = float(np.trapezoid(grid * density, grid))
    var = float(np.trapezoid((grid - mean) ** 2 * density, grid))
    p_target = None
    if target is not None:
        p_target = float(1.0 - np.interp(target, grid, cdf, left=0.0, right=1.0))
    return PosteriorSummary(
        mean=mean,
        median=_quantile(grid, cdf, 0.5),
        mode=float(grid[int(np.argmax(density))]),
        sd=float(np.sqrt(max(var, 0.0))),
        lower=_quantile(grid, cdf, (1.0 - level) / 2.0),
        upper=_quantile(grid, cdf, (1.0 + level) / 2.0),
        level=float(level),
        target=None if target is None else float(target),
        p_target=p_target,
    )


def point_mass_summary(
    observed: float, *, level: float = 0.9, target: Optional[float] = None
) -> PosteriorSummary:
    """Summary for a complete period, where the final total is known."""
    p_target = None
    if target is not None:
        p_target = 1.0 if observed >= target else 0.0
    return PosteriorSummary(
        mean=float(observed),
        median=float(observed),
        mode=float(observed),
        sd=0.0,
        lower=float(observed),
        upper=float(observed),
        level=float(level),
        target=None if target is None else float(target),
        p_target=p_target,
    )


def posterior_forecast(
    prior: FittedDistribution,
    likelihood: FittedDistribution,
    observed: float,
    *,
    level: float = 0.9,
    target: Optional[float] = None,
    grid_size: int = 2001,
    tail: float = 1e-4,
    max_factor: float = 50.0,
    eps: float = 1e-6,
) -> Tuple[np.ndarray, np.ndarray, PosteriorSummary]:
    """Build the grid, evaluate the posterior and summarise it."""
    grid = build_grid(
        prior, likelihood, observed, size=grid_size, tail=tail, max_factor=max_factor
    )
    density = posterior_on_grid(prior, likelihood, observed, grid, eps=eps)
    summary = summarize(grid, density, level=level, target=target)
    logger.debug(
        "Posterior for observed=%.4g on [%.4g, %.4g]: mean=%.4g",
        observed,
        grid[0],
        grid[-1],
        summary.mean,
    )
    return grid, density, summary
