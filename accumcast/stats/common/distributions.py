"""
accumcast.stats.common.distributions
====================================

Empirical-Bayes distribution fits.

Two kinds of distribution are fitted from the historical record:

- the **prior** over final totals ``T`` (`fit_prior`)
- the **progress likelihood** over completion fractions ``x(tau) / T`` at a
  given elapsed fraction (`fit_fraction`)

Both are returned as `FittedDistribution`, a small serialisable wrapper that
can be written to the ledger with `to_payload()` and rebuilt later with
`from_payload()`. Parametric families delegate to ``scipy.stats``; the
``kde`` family uses ``scipy.stats.gaussian_kde`` tabulated on a fine grid and
truncated to its support.

Examples
--------
>>> import numpy as np
>>> from accumcast.stats.common.distributions import fit_prior, fit_fraction
>>> prior = fit_prior(np.array([90.0, 100.0, 110.0, 105.0, 95.0]), "normal")
>>> round(prior.mean(), 1)
100.0
>>> lik = fit_fraction(np.array([0.4, 0.5, 0.45, 0.55]), "beta")
>>> 0.45 < lik.mean() < 0.5
True
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict, Optional, Tuple

import numpy as np
from scipy import stats

from accumcast.errors import HistoryError, InsufficientHistoryError

logger = logging.getLogger(__name__)

DEGENERATE_CONCENTRATION = 1e4
KDE_TABLE_SIZE = 4096


@dataclass(frozen=True)
class FittedDistribution:
    """A fitted, serialisable univariate distribution.

    Attributes:
        family: ``gamma``, ``lognormal``, ``normal``, ``beta`` or ``kde``
        params: family parameters (JSON-serialisable)
        n: number of observations the fit was based on
    """

    family: str
    params: Dict[str, Any] = field(default_factory=dict)
    n: int = 0

    # ---- scipy-backed families ----

    @cached_property
    def _frozen(self) -> Any:
        p = self.params
        if self.family == "gamma":
            return stats.gamma(p["a"], loc=0.0, scale=p["scale"])
        if self.family == "lognormal":
            return stats.lognorm(p["s"], loc=0.0, scale=p["scale"])
        if self.family == "normal":
            return stats.norm(loc=p["loc"], scale=p["scale"])
        if self.family == "beta":
            return stats.beta(p["a"], p["b"])
        if self.family == "kde":
            return None
        raise ValueError(f"Unknown distribution family: {self.family}")

    # ---- kde tabulation ----

    @cached_property
    def _table(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """(grid, density, cdf) for the kde family, truncated to its support."""
        points = np.asarray(self.params["points"], dtype=float)
        kde = stats.gaussian_kde(points, bw_method=self.params["bw"])
        spread = 4.0 * math.sqrt(float(kde.covariance[0, 0]))
        lo, hi = points.min() - spread, points.max() + spread
        if self.params.get("lower") is not None:
            lo = max(lo, float(self.params["lower"]))
        if self.params.get("upper") is not None:
            hi = min(hi, float(self.params["upper"]))
        grid = np.linspace(lo, hi, KDE_TABLE_SIZE)
        density = kde(grid)
        cdf = np.concatenate(
            [[0.0], np.cumsum(0.5 * (density[1:] + density[:-1]) * np.diff(grid))]
        )
        total = cdf[-1]
        return grid, density / total, cdf / total

    # ---- public API ----

    def logpdf(self, x: Any) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        if self.family != "kde":
            return np.asarray(self._frozen.logpdf(x), dtype=float)
        grid, density, _ = self._table
        inside = (x >= grid[0]) & (x <= grid[-1])
        with np.errstate(divide="ignore"):
            out = np.log(np.interp(x, grid, density))
        return np.where(inside, out, -np.inf)

    def pdf(self, x: Any) -> np.ndarray:
        return np.exp(self.logpdf(x))

    def cdf(self, x: Any) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        if self.family != "kde":
            return np.asarray(self._frozen.cdf(x), dtype=float)
        grid, _, cdf = self._table
        return np.interp(x, grid, cdf, left=0.0, right=1.0)

    def ppf(self, q: Any) -> np.ndarray:
        q = np.asarray(q, dtype=float)
        if self.family != "kde":
            return np.asarray(self._frozen.ppf(q), dtype=float)
        grid, _, cdf = self._table
        # cdf can be flat where the density underflows
        cdf_u, idx = np.unique(cdf, return_index=True)
        return np.interp(q, cdf_u, grid[idx])

    def mean(self) -> float:
        if self.family != "kde":
            return float(self._frozen.mean())
        grid, density, _ = self._table
        return float(np.trapezoid(grid * density, grid))

    def std(self) -> float:
        if self.family != "kde":
            return float(self._frozen.std())
        grid, density, _ = self._table
        m = self.mean()
        return float(math.sqrt(max(np.trapezoid((grid - m) ** 2 * density, grid), 0.0)))

    def support(self) -> Tuple[float, float]:
        if self.family != "kde":
            lo, hi = self._frozen.support()
            return float(lo), float(hi)
        grid, _, _ = self._table
        return float(grid[0]), float(grid[-1])

    @property
    def degenerate(self) -> bool:
        return bool(self.params.get("degenerate", False))

    def to_payload(self) -> Dict[str, Any]:
        return {"family": self.family, "params": dict(self.params), "n": int(self.n)}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "FittedDistribution":
        return cls(
            family=str(payload["family"]),
            params=dict(payload["params"]),
            n=int(payload.get("n", 0)),
        )


def _clean(values: Any, what: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float).ravel()
    finite = arr[np.isfinite(arr)]
    if finite.size < arr.size:
        logger.warning("Dropping %d non-finite %s", arr.size - finite.size, what)
    if finite.size < 2:
        raise InsufficientHistoryError(
            f"Need at least 2 {what} to fit a distribution, got {finite.size}"
        )
    return finite


def fit_prior(final_totals: Any, family: str = "gamma") -> FittedDistribution:
    """
    Fit the prior over final totals from historical periods.

    Args:
        final_totals: Final totals of complete historical periods
        family: ``gamma`` and ``lognormal`` (MLE with location fixed at 0),
            ``normal`` (MLE) or ``kde`` (Gaussian kernel, truncated at 0)

    Returns:
        FittedDistribution over T

    Raises:
        InsufficientHistoryError: fewer than 2 totals, or all totals equal
        HistoryError: non-positive totals for a positive-support family
    """
    totals = _clean(final_totals, "final totals")
    if np.ptp(totals) == 0:
        raise InsufficientHistoryError(
            "Final totals have zero variance; a prior cannot be fitted"
        )

    if family in ("gamma", "lognormal") and totals.min() <= 0:
        raise HistoryError(
            f"The {family} prior needs strictly positive final totals; "
            "use the 'normal' or 'kde' family"
        )

    if family == "gamma":
        a, _, scale = stats.gamma.fit(totals, floc=0)
        params: Dict[str, Any] = {"a": float(a), "scale": float(scale)}
    elif family == "lognormal":
        s, _, scale = stats.lognorm.fit(totals, floc=0)
        params = {"s": float(s), "scale": float(scale)}
    elif family == "normal":
        loc, scale = stats.norm.fit(totals)
        params = {"loc": float(loc), "scale": float(scale)}
    elif family == "kde":
        kde = stats.gaussian_kde(totals)
        params = {
            "points": totals.tolist(),
            "bw": float(kde.factor),
            "lower": 0.0,
            "upper": None,
        }
    else:
        raise ValueError(f"Unknown prior family: {family}")

    fitted = FittedDistribution(family=family, params=params, n=int(totals.size))
    logger.info(
        "Fitted %s prior on %d periods (mean=%.4g, sd=%.4g)",
        family,
        totals.size,
        fitted.mean(),
        fitted.std(),
    )
    return fitted


def _degenerate_beta(m: float, n: int) -> FittedDistribution:
    return FittedDistribution(
        family="beta",
        params={
            "a": float(m * DEGENERATE_CONCENTRATION),
            "b": float((1.0 - m) * DEGENERATE_CONCENTRATION),
            "degenerate": True,
        },
        n=n,
    )


def beta_method_of_moments(values: np.ndarray) -> Optional[Tuple[float, float]]:
    """
    Method-of-moments Beta parameters, or None when the sample variance is
    zero or too large for a Beta with the sample mean.

    >>> a, b = beta_method_of_moments(np.array([0.2, 0.3, 0.4]))
    >>> round(a / (a + b), 2)
    0.3
    """
    m = float(values.mean())
    v = float(values.var(ddof=1))
    if v <= 0 or v >= m * (1.0 - m):
        return None
    kappa = m * (1.0 - m) / v - 1.0
    return m * kappa, (1.0 - m) * kappa


def fit_fraction(
    fractions: Any, family: str = "beta", eps: float = 1e-6
) -> FittedDistribution:
    """
    Fit the progress likelihood over completion fractions.

    Fractions are clipped to ``[eps, 1 - eps]`` so that periods which had
    nothing (or everything) by the given elapsed fraction stay usable.

    Args:
        fractions: Historical completion fractions at one elapsed fraction
        family: ``beta`` (method of moments) or ``kde`` (truncated to [0, 1])
        eps: Clipping margin

    Returns:
        FittedDistribution over the completion fraction. When every fraction
        is identical a tightly concentrated Beta is returned and
        ``params["degenerate"]`` is set.
    """
    raw = _clean(fractions, "completion fractions")
    values = np.clip(raw, eps, 1.0 - eps)
    clipped = int((values != raw).sum())
    if clipped:
        logger.warning("Clipped %d completion fraction(s) into (0, 1)", clipped)

    if family == "beta":
        mom = beta_method_of_moments(values)
        if mom is None:
            logger.warning(
                "Completion fractions are degenerate (mean=%.4g); using a concentrated Beta",
                values.mean(),
            )
            return _degenerate_beta(float(values.mean()), int(values.size))
        a, b = mom
        return FittedDistribution(
            family="beta", params={"a": float(a), "b": float(b)}, n=int(values.size)
        )

    if family == "kde":
        if np.ptp(values) == 0:
            logger.warning(
                "Completion fractions have zero variance; using a concentrated Beta"
            )
            return _degenerate_beta(float(values.mean()), int(values.size))
        kde = stats.gaussian_kde(values)
        return FittedDistribution(
            family="kde",
            params={
                "points": values.tolist(),
                "bw": float(kde.factor),
                "lower": 0.0,
                "upper": 1.0,
            },
            n=int(values.size),
        )

    raise ValueError(f"Unknown likelihood family: {family}")
