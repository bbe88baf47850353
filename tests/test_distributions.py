"""Tests for prior and completion-fraction fits."""

import logging

import numpy as np
import pytest

from accumcast.errors import HistoryError, InsufficientHistoryError
from accumcast.stats.common.distributions import (
    FittedDistribution,
    beta_method_of_moments,
    fit_fraction,
    fit_prior,
)

TOTALS = np.array([82.0, 95.0, 101.0, 99.0, 110.0, 118.0, 90.0, 105.0])
FRACTIONS = np.array([0.42, 0.47, 0.5, 0.53, 0.49, 0.45, 0.51, 0.55])


# =============================================================================
# PRIOR
# =============================================================================


class TestFitPrior:
    @pytest.mark.parametrize("family", ["gamma", "lognormal", "normal", "kde"])
    def test_mean_close_to_sample_mean(self, family):
        prior = fit_prior(TOTALS, family)
        assert prior.family == family
        assert prior.n == TOTALS.size
        assert prior.mean() == pytest.approx(TOTALS.mean(), rel=0.03)

    @pytest.mark.parametrize("family", ["gamma", "lognormal", "normal", "kde"])
    def test_density_integrates_to_one(self, family):
        prior = fit_prior(TOTALS, family)
        grid = np.linspace(0.0, 400.0, 20001)
        assert np.trapezoid(prior.pdf(grid), grid) == pytest.approx(1.0, abs=1e-3)

    def test_kde_is_truncated_at_zero(self):
        prior = fit_prior(np.array([1.0, 2.0, 3.0, 2.5]), "kde")
        lo, _ = prior.support()
        assert lo >= 0.0
        assert prior.cdf(0.0) == pytest.approx(0.0)
        assert np.isneginf(prior.logpdf(-1.0))

    def test_positive_families_reject_zero_totals(self):
        with pytest.raises(HistoryError, match="strictly positive"):
            fit_prior(np.array([0.0, 5.0, 10.0]), "gamma")

    def test_normal_accepts_zero_totals(self):
        assert fit_prior(np.array([0.0, 5.0, 10.0]), "normal").mean() == pytest.approx(5.0)

    def test_too_few_totals(self):
        with pytest.raises(InsufficientHistoryError):
            fit_prior([100.0], "gamma")

    def test_constant_totals(self):
        with pytest.raises(InsufficientHistoryError, match="zero variance"):
            fit_prior([100.0, 100.0, 100.0], "normal")

    def test_non_finite_values_dropped(self, caplog):
        with caplog.at_level(logging.WARNING):
            prior = fit_prior(np.append(TOTALS, np.nan), "normal")
        assert prior.n == TOTALS.size
        assert "non-finite" in caplog.text

    def test_unknown_family(self):
        with pytest.raises(ValueError, match="Unknown prior family"):
            fit_prior(TOTALS, "cauchy")


# =============================================================================
# COMPLETION FRACTION
# =============================================================================


class TestFitFraction:
    def test_beta_method_of_moments(self):
        lik = fit_fraction(FRACTIONS, "beta")
        assert lik.family == "beta"
        assert lik.mean() == pytest.approx(FRACTIONS.mean(), rel=1e-9)
        assert lik.std() == pytest.approx(FRACTIONS.std(ddof=1), rel=1e-9)
        assert not lik.degenerate

    def test_kde_bounded_to_unit_interval(self):
        lik = fit_fraction(FRACTIONS, "kde")
        lo, hi = lik.support()
        assert 0.0 <= lo and hi <= 1.0
        assert lik.mean() == pytest.approx(FRACTIONS.mean(), abs=0.02)

    @pytest.mark.parametrize("family", ["beta", "kde"])
    def test_identical_fractions_give_concentrated_beta(self, family):
        lik = fit_fraction(np.full(5, 0.4), family)
        assert lik.family == "beta"
        assert lik.degenerate
        assert lik.mean() == pytest.approx(0.4)
        assert lik.std() < 0.01

    def test_fractions_at_bounds_are_clipped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="accumcast.stats.common.distributions"):
            lik = fit_fraction(np.array([0.0, 0.3, 0.6, 1.0]), "beta", eps=1e-3)
        assert np.isfinite(lik.logpdf(0.5))
        assert "Clipped 2 completion fraction(s)" in caplog.text

    def test_overdispersed_fractions_fall_back(self):
        assert beta_method_of_moments(np.array([1e-6, 1 - 1e-6, 1e-6, 1 - 1e-6])) is None

    def test_unknown_family(self):
        with pytest.raises(ValueError):
            fit_fraction(FRACTIONS, "gamma")


# =============================================================================
# SERIALISATION
# =============================================================================


class TestPayload:
    @pytest.mark.parametrize("family", ["gamma", "kde"])
    def test_payload_rebuilds_same_distribution(self, family):
        prior = fit_prior(TOTALS, family)
        rebuilt = FittedDistribution.from_payload(prior.to_payload())
        xs = np.array([85.0, 100.0, 115.0])
        assert rebuilt.logpdf(xs) == pytest.approx(prior.logpdf(xs))

    def test_payload_is_plain_data(self):
        payload = fit_prior(TOTALS, "lognormal").to_payload()
        assert payload["family"] == "lognormal"
        assert set(payload["params"]) == {"s", "scale"}
        assert all(isinstance(v, float) for v in payload["params"].values())

    def test_unknown_family_on_use(self):
        with pytest.raises(ValueError):
            FittedDistribution("weibull", {}).mean()
