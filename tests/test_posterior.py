"""Tests for the grid posterior over the final total."""

import numpy as np
import pytest

from accumcast.errors import PosteriorError
from accumcast.stats.common.distributions import fit_fraction, fit_prior
from accumcast.stats.common.posterior import (
    PosteriorSummary,
    build_grid,
    point_mass_summary,
    posterior_forecast,
    posterior_on_grid,
    summarize,
)

TOTALS = np.array([82.0, 95.0, 101.0, 99.0, 110.0, 118.0, 90.0, 105.0])
FRACTIONS = np.array([0.42, 0.47, 0.5, 0.53, 0.49, 0.45, 0.51, 0.55])


@pytest.fixture
def prior():
    return fit_prior(TOTALS, "gamma")


@pytest.fixture
def likelihood():
    return fit_fraction(FRACTIONS, "beta")


# =============================================================================
# GRID
# =============================================================================


class TestBuildGrid:
    def test_grid_starts_at_observed(self, prior, likelihood):
        grid = build_grid(prior, likelihood, 70.0, size=101)
        assert grid.size == 101
        assert grid[0] >= 70.0
        assert np.all(np.diff(grid) > 0)

    def test_grid_covers_likelihood_range(self, prior, likelihood):
        # a reading far above the prior pushes the grid out
        grid = build_grid(prior, likelihood, 150.0)
        assert grid[-1] > 150.0 / 0.55

    def test_grid_for_zero_observation_covers_prior(self, prior, likelihood):
        grid = build_grid(prior, likelihood, 0.0)
        assert grid[0] >= 0.0
        assert grid[0] < TOTALS.min() and grid[-1] > TOTALS.max()

    def test_negative_observation(self, prior, likelihood):
        with pytest.raises(ValueError):
            build_grid(prior, likelihood, -1.0)


# =============================================================================
# DENSITY
# =============================================================================


class TestPosteriorOnGrid:
    def test_matches_bayes_rule_with_jacobian(self, prior, likelihood):
        observed = 48.0
        grid = np.linspace(observed, 300.0, 4001)
        density = posterior_on_grid(prior, likelihood, observed, grid)

        manual = prior.pdf(grid) * likelihood.pdf(observed / grid) / grid
        manual = manual / np.trapezoid(manual, grid)
        assert density == pytest.approx(manual, rel=1e-6, abs=1e-12)
        assert np.trapezoid(density, grid) == pytest.approx(1.0)

    def test_zero_observation_returns_prior(self, prior, likelihood):
        grid = build_grid(prior, likelihood, 0.0, size=4001)
        density = posterior_on_grid(prior, likelihood, 0.0, grid)
        expected = prior.pdf(grid) / np.trapezoid(prior.pdf(grid), grid)
        assert density == pytest.approx(expected, rel=1e-6, abs=1e-12)

    def test_no_mass_below_observed(self, prior, likelihood):
        grid = np.linspace(10.0, 300.0, 1001)
        density = posterior_on_grid(prior, likelihood, 60.0, grid)
        assert np.all(density[grid < 60.0] == 0.0)

    def test_no_overlap_raises(self, likelihood):
        bounded_prior = fit_prior(TOTALS, "kde")
        with pytest.raises(PosteriorError, match="no overlap"):
            posterior_forecast(bounded_prior, likelihood, 500.0)


# =============================================================================
# SUMMARIES
# =============================================================================


class TestSummaries:
    def test_posterior_summary_is_ordered(self, prior, likelihood):
        _, _, s = posterior_forecast(prior, likelihood, 50.0, level=0.9)
        assert isinstance(s, PosteriorSummary)
        assert 50.0 <= s.lower < s.median < s.upper
        assert s.lower < s.mean < s.upper
        assert s.sd > 0
        assert s.level == 0.9

    def test_higher_progress_raises_forecast(self, prior, likelihood):
        _, _, low = posterior_forecast(prior, likelihood, 40.0)
        _, _, high = posterior_forecast(prior, likelihood, 60.0)
        assert high.mean > low.mean

    def test_wider_level_gives_wider_interval(self, prior, likelihood):
        _, _, narrow = posterior_forecast(prior, likelihood, 50.0, level=0.5)
        _, _, wide = posterior_forecast(prior, likelihood, 50.0, level=0.95)
        assert wide.lower < narrow.lower and wide.upper > narrow.upper

    def test_p_target(self, prior, likelihood):
        _, _, s = posterior_forecast(prior, likelihood, 50.0, target=80.0)
        assert s.target == 80.0
        assert 0.9 < s.p_target <= 1.0
        _, _, s = posterior_forecast(prior, likelihood, 50.0, target=1000.0)
        assert s.p_target == pytest.approx(0.0, abs=1e-9)

    def test_summarize_uniform(self):
        grid = np.linspace(0.0, 10.0, 1001)
        density = np.full(grid.size, 0.1)
        s = summarize(grid, density, level=0.8)
        assert s.mean == pytest.approx(5.0)
        assert s.median == pytest.approx(5.0)
        assert (s.lower, s.upper) == pytest.approx((1.0, 9.0))
        assert s.p_target is None

    def test_summarize_rejects_bad_level(self):
        grid = np.linspace(0.0, 1.0, 11)
        with pytest.raises(ValueError):
            summarize(grid, np.ones(11), level=1.5)

    def test_point_mass(self):
        s = point_mass_summary(120.0, level=0.9, target=100.0)
        assert s.mean == s.median == s.lower == s.upper == 120.0
        assert s.sd == 0.0
        assert s.p_target == 1.0
        assert point_mass_summary(90.0, target=100.0).p_target == 0.0
        assert point_mass_summary(90.0).p_target is None

    def test_payload_roundtrips_through_dict(self, prior, likelihood):
        _, _, s = posterior_forecast(prior, likelihood, 50.0)
        assert PosteriorSummary(**s.to_payload()) == s
