"""
Pytest Configuration and Fixtures.

Provides reusable histories and in-memory ledgers for testing accumcast.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import polars as pl
import pytest

from accumcast.core.ledger import Ledger, create_test_connection
from accumcast.history import PeriodHistory
from accumcast.simulate import simulate_history


# ============================================================================
# HISTORY FIXTURES
# ============================================================================


@pytest.fixture
def history() -> PeriodHistory:
    """Twenty simulated complete periods, mean total about 1000."""
    return simulate_history(n_periods=20, n_steps=20, seed=42)


@pytest.fixture
def linear_history() -> PeriodHistory:
    """Five periods that each accumulate linearly to their total."""
    totals = [80.0, 90.0, 100.0, 110.0, 120.0]
    elapsed = [0.25, 0.5, 0.75, 1.0]
    rows = [
        {"period": f"m{i}", "elapsed": t, "cumulative": total * t}
        for i, total in enumerate(totals)
        for t in elapsed
    ]
    return PeriodHistory(pl.DataFrame(rows))


@pytest.fixture
def jittered_history() -> PeriodHistory:
    """Six periods with distinct mid-period completion fractions."""
    totals = np.array([90.0, 100.0, 105.0, 110.0, 95.0, 120.0])
    mid = np.array([0.45, 0.5, 0.48, 0.52, 0.55, 0.47])
    rows = []
    for i, (total, f) in enumerate(zip(totals, mid)):
        rows.append({"period": f"q{i}", "elapsed": 0.5, "cumulative": total * f})
        rows.append({"period": f"q{i}", "elapsed": 1.0, "cumulative": total})
    return PeriodHistory(pl.DataFrame(rows))


# ============================================================================
# LEDGER FIXTURES
# ============================================================================


@pytest.fixture
def ledger() -> Ledger:
    """Empty ledger on an in-memory duckdb connection."""
    return Ledger(create_test_connection("duckdb"), "test")
