"""
accumcast: empirical-Bayes forecasting of repeated accumulating processes.

Many quantities build up over a fixed period: monthly sales, a quarter's
sign-ups, a season's rainfall. Part way through a period one knows how much
has accumulated so far and wants the final total, with honest uncertainty.
accumcast answers this from the history of earlier periods of the same
process: their final totals form a prior, and the fraction of the total
they had reached at the same point in time forms the likelihood of the
current reading.

Every step of a forecast (the observation, the fitted prior and likelihood,
the posterior summary and any target call) is appended to an ibis-backed,
append-only ledger, so that a period's forecasts can be audited and replayed
look by look.

Example
-------
>>> import accumcast
>>> assert hasattr(accumcast, "core")
>>> assert hasattr(accumcast, "stats")
"""

from accumcast import core, stats
from accumcast.__version__ import __version__

__all__ = ["core", "stats", "__version__"]
