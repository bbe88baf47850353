"""
Statistical methods for forecasting accumulating processes.

Two layers, kept apart:

1. **Common** (accumcast.stats.common):
   Scheme-independent numerics: fitting distributions to historical totals
   and completion fractions, grid posteriors and naive baselines.

2. **Schemes** (accumcast.stats.schemes):
   Ledger components that apply the common methods to a particular way of
   observing a period (currently cumulative progress readings).

Example:
--------
>>> from accumcast.stats.common.distributions import fit_prior
>>> fit_prior([90.0, 100.0, 110.0, 105.0], family="normal").family
'normal'

>>> from accumcast.stats.schemes.accumulation.statistics import PosteriorForecast
>>> statistic = PosteriorForecast()
"""
