"""
accumcast.api - User-Friendly Facade
====================================

Entry points organised by what users want to do, in the language of the
domain (periods, progress, targets) rather than of the framework.

Examples
--------
>>> from accumcast.api.forecast import forecast_final
>>> from accumcast.simulate import simulate_history
>>> result = forecast_final(simulate_history(seed=5), elapsed=0.4, cumulative=350.0)
>>> result.lower < result.mean < result.upper
True

Unified Interface
-----------------
- `forecast_period()`: a template for a period tracked look by look
- `forecast_final()`: a one-shot forecast from a single progress reading
- `compare_priors()`: the same period under several prior families
- `backtest()`: leave-one-period-out evaluation on history
"""

from accumcast.api.forecast import (
    backtest,
    compare_priors,
    forecast_final,
    forecast_period,
)

__all__ = ["backtest", "compare_priors", "forecast_final", "forecast_period"]
