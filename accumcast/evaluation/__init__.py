"""
accumcast.evaluation
====================

Out-of-sample evaluation of the forecast on historical periods.
"""

from accumcast.evaluation.backtest import backtest, summarize_backtest

__all__ = ["backtest", "summarize_backtest"]
