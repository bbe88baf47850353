"""
accumcast.errors
================

Exception types raised by the forecasting pipeline.

Bad user input surfaces as `ValueError` subclasses so that callers who only
catch built-in exceptions keep working.
"""

from __future__ import annotations


class AccumcastError(Exception):
    """Base class for package-specific errors."""


class HistoryError(AccumcastError, ValueError):
    """Historical period data is malformed."""


class InsufficientHistoryError(HistoryError):
    """Not enough usable historical periods to fit a distribution."""


class PosteriorError(AccumcastError, ArithmeticError):
    """The posterior could not be normalised on the evaluation grid."""
