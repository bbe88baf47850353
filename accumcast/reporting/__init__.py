"""
accumcast.reporting
===================

Read-only views over a ledger: generic event counts and forecast progress.
"""
