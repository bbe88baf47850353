"""
accumcast.backends
==================

Storage backends for ledger frames and period histories.
"""
