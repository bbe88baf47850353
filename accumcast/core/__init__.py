"""
accumcast.core
==============

Event-sourcing primitives: the ledger, its namespaces and the component
base classes that read from and write to it.
"""
