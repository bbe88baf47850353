"""
accumcast.reporting.generic
===========================

A scheme-agnostic reporter that lists ledger entities and
namespace x kind counts. Works with any ibis-backed ledger.

Examples
--------
>>> from accumcast.core.ledger import Ledger, create_test_connection
>>> from accumcast.core.names import Namespace
>>> from accumcast.reporting.generic import LedgerReporter
>>> L = Ledger(create_test_connection("duckdb"), "doc")
>>> L.write_event(time_index="t1", namespace=Namespace.OBS, kind="observation",
...               period_id="p", step_key="look-1", payload_type="ProgressObs",
...               payload={"elapsed": 0.1, "cumulative": 3.0})
>>> rep = LedgerReporter(L)
>>> rep.unique_entities()
['p#look-1']
>>> rep.namespace_kind_counts().execute()["count"].tolist()
[1]
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List

import ibis

if TYPE_CHECKING:
    from accumcast.core.ledger import Ledger


@dataclass
class LedgerReporter:
    """A generic, scheme-agnostic reporter for any forecast ledger."""

    ledger: "Ledger"

    def ledger_table(self) -> Any:
        """Return the underlying ledger table as ibis expression."""
        return self.ledger.table

    def _distinct(self, column: str) -> List[str]:
        table = self.ledger.table
        values = table.select(table[column]).distinct().execute()[column]
        return sorted(v for v in values.tolist() if v is not None)

    def unique_entities(self) -> List[str]:
        """List all unique ``<period>#<step>`` entities."""
        return self._distinct("entity")

    def unique_periods(self) -> List[str]:
        """List all unique period ids."""
        return sorted({e.split("#", 1)[0] for e in self.unique_entities()})

    def unique_namespaces(self) -> List[str]:
        return self._distinct("namespace")

    def unique_kinds(self) -> List[str]:
        return self._distinct("kind")

    def namespace_kind_counts(self) -> Any:
        """
        Counts of events grouped by namespace and kind.

        Returns
        -------
        ibis.Table
            Table with namespace, kind, and count columns
        """
        table = self.ledger.table
        return (
            table.group_by([table.namespace, table.kind])
            .aggregate(count=ibis._.count())
            .order_by(["namespace", "kind"])
        )
