"""
accumcast.core.ledger
=====================

ibis-framework based, append-only event ledger.

Every fact of a forecast (progress observations, the fitted prior, the
likelihood fitted at each look, posterior summaries, targets and signals) is
appended as a typed event. Components never keep state of their own; they
read what they need back from the ledger.

- Backend-agnostic via ibis-framework (duckdb by default)
- JSON payloads with type-based wrap/unwrap
- Automatic accumcast_version tracking
- A monotonically increasing ``seq`` column gives a stable event order

Examples
--------
>>> from accumcast.core.ledger import Ledger, create_test_connection
>>> from accumcast.core.names import Namespace
>>>
>>> conn = create_test_connection("duckdb")
>>> ledger = Ledger(conn, "doc")
>>> ledger.write_event(
...     time_index="t1", namespace=Namespace.OBS, kind="observation",
...     period_id="2024-03", step_key="look-1", payload_type="ProgressObs",
...     payload={"elapsed": 0.25, "cumulative": 120.0}
... )
>>> rows = ledger.events(namespace=Namespace.OBS, period_id="2024-03")
>>> rows[0]["payload"]["cumulative"]
120.0
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
import json
import logging
import uuid as uuid_module

import ibis
import pandas as pd
import polars as pl
from ibis import BaseBackend
from ibis.expr.types import Table

from accumcast.core.names import Namespace, PeriodId, StepKey, TimeIndex
from accumcast.__version__ import __version__

logger = logging.getLogger(__name__)

# Type aliases
NamespaceLike = Union[Namespace, str]


def get_ledger_schema() -> ibis.Schema:
    """Get the standardized ledger schema using ibis.Schema."""
    return ibis.schema(
        [
            ("seq", "int64"),
            ("uuid", "string"),
            ("ledger_name", "string"),
            ("time_index", "string"),
            ("ts", "timestamp"),
            ("namespace", "string"),
            ("kind", "string"),
            ("entity", "string"),
            ("snapshot_id", "string"),
            ("tag", "string"),
            ("payload_type", "string"),
            ("payload", "string"),  # JSON text
            ("accumcast_version", "string"),
        ]
    )


def _ns(namespace: NamespaceLike) -> str:
    return namespace.value if isinstance(namespace, Namespace) else str(namespace)


class PayloadType(ABC):
    """Abstract base class for payload type handlers."""

    @abstractmethod
    def wrap(self, data: Any) -> str:
        """Convert data to JSON string for storage."""

    @abstractmethod
    def unwrap(self, json_str: str) -> Any:
        """Convert JSON string back to data."""


class JSONPayloadType(PayloadType):
    """Default JSON payload type handler."""

    def wrap(self, data: Any) -> str:
        return json.dumps(data, separators=(",", ":"))

    def unwrap(self, json_str: str) -> Any:
        if not json_str:
            return {}
        return json.loads(json_str)


class PayloadTypeRegistry:
    """Registry for payload type handlers."""

    _handlers: Dict[str, PayloadType] = {}
    _default_handler = JSONPayloadType()

    @classmethod
    def register(cls, payload_type: str, handler: PayloadType) -> None:
        """Register a payload type handler."""
        cls._handlers[payload_type] = handler

    @classmethod
    def get_handler(cls, payload_type: str) -> PayloadType:
        """Get handler for payload type, fallback to default JSON handler."""
        return cls._handlers.get(payload_type, cls._default_handler)

    @classmethod
    def wrap(cls, payload_type: str, data: Any) -> str:
        return cls.get_handler(payload_type).wrap(data)

    @classmethod
    def unwrap(cls, payload_type: str, json_str: str) -> Any:
        return cls.get_handler(payload_type).unwrap(json_str)


class Ledger:
    """
    Append-only ledger stored in an ibis backend table.

    Responsibilities:
    - Database connection management
    - Schema guarantee and table lifecycle
    - Automatic ledger_name, seq and accumcast_version injection
    - Payload wrapping/unwrapping via PayloadTypeRegistry

    Query construction beyond the small helpers here is left to callers,
    who use ibis expressions on `table`.
    """

    def __init__(
        self,
        connection: BaseBackend,
        ledger_name: str = "default",
        table_name: str = "ledger",
    ):
        """Initialize ledger with connection and names.

        Parameters
        ----------
        connection : BaseBackend
            Ibis backend connection
        ledger_name : str
            Name of this ledger instance (several may share one table)
        table_name : str
            Name of the table in the backend
        """
        self.connection = connection
        self.ledger_name = ledger_name
        self.table_name = table_name
        self._ensure_table_exists()

    def _ensure_table_exists(self) -> None:
        """Create table with standardized schema if it doesn't exist."""
        if self.table_name not in self.connection.list_tables():
            logger.debug("Creating ledger table %s", self.table_name)
            self.connection.create_table(self.table_name, schema=get_ledger_schema())

    @property
    def table(self) -> Table:
        """
        Get ibis table filtered by ledger name.

        Examples
        --------
        >>> conn = create_test_connection("duckdb")
        >>> ledger = Ledger(conn, "doc_table")
        >>> int(ledger.table.count().execute())
        0
        """
        table = self.connection.table(self.table_name)
        return table.filter(table.ledger_name == self.ledger_name)

    @property
    def raw_table(self) -> Table:
        """Unfiltered ibis table, useful for meta-analysis across ledgers."""
        return self.connection.table(self.table_name)

    def _next_seq(self) -> int:
        current = self.raw_table.seq.max().execute()
        if current is None or pd.isna(current):
            return 0
        return int(current) + 1

    def write_event(
        self,
        *,
        time_index: Union[TimeIndex, str],
        namespace: NamespaceLike,
        kind: str,
        period_id: Union[PeriodId, str],
        step_key: Union[StepKey, str],
        payload_type: str,
        payload: Any,
        tag: Optional[str] = None,
        ts: Optional[datetime] = None,
    ) -> None:
        """Append a typed event to the ledger.

        Parameters
        ----------
        time_index : TimeIndex or str
            Time index for the event
        namespace : NamespaceLike
            Event namespace
        kind : str
            Event kind/type
        period_id : PeriodId or str
            Identifier of the period being forecast
        step_key : StepKey or str
            Step key within the period
        payload_type : str
            Type of payload for wrap/unwrap handling
        payload : Any
            Payload data to be wrapped
        tag : str, optional
            Optional tag for filtering
        ts : datetime, optional
            Timestamp, defaults to now
        """
        if ts is None:
            ts = datetime.now(timezone.utc)
        elif ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        # stored as naive UTC
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)

        record = {
            "seq": self._next_seq(),
            "uuid": str(uuid_module.uuid4()),
            "ledger_name": self.ledger_name,
            "time_index": str(time_index),
            "ts": ts,
            "namespace": _ns(namespace),
            "kind": kind,
            "entity": f"{period_id}#{step_key}",
            "snapshot_id": str(step_key),
            "tag": tag or "",
            "payload_type": payload_type,
            "payload": PayloadTypeRegistry.wrap(payload_type, payload),
            "accumcast_version": __version__,
        }

        frame = pd.DataFrame([record])
        frame["seq"] = frame["seq"].astype("int64")
        frame["ts"] = pd.to_datetime(frame["ts"])
        self.connection.insert(self.table_name, frame)
        logger.debug(
            "ledger %s: %s/%s %s for %s",
            self.ledger_name,
            record["namespace"],
            kind,
            payload_type,
            record["entity"],
        )

    def unwrap_payload(self, payload_type: str, payload_json: str) -> Any:
        """Unwrap a payload string using PayloadTypeRegistry."""
        return PayloadTypeRegistry.unwrap(payload_type, payload_json)

    def unwrap_results(self, df: Any) -> List[Dict[str, Any]]:
        """
        Convert a pandas DataFrame of ledger rows into records with
        unwrapped payloads.
        """
        records: List[Dict[str, Any]] = df.to_dict("records")
        for record in records:
            if "payload" in record and "payload_type" in record:
                record["payload"] = self.unwrap_payload(
                    record["payload_type"], record["payload"]
                )
        return records

    def _filtered(
        self,
        *,
        namespace: Optional[NamespaceLike] = None,
        period_id: Optional[Union[PeriodId, str]] = None,
        kind: Optional[str] = None,
        tag: Optional[str] = None,
        payload_type: Optional[str] = None,
    ) -> Table:
        t = self.table
        if namespace is not None:
            t = t.filter(t.namespace == _ns(namespace))
        if period_id is not None:
            prefix = f"{period_id}#"
            # _ and % in period ids must not act as LIKE wildcards
            t = t.filter(t.entity.substr(0, len(prefix)) == prefix)
        if kind is not None:
            t = t.filter(t.kind == kind)
        if tag is not None:
            t = t.filter(t.tag == tag)
        if payload_type is not None:
            t = t.filter(t.payload_type == payload_type)
        return t

    def events(
        self,
        *,
        namespace: Optional[NamespaceLike] = None,
        period_id: Optional[Union[PeriodId, str]] = None,
        kind: Optional[str] = None,
        tag: Optional[str] = None,
        payload_type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return matching events in append order with unwrapped payloads."""
        t = self._filtered(
            namespace=namespace,
            period_id=period_id,
            kind=kind,
            tag=tag,
            payload_type=payload_type,
        )
        return self.unwrap_results(t.order_by(t.seq).execute())

    def latest(
        self,
        *,
        namespace: Optional[NamespaceLike] = None,
        period_id: Optional[Union[PeriodId, str]] = None,
        kind: Optional[str] = None,
        tag: Optional[str] = None,
        payload_type: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Return the most recent matching event, or None."""
        t = self._filtered(
            namespace=namespace,
            period_id=period_id,
            kind=kind,
            tag=tag,
            payload_type=payload_type,
        )
        results = t.order_by(t.seq.desc()).limit(1).execute()
        if results.empty:
            return None
        return self.unwrap_results(results)[0]

    def count(self, **filters: Any) -> int:
        """Count matching events."""
        return int(self._filtered(**filters).count().execute())

    def frame(self) -> pl.DataFrame:
        """Return this ledger's rows as a polars DataFrame ordered by seq."""
        return self.table.order_by("seq").to_polars()


def create_test_connection(backend: str = "duckdb") -> BaseBackend:
    """Create an in-memory connection for tests and one-shot forecasts.

    Parameters
    ----------
    backend : str
        Backend type ("duckdb" or "sqlite")

    Examples
    --------
    >>> conn = create_test_connection("duckdb")
    >>> ledger = Ledger(conn, "test")
    >>> ledger.count()
    0
    """
    if backend == "duckdb":
        return ibis.duckdb.connect(":memory:")
    elif backend == "sqlite":
        return ibis.sqlite.connect()
    else:
        raise ValueError(f"Unsupported backend: {backend}. Use 'duckdb' or 'sqlite'.")
