"""
accumcast.core.components
=========================

Base classes for components that write to and read from the ledger.

Components carry configuration only. All state lives in the ledger: a
component reads the events it depends on with ibis expressions (or the
`Ledger.events` / `Ledger.latest` helpers) and appends its own result.

Component Types:
- `Observer`: Validate and register raw progress observations
- `Statistic`: Compute fits and posterior summaries
- `Criteria`: Register targets and thresholds
- `Signaler`: Emit decisions based on statistics and criteria

Examples
--------
>>> from accumcast.core.ledger import Ledger, create_test_connection
>>> from accumcast.core.names import Namespace
>>>
>>> class CountObs(Statistic):
...     def step(self, ledger, period_id, step_key, time_index):
...         n = ledger.count(namespace=Namespace.OBS, period_id=period_id)
...         ledger.write_event(
...             time_index=time_index, namespace=self.ns_stats, kind="updated",
...             period_id=period_id, step_key=step_key,
...             payload_type="ObsCount", payload={"n": n}, tag=self.tag_stats,
...         )
>>>
>>> ledger = Ledger(create_test_connection("duckdb"), "doc")
>>> CountObs().step(ledger, "p1", "look-1", "t1")
>>> ledger.latest(namespace=Namespace.STATS)["payload"]["n"]
0
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union, TYPE_CHECKING

from accumcast.core.names import Namespace, PeriodId, StepKey, TimeIndex

NamespaceLike = Union[Namespace, str]

if TYPE_CHECKING:
    from accumcast.core.ledger import Ledger


class ComponentBase(ABC):
    """
    Base class for all ledger components.

    Provides namespace conventions and requires subclasses to implement step().
    """

    @abstractmethod
    def step(
        self,
        ledger: "Ledger",
        period_id: Union[PeriodId, str],
        step_key: Union[StepKey, str],
        time_index: Union[TimeIndex, str],
    ) -> None:
        """Execute this component's logic for one look at a period."""


@dataclass(kw_only=True)
class Statistic(ComponentBase):
    """
    Base class for statistics updaters.

    Statistics read observations (and other statistics) and write computed
    values back to the ledger for use by downstream components.
    """

    ns_stats: NamespaceLike = Namespace.STATS
    tag_stats: str = "stat:generic"

    def step(
        self,
        ledger: "Ledger",
        period_id: Union[PeriodId, str],
        step_key: Union[StepKey, str],
        time_index: Union[TimeIndex, str],
    ) -> None:
        raise NotImplementedError("Subclasses must implement step()")


@dataclass(kw_only=True)
class Criteria(ComponentBase):
    """
    Base class for criteria updaters.

    Criteria record what a forecast is judged against, e.g. a target total
    and the confidence required to call it.
    """

    ns_crit: NamespaceLike = Namespace.CRITERIA
    tag_crit: str = "crit:generic"

    def step(
        self,
        ledger: "Ledger",
        period_id: Union[PeriodId, str],
        step_key: Union[StepKey, str],
        time_index: Union[TimeIndex, str],
    ) -> None:
        raise NotImplementedError("Subclasses must implement step()")


@dataclass(kw_only=True)
class Signaler(ComponentBase):
    """
    Base class for signal emitters.

    Signalers compare statistics to criteria and emit actionable signals.
    """

    ns_sig: NamespaceLike = Namespace.SIGNALS
    tag_sig: str = "signal:generic"

    def step(
        self,
        ledger: "Ledger",
        period_id: Union[PeriodId, str],
        step_key: Union[StepKey, str],
        time_index: Union[TimeIndex, str],
    ) -> None:
        raise NotImplementedError("Subclasses must implement step()")


@dataclass(kw_only=True)
class Observer(ComponentBase):
    """
    Base class for observation validators.

    Observers validate raw observations before they are registered for the
    statistical components.
    """

    ns_obs: NamespaceLike = Namespace.OBS
    tag_obs: str = "obs:generic"

    def step(
        self,
        ledger: "Ledger",
        period_id: Union[PeriodId, str],
        step_key: Union[StepKey, str],
        time_index: Union[TimeIndex, str],
    ) -> None:
        raise NotImplementedError("Subclasses must implement step()")
