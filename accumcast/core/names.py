"""
accumcast.core.names
====================

Typed names shared across the package.

- `Namespace`: an Enum for well-known ledger namespaces.
- `PeriodId`, `StepKey`, `TimeIndex`: NewType wrappers for clarity.
- Common `Literal` tags for the accumulation scheme.

Examples
--------
>>> from accumcast.core.names import Namespace, PeriodId
>>> Namespace.OBS.value
'obs'
>>> pid = PeriodId("2024-03"); isinstance(pid, str)
True
"""

from __future__ import annotations
from enum import Enum
from typing import Literal, NewType


class Namespace(str, Enum):
    """Well-known ledger namespaces.

    - OBS: within-period progress observations
    - DESIGN: fitted prior and forecast design
    - STATS: statistics (likelihood fits, posterior forecasts)
    - CRITERIA: targets and confidence thresholds
    - SIGNALS: emitted signals / decisions
    """

    OBS = "obs"
    DESIGN = "design"
    STATS = "stats"
    CRITERIA = "criteria"
    SIGNALS = "signals"

    def __str__(self) -> str:
        return self.value


# Typed aliases for logical identifiers (thin wrappers over str).
PeriodId = NewType("PeriodId", str)
StepKey = NewType("StepKey", str)
TimeIndex = NewType("TimeIndex", str)

# Tags used by the accumulation scheme.
ProgressObsTag = Literal["obs:progress"]
PriorFitTag = Literal["design:prior"]
LikelihoodFitTag = Literal["stat:likelihood"]
PosteriorTag = Literal["stat:posterior"]
TargetTag = Literal["crit:target"]
TargetDecisionTag = Literal["target:decision"]

PROGRESS_OBS_TAG = "obs:progress"
PRIOR_FIT_TAG = "design:prior"
LIKELIHOOD_FIT_TAG = "stat:likelihood"
POSTERIOR_TAG = "stat:posterior"
TARGET_TAG = "crit:target"
TARGET_DECISION_TAG = "target:decision"
