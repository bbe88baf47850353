"""
Accumulation scheme: forecasting a period's final total from progress.

Module Organization
-------------------
- `common`: observation payloads, `ProgressBatch` and the observation component
- `statistics`: prior, likelihood, posterior, target criteria and signaler
- `experiments`: `AccumulationTemplate`, wiring the components together

Example Usage
-------------
>>> from accumcast.stats.schemes.accumulation.common import ProgressBatch
>>> batch = ProgressBatch()
>>> batch.set_progress(elapsed=0.4, cumulative=120.0)
>>> batch.validate()
True
"""

from accumcast.stats.schemes.accumulation.common import (
    ProgressBatch,
    ProgressObservation,
    reduce_progress,
)
from accumcast.stats.schemes.accumulation.statistics import (
    PosteriorForecast,
    PriorFit,
    ProgressLikelihood,
    TargetSignaler,
    TargetThreshold,
)
from accumcast.stats.schemes.accumulation.experiments import AccumulationTemplate

__all__ = [
    "AccumulationTemplate",
    "PosteriorForecast",
    "PriorFit",
    "ProgressBatch",
    "ProgressLikelihood",
    "ProgressObservation",
    "TargetSignaler",
    "TargetThreshold",
    "reduce_progress",
]
