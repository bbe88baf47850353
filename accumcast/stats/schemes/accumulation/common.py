"""
accumcast.stats.schemes.accumulation.common
===========================================

Data structures and ledger helpers shared by the accumulation scheme.

Progress for the period being forecast arrives as a sequence of batches. Each
batch carries the elapsed fraction of the period and either the cumulative
value so far or the increment since the previous batch.
"""

from __future__ import annotations
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, TypedDict

from accumcast.core.components import Observer
from accumcast.core.ledger import Ledger, NamespaceLike
from accumcast.core.names import Namespace, PROGRESS_OBS_TAG


# --- Payload Type Definitions ---


class ProgressObsPayload(TypedDict):
    """Payload of a progress observation event."""

    elapsed: float
    cumulative: Optional[float]
    increment: Optional[float]


class PriorFitPayload(TypedDict):
    """Payload of the fitted prior (design namespace)."""

    family: str
    params: Dict[str, Any]
    n: int
    mean: float
    sd: float


class LikelihoodFitPayload(TypedDict):
    """Payload of the progress likelihood fitted at one elapsed fraction."""

    family: str
    params: Dict[str, Any]
    n: int
    elapsed: float
    mean_fraction: float


class PosteriorPayload(TypedDict):
    """Payload of a posterior forecast."""

    elapsed: float
    observed: float
    mean: float
    median: float
    mode: float
    sd: float
    lower: float
    upper: float
    level: float
    target: Optional[float]
    p_target: Optional[float]
    run_rate: float
    historical_ratio: float
    prior_mean: float
    complete: bool


class TargetPayload(TypedDict):
    target: float
    confidence: float


# --- Observation batches ---


@dataclass
class ProgressBatch:
    """
    One progress update for the period being forecast.

    Provides validation before registration in the ledger.

    >>> b = ProgressBatch()
    >>> b.set_progress(elapsed=0.5, cumulative=40)
    >>> b.validate()
    True
    >>> b.to_payload()
    {'elapsed': 0.5, 'cumulative': 40.0, 'increment': None}
    """

    elapsed: Optional[float] = None
    cumulative: Optional[float] = None
    increment: Optional[float] = None

    timestamp: Optional[datetime] = None
    source_info: Dict[str, Any] = field(default_factory=dict)
    validation_errors: List[str] = field(default_factory=list)

    def set_progress(self, elapsed: float, cumulative: float) -> None:
        """Record the cumulative value reached at ``elapsed``."""
        self.elapsed = float(elapsed)
        self.cumulative = float(cumulative)
        self.increment = None

    def add_increment(self, elapsed: float, amount: float) -> None:
        """Record ``amount`` accumulated since the previous batch."""
        self.elapsed = float(elapsed)
        self.increment = (self.increment or 0.0) + float(amount)
        self.cumulative = None

    def validate(self) -> bool:
        """Validate the batch and return True if valid."""
        errors: List[str] = []
        if self.elapsed is None:
            errors.append("elapsed is required")
        elif not math.isfinite(self.elapsed) or not 0.0 <= self.elapsed <= 1.0:
            errors.append(f"elapsed must be in [0, 1], got {self.elapsed}")
        if self.cumulative is None and self.increment is None:
            errors.append("either cumulative or increment is required")
        for name, value in (("cumulative", self.cumulative), ("increment", self.increment)):
            if value is None:
                continue
            if not math.isfinite(value):
                errors.append(f"{name} must be finite, got {value}")
            elif value < 0:
                errors.append(f"{name} cannot be negative, got {value}")
        self.validation_errors = errors
        return not errors

    def is_empty(self) -> bool:
        return self.elapsed is None and self.cumulative is None and self.increment is None

    def to_payload(self) -> Dict[str, Any]:
        """Convert to payload format for ledger registration."""
        return {
            "elapsed": self.elapsed,
            "cumulative": self.cumulative,
            "increment": self.increment,
        }

    def reset(self) -> None:
        self.elapsed = None
        self.cumulative = None
        self.increment = None
        self.validation_errors.clear()
        self.source_info.clear()


@dataclass(kw_only=True)
class ProgressObservation(Observer):
    """
    Observation component for the period being forecast.

    Registration rejects batches that would move backwards: the elapsed
    fraction and the cumulative value may never decrease.

    Parameters
    ----------
    auto_validate : bool, default=True
        Whether to validate batches before registration
    tag_obs : str, default="obs:progress"
        Tag to use for observation events
    """

    auto_validate: bool = True
    tag_obs: str = PROGRESS_OBS_TAG

    current_batch: Optional[ProgressBatch] = field(default=None, init=False)

    def create_batch(self, timestamp: Optional[datetime] = None) -> ProgressBatch:
        batch = ProgressBatch()
        if timestamp:
            batch.timestamp = timestamp
        return batch

    def register_batch(
        self,
        ledger: Ledger,
        period_id: str,
        step_key: str,
        time_index: str,
        batch: ProgressBatch,
        force: bool = False,
    ) -> bool:
        """
        Register a progress batch to the ledger.

        Returns
        -------
        bool
            True if registration succeeded, False otherwise (see
            ``batch.validation_errors``)
        """
        if not force and batch.is_empty():
            batch.validation_errors.append("batch is empty")
            return False
        if not force and self.auto_validate and not batch.validate():
            return False

        if not force:
            prev = reduce_progress(ledger, period_id, namespace=self.ns_obs, tag=self.tag_obs)
            if prev is not None:
                prev_elapsed, prev_cum = prev
                if batch.elapsed is not None and batch.elapsed < prev_elapsed:
                    batch.validation_errors.append(
                        f"elapsed moved backwards ({batch.elapsed} < {prev_elapsed})"
                    )
                if batch.cumulative is not None and batch.cumulative < prev_cum:
                    batch.validation_errors.append(
                        f"cumulative decreased ({batch.cumulative} < {prev_cum})"
                    )
                if batch.validation_errors:
                    return False

        ledger.write_event(
            time_index=str(time_index),
            namespace=self.ns_obs,
            kind="observation",
            period_id=str(period_id),
            step_key=str(step_key),
            payload_type="ProgressObs",
            payload=batch.to_payload(),
            tag=self.tag_obs,
            ts=batch.timestamp or datetime.now(timezone.utc),
        )
        return True

    def step(
        self, ledger: Ledger, period_id: str, step_key: str, time_index: str
    ) -> None:
        """Register ``current_batch`` if one is pending."""
        if self.current_batch is not None:
            if self.register_batch(
                ledger, period_id, step_key, time_index, self.current_batch
            ):
                self.current_batch = None

    def ingest_from_dict(
        self, data: Dict[str, Any], batch: Optional[ProgressBatch] = None
    ) -> ProgressBatch:
        """
        Ingest data from a dictionary.

        Expected formats:
        - {"elapsed": 0.4, "cumulative": 120}
        - {"elapsed": 0.4, "increment": 15}
        - {"step": 12, "period_length": 30, "cumulative": 120}
        """
        if batch is None:
            batch = self.create_batch()

        elapsed = data.get("elapsed")
        if elapsed is None and "step" in data and "period_length" in data:
            length = float(data["period_length"])
            if length <= 0:
                batch.validation_errors.append("period_length must be positive")
                return batch
            elapsed = float(data["step"]) / length

        if elapsed is None:
            batch.validation_errors.append(
                f"Unrecognized data format: {sorted(data.keys())}"
            )
        elif "cumulative" in data:
            batch.set_progress(elapsed, data["cumulative"])
        elif "increment" in data:
            batch.add_increment(elapsed, data["increment"])
        else:
            batch.validation_errors.append(
                f"Unrecognized data format: {sorted(data.keys())}"
            )
        return batch


# --- Ledger helpers ---


def reduce_progress(
    ledger: Ledger,
    period_id: str,
    namespace: NamespaceLike = Namespace.OBS,
    tag: Optional[str] = PROGRESS_OBS_TAG,
) -> Optional[Tuple[float, float]]:
    """
    Fold progress observations into the latest (elapsed, cumulative).

    Cumulative batches reset the running value; increment batches add to it.
    Returns None when the period has no observations yet.
    """
    events = ledger.events(namespace=namespace, period_id=period_id, tag=tag)
    if not events:
        return None

    elapsed = 0.0
    running = 0.0
    for event in events:
        payload = event["payload"]
        if payload.get("cumulative") is not None:
            running = float(payload["cumulative"])
        else:
            running += float(payload.get("increment") or 0.0)
        elapsed = float(payload["elapsed"])
    return elapsed, running


def get_latest_payload(
    ledger: Ledger,
    period_id: str,
    namespace: NamespaceLike,
    tag: str,
) -> Optional[Dict[str, Any]]:
    """Latest payload with the given namespace and tag, or None."""
    record = ledger.latest(namespace=namespace, period_id=period_id, tag=tag)
    return record["payload"] if record else None
